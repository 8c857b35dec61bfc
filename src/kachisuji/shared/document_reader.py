"""Parse uploaded documents to plain text, and walk document folders.

PDF, DOCX and PPTX go through PyPDF2, python-docx and python-pptx; CSV and
JSON are normalised to indented JSON text so the chunker sees one format.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from pathlib import Path
from typing import Iterator

import docx
import pathspec
from pptx import Presentation
from PyPDF2 import PdfReader

from kachisuji.errors import UnsupportedFileType
from kachisuji.schemas.rag import ParsedDocument

logger = logging.getLogger(__name__)

SUPPORTED_TYPES = ("pdf", "txt", "md", "json", "docx", "csv", "pptx")

_BOM = "﻿"

# Never descended into
_ALWAYS_IGNORE = {
    ".git",
    "node_modules",
    "__pycache__",
    ".cache",
    ".pytest_cache",
    ".venv",
    "venv",
}

# 50 MB
_MAX_FILE_SIZE = 50 * 1_024 * 1_024

_IGNORE_FILES = (".gitignore", ".ragignore")


def get_file_type(filename: str) -> str:
    return Path(filename).suffix.lstrip(".").lower()


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace").removeprefix(_BOM)


def _parse_pdf(data: bytes) -> tuple[str, dict]:
    reader = PdfReader(io.BytesIO(data))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n".join(pages), {"pages": len(reader.pages)}


def _parse_docx(data: bytes) -> tuple[str, dict]:
    document = docx.Document(io.BytesIO(data))
    paragraphs = [p.text for p in document.paragraphs]
    # Table cells are not part of document.paragraphs
    for table in document.tables:
        for row in table.rows:
            paragraphs.append("\t".join(cell.text for cell in row.cells))
    return "\n".join(paragraphs), {}


def _parse_pptx(data: bytes) -> tuple[str, dict]:
    prs = Presentation(io.BytesIO(data))
    slides: list[str] = []
    for num, slide in enumerate(prs.slides, 1):
        texts = []
        for shape in slide.shapes:
            if not getattr(shape, "has_text_frame", False):
                continue
            for paragraph in shape.text_frame.paragraphs:
                line = "".join(run.text for run in paragraph.runs).strip()
                if line:
                    texts.append(line)
        if texts:
            slides.append(f"[スライド{num}]\n" + "\n".join(texts))
    return "\n\n".join(slides), {"slides": len(slides)}


def _parse_csv(data: bytes) -> tuple[str, dict]:
    reader = csv.DictReader(io.StringIO(_decode(data)))
    records = [row for row in reader if any((v or "").strip() for v in row.values())]
    return json.dumps(records, ensure_ascii=False, indent=2), {"rows": len(records)}


def _parse_json(data: bytes) -> tuple[str, dict]:
    return json.dumps(json.loads(_decode(data)), ensure_ascii=False, indent=2), {}


def _parse_text(data: bytes) -> tuple[str, dict]:
    return _decode(data), {}


_PARSERS = {
    "pdf": _parse_pdf,
    "docx": _parse_docx,
    "pptx": _parse_pptx,
    "csv": _parse_csv,
    "json": _parse_json,
    "txt": _parse_text,
    "md": _parse_text,
}


def parse_document(filename: str, data: bytes) -> ParsedDocument:
    """Extract text and metadata from raw file bytes.

    Raises UnsupportedFileType for extensions outside SUPPORTED_TYPES.
    Parser errors (corrupt PDF, invalid JSON, ...) propagate.
    """
    file_type = get_file_type(filename)
    if file_type not in _PARSERS:
        raise UnsupportedFileType(
            f"サポートされていないファイル形式です: {file_type}。"
            f"対応形式: {', '.join(SUPPORTED_TYPES)}"
        )
    content, metadata = _PARSERS[file_type](data)
    logger.debug("Parsed %s (%s): %d chars", filename, file_type, len(content))
    return ParsedDocument(filename=filename, file_type=file_type, content=content, metadata=metadata)


class DocumentFolder:
    """Supported documents under a folder, respecting .gitignore / .ragignore."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            raise ValueError(f"Document root is not a directory: {self.root}")
        self._spec = self._load_ignore_spec()

    def _load_ignore_spec(self) -> pathspec.PathSpec | None:
        lines: list[str] = []
        for name in _IGNORE_FILES:
            path = self.root / name
            if path.exists():
                lines.extend(path.read_text(errors="replace").splitlines())
        if lines:
            return pathspec.PathSpec.from_lines("gitwildmatch", lines)
        return None

    def _is_ignored(self, rel: Path) -> bool:
        for part in rel.parts:
            if part in _ALWAYS_IGNORE:
                return True
        if self._spec and self._spec.match_file(rel.as_posix()):
            return True
        return False

    def resolve(self, subpath: str) -> Path:
        """Absolute path of ``subpath``; refuses paths that escape the root."""
        target = (self.root / subpath).resolve()
        if not target.is_relative_to(self.root):
            raise ValueError(f"Path escapes document root: {subpath}")
        return target

    def iter_documents(self) -> Iterator[Path]:
        for path in sorted(self.root.rglob("*")):
            if not path.is_file():
                continue
            rel = path.relative_to(self.root)
            if self._is_ignored(rel):
                continue
            if get_file_type(path.name) not in SUPPORTED_TYPES:
                continue
            if path.stat().st_size > _MAX_FILE_SIZE:
                logger.warning("Skipping %s: file too large (%d bytes)", rel, path.stat().st_size)
                continue
            yield path

    def read(self, subpath: str) -> ParsedDocument:
        target = self.resolve(subpath)
        if not target.is_file():
            raise FileNotFoundError(f"Not a file: {subpath}")
        rel = target.relative_to(self.root).as_posix()
        return parse_document(rel, target.read_bytes())
