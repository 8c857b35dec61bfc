"""Split document text into retrieval chunks and tag them with metadata.

Segments are paragraphs (blank lines), further split before slide markers
(``[スライドN]``) and ``##``/``###`` headings. Segments are merged greedily
up to ``max_chars``; undersized leftovers are folded into the previous chunk.
Every chunk after the first is prefixed with the tail of its predecessor.
"""

from __future__ import annotations

import math
import re

from kachisuji.schemas.rag import ChunkMetadata, RawChunk

MAX_CHUNK_CHARS = 1500
MIN_CHUNK_CHARS = 100
OVERLAP_CHARS = 150

# Window at the end of a forced split searched for a natural break
_BREAK_SEARCH_CHARS = 200
_MAX_TAGS = 10
_DOC_LEVEL_SAMPLE_CHARS = 2000

DEPT_KEYWORDS: dict[str, list[str]] = {
    "planning": ["総合企画", "企画部", "経営企画"],
    "hr": ["人事", "総務", "人材"],
    "finance": ["経理", "財務", "会計"],
    "maritime-tech": ["海洋技術", "港湾コンサル", "交通流解析"],
    "simulator": ["シミュレータ技術", "シミュレーター技術"],
    "training": ["海技訓練", "操船訓練", "機関訓練"],
    "cable": ["ケーブル船", "海底ケーブル"],
    "offshore-training": ["オフショア船訓練", "DP訓練", "DPコース"],
    "ocean": ["海洋事業", "研究船", "観測船"],
    "wind": ["洋上風力", "風力発電", "O&M"],
    "onsite": ["オンサイト", "技術者派遣", "艤装"],
    "maritime-ops": ["海事業務", "JG検査", "GC発給", "LC発給"],
    "newbuild": ["新造船", "建造監理", "PM事業"],
}

# Checked in order; ties keep the earlier type
DOC_TYPE_PATTERNS: list[tuple[str, list[str]]] = [
    ("budget", ["予算", "P/L", "損益", "営業利益", "売上", "FY2", "収支", "財務"]),
    ("survey", ["エンゲージメント", "サーベイ", "従業員満足", "ES調査", "組織診断", "職場環境", "engagement"]),
    ("strategy", ["事業計画", "中期計画", "経営戦略", "ビジョン", "CDIO", "方針"]),
    ("org", ["組織図", "組織体制", "人員構成", "配置"]),
]
_MIN_DOC_TYPE_MATCHES = 2

TAG_KEYWORDS = [
    "予算", "FY25", "FY26", "FY27", "営業利益", "売上",
    "エンゲージメント", "離職", "採用", "育成", "研修",
    "DX", "AI", "RPA", "デジタル",
    "安全", "品質", "コンプライアンス",
    "GX", "脱炭素", "サステナビリティ",
    "M&A", "アライアンス", "シナジー",
    "海洋", "船舶", "港湾", "洋上風力",
    "赤字", "黒字", "改善", "課題",
]

_SEGMENT_SPLIT = re.compile(r"(?=\[スライド\d+\])|(?=^#{2,3}\s)", re.MULTILINE)
_PARAGRAPH_SPLIT = re.compile(r"\n\n+")
# CJK symbols/punctuation, kana, kanji and full-width forms
_CJK_CHARS = re.compile(r"[　-鿿＀-￯]")


def estimate_tokens(text: str) -> int:
    """Rough token count: CJK ≈ 1.5 tokens per char, everything else ≈ 0.3."""
    cjk = len(_CJK_CHARS.findall(text))
    other = len(text) - cjk
    return math.ceil(cjk * 1.5 + other * 0.3)


def split_into_segments(text: str) -> list[str]:
    segments: list[str] = []
    for para in _PARAGRAPH_SPLIT.split(text):
        segments.extend(s for s in _SEGMENT_SPLIT.split(para) if s.strip())
    return segments


def force_split(text: str, max_chars: int = MAX_CHUNK_CHARS) -> list[str]:
    """Cut an oversized segment, preferring a line or sentence end near each limit."""
    pieces: list[str] = []
    start = 0
    while start < len(text):
        end = start + max_chars
        if end < len(text):
            search_start = max(end - _BREAK_SEARCH_CHARS, start)
            window = text[search_start:end]
            break_idx = max(
                window.rfind("\n"),
                window.rfind("。"),
                window.rfind("．"),
                window.rfind(". "),
            )
            if break_idx > 0:
                end = search_start + break_idx + 1
        pieces.append(text[start:end].strip())
        start = end
    return [p for p in pieces if p]


def merge_segments(
    segments: list[str],
    *,
    max_chars: int = MAX_CHUNK_CHARS,
    min_chars: int = MIN_CHUNK_CHARS,
) -> list[str]:
    chunks: list[str] = []
    current = ""

    def flush() -> None:
        if len(current) >= min_chars:
            chunks.append(current)
        elif current and chunks:
            chunks[-1] += "\n\n" + current
        elif current:
            chunks.append(current)

    for seg in segments:
        trimmed = seg.strip()
        if not trimmed:
            continue

        if len(current) + len(trimmed) + 1 <= max_chars:
            current = f"{current}\n\n{trimmed}" if current else trimmed
            continue

        flush()
        if len(trimmed) > max_chars:
            pieces = force_split(trimmed, max_chars)
            current = pieces.pop() if pieces else ""
            chunks.extend(pieces)
        else:
            current = trimmed

    flush()
    return chunks


def add_overlap(chunks: list[str], overlap: int = OVERLAP_CHARS) -> list[str]:
    if len(chunks) <= 1 or overlap <= 0:
        return list(chunks)
    return [chunks[0]] + [
        chunks[i - 1][-overlap:] + "\n" + chunks[i] for i in range(1, len(chunks))
    ]


def extract_metadata(text: str, filename: str) -> ChunkMetadata:
    combined = f"{filename} {text}"

    dept_ids = [
        dept for dept, keywords in DEPT_KEYWORDS.items()
        if any(kw in combined for kw in keywords)
    ]

    doc_type = "general"
    best = 0
    for type_name, keywords in DOC_TYPE_PATTERNS:
        hits = sum(1 for kw in keywords if kw in combined)
        if hits > best:
            best, doc_type = hits, type_name
    if best < _MIN_DOC_TYPE_MATCHES:
        doc_type = "general"

    tags = [kw for kw in TAG_KEYWORDS if kw in combined]
    return ChunkMetadata(dept_ids=dept_ids, doc_type=doc_type, tags=tags)


def _merge_unique(*lists: list[str]) -> list[str]:
    return list(dict.fromkeys(item for lst in lists for item in lst))


def chunk_document(
    content: str,
    filename: str,
    *,
    max_chars: int = MAX_CHUNK_CHARS,
    min_chars: int = MIN_CHUNK_CHARS,
    overlap: int = OVERLAP_CHARS,
) -> list[RawChunk]:
    """Chunk ``content`` and attach department / doc type / tag metadata.

    Document-level metadata comes from the filename plus the first 2000
    characters and is merged into every chunk. A chunk's own doc type wins
    unless it is ``general``.
    """
    merged = merge_segments(split_into_segments(content), max_chars=max_chars, min_chars=min_chars)
    texts = add_overlap(merged, overlap)

    doc_meta = extract_metadata(content[:_DOC_LEVEL_SAMPLE_CHARS], filename)

    chunks: list[RawChunk] = []
    for idx, text in enumerate(texts):
        meta = extract_metadata(text, filename)
        dept_ids = _merge_unique(doc_meta.dept_ids, meta.dept_ids)
        doc_type = meta.doc_type if meta.doc_type != "general" else doc_meta.doc_type
        chunks.append(RawChunk(
            content=text,
            chunk_index=idx,
            char_count=len(text),
            token_estimate=estimate_tokens(text),
            metadata=ChunkMetadata(
                dept_ids=dept_ids or ["all"],
                doc_type=doc_type,
                tags=_merge_unique(doc_meta.tags, meta.tags)[:_MAX_TAGS],
            ),
        ))
    return chunks
