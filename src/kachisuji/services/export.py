"""CSV / JSON export of core data and history, and CSV / JSON import of core data."""

from __future__ import annotations

import csv
import io
import json
import logging

from sqlalchemy.orm import Session

from kachisuji.db.models import CoreAsset, CoreService
from kachisuji.errors import ValidationFailed
from kachisuji.services.core_data import list_assets, list_services
from kachisuji.services.exploration import list_history

logger = logging.getLogger(__name__)

# Excel only detects UTF-8 CSV with a BOM
BOM = "\ufeff"

EXPORT_TYPES: dict[str, tuple[str, list[str]]] = {
    "services": ("services", ["id", "name", "category", "description", "url", "created_at"]),
    "assets": ("assets", ["id", "name", "type", "description", "created_at"]),
    "history": ("exploration_history", ["id", "question", "context", "constraints", "result", "created_at"]),
}
IMPORT_TYPES = ("services", "assets")


def _iso(dt) -> str:
    return dt.isoformat() if dt else ""


def export_rows(session: Session, export_type: str, *, user_id: str | None = None) -> list[dict]:
    if export_type == "services":
        return [
            {
                "id": s.id, "name": s.name, "category": s.category or "",
                "description": s.description or "", "url": s.url or "", "created_at": _iso(s.created_at),
            }
            for s in list_services(session)
        ]
    if export_type == "assets":
        return [
            {
                "id": a.id, "name": a.name, "type": a.type,
                "description": a.description or "", "created_at": _iso(a.created_at),
            }
            for a in list_assets(session)
        ]
    if export_type == "history":
        return [
            {
                "id": h.id, "question": h.question, "context": h.context or "",
                "constraints": json.dumps(h.constraints or [], ensure_ascii=False),
                "result": json.dumps(h.result, ensure_ascii=False) if h.result is not None else "",
                "created_at": _iso(h.created_at),
            }
            for h in list_history(session, user_id=user_id, limit=10_000)
        ]
    raise ValidationFailed(f"不正なエクスポートタイプです: {export_type}")


def export_filename(export_type: str, fmt: str) -> str:
    if export_type not in EXPORT_TYPES:
        raise ValidationFailed(f"不正なエクスポートタイプです: {export_type}")
    return f"{EXPORT_TYPES[export_type][0]}.{fmt}"


def to_csv(rows: list[dict], headers: list[str]) -> str:
    """BOM-prefixed CSV; fields containing , " or newlines are quoted."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if row.get(h) is None else str(row.get(h)) for h in headers])
    return BOM + buf.getvalue().rstrip("\n")


def to_json(rows: list[dict]) -> str:
    return json.dumps(rows, ensure_ascii=False, indent=2)


def export_text(session: Session, export_type: str, fmt: str = "csv", *, user_id: str | None = None) -> str:
    rows = export_rows(session, export_type, user_id=user_id)
    if fmt == "json":
        return to_json(rows)
    if fmt != "csv":
        raise ValidationFailed(f"不正なフォーマットです: {fmt}")
    return to_csv(rows, EXPORT_TYPES[export_type][1])


def parse_import_rows(content: str, fmt: str = "csv") -> list[dict]:
    content = content.removeprefix(BOM)
    if fmt == "json":
        data = json.loads(content)
        if not isinstance(data, list):
            raise ValidationFailed("JSONは配列である必要があります")
        return [row for row in data if isinstance(row, dict)]
    return list(csv.DictReader(io.StringIO(content.strip())))


def import_rows(session: Session, import_type: str, rows: list[dict]) -> dict[str, int]:
    """Create services or assets from rows; rows missing required fields are skipped."""
    if import_type not in IMPORT_TYPES:
        raise ValidationFailed(f"不正なインポートタイプです: {import_type}")

    imported = skipped = 0
    for row in rows:
        name = str(row.get("name") or "").strip()
        if import_type == "services":
            if not name:
                skipped += 1
                continue
            session.add(CoreService(
                name=name,
                category=str(row.get("category") or "").strip() or None,
                description=str(row.get("description") or "").strip() or None,
                url=str(row.get("url") or "").strip() or None,
            ))
        else:
            asset_type = str(row.get("type") or "").strip()
            if not name or not asset_type:
                skipped += 1
                continue
            session.add(CoreAsset(
                name=name,
                type=asset_type,
                description=str(row.get("description") or "").strip() or None,
            ))
        imported += 1
    session.commit()
    logger.info("Imported %d %s (%d skipped)", imported, import_type, skipped)
    return {"imported": imported, "skipped": skipped}
