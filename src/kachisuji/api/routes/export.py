"""
API routes for CSV / JSON export and import
"""
from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from kachisuji.api.deps import get_user_id
from kachisuji.db.database import get_db
from kachisuji.errors import ValidationFailed
from kachisuji.services import export as export_service

router = APIRouter(prefix="/api", tags=["export"])

_MEDIA_TYPES = {
    "csv": "text/csv; charset=utf-8",
    "json": "application/json; charset=utf-8",
}


@router.get("/export")
async def export(
    type: str,
    format: str = "csv",
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    """Download services, assets or history as CSV or JSON"""
    if format not in _MEDIA_TYPES:
        raise ValidationFailed(f"不正なフォーマットです: {format}")
    filename = export_service.export_filename(type, format)
    body = export_service.export_text(db, type, format, user_id=user_id)
    return Response(
        content=body,
        media_type=_MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import")
async def import_data(
    type: str = Form(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    """Import services or assets from an uploaded CSV or JSON file"""
    fmt = "json" if (file.filename or "").lower().endswith(".json") else "csv"
    try:
        content = (await file.read()).decode("utf-8")
    except UnicodeDecodeError:
        raise ValidationFailed("UTF-8のファイルを指定してください")
    try:
        rows = export_service.parse_import_rows(content, fmt)
    except ValueError as e:
        raise ValidationFailed(f"ファイルを解析できませんでした: {e}")
    return {"success": True, **export_service.import_rows(db, type, rows)}
