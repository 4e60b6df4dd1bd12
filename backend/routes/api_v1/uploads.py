"""Snapshot upload (multipart) and upload history. Admin only."""

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from core.dependencies import Pagination, get_db_session, get_pagination
from core.errors import ValidationError
from core.responses import pagination_metadata, success_envelope
from core.security import AuthenticatedUser, require_admin
from services.upload_service import list_uploads, process_upload

router = APIRouter(tags=["uploads"])


@router.post(
    "/upload",
    summary="Upload a snapshot workbook",
    description="Ingests one {kingdom}_{YYYYMMDD}_{HHMM}utc.xlsx export and returns the ingestion summary.",
)
async def post_upload(
    file: UploadFile = File(...),
    user: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> dict:
    if not file.filename:
        raise ValidationError("No file uploaded")
    content = await file.read()
    if not content:
        raise ValidationError("Uploaded file is empty")
    result = await process_upload(
        session, file.filename, content, user_id=user.user_id, settings=settings
    )
    return success_envelope(result)


@router.get("/uploads", summary="Upload history")
async def get_uploads(
    pagination: Pagination = Depends(get_pagination),
    _: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    items, total = await list_uploads(session, limit=pagination.limit, offset=pagination.offset)
    return success_envelope(
        items, pagination=pagination_metadata(pagination.page, pagination.limit, total)
    )
