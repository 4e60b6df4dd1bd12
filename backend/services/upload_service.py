"""Upload lifecycle: validate filename, record the Upload, ingest, mark the outcome."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from ingestion.excel_reader import parse_snapshot_filename, read_snapshot_workbook
from ingestion.ingestion_service import discard_snapshot, ingest_snapshot
from models.upload import UPLOAD_COMPLETED, UPLOAD_FAILED, Upload
from repositories.snapshot_repo import SnapshotRepository
from repositories.upload_repo import UploadRepository

logger = logging.getLogger(__name__)


def upload_to_dict(upload: Upload) -> Dict[str, Any]:
    return {
        "id": upload.id,
        "filename": upload.filename,
        "user_id": upload.user_id,
        "status": upload.status,
        "rows_processed": upload.rows_processed,
        "error": upload.error,
        "created_at": upload.created_at.isoformat() if upload.created_at else None,
        "updated_at": upload.updated_at.isoformat() if upload.updated_at else None,
    }


async def _finish(
    session: AsyncSession,
    upload_id: int,
    status: str,
    rows_processed: int = 0,
    error: Optional[str] = None,
) -> Upload:
    upload = await UploadRepository(session).get(upload_id)
    upload.status = status
    upload.rows_processed = rows_processed
    upload.error = error
    await session.commit()
    return upload


async def _discard_partial_snapshots(session: AsyncSession, upload_id: int) -> None:
    try:
        for snapshot in await SnapshotRepository(session).for_upload(upload_id):
            await discard_snapshot(session, snapshot)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        logger.exception("Could not discard partial snapshot of upload %s", upload_id)


async def process_upload(
    session: AsyncSession,
    filename: str,
    content: bytes,
    user_id: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    """Ingest one uploaded workbook and keep its Upload row in step.

    A bad filename raises before anything is written. Any later failure removes
    the partially written snapshot, marks the Upload FAILED with the error text
    and re-raises.
    """
    settings = settings or get_settings()
    parse_snapshot_filename(filename)

    upload = await UploadRepository(session).create(filename, user_id)
    upload_id = upload.id
    await session.commit()
    logger.info("Upload %s started for %s", upload_id, filename)

    try:
        parsed = read_snapshot_workbook(filename, content)
        summary = await ingest_snapshot(session, parsed, upload_id=upload_id, settings=settings)
    except Exception as e:
        await session.rollback()
        message = getattr(e, "message", None) or str(e)
        await _discard_partial_snapshots(session, upload_id)
        await _finish(session, upload_id, UPLOAD_FAILED, error=message)
        logger.error("Upload %s failed: %s", upload_id, message)
        raise

    upload = await _finish(session, upload_id, UPLOAD_COMPLETED, rows_processed=summary.rows_processed)
    return {
        "upload": upload_to_dict(upload),
        "snapshot": summary.model_dump(mode="json"),
        "message": f"Successfully processed {summary.rows_processed} players",
    }


async def list_uploads(session: AsyncSession, limit: int = 50, offset: int = 0):
    uploads, total = await UploadRepository(session).list_recent(limit=limit, offset=offset)
    return [upload_to_dict(u) for u in uploads], total
