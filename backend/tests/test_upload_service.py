"""Upload lifecycle: validation before persistence, FAILED/COMPLETED bookkeeping."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from core.errors import IngestionError, ValidationError
from models import NameChange, Player, PlayerSnapshot, Snapshot, Upload
from models.upload import UPLOAD_COMPLETED, UPLOAD_FAILED
from repositories.player_repo import PlayerRepository
from repositories.snapshot_repo import SnapshotRepository
from services.upload_service import list_uploads, process_upload


@pytest.mark.asyncio
async def test_bad_filename_persists_nothing(session, settings, make_row, make_workbook):
    with pytest.raises(ValidationError):
        await process_upload(session, "players.xlsx", make_workbook([make_row("1")]), settings=settings)
    assert (await session.execute(select(func.count()).select_from(Upload))).scalar_one() == 0
    assert (await session.execute(select(func.count()).select_from(Snapshot))).scalar_one() == 0


@pytest.mark.asyncio
async def test_missing_worksheet_marks_upload_failed(session, settings, make_row, make_workbook):
    content = make_workbook([make_row("1")], sheet_name="Summary")
    with pytest.raises(ValidationError) as exc:
        await process_upload(session, "900_20250810_2040utc.xlsx", content, settings=settings)
    assert "Cannot find data worksheet" in exc.value.message

    upload = (await session.execute(select(Upload))).scalar_one()
    assert upload.status == UPLOAD_FAILED
    assert "Cannot find data worksheet" in upload.error
    assert (await session.execute(select(func.count()).select_from(Snapshot))).scalar_one() == 0


@pytest.mark.asyncio
async def test_unreadable_file_marks_upload_failed(session, settings):
    with pytest.raises(ValidationError):
        await process_upload(session, "671_20250810_2040utc.xlsx", b"garbage", settings=settings)
    upload = (await session.execute(select(Upload))).scalar_one()
    assert upload.status == UPLOAD_FAILED
    assert upload.error == "Could not read Excel file"


@pytest.mark.asyncio
async def test_successful_upload(session, settings, make_row, make_workbook):
    content = make_workbook([make_row("1"), make_row("2"), make_row("3")])
    result = await process_upload(session, "671_20250810_2040utc.xlsx", content, settings=settings)

    assert result["upload"]["status"] == UPLOAD_COMPLETED
    assert result["upload"]["rows_processed"] == 3
    assert result["snapshot"]["rows_processed"] == 3
    assert result["snapshot"]["kingdom"] == "671"
    assert result["snapshot"]["timestamp"].startswith("2025-08-10T20:40:00")
    assert result["message"] == "Successfully processed 3 players"

    snapshot = (await session.execute(select(Snapshot))).scalar_one()
    assert snapshot.upload_id == result["upload"]["id"]

    items, total = await list_uploads(session)
    assert total == 1
    assert items[0]["filename"] == "671_20250810_2040utc.xlsx"


async def _count(session, model, *where) -> int:
    stmt = select(func.count()).select_from(model)
    for clause in where:
        stmt = stmt.where(clause)
    return (await session.execute(stmt)).scalar_one()


@pytest.mark.asyncio
async def test_out_of_range_cell_fails_only_its_row(session, settings, make_row, make_workbook):
    content = make_workbook(
        [
            make_row("1"),
            make_row("2", victories="99999999999999999999"),
            make_row("3"),
            make_row("4"),
        ]
    )
    result = await process_upload(session, "671_20250810_2040utc.xlsx", content, settings=settings)

    assert result["upload"]["status"] == UPLOAD_COMPLETED
    assert result["snapshot"]["rows_processed"] == 3
    assert [e["player_id"] for e in result["snapshot"]["errors"]] == ["2"]
    assert await _count(session, PlayerSnapshot) == 3


@pytest.mark.asyncio
async def test_batch_failure_discards_the_partial_snapshot(
    session, settings, make_row, make_workbook, monkeypatch
):
    first = make_workbook([make_row(str(i)) for i in range(1, 6)])
    await process_upload(session, "671_20250801_1200utc.xlsx", first, settings=settings)

    original = PlayerRepository.get_many
    calls = []

    async def locked_on_second_batch(self, lord_ids):
        calls.append(1)
        if len(calls) == 2:
            raise OperationalError("SELECT players", {}, Exception("database is locked"))
        return await original(self, lord_ids)

    monkeypatch.setattr(PlayerRepository, "get_many", locked_on_second_batch)

    # batch_size is 2: new player 6 and the rename of 1 commit before batch 2 fails.
    second = make_workbook(
        [make_row("6"), make_row("1", name="Renamed"), make_row("2"), make_row("3"), make_row("4")]
    )
    with pytest.raises(IngestionError) as exc:
        await process_upload(session, "671_20250802_1200utc.xlsx", second, settings=settings)
    assert exc.value.message.startswith("Batch 2 failed")

    failed = (
        await session.execute(select(Upload).where(Upload.filename == "671_20250802_1200utc.xlsx"))
    ).scalar_one()
    assert failed.status == UPLOAD_FAILED
    assert failed.error == exc.value.message

    latest = await SnapshotRepository(session).get_latest()
    assert latest.filename == "671_20250801_1200utc.xlsx"
    assert await _count(session, Snapshot) == 1
    assert await _count(session, PlayerSnapshot) == 5
    assert await _count(session, NameChange) == 0
    assert await _count(session, Player, Player.lord_id == "6") == 0

    renamed = (
        await session.execute(
            select(Player)
            .where(Player.lord_id == "1")
            .execution_options(populate_existing=True)
        )
    ).scalar_one()
    assert renamed.current_name == "Lord 1"
    assert renamed.last_seen_at == latest.timestamp
