"""Snapshot ingestion against an in-memory database."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from ingestion.excel_reader import read_snapshot_workbook, row_to_player
from ingestion import ingestion_service
from ingestion.ingestion_service import ingest_snapshot
from ingestion.schema import ParsedSnapshotFile, SnapshotFileInfo
from models import AllianceChange, NameChange, Player, PlayerSnapshot, Snapshot

T0 = datetime(2025, 8, 1, 12, 0, tzinfo=timezone.utc)


def _parsed(rows, when=T0, kingdom="671"):
    filename = f"{kingdom}_{when:%Y%m%d}_{when:%H%M}utc.xlsx"
    return ParsedSnapshotFile(
        file_info=SnapshotFileInfo(kingdom=kingdom, timestamp=when, filename=filename),
        rows=[row_to_player(r) for r in rows],
    )


async def _count(session, model, *where) -> int:
    stmt = select(func.count()).select_from(model)
    for clause in where:
        stmt = stmt.where(clause)
    return (await session.execute(stmt)).scalar_one()


@pytest.mark.asyncio
async def test_row_count_matches_valid_rows(session, settings, make_row, make_workbook):
    rows = [make_row(str(i)) for i in range(1, 6)] + [[None, "no id"]]
    parsed = read_snapshot_workbook("671_20250810_2040utc.xlsx", make_workbook(rows))

    summary = await ingest_snapshot(session, parsed, settings=settings)

    assert summary.rows_processed == 5
    assert summary.new_players == 5
    assert summary.errors == []
    assert summary.kingdom == "671"
    assert summary.timestamp == datetime(2025, 8, 10, 20, 40, tzinfo=timezone.utc)
    assert await _count(session, PlayerSnapshot, PlayerSnapshot.snapshot_id == summary.snapshot_id) == 5
    assert await _count(session, Player) == 5
    assert await _count(session, Snapshot) == 1


@pytest.mark.asyncio
async def test_unchanged_reingest_records_no_changes(session, settings, make_row):
    rows = [make_row("1"), make_row("2", alliance_tag=None), make_row("3", alliance_tag="")]
    await ingest_snapshot(session, _parsed(rows), settings=settings)
    second = await ingest_snapshot(session, _parsed(rows, T0 + timedelta(days=1)), settings=settings)

    assert second.name_changes == 0
    assert second.alliance_changes == 0
    assert second.new_players == 0
    assert await _count(session, NameChange) == 0
    assert await _count(session, AllianceChange) == 0
    assert await _count(session, PlayerSnapshot) == 6


@pytest.mark.asyncio
async def test_rename_creates_exactly_one_name_change(session, settings, make_row):
    await ingest_snapshot(session, _parsed([make_row("1", name="Alice")]), settings=settings)
    summary = await ingest_snapshot(
        session, _parsed([make_row("1", name="Alicia")], T0 + timedelta(days=1)), settings=settings
    )
    await ingest_snapshot(
        session, _parsed([make_row("1", name="Alicia")], T0 + timedelta(days=2)), settings=settings
    )

    assert summary.name_changes == 1
    changes = (await session.execute(select(NameChange))).scalars().all()
    assert len(changes) == 1
    assert (changes[0].player_id, changes[0].old_name, changes[0].new_name) == ("1", "Alice", "Alicia")
    assert changes[0].detected_at == T0 + timedelta(days=1)

    player = await session.get(Player, "1")
    assert player.current_name == "Alicia"


@pytest.mark.asyncio
async def test_alliance_move_recorded_with_ids(session, settings, make_row):
    await ingest_snapshot(session, _parsed([make_row("1", alliance_tag="PLAC")]), settings=settings)
    summary = await ingest_snapshot(
        session,
        _parsed([make_row("1", alliance_tag="FLAs")], T0 + timedelta(days=1)),
        settings=settings,
    )
    assert summary.alliance_changes == 1
    change = (await session.execute(select(AllianceChange))).scalar_one()
    assert (change.old_alliance, change.new_alliance) == ("PLAC", "FLAs")
    assert (change.old_alliance_id, change.new_alliance_id) == ("id-PLAC", "id-FLAs")


@pytest.mark.asyncio
async def test_leaving_an_alliance_is_a_move_to_none(session, settings, make_row):
    await ingest_snapshot(session, _parsed([make_row("1", alliance_tag="PLAC")]), settings=settings)
    await ingest_snapshot(
        session, _parsed([make_row("1", alliance_tag=None)], T0 + timedelta(days=1)), settings=settings
    )
    change = (await session.execute(select(AllianceChange))).scalar_one()
    assert change.old_alliance == "PLAC"
    assert change.new_alliance is None


@pytest.mark.asyncio
async def test_realm_departure_requires_power_floor(session, settings, make_row):
    await ingest_snapshot(
        session,
        _parsed([make_row("big", power=15_000_000), make_row("small", power=5_000_000), make_row("stay")]),
        settings=settings,
    )
    summary = await ingest_snapshot(
        session, _parsed([make_row("stay")], T0 + timedelta(days=10)), settings=settings
    )

    assert summary.players_marked_left == 1
    big = await session.get(Player, "big")
    small = await session.get(Player, "small")
    stay = await session.get(Player, "stay")
    assert big.has_left_realm is True
    assert big.left_realm_at == T0 + timedelta(days=10)
    assert small.has_left_realm is False
    assert stay.has_left_realm is False


@pytest.mark.asyncio
async def test_recent_absence_is_not_departure(session, settings, make_row):
    await ingest_snapshot(session, _parsed([make_row("big", power=50_000_000), make_row("x")]), settings=settings)
    summary = await ingest_snapshot(
        session, _parsed([make_row("x")], T0 + timedelta(days=3)), settings=settings
    )
    assert summary.players_marked_left == 0


@pytest.mark.asyncio
async def test_reappearance_clears_left_flag(session, settings, make_row):
    await ingest_snapshot(session, _parsed([make_row("big", power=15_000_000), make_row("x")]), settings=settings)
    await ingest_snapshot(session, _parsed([make_row("x")], T0 + timedelta(days=10)), settings=settings)
    await ingest_snapshot(
        session, _parsed([make_row("big", power=15_000_000)], T0 + timedelta(days=11)), settings=settings
    )
    big = await session.get(Player, "big")
    assert big.has_left_realm is False
    assert big.left_realm_at is None


@pytest.mark.asyncio
async def test_duplicate_lord_id_is_a_row_error(session, settings, make_row):
    summary = await ingest_snapshot(
        session, _parsed([make_row("1"), make_row("2"), make_row("1", name="Copy")]), settings=settings
    )
    assert summary.rows_processed == 2
    assert [e.player_id for e in summary.errors] == ["1"]
    assert await _count(session, PlayerSnapshot) == 2


@pytest.mark.asyncio
async def test_out_of_order_snapshot_does_not_rewind_name(session, settings, make_row):
    await ingest_snapshot(
        session, _parsed([make_row("1", name="New")], T0 + timedelta(days=5)), settings=settings
    )
    await ingest_snapshot(session, _parsed([make_row("1", name="Old")]), settings=settings)

    player = await session.get(Player, "1")
    assert player.current_name == "New"
    assert player.last_seen_at == T0 + timedelta(days=5)
    # Nothing precedes the older snapshot, so it has no prior row to compare with.
    assert await _count(session, NameChange) == 0


@pytest.mark.asyncio
async def test_big_counters_survive_round_trip(session, settings, make_row):
    huge = 123456789012345678901234
    await ingest_snapshot(session, _parsed([make_row("1", merits=huge)]), settings=settings)
    stored = (await session.execute(select(PlayerSnapshot))).scalar_one()
    assert stored.merits == str(huge)


@pytest.mark.asyncio
async def test_database_rejected_row_is_collected_and_later_rows_land(session, settings, make_row):
    await ingest_snapshot(session, _parsed([make_row("1", name="Alice")]), settings=settings)

    parsed = _parsed(
        [make_row("1", name="Alicia"), make_row("2"), make_row("3"), make_row("4")],
        T0 + timedelta(days=1),
    )
    # Bypasses the reader's range check, so SQLite itself refuses the value.
    parsed.rows[1] = parsed.rows[1].model_copy(update={"victories": 10**20})
    summary = await ingest_snapshot(session, parsed, settings=settings)

    assert summary.rows_processed == 3
    assert summary.new_players == 2
    assert summary.name_changes == 1
    assert [e.player_id for e in summary.errors] == ["2"]
    assert await _count(session, PlayerSnapshot, PlayerSnapshot.snapshot_id == summary.snapshot_id) == 3
    assert await _count(session, Player, Player.lord_id == "2") == 0
    assert await _count(session, NameChange) == 1


@pytest.mark.asyncio
async def test_failed_row_leaves_no_change_records(session, settings, make_row, monkeypatch):
    await ingest_snapshot(session, _parsed([make_row("1", alliance_tag="PLAC")]), settings=settings)

    original = ingestion_service._player_snapshot

    def refuse_player_one(row, snapshot_id):
        if row.lord_id == "1":
            raise ValueError("cannot store player 1")
        return original(row, snapshot_id)

    monkeypatch.setattr(ingestion_service, "_player_snapshot", refuse_player_one)
    summary = await ingest_snapshot(
        session,
        _parsed([make_row("1", alliance_tag="FLAs"), make_row("2")], T0 + timedelta(days=1)),
        settings=settings,
    )

    assert summary.rows_processed == 1
    assert summary.alliance_changes == 0
    assert summary.errors[0].player_id == "1"
    assert "cannot store player 1" in summary.errors[0].error
    assert await _count(session, AllianceChange) == 0
