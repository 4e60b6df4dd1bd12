"""
Ingestion orchestration: persist a parsed snapshot file in batches, detect
changes, then update realm membership.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Dict, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from core.errors import IngestionError
from ingestion.change_detection import ChangeDetector, DetectedChanges
from ingestion.realm_status import update_realm_status
from ingestion.schema import IngestionSummary, ParsedSnapshotFile, PlayerRow, RowError
from models.player import Player
from models.snapshot import PlayerSnapshot, Snapshot
from repositories.player_repo import PlayerRepository
from repositories.snapshot_repo import SnapshotRepository

logger = logging.getLogger(__name__)


def _apply_sighting(player: Player, row: PlayerRow, timestamp: datetime) -> None:
    """Refresh name and presence unless this snapshot is older than the last sighting."""
    if player.last_seen_at is not None and timestamp < player.last_seen_at:
        return
    player.current_name = row.name
    player.last_seen_at = timestamp
    player.has_left_realm = False
    player.left_realm_at = None


def _player_snapshot(row: PlayerRow, snapshot_id: int) -> PlayerSnapshot:
    return PlayerSnapshot(
        player_id=row.lord_id,
        snapshot_id=snapshot_id,
        **row.model_dump(exclude={"lord_id"}),
    )


async def _commit(session: AsyncSession, what: str) -> None:
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error("Commit failed for %s: %s", what, e)
        raise IngestionError(f"Failed to persist {what}: {e}") from e


async def _ingest_row(
    session: AsyncSession,
    detector: ChangeDetector,
    player: Optional[Player],
    row: PlayerRow,
    timestamp: datetime,
    snapshot_id: int,
) -> DetectedChanges:
    """Upsert the player, record changes and add the snapshot row, all flushed."""
    if player is None:
        session.add(Player(lord_id=row.lord_id, current_name=row.name, last_seen_at=timestamp))
    else:
        _apply_sighting(player, row, timestamp)
    # The player row must exist before anything referencing it.
    await session.flush()
    changes = await detector.process(row, timestamp, snapshot_id)
    session.add(_player_snapshot(row, snapshot_id))
    await session.flush()
    return changes


async def ingest_snapshot(
    session: AsyncSession,
    parsed: ParsedSnapshotFile,
    upload_id: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> IngestionSummary:
    """
    Persist one parsed file: a Snapshot, then players in batches of
    ``settings.batch_size`` (one transaction each), then realm status.

    Each row runs in its own savepoint. Rows whose lord id already appeared in
    the file, or whose processing raises (database rejections included), are
    reported in ``errors`` and leave nothing behind. A failing batch commit
    raises IngestionError.
    """
    settings = settings or get_settings()
    info = parsed.file_info
    timestamp = info.timestamp

    snapshot = Snapshot(
        timestamp=timestamp,
        filename=info.filename,
        kingdom=info.kingdom,
        upload_id=upload_id,
    )
    session.add(snapshot)
    await session.flush()
    snapshot_id = snapshot.id
    await _commit(session, "snapshot")

    players = PlayerRepository(session)
    detector = ChangeDetector(session)
    errors: List[RowError] = list(parsed.errors)
    seen: Set[str] = set()
    processed = 0
    new_players = 0
    name_changes = 0
    alliance_changes = 0

    rows = parsed.rows
    batch_size = settings.batch_size
    total_batches = math.ceil(len(rows) / batch_size) if rows else 0
    logger.info(
        "Ingesting %s players from %s in %s batches of %s",
        len(rows),
        info.filename,
        total_batches,
        batch_size,
    )

    for batch_no, start in enumerate(range(0, len(rows), batch_size), start=1):
        batch: List[PlayerRow] = []
        for row in rows[start : start + batch_size]:
            if row.lord_id in seen:
                logger.warning("Duplicate lord id %s in %s", row.lord_id, info.filename)
                errors.append(RowError(player_id=row.lord_id, error="Duplicate lord id in file"))
                continue
            seen.add(row.lord_id)
            batch.append(row)

        try:
            existing: Dict[str, Player] = await players.get_many(r.lord_id for r in batch)
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("Batch %s/%s failed: %s", batch_no, total_batches, e)
            raise IngestionError(f"Batch {batch_no} failed: {e}") from e

        for row in batch:
            player = existing.get(row.lord_id)
            try:
                async with session.begin_nested():
                    changes = await _ingest_row(
                        session, detector, player, row, timestamp, snapshot_id
                    )
            except Exception as e:
                logger.warning("Error processing player %s: %s", row.lord_id, e)
                errors.append(RowError(player_id=row.lord_id, error=str(e)))
                continue
            processed += 1
            new_players += player is None
            name_changes += changes.name_changed
            alliance_changes += changes.alliance_changed

        await _commit(session, f"batch {batch_no}")
        logger.debug("Committed batch %s/%s", batch_no, total_batches)

    marked = await update_realm_status(
        session,
        seen,
        timestamp,
        power_floor=settings.realm_power_floor,
        cutoff_days=settings.realm_cutoff_days,
    )
    await _commit(session, "realm status")

    summary = IngestionSummary(
        snapshot_id=snapshot_id,
        timestamp=timestamp,
        kingdom=info.kingdom,
        filename=info.filename,
        rows_processed=processed,
        new_players=new_players,
        name_changes=name_changes,
        alliance_changes=alliance_changes,
        players_marked_left=marked,
        errors=errors,
    )
    logger.info(
        "Ingested snapshot %s: %s rows, %s new players, %s name changes, "
        "%s alliance changes, %s marked left, %s errors",
        snapshot_id,
        processed,
        new_players,
        name_changes,
        alliance_changes,
        marked,
        len(errors),
    )
    return summary


async def discard_snapshot(session: AsyncSession, snapshot: Snapshot) -> int:
    """Remove a partially ingested snapshot and what it did to players.

    Players first seen by it are deleted; players it last saw fall back to the
    name and sighting time of their latest remaining row. The left-realm flag
    is not restored. Returns the number of player rows removed. Not committed.
    """
    snapshots = SnapshotRepository(session)
    players = PlayerRepository(session)
    snapshot_id, timestamp = snapshot.id, snapshot.timestamp

    removed = await snapshots.discard(snapshot_id)
    dropped = await players.delete_without_snapshots()
    for player in await players.find_last_seen_at(timestamp):
        history = await snapshots.player_history(player.lord_id, limit=1)
        if history:
            row, seen_at = history[0]
            player.current_name = row.name
            player.last_seen_at = seen_at
    await session.flush()

    logger.info(
        "Discarded snapshot %s: %s player rows, %s new players removed",
        snapshot_id,
        removed,
        dropped,
    )
    return removed
