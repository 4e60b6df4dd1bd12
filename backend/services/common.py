"""Shared helpers for service-layer views: alliance filters and row serialization."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from core.errors import NotFoundError
from models.snapshot import BIG_NUMBER_FIELDS, INTEGER_FIELDS, PlayerSnapshot, Snapshot
from repositories.snapshot_repo import SnapshotRepository

ALLIANCE_ALL = "all"
ALLIANCE_MANAGED = "managed"
ALLIANCE_OTHERS = "others"

_TEXT_FIELDS = ("name", "alliance_id", "alliance_tag", "faction")


def matches_alliance(tag: Optional[str], alliance: str, managed: Sequence[str]) -> bool:
    """Alliance filter: all, managed tags, tagged-but-unmanaged ("others"), or a literal tag."""
    if not alliance or alliance == ALLIANCE_ALL:
        return True
    if alliance == ALLIANCE_MANAGED:
        return tag in managed
    if alliance == ALLIANCE_OTHERS:
        return bool(tag) and tag not in managed
    return tag == alliance


def filter_by_alliance(
    rows: Iterable[PlayerSnapshot], alliance: str, managed: Sequence[str]
) -> List[PlayerSnapshot]:
    return [r for r in rows if matches_alliance(r.alliance_tag, alliance, managed)]


def snapshot_info(snapshot: Optional[Snapshot]) -> Optional[Dict[str, Any]]:
    if snapshot is None:
        return None
    return {
        "id": snapshot.id,
        "timestamp": snapshot.timestamp.isoformat(),
        "kingdom": snapshot.kingdom,
        "filename": snapshot.filename,
    }


def player_row_dict(row: PlayerSnapshot) -> Dict[str, Any]:
    """All stored stats of one player row; big counters stay decimal strings."""
    data: Dict[str, Any] = {"lord_id": row.player_id, "snapshot_id": row.snapshot_id}
    for field in _TEXT_FIELDS:
        data[field] = getattr(row, field)
    for field in INTEGER_FIELDS:
        data[field] = getattr(row, field) or 0
    for field in BIG_NUMBER_FIELDS:
        data[field] = getattr(row, field) or "0"
    return data


def available_alliances(rows: Iterable[PlayerSnapshot]) -> List[str]:
    return sorted({r.alliance_tag for r in rows if r.alliance_tag})


async def require_latest_snapshot(snapshots: SnapshotRepository) -> Snapshot:
    latest = await snapshots.get_latest()
    if latest is None:
        raise NotFoundError("Snapshot")
    return latest
