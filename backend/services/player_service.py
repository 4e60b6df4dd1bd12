"""Player listings, search, leaderboards, realm membership and change history."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from analytics.numbers import parse_int, ratio_or_na, round_half_up, safe_div
from core.config import Settings
from core.errors import NotFoundError, ValidationError
from models.player import Player
from models.snapshot import BIG_NUMBER_FIELDS, INTEGER_FIELDS, PlayerSnapshot
from repositories.change_repo import AllianceChangeRepository, NameChangeRepository
from repositories.player_repo import PlayerRepository
from repositories.snapshot_repo import SnapshotRepository

from .common import (
    available_alliances,
    filter_by_alliance,
    player_row_dict,
    require_latest_snapshot,
    snapshot_info,
)

MIN_SEARCH_LENGTH = 2
SEARCH_TYPES = ("all", "players", "alliances")

CALCULATED_SORT_FIELDS = ("kill_death_ratio", "win_rate", "merit_efficiency")
DEFAULT_SORT = "current_power"

EXPORT_FORMATS = ("basic", "detailed")
EXPORT_HISTORY_POINTS = 5

JOINED_MODES = ("creation", "snapshot")


def _player_dict(player: Player) -> Dict[str, Any]:
    return {
        "lord_id": player.lord_id,
        "current_name": player.current_name,
        "created_at": player.created_at.isoformat() if player.created_at else None,
        "last_seen_at": player.last_seen_at.isoformat() if player.last_seen_at else None,
        "has_left_realm": player.has_left_realm,
        "left_realm_at": player.left_realm_at.isoformat() if player.left_realm_at else None,
    }


def _derived(row: PlayerSnapshot) -> Dict[str, Any]:
    kills = parse_int(row.units_killed)
    deaths = parse_int(row.units_dead)
    victories = row.victories or 0
    battles = victories + (row.defeats or 0)
    return {
        "kill_death_ratio": ratio_or_na(kills, deaths, digits=2),
        "win_rate": round_half_up(safe_div(victories, battles) * 100, 1),
        "merit_efficiency": round_half_up(
            safe_div(parse_int(row.merits), parse_int(row.current_power)) * 100, 2
        ),
    }


def _sort_key(sort_by: str):
    if sort_by in BIG_NUMBER_FIELDS:
        return lambda r: parse_int(getattr(r, sort_by))
    if sort_by in INTEGER_FIELDS:
        return lambda r: getattr(r, sort_by) or 0
    if sort_by == "name":
        return lambda r: (r.name or "").lower()
    if sort_by == "kill_death_ratio":
        return lambda r: safe_div(parse_int(r.units_killed), parse_int(r.units_dead))
    if sort_by == "win_rate":
        return lambda r: safe_div(r.victories or 0, (r.victories or 0) + (r.defeats or 0))
    if sort_by == "merit_efficiency":
        return lambda r: safe_div(parse_int(r.merits), parse_int(r.current_power))
    return lambda r: parse_int(r.current_power)


def sortable_fields() -> List[str]:
    return sorted({*BIG_NUMBER_FIELDS, *INTEGER_FIELDS, "name", *CALCULATED_SORT_FIELDS})


async def _latest_rows(
    session: AsyncSession,
    settings: Settings,
    alliance: str = "all",
    include_left_realm: bool = False,
):
    snapshots = SnapshotRepository(session)
    latest = await snapshots.get_latest()
    if latest is None:
        return None, []
    rows = filter_by_alliance(
        await snapshots.rows_for_snapshot(latest.id), alliance, settings.managed_alliances
    )
    if not include_left_realm:
        left = set(await PlayerRepository(session).left_realm_ids())
        rows = [r for r in rows if r.player_id not in left]
    return latest, rows


async def list_snapshots(
    session: AsyncSession, limit: int = 50, offset: int = 0
) -> Tuple[List[Dict[str, Any]], int]:
    rows, total = await SnapshotRepository(session).list_with_player_counts(limit, offset)
    return [{**snapshot_info(snap), "player_count": count} for snap, count in rows], total


async def list_players(
    session: AsyncSession,
    settings: Settings,
    alliance: str = "all",
    include_left_realm: bool = False,
) -> Dict[str, Any]:
    """Every player row in the latest snapshot, optionally filtered by alliance."""
    latest, rows = await _latest_rows(session, settings, alliance, include_left_realm)
    return {
        "players": [player_row_dict(r) for r in rows],
        "snapshot": snapshot_info(latest),
    }


async def left_realm(
    session: AsyncSession, limit: int = 50, offset: int = 0
) -> Tuple[List[Dict[str, Any]], int]:
    players, total = await PlayerRepository(session).list_left_realm(limit, offset)
    snapshots = SnapshotRepository(session)
    items = []
    for player in players:
        last = await snapshots.player_history(player.lord_id, limit=1)
        row, seen_at = last[0] if last else (None, None)
        items.append(
            {
                **_player_dict(player),
                "last_alliance_tag": row.alliance_tag if row is not None else None,
                "last_power": row.current_power if row is not None else "0",
                "last_snapshot_at": seen_at.isoformat() if seen_at else None,
            }
        )
    return items, total


async def joined_realm(
    session: AsyncSession,
    mode: str = "creation",
    from_snapshot_id: Optional[int] = None,
    to_snapshot_id: Optional[int] = None,
    days_ago: int = 30,
    limit: int = 50,
    offset: int = 0,
) -> Dict[str, Any]:
    """New players, either between two snapshots or first seen within ``days_ago`` days."""
    if mode not in JOINED_MODES:
        raise ValidationError(f"mode must be one of {', '.join(JOINED_MODES)}")
    snapshots = SnapshotRepository(session)

    if mode == "snapshot":
        to_snap = (
            await snapshots.get(to_snapshot_id)
            if to_snapshot_id is not None
            else await snapshots.get_latest()
        )
        if to_snap is None:
            raise NotFoundError("Snapshot", str(to_snapshot_id) if to_snapshot_id else None)
        from_snap = (
            await snapshots.get(from_snapshot_id)
            if from_snapshot_id is not None
            else await snapshots.get_previous(to_snap)
        )
        if from_snapshot_id is not None and from_snap is None:
            raise NotFoundError("Snapshot", str(from_snapshot_id))

        before = await snapshots.player_ids_in_snapshot(from_snap.id) if from_snap else set()
        rows = [r for r in await snapshots.rows_for_snapshot(to_snap.id) if r.player_id not in before]
        rows.sort(key=lambda r: parse_int(r.current_power), reverse=True)
        items = [player_row_dict(r) for r in rows]
        window = {"from": snapshot_info(from_snap), "to": snapshot_info(to_snap)}
    else:
        since = datetime.now(timezone.utc) - timedelta(days=days_ago)
        items = []
        for player in await PlayerRepository(session).created_since(since):
            last = await snapshots.player_history(player.lord_id, limit=1)
            latest_row = player_row_dict(last[0][0]) if last else None
            items.append({**_player_dict(player), "latest": latest_row})
        window = {"since": since.isoformat(), "days_ago": days_ago}

    return {
        "players": items[offset : offset + limit],
        "total": len(items),
        "mode": mode,
        "window": window,
    }


async def search(
    session: AsyncSession,
    settings: Settings,
    query: str,
    limit: int = 20,
    include_left_realm: bool = False,
    search_type: str = "all",
) -> Dict[str, Any]:
    """Substring search over the latest snapshot's players and alliance tags."""
    q = (query or "").strip().lower()
    if len(q) < MIN_SEARCH_LENGTH:
        raise ValidationError(
            f"Search query must be at least {MIN_SEARCH_LENGTH} characters long"
        )
    if search_type not in SEARCH_TYPES:
        search_type = "all"

    _, rows = await _latest_rows(session, settings, include_left_realm=include_left_realm)

    players: List[Dict[str, Any]] = []
    if search_type in ("players", "all"):
        players = [
            player_row_dict(r)
            for r in rows
            if q in (r.name or "").lower()
            or q in r.player_id.lower()
            or q in (r.alliance_tag or "").lower()
        ][:limit]

    alliances: List[Dict[str, Any]] = []
    if search_type in ("alliances", "all"):
        groups: Dict[str, Dict[str, Any]] = {}
        for r in rows:
            if r.alliance_tag and q in r.alliance_tag.lower():
                g = groups.setdefault(
                    r.alliance_tag.lower(), {"tag": r.alliance_tag, "member_count": 0, "total_power": 0}
                )
                g["member_count"] += 1
                g["total_power"] += parse_int(r.current_power)
        for g in groups.values():
            g["average_power"] = str(g["total_power"] // g["member_count"])
            g["total_power"] = str(g["total_power"])
        alliances = sorted(groups.values(), key=lambda g: int(g["total_power"]), reverse=True)
        alliances = alliances[: max(1, limit // 2)]

    return {
        "players": players,
        "alliances": alliances,
        "total_results": len(players) + len(alliances),
        "query": query,
    }


async def leaderboard(
    session: AsyncSession,
    settings: Settings,
    sort_by: str = DEFAULT_SORT,
    order: str = "desc",
    alliance: str = "all",
    limit: int = 50,
    offset: int = 0,
) -> Dict[str, Any]:
    """Latest-snapshot players sorted by any stored or derived field, then paginated."""
    latest, rows = await _latest_rows(session, settings, alliance, include_left_realm=True)
    if sort_by not in sortable_fields():
        sort_by = DEFAULT_SORT
    ordered = sorted(rows, key=_sort_key(sort_by), reverse=(order != "asc"))

    items = []
    for index, row in enumerate(ordered[offset : offset + limit], start=offset + 1):
        items.append({**player_row_dict(row), **_derived(row), "rank": index})

    all_rows = await SnapshotRepository(session).rows_for_snapshot(latest.id) if latest else []
    return {
        "players": items,
        "total": len(ordered),
        "sort_by": sort_by,
        "order": "asc" if order == "asc" else "desc",
        "alliance": alliance,
        "alliances": available_alliances(all_rows),
        "snapshot": snapshot_info(latest),
    }


async def bulk_export(
    session: AsyncSession,
    player_ids: Sequence[str],
    fmt: str = "detailed",
    include_history: bool = False,
) -> Dict[str, Any]:
    if not player_ids:
        raise ValidationError("Player IDs are required")
    if fmt not in EXPORT_FORMATS:
        raise ValidationError(f"format must be one of {', '.join(EXPORT_FORMATS)}")

    snapshots = SnapshotRepository(session)
    latest = await require_latest_snapshot(snapshots)
    wanted = set(player_ids)
    rows = [r for r in await snapshots.rows_for_snapshot(latest.id) if r.player_id in wanted]

    exported = []
    for row in rows:
        power = parse_int(row.current_power)
        merits = parse_int(row.merits)
        item: Dict[str, Any] = {
            "player_id": row.player_id,
            "name": row.name,
            "alliance": row.alliance_tag or "None",
            "power": power,
            "merits": merits,
            "merit_efficiency": round_half_up(safe_div(merits, power) * 100, 2),
            "level": row.city_level,
            "division": row.division,
            "faction": row.faction,
        }
        if fmt == "detailed":
            kills = parse_int(row.units_killed)
            deaths = parse_int(row.units_dead)
            victories = row.victories or 0
            defeats = row.defeats or 0
            item.update(
                {
                    "units_killed": kills,
                    "units_dead": deaths,
                    "kill_death_ratio": round_half_up(safe_div(kills, deaths), 2),
                    "victories": victories,
                    "defeats": defeats,
                    "win_rate": round_half_up(safe_div(victories, victories + defeats) * 100, 1),
                    "helps_given": row.helps_given or 0,
                    "city_sieges": row.city_sieges or 0,
                    "scouted": row.scouted or 0,
                    "building_power": parse_int(row.building_power),
                    "hero_power": parse_int(row.hero_power),
                    "legion_power": parse_int(row.legion_power),
                    "tech_power": parse_int(row.tech_power),
                    **{name: parse_int(getattr(row, name)) for name in ("gold", "wood", "ore", "mana", "gems")},
                }
            )
        if include_history:
            history = await snapshots.player_history(row.player_id, limit=EXPORT_HISTORY_POINTS + 1)
            item["history"] = [
                {
                    "date": ts.isoformat(),
                    "power": parse_int(h.current_power),
                    "merits": parse_int(h.merits),
                    "units_killed": parse_int(h.units_killed),
                }
                for h, ts in history[1:]
            ]
        exported.append(item)

    top = max(exported, key=lambda p: p["merit_efficiency"], default=None)
    return {
        "players": exported,
        "summary": {
            "total_players": len(exported),
            "total_power": sum(p["power"] for p in exported),
            "total_merits": sum(p["merits"] for p in exported),
            "average_efficiency": safe_div(sum(p["merit_efficiency"] for p in exported), len(exported)),
            "top_efficiency_player": top,
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "snapshot": snapshot_info(latest),
        },
        "format": fmt,
        "include_history": include_history,
    }


def _since(days: Optional[int]) -> Optional[datetime]:
    if days is None or days <= 0:
        return None
    return datetime.now(timezone.utc) - timedelta(days=days)


async def name_changes(
    session: AsyncSession,
    search_text: Optional[str] = None,
    days: Optional[int] = 30,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[Dict[str, Any]], int]:
    """Name changes newest first; ``days`` <= 0 means all time."""
    changes, total = await NameChangeRepository(session).search(
        query=(search_text or "").strip() or None, since=_since(days), limit=limit, offset=offset
    )
    return [
        {
            "id": c.id,
            "player_id": c.player_id,
            "current_name": current_name,
            "old_name": c.old_name,
            "new_name": c.new_name,
            "detected_at": c.detected_at.isoformat(),
        }
        for c, current_name in changes
    ], total


async def alliance_changes(
    session: AsyncSession,
    alliance: Optional[str] = None,
    player_id: Optional[str] = None,
    days: Optional[int] = 30,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[Dict[str, Any]], int]:
    changes, total = await AllianceChangeRepository(session).search(
        alliance=None if alliance in (None, "", "all") else alliance,
        player_id=player_id,
        since=_since(days),
        limit=limit,
        offset=offset,
    )
    return [
        {
            "id": c.id,
            "player_id": c.player_id,
            "current_name": current_name,
            "old_alliance": c.old_alliance,
            "old_alliance_id": c.old_alliance_id,
            "new_alliance": c.new_alliance,
            "new_alliance_id": c.new_alliance_id,
            "detected_at": c.detected_at.isoformat(),
        }
        for c, current_name in changes
    ], total
