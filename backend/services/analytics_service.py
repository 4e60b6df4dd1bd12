"""DB-backed analytics: load stored rows, hand them to the pure analytics functions.

Nothing is cached; every call recomputes from the database.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from analytics.alliance import alliance_health, alliance_summaries
from analytics.distribution import power_distribution
from analytics.inactivity import InactivityThresholds, detect_inactivity, severity_counts
from analytics.numbers import parse_int, round_half_up, safe_div
from analytics.player_stats import HistoryEntry, build_chart_data, compute_player_stats
from analytics.ranking import (
    MIN_EFFICIENCY_POWER,
    cohort_merit_metrics,
    merit_growth,
    rank_cohort,
    top_n,
)
from core.config import Settings
from core.errors import NotFoundError, ValidationError
from models.snapshot import Snapshot
from repositories.change_repo import AllianceChangeRepository, NameChangeRepository
from repositories.player_repo import PlayerRepository
from repositories.snapshot_repo import SnapshotRepository

from .common import (
    available_alliances,
    filter_by_alliance,
    matches_alliance,
    player_row_dict,
    require_latest_snapshot,
    snapshot_info,
)

logger = logging.getLogger(__name__)

TIMEFRAMES = {"current": None, "week": 7, "month": 30}
TREND_HISTORY_DAYS = 30
EFFICIENCY_HISTORY_POINTS = 5
DASHBOARD_COMBINED = "combined"


async def _snapshot_or_404(snapshots: SnapshotRepository, snapshot_id: Optional[int]) -> Snapshot:
    if snapshot_id is None:
        return await require_latest_snapshot(snapshots)
    snapshot = await snapshots.get(snapshot_id)
    if snapshot is None:
        raise NotFoundError("Snapshot", str(snapshot_id))
    return snapshot


async def _snapshot_pair(
    snapshots: SnapshotRepository,
    current_id: Optional[int],
    previous_id: Optional[int],
) -> Tuple[Snapshot, Optional[Snapshot]]:
    """Explicit ids win; otherwise latest and the snapshot just before it."""
    current = await _snapshot_or_404(snapshots, current_id)
    if previous_id is not None:
        previous = await _snapshot_or_404(snapshots, previous_id)
    else:
        previous = await snapshots.get_previous(current)
    return current, previous


# Players


async def player_analysis(session: AsyncSession, lord_id: str) -> Dict[str, Any]:
    """Player card: identity, latest row, derived stats, chart series and change history."""
    player = await PlayerRepository(session).get_by_lord_id(lord_id)
    if player is None:
        raise NotFoundError("Player", lord_id)

    rows = await SnapshotRepository(session).player_history(lord_id)
    history = [HistoryEntry(timestamp=ts, row=row) for row, ts in rows]
    names = await NameChangeRepository(session).for_player(lord_id)
    moves = await AllianceChangeRepository(session).for_player(lord_id)

    return {
        "player": {
            "lord_id": player.lord_id,
            "current_name": player.current_name,
            "created_at": player.created_at.isoformat() if player.created_at else None,
            "updated_at": player.updated_at.isoformat() if player.updated_at else None,
            "last_seen_at": player.last_seen_at.isoformat() if player.last_seen_at else None,
            "has_left_realm": player.has_left_realm,
            "left_realm_at": player.left_realm_at.isoformat() if player.left_realm_at else None,
            "name_history": [
                {"old_name": c.old_name, "new_name": c.new_name, "detected_at": c.detected_at.isoformat()}
                for c in names
            ],
            "alliance_history": [
                {
                    "old_alliance": c.old_alliance,
                    "new_alliance": c.new_alliance,
                    "detected_at": c.detected_at.isoformat(),
                }
                for c in moves
            ],
        },
        "latest_snapshot": player_row_dict(rows[0][0]) if rows else None,
        "stats": compute_player_stats(history),
        "chart_data": build_chart_data(history),
        "history": [
            {"timestamp": ts.isoformat(), **player_row_dict(row)} for row, ts in rows
        ],
        "snapshot_count": len(rows),
    }


async def compare_players(session: AsyncSession, lord_ids: Sequence[str]) -> List[Dict[str, Any]]:
    """Stats for each known lord id; unknown ids are skipped."""
    snapshots = SnapshotRepository(session)
    players = await PlayerRepository(session).get_many(lord_ids)
    out = []
    for lord_id in lord_ids:
        player = players.get(lord_id)
        if player is None:
            logger.debug("Comparison skipped unknown player %s", lord_id)
            continue
        rows = await snapshots.player_history(lord_id)
        history = [HistoryEntry(timestamp=ts, row=row) for row, ts in rows]
        out.append(
            {
                "lord_id": lord_id,
                "current_name": player.current_name,
                "stats": compute_player_stats(history),
            }
        )
    return out


# Merits


async def merit_analytics(
    session: AsyncSession,
    settings: Settings,
    timeframe: str = "current",
    alliance: str = "all",
) -> Dict[str, Any]:
    """Merit metrics for the latest snapshot, with growth against a week/month-old snapshot."""
    if timeframe not in TIMEFRAMES:
        raise ValidationError(f"timeframe must be one of {', '.join(TIMEFRAMES)}")
    snapshots = SnapshotRepository(session)
    latest = await require_latest_snapshot(snapshots)

    compare: Optional[Snapshot] = None
    days_back = TIMEFRAMES[timeframe]
    if days_back is not None:
        compare = await snapshots.get_at_or_before(latest.timestamp - timedelta(days=days_back))

    all_rows = await snapshots.rows_for_snapshot(latest.id)
    players = await PlayerRepository(session).get_many(r.player_id for r in all_rows)
    names = {pid: p.current_name for pid, p in players.items()}

    # Percentiles and alliance shares are kingdom-wide; the filter applies afterwards.
    metrics = [
        m
        for m in cohort_merit_metrics(all_rows, names)
        if matches_alliance(m["alliance_tag"], alliance, settings.managed_alliances)
    ]

    if compare is not None:
        compare_rows = {r.player_id: r for r in await snapshots.rows_for_snapshot(compare.id)}
        span_days = (latest.timestamp - compare.timestamp).total_seconds() / 86400.0
        histories = await snapshots.histories_since(
            [m["player_id"] for m in metrics],
            since=latest.timestamp - timedelta(days=TREND_HISTORY_DAYS),
        )
        metrics = [
            merit_growth(
                m,
                compare_rows.get(m["player_id"]),
                span_days,
                [(ts, parse_int(row.merits)) for row, ts in histories.get(m["player_id"], [])],
            )
            for m in metrics
        ]

    growth_lists: Dict[str, List[Dict[str, Any]]] = {
        "top_growth": [],
        "top_velocity": [],
        "top_acceleration": [],
        "top_consistency": [],
        "top_momentum": [],
    }
    if compare is not None:
        positive = lambda field: (lambda m: (m.get(field) or 0) > 0)  # noqa: E731
        growth_lists = {
            "top_growth": top_n(metrics, "merit_growth", predicate=positive("merit_growth")),
            "top_velocity": top_n(metrics, "merit_velocity", predicate=positive("merit_velocity")),
            "top_acceleration": top_n(metrics, "merit_acceleration"),
            "top_consistency": top_n(
                metrics, "consistency_score", predicate=positive("consistency_score")
            ),
            "top_momentum": top_n(metrics, "momentum_score", predicate=positive("momentum_score")),
        }

    powerful = lambda m: m["raw_power"] >= MIN_EFFICIENCY_POWER  # noqa: E731
    efficient = [m for m in metrics if powerful(m)]
    total_merits = sum(m["raw_merits"] for m in metrics)

    return {
        "top_merits": top_n(metrics, "raw_merits"),
        "top_efficiency": top_n(metrics, "merit_power_ratio", predicate=powerful),
        "top_density": top_n(metrics, "merit_density", predicate=powerful),
        "top_roi": top_n(metrics, "merit_roi", predicate=powerful),
        "top_percentile": top_n(metrics, "merit_percentile"),
        **growth_lists,
        "alliance_analysis": _alliance_merit_analysis(metrics),
        "available_alliances": available_alliances(all_rows),
        "selected_alliance": alliance,
        "kingdom_stats": {
            "total_merits": str(total_merits),
            "average_merits": round_half_up(safe_div(total_merits, len(metrics))),
            "average_efficiency": safe_div(
                sum(m["merit_power_ratio"] for m in efficient), len(efficient)
            ),
            "average_merit_density": safe_div(
                sum(m["merit_density"] for m in efficient), len(efficient)
            ),
            "total_players": len(all_rows),
            "filtered_players": len(metrics),
            "total_alliances": len(available_alliances(all_rows)),
        },
        "timeframe": timeframe,
        "snapshot_info": {
            "current": snapshot_info(latest),
            "compare": snapshot_info(compare),
        },
    }


def _alliance_merit_analysis(metrics: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    groups: Dict[str, List[Dict[str, Any]]] = {}
    for m in metrics:
        if m["alliance_tag"]:
            groups.setdefault(m["alliance_tag"], []).append(m)

    analysis = []
    for tag, members in groups.items():
        total = sum(m["raw_merits"] for m in members)
        top = max(members, key=lambda m: m["raw_merits"])
        analysis.append(
            {
                "alliance_tag": tag,
                "member_count": len(members),
                "total_merits": total,
                "average_merits": round_half_up(safe_div(total, len(members))),
                "top_contributor": {
                    "name": top["current_name"],
                    "merits": top["raw_merits"],
                    "share": safe_div(top["raw_merits"], total) * 100,
                },
            }
        )
    analysis.sort(key=lambda a: a["total_merits"], reverse=True)
    return analysis


# Leaderboards


async def efficiency_leaderboard(
    session: AsyncSession,
    settings: Settings,
    alliance: str = "all",
    limit: int = 50,
    offset: int = 0,
) -> Dict[str, Any]:
    """Players ranked by merits per power with cohort rank and percentile."""
    snapshots = SnapshotRepository(session)
    latest = await snapshots.get_latest()
    if latest is None:
        return {"players": [], "total": 0, "alliance": alliance, "alliances": [], "snapshot": None}

    all_rows = await snapshots.rows_for_snapshot(latest.id)
    rows = filter_by_alliance(all_rows, alliance, settings.managed_alliances)
    ranked = rank_cohort(
        rows, key=lambda r: safe_div(parse_int(r.merits), parse_int(r.current_power))
    )

    items = []
    for entry in ranked[offset : offset + limit]:
        row = entry.item
        history = await snapshots.player_history(row.player_id, limit=EFFICIENCY_HISTORY_POINTS)
        power = parse_int(row.current_power)
        merits = parse_int(row.merits)
        items.append(
            {
                "lord_id": row.player_id,
                "name": row.name,
                "alliance": row.alliance_tag or "None",
                "current_power": power,
                "merits": merits,
                "merit_efficiency": round_half_up(safe_div(merits, power) * 100, 4),
                "units_killed": parse_int(row.units_killed),
                "units_dead": parse_int(row.units_dead),
                "victories": row.victories or 0,
                "defeats": row.defeats or 0,
                "city_level": row.city_level or 0,
                "division": row.division or 0,
                "faction": row.faction or "Unknown",
                "rank": entry.rank,
                "percentile": round_half_up(entry.percentile, 1),
                "merit_history": [
                    {"date": ts.isoformat(), "merits": parse_int(h.merits)} for h, ts in history
                ],
            }
        )

    return {
        "players": items,
        "total": len(ranked),
        "alliance": alliance,
        "alliances": available_alliances(all_rows),
        "snapshot": snapshot_info(latest),
    }


async def alliance_leaderboard(
    session: AsyncSession,
    sort_by: str = "total_power",
    order: str = "desc",
    limit: int = 50,
) -> Dict[str, Any]:
    snapshots = SnapshotRepository(session)
    latest = await require_latest_snapshot(snapshots)
    rows = await snapshots.rows_for_snapshot(latest.id)
    all_alliances = alliance_summaries(rows, sort_by=sort_by, order=order)
    return {
        "alliances": all_alliances[:limit],
        "total_alliances": len(all_alliances),
        "sort_by": sort_by,
        "order": "asc" if order == "asc" else "desc",
        "snapshot": snapshot_info(latest),
    }


# Dashboards and reports


def dashboard_tags(selection: str, managed: Sequence[str]) -> List[str]:
    """"combined" means every managed alliance; anything else names one tag (case-insensitive for managed)."""
    if not selection or selection == DASHBOARD_COMBINED:
        return list(managed)
    for tag in managed:
        if tag.lower() == selection.lower():
            return [tag]
    return [selection]


async def alliance_dashboard(
    session: AsyncSession,
    settings: Settings,
    selection: str = DASHBOARD_COMBINED,
    snapshot_id: Optional[int] = None,
    previous_snapshot_id: Optional[int] = None,
) -> Dict[str, Any]:
    snapshots = SnapshotRepository(session)
    current, previous = await _snapshot_pair(snapshots, snapshot_id, previous_snapshot_id)
    tags = dashboard_tags(selection, settings.managed_alliances)

    current_rows = await snapshots.rows_for_snapshot(current.id)
    previous_rows = await snapshots.rows_for_snapshot(previous.id) if previous else []
    return {
        **alliance_health(current_rows, previous_rows, tags),
        "alliances": tags,
        "snapshot_info": snapshot_info(current),
        "previous_snapshot_info": snapshot_info(previous),
    }


async def power_distribution_report(
    session: AsyncSession,
    settings: Settings,
    snapshot_id: Optional[int] = None,
    alliance: str = "all",
) -> Dict[str, Any]:
    snapshots = SnapshotRepository(session)
    snapshot = await _snapshot_or_404(snapshots, snapshot_id)
    rows = filter_by_alliance(
        await snapshots.rows_for_snapshot(snapshot.id), alliance, settings.managed_alliances
    )
    return {**power_distribution(rows, snapshot_info(snapshot)), "alliance": alliance}


async def inactivity_report(
    session: AsyncSession,
    settings: Settings,
    current_snapshot_id: Optional[int] = None,
    previous_snapshot_id: Optional[int] = None,
    alliance: str = "all",
) -> Dict[str, Any]:
    """Inactivity reasons and severity per player present in both snapshots."""
    snapshots = SnapshotRepository(session)
    current, previous = await _snapshot_pair(snapshots, current_snapshot_id, previous_snapshot_id)
    if previous is None:
        raise ValidationError("Inactivity detection needs two snapshots")
    if previous.id == current.id:
        raise ValidationError("Choose two different snapshots")

    current_rows = filter_by_alliance(
        await snapshots.rows_for_snapshot(current.id), alliance, settings.managed_alliances
    )
    previous_rows = await snapshots.rows_for_snapshot(previous.id)
    thresholds = InactivityThresholds(
        merit_threshold=settings.inactivity_merit_threshold,
        kill_threshold=settings.inactivity_kill_threshold,
    )
    flagged = detect_inactivity(current_rows, previous_rows, thresholds)
    return {
        "players": flagged,
        "summary": {
            "total_flagged": len(flagged),
            "by_severity": severity_counts(flagged),
            "players_compared": len(
                {r.player_id for r in current_rows} & {r.player_id for r in previous_rows}
            ),
        },
        "thresholds": {
            "merit_threshold": thresholds.merit_threshold,
            "kill_threshold": thresholds.kill_threshold,
        },
        "current_snapshot": snapshot_info(current),
        "previous_snapshot": snapshot_info(previous),
        "alliance": alliance,
    }
