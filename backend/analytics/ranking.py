"""Cohort ranking and merit analytics.

Ranking is a stable descending sort: rank is the 1-based position and
percentile is ``(K - index) / K * 100``, so the top of a cohort of K sits at 100
and the bottom at ``100 / K``. Equal values keep their input order and are not
given shared ranks.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Sequence, Tuple, TypeVar

from .numbers import finite, parse_int, round_half_up, safe_div

T = TypeVar("T")

TOP_LIST_SIZE = 50
MIN_EFFICIENCY_POWER = 1_000_000
MERIT_RATIO_CAP = 999_999
ACCELERATION_WINDOW = 7
MOMENTUM_DECAY = 0.9

# (upper bound exclusive, label)
POWER_TIERS = (
    (1_000_000, "Under 1M"),
    (10_000_000, "1M-10M"),
    (50_000_000, "10M-50M"),
    (100_000_000, "50M-100M"),
)
TOP_POWER_TIER = "Over 100M"

MERIT_MILESTONES = (1_000_000, 5_000_000, 10_000_000, 25_000_000, 50_000_000, 100_000_000)
MILESTONE_STEP = 50_000_000


@dataclass
class Ranked(Generic[T]):
    item: T
    rank: int
    percentile: float


def rank_cohort(items: Iterable[T], key: Callable[[T], float]) -> List[Ranked[T]]:
    """Rank ``items`` by ``key`` descending, keeping input order among ties."""
    ordered = sorted(items, key=key, reverse=True)
    size = len(ordered)
    return [
        Ranked(item=item, rank=index + 1, percentile=(size - index) / size * 100)
        for index, item in enumerate(ordered)
    ]


def power_tier(power: int) -> str:
    for upper, label in POWER_TIERS:
        if power < upper:
            return label
    return TOP_POWER_TIER


def next_milestone(merits: int) -> int:
    for milestone in MERIT_MILESTONES:
        if merits < milestone:
            return milestone
    return merits + MILESTONE_STEP


def top_n(
    items: Sequence[Dict[str, Any]],
    field: str,
    n: int = TOP_LIST_SIZE,
    predicate: Optional[Callable[[Dict[str, Any]], bool]] = None,
) -> List[Dict[str, Any]]:
    pool = [i for i in items if predicate is None or predicate(i)]
    return sorted(pool, key=lambda i: i.get(field) or 0, reverse=True)[:n]


def merit_metrics(
    row: Any,
    rank: int,
    percentile: float,
    alliance_total_merits: int = 0,
    current_name: Optional[str] = None,
) -> Dict[str, Any]:
    """Merit efficiency metrics for one player row within its kingdom cohort."""
    merits = parse_int(row.merits)
    power = parse_int(row.current_power)
    kills = parse_int(row.units_killed)
    victories = parse_int(row.victories)
    defeats = parse_int(row.defeats)
    battles = victories + defeats
    milestone = next_milestone(merits)

    return {
        "player_id": row.player_id,
        "name": row.name,
        "current_name": current_name or row.name,
        "alliance_tag": row.alliance_tag,
        "division": row.division or 0,
        "city_level": row.city_level or 0,
        "merits": row.merits,
        "current_power": row.current_power,
        "units_killed": row.units_killed,
        "victories": victories,
        "defeats": defeats,
        "raw_merits": merits,
        "raw_power": power,
        "raw_kills": kills,
        "merit_power_ratio": min(safe_div(merits, power) * 100, MERIT_RATIO_CAP),
        "merit_density": safe_div(merits, power / 1_000_000) if power > 0 else 0,
        "merit_roi": safe_div(merits, power) * 1_000_000,
        "merit_percentile": round_half_up(percentile, 1),
        "kingdom_rank": rank,
        "power_tier": power_tier(power),
        "alliance_merit_share": round_half_up(
            safe_div(merits, alliance_total_merits) * 100 if row.alliance_tag else 0, 2
        ),
        "merit_gap": milestone - merits,
        "next_milestone": milestone,
        "battle_efficiency": safe_div(merits, battles),
        "win_rate": safe_div(victories, battles) * 100,
    }


def cohort_merit_metrics(
    rows: Sequence[Any], names: Optional[Dict[str, str]] = None
) -> List[Dict[str, Any]]:
    """merit_metrics for every row, ranked by merits across the whole cohort."""
    names = names or {}
    alliance_totals: Dict[str, int] = {}
    for row in rows:
        if row.alliance_tag:
            alliance_totals[row.alliance_tag] = alliance_totals.get(row.alliance_tag, 0) + parse_int(
                row.merits
            )

    ranked = rank_cohort(rows, key=lambda r: parse_int(r.merits))
    by_player = {
        r.item.player_id: merit_metrics(
            r.item,
            r.rank,
            r.percentile,
            alliance_totals.get(r.item.alliance_tag or "", 0),
            names.get(r.item.player_id),
        )
        for r in ranked
    }
    # Preserve the caller's row order.
    return [by_player[row.player_id] for row in rows]


def daily_gains(history: Sequence[Tuple[datetime, int]]) -> List[float]:
    """Per-day merit gains between consecutive newest-first (timestamp, merits) points."""
    gains: List[float] = []
    for i in range(1, len(history)):
        newer_ts, newer_merits = history[i - 1]
        older_ts, older_merits = history[i]
        days = (newer_ts - older_ts).total_seconds() / 86400.0
        if days > 0:
            gains.append((newer_merits - older_merits) / days)
    return gains


def merit_growth(
    current: Dict[str, Any],
    compare_row: Optional[Any],
    span_days: float,
    history: Sequence[Tuple[datetime, int]] = (),
) -> Dict[str, Any]:
    """Growth, velocity, acceleration, consistency and momentum for one player.

    ``history`` is the player's newest-first (timestamp, merits) series.
    """
    old_merits = parse_int(compare_row.merits) if compare_row is not None else 0
    old_power = parse_int(compare_row.current_power) if compare_row is not None else 0
    growth = current["raw_merits"] - old_merits

    growth_percent = safe_div(growth, old_merits) * 100 if old_merits > 0 else 0
    velocity = safe_div(growth, span_days) if span_days > 0 else 0
    acceleration = 0.0
    consistency = 0.0
    momentum = 0.0

    if len(history) >= 3:
        gains = daily_gains(history)
        if len(gains) > 1:
            mean = sum(gains) / len(gains)
            variance = sum((g - mean) ** 2 for g in gains) / len(gains)
            std_dev = math.sqrt(variance)
            consistency = max(0.0, 100 - safe_div(std_dev, mean) * 100) if mean > 0 else 0.0

            if len(gains) >= 2 * ACCELERATION_WINDOW:
                recent = gains[:ACCELERATION_WINDOW]
                previous = gains[ACCELERATION_WINDOW : 2 * ACCELERATION_WINDOW]
                acceleration = sum(recent) / len(recent) - sum(previous) / len(previous)

            momentum = sum(g * MOMENTUM_DECAY ** i for i, g in enumerate(gains))

    return {
        **current,
        "merit_growth": growth,
        "merit_growth_percent": finite(growth_percent),
        "merit_velocity": round_half_up(finite(velocity)),
        "merit_acceleration": round_half_up(finite(acceleration), 2),
        "consistency_score": round_half_up(finite(consistency), 1),
        "momentum_score": round_half_up(finite(momentum)),
        "power_growth": current["raw_power"] - old_power,
        "historical_data_points": len(history),
    }
