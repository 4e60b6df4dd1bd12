"""Per-player statistics and chart series over a player's snapshot history."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Sequence

from .numbers import parse_int, percent_or_zero, ratio_or_na, round_half_up, safe_div

SECONDS_PER_DAY = 86400.0

RESOURCE_NAMES = ("gold", "wood", "ore", "mana", "gems")


@dataclass
class HistoryEntry:
    """One stored PlayerSnapshot (or any object with the same attributes) and its snapshot time."""

    timestamp: datetime
    row: Any


def _value(row: Any, field: str) -> int:
    return parse_int(getattr(row, field, None))


def empty_stats() -> Dict[str, Any]:
    return {
        "power_growth_rate": 0,
        "combat_efficiency": 0,
        "activity_level": 0,
        "resource_efficiency": "0",
        "kill_death_ratio": 0,
        "win_rate": 0,
        "total_kills": 0,
        "total_deaths": 0,
        "average_daily_growth": 0,
        "days_tracked": 0,
        "power_breakdown": {"building": 0, "hero": 0, "legion": 0, "tech": 0},
        "kill_breakdown": {"t1": 0, "t2": 0, "t3": 0, "t4": 0, "t5": 0},
    }


def resource_efficiency(row: Any) -> str:
    """Current resources as a percentage of resources spent, "0" when nothing was spent."""
    current = sum(_value(row, name) for name in RESOURCE_NAMES)
    spent = sum(_value(row, f"{name}_spent") for name in RESOURCE_NAMES)
    return percent_or_zero(current, spent, digits=1)


def win_rate(victories: int, defeats: int) -> float:
    return round_half_up(safe_div(victories, victories + defeats) * 100, 1)


def compute_player_stats(history: Sequence[HistoryEntry]) -> Dict[str, Any]:
    """Stats from a newest-first history; fewer than two entries yields empty stats."""
    if len(history) < 2:
        return empty_stats()

    latest = history[0]
    oldest = history[-1]
    span_days = (latest.timestamp - oldest.timestamp).total_seconds() / SECONDS_PER_DAY
    days = max(1.0, span_days)

    row = latest.row
    power_growth = _value(row, "current_power") - _value(oldest.row, "current_power")
    kills = _value(row, "units_killed")
    deaths = _value(row, "units_dead")
    kd = ratio_or_na(kills, deaths, digits=2)
    growth_per_day = round_half_up(safe_div(power_growth, days))

    return {
        "power_growth_rate": growth_per_day,
        "combat_efficiency": kd,
        "activity_level": round_half_up(safe_div(_value(row, "helps_given"), days)),
        "resource_efficiency": resource_efficiency(row),
        "kill_death_ratio": kd,
        "win_rate": win_rate(_value(row, "victories"), _value(row, "defeats")),
        "total_kills": kills,
        "total_deaths": deaths,
        "average_daily_growth": growth_per_day,
        "days_tracked": round_half_up(days),
        "power_breakdown": {
            "building": _value(row, "building_power"),
            "hero": _value(row, "hero_power"),
            "legion": _value(row, "legion_power"),
            "tech": _value(row, "tech_power"),
        },
        "kill_breakdown": {f"t{i}": _value(row, f"t{i}_kill_count") for i in range(1, 6)},
    }


def build_chart_data(history: Sequence[HistoryEntry]) -> Dict[str, List[Dict[str, Any]]]:
    """Chronological series for power, combat, resources and activity."""
    chronological = list(reversed(history))
    power_trend = []
    combat_trend = []
    resource_trend = []
    activity_trend = []
    for entry in chronological:
        date = entry.timestamp.date().isoformat()
        row = entry.row
        power_trend.append({"date": date, "power": _value(row, "current_power")})
        combat_trend.append(
            {
                "date": date,
                "kills": _value(row, "units_killed"),
                "deaths": _value(row, "units_dead"),
            }
        )
        resource_trend.append(
            {"date": date, **{name: _value(row, name) for name in RESOURCE_NAMES}}
        )
        activity_trend.append(
            {
                "date": date,
                "helps": _value(row, "helps_given"),
                "sieges": _value(row, "city_sieges"),
                "scouted": _value(row, "scouted"),
            }
        )
    return {
        "power_trend": power_trend,
        "combat_trend": combat_trend,
        "resource_trend": resource_trend,
        "activity_trend": activity_trend,
    }
