"""Alliance health dashboard and alliance leaderboard aggregates."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from .distribution import power_brackets
from .numbers import parse_int, ratio_or_na, round_half_up, safe_div

ACTIVE_GROWTH = 100_000

KD_WARNING = 10
KD_CRITICAL = 5
WIN_RATE_WARNING = 60
WIN_RATE_CRITICAL = 40
MIN_BATTLES_FOR_WIN_RATE = 10

UNKNOWN_ALLIANCE = "Unknown"


def _power(row: Any) -> int:
    return parse_int(row.current_power)


def dashboard_kd(kills: int, deaths: int) -> float:
    """K/D for dashboards: kills/deaths, or raw kills when there are no deaths."""
    if deaths > 0:
        return kills / deaths
    return float(kills) if kills > 0 else 0.0


def activity_status(
    current: Sequence[Any], previous: Sequence[Any]
) -> List[Dict[str, Any]]:
    """Classify each current player by power growth since the previous snapshot.

    Players missing from ``previous`` count as zero growth.
    """
    previous_by_id = {row.player_id: row for row in previous}
    statuses = []
    for row in current:
        power = _power(row)
        before = previous_by_id.get(row.player_id)
        growth = power - (_power(before) if before is not None else power)
        if growth > ACTIVE_GROWTH:
            status, days_since_active = "active", 0
        elif growth > 0:
            status, days_since_active = "low_activity", 1
        else:
            status, days_since_active = "inactive", 2
        statuses.append(
            {
                "player_id": row.player_id,
                "name": row.name,
                "alliance": row.alliance_tag or UNKNOWN_ALLIANCE,
                "power": power,
                "power_growth": growth,
                "status": status,
                "inactive": growth <= 0,
                "days_since_active": days_since_active,
            }
        )
    return statuses


def performance_alerts(rows: Sequence[Any]) -> List[Dict[str, Any]]:
    """Low K/D and low win-rate alerts; severity is critical if either check is critical."""
    alerts = []
    for row in rows:
        kd = dashboard_kd(parse_int(row.units_killed), parse_int(row.units_dead))
        victories = parse_int(row.victories)
        defeats = parse_int(row.defeats)
        battles = victories + defeats
        win_rate = safe_div(victories, battles) * 100

        issues: List[str] = []
        severity = "warning"
        if kd < KD_WARNING:
            issues.append(f"Low K/D ratio: {kd:.2f}")
            if kd < KD_CRITICAL:
                severity = "critical"
        if win_rate < WIN_RATE_WARNING and battles > MIN_BATTLES_FOR_WIN_RATE:
            issues.append(f"Low win rate: {win_rate:.1f}%")
            if win_rate < WIN_RATE_CRITICAL:
                severity = "critical"

        if issues:
            alerts.append(
                {
                    "player_id": row.player_id,
                    "name": row.name,
                    "alliance": row.alliance_tag,
                    "kd_ratio": kd,
                    "win_rate": win_rate,
                    "severity": severity,
                    "issues": issues,
                }
            )
    return alerts


def alliance_health(
    current: Sequence[Any],
    previous: Sequence[Any],
    tags: Sequence[str],
) -> Dict[str, Any]:
    """Dashboard KPIs for the given alliance tags between two snapshots' rows."""
    wanted = set(tags)
    current = [r for r in current if r.alliance_tag in wanted]
    previous = [r for r in previous if r.alliance_tag in wanted]

    total_power = sum(_power(r) for r in current)
    previous_power = sum(_power(r) for r in previous)

    members: Dict[str, int] = {}
    power_by_alliance: Dict[str, int] = {}
    for row in current:
        tag = row.alliance_tag or UNKNOWN_ALLIANCE
        members[tag] = members.get(tag, 0) + 1
        power_by_alliance[tag] = power_by_alliance.get(tag, 0) + _power(row)

    kd_values = [
        kd
        for kd in (
            dashboard_kd(parse_int(r.units_killed), parse_int(r.units_dead)) for r in current
        )
        if kd > 0
    ]
    statuses = activity_status(current, previous)
    alerts = {tag: performance_alerts([r for r in current if r.alliance_tag == tag]) for tag in tags}
    critical = sum(1 for s in statuses if s["status"] == "inactive") + sum(
        1 for tag_alerts in alerts.values() for a in tag_alerts if a["severity"] == "critical"
    )

    return {
        "kpis": {
            "total_combined_power": total_power,
            "power_trend": total_power - previous_power,
            "active_members": {
                "total": len(current),
                "by_alliance": [{"alliance": t, "count": c} for t, c in members.items()],
            },
            "average_kd_ratio": safe_div(sum(kd_values), len(kd_values)),
            "critical_alerts": critical,
        },
        "power_distribution": {
            "alliance_breakdown": [
                {
                    "alliance": tag,
                    "power": power,
                    "average_power": round_half_up(safe_div(power, members[tag])),
                    "percentage": safe_div(power, total_power) * 100,
                }
                for tag, power in power_by_alliance.items()
            ],
            "power_brackets": power_brackets(current, include_players=True),
        },
        "activity_status": statuses,
        "performance_alerts": alerts,
    }


ALLIANCE_SORT_FIELDS = (
    "total_power",
    "member_count",
    "average_power",
    "total_kills",
    "total_merits",
    "kill_death_ratio",
    "win_rate",
    "average_level",
    "tag",
)


def _sort_value(summary: Dict[str, Any], field: str) -> Any:
    value = summary[field]
    if field in ("kill_death_ratio", "win_rate"):
        return 0.0 if value == "N/A" else float(value)
    return value


def alliance_summaries(
    rows: Sequence[Any],
    sort_by: str = "total_power",
    order: str = "desc",
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Aggregate tagged player rows per alliance and rank them by ``sort_by``."""
    groups: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        if not row.alliance_tag:
            continue
        g = groups.setdefault(
            row.alliance_tag,
            {
                "tag": row.alliance_tag,
                "alliance_id": row.alliance_id,
                "member_count": 0,
                "total_power": 0,
                "total_kills": 0,
                "total_deaths": 0,
                "total_merits": 0,
                "total_victories": 0,
                "total_defeats": 0,
                "total_helps": 0,
                "total_resources": 0,
                "_levels": 0,
                "top_player": None,
                "members": [],
            },
        )
        power = _power(row)
        g["member_count"] += 1
        g["total_power"] += power
        g["total_kills"] += parse_int(row.units_killed)
        g["total_deaths"] += parse_int(row.units_dead)
        g["total_merits"] += parse_int(row.merits)
        g["total_victories"] += parse_int(row.victories)
        g["total_defeats"] += parse_int(row.defeats)
        g["total_helps"] += parse_int(row.helps_given)
        g["total_resources"] += sum(
            parse_int(getattr(row, name)) for name in ("gold", "wood", "ore", "mana", "gems")
        )
        g["_levels"] += parse_int(row.city_level)
        g["members"].append(
            {"lord_id": row.player_id, "name": row.name, "power": power, "city_level": row.city_level}
        )
        if g["top_player"] is None or power > g["top_player"]["power"]:
            g["top_player"] = {"lord_id": row.player_id, "name": row.name, "power": power}

    summaries = []
    for g in groups.values():
        count = g["member_count"]
        battles = g["total_victories"] + g["total_defeats"]
        g["average_power"] = round_half_up(safe_div(g["total_power"], count))
        g["average_level"] = round_half_up(safe_div(g.pop("_levels"), count))
        g["kill_death_ratio"] = ratio_or_na(g["total_kills"], g["total_deaths"], digits=2)
        g["win_rate"] = ratio_or_na(g["total_victories"] * 100, battles, digits=1)
        summaries.append(g)

    if sort_by not in ALLIANCE_SORT_FIELDS:
        sort_by = "total_power"
    summaries.sort(key=lambda s: _sort_value(s, sort_by), reverse=(order != "asc"))
    if limit is not None:
        summaries = summaries[:limit]
    for index, summary in enumerate(summaries, start=1):
        summary["rank"] = index
    return summaries
