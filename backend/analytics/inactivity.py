"""Inactivity detection between two snapshots.

Three independent reasons can fire for a player present in both snapshots:
no power growth, low merit accumulation and low combat activity. Severity
starts at ``low`` and each reason escalates it at most one step, evaluated in
priority order kills > merits > power. The power reason only escalates when a
higher-priority reason already fired, so power alone stays ``low`` and all
three together reach ``critical``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from .numbers import parse_int

SEVERITIES = ("low", "medium", "high", "critical")

REASON_NO_POWER_GROWTH = "no_power_growth"
REASON_LOW_MERITS = "low_merit_accumulation"
REASON_LOW_COMBAT = "low_combat_activity"


@dataclass
class InactivityThresholds:
    merit_threshold: int = 10_000
    kill_threshold: int = 10_000


def severity_for(low_combat: bool, low_merits: bool, no_power_growth: bool) -> str:
    level = 0
    escalated = False
    if low_combat:
        level += 1
        escalated = True
    if low_merits:
        level += 1
        escalated = True
    if no_power_growth and escalated:
        level += 1
    return SEVERITIES[level]


def detect_inactivity(
    current: Sequence[Any],
    previous: Sequence[Any],
    thresholds: InactivityThresholds = InactivityThresholds(),
) -> List[Dict[str, Any]]:
    """Players with at least one inactivity reason, most severe and strongest first."""
    previous_by_id = {row.player_id: row for row in previous}
    flagged = []
    for row in current:
        before = previous_by_id.get(row.player_id)
        if before is None:
            continue

        power_change = parse_int(row.current_power) - parse_int(before.current_power)
        merit_change = parse_int(row.merits) - parse_int(before.merits)
        kill_change = parse_int(row.units_killed) - parse_int(before.units_killed)

        no_power_growth = power_change <= 0
        low_merits = merit_change < thresholds.merit_threshold
        low_combat = kill_change < thresholds.kill_threshold

        reasons = []
        if low_combat:
            reasons.append(REASON_LOW_COMBAT)
        if low_merits:
            reasons.append(REASON_LOW_MERITS)
        if no_power_growth:
            reasons.append(REASON_NO_POWER_GROWTH)
        if not reasons:
            continue

        flagged.append(
            {
                "player_id": row.player_id,
                "name": row.name,
                "alliance_tag": row.alliance_tag,
                "power": parse_int(row.current_power),
                "power_change": power_change,
                "merit_change": merit_change,
                "kill_change": kill_change,
                "reasons": reasons,
                "severity": severity_for(low_combat, low_merits, no_power_growth),
            }
        )

    flagged.sort(key=lambda p: (SEVERITIES.index(p["severity"]), p["power"]), reverse=True)
    return flagged


def severity_counts(flagged: Sequence[Dict[str, Any]]) -> Dict[str, int]:
    counts = {s: 0 for s in SEVERITIES}
    for player in flagged:
        counts[player["severity"]] += 1
    return counts
