"""Power bracket distribution."""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Sequence

from .numbers import parse_int, round_half_up, safe_div

# (label, lower bound inclusive, upper bound exclusive or None)
POWER_BRACKETS = (
    ("<5M", 0, 5_000_000),
    ("5-10M", 5_000_000, 10_000_000),
    ("10-20M", 10_000_000, 20_000_000),
    ("20-50M", 20_000_000, 50_000_000),
    (">50M", 50_000_000, None),
)

BOTTOM_SHARE = 0.10


def bracket_for(power: int) -> str:
    for label, lower, upper in POWER_BRACKETS:
        if power >= lower and (upper is None or power < upper):
            return label
    # Negative power only; lump it with the lowest bracket.
    return POWER_BRACKETS[0][0]


def _player(row: Any) -> Dict[str, Any]:
    return {
        "player_id": row.player_id,
        "name": row.name,
        "alliance_tag": row.alliance_tag,
        "power": parse_int(row.current_power),
    }


def power_brackets(rows: Sequence[Any], include_players: bool = False) -> List[Dict[str, Any]]:
    total = len(rows)
    grouped: Dict[str, List[Any]] = {label: [] for label, _, _ in POWER_BRACKETS}
    for row in rows:
        grouped[bracket_for(parse_int(row.current_power))].append(row)

    brackets = []
    for label, lower, upper in POWER_BRACKETS:
        members = grouped[label]
        entry: Dict[str, Any] = {
            "bracket": label,
            "min": lower,
            "max": upper,
            "count": len(members),
            "percentage": round_half_up(safe_div(len(members), total) * 100, 1),
        }
        if include_players:
            entry["players"] = [_player(r) for r in members]
        brackets.append(entry)
    return brackets


def bottom_by_power(rows: Sequence[Any], share: float = BOTTOM_SHARE) -> List[Dict[str, Any]]:
    """Weakest ``share`` of players by power, at least one when ``rows`` is non-empty."""
    if not rows:
        return []
    count = max(1, math.ceil(len(rows) * share))
    ordered = sorted(rows, key=lambda r: parse_int(r.current_power))
    return [_player(r) for r in ordered[:count]]


def power_distribution(
    rows: Sequence[Any], snapshot: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    powers = [parse_int(r.current_power) for r in rows]
    total_power = sum(powers)
    return {
        "total_players": len(rows),
        "total_power": total_power,
        "average_power": round_half_up(safe_div(total_power, len(rows))),
        "brackets": power_brackets(rows),
        "bottom_10_percent": bottom_by_power(rows),
        "snapshot": snapshot,
    }
