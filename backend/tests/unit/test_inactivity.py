"""Inactivity reasons and severity escalation."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from analytics.inactivity import (
    REASON_LOW_COMBAT,
    REASON_LOW_MERITS,
    REASON_NO_POWER_GROWTH,
    InactivityThresholds,
    detect_inactivity,
    severity_counts,
    severity_for,
)


@pytest.mark.parametrize(
    "low_combat,low_merits,no_power_growth,expected",
    [
        (False, False, True, "low"),
        (True, False, False, "medium"),
        (False, True, False, "medium"),
        (True, True, False, "high"),
        (True, False, True, "high"),
        (False, True, True, "high"),
        (True, True, True, "critical"),
    ],
)
def test_severity_escalation(low_combat, low_merits, no_power_growth, expected) -> None:
    assert severity_for(low_combat, low_merits, no_power_growth) == expected


def _row(player_id, power, merits, kills, alliance_tag="PLAC"):
    return SimpleNamespace(
        player_id=player_id,
        name=f"P{player_id}",
        alliance_tag=alliance_tag,
        current_power=str(power),
        merits=str(merits),
        units_killed=str(kills),
    )


def test_detect_inactivity_reasons_and_order() -> None:
    previous = [
        _row("active", 10_000_000, 0, 0),
        _row("idle", 30_000_000, 0, 0),
        _row("fighter", 20_000_000, 0, 0),
        _row("shrinking", 15_000_000, 0, 0),
    ]
    current = [
        _row("active", 11_000_000, 50_000, 50_000),
        _row("idle", 30_000_000, 0, 0),
        _row("fighter", 21_000_000, 0, 20_000),
        _row("shrinking", 14_000_000, 20_000, 20_000),
        _row("newcomer", 5_000_000, 0, 0),
    ]
    flagged = detect_inactivity(current, previous, InactivityThresholds())
    by_id = {p["player_id"]: p for p in flagged}

    assert set(by_id) == {"idle", "fighter", "shrinking"}
    assert by_id["idle"]["severity"] == "critical"
    assert by_id["idle"]["reasons"] == [
        REASON_LOW_COMBAT,
        REASON_LOW_MERITS,
        REASON_NO_POWER_GROWTH,
    ]
    assert by_id["fighter"]["reasons"] == [REASON_LOW_MERITS]
    assert by_id["fighter"]["severity"] == "medium"
    assert by_id["shrinking"]["reasons"] == [REASON_NO_POWER_GROWTH]
    assert by_id["shrinking"]["severity"] == "low"
    assert by_id["shrinking"]["power_change"] == -1_000_000
    assert [p["player_id"] for p in flagged] == ["idle", "fighter", "shrinking"]


def test_thresholds_are_configurable() -> None:
    previous = [_row("1", 10, 0, 0)]
    current = [_row("1", 20, 500, 500)]
    assert detect_inactivity(current, previous, InactivityThresholds(100, 100)) == []
    flagged = detect_inactivity(current, previous, InactivityThresholds(1000, 1000))
    assert flagged[0]["severity"] == "high"


def test_severity_counts() -> None:
    counts = severity_counts([{"severity": "low"}, {"severity": "low"}, {"severity": "critical"}])
    assert counts == {"low": 2, "medium": 0, "high": 0, "critical": 1}
