"""
Normalized ingestion schema for kingdom snapshot spreadsheets.

One ``PlayerRow`` per spreadsheet row; large counters are decimal integer
strings so values beyond float precision survive the round trip.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SnapshotFileInfo(BaseModel):
    """Identity of a snapshot file, derived from its filename."""

    kingdom: str = Field(..., description="Kingdom number from the filename")
    timestamp: datetime = Field(..., description="Capture time (UTC)")
    filename: str = Field(..., description="Original filename")


class PlayerRow(BaseModel):
    """One player's stats as read from the spreadsheet."""

    lord_id: str = Field(..., min_length=1)
    name: str = ""
    division: int = 0
    alliance_id: Optional[str] = None
    alliance_tag: Optional[str] = None

    current_power: str = "0"
    power: str = "0"
    merits: str = "0"
    units_killed: str = "0"
    units_dead: str = "0"
    units_healed: str = "0"
    t1_kill_count: str = "0"
    t2_kill_count: str = "0"
    t3_kill_count: str = "0"
    t4_kill_count: str = "0"
    t5_kill_count: str = "0"
    building_power: str = "0"
    hero_power: str = "0"
    legion_power: str = "0"
    tech_power: str = "0"

    victories: int = 0
    defeats: int = 0
    city_sieges: int = 0
    scouted: int = 0
    helps_given: int = 0

    gold: str = "0"
    gold_spent: str = "0"
    wood: str = "0"
    wood_spent: str = "0"
    ore: str = "0"
    ore_spent: str = "0"
    mana: str = "0"
    mana_spent: str = "0"
    gems: str = "0"
    gems_spent: str = "0"
    resources_given: str = "0"
    resources_given_count: int = 0

    city_level: int = 0
    faction: Optional[str] = None


class RowError(BaseModel):
    """A row that was skipped, with the reason."""

    player_id: str
    error: str
    row_number: Optional[int] = Field(None, description="1-based worksheet row, when known")


class ExtractionResult(BaseModel):
    rows: List[PlayerRow] = Field(default_factory=list)
    errors: List[RowError] = Field(default_factory=list)
    sheet_name: Optional[str] = None


class ParsedSnapshotFile(BaseModel):
    """Everything read from one uploaded workbook, ready for persistence."""

    file_info: SnapshotFileInfo
    rows: List[PlayerRow] = Field(default_factory=list)
    errors: List[RowError] = Field(default_factory=list)
    sheet_name: Optional[str] = None


class IngestionSummary(BaseModel):
    """Outcome of persisting one snapshot file."""

    snapshot_id: int
    timestamp: datetime
    kingdom: str
    filename: str
    rows_processed: int = 0
    new_players: int = 0
    name_changes: int = 0
    alliance_changes: int = 0
    players_marked_left: int = 0
    errors: List[RowError] = Field(default_factory=list)
