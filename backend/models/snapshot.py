from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UTCDateTime, utcnow

# Counters that can exceed 2**53 are stored as decimal integer strings.
BIG_NUMBER_FIELDS = (
    "current_power",
    "power",
    "merits",
    "units_killed",
    "units_dead",
    "units_healed",
    "t1_kill_count",
    "t2_kill_count",
    "t3_kill_count",
    "t4_kill_count",
    "t5_kill_count",
    "building_power",
    "hero_power",
    "legion_power",
    "tech_power",
    "gold",
    "gold_spent",
    "wood",
    "wood_spent",
    "ore",
    "ore_spent",
    "mana",
    "mana_spent",
    "gems",
    "gems_spent",
    "resources_given",
)

INTEGER_FIELDS = (
    "division",
    "victories",
    "defeats",
    "city_sieges",
    "scouted",
    "helps_given",
    "resources_given_count",
    "city_level",
)

_BIG = String(40)


class Snapshot(Base):
    """One ingestion event: every player's stats from one uploaded file."""

    __tablename__ = "snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    kingdom: Mapped[str] = mapped_column(String(32), nullable=False)
    upload_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("uploads.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)


class PlayerSnapshot(Base):
    """One player's full stat vector at one point in time."""

    __tablename__ = "player_snapshots"
    __table_args__ = (
        UniqueConstraint("player_id", "snapshot_id", name="uq_player_snapshot"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[str] = mapped_column(
        ForeignKey("players.lord_id"), nullable=False, index=True
    )
    snapshot_id: Mapped[int] = mapped_column(
        ForeignKey("snapshots.id"), nullable=False, index=True
    )

    # Identity
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    division: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    alliance_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    alliance_tag: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, index=True)

    # Power
    current_power: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    power: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    building_power: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    hero_power: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    legion_power: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    tech_power: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")

    # Combat
    merits: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    units_killed: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    units_dead: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    units_healed: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    t1_kill_count: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    t2_kill_count: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    t3_kill_count: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    t4_kill_count: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    t5_kill_count: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")

    # Battles
    victories: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    defeats: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    city_sieges: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    scouted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Alliance activity
    helps_given: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resources_given: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    resources_given_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Resources (current / spent)
    gold: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    gold_spent: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    wood: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    wood_spent: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    ore: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    ore_spent: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    mana: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    mana_spent: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    gems: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")
    gems_spent: Mapped[str] = mapped_column(_BIG, nullable=False, default="0")

    # Player info
    city_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    faction: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
