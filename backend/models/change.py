from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UTCDateTime


class NameChange(Base):
    """Append-only record of a detected display name transition."""

    __tablename__ = "name_changes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[str] = mapped_column(
        ForeignKey("players.lord_id"), nullable=False, index=True
    )
    old_name: Mapped[str] = mapped_column(String(255), nullable=False)
    new_name: Mapped[str] = mapped_column(String(255), nullable=False)
    detected_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    snapshot_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("snapshots.id"), nullable=True, index=True
    )


class AllianceChange(Base):
    """Append-only record of a detected alliance move (tags may be None for no alliance)."""

    __tablename__ = "alliance_changes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[str] = mapped_column(
        ForeignKey("players.lord_id"), nullable=False, index=True
    )
    old_alliance: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    old_alliance_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    new_alliance: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    new_alliance_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    detected_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    snapshot_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("snapshots.id"), nullable=True, index=True
    )
