from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UTCDateTime, utcnow


class Player(Base):
    """Identity anchor for one lord across snapshots.

    Only removed when the upload that first saw the lord fails.
    """

    __tablename__ = "players"

    lord_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    current_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow
    )
    last_seen_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True, index=True
    )
    has_left_realm: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, index=True
    )
    left_realm_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
