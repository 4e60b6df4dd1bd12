"""Canonical SQLAlchemy models for the player tracker.

Importing this package registers every table on ``Base.metadata``.
"""

from .base import Base
from .change import AllianceChange, NameChange
from .player import Player
from .snapshot import PlayerSnapshot, Snapshot
from .upload import Upload
from .user import User

__all__ = [
    "Base",
    "AllianceChange",
    "NameChange",
    "Player",
    "PlayerSnapshot",
    "Snapshot",
    "Upload",
    "User",
]
