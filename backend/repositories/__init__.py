"""Repository layer for DB access only (CRUD + simple queries).

Repositories operate on the models in backend/models/, accept an
AsyncSession explicitly and never commit; transaction boundaries belong to
the ingestion and service layers.
"""

from .base import BaseRepository
from .change_repo import AllianceChangeRepository, NameChangeRepository
from .player_repo import PlayerRepository
from .snapshot_repo import SnapshotRepository
from .upload_repo import UploadRepository
from .user_repo import UserRepository

__all__ = [
    "BaseRepository",
    "AllianceChangeRepository",
    "NameChangeRepository",
    "PlayerRepository",
    "SnapshotRepository",
    "UploadRepository",
    "UserRepository",
]
