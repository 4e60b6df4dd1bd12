"""Ingestion: snapshot workbook parsing, persistence, change and realm tracking."""

from .schema import (
    IngestionSummary,
    ParsedSnapshotFile,
    PlayerRow,
    RowError,
    SnapshotFileInfo,
)

__all__ = [
    "IngestionSummary",
    "ParsedSnapshotFile",
    "PlayerRow",
    "RowError",
    "SnapshotFileInfo",
]
