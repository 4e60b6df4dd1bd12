"""backend_entry --ingest: local workbooks go through the same upload path as the API."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text

import backend_entry
from core.config import get_settings


@pytest.fixture
def file_database(tmp_path: Path, monkeypatch):
    db_file = tmp_path / "tracker.db"
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{db_file}")
    get_settings.cache_clear()
    yield db_file
    get_settings.cache_clear()


def _count(db_file: Path, table: str) -> int:
    engine = create_engine(f"sqlite:///{db_file}")
    with engine.connect() as conn:
        return conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar_one()


def test_ingest_files_in_order(file_database, tmp_path, make_row, make_workbook):
    first = tmp_path / "671_20250801_1200utc.xlsx"
    second = tmp_path / "671_20250808_1200utc.xlsx"
    first.write_bytes(make_workbook([make_row("1", name="Alice"), make_row("2")]))
    second.write_bytes(make_workbook([make_row("1", name="Alicia"), make_row("2")]))

    assert backend_entry.main(["--ingest", str(first), str(second)]) == 0
    assert _count(file_database, "snapshots") == 2
    assert _count(file_database, "player_snapshots") == 4
    assert _count(file_database, "name_changes") == 1


def test_bad_file_returns_nonzero(file_database, tmp_path, make_row, make_workbook):
    bad = tmp_path / "players.xlsx"
    bad.write_bytes(make_workbook([make_row("1")]))
    failures = asyncio.run(backend_entry.ingest_files([bad]))
    assert failures == 1
    assert _count(file_database, "uploads") == 0
