"""Snapshot workbook parsing: filename, worksheet lookup, row conversion."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from openpyxl import Workbook

from core.errors import ValidationError
from ingestion.excel_reader import (
    COLUMNS,
    extract_player_rows,
    find_data_worksheet,
    parse_snapshot_filename,
    read_snapshot_workbook,
    row_to_player,
)


def test_filename_example() -> None:
    info = parse_snapshot_filename("671_20250810_2040utc.xlsx")
    assert info.kingdom == "671"
    assert info.timestamp == datetime(2025, 8, 10, 20, 40, tzinfo=timezone.utc)
    assert info.filename == "671_20250810_2040utc.xlsx"


def test_filename_case_insensitive_suffix() -> None:
    info = parse_snapshot_filename("export_12_20240101_0000UTC.xlsx")
    assert info.kingdom == "12"
    assert info.timestamp == datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "filename",
    ["players.xlsx", "671_2025081_2040utc.xlsx", "671_20250810_2040.xlsx", ""],
)
def test_filename_rejected(filename: str) -> None:
    with pytest.raises(ValidationError) as exc:
        parse_snapshot_filename(filename)
    assert "Invalid filename format" in exc.value.message


def test_filename_impossible_date_rejected() -> None:
    with pytest.raises(ValidationError) as exc:
        parse_snapshot_filename("671_20251340_2040utc.xlsx")
    assert "Invalid date" in exc.value.message


def _workbook(*titles: str) -> Workbook:
    wb = Workbook()
    wb.active.title = titles[0]
    for title in titles[1:]:
        wb.create_sheet(title)
    return wb


def test_worksheet_prefers_kingdom_then_defaults() -> None:
    assert find_data_worksheet(_workbook("Summary", "Data", "900"), "900").title == "900"
    assert find_data_worksheet(_workbook("Summary", "Data", "671"), "900").title == "671"
    assert find_data_worksheet(_workbook("Summary", "Data"), "900").title == "Data"


def test_worksheet_falls_back_to_third_sheet() -> None:
    assert find_data_worksheet(_workbook("A", "B", "C"), "900").title == "C"


def test_worksheet_missing_lists_available_sheets() -> None:
    with pytest.raises(ValidationError) as exc:
        find_data_worksheet(_workbook("A", "B"), "900")
    assert exc.value.details == {"available_sheets": ["A", "B"]}


def test_row_conversion_normalizes_cells() -> None:
    values = [None] * len(COLUMNS)
    values[0] = 1001.0
    values[1] = "  Alice "
    values[2] = "3"
    values[4] = ""
    values[5] = "1,234,567"
    values[7] = 98765432109876543210
    values[20] = 7.9
    row = row_to_player(values)

    assert row.lord_id == "1001"
    assert row.name == "Alice"
    assert row.division == 3
    assert row.alliance_tag is None
    assert row.current_power == "1234567"
    assert row.merits == "98765432109876543210"
    assert row.victories == 7
    assert row.units_killed == "0"
    assert row.faction is None


def test_short_rows_are_padded() -> None:
    row = row_to_player(["55", "Bob"])
    assert row.lord_id == "55"
    assert row.city_level == 0
    assert row.gems_spent == "0"


def test_extract_skips_rows_without_lord_id(make_row) -> None:
    wb = Workbook()
    ws = wb.active
    ws.append(["header"])
    ws.append(make_row("1"))
    ws.append([None, "ghost"])
    ws.append(make_row("2"))
    result = extract_player_rows(ws)
    assert [r.lord_id for r in result.rows] == ["1", "2"]
    assert result.errors == []


def test_extract_without_players_raises() -> None:
    wb = Workbook()
    wb.active.append(["header"])
    with pytest.raises(ValidationError) as exc:
        extract_player_rows(wb.active)
    assert exc.value.message == "No valid player data found in Excel file"


def test_read_workbook_bytes(make_row, make_workbook) -> None:
    content = make_workbook([make_row("1"), make_row("2"), make_row("3")])
    parsed = read_snapshot_workbook("671_20250810_2040utc.xlsx", content)
    assert parsed.file_info.kingdom == "671"
    assert parsed.sheet_name == "671"
    assert len(parsed.rows) == 3
    assert parsed.rows[0].current_power == "20000000"


def test_read_workbook_garbage_bytes() -> None:
    with pytest.raises(ValidationError) as exc:
        read_snapshot_workbook("671_20250810_2040utc.xlsx", b"not a workbook")
    assert exc.value.message == "Could not read Excel file"


def test_out_of_range_integer_column_is_a_row_error(make_row) -> None:
    wb = Workbook()
    ws = wb.active
    ws.append(["header"])
    ws.append(make_row("1"))
    ws.append(make_row("2", victories="99999999999999999999"))
    ws.append(make_row("3", city_level=2**63 - 1))
    result = extract_player_rows(ws)

    assert [r.lord_id for r in result.rows] == ["1", "3"]
    assert len(result.errors) == 1
    assert result.errors[0].player_id == "2"
    assert result.errors[0].row_number == 3
    assert "victories out of range" in result.errors[0].error
