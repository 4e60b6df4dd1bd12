"""
Read kingdom snapshot workbooks (.xlsx) into normalized PlayerRow records.

Filenames carry the kingdom and capture time (``671_20250810_2040utc.xlsx``);
the data sheet has a header row followed by one row per player in a fixed
39-column layout.
"""

from __future__ import annotations

import io
import logging
import math
import re
import zipfile
from datetime import datetime, timezone
from typing import Any, List, Sequence, Tuple

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from analytics.numbers import parse_int
from core.errors import ValidationError
from ingestion.schema import (
    ExtractionResult,
    ParsedSnapshotFile,
    PlayerRow,
    RowError,
    SnapshotFileInfo,
)

logger = logging.getLogger(__name__)

FILENAME_PATTERN = re.compile(r"(\d+)_(\d{8})_(\d{4})utc", re.IGNORECASE)
FILENAME_HINT = "671_YYYYMMDD_HHMMutc.xlsx"

DEFAULT_SHEET_NAMES = ("671", "Data")
FALLBACK_SHEET_INDEX = 2

# Plain integer columns are stored as signed 64-bit INTEGER.
MAX_INTEGER = 2**63 - 1

# (field, kind) in worksheet column order; kinds: str, opt_str, int, big.
COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("lord_id", "str"),
    ("name", "str"),
    ("division", "int"),
    ("alliance_id", "opt_str"),
    ("alliance_tag", "opt_str"),
    ("current_power", "big"),
    ("power", "big"),
    ("merits", "big"),
    ("units_killed", "big"),
    ("units_dead", "big"),
    ("units_healed", "big"),
    ("t1_kill_count", "big"),
    ("t2_kill_count", "big"),
    ("t3_kill_count", "big"),
    ("t4_kill_count", "big"),
    ("t5_kill_count", "big"),
    ("building_power", "big"),
    ("hero_power", "big"),
    ("legion_power", "big"),
    ("tech_power", "big"),
    ("victories", "int"),
    ("defeats", "int"),
    ("city_sieges", "int"),
    ("scouted", "int"),
    ("helps_given", "int"),
    ("gold", "big"),
    ("gold_spent", "big"),
    ("wood", "big"),
    ("wood_spent", "big"),
    ("ore", "big"),
    ("ore_spent", "big"),
    ("mana", "big"),
    ("mana_spent", "big"),
    ("gems", "big"),
    ("gems_spent", "big"),
    ("resources_given", "big"),
    ("resources_given_count", "int"),
    ("city_level", "int"),
    ("faction", "opt_str"),
)


def parse_snapshot_filename(filename: str) -> SnapshotFileInfo:
    """Extract kingdom and UTC capture time from a snapshot filename.

    Raises ValidationError when the pattern is absent or the date is not a real
    calendar date.
    """
    match = FILENAME_PATTERN.search(filename or "")
    if not match:
        raise ValidationError(
            f"Invalid filename format. Expected: {FILENAME_HINT}",
            details={"filename": filename},
        )
    kingdom, date_str, time_str = match.groups()
    try:
        timestamp = datetime(
            int(date_str[0:4]),
            int(date_str[4:6]),
            int(date_str[6:8]),
            int(time_str[0:2]),
            int(time_str[2:4]),
            tzinfo=timezone.utc,
        )
    except ValueError as e:
        raise ValidationError(
            f"Invalid date in filename: {e}", details={"filename": filename}
        ) from e
    return SnapshotFileInfo(kingdom=kingdom, timestamp=timestamp, filename=filename)


def find_data_worksheet(workbook: Any, kingdom: str) -> Any:
    """Sheet named after the kingdom, else "671", else "Data", else the third sheet."""
    for name in (kingdom, *DEFAULT_SHEET_NAMES):
        if name in workbook.sheetnames:
            return workbook[name]
    worksheets = workbook.worksheets
    if len(worksheets) > FALLBACK_SHEET_INDEX:
        return worksheets[FALLBACK_SHEET_INDEX]
    raise ValidationError(
        f"Cannot find data worksheet. Looked for: {kingdom}, {', '.join(DEFAULT_SHEET_NAMES)}",
        details={"available_sheets": list(workbook.sheetnames)},
    )


def cell_text(value: Any) -> str:
    """Cell value as trimmed text; integral floats lose their ``.0``."""
    if value is None:
        return ""
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def to_int(value: Any) -> int:
    """Tolerant integer parse: commas stripped, fraction truncated, garbage -> 0."""
    return parse_int(value)


def to_big_number(value: Any) -> str:
    """Decimal integer string for counters that may exceed float precision."""
    return str(parse_int(value))


def _convert(field: str, kind: str, value: Any) -> Any:
    if kind == "int":
        number = to_int(value)
        if abs(number) > MAX_INTEGER:
            raise ValueError(f"{field} out of range: {number}")
        return number
    if kind == "big":
        return to_big_number(value)
    text = cell_text(value)
    if kind == "opt_str":
        return text or None
    return text


def row_to_player(values: Sequence[Any]) -> PlayerRow:
    """Map one worksheet row (positional values) onto a PlayerRow."""
    padded = list(values) + [None] * (len(COLUMNS) - len(values))
    data = {field: _convert(field, kind, padded[i]) for i, (field, kind) in enumerate(COLUMNS)}
    return PlayerRow(**data)


def extract_player_rows(worksheet: Any) -> ExtractionResult:
    """Read player rows from row 2 onward.

    Rows without a lord id are skipped silently; rows that fail conversion are
    reported in ``errors``. Raises ValidationError when nothing usable remains.
    """
    rows: List[PlayerRow] = []
    errors: List[RowError] = []

    for row_number, values in enumerate(worksheet.iter_rows(min_row=2, values_only=True), start=2):
        if not values:
            continue
        lord_id = cell_text(values[0])
        if not lord_id:
            continue
        try:
            rows.append(row_to_player(values))
        except (ValueError, TypeError) as e:
            logger.warning("Skipping row %s for player %s: %s", row_number, lord_id, e)
            errors.append(RowError(player_id=lord_id, error=str(e), row_number=row_number))

    if not rows:
        raise ValidationError("No valid player data found in Excel file")

    logger.info(
        "Extracted %s players from sheet %r (%s rows skipped with errors)",
        len(rows),
        getattr(worksheet, "title", None),
        len(errors),
    )
    return ExtractionResult(rows=rows, errors=errors, sheet_name=getattr(worksheet, "title", None))


def read_snapshot_workbook(filename: str, content: bytes) -> ParsedSnapshotFile:
    """Parse filename and workbook bytes into a ParsedSnapshotFile."""
    file_info = parse_snapshot_filename(filename)
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise ValidationError(
            "Could not read Excel file", details={"filename": filename, "reason": str(e)}
        ) from e
    try:
        worksheet = find_data_worksheet(workbook, file_info.kingdom)
        extraction = extract_player_rows(worksheet)
    finally:
        workbook.close()

    return ParsedSnapshotFile(
        file_info=file_info,
        rows=extraction.rows,
        errors=extraction.errors,
        sheet_name=extraction.sheet_name,
    )
