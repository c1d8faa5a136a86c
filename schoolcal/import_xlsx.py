"""
Import from the yearly planning workbook.

Layout of the workbook:
- one sheet per month, named after the month ("ספטמבר", "October", ...)
- first row: weekday headers ("יום א'", ..., "שבת")
- rows alternate between a "date row" (day numbers under each weekday) and
  event rows whose cells hold free text, several events per cell separated
  by newlines or bullets

Cell text drifts between revisions of the workbook (merged cells, spacing,
punctuation), so records are matched by signature rather than by id.
"""

from __future__ import annotations

import re
import zipfile
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from schoolcal.candidates import candidate_from_text
from schoolcal.dates import DateHit, academic_year_for_month, is_iso_date, month_from_name, to_iso
from schoolcal.model import Extraction, SourceError
from schoolcal.reconcile import ImportTally, run_import
from schoolcal.storage import commit_import, load_dataset
from schoolcal.text import normalize_whitespace, split_lines


SOURCE = "sheet-xlsx"
ID_PREFIX = "ev"

DAY_COLUMN_RE = re.compile(r"(יום|שבת|\b(?:sun|mon|tue|wed|thu|fri|sat)[a-z]*\b)", re.IGNORECASE)
_BULLET_RE = re.compile(r"\s*[•·]\s*")
_DAY_NUMBER_RE = re.compile(r"^\d{1,2}$")

SheetRows = List[Dict[str, str]]


# ---------------------------------------------------------------------------
# Workbook reading
# ---------------------------------------------------------------------------


def cell_text(value: Any) -> str:
    """
    Render an openpyxl cell value as text. Real dates become ISO strings so
    a date row may hold either day numbers or full dates.
    """
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return f"{value.hour:02d}:{value.minute:02d}"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _header_names(values: Tuple[Any, ...]) -> List[str]:
    names: List[str] = []
    seen: Dict[str, int] = {}
    for v in values:
        name = normalize_whitespace(cell_text(v))
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 0
        names.append(name)
    return names


def read_workbook(path: str | Path) -> List[Tuple[str, SheetRows]]:
    """
    Return [(sheet name, rows)], each row a dict keyed by the sheet's first
    row. Raises SourceError if the workbook cannot be opened.
    """
    try:
        wb = load_workbook(str(path), read_only=True, data_only=True)
    except (OSError, InvalidFileException, zipfile.BadZipFile, KeyError, ValueError) as exc:
        raise SourceError(f"cannot read workbook {path}: {exc}") from exc

    sheets: List[Tuple[str, SheetRows]] = []
    try:
        for ws in wb.worksheets:
            values = list(ws.iter_rows(values_only=True))
            if not values:
                continue
            headers = _header_names(values[0])
            rows: SheetRows = []
            for raw in values[1:]:
                row = {}
                for i, name in enumerate(headers):
                    if not name:
                        continue
                    row[name] = cell_text(raw[i]) if i < len(raw) else ""
                rows.append(row)
            sheets.append((ws.title, rows))
    finally:
        wb.close()
    return sheets


# ---------------------------------------------------------------------------
# Sheet parsing
# ---------------------------------------------------------------------------


def split_multi_events(cell: str) -> List[str]:
    out: List[str] = []
    for line in split_lines(cell):
        parts = [p for p in (normalize_whitespace(x) for x in _BULLET_RE.split(line)) if p]
        out.extend(parts)
    return out


def is_date_row(row: Dict[str, str], cols: List[str]) -> bool:
    has_any = False
    for c in cols:
        v = normalize_whitespace(row.get(c))
        if not v:
            continue
        if not (_DAY_NUMBER_RE.match(v) or is_iso_date(v)):
            return False
        has_any = True
    return has_any


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    idx = year * 12 + (month - 1) + delta
    return idx // 12, idx % 12 + 1


def week_dates(
    row: Dict[str, str], cols: List[str], year: int, month: int, first: bool = False
) -> Dict[str, str]:
    """
    Map weekday column -> ISO date for one date row.

    The first week of a sheet can start in the previous month
    ("29 30 31 1 2"); any later week can run into the next one
    ("28 29 30 1 2"). The drop in day numbers marks the month change.
    """
    days: List[Tuple[str, int]] = []
    out: Dict[str, str] = {}
    for c in cols:
        v = normalize_whitespace(row.get(c))
        if is_iso_date(v):
            out[c] = v
        elif _DAY_NUMBER_RE.match(v) and 1 <= int(v) <= 31:
            days.append((c, int(v)))

    drop = next((i for i in range(1, len(days)) if days[i][1] < days[i - 1][1]), None)

    for i, (c, day) in enumerate(days):
        y, m = year, month
        if drop is not None:
            if first and i < drop:
                y, m = _shift_month(year, month, -1)
            elif not first and i >= drop:
                y, m = _shift_month(year, month, 1)
        iso = to_iso(y, m, day)
        if iso:
            out[c] = iso
    return out


def extract_sheet(sheet_name: str, rows: SheetRows, year: int, month: int) -> Extraction:
    result = Extraction()
    if not rows:
        return result

    cols = [k for k in rows[0].keys() if DAY_COLUMN_RE.search(k)]
    if not cols:
        return result

    current_week: Dict[str, str] = {}
    seen_date_row = False
    for row in rows:
        if is_date_row(row, cols):
            current_week = week_dates(row, cols, year, month, first=not seen_date_row)
            seen_date_row = True
            continue

        for c in cols:
            day = current_week.get(c)
            if not day:
                continue
            cell = row.get(c, "")
            if not normalize_whitespace(cell):
                continue
            for ev in split_multi_events(cell):
                notes = f"מקור: XLSX ({sheet_name})\nטקסט מקורי: {ev}"
                result.candidates.append(
                    candidate_from_text(ev, DateHit(day, False), prefix=ID_PREFIX, notes=notes, sheet=sheet_name)
                )
    return result


def extract_workbook(
    sheets: List[Tuple[str, SheetRows]], today: date, start_year: Optional[int] = None
) -> Extraction:
    """
    Only month-named sheets are read; the calendar year of each month
    follows the September-August school year.
    """
    result = Extraction()
    for sheet_name, rows in sheets:
        month = month_from_name(sheet_name)
        if not month:
            continue
        year = academic_year_for_month(month, today, start_year)
        part = extract_sheet(sheet_name, rows, year, month)
        result.candidates.extend(part.candidates)
        result.issues.extend(part.issues)
    return result


def import_xlsx(
    xlsx_path: str | Path,
    data_path: str | Path | None = None,
    today: Optional[date] = None,
    start_year: Optional[int] = None,
) -> ImportTally:
    today = today or date.today()
    current = load_dataset(data_path)
    sheets = read_workbook(xlsx_path)

    extraction = extract_workbook(sheets, today, start_year)
    updated, tally = run_import(
        current,
        extraction,
        source=SOURCE,
        key="signature",
        today=today,
        input_path=str(Path(xlsx_path).resolve()),
    )
    commit_import(updated, tally.to_summary(), data_path)
    return tally
