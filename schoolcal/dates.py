"""
Date and time extraction from free text and table cells.

Supported date shapes (checked in this order):
- ISO:            2025-03-14
- D/M/YYYY:       14/3/2025
- D.M.YYYY:       14.3.2025
- day range:      3-5/3       (one date per day, descending ranges walk down)
- cross-month:    24/3-8/4    (day by day, rolls into the next year if needed)
- bare D/M:       14/3        (year taken from default_year or inferred)

Whenever the year had to be inferred (no explicit year in the text and no
default_year supplied) the hit is flagged uncertain.

Times: H:MM or H.MM, optionally as a dash-joined range. Hours are padded to
two digits. Nothing found is not an error, just empty strings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional, Tuple, Union

from schoolcal.text import normalize_key, normalize_whitespace


YearArg = Union[int, str, None]


@dataclass(frozen=True)
class DateHit:
    date: str
    uncertain: bool


@dataclass(frozen=True)
class TimeRange:
    start_time: str = ""
    end_time: str = ""


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

# free text (search anywhere)
_ISO_RE = re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)")
_DMY_SLASH_RE = re.compile(r"(?<![\d/])(\d{1,2})/(\d{1,2})/(\d{4})(?!\d)")
_DMY_DOT_RE = re.compile(r"(?<![\d.])(\d{1,2})\.(\d{1,2})\.(\d{4})(?!\d)")
_DM_RE = re.compile(r"(?<![\d/.])(\d{1,2})/(\d{1,2})(?![\d/])")

# whole cell
_ISO_CELL_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_DMY_SLASH_CELL_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_DMY_DOT_CELL_RE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")
_DAY_RANGE_CELL_RE = re.compile(r"^(\d{1,2})\s*[-–]\s*(\d{1,2})/(\d{1,2})$")
_CROSS_MONTH_CELL_RE = re.compile(r"^(\d{1,2})/(\d{1,2})\s*[-–]\s*(\d{1,2})/(\d{1,2})$")
_DM_CELL_RE = re.compile(r"^(\d{1,2})/(\d{1,2})$")

_ISO_STRICT_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_TIME_RE = re.compile(r"^(\d{1,2})[:.](\d{2})$")
_TIME_RANGE_RE = re.compile(r"(?<![\d.])(\d{1,2}[:.]\d{2})\s*[–-]\s*(\d{1,2}[:.]\d{2})(?![\d.])")
_TIME_SINGLE_RE = re.compile(r"(?<![\d./:])(\d{1,2}[:.]\d{2})(?![\d./:])")

# Hebrew and English month names (sheet tabs are usually named after months)
MONTHS = {
    "ינואר": 1,
    "פברואר": 2,
    "מרץ": 3,
    "מרס": 3,
    "אפריל": 4,
    "מאי": 5,
    "יוני": 6,
    "יולי": 7,
    "אוגוסט": 8,
    "ספטמבר": 9,
    "אוקטובר": 10,
    "נובמבר": 11,
    "דצמבר": 12,
    "january": 1,
    "february": 2,
    "march": 3,
    "april": 4,
    "may": 5,
    "june": 6,
    "july": 7,
    "august": 8,
    "september": 9,
    "october": 10,
    "november": 11,
    "december": 12,
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "sept": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def today_iso(today: Optional[date] = None) -> str:
    return (today or date.today()).isoformat()


def to_iso(year: int, month: int, day: int) -> str:
    """
    Build an ISO date, or '' if the calendar date does not exist (e.g. 31/2).
    """
    try:
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return ""


def is_iso_date(value: object) -> bool:
    """
    True for a real calendar date written as YYYY-MM-DD.
    """
    if not isinstance(value, str) or not _ISO_STRICT_RE.match(value):
        return False
    y, m, d = value.split("-")
    return bool(to_iso(int(y), int(m), int(d)))


def parse_iso_date(value: str) -> Optional[date]:
    if not is_iso_date(value):
        return None
    y, m, d = value.split("-")
    return date(int(y), int(m), int(d))


def _resolve_year(default_year: YearArg, today: Optional[date]) -> Tuple[int, bool]:
    """
    Return (year, inferred). An explicitly supplied default year counts as
    known; otherwise the current year is used and flagged as inferred.
    """
    if default_year is not None and default_year != "":
        return int(default_year), False
    return (today or date.today()).year, True


def normalize_time(raw: object) -> str:
    v = normalize_whitespace(raw)
    m = _TIME_RE.match(v)
    if not m:
        return ""
    hh = int(m.group(1))
    mm = int(m.group(2))
    if hh > 23 or mm > 59:
        return ""
    return f"{hh:02d}:{mm:02d}"


def time_to_minutes(hhmm: str) -> int:
    """
    Convert 'HH:MM' to minutes since midnight.
    Raises ValueError for invalid formats.
    """
    parts = hhmm.strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid time format: {hhmm!r}")
    h = int(parts[0])
    m = int(parts[1])
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValueError(f"Invalid time value: {hhmm!r}")
    return h * 60 + m


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def extract_date(text: object, default_year: YearArg = None, today: Optional[date] = None) -> DateHit:
    """
    Find the first date anywhere in a line of free text.
    """
    t = normalize_whitespace(text)

    m = _ISO_RE.search(t)
    if m:
        iso = to_iso(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        return DateHit(iso, not iso)

    for pattern in (_DMY_SLASH_RE, _DMY_DOT_RE):
        m = pattern.search(t)
        if m:
            iso = to_iso(int(m.group(3)), int(m.group(2)), int(m.group(1)))
            return DateHit(iso, not iso)

    m = _DM_RE.search(t)
    if m:
        year, inferred = _resolve_year(default_year, today)
        iso = to_iso(year, int(m.group(2)), int(m.group(1)))
        return DateHit(iso, inferred or not iso)

    return DateHit("", True)


def extract_date_range(cell: object, default_year: YearArg = None, today: Optional[date] = None) -> List[DateHit]:
    """
    Parse a date cell that may hold a single date or a range.
    Returns one DateHit per calendar day, or [] if the cell is not a date.
    """
    t = normalize_whitespace(cell)
    if not t:
        return []

    m = _ISO_CELL_RE.match(t)
    if m:
        iso = to_iso(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        return [DateHit(iso, False)] if iso else []

    for pattern in (_DMY_SLASH_CELL_RE, _DMY_DOT_CELL_RE):
        m = pattern.match(t)
        if m:
            iso = to_iso(int(m.group(3)), int(m.group(2)), int(m.group(1)))
            return [DateHit(iso, False)] if iso else []

    m = _DAY_RANGE_CELL_RE.match(t)
    if m:
        year, inferred = _resolve_year(default_year, today)
        from_day, to_day, month = int(m.group(1)), int(m.group(2)), int(m.group(3))
        step = 1 if from_day <= to_day else -1
        out: List[DateHit] = []
        for day in range(from_day, to_day + step, step):
            iso = to_iso(year, month, day)
            if iso:
                out.append(DateHit(iso, inferred))
        return out

    m = _CROSS_MONTH_CELL_RE.match(t)
    if m:
        year, inferred = _resolve_year(default_year, today)
        return _expand_cross_month(
            year,
            (int(m.group(2)), int(m.group(1))),
            (int(m.group(4)), int(m.group(3))),
            inferred,
        )

    m = _DM_CELL_RE.match(t)
    if m:
        year, inferred = _resolve_year(default_year, today)
        iso = to_iso(year, int(m.group(2)), int(m.group(1)))
        return [DateHit(iso, inferred)] if iso else []

    return []


def _expand_cross_month(
    year: int, start_md: Tuple[int, int], end_md: Tuple[int, int], uncertain: bool
) -> List[DateHit]:
    try:
        start = date(year, *start_md)
        end = date(year, *end_md)
        if end < start:
            # e.g. 24/12-3/1 spans the new year
            end = date(year + 1, *end_md)
    except ValueError:
        return []

    out: List[DateHit] = []
    cur = start
    while cur <= end:
        out.append(DateHit(cur.isoformat(), uncertain))
        cur += timedelta(days=1)
    return out


def month_from_name(name: object) -> Optional[int]:
    key = normalize_key(name)
    if not key:
        return None
    if key in MONTHS:
        return MONTHS[key]
    return MONTHS.get(key.split(" ")[0])


def academic_year_for_month(month: int, today: date, start_year: YearArg = None) -> int:
    """
    Calendar year of `month` inside a school year running September-August.

    The school year is the one starting in `start_year`, or else the one
    that is currently running on `today`.
    """
    if start_year is not None and start_year != "":
        start = int(start_year)
    else:
        start = today.year if today.month >= 9 else today.year - 1
    return start if month >= 9 else start + 1


# ---------------------------------------------------------------------------
# Times
# ---------------------------------------------------------------------------


def extract_time_range(text: object) -> TimeRange:
    t = normalize_whitespace(text)

    m = _TIME_RANGE_RE.search(t)
    if m:
        start = normalize_time(m.group(1))
        end = normalize_time(m.group(2))
        if start and end and time_to_minutes(end) < time_to_minutes(start):
            end = ""
        if start:
            return TimeRange(start, end)

    m = _TIME_SINGLE_RE.search(t)
    if m:
        return TimeRange(normalize_time(m.group(1)), "")

    return TimeRange()
