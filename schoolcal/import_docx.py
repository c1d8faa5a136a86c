"""
Import from a Word document (.docx) or its HTML export (.html).

Two passes, in order:
1. Table rows: the usual layout is a table "יום | תאריך | שעה | סוג הפעילות"
   (day | date | time | activity). Merged cells shift text between columns,
   so a few fallbacks recover the activity.
2. Raw text, only if the tables produced nothing: a line with a date sets
   the current date, following lines without one inherit it.

Dates without a year take --year when given, otherwise the current year
(flagged uncertain). Records are matched by stable id.
"""

from __future__ import annotations

import re
import zipfile
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup
from docx import Document
from docx.opc.exceptions import PackageNotFoundError

from schoolcal.candidates import candidate_from_text
from schoolcal.dates import DateHit, extract_date, extract_date_range, extract_time_range, is_iso_date
from schoolcal.fields import UNSPECIFIED
from schoolcal.model import Extraction, SourceError
from schoolcal.reconcile import ImportTally, run_import
from schoolcal.storage import commit_import, load_dataset
from schoolcal.text import normalize_whitespace, split_lines


SOURCE = "word-docx"
ID_PREFIX = "doc"
HTML_SUFFIXES = {".html", ".htm"}

HEADER_NAMES: Dict[str, Tuple[str, ...]] = {
    "day": ("יום", "day"),
    "date": ("תאריך", "date"),
    "time": ("שעה", "time", "hour"),
    "activity": ("סוג הפעילות", "סוג פעילות", "פעילות", "activity", "event"),
}
DEFAULT_COLUMNS = {"day": 0, "date": 1, "time": 2, "activity": 3}

_YEAR_RE = re.compile(r"^\d{4}$")
_DATE_LIKE_RE = re.compile(r"\d{1,2}/\d{1,2}")
_HAS_DIGIT_RE = re.compile(r"\d")

# date/time fragments removed from a raw line to leave the title
_LINE_STRIP_RES = (
    re.compile(r"(?<!\d)\d{4}-\d{2}-\d{2}(?!\d)"),
    re.compile(r"(?<!\d)\d{1,2}/\d{1,2}/\d{4}(?!\d)"),
    re.compile(r"(?<!\d)\d{1,2}\.\d{1,2}\.\d{4}(?!\d)"),
    re.compile(r"(?<![\d/])\d{1,2}/\d{1,2}(?![\d/])"),
)
_LINE_TIME_RANGE_RE = re.compile(r"\d{1,2}[:.]\d{2}\s*[–-]\s*\d{1,2}[:.]\d{2}")
_LEADING_DASH_RE = re.compile(r"^[—–\-:：]+")

UNCERTAIN_DATE_NOTE = "תאריך משוער (חסרה שנה / נרמול חלקי)"
UNCERTAIN_TIME_NOTE = "שעה לא בפורמט HH:MM-HH:MM (נשמר ב-notes)"
PARTIAL_TIME_NOTE = "שעה חלקית / לא זוהה טווח מלא"


@dataclass
class DocumentContent:
    table_rows: List[List[str]] = field(default_factory=list)
    lines: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def parse_default_year(value: Optional[str]) -> Optional[int]:
    """
    Validate a --year override. Empty -> None; anything but YYYY is an error.
    """
    v = (value or "").strip()
    if not v:
        return None
    if not _YEAR_RE.match(v) or int(v) < 1:
        raise SourceError(f"--year must be YYYY, got {value!r}")
    return int(v)


def content_from_html(html: str) -> DocumentContent:
    soup = BeautifulSoup(html, "html.parser")
    rows: List[List[str]] = []
    for tr in soup.find_all("tr"):
        # keep empty cells: they hold the column alignment
        cells = [normalize_whitespace(td.get_text(" ", strip=True)) for td in tr.find_all(["td", "th"], recursive=False)]
        if any(cells):
            rows.append(cells)
    return DocumentContent(table_rows=rows, lines=split_lines(soup.get_text("\n")))


def content_from_docx(path: str | Path) -> DocumentContent:
    try:
        doc = Document(str(path))
    except (OSError, PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as exc:
        raise SourceError(f"cannot read document {path}: {exc}") from exc

    rows: List[List[str]] = []
    table_lines: List[str] = []
    for table in doc.tables:
        for row in table.rows:
            cells = [normalize_whitespace(cell.text.replace("\n", " ")) for cell in row.cells]
            if any(cells):
                rows.append(cells)
            for cell in row.cells:
                table_lines.extend(split_lines(cell.text))

    lines: List[str] = []
    for p in doc.paragraphs:
        lines.extend(split_lines(p.text))
    return DocumentContent(table_rows=rows, lines=lines + table_lines)


def read_document(path: str | Path) -> DocumentContent:
    p = Path(path)
    if p.suffix.lower() in HTML_SUFFIXES:
        try:
            html = p.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SourceError(f"cannot read {p}: {exc}") from exc
        return content_from_html(html)
    return content_from_docx(p)


# ---------------------------------------------------------------------------
# Table rows
# ---------------------------------------------------------------------------


def find_header_map(cells: List[str]) -> Optional[Dict[str, int]]:
    found: Dict[str, int] = {}
    for i, cell in enumerate(cells):
        v = normalize_whitespace(cell).lower()
        for col, names in HEADER_NAMES.items():
            if v in names:
                found[col] = i
    if "date" in found and "activity" in found:
        return found
    return None


def _cell(row: List[str], idx: Optional[int]) -> str:
    if idx is None or idx >= len(row):
        return ""
    return normalize_whitespace(row[idx])


def _notes(lines: List[str], uncertain: List[str]) -> str:
    out = list(lines)
    if uncertain:
        out.append(f"אי-ודאות: {'; '.join(uncertain)}")
    return "\n".join(out)


def extract_table_rows(
    rows: List[List[str]], default_year: Optional[int] = None, today: Optional[date] = None
) -> Extraction:
    result = Extraction()
    if not rows:
        return result

    header: Optional[Dict[str, int]] = None
    start_idx = 0
    for i, row in enumerate(rows):
        header = find_header_map(row)
        if header:
            start_idx = i + 1
            break
    if not header:
        header = dict(DEFAULT_COLUMNS)

    for row in rows[start_idx:]:
        if len(row) < 2:
            continue

        day_text = _cell(row, header.get("day"))
        date_text = _cell(row, header.get("date"))
        time_text = _cell(row, header.get("time"))
        activity = _cell(row, header.get("activity"))

        # merged cells: activity may only survive in the last non-empty cell
        if not activity:
            activity = next((normalize_whitespace(c) for c in reversed(row) if normalize_whitespace(c)), "")

        # activity text sitting in the time column
        if time_text and not _HAS_DIGIT_RE.search(time_text) and (not activity or activity == time_text):
            activity = time_text
            time_text = ""

        hits = extract_date_range(date_text, default_year, today)
        row_text = " | ".join(row)

        if not activity or not hits:
            # headings and titles are skipped quietly; data-like rows are logged
            if _DATE_LIKE_RE.search(date_text) or activity:
                result.issues.append({"reason": "table-row-unparsed", "text": row_text})
            continue

        times = extract_time_range(time_text)
        base_lines = [
            "מקור: Word",
            f"יום: {day_text or UNSPECIFIED}",
            f"תאריך (מקורי): {date_text or UNSPECIFIED}",
            f"שעה (מקורי): {time_text or UNSPECIFIED}",
            f"טקסט מקורי: {activity}",
        ]

        for hit in hits:
            if not is_iso_date(hit.date):
                result.issues.append({"reason": "invalid-date", "text": row_text})
                continue
            uncertain: List[str] = []
            if hit.uncertain:
                uncertain.append(UNCERTAIN_DATE_NOTE)
            if time_text and not (times.start_time and times.end_time):
                uncertain.append(UNCERTAIN_TIME_NOTE)
            result.candidates.append(
                candidate_from_text(
                    activity,
                    hit,
                    prefix=ID_PREFIX,
                    times=times,
                    notes=_notes(base_lines, uncertain),
                )
            )

    return result


# ---------------------------------------------------------------------------
# Raw text fallback
# ---------------------------------------------------------------------------


def _strip_dates(line: str) -> str:
    out = line
    for pattern in _LINE_STRIP_RES:
        out = pattern.sub(" ", out, count=1)
    return normalize_whitespace(out)


def line_title(line: str) -> str:
    t = _LINE_TIME_RANGE_RE.sub(" ", _strip_dates(line), count=1)
    return normalize_whitespace(_LEADING_DASH_RE.sub("", normalize_whitespace(t)))


def extract_lines(lines: List[str], default_year: Optional[int] = None, today: Optional[date] = None) -> Extraction:
    result = Extraction()
    current_date = ""
    current_uncertain = False

    for line in lines:
        hit = extract_date(line, default_year, today)
        if hit.date:
            current_date = hit.date
            current_uncertain = hit.uncertain
            if not line_title(line):
                # a date heading; the events follow on the next lines
                continue

        if not current_date:
            result.issues.append({"reason": "missing-date", "text": line})
            continue

        times = extract_time_range(_strip_dates(line))
        uncertain: List[str] = []
        if current_uncertain:
            uncertain.append(UNCERTAIN_DATE_NOTE)
        if times.start_time and not times.end_time:
            uncertain.append(PARTIAL_TIME_NOTE)

        result.candidates.append(
            candidate_from_text(
                line,
                DateHit(current_date, current_uncertain),
                prefix=ID_PREFIX,
                title=line_title(line),
                times=times,
                notes=_notes(["מקור: Word", f"טקסט מקורי: {line}"], uncertain),
            )
        )

    return result


def extract_document(
    content: DocumentContent, default_year: Optional[int] = None, today: Optional[date] = None
) -> Extraction:
    from_tables = extract_table_rows(content.table_rows, default_year, today)
    if from_tables.candidates:
        return from_tables

    from_lines = extract_lines(content.lines, default_year, today)
    # keep the table pass's audit entries, they still point at real rows
    from_lines.issues = from_tables.issues + from_lines.issues
    return from_lines


def import_docx(
    doc_path: str | Path,
    data_path: str | Path | None = None,
    today: Optional[date] = None,
    default_year: Optional[int] = None,
) -> ImportTally:
    today = today or date.today()
    current = load_dataset(data_path)
    content = read_document(doc_path)

    extraction = extract_document(content, default_year, today)
    updated, tally = run_import(
        current,
        extraction,
        source=SOURCE,
        key="id",
        today=today,
        input_path=str(Path(doc_path).resolve()),
        sample_limit=50,
    )
    commit_import(updated, tally.to_summary(), data_path)
    return tally
