"""
Import from a CSV export of the planning sheet.

One row = one entry (or one entry per day for a date range). Columns are
found by English or Hebrew header aliases. Rows carry an explicit kind,
so the heuristics only fill in what a row leaves blank (schedule type,
exam subject, holiday reason).

The extracted text is exact, so records are matched by stable id: running
the import twice on the same file changes nothing.
"""

from __future__ import annotations

import csv
import io
import re
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from schoolcal.candidates import (
    DATE_INFERRED_YEAR,
    EXAM_MISSING_SUBJECT,
    HOLIDAY_MISSING_REASON,
    SCHEDULE_UNCERTAIN_TYPE,
    finalize,
)
from schoolcal.classify import classify_schedule_type, normalize_kind, normalize_schedule_type
from schoolcal.dates import extract_date_range, normalize_time, time_to_minutes
from schoolcal.fields import UNSPECIFIED, extract_reason, extract_subject
from schoolcal.model import Candidate, Extraction, SourceError
from schoolcal.reconcile import ImportTally, run_import
from schoolcal.storage import commit_import, load_dataset
from schoolcal.text import normalize_whitespace


SOURCE = "sheet-csv"
ID_PREFIX = "sheet"

COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "date": ("date", "Date", "תאריך"),
    "kind": ("kind", "Kind", "סוג", "קטגוריה"),
    "title": ("title", "Title", "כותרת", "שם"),
    "type": ("type", "Type", "סוג אירוע"),
    "startTime": ("startTime", "Start", "שעת התחלה", "התחלה", "שעה"),
    "endTime": ("endTime", "End", "שעת סיום", "סיום"),
    "group": ("group", "Group", "קבוצה", "שכבה"),
    "location": ("location", "Location", "מקום"),
    "notes": ("notes", "Notes", "הערות"),
    "description": ("description", "Description", "תיאור"),
    "subject": ("subject", "Subject", "מקצוע", "נושא"),
    "className": ("className", "Class", "כיתה"),
    "reason": ("reason", "Reason", "סיבה", "סיבת חופשה"),
}

_DATE_SHAPED_RE = re.compile(r"\d{4}-\d{1,2}-\d{1,2}|\d{1,2}[/.]\d{1,2}")


def pick(row: Dict[str, object], field: str) -> str:
    for key in COLUMN_ALIASES[field]:
        value = row.get(key)
        if isinstance(value, str) and value.strip():
            return normalize_whitespace(value)
    return ""


def read_csv_rows(path: str | Path) -> List[Dict[str, object]]:
    """
    Read a header-based CSV into dict rows, skipping blank rows.
    Raises SourceError if the file cannot be read or parsed.
    """
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceError(f"cannot read {path}: {exc}") from exc

    reader = csv.DictReader(io.StringIO(text), strict=True)
    try:
        rows = list(reader)
    except csv.Error as exc:
        raise SourceError(f"CSV parse error in {path} (line {reader.line_num}): {exc}") from exc
    if not reader.fieldnames:
        raise SourceError(f"{path} has no header row")

    out: List[Dict[str, object]] = []
    for row in rows:
        if any(isinstance(v, str) and v.strip() for v in row.values()):
            out.append(row)
    return out


def _row_text(row: Dict[str, object]) -> str:
    return " | ".join(normalize_whitespace(v) for v in row.values() if isinstance(v, str) and v.strip())


def _time_pair(row: Dict[str, object]) -> Tuple[str, str]:
    start = normalize_time(pick(row, "startTime"))
    end = normalize_time(pick(row, "endTime"))
    if start and end and time_to_minutes(end) < time_to_minutes(start):
        end = ""
    return start, end


def candidates_from_row(
    row: Dict[str, object], default_year: Optional[int] = None, today: Optional[date] = None
) -> Tuple[List[Candidate], Optional[Dict[str, str]]]:
    """
    Returns (candidates, issue). A skipped row that looks like real data
    (it has something date-shaped) comes back with an audit issue.
    """
    text = _row_text(row)
    raw_date = pick(row, "date")
    hits = extract_date_range(raw_date, default_year, today)

    def skipped(reason: str) -> Tuple[List[Candidate], Optional[Dict[str, str]]]:
        if _DATE_SHAPED_RE.search(raw_date):
            return [], {"reason": reason, "text": text}
        return [], None

    if not hits:
        return skipped("row-unparsed")

    kind = normalize_kind(pick(row, "kind"))
    if not kind:
        return skipped("row-unknown-kind")

    title = pick(row, "title")
    if not title:
        return skipped("row-missing-title")

    start, end = _time_pair(row)
    common = {
        "title": title,
        "group": pick(row, "group"),
        "location": pick(row, "location"),
        "notes": pick(row, "notes"),
    }

    out: List[Candidate] = []
    for hit in hits:
        uncertain: List[str] = []
        if hit.uncertain:
            uncertain.append(DATE_INFERRED_YEAR)

        if kind == "schedule":
            description = pick(row, "description")
            sched_type = normalize_schedule_type(pick(row, "type"))
            if not sched_type:
                guess = classify_schedule_type(f"{title} {description}")
                sched_type = guess.type
                if guess.uncertain:
                    uncertain.append(SCHEDULE_UNCERTAIN_TYPE)
            record = {
                "kind": kind,
                "date": hit.date,
                "type": sched_type,
                "startTime": start,
                "endTime": end,
                "description": description,
                **common,
            }
        elif kind == "exam":
            subject = pick(row, "subject") or extract_subject(title)
            if not subject:
                subject = UNSPECIFIED
                uncertain.append(EXAM_MISSING_SUBJECT)
            record = {
                "kind": kind,
                "date": hit.date,
                "subject": subject,
                "className": pick(row, "className"),
                "startTime": start,
                "endTime": end,
                **common,
            }
        else:
            reason = pick(row, "reason") or extract_reason(title)
            if not reason:
                reason = UNSPECIFIED
                uncertain.append(HOLIDAY_MISSING_REASON)
            record = {"kind": kind, "date": hit.date, "reason": reason, **common}

        out.append(finalize(record, prefix=ID_PREFIX, uncertain=uncertain, text=text))

    return out, None


def extract_rows(
    rows: List[Dict[str, object]], default_year: Optional[int] = None, today: Optional[date] = None
) -> Extraction:
    result = Extraction()
    for row in rows:
        candidates, issue = candidates_from_row(row, default_year, today)
        result.candidates.extend(candidates)
        if issue:
            result.issues.append(issue)
    return result


def import_csv(
    csv_path: str | Path,
    data_path: str | Path | None = None,
    today: Optional[date] = None,
    default_year: Optional[int] = None,
) -> ImportTally:
    """
    Full run: read the CSV, reconcile by id, write dataset + summary.
    Nothing is written if the dataset or the CSV cannot be loaded.
    """
    today = today or date.today()
    current = load_dataset(data_path)
    rows = read_csv_rows(csv_path)

    extraction = extract_rows(rows, default_year, today)
    updated, tally = run_import(
        current,
        extraction,
        source=SOURCE,
        key="id",
        today=today,
        input_path=str(Path(csv_path).resolve()),
    )
    commit_import(updated, tally.to_summary(), data_path)
    return tally
