"""
Turning extracted text into import candidates.

Shared by the workbook and document importers: classify the text, pick the
time range, extract subject/reason, and assign id + signature. Every guess
that was not read from the source is recorded as an uncertainty reason.
"""

from __future__ import annotations

from typing import Iterable, Optional

from schoolcal.classify import classify, classify_schedule_type
from schoolcal.dates import DateHit, TimeRange, extract_time_range
from schoolcal.fields import UNSPECIFIED, extract_reason, extract_subject
from schoolcal.identity import record_id, signature
from schoolcal.model import Candidate, Record, compact
from schoolcal.text import normalize_whitespace


DEFAULT_TITLE = "אירוע"

# uncertainty reason codes
DATE_INFERRED_YEAR = "date-inferred-year"
SCHEDULE_UNCERTAIN_TYPE = "schedule-uncertain-type"
EXAM_MISSING_SUBJECT = "exam-missing-subject"
HOLIDAY_MISSING_REASON = "holiday-missing-reason"


def finalize(
    record: Record,
    *,
    prefix: str,
    uncertain: Iterable[str] = (),
    text: str = "",
    sheet: Optional[str] = None,
) -> Candidate:
    """
    Drop empty fields, assign the stable id and compute the signature.
    """
    rec = compact(record)
    rec.pop("id", None)
    out: Record = {"kind": rec["kind"], "id": record_id(prefix, rec)}
    out.update((k, v) for k, v in rec.items() if k != "kind")
    return Candidate(
        record=out,
        signature=signature(out),
        uncertain=tuple(uncertain),
        text=text or str(out.get("title", "")),
        sheet=sheet,
    )


def candidate_from_text(
    text: str,
    date_hit: DateHit,
    *,
    prefix: str,
    title: Optional[str] = None,
    times: Optional[TimeRange] = None,
    notes: Optional[str] = None,
    sheet: Optional[str] = None,
) -> Candidate:
    """
    Build a candidate from one line/cell of free text.

    `text` drives classification and field extraction; `title` defaults to
    the same text. `times` overrides the time range found in `text`.
    """
    source = normalize_whitespace(text)
    title = normalize_whitespace(source if title is None else title)
    times = times if times is not None else extract_time_range(source)
    kind = classify(source)

    uncertain = []
    if date_hit.uncertain:
        uncertain.append(DATE_INFERRED_YEAR)

    base: Record = {"kind": kind, "date": date_hit.date}

    if kind == "holiday":
        reason = extract_reason(source)
        if not reason:
            reason = UNSPECIFIED
            uncertain.append(HOLIDAY_MISSING_REASON)
        record = {**base, "title": title or reason, "reason": reason}
    elif kind == "exam":
        subject = extract_subject(source)
        if not subject:
            subject = UNSPECIFIED
            uncertain.append(EXAM_MISSING_SUBJECT)
        record = {
            **base,
            "title": title or subject,
            "subject": subject,
            "startTime": times.start_time,
            "endTime": times.end_time,
        }
    else:
        guess = classify_schedule_type(source)
        if guess.uncertain:
            uncertain.append(SCHEDULE_UNCERTAIN_TYPE)
        record = {
            **base,
            "title": title or DEFAULT_TITLE,
            "type": guess.type,
            "startTime": times.start_time,
            "endTime": times.end_time,
        }

    record["notes"] = notes
    return finalize(record, prefix=prefix, uncertain=uncertain, text=source, sheet=sheet)
