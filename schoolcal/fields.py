"""
Pull the exam subject or the holiday reason out of a line of text.

Both extractors return '' when nothing trustworthy was found; callers then
fall back to UNSPECIFIED and flag the record for review.
"""

from __future__ import annotations

import re

from schoolcal.text import normalize_whitespace


UNSPECIFIED = "לא צוין"

MAX_SUBJECT_LEN = 60
MAX_REASON_LEN = 120

_EXAM_WORDS = r"(?:מבחן|בוחן|מתכונת|\bexam|\bquiz|\btest)"

# "מבחן במתמטיקה", "exam in math": the Hebrew "ב" prefix is dropped unless it
# belongs to the subject itself (בגרות, ביולוגיה)
_SUBJECT_PLAIN_RE = re.compile(
    _EXAM_WORDS
    + r"\s+(?:ב[־-]?\s*(?!גרות|יולוגיה|יוטכנולוגיה)|(?:in|on)\s+)?"
    + r"([^:：\s(].*?)(?:$|\(|-|–)",
    re.IGNORECASE,
)
# "מבחן: מתמטיקה", "exam: math"
_SUBJECT_COLON_RE = re.compile(_EXAM_WORDS + r"\s*[:：]\s*(.+?)(?:$|\(|-|–)", re.IGNORECASE)

_REASON_RE = re.compile(
    r"(?:חופשת|חופשה|חופש|חג|אין\s+לימודים|\bholiday|\bvacation)(?:\s*[:：-]\s*|\s+)(.+)$",
    re.IGNORECASE,
)


_TIME_TOKEN_RE = re.compile(r"\d{1,2}[:.]\d{2}(?:\s*[–-]\s*\d{1,2}[:.]\d{2})?")


def _clean(value: str) -> str:
    return normalize_whitespace(value).strip(" ,.;")


def extract_subject(text: object) -> str:
    s = normalize_whitespace(_TIME_TOKEN_RE.sub(" ", normalize_whitespace(text)))
    for pattern in (_SUBJECT_PLAIN_RE, _SUBJECT_COLON_RE):
        m = pattern.search(s)
        if not m:
            continue
        v = _clean(m.group(1))
        # a long capture is a whole sentence, not a subject
        if v and len(v) <= MAX_SUBJECT_LEN:
            return v
    return ""


def extract_reason(text: object) -> str:
    s = normalize_whitespace(text)
    m = _REASON_RE.search(s)
    if m:
        v = _clean(m.group(1))
        if v and len(v) <= MAX_REASON_LEN:
            return v
    return ""
