"""
Keyword heuristics that decide what kind of entry a piece of text describes.

Rules are ordered tables of (pattern, result) evaluated top to bottom; the
first match wins. Exam phrasing is checked before holiday phrasing because
the two overlap ("מבחן אחרי החופשה" is an exam), and everything else is a
schedule entry.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Pattern, Tuple

from schoolcal.text import normalize_whitespace


Rule = Tuple[Pattern[str], str]


EXAM_PATTERN = re.compile(r"(מבחן|בוחן|מתכונת|\bquiz|\bexam|\btest\b)", re.IGNORECASE)
HOLIDAY_PATTERN = re.compile(
    r"(חופשה|חופש|חג\b|אין\s+לימודים|שביתה|יום\s+חופשי|\bholiday|\bvacation|\bno\s+school)",
    re.IGNORECASE,
)
NAMED_HOLIDAY_PATTERN = re.compile(
    r"(ט\"ו\s*בשבט|ט״ו\s*בשבט|בשבט|פורים|פסח|שבועות|סוכות|חנוכה|ראש\s*השנה|יום\s*כיפור)"
)

KIND_RULES: Tuple[Rule, ...] = (
    (EXAM_PATTERN, "exam"),
    (HOLIDAY_PATTERN, "holiday"),
    (NAMED_HOLIDAY_PATTERN, "holiday"),
)
DEFAULT_KIND = "schedule"


TRIP_PATTERN = re.compile(
    r"(טיול|סיור|מחנה|שדה|מסע|גיחה|\btrip|\btour|\bexcursion|\bfield\s+day|\bcamp\b)",
    re.IGNORECASE,
)
MEETING_PATTERN = re.compile(
    r"(ישיב[הת]|אסיפ[הת]|השתלמות|כנס|פגישה|הרצאה|מפגש|\bmeeting|\bconference|\blecture|\bassembly|\bworkshop)",
    re.IGNORECASE,
)

SCHEDULE_TYPE_RULES: Tuple[Rule, ...] = (
    (TRIP_PATTERN, "trip"),
    (MEETING_PATTERN, "meeting"),
)
DEFAULT_SCHEDULE_TYPE = "meeting"


# explicit labels found in "kind" / "type" spreadsheet columns
KIND_LABELS = {
    "schedule": "schedule",
    "event": "schedule",
    "לוז": "schedule",
    "לו\"ז": "schedule",
    "אירוע": "schedule",
    "exam": "exam",
    "exams": "exam",
    "מבחן": "exam",
    "מבחנים": "exam",
    "holiday": "holiday",
    "holidays": "holiday",
    "חופשה": "holiday",
    "חגים": "holiday",
    "יום מיוחד": "holiday",
}
SCHEDULE_TYPE_LABELS = {
    "meeting": "meeting",
    "ישיבה": "meeting",
    "trip": "trip",
    "טיול": "trip",
}


@dataclass(frozen=True)
class TypeGuess:
    type: str
    uncertain: bool


def _first_match(rules: Tuple[Rule, ...], text: str) -> str:
    for pattern, result in rules:
        if pattern.search(text):
            return result
    return ""


def classify(text: object) -> str:
    t = normalize_whitespace(text).lower()
    return _first_match(KIND_RULES, t) or DEFAULT_KIND


def classify_schedule_type(text: object) -> TypeGuess:
    """
    Trip keywords beat meeting keywords. Text with neither is treated as a
    meeting, flagged uncertain so it ends up in the audit log.
    """
    t = normalize_whitespace(text).lower()
    found = _first_match(SCHEDULE_TYPE_RULES, t)
    if found:
        return TypeGuess(found, False)
    return TypeGuess(DEFAULT_SCHEDULE_TYPE, True)


def normalize_kind(value: object) -> str:
    return KIND_LABELS.get(normalize_whitespace(value).lower(), "")


def normalize_schedule_type(value: object) -> str:
    return SCHEDULE_TYPE_LABELS.get(normalize_whitespace(value).lower(), "")
