"""
Dataset-wide duplicate cleanup.

Records are grouped by a normalized key (date + normalized title + a kind
specific discriminator). In every group with more than one member, the
most informative record is kept, the notes of all members are merged into
it and the other ids are reported as removed.

Running the pass again on its own output changes nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple

from schoolcal.model import COLLECTIONS, Dataset, Record
from schoolcal.reconcile import merge_notes
from schoolcal.text import normalize_key


KeyFn = Callable[[Record], str]

NOTES_CHARS_PER_POINT = 120
MAX_NOTES_POINTS = 3


@dataclass
class DedupeResult:
    out: List[Record]
    removed_ids: List[str]


@dataclass
class DedupeReport:
    before: Dict[str, int] = field(default_factory=dict)
    after: Dict[str, int] = field(default_factory=dict)
    removed: Dict[str, List[str]] = field(default_factory=dict)

    def removed_counts(self) -> Dict[str, int]:
        return {name: len(ids) for name, ids in self.removed.items()}


def score(record: Record) -> int:
    s = 0
    if record.get("startTime"):
        s += 10
    if record.get("endTime"):
        s += 5
    if record.get("description"):
        s += 2
    if record.get("location"):
        s += 1
    if record.get("group"):
        s += 1
    s += min(MAX_NOTES_POINTS, len(str(record.get("notes") or "")) // NOTES_CHARS_PER_POINT)
    return s


def dedupe(records: List[Record], key_fn: KeyFn) -> DedupeResult:
    groups: Dict[str, List[Record]] = {}
    for rec in records:
        # dicts keep insertion order, so groups come out in first-seen order
        groups.setdefault(key_fn(rec), []).append(rec)

    out: List[Record] = []
    removed: List[str] = []

    for members in groups.values():
        if len(members) == 1:
            out.append(members[0])
            continue

        # max() returns the first of equal scores -> earliest member wins ties
        best_idx = max(range(len(members)), key=lambda i: score(members[i]))
        base = members[best_idx]
        merged = dict(base)
        notes = merge_notes(*(m.get("notes") for m in members))
        if notes:
            merged["notes"] = notes
        out.append(merged)

        for i, m in enumerate(members):
            if i != best_idx:
                removed.append(str(m.get("id", "")))

    return DedupeResult(out=out, removed_ids=removed)


def _s(value: Any) -> str:
    return "" if value is None else str(value)


def schedule_key(rec: Record) -> str:
    return "|".join(["schedule", _s(rec.get("date")), _s(rec.get("type")), normalize_key(rec.get("title"))])


def exam_key(rec: Record) -> str:
    return "|".join(
        [
            "exam",
            _s(rec.get("date")),
            _s(rec.get("subject")),
            normalize_key(rec.get("title") or rec.get("subject")),
        ]
    )


def holiday_key(rec: Record) -> str:
    return "|".join(
        ["holiday", _s(rec.get("date")), normalize_key(rec.get("title")), normalize_key(rec.get("reason"))]
    )


KEY_FUNCTIONS: Dict[str, KeyFn] = {
    "schedule": schedule_key,
    "exams": exam_key,
    "holidays": holiday_key,
}


def dedupe_dataset(data: Dataset) -> Tuple[Dataset, DedupeReport]:
    """
    Deduplicate all three collections. Returns a new dataset and counts.
    """
    report = DedupeReport()
    cleaned: Dataset = dict(data)

    for name in COLLECTIONS:
        items = list(data.get(name) or [])
        res = dedupe(items, KEY_FUNCTIONS[name])
        cleaned[name] = res.out
        report.before[name] = len(items)
        report.after[name] = len(res.out)
        report.removed[name] = res.removed_ids

    return cleaned, report
