"""
Central data model definitions used across the project.

Records are plain dicts in the exact JSON shape of data/schedule.json
(camelCase keys, absent optional fields omitted) so they can be written
back without any conversion step. The dataclasses below describe the
transient values that only live during an import run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


DATASET_VERSION = 1

KINDS = ("schedule", "exam", "holiday")
SCHEDULE_TYPES = ("meeting", "trip")

# kind -> collection name inside the dataset document
COLLECTION_FOR_KIND = {
    "schedule": "schedule",
    "exam": "exams",
    "holiday": "holidays",
}
COLLECTIONS = tuple(COLLECTION_FOR_KIND.values())


Record = Dict[str, Any]
Dataset = Dict[str, Any]


class SourceError(ValueError):
    """An import source cannot be read or parsed into rows."""


def empty_dataset() -> Dataset:
    return {"version": DATASET_VERSION, "schedule": [], "exams": [], "holidays": []}


def empty_counts() -> Dict[str, int]:
    return {name: 0 for name in COLLECTIONS}


def compact(record: Record) -> Record:
    """
    Drop optional fields that are empty so they are omitted from the JSON.
    """
    return {k: v for k, v in record.items() if v is not None and v != ""}


@dataclass
class Candidate:
    """
    A record extracted during an import run, not yet reconciled.

    `signature` is only used to recognise the same real-world event across
    runs and is never written into the dataset. `uncertain` holds the reason
    codes that must show up in the run's audit log.
    """

    record: Record
    signature: str = ""
    uncertain: Tuple[str, ...] = ()
    text: str = ""
    sheet: Optional[str] = None

    @property
    def kind(self) -> str:
        return str(self.record.get("kind", ""))

    @property
    def date(self) -> str:
        return str(self.record.get("date", ""))

    @property
    def collection(self) -> str:
        return COLLECTION_FOR_KIND[self.kind]


@dataclass
class Extraction:
    """
    Output of one ingestion path: the candidates it found plus audit entries
    for rows that were skipped but looked like real data.
    """

    candidates: List[Candidate] = field(default_factory=list)
    issues: List[Dict[str, str]] = field(default_factory=list)
