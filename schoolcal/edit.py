"""
Single-record edits: add, edit and delete one entry.

Edits are made on the effective dataset and saved to the local override
slot by the callers (CLI and interactive menu); the repository document is
never touched. Every function returns a new dataset and leaves its input
unchanged. A record is checked with the same rules as a whole imported
document before it is accepted.
"""

from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple

from schoolcal.classify import DEFAULT_SCHEDULE_TYPE, normalize_kind, normalize_schedule_type
from schoolcal.dates import normalize_time
from schoolcal.model import COLLECTION_FOR_KIND, COLLECTIONS, Dataset, Record, compact
from schoolcal.validate import DatasetValidationError, validate_record


# editable fields per kind, in the order they are asked for
KIND_FIELDS: Dict[str, Tuple[str, ...]] = {
    "schedule": ("date", "title", "type", "startTime", "endTime", "description", "group", "location", "notes"),
    "exam": ("date", "title", "subject", "className", "startTime", "endTime", "group", "location", "notes"),
    "holiday": ("date", "title", "reason", "group", "location", "notes"),
}
TIME_FIELDS = ("startTime", "endTime")


class RecordNotFoundError(LookupError):
    """No record with the given id in any collection."""


def new_record_id() -> str:
    return str(uuid.uuid4())


def parse_assignments(pairs: Iterable[str]) -> Dict[str, str]:
    """
    Turn ["title=Trip", "notes="] into {"title": "Trip", "notes": ""}.
    An empty value clears the field.
    """
    out: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise DatasetValidationError(f"expected FIELD=VALUE, got {pair!r}")
        out[key] = value
    return out


def _kind(value: Any) -> str:
    kind = normalize_kind(value)
    if not kind:
        raise DatasetValidationError(f"unknown kind {value!r} (schedule, exam or holiday)")
    return kind


def _reject_unknown(kind: str, fields: Dict[str, Any]) -> None:
    unknown = sorted(set(fields) - set(KIND_FIELDS[kind]))
    if unknown:
        raise DatasetValidationError(f"{kind} has no field(s): {', '.join(unknown)}")


def build_record(kind: str, fields: Dict[str, Any], record_id: str) -> Record:
    """
    Assemble and check one record. Strings are trimmed, times normalized
    (8:00 -> 08:00) and empty fields dropped.
    """
    _reject_unknown(kind, fields)
    rec: Record = {"kind": kind, "id": record_id}
    for key in KIND_FIELDS[kind]:
        value = fields.get(key)
        if isinstance(value, str):
            value = value.strip()
            if key in TIME_FIELDS:
                value = normalize_time(value) or value
            elif key == "type":
                value = normalize_schedule_type(value) or value
        rec[key] = value
    if kind == "schedule" and not rec.get("type"):
        rec["type"] = DEFAULT_SCHEDULE_TYPE

    rec = compact(rec)
    validate_record(COLLECTION_FOR_KIND[kind], rec)
    return rec


def find_record(data: Dataset, record_id: str) -> Optional[Tuple[str, int]]:
    for name in COLLECTIONS:
        for i, rec in enumerate(data.get(name) or []):
            if isinstance(rec, dict) and rec.get("id") == record_id:
                return name, i
    return None


def add_record(data: Dataset, kind: str, fields: Dict[str, Any]) -> Tuple[Dataset, Record]:
    kind = _kind(kind)
    record = build_record(kind, fields, new_record_id())
    out = copy.deepcopy(data)
    out.setdefault(COLLECTION_FOR_KIND[kind], []).append(record)
    return out, record


def edit_record(data: Dataset, record_id: str, changes: Dict[str, Any]) -> Tuple[Dataset, Record]:
    """
    Apply `changes` to an existing record; the id is kept. Changing "kind"
    moves the record to the other collection and drops the fields the new
    kind does not have.
    """
    found = find_record(data, record_id)
    if found is None:
        raise RecordNotFoundError(record_id)
    name, idx = found
    current = data[name][idx]

    changes = dict(changes)
    kind = _kind(changes.pop("kind", current.get("kind") or name))
    _reject_unknown(kind, changes)

    fields = {k: v for k, v in current.items() if k in KIND_FIELDS[kind]}
    fields.update(changes)
    record = build_record(kind, fields, record_id)

    out = copy.deepcopy(data)
    target = COLLECTION_FOR_KIND[kind]
    if target == name:
        out[name][idx] = record
    else:
        del out[name][idx]
        out.setdefault(target, []).append(record)
    return out, record


def delete_record(data: Dataset, record_id: str) -> Tuple[Dataset, Record]:
    found = find_record(data, record_id)
    if found is None:
        raise RecordNotFoundError(record_id)
    name, idx = found
    out = copy.deepcopy(data)
    removed: List[Record] = out[name]
    return out, removed.pop(idx)
