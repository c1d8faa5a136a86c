"""
Document-shape validation for whole schedule documents.

Used when a JSON document is imported by hand (replace or merge). The
incoming document is checked as a unit; on the first problem the whole
document is rejected and the current data stays untouched.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List

from schoolcal.dates import is_iso_date, time_to_minutes
from schoolcal.model import COLLECTION_FOR_KIND, COLLECTIONS, DATASET_VERSION, SCHEDULE_TYPES, Dataset


IMPORT_MODES = ("replace", "merge")

# collection -> expected kind
_KIND_FOR_COLLECTION = {v: k for k, v in COLLECTION_FOR_KIND.items()}


class DatasetValidationError(ValueError):
    pass


def _non_empty(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_valid_time(value: Any) -> bool:
    if not isinstance(value, str) or len(value) != 5:
        return False
    try:
        time_to_minutes(value)
    except ValueError:
        return False
    return True


def _check_times(item: Dict[str, Any], where: str) -> None:
    start = item.get("startTime")
    end = item.get("endTime")
    if start and not _is_valid_time(start):
        raise DatasetValidationError(f"{where}: invalid startTime {start!r}")
    if end and not _is_valid_time(end):
        raise DatasetValidationError(f"{where}: invalid endTime {end!r}")
    if start and end and time_to_minutes(end) < time_to_minutes(start):
        raise DatasetValidationError(f"{where}: endTime {end} is before startTime {start}")


def _check_item(collection: str, index: int, item: Any) -> None:
    where = f"{collection}[{index}]"
    if not isinstance(item, dict):
        raise DatasetValidationError(f"{where}: not an object")
    if not item.get("id") or not item.get("date") or not item.get("title"):
        raise DatasetValidationError(f"{where}: id, date and title are required")
    if not is_iso_date(str(item["date"])):
        raise DatasetValidationError(f"{where}: invalid date {item['date']!r}")
    if not str(item["title"]).strip():
        raise DatasetValidationError(f"{where}: empty title")

    kind = _KIND_FOR_COLLECTION[collection]
    if item.get("kind") != kind:
        raise DatasetValidationError(f"{where}: kind must be {kind!r}")

    if kind == "schedule":
        if item.get("type") not in SCHEDULE_TYPES:
            raise DatasetValidationError(f"{where}: type must be one of {', '.join(SCHEDULE_TYPES)}")
        _check_times(item, where)
    elif kind == "exam":
        if not _non_empty(item.get("subject")):
            raise DatasetValidationError(f"{where}: subject is required")
        _check_times(item, where)
    else:
        if not _non_empty(item.get("reason")):
            raise DatasetValidationError(f"{where}: reason is required")


def validate_record(collection: str, item: Any, index: int = 0) -> Dict[str, Any]:
    """
    Check a single record with the same rules as a whole document.
    """
    _check_item(collection, index, item)
    return item


def validate_dataset(data: Any) -> Dataset:
    """
    Raise DatasetValidationError if `data` is not a valid schedule document.
    Returns the document unchanged.
    """
    if not isinstance(data, dict):
        raise DatasetValidationError("document must be a JSON object")
    if data.get("version") != DATASET_VERSION:
        raise DatasetValidationError(f"unsupported version {data.get('version')!r}")
    for name in COLLECTIONS:
        if not isinstance(data.get(name), list):
            raise DatasetValidationError(f"{name} must be a list")
    for name in COLLECTIONS:
        seen: Dict[str, int] = {}
        for i, item in enumerate(data[name]):
            _check_item(name, i, item)
            rid = str(item["id"])
            if rid in seen:
                raise DatasetValidationError(f"{name}[{i}]: duplicate id {rid!r} (also {name}[{seen[rid]}])")
            seen[rid] = i
    return data


def is_valid_dataset(data: Any) -> bool:
    try:
        validate_dataset(data)
    except DatasetValidationError:
        return False
    return True


def merge_datasets(base: Dataset, incoming: Dataset) -> Dataset:
    """
    Merge two documents by id per collection; incoming records win.
    """
    out: Dataset = {"version": DATASET_VERSION}
    for name in COLLECTIONS:
        by_id: Dict[str, Dict[str, Any]] = {}
        for i, item in enumerate(base.get(name) or []):
            # the current data is not validated; id-less records are kept as is
            by_id[str(item.get("id") or f"#{i}")] = item
        for item in incoming.get(name) or []:
            by_id[item["id"]] = item
        items: List[Dict[str, Any]] = list(by_id.values())
        out[name] = copy.deepcopy(items)
    return out


def apply_document(current: Dataset, incoming: Any, mode: str = "replace") -> Dataset:
    """
    Validate `incoming` and return the new document for `mode`.
    `current` is never modified.
    """
    if mode not in IMPORT_MODES:
        raise ValueError(f"Unknown import mode: {mode!r}")
    validate_dataset(incoming)
    if mode == "merge":
        return merge_datasets(current, incoming)
    return copy.deepcopy(incoming)
