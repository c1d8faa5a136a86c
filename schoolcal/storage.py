"""
Persistent storage for the schedule document.

This module manages the files:

    data/schedule.json             (the repository's source of truth)
    data/.local-override.json      (optional local edit slot)
    data/import-summaries/*.json   (one summary per import path)

Design rationale:
- schedule.json is only ever rewritten as a whole, through a temp file that
  replaces the original, so a crash never leaves half a document behind
- the local override either fully supersedes schedule.json or is absent;
  saving it again simply overwrites it (last write wins)
- a broken schedule.json is fatal, a broken override is ignored
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from schoolcal.model import COLLECTIONS, DATASET_VERSION, Dataset


class DatasetError(ValueError):
    """The persisted document is missing, unreadable or not a schedule."""


def default_data_path() -> Path:
    """
    Return the default path of schedule.json.

    Resolved against the current working directory (the repository root),
    and computed by a function so tests can point elsewhere.
    """
    return Path.cwd() / "data" / "schedule.json"


def default_override_path(data_path: str | Path | None = None) -> Path:
    base = Path(data_path) if data_path is not None else default_data_path()
    return base.parent / ".local-override.json"


def default_summary_dir(data_path: str | Path | None = None) -> Path:
    base = Path(data_path) if data_path is not None else default_data_path()
    return base.parent / "import-summaries"


def _dump(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def coerce_dataset(raw: Any) -> Dataset:
    """
    Normalize a loaded document: version pinned, missing collections -> [].
    """
    if not isinstance(raw, dict):
        raise DatasetError("schedule document must be a JSON object")
    out: Dataset = dict(raw)
    out["version"] = DATASET_VERSION
    for name in COLLECTIONS:
        items = raw.get(name)
        out[name] = list(items) if isinstance(items, list) else []
    return out


def check_collections(raw: Any, where: str = "schedule document") -> None:
    """
    A collection may be missing, but one that is present must be a list of
    objects. Anything else would be dropped on the next write.
    """
    if not isinstance(raw, dict):
        raise DatasetError(f"{where} must be a JSON object")
    for name in COLLECTIONS:
        if name not in raw:
            continue
        items = raw[name]
        if not isinstance(items, list):
            raise DatasetError(f"{where}: {name} must be a list, got {type(items).__name__}")
        for i, item in enumerate(items):
            if not isinstance(item, dict):
                raise DatasetError(f"{where}: {name}[{i}] is not an object")


def load_dataset(path: str | Path | None = None) -> Dataset:
    data_path = Path(path) if path is not None else default_data_path()
    try:
        raw = json.loads(data_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise DatasetError(f"schedule document not found: {data_path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise DatasetError(f"cannot read {data_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise DatasetError(f"{data_path} is not valid JSON: {exc}") from exc
    check_collections(raw, str(data_path))
    return coerce_dataset(raw)


def save_dataset(data: Dataset, path: str | Path | None = None) -> Path:
    """
    Write the document pretty-printed and newline-terminated. Records are
    written in the order given.
    """
    data_path = Path(path) if path is not None else default_data_path()
    _atomic_write(data_path, _dump(data))
    return data_path


def _sort_key(item: dict) -> str:
    return str(item.get("date", "")) + str(item.get("startTime") or "")


def sort_dataset(data: Dataset) -> Dataset:
    """
    Chronological order for readability of the stored file.
    """
    out = dict(data)
    out["schedule"] = sorted(data.get("schedule") or [], key=_sort_key)
    out["exams"] = sorted(data.get("exams") or [], key=_sort_key)
    out["holidays"] = sorted(data.get("holidays") or [], key=lambda it: str(it.get("date", "")))
    return out


# ---------------------------------------------------------------------------
# Local override slot
# ---------------------------------------------------------------------------


def load_local_override(path: str | Path | None = None) -> Optional[Dataset]:
    """
    Return the override document, or None if there is none.

    A missing or corrupted override is treated as absent, never as fatal.
    """
    override_path = Path(path) if path is not None else default_override_path()
    if not override_path.exists():
        return None
    try:
        raw = json.loads(override_path.read_text(encoding="utf-8"))
        check_collections(raw, str(override_path))
        return coerce_dataset(raw)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, DatasetError):
        return None


def save_local_override(data: Dataset, path: str | Path | None = None) -> Path:
    override_path = Path(path) if path is not None else default_override_path()
    _atomic_write(override_path, _dump(data))
    return override_path


def clear_local_override(path: str | Path | None = None) -> bool:
    """
    Remove the override (back to repo truth). Returns True if one existed.
    """
    override_path = Path(path) if path is not None else default_override_path()
    if override_path.exists():
        override_path.unlink()
        return True
    return False


def load_effective_dataset(
    data_path: str | Path | None = None, override_path: str | Path | None = None
) -> tuple[Dataset, bool]:
    """
    Return (dataset, override_applied). The override supersedes the
    repository document as a whole when present.
    """
    override = load_local_override(override_path if override_path is not None else default_override_path(data_path))
    if override is not None:
        return override, True
    return load_dataset(data_path), False


def write_summary(summary: dict, path: str | Path) -> Path:
    out = Path(path)
    _atomic_write(out, _dump(summary))
    return out


def commit_import(data: Dataset, summary: dict, data_path: str | Path | None = None) -> Path:
    """
    Write the imported dataset (sorted) and its run summary.
    Returns the summary path.
    """
    target = Path(data_path) if data_path is not None else default_data_path()
    save_dataset(sort_dataset(data), target)
    summary_path = default_summary_dir(target) / f"{summary['source']}.json"
    return write_summary(summary, summary_path)
