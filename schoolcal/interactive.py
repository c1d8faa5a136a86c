"""
Interactive menu on top of the effective dataset (local override if
present, otherwise data/schedule.json).

Design rationale:
- the repository document is never modified from here; JSON imports land
  in the local override slot, "reset" removes it again
- every import is validated as a whole first, a rejected file changes nothing
- single-record add/edit/delete is checked like an import and also
  saved to the local override
- the dedupe entry only previews what `schoolcal dedupe` would remove
"""

from __future__ import annotations

import json
from collections import defaultdict
from datetime import date
from pathlib import Path
from typing import Any, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from schoolcal.classify import normalize_kind
from schoolcal.dates import parse_iso_date
from schoolcal.dedupe import dedupe_dataset
from schoolcal.edit import KIND_FIELDS, RecordNotFoundError, add_record, delete_record, edit_record, find_record
from schoolcal.model import COLLECTIONS, Dataset
from schoolcal.storage import (
    DatasetError,
    clear_local_override,
    default_override_path,
    load_effective_dataset,
    save_dataset,
    save_local_override,
)
from schoolcal.validate import DatasetValidationError, apply_document


console = Console()

WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def _println(msg: str = "") -> None:
    console.print(msg, markup=False)


def _prompt(msg: str) -> str:
    return console.input(msg)


def _s(x: Any) -> str:
    return "" if x is None else str(x)


def upcoming(data: Dataset, today: date, limit: Optional[int] = None) -> list[tuple[str, dict[str, Any]]]:
    """
    Return (collection, record) pairs dated today or later, in date/time order.
    """
    cutoff = today.isoformat()
    out: list[tuple[str, dict[str, Any]]] = []
    for name in COLLECTIONS:
        for rec in data.get(name) or []:
            if isinstance(rec, dict) and _s(rec.get("date")) >= cutoff:
                out.append((name, rec))
    out.sort(key=lambda pair: (_s(pair[1].get("date")), _s(pair[1].get("startTime"))))
    return out[:limit] if limit is not None else out


def record_line(rec: dict[str, Any]) -> str:
    start = _s(rec.get("startTime"))
    end = _s(rec.get("endTime"))
    when = f"{start}-{end}" if start and end else start
    extra = _s(rec.get("subject") or rec.get("reason") or rec.get("type"))
    parts = [p for p in (when, _s(rec.get("title")), f"({extra})" if extra else "") if p]
    return " ".join(parts)


def run_interactive(data_path: Path, today: Optional[date] = None) -> None:
    """
    Interactive menu loop. The dataset is reloaded on every round so
    imports and resets show up immediately.
    """
    override_path = default_override_path(data_path)
    while True:
        try:
            data, override_applied = load_effective_dataset(data_path, override_path)
        except DatasetError as exc:
            _println(f"Cannot load data: {exc}")
            return

        _print_header(data, override_applied)

        choice = _prompt(
            "\n[1] Agenda (upcoming)\n"
            "[2] Import JSON (replace)\n"
            "[3] Import JSON (merge)\n"
            "[4] Export JSON\n"
            "[5] Dedupe preview\n"
            "[6] Reset to repository data\n"
            "[7] Add record\n"
            "[8] Edit record\n"
            "[9] Delete record\n"
            "[0] Exit\n"
            "Select: "
        ).strip()

        if choice == "0":
            _println("Bye.")
            return

        if choice == "1":
            _flow_agenda(data, today or date.today())
        elif choice == "2":
            _flow_json_import(data, override_path, "replace")
        elif choice == "3":
            _flow_json_import(data, override_path, "merge")
        elif choice == "4":
            _flow_export(data)
        elif choice == "5":
            _flow_dedupe_preview(data)
        elif choice == "6":
            if clear_local_override(override_path):
                _println("Local override removed.")
            else:
                _println("Already using repository data.")
        elif choice == "7":
            _flow_add(data, override_path)
        elif choice == "8":
            _flow_edit(data, override_path)
        elif choice == "9":
            _flow_delete(data, override_path)
        else:
            _println("Invalid choice.")


def _print_header(data: Dataset, override_applied: bool) -> None:
    _println("\n=== schoolcal (interactive) ===")
    origin = "local override" if override_applied else "repository"
    counts = " | ".join(f"{name}={len(data.get(name) or [])}" for name in COLLECTIONS)
    _println(f"Data: {origin} | {counts}")


def _flow_agenda(data: Dataset, today: date) -> None:
    items = upcoming(data, today)
    if not items:
        _println("Nothing upcoming.")
        return

    by_date: dict[str, list[tuple[str, dict[str, Any]]]] = defaultdict(list)
    for name, rec in items:
        by_date[_s(rec.get("date"))].append((name, rec))

    table = Table(box=box.SIMPLE)
    table.add_column("Date")
    table.add_column("Kind")
    table.add_column("Entry")
    table.add_column("Id")
    for d in sorted(by_date):
        parsed = parse_iso_date(d)
        label = f"{d} ({WEEKDAYS[parsed.weekday()]})" if parsed else d
        for name, rec in by_date[d]:
            table.add_row(label, name, record_line(rec), _s(rec.get("id")))
            label = ""
    console.print(table)


def _flow_json_import(data: Dataset, override_path: Path, mode: str) -> None:
    raw_path = _prompt("Path to JSON file: ").strip()
    if not raw_path:
        return
    try:
        incoming = json.loads(Path(raw_path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        _println(f"Cannot read {raw_path}: {exc}")
        return

    try:
        updated = apply_document(data, incoming, mode=mode)
    except DatasetValidationError as exc:
        _println(f"Import rejected, nothing changed: {exc}")
        return

    save_local_override(updated, override_path)
    _println(f"Imported ({mode}) into local override.")


def _flow_export(data: Dataset) -> None:
    default_name = "schedule-export.json"
    out_in = _prompt(f"Output file, default is [{default_name}]: ").strip()
    out_path = Path(out_in or default_name)
    if out_path.suffix.lower() != ".json":
        out_path = out_path.with_suffix(".json")
    save_dataset(data, out_path)
    _println(f"Saved to: {out_path.resolve()}")


def _flow_dedupe_preview(data: Dataset) -> None:
    _, report = dedupe_dataset(data)
    removed = report.removed_counts()
    table = Table(title="Dedupe preview", box=box.SIMPLE)
    table.add_column("Collection")
    table.add_column("Before", justify="right")
    table.add_column("Would remove", justify="right")
    for name in COLLECTIONS:
        table.add_row(name, str(report.before[name]), str(removed[name]))
    console.print(table)
    if any(removed.values()):
        _println("Run `schoolcal dedupe` to apply.")


CLEAR = "-"


def _ask_fields(kind: str, current: Optional[dict[str, Any]] = None) -> dict[str, str]:
    """
    Ask for every field of `kind`. Enter keeps the shown value, "-" clears it.
    Only answered fields are returned.
    """
    answers: dict[str, str] = {}
    for key in KIND_FIELDS[kind]:
        shown = _s((current or {}).get(key))
        raw = _prompt(f"{key} [{shown}]: " if shown else f"{key}: ").strip()
        if raw == CLEAR:
            answers[key] = ""
        elif raw:
            answers[key] = raw
    return answers


def _flow_add(data: Dataset, override_path: Path) -> None:
    kind = normalize_kind(_prompt("Kind (schedule/exam/holiday): "))
    if not kind:
        _println("Unknown kind.")
        return
    try:
        updated, record = add_record(data, kind, _ask_fields(kind))
    except DatasetValidationError as exc:
        _println(f"Record rejected, nothing changed: {exc}")
        return
    save_local_override(updated, override_path)
    _println(f"Added: {record_line(record)} [{record['id']}]")


def _flow_edit(data: Dataset, override_path: Path) -> None:
    rid = _prompt("Record id: ").strip()
    found = find_record(data, rid) if rid else None
    if found is None:
        _println("No such record.")
        return
    name, idx = found
    current = data[name][idx]
    _println(f"Editing: {record_line(current)} (Enter keeps, {CLEAR} clears)")
    try:
        updated, record = edit_record(data, rid, _ask_fields(normalize_kind(name), current))
    except DatasetValidationError as exc:
        _println(f"Record rejected, nothing changed: {exc}")
        return
    save_local_override(updated, override_path)
    _println(f"Updated: {record_line(record)}")


def _flow_delete(data: Dataset, override_path: Path) -> None:
    rid = _prompt("Record id: ").strip()
    found = find_record(data, rid) if rid else None
    if found is None:
        _println("No such record.")
        return
    name, idx = found
    _println(f"Delete: {record_line(data[name][idx])}")
    if _prompt("Sure? [y/N]: ").strip().lower() not in ("y", "yes"):
        _println("Kept.")
        return
    try:
        updated, _ = delete_record(data, rid)
    except RecordNotFoundError:
        _println("No such record.")
        return
    save_local_override(updated, override_path)
    _println("Deleted.")
