"""
CLI (Command Line Interface).

This module provides the maintenance commands for data/schedule.json, e.g.:

    schoolcal import-csv <sheet.csv>
    schoolcal import-xlsx <planner.xlsx> [--year 2025]
    schoolcal import-docx <calendar.docx> [--year 2026]
    schoolcal dedupe
    schoolcal validate [file.json]
    schoolcal json-import <file.json> [--mode replace|merge]
    schoolcal add <kind> field=value ...
    schoolcal edit <id> field=value ...
    schoolcal delete <id>
    schoolcal export <out.json>
    schoolcal reset
    schoolcal interactive

Note:
- Every command works on --data (default: data/schedule.json)
- json-import, add/edit/delete, export and reset work on the local
  override slot next to it;
  the importers and dedupe rewrite the repository document itself
- Structural problems (missing or broken files, bad --year) exit with 1
  before anything is written
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import date
from pathlib import Path
from typing import Any, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from schoolcal.dates import parse_iso_date
from schoolcal.dedupe import dedupe_dataset
from schoolcal.edit import RecordNotFoundError, add_record, delete_record, edit_record, parse_assignments
from schoolcal.import_csv import import_csv
from schoolcal.import_docx import import_docx, parse_default_year
from schoolcal.import_xlsx import import_xlsx
from schoolcal.model import COLLECTIONS, SourceError
from schoolcal.reconcile import ImportTally
from schoolcal.storage import (
    DatasetError,
    clear_local_override,
    default_data_path,
    default_override_path,
    default_summary_dir,
    load_dataset,
    load_effective_dataset,
    save_dataset,
    save_local_override,
)
from schoolcal.validate import IMPORT_MODES, DatasetValidationError, apply_document, validate_dataset


console = Console()


def _err(msg: str) -> None:
    print(msg, file=sys.stderr)


def _read_json_file(path: Path) -> Any:
    """
    Load JSON from a file. Unlike the override slot, a broken file named on
    the command line is an error.
    """
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise DatasetError(f"file not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise DatasetError(f"cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise DatasetError(f"{path} is not valid JSON: {exc}") from exc


def _today(args: argparse.Namespace) -> date:
    raw = (getattr(args, "today", None) or "").strip()
    if not raw:
        return date.today()
    parsed = parse_iso_date(raw)
    if parsed is None:
        raise SourceError(f"--today must be YYYY-MM-DD, got {raw!r}")
    return parsed


def _print_import_summary(tally: ImportTally, data_path: Path) -> None:
    table = Table(title=f"Import summary ({tally.source}, from {tally.today})", box=box.SIMPLE)
    table.add_column("Collection")
    table.add_column("Added", justify="right")
    table.add_column("Merged", justify="right")
    for name in COLLECTIONS:
        table.add_row(name, str(tally.added[name]), str(tally.merged[name]))
    console.print(table)

    console.print(f"Uncertain rows: {tally.uncertain_count}")
    console.print(f"Updated: {data_path}")
    console.print(f"Wrote: {default_summary_dir(data_path) / (tally.source + '.json')}")


def _cmd_import_csv(args: argparse.Namespace, data_path: Path) -> int:
    tally = import_csv(Path(args.csv), data_path, today=_today(args))
    _print_import_summary(tally, data_path)
    return 0


def _cmd_import_xlsx(args: argparse.Namespace, data_path: Path) -> int:
    start_year = parse_default_year(args.year)
    tally = import_xlsx(Path(args.xlsx), data_path, today=_today(args), start_year=start_year)
    _print_import_summary(tally, data_path)
    return 0


def _cmd_import_docx(args: argparse.Namespace, data_path: Path) -> int:
    default_year = parse_default_year(args.year)
    tally = import_docx(Path(args.docx), data_path, today=_today(args), default_year=default_year)
    _print_import_summary(tally, data_path)
    return 0


def _cmd_dedupe(args: argparse.Namespace, data_path: Path) -> int:
    """
    Deduplicate all three collections of the repository document in place.
    """
    data = load_dataset(data_path)
    cleaned, report = dedupe_dataset(data)
    save_dataset(cleaned, data_path)

    removed = report.removed_counts()
    table = Table(title="dedupe-schedule", box=box.SIMPLE)
    table.add_column("Collection")
    table.add_column("Before", justify="right")
    table.add_column("After", justify="right")
    table.add_column("Removed", justify="right")
    for name in COLLECTIONS:
        table.add_row(name, str(report.before[name]), str(report.after[name]), str(removed[name]))
    console.print(table)
    return 0


def _cmd_validate(args: argparse.Namespace, data_path: Path) -> int:
    target = Path(args.file) if args.file else data_path
    try:
        validate_dataset(_read_json_file(target))
    except DatasetValidationError as exc:
        _err(f"Invalid document {target}: {exc}")
        return 1
    print(f"OK: {target}")
    return 0


def _cmd_json_import(args: argparse.Namespace, data_path: Path) -> int:
    """
    Validate a whole document and store it in the local override slot,
    either replacing the current data or merged into it by id.
    """
    incoming = _read_json_file(Path(args.file))
    current, _ = load_effective_dataset(data_path)
    try:
        updated = apply_document(current, incoming, mode=args.mode)
    except DatasetValidationError as exc:
        _err(f"Import rejected, nothing changed: {exc}")
        return 1

    out = save_local_override(updated, default_override_path(data_path))
    print(f"Imported ({args.mode}) into local override: {out}")
    return 0


def _cmd_add(args: argparse.Namespace, data_path: Path) -> int:
    current, _ = load_effective_dataset(data_path)
    try:
        updated, record = add_record(current, args.kind, parse_assignments(args.fields))
    except DatasetValidationError as exc:
        _err(f"Record rejected, nothing changed: {exc}")
        return 1
    save_local_override(updated, default_override_path(data_path))
    print(f"Added {record['kind']} {record['id']} to local override.")
    return 0


def _cmd_edit(args: argparse.Namespace, data_path: Path) -> int:
    current, _ = load_effective_dataset(data_path)
    try:
        updated, record = edit_record(current, args.id, parse_assignments(args.fields))
    except RecordNotFoundError:
        _err(f"No record with id {args.id!r}")
        return 1
    except DatasetValidationError as exc:
        _err(f"Record rejected, nothing changed: {exc}")
        return 1
    save_local_override(updated, default_override_path(data_path))
    print(f"Updated {record['kind']} {record['id']} in local override.")
    return 0


def _cmd_delete(args: argparse.Namespace, data_path: Path) -> int:
    current, _ = load_effective_dataset(data_path)
    try:
        updated, record = delete_record(current, args.id)
    except RecordNotFoundError:
        _err(f"No record with id {args.id!r}")
        return 1
    save_local_override(updated, default_override_path(data_path))
    print(f"Deleted {record.get('kind')} {record['id']} ({record.get('title', '')}) from local override.")
    return 0


def _cmd_export(args: argparse.Namespace, data_path: Path) -> int:
    data, override_applied = load_effective_dataset(data_path)
    out = save_dataset(data, Path(args.out))
    origin = "local override" if override_applied else "repository"
    print(f"Exported {origin} data to: {out}")
    return 0


def _cmd_reset(args: argparse.Namespace, data_path: Path) -> int:
    if clear_local_override(default_override_path(data_path)):
        print("Local override removed; using repository data.")
    else:
        print("No local override; already using repository data.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="schoolcal", description="School calendar import & maintenance")
    parser.add_argument(
        "--data", type=str, default=None, help="Path to schedule.json (default: data/schedule.json)"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_csv = sub.add_parser("import-csv", help="Import rows from a CSV export of the planning sheet")
    p_csv.add_argument("csv", type=str, help="Path to the CSV file")
    p_csv.add_argument("--today", type=str, default="", help="Treat this date (YYYY-MM-DD) as today")

    p_xlsx = sub.add_parser("import-xlsx", help="Import the monthly planning workbook")
    p_xlsx.add_argument("xlsx", type=str, help="Path to the .xlsx workbook")
    p_xlsx.add_argument("--year", type=str, default="", help="School year start (YYYY), e.g. 2025 for 2025/26")
    p_xlsx.add_argument("--today", type=str, default="", help="Treat this date (YYYY-MM-DD) as today")

    p_docx = sub.add_parser("import-docx", help="Import a Word document (.docx or exported .html)")
    p_docx.add_argument("docx", type=str, help="Path to the document")
    p_docx.add_argument("--year", type=str, default="", help="Year (YYYY) for dates written without one")
    p_docx.add_argument("--today", type=str, default="", help="Treat this date (YYYY-MM-DD) as today")

    sub.add_parser("dedupe", help="Remove near-duplicate records from schedule.json")

    p_validate = sub.add_parser("validate", help="Validate a schedule document")
    p_validate.add_argument("file", type=str, nargs="?", default="", help="Document to check (default: --data)")

    p_import = sub.add_parser("json-import", help="Import a JSON document into the local override")
    p_import.add_argument("file", type=str, help="JSON document")
    p_import.add_argument("--mode", choices=IMPORT_MODES, default="replace")

    p_add = sub.add_parser("add", help="Add one record to the local override")
    p_add.add_argument("kind", type=str, help="schedule, exam or holiday")
    p_add.add_argument(
        "fields", nargs="*", metavar="FIELD=VALUE", help="e.g. date=2026-03-12 title=\"Parents evening\""
    )

    p_edit = sub.add_parser("edit", help="Change fields of one record (empty value clears a field)")
    p_edit.add_argument("id", type=str, help="Record id")
    p_edit.add_argument("fields", nargs="+", metavar="FIELD=VALUE")

    p_delete = sub.add_parser("delete", help="Remove one record from the local override")
    p_delete.add_argument("id", type=str, help="Record id")

    p_export = sub.add_parser("export", help="Write the effective data (override or repository) to a file")
    p_export.add_argument("out", type=str, help="Output .json path")

    sub.add_parser("reset", help="Drop the local override and go back to repository data")
    sub.add_parser("interactive", help="Interactive menu mode")

    return parser


HANDLERS = {
    "import-csv": _cmd_import_csv,
    "import-xlsx": _cmd_import_xlsx,
    "import-docx": _cmd_import_docx,
    "dedupe": _cmd_dedupe,
    "validate": _cmd_validate,
    "json-import": _cmd_json_import,
    "add": _cmd_add,
    "edit": _cmd_edit,
    "delete": _cmd_delete,
    "export": _cmd_export,
    "reset": _cmd_reset,
}


def main(argv: Optional[list[str]] = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    data_path = Path(args.data) if args.data else default_data_path()

    if args.command == "interactive":
        from schoolcal.interactive import run_interactive

        run_interactive(data_path)
        raise SystemExit(0)

    handler = HANDLERS.get(args.command)
    if handler is None:
        raise SystemExit(2)

    try:
        code = handler(args, data_path)
    except (DatasetError, SourceError) as exc:
        _err(f"Error: {exc}")
        raise SystemExit(1)
    raise SystemExit(code)
