"""
Unit tests for the persisted schedule document and the local override slot.

Storage contract:
- Save -> load round-trips the document unchanged
- A missing or broken schedule.json is an error
- A missing or broken override is treated as absent
"""

import json
import tempfile
import unittest
from pathlib import Path

from schoolcal.model import empty_dataset
from schoolcal.storage import (
    DatasetError,
    clear_local_override,
    commit_import,
    default_override_path,
    load_dataset,
    load_effective_dataset,
    save_dataset,
    save_local_override,
)


def _sample() -> dict:
    data = empty_dataset()
    data["schedule"] = [
        {"kind": "schedule", "id": "s2", "date": "2025-03-13", "title": "טיול", "type": "trip"},
        {"kind": "schedule", "id": "s1", "date": "2025-03-12", "title": "ישיבה", "type": "meeting", "startTime": "09:00"},
    ]
    return data


class TestDataset(unittest.TestCase):
    def test_save_and_load_roundtrip(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "data" / "schedule.json"
            save_dataset(_sample(), p)
            self.assertEqual(load_dataset(p), _sample())

            text = p.read_text(encoding="utf-8")
            self.assertTrue(text.endswith("\n"))
            self.assertIn("טיול", text)

    def test_missing_and_broken_documents(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "schedule.json"
            with self.assertRaises(DatasetError):
                load_dataset(p)
            p.write_text("{not json", encoding="utf-8")
            with self.assertRaises(DatasetError):
                load_dataset(p)
            p.write_text("[]", encoding="utf-8")
            with self.assertRaises(DatasetError):
                load_dataset(p)

    def test_missing_collections_become_empty(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "schedule.json"
            p.write_text('{"version": 1, "schedule": []}', encoding="utf-8")
            self.assertEqual(load_dataset(p), empty_dataset())

    def test_malformed_collections_are_refused(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "schedule.json"
            p.write_text(
                '{"version": 1, "schedule": {"x": {"id": "keep"}}, "exams": "oops", "holidays": []}',
                encoding="utf-8",
            )
            with self.assertRaises(DatasetError):
                load_dataset(p)

            p.write_text('{"version": 1, "schedule": [{"id": "a"}, "stray"]}', encoding="utf-8")
            with self.assertRaises(DatasetError) as ctx:
                load_dataset(p)
            self.assertIn("schedule[1]", str(ctx.exception))

    def test_commit_import_sorts_and_writes_summary(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "schedule.json"
            summary_path = commit_import(_sample(), {"source": "sheet-csv", "uncertain": []}, p)

            self.assertEqual(summary_path, Path(d) / "import-summaries" / "sheet-csv.json")
            self.assertEqual(json.loads(summary_path.read_text(encoding="utf-8"))["source"], "sheet-csv")
            self.assertEqual([s["id"] for s in load_dataset(p)["schedule"]], ["s1", "s2"])


class TestLocalOverride(unittest.TestCase):
    def test_override_supersedes_and_reset(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "schedule.json"
            save_dataset(_sample(), p)
            override = default_override_path(p)

            data, applied = load_effective_dataset(p)
            self.assertFalse(applied)

            save_local_override(empty_dataset(), override)
            data, applied = load_effective_dataset(p)
            self.assertTrue(applied)
            self.assertEqual(data, empty_dataset())

            self.assertTrue(clear_local_override(override))
            self.assertFalse(clear_local_override(override))
            data, applied = load_effective_dataset(p)
            self.assertEqual(data, _sample())

    def test_broken_override_is_ignored(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "schedule.json"
            save_dataset(_sample(), p)
            default_override_path(p).write_text("{oops", encoding="utf-8")
            data, applied = load_effective_dataset(p)
            self.assertFalse(applied)
            self.assertEqual(data, _sample())

    def test_override_with_bad_collections_is_ignored(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "schedule.json"
            save_dataset(_sample(), p)
            default_override_path(p).write_text('{"version": 1, "schedule": "oops"}', encoding="utf-8")
            data, applied = load_effective_dataset(p)
            self.assertFalse(applied)
            self.assertEqual(data, _sample())


if __name__ == "__main__":
    unittest.main()
