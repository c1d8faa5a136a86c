"""
Tests for reconciliation of import candidates into a dataset.

These tests focus on:
- Past-date exclusion relative to the run's "today"
- Notes are merged as a union of lines, never overwritten
- Signature matching absorbs cosmetic drift, id matching is exact
- Inputs are never modified
"""

import copy
import unittest
from datetime import date

from schoolcal.candidates import candidate_from_text
from schoolcal.dates import DateHit
from schoolcal.model import Candidate, Extraction, empty_dataset
from schoolcal.reconcile import ImportTally, merge_notes, reconcile, run_import, upsert


TODAY = date(2025, 3, 10)


def _cand(text: str, day: str = "2025-03-12", notes: str = "") -> Candidate:
    return candidate_from_text(text, DateHit(day, False), prefix="ev", notes=notes or None)


def _tally() -> ImportTally:
    return ImportTally(source="test", today=TODAY.isoformat())


class TestMergeNotes(unittest.TestCase):
    def test_union_in_first_seen_order(self) -> None:
        self.assertEqual(merge_notes("a\nb", "b\nc", None), "a\nb\nc")

    def test_nothing_left(self) -> None:
        self.assertIsNone(merge_notes(None, "", "  \n "))


class TestReconcile(unittest.TestCase):
    def test_past_dates_are_skipped(self) -> None:
        cands = [_cand("טיול שנתי", "2025-03-09"), _cand("טיול שנתי", "2025-03-10")]
        out, tally = reconcile(empty_dataset(), cands, key="id", today=TODAY, tally=_tally())
        self.assertEqual([r["date"] for r in out["schedule"]], ["2025-03-10"])
        self.assertEqual(tally.added["schedule"], 1)

    def test_same_id_merges_and_notes_are_unioned(self) -> None:
        data, _ = reconcile(empty_dataset(), [_cand("טיול שנתי", notes="a")], key="id", today=TODAY, tally=_tally())
        data, tally = reconcile(data, [_cand("טיול שנתי", notes="b")], key="id", today=TODAY, tally=_tally())
        self.assertEqual(len(data["schedule"]), 1)
        self.assertEqual(data["schedule"][0]["notes"], "a\nb")
        self.assertEqual(tally.merged["schedule"], 1)

        # merging a note that is already there changes nothing
        again, _ = reconcile(data, [_cand("טיול שנתי", notes="a")], key="id", today=TODAY, tally=_tally())
        self.assertEqual(again, data)

    def test_signature_matching_absorbs_drift(self) -> None:
        first = _cand("טיול שנתי!")
        data, _ = reconcile(empty_dataset(), [first], key="signature", today=TODAY, tally=_tally())

        second = _cand("טיול  שנתי")
        self.assertNotEqual(first.record["id"], second.record["id"])
        data, tally = reconcile(data, [second], key="signature", today=TODAY, tally=_tally())

        self.assertEqual(len(data["schedule"]), 1)
        self.assertEqual(data["schedule"][0]["id"], first.record["id"])
        self.assertEqual(tally.added["schedule"], 0)
        self.assertEqual(tally.merged["schedule"], 1)

    def test_id_matching_does_not_use_signatures(self) -> None:
        data, _ = reconcile(empty_dataset(), [_cand("טיול שנתי!")], key="id", today=TODAY, tally=_tally())
        data, _ = reconcile(data, [_cand("טיול שנתי")], key="id", today=TODAY, tally=_tally())
        self.assertEqual(len(data["schedule"]), 2)

    def test_inputs_are_not_modified(self) -> None:
        data = empty_dataset()
        tally = _tally()
        before = copy.deepcopy(data)
        reconcile(data, [_cand("טיול שנתי")], key="id", today=TODAY, tally=tally)
        self.assertEqual(data, before)
        self.assertEqual(tally.added["schedule"], 0)

    def test_uncertain_reasons_are_audited(self) -> None:
        cand = candidate_from_text("מבחן", DateHit("2025-03-12", True), prefix="ev")
        _, tally = reconcile(empty_dataset(), [cand], key="id", today=TODAY, tally=_tally())
        reasons = sorted(e["reason"] for e in tally.uncertain)
        self.assertEqual(reasons, ["date-inferred-year", "exam-missing-subject"])
        self.assertEqual(tally.uncertain_count, 2)

    def test_invalid_date_is_logged_not_added(self) -> None:
        bad = Candidate(record={"kind": "schedule", "id": "x", "date": "2025-02-30", "title": "t", "type": "trip"})
        out, tally = reconcile(empty_dataset(), [bad], key="id", today=TODAY, tally=_tally())
        self.assertEqual(out["schedule"], [])
        self.assertEqual(tally.uncertain[0]["reason"], "invalid-date")

    def test_kinds_go_to_their_collection(self) -> None:
        cands = [_cand("מבחן במתמטיקה"), _cand("חופשת פסח"), _cand("ישיבת צוות")]
        out, _ = reconcile(empty_dataset(), cands, key="id", today=TODAY, tally=_tally())
        self.assertEqual(out["exams"][0]["subject"], "מתמטיקה")
        self.assertEqual(out["holidays"][0]["reason"], "פסח")
        self.assertEqual(out["schedule"][0]["type"], "meeting")


class TestUpsertAndTally(unittest.TestCase):
    def test_signature_key_needs_table(self) -> None:
        with self.assertRaises(ValueError):
            upsert(empty_dataset(), _cand("x"), key="signature")
        with self.assertRaises(ValueError):
            upsert(empty_dataset(), _cand("x"), key="title")

    def test_sample_is_bounded_but_count_is_not(self) -> None:
        tally = ImportTally(source="test", today="2025-03-10", sample_limit=2)
        for i in range(3):
            tally.record_issue("row-unparsed", f"row {i}")
        self.assertEqual(tally.uncertain_count, 3)
        self.assertEqual(len(tally.uncertain), 2)

    def test_run_import_logs_extraction_issues(self) -> None:
        extraction = Extraction(
            candidates=[_cand("טיול שנתי")],
            issues=[{"reason": "table-row-unparsed", "text": "| 40/3 |"}],
        )
        _, tally = run_import(empty_dataset(), extraction, source="word-docx", key="id", today=TODAY)
        summary = tally.to_summary()
        self.assertEqual(summary["source"], "word-docx")
        self.assertEqual(summary["added"], {"schedule": 1, "exams": 0, "holidays": 0})
        self.assertEqual(summary["uncertain"][0]["source"], "word-docx")


if __name__ == "__main__":
    unittest.main()
