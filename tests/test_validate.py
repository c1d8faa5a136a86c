import copy
import unittest

from schoolcal.validate import DatasetValidationError, apply_document, is_valid_dataset, validate_dataset


def _doc(**schedule_fields) -> dict:
    item = {
        "kind": "schedule",
        "id": "s1",
        "date": "2025-03-12",
        "title": "ישיבת צוות",
        "type": "meeting",
        "startTime": "09:00",
        "endTime": "10:00",
    }
    item.update(schedule_fields)
    return {"version": 1, "schedule": [item], "exams": [], "holidays": []}


class TestValidate(unittest.TestCase):
    def test_valid_document(self) -> None:
        self.assertTrue(is_valid_dataset(_doc()))

    def test_end_before_start_is_rejected(self) -> None:
        with self.assertRaises(DatasetValidationError) as ctx:
            validate_dataset(_doc(startTime="10:00", endTime="09:00"))
        self.assertIn("schedule[0]", str(ctx.exception))

    def test_structural_problems(self) -> None:
        self.assertFalse(is_valid_dataset([]))
        self.assertFalse(is_valid_dataset(dict(_doc(), version=2)))
        self.assertFalse(is_valid_dataset(dict(_doc(), exams=None)))
        self.assertFalse(is_valid_dataset(_doc(type="party")))
        self.assertFalse(is_valid_dataset(_doc(date="12/3/2025")))
        self.assertFalse(is_valid_dataset(_doc(startTime="9:00")))

    def test_duplicate_ids_are_rejected(self) -> None:
        doc = _doc()
        doc["schedule"].append(dict(doc["schedule"][0], title="other"))
        with self.assertRaises(DatasetValidationError) as ctx:
            validate_dataset(doc)
        self.assertIn("duplicate id 's1'", str(ctx.exception))

        # the same id in different collections is allowed
        doc = _doc()
        doc["holidays"] = [{"kind": "holiday", "id": "s1", "date": "2025-03-20", "title": "פסח", "reason": "חג"}]
        self.assertTrue(is_valid_dataset(doc))

    def test_exam_needs_subject(self) -> None:
        doc = _doc()
        doc["exams"] = [{"kind": "exam", "id": "e1", "date": "2025-03-14", "title": "מבחן"}]
        self.assertFalse(is_valid_dataset(doc))


class TestApplyDocument(unittest.TestCase):
    def test_merge_by_id_incoming_wins(self) -> None:
        current = _doc()
        current["schedule"].append(dict(current["schedule"][0], id="s2", title="old"))
        incoming = _doc(id="s2", title="new")
        before = copy.deepcopy(current)

        out = apply_document(current, incoming, mode="merge")

        self.assertEqual([s["id"] for s in out["schedule"]], ["s1", "s2"])
        self.assertEqual(out["schedule"][1]["title"], "new")
        self.assertEqual(current, before)

    def test_replace(self) -> None:
        incoming = _doc(id="other")
        out = apply_document(_doc(), incoming, mode="replace")
        self.assertEqual(out, incoming)
        self.assertIsNot(out, incoming)

    def test_invalid_incoming_is_rejected(self) -> None:
        with self.assertRaises(DatasetValidationError):
            apply_document(_doc(), _doc(startTime="10:00", endTime="09:00"), mode="merge")

    def test_duplicate_ids_in_replace_are_rejected(self) -> None:
        incoming = _doc(id="a")
        incoming["schedule"].append(dict(incoming["schedule"][0], title="other"))
        current = _doc()
        with self.assertRaises(DatasetValidationError):
            apply_document(current, incoming, mode="replace")
        self.assertEqual(current, _doc())

    def test_unknown_mode(self) -> None:
        with self.assertRaises(ValueError):
            apply_document(_doc(), _doc(), mode="append")


if __name__ == "__main__":
    unittest.main()
