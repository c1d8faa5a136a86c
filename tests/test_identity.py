import unittest

from schoolcal.identity import record_id, signature, signature_table, stable_id


def _trip(title: str) -> dict:
    return {"kind": "schedule", "date": "2025-03-12", "type": "trip", "title": title}


class TestIdentity(unittest.TestCase):
    def test_stable_id_shape_and_determinism(self) -> None:
        a = stable_id("sheet", ["schedule", "2025-03-12", "Trip"])
        self.assertTrue(a.startswith("sheet-"))
        self.assertEqual(len(a), len("sheet-") + 20)
        self.assertEqual(a, stable_id("sheet", ["schedule", "2025-03-12", "Trip"]))

    def test_id_follows_exact_text(self) -> None:
        self.assertNotEqual(record_id("ev", _trip("Trip!")), record_id("ev", _trip("Trip")))

    def test_signature_ignores_cosmetic_drift(self) -> None:
        self.assertEqual(signature(_trip("Trip!")), signature(_trip("trip")))
        self.assertEqual(signature(_trip("טיול  שנתי!")), signature(_trip("טיול שנתי")))

    def test_signature_keeps_discriminators(self) -> None:
        meeting = dict(_trip("Trip"), type="meeting")
        self.assertNotEqual(signature(meeting), signature(_trip("Trip")))

    def test_unknown_kind(self) -> None:
        with self.assertRaises(ValueError):
            signature({"kind": "party", "date": "2025-03-12", "title": "x"})

    def test_signature_table_skips_unusable_records(self) -> None:
        records = [dict(_trip("Trip"), id="a"), {"kind": "party", "id": "b"}, _trip("no id")]
        self.assertEqual(list(signature_table(records)), ["a"])


if __name__ == "__main__":
    unittest.main()
