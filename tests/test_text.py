import unittest

from schoolcal.text import normalize_key, normalize_whitespace, split_lines


class TestNormalizeWhitespace(unittest.TestCase):
    def test_collapses_spaces_tabs_and_nbsp(self) -> None:
        self.assertEqual(normalize_whitespace("  a  b\t\t c "), "a b c")

    def test_none_is_empty(self) -> None:
        self.assertEqual(normalize_whitespace(None), "")

    def test_keeps_case_and_punctuation(self) -> None:
        self.assertEqual(normalize_whitespace("Trip!  (Grade 7)"), "Trip! (Grade 7)")


class TestNormalizeKey(unittest.TestCase):
    def test_punctuation_and_case_do_not_matter(self) -> None:
        self.assertEqual(normalize_key("Trip!"), normalize_key("trip"))
        self.assertEqual(normalize_key("טיול  שנתי!"), "טיול שנתי")

    def test_hebrew_quote_marks_removed(self) -> None:
        self.assertEqual(normalize_key('ט"ו בשבט'), "טו בשבט")
        self.assertEqual(normalize_key("ט״ו בשבט"), "טו בשבט")

    def test_idempotent(self) -> None:
        for raw in ("  Grade-7: Trip!! ", "ישיבת צוות (חדר 3)", ""):
            once = normalize_key(raw)
            self.assertEqual(normalize_key(once), once)


class TestSplitLines(unittest.TestCase):
    def test_drops_blank_lines(self) -> None:
        self.assertEqual(split_lines("a\r\n\n  b  \n"), ["a", "b"])


if __name__ == "__main__":
    unittest.main()
