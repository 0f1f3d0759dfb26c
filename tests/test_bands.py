import unittest

from gradecalc.core.bands import (
    DEFAULT_GRADE_BANDS,
    GradeBand,
    InvalidBandsError,
    current_band,
    ensure_valid_bands,
    find_band,
    grade_points,
    validate_bands,
)

SIMPLE_BANDS = [GradeBand("A", 93), GradeBand("B", 80), GradeBand("F", 0)]


class BandLookupTests(unittest.TestCase):
    def test_current_band(self):
        self.assertEqual(current_band(-5, SIMPLE_BANDS).label, "F")
        self.assertEqual(current_band(100, SIMPLE_BANDS).label, "A")
        self.assertEqual(current_band(85, SIMPLE_BANDS).label, "B")

    def test_cutoff_is_inclusive(self):
        self.assertEqual(current_band(93, SIMPLE_BANDS).label, "A")
        self.assertEqual(current_band(92.99, SIMPLE_BANDS).label, "B")

    def test_unsorted_bands(self):
        shuffled = [SIMPLE_BANDS[2], SIMPLE_BANDS[0], SIMPLE_BANDS[1]]
        self.assertEqual(current_band(85, shuffled).label, "B")

    def test_falls_back_to_lowest_band_without_floor(self):
        bands = [GradeBand("Pass", 50), GradeBand("Low", 20)]
        self.assertEqual(current_band(10, bands).label, "Low")

    def test_empty_band_list(self):
        with self.assertRaises(ValueError):
            current_band(50, [])

    def test_default_table(self):
        self.assertEqual(current_band(85.75, DEFAULT_GRADE_BANDS).label, "B")
        self.assertEqual(current_band(92.5, DEFAULT_GRADE_BANDS).label, "A−")
        self.assertEqual(current_band(59.99, DEFAULT_GRADE_BANDS).label, "F")

    def test_find_band_accepts_ascii_hyphen(self):
        self.assertEqual(find_band("A-", DEFAULT_GRADE_BANDS).cutoff, 90)
        self.assertEqual(find_band("A−", DEFAULT_GRADE_BANDS).cutoff, 90)
        self.assertIsNone(find_band("Z", DEFAULT_GRADE_BANDS))
        self.assertIsNone(find_band("", DEFAULT_GRADE_BANDS))

    def test_grade_points(self):
        self.assertEqual(grade_points("A+"), 4.0)
        self.assertEqual(grade_points("B-"), 2.7)
        self.assertIsNone(grade_points("Distinction"))


class BandValidationTests(unittest.TestCase):
    def test_default_table_is_valid(self):
        self.assertEqual(validate_bands(DEFAULT_GRADE_BANDS), [])

    def test_reports_each_problem(self):
        bands = [GradeBand("A", 90), GradeBand("A", 90), GradeBand("X", 120), GradeBand("F", 10)]
        errors = validate_bands(bands)
        self.assertEqual(len(errors), 4)

    def test_lowest_band_must_be_zero(self):
        errors = validate_bands([GradeBand("Pass", 50), GradeBand("Fail", 1)])
        self.assertEqual(errors, ["The lowest grade band must have a cutoff of 0."])

    def test_empty_set(self):
        self.assertEqual(len(validate_bands([])), 1)

    def test_ensure_valid_sorts(self):
        ordered = ensure_valid_bands([GradeBand("F", 0), GradeBand("P", 50)])
        self.assertEqual([band.label for band in ordered], ["P", "F"])

    def test_ensure_valid_raises(self):
        with self.assertRaises(InvalidBandsError):
            ensure_valid_bands([GradeBand("P", 50)])


if __name__ == "__main__":
    unittest.main()
