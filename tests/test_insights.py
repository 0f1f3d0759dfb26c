import unittest

from gradecalc.core.bands import DEFAULT_GRADE_BANDS
from gradecalc.core.insights import grade_statistics
from gradecalc.core.models import CourseRecord


class InsightsTests(unittest.TestCase):
    def setUp(self):
        self.courses = [
            CourseRecord(id="1", name="Low", current_grade=50, target_band_label="A"),
            CourseRecord(id="2", name="Mid", current_grade=75, target_band_label="A"),
            CourseRecord(id="3", name="High", current_grade=95, target_band_label="A"),
            CourseRecord(id="4", name="Untargeted", current_grade=75, target_band_label="Z"),
        ]

    def test_summary_numbers(self):
        stats = grade_statistics(self.courses, DEFAULT_GRADE_BANDS)
        self.assertAlmostEqual(stats.mean, 73.75)
        self.assertEqual(stats.median, 75)
        self.assertEqual(stats.minimum, 50)
        self.assertEqual(stats.maximum, 95)
        self.assertEqual(stats.range, 45)

    def test_distribution_and_risk(self):
        stats = grade_statistics(self.courses, DEFAULT_GRADE_BANDS)
        self.assertEqual(stats.distribution, {"A": 1, "C": 2, "F": 1})
        self.assertEqual((stats.at_risk, stats.average, stats.excellent), (1, 2, 1))

    def test_targets_skip_unresolved_labels(self):
        stats = grade_statistics(self.courses, DEFAULT_GRADE_BANDS)
        self.assertEqual(len(stats.targets), 3)
        self.assertEqual(stats.on_track, 1)
        self.assertEqual(stats.needs_improvement, 2)
        self.assertEqual(stats.targets[0].gap, 43)

    def test_empty(self):
        self.assertIsNone(grade_statistics([], DEFAULT_GRADE_BANDS))


if __name__ == "__main__":
    unittest.main()
