from typing import Iterable, Sequence

from gradecalc.core.bands import GradeBand, current_band, grade_points
from gradecalc.core.models import CourseRecord


def calculate_gpa(
    courses: Iterable[CourseRecord],
    bands: Sequence[GradeBand],
    *,
    use_credits: bool = False,
    round_to: int = 2,
) -> float:
    """
    GPA on a 4.0 scale from each course's current band.
    Simple:   Σ(points) / n
    Credits:  Σ(credits * points) / Σ(credits), courses without credits skipped
    Courses whose band has no grade points (custom labels) are skipped.
    """
    weighted_sum = 0.0
    total = 0.0

    for course in courses:
        points = grade_points(current_band(course.current_grade, bands).label)
        if points is None:
            continue
        if use_credits:
            if not course.credits:
                continue
            weighted_sum += points * course.credits
            total += course.credits
        else:
            weighted_sum += points
            total += 1

    if total == 0:
        return 0.0

    return round(weighted_sum / total, round_to)
