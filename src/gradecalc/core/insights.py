import statistics
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from gradecalc.core.bands import GradeBand, current_band, find_band, sort_bands
from gradecalc.core.models import CourseRecord

AT_RISK_BELOW = 70
EXCELLENT_FROM = 90


@dataclass(frozen=True)
class TargetGap:
    course_id: str
    target: GradeBand
    current: GradeBand
    on_track: bool
    gap: float


@dataclass
class GradeStatistics:
    mean: float
    median: float
    standard_deviation: float
    minimum: float
    maximum: float
    distribution: Dict[str, int] = field(default_factory=dict)
    at_risk: int = 0
    excellent: int = 0
    average: int = 0
    targets: List[TargetGap] = field(default_factory=list)

    @property
    def range(self) -> float:
        return self.maximum - self.minimum

    @property
    def on_track(self) -> int:
        return sum(1 for target in self.targets if target.on_track)

    @property
    def needs_improvement(self) -> int:
        return sum(1 for target in self.targets if not target.on_track)


def grade_statistics(courses: Sequence[CourseRecord], bands: Sequence[GradeBand]) -> Optional[GradeStatistics]:
    if not courses:
        return None

    grades = [course.current_grade for course in courses]
    distribution: Dict[str, int] = {}
    for band in sort_bands(bands):
        count = sum(1 for grade in grades if current_band(grade, bands) == band)
        if count:
            distribution[band.label] = count

    targets: List[TargetGap] = []
    for course in courses:
        target = find_band(course.target_band_label, bands)
        if target is None:
            continue
        targets.append(
            TargetGap(
                course_id=course.id,
                target=target,
                current=current_band(course.current_grade, bands),
                on_track=course.current_grade >= target.cutoff,
                gap=max(0.0, target.cutoff - course.current_grade),
            )
        )

    return GradeStatistics(
        mean=statistics.fmean(grades),
        median=statistics.median(grades),
        standard_deviation=statistics.pstdev(grades),
        minimum=min(grades),
        maximum=max(grades),
        distribution=distribution,
        at_risk=sum(1 for grade in grades if grade < AT_RISK_BELOW),
        excellent=sum(1 for grade in grades if grade >= EXCELLENT_FROM),
        average=sum(1 for grade in grades if AT_RISK_BELOW <= grade < EXCELLENT_FROM),
        targets=targets,
    )
