from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from gradecalc.core.bands import GradeBand, current_band, find_band, sort_bands
from gradecalc.core.models import CourseRecord
from gradecalc.core.projection import (
    clamp_0_100,
    display_required,
    project_final_grade,
    required_final_score,
)

EASY = "Easy"
MODERATE = "Moderate"
HARD = "Hard"
VERY_HARD = "VeryHard"

HIGH_RISK = "HighRisk"
MEDIUM_RISK = "MediumRisk"
LOW_RISK = "LowRisk"

STATUS_UNKNOWN = "unknown"
STATUS_ACHIEVED = "achieved"
STATUS_IMPOSSIBLE = "impossible"
STATUS_LIKELY = "likely"
STATUS_CHALLENGING = "challenging"

IMPROVEMENT_STEPS = (5, 10, 15, 20)
RISK_FINAL_SCORES = (0, 30, 50, 70)


@dataclass(frozen=True)
class TargetRequirement:
    band: GradeBand
    required_raw: float
    required_clamped: float
    achievable: bool
    already_achieved: bool

    @property
    def display_required(self) -> float:
        return display_required(self.required_raw)


@dataclass(frozen=True)
class BandRequirement:
    band: GradeBand
    required: float


@dataclass(frozen=True)
class Scenario:
    kind: str
    description: str
    final_score: float
    projected_grade: float
    band: GradeBand
    risk: str
    required_score: Optional[float] = None
    achievable: Optional[bool] = None
    difficulty: Optional[str] = None


def difficulty_label(required_score: float) -> str:
    if required_score > 95:
        return VERY_HARD
    if required_score > 85:
        return HARD
    if required_score > 70:
        return MODERATE
    return EASY


def risk_label(final_grade: float) -> str:
    if final_grade < 60:
        return HIGH_RISK
    if final_grade < 70:
        return MEDIUM_RISK
    return LOW_RISK


def target_requirement(
    course: CourseRecord,
    bands: Sequence[GradeBand],
    round_to_whole: bool = False,
) -> Optional[TargetRequirement]:
    """
    Requirement for the course's target band, or None when the target label
    does not name a band ("no target", which is not the same as impossible).
    """
    band = find_band(course.target_band_label, bands)
    if band is None:
        return None

    required_raw = required_final_score(course.current_grade, course.final_weight, band.cutoff, round_to_whole)
    return TargetRequirement(
        band=band,
        required_raw=required_raw,
        required_clamped=clamp_0_100(required_raw),
        achievable=required_raw <= 100,
        already_achieved=course.current_grade >= band.cutoff,
    )


def achievable_grades(
    course: CourseRecord,
    bands: Sequence[GradeBand],
    round_to_whole: bool = False,
) -> List[BandRequirement]:
    rows: List[BandRequirement] = []
    for band in sort_bands(bands):
        required = required_final_score(course.current_grade, course.final_weight, band.cutoff, round_to_whole)
        if required <= 100:
            rows.append(BandRequirement(band=band, required=max(0.0, required)))
    return rows


def grade_status(
    course: CourseRecord,
    bands: Sequence[GradeBand],
    round_to_whole: bool = False,
) -> str:
    requirement = target_requirement(course, bands, round_to_whole)
    if requirement is None:
        return STATUS_UNKNOWN
    if requirement.already_achieved:
        return STATUS_ACHIEVED
    if requirement.required_raw > 100:
        return STATUS_IMPOSSIBLE
    if requirement.required_raw <= 90:
        return STATUS_LIKELY
    return STATUS_CHALLENGING


def _projected_scenario(
    kind: str,
    description: str,
    current_grade: float,
    final_weight: float,
    final_score: float,
    bands: Sequence[GradeBand],
) -> Scenario:
    projected = project_final_grade(current_grade, final_weight, final_score)
    return Scenario(
        kind=kind,
        description=description,
        final_score=final_score,
        projected_grade=projected,
        band=current_band(projected, bands),
        risk=risk_label(projected),
    )


def _requirement_scenario(
    kind: str,
    description: str,
    current_grade: float,
    final_weight: float,
    goal: float,
    final_score: float,
    bands: Sequence[GradeBand],
) -> Scenario:
    required = required_final_score(current_grade, final_weight, goal)
    scenario = _projected_scenario(kind, description, current_grade, final_weight, final_score, bands)
    return replace(
        scenario,
        required_score=clamp_0_100(required),
        achievable=required <= 100,
        difficulty=difficulty_label(required),
    )


def what_if_scenarios(
    course: CourseRecord,
    bands: Sequence[GradeBand],
    kind: str = "target",
    final_score: float = 85.0,
    current_adjustment: float = 0.0,
    target_label: Optional[str] = None,
) -> List[Scenario]:
    """
    kind:
      target      - requirement for target_label (defaults to the course target)
      improvement - final score needed to finish 5/10/15/20 points above the
                    current grade, with the projection at final_score
      risk        - projections for final scores of 0, 30, 50 and 70
    """
    current = course.current_grade + current_adjustment
    weight = course.final_weight

    if kind == "target":
        band = find_band(target_label or course.target_band_label, bands)
        if band is None:
            return []
        return [
            _requirement_scenario(
                kind,
                f"To achieve {band.label} ({band.cutoff:g}%+)",
                current,
                weight,
                band.cutoff,
                final_score,
                bands,
            )
        ]

    if kind == "improvement":
        return [
            _requirement_scenario(
                kind,
                f"Improve by {step} points to {current + step:g}%",
                current,
                weight,
                current + step,
                final_score,
                bands,
            )
            for step in IMPROVEMENT_STEPS
        ]

    if kind == "risk":
        scenarios = []
        for score in RISK_FINAL_SCORES:
            scenario = _projected_scenario(kind, f"If you score {score}% on the final", current, weight, score, bands)
            scenarios.append(replace(scenario, required_score=float(score), achievable=True))
        return scenarios

    raise ValueError(f"Unsupported scenario kind: {kind}. Use target, improvement, or risk.")
