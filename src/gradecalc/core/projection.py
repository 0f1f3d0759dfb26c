import math

ROUNDING_COMPENSATION = 0.5


def clamp_0_100(value: float) -> float:
    return max(0.0, min(100.0, value))


def project_final_grade(current_grade: float, final_weight: float, hypothetical_score: float) -> float:
    """
    Final grade = current * (1 - w) + final_score * w, with w = final_weight / 100.
    Inputs are not clamped here; callers clamp at the edit boundary.
    """
    w = final_weight / 100
    return current_grade * (1 - w) + hypothetical_score * w


def required_final_score(
    current_grade: float,
    final_weight: float,
    target_cutoff: float,
    round_to_whole: bool = False,
) -> float:
    """
    Minimum final-exam score for the final grade to reach target_cutoff.

    Returns math.inf when the final carries no weight. With round_to_whole the
    cutoff is lowered by a flat 0.5 before solving, independent of the weight.
    The result is not clamped: > 100 means impossible, <= 0 means already there.
    """
    w = final_weight / 100
    if w <= 0:
        return math.inf

    adjusted_cutoff = target_cutoff - ROUNDING_COMPENSATION if round_to_whole else target_cutoff
    return (adjusted_cutoff - (1 - w) * current_grade) / w


def display_required(required_raw: float) -> float:
    # Table value: clamp, then round up to the next hundredth.
    return math.ceil(clamp_0_100(required_raw) * 100) / 100


def format_grade(grade: float, decimal_places: int = 2) -> str:
    return f"{grade:.{decimal_places}f}"


def format_final_grade(grade: float, round_to_whole: bool, decimal_places: int = 2) -> str:
    if round_to_whole:
        # Half-up, not banker's rounding.
        return str(math.floor(grade + 0.5))
    return format_grade(grade, decimal_places)
