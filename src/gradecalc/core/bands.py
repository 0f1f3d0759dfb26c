from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional


@dataclass(frozen=True)
class GradeBand:
    label: str
    cutoff: float
    color: str = "bg-slate-500"

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "GradeBand":
        return cls(
            label=str(data["label"]),
            cutoff=float(data["cutoff"]),
            color=str(data.get("color") or "bg-slate-500"),
        )


DEFAULT_GRADE_BANDS: List[GradeBand] = [
    GradeBand("A+", 97, "bg-emerald-500"),
    GradeBand("A", 93, "bg-emerald-400"),
    GradeBand("A−", 90, "bg-green-500"),
    GradeBand("B+", 87, "bg-green-400"),
    GradeBand("B", 83, "bg-lime-500"),
    GradeBand("B−", 80, "bg-lime-400"),
    GradeBand("C+", 77, "bg-yellow-500"),
    GradeBand("C", 73, "bg-yellow-400"),
    GradeBand("C−", 70, "bg-amber-500"),
    GradeBand("D+", 67, "bg-orange-500"),
    GradeBand("D", 63, "bg-orange-400"),
    GradeBand("D−", 60, "bg-red-400"),
    GradeBand("F", 0, "bg-red-500"),
]

GRADE_POINTS: Dict[str, float] = {
    "A+": 4.0,
    "A": 4.0,
    "A−": 3.7,
    "B+": 3.3,
    "B": 3.0,
    "B−": 2.7,
    "C+": 2.3,
    "C": 2.0,
    "C−": 1.7,
    "D+": 1.3,
    "D": 1.0,
    "D−": 0.7,
    "F": 0.0,
}


class InvalidBandsError(Exception):
    pass


def normalize_label(label: str) -> str:
    # "A-" typed on a keyboard and "A−" (U+2212) name the same band.
    return label.strip().replace("−", "-")


def sort_bands(bands: Iterable[GradeBand]) -> List[GradeBand]:
    return sorted(bands, key=lambda band: band.cutoff, reverse=True)


def find_band(label: Optional[str], bands: Iterable[GradeBand]) -> Optional[GradeBand]:
    if not label:
        return None
    wanted = normalize_label(label)
    for band in bands:
        if normalize_label(band.label) == wanted:
            return band
    return None


def current_band(grade: float, bands: Iterable[GradeBand]) -> GradeBand:
    ordered = sort_bands(bands)
    if not ordered:
        raise ValueError("At least one grade band is required")
    for band in ordered:
        if grade >= band.cutoff:
            return band
    return ordered[-1]


def grade_points(label: str) -> Optional[float]:
    wanted = normalize_label(label)
    for name, points in GRADE_POINTS.items():
        if normalize_label(name) == wanted:
            return points
    return None


def validate_bands(bands: List[GradeBand]) -> List[str]:
    """
    Returns a list of problems with a band set; an empty list means it is usable.
    The set is judged in descending cutoff order regardless of input order.
    """
    if not bands:
        return ["At least one grade band is required."]

    errors: List[str] = []
    labels = [normalize_label(band.label) for band in bands]
    if len(set(labels)) != len(labels):
        errors.append("Grade band labels must be unique.")

    cutoffs = [band.cutoff for band in bands]
    if len(set(cutoffs)) != len(cutoffs):
        errors.append("Grade band cutoffs must be unique.")

    if any(cutoff < 0 or cutoff > 100 for cutoff in cutoffs):
        errors.append("Grade band cutoffs must be between 0 and 100.")

    if sort_bands(bands)[-1].cutoff != 0:
        errors.append("The lowest grade band must have a cutoff of 0.")

    return errors


def ensure_valid_bands(bands: List[GradeBand]) -> List[GradeBand]:
    errors = validate_bands(bands)
    if errors:
        raise InvalidBandsError(" ".join(errors))
    return sort_bands(bands)
