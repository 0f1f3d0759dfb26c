from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from gradecalc.core.bands import DEFAULT_GRADE_BANDS, GradeBand

GRADING_SYSTEMS = ("letter", "percentage", "gpa")
COURSE_SOURCES = ("manual", "canvas")
DEFAULT_FINAL_WEIGHT = 20.0


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


@dataclass
class Assignment:
    id: str
    name: str
    score: float = 0.0
    total_points: float = 100.0
    weight: float = 0.0
    date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "score": self.score,
            "totalPoints": self.total_points,
            "weight": self.weight,
        }
        if self.date is not None:
            data["date"] = self.date
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Assignment":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or "Assignment"),
            score=float(data.get("score") or 0),
            total_points=float(data.get("totalPoints", 100)),
            weight=float(data.get("weight") or 0),
            date=data.get("date"),
        )


@dataclass
class CourseRecord:
    id: str
    name: str
    current_grade: float = 0.0
    final_weight: float = DEFAULT_FINAL_WEIGHT
    target_band_label: str = "A"
    assignments: List[Assignment] = field(default_factory=list)
    color: str = "bg-blue-500"
    credits: Optional[float] = None
    source: str = "manual"
    canvas_course_id: Optional[int] = None
    canvas_course_url: Optional[str] = None
    last_synced_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "current": self.current_grade,
            "weight": self.final_weight,
            "target": self.target_band_label,
            "assignments": [assignment.to_dict() for assignment in self.assignments],
            "color": self.color,
            "source": self.source,
        }
        optional = {
            "credits": self.credits,
            "canvasCourseId": self.canvas_course_id,
            "canvasCourseUrl": self.canvas_course_url,
            "lastSyncedAt": self.last_synced_at,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CourseRecord":
        canvas_id = data.get("canvasCourseId")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or "Class"),
            current_grade=float(data.get("current") or 0),
            final_weight=float(data["weight"]) if data.get("weight") is not None else DEFAULT_FINAL_WEIGHT,
            target_band_label=str(data.get("target") or ""),
            assignments=[Assignment.from_dict(item) for item in data.get("assignments") or []],
            color=str(data.get("color") or "bg-blue-500"),
            credits=_optional_float(data.get("credits")),
            source=data.get("source") if data.get("source") in COURSE_SOURCES else "manual",
            canvas_course_id=int(canvas_id) if canvas_id is not None else None,
            canvas_course_url=data.get("canvasCourseUrl"),
            last_synced_at=data.get("lastSyncedAt"),
        )


@dataclass
class AppSettings:
    round_to_whole: bool = True
    show_decimal_places: int = 2
    show_credits: bool = False
    custom_grade_bands: bool = False
    grading_system: str = "letter"
    grade_bands: Optional[List[GradeBand]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN_KEYS = (
        "roundToWhole",
        "showDecimalPlaces",
        "showCredits",
        "customGradeBands",
        "gradingSystem",
        "gradeBands",
    )

    @property
    def bands(self) -> List[GradeBand]:
        if self.custom_grade_bands and self.grade_bands:
            return list(self.grade_bands)
        return list(DEFAULT_GRADE_BANDS)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        data.update(
            {
                "roundToWhole": self.round_to_whole,
                "showDecimalPlaces": self.show_decimal_places,
                "showCredits": self.show_credits,
                "customGradeBands": self.custom_grade_bands,
                "gradingSystem": self.grading_system,
            }
        )
        if self.grade_bands is not None:
            data["gradeBands"] = [band.to_dict() for band in self.grade_bands]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        grading_system = data.get("gradingSystem", "letter")
        raw_bands = data.get("gradeBands")
        return cls(
            round_to_whole=bool(data.get("roundToWhole", True)),
            show_decimal_places=int(data.get("showDecimalPlaces", 2)),
            show_credits=bool(data.get("showCredits", False)),
            custom_grade_bands=bool(data.get("customGradeBands", False)),
            grading_system=grading_system if grading_system in GRADING_SYSTEMS else "letter",
            grade_bands=[GradeBand.from_dict(item) for item in raw_bands] if raw_bands is not None else None,
            extra={key: value for key, value in data.items() if key not in cls._KNOWN_KEYS},
        )
