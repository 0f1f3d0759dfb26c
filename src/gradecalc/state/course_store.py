from __future__ import annotations

import logging
import secrets
import string
import threading
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Sequence, Tuple

from gradecalc.core.bands import InvalidBandsError, ensure_valid_bands
from gradecalc.core.models import AppSettings, CourseRecord
from gradecalc.core.projection import clamp_0_100
from gradecalc.services.storage import COURSES_KEY, SETTINGS_KEY, KeyValueStorage

logger = logging.getLogger(__name__)

ID_ALPHABET = string.ascii_lowercase + string.digits
ID_LENGTH = 7

Subscriber = Callable[[List[CourseRecord]], None]

EDITABLE_FIELDS = {
    "name",
    "current_grade",
    "final_weight",
    "target_band_label",
    "assignments",
    "color",
    "credits",
}

DEMO_COURSES: List[CourseRecord] = [
    CourseRecord(id="1", name="Math", current_grade=85.75, final_weight=30, target_band_label="A", credits=4),
    CourseRecord(
        id="2",
        name="Biology",
        current_grade=78.25,
        final_weight=25,
        target_band_label="B+",
        color="bg-green-500",
        credits=3,
    ),
    CourseRecord(
        id="3",
        name="Global History",
        current_grade=92.5,
        final_weight=20,
        target_band_label="A",
        color="bg-purple-500",
        credits=3,
    ),
    CourseRecord(
        id="4",
        name="Spanish",
        current_grade=88.25,
        final_weight=15,
        target_band_label="A−",
        color="bg-amber-500",
        credits=3,
    ),
]


class CourseNotFoundError(Exception):
    pass


class InvalidBackupError(Exception):
    pass


def generate_id() -> str:
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))


def _clamped(course: CourseRecord) -> CourseRecord:
    return replace(
        course,
        current_grade=clamp_0_100(course.current_grade),
        final_weight=clamp_0_100(course.final_weight),
    )


class CourseStore:
    """
    The course collection and app settings, persisted under two storage keys.
    Grades and weights are clamped to [0, 100] on every write; subscribers are
    called with the new course list after each change.
    """

    def __init__(self, storage: KeyValueStorage, *, seed_demo: bool = True) -> None:
        self.storage = storage
        self._lock = threading.RLock()
        self._subscribers: List[Subscriber] = []
        if seed_demo and storage.get(COURSES_KEY) is None:
            self._write([replace(course) for course in DEMO_COURSES])

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, courses: List[CourseRecord]) -> None:
        for callback in list(self._subscribers):
            callback(list(courses))

    def _write(self, courses: List[CourseRecord], unreadable: Sequence[Any] = ()) -> None:
        self.storage.set(COURSES_KEY, [course.to_dict() for course in courses] + list(unreadable))

    def _read(self) -> Tuple[List[CourseRecord], List[Any]]:
        """Parsed courses, plus the raw items that failed to parse."""
        raw = self.storage.get(COURSES_KEY, [])
        courses: List[CourseRecord] = []
        unreadable: List[Any] = []
        for item in raw if isinstance(raw, list) else []:
            try:
                courses.append(CourseRecord.from_dict(item))
            except (AttributeError, KeyError, TypeError, ValueError):
                logger.warning("Skipping unreadable course record: %r", item)
                unreadable.append(item)
        return courses, unreadable

    def get_courses(self) -> List[CourseRecord]:
        return self._read()[0]

    def get_course(self, course_id: str) -> CourseRecord:
        for course in self.get_courses():
            if course.id == course_id:
                return course
        raise CourseNotFoundError(f"Course {course_id} not found.")

    def set_courses(self, courses: Iterable[CourseRecord]) -> List[CourseRecord]:
        cleaned = [_clamped(course) for course in courses]
        with self._lock:
            self._write(cleaned)
        self._notify(cleaned)
        return cleaned

    def add_course(self, name: str, **fields: Any) -> CourseRecord:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown course fields: {', '.join(sorted(unknown))}")
        course = _clamped(CourseRecord(id=generate_id(), name=name, **fields))
        with self._lock:
            courses, unreadable = self._read()
            courses.append(course)
            self._write(courses, unreadable)
        self._notify(courses)
        return course

    def update_course(self, course_id: str, **changes: Any) -> CourseRecord:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown course fields: {', '.join(sorted(unknown))}")
        with self._lock:
            courses, unreadable = self._read()
            for index, course in enumerate(courses):
                if course.id == course_id:
                    updated = _clamped(replace(course, **changes))
                    courses[index] = updated
                    break
            else:
                raise CourseNotFoundError(f"Course {course_id} not found.")
            self._write(courses, unreadable)
        self._notify(courses)
        return updated

    def delete_course(self, course_id: str) -> None:
        with self._lock:
            courses, unreadable = self._read()
            remaining = [course for course in courses if course.id != course_id]
            if len(remaining) == len(courses):
                raise CourseNotFoundError(f"Course {course_id} not found.")
            self._write(remaining, unreadable)
        self._notify(remaining)

    def merge_imported(self, imported: Iterable[CourseRecord]) -> List[CourseRecord]:
        incoming = [_clamped(course) for course in imported]
        if not incoming:
            return self.get_courses()

        with self._lock:
            courses, unreadable = self._read()
            by_id: Dict[str, int] = {course.id: index for index, course in enumerate(courses)}
            for course in incoming:
                if course.id in by_id:
                    courses[by_id[course.id]] = course
                else:
                    by_id[course.id] = len(courses)
                    courses.append(course)
            self._write(courses, unreadable)
        logger.info("Merged %d imported course(s)", len(incoming))
        self._notify(courses)
        return courses

    def get_settings(self) -> AppSettings:
        raw = self.storage.get(SETTINGS_KEY)
        if not isinstance(raw, dict):
            return AppSettings()
        return AppSettings.from_dict(raw)

    def update_settings(self, **changes: Any) -> AppSettings:
        with self._lock:
            updated = replace(self.get_settings(), **changes)
            self.storage.set(SETTINGS_KEY, updated.to_dict())
        return updated

    def export_backup(self) -> Dict[str, Any]:
        return {
            "classes": [course.to_dict() for course in self.get_courses()],
            "settings": self.get_settings().to_dict(),
        }

    def import_backup(self, payload: Any) -> List[CourseRecord]:
        """
        Accepts {"classes": [...], "settings": {...}} or, from older exports,
        a bare list of classes. Nothing is written unless the whole payload parses.
        """
        if isinstance(payload, dict) and isinstance(payload.get("classes"), list):
            raw_classes = payload["classes"]
            raw_settings = payload.get("settings")
        elif isinstance(payload, list):
            raw_classes = payload
            raw_settings = None
        else:
            raise InvalidBackupError("Invalid data format")

        try:
            courses = [CourseRecord.from_dict(item) for item in raw_classes]
            settings = AppSettings.from_dict(raw_settings) if isinstance(raw_settings, dict) else None
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise InvalidBackupError("The file contains invalid data.") from exc

        if settings is not None and settings.grade_bands:
            try:
                settings.grade_bands = ensure_valid_bands(settings.grade_bands)
            except InvalidBandsError as exc:
                raise InvalidBackupError(f"The file contains invalid grade bands. {exc}") from exc

        if settings is not None:
            self.storage.set(SETTINGS_KEY, settings.to_dict())
        return self.set_courses(courses)

    def reset(self) -> None:
        self.set_courses([])
