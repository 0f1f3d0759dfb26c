import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from requests import RequestException

from gradecalc.config.settings import settings
from gradecalc.core.models import Assignment, CourseRecord

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("canvas",)


class CanvasServiceError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def normalize_base_url(raw: Optional[str]) -> str:
    if not raw:
        return ""
    trimmed = raw.strip().rstrip("/")
    if not trimmed:
        return ""
    if trimmed.startswith(("http://", "https://")):
        return trimmed
    return f"https://{trimmed}"


def pick_student_enrollment(enrollments: Optional[List[Dict[str, Any]]]) -> Optional[Dict[str, Any]]:
    if not enrollments:
        return None
    for enrollment in enrollments:
        kind = str(enrollment.get("type") or "").lower()
        role = str(enrollment.get("role") or "").lower()
        if "student" in kind or "student" in role:
            return enrollment
    return enrollments[0]


def _first_number(*values: Any) -> Optional[float]:
    for value in values:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    return None


def map_canvas_assignment(raw: Dict[str, Any]) -> Assignment:
    submission = raw.get("submission") or {}
    points = _first_number(raw.get("points_possible"))
    due_at = raw.get("due_at")
    return Assignment(
        id=str(raw["id"]),
        name=raw.get("name") or "Assignment",
        score=_first_number(raw.get("score"), submission.get("score")) or 0.0,
        total_points=points if points is not None else 100.0,
        weight=0.0,
        date=due_at.split("T")[0] if isinstance(due_at, str) and due_at else None,
    )


def map_canvas_course(
    raw: Dict[str, Any],
    assignments: List[Dict[str, Any]],
    base_url: str = "",
    synced_at: Optional[str] = None,
) -> CourseRecord:
    """
    The only place raw Canvas payloads are read. Everything past this point
    sees a fully populated CourseRecord.
    """
    enrollment = pick_student_enrollment(raw.get("enrollments")) or {}
    grades = enrollment.get("grades") or {}
    current = _first_number(enrollment.get("computed_current_score"), grades.get("current_score"))

    course_id = raw.get("id")
    return CourseRecord(
        id=str(course_id),
        name=raw.get("name") or raw.get("course_code") or "Class",
        current_grade=current if current is not None else 0.0,
        final_weight=100.0,
        target_band_label="A",
        assignments=[map_canvas_assignment(item) for item in assignments],
        color="bg-blue-500",
        source="canvas",
        canvas_course_id=int(course_id) if isinstance(course_id, int) else None,
        canvas_course_url=f"{base_url}/courses/{course_id}" if base_url else None,
        last_synced_at=synced_at,
    )


class CanvasService:
    COURSES_PATH = "/api/v1/courses"
    ASSIGNMENTS_PATH = "/api/v1/courses/{course_id}/assignments"

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 15,
        max_pages: int = 4,
        per_page: int = 50,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = normalize_base_url(base_url)
        if not self.base_url:
            raise CanvasServiceError("Canvas base URL is required", status_code=400)
        if not token:
            raise CanvasServiceError("Canvas token is required", status_code=400)
        self.token = token
        self.timeout = timeout
        self.max_pages = max_pages
        self.per_page = per_page
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, base_url: str, token: str) -> "CanvasService":
        return cls(
            base_url,
            token,
            timeout=settings.canvas_timeout_seconds,
            max_pages=settings.canvas_max_pages,
            per_page=settings.canvas_per_page,
        )

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
        }
        try:
            res = self.session.get(url, headers=headers, params=params, timeout=self.timeout)
        except RequestException as exc:
            raise CanvasServiceError(f"Canvas request failed: {exc}", status_code=502) from exc

        if res.status_code >= 400:
            detail = res.text or res.reason
            raise CanvasServiceError(f"Canvas request failed ({res.status_code}): {detail}", status_code=502)
        return res

    @staticmethod
    def _json_list(res: requests.Response) -> List[Dict[str, Any]]:
        try:
            data = res.json()
        except ValueError as exc:
            raise CanvasServiceError("Canvas returned a non-JSON response", status_code=502) from exc
        return data if isinstance(data, list) else []

    def fetch_courses(self) -> List[Dict[str, Any]]:
        url: Optional[str] = f"{self.base_url}{self.COURSES_PATH}"
        params: Optional[Dict[str, Any]] = {
            "enrollment_state": "active",
            "include[]": ["total_scores", "enrollments"],
            "per_page": self.per_page,
        }
        courses: List[Dict[str, Any]] = []
        page = 0

        while url and page < self.max_pages:
            page += 1
            res = self._get(url, params)
            courses.extend(self._json_list(res))
            # The next link already carries the query string.
            url = res.links.get("next", {}).get("url")
            params = None

        logger.info("Fetched %d Canvas course(s) over %d page(s)", len(courses), page)
        return courses

    def fetch_assignments(self, course_id: Any) -> List[Dict[str, Any]]:
        url = f"{self.base_url}{self.ASSIGNMENTS_PATH.format(course_id=course_id)}"
        res = self._get(url, {"per_page": 100})
        return self._json_list(res)

    def import_classes(self) -> List[CourseRecord]:
        courses = self.fetch_courses()
        synced_at = datetime.now(timezone.utc).isoformat()
        classes: List[CourseRecord] = []

        for course in courses:
            if course.get("id") is None:
                continue
            try:
                assignments = self.fetch_assignments(course["id"])
            except CanvasServiceError as exc:
                logger.warning("Assignments unavailable for Canvas course %s: %s", course["id"], exc)
                assignments = []
            classes.append(map_canvas_course(course, assignments, self.base_url, synced_at))

        return classes
