import logging
import math
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from gradecalc.config.settings import configure_logging, settings
from gradecalc.core.bands import (
    DEFAULT_GRADE_BANDS,
    GradeBand,
    InvalidBandsError,
    current_band,
    ensure_valid_bands,
    validate_bands,
)
from gradecalc.core.gpa import calculate_gpa
from gradecalc.core.insights import grade_statistics
from gradecalc.core.models import AppSettings, Assignment, CourseRecord
from gradecalc.core.projection import clamp_0_100, format_final_grade, project_final_grade, required_final_score
from gradecalc.core.requirements import (
    Scenario,
    achievable_grades,
    difficulty_label,
    grade_status,
    risk_label,
    target_requirement,
    what_if_scenarios,
)
from gradecalc.services.canvas_service import SUPPORTED_PROVIDERS, CanvasService, CanvasServiceError
from gradecalc.services.storage import KeyValueStorage
from gradecalc.state.course_store import CourseNotFoundError, CourseStore, InvalidBackupError

logger = logging.getLogger(__name__)

configure_logging()

app = FastAPI(title="GradeCalc API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allowed_origins),
    allow_origin_regex=settings.cors_allow_origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_store() -> CourseStore:
    return CourseStore(KeyValueStorage(settings.db_path))


class BandPayload(BaseModel):
    label: str
    cutoff: float
    color: str = "bg-slate-500"


class ProjectionPayload(BaseModel):
    current_grade: float
    final_weight: float
    final_score: float
    bands: Optional[List[BandPayload]] = None


class RequirementPayload(BaseModel):
    current_grade: float
    final_weight: float
    target_cutoff: float
    round_to_whole: bool = False


class AssignmentPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    score: float = 0
    total_points: float = Field(default=100, alias="totalPoints")
    weight: float = 0
    date: Optional[str] = None


class CoursePayload(BaseModel):
    name: str
    current_grade: float = 0
    final_weight: float = 20
    target_band_label: str = "A"
    color: str = "bg-blue-500"
    credits: Optional[float] = Field(default=None, ge=0)
    assignments: List[AssignmentPayload] = Field(default_factory=list)


class CourseUpdatePayload(BaseModel):
    name: Optional[str] = None
    current_grade: Optional[float] = None
    final_weight: Optional[float] = None
    target_band_label: Optional[str] = None
    color: Optional[str] = None
    credits: Optional[float] = Field(default=None, ge=0)
    assignments: Optional[List[AssignmentPayload]] = None


class SettingsPayload(BaseModel):
    round_to_whole: Optional[bool] = None
    show_decimal_places: Optional[int] = Field(default=None, ge=0, le=6)
    show_credits: Optional[bool] = None
    custom_grade_bands: Optional[bool] = None
    grading_system: Optional[str] = Field(default=None, pattern="^(letter|percentage|gpa)$")
    grade_bands: Optional[List[BandPayload]] = None


def _to_bands(payload: Optional[List[BandPayload]]) -> List[GradeBand]:
    if not payload:
        return list(DEFAULT_GRADE_BANDS)
    return [GradeBand(label=band.label, cutoff=band.cutoff, color=band.color) for band in payload]


def _to_assignments(payload: List[AssignmentPayload]) -> List[Assignment]:
    return [
        Assignment(
            id=item.id,
            name=item.name,
            score=item.score,
            total_points=item.total_points,
            weight=item.weight,
            date=item.date,
        )
        for item in payload
    ]


def _finite(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


def _requirement_out(course: CourseRecord, bands: List[GradeBand], app_settings: AppSettings) -> Optional[Dict]:
    requirement = target_requirement(course, bands, app_settings.round_to_whole)
    if requirement is None:
        return None
    return {
        "band": requirement.band.to_dict(),
        "required_raw": _finite(requirement.required_raw),
        "required_clamped": requirement.required_clamped,
        "display_required": requirement.display_required,
        "achievable": requirement.achievable,
        "already_achieved": requirement.already_achieved,
        "difficulty": difficulty_label(requirement.required_raw),
    }


def _course_out(course: CourseRecord, app_settings: AppSettings) -> Dict:
    bands = app_settings.bands
    return {
        **course.to_dict(),
        "current_band": current_band(course.current_grade, bands).to_dict(),
        "status": grade_status(course, bands, app_settings.round_to_whole),
        "requirement": _requirement_out(course, bands, app_settings),
    }


def _scenario_out(scenario: Scenario) -> Dict:
    return {
        "kind": scenario.kind,
        "description": scenario.description,
        "final_score": scenario.final_score,
        "projected_grade": scenario.projected_grade,
        "band": scenario.band.label,
        "risk": scenario.risk,
        "required_score": scenario.required_score,
        "achievable": scenario.achievable,
        "difficulty": scenario.difficulty,
    }


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _lms_credentials(body: Dict[str, Any]) -> tuple:
    base_url = str(body.get("baseUrl") or body.get("url") or "").strip()
    token = str(body.get("token") or "")
    return base_url, token


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/calculator/projection")
def project(payload: ProjectionPayload) -> Dict:
    bands = _to_bands(payload.bands)
    projected = project_final_grade(payload.current_grade, payload.final_weight, payload.final_score)
    return {
        "projected_grade": projected,
        "band": current_band(projected, bands).to_dict(),
        "risk": risk_label(projected),
    }


@app.post("/calculator/requirement")
def requirement(payload: RequirementPayload) -> Dict:
    required = required_final_score(
        payload.current_grade,
        payload.final_weight,
        payload.target_cutoff,
        payload.round_to_whole,
    )
    return {
        "required_raw": _finite(required),
        "infinite": math.isinf(required),
        "required_clamped": clamp_0_100(required),
        "achievable": required <= 100,
        "already_achieved": payload.current_grade >= payload.target_cutoff,
        "difficulty": difficulty_label(required),
    }


@app.get("/bands")
def list_bands(store: CourseStore = Depends(get_store)) -> List[Dict]:
    return [band.to_dict() for band in store.get_settings().bands]


@app.post("/bands/validate")
def check_bands(payload: List[BandPayload]) -> Dict:
    errors = validate_bands(_to_bands(payload) if payload else [])
    return {"valid": not errors, "errors": errors}


@app.get("/settings")
def get_settings(store: CourseStore = Depends(get_store)) -> Dict:
    return store.get_settings().to_dict()


@app.patch("/settings")
def update_settings(payload: SettingsPayload, store: CourseStore = Depends(get_store)) -> Dict:
    changes = payload.model_dump(exclude_none=True)
    if "grade_bands" in changes:
        try:
            changes["grade_bands"] = ensure_valid_bands(
                [GradeBand(**band.model_dump()) for band in payload.grade_bands]
            )
        except InvalidBandsError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return store.update_settings(**changes).to_dict()


@app.get("/courses")
def list_courses(store: CourseStore = Depends(get_store)) -> List[Dict]:
    app_settings = store.get_settings()
    return [_course_out(course, app_settings) for course in store.get_courses()]


@app.post("/courses", status_code=status.HTTP_201_CREATED)
def create_course(payload: CoursePayload, store: CourseStore = Depends(get_store)) -> Dict:
    fields = payload.model_dump(exclude={"name", "assignments"})
    course = store.add_course(payload.name, assignments=_to_assignments(payload.assignments), **fields)
    return _course_out(course, store.get_settings())


@app.get("/courses/{course_id}")
def get_course(course_id: str, store: CourseStore = Depends(get_store)) -> Dict:
    try:
        return _course_out(store.get_course(course_id), store.get_settings())
    except CourseNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@app.patch("/courses/{course_id}")
def update_course(course_id: str, payload: CourseUpdatePayload, store: CourseStore = Depends(get_store)) -> Dict:
    changes = payload.model_dump(exclude_none=True, exclude={"assignments"})
    if payload.assignments is not None:
        changes["assignments"] = _to_assignments(payload.assignments)
    try:
        course = store.update_course(course_id, **changes)
        return _course_out(course, store.get_settings())
    except CourseNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@app.delete("/courses/{course_id}")
def delete_course(course_id: str, store: CourseStore = Depends(get_store)) -> Dict[str, str]:
    try:
        store.delete_course(course_id)
        return {"status": "deleted"}
    except CourseNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@app.get("/courses/{course_id}/requirement")
def course_requirement(course_id: str, store: CourseStore = Depends(get_store)) -> Dict:
    app_settings = store.get_settings()
    try:
        course = store.get_course(course_id)
    except CourseNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    result = _requirement_out(course, app_settings.bands, app_settings)
    if result is None:
        return {"target": None, "message": "No target set"}
    return {"target": course.target_band_label, **result}


@app.get("/courses/{course_id}/grades-table")
def course_grades_table(course_id: str, store: CourseStore = Depends(get_store)) -> List[Dict]:
    app_settings = store.get_settings()
    try:
        course = store.get_course(course_id)
    except CourseNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return [
        {**row.band.to_dict(), "required": row.required}
        for row in achievable_grades(course, app_settings.bands, app_settings.round_to_whole)
    ]


@app.get("/courses/{course_id}/what-if")
def course_what_if(
    course_id: str,
    kind: str = "target",
    final_score: float = 85,
    adjustment: float = 0,
    target: Optional[str] = None,
    store: CourseStore = Depends(get_store),
) -> List[Dict]:
    try:
        course = store.get_course(course_id)
        scenarios = what_if_scenarios(
            course,
            store.get_settings().bands,
            kind=kind,
            final_score=final_score,
            current_adjustment=adjustment,
            target_label=target,
        )
    except CourseNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return [_scenario_out(scenario) for scenario in scenarios]


@app.get("/summary")
def summary(store: CourseStore = Depends(get_store)) -> Dict:
    app_settings = store.get_settings()
    courses = store.get_courses()
    bands = app_settings.bands
    stats = grade_statistics(courses, bands)
    formatted = {
        course.id: format_final_grade(
            course.current_grade,
            app_settings.round_to_whole,
            app_settings.show_decimal_places,
        )
        for course in courses
    }
    return {
        "gpa": calculate_gpa(courses, bands, use_credits=app_settings.show_credits),
        "current_grades": formatted,
        "statistics": None
        if stats is None
        else {
            "mean": stats.mean,
            "median": stats.median,
            "standard_deviation": stats.standard_deviation,
            "min": stats.minimum,
            "max": stats.maximum,
            "range": stats.range,
            "distribution": stats.distribution,
            "at_risk": stats.at_risk,
            "excellent": stats.excellent,
            "average": stats.average,
            "on_track": stats.on_track,
            "needs_improvement": stats.needs_improvement,
        },
    }


@app.get("/backup")
def export_backup(store: CourseStore = Depends(get_store)) -> Dict:
    return store.export_backup()


@app.post("/backup")
def import_backup(payload: Any = Body(default=None), store: CourseStore = Depends(get_store)) -> Dict:
    try:
        courses = store.import_backup(payload)
        return {"status": "imported", "count": len(courses)}
    except InvalidBackupError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def _import_from_provider(provider: str, body: Dict[str, Any]) -> List[CourseRecord]:
    if provider not in SUPPORTED_PROVIDERS:
        raise CanvasServiceError("Unsupported provider", status_code=400)
    base_url, token = _lms_credentials(body)
    if not base_url or not token:
        raise CanvasServiceError("Missing baseUrl or token", status_code=400)
    return CanvasService.from_settings(base_url, token).import_classes()


@app.post("/api/lms/{provider}")
def lms_import(provider: str, body: Any = Body(default=None)):
    if not isinstance(body, dict):
        return _error("Invalid request", status.HTTP_400_BAD_REQUEST)
    try:
        classes = _import_from_provider(provider, body)
    except CanvasServiceError as exc:
        logger.warning("LMS import via %s failed: %s", provider, exc)
        return _error(str(exc), exc.status_code or status.HTTP_502_BAD_GATEWAY)
    return {"classes": [course.to_dict() for course in classes]}


@app.post("/courses/import/{provider}")
def import_courses(provider: str, body: Any = Body(default=None), store: CourseStore = Depends(get_store)):
    if not isinstance(body, dict):
        return _error("Invalid request", status.HTTP_400_BAD_REQUEST)
    try:
        classes = _import_from_provider(provider, body)
    except CanvasServiceError as exc:
        logger.warning("LMS import via %s failed: %s", provider, exc)
        return _error(str(exc), exc.status_code or status.HTTP_502_BAD_GATEWAY)
    store.merge_imported(classes)
    return {"status": "imported", "count": len(classes)}


@app.get("/api/canvas/courses")
def canvas_courses_usage() -> Dict:
    return {
        "message": "Use POST with JSON body { baseUrl, token } to fetch Canvas courses.",
        "example": {
            "baseUrl": "https://canvas.example.edu",
            "token": "<your-canvas-access-token>",
        },
    }


@app.post("/api/canvas/courses")
def canvas_courses(body: Dict[str, Any]):
    base_url, token = _lms_credentials(body)
    if not base_url or not token:
        return _error("Missing baseUrl or token", status.HTTP_400_BAD_REQUEST)
    try:
        courses = CanvasService.from_settings(base_url, token).fetch_courses()
    except CanvasServiceError as exc:
        return _error(str(exc), exc.status_code or status.HTTP_502_BAD_GATEWAY)
    return {"courses": courses}
