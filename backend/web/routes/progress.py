"""
Progress dashboard routes (teacher-only, read-only).

Behavior:
    - GET /api/progress/student/{student_id}: enrollments and per-text reading
      progress of one student.
    - GET /api/progress/course/{course_id}/metrics: enrollment and question
      statistics of an owned course.

Security:
    Students get 403 {"message": "Permisos insuficientes"} on both routes
    regardless of the ids in the path; the role check runs before any lookup.
"""
from __future__ import annotations

from fastapi import APIRouter, Request

from backend.learning.usecases.metrics import CourseMetricsInput, CourseMetricsUseCase
from backend.learning.usecases.progress import StudentProgressInput, StudentProgressUseCase
from backend.web.wiring import get_store

from .security import _json_private, current_principal, error_response, unauthenticated_response

progress_router = APIRouter(tags=["Progress"])

_SERVICE_ERRORS = (PermissionError, LookupError, ValueError)


@progress_router.get("/api/progress/student/{student_id}")
async def student_progress(request: Request, student_id: str):
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        body = StudentProgressUseCase(get_store()).execute(
            StudentProgressInput(caller=principal, student_id=student_id)
        )
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(body, status_code=200)


@progress_router.get("/api/progress/course/{course_id}/metrics")
async def course_metrics(request: Request, course_id: str):
    """Course metrics; 404 for an unknown course, 403 for non-owners."""
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        body = CourseMetricsUseCase(get_store()).execute(CourseMetricsInput(caller=principal, course_id=course_id))
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(body, status_code=200)
