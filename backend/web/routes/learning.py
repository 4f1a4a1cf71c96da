"""
Learning API routes: student enrollment, reading progress and question attempts.

Why:
    These endpoints are the writers of the records the progress dashboards
    aggregate. The adapter stays thin and delegates to the learning use cases.

Security:
    Student-only. Reading progress and attempts additionally require an
    enrollment in the course the text belongs to.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field

from backend.learning.usecases.activity import (
    EnrollInput,
    EnrollUseCase,
    ReadingProgressInput,
    SubmitAttemptInput,
    SubmitAttemptUseCase,
    UpdateReadingProgressUseCase,
)
from backend.web.wiring import get_store

from .security import _json_private, current_principal, error_response, serialize, unauthenticated_response

learning_router = APIRouter(tags=["Learning"])
logger = logging.getLogger("critico.web.learning")

_SERVICE_ERRORS = (PermissionError, LookupError, ValueError)


class LastMode(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    theme: Optional[str] = None
    font_size: Optional[str] = Field(default=None, alias="fontSize")


class ReadingProgressPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    completed: Optional[bool] = None
    last_position: Optional[int] = Field(default=None, alias="lastPosition")
    score: Optional[float] = None
    last_mode: Optional[LastMode] = Field(default=None, alias="lastMode")


class AttemptPayload(BaseModel):
    answers: List[str] = Field(..., min_length=1)


@learning_router.post("/api/enrollments/course/{course_id}")
async def enroll(request: Request, course_id: str):
    """Enroll the calling student in a course.

    Behavior:
        - 201 with the new enrollment, 200 with the existing one on repeat
        - 403 for teachers, 404 for unknown courses
    """
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        enrollment, created = EnrollUseCase(get_store()).execute(EnrollInput(caller=principal, course_id=course_id))
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(serialize(enrollment), status_code=201 if created else 200)


@learning_router.put("/api/reading-progress/text/{text_id}")
async def put_reading_progress(request: Request, text_id: str, payload: ReadingProgressPayload):
    """Upsert the caller's reading progress for a text and refresh course completion."""
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    last_mode = payload.last_mode.model_dump(exclude_none=True, by_alias=True) if payload.last_mode else {}
    try:
        saved = UpdateReadingProgressUseCase(get_store()).execute(
            ReadingProgressInput(
                caller=principal,
                text_id=text_id,
                completed=payload.completed,
                last_position=payload.last_position,
                score=payload.score,
                last_mode=last_mode,
            )
        )
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(serialize(saved), status_code=200)


@learning_router.post("/api/questions/{question_id}/attempts")
async def submit_attempt(request: Request, question_id: str, payload: AttemptPayload):
    """Grade and store an attempt; 201 with the attempt including its score."""
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        attempt = SubmitAttemptUseCase(get_store()).execute(
            SubmitAttemptInput(caller=principal, question_id=question_id, answers=payload.answers)
        )
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(serialize(attempt), status_code=201)
