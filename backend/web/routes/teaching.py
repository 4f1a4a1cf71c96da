"""
Teaching API routes: courses, topics, texts and questions.

Why:
    Owner-scoped CRUD over the course tree. The adapter resolves the caller
    (middleware), validates request bodies (pydantic) and delegates rules and
    persistence to the teaching services.

Notes:
    - Security: writes require the teacher who owns the top-level course.
      Students enrolled in a course may read its published topics, texts and
      questions (without answer keys).
    - Every denial renders 403 {"message": "Permisos insuficientes"}.
    - Responses expose record ids as `_id` and are sent private, no-store.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field

from backend.teaching.services.content import ContentService
from backend.teaching.services.courses import CoursesService
from backend.teaching.services.topics import TopicsService
from backend.web.wiring import get_store

from .security import _json_private, current_principal, error_response, serialize, unauthenticated_response

teaching_router = APIRouter(tags=["Teaching"])  # explicit paths below
logger = logging.getLogger("critico.web.teaching")

_SERVICE_ERRORS = (PermissionError, LookupError, ValueError)


# --- Request models --------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CourseCreate(_CamelModel):
    title: str = Field(..., max_length=200)
    description: Optional[str] = None


class CourseUpdate(_CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None


class TopicCreate(_CamelModel):
    title: str
    description: Optional[str] = None
    order: int = 0
    objectives: List[str] = Field(default_factory=list)
    is_published: bool = Field(default=False, alias="isPublished")


class TopicUpdate(_CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    order: Optional[int] = None
    objectives: Optional[List[str]] = None
    is_published: Optional[bool] = Field(default=None, alias="isPublished")


class TextCreate(_CamelModel):
    title: str
    content: str
    source: Optional[str] = None
    estimated_time: Optional[int] = Field(default=None, alias="estimatedTime")
    difficulty: Optional[str] = None
    length: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class OptionIn(_CamelModel):
    label: str
    is_correct: bool = Field(default=False, alias="isCorrect")


class QuestionCreate(_CamelModel):
    skill: Optional[str] = None
    type: Optional[str] = None
    prompt: str
    options: List[OptionIn]
    feedback_template: Optional[str] = Field(default=None, alias="feedbackTemplate")


def _changes(model: BaseModel) -> dict:
    """Only the fields the client sent, keyed by their wire (camelCase) name."""
    return model.model_dump(exclude_unset=True, by_alias=True)


# --- Courses ---------------------------------------------------------------------

@teaching_router.get("/api/courses")
async def list_courses(request: Request):
    """List courses: owned ones for teachers, enrolled ones for students."""
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    items = CoursesService(get_store()).list_courses(principal)
    return _json_private([serialize(c) for c in items], status_code=200)


@teaching_router.post("/api/courses")
async def create_course(request: Request, payload: CourseCreate):
    """Create a new course (teacher only).

    Behavior:
        - 201 with the course; the caller becomes `owner`, `topicCount` is 0
        - 400 on an empty title
        - 403 when the caller is not a teacher
    """
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        course = CoursesService(get_store()).create_course(
            principal, title=payload.title, description=payload.description
        )
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(serialize(course), status_code=201)


@teaching_router.get("/api/courses/{course_id}")
async def get_course(request: Request, course_id: str):
    """Get a course by id.

    Permissions:
        Owner teacher, or a student enrolled in the course.
    """
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        course = CoursesService(get_store()).get_course(principal, course_id)
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(serialize(course), status_code=200)


@teaching_router.patch("/api/courses/{course_id}")
async def update_course(request: Request, course_id: str, payload: CourseUpdate):
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        course = CoursesService(get_store()).update_course(principal, course_id, _changes(payload))
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(serialize(course), status_code=200)


@teaching_router.delete("/api/courses/{course_id}")
async def delete_course(request: Request, course_id: str):
    """Delete a course and everything under it (owner only, 204)."""
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        CoursesService(get_store()).delete_course(principal, course_id)
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return Response(status_code=204, headers={"Cache-Control": "private, no-store"})


# --- Topics ----------------------------------------------------------------------

@teaching_router.get("/api/topics/course/{course_id}")
async def list_topics(request: Request, course_id: str):
    """List a course's topics ordered by `order`; students see published ones only."""
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        topics = TopicsService(get_store()).list_topics(principal, course_id)
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private([serialize(t) for t in topics], status_code=200)


@teaching_router.post("/api/topics/course/{course_id}")
async def create_topic(request: Request, course_id: str, payload: TopicCreate):
    """Create a topic under an owned course.

    Behavior:
        - 201 with the topic; the course `topicCount` grows by one
        - 403 for students and non-owner teachers
        - 404 when the course does not exist (teachers only)
    """
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        topic = TopicsService(get_store()).create_topic(
            principal,
            course_id,
            title=payload.title,
            description=payload.description,
            order=payload.order,
            objectives=payload.objectives,
            is_published=payload.is_published,
        )
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(serialize(topic), status_code=201)


@teaching_router.patch("/api/topics/{topic_id}")
async def update_topic(request: Request, topic_id: str, payload: TopicUpdate):
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        topic = TopicsService(get_store()).update_topic(principal, topic_id, _changes(payload))
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(serialize(topic), status_code=200)


@teaching_router.delete("/api/topics/{topic_id}")
async def delete_topic(request: Request, topic_id: str):
    """Delete a topic, its reading progress rows, and decrement `topicCount`.

    Behavior:
        - 204 on success, and also when the topic was already deleted (retry)
        - 403 {"message": "Permisos insuficientes"} for students (before any
          lookup) and for teachers who do not own the course
    """
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        TopicsService(get_store()).delete_topic(principal, topic_id)
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return Response(status_code=204, headers={"Cache-Control": "private, no-store"})


# --- Texts -----------------------------------------------------------------------

@teaching_router.get("/api/texts/topic/{topic_id}")
async def list_texts(request: Request, topic_id: str):
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        texts = ContentService(get_store()).list_texts(principal, topic_id)
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private([serialize(t) for t in texts], status_code=200)


@teaching_router.post("/api/texts/topic/{topic_id}")
async def create_text(request: Request, topic_id: str, payload: TextCreate):
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        text = ContentService(get_store()).create_text(principal, topic_id, payload.model_dump(by_alias=True))
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(serialize(text), status_code=201)


@teaching_router.get("/api/texts/{text_id}")
async def get_text(request: Request, text_id: str):
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        text = ContentService(get_store()).get_text(principal, text_id)
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(serialize(text), status_code=200)


# --- Questions -------------------------------------------------------------------

@teaching_router.get("/api/questions/text/{text_id}")
async def list_questions(request: Request, text_id: str):
    """List a text's questions; students receive options without `isCorrect`."""
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        questions = ContentService(get_store()).list_questions(principal, text_id)
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private([serialize(q) for q in questions], status_code=200)


@teaching_router.post("/api/questions/text/{text_id}")
async def create_question(request: Request, text_id: str, payload: QuestionCreate):
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    try:
        question = ContentService(get_store()).create_question(principal, text_id, payload.model_dump(by_alias=True))
    except _SERVICE_ERRORS as exc:
        return error_response(exc)
    return _json_private(serialize(question), status_code=201)
