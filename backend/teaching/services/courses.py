"""Teaching courses service layer.

Why:
    Keep course use cases (create/list/get/update/delete) independent of
    FastAPI so the owner rules can be unit-tested without HTTP.

Permissions:
    Teachers create courses and become their owner. Only the owner may read
    the full record, update or delete it; enrolled students may read it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from backend.identity_access.domain import Principal
from backend.identity_access.guards import require, require_reader
from backend.storage.ports import (
    COURSES,
    ENROLLMENTS,
    QUESTION_ATTEMPTS,
    QUESTIONS,
    READING_PROGRESS,
    TEXTS,
    TOPICS,
    DocumentStore,
)
from backend.teaching.ownership import is_enrolled, load_course, owner_of

logger = logging.getLogger("critico.teaching")

_UPDATABLE = ("title", "description")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalize_title(value: object) -> str:
    if not isinstance(value, str):
        raise ValueError("invalid_title")
    title = value.strip()
    if not title or len(title) > 200:
        raise ValueError("invalid_title")
    return title


@dataclass
class CoursesService:
    store: DocumentStore

    def create_course(self, caller: Principal, *, title: str, description: str | None = None) -> dict:
        require(caller)
        now = _now()
        return self.store.insert(
            COURSES,
            {
                "title": _normalize_title(title),
                "description": (description or "").strip(),
                "owner": caller.sub,
                # Cached count; only topic create/delete may change it.
                "topicCount": 0,
                "createdAt": now,
                "updatedAt": now,
            },
        )

    def list_courses(self, caller: Principal) -> list[dict]:
        """Teachers see owned courses, students the courses they are enrolled in."""
        if caller.is_teacher:
            return self.store.find(COURSES, {"owner": caller.sub})
        course_ids = [e["course"] for e in self.store.find(ENROLLMENTS, {"student": caller.sub})]
        return self.store.find_in(COURSES, "id", course_ids)

    def get_course(self, caller: Principal, course_id: str) -> dict:
        course = load_course(self.store, course_id)
        require_reader(
            caller,
            owner_id=owner_of(course),
            is_member=lambda: is_enrolled(self.store, caller.sub, course_id),
        )
        return course

    def update_course(self, caller: Principal, course_id: str, changes: Mapping[str, Any]) -> dict:
        require(caller, resolve_owner=lambda: owner_of(load_course(self.store, course_id)))
        patch: dict[str, Any] = {}
        for key in _UPDATABLE:
            if key not in changes:
                continue
            if key == "title":
                patch["title"] = _normalize_title(changes["title"])
            else:
                patch[key] = (changes[key] or "").strip()
        patch["updatedAt"] = _now()
        updated = self.store.update(COURSES, course_id, patch)
        if updated is None:
            raise LookupError("course_not_found")
        return updated

    def delete_course(self, caller: Principal, course_id: str) -> None:
        """Delete a course and every record that hangs off it.

        Best-effort sequence without rollback, children first so a partial
        failure never leaves children of a missing course behind a live one.
        """
        require(caller, resolve_owner=lambda: owner_of(load_course(self.store, course_id)))
        topic_ids = [t["id"] for t in self.store.find(TOPICS, {"course": course_id})]
        text_ids = [t["id"] for t in self.store.find_in(TEXTS, "topic", topic_ids)]
        for text_id in text_ids:
            self.store.delete_many(QUESTION_ATTEMPTS, {"text": text_id})
            self.store.delete_many(QUESTIONS, {"text": text_id})
            self.store.delete(TEXTS, text_id)
        for topic_id in topic_ids:
            self.store.delete_many(READING_PROGRESS, {"topic": topic_id})
            self.store.delete(TOPICS, topic_id)
        self.store.delete_many(ENROLLMENTS, {"course": course_id})
        self.store.delete(COURSES, course_id)
        logger.info("course deleted: course=%s topics=%d texts=%d", course_id, len(topic_ids), len(text_ids))


__all__ = ["CoursesService"]
