"""Teaching topics service layer, including the topic deletion cascade.

Why:
    `Course.topicCount` is a cached value. Keeping every topic mutation in
    this one service is what keeps the counter equal to the live topic count:
    nothing else writes it.

Cascade (delete_topic):
    1. delete the Topic record
    2. delete every ReadingProgress row with `topic == topic_id`
    3. decrement the parent Course `topicCount` by 1, floored at 0

    The steps run in order without a transaction. A failure after step 1
    leaves the system recoverable but possibly inconsistent (orphaned
    progress rows or a stale counter); nothing is rolled back. Retrying is
    safe: when the topic is already gone, step 2 runs again (a no-op if the
    rows are gone too) and step 3 is skipped, so a duplicate retry never
    decrements twice.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from backend.identity_access.domain import Principal
from backend.identity_access.guards import require, require_reader
from backend.storage.ports import COURSES, READING_PROGRESS, TOPICS, DocumentStore
from backend.teaching.ownership import is_enrolled, load_course, load_topic_chain, owner_of

logger = logging.getLogger("critico.teaching.topics")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalize_title(value: object) -> str:
    if value is None or not isinstance(value, str):
        raise ValueError("invalid_title")
    trimmed = value.strip()
    if not trimmed or len(trimmed) > 200:
        raise ValueError("invalid_title")
    return trimmed


def _normalize_objectives(value: object) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValueError("invalid_objectives")
    normalized: List[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ValueError("invalid_objectives")
        trimmed = item.strip()
        # Objectives are a set; keep first occurrence order.
        if trimmed not in normalized:
            normalized.append(trimmed)
    return normalized


def _normalize_order(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError("invalid_order")
    return value


@dataclass
class TopicsService:
    store: DocumentStore

    def _owner_of_course(self, course_id: str) -> Optional[str]:
        return owner_of(load_course(self.store, course_id))

    def _owner_of_topic(self, topic_id: str) -> Optional[str]:
        _topic, course = load_topic_chain(self.store, topic_id)
        return owner_of(course)

    def list_topics(self, caller: Principal, course_id: str) -> list[dict]:
        course = load_course(self.store, course_id)
        require_reader(
            caller,
            owner_id=owner_of(course),
            is_member=lambda: is_enrolled(self.store, caller.sub, course_id),
        )
        topics = self.store.find(TOPICS, {"course": course_id})
        if not caller.is_teacher:
            topics = [t for t in topics if t.get("isPublished")]
        topics.sort(key=lambda t: (t.get("order") or 0, t.get("createdAt") or ""))
        return topics

    def create_topic(
        self,
        caller: Principal,
        course_id: str,
        *,
        title: str,
        description: str | None = None,
        order: int = 0,
        objectives: Optional[List[str]] = None,
        is_published: bool = False,
    ) -> dict:
        """Create a topic under an owned course and bump `topicCount` by one."""
        require(caller, resolve_owner=lambda: self._owner_of_course(course_id))
        now = _now()
        topic = self.store.insert(
            TOPICS,
            {
                "course": course_id,
                "title": _normalize_title(title),
                "description": (description or "").strip(),
                "order": _normalize_order(order),
                "objectives": _normalize_objectives(objectives),
                "isPublished": bool(is_published),
                "createdAt": now,
                "updatedAt": now,
            },
        )
        self.store.increment(COURSES, course_id, "topicCount", 1)
        logger.info("topic created: topic=%s course=%s", topic["id"], course_id)
        return topic

    def update_topic(self, caller: Principal, topic_id: str, changes: Mapping[str, Any]) -> dict:
        require(caller, resolve_owner=lambda: self._owner_of_topic(topic_id))
        patch: dict[str, Any] = {}
        if "title" in changes:
            patch["title"] = _normalize_title(changes["title"])
        if "description" in changes:
            patch["description"] = (changes["description"] or "").strip()
        if "order" in changes:
            patch["order"] = _normalize_order(changes["order"])
        if "objectives" in changes:
            patch["objectives"] = _normalize_objectives(changes["objectives"])
        if "isPublished" in changes:
            patch["isPublished"] = bool(changes["isPublished"])
        patch["updatedAt"] = _now()
        updated = self.store.update(TOPICS, topic_id, patch)
        if updated is None:
            raise LookupError("topic_not_found")
        return updated

    def delete_topic(self, caller: Principal, topic_id: str) -> bool:
        """Delete a topic and cascade; returns False when it was already gone.

        Permissions:
            Caller must be a teacher AND owner of the topic's course. The role
            check runs before the topic is looked up.
        """
        require(caller)
        topic = self.store.get(TOPICS, topic_id)
        if topic is None:
            removed = self.store.delete_many(READING_PROGRESS, {"topic": topic_id})
            logger.info("topic already deleted: topic=%s orphaned_progress_removed=%d", topic_id, removed)
            return False
        course_id = topic.get("course") or ""
        require(caller, resolve_owner=lambda: owner_of(self.store.get(COURSES, course_id)))

        if not self.store.delete(TOPICS, topic_id):
            # A concurrent delete won the race and owns the decrement.
            return False
        step = "reading_progress"
        try:
            removed = self.store.delete_many(READING_PROGRESS, {"topic": topic_id})
            step = "topic_count"
            self.store.increment(COURSES, course_id, "topicCount", -1, floor=0)
        except Exception:
            logger.error("topic cascade failed: topic=%s course=%s step=%s", topic_id, course_id, step)
            raise
        logger.info("topic deleted: topic=%s course=%s progress_removed=%d", topic_id, course_id, removed)
        return True


__all__ = ["TopicsService"]
