"""
Ownership chain resolution for teaching resources.

Why:
    Route guards compare the caller against the owner of the top-level Course.
    Topics, texts and questions carry no owner themselves; this module walks
    question → text → topic → course so every guard resolves ownership the
    same way, always from live records.
"""
from __future__ import annotations

from typing import Optional, Tuple

from backend.storage.ports import COURSES, ENROLLMENTS, QUESTIONS, TEXTS, TOPICS, DocumentStore


def load_course(store: DocumentStore, course_id: str) -> dict:
    course = store.get(COURSES, course_id)
    if course is None:
        raise LookupError("course_not_found")
    return course


def load_topic_chain(store: DocumentStore, topic_id: str) -> Tuple[dict, Optional[dict]]:
    """Return (topic, course); course is None when the topic is dangling."""
    topic = store.get(TOPICS, topic_id)
    if topic is None:
        raise LookupError("topic_not_found")
    return topic, store.get(COURSES, topic.get("course") or "")


def load_text_chain(store: DocumentStore, text_id: str) -> Tuple[dict, dict, Optional[dict]]:
    """Return (text, topic, course) for `text_id`."""
    text = store.get(TEXTS, text_id)
    if text is None:
        raise LookupError("text_not_found")
    topic = store.get(TOPICS, text.get("topic") or "")
    if topic is None:
        raise LookupError("topic_not_found")
    return text, topic, store.get(COURSES, topic.get("course") or "")


def load_question_chain(store: DocumentStore, question_id: str) -> Tuple[dict, dict, Optional[dict]]:
    """Return (question, text, course) for `question_id`."""
    question = store.get(QUESTIONS, question_id)
    if question is None:
        raise LookupError("question_not_found")
    text, _topic, course = load_text_chain(store, question.get("text") or "")
    return question, text, course


def owner_of(course: Optional[dict]) -> Optional[str]:
    if not course:
        return None
    owner = course.get("owner")
    return str(owner) if owner else None


def is_enrolled(store: DocumentStore, student_id: str, course_id: str) -> bool:
    return store.find_one(ENROLLMENTS, {"student": student_id, "course": course_id}) is not None


__all__ = [
    "is_enrolled",
    "load_course",
    "load_question_chain",
    "load_text_chain",
    "load_topic_chain",
    "owner_of",
]
