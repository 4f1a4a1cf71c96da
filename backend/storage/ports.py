"""
Document store port shared by the teaching and learning contexts.

Keep this small and framework-agnostic so tests can supply the in-memory
adapter and deployments the Postgres adapter without touching services.

Model:
    Records are JSON-like dicts grouped in named collections and keyed by an
    opaque string `id` assigned by the adapter on insert. Filters are simple
    top-level equality matches. Adapters return copies; mutating a returned
    dict never changes stored state.
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Protocol

USERS = "users"
COURSES = "courses"
TOPICS = "topics"
TEXTS = "texts"
ENROLLMENTS = "enrollments"
READING_PROGRESS = "reading_progress"
QUESTIONS = "questions"
QUESTION_ATTEMPTS = "question_attempts"

COLLECTIONS = (
    USERS,
    COURSES,
    TOPICS,
    TEXTS,
    ENROLLMENTS,
    READING_PROGRESS,
    QUESTIONS,
    QUESTION_ATTEMPTS,
)

# Field tuples that must be unique within a collection.
UNIQUE_KEYS: dict[str, tuple[str, ...]] = {
    USERS: ("email",),
    ENROLLMENTS: ("student", "course"),
}


class DuplicateKeyError(Exception):
    """Raised when an insert violates a unique key from UNIQUE_KEYS."""

    def __init__(self, collection: str, fields: tuple[str, ...]):
        super().__init__(f"duplicate_key:{collection}:{','.join(fields)}")
        self.collection = collection
        self.fields = fields


class DocumentStore(Protocol):
    def insert(self, collection: str, doc: Mapping[str, Any]) -> dict: ...

    def get(self, collection: str, doc_id: str) -> Optional[dict]: ...

    def find(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> list[dict]: ...

    def find_one(self, collection: str, filters: Mapping[str, Any]) -> Optional[dict]: ...

    def find_in(self, collection: str, field: str, values: Iterable[str]) -> list[dict]: ...

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> Optional[dict]: ...

    def increment(
        self,
        collection: str,
        doc_id: str,
        field: str,
        delta: int,
        *,
        floor: Optional[int] = None,
    ) -> Optional[dict]: ...

    def delete(self, collection: str, doc_id: str) -> bool: ...

    def delete_many(self, collection: str, filters: Mapping[str, Any]) -> int: ...

    def count(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> int: ...


__all__ = [
    "COLLECTIONS",
    "COURSES",
    "DocumentStore",
    "DuplicateKeyError",
    "ENROLLMENTS",
    "QUESTIONS",
    "QUESTION_ATTEMPTS",
    "READING_PROGRESS",
    "TEXTS",
    "TOPICS",
    "UNIQUE_KEYS",
    "USERS",
]
