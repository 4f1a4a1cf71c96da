from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from backend.identity_access.domain import Principal
from backend.identity_access.guards import require
from backend.storage.ports import ENROLLMENTS, QUESTION_ATTEMPTS, TEXTS, TOPICS, DocumentStore
from backend.teaching.ownership import load_course, owner_of


def average(values: Iterable[float]) -> float:
    items = list(values)
    if not items:
        return 0
    return sum(items) / len(items)


def distinct_in_order(values: Iterable[object]) -> list:
    seen: list = []
    for value in values:
        if value is not None and value not in seen:
            seen.append(value)
    return seen


@dataclass
class CourseMetricsInput:
    caller: Principal
    course_id: str


class CourseMetricsUseCase:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def execute(self, req: CourseMetricsInput) -> dict:
        """Compute enrollment and question statistics for a course.

        Behavior:
            - `enrollmentMetrics.averageCompletion`: arithmetic mean of
              `progress.completion` over the course's enrollments, 0 when none.
            - `enrollmentMetrics.levelDistribution`: distinct level labels in
              first-seen order (no counts).
            - `questionMetrics`: one `{_id, averageScore, attempts}` entry per
              text of the course that has at least one attempt. Attempts are
              grouped by their own `text` field and every attempt counts, so
              repeated tries by one student weigh each. No rounding.

        Permissions:
            Caller must be a teacher and the owner of the course. Students are
            denied before the course is looked up; an unknown course surfaces
            as LookupError for teachers.
        """
        require(req.caller, resolve_owner=lambda: owner_of(load_course(self._store, req.course_id)))

        enrollments = self._store.find(ENROLLMENTS, {"course": req.course_id})
        progress = [e.get("progress") or {} for e in enrollments]
        enrollment_metrics = {
            "averageCompletion": average(float(p.get("completion") or 0) for p in progress),
            "levelDistribution": distinct_in_order(p.get("level") for p in progress),
        }

        topic_ids = [t["id"] for t in self._store.find(TOPICS, {"course": req.course_id})]
        text_ids = [t["id"] for t in self._store.find_in(TEXTS, "topic", topic_ids)]
        scores: dict[str, list[float]] = {}
        for attempt in self._store.find_in(QUESTION_ATTEMPTS, "text", text_ids):
            scores.setdefault(attempt["text"], []).append(float(attempt.get("score") or 0))
        question_metrics = [
            {"_id": text_id, "averageScore": average(values), "attempts": len(values)}
            for text_id, values in scores.items()
        ]
        return {
            "courseId": req.course_id,
            "enrollmentMetrics": enrollment_metrics,
            "questionMetrics": question_metrics,
        }
