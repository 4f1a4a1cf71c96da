"""Student activity use cases: enrollment, reading progress and question attempts.

Why:
    These are the only writers of the records the progress aggregators read.
    Keeping them next to the aggregators makes the Enrollment `progress`
    sub-document (completion, level, lastAccessAt) follow one rule.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from backend.identity_access.domain import Principal, Role
from backend.identity_access.guards import require, require_reader
from backend.storage.ports import (
    ENROLLMENTS,
    QUESTION_ATTEMPTS,
    READING_PROGRESS,
    TEXTS,
    TOPICS,
    DocumentStore,
    DuplicateKeyError,
)
from backend.teaching.ownership import is_enrolled, load_course, load_question_chain, load_text_chain, owner_of

logger = logging.getLogger("critico.learning")

STUDENTS_ONLY = frozenset({Role.STUDENT})

LEVEL_INITIAL = "inicial"
LEVEL_INTERMEDIATE = "intermedio"
LEVEL_ADVANCED = "avanzado"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def level_for(completion: float) -> str:
    if completion < 40:
        return LEVEL_INITIAL
    if completion < 75:
        return LEVEL_INTERMEDIATE
    return LEVEL_ADVANCED


def grade_answers(options: Sequence[dict], values: Sequence[str]) -> tuple[list[dict], float]:
    """Mark each answer against the correct option labels; score is 0..100."""
    correct = {o.get("label") for o in options if o.get("isCorrect")}
    answers = [{"value": v, "isCorrect": v in correct} for v in values]
    hits = sum(1 for a in answers if a["isCorrect"])
    return answers, 100 * hits / len(answers)


def refresh_enrollment_progress(store: DocumentStore, student_id: str, course_id: str) -> Optional[dict]:
    """Recompute the Enrollment progress sub-document from reading progress.

    completion is the share of the course's texts the student has completed,
    rounded to 2 decimals. Returns None when the student is not enrolled.
    """
    enrollment = store.find_one(ENROLLMENTS, {"student": student_id, "course": course_id})
    if enrollment is None:
        return None
    topic_ids = [t["id"] for t in store.find(TOPICS, {"course": course_id})]
    text_ids = {t["id"] for t in store.find_in(TEXTS, "topic", topic_ids)}
    done = {
        p.get("text")
        for p in store.find(READING_PROGRESS, {"student": student_id, "completed": True})
        if p.get("text") in text_ids
    }
    completion = round(100 * len(done) / len(text_ids), 2) if text_ids else 0
    progress = {"completion": completion, "level": level_for(completion), "lastAccessAt": _now()}
    return store.update(ENROLLMENTS, enrollment["id"], {"progress": progress})


@dataclass
class EnrollInput:
    caller: Principal
    course_id: str


class EnrollUseCase:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def execute(self, req: EnrollInput) -> tuple[dict, bool]:
        """Enroll the calling student; returns (enrollment, created).

        Behavior:
            Idempotent: re-enrolling returns the existing record with
            created=False. A concurrent duplicate insert is resolved by
            re-reading the winner.

        Permissions:
            Caller must be a student; the course must exist.
        """
        require(req.caller, allowed_roles=STUDENTS_ONLY)
        load_course(self._store, req.course_id)
        key = {"student": req.caller.sub, "course": req.course_id}
        existing = self._store.find_one(ENROLLMENTS, key)
        if existing is not None:
            return existing, False
        try:
            created = self._store.insert(
                ENROLLMENTS,
                {
                    **key,
                    "progress": {"completion": 0, "level": LEVEL_INITIAL, "lastAccessAt": _now()},
                    "createdAt": _now(),
                },
            )
        except DuplicateKeyError:
            winner = self._store.find_one(ENROLLMENTS, key)
            if winner is None:
                raise
            return winner, False
        logger.info("enrolled: student=%s course=%s", req.caller.sub, req.course_id)
        return created, True


@dataclass
class ReadingProgressInput:
    caller: Principal
    text_id: str
    completed: Optional[bool] = None
    last_position: Optional[int] = None
    score: Optional[float] = None
    last_mode: dict[str, Any] = field(default_factory=dict)


class UpdateReadingProgressUseCase:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def execute(self, req: ReadingProgressInput) -> dict:
        """Upsert the student's ReadingProgress for a text.

        Behavior:
            - One row per (student, text); omitted fields keep stored values.
            - `topic` is taken from the text so topic deletion can find it.
            - Refreshes the course Enrollment progress afterwards.

        Permissions:
            Caller must be a student enrolled in the text's course.
        """
        require(req.caller, allowed_roles=STUDENTS_ONLY)
        text, topic, course = load_text_chain(self._store, req.text_id)
        course_id = (course or {}).get("id") or ""
        require_reader(
            req.caller,
            owner_id=owner_of(course),
            is_member=lambda: bool(course_id) and is_enrolled(self._store, req.caller.sub, course_id),
        )
        if req.last_position is not None and req.last_position < 0:
            raise ValueError("invalid_last_position")
        if req.score is not None and not 0 <= req.score <= 100:
            raise ValueError("invalid_score")

        patch: dict[str, Any] = {"topic": topic["id"], "updatedAt": _now()}
        if req.completed is not None:
            patch["completed"] = bool(req.completed)
        if req.last_position is not None:
            patch["lastPosition"] = req.last_position
        if req.score is not None:
            patch["score"] = req.score
        if req.last_mode:
            patch["lastMode"] = {k: req.last_mode[k] for k in ("theme", "fontSize") if k in req.last_mode}

        key = {"student": req.caller.sub, "text": text["id"]}
        row = self._store.find_one(READING_PROGRESS, key)
        if row is None:
            base = {"completed": False, "lastPosition": 0, "score": None, "lastMode": {}}
            saved = self._store.insert(READING_PROGRESS, {**key, **base, **patch})
        else:
            saved = self._store.update(READING_PROGRESS, row["id"], patch) or row
        refresh_enrollment_progress(self._store, req.caller.sub, course_id)
        return saved


@dataclass
class SubmitAttemptInput:
    caller: Principal
    question_id: str
    answers: list[str]


class SubmitAttemptUseCase:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def execute(self, req: SubmitAttemptInput) -> dict:
        """Grade and store a QuestionAttempt.

        Behavior:
            - Each answer value is correct when it equals the label of an
              option marked correct; score = 100 * correct / answers.
            - `text` is copied from the question so metrics can group by it.
            - Attempts are append-only; every submission is a new record.

        Permissions:
            Caller must be a student enrolled in the question's course.
        """
        require(req.caller, allowed_roles=STUDENTS_ONLY)
        question, text, course = load_question_chain(self._store, req.question_id)
        course_id = (course or {}).get("id") or ""
        require_reader(
            req.caller,
            owner_id=owner_of(course),
            is_member=lambda: bool(course_id) and is_enrolled(self._store, req.caller.sub, course_id),
        )
        values = [v.strip() for v in req.answers if isinstance(v, str) and v.strip()]
        if not values:
            raise ValueError("invalid_answers")
        answers, score = grade_answers(question.get("options") or [], values)
        attempt = self._store.insert(
            QUESTION_ATTEMPTS,
            {
                "student": req.caller.sub,
                "question": question["id"],
                "text": text["id"],
                "answers": answers,
                "score": score,
                "completedAt": _now(),
            },
        )
        refresh_enrollment_progress(self._store, req.caller.sub, course_id)
        return attempt
