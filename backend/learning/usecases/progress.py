from __future__ import annotations

import logging
from dataclasses import dataclass

from backend.identity_access.domain import Principal
from backend.identity_access.guards import require
from backend.storage.ports import COURSES, ENROLLMENTS, READING_PROGRESS, TEXTS, DocumentStore

logger = logging.getLogger("critico.learning")


@dataclass
class StudentProgressInput:
    caller: Principal
    student_id: str


class StudentProgressUseCase:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def execute(self, req: StudentProgressInput) -> dict:
        """Return a student's enrollments and per-text reading progress.

        Behavior:
            - `enrollments`: one entry per Enrollment whose Course still exists,
              `{courseId, courseTitle, progress}` with `progress` verbatim.
            - `texts`: one entry per ReadingProgress that references a Text that
              still exists, `{textId, title, completed, lastPosition, score}`.
            - Dangling references are skipped; an unknown student yields two
              empty lists.

        Permissions:
            Caller must be a teacher. The role check runs before any lookup.
        """
        require(req.caller)
        enrollments = self._store.find(ENROLLMENTS, {"student": req.student_id})
        courses = {c["id"]: c for c in self._store.find_in(COURSES, "id", [e.get("course") for e in enrollments])}
        enrollment_rows: list[dict] = []
        for enrollment in enrollments:
            course = courses.get(enrollment.get("course"))
            if course is None:
                continue
            enrollment_rows.append(
                {
                    "courseId": course["id"],
                    "courseTitle": course.get("title"),
                    "progress": enrollment.get("progress") or {},
                }
            )

        progress_rows = [p for p in self._store.find(READING_PROGRESS, {"student": req.student_id}) if p.get("text")]
        texts = {t["id"]: t for t in self._store.find_in(TEXTS, "id", [p["text"] for p in progress_rows])}
        text_rows: list[dict] = []
        for progress in progress_rows:
            text = texts.get(progress["text"])
            if text is None:
                continue
            text_rows.append(
                {
                    "textId": text["id"],
                    "title": text.get("title"),
                    "completed": bool(progress.get("completed")),
                    "lastPosition": progress.get("lastPosition", 0),
                    "score": progress.get("score"),
                }
            )
        skipped = (len(enrollments) - len(enrollment_rows)) + (len(progress_rows) - len(text_rows))
        if skipped:
            logger.info("student progress skipped dangling refs: student=%s count=%d", req.student_id, skipped)
        return {"enrollments": enrollment_rows, "texts": text_rows}
