"""
Progress dashboards API: student aggregation, course metrics, role gating.
"""

from __future__ import annotations

import pytest

from backend.storage.ports import COURSES, ENROLLMENTS, QUESTION_ATTEMPTS, QUESTIONS, READING_PROGRESS, TEXTS, TOPICS
from utils.api import auth, client, register_and_login, seed

pytestmark = pytest.mark.anyio("asyncio")


@pytest.mark.anyio
async def test_student_progress_aggregates_enrollments_and_texts():
    async with client() as c:
        teacher_token, teacher = await register_and_login(c, email="progress-teacher@example.com", role="teacher")
        _, student = await register_and_login(c, email="progress-student@example.com", role="student")

        course = seed(COURSES, title="Evaluación crítica", owner=teacher["_id"], description="Curso completo", topicCount=1)
        seed(
            ENROLLMENTS,
            student=student["_id"],
            course=course["id"],
            progress={"completion": 60, "level": "intermedio", "lastAccessAt": "2024-01-15T10:00:00+00:00"},
        )
        topic = seed(TOPICS, course=course["id"], title="Interpretación de textos", order=1, isPublished=True)
        text = seed(
            TEXTS,
            topic=topic["id"],
            title="Lectura crítica de editoriales",
            content="Contenido para analizar sesgos autorales.",
            source="Manual docente",
            estimatedTime=15,
            difficulty="intermediate",
            length="medium",
            tags=["editorial"],
        )
        seed(
            READING_PROGRESS,
            student=student["_id"],
            topic=topic["id"],
            text=text["id"],
            completed=True,
            lastPosition=50,
            score=85,
            lastMode={"theme": "dark", "fontSize": "large"},
        )

        r = await c.get(f"/api/progress/student/{student['_id']}", headers=auth(teacher_token))

    assert r.status_code == 200
    body = r.json()
    assert len(body["enrollments"]) == 1
    enrollment = body["enrollments"][0]
    assert enrollment["courseId"] == course["id"]
    assert enrollment["courseTitle"] == "Evaluación crítica"
    assert enrollment["progress"]["completion"] == 60
    assert enrollment["progress"]["level"] == "intermedio"
    assert enrollment["progress"]["lastAccessAt"] == "2024-01-15T10:00:00+00:00"

    assert body["texts"] == [
        {
            "textId": text["id"],
            "title": "Lectura crítica de editoriales",
            "completed": True,
            "lastPosition": 50,
            "score": 85,
        }
    ]


@pytest.mark.anyio
async def test_course_metrics_averages_levels_and_question_stats():
    async with client() as c:
        teacher_token, teacher = await register_and_login(c, email="metrics-teacher@example.com", role="teacher")
        _, student_a = await register_and_login(c, email="metrics-student-a@example.com", role="student")
        _, student_b = await register_and_login(c, email="metrics-student-b@example.com", role="student")

        course = seed(COURSES, title="Analítica de progreso", owner=teacher["_id"], topicCount=1)
        seed(ENROLLMENTS, student=student_a["_id"], course=course["id"], progress={"completion": 60, "level": "intermedio"})
        seed(ENROLLMENTS, student=student_b["_id"], course=course["id"], progress={"completion": 80, "level": "avanzado"})
        topic = seed(TOPICS, course=course["id"], title="Evaluación de argumentos", order=1, isPublished=True)
        text = seed(TEXTS, topic=topic["id"], title="Argumentos complejos", content="Texto.", estimatedTime=12)
        question = seed(
            QUESTIONS,
            text=text["id"],
            skill="inferencial",
            type="multiple-choice",
            prompt="¿Cuál es la inferencia más sólida?",
            options=[{"label": "Respuesta A", "isCorrect": True}, {"label": "Respuesta B", "isCorrect": False}],
            feedbackTemplate="Revisa las evidencias presentadas.",
        )
        seed(
            QUESTION_ATTEMPTS,
            student=student_a["_id"],
            question=question["id"],
            text=text["id"],
            answers=[{"value": "Respuesta A", "isCorrect": True}],
            score=80,
            completedAt="2024-02-01T12:00:00+00:00",
        )
        seed(
            QUESTION_ATTEMPTS,
            student=student_b["_id"],
            question=question["id"],
            text=text["id"],
            answers=[{"value": "Respuesta B", "isCorrect": False}],
            score=60,
            completedAt="2024-02-02T12:00:00+00:00",
        )

        r = await c.get(f"/api/progress/course/{course['id']}/metrics", headers=auth(teacher_token))

    assert r.status_code == 200
    body = r.json()
    assert body["courseId"] == course["id"]
    assert body["enrollmentMetrics"]["averageCompletion"] == pytest.approx(70)
    assert sorted(body["enrollmentMetrics"]["levelDistribution"]) == ["avanzado", "intermedio"]
    assert len(body["questionMetrics"]) == 1
    stats = body["questionMetrics"][0]
    assert stats["_id"] == text["id"]
    assert stats["averageScore"] == pytest.approx(70)
    assert stats["attempts"] == 2


@pytest.mark.anyio
async def test_students_are_rejected_from_teacher_dashboards():
    async with client() as c:
        student_token, student = await register_and_login(
            c, email="progress-student-restricted@example.com", role="student"
        )
        progress = await c.get(f"/api/progress/student/{student['_id']}", headers=auth(student_token))
        # Any id, existing or not, yields 403 for students.
        metrics = await c.get(f"/api/progress/course/{student['_id']}/metrics", headers=auth(student_token))

    assert progress.status_code == 403
    assert progress.json()["message"] == "Permisos insuficientes"
    assert metrics.status_code == 403
    assert metrics.json()["message"] == "Permisos insuficientes"


@pytest.mark.anyio
async def test_metrics_for_foreign_or_unknown_course():
    async with client() as c:
        owner_token, owner = await register_and_login(c, email="m-owner@example.com", role="teacher")
        other_token, _ = await register_and_login(c, email="m-other@example.com", role="teacher")
        course = seed(COURSES, title="Privado", owner=owner["_id"], topicCount=0)

        foreign = await c.get(f"/api/progress/course/{course['id']}/metrics", headers=auth(other_token))
        unknown = await c.get("/api/progress/course/no-such-course/metrics", headers=auth(owner_token))
        empty = await c.get(f"/api/progress/course/{course['id']}/metrics", headers=auth(owner_token))

    assert foreign.status_code == 403
    assert foreign.json() == {"message": "Permisos insuficientes"}
    assert unknown.status_code == 404
    assert empty.status_code == 200
    assert empty.json() == {
        "courseId": course["id"],
        "enrollmentMetrics": {"averageCompletion": 0, "levelDistribution": []},
        "questionMetrics": [],
    }


@pytest.mark.anyio
async def test_dashboards_require_a_token():
    async with client() as c:
        r = await c.get("/api/progress/student/anyone")
    assert r.status_code == 401
