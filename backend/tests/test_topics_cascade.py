"""
Topic deletion cascade at the service level: idempotency, floor, failures.
"""

from __future__ import annotations

import logging

import pytest

from backend.identity_access.domain import Principal, Role
from backend.identity_access.guards import AccessDenied
from backend.storage.memory import MemoryDocumentStore
from backend.storage.ports import COURSES, READING_PROGRESS, TOPICS
from backend.teaching.services.topics import TopicsService

OWNER = Principal(sub="t-1", role=Role.TEACHER)


def _setup(topic_count: int = 1):
    store = MemoryDocumentStore()
    course = store.insert(COURSES, {"title": "Curso", "owner": OWNER.sub, "topicCount": topic_count})
    topic = store.insert(TOPICS, {"course": course["id"], "title": "Tema", "order": 1})
    for student in ("s-1", "s-2"):
        store.insert(READING_PROGRESS, {"student": student, "topic": topic["id"], "completed": False})
    store.insert(READING_PROGRESS, {"student": "s-1", "topic": "other-topic", "completed": True})
    return store, course, topic


def test_delete_runs_all_three_steps():
    store, course, topic = _setup()
    assert TopicsService(store).delete_topic(OWNER, topic["id"]) is True
    assert store.get(TOPICS, topic["id"]) is None
    assert store.count(READING_PROGRESS, {"topic": topic["id"]}) == 0
    assert store.count(READING_PROGRESS, {"topic": "other-topic"}) == 1
    assert store.get(COURSES, course["id"])["topicCount"] == 0


def test_second_delete_is_noop_and_does_not_decrement_again():
    store, course, topic = _setup(topic_count=2)
    svc = TopicsService(store)
    svc.delete_topic(OWNER, topic["id"])
    assert svc.delete_topic(OWNER, topic["id"]) is False
    assert store.get(COURSES, course["id"])["topicCount"] == 1


def test_retry_removes_progress_orphaned_by_earlier_failure():
    store, course, topic = _setup()
    store.delete(TOPICS, topic["id"])  # step 1 done, then the process died
    assert TopicsService(store).delete_topic(OWNER, topic["id"]) is False
    assert store.count(READING_PROGRESS, {"topic": topic["id"]}) == 0
    assert store.get(COURSES, course["id"])["topicCount"] == 1


def test_topic_count_never_goes_negative():
    store, course, topic = _setup(topic_count=0)
    TopicsService(store).delete_topic(OWNER, topic["id"])
    assert store.get(COURSES, course["id"])["topicCount"] == 0


def test_student_denied_before_lookup():
    store, _, topic = _setup()
    with pytest.raises(AccessDenied):
        TopicsService(store).delete_topic(Principal(sub="s-1", role=Role.STUDENT), "does-not-exist")
    with pytest.raises(AccessDenied):
        TopicsService(store).delete_topic(Principal(sub="s-1", role=Role.STUDENT), topic["id"])
    assert store.get(TOPICS, topic["id"]) is not None


def test_non_owner_teacher_denied_and_nothing_deleted():
    store, course, topic = _setup()
    with pytest.raises(AccessDenied):
        TopicsService(store).delete_topic(Principal(sub="t-2", role=Role.TEACHER), topic["id"])
    assert store.get(TOPICS, topic["id"]) is not None
    assert store.count(READING_PROGRESS, {"topic": topic["id"]}) == 2
    assert store.get(COURSES, course["id"])["topicCount"] == 1


def test_failure_mid_cascade_is_logged_and_not_rolled_back(caplog: pytest.LogCaptureFixture):
    store, course, topic = _setup()

    def boom(*args, **kwargs):
        raise RuntimeError("store down")

    store.increment = boom  # type: ignore[method-assign]
    caplog.set_level(logging.ERROR, logger="critico.teaching.topics")
    with pytest.raises(RuntimeError):
        TopicsService(store).delete_topic(OWNER, topic["id"])
    assert "step=topic_count" in caplog.text
    # Earlier steps stay applied.
    assert store.get(TOPICS, topic["id"]) is None
    assert store.count(READING_PROGRESS, {"topic": topic["id"]}) == 0
    assert store.get(COURSES, course["id"])["topicCount"] == 1


def test_create_increments_topic_count():
    store, course, _ = _setup()
    svc = TopicsService(store)
    svc.create_topic(OWNER, course["id"], title="Nuevo", order=2)
    assert store.get(COURSES, course["id"])["topicCount"] == 2
