"""Teaching content service layer: texts under topics, questions under texts.

Permissions:
    Owners of the top-level course write content. Owners and enrolled
    students read it; students never see which option is correct.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from backend.identity_access.domain import Principal
from backend.identity_access.guards import require, require_reader
from backend.storage.ports import QUESTIONS, TEXTS, DocumentStore
from backend.teaching.ownership import is_enrolled, load_text_chain, load_topic_chain, owner_of


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _required_text(value: object, code: str, *, max_len: int | None = None) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(code)
    trimmed = value.strip()
    if max_len is not None and len(trimmed) > max_len:
        raise ValueError(code)
    return trimmed


def _normalize_tags(value: Optional[Sequence[str]]) -> List[str]:
    tags: List[str] = []
    for tag in value or []:
        if isinstance(tag, str) and tag.strip() and tag.strip() not in tags:
            tags.append(tag.strip())
    return tags


def _normalize_options(value: Sequence[Any]) -> List[dict]:
    options: List[dict] = []
    for raw in value or []:
        label = raw.get("label") if isinstance(raw, dict) else None
        options.append({"label": _required_text(label, "invalid_options"), "isCorrect": bool(raw.get("isCorrect"))})
    if len(options) < 2:
        raise ValueError("invalid_options")
    return options


def public_question(question: dict) -> dict:
    """Student view of a question: options without correctness flags."""
    out = dict(question)
    out["options"] = [{"label": o.get("label")} for o in question.get("options") or []]
    out.pop("feedbackTemplate", None)
    return out


@dataclass
class ContentService:
    store: DocumentStore

    def _owner_of_topic(self, topic_id: str) -> Optional[str]:
        _topic, course = load_topic_chain(self.store, topic_id)
        return owner_of(course)

    def _owner_of_text(self, text_id: str) -> Optional[str]:
        _text, _topic, course = load_text_chain(self.store, text_id)
        return owner_of(course)

    def _require_course_reader(self, caller: Principal, course: Optional[dict]) -> None:
        course_id = (course or {}).get("id") or ""
        require_reader(
            caller,
            owner_id=owner_of(course),
            is_member=lambda: bool(course_id) and is_enrolled(self.store, caller.sub, course_id),
        )

    # --- Texts ------------------------------------------------------------------
    def create_text(self, caller: Principal, topic_id: str, payload: dict) -> dict:
        require(caller, resolve_owner=lambda: self._owner_of_topic(topic_id))
        estimated = payload.get("estimatedTime")
        if estimated is not None and (isinstance(estimated, bool) or not isinstance(estimated, int) or estimated < 0):
            raise ValueError("invalid_estimated_time")
        now = _now()
        return self.store.insert(
            TEXTS,
            {
                "topic": topic_id,
                "title": _required_text(payload.get("title"), "invalid_title", max_len=200),
                "content": _required_text(payload.get("content"), "invalid_content"),
                "source": (payload.get("source") or "").strip(),
                "estimatedTime": estimated,
                "difficulty": payload.get("difficulty"),
                "length": payload.get("length"),
                "tags": _normalize_tags(payload.get("tags")),
                "createdAt": now,
                "updatedAt": now,
            },
        )

    def list_texts(self, caller: Principal, topic_id: str) -> list[dict]:
        _topic, course = load_topic_chain(self.store, topic_id)
        self._require_course_reader(caller, course)
        return self.store.find(TEXTS, {"topic": topic_id})

    def get_text(self, caller: Principal, text_id: str) -> dict:
        text, _topic, course = load_text_chain(self.store, text_id)
        self._require_course_reader(caller, course)
        return text

    # --- Questions --------------------------------------------------------------
    def create_question(self, caller: Principal, text_id: str, payload: dict) -> dict:
        require(caller, resolve_owner=lambda: self._owner_of_text(text_id))
        return self.store.insert(
            QUESTIONS,
            {
                "text": text_id,
                "skill": (payload.get("skill") or "").strip(),
                "type": (payload.get("type") or "multiple-choice").strip(),
                "prompt": _required_text(payload.get("prompt"), "invalid_prompt"),
                "options": _normalize_options(payload.get("options") or []),
                "feedbackTemplate": (payload.get("feedbackTemplate") or "").strip(),
                "createdAt": _now(),
            },
        )

    def list_questions(self, caller: Principal, text_id: str) -> list[dict]:
        _text, _topic, course = load_text_chain(self.store, text_id)
        self._require_course_reader(caller, course)
        questions = self.store.find(QUESTIONS, {"text": text_id})
        if caller.is_teacher:
            return questions
        return [public_question(q) for q in questions]


__all__ = ["ContentService", "public_question"]
