"""
In-Memory Question Store
=======================

Keeps questions and the curriculum in dictionaries. Used directly in tests
and as the working set of the JSON file store.

Design Notes:
- Records are deep-copied on the way in and out, so callers can never
  mutate stored state or hold on to a live record.
- All mutations run under one asyncio.Lock, so writes reach _persist() one
  at a time and in order.
- The record is changed in memory before _persist() is awaited. If it
  raises, the change is rolled back before the error propagates. A caller
  cancelled while it waits keeps the change, and the subclass finishes
  the write.
"""

import asyncio
from typing import Any, Iterable

from pydantic import ValidationError

from question_agent.errors import DuplicateRecordError, RecordNotFoundError
from question_agent.models import Question, Subject, Topic
from question_agent.storage.base import QuestionStore
from question_agent.utils.logger import Logger

logger = Logger("Storage")


class InMemoryQuestionStore(QuestionStore):
    """
    Dictionary-backed question store.

    Example:
        store = InMemoryQuestionStore(questions=[question])
        q = await store.get_question("Q123")
        await store.update_question("Q123", {"title": "Fractions"})
    """

    def __init__(
        self,
        questions: Iterable[Question] = (),
        subjects: Iterable[Subject] = (),
        topics: Iterable[Topic] = ()
    ):
        self._questions: dict[str, Question] = {}
        self._subjects: dict[str, Subject] = {}
        self._topics: dict[str, Topic] = {}
        self._lock = asyncio.Lock()

        self._load_records(questions, subjects, topics)

    def _load_records(
        self,
        questions: Iterable[Question],
        subjects: Iterable[Subject],
        topics: Iterable[Topic]
    ) -> None:
        for subject in subjects:
            self._subjects[subject.id] = subject.model_copy(deep=True)
        for topic in topics:
            self._topics[topic.id] = topic.model_copy(deep=True)
        for question in questions:
            self._questions[question.id] = question.model_copy(deep=True)

    async def _persist(self) -> None:
        """Write-through hook for subclasses. Awaited inside the lock."""

    # ==========================================================================
    # Questions
    # ==========================================================================

    async def get_question(self, question_id: str) -> Question:
        question = self._questions.get(question_id)
        if question is None:
            raise RecordNotFoundError("Question", question_id)
        return question.model_copy(deep=True)

    async def list_questions(self, topic_id: str, limit: int) -> list[Question]:
        matches = [q for q in self._questions.values() if q.topic_id == topic_id]
        return [q.model_copy(deep=True) for q in matches[:limit]]

    async def count_questions(self, topic_id: str) -> int:
        return sum(1 for q in self._questions.values() if q.topic_id == topic_id)

    async def create_question(self, question: Question) -> Question:
        async with self._lock:
            if question.id in self._questions:
                raise DuplicateRecordError("Question", question.id)

            self._questions[question.id] = question.model_copy(deep=True)
            try:
                await self._persist()
            except Exception:
                del self._questions[question.id]
                raise

        logger.info(f"Created question {question.id}")
        return question.model_copy(deep=True)

    async def update_question(self, question_id: str, fields: dict[str, Any]) -> Question:
        async with self._lock:
            current = self._questions.get(question_id)
            if current is None:
                raise RecordNotFoundError("Question", question_id)

            data = current.model_dump()
            data.update({k: v for k, v in fields.items() if k != "id"})
            try:
                updated = Question.model_validate(data)
            except ValidationError as e:
                raise ValueError(f"Update would make question {question_id} invalid: {e}") from e

            if updated == current:
                logger.debug(f"Update of {question_id} changed nothing")
                return current.model_copy(deep=True)

            self._questions[question_id] = updated
            try:
                await self._persist()
            except Exception:
                self._questions[question_id] = current
                raise

        logger.info(f"Updated question {question_id}", {"fields": sorted(fields)})
        return updated.model_copy(deep=True)

    # ==========================================================================
    # Curriculum
    # ==========================================================================

    async def list_subjects(self, curriculum_code: str | None = None) -> list[Subject]:
        subjects = list(self._subjects.values())
        if curriculum_code:
            code = curriculum_code.lower()
            subjects = [s for s in subjects if s.curriculum_code.lower() == code]
        subjects.sort(key=lambda s: (s.country, s.curriculum_code, s.name))
        return [s.model_copy(deep=True) for s in subjects]

    async def get_subject(self, subject_id: str) -> Subject:
        subject = self._subjects.get(subject_id)
        if subject is None:
            raise RecordNotFoundError("Subject", subject_id)
        return subject.model_copy(deep=True)

    async def list_topics(self, subject_id: str, grade: int | None = None) -> list[Topic]:
        topics = [
            t for t in self._topics.values()
            if t.subject_id == subject_id and t.is_active
            and (grade is None or t.grade == grade)
        ]
        topics.sort(key=lambda t: (t.grade, t.sort_order, t.name))
        return [t.model_copy(deep=True) for t in topics]

    async def get_topic(self, topic_id: str) -> Topic:
        topic = self._topics.get(topic_id)
        if topic is None:
            raise RecordNotFoundError("Topic", topic_id)
        return topic.model_copy(deep=True)

    # ==========================================================================
    # Snapshot
    # ==========================================================================

    def snapshot(self) -> dict[str, list[dict]]:
        """Plain-data copy of the whole store, in insertion order."""
        return {
            "subjects": [s.model_dump(mode="json") for s in self._subjects.values()],
            "topics": [t.model_dump(mode="json") for t in self._topics.values()],
            "questions": [q.model_dump(mode="json") for q in self._questions.values()],
        }
