"""
Question Store Interface
========================

The storage collaborator behind the database tools. Implementations must
keep two kinds of failure apart:

- RecordNotFoundError / DuplicateRecordError: the request was wrong, the
  store is fine. Tools report these back to the model.
- CollaboratorUnavailableError: the store itself cannot serve requests.
  The reasoning loop aborts the request.

Each mutating call is atomic: it either applies fully or not at all, and
concurrent calls on different ids never lose each other's updates.
"""

from abc import ABC, abstractmethod
from typing import Any

from question_agent.models import Question, Subject, Topic


class QuestionStore(ABC):
    """Abstract CRUD access to questions and the curriculum hierarchy."""

    # --- Questions -----------------------------------------------------------

    @abstractmethod
    async def get_question(self, question_id: str) -> Question:
        """Return one question; RecordNotFoundError if absent."""

    @abstractmethod
    async def list_questions(self, topic_id: str, limit: int) -> list[Question]:
        """Return up to `limit` questions whose primary topic is `topic_id`."""

    @abstractmethod
    async def count_questions(self, topic_id: str) -> int:
        """Number of questions linked to a topic."""

    @abstractmethod
    async def create_question(self, question: Question) -> Question:
        """Store a new question; DuplicateRecordError if the id is taken."""

    @abstractmethod
    async def update_question(self, question_id: str, fields: dict[str, Any]) -> Question:
        """
        Overwrite the given fields of a question.

        Applying the same fields twice leaves the same state as applying
        them once.
        """

    # --- Curriculum ----------------------------------------------------------

    @abstractmethod
    async def list_subjects(self, curriculum_code: str | None = None) -> list[Subject]:
        """All subjects, optionally filtered by curriculum code."""

    @abstractmethod
    async def list_topics(self, subject_id: str, grade: int | None = None) -> list[Topic]:
        """Active topics for a subject, optionally for one grade."""

    @abstractmethod
    async def get_topic(self, topic_id: str) -> Topic:
        """Return one topic; RecordNotFoundError if absent."""

    @abstractmethod
    async def get_subject(self, subject_id: str) -> Subject:
        """Return one subject; RecordNotFoundError if absent."""

    async def child_topics(self, topic_id: str) -> list[Topic]:
        """Active subtopics of a topic."""
        topic = await self.get_topic(topic_id)
        topics = await self.list_topics(topic.subject_id)
        return [t for t in topics if t.parent_id == topic_id]
