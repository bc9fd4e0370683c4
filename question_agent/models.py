"""
Domain Models
=============

Records owned by the question store and exchanged with the tools.

Curriculum hierarchy (read-only for the agent):
    Subject (e.g. CAPS Mathematics) → Topic (per grade, with subtopics)

Questions are linked to a primary topic and carry everything needed to
render them as QTI: the stem, the answer options and the correct answer key.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class QuestionType(str, Enum):
    """Interaction types the QTI generator can produce."""
    CHOICE = "CHOICE"
    TEXT_ENTRY = "TEXT_ENTRY"


class DifficultyLevel(str, Enum):
    FOUNDATIONAL = "FOUNDATIONAL"   # below grade level, basic recall
    DEVELOPING = "DEVELOPING"       # working towards grade level
    PROFICIENT = "PROFICIENT"       # at grade level
    ADVANCED = "ADVANCED"           # above grade level
    EXPERT = "EXPERT"               # complex problem solving


class QuestionSource(str, Enum):
    OFFICIAL_PAPER = "OFFICIAL_PAPER"
    TEXTBOOK = "TEXTBOOK"
    AI_GENERATED = "AI_GENERATED"
    SYNTHESIZED = "SYNTHESIZED"
    TEACHER_CREATED = "TEACHER_CREATED"
    COMMUNITY = "COMMUNITY"
    IMPORTED = "IMPORTED"


class Choice(BaseModel):
    """One answer option of a choice question."""
    id: str = Field(min_length=1, description="Choice identifier, e.g. 'ChoiceA'")
    text: str = Field(min_length=1, description="Text shown to the learner")


class Question(BaseModel):
    """
    A stored assessment question.

    Attributes:
        id: Unique question id (e.g. "Q123")
        title: Short title, used as the QTI item title
        stem: The question prompt
        question_type: CHOICE or TEXT_ENTRY
        choices: Answer options (CHOICE only)
        correct_answer: Choice id for CHOICE, expected text for TEXT_ENTRY
        topic_id: Primary topic the question assesses
        difficulty: Difficulty level
        source: Where the question came from
        tags: Free-form labels
        metadata: Anything else (grade, estimated time, ...)
    """
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: str = Field(min_length=1)
    title: str = ""
    stem: str = Field(min_length=1)
    question_type: QuestionType = QuestionType.CHOICE
    choices: list[Choice] = Field(default_factory=list)
    correct_answer: str = Field(min_length=1)
    topic_id: str | None = None
    difficulty: DifficultyLevel = DifficultyLevel.PROFICIENT
    source: QuestionSource = QuestionSource.TEACHER_CREATED
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class Subject(BaseModel):
    """A subject within a national curriculum."""
    id: str
    code: str
    name: str
    description: str | None = None
    curriculum_code: str
    curriculum_name: str
    country: str
    grades: list[int] = Field(default_factory=list)


class Topic(BaseModel):
    """A curriculum topic for one grade of a subject."""
    id: str
    subject_id: str
    code: str
    name: str
    description: str | None = None
    grade: int
    parent_id: str | None = None
    learning_goals: list[str] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)
    estimated_hours: float | None = None
    sort_order: int = 0
    is_active: bool = True
