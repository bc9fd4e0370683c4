"""
Database Tools
==============

Tools that read and write the question store.

These tools allow the agent to:
- Explore the curriculum (subjects → topics → subtopics)
- Look up and list stored questions
- Create and update questions
- Insert a validated QTI item as a new question

Every tool validates its input before touching storage. Expected failures
(unknown id, duplicate id) come back as a failed ToolResult so the model
can react; an unavailable store raises CollaboratorUnavailableError, which
ends the request.

The store is passed in explicitly (build_database_tools(store)) so tests
can hand in an in-memory store.
"""

import uuid
from typing import Any

from pydantic import Field, ValidationError

from question_agent.errors import DuplicateRecordError, MalformedInputError, RecordNotFoundError
from question_agent.models import (
    Choice,
    DifficultyLevel,
    Question,
    QuestionSource,
    QuestionType,
)
from question_agent.qti import parse_qti, question_problems, validate_qti
from question_agent.storage.base import QuestionStore
from question_agent.tools.registry import ToolDescriptor, ToolInput, ToolResult
from question_agent.utils.logger import Logger

logger = Logger("Tools:Database")

MAX_LIST_LIMIT = 50
DEFAULT_LIST_LIMIT = 10


def new_question_id() -> str:
    """Generate a fresh question id (e.g. Q-3F9A1C2B)."""
    return f"Q-{uuid.uuid4().hex[:8].upper()}"


# ==============================================================================
# Input Schemas
# ==============================================================================

class LookupQuestionInput(ToolInput):
    id: str = Field(min_length=1, description="Question id, e.g. 'Q123'")


class ListQuestionsInput(ToolInput):
    topic: str = Field(min_length=1, description="Topic id to list questions for")
    limit: int = Field(
        DEFAULT_LIST_LIMIT, ge=1, le=MAX_LIST_LIMIT,
        description=f"Maximum number of questions (1-{MAX_LIST_LIMIT})"
    )


class NewQuestionFields(ToolInput):
    id: str | None = Field(None, min_length=1, description="Optional id; generated when omitted")
    title: str = ""
    stem: str = Field(min_length=1, description="The question prompt")
    question_type: QuestionType = QuestionType.CHOICE
    choices: list[Choice] = Field(default_factory=list, description="Answer options for CHOICE questions")
    correct_answer: str = Field(min_length=1, description="Choice id (CHOICE) or expected text (TEXT_ENTRY)")
    topic_id: str | None = Field(None, description="Primary topic id")
    difficulty: DifficultyLevel = DifficultyLevel.PROFICIENT
    source: QuestionSource = QuestionSource.TEACHER_CREATED
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class CreateQuestionInput(ToolInput):
    fields: NewQuestionFields


class QuestionUpdateFields(ToolInput):
    title: str | None = None
    stem: str | None = Field(None, min_length=1)
    question_type: QuestionType | None = None
    choices: list[Choice] | None = None
    correct_answer: str | None = Field(None, min_length=1)
    topic_id: str | None = None
    difficulty: DifficultyLevel | None = None
    source: QuestionSource | None = None
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None


class UpdateQuestionInput(ToolInput):
    id: str = Field(min_length=1, description="Id of the question to update")
    fields: QuestionUpdateFields = Field(description="Fields to overwrite; omitted fields are kept")


class ListSubjectsInput(ToolInput):
    curriculum_code: str | None = Field(None, description="Curriculum code such as 'CAPS', or omit for all")


class ListTopicsInput(ToolInput):
    subject_id: str = Field(min_length=1, description="Subject id to list topics for")
    grade: int | None = Field(None, ge=1, le=12, description="Only topics for this grade (1-12)")


class GetTopicDetailsInput(ToolInput):
    topic_id: str = Field(min_length=1, description="Topic id")


class InsertQuestionInput(ToolInput):
    qti_xml: str = Field(min_length=1, description="The full, raw QTI 3.0 XML document")
    topic_id: str = Field(min_length=1, description="Primary topic id")
    difficulty: DifficultyLevel
    tags: list[str] = Field(default_factory=list)


# ==============================================================================
# Tool Set
# ==============================================================================

def build_database_tools(store: QuestionStore) -> list[ToolDescriptor]:
    """Create the database tools bound to a store."""

    async def _topic_exists(topic_id: str | None) -> bool:
        if topic_id is None:
            return True
        try:
            await store.get_topic(topic_id)
            return True
        except RecordNotFoundError:
            return False

    # --------------------------------------------------------------------------
    # Questions
    # --------------------------------------------------------------------------

    async def _lookup_question(params: LookupQuestionInput) -> ToolResult:
        """Look up a single question by id."""
        try:
            question = await store.get_question(params.id.strip())
        except RecordNotFoundError as e:
            logger.warning(str(e))
            return ToolResult(success=False, error=str(e))

        return ToolResult(success=True, data=question.model_dump(mode="json"))

    async def _list_questions(params: ListQuestionsInput) -> ToolResult:
        """List the questions of a topic."""
        topic_id = params.topic.strip()
        if not await _topic_exists(topic_id):
            return ToolResult(success=False, error=f"Topic {topic_id} not found")

        questions = await store.list_questions(topic_id, params.limit)
        return ToolResult(success=True, data={
            "topic_id": topic_id,
            "count": len(questions),
            "questions": [q.model_dump(mode="json") for q in questions],
        })

    async def _create_question(params: CreateQuestionInput) -> ToolResult:
        """Create a new question."""
        fields = params.fields.model_dump()
        fields["id"] = fields.get("id") or new_question_id()

        if not await _topic_exists(fields["topic_id"]):
            return ToolResult(success=False, error=f"Topic {fields['topic_id']} not found")

        record = Question.model_validate(fields)
        problems = question_problems(record)
        if problems:
            return ToolResult(success=False, error="Question is inconsistent: " + "; ".join(problems))

        try:
            question = await store.create_question(record)
        except DuplicateRecordError as e:
            return ToolResult(success=False, error=str(e))

        return ToolResult(success=True, data=question.model_dump(mode="json"))

    async def _update_question(params: UpdateQuestionInput) -> ToolResult:
        """Overwrite fields of an existing question."""
        fields = params.fields.model_dump(mode="json", exclude_unset=True)
        fields = {k: v for k, v in fields.items() if v is not None or k == "topic_id"}
        if not fields:
            return ToolResult(success=False, error="No fields to update")

        if "topic_id" in fields and not await _topic_exists(fields["topic_id"]):
            return ToolResult(success=False, error=f"Topic {fields['topic_id']} not found")

        question_id = params.id.strip()
        try:
            current = await store.get_question(question_id)
        except RecordNotFoundError as e:
            return ToolResult(success=False, error=str(e))

        # Check the record as it would look after the update
        merged = current.model_dump(mode="json")
        merged.update(fields)
        try:
            problems = question_problems(Question.model_validate(merged))
        except ValidationError as e:
            problems = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        if problems:
            return ToolResult(success=False, error="Question is inconsistent: " + "; ".join(problems))

        try:
            question = await store.update_question(question_id, fields)
        except RecordNotFoundError as e:
            return ToolResult(success=False, error=str(e))

        return ToolResult(success=True, data=question.model_dump(mode="json"))

    async def _insert_question(params: InsertQuestionInput) -> ToolResult:
        """Validate a QTI item and store it as a new question."""
        validation = validate_qti(params.qti_xml)
        if not validation.valid:
            return ToolResult(success=False, error="QTI validation failed: " + "; ".join(validation.errors))

        try:
            await store.get_topic(params.topic_id)
        except RecordNotFoundError as e:
            return ToolResult(success=False, error=str(e))

        try:
            fields = parse_qti(params.qti_xml)
        except MalformedInputError as e:
            return ToolResult(success=False, error=str(e))

        fields["metadata"]["qti_identifier"] = fields["id"]
        fields.update(
            id=new_question_id(),
            topic_id=params.topic_id,
            difficulty=params.difficulty,
            tags=params.tags,
            source=QuestionSource.AI_GENERATED,
        )

        question = await store.create_question(Question.model_validate(fields))
        return ToolResult(success=True, data={
            "question_id": question.id,
            "title": question.title,
            "question_type": question.question_type,
            "difficulty": question.difficulty,
            "topic_id": question.topic_id,
            "warnings": validation.warnings,
        })

    # --------------------------------------------------------------------------
    # Curriculum
    # --------------------------------------------------------------------------

    async def _list_subjects(params: ListSubjectsInput) -> ToolResult:
        """List subjects, optionally for one curriculum."""
        code = (params.curriculum_code or "").strip()
        if code.lower() in ("", "all", "none"):
            code = None

        subjects = await store.list_subjects(code)
        return ToolResult(success=True, data=[s.model_dump(mode="json") for s in subjects])

    async def _list_topics(params: ListTopicsInput) -> ToolResult:
        """List the active topics of a subject."""
        try:
            subject = await store.get_subject(params.subject_id.strip())
        except RecordNotFoundError as e:
            return ToolResult(success=False, error=str(e))

        if params.grade is not None and params.grade not in subject.grades:
            return ToolResult(
                success=False,
                error=f"Grade level {params.grade} not found for subject {subject.id}"
            )

        topics = await store.list_topics(subject.id, params.grade)
        data = []
        for topic in topics:
            entry = topic.model_dump(mode="json")
            entry["questions_count"] = await store.count_questions(topic.id)
            data.append(entry)
        return ToolResult(success=True, data=data)

    async def _get_topic_details(params: GetTopicDetailsInput) -> ToolResult:
        """Topic with its place in the curriculum, parent and subtopics."""
        try:
            topic = await store.get_topic(params.topic_id.strip())
            subject = await store.get_subject(topic.subject_id)
        except RecordNotFoundError as e:
            return ToolResult(success=False, error=str(e))

        parent = None
        if topic.parent_id:
            try:
                parent_topic = await store.get_topic(topic.parent_id)
                parent = {"id": parent_topic.id, "code": parent_topic.code, "name": parent_topic.name}
            except RecordNotFoundError:
                logger.warning(f"Topic {topic.id} points at missing parent {topic.parent_id}")

        children = await store.child_topics(topic.id)

        data = topic.model_dump(mode="json")
        data.update({
            "hierarchy": {
                "country": subject.country,
                "curriculum": subject.curriculum_name,
                "subject": subject.name,
                "grade": topic.grade,
            },
            "parent": parent,
            "children": [{"id": c.id, "code": c.code, "name": c.name} for c in children],
            "questions_count": await store.count_questions(topic.id),
        })
        return ToolResult(success=True, data=data)

    return [
        ToolDescriptor(
            name="list_subjects",
            description="List the subjects in the database. Optionally filter by curriculum code such as 'CAPS'.",
            input_model=ListSubjectsInput,
            execute=_list_subjects,
        ),
        ToolDescriptor(
            name="list_topics",
            description="List the topics of a subject, optionally for a single grade level.",
            input_model=ListTopicsInput,
            execute=_list_topics,
        ),
        ToolDescriptor(
            name="get_topic_details",
            description="Get a topic's learning goals, prerequisites, curriculum hierarchy and subtopics.",
            input_model=GetTopicDetailsInput,
            execute=_get_topic_details,
        ),
        ToolDescriptor(
            name="lookup_question",
            description="Look up a stored question by its id. Returns the full question record.",
            input_model=LookupQuestionInput,
            execute=_lookup_question,
        ),
        ToolDescriptor(
            name="list_questions",
            description="List stored questions for a topic id.",
            input_model=ListQuestionsInput,
            execute=_list_questions,
        ),
        ToolDescriptor(
            name="create_question",
            description="Create a new question from structured fields (stem, choices, correct_answer, ...).",
            input_model=CreateQuestionInput,
            execute=_create_question,
        ),
        ToolDescriptor(
            name="update_question",
            description="Overwrite fields of an existing question. Fields not given are left unchanged.",
            input_model=UpdateQuestionInput,
            execute=_update_question,
        ),
        ToolDescriptor(
            name="insert_question",
            description=(
                "Store a complete QTI 3.0 XML item as a new question linked to a topic. "
                "The XML is validated first; pass the full raw document, never a placeholder."
            ),
            input_model=InsertQuestionInput,
            execute=_insert_question,
        ),
    ]
