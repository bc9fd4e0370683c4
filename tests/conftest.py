"""Pytest configuration and shared fixtures.

Provides:
- The bundled sample curriculum as an in-memory store
- A frozen tool registry over that store
- ScriptedModel, a language model that replays canned replies
"""

import asyncio
import json
from typing import Any

import pytest

from question_agent.agent.core import QuestionAgent
from question_agent.models import Question, Subject, Topic
from question_agent.storage import InMemoryQuestionStore
from question_agent.storage.json_store import SAMPLE_DATA_FILE
from question_agent.tools import build_registry
from question_agent.tools.registry import ToolRegistry
from question_agent.utils.config import AgentConfig


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")


# =============================================================================
# Fakes
# =============================================================================


class ScriptedModel:
    """Language model double that returns queued replies in order.

    Each entry is either a reply string, an exception instance to raise, or
    a callable returning an awaitable (for slow or blocking replies).
    Every conversation it receives is recorded in ``calls``.
    """

    def __init__(self, replies: list[Any]):
        self.replies = list(replies)
        self.calls: list[list[dict]] = []

    async def complete(self, messages: list[dict]) -> str:
        self.calls.append([dict(m) for m in messages])
        if not self.replies:
            raise AssertionError("ScriptedModel ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return await reply()
        return reply


def load_sample_store() -> InMemoryQuestionStore:
    """Build an in-memory store from the bundled sample curriculum."""
    with open(SAMPLE_DATA_FILE, encoding="utf-8") as f:
        state = json.load(f)
    return InMemoryQuestionStore(
        questions=[Question.model_validate(q) for q in state["questions"]],
        subjects=[Subject.model_validate(s) for s in state["subjects"]],
        topics=[Topic.model_validate(t) for t in state["topics"]],
    )


def action(name: str, arguments: Any, thought: str = "I should use a tool") -> str:
    """Format a model reply that calls a tool."""
    payload = arguments if isinstance(arguments, str) else json.dumps(arguments)
    return f"Thought: {thought}\nAction: {name}\nAction Input: {payload}"


def final(answer: str) -> str:
    """Format a model reply with a final answer."""
    return f"Thought: I now know the final answer\nFinal Answer: {answer}"


async def never_returns() -> str:
    await asyncio.sleep(3600)
    return ""


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def sample_question() -> Question:
    """The multiplication question used across scenarios."""
    return Question(
        id="Q123",
        title="What is 6 × 4?",
        stem="What is 6 × 4?",
        choices=[
            {"id": "ChoiceA", "text": "20"},
            {"id": "ChoiceB", "text": "22"},
            {"id": "ChoiceC", "text": "24"},
            {"id": "ChoiceD", "text": "26"},
        ],
        correct_answer="ChoiceC",
        topic_id="topic-math-4-mult",
    )


@pytest.fixture
def store() -> InMemoryQuestionStore:
    """Fresh in-memory store seeded with the sample curriculum."""
    return load_sample_store()


@pytest.fixture
def registry(store: InMemoryQuestionStore) -> ToolRegistry:
    """Frozen registry with every tool bound to the sample store."""
    return build_registry(store)


@pytest.fixture
def agent_config() -> AgentConfig:
    """Small limits so failure paths are reached quickly."""
    return AgentConfig(
        max_iterations=6,
        max_parse_retries=2,
        model_timeout_seconds=0.5,
        tool_timeout_seconds=0.5,
    )


@pytest.fixture
def make_agent(registry: ToolRegistry, agent_config: AgentConfig):
    """Factory: build an agent driven by a ScriptedModel with the given replies."""

    def _make(replies: list[Any], config: AgentConfig | None = None) -> tuple[QuestionAgent, ScriptedModel]:
        model = ScriptedModel(replies)
        return QuestionAgent(model, registry, config or agent_config), model

    return _make
