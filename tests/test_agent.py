"""Unit tests for the reasoning loop.

Drives QuestionAgent with a scripted language model against the sample
store, covering the three reference scenarios and every terminal state.
"""

import asyncio
import json
from dataclasses import replace

import pytest

from question_agent.agent.core import AgentState, QuestionAgent
from question_agent.errors import CollaboratorUnavailableError, MaxIterationsExceeded
from question_agent.models import Question
from question_agent.qti import generate_qti, validate_qti
from question_agent.storage import InMemoryQuestionStore
from question_agent.tools import build_registry
from question_agent.utils.config import AgentConfig
from tests.conftest import ScriptedModel, action, final, load_sample_store, never_returns


def last_message(messages: list[dict]) -> str:
    return messages[-1]["content"]


@pytest.mark.unit
class TestScenarios:
    """End-to-end runs of the loop with canned model replies."""

    @pytest.mark.asyncio
    async def test_lookup_then_generate(self, make_agent, sample_question: Question) -> None:
        """Test that a lookup followed by QTI generation ends with an answer carrying a valid item."""
        xml = generate_qti(sample_question)
        answer = f"Here is the QTI 3.0 item for question Q123:\n{xml}"
        agent, model = make_agent([
            action("lookup_question", {"id": "Q123"}),
            action("generate_qti", {"question": sample_question.model_dump(mode="json")}),
            final(answer),
        ])

        result = await agent.run("find question Q123 and produce a QTI item for it")

        assert result.status == AgentState.DONE
        assert result.succeeded
        assert result.output == answer.strip()
        assert result.iterations == 3
        assert [step.tool for step in result.steps] == ["lookup_question", "generate_qti"]
        assert all(step.success for step in result.steps)

        # Each observation is fed back before the next model call
        assert last_message(model.calls[1]).startswith("Observation: {")
        assert '"correct_answer": "ChoiceC"' in last_message(model.calls[1])
        assert "qti-assessment-item" in last_message(model.calls[2])

        generated = json.loads(result.steps[1].observation)["qti_xml"]
        validation = validate_qti(generated)
        assert validation.valid, validation.errors
        assert generated == xml
        assert xml.strip() in result.output

    @pytest.mark.asyncio
    async def test_not_found_asks_for_clarification(self, make_agent) -> None:
        """Test that a missing record is reported to the model, which can ask the user."""
        agent, model = make_agent([
            action("lookup_question", {"id": "Q999"}),
            final("I could not find question Q999. Could you check the id?"),
        ])

        result = await agent.run("find question Q999")

        assert result.status == AgentState.DONE
        assert "Q999" in result.output
        assert result.steps[0].success is False
        assert last_message(model.calls[1]) == "Observation: Error: Question Q999 not found"

    @pytest.mark.asyncio
    async def test_recovers_from_unparseable_reply(self, make_agent) -> None:
        """Test that a reply in neither format gets a corrective observation."""
        agent, model = make_agent([
            "Sure, question Q123 is about multiplication.",
            action("lookup_question", {"id": "Q123"}),
            final("Question Q123 asks for 6 × 4; the answer is 24."),
        ])

        result = await agent.run("what does question Q123 ask?")

        assert result.status == AgentState.DONE
        assert result.iterations == 3
        assert last_message(model.calls[1]).startswith("Observation: Invalid action format")
        assert [step.tool for step in result.steps] == ["lookup_question"]


@pytest.mark.unit
class TestConversation:
    """Tests for what the model is shown."""

    @pytest.mark.asyncio
    async def test_system_message_carries_catalog(self, make_agent) -> None:
        """Test that the first message lists the tools and the request follows."""
        agent, model = make_agent([final("Hello.")])

        await agent.run("hi")

        system, user = model.calls[0]
        assert system["role"] == "system"
        for name in ("lookup_question", "generate_qti", "validate_qti"):
            assert name in system["content"]
        assert user == {"role": "user", "content": "hi"}

    @pytest.mark.asyncio
    async def test_each_request_starts_fresh(self, make_agent) -> None:
        """Test that no turns leak from one request into the next."""
        agent, model = make_agent([
            action("list_subjects", {}),
            final("Two subjects."),
            final("Hello again."),
        ])

        await agent.run("list subjects")
        await agent.run("hello")

        assert len(model.calls[2]) == 2
        assert last_message(model.calls[2]) == "hello"


@pytest.mark.unit
class TestFailures:
    """Tests for the non-success terminal states."""

    @pytest.mark.asyncio
    async def test_iteration_budget(self, make_agent, agent_config: AgentConfig) -> None:
        """Test that the loop stops after max_iterations model calls."""
        replies = [action("list_subjects", {})] * agent_config.max_iterations
        agent, model = make_agent(replies)

        result = await agent.run("loop forever")

        assert result.status == AgentState.MAX_ITERATIONS_EXCEEDED
        assert result.iterations == agent_config.max_iterations
        assert len(model.calls) == agent_config.max_iterations
        assert isinstance(result.error, MaxIterationsExceeded)
        assert "could not complete this request" in result.output

    @pytest.mark.asyncio
    async def test_parse_retries_exhausted(self, make_agent, agent_config: AgentConfig) -> None:
        """Test that too many consecutive unparseable replies fail the request."""
        agent, model = make_agent(["no idea"] * (agent_config.max_parse_retries + 1))

        result = await agent.run("hello")

        assert result.status == AgentState.FAILED
        assert result.iterations == agent_config.max_parse_retries + 1
        assert result.output == "I could not work out how to handle this request. Please try rephrasing it."

    @pytest.mark.asyncio
    async def test_parse_retries_count_consecutive_replies(self, make_agent) -> None:
        """Test that a parseable reply resets the retry counter."""
        agent, _ = make_agent([
            "bad", "bad",
            action("list_subjects", {}),
            "bad", "bad",
            final("Done."),
        ])

        result = await agent.run("list subjects")

        assert result.status == AgentState.DONE
        assert result.iterations == 6

    @pytest.mark.asyncio
    async def test_tool_error_is_recoverable(self, make_agent) -> None:
        """Test that a failing tool is reported to the model and the run continues."""
        agent, model = make_agent([
            action("generate_qti", {"question": {"id": "Q1"}}),
            action("nonexistent_tool", {}),
            final("I need the full question record first."),
        ])

        result = await agent.run("make QTI for Q1")

        assert result.status == AgentState.DONE
        assert last_message(model.calls[1]).startswith("Observation: Error: Tool 'generate_qti' failed")
        assert "does not exist" in last_message(model.calls[2])

    @pytest.mark.asyncio
    async def test_model_unavailable(self, make_agent) -> None:
        """Test that a language model outage ends the request."""
        agent, _ = make_agent([CollaboratorUnavailableError("Language model", "503 Service Unavailable")])

        result = await agent.run("find question Q123")

        assert result.status == AgentState.FAILED
        assert result.output.startswith("The language model is unavailable right now")
        assert result.iterations == 1

    @pytest.mark.asyncio
    async def test_store_unavailable(self, agent_config: AgentConfig) -> None:
        """Test that a storage outage during a tool call ends the request."""

        class OfflineStore(InMemoryQuestionStore):
            async def get_question(self, question_id: str) -> Question:
                raise CollaboratorUnavailableError("Question store", "connection refused")

        model = ScriptedModel([action("lookup_question", {"id": "Q123"})])
        agent = QuestionAgent(model, build_registry(OfflineStore()), agent_config)

        result = await agent.run("find question Q123")

        assert result.status == AgentState.FAILED
        assert result.output.startswith("The question store is unavailable right now")
        assert result.steps == []

    @pytest.mark.asyncio
    async def test_model_timeout(self, make_agent) -> None:
        """Test that a model call exceeding its timeout fails the request."""
        agent, _ = make_agent([never_returns])

        result = await agent.run("find question Q123")

        assert result.status == AgentState.FAILED
        assert "did not respond in time" in result.output
        assert isinstance(result.error, asyncio.TimeoutError)


@pytest.mark.unit
class TestCancellation:
    """Tests for cancelling an in-flight request."""

    @pytest.mark.asyncio
    async def test_cancel_leaves_store_untouched(self, agent_config: AgentConfig) -> None:
        """Test that cancelling while waiting on the model propagates and writes nothing."""
        store = load_sample_store()
        before = store.snapshot()
        model = ScriptedModel([never_returns])
        agent = QuestionAgent(model, build_registry(store), replace(agent_config, model_timeout_seconds=0))

        task = asyncio.create_task(agent.run("create a question about fractions"))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert store.snapshot() == before
