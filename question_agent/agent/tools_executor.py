"""
Tool Executor
=============

Turns model text into actions and actions into observations.

The executor:
1. Parses the model's reply into a FinalAnswer or a ToolCall
2. Runs tool calls through the registry
3. Converts recoverable failures into observations the model can read

Parsing is the trust boundary: the model's text is untyped, and nothing
past parse_action() sees it raw. Replies in neither format raise
ModelResponseParseError, which the loop answers with a corrective
observation.

Recognized reply shapes:

    Thought: I need the question first
    Action: lookup_question
    Action Input: {"id": "Q123"}

    Thought: I now know the final answer
    Final Answer: Here is the QTI item ...
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Union

from question_agent.errors import (
    ModelResponseParseError,
    ToolExecutionError,
    ToolInputValidationError,
    UnknownToolError,
)
from question_agent.qti import strip_code_fences
from question_agent.tools.registry import ToolRegistry
from question_agent.utils.logger import Logger

logger = Logger("Agent").child("Executor")

FINAL_ANSWER_MARKER = "Final Answer:"

_ACTION_RE = re.compile(
    r"Action\s*\d*\s*:[\s]*(.*?)[\s]*Action\s*\d*\s*Input\s*\d*\s*:[\s]*(.*)",
    re.DOTALL,
)
_OBSERVATION_RE = re.compile(r"\n\s*Observation\s*:", re.IGNORECASE)


@dataclass(frozen=True)
class FinalAnswer:
    text: str


@dataclass(frozen=True)
class ToolCall:
    """
    A parsed tool invocation request.

    Attributes:
        name: The tool name as written by the model
        arguments: A dict when the input was a JSON object, otherwise the
            raw value (string, number, ...) for the registry to bind
    """
    name: str
    arguments: Any


AgentAction = Union[FinalAnswer, ToolCall]


@dataclass
class ToolStep:
    """A tool call made during a run and what came back."""
    tool: str
    arguments: Any
    observation: str
    success: bool


def _parse_action_input(raw: str) -> Any:
    text = _OBSERVATION_RE.split(raw, maxsplit=1)[0]
    text = strip_code_fences(text.strip())
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text.strip('"').strip("'")


def _clean_tool_name(raw: str) -> str:
    name = raw.strip().splitlines()[0] if raw.strip() else ""
    return name.strip().strip("`[]\"'").strip()


def parse_action(text: str) -> AgentAction:
    """
    Parse a model reply.

    Raises:
        ModelResponseParseError: If the reply is neither a tool call nor a
            final answer, or claims to be both
    """
    if text is None or not text.strip():
        raise ModelResponseParseError("empty response", text or "")

    includes_answer = FINAL_ANSWER_MARKER in text
    match = _ACTION_RE.search(text)

    if match:
        if includes_answer:
            raise ModelResponseParseError(
                "response contains both an Action and a Final Answer", text
            )
        name = _clean_tool_name(match.group(1))
        if not name:
            raise ModelResponseParseError("Action is empty", text)
        return ToolCall(name=name, arguments=_parse_action_input(match.group(2)))

    if includes_answer:
        answer = text.split(FINAL_ANSWER_MARKER)[-1].strip()
        if not answer:
            raise ModelResponseParseError("Final Answer is empty", text)
        return FinalAnswer(answer)

    if re.search(r"Action\s*\d*\s*:", text):
        raise ModelResponseParseError("missing 'Action Input:' after 'Action:'", text)
    raise ModelResponseParseError(
        "no 'Action:'/'Action Input:' pair and no 'Final Answer:' found", text
    )


class ToolExecutor:
    """
    Executes parsed tool calls against the registry.

    Example:
        executor = ToolExecutor(registry, tool_timeout=30)
        action = parse_action(model_text)
        if isinstance(action, ToolCall):
            step = await executor.execute(action)
            conversation.add_observation(step.observation)
    """

    def __init__(self, registry: ToolRegistry, tool_timeout: float | None = None):
        self.registry = registry
        self.tool_timeout = tool_timeout

    async def execute(self, call: ToolCall) -> ToolStep:
        """
        Run one tool call and describe the outcome.

        Unknown tools, invalid input and tool failures are reported in the
        observation. CollaboratorUnavailableError is not caught: the caller
        must end the request.
        """
        try:
            result = await self.registry.invoke(call.name, call.arguments, timeout=self.tool_timeout)
        except UnknownToolError as e:
            logger.warning(str(e))
            return ToolStep(call.name, call.arguments, f"Error: {e}", success=False)
        except ToolInputValidationError as e:
            logger.warning(str(e))
            return ToolStep(call.name, call.arguments, f"Error: {e}", success=False)
        except ToolExecutionError as e:
            return ToolStep(call.name, call.arguments, f"Error: {e}", success=False)

        if result.success:
            logger.debug(f"Tool {call.name} succeeded")
        else:
            logger.warning(f"Tool {call.name} failed: {result.error}")

        return ToolStep(call.name, call.arguments, result.to_message(), success=result.success)

    def get_available_tools(self) -> list[str]:
        return self.registry.list_names()
