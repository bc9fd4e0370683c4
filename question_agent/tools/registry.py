"""
Tool Registry
=============

The closed set of operations the reasoning loop may invoke.

Every tool is described by a ToolDescriptor:
- name: what the model writes after "Action:"
- description: when the model should use it
- input_model: a pydantic model; its JSON schema is shown to the model and
  every payload is validated against it before the tool runs
- execute: async function receiving the validated model instance

Invocation pipeline:
    raw payload (untrusted, model-produced)
         │
         ▼
    look up descriptor ──── unknown ────► UnknownToolError
         │
         ▼
    validate payload ────── invalid ────► ToolInputValidationError
         │
         ▼
    execute (with timeout) ─ failure ───► ToolExecutionError
         │                    └ storage down ► CollaboratorUnavailableError
         ▼
    ToolResult

The registry is built once at startup and frozen; after that it is only
read, so concurrent sessions can share it without locking.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, ValidationError

from question_agent.errors import (
    CollaboratorUnavailableError,
    DuplicateToolError,
    QuestionAgentError,
    ToolExecutionError,
    ToolInputValidationError,
    UnknownToolError,
)
from question_agent.qti import strip_code_fences
from question_agent.utils.logger import Logger

logger = Logger("Tools")


class ToolInput(BaseModel):
    """Base class for tool input models. Unknown fields are rejected."""
    model_config = ConfigDict(extra="forbid")


@dataclass
class ToolResult:
    """
    Standardized result from tool execution.

    Attributes:
        success: Whether the tool did what was asked
        data: The result data (varies by tool)
        error: Error message if success is False
    """
    success: bool
    data: Any = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "data": self.data,
            "error": self.error
        }

    def to_message(self) -> str:
        """Format as an observation for the model."""
        if self.success:
            return json.dumps(self.data, default=str, ensure_ascii=False)
        return f"Error: {self.error}"


@dataclass(frozen=True)
class ToolDescriptor:
    """
    Definition of a tool.

    Example:
        class LookupInput(ToolInput):
            id: str = Field(min_length=1)

        async def lookup(params: LookupInput) -> ToolResult:
            ...

        tool = ToolDescriptor(
            name="lookup_question",
            description="Look up a question by id.",
            input_model=LookupInput,
            execute=lookup,
        )
    """
    name: str
    description: str
    input_model: type[BaseModel]
    execute: Callable[[Any], Awaitable[ToolResult]]

    @property
    def input_schema(self) -> dict:
        return self.input_model.model_json_schema()

    @property
    def required_fields(self) -> list[str]:
        return [
            name for name, info in self.input_model.model_fields.items()
            if info.is_required()
        ]

    def describe(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


def _unwrap_string_payload(text: str) -> Any:
    text = strip_code_fences(text)
    if text.startswith("{"):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            pass
    return text


def _field_errors(error: ValidationError) -> list[str]:
    messages = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"]) or "input"
        messages.append(f"{location}: {err['msg']}")
    return messages


class ToolRegistry:
    """
    Registry of the tools available to the agent.

    Example:
        registry = ToolRegistry()
        registry.register(lookup_tool)
        registry.freeze()

        result = await registry.invoke("lookup_question", {"id": "Q123"})
    """

    def __init__(self):
        self._tools: dict[str, ToolDescriptor] = {}
        self._frozen = False

    def register(self, tool: ToolDescriptor) -> None:
        """
        Register a tool.

        Raises:
            DuplicateToolError: If a tool with this name already exists
            RuntimeError: If the registry has been frozen
        """
        if self._frozen:
            raise RuntimeError(f"Cannot register '{tool.name}': tool registry is frozen")
        if tool.name in self._tools:
            raise DuplicateToolError(tool.name)

        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def freeze(self) -> None:
        """Disallow further registration."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def list_names(self) -> list[str]:
        """Tool names in registration order."""
        return list(self._tools.keys())

    def describe_all(self) -> list[dict]:
        """
        The catalog of available actions, in registration order.

        Returns:
            One {name, description, input_schema} dict per tool
        """
        return [tool.describe() for tool in self._tools.values()]

    def render_catalog(self) -> str:
        """Plain-text catalog for the system prompt."""
        blocks = []
        for tool in self._tools.values():
            schema = json.dumps(tool.input_schema.get("properties", {}), ensure_ascii=False)
            required = ", ".join(tool.required_fields) or "none"
            blocks.append(
                f"{tool.name}: {tool.description}\n"
                f"  Input: JSON object with properties {schema} (required: {required})"
            )
        return "\n".join(blocks)

    def validate(self, name: str, raw_args: Any) -> BaseModel:
        """
        Validate a raw payload against a tool's input model.

        String payloads lose any surrounding markdown code fence and are
        decoded when they hold a JSON object. Any other payload that is not
        an object is accepted only for tools with exactly one required field,
        and is bound to that field.

        Raises:
            UnknownToolError: If the tool does not exist
            ToolInputValidationError: If the payload does not conform
        """
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name, self.list_names())

        if isinstance(raw_args, str):
            raw_args = _unwrap_string_payload(raw_args)

        if raw_args is None or raw_args == "":
            payload: Any = {}
        elif isinstance(raw_args, dict):
            payload = raw_args
        else:
            required = tool.required_fields
            if len(required) != 1:
                raise ToolInputValidationError(name, [
                    f"input: expected a JSON object with fields {', '.join(tool.input_model.model_fields)}"
                ])
            payload = {required[0]: raw_args}

        try:
            return tool.input_model.model_validate(payload)
        except ValidationError as e:
            raise ToolInputValidationError(name, _field_errors(e)) from e

    async def invoke(self, name: str, raw_args: Any, timeout: float | None = None) -> ToolResult:
        """
        Validate and execute a tool.

        Args:
            name: The tool name chosen by the model
            raw_args: The untrusted argument payload
            timeout: Seconds before the call is abandoned (None for no limit)

        Returns:
            The tool's ToolResult

        Raises:
            UnknownToolError: If the tool does not exist
            ToolInputValidationError: If the payload does not conform
            ToolExecutionError: If the tool fails or times out
            CollaboratorUnavailableError: If storage is unavailable
        """
        params = self.validate(name, raw_args)
        tool = self._tools[name]

        logger.info(f"Invoking tool: {name}")
        try:
            if timeout:
                return await asyncio.wait_for(tool.execute(params), timeout)
            return await tool.execute(params)
        except CollaboratorUnavailableError:
            raise
        except asyncio.TimeoutError:
            logger.warning(f"Tool {name} timed out after {timeout}s")
            raise ToolExecutionError(name, f"timed out after {timeout} seconds") from None
        except QuestionAgentError as e:
            logger.warning(f"Tool {name} failed: {e}")
            raise ToolExecutionError(name, str(e)) from e
        except Exception as e:
            logger.error(f"Tool execution failed: {name}", e)
            raise ToolExecutionError(name, str(e)) from e
