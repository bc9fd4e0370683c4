"""
Agent Core
==========

The reasoning loop (agent executor) of the question agent.

Agent Loop:
    User Request
         │
         ▼
    AWAITING_MODEL ◄─────────────────────────────┐
         │  send system prompt + catalog +        │
         │  full conversation                     │
         ▼                                        │
    ┌─ parse reply ─────────────┬──────────┐      │
    │                           │          │      │
    Final Answer            Tool Call   Unparseable
    │                           │          │      │
    ▼                           ▼          ▼      │
    DONE               EXECUTING_TOOL   corrective │
                                │       observation┤
                                ▼                  │
                         observation ──────────────┘

Terminal states:
- DONE: the model gave a final answer
- FAILED: a collaborator is unavailable, the model timed out, or the model
  kept producing unparseable replies
- MAX_ITERATIONS_EXCEEDED: the model call budget ran out

Each request is processed strictly in order: the loop waits for the model,
then for the tool, then calls the model again. Nothing runs speculatively
or in parallel within one request, and an agent instance holds no
per-request state, so one instance can serve concurrent requests.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum

from question_agent.agent.context import Conversation
from question_agent.agent.llm import LanguageModel
from question_agent.agent.prompts import INVALID_FORMAT_OBSERVATION, build_system_message
from question_agent.agent.tools_executor import (
    FinalAnswer,
    ToolExecutor,
    ToolStep,
    parse_action,
)
from question_agent.errors import (
    CollaboratorUnavailableError,
    MaxIterationsExceeded,
    ModelResponseParseError,
)
from question_agent.tools.registry import ToolRegistry
from question_agent.utils.config import AgentConfig, DEFAULT_AGENT_CONFIG
from question_agent.utils.logger import Logger

logger = Logger("Agent")


class AgentState(str, Enum):
    AWAITING_MODEL = "AWAITING_MODEL"
    EXECUTING_TOOL = "EXECUTING_TOOL"
    DONE = "DONE"
    FAILED = "FAILED"
    MAX_ITERATIONS_EXCEEDED = "MAX_ITERATIONS_EXCEEDED"


@dataclass
class AgentRunResult:
    """
    Outcome of one request.

    Attributes:
        status: The terminal state reached
        output: Text for the user: the final answer or a failure message
        iterations: Number of model calls made
        steps: Tool calls made, in order
        error: The internal error behind a failure, for logs only
    """
    status: AgentState
    output: str
    iterations: int = 0
    steps: list[ToolStep] = field(default_factory=list)
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == AgentState.DONE


class QuestionAgent:
    """
    Tool-using agent that answers requests about assessment questions.

    Example:
        registry = build_registry(store)
        agent = QuestionAgent(model, registry, config.agent)

        result = await agent.run("find question Q123 and produce a QTI item for it")
        print(result.output)
    """

    def __init__(
        self,
        model: LanguageModel,
        registry: ToolRegistry,
        config: AgentConfig = DEFAULT_AGENT_CONFIG
    ):
        """
        Args:
            model: The language-model collaborator
            registry: The (frozen) tool registry
            config: Iteration and timeout limits
        """
        self.model = model
        self.registry = registry
        self.config = config
        self.executor = ToolExecutor(registry, tool_timeout=config.tool_timeout_seconds)
        self.system_message = build_system_message(
            registry.render_catalog(), registry.list_names()
        )

    def new_conversation(self, request: str) -> Conversation:
        """Fresh conversation seeded with the system instruction and the request."""
        conversation = Conversation(system_message=self.system_message)
        conversation.add_user(request)
        return conversation

    async def _call_model(self, conversation: Conversation) -> str:
        timeout = self.config.model_timeout_seconds
        messages = conversation.to_openai_messages()
        if timeout:
            return await asyncio.wait_for(self.model.complete(messages), timeout)
        return await self.model.complete(messages)

    async def run(self, request: str) -> AgentRunResult:
        """
        Process one request to completion.

        Never raises for agent, tool or collaborator failures; those end in
        a FAILED or MAX_ITERATIONS_EXCEEDED result with a user-facing
        message. Cancellation (asyncio.CancelledError) propagates.

        Args:
            request: The user's natural-language request

        Returns:
            AgentRunResult
        """
        logger.info(f"Processing request: {request[:80]}")

        conversation = self.new_conversation(request)
        steps: list[ToolStep] = []
        iterations = 0
        parse_failures = 0

        while True:
            if iterations >= self.config.max_iterations:
                error = MaxIterationsExceeded(self.config.max_iterations)
                logger.warning(str(error))
                return AgentRunResult(
                    status=AgentState.MAX_ITERATIONS_EXCEEDED,
                    output=(
                        f"I could not complete this request within {self.config.max_iterations} steps. "
                        "Please try rephrasing it or breaking it into smaller parts."
                    ),
                    iterations=iterations,
                    steps=steps,
                    error=error,
                )

            # AWAITING_MODEL
            iterations += 1
            logger.debug(f"Iteration {iterations}: calling model")
            try:
                reply = await self._call_model(conversation)
            except asyncio.TimeoutError as e:
                logger.error(f"Model call timed out after {self.config.model_timeout_seconds}s")
                return self._failed(
                    "The language model did not respond in time, so I could not complete your request. "
                    "Please try again.",
                    iterations, steps, e,
                )
            except CollaboratorUnavailableError as e:
                return self._unavailable(e, iterations, steps)

            conversation.add_assistant(reply)

            try:
                action = parse_action(reply)
            except ModelResponseParseError as e:
                parse_failures += 1
                logger.warning(
                    f"Unparseable model reply ({parse_failures}/{self.config.max_parse_retries}): {e}",
                    {"reply": reply[:500]},
                )
                if parse_failures > self.config.max_parse_retries:
                    return self._failed(
                        "I could not work out how to handle this request. Please try rephrasing it.",
                        iterations, steps, e,
                    )
                conversation.add_observation(INVALID_FORMAT_OBSERVATION.format(reason=e))
                continue

            parse_failures = 0

            if isinstance(action, FinalAnswer):
                logger.info(f"Final answer after {iterations} iterations ({len(action.text)} chars)")
                return AgentRunResult(
                    status=AgentState.DONE,
                    output=action.text,
                    iterations=iterations,
                    steps=steps,
                )

            # EXECUTING_TOOL
            logger.info(f"Iteration {iterations}: action {action.name}")
            try:
                step = await self.executor.execute(action)
            except CollaboratorUnavailableError as e:
                return self._unavailable(e, iterations, steps)

            steps.append(step)
            conversation.add_observation(step.observation)

    def _failed(
        self,
        message: str,
        iterations: int,
        steps: list[ToolStep],
        error: Exception
    ) -> AgentRunResult:
        return AgentRunResult(
            status=AgentState.FAILED,
            output=message,
            iterations=iterations,
            steps=steps,
            error=error,
        )

    def _unavailable(
        self,
        error: CollaboratorUnavailableError,
        iterations: int,
        steps: list[ToolStep]
    ) -> AgentRunResult:
        logger.error("Collaborator unavailable, ending request", error)
        return self._failed(
            f"The {error.collaborator.lower()} is unavailable right now, so I could not complete "
            "your request. Please try again later.",
            iterations, steps, error,
        )
