"""
Language Model Client
=====================

The language-model collaborator of the reasoning loop.

The loop only needs one operation: send the conversation, get text back.
Anything implementing LanguageModel can drive the agent; tests use a
scripted fake, the CLI uses OpenAIChatModel.

OpenAIChatModel talks to any OpenAI-compatible endpoint (OpenAI itself or
OpenRouter). Generation stops before "Observation:" so the model cannot
invent tool results.
"""

from typing import Protocol

import openai
from openai import AsyncOpenAI

from question_agent.errors import CollaboratorUnavailableError
from question_agent.utils.config import ModelConfig, OPENROUTER_BASE_URL
from question_agent.utils.logger import Logger

logger = Logger("LLM")

STOP_SEQUENCES = ["\nObservation:", "Observation:"]


class LanguageModel(Protocol):
    """Anything that can continue a chat conversation."""

    async def complete(self, messages: list[dict]) -> str:
        """Return the model's reply to the conversation."""
        ...


class OpenAIChatModel:
    """
    Chat completions through the openai async client.

    Example:
        model = OpenAIChatModel.from_config(config.model)
        text = await model.complete([{"role": "user", "content": "Hi"}])
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        temperature: float = 0.7,
        stop: list[str] | None = None
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.stop = stop if stop is not None else STOP_SEQUENCES

    @classmethod
    def from_config(cls, config: ModelConfig) -> "OpenAIChatModel":
        """Create a client for OpenAI or, with an OpenRouter base URL, OpenRouter."""
        headers = None
        if config.base_url == OPENROUTER_BASE_URL:
            headers = {
                "HTTP-Referer": "http://localhost",
                "X-Title": config.app_title,
            }

        client = AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            default_headers=headers,
        )
        logger.info(f"Language model: {config.name}")
        return cls(client, config.name, temperature=config.temperature)

    async def complete(self, messages: list[dict]) -> str:
        """
        Send the conversation and return the reply text.

        Raises:
            CollaboratorUnavailableError: If the API call fails
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                stop=self.stop,
            )
        except openai.APIError as e:
            logger.error("Language model request failed", e)
            raise CollaboratorUnavailableError("Language model", str(e)) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def close(self) -> None:
        await self.client.close()
