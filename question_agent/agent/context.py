"""
Conversation State
==================

The ordered record of one request: the user's message, every model reply,
and every observation fed back to the model.

A Conversation belongs to exactly one reasoning loop run. It is created
fresh per request, only ever appended to, and never shared between
concurrent requests.

Message Mapping:
    The chat API only knows system/user/assistant roles, so observations
    are sent as user messages prefixed with "Observation:". This is the
    shape the ReAct format teaches the model to expect.
"""

from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    OBSERVATION = "observation"


@dataclass(frozen=True)
class Turn:
    """One entry of the conversation."""
    role: Role
    content: str


@dataclass
class Conversation:
    """
    Append-only conversation for a single request.

    Example:
        conversation = Conversation(system_message=system_prompt)
        conversation.add_user("find question Q123")
        conversation.add_assistant("Action: lookup_question ...")
        conversation.add_observation('{"id": "Q123", ...}')

        messages = conversation.to_openai_messages()
    """
    system_message: str
    turns: list[Turn] = field(default_factory=list)

    def add_user(self, content: str) -> None:
        self.turns.append(Turn(Role.USER, content))

    def add_assistant(self, content: str) -> None:
        self.turns.append(Turn(Role.ASSISTANT, content))

    def add_observation(self, content: str) -> None:
        self.turns.append(Turn(Role.OBSERVATION, content))

    def __len__(self) -> int:
        return len(self.turns)

    def to_openai_messages(self) -> list[dict]:
        """Format for the chat completions API, system message first."""
        messages = [{"role": "system", "content": self.system_message}]
        for turn in self.turns:
            if turn.role == Role.OBSERVATION:
                messages.append({"role": "user", "content": f"Observation: {turn.content}"})
            else:
                messages.append({"role": turn.role.value, "content": turn.content})
        return messages
