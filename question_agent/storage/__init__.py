"""
Storage
=======

The question store is the agent's only source of truth. Tools read and
write through it; nothing above this layer caches records.

This module provides:
- QuestionStore: the abstract interface
- InMemoryQuestionStore: dictionary-backed store (tests, ephemeral runs)
- JsonQuestionStore: file-backed store used by the CLI
"""

from question_agent.storage.base import QuestionStore
from question_agent.storage.memory import InMemoryQuestionStore
from question_agent.storage.json_store import JsonQuestionStore

__all__ = ["QuestionStore", "InMemoryQuestionStore", "JsonQuestionStore"]
