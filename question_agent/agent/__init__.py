"""
Agent System
============

The agent turns a natural-language request into tool calls and a final
answer. It:
1. Sends the conversation and the tool catalog to the language model
2. Parses the reply into a tool call or a final answer
3. Executes tools and feeds their observations back
4. Stops on a final answer, a fatal failure, or the iteration budget

This module provides:
- QuestionAgent: The reasoning loop
- Conversation: Per-request message history
- ToolExecutor: Parses model replies and runs tool calls
- OpenAIChatModel: The language-model collaborator
"""

from question_agent.agent.context import Conversation
from question_agent.agent.core import AgentRunResult, AgentState, QuestionAgent
from question_agent.agent.llm import LanguageModel, OpenAIChatModel
from question_agent.agent.tools_executor import (
    FinalAnswer,
    ToolCall,
    ToolExecutor,
    ToolStep,
    parse_action,
)

__all__ = [
    "QuestionAgent",
    "AgentState",
    "AgentRunResult",
    "Conversation",
    "ToolExecutor",
    "ToolCall",
    "ToolStep",
    "FinalAnswer",
    "parse_action",
    "LanguageModel",
    "OpenAIChatModel",
]
