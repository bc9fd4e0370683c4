"""
Tools System
============

Tools are the only way the agent touches data. Each tool has a name, a
description the model reads to decide when to use it, and a validated
input schema.

Tool Categories:
1. Database tools: curriculum exploration and question CRUD
2. QTI tools: QTI 3.0 generation and validation

How Tools Work:
1. The model picks a tool by name and writes its input
2. The registry validates the input against the tool's schema
3. The tool runs against its collaborators (store, QTI codec)
4. The result becomes an observation the model reads next

This module provides:
- ToolDescriptor, ToolInput, ToolResult, ToolRegistry
- build_registry(): the frozen registry used by the agent
"""

from question_agent.tools.registry import ToolDescriptor, ToolInput, ToolRegistry, ToolResult
from question_agent.tools.database_tools import build_database_tools
from question_agent.tools.qti_tools import build_qti_tools
from question_agent.storage.base import QuestionStore
from question_agent.utils.logger import Logger

logger = Logger("Tools")


def build_registry(store: QuestionStore) -> ToolRegistry:
    """
    Build the registry with every tool the agent may use.

    Registration order is the catalog order shown to the model, so it is
    fixed here: curriculum, questions, then QTI.

    Args:
        store: The question store the database tools operate on

    Returns:
        A frozen ToolRegistry
    """
    registry = ToolRegistry()
    for tool in build_database_tools(store) + build_qti_tools():
        registry.register(tool)
    registry.freeze()

    logger.info(f"Registered {len(registry.list_names())} tools")
    return registry


__all__ = [
    "ToolDescriptor",
    "ToolInput",
    "ToolResult",
    "ToolRegistry",
    "build_registry",
    "build_database_tools",
    "build_qti_tools",
]
