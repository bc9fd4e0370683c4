"""
Utilities Module
================

Common utilities shared across the question agent:
- logger: Context-prefixed console logging
- config: Environment-driven configuration
"""

from question_agent.utils.logger import Logger, logger
from question_agent.utils.config import get_config, Config

__all__ = ["Logger", "logger", "get_config", "Config"]
