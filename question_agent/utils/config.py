"""
Configuration Management
========================

All environment-driven settings for the question agent live here. Values
are read once, validated, and exposed as frozen dataclasses:

    config = get_config()
    config.model.name              # chat model to call
    config.agent.max_iterations    # think/act budget per request
    config.storage.path            # JSON question store

The loop limits and timeouts have no single correct value. They are
tunable, and the defaults below are starting points:

    AGENT_MAX_ITERATIONS     15   model calls per request
    AGENT_MAX_PARSE_RETRIES   3   consecutive unparseable model replies
    MODEL_TIMEOUT_SECONDS    60   per model call (fatal when exceeded)
    TOOL_TIMEOUT_SECONDS     30   per tool call (reported to the model)

Model access goes through any OpenAI-compatible endpoint. When
OPENROUTER_API_KEY is set, requests go to OpenRouter; otherwise
OPENAI_API_KEY is used against OpenAI directly.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


def _required(name: str) -> str:
    """
    Get a required environment variable.

    Raises:
        ValueError: If the variable is not set
    """
    value = os.getenv(name)
    if not value:
        raise ValueError(
            f"Missing required environment variable: {name}\n"
            f"Please ensure {name} is set in your .env file."
        )
    return value


def _optional(name: str, default: str) -> str:
    return os.getenv(name, default)


def _optional_int(name: str, default: int) -> int:
    """Get an integer variable; invalid or missing values fall back to default."""
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        print(f"Warning: {name} is not a valid integer, using default: {default}")
        return default


def _optional_float(name: str, default: float) -> float:
    """Get a float variable; invalid or missing values fall back to default."""
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        print(f"Warning: {name} is not a valid number, using default: {default}")
        return default


# ==============================================================================
# Configuration Dataclasses
# ==============================================================================

@dataclass(frozen=True)
class ModelConfig:
    """Language model access."""
    api_key: str
    base_url: str | None    # None means the OpenAI default endpoint
    name: str
    temperature: float
    app_title: str          # sent to OpenRouter as X-Title


@dataclass(frozen=True)
class AgentConfig:
    """Reasoning loop limits."""
    max_iterations: int
    max_parse_retries: int
    model_timeout_seconds: float
    tool_timeout_seconds: float


DEFAULT_AGENT_CONFIG = AgentConfig(
    max_iterations=15,
    max_parse_retries=3,
    model_timeout_seconds=60.0,
    tool_timeout_seconds=30.0,
)


@dataclass(frozen=True)
class StorageConfig:
    """Question store location."""
    path: Path


@dataclass(frozen=True)
class Config:
    """
    Root configuration object.

    Access via get_config(); construct directly in tests.
    """
    model: ModelConfig
    agent: AgentConfig
    storage: StorageConfig
    log_level: str


def _load_model_config() -> ModelConfig:
    openrouter_key = os.getenv("OPENROUTER_API_KEY")
    if openrouter_key:
        return ModelConfig(
            api_key=openrouter_key,
            base_url=OPENROUTER_BASE_URL,
            name=_optional("MODEL_NAME", "openai/gpt-4o-mini"),
            temperature=_optional_float("MODEL_TEMPERATURE", 0.7),
            app_title=_optional("OPENROUTER_APP_TITLE", "Question Agent"),
        )

    try:
        api_key = _required("OPENAI_API_KEY")
    except ValueError:
        raise ValueError(
            "Missing required environment variable: OPENAI_API_KEY or OPENROUTER_API_KEY\n"
            "Copy .env.example to .env and add your API key."
        ) from None

    return ModelConfig(
        api_key=api_key,
        base_url=os.getenv("OPENAI_BASE_URL") or None,
        name=_optional("MODEL_NAME", "gpt-4o-mini"),
        temperature=_optional_float("MODEL_TEMPERATURE", 0.7),
        app_title=_optional("OPENROUTER_APP_TITLE", "Question Agent"),
    )


def load_config() -> Config:
    """
    Load and validate all configuration from the environment and .env.

    Raises:
        ValueError: If no model API key is configured
    """
    load_dotenv()

    # Relative paths are taken from where the command runs, not from the
    # installed package
    store_path = Path(_optional("QUESTION_STORE_PATH", "data/questions.json"))
    if not store_path.is_absolute():
        store_path = Path.cwd() / store_path

    return Config(
        model=_load_model_config(),
        agent=AgentConfig(
            max_iterations=_optional_int("AGENT_MAX_ITERATIONS", DEFAULT_AGENT_CONFIG.max_iterations),
            max_parse_retries=_optional_int("AGENT_MAX_PARSE_RETRIES", DEFAULT_AGENT_CONFIG.max_parse_retries),
            model_timeout_seconds=_optional_float("MODEL_TIMEOUT_SECONDS", DEFAULT_AGENT_CONFIG.model_timeout_seconds),
            tool_timeout_seconds=_optional_float("TOOL_TIMEOUT_SECONDS", DEFAULT_AGENT_CONFIG.tool_timeout_seconds),
        ),
        storage=StorageConfig(path=store_path),
        log_level=_optional("LOG_LEVEL", "info"),
    )


# ==============================================================================
# Singleton
# ==============================================================================

_config_instance: Config | None = None


def get_config() -> Config:
    """Get the configuration, loading it on first access."""
    global _config_instance
    if _config_instance is None:
        _config_instance = load_config()
    return _config_instance


def reset_config() -> None:
    """Forget the cached configuration (used by tests that patch the environment)."""
    global _config_instance
    _config_instance = None
