"""Unit tests for configuration loading."""

from pathlib import Path

import pytest

from question_agent.utils import config as config_module
from question_agent.utils.config import (
    DEFAULT_AGENT_CONFIG,
    OPENROUTER_BASE_URL,
    get_config,
    load_config,
    reset_config,
)
from question_agent.utils.logger import Logger, LogLevel, parse_level, set_level

ENV_KEYS = [
    "OPENROUTER_API_KEY",
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "MODEL_NAME",
    "MODEL_TEMPERATURE",
    "AGENT_MAX_ITERATIONS",
    "AGENT_MAX_PARSE_RETRIES",
    "MODEL_TIMEOUT_SECONDS",
    "TOOL_TIMEOUT_SECONDS",
    "QUESTION_STORE_PATH",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch):
    """Isolate each test from the real environment and any .env file."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config_module, "load_dotenv", lambda *args, **kwargs: False)
    reset_config()
    yield
    reset_config()


@pytest.mark.unit
class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_api_key(self) -> None:
        """Test that running without any model key is a configuration error."""
        with pytest.raises(ValueError, match="OPENAI_API_KEY or OPENROUTER_API_KEY"):
            load_config()

    def test_openai_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the defaults when only an OpenAI key is set."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        config = load_config()

        assert config.model.api_key == "sk-test"
        assert config.model.base_url is None
        assert config.model.name == "gpt-4o-mini"
        assert config.model.temperature == 0.7
        assert config.agent == DEFAULT_AGENT_CONFIG
        assert config.log_level == "info"

    def test_openrouter_preferred(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that an OpenRouter key takes precedence over an OpenAI key."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("OPENROUTER_API_KEY", "or-test")
        monkeypatch.setenv("MODEL_NAME", "anthropic/claude-3.5-haiku")

        config = load_config()

        assert config.model.api_key == "or-test"
        assert config.model.base_url == OPENROUTER_BASE_URL
        assert config.model.name == "anthropic/claude-3.5-haiku"

    def test_agent_limits_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that loop limits are tunable and bad values fall back to defaults."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("AGENT_MAX_ITERATIONS", "4")
        monkeypatch.setenv("AGENT_MAX_PARSE_RETRIES", "many")
        monkeypatch.setenv("TOOL_TIMEOUT_SECONDS", "2.5")

        config = load_config()

        assert config.agent.max_iterations == 4
        assert config.agent.max_parse_retries == DEFAULT_AGENT_CONFIG.max_parse_retries
        assert config.agent.tool_timeout_seconds == 2.5

    def test_store_path_resolution(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test that relative store paths are taken from the working directory."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.chdir(tmp_path)

        relative = load_config().storage.path
        monkeypatch.setenv("QUESTION_STORE_PATH", "stores/q.json")
        nested = load_config().storage.path
        monkeypatch.setenv("QUESTION_STORE_PATH", str(tmp_path / "q.json"))
        absolute = load_config().storage.path

        assert relative == Path.cwd() / "data" / "questions.json"
        assert nested == Path.cwd() / "stores" / "q.json"
        assert absolute == tmp_path / "q.json"

    def test_get_config_is_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that get_config loads once until reset."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        first = get_config()
        monkeypatch.setenv("OPENAI_API_KEY", "sk-other")

        assert get_config() is first
        reset_config()
        assert get_config().model.api_key == "sk-other"


@pytest.mark.unit
class TestLogLevels:
    """Tests for log level handling."""

    def test_parse_level(self) -> None:
        """Test level names, aliases and the fallback."""
        assert parse_level("debug") == LogLevel.DEBUG
        assert parse_level("WARN") == LogLevel.WARNING
        assert parse_level("verbose") == LogLevel.INFO
        assert parse_level(None) == LogLevel.INFO

    def test_set_level_applies_to_existing_loggers(self, capsys: pytest.CaptureFixture) -> None:
        """Test that a global level filters loggers created before it was set."""
        log = Logger("Test")
        try:
            set_level("ERROR")
            log.info("hidden")
            log.error("shown")
        finally:
            set_level("INFO")

        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "shown" in err
        assert "[Test]" in err

    def test_child_logger_context(self, capsys: pytest.CaptureFixture) -> None:
        """Test that child loggers nest their context under the parent's."""
        Logger("Agent").child("Executor").warning("slow tool")

        assert "[Agent:Executor] slow tool" in capsys.readouterr().err
