"""Unit tests for the session driver and the command-line entry point."""

import asyncio
import os
import signal
import sys
import threading
from dataclasses import replace

import pytest

from question_agent import main as main_module
from question_agent.agent.core import AgentState
from question_agent.session import Session
from question_agent.utils import config as config_module
from question_agent.utils.config import reset_config
from tests.conftest import final, never_returns


@pytest.mark.unit
class TestSession:
    """Tests for Session.ask and Session.interactive."""

    @pytest.mark.asyncio
    async def test_ask_prints_answer(self, make_agent) -> None:
        """Test that the answer of a request is written to the output."""
        agent, _ = make_agent([final("There are two subjects.")])
        printed: list[str] = []

        result = await Session(agent, output=printed.append).ask("list subjects")

        assert result.status == AgentState.DONE
        assert printed == ["There are two subjects."]

    @pytest.mark.asyncio
    async def test_ask_prints_failure_message(self, make_agent) -> None:
        """Test that failures are shown as a natural-language message."""
        agent, _ = make_agent(["nonsense"] * 3)
        printed: list[str] = []

        result = await Session(agent, output=printed.append).ask("hello")

        assert result.status == AgentState.FAILED
        assert printed == [result.output]

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="needs loop signal handlers")
    async def test_interrupt_cancels_request(self, make_agent, agent_config) -> None:
        """Test that Ctrl+C cancels the in-flight request without ending the session."""
        agent, _ = make_agent([never_returns], replace(agent_config, model_timeout_seconds=0))
        printed: list[str] = []

        asyncio.get_running_loop().call_later(0.05, os.kill, os.getpid(), signal.SIGINT)
        result = await Session(agent, output=printed.append).ask("find question Q123")

        assert result is None
        assert printed == ["Request cancelled."]

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="needs loop signal handlers")
    async def test_interrupt_at_prompt_ends_session(self, make_agent, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that Ctrl+C while waiting for input ends the session without waiting for Enter."""
        agent, model = make_agent([])
        release = threading.Event()

        def _blocking_input(prompt=""):
            release.wait(10)
            raise EOFError

        monkeypatch.setattr("builtins.input", _blocking_input)
        loop = asyncio.get_running_loop()
        task = asyncio.create_task(Session(agent, output=lambda *_: None).interactive())

        # asyncio.run cancels its main task on SIGINT
        loop.add_signal_handler(signal.SIGINT, task.cancel)
        try:
            loop.call_later(0.05, os.kill, os.getpid(), signal.SIGINT)
            done, _ = await asyncio.wait({task}, timeout=2)

            assert task in done
            assert task.cancelled()
            readers = [t for t in threading.enumerate() if t.name == "stdin-reader"]
            assert readers
            assert all(t.daemon for t in readers)
            # Nothing is left in the default executor for loop shutdown to wait on
            await asyncio.wait_for(loop.shutdown_default_executor(), 1)
        finally:
            loop.remove_signal_handler(signal.SIGINT)
            release.set()

        assert model.calls == []

    @pytest.mark.asyncio
    async def test_interactive_loop(self, make_agent, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that each line is a request and 'exit' leaves the loop."""
        agent, model = make_agent([final("First."), final("Second.")])
        lines = iter(["find Q123", "   ", "find Q124", "exit", "never read"])
        monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))
        printed: list[str] = []

        await Session(agent, output=printed.append).interactive()

        assert "First." in printed
        assert "Second." in printed
        assert printed[-1] == "Goodbye."
        assert len(model.calls) == 2
        assert next(lines) == "never read"

    @pytest.mark.asyncio
    async def test_interactive_end_of_input(self, make_agent, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that end of input leaves the loop."""
        agent, model = make_agent([])

        def _eof(prompt=""):
            raise EOFError

        monkeypatch.setattr("builtins.input", _eof)
        printed: list[str] = []

        await Session(agent, output=printed.append).interactive()

        assert printed[-1] == "Goodbye."
        assert model.calls == []


@pytest.mark.unit
class TestMain:
    """Tests for the CLI entry point."""

    @pytest.mark.asyncio
    async def test_missing_configuration_exits_1(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
    ) -> None:
        """Test that a missing API key is reported with exit code 1."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        monkeypatch.setattr(config_module, "load_dotenv", lambda *args, **kwargs: False)
        reset_config()

        try:
            exit_code = await main_module.main(["find question Q123"])
        finally:
            reset_config()

        assert exit_code == 1
        assert "Configuration error" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_unreadable_store_exits_1(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture, tmp_path
    ) -> None:
        """Test that a corrupt question store stops startup."""
        store_path = tmp_path / "questions.json"
        store_path.write_text("[[[", encoding="utf-8")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        monkeypatch.setenv("QUESTION_STORE_PATH", str(store_path))
        monkeypatch.setattr(config_module, "load_dotenv", lambda *args, **kwargs: False)
        reset_config()

        try:
            exit_code = await main_module.main(["list subjects"])
        finally:
            reset_config()

        assert exit_code == 1
        assert "Question store is unavailable" in capsys.readouterr().err
