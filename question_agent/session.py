"""
Session Driver
==============

Feeds requests to the agent and prints the answers.

Two modes:
- ask(): one request, used for command-line arguments and piped stdin
- interactive(): a prompt loop until "exit", "quit" or end of input

Every request runs on a fresh conversation. Ctrl+C while a request is in
flight cancels that request only; the interactive loop keeps going. Ctrl+C
at the prompt ends the session.

The prompt is read on a daemon thread rather than the default executor:
a thread blocked in input() must not keep the event loop from shutting
down.
"""

import asyncio
import signal
import threading

from question_agent.agent.core import AgentRunResult, QuestionAgent
from question_agent.utils.logger import Logger

logger = Logger("Session")

EXIT_COMMANDS = {"exit", "quit"}

BANNER = """\
Question Agent (QTI 3.0)
Ask about questions in the store, or have them converted to QTI.
Examples:
  find question Q123 and produce a QTI item for it
  list the topics for grade 4 mathematics
Type 'exit' or 'quit' to leave. Ctrl+C cancels a running request,
or ends the session at the prompt.
"""


def _resolve(future: asyncio.Future, value=None, error: Exception | None = None) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(value)


def read_line(prompt: str) -> asyncio.Future:
    """
    Read one line of input without blocking the event loop.

    Returns:
        A future for the line; it fails with EOFError at end of input
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def _reader() -> None:
        try:
            line = input(prompt)
        except Exception as e:
            callback = (_resolve, future, None, e)
        else:
            callback = (_resolve, future, line, None)
        try:
            loop.call_soon_threadsafe(*callback)
        except RuntimeError:
            # Loop already closed: the session ended while we were waiting
            pass

    threading.Thread(target=_reader, name="stdin-reader", daemon=True).start()
    return future


class Session:
    """
    Runs requests through one agent.

    Example:
        session = Session(agent)
        result = await session.ask("find question Q123")
    """

    def __init__(self, agent: QuestionAgent, output=print):
        self.agent = agent
        self.output = output

    async def ask(self, request: str) -> AgentRunResult | None:
        """
        Run one request and print its answer.

        Returns:
            The run result, or None if the request was cancelled
        """
        task = asyncio.create_task(self.agent.run(request))
        loop = asyncio.get_running_loop()

        handler_installed = False
        try:
            loop.add_signal_handler(signal.SIGINT, task.cancel)
            handler_installed = True
        except (NotImplementedError, RuntimeError):
            # No signal handlers on this platform or outside the main thread
            pass

        try:
            result = await task
        except asyncio.CancelledError:
            # Only swallow our own cancellation of the request task
            if not task.cancelled():
                raise
            logger.info("Request cancelled by user")
            self.output("Request cancelled.")
            return None
        finally:
            if handler_installed:
                loop.remove_signal_handler(signal.SIGINT)

        if result.error is not None:
            logger.debug(f"Run ended in {result.status.value}", {"error": str(result.error)})

        self.output(result.output)
        return result

    async def interactive(self) -> None:
        """Prompt for requests until the user leaves."""
        self.output(BANNER)

        while True:
            try:
                line = await read_line("\nYou: ")
            except EOFError:
                self.output("")
                break

            request = line.strip()
            if not request:
                continue
            if request.lower() in EXIT_COMMANDS:
                break

            self.output("")
            await self.ask(request)

        self.output("Goodbye.")
