"""
Question Agent - Main Entry Point
=================================

This is the command-line entry point. It:
1. Loads configuration
2. Opens the question store
3. Builds the tool registry and the language model client
4. Runs one request or an interactive session

Run with:
    python -m question_agent.main "find question Q123 and produce a QTI item for it"
    echo "list subjects" | python -m question_agent.main

Or after installing:
    question-agent
"""

import argparse
import asyncio
import sys

from question_agent.agent import OpenAIChatModel, QuestionAgent
from question_agent.errors import CollaboratorUnavailableError
from question_agent.session import Session
from question_agent.storage import JsonQuestionStore
from question_agent.tools import build_registry
from question_agent.utils.config import get_config
from question_agent.utils.logger import Logger, set_level

main_logger = Logger("Main")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="question-agent",
        description="Look up assessment questions and convert them to QTI 3.0.",
    )
    parser.add_argument(
        "request",
        nargs="*",
        help="Request to run once. Without it, reads piped stdin or starts an interactive session.",
    )
    return parser.parse_args(argv)


def _read_request(args: argparse.Namespace) -> str | None:
    if args.request:
        return " ".join(args.request).strip()
    if not sys.stdin.isatty():
        return sys.stdin.read().strip()
    return None


async def main(argv: list[str] | None = None) -> int:
    """
    Main async entry point.

    Returns:
        Process exit code
    """
    args = _parse_args(argv)

    # 1. Load configuration
    try:
        config = get_config()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    set_level(config.log_level)

    # 2. Open the question store
    main_logger.info(f"Opening question store at {config.storage.path}")
    try:
        store = JsonQuestionStore(config.storage.path)
    except CollaboratorUnavailableError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    # 3. Tools and model
    registry = build_registry(store)
    model = OpenAIChatModel.from_config(config.model)
    agent = QuestionAgent(model, registry, config.agent)
    session = Session(agent)

    # 4. Run
    try:
        request = _read_request(args)
        if request is None:
            await session.interactive()
            return 0
        if not request:
            print("Error: empty request", file=sys.stderr)
            return 1

        result = await session.ask(request)
        return 0 if result is not None and result.succeeded else 1
    finally:
        await model.close()


def run():
    """
    Synchronous entry point.

    This is called when running with the `question-agent` command.
    """
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
