"""
JSON File Question Store
========================

Persists the question store to a single JSON file so questions created by
the agent survive between sessions.

State Persistence:
    The file holds {"subjects", "topics", "questions", "last_updated"}.
    Every mutation rewrites it through a temporary file followed by an
    atomic rename, so a crash mid-write never leaves a truncated store.
    The write runs on a worker thread so the event loop keeps serving
    while the file is saved. Each write carries a version number and a
    write older than the last one saved is dropped.

    When the file does not exist yet it is created from the bundled sample
    curriculum (question_agent/data/sample_curriculum.json).

Unreadable or unwritable files raise CollaboratorUnavailableError: the
agent cannot answer truthfully without its data.
"""

import asyncio
import json
import os
import threading
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from question_agent.errors import CollaboratorUnavailableError
from question_agent.models import Question, Subject, Topic
from question_agent.storage.memory import InMemoryQuestionStore
from question_agent.utils.logger import Logger

logger = Logger("Storage:Json")

SAMPLE_DATA_FILE = Path(__file__).parent.parent / "data" / "sample_curriculum.json"


class JsonQuestionStore(InMemoryQuestionStore):
    """
    Question store backed by a JSON file.

    Example:
        store = JsonQuestionStore(Path("data/questions.json"))
        question = await store.get_question("Q123")
    """

    def __init__(self, path: Path, seed_file: Path | None = SAMPLE_DATA_FILE):
        """
        Open (or create) the store.

        Args:
            path: The JSON file to read and write
            seed_file: Data copied into a new store; None starts it empty

        Raises:
            CollaboratorUnavailableError: If the file cannot be read or parsed
        """
        super().__init__()
        self.path = Path(path)
        self._write_lock = threading.Lock()
        self._version = 0
        self._written_version = 0

        if self.path.exists():
            self._load_file(self.path)
        else:
            if seed_file is not None:
                self._load_file(seed_file)
                logger.info(f"Seeded new store from {seed_file.name}")
            self._write_state(*self._next_state())

    def _load_file(self, path: Path) -> None:
        try:
            with open(path, encoding="utf-8") as f:
                state = json.load(f)

            self._load_records(
                questions=[Question.model_validate(q) for q in state.get("questions", [])],
                subjects=[Subject.model_validate(s) for s in state.get("subjects", [])],
                topics=[Topic.model_validate(t) for t in state.get("topics", [])],
            )
        except (OSError, AttributeError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Error loading question store from {path}", e)
            raise CollaboratorUnavailableError("Question store", f"cannot load {path}: {e}") from e

        logger.info(
            f"Loaded {len(self._questions)} questions, {len(self._topics)} topics "
            f"and {len(self._subjects)} subjects from {path}"
        )

    def _next_state(self) -> tuple[dict, int]:
        state = self.snapshot()
        state["last_updated"] = datetime.now().isoformat()
        self._version += 1
        return state, self._version

    async def _persist(self) -> None:
        # Snapshot on the loop, write on a thread
        state, version = self._next_state()
        await asyncio.to_thread(self._write_state, state, version)

    def _write_state(self, state: dict, version: int) -> None:
        with self._write_lock:
            if version <= self._written_version:
                logger.debug(f"Skipped stale write {version} of {self.path}")
                return
            self._save(state)
            self._written_version = version

    def _save(self, state: dict) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(state, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Error saving question store to {self.path}", e)
            raise CollaboratorUnavailableError("Question store", f"cannot write {self.path}: {e}") from e
