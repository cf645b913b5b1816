"""Cloud services: assistant, edge task queue, predictive loading and file sync."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable

logger = logging.getLogger(__name__)

MAX_EDGE_TASKS = 16
MAX_TASK_LENGTH = 127
FILES_PER_SYNC = 5

SUGGEST_BROWSER = "Preload web browser resources."
SUGGEST_EDITOR = "Preload recent documents."
SUGGEST_DEFAULT = "Monitor for next likely action."


class QueueFullError(Exception):
    """Raised when the edge compute queue has no room for another task."""


def _no_backend(question: str) -> str:
    """Answer that names the unanswered question when no backend is configured."""
    topic = question.strip() or "(empty question)"
    return f"No assistant backend is configured to answer: {topic}"


@dataclass
class AIAssistant:
    """Question-answering assistant that counts and records its conversations."""

    responder: Callable[[str], str] = _no_backend
    initialized: bool = True
    conversation_count: int = 0
    history: list[tuple[str, str]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.initialized:
            logger.info("AI assistant initialized")

    def tick(self) -> int | None:
        """Report the number of conversations, or None when not initialized."""
        if not self.initialized:
            return None
        logger.info("Tick. Conversations: %d", self.conversation_count)
        return self.conversation_count

    def ask(self, question: str) -> str | None:
        """Answer a question; returns None when the assistant is not initialized."""
        if not self.initialized:
            return None
        self.conversation_count += 1
        logger.info("Q%d: %s", self.conversation_count, question)
        answer = self.responder(question)
        logger.info("A%d: %s", self.conversation_count, answer)
        self.history.append((question, answer))
        return answer


@dataclass
class EdgeComputeEngine:
    """Bounded queue of tasks submitted for edge execution."""

    tasks: list[str] = field(default_factory=list)

    @property
    def task_count(self) -> int:
        return len(self.tasks)

    def submit_task(self, task: str) -> int:
        """Queue a task and return its position, counting from 1."""
        if len(self.tasks) >= MAX_EDGE_TASKS:
            raise QueueFullError("edge compute task queue full")
        self.tasks.append(task[:MAX_TASK_LENGTH])
        logger.info("Task %d submitted: %s", len(self.tasks), task)
        return len(self.tasks)


@dataclass
class PredictiveLoader:
    """Suggests what to preload from a description of the user's context."""

    prediction_count: int = 0

    def predict(self, context: str) -> str:
        """Return a preloading suggestion for the context."""
        self.prediction_count += 1
        logger.info("Prediction %d for context: %s", self.prediction_count, context)
        if "browser" in context:
            suggestion = SUGGEST_BROWSER
        elif "editor" in context:
            suggestion = SUGGEST_EDITOR
        else:
            suggestion = SUGGEST_DEFAULT
        logger.info("Suggestion: %s", suggestion)
        return suggestion


class CloudSyncState(IntEnum):
    """State of the sync manager."""

    IDLE = 0
    SYNCING = 1
    ERROR = 2


@dataclass
class CloudSync:
    """Synchronises files with a cloud storage provider."""

    state: CloudSyncState = CloudSyncState.IDLE
    last_error: str = ""
    files_synced: int = 0

    def start(self, provider: str) -> bool:
        """Run a sync pass with the provider and report success."""
        self.state = CloudSyncState.SYNCING
        logger.info("Syncing with %s", provider)
        for number in range(1, FILES_PER_SYNC + 1):
            logger.info("Syncing file %d", number)
            self.files_synced += 1
        self.state = CloudSyncState.IDLE
        logger.info("Sync complete")
        return True

    def status(self) -> str:
        """Describe the current state."""
        line = (
            f"State: {int(self.state)}, Files synced: {self.files_synced}, "
            f"Last error: {self.last_error}"
        )
        logger.info(line)
        return line