"""Process table with mandatory access control checks and sandboxing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterator

logger = logging.getLogger(__name__)

MAX_PROCESSES = 64
MAX_NAME_LENGTH = 63

_ACTION_CREATE = 1
_ACTION_SCHEDULE = 2


class ProcessState(IntEnum):
    """Lifecycle state of a process."""

    RUNNING = 0
    WAITING = 1
    STOPPED = 2


class ProcessError(Exception):
    """Raised when a process cannot be created or found."""


@dataclass
class Process:
    """An entry in the process table."""

    id: int
    name: str
    app_id: int
    state: ProcessState = ProcessState.RUNNING
    window_id: int = -1
    sandboxed: bool = False


def mac_enforce_policy(subject: str, obj: str, action: int) -> bool:
    """Decide whether a subject may perform an action on an object; every request is allowed."""
    logger.info("Enforcing policy: %s -> %s (action %d)", subject, obj, action)
    return True


def sandbox_process(proc: Process) -> None:
    """Confine a process to its sandbox."""
    proc.sandboxed = True
    logger.info("Process %d ('%s') sandboxed", proc.id, proc.name)


@dataclass
class ProcessTable:
    """Fixed-capacity table of processes with sequential identifiers."""

    processes: list[Process] = field(default_factory=list)
    next_process_id: int = 1

    def __len__(self) -> int:
        return len(self.processes)

    def __iter__(self) -> Iterator[Process]:
        return iter(self.processes)

    def create(self, name: str, app_id: int) -> int:
        """Create a sandboxed running process for an app and return its id."""
        if len(self.processes) >= MAX_PROCESSES:
            raise ProcessError(f"process table full ({MAX_PROCESSES} processes)")
        if not mac_enforce_policy(name, "system", _ACTION_CREATE):
            raise ProcessError(f"policy denied creation of '{name}'")
        proc = Process(id=self.next_process_id, name=name[:MAX_NAME_LENGTH], app_id=app_id)
        self.next_process_id += 1
        self.processes.append(proc)
        sandbox_process(proc)
        logger.info("Created process %d for app %d ('%s')", proc.id, app_id, proc.name)
        return proc.id

    def destroy(self, process_id: int) -> None:
        """Remove a process, keeping the order of the others."""
        for index, proc in enumerate(self.processes):
            if proc.id == process_id:
                logger.info("Destroyed process %d ('%s')", process_id, proc.name)
                del self.processes[index]
                return
        raise ProcessError(f"no process with id {process_id}")

    def schedule(self) -> list[Process]:
        """Run one round-robin pass and return the processes that were scheduled."""
        scheduled = []
        for proc in self.processes:
            if proc.state != ProcessState.RUNNING:
                continue
            if not mac_enforce_policy(proc.name, "system", _ACTION_SCHEDULE):
                continue
            logger.info("Scheduled process %d ('%s')", proc.id, proc.name)
            scheduled.append(proc)
        return scheduled

    def listing(self) -> list[str]:
        """Describe every process, one line each."""
        lines = [
            f"Process {p.id}: '{p.name}' (app {p.app_id}) state {int(p.state)}"
            for p in self.processes
        ]
        logger.info("Process list (%d total)", len(self.processes))
        for line in lines:
            logger.info("  %s", line)
        return lines