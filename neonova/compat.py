"""Compatibility layers for foreign apps and binaries, and container launching."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import ClassVar

logger = logging.getLogger(__name__)

MAX_PATH_LENGTH = 255


@dataclass
class AndroidApp:
    """An Android app run inside a container."""

    app_id: int = 0
    running: bool = False

    def launch(self, app_id: int) -> None:
        """Start the app in its container."""
        self.app_id = app_id
        self.running = True
        logger.info("App %d launched in container", app_id)

    def stop(self) -> bool:
        """Stop the app if it is running; report whether it was stopped."""
        if not self.running:
            return False
        logger.info("App %d stopped", self.app_id)
        self.running = False
        return True

    def status(self) -> str:
        """Describe whether the app is running."""
        line = f"App {self.app_id} status: {'running' if self.running else 'stopped'}"
        logger.info(line)
        return line


@dataclass
class BinaryImage:
    """A foreign executable loaded through a compatibility layer."""

    kind: ClassVar[str] = "Native"

    path: str = ""
    loaded: bool = False

    def load(self, path: str) -> None:
        """Load the binary at the given path."""
        self.path = path[:MAX_PATH_LENGTH]
        self.loaded = True
        logger.info("%s binary '%s' loaded", self.kind, path)

    def execute(self) -> bool:
        """Execute the binary if loaded; report whether it ran."""
        if not self.loaded:
            return False
        logger.info("Executing %s binary '%s'", self.kind, self.path)
        return True

    def status(self) -> str:
        """Describe whether the binary is loaded."""
        state = "loaded" if self.loaded else "not loaded"
        line = f"{self.kind} binary '{self.path}' status: {state}"
        logger.info(line)
        return line


@dataclass
class ElfBinary(BinaryImage):
    """An ELF executable."""

    kind: ClassVar[str] = "ELF"


@dataclass
class MachOBinary(BinaryImage):
    """A Mach-O executable."""

    kind: ClassVar[str] = "Mach-O"


@dataclass
class PeBinary(BinaryImage):
    """A PE/EXE executable run through the Windows layer."""

    kind: ClassVar[str] = "PE/EXE"


def _isolate() -> None:
    unshare = getattr(os, "unshare", None)
    if unshare is None:
        return
    flags = os.CLONE_NEWUTS | os.CLONE_NEWPID | os.CLONE_NEWNS | os.CLONE_NEWNET
    try:
        unshare(flags)
    except OSError:
        pass


def launch_container(cmd: str) -> int:
    """Run a shell command in a container and return its exit status.

    On POSIX systems the command runs in new namespaces where permitted and the
    call waits for it. On Windows it starts in a new console and 0 is returned.
    """
    if os.name == "nt":
        proc = subprocess.Popen(cmd, creationflags=subprocess.CREATE_NEW_CONSOLE)
        logger.info("Launched container (PID=%d)", proc.pid)
        return 0
    preexec = _isolate if hasattr(os, "unshare") else None
    proc = subprocess.Popen(["/bin/sh", "-c", cmd], preexec_fn=preexec)
    logger.info("Launched container (PID=%d)", proc.pid)
    return proc.wait()