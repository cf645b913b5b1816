"""Power management: power-plan governor, suspend control and usage logging."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import time
from collections.abc import Sequence

logger = logging.getLogger(__name__)

GUID_HIGH_PERF = "8c5e7fda-e8bf-4a96-9a85-a6e23a8c635c"
GUID_BALANCED = "381b4222-f694-41f0-9685-ff5bb260df2e"
GUID_POWER_SAVER = "a1841308-3541-4fab-bc81-f71556f20b4a"

DEFAULT_LOG_FILE = "usage_learning.log"
INIT_ENTRY_PREFIX = "[Init] Usage learning started at "
RESUME_MESSAGE = "Resume (handled by OS on wake)"

_COMMAND_NOT_FOUND = 127


def _system(args: Sequence[str]) -> int:
    """Run a command and return its exit status; a missing program counts as failure."""
    try:
        return subprocess.run(list(args), check=False).returncode
    except OSError as exc:
        logger.warning("Cannot run %s: %s", args[0], exc)
        return _COMMAND_NOT_FOUND


def governor_init() -> bool:
    """Query the active power scheme; report whether the query succeeded."""
    logger.info("Governor initialized")
    return _system(["powercfg", "/getactivescheme"]) == 0


def governor_adjust() -> bool:
    """Switch to the balanced power plan; report whether the switch succeeded."""
    logger.info("Adjusting power plan")
    if _system(["powercfg", "/setactive", GUID_BALANCED]) == 0:
        logger.info("Switched to Balanced power plan")
        return True
    logger.warning("Failed to switch power plan")
    return False


def _suspend_command() -> list[str] | None:
    if sys.platform == "win32":
        return ["rundll32.exe", "powrprof.dll,SetSuspendState", "0,1,0"]
    if sys.platform.startswith("linux"):
        return ["systemctl", "suspend"]
    if sys.platform == "darwin":
        return ["pmset", "sleepnow"]
    return None


def suspend_init() -> bool:
    """Prepare suspend support; report whether this platform can suspend."""
    supported = _suspend_command() is not None
    logger.info("Suspend initialized (supported: %s)", supported)
    return supported


def suspend_enter() -> bool:
    """Ask the operating system to suspend; report whether the request succeeded."""
    command = _suspend_command()
    if command is None:
        logger.warning("Suspend not supported on this platform")
        return False
    logger.info("Entering suspend (%s)", command[0])
    if _system(command) != 0:
        logger.warning("%s failed", " ".join(command))
        return False
    return True


def suspend_resume() -> str:
    """Handle wake-up; the operating system restores state, so only a note is returned."""
    logger.info(RESUME_MESSAGE)
    return RESUME_MESSAGE


def usage_learning_init(path: str | os.PathLike[str] = DEFAULT_LOG_FILE) -> bool:
    """Append a start entry to the usage log; report whether it was written."""
    try:
        with open(path, "a", encoding="utf-8") as log:
            log.write(f"{INIT_ENTRY_PREFIX}{int(time.time())}\n")
    except OSError as exc:
        logger.warning("Cannot write usage log %s: %s", path, exc)
        return False
    logger.info("Usage learning initialized")
    return True


def usage_learning_learn(path: str | os.PathLike[str] = DEFAULT_LOG_FILE) -> list[str]:
    """Read the usage log and return its entries; a missing log gives no entries."""
    try:
        with open(path, encoding="utf-8") as log:
            entries = [line.rstrip("\n") for line in log]
    except FileNotFoundError:
        logger.info("No log file found")
        return []
    logger.info("Log entries:")
    for entry in entries:
        logger.info("%s", entry)
    logger.info("Total log entries: %d", len(entries))
    return entries


def power_manager_init(log_path: str | os.PathLike[str] = DEFAULT_LOG_FILE) -> None:
    """Initialise the governor, usage learning and suspend support."""
    governor_init()
    usage_learning_init(log_path)
    suspend_init()
    logger.info("Power manager initialized")


def power_manager_tick(log_path: str | os.PathLike[str] = DEFAULT_LOG_FILE) -> list[str]:
    """Adjust the power plan and return the usage log entries learnt from."""
    governor_adjust()
    entries = usage_learning_learn(log_path)
    logger.info("Power manager tick")
    return entries


def power_manager_shutdown() -> bool:
    """Shut power management down by suspending; report whether suspend succeeded."""
    logger.info("Power manager shutdown")
    return suspend_enter()