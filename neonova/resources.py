"""Resource monitoring of CPU, RAM, GPU and disk I/O, with scaling decisions."""

from __future__ import annotations

import dataclasses
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable

import psutil

logger = logging.getLogger(__name__)

HIGH_CPU_THRESHOLD = 0.85
LOW_CPU_THRESHOLD = 0.25
IO_FULL_SCALE_BYTES_PER_SEC = 1e9

LOWER_BACKGROUND_PRIORITY = "lower_background_priority"
RESTORE_NORMAL_PRIORITY = "restore_normal_priority"


@dataclass
class ResourceUsage:
    """Fractions from 0.0 to 1.0 of each resource in use."""

    cpu_usage: float = 0.0
    ram_usage: float = 0.0
    gpu_usage: float = 0.0
    io_usage: float = 0.0


def _cpu_times() -> tuple[float, float]:
    times = psutil.cpu_times()
    return times.idle, float(sum(times))


def _disk_bytes() -> int | None:
    counters = psutil.disk_io_counters()
    if counters is None:
        return None
    return counters.read_bytes + counters.write_bytes


@dataclass
class CpuMonitor:
    """CPU load measured as the busy share of time since the previous sample."""

    sampler: Callable[[], tuple[float, float]] = _cpu_times
    last_usage: float = 0.0
    _last_idle: float = field(default=0.0, init=False, repr=False)
    _last_total: float = field(default=0.0, init=False, repr=False)

    def get_usage(self) -> float:
        """Return CPU usage since the last call, or since boot on the first call."""
        try:
            idle, total = self.sampler()
        except OSError as exc:
            logger.warning("Cannot read CPU times: %s", exc)
            return self.last_usage
        total_diff = total - self._last_total
        idle_diff = idle - self._last_idle
        usage = 1.0 - idle_diff / total_diff if total_diff > 0 else 0.0
        self._last_idle, self._last_total = idle, total
        self.last_usage = usage
        return usage


@dataclass
class IoMonitor:
    """Disk throughput scaled so that 1 GB/s counts as full usage."""

    sampler: Callable[[], int | None] = _disk_bytes
    clock: Callable[[], float] = time.monotonic
    _last: tuple[int, float] | None = field(default=None, init=False, repr=False)

    def get_usage(self) -> float:
        """Return disk usage since the last call; the first call only sets a baseline."""
        transferred = self.sampler()
        now = self.clock()
        if transferred is None:
            logger.warning("Disk I/O counters unavailable")
            return 0.0
        previous, self._last = self._last, (transferred, now)
        if previous is None:
            return 0.0
        elapsed = now - previous[1]
        if elapsed <= 0:
            return 0.0
        rate = max(0, transferred - previous[0]) / elapsed
        return min(rate / IO_FULL_SCALE_BYTES_PER_SEC, 1.0)


def ram_usage() -> float:
    """Return the share of physical memory in use."""
    memory = psutil.virtual_memory()
    if memory.total <= 0:
        return 0.0
    return (memory.total - memory.available) / memory.total


def gpu_usage() -> float:
    """Return GPU usage; no portable measurement exists, so this is 0.0."""
    logger.info("GPU usage not available on this platform")
    return 0.0


@dataclass
class ResourceManager:
    """Collects usage of every resource and decides how to react to it."""

    cpu: CpuMonitor = field(default_factory=CpuMonitor)
    io: IoMonitor = field(default_factory=IoMonitor)
    ram: Callable[[], float] = ram_usage
    gpu: Callable[[], float] = gpu_usage
    usage: ResourceUsage = field(default_factory=ResourceUsage)

    def update(self) -> ResourceUsage:
        """Sample every resource and return the new usage."""
        self.usage = ResourceUsage(
            cpu_usage=self.cpu.get_usage(),
            ram_usage=self.ram(),
            gpu_usage=self.gpu(),
            io_usage=self.io.get_usage(),
        )
        logger.info("Usage updated")
        return self.get_usage()

    def get_usage(self) -> ResourceUsage:
        """Return a copy of the most recent usage."""
        return dataclasses.replace(self.usage)

    def scale(self) -> str | None:
        """Decide on a priority change from CPU usage; None means no change."""
        cpu = self.usage.cpu_usage
        if cpu > HIGH_CPU_THRESHOLD:
            logger.info("High CPU usage detected, lowering background process priority")
            return LOWER_BACKGROUND_PRIORITY
        if cpu < LOW_CPU_THRESHOLD:
            logger.info("Low CPU usage, restoring normal priority")
            return RESTORE_NORMAL_PRIORITY
        return None

    def prioritize(self) -> int:
        """Return the id of the foreground process to be favoured."""
        pid = os.getpid()
        logger.info("Prioritizing foreground process %d", pid)
        return pid

    def power_adjust(self) -> bool:
        """Report whether the machine runs on battery, when power should be saved."""
        sensors_battery = getattr(psutil, "sensors_battery", None)
        battery = sensors_battery() if sensors_battery is not None else None
        on_battery = battery is not None and battery.power_plugged is False
        logger.info("Adjusting power profile (on battery: %s)", on_battery)
        return on_battery