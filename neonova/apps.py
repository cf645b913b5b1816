"""Application runtime that tracks registered apps of different runtime kinds."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Iterator

logger = logging.getLogger(__name__)

MAX_APPS = 32
MAX_NAME_LENGTH = 63


class AppType(IntEnum):
    """Kind of runtime an app executes in."""

    NATIVE = 0
    WASM = 1
    JVM = 2
    ELECTRON = 3


class AppError(Exception):
    """Raised when an app cannot be registered, found or changed."""


@dataclass
class AppContainer:
    """A registered application."""

    id: int
    type: AppType
    name: str
    running: bool = False
    instance: Any = None
    process_id: int = 0
    window_id: int = 0


@dataclass
class AppRuntime:
    """Fixed-capacity registry of applications with sequential identifiers."""

    apps: list[AppContainer] = field(default_factory=list)
    next_app_id: int = 1

    def __len__(self) -> int:
        return len(self.apps)

    def __iter__(self) -> Iterator[AppContainer]:
        return iter(self.apps)

    def _find(self, app_id: int) -> AppContainer | None:
        return next((app for app in self.apps if app.id == app_id), None)

    def register(self, name: str, app_type: AppType) -> int:
        """Register a stopped app and return its id."""
        if len(self.apps) >= MAX_APPS:
            raise AppError(f"app table full ({MAX_APPS} apps)")
        app = AppContainer(id=self.next_app_id, type=AppType(app_type), name=name[:MAX_NAME_LENGTH])
        self.next_app_id += 1
        self.apps.append(app)
        logger.info("Registered app %d: '%s' (type %d)", app.id, app.name, int(app.type))
        return app.id

    def start(self, app_id: int) -> None:
        """Start an app that is registered and not yet running."""
        app = self._find(app_id)
        if app is None or app.running:
            raise AppError(f"no stopped app with id {app_id}")
        app.running = True
        logger.info("Started app %d: '%s'", app_id, app.name)

    def stop(self, app_id: int) -> None:
        """Stop a running app."""
        app = self._find(app_id)
        if app is None or not app.running:
            raise AppError(f"no running app with id {app_id}")
        app.running = False
        logger.info("Stopped app %d: '%s'", app_id, app.name)

    def destroy(self, app_id: int) -> None:
        """Remove an app, keeping the order of the others."""
        app = self._find(app_id)
        if app is None:
            raise AppError(f"no app with id {app_id}")
        logger.info("Destroyed app %d: '%s'", app_id, app.name)
        self.apps.remove(app)

    def tick(self) -> list[AppContainer]:
        """Give every running app a turn and return those apps."""
        running = [app for app in self.apps if app.running]
        for app in running:
            logger.info("App %d ('%s') running", app.id, app.name)
        return running

    def listing(self) -> list[str]:
        """Describe every app, one line each."""
        lines = [
            f"App {app.id}: '{app.name}' (type {int(app.type)}) {'[RUNNING]' if app.running else ''}"
            for app in self.apps
        ]
        logger.info("App list (%d total)", len(self.apps))
        for line in lines:
            logger.info("  %s", line)
        return lines

    def set_process_id(self, app_id: int, process_id: int) -> None:
        """Associate a process with an app; unknown apps are left alone."""
        app = self._find(app_id)
        if app is not None:
            app.process_id = process_id
            logger.info("Set process %d for app %d ('%s')", process_id, app_id, app.name)

    def set_window_id(self, app_id: int, window_id: int) -> None:
        """Associate a window with an app; unknown apps are left alone."""
        app = self._find(app_id)
        if app is not None:
            app.window_id = window_id
            logger.info("Set window %d for app %d ('%s')", window_id, app_id, app.name)