"""Gaming mode: game registry, a simulated GPU and renderer detection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterator

logger = logging.getLogger(__name__)

MAX_GAMES = 16
MAX_NAME_LENGTH = 63
DEFAULT_WIDTH = 800
DEFAULT_HEIGHT = 600
_ALPHA = 0xFF000000


class GameError(Exception):
    """Raised when a game cannot be registered or launched."""


@dataclass
class Game:
    """A registered game."""

    id: int
    name: str
    running: bool = False


@dataclass
class GpuApi:
    """Software GPU drawing a test pattern into a framebuffer of 32-bit pixels."""

    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    framebuffer: list[int] = field(default_factory=list)
    frames_drawn: int = 0
    frames_presented: int = 0

    def draw_frame(self) -> None:
        """Fill the framebuffer with an opaque XOR pattern."""
        self.framebuffer = [
            (x ^ y) | _ALPHA for y in range(self.height) for x in range(self.width)
        ]
        self.frames_drawn += 1

    def present(self) -> None:
        """Present the framebuffer to the display."""
        self.frames_presented += 1
        logger.info("Presenting frame to display")


@dataclass
class GamingMode:
    """Fixed-capacity game registry that renders running games each tick."""

    gpu: GpuApi = field(default_factory=GpuApi)
    games: list[Game] = field(default_factory=list)
    next_game_id: int = 1

    def __len__(self) -> int:
        return len(self.games)

    def __iter__(self) -> Iterator[Game]:
        return iter(self.games)

    def register_game(self, name: str) -> int:
        """Register a game and return its id."""
        if len(self.games) >= MAX_GAMES:
            raise GameError(f"game table full ({MAX_GAMES} games)")
        game = Game(id=self.next_game_id, name=name[:MAX_NAME_LENGTH])
        self.next_game_id += 1
        self.games.append(game)
        logger.info("Registered game %d: '%s'", game.id, game.name)
        return game.id

    def launch_game(self, game_id: int) -> None:
        """Launch a registered game that is not already running."""
        game = next((g for g in self.games if g.id == game_id and not g.running), None)
        if game is None:
            raise GameError(f"no stopped game with id {game_id}")
        game.running = True
        logger.info("Launched game %d: '%s'", game_id, game.name)

    def tick(self) -> list[Game]:
        """Draw and present a frame for each running game and return those games."""
        running = [g for g in self.games if g.running]
        for game in running:
            logger.info("Game %d ('%s') running", game.id, game.name)
            self.gpu.draw_frame()
            self.gpu.present()
        return running

    def listing(self) -> list[str]:
        """Describe every game, one line each."""
        lines = [
            f"Game {g.id}: '{g.name}' {'[RUNNING]' if g.running else ''}" for g in self.games
        ]
        logger.info("Game list (%d total)", len(self.games))
        for line in lines:
            logger.info("  %s", line)
        return lines


class Renderer(IntEnum):
    """Graphics layers available to games."""

    VULKAN = 0
    DIRECTX = 1
    PROTON = 2
    UNKNOWN = 3


_RENDERER_NAMES = {
    Renderer.VULKAN: "Vulkan",
    Renderer.DIRECTX: "DirectX",
    Renderer.PROTON: "Proton",
}


def renderer_name(renderer: Renderer | int) -> str:
    """Return the display name of a renderer."""
    try:
        return _RENDERER_NAMES.get(Renderer(renderer), "Unknown")
    except ValueError:
        return "Unknown"


def detect_vulkan() -> bool:
    """Report whether Vulkan is available."""
    logger.info("Vulkan detected")
    return True


def detect_directx() -> bool:
    """Report whether DirectX is available."""
    logger.info("DirectX detected")
    return True


def detect_proton() -> bool:
    """Report whether Proton is available."""
    logger.info("Proton detected")
    return True


def gaming_support_init() -> list[Renderer]:
    """Detect every supported renderer and return those found."""
    logger.info("Initializing gaming support")
    probes = (
        (Renderer.VULKAN, detect_vulkan),
        (Renderer.DIRECTX, detect_directx),
        (Renderer.PROTON, detect_proton),
    )
    found = [renderer for renderer, probe in probes if probe()]
    logger.info("All supported renderers initialized")
    return found