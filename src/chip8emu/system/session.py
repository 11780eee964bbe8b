"""Host-side holder that swaps whole engine instances on reload."""

from __future__ import annotations

import logging
import os
from pathlib import Path
import random
from typing import Callable, Optional

from chip8emu.chip8.computer import Chip8Computer, EngineStateError, RunHandle
from chip8emu.cpu.cpu import Quirks
from chip8emu.emulator.file import load_rom_file

logger = logging.getLogger(__name__)


class Session:
    """Owns the current :class:`Chip8Computer` and its generation number.

    Every reload retires the previous engine and bumps ``generation``;
    run handles issued for older generations report ``is_current == False``
    and any driver bound to them stops on its next iteration.
    """

    def __init__(
        self,
        *,
        quirks: Quirks | None = None,
        rng_factory: Callable[[], random.Random] | None = None,
    ) -> None:
        self.quirks = quirks
        self._rng_factory = rng_factory
        self.generation = 0
        self.computer: Optional[Chip8Computer] = None

    def reload(self, data: bytes, *, name: str = "") -> Chip8Computer:
        previous = self.computer
        computer = Chip8Computer(
            quirks=self.quirks,
            rng=self._rng_factory() if self._rng_factory is not None else None,
            owner=self,
            generation=self.generation + 1,
        )
        computer.load_rom(data, name=name)
        if previous is not None:
            previous.retire()
        self.generation += 1
        self.computer = computer
        logger.info("session generation %d: %s", self.generation, name or f"{len(data)} bytes")
        return computer

    def reload_file(self, path: str | os.PathLike[str]) -> Chip8Computer:
        image = load_rom_file(Path(path))
        computer = self.reload(image.data, name=image.name)
        computer.rom = image
        return computer

    def start(self) -> RunHandle:
        if self.computer is None:
            raise EngineStateError("no ROM has been loaded into this session")
        return self.computer.start()
