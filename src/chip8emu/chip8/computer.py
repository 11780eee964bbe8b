"""CHIP-8 machine wiring: one owned engine instance per loaded game."""

from __future__ import annotations

from contextlib import contextmanager
import logging
import os
from pathlib import Path
import random
import threading
from typing import Iterator, Optional, Protocol

from chip8emu.chip8.display import Chip8Display, Framebuffer
from chip8emu.chip8.hardware import Chip8Hardware
from chip8emu.chip8.keypad import Chip8Keypad
from chip8emu.chip8.memory import PROGRAM_START, ProgramArea, install_font
from chip8emu.chip8.timers import Chip8Timers
from chip8emu.cpu.cpu import CPURegisters, CallStack, Chip8CPU, Quirks, StepStatus
from chip8emu.emulator.file import RomImage, RomLoadError, check_rom, load_rom_file
from chip8emu.memory import MemoryBus

logger = logging.getLogger(__name__)


class EngineStateError(RuntimeError):
    """Raised when the host uses the engine out of order."""


class EngineBusyError(RuntimeError):
    """Raised when the host touches the engine while a step is running."""


class StaleHandleError(RuntimeError):
    """Raised when stepping a handle whose engine has been replaced."""


class GenerationSource(Protocol):
    generation: int


class RunHandle:
    """Runnable handle returned by :meth:`Chip8Computer.start`.

    A handle is bound to one engine and one generation. Once the owning
    session reloads (or the engine is retired) the handle is stale and
    refuses to step.
    """

    def __init__(self, computer: "Chip8Computer", generation: int) -> None:
        self.computer = computer
        self.generation = generation

    @property
    def is_current(self) -> bool:
        if self.computer.retired:
            return False
        owner = self.computer.owner
        if owner is None:
            return self.generation == self.computer.generation
        return self.generation == owner.generation

    def step(self) -> StepStatus:
        if not self.is_current:
            raise StaleHandleError(f"run handle for generation {self.generation} is no longer current")
        return self.computer.step()

    def tick_timers(self) -> None:
        if self.is_current:
            self.computer.tick_timers()


class Chip8Computer:
    """Concrete CHIP-8 machine.

    Construction zeroes memory, preloads the font sprites and points PC at
    0x200. The host copies a ROM in with :meth:`load_rom` before calling
    :meth:`start`; afterwards the program window is frozen.
    """

    ENV_ROM_PATH = "CHIP8EMU_ROM"

    def __init__(
        self,
        *,
        quirks: Quirks | None = None,
        rng: random.Random | None = None,
        owner: GenerationSource | None = None,
        generation: int = 0,
    ) -> None:
        memory = MemoryBus()
        install_font(memory)
        self.hardware = Chip8Hardware(
            memory=memory,
            display=Chip8Display(),
            keypad=Chip8Keypad(),
            timers=Chip8Timers(),
        )
        self.cpu_core = Chip8CPU(self.hardware, quirks=quirks, rng=rng)
        self.owner = owner
        self.generation = generation
        self.retired = False
        self.rom: Optional[RomImage] = None
        self._rom_area = ProgramArea(memory)
        self._started = False
        self._lock = threading.Lock()
        self._last_status: Optional[StepStatus] = None

    # ------------------------------------------------------------------
    # Exclusive access
    # ------------------------------------------------------------------
    @contextmanager
    def _exclusive(self, action: str) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise EngineBusyError(f"cannot {action} while a step is executing")
        try:
            yield
        finally:
            self._lock.release()

    # ------------------------------------------------------------------
    # ROM loading
    # ------------------------------------------------------------------
    @property
    def rom_area(self) -> ProgramArea:
        return self._rom_area

    def load_rom(self, data: bytes, *, name: str = "") -> RomImage:
        if self._started:
            raise EngineStateError("ROM must be loaded before start()")
        payload = check_rom(data)
        with self._exclusive("load a ROM"):
            self.hardware.memory.write_block(PROGRAM_START, payload)
        self.rom = RomImage(data=payload, name=name)
        logger.info("loaded %s%d bytes at 0x%03X", f"{name}: " if name else "", len(payload), PROGRAM_START)
        return self.rom

    def load_rom_file(self, path: str | os.PathLike[str]) -> RomImage:
        image = load_rom_file(Path(path))
        self.load_rom(image.data, name=image.name)
        self.rom = image
        return image

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def start(self) -> RunHandle:
        if self.retired:
            raise EngineStateError("engine has been replaced")
        if self.rom is None:
            raise RomLoadError("no ROM loaded")
        self._started = True
        return RunHandle(self, self.generation)

    @property
    def started(self) -> bool:
        return self._started

    def step(self) -> StepStatus:
        if not self._started:
            raise EngineStateError("call start() before stepping")
        with self._exclusive("step"):
            status = self.cpu_core.step()
        self._last_status = status
        return status

    def tick_timers(self) -> None:
        with self._exclusive("tick timers"):
            self.hardware.timers.tick()

    def retire(self) -> None:
        self.retired = True

    @property
    def last_status(self) -> Optional[StepStatus]:
        return self._last_status

    @property
    def halted(self) -> bool:
        return self.cpu_core.halted

    # ------------------------------------------------------------------
    # Host accessors
    # ------------------------------------------------------------------
    def set_key(self, code: int, pressed: bool) -> None:
        with self._exclusive("change key state"):
            self.hardware.keypad.set_key(code, pressed)

    def press_key(self, code: int) -> None:
        self.set_key(code, True)

    def release_key(self, code: int) -> None:
        self.set_key(code, False)

    @property
    def pressed_key(self) -> Optional[int]:
        return self.hardware.keypad.pressed_key

    @property
    def awaiting_key(self) -> bool:
        return self.hardware.keypad.awaiting_key

    def snapshot_display(self) -> Framebuffer:
        with self._exclusive("read the display"):
            return self.hardware.display.snapshot()

    @property
    def memory(self) -> MemoryBus:
        return self.hardware.memory

    @property
    def display(self) -> Chip8Display:
        return self.hardware.display

    @property
    def keypad(self) -> Chip8Keypad:
        return self.hardware.keypad

    @property
    def timers(self) -> Chip8Timers:
        return self.hardware.timers

    @property
    def registers(self) -> CPURegisters:
        return self.cpu_core.registers

    @property
    def stack(self) -> CallStack:
        return self.cpu_core.stack

    @property
    def quirks(self) -> Quirks:
        return self.cpu_core.quirks


__all__ = [
    "Chip8Computer",
    "EngineBusyError",
    "EngineStateError",
    "RunHandle",
    "StaleHandleError",
]
