"""CHIP-8 hardware bundle shared by the CPU and the host."""

from __future__ import annotations

from dataclasses import dataclass

from chip8emu.chip8.display import Chip8Display
from chip8emu.chip8.keypad import Chip8Keypad
from chip8emu.chip8.timers import Chip8Timers
from chip8emu.memory import MemoryBus


@dataclass
class Chip8Hardware:
    memory: MemoryBus
    display: Chip8Display
    keypad: Chip8Keypad
    timers: Chip8Timers
