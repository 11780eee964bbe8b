"""CHIP-8 specific memory layout: font sprites and the program window."""

from __future__ import annotations

from typing import List

from chip8emu.memory import MEMORY_SIZE, MemoryBus

FONT_START = 0x000
FONT_GLYPH_HEIGHT = 5
PROGRAM_START = 0x200
PROGRAM_CAPACITY = MEMORY_SIZE - PROGRAM_START

FONT_SPRITES: List[int] = [
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
]


def install_font(memory: MemoryBus, start: int = FONT_START) -> None:
    memory.write_block(start, FONT_SPRITES)


def glyph_address(digit: int) -> int:
    """Address of the 5-byte sprite for hexadecimal ``digit`` (low nibble used)."""

    return FONT_START + (digit & 0x0F) * FONT_GLYPH_HEIGHT


class ProgramArea:
    """Read-only view of 0x200-0xFFF where cartridge bytes live.

    Cartridge bytes are copied in by :meth:`Chip8Computer.load_rom`.
    """

    def __init__(self, memory: MemoryBus) -> None:
        self._memory = memory

    @property
    def start(self) -> int:
        return PROGRAM_START

    @property
    def capacity(self) -> int:
        return PROGRAM_CAPACITY

    def __len__(self) -> int:
        return PROGRAM_CAPACITY

    def __getitem__(self, index: int) -> int:
        if not (0 <= index < PROGRAM_CAPACITY):
            raise IndexError("program area index out of range")
        return self._memory.load8(PROGRAM_START + index)

    def to_bytes(self) -> bytes:
        return self._memory.read_block(PROGRAM_START, PROGRAM_CAPACITY)


__all__ = [
    "FONT_GLYPH_HEIGHT",
    "FONT_SPRITES",
    "FONT_START",
    "PROGRAM_CAPACITY",
    "PROGRAM_START",
    "ProgramArea",
    "glyph_address",
    "install_font",
]
