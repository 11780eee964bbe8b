"""File loading helpers for the CHIP-8 emulator."""

from chip8emu.emulator.file.program import (
    ROM_SUFFIXES,
    RomImage,
    RomLoadError,
    check_rom,
    load_rom_bytes,
    load_rom_file,
)

__all__ = [
    "ROM_SUFFIXES",
    "RomImage",
    "RomLoadError",
    "check_rom",
    "load_rom_bytes",
    "load_rom_file",
]
