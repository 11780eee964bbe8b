"""ROM image loading for CHIP-8 cartridges."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Optional

from chip8emu.chip8.memory import PROGRAM_CAPACITY, PROGRAM_START

logger = logging.getLogger(__name__)

ROM_SUFFIXES = {".ch8", ".c8", ".rom", ".bin"}


class RomLoadError(RuntimeError):
    """Raised when a cartridge image cannot be used."""


@dataclass(frozen=True)
class RomImage:
    data: bytes
    name: str = ""
    path: Optional[Path] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def end_address(self) -> int:
        return PROGRAM_START + len(self.data) - 1


def check_rom(data: bytes) -> bytes:
    payload = bytes(data)
    if not payload:
        raise RomLoadError("ROM image is empty")
    if len(payload) > PROGRAM_CAPACITY:
        raise RomLoadError(
            f"ROM image is {len(payload)} bytes; maximum is {PROGRAM_CAPACITY} (0x{PROGRAM_CAPACITY:X})"
        )
    return payload


def load_rom_bytes(data: bytes, *, name: str = "") -> RomImage:
    return RomImage(data=check_rom(data), name=name)


def load_rom_file(path: str | Path) -> RomImage:
    """Read a raw CHIP-8 image from disk."""

    file_path = Path(path)
    if not file_path.is_file():
        raise RomLoadError(f"ROM file not found: {file_path}")
    if file_path.suffix and file_path.suffix.lower() not in ROM_SUFFIXES:
        logger.debug("unusual ROM suffix %s for %s", file_path.suffix, file_path)
    data = check_rom(file_path.read_bytes())
    logger.info("read ROM %s (%d bytes)", file_path, len(data))
    return RomImage(data=data, name=file_path.stem.upper(), path=file_path)
