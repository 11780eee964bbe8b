from __future__ import annotations

from pathlib import Path

import pytest

from chip8emu.chip8.computer import Chip8Computer, EngineStateError
from chip8emu.emulator.file import RomLoadError, check_rom, load_rom_bytes, load_rom_file


def test_check_rom_rejects_empty_and_oversized() -> None:
    with pytest.raises(RomLoadError):
        check_rom(b"")
    with pytest.raises(RomLoadError):
        check_rom(bytes(0xE01))
    assert len(check_rom(bytes(0xE00))) == 0xE00


def test_load_rom_bytes_reports_end_address() -> None:
    image = load_rom_bytes(b"\x00\xE0\x12\x00", name="LOOP")
    assert image.size == 4
    assert image.end_address == 0x203


def test_load_rom_file_reads_image(tmp_path: Path) -> None:
    path = tmp_path / "pong.ch8"
    path.write_bytes(b"\x6A\x02")
    image = load_rom_file(path)
    assert image.data == b"\x6A\x02"
    assert image.name == "PONG"
    assert image.path == path


def test_load_rom_file_missing(tmp_path: Path) -> None:
    with pytest.raises(RomLoadError):
        load_rom_file(tmp_path / "missing.ch8")


def test_computer_copies_rom_to_program_start(tmp_path: Path) -> None:
    path = tmp_path / "demo.ch8"
    path.write_bytes(bytes(range(1, 11)))
    computer = Chip8Computer()
    image = computer.load_rom_file(path)
    assert image.name == "DEMO"
    assert computer.memory.read_block(0x200, 10) == bytes(range(1, 11))
    assert computer.memory.load8(0x20A) == 0
    assert computer.rom is image


def test_maximum_size_rom_fills_memory() -> None:
    computer = Chip8Computer()
    computer.load_rom(b"\xAB" * 0xE00)
    assert computer.memory.load8(0xFFF) == 0xAB


def test_oversized_rom_leaves_memory_untouched() -> None:
    computer = Chip8Computer()
    with pytest.raises(RomLoadError):
        computer.load_rom(bytes([0xFF]) * 0xE01)
    assert computer.memory.load8(0x200) == 0
    assert computer.rom is None


def test_start_requires_rom() -> None:
    with pytest.raises(RomLoadError):
        Chip8Computer().start()


def test_load_after_start_is_rejected() -> None:
    computer = Chip8Computer()
    computer.load_rom(b"\x12\x00")
    computer.start()
    with pytest.raises(EngineStateError):
        computer.load_rom(b"\x00\xE0")


def test_rom_area_cannot_rewrite_program_after_start() -> None:
    computer = Chip8Computer()
    computer.load_rom(b"\x60\x01\x12\x02")
    computer.start()
    computer.step()

    with pytest.raises(AttributeError):
        computer.rom_area.write(b"\x00\xE0\x00\x00")  # type: ignore[attr-defined]
    with pytest.raises(EngineStateError):
        computer.load_rom(b"\x00\xE0\x00\x00")

    assert computer.rom_area.to_bytes()[:4] == b"\x60\x01\x12\x02"
    assert computer.memory.read_block(0x200, 4) == b"\x60\x01\x12\x02"


def test_step_before_start_is_rejected() -> None:
    computer = Chip8Computer()
    computer.load_rom(b"\x12\x00")
    with pytest.raises(EngineStateError):
        computer.step()
