from __future__ import annotations

import pytest

from chip8emu.chip8.memory import PROGRAM_CAPACITY, PROGRAM_START, ProgramArea, glyph_address
from chip8emu.cpu.faults import AddressOutOfRange
from chip8emu.memory import MEMORY_SIZE, Memory, MemoryBus


def test_memory_rejects_invalid_range() -> None:
    with pytest.raises(ValueError):
        Memory(0x0F00, 0x200)


def test_bus_covers_full_address_space() -> None:
    bus = MemoryBus()
    assert bus.get_start_address() == 0x000
    assert bus.get_end_address() == MEMORY_SIZE - 1
    bus.store8(0xFFF, 0x1AB)
    assert bus.load8(0xFFF) == 0xAB


def test_word_access_is_big_endian() -> None:
    bus = MemoryBus()
    bus.store16(0x300, 0x12AB)
    assert bus.load8(0x300) == 0x12
    assert bus.load8(0x301) == 0xAB
    assert bus.load16(0x300) == 0x12AB


@pytest.mark.parametrize("address", [-1, 0x1000])
def test_out_of_range_access_raises(address: int) -> None:
    bus = MemoryBus()
    with pytest.raises(AddressOutOfRange):
        bus.load8(address)
    with pytest.raises(AddressOutOfRange):
        bus.store8(address, 0)


def test_word_read_straddling_end_raises() -> None:
    with pytest.raises(AddressOutOfRange):
        MemoryBus().load16(0xFFF)


def test_block_transfers() -> None:
    bus = MemoryBus()
    assert bus.write_block(0xFFD, [1, 2, 3]) == 3
    assert bus.read_block(0xFFD, 3) == bytes([1, 2, 3])
    assert bus.read_block(0xFFF, 0) == b""


def test_block_transfer_past_end_reports_first_bad_address() -> None:
    bus = MemoryBus()
    with pytest.raises(AddressOutOfRange) as excinfo:
        bus.read_block(0xFFE, 4)
    assert excinfo.value.address == 0x1001
    with pytest.raises(AddressOutOfRange):
        bus.write_block(0xFFF, [0, 0])
    assert bus.load8(0xFFF) == 0


def test_program_area_window() -> None:
    bus = MemoryBus()
    area = ProgramArea(bus)
    assert area.start == PROGRAM_START
    assert len(area) == area.capacity == PROGRAM_CAPACITY == 0xE00
    bus.write_block(PROGRAM_START, b"\x12\x34")
    assert area[0] == 0x12
    assert area[1] == 0x34
    assert area.to_bytes()[:3] == b"\x12\x34\x00"
    with pytest.raises(IndexError):
        area[PROGRAM_CAPACITY]


def test_program_area_has_no_write_path() -> None:
    area = ProgramArea(MemoryBus())
    assert not hasattr(area, "write")
    with pytest.raises(TypeError):
        area[0] = 0x12  # type: ignore[index]


def test_glyph_address_masks_digit() -> None:
    assert glyph_address(0x0) == 0x000
    assert glyph_address(0xF) == 0x04B
    assert glyph_address(0x12) == 0x00A
