"""Memory primitives for the CHIP-8 address space."""

from __future__ import annotations

import logging
from typing import Iterable

from chip8emu.cpu.faults import AddressOutOfRange

logger = logging.getLogger(__name__)

MEMORY_SIZE = 0x1000
ADDRESS_MASK = 0x0FFF


class Memory:
    """Flat byte block supporting 8/16-bit accesses."""

    start: int
    length: int
    data: bytearray

    def __init__(self, start: int, length: int) -> None:
        if length <= 0 or start < 0 or start + length > MEMORY_SIZE:
            raise ValueError("invalid memory range")
        self.start = start
        self.length = length
        self.data = bytearray(length)

    def get_start_address(self) -> int:
        return self.start

    def get_end_address(self) -> int:
        return self.start + self.length - 1

    def contains(self, address: int) -> bool:
        return self.start <= address <= self.get_end_address()

    def _index(self, address: int) -> int:
        if not self.contains(address):
            raise AddressOutOfRange(address)
        return address - self.start

    def load8(self, address: int) -> int:
        return self.data[self._index(address)]

    def store8(self, address: int, value: int) -> None:
        self.data[self._index(address)] = value & 0xFF

    def load16(self, address: int) -> int:
        hi = self.load8(address)
        lo = self.load8(address + 1)
        return (hi << 8) | lo

    def store16(self, address: int, value: int) -> None:
        self.store8(address, (value >> 8) & 0xFF)
        self.store8(address + 1, value & 0xFF)


class MemoryBus(Memory):
    """The 4 KiB CHIP-8 address space.

    Every access outside 0x000-0xFFF raises :class:`AddressOutOfRange`; the
    executor turns that into a terminal halt.
    """

    def __init__(self) -> None:
        super().__init__(0x000, MEMORY_SIZE)
        self._debug: bool = False

    def load8(self, address: int) -> int:
        value = super().load8(address)
        if self._debug:
            logger.debug("load8: addr=%03X val=%02X", address, value)
        return value

    def store8(self, address: int, value: int) -> None:
        if self._debug:
            logger.debug("store8: addr=%03X val=%02X", address, value & 0xFF)
        super().store8(address, value)

    def read_block(self, address: int, length: int) -> bytes:
        if length < 0:
            raise ValueError("length must not be negative")
        if length and (address < 0 or address + length - 1 > ADDRESS_MASK):
            raise AddressOutOfRange(address if address < 0 else address + length - 1)
        return bytes(self.data[address:address + length])

    def write_block(self, address: int, values: Iterable[int]) -> int:
        payload = bytes(value & 0xFF for value in values)
        if payload and (address < 0 or address + len(payload) - 1 > ADDRESS_MASK):
            raise AddressOutOfRange(address if address < 0 else address + len(payload) - 1)
        self.data[address:address + len(payload)] = payload
        return len(payload)

    def clear(self) -> None:
        self.data[:] = bytes(self.length)

    def enable_debug(self, enabled: bool) -> None:
        self._debug = enabled


__all__ = [
    "ADDRESS_MASK",
    "MEMORY_SIZE",
    "Memory",
    "MemoryBus",
]
