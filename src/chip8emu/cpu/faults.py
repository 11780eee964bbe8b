"""Reasons a CHIP-8 run stops for good."""

from __future__ import annotations


class HaltReason(Exception):
    """Base for every condition that terminates the current run.

    Handlers raise these; :meth:`chip8emu.cpu.cpu.Chip8CPU.step` catches them
    and reports a halted status instead of letting them escape.
    """


class ProgramEnd(HaltReason):
    """The program counter reached a zero word (``0x0000``)."""

    def __init__(self, address: int) -> None:
        super().__init__(f"no more opcodes at 0x{address:03X}")
        self.address = address


class Chip8Fault(HaltReason):
    """Execution fault caused by the running program."""


class UnsupportedInstruction(Chip8Fault):
    def __init__(self, raw: int) -> None:
        super().__init__(f"unsupported instruction 0x{raw:04X}")
        self.raw = raw


class StackOverflow(Chip8Fault):
    def __init__(self, depth: int) -> None:
        super().__init__(f"call stack overflow (depth {depth})")
        self.depth = depth


class StackUnderflow(Chip8Fault):
    def __init__(self) -> None:
        super().__init__("return with empty call stack")


class AddressOutOfRange(Chip8Fault):
    def __init__(self, address: int) -> None:
        super().__init__(f"address out of range: 0x{address:X}" if address >= 0 else f"address out of range: {address}")
        self.address = address


__all__ = [
    "AddressOutOfRange",
    "Chip8Fault",
    "HaltReason",
    "ProgramEnd",
    "StackOverflow",
    "StackUnderflow",
    "UnsupportedInstruction",
]
