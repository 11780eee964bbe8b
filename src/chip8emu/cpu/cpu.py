"""CHIP-8 register file and fetch/decode/execute core."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
import logging
import random
from typing import Callable, Dict, Iterable, List, Optional

from chip8emu.chip8.hardware import Chip8Hardware
from chip8emu.chip8.memory import PROGRAM_START, glyph_address
from chip8emu.cpu.faults import (
    AddressOutOfRange,
    Chip8Fault,
    HaltReason,
    ProgramEnd,
    StackOverflow,
    StackUnderflow,
    UnsupportedInstruction,
)
from chip8emu.memory import ADDRESS_MASK

logger = logging.getLogger(__name__)

REGISTER_COUNT = 16
STACK_DEPTH = 16
INSTRUCTION_SIZE = 2
PROGRAM_COUNTER_LIMIT = ADDRESS_MASK - 1


@dataclass
class CPURegisters:
    """V0-VF, the index register I and the program counter."""

    v: List[int] = field(default_factory=lambda: [0x00] * REGISTER_COUNT)
    index: int = 0
    program_counter: int = PROGRAM_START

    @property
    def vf(self) -> int:
        return self.v[0xF]

    @vf.setter
    def vf(self, value: int) -> None:
        self.v[0xF] = value & 0xFF


class CallStack:
    """Return-address stack bounded to :data:`STACK_DEPTH` entries."""

    def __init__(self, depth: int = STACK_DEPTH) -> None:
        self.depth = depth
        self._entries: List[int] = []

    @property
    def pointer(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def push(self, address: int) -> None:
        if len(self._entries) >= self.depth:
            raise StackOverflow(len(self._entries) + 1)
        self._entries.append(address & 0xFFFF)

    def pop(self) -> int:
        if not self._entries:
            raise StackUnderflow()
        return self._entries.pop()

    def entries(self) -> List[int]:
        return list(self._entries)


@dataclass(frozen=True)
class Quirks:
    """Switches for opcodes that behave differently across interpreters.

    All flags off reproduces the original interpreter this project follows.
    """

    shift_uses_vy: bool = False
    load_store_increments_index: bool = False
    jump_uses_vx: bool = False
    logic_resets_vf: bool = False

    ALIASES = {
        "shift": "shift_uses_vy",
        "memory": "load_store_increments_index",
        "jump": "jump_uses_vx",
        "logic": "logic_resets_vf",
    }

    @classmethod
    def names(cls) -> List[str]:
        return [item.name for item in fields(cls)]

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "Quirks":
        enabled: Dict[str, bool] = {}
        valid = set(cls.names())
        for raw in names:
            name = raw.strip().lower().replace("-", "_")
            if not name:
                continue
            name = cls.ALIASES.get(name, name)
            if name not in valid:
                raise ValueError(f"unknown quirk: {raw!r}")
            enabled[name] = True
        return cls(**enabled)

    def enabled(self) -> List[str]:
        return [name for name in self.names() if getattr(self, name)]


@dataclass(frozen=True)
class Opcode:
    raw: int

    @property
    def major(self) -> int:
        return (self.raw >> 12) & 0x0F

    @property
    def x(self) -> int:
        return (self.raw >> 8) & 0x0F

    @property
    def y(self) -> int:
        return (self.raw >> 4) & 0x0F

    @property
    def n(self) -> int:
        return self.raw & 0x0F

    @property
    def nn(self) -> int:
        return self.raw & 0xFF

    @property
    def nnn(self) -> int:
        return self.raw & 0x0FFF

    def __str__(self) -> str:
        return f"0x{self.raw:04X}"


class StepKind(Enum):
    CONTINUE = "continue"
    AWAITING_KEY = "awaiting_key"
    HALTED = "halted"


@dataclass(frozen=True)
class StepStatus:
    kind: StepKind
    reason: Optional[HaltReason] = None

    @property
    def is_continue(self) -> bool:
        return self.kind is StepKind.CONTINUE

    @property
    def is_awaiting_key(self) -> bool:
        return self.kind is StepKind.AWAITING_KEY

    @property
    def is_halted(self) -> bool:
        return self.kind is StepKind.HALTED

    def __str__(self) -> str:
        if self.reason is None:
            return self.kind.value
        return f"{self.kind.value}: {self.reason}"


CONTINUE = StepStatus(StepKind.CONTINUE)
AWAITING_KEY = StepStatus(StepKind.AWAITING_KEY)


def halted(reason: HaltReason) -> StepStatus:
    return StepStatus(StepKind.HALTED, reason)


@dataclass
class CPUStatus:
    halted: Optional[StepStatus] = None
    trace: bool = False
    instructions: int = 0


Handler = Callable[[Opcode], Optional[StepStatus]]


class Chip8CPU:
    """Decoder/executor operating on a :class:`Chip8Hardware` bundle."""

    def __init__(
        self,
        hardware: Chip8Hardware,
        *,
        quirks: Quirks | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.hardware = hardware
        self.memory = hardware.memory
        self.quirks = quirks or Quirks()
        self.rng = rng or random.Random()
        self.registers = CPURegisters()
        self.stack = CallStack()
        self.status = CPUStatus()
        self._opcode_table: Dict[int, Handler] = {}
        self._alu_table: Dict[int, Handler] = {}
        self._key_table: Dict[int, Handler] = {}
        self._misc_table: Dict[int, Handler] = {}
        self._init_opcode_table()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def step(self) -> StepStatus:
        """Fetch, decode and execute one instruction."""

        if self.status.halted is not None:
            return self.status.halted

        pc = self.registers.program_counter
        try:
            if not (PROGRAM_START <= pc <= PROGRAM_COUNTER_LIMIT):
                raise AddressOutOfRange(pc)
            opcode = Opcode(self.memory.load16(pc))
            if self.status.trace:
                logger.debug("pc=%03X op=%s I=%03X V=%s", pc, opcode, self.registers.index,
                             " ".join(f"{value:02X}" for value in self.registers.v))
            self.registers.program_counter = pc + INSTRUCTION_SIZE
            result = self._opcode_table[opcode.major](opcode)
        except HaltReason as reason:
            self.registers.program_counter = pc
            return self._halt(reason)

        if result is AWAITING_KEY:
            self.registers.program_counter = pc
            return AWAITING_KEY
        self.status.instructions += 1
        return CONTINUE

    def enable_trace(self, enabled: bool) -> None:
        self.status.trace = enabled

    @property
    def halted(self) -> bool:
        return self.status.halted is not None

    def _halt(self, reason: HaltReason) -> StepStatus:
        status = halted(reason)
        self.status.halted = status
        if isinstance(reason, Chip8Fault):
            logger.warning("halted at 0x%03X: %s", self.registers.program_counter, reason)
        else:
            logger.info("halted at 0x%03X: %s", self.registers.program_counter, reason)
        return status

    # ------------------------------------------------------------------
    # Opcode table
    # ------------------------------------------------------------------
    def _register_opcode(self, table: Dict[int, Handler], key: int, handler: Handler) -> None:
        table[key] = handler

    def _init_opcode_table(self) -> None:
        self._opcode_table.clear()
        self._register_opcode(self._opcode_table, 0x0, self._opcode_system)
        self._register_opcode(self._opcode_table, 0x1, self._opcode_jp)
        self._register_opcode(self._opcode_table, 0x2, self._opcode_call)
        self._register_opcode(self._opcode_table, 0x3, self._opcode_se_imm)
        self._register_opcode(self._opcode_table, 0x4, self._opcode_sne_imm)
        self._register_opcode(self._opcode_table, 0x5, self._opcode_se_reg)
        self._register_opcode(self._opcode_table, 0x6, self._opcode_ld_imm)
        self._register_opcode(self._opcode_table, 0x7, self._opcode_add_imm)
        self._register_opcode(self._opcode_table, 0x8, self._opcode_alu)
        self._register_opcode(self._opcode_table, 0x9, self._opcode_sne_reg)
        self._register_opcode(self._opcode_table, 0xA, self._opcode_ld_index)
        self._register_opcode(self._opcode_table, 0xB, self._opcode_jp_offset)
        self._register_opcode(self._opcode_table, 0xC, self._opcode_rnd)
        self._register_opcode(self._opcode_table, 0xD, self._opcode_drw)
        self._register_opcode(self._opcode_table, 0xE, self._opcode_key)
        self._register_opcode(self._opcode_table, 0xF, self._opcode_misc)

        self._alu_table.clear()
        self._register_opcode(self._alu_table, 0x0, self._opcode_ld_reg)
        self._register_opcode(self._alu_table, 0x1, self._opcode_or)
        self._register_opcode(self._alu_table, 0x2, self._opcode_and)
        self._register_opcode(self._alu_table, 0x3, self._opcode_xor)
        self._register_opcode(self._alu_table, 0x4, self._opcode_add_reg)
        self._register_opcode(self._alu_table, 0x5, self._opcode_sub)
        self._register_opcode(self._alu_table, 0x6, self._opcode_shr)
        self._register_opcode(self._alu_table, 0x7, self._opcode_subn)
        self._register_opcode(self._alu_table, 0xE, self._opcode_shl)

        self._key_table.clear()
        self._register_opcode(self._key_table, 0x9E, self._opcode_skp)
        self._register_opcode(self._key_table, 0xA1, self._opcode_sknp)

        self._misc_table.clear()
        self._register_opcode(self._misc_table, 0x07, self._opcode_ld_vx_dt)
        self._register_opcode(self._misc_table, 0x0A, self._opcode_ld_vx_key)
        self._register_opcode(self._misc_table, 0x15, self._opcode_ld_dt_vx)
        self._register_opcode(self._misc_table, 0x18, self._opcode_ld_st_vx)
        self._register_opcode(self._misc_table, 0x1E, self._opcode_add_index)
        self._register_opcode(self._misc_table, 0x29, self._opcode_ld_font)
        self._register_opcode(self._misc_table, 0x33, self._opcode_bcd)
        self._register_opcode(self._misc_table, 0x55, self._opcode_dump)
        self._register_opcode(self._misc_table, 0x65, self._opcode_load)

    def _dispatch_sub(self, table: Dict[int, Handler], key: int, opcode: Opcode) -> Optional[StepStatus]:
        handler = table.get(key)
        if handler is None:
            raise UnsupportedInstruction(opcode.raw)
        return handler(opcode)

    # ------------------------------------------------------------------
    # 0x0 - 0x7
    # ------------------------------------------------------------------
    def _opcode_system(self, opcode: Opcode) -> None:
        if opcode.raw == 0x00E0:
            self.hardware.display.clear()
        elif opcode.raw == 0x00EE:
            self.registers.program_counter = self.stack.pop()
        elif opcode.raw == 0x0000:
            raise ProgramEnd(self.registers.program_counter - INSTRUCTION_SIZE)
        else:
            raise UnsupportedInstruction(opcode.raw)

    def _opcode_jp(self, opcode: Opcode) -> None:
        self.registers.program_counter = opcode.nnn

    def _opcode_call(self, opcode: Opcode) -> None:
        self.stack.push(self.registers.program_counter)
        self.registers.program_counter = opcode.nnn

    def _skip_if(self, condition: bool) -> None:
        if condition:
            self.registers.program_counter += INSTRUCTION_SIZE

    def _opcode_se_imm(self, opcode: Opcode) -> None:
        self._skip_if(self.registers.v[opcode.x] == opcode.nn)

    def _opcode_sne_imm(self, opcode: Opcode) -> None:
        self._skip_if(self.registers.v[opcode.x] != opcode.nn)

    def _opcode_se_reg(self, opcode: Opcode) -> None:
        if opcode.n != 0x0:
            raise UnsupportedInstruction(opcode.raw)
        self._skip_if(self.registers.v[opcode.x] == self.registers.v[opcode.y])

    def _opcode_ld_imm(self, opcode: Opcode) -> None:
        self.registers.v[opcode.x] = opcode.nn

    def _opcode_add_imm(self, opcode: Opcode) -> None:
        self.registers.v[opcode.x] = (self.registers.v[opcode.x] + opcode.nn) & 0xFF

    # ------------------------------------------------------------------
    # 0x8 ALU
    # ------------------------------------------------------------------
    def _opcode_alu(self, opcode: Opcode) -> Optional[StepStatus]:
        return self._dispatch_sub(self._alu_table, opcode.n, opcode)

    def _opcode_ld_reg(self, opcode: Opcode) -> None:
        self.registers.v[opcode.x] = self.registers.v[opcode.y]

    def _logic(self, opcode: Opcode, result: int) -> None:
        self.registers.v[opcode.x] = result & 0xFF
        if self.quirks.logic_resets_vf:
            self.registers.vf = 0

    def _opcode_or(self, opcode: Opcode) -> None:
        self._logic(opcode, self.registers.v[opcode.x] | self.registers.v[opcode.y])

    def _opcode_and(self, opcode: Opcode) -> None:
        self._logic(opcode, self.registers.v[opcode.x] & self.registers.v[opcode.y])

    def _opcode_xor(self, opcode: Opcode) -> None:
        self._logic(opcode, self.registers.v[opcode.x] ^ self.registers.v[opcode.y])

    def _opcode_add_reg(self, opcode: Opcode) -> None:
        vx = self.registers.v[opcode.x]
        vy = self.registers.v[opcode.y]
        total = vx + vy
        self.registers.v[opcode.x] = total & 0xFF
        self.registers.vf = 1 if total > 0xFF else 0

    def _opcode_sub(self, opcode: Opcode) -> None:
        vx = self.registers.v[opcode.x]
        vy = self.registers.v[opcode.y]
        self.registers.v[opcode.x] = (vx - vy) & 0xFF
        self.registers.vf = 1 if vx >= vy else 0

    def _opcode_subn(self, opcode: Opcode) -> None:
        vx = self.registers.v[opcode.x]
        vy = self.registers.v[opcode.y]
        self.registers.v[opcode.x] = (vy - vx) & 0xFF
        self.registers.vf = 1 if vy >= vx else 0

    def _shift_source(self, opcode: Opcode) -> int:
        register = opcode.y if self.quirks.shift_uses_vy else opcode.x
        return self.registers.v[register]

    def _opcode_shr(self, opcode: Opcode) -> None:
        value = self._shift_source(opcode)
        self.registers.v[opcode.x] = value >> 1
        self.registers.vf = value & 0x01

    def _opcode_shl(self, opcode: Opcode) -> None:
        value = self._shift_source(opcode)
        self.registers.v[opcode.x] = (value << 1) & 0xFF
        self.registers.vf = (value >> 7) & 0x01

    # ------------------------------------------------------------------
    # 0x9 - 0xD
    # ------------------------------------------------------------------
    def _opcode_sne_reg(self, opcode: Opcode) -> None:
        if opcode.n != 0x0:
            raise UnsupportedInstruction(opcode.raw)
        self._skip_if(self.registers.v[opcode.x] != self.registers.v[opcode.y])

    def _opcode_ld_index(self, opcode: Opcode) -> None:
        self.registers.index = opcode.nnn

    def _opcode_jp_offset(self, opcode: Opcode) -> None:
        register = opcode.x if self.quirks.jump_uses_vx else 0x0
        self.registers.program_counter = opcode.nnn + self.registers.v[register]

    def _opcode_rnd(self, opcode: Opcode) -> None:
        self.registers.v[opcode.x] = self.rng.randrange(0x100) & opcode.nn

    def _opcode_drw(self, opcode: Opcode) -> None:
        rows = self.memory.read_block(self.registers.index, opcode.n)
        x = self.registers.v[opcode.x] % self.hardware.display.WIDTH
        y = self.registers.v[opcode.y] % self.hardware.display.HEIGHT
        collision = self.hardware.display.draw_sprite(x, y, rows)
        self.registers.vf = 1 if collision else 0

    # ------------------------------------------------------------------
    # 0xE keys
    # ------------------------------------------------------------------
    def _opcode_key(self, opcode: Opcode) -> Optional[StepStatus]:
        return self._dispatch_sub(self._key_table, opcode.nn, opcode)

    def _opcode_skp(self, opcode: Opcode) -> None:
        self._skip_if(self.hardware.keypad.is_pressed(self.registers.v[opcode.x]))

    def _opcode_sknp(self, opcode: Opcode) -> None:
        self._skip_if(not self.hardware.keypad.is_pressed(self.registers.v[opcode.x]))

    # ------------------------------------------------------------------
    # 0xF timers, key wait, index and memory transfers
    # ------------------------------------------------------------------
    def _opcode_misc(self, opcode: Opcode) -> Optional[StepStatus]:
        return self._dispatch_sub(self._misc_table, opcode.nn, opcode)

    def _opcode_ld_vx_dt(self, opcode: Opcode) -> None:
        self.registers.v[opcode.x] = self.hardware.timers.delay

    def _opcode_ld_vx_key(self, opcode: Opcode) -> Optional[StepStatus]:
        keypad = self.hardware.keypad
        if not keypad.awaiting_key:
            keypad.begin_wait()
            return AWAITING_KEY
        key = keypad.consume_press()
        if key is None:
            return AWAITING_KEY
        self.registers.v[opcode.x] = key
        return None

    def _opcode_ld_dt_vx(self, opcode: Opcode) -> None:
        self.hardware.timers.set_delay(self.registers.v[opcode.x])

    def _opcode_ld_st_vx(self, opcode: Opcode) -> None:
        self.hardware.timers.set_sound(self.registers.v[opcode.x])

    def _opcode_add_index(self, opcode: Opcode) -> None:
        self.registers.index = (self.registers.index + self.registers.v[opcode.x]) & 0xFFFF

    def _opcode_ld_font(self, opcode: Opcode) -> None:
        self.registers.index = glyph_address(self.registers.v[opcode.x])

    def _opcode_bcd(self, opcode: Opcode) -> None:
        value = self.registers.v[opcode.x]
        digits = (value // 100, (value // 10) % 10, value % 10)
        self.memory.write_block(self.registers.index, digits)

    def _opcode_dump(self, opcode: Opcode) -> None:
        count = opcode.x + 1
        self.memory.write_block(self.registers.index, self.registers.v[:count])
        if self.quirks.load_store_increments_index:
            self.registers.index = (self.registers.index + count) & 0xFFFF

    def _opcode_load(self, opcode: Opcode) -> None:
        count = opcode.x + 1
        values = self.memory.read_block(self.registers.index, count)
        self.registers.v[:count] = list(values)
        if self.quirks.load_store_increments_index:
            self.registers.index = (self.registers.index + count) & 0xFFFF


__all__ = [
    "AWAITING_KEY",
    "CONTINUE",
    "CPURegisters",
    "CallStack",
    "Chip8CPU",
    "INSTRUCTION_SIZE",
    "Opcode",
    "Quirks",
    "STACK_DEPTH",
    "StepKind",
    "StepStatus",
    "halted",
]
