"""Run a CHIP-8 ROM without a window and report what it did.

Typical use::

    chip8-debug-runner --rom PONG.ch8 --cycles 2000 --screen --registers

The process exit status tells scripts how the run ended (see ``EXIT_*``).
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
import logging
import random
import sys
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TypeVar

from chip8emu.chip8.computer import Chip8Computer
from chip8emu.cpu.cpu import Quirks, StepStatus
from chip8emu.cpu.faults import Chip8Fault
from chip8emu.emulator.file import RomLoadError
from chip8emu.memory import ADDRESS_MASK, MemoryBus
from chip8emu.system.computer import DEFAULT_INSTRUCTIONS_PER_SECOND, Driver


DEFAULT_MAX_CYCLES = 100_000
EXECUTION_CHUNK = 256
DUMP_ROW_WIDTH = 16

T = TypeVar("T")

EXIT_OK = 0
EXIT_LOAD_FAILED = 1
EXIT_CYCLE_LIMIT = 2
EXIT_TIME_LIMIT = 3
EXIT_FAULT = 4


@dataclass(frozen=True)
class DumpRange:
    start: int
    end: int

    def overlaps_or_touches(self, other: "DumpRange") -> bool:
        return other.start <= self.end + 1 and self.start <= other.end + 1


@dataclass
class RunResult:
    executed: int
    status: Optional[StepStatus]
    break_hit: bool = False
    timeout_hit: bool = False
    cycle_hit: bool = False


def _parse_hex(value: str, limit: int = ADDRESS_MASK) -> int:
    digits = value.strip().lower().removeprefix("0x")
    if not digits:
        raise ValueError("no hexadecimal digits")
    number = int(digits, 16)
    if number < 0 or number > limit:
        raise ValueError(f"must be between 0 and 0x{limit:X}")
    return number


def _parse_key(value: str) -> int:
    return _parse_hex(value, limit=0xF)


def _parse_range(text: str) -> DumpRange:
    """Parse ``START:END`` (inclusive) or ``START+LENGTH``."""

    if ":" in text:
        first, _, last = text.partition(":")
        start, end = _parse_hex(first), _parse_hex(last)
    elif "+" in text:
        first, _, length = text.partition("+")
        start = _parse_hex(first)
        end = start + _parse_hex(length) - 1
        if end > ADDRESS_MASK:
            raise ValueError("range runs past 0xFFF")
    else:
        raise ValueError("expected START:END or START+LENGTH")
    if end < start:
        raise ValueError("range is empty")
    return DumpRange(start, end)


def _merge_ranges(ranges: Sequence[DumpRange]) -> List[DumpRange]:
    if not ranges:
        return [DumpRange(0x000, ADDRESS_MASK)]
    merged: List[DumpRange] = []
    for item in sorted(ranges, key=lambda r: (r.start, r.end)):
        if merged and merged[-1].overlaps_or_touches(item):
            previous = merged.pop()
            item = DumpRange(previous.start, max(previous.end, item.end))
        merged.append(item)
    return merged


def _format_hex_dump(memory: MemoryBus, dump_ranges: Sequence[DumpRange]) -> str:
    header = "ADR " + " ".join(f"+{column:X}" for column in range(DUMP_ROW_WIDTH))
    blocks: List[str] = []
    for dump_range in dump_ranges:
        first_row = dump_range.start - dump_range.start % DUMP_ROW_WIDTH
        rows = [header]
        for row_start in range(first_row, dump_range.end + 1, DUMP_ROW_WIDTH):
            cells = [f"{memory.load8(row_start + column):02X}" for column in range(DUMP_ROW_WIDTH)]
            rows.append(f"{row_start:03X} " + " ".join(cells))
        blocks.append("\n".join(rows))
    return "\n\n".join(blocks)


def _format_registers(computer: Chip8Computer) -> str:
    registers = computer.registers
    timers = computer.timers
    lines = [
        f"PC={registers.program_counter:03X} I={registers.index:03X} SP={computer.stack.pointer}"
        f" DT={timers.delay:02X} ST={timers.sound:02X}"
        f" N={computer.cpu_core.status.instructions}",
        " ".join(f"V{index:X}={value:02X}" for index, value in enumerate(registers.v)),
    ]
    stack = computer.stack.entries()
    if stack:
        lines.append("STACK " + " ".join(f"{address:03X}" for address in stack))
    return "\n".join(lines)


def _write_dump(memory: MemoryBus, dump_ranges: Sequence[DumpRange], *, target: Path | None, fmt: str) -> None:
    ranges = _merge_ranges(dump_ranges)
    if fmt == "bin":
        payload = b"".join(memory.read_block(item.start, item.end - item.start + 1) for item in ranges)
        if target is None:
            sys.stdout.buffer.write(payload)
        else:
            target.write_bytes(payload)
        return

    table = _format_hex_dump(memory, ranges)
    if target is None:
        print(table)
    else:
        target.write_text(table + "\n")


def _setup_computer(rom_path: str, *, quirks: Quirks, seed: int | None) -> Chip8Computer:
    computer = Chip8Computer(quirks=quirks, rng=random.Random(seed) if seed is not None else None)
    computer.load_rom_file(rom_path)
    return computer


def _execute_program(
    driver: Driver,
    *,
    max_cycles: int | None,
    breakpoints: Sequence[int],
    max_seconds: float | None,
) -> RunResult:
    """Tick ``driver`` until it stops, a breakpoint hits or a limit runs out.

    Breakpoints are checked between steps, so with any breakpoint set the
    driver is ticked one instruction at a time.
    """

    computer = driver.handle.computer
    stops = set(breakpoints)
    batch = 1 if stops else EXECUTION_CHUNK
    result = RunResult(executed=0, status=None)
    deadline = time.monotonic() + max_seconds if max_seconds is not None and max_seconds >= 0 else None

    driver.power_on()
    while max_cycles is None or result.executed < max_cycles:
        budget = batch if max_cycles is None else min(batch, max_cycles - result.executed)
        before = driver.clock_count
        result.status = driver.tick(budget)
        result.executed += driver.clock_count - before
        if not driver.is_running:
            return result
        if computer.registers.program_counter in stops:
            result.break_hit = True
            return result
        if deadline is not None and time.monotonic() >= deadline:
            result.timeout_hit = True
            return result

    result.cycle_hit = True
    return result




def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chip8-debug-runner",
        description="Headless CHIP-8 runner for ROM diagnostics.",
    )
    parser.add_argument("--rom", type=str, required=True, help="CHIP-8 ROM image")
    parser.add_argument(
        "--cycles",
        type=int,
        default=DEFAULT_MAX_CYCLES,
        help="Maximum instructions to execute (0 or negative disables the limit)",
    )
    parser.add_argument(
        "--ips",
        type=float,
        default=DEFAULT_INSTRUCTIONS_PER_SECOND,
        help="Assumed instructions per second; timers tick every ips/60 instructions",
    )
    parser.add_argument(
        "--break-pc",
        action="append",
        default=[],
        help="Stop once PC equals this hex address (repeatable)",
    )
    parser.add_argument(
        "--press",
        action="append",
        default=[],
        help="Hold the given hex key (0-F) down from the start (repeatable)",
    )
    parser.add_argument(
        "--quirk",
        action="append",
        default=[],
        choices=sorted(set(Quirks.names()) | set(Quirks.ALIASES)),
        help="Enable an interpreter quirk (repeatable)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for the RND instruction")
    parser.add_argument(
        "--dump",
        type=str,
        default=None,
        help="Write the dump to this file instead of stdout",
    )
    parser.add_argument(
        "--dump-range",
        action="append",
        default=[],
        help="Memory range to dump as START:END (inclusive) or START+LENGTH, in hex (repeatable)",
    )
    parser.add_argument(
        "--dump-format",
        choices=("hex", "bin", "none"),
        default="none",
        help="Dump format (hex table, raw binary, or no dump)",
    )
    parser.add_argument("--screen", action="store_true", help="Print the framebuffer after the run")
    parser.add_argument("--registers", action="store_true", help="Print registers after the run")
    parser.add_argument(
        "--seconds",
        type=float,
        default=None,
        help="Maximum wall-clock seconds to run",
    )
    parser.add_argument("--trace", action="store_true", help="Log every executed instruction (implies --verbose)")
    parser.add_argument(
        "--trace-memory",
        action="store_true",
        help="Log every byte read and written (implies --verbose)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def _parse_all(parser: argparse.ArgumentParser, values: Sequence[str], parse: Callable[[str], T], what: str) -> List[T]:
    parsed: List[T] = []
    for text in values:
        try:
            parsed.append(parse(text))
        except ValueError as exc:
            parser.error(f"invalid {what} '{text}': {exc}")
    return parsed


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_argument_parser()
    args = parser.parse_args(argv)

    if args.verbose or args.trace or args.trace_memory:
        logging.basicConfig(level=logging.DEBUG, format="[%(levelname)s] %(name)s: %(message)s", stream=sys.stderr)

    breakpoints = _parse_all(parser, args.break_pc, _parse_hex, "breakpoint")
    keys = _parse_all(parser, args.press, _parse_key, "key")
    dump_ranges = _parse_all(parser, args.dump_range, _parse_range, "dump range")

    if args.ips <= 0:
        parser.error("--ips must be positive")

    try:
        computer = _setup_computer(args.rom, quirks=Quirks.from_names(args.quirk), seed=args.seed)
    except (OSError, RomLoadError) as exc:
        print(f"Failed to load ROM: {exc}", file=sys.stderr)
        return EXIT_LOAD_FAILED

    computer.cpu_core.enable_trace(args.trace)
    computer.memory.enable_debug(args.trace_memory)
    for key in keys:
        computer.press_key(key)

    driver = Driver(computer.start(), instructions_per_second=args.ips)
    cycle_limit = args.cycles if args.cycles > 0 else None
    result = _execute_program(
        driver,
        max_cycles=cycle_limit,
        breakpoints=breakpoints,
        max_seconds=args.seconds,
    )

    if args.dump_format != "none":
        dump_target = Path(args.dump) if args.dump is not None else None
        _write_dump(computer.memory, dump_ranges, target=dump_target, fmt=args.dump_format)
    if args.registers:
        print(_format_registers(computer))
    if args.screen:
        print(computer.display.render_text(on="#", off="."))

    return _exit_code(result)


def _exit_code(result: RunResult) -> int:
    status = result.status
    if status is not None and status.is_halted:
        print(f"Execution halted after {result.executed} instructions: {status.reason}", file=sys.stderr)
        return EXIT_FAULT if isinstance(status.reason, Chip8Fault) else EXIT_OK
    if result.break_hit:
        return EXIT_OK
    if result.timeout_hit:
        print(f"Stopped after {result.executed} instructions: time limit", file=sys.stderr)
        return EXIT_TIME_LIMIT
    if result.cycle_hit:
        print(f"Stopped after {result.executed} instructions: cycle limit", file=sys.stderr)
        return EXIT_CYCLE_LIMIT
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
