from __future__ import annotations

import logging
from pathlib import Path

import pytest

from chip8emu import debug_runner


class DummyMemory:
    def __init__(self) -> None:
        self.values = {0x200: 0x12, 0x201: 0x34, 0x20F: 0xAB, 0x210: 0xCD}

    def load8(self, address: int) -> int:
        return self.values.get(address & 0x0FFF, 0x00)


def write_rom(tmp_path: Path, data: bytes, name: str = "test.ch8") -> Path:
    path = tmp_path / name
    path.write_bytes(data)
    return path


def test_parse_hex_accepts_prefixed_and_plain() -> None:
    assert debug_runner._parse_hex("0x0300") == 0x300
    assert debug_runner._parse_hex("2A0") == 0x2A0


@pytest.mark.parametrize("value", ["", "0x1000", "xyz", "-1"])
def test_parse_hex_rejects_invalid(value: str) -> None:
    with pytest.raises(ValueError):
        debug_runner._parse_hex(value)


@pytest.mark.parametrize("value, expected", [("a", 0xA), ("0xF", 0xF), ("7", 0x7)])
def test_parse_key(value: str, expected: int) -> None:
    assert debug_runner._parse_key(value) == expected


def test_parse_key_rejects_multiple_digits() -> None:
    with pytest.raises(ValueError):
        debug_runner._parse_key("10")


def test_parse_range_and_merge() -> None:
    rng = debug_runner._parse_range("210:21F")
    assert (rng.start, rng.end) == (0x210, 0x21F)
    merged = debug_runner._merge_ranges(
        [debug_runner.DumpRange(0x200, 0x20F), debug_runner.DumpRange(0x210, 0x215)]
    )
    assert merged == [debug_runner.DumpRange(0x200, 0x215)]
    with pytest.raises(ValueError):
        debug_runner._parse_range("300:200")


def test_parse_range_accepts_length_form() -> None:
    assert debug_runner._parse_range("0x300+10") == debug_runner.DumpRange(0x300, 0x30F)
    with pytest.raises(ValueError):
        debug_runner._parse_range("FF0+20")
    with pytest.raises(ValueError):
        debug_runner._parse_range("300")


def test_merge_ranges_defaults_to_full_memory() -> None:
    assert debug_runner._merge_ranges([]) == [debug_runner.DumpRange(0x000, 0xFFF)]


def test_format_hex_dump_renders_expected_table() -> None:
    dump = debug_runner._format_hex_dump(DummyMemory(), [debug_runner.DumpRange(0x200, 0x210)])
    lines = dump.splitlines()
    assert lines[0].startswith("ADR +0")
    assert lines[1].startswith("200 12 34")
    assert lines[1].endswith("AB")
    assert lines[2].startswith("210 CD 00")


def test_main_reports_program_end(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    rom = write_rom(tmp_path, b"\x6A\x02\x00\x00")
    code = debug_runner.main(["--rom", str(rom), "--registers"])
    captured = capsys.readouterr()
    assert code == debug_runner.EXIT_OK
    assert "VA=02" in captured.out
    assert "PC=202" in captured.out
    assert "N=1" in captured.out
    assert "no more opcodes" in captured.err


def test_main_reports_fault(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    rom = write_rom(tmp_path, b"\x00\xEE")
    assert debug_runner.main(["--rom", str(rom)]) == debug_runner.EXIT_FAULT
    assert "return with empty call stack" in capsys.readouterr().err


def test_main_stops_at_cycle_limit(tmp_path: Path) -> None:
    rom = write_rom(tmp_path, b"\x12\x00")
    assert debug_runner.main(["--rom", str(rom), "--cycles", "50"]) == debug_runner.EXIT_CYCLE_LIMIT


def test_main_stops_at_breakpoint(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    rom = write_rom(tmp_path, b"\x60\x01\x61\x02\x62\x03\x12\x06")
    code = debug_runner.main(["--rom", str(rom), "--break-pc", "0x204", "--registers"])
    out = capsys.readouterr().out
    assert code == debug_runner.EXIT_OK
    assert "PC=204" in out
    assert "V2=00" in out


def test_main_load_failure(tmp_path: Path) -> None:
    assert debug_runner.main(["--rom", str(tmp_path / "nope.ch8")]) == debug_runner.EXIT_LOAD_FAILED
    big = write_rom(tmp_path, bytes(0xE01), "big.ch8")
    assert debug_runner.main(["--rom", str(big)]) == debug_runner.EXIT_LOAD_FAILED


def test_main_screen_and_binary_dump(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    # LD I,0 / DRW V0,V0,5 / JP 0x204
    rom = write_rom(tmp_path, b"\xA0\x00\xD0\x05\x12\x04")
    target = tmp_path / "dump.bin"
    code = debug_runner.main(
        [
            "--rom",
            str(rom),
            "--cycles",
            "10",
            "--screen",
            "--dump-format",
            "bin",
            "--dump",
            str(target),
            "--dump-range",
            "200:205",
        ]
    )
    out = capsys.readouterr().out
    assert code == debug_runner.EXIT_CYCLE_LIMIT
    assert out.splitlines()[0].startswith("####....")
    assert target.read_bytes() == b"\xA0\x00\xD0\x05\x12\x04"


def test_main_pressed_key_satisfies_skip(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    # LD V0,5 / SKP V0 / JP 0x200 / LD V1,1 / (end)
    rom = write_rom(tmp_path, b"\x60\x05\xE0\x9E\x12\x00\x61\x01")
    code = debug_runner.main(["--rom", str(rom), "--press", "5", "--cycles", "10", "--registers"])
    assert code == debug_runner.EXIT_OK
    assert "V1=01" in capsys.readouterr().out


def test_registers_count_completed_instructions(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    # LD V0,1 / LD V1,K parks forever
    rom = write_rom(tmp_path, b"\x60\x01\xF1\x0A")
    debug_runner.main(["--rom", str(rom), "--cycles", "20", "--registers"])
    out = capsys.readouterr().out
    assert "N=1" in out
    assert "PC=202" in out


def test_main_trace_memory_logs_bus_reads(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    rom = write_rom(tmp_path, b"\x6A\x02\x00\x00")
    with caplog.at_level(logging.DEBUG, logger="chip8emu.memory"):
        debug_runner.main(["--rom", str(rom), "--trace-memory"])
    messages = [record.getMessage() for record in caplog.records if record.name == "chip8emu.memory"]
    assert "load8: addr=200 val=6A" in messages
    assert "load8: addr=201 val=02" in messages


def test_main_rejects_bad_breakpoint(tmp_path: Path) -> None:
    rom = write_rom(tmp_path, b"\x12\x00")
    with pytest.raises(SystemExit):
        debug_runner.main(["--rom", str(rom), "--break-pc", "zz"])
