"""End-to-end checks driving small programs through the engine."""

from __future__ import annotations

import importlib.util
from pathlib import Path
import sys

from chip8emu.system.computer import Driver

_HELPER_PATH = Path(__file__).resolve().parents[1] / "helpers" / "headless.py"
_SPEC = importlib.util.spec_from_file_location("headless_helper", _HELPER_PATH)
_MODULE = importlib.util.module_from_spec(_SPEC)
assert _SPEC is not None and _SPEC.loader is not None
sys.modules[_SPEC.name] = _MODULE
_SPEC.loader.exec_module(_MODULE)  # type: ignore[arg-type]

KeyEvent = _MODULE.KeyEvent
boot = _MODULE.boot
run_program = _MODULE.run_program


def test_load_skip_and_jump() -> None:
    computer, statuses, pcs = run_program([0x6A02, 0x3A02, 0x1208], steps=2)
    assert all(status.is_continue for status in statuses)
    assert pcs[0] == 0x202
    assert computer.registers.v[0xA] == 0x02
    assert pcs[1] == 0x206


def test_draw_twice_erases_and_collides() -> None:
    # I -> 0x20A where the single 0xFF row lives.
    computer, statuses, _ = run_program([0xA20A, 0xD011, 0xD011, 0x1206, 0x0000, 0xFF00], steps=3)
    assert all(status.is_continue for status in statuses)
    assert computer.registers.vf == 1
    assert computer.snapshot_display()[0][:8] == (0,) * 8


def test_first_draw_lights_row_without_collision() -> None:
    computer, _, _ = run_program([0xA20A, 0xD011, 0x1204, 0x0000, 0x0000, 0xFF00], steps=2)
    assert computer.registers.vf == 0
    assert computer.snapshot_display()[0][:8] == (1,) * 8
    assert computer.display.lit_count() == 8


def test_delay_timer_counts_down_and_floors() -> None:
    computer, _, _ = run_program([0x6005, 0xF015, 0x1204], steps=2)
    for _ in range(5):
        computer.tick_timers()
    assert computer.timers.delay == 0
    computer.tick_timers()
    assert computer.timers.delay == 0


def test_key_wait_parks_until_key_pressed() -> None:
    computer, statuses, pcs = run_program(
        [0xF30A, 0x1202],
        steps=5,
        events=[KeyEvent(step=3, key=0x7, pressed=True)],
    )
    assert [status.is_awaiting_key for status in statuses[:3]] == [True, True, True]
    assert pcs[:3] == [0x200, 0x200, 0x200]
    assert statuses[3].is_continue
    assert computer.registers.v[0x3] == 0x07
    assert pcs[3] == 0x202


def test_driver_runs_countdown_program() -> None:
    # LD V0,3 / LD DT,V0 / LD V1,DT / SE V1,0 / JP 0x204 / (end)
    computer = boot([0x6003, 0xF015, 0xF107, 0x3100, 0x1204])
    driver = Driver(computer.start(), instructions_per_second=60)
    driver.power_on()

    status = driver.tick(200)

    assert status is not None and status.is_halted
    assert computer.registers.v[0x1] == 0
    assert computer.registers.program_counter == 0x20A
