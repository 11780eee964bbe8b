from __future__ import annotations

import pytest

from chip8emu.chip8.keypad import Chip8Keypad


def test_press_and_release_track_state() -> None:
    keypad = Chip8Keypad()
    keypad.press(0x3)
    keypad.press(0xA)
    assert keypad.is_pressed(0x3)
    assert keypad.pressed_key == 0xA
    keypad.release(0xA)
    assert keypad.pressed_key == 0x3
    keypad.release_all()
    assert keypad.pressed_key is None
    assert keypad.get_states() == [False] * 16


@pytest.mark.parametrize("code", [-1, 16, 0x20])
def test_set_key_rejects_out_of_range(code: int) -> None:
    with pytest.raises(ValueError):
        Chip8Keypad().set_key(code, True)


def test_is_pressed_out_of_range_is_false() -> None:
    assert Chip8Keypad().is_pressed(0x42) is False


def test_wait_ignores_keys_held_before_wait() -> None:
    keypad = Chip8Keypad()
    keypad.press(0x5)
    keypad.begin_wait()
    assert keypad.awaiting_key
    assert keypad.consume_press() is None

    keypad.press(0x9)
    assert keypad.consume_press() == 0x9
    assert keypad.awaiting_key is False


def test_release_all_drops_pending_press() -> None:
    keypad = Chip8Keypad()
    keypad.begin_wait()
    keypad.press(0x4)
    keypad.release_all()
    assert keypad.consume_press() is None
    assert keypad.awaiting_key

    keypad.press(0xB)
    assert keypad.consume_press() == 0xB


def test_holding_a_key_does_not_retrigger_latch() -> None:
    keypad = Chip8Keypad()
    keypad.press(0x1)
    keypad.begin_wait()
    keypad.press(0x1)
    assert keypad.consume_press() is None
    keypad.release(0x1)
    keypad.press(0x1)
    assert keypad.consume_press() == 0x1
