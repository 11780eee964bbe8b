"""CHIP-8 hexadecimal keypad."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

KEY_COUNT = 16


def _check_key(code: int) -> int:
    if not (0 <= code < KEY_COUNT):
        raise ValueError(f"key code out of range: {code!r}")
    return code


@dataclass
class Chip8Keypad:
    """Sixteen key states plus the latch used by the key-wait opcode.

    ``awaiting_key`` is set while an ``Fx0A`` instruction is parked. Only a
    press that happens after the wait began completes it.
    """

    _states: List[bool] = field(default_factory=lambda: [False] * KEY_COUNT)
    _held: List[int] = field(default_factory=list)
    _latched: Optional[int] = None
    awaiting_key: bool = False

    def set_key(self, code: int, pressed: bool) -> None:
        _check_key(code)
        if pressed:
            if not self._states[code]:
                self._latched = code
            self._states[code] = True
            if code in self._held:
                self._held.remove(code)
            self._held.append(code)
        else:
            self._states[code] = False
            if code in self._held:
                self._held.remove(code)

    def press(self, code: int) -> None:
        self.set_key(code, True)

    def release(self, code: int) -> None:
        self.set_key(code, False)

    def release_all(self) -> None:
        self._states = [False] * KEY_COUNT
        self._held.clear()
        self._latched = None

    def is_pressed(self, code: int) -> bool:
        if not (0 <= code < KEY_COUNT):
            return False
        return self._states[code]

    @property
    def pressed_key(self) -> Optional[int]:
        """Most recently pressed key still held down."""

        return self._held[-1] if self._held else None

    def get_states(self) -> List[bool]:
        return list(self._states)

    # ------------------------------------------------------------------
    # Key-wait protocol
    # ------------------------------------------------------------------
    def begin_wait(self) -> None:
        self._latched = None
        self.awaiting_key = True

    def consume_press(self) -> Optional[int]:
        key = self._latched
        if key is None:
            return None
        self._latched = None
        self.awaiting_key = False
        return key
