"""Delay and sound countdown timers."""

from __future__ import annotations

from dataclasses import dataclass

TIMER_FREQUENCY_HZ = 60.0


def _check_byte(value: int) -> int:
    if not (0 <= value <= 0xFF):
        raise ValueError(f"timer value must fit in 8 bits: {value!r}")
    return value


@dataclass
class Chip8Timers:
    """Two 8-bit counters decremented once per :meth:`tick`, floored at zero.

    The sound timer is only a counter here; :attr:`sound_active` tells a host
    when a tone would be playing.
    """

    delay: int = 0
    sound: int = 0
    ticks: int = 0

    def set_delay(self, value: int) -> None:
        self.delay = _check_byte(value)

    def set_sound(self, value: int) -> None:
        self.sound = _check_byte(value)

    def tick(self) -> None:
        if self.delay > 0:
            self.delay -= 1
        if self.sound > 0:
            self.sound -= 1
        self.ticks += 1

    @property
    def sound_active(self) -> bool:
        return self.sound > 0
