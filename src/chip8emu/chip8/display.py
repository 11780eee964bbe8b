"""CHIP-8 64x32 monochrome display model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

DISPLAY_WIDTH = 64
DISPLAY_HEIGHT = 32
SPRITE_WIDTH = 8

Framebuffer = Tuple[Tuple[int, ...], ...]


@dataclass
class Chip8Display:
    WIDTH: int = DISPLAY_WIDTH
    HEIGHT: int = DISPLAY_HEIGHT

    foreground: int = 0xFFFFFF
    background: int = 0x000000
    pixels: List[List[int]] = field(
        default_factory=lambda: [[0] * DISPLAY_WIDTH for _ in range(DISPLAY_HEIGHT)]
    )
    dirty: bool = True

    def clear(self) -> None:
        for row in self.pixels:
            row[:] = [0] * self.WIDTH
        self.dirty = True

    def get_pixel(self, x: int, y: int) -> int:
        return self.pixels[y % self.HEIGHT][x % self.WIDTH]

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------
    def draw_sprite(self, x: int, y: int, rows: Iterable[int]) -> bool:
        """XOR ``rows`` onto the grid with its top-left corner at (x, y).

        Each row is one byte, most significant bit leftmost. Coordinates wrap
        on both axes. Returns True when any lit pixel was turned off.
        """

        collision = False
        for line, value in enumerate(rows):
            row = self.pixels[(y + line) % self.HEIGHT]
            for bit in range(SPRITE_WIDTH):
                if not (value >> (7 - bit)) & 0x01:
                    continue
                column = (x + bit) % self.WIDTH
                if row[column]:
                    collision = True
                row[column] ^= 1
        self.dirty = True
        return collision

    # ------------------------------------------------------------------
    # Host views
    # ------------------------------------------------------------------
    def snapshot(self) -> Framebuffer:
        return tuple(tuple(row) for row in self.pixels)

    def lit_count(self) -> int:
        return sum(sum(row) for row in self.pixels)

    def render_text(self, on: str = "*", off: str = " ") -> str:
        return "\n".join("".join(on if pixel else off for pixel in row) for row in self.pixels)

    def render_pixels(self) -> List[List[int]]:
        return [
            [self.foreground if pixel else self.background for pixel in row]
            for row in self.pixels
        ]

    def render_pygame_surface(self, scaling: int = 10):
        """Render the framebuffer into a pygame Surface.

        Parameters
        ----------
        scaling:
            Integer scale factor applied to both axes.

        Returns
        -------
        pygame.Surface
            RGB surface representing the current screen.

        Raises
        ------
        RuntimeError
            If pygame is not available.
        """

        if scaling <= 0:
            raise ValueError("scaling factor must be positive")

        try:
            import pygame  # type: ignore
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("pygame is required for render_pygame_surface") from exc

        surface = pygame.Surface((self.WIDTH * scaling, self.HEIGHT * scaling))
        surface.fill(self.background)
        surface.lock()
        try:
            for y, row in enumerate(self.pixels):
                for x, pixel in enumerate(row):
                    if pixel:
                        surface.fill(self.foreground, (x * scaling, y * scaling, scaling, scaling))
        finally:
            surface.unlock()
        self.dirty = False
        return surface
