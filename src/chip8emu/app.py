"""CHIP-8 emulator pygame front end."""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
import sys
from typing import Dict, Iterable, Optional

from chip8emu.chip8.computer import Chip8Computer, EngineBusyError
from chip8emu.cpu.cpu import Quirks
from chip8emu.emulator.file import RomLoadError
from chip8emu.system.computer import DEFAULT_INSTRUCTIONS_PER_SECOND, Driver
from chip8emu.system.session import Session

logger = logging.getLogger(__name__)

BASE_CAPTION = "CHIP-8 Emulator"
DEFAULT_SCALE = 10
DEFAULT_FPS = 60

# pygame key codes for letters and digits are their ASCII values.
KEY_MAP: Dict[int, int] = {
    ord("1"): 0x1,
    ord("2"): 0x2,
    ord("3"): 0x3,
    ord("4"): 0xC,
    ord("q"): 0x4,
    ord("w"): 0x5,
    ord("e"): 0x6,
    ord("r"): 0xD,
    ord("a"): 0x7,
    ord("s"): 0x8,
    ord("d"): 0x9,
    ord("f"): 0xE,
    ord("z"): 0xA,
    ord("x"): 0x0,
    ord("c"): 0xB,
    ord("v"): 0xF,
}


def resolve_rom_path(rom_path: str | os.PathLike[str] | None) -> Optional[Path]:
    if rom_path is not None and str(rom_path):
        return Path(rom_path)
    env_value = os.getenv(Chip8Computer.ENV_ROM_PATH)
    if env_value:
        return Path(env_value)
    return None


def _handle_key_event(computer: Chip8Computer, key: int, pressed: bool) -> bool:
    code = KEY_MAP.get(key)
    if code is None:
        return False
    computer.set_key(code, pressed)
    return True


def _reload(session: Session, rom_path: Path) -> Optional[Chip8Computer]:
    try:
        return session.reload_file(rom_path)
    except (OSError, RomLoadError) as exc:
        logger.error("reload of %s failed: %s", rom_path, exc)
        return None


def _build_caption(computer: Chip8Computer, driver: Driver) -> str:
    caption = BASE_CAPTION
    if computer.rom is not None and computer.rom.name:
        caption = f"{caption} | {computer.rom.name}"
    status = computer.last_status
    if status is not None and status.is_halted:
        return f"{caption} | halted: {status.reason}"
    if driver.get_running_status() == driver.STATUS_PAUSED:
        return f"{caption} | paused"
    if computer.awaiting_key:
        return f"{caption} | waiting for key"
    return caption


def _pygame_loop(
    rom_path: Path,
    *,
    scale: int,
    fps: int,
    instructions_per_second: float,
    quirks: Quirks,
) -> None:
    import pygame  # type: ignore

    session = Session(quirks=quirks)
    computer = session.reload_file(rom_path)
    driver = Driver(session.start(), instructions_per_second=instructions_per_second)
    driver.power_on()

    pygame.init()
    display = computer.display
    screen = pygame.display.set_mode((display.WIDTH * scale, display.HEIGHT * scale))
    pygame.display.set_caption(_build_caption(computer, driver))
    clock = pygame.time.Clock()

    running = True
    while running:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
                continue
            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    running = False
                    continue
                if event.key == pygame.K_F5:
                    reloaded = _reload(session, rom_path)
                    if reloaded is None:
                        continue
                    computer = reloaded
                    driver = Driver(session.start(), instructions_per_second=instructions_per_second)
                    driver.power_on()
                    display = computer.display
                    continue
                if event.key == pygame.K_p:
                    if driver.get_running_status() == driver.STATUS_PAUSED:
                        driver.resume()
                    else:
                        driver.pause()
                    continue
                _handle_key_event(computer, event.key, True)
            elif event.type == pygame.KEYUP:
                _handle_key_event(computer, event.key, False)

        if driver.is_running:
            due = driver.cycles_due()
            if due:
                driver.tick(due)

        if display.dirty:
            screen.blit(display.render_pygame_surface(scale), (0, 0))
            pygame.display.flip()
        pygame.display.set_caption(_build_caption(computer, driver))
        clock.tick(fps)

    driver.power_off()
    pygame.quit()


def main(argv: Iterable[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="CHIP-8 emulator")
    parser.add_argument(
        "rom",
        nargs="?",
        help=f"Path to a CHIP-8 ROM image. Defaults to ${Chip8Computer.ENV_ROM_PATH} if omitted",
    )
    parser.add_argument("--scale", type=int, default=DEFAULT_SCALE, help="Integer scaling factor for display (default: 10)")
    parser.add_argument("--fps", type=int, default=DEFAULT_FPS, help="Target frames per second for the window loop")
    parser.add_argument(
        "--ips",
        type=float,
        default=DEFAULT_INSTRUCTIONS_PER_SECOND,
        help="Instructions executed per second (default: 500)",
    )
    parser.add_argument(
        "--quirk",
        action="append",
        default=[],
        choices=sorted(set(Quirks.names()) | set(Quirks.ALIASES)),
        help="Enable an interpreter quirk (repeatable)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.scale <= 0:
        raise SystemExit("scale must be positive")
    if args.fps <= 0:
        raise SystemExit("fps must be positive")
    if args.ips <= 0:
        raise SystemExit("ips must be positive")

    rom_path = resolve_rom_path(args.rom)
    if rom_path is None:
        raise SystemExit(f"no ROM given and ${Chip8Computer.ENV_ROM_PATH} is not set")

    try:
        _pygame_loop(
            rom_path,
            scale=args.scale,
            fps=args.fps,
            instructions_per_second=args.ips,
            quirks=Quirks.from_names(args.quirk),
        )
    except (OSError, RomLoadError, EngineBusyError, RuntimeError) as exc:
        raise SystemExit(str(exc))


if __name__ == "__main__":
    main()
