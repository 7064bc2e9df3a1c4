"""
Chipcade Machine Configuration
==============================

This module describes the virtual machine a project targets and lays out
its memory map. A project may override the defaults in `chipcade.toml`:

    [machine]
    cpu = "6502"
    clock_hz = 1000000
    refresh_hz = 50

    [video]
    width = 256
    height = 192
    mode = "bitmap"

    [palette]
    global_colors = 16
    colors_per_sprite = 4

    [sprites]
    names = ["player", "enemy"]

Missing sections and keys keep their defaults.

Memory Map
----------
The layout follows from the video and palette settings so regions never
overlap. With the defaults:

| Region      | Address | Size                                  |
|-------------|---------|---------------------------------------|
| Zero page   | $0000   | 256 bytes                             |
| Stack       | $0100   | 256 bytes                             |
| RAM         | $0200   | program load address                  |
| Video RAM   | $2000   | width * height / 2 (4 bits per pixel) |
| Palette RAM | $8000   | 3 bytes per global color              |
| Sprite RAM  | $8030   | 64 sprites * 8 bytes                  |
| I/O         | $8230   | 256 bytes                             |
| ROM         | $8330   |                                       |
"""

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from chipcade.errors import BuildError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "chipcade.toml"

VIDEO_RAM_BASE = 0x2000
PALETTE_BYTES_PER_COLOR = 3
SPRITE_COUNT = 64
SPRITE_RAM_SIZE = 0x0200
IO_SIZE = 0x0100


@dataclass
class MachineConfig:
    """
    Configuration of the target machine.

    Attributes:
        cpu: CPU name (only "6502" is supported)
        clock_hz: CPU clock frequency
        refresh_hz: Frames per second; Update runs once per frame
        video_width: Screen width in pixels
        video_height: Screen height in pixels
        video_mode: Video mode name
        global_colors: Number of palette entries
        colors_per_sprite: Colors available to one sprite
        sprite_names: Sprite names, in sprite index order
    """
    cpu: str = "6502"
    clock_hz: int = 1_000_000
    refresh_hz: int = 50
    video_width: int = 256
    video_height: int = 192
    video_mode: str = "bitmap"
    global_colors: int = 16
    colors_per_sprite: int = 4
    sprite_names: list[str] = field(default_factory=list)

    @property
    def vram_size(self) -> int:
        """Bytes of video RAM: two 4-bit pixels per byte."""
        return (self.video_width * self.video_height + 1) // 2

    @classmethod
    def from_dict(cls, data: dict) -> "MachineConfig":
        """Build a configuration from parsed TOML tables."""
        machine = data.get("machine", {})
        video = data.get("video", {})
        palette = data.get("palette", {})
        sprites = data.get("sprites", {})
        defaults = cls()
        return cls(
            cpu=machine.get("cpu", defaults.cpu),
            clock_hz=machine.get("clock_hz", defaults.clock_hz),
            refresh_hz=machine.get("refresh_hz", defaults.refresh_hz),
            video_width=video.get("width", defaults.video_width),
            video_height=video.get("height", defaults.video_height),
            video_mode=video.get("mode", defaults.video_mode),
            global_colors=palette.get("global_colors", defaults.global_colors),
            colors_per_sprite=palette.get("colors_per_sprite", defaults.colors_per_sprite),
            sprite_names=list(sprites.get("names", [])),
        )


@dataclass(frozen=True)
class MemoryMap:
    """Base addresses of the machine's memory regions."""
    zero_page: int = 0x0000
    stack: int = 0x0100
    ram: int = 0x0200
    video_ram: int = VIDEO_RAM_BASE
    palette_ram: int = 0x8000
    sprite_ram: int = 0x8030
    io: int = 0x8230
    rom: int = 0x8330

    @classmethod
    def from_config(cls, config: MachineConfig) -> "MemoryMap":
        """
        Lay out memory for a configuration.

        Each region starts where the previous one ends; addresses are
        clamped to $FFFF.
        """
        def clamp(value: int) -> int:
            return min(value, 0xFFFF)

        palette_bytes = config.global_colors * PALETTE_BYTES_PER_COLOR
        palette_ram = clamp(VIDEO_RAM_BASE + config.vram_size)
        sprite_ram = clamp(palette_ram + palette_bytes)
        io = clamp(sprite_ram + SPRITE_RAM_SIZE)
        return cls(
            video_ram=VIDEO_RAM_BASE,
            palette_ram=palette_ram,
            sprite_ram=sprite_ram,
            io=io,
            rom=clamp(io + IO_SIZE),
        )


def load_config(path: str | Path) -> MachineConfig:
    """
    Load a `chipcade.toml` file.

    Raises:
        BuildError: If the file cannot be read or is not valid TOML
    """
    path = Path(path)
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise BuildError(f"failed to read {path}: {e.strerror or e}") from e
    except tomllib.TOMLDecodeError as e:
        raise BuildError(f"failed to parse {path}: {e}") from e

    config = MachineConfig.from_dict(data)
    logger.debug(
        f"Loaded {path}: {config.video_width}x{config.video_height} "
        f"{config.video_mode}, {config.global_colors} colors"
    )
    return config


def load_project_config(root: str | Path) -> MachineConfig:
    """The configuration of a project, or defaults when it has no config file."""
    path = Path(root) / CONFIG_FILENAME
    if not path.exists():
        return MachineConfig()
    return load_config(path)
