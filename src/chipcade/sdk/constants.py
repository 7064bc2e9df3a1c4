"""
Chipcade System Constants
=========================

Named hardware addresses and input bits shared by assembly and C code.
The same list feeds the assembler's symbol table, the C compiler's
constant table and the generated `chipcade.inc` / `chipcade.h` headers.

Usage
-----
    >>> from chipcade.sdk import MachineConfig, MemoryMap, system_constants
    >>> config = MachineConfig()
    >>> consts = system_constants(MemoryMap.from_config(config), config)
    >>> [c.name for c in consts][:4]
    ['VRAM', 'VRAM_SIZE', 'PALETTE', 'SPRITE_RAM']

Input Bits
----------
`IO_INPUT` holds one bit per control; `IO_LEFT` .. `IO_FIRE` are one
byte per control, non-zero while held.

| Bit  | Constant    |
|------|-------------|
| $01  | INPUT_LEFT  |
| $02  | INPUT_RIGHT |
| $04  | INPUT_UP    |
| $08  | INPUT_DOWN  |
| $10  | INPUT_FIRE  |
"""

import re
from dataclasses import dataclass
from typing import Iterable

from chipcade.sdk.config import MachineConfig, MemoryMap


@dataclass(frozen=True)
class SystemConst:
    """
    A named constant.

    Attributes:
        name: Symbol name, valid in both assembly and C
        value: 16-bit value
        is_hex: Render as hex in generated headers (decimal otherwise)
    """
    name: str
    value: int
    is_hex: bool = True


def system_constants(memory_map: MemoryMap, config: MachineConfig) -> list[SystemConst]:
    """The machine's constants, in header order."""
    io = memory_map.io
    return [
        SystemConst("VRAM", memory_map.video_ram),
        SystemConst("VRAM_SIZE", config.vram_size),
        SystemConst("PALETTE", memory_map.palette_ram),
        SystemConst("SPRITE_RAM", memory_map.sprite_ram),
        SystemConst("IO", io),
        SystemConst("IO_INPUT", io),
        SystemConst("IO_LEFT", io + 1),
        SystemConst("IO_RIGHT", io + 2),
        SystemConst("IO_UP", io + 3),
        SystemConst("IO_DOWN", io + 4),
        SystemConst("IO_FIRE", io + 5),
        SystemConst("INPUT_LEFT", 0x01),
        SystemConst("INPUT_RIGHT", 0x02),
        SystemConst("INPUT_UP", 0x04),
        SystemConst("INPUT_DOWN", 0x08),
        SystemConst("INPUT_FIRE", 0x10),
        SystemConst("ROM", memory_map.rom),
        SystemConst("VIDEO_WIDTH", config.video_width, is_hex=False),
        SystemConst("VIDEO_HEIGHT", config.video_height, is_hex=False),
    ]


def sprite_constant_name(sprite_name: str) -> str:
    """`player-1` -> `SPR_PLAYER_1`."""
    return "SPR_" + re.sub(r"[^A-Z0-9]", "_", sprite_name.upper())


def sprite_constants(sprite_names: Iterable[str]) -> list[SystemConst]:
    """One `SPR_<NAME>` index constant per sprite, in index order."""
    return [
        SystemConst(sprite_constant_name(name), index, is_hex=False)
        for index, name in enumerate(sprite_names)
    ]


def constants_dict(*groups: Iterable[SystemConst]) -> dict[str, int]:
    """Flatten constant lists into a name -> value table."""
    table = {}
    for group in groups:
        for const in group:
            table[const.name] = const.value
    return table
