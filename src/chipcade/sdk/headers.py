"""
Generated Include Files
=======================

Renders the system constants as `chipcade.inc` for assembly sources and
`chipcade.h` for C sources. Both files are rewritten on every build and
must not be edited by hand.

    ; Auto-generated by chipcade. Do not edit.
    ; System constants
    .const VRAM $2000
    ...
    .const VIDEO_WIDTH 256

    ; Sprite indices
    .const SPR_PLAYER 0
"""

import logging
from pathlib import Path
from typing import Sequence

from chipcade.errors import BuildError
from chipcade.sdk.constants import SystemConst

logger = logging.getLogger(__name__)

ASM_INCLUDE_NAME = "chipcade.inc"
C_HEADER_NAME = "chipcade.h"


def generate_asm_include(
    constants: Sequence[SystemConst],
    sprites: Sequence[SystemConst] = (),
) -> str:
    """Render `chipcade.inc`."""
    lines = [
        "; Auto-generated by chipcade. Do not edit.",
        "; System constants",
    ]
    for const in constants:
        if const.is_hex:
            lines.append(f".const {const.name} ${const.value:04X}")
        else:
            lines.append(f".const {const.name} {const.value}")

    if sprites:
        lines.append("")
        lines.append("; Sprite indices")
        for const in sprites:
            lines.append(f".const {const.name} {const.value}")

    return "\n".join(lines) + "\n"


def generate_c_header(
    constants: Sequence[SystemConst],
    sprites: Sequence[SystemConst] = (),
) -> str:
    """
    Render `chipcade.h`.

    The declarations let editors and real C tooling understand the
    memory views; the Chipcade compiler itself skips `#include` lines.
    """
    lines = [
        "/* Auto-generated by chipcade. Do not edit. */",
        "#ifndef CHIPCADE_H",
        "#define CHIPCADE_H",
        "",
        "/* Pseudo memory views for editor/highlighter compatibility. */",
        "extern unsigned char mem[];",
        "extern unsigned char data[];",
        "",
        "/* Raw sprite attribute bytes (maps to SPRITE_RAM + i). */",
        "extern unsigned char sprite_data[];",
        "",
        "typedef struct {",
        "    unsigned char x;",
        "    unsigned char y;",
        "    unsigned char tile;",
        "    unsigned char flags;",
        "    unsigned char c0;",
        "    unsigned char c1;",
        "    unsigned char c2;",
        "    unsigned char reserved;",
        "} ChipSprite;",
        "extern ChipSprite sprite[];",
        "",
        "/* System constants */",
    ]
    for const in constants:
        if const.is_hex:
            lines.append(f"#define {const.name} 0x{const.value:04X}")
        else:
            lines.append(f"#define {const.name} {const.value}")

    if sprites:
        lines.append("")
        lines.append("/* Sprite indices */")
        for const in sprites:
            lines.append(f"#define {const.name} {const.value}")

    lines.append("")
    lines.append("#endif /* CHIPCADE_H */")
    return "\n".join(lines) + "\n"


def write_headers(
    include_dir: str | Path,
    constants: Sequence[SystemConst],
    sprites: Sequence[SystemConst] = (),
) -> tuple[Path, Path]:
    """
    Write `chipcade.inc` and `chipcade.h` into `include_dir`.

    Returns:
        The paths of the two files written

    Raises:
        BuildError: If the directory or a file cannot be written
    """
    include_dir = Path(include_dir)
    inc_path = include_dir / ASM_INCLUDE_NAME
    h_path = include_dir / C_HEADER_NAME
    try:
        include_dir.mkdir(parents=True, exist_ok=True)
        inc_path.write_text(generate_asm_include(constants, sprites))
        h_path.write_text(generate_c_header(constants, sprites))
    except OSError as e:
        raise BuildError(f"failed to write headers in {include_dir}: {e.strerror or e}") from e

    logger.debug(f"Wrote {inc_path} and {h_path}")
    return inc_path, h_path
