"""
chcc - C-Subset Compiler Command-Line Interface
===============================================

This module implements the command-line interface for the Chipcade
C-subset compiler. Several files are compiled into one assembly unit,
`main.c` first.

Usage Examples
--------------
Basic compilation (writes main.asm):
    $ chcc main.c

Several files into one output:
    $ chcc main.c player.c enemies.c -o game.asm

With the system constants of a project:
    $ chcc --project games/chase games/chase/src/main.c

Full pipeline:
    $ chcc main.c -o game.asm && chasm game.asm -o program.bin
"""

from pathlib import Path
from typing import Optional

import click

from chipcade import __version__
from chipcade.cli.errors import configure_logging, handle_cli_exception
from chipcade.sdk import (
    MemoryMap,
    constants_dict,
    load_project_config,
    sprite_constants,
    system_constants,
)
from chipcade.smallc import compile_files


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output assembly file (default: first input with .asm)",
)
@click.option(
    "-p", "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Project directory whose chipcade.toml sets the constants",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="chcc")
def main(
    input_files: tuple[Path, ...],
    output: Optional[Path],
    project: Optional[Path],
    verbose: bool,
) -> None:
    """
    Compile C-subset source code for the Chipcade console.

    INPUT_FILES are the C source files (.c) to compile. System constants
    such as VRAM and SPRITE_RAM are always available.

    \b
    Examples:
        chcc main.c                  # Outputs main.asm
        chcc main.c util.c -o g.asm  # Several files, one output
        chcc -v main.c               # Verbose output

    \b
    Supported C features:
        - unsigned/signed char globals and locals (8-bit)
        - void Name() functions without parameters
        - if/else, while, for, return, calls
        - mem[], data[], sprite_data[], sprite[i].field
    """
    configure_logging(verbose)
    output_file = output if output is not None else input_files[0].with_suffix(".asm")

    try:
        config = load_project_config(project) if project else load_project_config(".")
        memory_map = MemoryMap.from_config(config)
        constants = constants_dict(
            system_constants(memory_map, config),
            sprite_constants(config.sprite_names),
        )

        if verbose:
            names = ", ".join(str(p) for p in input_files)
            click.echo(f"Compiling {names}...")

        result = compile_files(list(input_files), constants)
        output_file.write_text(result.assembly)

        if verbose:
            click.echo(f"Functions: {', '.join(result.functions) or '(none)'}")
            click.echo(f"Variables: {len(result.variables)} zero-page bytes")
            click.echo(f"Wrote {len(result.expanded.origins)} lines to {output_file}")

        click.echo(f"Compiled {len(input_files)} file(s) -> {output_file}")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Compilation")


if __name__ == "__main__":
    main()
