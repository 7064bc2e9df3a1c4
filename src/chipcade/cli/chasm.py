"""
chasm - 6502 Assembler Command-Line Interface
=============================================

This module implements the command-line interface for the Chipcade 6502
assembler.

Usage Examples
--------------
Basic assembly (writes main.bin):
    $ chasm main.asm

With output file:
    $ chasm main.asm -o program.bin

Generate all output files:
    $ chasm main.asm -o program.bin -l program.lst -s program.sym

Different load address and predefined symbols:
    $ chasm --origin $4000 -D DEBUG=1 -D LIVES=$03 main.asm

Verbose mode:
    $ chasm -v main.asm
"""

from pathlib import Path
from typing import Optional

import click

from chipcade import __version__
from chipcade.assembler import Assembler
from chipcade.assembler.assembler import DEFAULT_ORIGIN
from chipcade.assembler.parser import parse_number
from chipcade.cli.errors import configure_logging, handle_cli_exception
from chipcade.errors import AssemblerError
from chipcade.provenance import relocate_error


def parse_define(definition: str) -> tuple[str, int]:
    """
    Parse a `-D NAME=VALUE` option; a bare NAME means 1.

    Raises:
        click.BadParameter: If the value is not a number
    """
    if "=" not in definition:
        return definition.strip(), 1
    name, value_str = definition.split("=", 1)
    value = parse_number(value_str)
    if value is None:
        raise click.BadParameter(
            f"invalid value in -D {definition}", param_hint="-D/--define"
        )
    return name.strip(), value


def parse_origin(ctx, param, value: Optional[str]) -> int:
    """Click callback for --origin: accepts $hex, 0xhex or decimal."""
    if value is None:
        return DEFAULT_ORIGIN
    origin = parse_number(value)
    if origin is None or not 0 <= origin <= 0xFFFF:
        raise click.BadParameter(f"'{value}' is not a 16-bit address")
    return origin


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output binary file (default: input.bin)",
)
@click.option(
    "-l", "--listing",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Generate listing file",
)
@click.option(
    "-s", "--symbols",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Generate symbol file",
)
@click.option(
    "--origin",
    callback=parse_origin,
    help="Load address of the image (default: $0200)",
)
@click.option(
    "-D", "--define",
    multiple=True,
    help="Define symbol (format: NAME=VALUE)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="chasm")
def main(
    input_file: Path,
    output: Optional[Path],
    listing: Optional[Path],
    symbols: Optional[Path],
    origin: int,
    define: tuple[str, ...],
    verbose: bool,
) -> None:
    """
    Assemble 6502 source code for the Chipcade console.

    INPUT_FILE is the assembly source file (.asm) to assemble.
    `.include` directives are expanded relative to the including file.

    \b
    Examples:
        chasm main.asm                  # Outputs main.bin
        chasm main.asm -o program.bin   # Specify output file
        chasm -D DEBUG=1 main.asm       # Define symbol
        chasm --origin $4000 main.asm   # Assemble for another address
    """
    configure_logging(verbose)
    output_file = output if output is not None else input_file.with_suffix(".bin")

    try:
        asm = Assembler(origin=origin)
        for defn in define:
            name, value = parse_define(defn)
            asm.define_symbol(name, value)

        if verbose:
            click.echo(f"Assembling {input_file} at ${origin:04X}...")

        try:
            asm.assemble_file(input_file)
        except AssemblerError as e:
            expanded = asm.get_expanded()
            if expanded is None:
                raise
            raise relocate_error(e, expanded.origins, Path.cwd()) from e
        asm.write_binary(output_file)
        if verbose:
            click.echo(f"Wrote {len(asm.get_code())} bytes to {output_file}")

        if listing:
            asm.write_listing(listing)
            if verbose:
                click.echo(f"Wrote listing to {listing}")

        if symbols:
            asm.write_symbols(symbols)
            if verbose:
                click.echo(f"Wrote symbols to {symbols}")

        if verbose:
            click.echo(f"Assembly complete: {len(asm.get_code())} bytes at ${origin:04X}")
            click.echo(f"Defined {len(asm.get_symbols())} symbols")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Assembly")


if __name__ == "__main__":
    main()
