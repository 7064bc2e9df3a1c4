"""
chbuild - Project Build Tool for the Chipcade Console
=====================================================

This module implements the build tool that runs the whole toolchain
(header generation → chcc → chasm) over a project directory.

Usage Examples
--------------
Build the project in the current directory:
    $ chbuild

Build another project into a chosen file:
    $ chbuild games/chase -o chase.bin

Show where every instruction came from:
    $ chbuild games/chase --map

Exit Codes
----------
0 - Success
1 - Build failed (compilation, assembly, or IO error)
2 - Invalid arguments or missing project directory
"""

from pathlib import Path
from typing import Optional

import click

from chipcade import __version__
from chipcade.build import BuildArtifacts, build_project
from chipcade.cli.errors import configure_logging, handle_cli_exception


def format_pc_map(artifacts: BuildArtifacts, root: Path) -> list[str]:
    """
    One line per source line change: `$ADDR  file:line`.

    Consecutive bytes from the same source line are folded together.
    """
    lines = []
    previous = None
    for offset, origin in enumerate(artifacts.pc_line_map):
        if origin == previous:
            continue
        previous = origin
        try:
            file = origin.file.relative_to(root.resolve())
        except ValueError:
            file = origin.file
        address = artifacts.load_addr + offset
        lines.append(f"${address:04X}  {file.as_posix()}:{origin.line}")
    return lines


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "project_dir",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output image (default: PROJECT_DIR/build/program.bin)",
)
@click.option(
    "--map", "show_map",
    is_flag=True,
    help="Print the address -> source line map",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output (shows each pipeline stage)",
)
@click.version_option(version=__version__, prog_name="chbuild")
def main(
    project_dir: Path,
    output: Optional[Path],
    show_map: bool,
    verbose: bool,
) -> None:
    """
    Build a Chipcade project.

    PROJECT_DIR holds chipcade.toml (optional) and src/ with main.asm
    and/or C sources. Headers are regenerated in src/include/ and the
    image is written to build/program.bin.

    \b
    Examples:
        chbuild                      # Build the current directory
        chbuild games/chase          # Build another project
        chbuild --map                # Also print the source map
    """
    configure_logging(verbose)

    try:
        if verbose:
            click.echo(f"Building {project_dir}...")

        artifacts = build_project(project_dir, output)

        if verbose:
            click.echo(f"Labels: {len(artifacts.labels)}")
            if artifacts.entry_point is not None:
                click.echo(f"Entry point: ${artifacts.entry_point:04X}")
            else:
                click.echo("Entry point: none (no Init or Update label)")

        if show_map:
            for line in format_pc_map(artifacts, project_dir):
                click.echo(line)

        click.echo(
            f"Built {len(artifacts.program)} bytes at ${artifacts.load_addr:04X}"
        )

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Build")


if __name__ == "__main__":
    main()
