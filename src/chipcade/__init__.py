"""
Chipcade SDK - Toolchain for the Chipcade 6502 Fantasy Console
==============================================================

This package turns Chipcade game sources into a machine-code image for
the console's 6502 CPU, keeping track of which source line produced
every byte so errors and a debugger can point at the code you wrote.

Main Components
---------------
- **assembler**: 6502 assembler (chasm)
    Expands `.include` files and assembles to a flat binary image

- **smallc**: C-subset compiler (chcc)
    Compiles line-oriented C with 8-bit variables into 6502 assembly

- **provenance**: Line provenance
    Maps bytes and error messages back to the authored file and line

- **sdk**: Machine definitions
    Configuration, memory map, system constants and generated headers

- **build**: Project builds (chbuild)
    The whole pipeline for a project directory

Quick Start
-----------
Assemble a program:
    >>> from chipcade import assemble
    >>> out = assemble("LDA #$41\\nSTA $2000\\nBRK\\n")
    >>> out.program.hex(" ")
    'a9 41 8d 00 20 00'

Compile C:
    >>> from chipcade import compile_c
    >>> print(compile_c("void Update() {\\n    return;\\n}\\n").assembly)

Build a project:
    >>> from chipcade import build_project
    >>> artifacts = build_project("games/chase")
    >>> artifacts.source_for_offset(0)

Or use the command-line tools:
    $ chasm main.asm -o program.bin
    $ chcc main.c -o main.asm
    $ chbuild games/chase
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from chipcade.assembler import Assembler, AssembleOutput, assemble, assemble_file
from chipcade.build import BuildArtifacts, ProjectPaths, assemble_project, build_project
from chipcade.errors import (
    ChipcadeError,
    SourceLocation,
    AssemblerError,
    AssemblySyntaxError,
    UndefinedSymbolError,
    DuplicateSymbolError,
    AddressingModeError,
    BranchRangeError,
    OperandRangeError,
    DirectiveError,
    IncludeError,
    BuildError,
)
from chipcade.provenance import (
    compose_pc_map,
    decorate_error,
    map_error_to_origin,
    merge_units,
    validate_source,
)
from chipcade.smallc import SmallCCompiler, SmallCError, compile_c, compile_files

__all__ = [
    "__version__",
    # Assembler
    "Assembler",
    "AssembleOutput",
    "assemble",
    "assemble_file",
    # C compiler
    "SmallCCompiler",
    "compile_c",
    "compile_files",
    # Provenance
    "compose_pc_map",
    "decorate_error",
    "map_error_to_origin",
    "merge_units",
    "validate_source",
    # Build
    "BuildArtifacts",
    "ProjectPaths",
    "assemble_project",
    "build_project",
    # Errors
    "ChipcadeError",
    "SourceLocation",
    "AssemblerError",
    "AssemblySyntaxError",
    "UndefinedSymbolError",
    "DuplicateSymbolError",
    "AddressingModeError",
    "BranchRangeError",
    "OperandRangeError",
    "DirectiveError",
    "IncludeError",
    "BuildError",
    "SmallCError",
]
