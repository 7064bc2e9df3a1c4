"""
6502 Assembler - Main Interface
===============================

This module provides the main Assembler class, the primary interface for
turning Chipcade assembly into a machine-code image. It coordinates the
include expander, the parser and the two-pass code generator.

Example Usage
-------------
>>> from chipcade.assembler import Assembler
>>>
>>> asm = Assembler(origin=0x0200)
>>> asm.assemble_string('''
... Init:
...     LDA #$41
...     STA $2000
...     BRK
... ''')
>>> asm.get_labels()
{'Init': 512}
>>> asm.get_line_map()
[3, 3, 4, 4, 4, 5]

Command-Line Usage
------------------
    $ chasm main.asm -o program.bin -l program.lst -s program.sym

Options:
    -o, --output FILE      Output binary image
    -l, --listing FILE     Generate listing file
    -s, --symbols FILE     Generate symbol file
    --origin ADDR          Load address (default: $0200)
    -D, --define SYM=VAL   Pre-define symbol
    -v, --verbose          Verbose output
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from chipcade.assembler.codegen import CodeGenerator
from chipcade.assembler.includes import ExpandedSource, expand_file
from chipcade.assembler.parser import parse_source

logger = logging.getLogger(__name__)

DEFAULT_ORIGIN = 0x0200
MERGED_FILENAME = "<merged>"


@dataclass
class AssembleOutput:
    """
    Result of assembling one unit.

    Attributes:
        program: The machine-code image, loaded at the origin
        labels: Label name -> address (constants excluded)
        line_map: Byte offset -> 1-based line of the assembled text
    """
    program: bytes
    labels: dict[str, int]
    line_map: list[int]


class Assembler:
    """
    Main 6502 assembler class.

    Each assemble call starts from a fresh symbol table (plus any
    predefined symbols), so one instance may assemble several units.

    Attributes:
        origin: Address of the first emitted byte
    """

    def __init__(
        self,
        origin: int = DEFAULT_ORIGIN,
        defines: Optional[dict[str, int]] = None,
    ):
        """
        Initialize the assembler.

        Args:
            origin: Load address of the image
            defines: Dictionary of pre-defined symbols
        """
        self.origin = origin
        self._defines: dict[str, int] = {}
        self._codegen = CodeGenerator(origin=origin)
        self._expanded: Optional[ExpandedSource] = None

        if defines:
            for name, value in defines.items():
                self.define_symbol(name, value)

    def define_symbol(self, name: str, value: int) -> None:
        """Pre-define a constant (like -D on the command line)."""
        self._defines[name] = value
        self._codegen.define_symbol(name, value)

    # =========================================================================
    # Assembly Methods
    # =========================================================================

    def assemble_string(self, source: str) -> bytes:
        """
        Assemble already-merged source text.

        Errors are reported against `<merged>:LINE`, the 1-based line of
        `source`. The text must not contain `.include` directives.

        Raises:
            AssemblerError: If assembly fails
        """
        statements = parse_source(source, MERGED_FILENAME)
        logger.debug(f"Parsed {len(statements)} statements")

        code = self._codegen.generate(statements)
        logger.debug(f"Generated {len(code)} bytes at ${self.origin:04X}")
        return code

    def assemble_expanded(self, expanded: ExpandedSource) -> bytes:
        """Assemble include-expanded (or compiled) text."""
        self._expanded = expanded
        return self.assemble_string(expanded.text)

    def assemble_file(self, filepath: str | Path) -> bytes:
        """
        Expand includes in a file and assemble the result.

        Raises:
            IncludeError: If the file or one of its includes cannot be read
            AssemblerError: If assembly fails
        """
        filepath = Path(filepath)
        logger.debug(f"Assembling {filepath}")
        return self.assemble_expanded(expand_file(filepath))

    # =========================================================================
    # Output Methods
    # =========================================================================

    def get_code(self) -> bytes:
        return self._codegen.get_code()

    def get_origin(self) -> int:
        return self._codegen.get_origin()

    def get_labels(self) -> dict[str, int]:
        """Get the label table (name -> address)."""
        return self._codegen.get_labels()

    def get_symbols(self) -> dict[str, int]:
        """Get all symbols, labels and constants alike."""
        return self._codegen.get_symbols()

    def get_line_map(self) -> list[int]:
        """Get the byte-offset -> merged-line map."""
        return self._codegen.get_line_map()

    def get_expanded(self) -> Optional[ExpandedSource]:
        """The expanded source of the last assemble_file/assemble_expanded call."""
        return self._expanded

    def get_listing(self) -> str:
        return self._codegen.get_listing()

    def get_output(self) -> AssembleOutput:
        return AssembleOutput(
            program=self.get_code(),
            labels=self.get_labels(),
            line_map=self.get_line_map(),
        )

    def write_binary(self, filepath: str | Path) -> None:
        """
        Write the raw binary image.

        The image carries no header; it is loaded at the origin.
        """
        code = self.get_code()
        Path(filepath).write_bytes(code)
        logger.debug(f"Wrote {len(code)} bytes to {filepath}")

    def write_listing(self, filepath: str | Path) -> None:
        self._codegen.write_listing(filepath)

    def write_symbols(self, filepath: str | Path) -> None:
        self._codegen.write_symbols(filepath)


# =============================================================================
# Convenience Functions
# =============================================================================

def assemble(source: str, origin: int = DEFAULT_ORIGIN) -> AssembleOutput:
    """
    Convenience function to assemble merged source text.

    Args:
        source: Assembly source code (no `.include` lines)
        origin: Load address

    Returns:
        The image, label table and byte -> line map

    Raises:
        AssemblerError: If assembly fails
    """
    asm = Assembler(origin=origin)
    asm.assemble_string(source)
    return asm.get_output()


def assemble_file(filepath: str | Path, origin: int = DEFAULT_ORIGIN) -> AssembleOutput:
    """
    Convenience function to expand and assemble a file.

    The returned line map refers to lines of the expanded text; use
    chipcade.provenance to map them back to the authored files.
    """
    asm = Assembler(origin=origin)
    asm.assemble_file(filepath)
    return asm.get_output()
