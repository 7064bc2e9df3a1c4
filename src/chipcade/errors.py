"""
Chipcade Error Hierarchy
========================

This module defines the exception hierarchy for the Chipcade toolchain.
All exceptions inherit from ChipcadeError, allowing callers to catch all
toolchain errors with a single except clause if desired.

Exception Hierarchy
-------------------
ChipcadeError (base)
├── AssemblerError (assembler-related)
│   ├── AssemblySyntaxError - unparseable line, unknown mnemonic, bad literal
│   ├── UndefinedSymbolError - reference to undefined label/constant
│   ├── DuplicateSymbolError - symbol defined multiple times
│   ├── AddressingModeError - invalid addressing mode for instruction
│   ├── BranchRangeError - branch target too far
│   ├── OperandRangeError - resolved value too wide for its operand
│   ├── DirectiveError - error in assembler directive
│   └── IncludeError - error including file (unreadable, cycle)
├── SmallCError (C subset, see chipcade.smallc.errors)
└── BuildError (project layout and file IO)

Error messages follow this format:
    filename:line: error: description
        source_line_text
    hint: suggestion for fixing (when available)

The line number always appears right after the filename. Later stages
(see chipcade.provenance) rely on that to map a line of merged source
back to the file the user actually wrote.
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class ChipcadeError(Exception):
    """
    Base exception for all Chipcade toolchain errors.

        try:
            build_project("games/chase")
        except ChipcadeError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in source code for error reporting.

    Attributes:
        filename: Name of the source file (or "<merged>" for merged text)
        line: Line number (1-indexed, 0 for whole-file errors)
        column: Column number (1-indexed, 0 when unknown)
    """
    filename: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        """Format as 'filename:line[:column]' for error messages."""
        if self.line <= 0:
            return self.filename
        if self.column > 0:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.filename}:{self.line}"


def format_error(
    message: str,
    location: Optional[SourceLocation],
    hint: Optional[str],
    source_line: Optional[str],
) -> str:
    """
    Render an error in the shared toolchain format.

    Example output:
        main.asm:15: error: undefined symbol 'prnt'
            JSR prnt
        hint: did you mean 'print'?
    """
    parts = []

    if location:
        parts.append(f"{location}: error: {message}")
    else:
        parts.append(f"error: {message}")

    if source_line is not None and location is not None:
        parts.append(f"    {source_line.strip()}")
        if location.column > 0:
            padding = " " * (4 + location.column - 1)
            parts.append(f"{padding}^")

    if hint:
        parts.append(f"hint: {hint}")

    return "\n".join(parts)


# =============================================================================
# Assembler Exceptions
# =============================================================================

class AssemblerError(ChipcadeError):
    """
    Base exception for all assembler-related errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The actual source text at the error location (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(format_error(message, location, hint, source_line))

    def with_location(
        self,
        location: SourceLocation,
        source_line: Optional[str] = None,
    ) -> "AssemblerError":
        """
        Return a copy of this error positioned at `location`.

        The operand parser knows nothing about lines; the assembler uses
        this to attach the merged-source position before re-raising.
        """
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        clone.location = location
        clone.source_line = source_line
        Exception.__init__(
            clone, format_error(clone.message, location, clone.hint, source_line)
        )
        return clone


class AssemblySyntaxError(AssemblerError):
    """
    Syntax error in assembly source code.

    Examples:
        - Unknown mnemonic
        - Operand matching none of the addressing-mode forms
        - Malformed label or numeric literal
    """
    pass


class UndefinedSymbolError(AssemblerError):
    """
    Reference to an undefined symbol (label or constant).

    Raised during the second pass when a symbol reference cannot be
    resolved. Similarly-named symbols are suggested to help catch typos.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
        similar_symbols: Optional[list[str]] = None,
    ):
        self.symbol = symbol
        self.similar_symbols = similar_symbols or []

        if not hint and self.similar_symbols:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_symbols[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"undefined symbol '{symbol}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class DuplicateSymbolError(AssemblerError):
    """
    Symbol defined multiple times.

    Labels and `.const` names share one namespace, so a label may not
    reuse a constant's name either.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        original_location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.symbol = symbol
        self.original_location = original_location

        hint = None
        if original_location:
            hint = f"'{symbol}' was first defined at {original_location}"

        super().__init__(
            f"duplicate symbol '{symbol}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class AddressingModeError(AssemblerError):
    """
    Invalid addressing mode for instruction.

    Example:
        STA #$41  ; Error: STA has no immediate form
    """

    def __init__(
        self,
        mnemonic: str,
        mode: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        valid_modes: Optional[list[str]] = None,
    ):
        self.mnemonic = mnemonic
        self.mode = mode
        self.valid_modes = valid_modes or []

        hint = None
        if self.valid_modes:
            modes_str = ", ".join(self.valid_modes)
            hint = f"{mnemonic} supports: {modes_str}"

        super().__init__(
            f"'{mnemonic}' does not support {mode} addressing mode",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class BranchRangeError(AssemblerError):
    """
    Branch target is out of range.

    6502 branches carry a signed 8-bit displacement measured from the
    end of the two-byte branch instruction, so the reachable window is
    -128 to +127 bytes. A common workaround is an inverted branch around
    a JMP:
           BNE skip
           JMP far_target
       skip:
    """

    def __init__(
        self,
        target: str,
        offset: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.target = target
        self.offset = offset

        direction = "forward" if offset > 0 else "backward"
        hint = (
            f"branch offset is {offset}, but range is -128 to +127; "
            f"consider using JMP for {direction} references"
        )

        super().__init__(
            f"branch target '{target}' is out of range (offset: {offset})",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class OperandRangeError(AssemblerError):
    """
    A resolved operand does not fit its encoding.

    Raised when a symbol used in a byte-sized slot (immediate, zero page,
    indirect pointer) resolves to a value above $FF.
    """
    pass


class DirectiveError(AssemblerError):
    """
    Error in an assembler directive.

    Examples:
        - `.const` without a name or value
        - `.include` reaching the assembler unexpanded
    """
    pass


class IncludeError(AssemblerError):
    """
    Error including a file.

    Raised when:
    - Include file cannot be read
    - The include directive is malformed
    - Circular include detected
    """

    def __init__(
        self,
        filename: str,
        reason: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.included_filename = filename
        self.reason = reason

        super().__init__(
            f"cannot include '{filename}': {reason}",
            location=location,
            source_line=source_line,
        )


# =============================================================================
# Build Exceptions
# =============================================================================

class BuildError(ChipcadeError):
    """
    Error in the project build pipeline.

    Raised for missing sources, unreadable project files and output
    paths that cannot be written. Assembler and compiler errors pass
    through the pipeline as their own types.
    """
    pass
