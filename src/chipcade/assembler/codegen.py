"""
6502 Code Generator
===================

This module generates 6502 machine code from parsed assembly statements.
It implements a two-pass assembly process:

Pass 1 (Symbol Collection)
--------------------------
- Walk all statements in order
- Choose each instruction's encoding and add its size to the PC
- Bind labels to the current PC and `.const` names to their values

Pass 2 (Code Generation)
------------------------
- Walk the same statements again
- Resolve every symbol against the completed table
- Compute branch displacements and range-check them
- Emit opcode and operand bytes (words little-endian)
- Record, for every emitted byte, the source line that produced it

Encoding Selection
------------------
The encoding depends only on the mnemonic and the parsed operand form,
never on the value a symbol later resolves to, so pass 1 and pass 2
always agree on instruction sizes:

| Parsed form            | Rule                                           |
|------------------------|------------------------------------------------|
| implied                | accumulator form if the mnemonic has no        |
|                        | implied form (`ASL` == `ASL A`)                |
| byte / bare symbol     | branch -> relative; symbol with an absolute    |
|                        | encoding -> absolute; otherwise zero page      |
| symbol,X / symbol,Y    | absolute indexed; zero page indexed when the   |
|                        | mnemonic has no absolute indexed form          |

Everything else encodes as parsed. The first error stops assembly; no
partial output is produced.
"""

import difflib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from chipcade.assembler.parser import (
    ConstDef,
    Instruction,
    LabelDef,
    Operand,
    Statement,
)
from chipcade.cpu import (
    AddressingMode,
    InstructionInfo,
    Sign,
    get_instruction_info,
    get_valid_modes,
    is_branch_instruction,
)
from chipcade.errors import (
    AddressingModeError,
    AssemblerError,
    BranchRangeError,
    DuplicateSymbolError,
    OperandRangeError,
    SourceLocation,
    UndefinedSymbolError,
)

logger = logging.getLogger(__name__)

PREDEFINED_LOCATION = SourceLocation("<predefined>", 0)


# =============================================================================
# Symbol Table Entry
# =============================================================================

@dataclass
class Symbol:
    """
    Symbol table entry.

    Attributes:
        name: Symbol name (case-sensitive)
        value: Resolved value (address or constant)
        location: Where the symbol was defined
        is_constant: True for `.const` and predefined symbols, False for labels
    """
    name: str
    value: int
    location: SourceLocation
    is_constant: bool = False


# =============================================================================
# Encoding Selection
# =============================================================================

def select_encoding(mnemonic: str, operand: Operand) -> AddressingMode:
    """
    Choose the concrete encoding for a parsed (mnemonic, operand) pair.

    Returns the mode to look up in the opcode table. Legality is not
    checked here; see resolve_instruction().
    """
    mode = operand.mode
    valid = get_valid_modes(mnemonic)

    if mode == AddressingMode.IMPLIED:
        if AddressingMode.IMPLIED not in valid and AddressingMode.ACCUMULATOR in valid:
            return AddressingMode.ACCUMULATOR
        return mode

    if mode == AddressingMode.ZERO_PAGE_OR_RELATIVE:
        if is_branch_instruction(mnemonic):
            return AddressingMode.RELATIVE
        if operand.symbol is not None and AddressingMode.ABSOLUTE in valid:
            return AddressingMode.ABSOLUTE
        return AddressingMode.ZERO_PAGE

    if operand.symbol is not None:
        if mode == AddressingMode.ABSOLUTE_X and mode not in valid:
            return AddressingMode.ZERO_PAGE_X
        if mode == AddressingMode.ABSOLUTE_Y and mode not in valid:
            return AddressingMode.ZERO_PAGE_Y

    return mode


def resolve_instruction(
    inst: Instruction,
) -> tuple[AddressingMode, InstructionInfo]:
    """
    Select the encoding for an instruction and look up its opcode.

    Raises:
        AddressingModeError: If the mnemonic has no such encoding
    """
    mode = select_encoding(inst.mnemonic, inst.operand)
    info = get_instruction_info(inst.mnemonic, mode)
    if info is None:
        raise AddressingModeError(
            inst.mnemonic,
            str(inst.operand.mode),
            inst.location,
            source_line=inst.source,
            valid_modes=[str(m) for m in get_valid_modes(inst.mnemonic)],
        )
    return mode, info


# =============================================================================
# Code Generator
# =============================================================================

class CodeGenerator:
    """
    Two-pass 6502 code generator.

    Usage:
        gen = CodeGenerator(origin=0x0200)
        gen.define_symbol("VRAM", 0x2000)
        code = gen.generate(statements)
        labels = gen.get_labels()
        line_map = gen.get_line_map()
    """

    def __init__(self, origin: int = 0x0200):
        if not 0 <= origin <= 0xFFFF:
            raise ValueError(f"origin ${origin:X} is outside the 16-bit address space")
        self._symbols: dict[str, Symbol] = {}
        self._predefined: dict[str, Symbol] = {}
        self._code = bytearray()
        self._line_map: list[int] = []
        self._origin = origin
        self._pc = origin
        self._listing_lines: list[str] = []

    # =========================================================================
    # Public Interface
    # =========================================================================

    def define_symbol(self, name: str, value: int) -> None:
        """
        Pre-define a constant (system constant or command line -D option).

        Predefined symbols survive between generate() calls and may not be
        redefined by the source.
        """
        self._predefined[name] = Symbol(
            name=name,
            value=value & 0xFFFF,
            location=PREDEFINED_LOCATION,
            is_constant=True,
        )

    def generate(self, statements: list[Statement]) -> bytes:
        """
        Generate object code from parsed statements.

        Args:
            statements: Statements in source order

        Returns:
            The assembled image, starting at the origin

        Raises:
            AssemblerError: On the first error encountered
        """
        self._reset()
        try:
            self._pass1(statements)
            logger.debug(
                f"Pass 1 complete: {len(self._symbols)} symbols, "
                f"{self._pc - self._origin} bytes"
            )
            self._pass2(statements)
        except AssemblerError:
            # A failed unit leaves no image, map or label table behind
            self._reset()
            raise
        logger.debug(f"Pass 2 complete: emitted {len(self._code)} bytes")

        return bytes(self._code)

    def _reset(self) -> None:
        self._symbols = dict(self._predefined)
        self._code = bytearray()
        self._line_map = []
        self._listing_lines = []
        self._pc = self._origin

    def get_code(self) -> bytes:
        """Get the code produced by the last generate() call."""
        return bytes(self._code)

    def get_origin(self) -> int:
        return self._origin

    def get_symbols(self) -> dict[str, int]:
        """Get every symbol (labels and constants) as name -> value."""
        return {name: sym.value for name, sym in self._symbols.items()}

    def get_labels(self) -> dict[str, int]:
        """Get the label table: only names bound to addresses by `name:`."""
        return {
            name: sym.value
            for name, sym in self._symbols.items()
            if not sym.is_constant
        }

    def get_constants(self) -> dict[str, int]:
        return {
            name: sym.value
            for name, sym in self._symbols.items()
            if sym.is_constant
        }

    def get_line_map(self) -> list[int]:
        """
        Get the byte-offset -> source-line map.

        Entry i is the 1-based line number of the statement that emitted
        byte i of the output.
        """
        return list(self._line_map)

    def get_listing(self) -> str:
        """
        Get the assembly listing as a string.

        Returns:
            The listing showing addresses, generated bytes, and source lines.
        """
        lines = []
        lines.append("Chipcade 6502 Assembler Listing")
        lines.append("=" * 60)
        lines.append("")
        lines.append("Addr   Code          Line  Source")
        lines.append("-" * 60)
        lines.extend(self._listing_lines)
        lines.append("")
        lines.append("Symbol Table")
        lines.append("-" * 30)
        for name, sym in sorted(self._symbols.items()):
            if sym.location is PREDEFINED_LOCATION:
                continue
            lines.append(f"{name:20s} = ${sym.value:04X}")
        return "\n".join(lines)

    def write_listing(self, filepath: str | Path) -> None:
        """Write the assembly listing file."""
        with open(filepath, "w") as f:
            f.write(self.get_listing())
            f.write("\n")

    def write_symbols(self, filepath: str | Path) -> None:
        """
        Write symbol table file.

        Format: name address (one per line, sorted by name)
        """
        with open(filepath, "w") as f:
            f.write("# Symbol table\n")
            f.write("# Generated by chasm\n")
            for name, sym in sorted(self._symbols.items()):
                if sym.location is PREDEFINED_LOCATION:
                    continue
                f.write(f"{name} ${sym.value:04X}\n")

    # =========================================================================
    # Pass 1: Symbol Collection
    # =========================================================================

    def _pass1(self, statements: list[Statement]) -> None:
        """
        First pass: collect symbols and calculate addresses.

        Instruction sizes come from the encoding table alone, so an
        illegal (mnemonic, mode) pair fails here rather than in pass 2.
        """
        self._pc = self._origin
        for stmt in statements:
            self._pass1_statement(stmt)

    def _pass1_statement(self, stmt: Statement) -> None:
        """Process a single statement in pass 1."""
        if isinstance(stmt, LabelDef):
            self._define(stmt.name, self._pc, stmt, is_constant=False)

        elif isinstance(stmt, ConstDef):
            if stmt.symbol is not None:
                value = self._lookup(stmt.symbol, stmt)
            else:
                value = stmt.value
            self._define(stmt.name, value, stmt, is_constant=True)

        elif isinstance(stmt, Instruction):
            _, info = resolve_instruction(stmt)
            self._pc += info.size
            if self._pc > 0x10000:
                raise OperandRangeError(
                    "program extends past $FFFF",
                    stmt.location,
                    source_line=stmt.source,
                )

    def _define(
        self,
        name: str,
        value: int,
        stmt: Statement,
        is_constant: bool,
    ) -> None:
        """Define a label or constant in the shared namespace."""
        if name in self._symbols:
            existing = self._symbols[name]
            raise DuplicateSymbolError(
                name,
                location=stmt.location,
                original_location=existing.location,
                source_line=stmt.source,
            )
        self._symbols[name] = Symbol(
            name=name,
            value=value,
            location=stmt.location,
            is_constant=is_constant,
        )

    # =========================================================================
    # Pass 2: Code Generation
    # =========================================================================

    def _pass2(self, statements: list[Statement]) -> None:
        """
        Second pass: generate object code.

        Every emitted byte gets a line-map entry pointing at the line of
        the statement that produced it.
        """
        self._pc = self._origin
        for stmt in statements:
            self._pass2_statement(stmt)

    def _pass2_statement(self, stmt: Statement) -> None:
        """Process a single statement in pass 2."""
        if not isinstance(stmt, Instruction):
            return

        start_pc = self._pc
        code_start = len(self._code)

        self._generate_instruction(stmt)

        emitted = len(self._code) - code_start
        self._line_map.extend([stmt.location.line] * emitted)

        code_bytes = self._code[code_start:]
        hex_str = " ".join(f"{b:02X}" for b in code_bytes)
        self._listing_lines.append(
            f"${start_pc:04X}  {hex_str:12s}  {stmt.location.line:4d}  "
            f"{stmt.source.strip()}"
        )

    def _generate_instruction(self, inst: Instruction) -> None:
        """Generate machine code for an instruction."""
        mode, info = resolve_instruction(inst)
        operand = inst.operand

        self._emit_byte(info.opcode)

        if mode in (AddressingMode.IMPLIED, AddressingMode.ACCUMULATOR):
            pass

        elif mode == AddressingMode.IMMEDIATE:
            self._emit_byte(self._immediate_value(operand, inst))

        elif mode == AddressingMode.RELATIVE:
            self._emit_byte(self._branch_offset(operand, inst, info))

        elif mode in (
            AddressingMode.ABSOLUTE,
            AddressingMode.ABSOLUTE_X,
            AddressingMode.ABSOLUTE_Y,
            AddressingMode.INDIRECT,
        ):
            self._emit_word(self._word_value(operand, inst))

        else:
            # zero page, zero page indexed, (zp,X), (zp),Y
            self._emit_byte(self._byte_value(operand, inst))

        self._pc += info.size

    # =========================================================================
    # Operand Resolution
    # =========================================================================

    def _lookup(self, name: str, stmt: Statement) -> int:
        """Resolve a symbol, suggesting close matches when it is undefined."""
        sym = self._symbols.get(name)
        if sym is None:
            similar = difflib.get_close_matches(name, list(self._symbols), n=3)
            raise UndefinedSymbolError(
                name,
                location=stmt.location,
                source_line=stmt.source,
                similar_symbols=similar,
            )
        return sym.value

    @staticmethod
    def _literal_byte(operand: Operand) -> int:
        if operand.sign == Sign.NEGATIVE:
            return (-operand.value) & 0xFF
        return operand.value & 0xFF

    def _byte_value(self, operand: Operand, inst: Instruction) -> int:
        """Resolve a one-byte address operand."""
        if operand.symbol is None:
            return self._literal_byte(operand)
        value = self._lookup(operand.symbol, inst)
        if value > 0xFF:
            raise OperandRangeError(
                f"'{operand.symbol}' (${value:04X}) does not fit in a "
                f"zero-page operand",
                inst.location,
                source_line=inst.source,
            )
        return value

    def _word_value(self, operand: Operand, inst: Instruction) -> int:
        if operand.symbol is None:
            return operand.value
        return self._lookup(operand.symbol, inst)

    def _immediate_value(self, operand: Operand, inst: Instruction) -> int:
        """Resolve `#value`, `#sym`, `#<sym` and `#>sym`."""
        if operand.symbol is None:
            return self._literal_byte(operand)

        value = self._lookup(operand.symbol, inst)
        if operand.byte_select == "<":
            return value & 0xFF
        if operand.byte_select == ">":
            return (value >> 8) & 0xFF
        if value > 0xFF:
            raise OperandRangeError(
                f"immediate value '{operand.symbol}' (${value:04X}) does not "
                f"fit in 8 bits",
                inst.location,
                hint=f"use #<{operand.symbol} or #>{operand.symbol} to select a byte",
                source_line=inst.source,
            )
        return value

    def _branch_offset(
        self,
        operand: Operand,
        inst: Instruction,
        info: InstructionInfo,
    ) -> int:
        """
        Compute a branch displacement byte.

        A symbolic target is measured from the end of the branch. A numeric
        operand is already a displacement and is emitted as-is.
        """
        if operand.symbol is None:
            if operand.sign == Sign.NEGATIVE and operand.value > 128:
                raise OperandRangeError(
                    f"branch displacement -{operand.value} is below -128",
                    inst.location,
                    source_line=inst.source,
                )
            return self._literal_byte(operand)

        target = self._lookup(operand.symbol, inst)
        offset = target - (self._pc + info.size)
        if offset < -128 or offset > 127:
            raise BranchRangeError(
                operand.symbol, offset, inst.location, source_line=inst.source
            )
        return offset & 0xFF

    # =========================================================================
    # Code Emission Helpers
    # =========================================================================

    def _emit_byte(self, value: int) -> None:
        """Emit a single byte to the output."""
        self._code.append(value & 0xFF)

    def _emit_word(self, value: int) -> None:
        """Emit a 16-bit word to the output (little-endian)."""
        self._code.append(value & 0xFF)
        self._code.append((value >> 8) & 0xFF)
