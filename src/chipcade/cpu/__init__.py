"""
Chipcade CPU Package
====================

CPU architecture definitions shared by the assembler and the C-subset
compiler. The Chipcade machine runs a MOS 6502 (NMOS, documented
opcodes only).

Modules:
    mos6502: 6502 instruction set, addressing modes and opcode table.

Usage:
    from chipcade.cpu import (
        AddressingMode,
        InstructionInfo,
        OPCODE_TABLE,
        get_instruction_info,
    )
"""

# =============================================================================
# Public API Exports
# =============================================================================

from chipcade.cpu.mos6502 import (
    # Core types
    AddressingMode,
    InstructionInfo,
    Sign,
    # Master instruction database
    OPCODE_TABLE,
    OPERAND_SIZES,
    # Instruction set reference lists
    MNEMONICS,
    BRANCH_INSTRUCTIONS,
    # Lookup functions
    get_instruction_info,
    get_valid_modes,
    is_valid_instruction,
    is_branch_instruction,
)

__all__ = [
    "AddressingMode",
    "InstructionInfo",
    "Sign",
    "OPCODE_TABLE",
    "OPERAND_SIZES",
    "MNEMONICS",
    "BRANCH_INSTRUCTIONS",
    "get_instruction_info",
    "get_valid_modes",
    "is_valid_instruction",
    "is_branch_instruction",
]
