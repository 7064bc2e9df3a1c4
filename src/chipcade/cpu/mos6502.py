"""
MOS 6502 Instruction Set Definition
===================================

This module defines the documented 6502 instruction set: the 56
mnemonics, the addressing modes the assembler distinguishes, and the
(mnemonic, mode) -> opcode table used both to size instructions in
pass 1 and to encode them in pass 2.

The 6502 is little-endian: word operands are emitted low byte first.

Addressing Modes
----------------
Parsed forms and their encodings:

1. **IMPLIED**: No operand (e.g., BRK, RTS, TAX)            - 1 byte
2. **ACCUMULATOR**: Operates on A (e.g., ASL A)              - 1 byte
3. **IMMEDIATE**: #value (e.g., LDA #$41 -> A9 41)           - 2 bytes
4. **ZERO_PAGE**: $00-$FF address (e.g., LDA $40 -> A5 40)   - 2 bytes
5. **ZERO_PAGE_X / ZERO_PAGE_Y**: byte,X / byte,Y            - 2 bytes
6. **ABSOLUTE**: 16-bit address (e.g., STA $2000 -> 8D 00 20) - 3 bytes
7. **ABSOLUTE_X / ABSOLUTE_Y**: word,X / word,Y              - 3 bytes
8. **INDIRECT**: (word), JMP only                            - 3 bytes
9. **INDEXED_INDIRECT**: (byte,X)                            - 2 bytes
10. **INDIRECT_INDEXED**: (byte),Y                           - 2 bytes
11. **RELATIVE**: signed displacement, branches only          - 2 bytes

ZERO_PAGE_OR_RELATIVE is a parse-only form. A lone byte operand such as
`$10` or a bare symbol cannot be classified until the mnemonic is known:
branches read it as a displacement, everything else as an address. The
table never contains it; the assembler resolves it to ZERO_PAGE,
ABSOLUTE or RELATIVE first.

Reference
---------
- MOS MCS6500 Microcomputer Family Programming Manual (1976)
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


# =============================================================================
# Addressing Mode Enumeration
# =============================================================================

class AddressingMode(Enum):
    """6502 addressing modes, including the parse-only catch-all."""
    IMPLIED = auto()
    ACCUMULATOR = auto()
    IMMEDIATE = auto()
    ZERO_PAGE_OR_RELATIVE = auto()  # byte operand, meaning depends on mnemonic
    ZERO_PAGE = auto()
    ZERO_PAGE_X = auto()
    ZERO_PAGE_Y = auto()
    ABSOLUTE = auto()
    ABSOLUTE_X = auto()
    ABSOLUTE_Y = auto()
    INDIRECT = auto()
    INDEXED_INDIRECT = auto()       # (zp,X)
    INDIRECT_INDEXED = auto()       # (zp),Y
    RELATIVE = auto()

    def __str__(self) -> str:
        """Return human-readable name for error messages."""
        return {
            AddressingMode.IMPLIED: "implied",
            AddressingMode.ACCUMULATOR: "accumulator",
            AddressingMode.IMMEDIATE: "immediate",
            AddressingMode.ZERO_PAGE_OR_RELATIVE: "zero-page/relative",
            AddressingMode.ZERO_PAGE: "zero-page",
            AddressingMode.ZERO_PAGE_X: "zero-page,X",
            AddressingMode.ZERO_PAGE_Y: "zero-page,Y",
            AddressingMode.ABSOLUTE: "absolute",
            AddressingMode.ABSOLUTE_X: "absolute,X",
            AddressingMode.ABSOLUTE_Y: "absolute,Y",
            AddressingMode.INDIRECT: "indirect",
            AddressingMode.INDEXED_INDIRECT: "(indirect,X)",
            AddressingMode.INDIRECT_INDEXED: "(indirect),Y",
            AddressingMode.RELATIVE: "relative",
        }[self]


class Sign(Enum):
    """
    Whether a byte literal was written with an explicit minus sign.

    A byte operand may be an unsigned address or a signed branch
    displacement; the sign is kept so `BNE -3` can be encoded as $FD.
    """
    IMPLIED = auto()
    NEGATIVE = auto()


# Operand bytes following the opcode, per encoding mode
OPERAND_SIZES: dict[AddressingMode, int] = {
    AddressingMode.IMPLIED: 0,
    AddressingMode.ACCUMULATOR: 0,
    AddressingMode.IMMEDIATE: 1,
    AddressingMode.ZERO_PAGE: 1,
    AddressingMode.ZERO_PAGE_X: 1,
    AddressingMode.ZERO_PAGE_Y: 1,
    AddressingMode.ABSOLUTE: 2,
    AddressingMode.ABSOLUTE_X: 2,
    AddressingMode.ABSOLUTE_Y: 2,
    AddressingMode.INDIRECT: 2,
    AddressingMode.INDEXED_INDIRECT: 1,
    AddressingMode.INDIRECT_INDEXED: 1,
    AddressingMode.RELATIVE: 1,
}


# =============================================================================
# Instruction Information
# =============================================================================

@dataclass(frozen=True)
class InstructionInfo:
    """
    Information about a specific instruction encoding.

    Attributes:
        opcode: The opcode byte
        size: Total instruction size in bytes (including operand)
        cycles: Base CPU cycles (page-crossing and taken-branch penalties excluded)
    """
    opcode: int
    size: int
    cycles: int

    def __repr__(self) -> str:
        return f"InstructionInfo(opcode=${self.opcode:02X}, size={self.size}, cycles={self.cycles})"


_M = AddressingMode


def _info(opcode: int, mode: AddressingMode, cycles: int) -> InstructionInfo:
    return InstructionInfo(opcode, 1 + OPERAND_SIZES[mode], cycles)


# =============================================================================
# Opcode Table
# =============================================================================
# Key: (mnemonic, encoding mode)
# Value: InstructionInfo(opcode, total_size, cycles)
# =============================================================================

OPCODE_TABLE: dict[tuple[str, AddressingMode], InstructionInfo] = {
    # =========================================================================
    # LOAD / STORE
    # =========================================================================
    ("LDA", _M.IMMEDIATE): _info(0xA9, _M.IMMEDIATE, 2),
    ("LDA", _M.ZERO_PAGE): _info(0xA5, _M.ZERO_PAGE, 3),
    ("LDA", _M.ZERO_PAGE_X): _info(0xB5, _M.ZERO_PAGE_X, 4),
    ("LDA", _M.ABSOLUTE): _info(0xAD, _M.ABSOLUTE, 4),
    ("LDA", _M.ABSOLUTE_X): _info(0xBD, _M.ABSOLUTE_X, 4),
    ("LDA", _M.ABSOLUTE_Y): _info(0xB9, _M.ABSOLUTE_Y, 4),
    ("LDA", _M.INDEXED_INDIRECT): _info(0xA1, _M.INDEXED_INDIRECT, 6),
    ("LDA", _M.INDIRECT_INDEXED): _info(0xB1, _M.INDIRECT_INDEXED, 5),

    ("LDX", _M.IMMEDIATE): _info(0xA2, _M.IMMEDIATE, 2),
    ("LDX", _M.ZERO_PAGE): _info(0xA6, _M.ZERO_PAGE, 3),
    ("LDX", _M.ZERO_PAGE_Y): _info(0xB6, _M.ZERO_PAGE_Y, 4),
    ("LDX", _M.ABSOLUTE): _info(0xAE, _M.ABSOLUTE, 4),
    ("LDX", _M.ABSOLUTE_Y): _info(0xBE, _M.ABSOLUTE_Y, 4),

    ("LDY", _M.IMMEDIATE): _info(0xA0, _M.IMMEDIATE, 2),
    ("LDY", _M.ZERO_PAGE): _info(0xA4, _M.ZERO_PAGE, 3),
    ("LDY", _M.ZERO_PAGE_X): _info(0xB4, _M.ZERO_PAGE_X, 4),
    ("LDY", _M.ABSOLUTE): _info(0xAC, _M.ABSOLUTE, 4),
    ("LDY", _M.ABSOLUTE_X): _info(0xBC, _M.ABSOLUTE_X, 4),

    ("STA", _M.ZERO_PAGE): _info(0x85, _M.ZERO_PAGE, 3),
    ("STA", _M.ZERO_PAGE_X): _info(0x95, _M.ZERO_PAGE_X, 4),
    ("STA", _M.ABSOLUTE): _info(0x8D, _M.ABSOLUTE, 4),
    ("STA", _M.ABSOLUTE_X): _info(0x9D, _M.ABSOLUTE_X, 5),
    ("STA", _M.ABSOLUTE_Y): _info(0x99, _M.ABSOLUTE_Y, 5),
    ("STA", _M.INDEXED_INDIRECT): _info(0x81, _M.INDEXED_INDIRECT, 6),
    ("STA", _M.INDIRECT_INDEXED): _info(0x91, _M.INDIRECT_INDEXED, 6),

    ("STX", _M.ZERO_PAGE): _info(0x86, _M.ZERO_PAGE, 3),
    ("STX", _M.ZERO_PAGE_Y): _info(0x96, _M.ZERO_PAGE_Y, 4),
    ("STX", _M.ABSOLUTE): _info(0x8E, _M.ABSOLUTE, 4),

    ("STY", _M.ZERO_PAGE): _info(0x84, _M.ZERO_PAGE, 3),
    ("STY", _M.ZERO_PAGE_X): _info(0x94, _M.ZERO_PAGE_X, 4),
    ("STY", _M.ABSOLUTE): _info(0x8C, _M.ABSOLUTE, 4),

    # =========================================================================
    # ARITHMETIC / COMPARE
    # =========================================================================
    ("ADC", _M.IMMEDIATE): _info(0x69, _M.IMMEDIATE, 2),
    ("ADC", _M.ZERO_PAGE): _info(0x65, _M.ZERO_PAGE, 3),
    ("ADC", _M.ZERO_PAGE_X): _info(0x75, _M.ZERO_PAGE_X, 4),
    ("ADC", _M.ABSOLUTE): _info(0x6D, _M.ABSOLUTE, 4),
    ("ADC", _M.ABSOLUTE_X): _info(0x7D, _M.ABSOLUTE_X, 4),
    ("ADC", _M.ABSOLUTE_Y): _info(0x79, _M.ABSOLUTE_Y, 4),
    ("ADC", _M.INDEXED_INDIRECT): _info(0x61, _M.INDEXED_INDIRECT, 6),
    ("ADC", _M.INDIRECT_INDEXED): _info(0x71, _M.INDIRECT_INDEXED, 5),

    ("SBC", _M.IMMEDIATE): _info(0xE9, _M.IMMEDIATE, 2),
    ("SBC", _M.ZERO_PAGE): _info(0xE5, _M.ZERO_PAGE, 3),
    ("SBC", _M.ZERO_PAGE_X): _info(0xF5, _M.ZERO_PAGE_X, 4),
    ("SBC", _M.ABSOLUTE): _info(0xED, _M.ABSOLUTE, 4),
    ("SBC", _M.ABSOLUTE_X): _info(0xFD, _M.ABSOLUTE_X, 4),
    ("SBC", _M.ABSOLUTE_Y): _info(0xF9, _M.ABSOLUTE_Y, 4),
    ("SBC", _M.INDEXED_INDIRECT): _info(0xE1, _M.INDEXED_INDIRECT, 6),
    ("SBC", _M.INDIRECT_INDEXED): _info(0xF1, _M.INDIRECT_INDEXED, 5),

    ("CMP", _M.IMMEDIATE): _info(0xC9, _M.IMMEDIATE, 2),
    ("CMP", _M.ZERO_PAGE): _info(0xC5, _M.ZERO_PAGE, 3),
    ("CMP", _M.ZERO_PAGE_X): _info(0xD5, _M.ZERO_PAGE_X, 4),
    ("CMP", _M.ABSOLUTE): _info(0xCD, _M.ABSOLUTE, 4),
    ("CMP", _M.ABSOLUTE_X): _info(0xDD, _M.ABSOLUTE_X, 4),
    ("CMP", _M.ABSOLUTE_Y): _info(0xD9, _M.ABSOLUTE_Y, 4),
    ("CMP", _M.INDEXED_INDIRECT): _info(0xC1, _M.INDEXED_INDIRECT, 6),
    ("CMP", _M.INDIRECT_INDEXED): _info(0xD1, _M.INDIRECT_INDEXED, 5),

    ("CPX", _M.IMMEDIATE): _info(0xE0, _M.IMMEDIATE, 2),
    ("CPX", _M.ZERO_PAGE): _info(0xE4, _M.ZERO_PAGE, 3),
    ("CPX", _M.ABSOLUTE): _info(0xEC, _M.ABSOLUTE, 4),

    ("CPY", _M.IMMEDIATE): _info(0xC0, _M.IMMEDIATE, 2),
    ("CPY", _M.ZERO_PAGE): _info(0xC4, _M.ZERO_PAGE, 3),
    ("CPY", _M.ABSOLUTE): _info(0xCC, _M.ABSOLUTE, 4),

    # =========================================================================
    # LOGICAL
    # =========================================================================
    ("AND", _M.IMMEDIATE): _info(0x29, _M.IMMEDIATE, 2),
    ("AND", _M.ZERO_PAGE): _info(0x25, _M.ZERO_PAGE, 3),
    ("AND", _M.ZERO_PAGE_X): _info(0x35, _M.ZERO_PAGE_X, 4),
    ("AND", _M.ABSOLUTE): _info(0x2D, _M.ABSOLUTE, 4),
    ("AND", _M.ABSOLUTE_X): _info(0x3D, _M.ABSOLUTE_X, 4),
    ("AND", _M.ABSOLUTE_Y): _info(0x39, _M.ABSOLUTE_Y, 4),
    ("AND", _M.INDEXED_INDIRECT): _info(0x21, _M.INDEXED_INDIRECT, 6),
    ("AND", _M.INDIRECT_INDEXED): _info(0x31, _M.INDIRECT_INDEXED, 5),

    ("ORA", _M.IMMEDIATE): _info(0x09, _M.IMMEDIATE, 2),
    ("ORA", _M.ZERO_PAGE): _info(0x05, _M.ZERO_PAGE, 3),
    ("ORA", _M.ZERO_PAGE_X): _info(0x15, _M.ZERO_PAGE_X, 4),
    ("ORA", _M.ABSOLUTE): _info(0x0D, _M.ABSOLUTE, 4),
    ("ORA", _M.ABSOLUTE_X): _info(0x1D, _M.ABSOLUTE_X, 4),
    ("ORA", _M.ABSOLUTE_Y): _info(0x19, _M.ABSOLUTE_Y, 4),
    ("ORA", _M.INDEXED_INDIRECT): _info(0x01, _M.INDEXED_INDIRECT, 6),
    ("ORA", _M.INDIRECT_INDEXED): _info(0x11, _M.INDIRECT_INDEXED, 5),

    ("EOR", _M.IMMEDIATE): _info(0x49, _M.IMMEDIATE, 2),
    ("EOR", _M.ZERO_PAGE): _info(0x45, _M.ZERO_PAGE, 3),
    ("EOR", _M.ZERO_PAGE_X): _info(0x55, _M.ZERO_PAGE_X, 4),
    ("EOR", _M.ABSOLUTE): _info(0x4D, _M.ABSOLUTE, 4),
    ("EOR", _M.ABSOLUTE_X): _info(0x5D, _M.ABSOLUTE_X, 4),
    ("EOR", _M.ABSOLUTE_Y): _info(0x59, _M.ABSOLUTE_Y, 4),
    ("EOR", _M.INDEXED_INDIRECT): _info(0x41, _M.INDEXED_INDIRECT, 6),
    ("EOR", _M.INDIRECT_INDEXED): _info(0x51, _M.INDIRECT_INDEXED, 5),

    ("BIT", _M.ZERO_PAGE): _info(0x24, _M.ZERO_PAGE, 3),
    ("BIT", _M.ABSOLUTE): _info(0x2C, _M.ABSOLUTE, 4),

    # =========================================================================
    # INCREMENT / DECREMENT
    # =========================================================================
    ("INC", _M.ZERO_PAGE): _info(0xE6, _M.ZERO_PAGE, 5),
    ("INC", _M.ZERO_PAGE_X): _info(0xF6, _M.ZERO_PAGE_X, 6),
    ("INC", _M.ABSOLUTE): _info(0xEE, _M.ABSOLUTE, 6),
    ("INC", _M.ABSOLUTE_X): _info(0xFE, _M.ABSOLUTE_X, 7),

    ("DEC", _M.ZERO_PAGE): _info(0xC6, _M.ZERO_PAGE, 5),
    ("DEC", _M.ZERO_PAGE_X): _info(0xD6, _M.ZERO_PAGE_X, 6),
    ("DEC", _M.ABSOLUTE): _info(0xCE, _M.ABSOLUTE, 6),
    ("DEC", _M.ABSOLUTE_X): _info(0xDE, _M.ABSOLUTE_X, 7),

    ("INX", _M.IMPLIED): _info(0xE8, _M.IMPLIED, 2),
    ("DEX", _M.IMPLIED): _info(0xCA, _M.IMPLIED, 2),
    ("INY", _M.IMPLIED): _info(0xC8, _M.IMPLIED, 2),
    ("DEY", _M.IMPLIED): _info(0x88, _M.IMPLIED, 2),

    # =========================================================================
    # SHIFTS / ROTATES
    # =========================================================================
    ("ASL", _M.ACCUMULATOR): _info(0x0A, _M.ACCUMULATOR, 2),
    ("ASL", _M.ZERO_PAGE): _info(0x06, _M.ZERO_PAGE, 5),
    ("ASL", _M.ZERO_PAGE_X): _info(0x16, _M.ZERO_PAGE_X, 6),
    ("ASL", _M.ABSOLUTE): _info(0x0E, _M.ABSOLUTE, 6),
    ("ASL", _M.ABSOLUTE_X): _info(0x1E, _M.ABSOLUTE_X, 7),

    ("LSR", _M.ACCUMULATOR): _info(0x4A, _M.ACCUMULATOR, 2),
    ("LSR", _M.ZERO_PAGE): _info(0x46, _M.ZERO_PAGE, 5),
    ("LSR", _M.ZERO_PAGE_X): _info(0x56, _M.ZERO_PAGE_X, 6),
    ("LSR", _M.ABSOLUTE): _info(0x4E, _M.ABSOLUTE, 6),
    ("LSR", _M.ABSOLUTE_X): _info(0x5E, _M.ABSOLUTE_X, 7),

    ("ROL", _M.ACCUMULATOR): _info(0x2A, _M.ACCUMULATOR, 2),
    ("ROL", _M.ZERO_PAGE): _info(0x26, _M.ZERO_PAGE, 5),
    ("ROL", _M.ZERO_PAGE_X): _info(0x36, _M.ZERO_PAGE_X, 6),
    ("ROL", _M.ABSOLUTE): _info(0x2E, _M.ABSOLUTE, 6),
    ("ROL", _M.ABSOLUTE_X): _info(0x3E, _M.ABSOLUTE_X, 7),

    ("ROR", _M.ACCUMULATOR): _info(0x6A, _M.ACCUMULATOR, 2),
    ("ROR", _M.ZERO_PAGE): _info(0x66, _M.ZERO_PAGE, 5),
    ("ROR", _M.ZERO_PAGE_X): _info(0x76, _M.ZERO_PAGE_X, 6),
    ("ROR", _M.ABSOLUTE): _info(0x6E, _M.ABSOLUTE, 6),
    ("ROR", _M.ABSOLUTE_X): _info(0x7E, _M.ABSOLUTE_X, 7),

    # =========================================================================
    # JUMPS / SUBROUTINES
    # =========================================================================
    ("JMP", _M.ABSOLUTE): _info(0x4C, _M.ABSOLUTE, 3),
    ("JMP", _M.INDIRECT): _info(0x6C, _M.INDIRECT, 5),
    ("JSR", _M.ABSOLUTE): _info(0x20, _M.ABSOLUTE, 6),
    ("RTS", _M.IMPLIED): _info(0x60, _M.IMPLIED, 6),
    ("RTI", _M.IMPLIED): _info(0x40, _M.IMPLIED, 6),

    # =========================================================================
    # BRANCHES (relative, +1 cycle taken, +2 across a page)
    # =========================================================================
    ("BCC", _M.RELATIVE): _info(0x90, _M.RELATIVE, 2),  # Branch if carry clear
    ("BCS", _M.RELATIVE): _info(0xB0, _M.RELATIVE, 2),  # Branch if carry set
    ("BEQ", _M.RELATIVE): _info(0xF0, _M.RELATIVE, 2),  # Branch if equal (Z=1)
    ("BMI", _M.RELATIVE): _info(0x30, _M.RELATIVE, 2),  # Branch if minus (N=1)
    ("BNE", _M.RELATIVE): _info(0xD0, _M.RELATIVE, 2),  # Branch if not equal (Z=0)
    ("BPL", _M.RELATIVE): _info(0x10, _M.RELATIVE, 2),  # Branch if plus (N=0)
    ("BVC", _M.RELATIVE): _info(0x50, _M.RELATIVE, 2),  # Branch if overflow clear
    ("BVS", _M.RELATIVE): _info(0x70, _M.RELATIVE, 2),  # Branch if overflow set

    # =========================================================================
    # STACK
    # =========================================================================
    ("PHA", _M.IMPLIED): _info(0x48, _M.IMPLIED, 3),
    ("PLA", _M.IMPLIED): _info(0x68, _M.IMPLIED, 4),
    ("PHP", _M.IMPLIED): _info(0x08, _M.IMPLIED, 3),
    ("PLP", _M.IMPLIED): _info(0x28, _M.IMPLIED, 4),

    # =========================================================================
    # FLAGS
    # =========================================================================
    ("CLC", _M.IMPLIED): _info(0x18, _M.IMPLIED, 2),
    ("SEC", _M.IMPLIED): _info(0x38, _M.IMPLIED, 2),
    ("CLI", _M.IMPLIED): _info(0x58, _M.IMPLIED, 2),
    ("SEI", _M.IMPLIED): _info(0x78, _M.IMPLIED, 2),
    ("CLV", _M.IMPLIED): _info(0xB8, _M.IMPLIED, 2),
    ("CLD", _M.IMPLIED): _info(0xD8, _M.IMPLIED, 2),
    ("SED", _M.IMPLIED): _info(0xF8, _M.IMPLIED, 2),

    # =========================================================================
    # SYSTEM / TRANSFERS
    # =========================================================================
    ("BRK", _M.IMPLIED): _info(0x00, _M.IMPLIED, 7),  # Halt sentinel for Init/Update
    ("NOP", _M.IMPLIED): _info(0xEA, _M.IMPLIED, 2),

    ("TAX", _M.IMPLIED): _info(0xAA, _M.IMPLIED, 2),
    ("TXA", _M.IMPLIED): _info(0x8A, _M.IMPLIED, 2),
    ("TAY", _M.IMPLIED): _info(0xA8, _M.IMPLIED, 2),
    ("TYA", _M.IMPLIED): _info(0x98, _M.IMPLIED, 2),
    ("TSX", _M.IMPLIED): _info(0xBA, _M.IMPLIED, 2),
    ("TXS", _M.IMPLIED): _info(0x9A, _M.IMPLIED, 2),
}


# =============================================================================
# Instruction Categories
# =============================================================================

MNEMONICS: frozenset[str] = frozenset(m for (m, _) in OPCODE_TABLE)

BRANCH_INSTRUCTIONS: frozenset[str] = frozenset({
    "BCC", "BCS", "BEQ", "BMI", "BNE", "BPL", "BVC", "BVS",
})


# =============================================================================
# Lookup Functions
# =============================================================================

def get_instruction_info(
    mnemonic: str,
    mode: AddressingMode
) -> Optional[InstructionInfo]:
    """
    Look up instruction information by mnemonic and encoding mode.

    Args:
        mnemonic: The instruction mnemonic (e.g., "LDA")
        mode: The addressing mode

    Returns:
        InstructionInfo if found, None if the combination is invalid
    """
    return OPCODE_TABLE.get((mnemonic.upper(), mode))


def get_valid_modes(mnemonic: str) -> list[AddressingMode]:
    """
    Get all valid addressing modes for an instruction.

    Args:
        mnemonic: The instruction mnemonic

    Returns:
        List of valid AddressingModes for this instruction
    """
    mnemonic = mnemonic.upper()
    return [
        mode for (m, mode) in OPCODE_TABLE.keys()
        if m == mnemonic
    ]


def is_valid_instruction(mnemonic: str) -> bool:
    """Check if a mnemonic is one of the 56 documented 6502 instructions."""
    return mnemonic.upper() in MNEMONICS


def is_branch_instruction(mnemonic: str) -> bool:
    """Check if an instruction is a conditional branch (relative addressing)."""
    return mnemonic.upper() in BRANCH_INSTRUCTIONS
