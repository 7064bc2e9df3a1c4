"""
6502 Assembler for the Chipcade Machine
=======================================

This package turns Chipcade assembly source into a flat machine-code
image for the 6502, keeping track of which source line produced each
byte.

Main Components
---------------
- **Assembler**: Main assembler class that orchestrates the process
- **expand_file / expand_text**: Inline `.include` files with provenance
- **parse_instruction / parse_source**: Instruction and line parsing
- **CodeGenerator**: Two-pass code generation

Assembly Process
----------------
1. **Include expansion**: `.include "path"` lines are replaced by the
   file's contents; every resulting line remembers its origin.
2. **Parsing**: each line becomes labels, `.const` definitions and
   instructions. Operand forms are matched in a fixed order.
3. **Code generation** (two-pass):
   - Pass 1: instruction sizes, label addresses, constants
   - Pass 2: symbol resolution, branch displacements, bytes

Example Usage
-------------
>>> from chipcade.assembler import assemble
>>> out = assemble("LDA #$41\\nSTA $2000\\nBRK\\n", origin=0x0200)
>>> out.program.hex(" ")
'a9 41 8d 00 20 00'
>>> out.line_map
[1, 1, 2, 2, 2, 3]

Supported Features
------------------
- The 56 documented 6502 instructions in every addressing mode
- Labels (`name:`, optionally followed by an instruction)
- Constants (`.const NAME value`)
- Include files (`.include "path"`)
- `#<sym` / `#>sym` low/high byte selection
- Listing file and symbol table output
"""

from chipcade.assembler.assembler import (
    AssembleOutput,
    Assembler,
    assemble,
    assemble_file,
)
from chipcade.assembler.codegen import CodeGenerator, select_encoding
from chipcade.assembler.includes import (
    ExpandedSource,
    LineOrigin,
    expand_file,
    expand_text,
)
from chipcade.assembler.parser import (
    ConstDef,
    Instruction,
    LabelDef,
    Operand,
    ParsedInstruction,
    Statement,
    parse_instruction,
    parse_line,
    parse_number,
    parse_operand,
    parse_source,
)
from chipcade.cpu import (
    AddressingMode,
    InstructionInfo,
    OPCODE_TABLE,
    MNEMONICS,
    BRANCH_INSTRUCTIONS,
)

__all__ = [
    # Main class and functions
    "Assembler",
    "AssembleOutput",
    "assemble",
    "assemble_file",
    # Includes
    "ExpandedSource",
    "LineOrigin",
    "expand_file",
    "expand_text",
    # Parser
    "ConstDef",
    "Instruction",
    "LabelDef",
    "Operand",
    "ParsedInstruction",
    "Statement",
    "parse_instruction",
    "parse_line",
    "parse_number",
    "parse_operand",
    "parse_source",
    # Code generator
    "CodeGenerator",
    "select_encoding",
    # Opcodes
    "AddressingMode",
    "InstructionInfo",
    "OPCODE_TABLE",
    "MNEMONICS",
    "BRANCH_INSTRUCTIONS",
]
