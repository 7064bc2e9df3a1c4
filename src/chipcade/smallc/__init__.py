"""
Chipcade C-Subset Compiler
==========================

This package compiles a small, line-oriented subset of C into 6502
assembly for the Chipcade machine. The output goes straight into the
Chipcade assembler; every generated line remembers the C line it came
from so assembler errors can point back at the C source.

Pipeline
--------
    C files → global allocation → statement compiler → assembly + line origins

Usage
-----
>>> from chipcade.smallc import compile_c
>>> result = compile_c('''
... unsigned char frame;
... void Update() {
...     frame++;
... }
... ''')
>>> print(result.assembly)
Update:
        INC     $40
        BRK
<BLANKLINE>

Language Subset
---------------
Supported:
- `unsigned char` / `signed char` globals and locals (one zero-page byte)
- Zero-argument `void` functions, prototypes, `extern` declarations
- if/else, while, for, return, calls, `x++`, `x--`, assignment
- Operators: + - << >> & ^ | ~ and the six comparisons in conditions
- Memory access: `mem[addr]`, `data[addr]`, `[addr]`, `sprite_data[i]`,
  `sprite[N].field`

Not supported:
- int, pointers, arrays, structs, parameters, return values
- Multiplication, division, logical && and ||
- Blocks whose `{` is on its own line

Memory Model
------------
- All values are 8-bit and every expression ends in A
- Variables at fixed zero-page addresses from $40 upward
- Scratch bytes $20-$23 used by expressions and comparisons
"""

from chipcade.smallc.compiler import (
    CompilerOptions,
    CompilerResult,
    CSourceFile,
    SmallCCompiler,
    compile_c,
    compile_file,
    compile_files,
    order_sources,
)
from chipcade.smallc.errors import (
    CSemanticError,
    CSyntaxError,
    CValueRangeError,
    DuplicateDeclarationError,
    SmallCError,
    UndeclaredIdentifierError,
    UnterminatedBlockError,
    ZeroPageExhaustedError,
)
from chipcade.smallc.expressions import (
    Scope,
    parse_addr_expr,
    parse_condition,
    parse_expression,
)

__all__ = [
    # Compiler
    "SmallCCompiler",
    "CompilerOptions",
    "CompilerResult",
    "CSourceFile",
    "compile_c",
    "compile_file",
    "compile_files",
    "order_sources",
    # Expressions
    "Scope",
    "parse_addr_expr",
    "parse_condition",
    "parse_expression",
    # Errors
    "SmallCError",
    "CSyntaxError",
    "CSemanticError",
    "CValueRangeError",
    "UndeclaredIdentifierError",
    "DuplicateDeclarationError",
    "UnterminatedBlockError",
    "ZeroPageExhaustedError",
]
