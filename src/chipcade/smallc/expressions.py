"""
C-Subset Expressions
====================

Parsing for the expression fragments of the C subset: right-hand sides,
conditions, memory accesses and their address expressions. Everything
here works on strings taken from one source line and raises errors
without a location; the compiler adds file and line.

Expression Grammar
------------------
Precedence, lowest first:

| Level | Operators | Node          |
|-------|-----------|---------------|
| 1     | `\\|`     | Bin(OR)       |
| 2     | `^`       | Bin(XOR)      |
| 3     | `&`       | Bin(AND)      |
| 4     | `<< >>`   | Bin(SHL/SHR)  |
| 5     | `+ -`     | Bin(ADD/SUB)  |
| 6     | `~ ( )`   | Not, grouping |

Atoms are memory accesses (`mem[...]`, `data[...]`, `[...]`,
`sprite_data[...]`, `sprite[i].field`) and terms (a variable, a named
constant, `0x`/`$` hex or decimal). All arithmetic is 8-bit.

Memory Access
-------------
An address expression is `BASE` or `BASE + OFFSET`. BASE is a 16-bit
constant or literal; OFFSET is an 8-bit literal or a single variable,
compiled as an indexed access through Y:

    mem[VRAM + 3]       ->  LDA $2003
    mem[VRAM + i]       ->  LDY $40
                            LDA $2000,Y
    sprite[2].tile      ->  SPRITE_RAM + 18

Sprite records are 8 bytes:

| Offset | Field            |
|--------|------------------|
| 0      | x                |
| 1      | y                |
| 2      | tile             |
| 3      | flags            |
| 4      | c0 / color0      |
| 5      | c1 / color1      |
| 6      | c2 / color2      |
| 7      | reserved         |
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from chipcade.smallc.errors import (
    CSemanticError,
    CSyntaxError,
    CValueRangeError,
    SmallCError,
)


# =============================================================================
# Symbol Scope
# =============================================================================

@dataclass
class Scope:
    """
    Names visible while compiling one statement.

    Attributes:
        variables: Variable name -> zero-page address (globals plus locals)
        constants: Constant name -> 16-bit value
    """
    variables: dict[str, int] = field(default_factory=dict)
    constants: dict[str, int] = field(default_factory=dict)

    def with_variable(self, name: str, address: int) -> "Scope":
        variables = dict(self.variables)
        variables[name] = address
        return Scope(variables, self.constants)


# =============================================================================
# Expression Tree
# =============================================================================

class BinOp(Enum):
    """Binary operators, valued by their source token."""
    ADD = "+"
    SUB = "-"
    SHL = "<<"
    SHR = ">>"
    AND = "&"
    XOR = "^"
    OR = "|"


class CmpOp(Enum):
    """Comparison operators, valued by their source token."""
    EQ = "=="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="


@dataclass(frozen=True)
class Imm:
    """An 8-bit immediate value."""
    value: int


@dataclass(frozen=True)
class Var:
    """A variable, by zero-page address."""
    address: int


Term = Union[Imm, Var]


@dataclass(frozen=True)
class AddrExpr:
    """`BASE` or `BASE + OFFSET`."""
    base: int
    offset: Optional[Term] = None


@dataclass(frozen=True)
class Mem:
    """A byte read from memory."""
    address: AddrExpr


@dataclass(frozen=True)
class Not:
    """Bitwise complement (`~`)."""
    operand: "CExpr"


@dataclass(frozen=True)
class Bin:
    """Binary operation."""
    op: BinOp
    left: "CExpr"
    right: "CExpr"


CExpr = Union[Imm, Var, Mem, Not, Bin]


# =============================================================================
# Identifiers, Tokens and Terms
# =============================================================================

SPRITE_FIELDS = {
    "x": 0,
    "y": 1,
    "tile": 2,
    "flags": 3,
    "c0": 4,
    "color0": 4,
    "c1": 5,
    "color1": 5,
    "c2": 6,
    "color2": 6,
    "reserved": 7,
}

SPRITE_RECORD_SIZE = 8
MAX_SPRITE_INDEX = 63

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_HEX_DIGITS_RE = re.compile(r"[0-9A-Fa-f]+")
_DEC_RE = re.compile(r"[0-9]+")


def validate_ident(name: str) -> None:
    """Raise CSyntaxError unless `name` is a C identifier."""
    if not name:
        raise CSyntaxError("empty identifier")
    if not _IDENT_RE.fullmatch(name):
        raise CSyntaxError(f"'{name}' is not a valid identifier")


def parse_u16_token(token: str, scope: Scope) -> int:
    """
    Parse a 16-bit value: named constant, `0x`/`$` hex, or decimal.

    Variables are rejected here; this is used where only compile-time
    values make sense (address bases, sprite indices).
    """
    if token in scope.variables:
        raise CSemanticError(f"variable '{token}' is not allowed in this expression")
    if token in scope.constants:
        return scope.constants[token]

    for prefix in ("0x", "$"):
        if token.startswith(prefix):
            digits = token[len(prefix):]
            if not _HEX_DIGITS_RE.fullmatch(digits) or int(digits, 16) > 0xFFFF:
                raise CSyntaxError(f"invalid hex literal '{token}'")
            return int(digits, 16)

    if _DEC_RE.fullmatch(token) and int(token) <= 0xFFFF:
        return int(token)
    raise CSemanticError(f"unknown token '{token}'")


def parse_term(token: str, scope: Scope) -> Term:
    """Parse a variable or an 8-bit value."""
    if token in scope.variables:
        return Var(scope.variables[token])
    value = parse_u16_token(token, scope)
    if value > 0xFF:
        raise CValueRangeError(f"value '{token}' does not fit in 8 bits")
    return Imm(value)


# =============================================================================
# Memory Access
# =============================================================================

def parse_mem_access(expr: str, scope: Scope) -> Optional[str]:
    """
    Recognize a memory-access form and return its address expression text.

    Returns None when `expr` is not a memory access at all, so callers
    can fall back to treating it as a plain expression or variable.
    """
    s = expr.strip()
    for prefix in ("[", "mem[", "data["):
        if s.startswith(prefix):
            return _bracket_body(s, len(prefix) - 1)
    if s.startswith("sprite_data["):
        body = _bracket_body(s, len("sprite_data"))
        return None if body is None else f"SPRITE_RAM + {body}"
    return _parse_sprite_access(s, scope)


def _bracket_body(s: str, open_idx: int) -> Optional[str]:
    """
    Text inside the `[` at `open_idx`, if that bracket closes at the end.

    `mem[$2000] + mem[$2001]` gives None: its first bracket closes early.
    """
    depth = 0
    for i in range(open_idx, len(s)):
        if s[i] == "[":
            depth += 1
        elif s[i] == "]":
            depth -= 1
            if depth == 0:
                if i != len(s) - 1:
                    return None
                return s[open_idx + 1:i].strip()
    return None


def _parse_sprite_access(s: str, scope: Scope) -> Optional[str]:
    """`sprite[i].field` -> "SPRITE_RAM + (i*8 + field offset)"."""
    if not s.startswith("sprite["):
        return None
    rest = s[len("sprite["):]
    close = rest.find("]")
    if close < 0:
        return None
    index_token = rest[:close].strip()
    if not index_token:
        return None

    after = rest[close + 1:].lstrip()
    if not after.startswith("."):
        return None
    field_name = after[1:].strip()
    if not field_name or any(ch.isspace() for ch in field_name):
        return None
    if field_name not in SPRITE_FIELDS:
        return None

    try:
        index = parse_u16_token(index_token, scope)
    except SmallCError:
        return None
    if index > MAX_SPRITE_INDEX:
        raise CValueRangeError(
            f"sprite index {index} is out of range (0-{MAX_SPRITE_INDEX})"
        )

    offset = index * SPRITE_RECORD_SIZE + SPRITE_FIELDS[field_name]
    # Records from index 32 on lie beyond an 8-bit offset.
    if offset > 0xFF and "SPRITE_RAM" in scope.constants:
        return f"${(scope.constants['SPRITE_RAM'] + offset) & 0xFFFF:04X}"
    return f"SPRITE_RAM + {offset}"


def parse_addr_expr(expr: str, scope: Scope) -> AddrExpr:
    """Parse `BASE` or `BASE + OFFSET`."""
    parts = [p.strip() for p in expr.split("+")]
    parts = [p for p in parts if p]
    if not parts or len(parts) > 2:
        raise CSyntaxError("only 'BASE' or 'BASE + OFFSET' is supported")
    base = parse_u16_token(parts[0], scope)
    offset = parse_term(parts[1], scope) if len(parts) == 2 else None
    return AddrExpr(base, offset)


# =============================================================================
# Tokenizer
# =============================================================================

_SINGLE_CHAR_OPERATORS = frozenset("+-&|^~()")
_TOKEN_STOP = frozenset("+-&|^~<>()")


def tokenize(expr: str) -> list[str]:
    """
    Split an expression into tokens.

    Operators are `<< >> + - & | ^ ~ ( )`; every other run of characters
    is one token. A `[...]` span stays inside its token, so
    `mem[IO + 1]` is a single atom.
    """
    tokens: list[str] = []
    i = 0
    n = len(expr)
    while i < n:
        ch = expr[i]
        if ch.isspace():
            i += 1
            continue
        if expr.startswith("<<", i) or expr.startswith(">>", i):
            tokens.append(expr[i:i + 2])
            i += 2
            continue
        if ch in _SINGLE_CHAR_OPERATORS:
            tokens.append(ch)
            i += 1
            continue

        start = i
        depth = 0
        while i < n:
            ch = expr[i]
            if ch == "[":
                depth += 1
            elif ch == "]" and depth > 0:
                depth -= 1
            elif depth == 0 and (ch.isspace() or ch in _TOKEN_STOP):
                break
            i += 1
        if start == i:
            raise CSyntaxError(f"unexpected token '{expr[i]}'")
        if depth > 0:
            raise CSyntaxError("expected ']'")
        tokens.append(expr[start:i])

    if not tokens:
        raise CSyntaxError("empty expression")
    return tokens


# =============================================================================
# Expression Parser
# =============================================================================

class ExpressionParser:
    """
    Recursive-descent parser producing a CExpr tree.

    Usage:
        tree = ExpressionParser(tokenize("x + 1"), scope).parse()
    """

    def __init__(self, tokens: list[str], scope: Scope):
        self._tokens = tokens
        self._pos = 0
        self._scope = scope

    def parse(self) -> CExpr:
        node = self._parse_or()
        if self._pos != len(self._tokens):
            raise CSyntaxError(f"trailing token '{self._tokens[self._pos]}'")
        return node

    def _peek(self) -> Optional[str]:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _binary(self, next_level, ops: tuple[BinOp, ...]) -> CExpr:
        node = next_level()
        symbols = {op.value: op for op in ops}
        while self._peek() in symbols:
            op = symbols[self._tokens[self._pos]]
            self._pos += 1
            node = Bin(op, node, next_level())
        return node

    def _parse_or(self) -> CExpr:
        return self._binary(self._parse_xor, (BinOp.OR,))

    def _parse_xor(self) -> CExpr:
        return self._binary(self._parse_and, (BinOp.XOR,))

    def _parse_and(self) -> CExpr:
        return self._binary(self._parse_shift, (BinOp.AND,))

    def _parse_shift(self) -> CExpr:
        return self._binary(self._parse_additive, (BinOp.SHL, BinOp.SHR))

    def _parse_additive(self) -> CExpr:
        return self._binary(self._parse_unary, (BinOp.ADD, BinOp.SUB))

    def _parse_unary(self) -> CExpr:
        token = self._peek()
        if token == "~":
            self._pos += 1
            return Not(self._parse_unary())
        if token == "(":
            self._pos += 1
            inner = self._parse_or()
            if self._peek() != ")":
                raise CSyntaxError("expected ')'")
            self._pos += 1
            return inner
        if token is None:
            raise CSyntaxError("unexpected end of expression")
        if token == ")":
            raise CSyntaxError("unexpected ')'")

        mem = parse_mem_access(token, self._scope)
        if mem is not None:
            address = parse_addr_expr(mem, self._scope)
            self._pos += 1
            return Mem(address)

        self._pos += 1
        return parse_term(token, self._scope)


def parse_expression(source: str, scope: Scope) -> CExpr:
    """
    Parse expression text into a CExpr tree.

    Errors are prefixed with "invalid expression '<source>'".
    """
    try:
        return ExpressionParser(tokenize(source), scope).parse()
    except SmallCError as e:
        raise e.wrapped(f"invalid expression '{source}'") from e


# =============================================================================
# Conditions
# =============================================================================

# Searched in this order; the first operator found anywhere in the text
# splits it.
_CONDITION_OPERATORS = (CmpOp.EQ, CmpOp.NE, CmpOp.GE, CmpOp.LE, CmpOp.GT, CmpOp.LT)


def parse_condition(source: str) -> tuple[str, CmpOp, str]:
    """
    Split `left OP right` into its parts.

    Both sides are left as text; they are compiled as expressions later.
    """
    for op in _CONDITION_OPERATORS:
        idx = source.find(op.value)
        if idx < 0:
            continue
        left = source[:idx].strip()
        right = source[idx + len(op.value):].strip()
        if not left or not right:
            raise CSyntaxError("missing left or right side")
        return left, op, right
    raise CSyntaxError("expected comparison operator")
