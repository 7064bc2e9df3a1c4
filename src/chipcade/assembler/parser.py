"""
6502 Assembly Language Parser
=============================

This module turns lines of Chipcade assembly into statements the code
generator can process. It has two layers:

1. **parse_instruction()** reads a single instruction (mnemonic plus
   optional operand) and knows nothing about files or line numbers. A
   failure raises AssemblySyntaxError without a location; callers attach
   their own position.

2. **parse_line() / parse_source()** classify whole source lines into
   labels, `.const` definitions and instructions, attaching a
   SourceLocation to each.

Statement Types
---------------
```asm
Init:                   ; LabelDef
loop: DEX               ; LabelDef + Instruction on one line
.const SPEED $04        ; ConstDef
    LDA #$41            ; Instruction
```

Addressing Mode Detection
-------------------------
Operand forms are tried in a fixed order and the first form that matches
the whole operand wins:

| Order | Form                 | Example         |
|-------|----------------------|-----------------|
| 1     | Accumulator          | `A`             |
| 2     | Immediate            | `#$41`, `#<vec` |
| 3     | (byte),Y             | `($20),Y`       |
| 4     | (byte,X)             | `($20,X)`       |
| 5     | (word)               | `($FFFC)`       |
| 6     | word,X               | `$2000,X`       |
| 7     | word,Y               | `table,Y`       |
| 8     | word                 | `$2000`         |
| 9     | byte,X               | `$10,X`         |
| 10    | byte,Y               | `$10,Y`         |
| 11    | byte / bare symbol   | `$10`, `label`  |

Byte versus word is decided by how the literal is written, not by its
value: `$10` is a byte, `$0010` is a word. A bare symbol lands in the
last form; whether it means a zero-page address, an absolute address or
a branch target is settled by the code generator once the mnemonic is
considered. This ordering is what makes `BNE loop` and `LDA $10` mean
what 6502 programmers expect, so it must not be reordered.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional

from chipcade.cpu import AddressingMode, Sign, is_valid_instruction
from chipcade.errors import (
    AssemblySyntaxError,
    DirectiveError,
    SourceLocation,
)


# =============================================================================
# Operand and Statement Data Classes
# =============================================================================

@dataclass(frozen=True)
class Operand:
    """
    A parsed operand.

    Attributes:
        mode: The addressing mode the operand text matched
        value: Literal value (0 when the operand is a symbol)
        sign: Whether a byte literal carried an explicit minus sign
        symbol: Symbol name when the operand refers to a label/constant
        byte_select: "<" (low byte) or ">" (high byte) for immediate symbols
    """
    mode: AddressingMode
    value: int = 0
    sign: Sign = Sign.IMPLIED
    symbol: Optional[str] = None
    byte_select: Optional[str] = None


IMPLIED_OPERAND = Operand(AddressingMode.IMPLIED)


@dataclass(frozen=True)
class ParsedInstruction:
    """A (mnemonic, operand) pair. Legality is checked during assembly."""
    mnemonic: str
    operand: Operand

    @property
    def mode(self) -> AddressingMode:
        return self.operand.mode


@dataclass
class Statement:
    """
    Base class for all parsed statements.

    Every statement has a source location for error reporting and the
    original line text for listings.
    """
    location: SourceLocation
    source: str


@dataclass
class LabelDef(Statement):
    """Label definition: binds the current address to `name`."""
    name: str


@dataclass
class ConstDef(Statement):
    """
    `.const NAME value` definition.

    Exactly one of `value` and `symbol` is meaningful: a literal value, or
    the name of a previously defined constant to copy.
    """
    name: str
    value: int = 0
    symbol: Optional[str] = None


@dataclass
class Instruction(Statement):
    """Machine instruction statement."""
    parsed: ParsedInstruction

    @property
    def mnemonic(self) -> str:
        return self.parsed.mnemonic

    @property
    def operand(self) -> Operand:
        return self.parsed.operand


# =============================================================================
# Literal Parsing
# =============================================================================
# Each helper takes the complete text of a value and returns None when the
# text is not of that form. Nothing here raises: a None simply lets the
# next addressing-mode alternative have a go.
# =============================================================================

SYMBOL_PATTERN = r"[A-Za-z_][A-Za-z0-9_]*"

_SYMBOL_RE = re.compile(SYMBOL_PATTERN)
_HEX_RE = re.compile(r"(?:\$|0[xX])([0-9A-Fa-f]+)")
_BIN_RE = re.compile(r"(?:%|0[bB])([01]+)")
_DEC_RE = re.compile(r"(-?)([0-9]+)")
_CHAR_RE = re.compile(r"'([^']+)'")

# A byte value: (value, sign, symbol)
ByteValue = tuple[int, Sign, Optional[str]]
# A word value: (value, symbol)
WordValue = tuple[int, Optional[str]]


def _byte_hex(text: str) -> Optional[ByteValue]:
    m = _HEX_RE.fullmatch(text)
    if not m or len(m.group(1)) > 2:
        return None
    return int(m.group(1), 16), Sign.IMPLIED, None


def _byte_bin(text: str) -> Optional[ByteValue]:
    m = _BIN_RE.fullmatch(text)
    if not m or len(m.group(1)) > 8:
        return None
    return int(m.group(1), 2), Sign.IMPLIED, None


def _byte_dec(text: str) -> Optional[ByteValue]:
    m = _DEC_RE.fullmatch(text)
    if not m or len(m.group(2)) > 3:
        return None
    value = int(m.group(2))
    if value > 0xFF:
        return None
    sign = Sign.NEGATIVE if m.group(1) else Sign.IMPLIED
    return value, sign, None


def _byte_char(text: str) -> Optional[ByteValue]:
    m = _CHAR_RE.fullmatch(text)
    if not m:
        return None
    code = ord(m.group(1)[0])
    if code > 0xFF:
        return None
    return code, Sign.IMPLIED, None


def _byte_symbol(text: str) -> Optional[ByteValue]:
    if not _SYMBOL_RE.fullmatch(text):
        return None
    return 0, Sign.IMPLIED, text


def parse_byte_value(text: str) -> Optional[ByteValue]:
    """Parse a byte-sized literal or a symbol placeholder."""
    for parser in (_byte_hex, _byte_bin, _byte_dec, _byte_char, _byte_symbol):
        result = parser(text)
        if result is not None:
            return result
    return None


def _word_hex(text: str, loose: bool) -> Optional[WordValue]:
    m = _HEX_RE.fullmatch(text)
    if not m or (not loose and len(m.group(1)) <= 2):
        return None
    value = int(m.group(1), 16)
    if value > 0xFFFF:
        return None
    return value, None


def _word_bin(text: str, loose: bool) -> Optional[WordValue]:
    m = _BIN_RE.fullmatch(text)
    if not m or (not loose and len(m.group(1)) <= 8):
        return None
    value = int(m.group(1), 2)
    if value > 0xFFFF:
        return None
    return value, None


def _word_dec(text: str, loose: bool) -> Optional[WordValue]:
    if not text.isdigit():
        return None
    value = int(text)
    if value > 0xFFFF or (not loose and value <= 0xFF):
        return None
    return value, None


def parse_word_value(
    text: str,
    loose: bool = False,
    allow_symbol: bool = True,
) -> Optional[WordValue]:
    """
    Parse a word-sized literal.

    Strict parsing only accepts literals too long to be bytes ($1234, not
    $12). Loose parsing, used inside `( )` for JMP indirect, accepts any
    length.
    """
    for parser in (_word_hex, _word_bin, _word_dec):
        result = parser(text, loose)
        if result is not None:
            return result
    if allow_symbol and _SYMBOL_RE.fullmatch(text):
        return 0, text
    return None


def parse_number(text: str) -> Optional[int]:
    """
    Parse a numeric literal of any width ($hex, 0xhex, %bin, 0bbin,
    decimal with optional '-', 'c').

    Used by `.const` and by the command-line -D option.
    """
    text = text.strip()
    for regex, base in ((_HEX_RE, 16), (_BIN_RE, 2)):
        m = regex.fullmatch(text)
        if m:
            return int(m.group(1), base)
    m = _DEC_RE.fullmatch(text)
    if m:
        value = int(m.group(2))
        return -value if m.group(1) else value
    m = _CHAR_RE.fullmatch(text)
    if m:
        return ord(m.group(1)[0])
    return None


# =============================================================================
# Addressing Mode Alternatives
# =============================================================================

_INDIRECT_INDEXED_RE = re.compile(r"\(\s*(.+?)\s*\)\s*,\s*[Yy]")
_INDEXED_INDIRECT_RE = re.compile(r"\(\s*(.+?)\s*,\s*[Xx]\s*\)")
_INDIRECT_RE = re.compile(r"\(\s*(.+?)\s*\)")
_INDEX_X_RE = re.compile(r"(.+?)\s*,\s*[Xx]")
_INDEX_Y_RE = re.compile(r"(.+?)\s*,\s*[Yy]")
_BYTE_SELECT_RE = re.compile(r"([<>])(" + SYMBOL_PATTERN + r")")


def _accumulator(text: str) -> Optional[Operand]:
    if text.upper() == "A":
        return Operand(AddressingMode.ACCUMULATOR)
    return None


def _immediate(text: str) -> Optional[Operand]:
    if not text.startswith("#"):
        return None
    body = text[1:].strip()

    m = _BYTE_SELECT_RE.fullmatch(body)
    if m:
        return Operand(
            AddressingMode.IMMEDIATE, symbol=m.group(2), byte_select=m.group(1)
        )

    for parser in (_byte_hex, _byte_bin, _byte_char, _byte_dec, _byte_symbol):
        result = parser(body)
        if result is not None:
            value, sign, symbol = result
            return Operand(AddressingMode.IMMEDIATE, value, sign, symbol)
    return None


def _byte_form(regex: re.Pattern, mode: AddressingMode) -> Callable[[str], Optional[Operand]]:
    def alternative(text: str) -> Optional[Operand]:
        m = regex.fullmatch(text)
        if not m:
            return None
        result = parse_byte_value(m.group(1))
        if result is None:
            return None
        value, sign, symbol = result
        return Operand(mode, value, sign, symbol)
    return alternative


def _word_form(
    regex: Optional[re.Pattern],
    mode: AddressingMode,
    loose: bool = False,
    allow_symbol: bool = True,
) -> Callable[[str], Optional[Operand]]:
    def alternative(text: str) -> Optional[Operand]:
        if regex is None:
            inner = text
        else:
            m = regex.fullmatch(text)
            if not m:
                return None
            inner = m.group(1)
        result = parse_word_value(inner, loose=loose, allow_symbol=allow_symbol)
        if result is None:
            return None
        value, symbol = result
        return Operand(mode, value, symbol=symbol)
    return alternative


def _zero_page_or_relative(text: str) -> Optional[Operand]:
    result = parse_byte_value(text)
    if result is None:
        return None
    value, sign, symbol = result
    return Operand(AddressingMode.ZERO_PAGE_OR_RELATIVE, value, sign, symbol)


# First match wins. A bare symbol must fall through to the last entry, so
# the plain absolute form only accepts numeric literals.
OPERAND_ALTERNATIVES: tuple[Callable[[str], Optional[Operand]], ...] = (
    _accumulator,
    _immediate,
    _byte_form(_INDIRECT_INDEXED_RE, AddressingMode.INDIRECT_INDEXED),
    _byte_form(_INDEXED_INDIRECT_RE, AddressingMode.INDEXED_INDIRECT),
    _word_form(_INDIRECT_RE, AddressingMode.INDIRECT, loose=True),
    _word_form(_INDEX_X_RE, AddressingMode.ABSOLUTE_X),
    _word_form(_INDEX_Y_RE, AddressingMode.ABSOLUTE_Y),
    _word_form(None, AddressingMode.ABSOLUTE, allow_symbol=False),
    _byte_form(_INDEX_X_RE, AddressingMode.ZERO_PAGE_X),
    _byte_form(_INDEX_Y_RE, AddressingMode.ZERO_PAGE_Y),
    _zero_page_or_relative,
)


def parse_operand(text: str) -> Operand:
    """
    Parse operand text into an Operand.

    Args:
        text: Operand text with comments removed

    Raises:
        AssemblySyntaxError: If no addressing-mode form matches
    """
    text = text.strip()
    if not text:
        return IMPLIED_OPERAND
    for alternative in OPERAND_ALTERNATIVES:
        operand = alternative(text)
        if operand is not None:
            return operand
    raise AssemblySyntaxError(f"invalid operand '{text}'")


_MNEMONIC_RE = re.compile(r"\s*([A-Za-z]+)(.*)", re.DOTALL)


def parse_instruction(text: str) -> ParsedInstruction:
    """
    Parse one instruction: a mnemonic and an optional operand.

    The mnemonic is case-insensitive. An operand must be separated from
    the mnemonic by whitespace; no operand means implied mode.

    Raises:
        AssemblySyntaxError: On an unknown mnemonic or malformed operand.
            The error carries no location.
    """
    m = _MNEMONIC_RE.fullmatch(text)
    if not m:
        raise AssemblySyntaxError(f"expected instruction, found '{text.strip()}'")

    mnemonic = m.group(1).upper()
    if not is_valid_instruction(mnemonic):
        raise AssemblySyntaxError(f"unknown mnemonic '{m.group(1)}'")

    rest = m.group(2)
    if not rest.strip():
        return ParsedInstruction(mnemonic, IMPLIED_OPERAND)
    if not rest[0].isspace():
        raise AssemblySyntaxError(f"invalid operand '{rest.strip()}'")
    return ParsedInstruction(mnemonic, parse_operand(rest))


# =============================================================================
# Line Parsing
# =============================================================================

_LABEL_RE = re.compile(r"(" + SYMBOL_PATTERN + r")\s*:(.*)", re.DOTALL)
_CONST_RE = re.compile(r"\.const\s+(" + SYMBOL_PATTERN + r")\s+(.+)", re.IGNORECASE)


def strip_comment(line: str) -> str:
    """Remove a `;` comment, ignoring semicolons inside quotes."""
    quote: Optional[str] = None
    for i, ch in enumerate(line):
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == ";":
            return line[:i]
    return line


def parse_line(line: str, location: SourceLocation) -> list[Statement]:
    """
    Parse one source line into zero or more statements.

    Returns an empty list for blank and comment-only lines, and two
    statements for `label: INSTR`.
    """
    text = strip_comment(line).strip()
    if not text:
        return []

    statements: list[Statement] = []

    m = _LABEL_RE.fullmatch(text)
    if m:
        statements.append(LabelDef(location, line, m.group(1)))
        text = m.group(2).strip()
        if not text:
            return statements

    if text.startswith("."):
        statements.append(_parse_directive(text, line, location))
        return statements

    try:
        parsed = parse_instruction(text)
    except AssemblySyntaxError as e:
        raise e.with_location(location, line) from e
    statements.append(Instruction(location, line, parsed))
    return statements


def _parse_directive(text: str, line: str, location: SourceLocation) -> Statement:
    """Parse a `.const` directive; any other directive is an error here."""
    name = text.split(None, 1)[0].lower()

    if name == ".const":
        m = _CONST_RE.fullmatch(text)
        if not m:
            raise DirectiveError(
                "expected '.const NAME value'", location, source_line=line
            )
        const_name, value_text = m.group(1), m.group(2).strip()
        value = parse_number(value_text)
        if value is not None:
            if not -0x80 <= value <= 0xFFFF:
                raise DirectiveError(
                    f"constant value '{value_text}' does not fit in 16 bits",
                    location, source_line=line,
                )
            return ConstDef(location, line, const_name, value & 0xFFFF)
        if _SYMBOL_RE.fullmatch(value_text):
            return ConstDef(location, line, const_name, symbol=value_text)
        raise DirectiveError(
            f"invalid constant value '{value_text}'", location, source_line=line
        )

    if name == ".include":
        raise DirectiveError(
            ".include must be expanded before assembly",
            location,
            hint="assemble files with assemble_file() or expand_file()",
            source_line=line,
        )

    raise DirectiveError(f"unknown directive '{name}'", location, source_line=line)


def parse_source(source: str, filename: str = "<merged>") -> list[Statement]:
    """
    Parse complete source text into statements.

    Line numbers are 1-based positions in `source`, which is what the
    byte-to-line map reports.
    """
    statements: list[Statement] = []
    for line_no, line in enumerate(source.splitlines(), start=1):
        statements.extend(parse_line(line, SourceLocation(filename, line_no)))
    return statements
