# =============================================================================
# test_c_expressions.py - C-Subset Expression Tests
# =============================================================================
# Tests for expression, condition and memory-access parsing, and for the
# assembly emitted for them.
#
# Test coverage includes:
#   - Tokenizing, including bracketed memory accesses
#   - Operator precedence
#   - Address expressions and sprite fields
#   - Condition splitting
#   - Emitted instruction sequences
# =============================================================================

import pytest

from chipcade.smallc.codegen import AsmEmitter, LabelAllocator
from chipcade.smallc.errors import (
    CSemanticError,
    CSyntaxError,
    CValueRangeError,
    SmallCError,
)
from chipcade.smallc.expressions import (
    AddrExpr,
    Bin,
    BinOp,
    CmpOp,
    Imm,
    Mem,
    Not,
    Scope,
    Var,
    parse_addr_expr,
    parse_condition,
    parse_expression,
    parse_mem_access,
    parse_u16_token,
    tokenize,
)


SCOPE = Scope(
    variables={"x": 0x40, "i": 0x41},
    constants={"VRAM": 0x2000, "SPRITE_RAM": 0x8230},
)


def emitted(emitter: AsmEmitter) -> list[str]:
    return emitter.to_expanded().text.split()


# =============================================================================
# Tokenizer Tests
# =============================================================================

class TestTokenize:
    """Test splitting expressions into tokens."""

    def test_operators(self):
        """Operators split tokens with or without spaces."""
        assert tokenize("x<<2") == ["x", "<<", "2"]
        assert tokenize("~(x + 1)") == ["~", "(", "x", "+", "1", ")"]

    def test_brackets_stay_together(self):
        """A memory access is one token even with operators inside."""
        assert tokenize("mem[VRAM + 1] + 2") == ["mem[VRAM + 1]", "+", "2"]

    def test_unclosed_bracket(self):
        with pytest.raises(CSyntaxError):
            tokenize("mem[VRAM + 1")

    def test_empty(self):
        with pytest.raises(CSyntaxError):
            tokenize("   ")


# =============================================================================
# Term Tests
# =============================================================================

class TestTerms:
    """Test literals and names."""

    def test_hex_forms(self):
        """Both 0x and $ introduce hex."""
        assert parse_u16_token("0x2000", SCOPE) == 0x2000
        assert parse_u16_token("$2000", SCOPE) == 0x2000

    def test_constant(self):
        assert parse_u16_token("VRAM", SCOPE) == 0x2000

    def test_too_wide(self):
        with pytest.raises(SmallCError):
            parse_u16_token("70000", SCOPE)

    def test_unknown_name(self):
        with pytest.raises(CSemanticError):
            parse_u16_token("nope", SCOPE)

    def test_value_must_fit_a_byte(self):
        """Expression literals are 8-bit."""
        with pytest.raises(CValueRangeError) as exc_info:
            parse_expression("300", SCOPE)
        message = str(exc_info.value)
        assert "invalid expression '300'" in message
        assert "does not fit in 8 bits" in message


# =============================================================================
# Expression Tree Tests
# =============================================================================

class TestParseExpression:
    """Test the expression grammar."""

    def test_single_variable(self):
        assert parse_expression("x", SCOPE) == Var(0x40)

    def test_additive_left_assoc(self):
        """x - 1 + 2 is (x - 1) + 2."""
        tree = parse_expression("x - 1 + 2", SCOPE)
        assert tree == Bin(BinOp.ADD, Bin(BinOp.SUB, Var(0x40), Imm(1)), Imm(2))

    def test_precedence(self):
        """& binds tighter than |."""
        tree = parse_expression("x | i & 1", SCOPE)
        assert tree == Bin(BinOp.OR, Var(0x40), Bin(BinOp.AND, Var(0x41), Imm(1)))

    def test_shift_below_additive(self):
        """x << 1 + 1 shifts by two."""
        tree = parse_expression("x << 1 + 1", SCOPE)
        assert tree == Bin(BinOp.SHL, Var(0x40), Bin(BinOp.ADD, Imm(1), Imm(1)))

    def test_grouping_and_not(self):
        tree = parse_expression("~(x ^ 0xFF)", SCOPE)
        assert tree == Not(Bin(BinOp.XOR, Var(0x40), Imm(0xFF)))

    def test_memory_read(self):
        tree = parse_expression("mem[VRAM + i] + 1", SCOPE)
        assert tree == Bin(BinOp.ADD, Mem(AddrExpr(0x2000, Var(0x41))), Imm(1))

    def test_unbalanced(self):
        with pytest.raises(CSyntaxError) as exc_info:
            parse_expression("(x + 1", SCOPE)
        assert "expected ')'" in str(exc_info.value)

    def test_trailing_token(self):
        with pytest.raises(CSyntaxError):
            parse_expression("x )", SCOPE)


# =============================================================================
# Memory Access Tests
# =============================================================================

class TestMemoryAccess:
    """Test memory access forms and address expressions."""

    def test_forms(self):
        assert parse_mem_access("mem[VRAM + 3]", SCOPE) == "VRAM + 3"
        assert parse_mem_access("data[$10]", SCOPE) == "$10"
        assert parse_mem_access("[$2000]", SCOPE) == "$2000"
        assert parse_mem_access("sprite_data[5]", SCOPE) == "SPRITE_RAM + 5"

    def test_not_an_access(self):
        assert parse_mem_access("x", SCOPE) is None
        assert parse_mem_access("sprite[0].bogus", SCOPE) is None
        assert parse_mem_access("mem[$2000] + mem[$2001]", SCOPE) is None
        assert parse_mem_access("[$10] & [$11]", SCOPE) is None

    def test_sprite_fields(self):
        """Sprite records are 8 bytes."""
        assert parse_mem_access("sprite[0].x", SCOPE) == "SPRITE_RAM + 0"
        assert parse_mem_access("sprite[2].tile", SCOPE) == "SPRITE_RAM + 18"
        assert parse_mem_access("sprite[1].color2", SCOPE) == "SPRITE_RAM + 14"

    def test_high_sprite_folds_address(self):
        """Records past an 8-bit offset become a plain address."""
        text = parse_mem_access("sprite[40].y", SCOPE)
        assert parse_addr_expr(text, SCOPE) == AddrExpr(0x8230 + 40 * 8 + 1)

    def test_sprite_index_limit(self):
        with pytest.raises(CValueRangeError):
            parse_mem_access("sprite[64].x", SCOPE)

    def test_addr_expr(self):
        assert parse_addr_expr("VRAM", SCOPE) == AddrExpr(0x2000)
        assert parse_addr_expr("VRAM + 3", SCOPE) == AddrExpr(0x2000, Imm(3))
        assert parse_addr_expr("VRAM + i", SCOPE) == AddrExpr(0x2000, Var(0x41))

    def test_addr_expr_too_many_parts(self):
        with pytest.raises(CSyntaxError) as exc_info:
            parse_addr_expr("VRAM + 1 + 2", SCOPE)
        assert "'BASE + OFFSET'" in str(exc_info.value)

    def test_variable_base_rejected(self):
        with pytest.raises(CSemanticError):
            parse_addr_expr("x + 1", SCOPE)


# =============================================================================
# Condition Tests
# =============================================================================

class TestParseCondition:
    """Test splitting comparisons."""

    @pytest.mark.parametrize("source,op", [
        ("x == 1", CmpOp.EQ),
        ("x != 1", CmpOp.NE),
        ("x >= 1", CmpOp.GE),
        ("x <= 1", CmpOp.LE),
        ("x > 1", CmpOp.GT),
        ("x < 1", CmpOp.LT),
    ])
    def test_operators(self, source, op):
        assert parse_condition(source) == ("x", op, "1")

    def test_missing_operator(self):
        with pytest.raises(CSyntaxError):
            parse_condition("x")

    def test_missing_side(self):
        with pytest.raises(CSyntaxError):
            parse_condition("== 1")


# =============================================================================
# Emitter Tests
# =============================================================================

class TestEmitter:
    """Test emitted instruction sequences."""

    def setup_method(self):
        self.out = AsmEmitter(LabelAllocator())

    def test_indexed_load(self):
        """A variable offset goes through Y."""
        self.out.emit_load(AddrExpr(0x2000, Var(0x40)))
        assert emitted(self.out) == ["LDY", "$40", "LDA", "$2000,Y"]

    def test_constant_offset_folded(self):
        self.out.emit_store(AddrExpr(0x2000, Imm(3)))
        assert emitted(self.out) == ["STA", "$2003"]

    def test_addition(self):
        self.out.emit_expr(Bin(BinOp.ADD, Var(0x40), Imm(1)))
        assert emitted(self.out) == [
            "LDA", "$40", "STA", "$20",
            "LDA", "#$01", "STA", "$21",
            "LDA", "$20", "CLC", "ADC", "$21",
        ]

    def test_not(self):
        self.out.emit_expr(Not(Var(0x40)))
        assert emitted(self.out) == ["LDA", "$40", "EOR", "#$FF"]

    def test_shift_loop_labels(self):
        """Each shift gets its own loop labels."""
        self.out.emit_expr(Bin(BinOp.SHL, Var(0x40), Imm(2)))
        self.out.emit_expr(Bin(BinOp.SHR, Var(0x40), Imm(1)))
        words = emitted(self.out)
        assert "CSHIFT0:" in words
        assert "CSHIFTE1:" in words
        assert "CSHIFT2:" in words
        assert "ASL" in words and "LSR" in words

    @pytest.mark.parametrize("op,branches", [
        (CmpOp.EQ, ["BNE", "F"]),
        (CmpOp.NE, ["BEQ", "F"]),
        (CmpOp.LT, ["BCS", "F"]),
        (CmpOp.GE, ["BCC", "F"]),
        (CmpOp.GT, ["BCC", "F", "BEQ", "F"]),
        (CmpOp.LE, ["BCC", "CCMPOK0", "BEQ", "CCMPOK0", "JMP", "F", "CCMPOK0:"]),
    ])
    def test_condition_branches(self, op, branches):
        """Each comparison branches to the false label when it fails."""
        self.out.emit_condition(Var(0x40), op, Imm(3), "F")
        words = emitted(self.out)
        assert words[:10] == [
            "LDA", "$40", "STA", "$23",
            "LDA", "#$03", "STA", "$21",
            "LDA", "$23",
        ]
        assert words[10:12] == ["CMP", "$21"]
        assert words[12:] == branches
