"""
6502 Code Generator for the C Subset
====================================

This module emits the assembly for C-subset expressions, conditions and
memory accesses. Every emitted line is tagged with the C file and line
it came from, so the output has the same shape as an include-expanded
assembly file.

Code Generation Strategy
------------------------
All values are 8-bit and every expression leaves its result in A.
Variables live at fixed zero-page addresses. Binary operators spill
through scratch bytes in zero page:

| Address | Usage                          |
|---------|--------------------------------|
| $20     | Left operand                   |
| $21     | Right operand                  |
| $22     | Shift count                    |
| $23     | Left side of a comparison      |

    x + 1   ->  LDA $40         ; left
                STA $20
                LDA #$01        ; right
                STA $21
                LDA $20
                CLC
                ADC $21

The 6502 shifts one bit per instruction, so `<<` and `>>` become a loop
over ASL/LSR on $20, counting $22 down from (right & 7).

Comparison Strategy
-------------------
`left OP right` computes CMP(left, right) and branches to the false label:

| OP   | Branch to false when  |
|------|-----------------------|
| ==   | BNE                   |
| !=   | BEQ                   |
| <    | BCS                   |
| >=   | BCC                   |
| >    | BCC, then BEQ         |
| <=   | neither BCC nor BEQ   |

`<=` has no single-flag test; it branches to a fresh "ok" label on
BCC or BEQ and otherwise JMPs to the false label.
"""

from pathlib import Path

from chipcade.assembler.includes import ExpandedSource, LineOrigin
from chipcade.smallc.expressions import (
    AddrExpr,
    Bin,
    BinOp,
    CExpr,
    CmpOp,
    Imm,
    Mem,
    Not,
    Term,
    Var,
)


# Zero-page scratch bytes
TMP_LHS = 0x20
TMP_RHS = 0x21
TMP_CNT = 0x22
TMP_CMP = 0x23


class LabelAllocator:
    """
    Hands out unique generated labels.

    One allocator serves a whole compilation so numbers never repeat,
    even across files.
    """

    def __init__(self):
        self._counter = 0

    def next(self, prefix: str) -> str:
        label = f"{prefix}{self._counter}"
        self._counter += 1
        return label

    @property
    def count(self) -> int:
        return self._counter


class AsmEmitter:
    """
    Collects generated assembly lines with their C source origins.

    Attributes:
        labels: The shared label allocator
    """

    def __init__(self, labels: LabelAllocator):
        self.labels = labels
        self._lines: list[tuple[str, LineOrigin]] = []
        self._origin = LineOrigin(Path("<c>"), 0)

    # =========================================================================
    # Assembly Output Methods
    # =========================================================================

    def set_origin(self, file: Path, line: int) -> None:
        """Tag subsequent lines with this C file and line."""
        self._origin = LineOrigin(file, line)

    def emit(self, line: str = "") -> None:
        """Emit a line of assembly."""
        self._lines.append((line, self._origin))

    def emit_label(self, label: str) -> None:
        """Emit a label definition."""
        self.emit(f"{label}:")

    def emit_instruction(self, mnemonic: str, operand: str = "") -> None:
        """Emit an instruction with optional operand."""
        if operand:
            self.emit(f"        {mnemonic:<8}{operand}")
        else:
            self.emit(f"        {mnemonic}")

    def __len__(self) -> int:
        return len(self._lines)

    def to_expanded(self) -> ExpandedSource:
        expanded = ExpandedSource()
        for line, origin in self._lines:
            expanded.append_line(line, origin)
        return expanded

    # =========================================================================
    # Terms and Memory
    # =========================================================================

    def emit_term(self, term: Term) -> None:
        """Load a term into A."""
        if isinstance(term, Imm):
            self.emit_instruction("LDA", f"#${term.value:02X}")
        else:
            self.emit_instruction("LDA", f"${term.address:02X}")

    def _emit_absolute(self, mnemonic: str, addr: AddrExpr) -> None:
        offset = addr.offset
        if offset is None:
            self.emit_instruction(mnemonic, f"${addr.base:04X}")
        elif isinstance(offset, Imm):
            self.emit_instruction(mnemonic, f"${(addr.base + offset.value) & 0xFFFF:04X}")
        else:
            self.emit_instruction("LDY", f"${offset.address:02X}")
            self.emit_instruction(mnemonic, f"${addr.base:04X},Y")

    def emit_load(self, addr: AddrExpr) -> None:
        """Load the byte at an address expression into A."""
        self._emit_absolute("LDA", addr)

    def emit_store(self, addr: AddrExpr) -> None:
        """Store A to an address expression."""
        self._emit_absolute("STA", addr)

    def emit_store_var(self, address: int) -> None:
        self.emit_instruction("STA", f"${address:02X}")

    # =========================================================================
    # Expressions
    # =========================================================================

    def emit_expr(self, expr: CExpr) -> None:
        """Evaluate an expression tree into A."""
        if isinstance(expr, (Imm, Var)):
            self.emit_term(expr)

        elif isinstance(expr, Mem):
            self.emit_load(expr.address)

        elif isinstance(expr, Not):
            self.emit_expr(expr.operand)
            self.emit_instruction("EOR", "#$FF")

        elif isinstance(expr, Bin):
            self.emit_expr(expr.left)
            self.emit_instruction("STA", f"${TMP_LHS:02X}")
            self.emit_expr(expr.right)
            self.emit_instruction("STA", f"${TMP_RHS:02X}")
            self.emit_instruction("LDA", f"${TMP_LHS:02X}")
            self._emit_binary_op(expr.op)

    def _emit_binary_op(self, op: BinOp) -> None:
        """Combine A (left, also in $20) with $21."""
        if op == BinOp.ADD:
            self.emit_instruction("CLC")
            self.emit_instruction("ADC", f"${TMP_RHS:02X}")
        elif op == BinOp.SUB:
            self.emit_instruction("SEC")
            self.emit_instruction("SBC", f"${TMP_RHS:02X}")
        elif op == BinOp.AND:
            self.emit_instruction("AND", f"${TMP_RHS:02X}")
        elif op == BinOp.XOR:
            self.emit_instruction("EOR", f"${TMP_RHS:02X}")
        elif op == BinOp.OR:
            self.emit_instruction("ORA", f"${TMP_RHS:02X}")
        else:
            self._emit_shift(op)

    def _emit_shift(self, op: BinOp) -> None:
        loop_label = self.labels.next("CSHIFT")
        done_label = self.labels.next("CSHIFTE")
        shift = "ASL" if op == BinOp.SHL else "LSR"

        self.emit_instruction("STA", f"${TMP_LHS:02X}")
        self.emit_instruction("LDA", f"${TMP_RHS:02X}")
        self.emit_instruction("AND", "#$07")
        self.emit_instruction("STA", f"${TMP_CNT:02X}")
        self.emit_label(loop_label)
        self.emit_instruction("LDA", f"${TMP_CNT:02X}")
        self.emit_instruction("BEQ", done_label)
        self.emit_instruction(shift, f"${TMP_LHS:02X}")
        self.emit_instruction("DEC", f"${TMP_CNT:02X}")
        self.emit_instruction("JMP", loop_label)
        self.emit_label(done_label)
        self.emit_instruction("LDA", f"${TMP_LHS:02X}")

    # =========================================================================
    # Conditions
    # =========================================================================

    def emit_condition(
        self,
        left: CExpr,
        op: CmpOp,
        right: CExpr,
        false_label: str,
    ) -> None:
        """Emit a comparison that jumps to `false_label` when it does not hold."""
        self.emit_expr(left)
        self.emit_instruction("STA", f"${TMP_CMP:02X}")
        self.emit_expr(right)
        self.emit_instruction("STA", f"${TMP_RHS:02X}")
        self.emit_instruction("LDA", f"${TMP_CMP:02X}")
        self.emit_instruction("CMP", f"${TMP_RHS:02X}")

        if op == CmpOp.EQ:
            self.emit_instruction("BNE", false_label)
        elif op == CmpOp.NE:
            self.emit_instruction("BEQ", false_label)
        elif op == CmpOp.LT:
            self.emit_instruction("BCS", false_label)
        elif op == CmpOp.GE:
            self.emit_instruction("BCC", false_label)
        elif op == CmpOp.GT:
            self.emit_instruction("BCC", false_label)
            self.emit_instruction("BEQ", false_label)
        else:
            ok_label = self.labels.next("CCMPOK")
            self.emit_instruction("BCC", ok_label)
            self.emit_instruction("BEQ", ok_label)
            self.emit_instruction("JMP", false_label)
            self.emit_label(ok_label)
