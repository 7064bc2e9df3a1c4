# =============================================================================
# test_assembler.py - Full Assembler Integration Tests
# =============================================================================
# End-to-end tests for the 6502 assembler, from merged source text to the
# image, label table and byte -> line map.
#
# Test coverage includes:
#   - Complete program assembly
#   - Encoding selection for symbols and byte operands
#   - Branch displacement and its range limits
#   - Error reporting with line numbers
#   - Listing, symbol and binary output
# =============================================================================

import pytest

from chipcade.assembler import Assembler, assemble
from chipcade.assembler.codegen import select_encoding
from chipcade.assembler.parser import parse_operand
from chipcade.cpu import AddressingMode
from chipcade.errors import (
    AddressingModeError,
    AssemblerError,
    AssemblySyntaxError,
    BranchRangeError,
    DuplicateSymbolError,
    OperandRangeError,
    UndefinedSymbolError,
)


def code_of(source: str, origin: int = 0x0200) -> bytes:
    return assemble(source, origin=origin).program


# =============================================================================
# Full Assembly Pipeline Tests
# =============================================================================

class TestFullPipeline:
    """Test the complete assembly pipeline from source to image."""

    def test_store_a_letter(self):
        """Assemble the smallest useful program."""
        out = assemble("LDA #$41\nSTA $2000\nBRK\n", origin=0x0200)
        assert out.program == bytes([0xA9, 0x41, 0x8D, 0x00, 0x20, 0x00])
        assert out.labels == {}
        assert out.line_map == [1, 1, 2, 2, 2, 3]

    def test_line_map_skips_non_code_lines(self):
        """Comments, constants and labels emit no bytes."""
        source = (
            "; setup\n"
            ".const LETTER $41\n"
            "Init:\n"
            "    LDA #LETTER\n"
            "    RTS\n"
        )
        out = assemble(source)
        assert out.program == bytes([0xA9, 0x41, 0x60])
        assert out.line_map == [4, 4, 5]
        assert len(out.line_map) == len(out.program)

    def test_deterministic(self):
        """The same input always gives the same output."""
        source = "Init:\n  LDX #$00\nloop: INX\n  BNE loop\n  JMP Init\n"
        first = assemble(source)
        second = assemble(source)
        assert first == second

    def test_forward_reference(self):
        """A label may be used before it is defined."""
        code = code_of("JMP end\nNOP\nend: RTS\n")
        assert code == bytes([0x4C, 0x04, 0x02, 0xEA, 0x60])

    def test_labels_exclude_constants(self):
        """The label table holds only `name:` definitions."""
        out = assemble(".const SPEED $04\nInit:\nNOP\nUpdate:\nRTS\n")
        assert out.labels == {"Init": 0x0200, "Update": 0x0201}

    def test_origin(self):
        """Labels are bound relative to the origin."""
        out = assemble("start: NOP\n", origin=0x4000)
        assert out.labels == {"start": 0x4000}

    def test_origin_out_of_range(self):
        """The origin must be a 16-bit address."""
        with pytest.raises(ValueError):
            Assembler(origin=0x10000)

    def test_program_past_end_of_memory(self):
        """Code may not run past $FFFF."""
        with pytest.raises(OperandRangeError):
            code_of("NOP\nNOP\n", origin=0xFFFF)


# =============================================================================
# Encoding Tests
# =============================================================================

class TestEncoding:
    """Test opcode and operand bytes for each addressing mode."""

    @pytest.mark.parametrize("source,expected", [
        ("LDA $10", [0xA5, 0x10]),
        ("LDA $0010", [0xAD, 0x10, 0x00]),
        ("LDA $10,X", [0xB5, 0x10]),
        ("LDA $2000,X", [0xBD, 0x00, 0x20]),
        ("LDA $2000,Y", [0xB9, 0x00, 0x20]),
        ("LDA ($20,X)", [0xA1, 0x20]),
        ("LDA ($20),Y", [0xB1, 0x20]),
        ("JMP ($FFFC)", [0x6C, 0xFC, 0xFF]),
        ("STX $10,Y", [0x96, 0x10]),
        ("ASL A", [0x0A]),
        ("LDA #-1", [0xA9, 0xFF]),
        ("LDA #%10000001", [0xA9, 0x81]),
    ])
    def test_modes(self, source, expected):
        """Each operand form picks its own opcode."""
        assert code_of(source) == bytes(expected)

    def test_bare_asl_is_accumulator(self):
        """ASL without an operand means ASL A."""
        assert code_of("ASL") == bytes([0x0A])

    def test_symbol_prefers_absolute(self):
        """A bare symbol uses absolute addressing when available."""
        assert code_of(".const PTR $20\nLDA PTR") == bytes([0xAD, 0x20, 0x00])

    def test_symbol_zero_page_only(self):
        """A symbol with ,Y uses zero page when absolute,Y is missing."""
        assert code_of(".const ZP $10\nSTX ZP,Y") == bytes([0x96, 0x10])
        assert code_of("table: LDX table,Y") == bytes([0xBE, 0x00, 0x02])

    def test_zero_page_symbol_too_large(self):
        """A zero-page symbol must resolve to a byte."""
        with pytest.raises(OperandRangeError):
            code_of(".const BIG $1234\nSTX BIG,Y")

    def test_low_high_byte(self):
        """#<sym and #>sym pick the low and high byte."""
        code = code_of("vec: NOP\nLDA #<vec\nLDA #>vec\n", origin=0x1234)
        assert code == bytes([0xEA, 0xA9, 0x34, 0xA9, 0x12])

    def test_wide_immediate_symbol(self):
        """#sym must resolve to a byte."""
        with pytest.raises(OperandRangeError) as exc_info:
            code_of(".const BIG $1234\nLDA #BIG")
        assert "#<BIG" in str(exc_info.value)

    def test_invalid_mode(self):
        """STA has no immediate form."""
        with pytest.raises(AddressingModeError) as exc_info:
            code_of("STA #$41")
        assert exc_info.value.mnemonic == "STA"


class TestSelectEncoding:
    """Test the mnemonic-dependent encoding rules directly."""

    def test_branch_is_relative(self):
        assert select_encoding("BNE", parse_operand("loop")) == AddressingMode.RELATIVE

    def test_literal_byte_is_zero_page(self):
        assert select_encoding("LDA", parse_operand("$10")) == AddressingMode.ZERO_PAGE

    def test_implied_to_accumulator(self):
        assert select_encoding("LSR", parse_operand("")) == AddressingMode.ACCUMULATOR
        assert select_encoding("NOP", parse_operand("")) == AddressingMode.IMPLIED


# =============================================================================
# Branch Tests
# =============================================================================

class TestBranches:
    """Test branch displacement computation."""

    def test_backward_branch(self):
        """The offset is measured from the end of the branch."""
        assert code_of("loop: DEX\nBNE loop\n") == bytes([0xCA, 0xD0, 0xFD])

    def test_numeric_displacement(self):
        """A numeric operand is the displacement itself."""
        assert code_of("BNE -3") == bytes([0xD0, 0xFD])
        assert code_of("BNE $05") == bytes([0xD0, 0x05])

    def test_numeric_displacement_too_far(self):
        """Negative literals stop at -128."""
        assert code_of("BNE -128") == bytes([0xD0, 0x80])
        with pytest.raises(OperandRangeError):
            code_of("BNE -129")

    def test_forward_limit(self):
        """+127 is the furthest forward branch."""
        source = "BNE target\n" + "NOP\n" * 127 + "target:\n"
        code = code_of(source)
        assert code[:2] == bytes([0xD0, 0x7F])

    def test_forward_out_of_range(self):
        """+128 does not fit."""
        source = "BNE target\n" + "NOP\n" * 128 + "target:\n"
        with pytest.raises(BranchRangeError) as exc_info:
            code_of(source)
        assert exc_info.value.offset == 128

    def test_backward_limit(self):
        """-128 is the furthest backward branch."""
        source = "target:\n" + "NOP\n" * 126 + "BNE target\n"
        code = code_of(source)
        assert code[-2:] == bytes([0xD0, 0x80])

    def test_backward_out_of_range(self):
        """-129 does not fit."""
        source = "target:\n" + "NOP\n" * 127 + "BNE target\n"
        with pytest.raises(BranchRangeError) as exc_info:
            code_of(source)
        assert exc_info.value.offset == -129


# =============================================================================
# Error Handling Tests
# =============================================================================

class TestErrorHandling:
    """Test error detection and reporting."""

    def test_syntax_error_line_number(self):
        """Errors name the merged line."""
        with pytest.raises(AssemblySyntaxError) as exc_info:
            code_of("NOP\nFOO\n")
        assert str(exc_info.value).startswith("<merged>:2: error:")

    def test_undefined_symbol(self):
        """Undefined symbols are reported with suggestions."""
        with pytest.raises(UndefinedSymbolError) as exc_info:
            code_of("print: RTS\nJSR prnt\n")
        message = str(exc_info.value)
        assert message.startswith("<merged>:2: error: undefined symbol 'prnt'")
        assert "did you mean 'print'?" in message

    def test_duplicate_label(self):
        """A label may only be defined once."""
        with pytest.raises(DuplicateSymbolError):
            code_of("a: NOP\na: NOP\n")

    def test_label_reuses_constant(self):
        """Labels and constants share one namespace."""
        with pytest.raises(DuplicateSymbolError):
            code_of(".const a $01\na: NOP\n")

    def test_all_errors_are_assembler_errors(self):
        """Callers can catch the common base class."""
        with pytest.raises(AssemblerError):
            code_of("JMP nowhere")

    def test_failure_leaves_no_output(self):
        """Bytes emitted before a pass 2 error are discarded."""
        asm = Assembler()
        asm.assemble_string("NOP\n")
        with pytest.raises(UndefinedSymbolError):
            asm.assemble_string("NOP\nstart: NOP\nJMP nowhere\n")
        assert asm.get_code() == b""
        assert asm.get_line_map() == []
        assert asm.get_labels() == {}
        assert asm.get_output().program == b""


# =============================================================================
# Predefined Symbols
# =============================================================================

class TestDefines:
    """Test symbols defined outside the source."""

    def test_predefined_symbol(self):
        """Predefined symbols resolve like constants."""
        asm = Assembler(defines={"VRAM": 0x2000})
        code = asm.assemble_string("STA VRAM\n")
        assert code == bytes([0x8D, 0x00, 0x20])
        assert asm.get_labels() == {}
        assert asm.get_symbols()["VRAM"] == 0x2000

    def test_predefined_cannot_be_redefined(self):
        """Source may not shadow a predefined symbol."""
        asm = Assembler()
        asm.define_symbol("VRAM", 0x2000)
        with pytest.raises(DuplicateSymbolError):
            asm.assemble_string(".const VRAM $10\n")

    def test_instance_reuse(self):
        """Each assemble call starts from a fresh symbol table."""
        asm = Assembler()
        asm.assemble_string("Init: NOP\n")
        asm.assemble_string("Init: RTS\n")
        assert asm.get_code() == bytes([0x60])


# =============================================================================
# Output File Tests
# =============================================================================

class TestOutputFiles:
    """Test listing, symbol and binary output."""

    SOURCE = "Init:\n    LDA #$41\n    STA $2000\n    BRK\n"

    def test_listing(self):
        """The listing shows address, bytes and source."""
        asm = Assembler()
        asm.assemble_string(self.SOURCE)
        listing = asm.get_listing()
        assert "Chipcade 6502 Assembler Listing" in listing
        assert "$0200  A9 41" in listing
        assert "$0202  8D 00 20" in listing
        assert "Init" in listing

    def test_write_symbols(self, tmp_path):
        """Predefined symbols are left out of the symbol file."""
        asm = Assembler(defines={"VRAM": 0x2000})
        asm.assemble_string(self.SOURCE)
        sym_file = tmp_path / "out.sym"
        asm.write_symbols(sym_file)
        lines = sym_file.read_text().splitlines()
        assert lines[0] == "# Symbol table"
        assert "Init $0200" in lines
        assert not any(line.startswith("VRAM") for line in lines)

    def test_write_binary(self, tmp_path):
        """The binary is the raw image."""
        asm = Assembler()
        asm.assemble_string(self.SOURCE)
        bin_file = tmp_path / "out.bin"
        asm.write_binary(bin_file)
        assert bin_file.read_bytes() == bytes([0xA9, 0x41, 0x8D, 0x00, 0x20, 0x00])
