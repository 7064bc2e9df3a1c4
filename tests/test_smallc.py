# =============================================================================
# test_smallc.py - C-Subset Compiler Tests
# =============================================================================
# Tests for the line-oriented C compiler.
#
# Test coverage includes:
#   - Globals, locals and their zero-page addresses
#   - Functions, entry points and calls
#   - if/else, while and for blocks
#   - Global initializers
#   - Multi-file compilation
#   - Error reporting with file and line
# =============================================================================

from pathlib import Path

import pytest

from chipcade.assembler import assemble
from chipcade.smallc import (
    CompilerOptions,
    CSourceFile,
    SmallCCompiler,
    compile_c,
    compile_files,
)
from chipcade.smallc.compiler import order_sources, parse_char_decl
from chipcade.smallc.errors import (
    CSyntaxError,
    CValueRangeError,
    DuplicateDeclarationError,
    UndeclaredIdentifierError,
    UnterminatedBlockError,
    ZeroPageExhaustedError,
)


CONSTANTS = {"VRAM": 0x8030, "SPRITE_RAM": 0x8230}


def asm_words(source: str) -> list[str]:
    return compile_c(source, constants=CONSTANTS).assembly.split()


# =============================================================================
# Basic Compilation
# =============================================================================

class TestBasicCompilation:
    """Test small complete programs."""

    SOURCE = (
        "unsigned char x = 5;\n"
        "void Update() {\n"
        "    x = x + 1;\n"
        "    sprite[0].x = x;\n"
        "}\n"
    )

    def test_update_with_global_init(self):
        """An initialized global gets an Init that sets it."""
        result = compile_c(self.SOURCE, constants=CONSTANTS)
        assert result.variables == {"x": 0x40}
        assert result.functions == ["Init", "Update"]
        assert result.assembly.split() == [
            "Init:",
            "LDA", "#$05",
            "STA", "$40",
            "BRK",
            "Update:",
            "LDA", "$40", "STA", "$20",
            "LDA", "#$01", "STA", "$21",
            "LDA", "$20", "CLC", "ADC", "$21",
            "STA", "$40",
            "LDA", "$40",
            "STA", "$8230",
            "BRK",
        ]

    def test_line_origins(self):
        """Every assembly line points back at its C line."""
        result = compile_c(self.SOURCE, constants=CONSTANTS)
        lines = [origin.line for origin in result.expanded.origins]
        assert lines == [1] * 5 + [2] + [3] * 8 + [4] * 2 + [5] * 2
        assert len(result.expanded.origins) == len(result.assembly.splitlines())

    def test_output_assembles(self):
        """The generated assembly is accepted by the assembler."""
        result = compile_c(self.SOURCE, constants=CONSTANTS)
        out = assemble(result.assembly)
        assert set(out.labels) == {"Init", "Update"}

    def test_explicit_init_runs_initializers_first(self):
        """Initializers go at the top of a user Init."""
        words = asm_words(
            "unsigned char x = 5;\n"
            "void Init() {\n"
            "    x++;\n"
            "}\n"
        )
        assert words == ["Init:", "LDA", "#$05", "STA", "$40", "INC", "$40", "BRK"]

    def test_helper_function_returns(self):
        """Functions other than Init/Update end in RTS."""
        words = asm_words(
            "void Reset();\n"
            "void Update() {\n"
            "    Reset();\n"
            "}\n"
            "void Reset() {\n"
            "    return;\n"
            "}\n"
        )
        assert words == ["Update:", "JSR", "Reset", "BRK", "Reset:", "RTS", "RTS"]

    def test_comments_and_includes_ignored(self):
        words = asm_words(
            '#include "chipcade.h"\n'
            "// a comment\n"
            "extern unsigned char VRAM_BASE;\n"
            "void Update() { // entry\n"
            "}\n"
        )
        assert words == ["Update:", "BRK"]


# =============================================================================
# Variables
# =============================================================================

class TestVariables:
    """Test zero-page allocation."""

    def test_globals_then_locals(self):
        """Globals are allocated before any local."""
        result = compile_c(
            "void Update() {\n"
            "    unsigned char i = 3;\n"
            "}\n"
            "unsigned char score;\n"
        )
        assert result.variables == {"score": 0x40, "i": 0x41}
        assert result.assembly.split() == [
            "Update:", "LDA", "#$03", "STA", "$41", "BRK",
        ]

    def test_signed_char(self):
        assert parse_char_decl("signed char dx = 1;") == ("dx", "1")

    def test_memory_to_variable(self):
        words = asm_words(
            "unsigned char x;\n"
            "void Update() {\n"
            "    x = mem[VRAM + 2];\n"
            "    mem[VRAM + x] = 7;\n"
            "}\n"
        )
        assert words == [
            "Update:",
            "LDA", "$8032", "STA", "$40",
            "LDA", "#$07", "LDY", "$40", "STA", "$8030,Y",
            "BRK",
        ]

    def test_memory_reads_in_expression(self):
        """Memory reads can be either operand of a binary operator."""
        words = asm_words(
            "unsigned char x;\n"
            "void Update() {\n"
            "    x = mem[$2000] + mem[$2001];\n"
            "    x = x - [VRAM];\n"
            "}\n"
        )
        assert words == [
            "Update:",
            "LDA", "$2000", "STA", "$20", "LDA", "$2001", "STA", "$21",
            "LDA", "$20", "CLC", "ADC", "$21", "STA", "$40",
            "LDA", "$40", "STA", "$20", "LDA", "$8030", "STA", "$21",
            "LDA", "$20", "SEC", "SBC", "$21", "STA", "$40",
            "BRK",
        ]

    def test_increment_decrement(self):
        words = asm_words(
            "unsigned char x;\n"
            "void Update() {\n"
            "    x++;\n"
            "    x--;\n"
            "}\n"
        )
        assert words == ["Update:", "INC", "$40", "DEC", "$40", "BRK"]

    def test_zero_page_exhausted(self):
        compiler = SmallCCompiler(CompilerOptions(zero_page_base=0xFE))
        with pytest.raises(ZeroPageExhaustedError) as exc_info:
            compiler.compile_source("unsigned char a;\nunsigned char b;\n")
        assert str(exc_info.value).startswith(
            "main.c:2: error: out of zero-page space for globals/locals"
        )


# =============================================================================
# Control Flow
# =============================================================================

class TestControlFlow:
    """Test if/else, while and for."""

    IF_ELSE = (
        "    if (x == 1) {\n"
        "        x = 2;\n"
        "    }\n"
        "    else {\n"
        "        x = 3;\n"
        "    }\n"
    )

    def test_if_else(self):
        words = asm_words(
            "unsigned char x;\nvoid Update() {\n" + self.IF_ELSE + "}\n"
        )
        assert words == [
            "Update:",
            "LDA", "$40", "STA", "$23", "LDA", "#$01", "STA", "$21",
            "LDA", "$23", "CMP", "$21", "BNE", "CIFELSE1",
            "LDA", "#$02", "STA", "$40",
            "JMP", "CIFEND0",
            "CIFELSE1:",
            "LDA", "#$03", "STA", "$40",
            "CIFEND0:",
            "BRK",
        ]

    def test_if_without_else(self):
        """The end label follows the next statement's start."""
        words = asm_words(
            "unsigned char x;\n"
            "void Update() {\n"
            "    if (x != 0) {\n"
            "        x--;\n"
            "    }\n"
            "    x++;\n"
            "}\n"
        )
        end = words.index("CIFEND0:")
        assert words[end - 1] == "CIFELSE1:"
        assert words[end + 1:] == ["INC", "$40", "BRK"]

    def test_identical_blocks_get_distinct_labels(self):
        """Two identical if/else blocks never share labels."""
        source = (
            "unsigned char x;\nvoid Update() {\n"
            + self.IF_ELSE + self.IF_ELSE + "}\n"
        )
        words = asm_words(source)
        labels = [w for w in words if w.endswith(":")]
        assert len(labels) == len(set(labels))
        assert "CIFEND2:" in labels and "CIFELSE3:" in labels
        assemble(compile_c(source).assembly)

    def test_while(self):
        words = asm_words(
            "unsigned char x;\n"
            "void Update() {\n"
            "    while (x < 10) {\n"
            "        x++;\n"
            "    }\n"
            "}\n"
        )
        assert words[1] == "CWHILES0:"
        assert "BCS" in words and words[words.index("BCS") + 1] == "CWHILEE1"
        assert words[-4:] == ["JMP", "CWHILES0", "CWHILEE1:", "BRK"]

    def test_for(self):
        words = asm_words(
            "void Update() {\n"
            "    unsigned char i;\n"
            "    for (i = 0; i < 8; i++) {\n"
            "        mem[VRAM + i] = i;\n"
            "    }\n"
            "}\n"
        )
        assert words[:6] == ["Update:", "LDA", "#$00", "STA", "$40", "CFORS0:"]
        assert words[-6:] == ["INC", "$40", "JMP", "CFORS0", "CFORE1:", "BRK"]

    def test_loop_program_assembles(self):
        source = (
            "unsigned char x;\n"
            "void Update() {\n"
            "    for (x = 0; x <= 4; x++) {\n"
            "        mem[VRAM + x] = x << 1;\n"
            "    }\n"
            "}\n"
        )
        out = assemble(compile_c(source, constants=CONSTANTS).assembly)
        assert out.labels["Update"] == 0x0200

    def test_keyword_needs_boundary(self):
        """A variable starting with 'if' is not an if."""
        words = asm_words(
            "unsigned char iffy;\n"
            "void Update() {\n"
            "    iffy = 1;\n"
            "}\n"
        )
        assert words == ["Update:", "LDA", "#$01", "STA", "$40", "BRK"]


# =============================================================================
# Multi-File Compilation
# =============================================================================

class TestMultiFile:
    """Test compiling several files into one unit."""

    def test_order_sources(self):
        root = Path("src")
        paths = [root / "z.c", root / "main.c", root / "a.c"]
        assert order_sources(root, paths) == [root / "main.c", root / "a.c", root / "z.c"]

    def test_globals_shared_across_files(self, tmp_path):
        """A global from any file is visible in every function."""
        (tmp_path / "player.c").write_text(
            "unsigned char lives;\n"
            "void Die() {\n"
            "    lives--;\n"
            "}\n"
        )
        (tmp_path / "main.c").write_text(
            "void Init() {\n"
            "    lives = 3;\n"
            "}\n"
        )
        result = compile_files([tmp_path / "player.c", tmp_path / "main.c"])
        assert result.functions == ["Init", "Die"]
        assert result.variables == {"lives": 0x40}

        origin_files = {o.file.name for o in result.expanded.origins}
        assert origin_files == {"main.c", "player.c"}

    def test_error_names_file(self, tmp_path):
        (tmp_path / "main.c").write_text("void Update() {\n}\n")
        (tmp_path / "util.c").write_text("void Helper() {\n    y = 1;\n}\n")
        with pytest.raises(UndeclaredIdentifierError) as exc_info:
            compile_files([tmp_path / "main.c", tmp_path / "util.c"])
        assert str(exc_info.value).startswith("util.c:2: error: unknown variable 'y'")

    def test_labels_unique_across_files(self):
        compiler = SmallCCompiler()
        body = "void {}() {{\n    while (x < 3) {{\n        x++;\n    }}\n}}\n"
        result = compiler.compile_sources([
            CSourceFile(Path("main.c"), "unsigned char x;\n" + body.format("Update")),
            CSourceFile(Path("b.c"), body.format("Other")),
        ])
        assert "CWHILES2:" in result.assembly.split()


# =============================================================================
# Error Handling
# =============================================================================

class TestErrors:
    """Test error detection and reporting."""

    def test_unknown_variable(self):
        with pytest.raises(UndeclaredIdentifierError) as exc_info:
            compile_c("unsigned char score;\nvoid Update() {\n    scor = 1;\n}\n")
        message = str(exc_info.value)
        assert message.startswith("main.c:3: error: unknown variable 'scor'")
        assert "did you mean 'score'?" in message

    def test_duplicate_global(self):
        with pytest.raises(DuplicateDeclarationError) as exc_info:
            compile_c("unsigned char x;\nunsigned char x;\n")
        assert str(exc_info.value).startswith("main.c:2: error: duplicate global 'x'")

    def test_local_shadows_global(self):
        with pytest.raises(DuplicateDeclarationError) as exc_info:
            compile_c("unsigned char x;\nvoid Update() {\n    unsigned char x;\n}\n")
        assert "duplicate local 'x'" in str(exc_info.value)

    def test_duplicate_function(self):
        with pytest.raises(DuplicateDeclarationError) as exc_info:
            compile_c("void Update() {\n}\nvoid Update() {\n}\n")
        assert str(exc_info.value).startswith("main.c:3: error: duplicate function")

    def test_unterminated_function(self):
        with pytest.raises(UnterminatedBlockError) as exc_info:
            compile_c("void Update() {\n    return;\n")
        assert str(exc_info.value).startswith("main.c: error: unterminated function body")

    def test_brace_on_next_line(self):
        with pytest.raises(CSyntaxError) as exc_info:
            compile_c("unsigned char x;\nvoid Update() {\n    if (x == 1)\n}\n")
        assert "main.c:3:" in str(exc_info.value)

    def test_condition_without_comparison(self):
        with pytest.raises(CSyntaxError) as exc_info:
            compile_c("unsigned char x;\nvoid Update() {\n    while (x) {\n    }\n}\n")
        assert "invalid condition 'x': expected comparison operator" in str(exc_info.value)

    def test_parameters_not_supported(self):
        with pytest.raises(CSyntaxError):
            compile_c("void Move(unsigned char dx) {\n}\n")

    def test_value_out_of_range(self):
        with pytest.raises(CValueRangeError) as exc_info:
            compile_c("unsigned char x;\nvoid Update() {\n    x = 300;\n}\n")
        assert str(exc_info.value).startswith("main.c:3: error:")

    def test_sprite_index_out_of_range(self):
        with pytest.raises(CValueRangeError):
            compile_c(
                "void Update() {\n    sprite[64].x = 1;\n}\n", constants=CONSTANTS
            )

    def test_statement_outside_function(self):
        with pytest.raises(CSyntaxError) as exc_info:
            compile_c("x = 1;\n")
        assert "expected global char declaration or function" in str(exc_info.value)
