# =============================================================================
# test_provenance.py - Line Provenance Tests
# =============================================================================
# Tests for composing byte -> file:line maps, rewriting error positions,
# and validating unsaved assembly buffers.
# =============================================================================

from pathlib import Path

import pytest

from chipcade.assembler import ExpandedSource, LineOrigin, assemble
from chipcade.errors import DuplicateSymbolError, UndefinedSymbolError
from chipcade.provenance import (
    compose_pc_map,
    decorate_error,
    extract_error_line,
    merge_units,
    relocate_error,
    validate_source,
)


MAIN = Path("/game/src/main.asm")
PLAYER = Path("/game/src/player.asm")
ORIGINS = [LineOrigin(MAIN, 1), LineOrigin(PLAYER, 7), LineOrigin(MAIN, 3)]


# =============================================================================
# Composition
# =============================================================================

class TestComposition:
    """Test merging units and composing maps."""

    def test_compose_pc_map(self):
        """Each byte takes the origin of its merged line."""
        assert compose_pc_map([2, 2, 3], ORIGINS) == [
            LineOrigin(PLAYER, 7), LineOrigin(PLAYER, 7), LineOrigin(MAIN, 3),
        ]

    def test_merge_adds_missing_newline(self):
        """A missing final newline is added and attributed to the last line."""
        first = ExpandedSource("NOP", [LineOrigin(MAIN, 1)])
        second = ExpandedSource("RTS\n", [LineOrigin(PLAYER, 1)])
        merged = merge_units(first, second)
        assert merged.text == "NOP\nRTS\n"
        assert merged.origins == [LineOrigin(MAIN, 1), LineOrigin(MAIN, 1), LineOrigin(PLAYER, 1)]

    def test_merge_leaves_inputs_alone(self):
        first = ExpandedSource("NOP\n", [LineOrigin(MAIN, 1)])
        merge_units(first, ExpandedSource("RTS\n", [LineOrigin(PLAYER, 1)]))
        assert first.text == "NOP\n"
        assert len(first.origins) == 1


# =============================================================================
# Error Decoration
# =============================================================================

class TestDecorateError:
    """Test rewriting `<merged>:N:` prefixes."""

    def test_extract_line(self):
        assert extract_error_line("<merged>:41: error: x") == 41
        assert extract_error_line("<merged>:41:5: error: x") == 41
        assert extract_error_line("something went wrong") is None

    def test_decorate(self):
        message = "<merged>:2: error: undefined symbol 'Plyer'"
        assert decorate_error(message, ORIGINS, Path("/game")) == (
            "src/player.asm:7: error: undefined symbol 'Plyer'"
        )

    def test_decorate_without_root(self):
        message = "<merged>:3: error: bad"
        assert decorate_error(message, ORIGINS) == f"{MAIN.as_posix()}:3: error: bad"

    def test_unmappable_passes_through(self):
        """Out-of-range or missing lines leave the message unchanged."""
        assert decorate_error("<merged>:99: error: x", ORIGINS) == "<merged>:99: error: x"
        assert decorate_error("no position here", ORIGINS) == "no position here"

    def test_relocate_keeps_type(self):
        """A relocated error keeps its class and details."""
        source = "NOP\nRTS\nJMP nowhere\n"
        with pytest.raises(UndefinedSymbolError) as exc_info:
            assemble(source)
        relocated = relocate_error(exc_info.value, ORIGINS, Path("/game"))
        assert isinstance(relocated, UndefinedSymbolError)
        assert relocated.symbol == "nowhere"
        assert str(relocated).startswith("src/main.asm:3: error: undefined symbol 'nowhere'")

    def test_relocate_duplicate_hint(self):
        """The first definition of a duplicate is relocated too."""
        with pytest.raises(DuplicateSymbolError) as exc_info:
            assemble("Start:\nStart:\nNOP\n")
        relocated = relocate_error(exc_info.value, ORIGINS, Path("/game"))
        assert str(relocated.location) == "src/player.asm:7"
        assert relocated.hint == "'Start' was first defined at src/main.asm:1"
        assert "<merged>" not in str(relocated)


# =============================================================================
# Validation of Unsaved Buffers
# =============================================================================

class TestValidateSource:
    """Test checking editor content without writing it."""

    CONSTANTS = {"VRAM": 0x2000}

    def test_valid_content(self, tmp_path):
        content = "Init:\n    LDA #$41\n    STA VRAM\n    BRK\n"
        assert validate_source(content, tmp_path, tmp_path / "main.asm", self.CONSTANTS) is None

    def test_error_in_content(self, tmp_path):
        """Errors in the buffer give its own line number."""
        content = "Init:\n    NOP\n    JMP nowhere\n"
        line, message = validate_source(
            content, tmp_path, tmp_path / "main.asm", self.CONSTANTS
        )
        assert line == 3
        assert message.startswith("main.asm:3: error: undefined symbol 'nowhere'")

    def test_error_in_included_file(self, tmp_path):
        """Errors inside an include have no buffer line."""
        (tmp_path / "lib.inc").write_text("JMP nowhere\n")
        content = '.include "lib.inc"\nInit: NOP\n'
        line, message = validate_source(
            content, tmp_path, tmp_path / "main.asm", self.CONSTANTS
        )
        assert line is None
        assert message.startswith("lib.inc:1: error:")

    def test_existing_include_not_duplicated(self, tmp_path):
        """Content that includes chipcade.inc gets no second copy."""
        include_dir = tmp_path / "include"
        include_dir.mkdir()
        (include_dir / "chipcade.inc").write_text(".const VRAM $2000\n")
        content = '.include "include/chipcade.inc"\nSTA VRAM\n'
        assert validate_source(content, tmp_path, tmp_path / "main.asm") is None

    def test_prelude_from_include_file(self, tmp_path):
        include_dir = tmp_path / "include"
        include_dir.mkdir()
        (include_dir / "chipcade.inc").write_text(".const VRAM $2000\n")
        assert validate_source("STA VRAM\n", tmp_path, tmp_path / "main.asm") is None

    def test_missing_include(self, tmp_path):
        content = '.include "missing.inc"\n'
        line, message = validate_source(
            content, tmp_path, tmp_path / "main.asm", self.CONSTANTS
        )
        assert line is None
        assert "cannot include" in message

    def test_nothing_written(self, tmp_path):
        validate_source("NOP\n", tmp_path, tmp_path / "main.asm", self.CONSTANTS)
        assert list(tmp_path.iterdir()) == []
