# =============================================================================
# test_includes.py - Include Expansion Tests
# =============================================================================
# Tests for `.include` expansion and per-line provenance.
#
# Test coverage includes:
#   - Inline expansion at the directive
#   - Paths relative to the including file
#   - Cycle detection and repeated includes
#   - Line origins for merged text
# =============================================================================

import pytest

from chipcade.assembler import Assembler, LineOrigin, expand_file, expand_text
from chipcade.errors import IncludeError


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


# =============================================================================
# Expansion Tests
# =============================================================================

class TestExpansion:
    """Test that includes are inlined with their origins."""

    def test_include_inlined_at_directive(self, tmp_path):
        """The directive line is replaced by the included lines."""
        main = write(tmp_path / "main.asm", 'NOP\n.include "lib.inc"\nRTS\n')
        lib = write(tmp_path / "lib.inc", "INX\nINY\n")
        expanded = expand_file(main)
        assert expanded.lines == ["NOP", "INX", "INY", "RTS"]
        assert expanded.origins == [
            LineOrigin(main.resolve(), 1),
            LineOrigin(lib.resolve(), 1),
            LineOrigin(lib.resolve(), 2),
            LineOrigin(main.resolve(), 3),
        ]

    def test_one_origin_per_line(self, tmp_path):
        """Origins and merged lines always line up."""
        main = write(tmp_path / "main.asm", '; top\n.include "a.inc"\n\nNOP\n')
        write(tmp_path / "a.inc", "; a\n\n.const X $01\n")
        expanded = expand_file(main)
        assert len(expanded.origins) == len(expanded.text.splitlines())

    def test_nested_relative_paths(self, tmp_path):
        """Nested includes resolve against their own directory."""
        main = write(tmp_path / "main.asm", '.include "lib/a.inc"\n')
        write(tmp_path / "lib" / "a.inc", '.include "b.inc"\nINX\n')
        b = write(tmp_path / "lib" / "b.inc", "DEX\n")
        expanded = expand_file(main)
        assert expanded.lines == ["DEX", "INX"]
        assert expanded.origins[0] == LineOrigin(b.resolve(), 1)

    def test_same_file_twice(self, tmp_path):
        """A file may be included repeatedly from unrelated points."""
        main = write(tmp_path / "main.asm", '.include "n.inc"\n.include "n.inc"\n')
        write(tmp_path / "n.inc", "NOP\n")
        asm = Assembler()
        assert asm.assemble_file(main) == bytes([0xEA, 0xEA])

    def test_virtual_path(self, tmp_path):
        """In-memory text is expanded against a base directory."""
        write(tmp_path / "lib.inc", "INX\n")
        expanded = expand_text(
            'NOP\n.include "lib.inc"\n', tmp_path, tmp_path / "unsaved.asm"
        )
        assert expanded.lines == ["NOP", "INX"]
        assert expanded.origin_of(1) == LineOrigin((tmp_path / "unsaved.asm").resolve(), 1)
        assert expanded.origin_of(3) is None


# =============================================================================
# Error Tests
# =============================================================================

class TestIncludeErrors:
    """Test include failures."""

    def test_cycle(self, tmp_path):
        """a.inc -> b.inc -> a.inc is a cycle naming a.inc."""
        a = write(tmp_path / "a.inc", '.include "b.inc"\n')
        write(tmp_path / "b.inc", '.include "a.inc"\n')
        with pytest.raises(IncludeError) as exc_info:
            expand_file(a)
        assert exc_info.value.included_filename.endswith("a.inc")
        assert "include cycle" in str(exc_info.value)

    def test_self_include(self, tmp_path):
        """A file including itself is a cycle."""
        a = write(tmp_path / "a.inc", '.include "a.inc"\n')
        with pytest.raises(IncludeError):
            expand_file(a)

    def test_missing_file(self, tmp_path):
        """An unreadable include is reported at the directive."""
        main = write(tmp_path / "main.asm", 'NOP\n.include "missing.inc"\n')
        with pytest.raises(IncludeError) as exc_info:
            expand_file(main)
        assert exc_info.value.location.line == 2
        assert "missing.inc" in str(exc_info.value)

    def test_malformed_directive(self, tmp_path):
        """The path must be quoted."""
        main = write(tmp_path / "main.asm", ".include lib.inc\n")
        with pytest.raises(IncludeError) as exc_info:
            expand_file(main)
        assert "malformed include" in str(exc_info.value)


# =============================================================================
# Assembly Through Includes
# =============================================================================

class TestAssembleWithIncludes:
    """Test that includes keep the byte map pointing at authored lines."""

    def test_constant_only_include(self, tmp_path):
        """An include of constants adds no bytes."""
        main = write(
            tmp_path / "main.asm",
            'Init:\n.include "consts.inc"\n    LDA #SPEED\n    RTS\n',
        )
        write(tmp_path / "consts.inc", ".const SPEED $04\n")

        asm = Assembler()
        code = asm.assemble_file(main)
        assert code == bytes([0xA9, 0x04, 0x60])

        expanded = asm.get_expanded()
        origins = [expanded.origin_of(line) for line in asm.get_line_map()]
        assert [o.line for o in origins] == [3, 3, 4]
        assert all(o.file == main.resolve() for o in origins)

    def test_labels_across_files(self, tmp_path):
        """Labels defined in an include are visible to the includer."""
        main = write(tmp_path / "main.asm", '.include "sub.inc"\nInit: JSR helper\n')
        write(tmp_path / "sub.inc", "helper: RTS\n")
        asm = Assembler()
        code = asm.assemble_file(main)
        assert code == bytes([0x60, 0x20, 0x00, 0x02])
        assert asm.get_labels() == {"helper": 0x0200, "Init": 0x0201}
