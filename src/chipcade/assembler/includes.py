"""
Include Expansion
=================

Recursively inlines `.include "path"` directives before assembly and
records, for every line of the merged result, where that line came from.

    ; main.asm
    .include "include/chipcade.inc"
    Init:
        LDA #$00

The include is replaced by the included file's lines at the exact point
of the directive. Paths are resolved relative to the directory of the
file containing the directive.

Line Provenance
---------------
Every retained line gets one LineOrigin (file, 1-based line). The
directive line itself is dropped and has no entry, so at all times

    len(expanded.origins) == number of lines in expanded.text

This is what lets an assembler error on merged line N be reported
against the file the user actually wrote (see chipcade.provenance).

Cycle Detection
---------------
A set of canonical paths currently being expanded is carried through the
recursion. Entering a path already in the set is an include cycle. The
path leaves the set when its expansion finishes, so the same file may be
included several times from unrelated points.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from chipcade.errors import IncludeError, SourceLocation

logger = logging.getLogger(__name__)


# =============================================================================
# Provenance Types
# =============================================================================

@dataclass(frozen=True)
class LineOrigin:
    """The authored file and 1-based line that one merged line came from."""
    file: Path
    line: int

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"


@dataclass
class ExpandedSource:
    """
    Merged source text plus one LineOrigin per newline-terminated line.

    Both the include expander and the C compiler produce this shape, and
    the assembler consumes its text.
    """
    text: str = ""
    origins: list[LineOrigin] = field(default_factory=list)

    @property
    def lines(self) -> list[str]:
        return self.text.splitlines()

    def append_line(self, line: str, origin: LineOrigin) -> None:
        """Append one line (a newline is added) and its origin."""
        self.text += line + "\n"
        self.origins.append(origin)

    def extend(self, other: "ExpandedSource") -> None:
        self.text += other.text
        self.origins.extend(other.origins)

    def origin_of(self, line: int) -> Optional[LineOrigin]:
        """Look up the origin of a 1-based merged line, None if out of range."""
        if 1 <= line <= len(self.origins):
            return self.origins[line - 1]
        return None


# =============================================================================
# Expansion
# =============================================================================

INCLUDE_DIRECTIVE = ".include"


def canonical_path(path: Path) -> Path:
    """Resolve a path for cycle detection, keeping it as-is if that fails."""
    try:
        return path.resolve()
    except OSError:
        return path


def expand_file(path: str | Path, visited: Optional[set[Path]] = None) -> ExpandedSource:
    """
    Read an assembly file and expand its includes.

    Args:
        path: File to read
        visited: Paths currently being expanded (created when omitted)

    Raises:
        IncludeError: On unreadable files, malformed directives or cycles
    """
    path = Path(path)
    try:
        content = path.read_text()
    except OSError as e:
        raise IncludeError(str(path), f"failed to read file: {e.strerror or e}") from e
    return expand_text(content, path.parent, path, visited)


def expand_text(
    content: str,
    base_dir: str | Path,
    virtual_path: str | Path,
    visited: Optional[set[Path]] = None,
) -> ExpandedSource:
    """
    Expand includes in in-memory text.

    `virtual_path` names the text for provenance and cycle detection; it
    need not exist on disk, which lets unsaved editor buffers be checked.
    """
    if visited is None:
        visited = set()
    base_dir = Path(base_dir)
    canonical = canonical_path(Path(virtual_path))

    if canonical in visited:
        raise IncludeError(str(canonical), f"include cycle detected at {canonical}")
    visited.add(canonical)

    expanded = ExpandedSource()
    for idx, line in enumerate(content.splitlines()):
        trimmed = line.lstrip()
        if not trimmed.startswith(INCLUDE_DIRECTIVE):
            expanded.append_line(line, LineOrigin(canonical, idx + 1))
            continue

        location = SourceLocation(str(canonical), idx + 1)
        include_name = _include_target(trimmed)
        if include_name is None:
            raise IncludeError(
                str(canonical),
                f"malformed include directive in {canonical}",
                location,
                source_line=line,
            )

        include_path = base_dir / include_name
        logger.debug(f"Including {include_path} from {location}")
        try:
            included = expand_file(include_path, visited)
        except IncludeError as e:
            if e.location is None:
                raise e.with_location(location, line) from e
            raise
        expanded.extend(included)

    visited.discard(canonical)
    return expanded


def _include_target(directive: str) -> Optional[str]:
    """Extract the quoted path from a `.include "path"` line."""
    rest = directive[len(INCLUDE_DIRECTIVE):].lstrip()
    if not rest.startswith('"'):
        return None
    end = rest.find('"', 1)
    if end < 0:
        return None
    return rest[1:end]
