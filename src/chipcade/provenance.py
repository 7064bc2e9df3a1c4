"""
Line Provenance
===============

Both the include expander and the C compiler produce an ExpandedSource:
merged assembly text plus one LineOrigin per line. The assembler in turn
maps every emitted byte to a line of that merged text. This module joins
the two so every byte, and every error, can be traced back to the file
and line the user wrote.

    byte offset --(assembler line map)--> merged line --(origins)--> file:line

Error Decoration
----------------
Assembler errors on merged text read `<merged>:N: error: message`. The
decorator pulls N out of the text, looks it up, and rewrites the prefix:

    <merged>:41: error: undefined symbol 'Plyer'
    src/player.asm:7: error: undefined symbol 'Plyer'

If N cannot be found or is out of range the message is passed through
unchanged.
"""

import logging
import re
from pathlib import Path
from typing import Optional

from chipcade.assembler.assembler import Assembler, DEFAULT_ORIGIN
from chipcade.assembler.includes import (
    ExpandedSource,
    LineOrigin,
    canonical_path,
    expand_file,
    expand_text,
)
from chipcade.errors import AssemblerError, ChipcadeError, SourceLocation
from chipcade.sdk import SystemConst, generate_asm_include

logger = logging.getLogger(__name__)

# "<file>:N: error:" or "<file>:N:C: error:"
_ERROR_LINE_RE = re.compile(r":(\d+)(?::\d+)?: error: ")

CHIPCADE_INCLUDE = "chipcade.inc"


# =============================================================================
# Merging and Composition
# =============================================================================

def merge_units(first: ExpandedSource, second: ExpandedSource) -> ExpandedSource:
    """
    Concatenate two expanded units into a new one.

    If `first` does not end with a newline, one is added and attributed
    to its last line, so the origin list stays aligned with the text.
    """
    merged = ExpandedSource(first.text, list(first.origins))
    if merged.text and not merged.text.endswith("\n"):
        last = merged.origins[-1] if merged.origins else LineOrigin(Path("asm"), 1)
        merged.text += "\n"
        merged.origins.append(last)
    merged.extend(second)
    return merged


def compose_pc_map(line_map: list[int], origins: list[LineOrigin]) -> list[LineOrigin]:
    """
    Compose byte -> merged line with merged line -> origin.

    Args:
        line_map: One 1-based merged line number per emitted byte
        origins: One LineOrigin per merged line

    Returns:
        One LineOrigin per emitted byte
    """
    return [origins[line - 1] for line in line_map]


def relative_path(root: Path, path: Path) -> Path:
    """`path` relative to `root`, else its bare file name."""
    try:
        return path.relative_to(root)
    except ValueError:
        pass
    try:
        return path.resolve().relative_to(root.resolve())
    except (ValueError, OSError):
        return Path(path.name)


# =============================================================================
# Error Decoration
# =============================================================================

def extract_error_line(message: str) -> Optional[int]:
    """The line number embedded in a `file:N: error:` message, if any."""
    match = _ERROR_LINE_RE.search(message)
    if match is None:
        return None
    return int(match.group(1))


def map_error_to_origin(message: str, origins: list[LineOrigin]) -> Optional[LineOrigin]:
    """Map the merged line named in an error message to its origin."""
    line = extract_error_line(message)
    if line is None or not 1 <= line <= len(origins):
        return None
    return origins[line - 1]


def decorate_error(
    message: str,
    origins: list[LineOrigin],
    root: Optional[Path] = None,
) -> str:
    """
    Rewrite the `file:N:` prefix of an error message to the authored file.

    Paths are shown relative to `root` when given. Messages that cannot
    be mapped are returned unchanged.
    """
    origin = map_error_to_origin(message, origins)
    if origin is None:
        return message
    file = relative_path(root, origin.file) if root is not None else origin.file
    _, _, rest = message.partition(": error: ")
    return f"{file.as_posix()}:{origin.line}: error: {rest}"


def relocate_error(
    error: AssemblerError,
    origins: list[LineOrigin],
    root: Optional[Path] = None,
) -> AssemblerError:
    """
    Return `error` positioned at the authored file and line.

    The exception type, hint and source text are kept. An error that
    cannot be mapped is returned as it is.
    """
    origin = map_error_to_origin(str(error), origins)
    if origin is None:
        return error

    def locate(o: LineOrigin) -> SourceLocation:
        file = relative_path(root, o.file) if root is not None else o.file
        return SourceLocation(file.as_posix(), o.line)

    relocated = error.with_location(locate(origin), error.source_line)

    # A duplicate's first definition is a merged line as well
    first = getattr(error, "original_location", None)
    if first is not None and 1 <= first.line <= len(origins):
        where = locate(origins[first.line - 1])
        relocated.original_location = where
        relocated.hint = f"'{error.symbol}' was first defined at {where}"
        relocated = relocated.with_location(relocated.location, relocated.source_line)
    return relocated


# =============================================================================
# Validation of Unsaved Content
# =============================================================================

def _has_chipcade_include(content: str) -> bool:
    for line in content.splitlines():
        trimmed = line.lstrip()
        if trimmed.startswith(".include") and CHIPCADE_INCLUDE in trimmed:
            return True
    return False


def _prelude(base_dir: Path, constants: Optional[dict[str, int]]) -> ExpandedSource:
    """The system constants, from a dict or from the generated include file."""
    if constants is not None:
        return expand_text(
            generate_asm_include(
                [SystemConst(name, value) for name, value in constants.items()]
            ),
            base_dir,
            base_dir / "include" / CHIPCADE_INCLUDE,
        )
    return expand_file(base_dir / "include" / CHIPCADE_INCLUDE)


def validate_source(
    content: str,
    base_dir: str | Path,
    virtual_path: str | Path,
    constants: Optional[dict[str, int]] = None,
    origin: int = DEFAULT_ORIGIN,
) -> Optional[tuple[Optional[int], str]]:
    """
    Check that unsaved assembly content assembles.

    Nothing is written to disk. Unless the content already includes
    `chipcade.inc`, the system constants are made visible first: from
    `constants` when given, otherwise from `<base_dir>/include/chipcade.inc`.

    Args:
        content: Editor buffer contents
        base_dir: Directory that relative includes resolve against
        virtual_path: Path the buffer would be saved to
        constants: System constants to predefine

    Returns:
        None when the content assembles, else (line, message). `line` is
        the 1-based line of `content` at fault, or None when the error
        lies outside it (in an included file, or an unreadable include).
    """
    base_dir = Path(base_dir)
    virtual_path = Path(virtual_path)

    try:
        expanded = expand_text(content, base_dir, virtual_path)
        if not _has_chipcade_include(content):
            expanded = merge_units(_prelude(base_dir, constants), expanded)
    except ChipcadeError as e:
        logger.debug(f"Validation of {virtual_path} failed during expansion: {e}")
        return None, str(e)

    try:
        Assembler(origin=origin).assemble_expanded(expanded)
    except AssemblerError as e:
        message = str(e)
        origin_line = map_error_to_origin(message, expanded.origins)
        if origin_line is None:
            return None, message
        decorated = decorate_error(message, expanded.origins, base_dir)
        if origin_line.file == canonical_path(virtual_path):
            return origin_line.line, decorated
        return None, decorated

    return None
