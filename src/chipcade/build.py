"""
Project Build Pipeline
======================

Builds a Chipcade project directory into a program image, keeping the
byte -> source maps a debugger needs.

Project Layout
--------------
    game/
    ├── chipcade.toml          machine configuration (optional)
    ├── src/
    │   ├── main.asm           assembly entry (optional when C sources exist)
    │   ├── main.c             C sources, any depth under src/
    │   ├── enemies/ai.c
    │   └── include/           generated on every build
    │       ├── chipcade.inc
    │       └── chipcade.h
    └── build/
        └── program.bin        output image, loaded at the RAM base

Pipeline
--------
    ┌────────────┐
    │ main.asm   │──expand includes──┐
    └────────────┘                   │   ┌────────┐     ┌──────────┐     ┌────────────┐
                                     ├──▶│ merged │────▶│ assemble │────▶│ program +  │
    ┌────────────┐                   │   │ source │     │ at $0200 │     │ source map │
    │ src/**/*.c │──compile──────────┘   └────────┘     └──────────┘     └────────────┘
    └────────────┘

1. Load the configuration and lay out memory.
2. Write `chipcade.inc` and `chipcade.h` from the system constants.
3. Compile every C source (main.c first) into one assembly unit.
4. Expand `main.asm` and append the C unit after it.
5. Assemble at the RAM base, then compose byte -> file:line maps.

Assembly errors are re-positioned at the authored file and line, shown
relative to the project root:

    src/enemies/ai.c:14: error: undefined symbol 'Chase'
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from chipcade.assembler.assembler import Assembler
from chipcade.assembler.includes import ExpandedSource, LineOrigin, expand_file
from chipcade.errors import AssemblerError, BuildError
from chipcade.provenance import compose_pc_map, merge_units, relocate_error
from chipcade.sdk import (
    CONFIG_FILENAME,
    MachineConfig,
    MemoryMap,
    constants_dict,
    load_project_config,
    sprite_constants,
    system_constants,
    write_headers,
)
from chipcade.smallc.compiler import (
    CompilerOptions,
    CSourceFile,
    SmallCCompiler,
    order_sources,
)

logger = logging.getLogger(__name__)

C_EXTENSIONS = frozenset({".c"})

# Entry labels, in order of preference
ENTRY_LABELS = ("Init", "Update")


# =============================================================================
# Project Paths
# =============================================================================

@dataclass
class ProjectPaths:
    """
    Well-known locations inside a project directory.

    Attributes:
        root: Project directory
        config: `chipcade.toml`
        src_dir: Source directory (`src/`, or legacy `asm/`)
        main_asm: Assembly entry file
        include_dir: Directory for generated headers
        build_dir: Output directory
        program_bin: Output image
    """
    root: Path
    config: Path
    src_dir: Path
    main_asm: Path
    include_dir: Path
    build_dir: Path
    program_bin: Path

    @classmethod
    def from_root(cls, root: str | Path) -> "ProjectPaths":
        root = Path(root)
        src_dir = root / "src"
        legacy_dir = root / "asm"
        if not src_dir.exists() and legacy_dir.exists():
            src_dir = legacy_dir
        build_dir = root / "build"
        return cls(
            root=root,
            config=root / CONFIG_FILENAME,
            src_dir=src_dir,
            main_asm=src_dir / "main.asm",
            include_dir=src_dir / "include",
            build_dir=build_dir,
            program_bin=build_dir / "program.bin",
        )

    def c_sources(self) -> list[Path]:
        """All `.c` files under the source directory, in build order."""
        if not self.src_dir.is_dir():
            return []
        paths = [
            p for p in self.src_dir.rglob("*")
            if p.is_file() and p.suffix.lower() in C_EXTENSIONS
        ]
        return order_sources(self.src_dir, paths)


# =============================================================================
# Build Artifacts
# =============================================================================

@dataclass
class ListingLine:
    """One line of the merged assembly listing shown around the PC."""
    line: int
    text: str
    is_current: bool = False


@dataclass
class BuildArtifacts:
    """
    Everything a build produces.

    Attributes:
        program: Machine code, loaded at load_addr
        labels: Label name -> address
        load_addr: Address of program[0]
        entry_point: Address of Init, else Update, else None
        line_map: Merged assembly line -> authored file:line
        pc_line_map: Byte offset -> authored file:line
        asm_lines: The merged assembly text, one entry per line
        pc_asm_line_map: Byte offset -> 1-based line of asm_lines
    """
    program: bytes
    labels: dict[str, int]
    load_addr: int
    entry_point: Optional[int] = None
    line_map: list[LineOrigin] = field(default_factory=list)
    pc_line_map: list[LineOrigin] = field(default_factory=list)
    asm_lines: list[str] = field(default_factory=list)
    pc_asm_line_map: list[int] = field(default_factory=list)

    def offset_of(self, address: int) -> Optional[int]:
        """Byte offset of a CPU address, None outside the program."""
        offset = address - self.load_addr
        if 0 <= offset < len(self.program):
            return offset
        return None

    def source_for_offset(self, offset: int) -> Optional[LineOrigin]:
        """The authored file and line that produced a byte."""
        if 0 <= offset < len(self.pc_line_map):
            return self.pc_line_map[offset]
        return None

    def source_for_address(self, address: int) -> Optional[LineOrigin]:
        offset = self.offset_of(address)
        return None if offset is None else self.source_for_offset(offset)

    def listing_context(self, offset: int, radius: int = 3) -> list[ListingLine]:
        """
        Merged assembly lines around the one that produced a byte.

        Returns up to `radius` lines either side, the producing line
        flagged as current; empty when the offset is outside the program.
        """
        if not 0 <= offset < len(self.pc_asm_line_map) or not self.asm_lines:
            return []
        current = self.pc_asm_line_map[offset] - 1
        start = max(current - radius, 0)
        end = min(current + radius + 1, len(self.asm_lines))
        return [
            ListingLine(i + 1, self.asm_lines[i], is_current=(i == current))
            for i in range(start, end)
        ]


# =============================================================================
# Build Stages
# =============================================================================

def _compile_c_sources(
    paths: ProjectPaths,
    sources: list[Path],
    constants: dict[str, int],
) -> ExpandedSource:
    c_files = []
    for path in sources:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise BuildError(f"failed to read {path}: {e.strerror or e}") from e
        try:
            name = path.relative_to(paths.root).as_posix()
        except ValueError:
            name = str(path)
        c_files.append(CSourceFile(path, text, name))

    logger.debug(f"Compiling {len(c_files)} C source(s): {[f.name for f in c_files]}")
    compiler = SmallCCompiler(CompilerOptions(constants=constants))
    return compiler.compile_sources(c_files).expanded


def collect_sources(paths: ProjectPaths, constants: dict[str, int]) -> ExpandedSource:
    """
    Produce the merged source of a project: `main.asm` then the C unit.

    Raises:
        BuildError: If the project has no sources
        IncludeError, SmallCError: From expansion or compilation
    """
    c_sources = paths.c_sources()
    has_asm = paths.main_asm.exists()

    if not c_sources and not has_asm:
        raise BuildError(
            f"no sources found: expected {paths.main_asm} or .c files under {paths.src_dir}"
        )

    if not c_sources:
        return expand_file(paths.main_asm)

    c_unit = _compile_c_sources(paths, c_sources, constants)
    if not has_asm:
        return c_unit
    return merge_units(expand_file(paths.main_asm), c_unit)


def assemble_project(
    root: str | Path,
    config: Optional[MachineConfig] = None,
) -> BuildArtifacts:
    """
    Build a project in memory; only the generated headers are written.

    Args:
        root: Project directory
        config: Machine configuration (read from chipcade.toml when omitted)

    Raises:
        ChipcadeError: On the first error in any stage
    """
    paths = ProjectPaths.from_root(root)
    if config is None:
        config = load_project_config(paths.root)
    memory_map = MemoryMap.from_config(config)

    system = system_constants(memory_map, config)
    sprites = sprite_constants(config.sprite_names)
    write_headers(paths.include_dir, system, sprites)

    expanded = collect_sources(paths, constants_dict(system, sprites))
    logger.debug(f"Merged source: {len(expanded.origins)} lines")

    assembler = Assembler(origin=memory_map.ram)
    try:
        assembler.assemble_expanded(expanded)
    except AssemblerError as e:
        raise relocate_error(e, expanded.origins, paths.root) from e

    output = assembler.get_output()
    labels = output.labels
    entry_point = next(
        (labels[name] for name in ENTRY_LABELS if name in labels), None
    )

    return BuildArtifacts(
        program=output.program,
        labels=labels,
        load_addr=memory_map.ram,
        entry_point=entry_point,
        line_map=list(expanded.origins),
        pc_line_map=compose_pc_map(output.line_map, expanded.origins),
        asm_lines=expanded.lines,
        pc_asm_line_map=list(output.line_map),
    )


def build_project(
    root: str | Path,
    output: Optional[str | Path] = None,
    config: Optional[MachineConfig] = None,
) -> BuildArtifacts:
    """
    Build a project and write its program image.

    Args:
        root: Project directory
        output: Image path (default: build/program.bin)
        config: Machine configuration (read from chipcade.toml when omitted)

    Example:
        >>> artifacts = build_project("games/chase")
        >>> hex(artifacts.entry_point)
        '0x200'
    """
    paths = ProjectPaths.from_root(root)
    artifacts = assemble_project(paths.root, config)

    target = Path(output) if output else paths.program_bin
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(artifacts.program)
    except OSError as e:
        raise BuildError(f"failed to write {target}: {e.strerror or e}") from e

    logger.info(
        f"Built {paths.root}: {len(artifacts.program)} bytes at "
        f"${artifacts.load_addr:04X} -> {target}"
    )
    return artifacts
