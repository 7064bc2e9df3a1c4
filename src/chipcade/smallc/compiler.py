"""
C-Subset Compiler Main Module
=============================

This module provides the main compiler interface for the Chipcade C
subset. It compiles one or more `.c` files into a single block of 6502
assembly in which every line remembers the C file and line it came from.

Usage
-----
Command line:
    $ chcc src/main.c src/player.c -o game.asm

Programmatic:
    >>> from chipcade.smallc import compile_c
    >>> result = compile_c("unsigned char x;\\nvoid Update() {\\n    x++;\\n}\\n")
    >>> result.variables
    {'x': 64}

Supported Language
------------------
The compiler is line-oriented: one declaration or statement per line,
with every block opener `{` on the line of its keyword.

    unsigned char score;            // global, one zero-page byte
    void Update() {                 // zero-argument functions only
        unsigned char i = 0;        // local, optional initializer
        for (i = 0; i < 8; i++) {
            mem[VRAM + i] = score;
        }
        if (score == 10) {
            Reset();
        } else {
            score++;
        }
    }

Functions named `Init` and `Update` are entry points run by the machine;
they end with BRK instead of RTS.

Compilation Pipeline
--------------------
1. **Allocation pass**: walk every file and give each global a zero-page
   byte, so every function sees every global whatever the file order.
2. **Code pass**: compile function bodies statement by statement.
   Control flow uses a stack of open blocks closed by `}` lines.

Variables
---------
Globals and locals share one zero-page cursor starting at $40, one byte
each. Locals are not released when their function ends, so a program
with many locals can run out of zero page.

Error Handling
--------------
The first error stops compilation and is reported as
`file:line: error: message`.
"""

import difflib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from chipcade.assembler.includes import ExpandedSource, canonical_path
from chipcade.errors import SourceLocation
from chipcade.smallc.codegen import AsmEmitter, LabelAllocator
from chipcade.smallc.errors import (
    CSyntaxError,
    DuplicateDeclarationError,
    SmallCError,
    UndeclaredIdentifierError,
    UnterminatedBlockError,
    ZeroPageExhaustedError,
)
from chipcade.smallc.expressions import (
    Scope,
    parse_addr_expr,
    parse_condition,
    parse_expression,
    parse_mem_access,
    validate_ident,
)

logger = logging.getLogger(__name__)

ZERO_PAGE_BASE = 0x40
ZERO_PAGE_LIMIT = 0xFF

# Functions called by the machine rather than by JSR
ENTRY_FUNCTIONS = frozenset({"Init", "Update"})

CHAR_TYPES = ("unsigned char ", "signed char ")


@dataclass
class CompilerOptions:
    """
    Compiler configuration options.

    Attributes:
        constants: Named 16-bit values usable in expressions and addresses
            (system constants such as VRAM, sprite indices, ...)
        zero_page_base: First zero-page address handed to a variable
    """
    constants: dict[str, int] = field(default_factory=dict)
    zero_page_base: int = ZERO_PAGE_BASE


@dataclass
class CSourceFile:
    """
    One C file to compile.

    Attributes:
        path: File path, used for line provenance
        text: File contents
        name: Name used in error messages (defaults to the path)
    """
    path: Path
    text: str
    name: str = ""

    def __post_init__(self):
        self.path = Path(self.path)
        if not self.name:
            self.name = str(self.path)


@dataclass
class CVar:
    """A compiled variable: one byte of zero page."""
    name: str
    address: int
    location: SourceLocation


@dataclass
class GlobalInit:
    """A global initializer waiting to be emitted at the top of Init."""
    var: CVar
    expression: str
    origin_file: Path
    source_line: str


@dataclass
class CompilerResult:
    """
    Result of a compilation.

    Attributes:
        expanded: Assembly text plus one LineOrigin per line
        variables: Variable name -> zero-page address (globals and locals)
        functions: Defined function names, in definition order
    """
    expanded: ExpandedSource
    variables: dict[str, int] = field(default_factory=dict)
    functions: list[str] = field(default_factory=list)

    @property
    def assembly(self) -> str:
        return self.expanded.text


# =============================================================================
# Control-Flow Blocks
# =============================================================================

@dataclass
class IfBlock:
    else_label: str
    end_label: str


@dataclass
class ElseBlock:
    end_label: str


@dataclass
class WhileBlock:
    start_label: str
    end_label: str


@dataclass
class ForBlock:
    start_label: str
    end_label: str
    step: Optional[str]


FlowBlock = Union[IfBlock, ElseBlock, WhileBlock, ForBlock]


@dataclass
class _FileState:
    """Per-file state of the code pass."""
    source: CSourceFile
    canonical: Path
    function: Optional[str] = None
    locals: dict[str, CVar] = field(default_factory=dict)
    flow_stack: list[FlowBlock] = field(default_factory=list)
    pending_else_end: Optional[str] = None


# =============================================================================
# Line Recognizers
# =============================================================================
# Each returns None when the line is not of its kind and raises
# CSyntaxError when it is, but is malformed.
# =============================================================================

def strip_c_comment(line: str) -> str:
    """Drop a `//` comment."""
    idx = line.find("//")
    return line if idx < 0 else line[:idx]


def parse_char_decl(line: str) -> Optional[tuple[str, Optional[str]]]:
    """`unsigned char x;` / `signed char x = expr;` -> (name, initializer)."""
    s = line.strip()
    for prefix in CHAR_TYPES:
        if s.startswith(prefix):
            s = s[len(prefix):]
            break
    else:
        return None

    if not s.endswith(";"):
        raise CSyntaxError("expected ';' after declaration")
    s = s[:-1].strip()

    init = None
    eq = s.find("=")
    if eq >= 0:
        init = s[eq + 1:].strip()
        s = s[:eq].strip()
        if not init:
            raise CSyntaxError("expected initializer expression")
    validate_ident(s)
    return s, init


def is_extern_decl(line: str) -> bool:
    s = line.strip()
    if not s.startswith("extern "):
        return False
    if not s.endswith(";"):
        raise CSyntaxError("extern declaration must end with ';'")
    return True


def parse_fn_proto(line: str) -> Optional[str]:
    """`void Name();` (or without ';') -> Name."""
    s = line.strip()
    if not s.startswith("void "):
        return None
    rest = s[len("void "):]
    open_paren = rest.find("(")
    if open_paren < 0:
        return None
    name = rest[:open_paren].strip()
    validate_ident(name)
    if rest[open_paren:].strip() in ("();", "()"):
        return name
    return None


def parse_fn_start(line: str) -> Optional[str]:
    """`void Name() {` -> Name."""
    s = line.strip()
    if not s.startswith("void "):
        return None
    rest = s[len("void "):]
    open_paren = rest.find("(")
    if open_paren < 0:
        raise CSyntaxError("expected function parameters")
    name = rest[:open_paren].strip()
    validate_ident(name)
    if rest[open_paren:].strip() not in ("() {", "(){"):
        raise CSyntaxError("only zero-arg 'void Name() {' functions are supported")
    return name


def _strip_keyword(line: str, keyword: str) -> Optional[str]:
    """Text after `keyword` if the line starts with it as a whole word."""
    s = line.strip()
    if not s.startswith(keyword):
        return None
    rest = s[len(keyword):]
    if rest and (rest[0].isalnum() or rest[0] == "_"):
        return None
    return rest.lstrip()


def parse_control_start(line: str, keyword: str) -> Optional[str]:
    """`if (cond) {` / `while (cond) {` -> cond."""
    rest = _strip_keyword(line, keyword)
    if rest is None:
        return None
    open_paren = rest.find("(")
    if open_paren < 0:
        raise CSyntaxError(f"expected condition for {keyword}")
    close_paren = rest.rfind(")")
    if close_paren < 0:
        raise CSyntaxError(f"expected ')' in {keyword} condition")
    if rest[close_paren + 1:].strip() != "{":
        raise CSyntaxError(f"{keyword} requires '{{' on the same line in this C subset")
    if open_paren >= close_paren:
        raise CSyntaxError(f"empty condition in {keyword}")
    return rest[open_paren + 1:close_paren].strip()


def parse_for_start(
    line: str,
) -> Optional[tuple[Optional[str], Optional[str], Optional[str]]]:
    """`for (init; cond; step) {` -> (init, cond, step), empty parts as None."""
    rest = _strip_keyword(line, "for")
    if rest is None:
        return None
    open_paren = rest.find("(")
    if open_paren < 0:
        raise CSyntaxError("expected for-loop parentheses")
    close_paren = rest.rfind(")")
    if close_paren < 0:
        raise CSyntaxError("expected ')' in for loop")
    if rest[close_paren + 1:].strip() != "{":
        raise CSyntaxError("for requires '{' on the same line in this C subset")
    if open_paren >= close_paren:
        raise CSyntaxError("empty for(...) clause")

    parts = [p.strip() for p in rest[open_paren + 1:close_paren].split(";")]
    if len(parts) != 3:
        raise CSyntaxError("for requires init; condition; step")
    init, cond, step = (p or None for p in parts)
    return init, cond, step


def is_else_start(line: str) -> bool:
    return line.strip() in ("else {", "else{")


def order_sources(root: Path, paths: list[Path]) -> list[Path]:
    """`main.c` first, then the rest by path relative to `root`."""
    def key(path: Path) -> tuple[bool, str]:
        try:
            rel = path.relative_to(root)
        except ValueError:
            rel = path
        return rel != Path("main.c"), rel.as_posix()
    return sorted(paths, key=key)


# =============================================================================
# Compiler
# =============================================================================

class SmallCCompiler:
    """
    C-subset compiler for the Chipcade machine.

    Each compile call carries its own zero-page cursor and label counter,
    so one compiler may be reused and separate compilers never interact.

    Example:
        compiler = SmallCCompiler(CompilerOptions(constants={"VRAM": 0x2000}))
        result = compiler.compile_sources([CSourceFile(Path("main.c"), text)])
        print(result.assembly)
    """

    def __init__(self, options: Optional[CompilerOptions] = None):
        self.options = options or CompilerOptions()
        self._reset()

    def _reset(self) -> None:
        self._globals: dict[str, CVar] = {}
        self._all_vars: dict[str, int] = {}
        self._global_inits: list[GlobalInit] = []
        self._declared_functions: set[str] = set()
        self._functions: dict[str, SourceLocation] = {}
        self._next_zp = self.options.zero_page_base
        self._labels = LabelAllocator()
        self._out = AsmEmitter(self._labels)

    # =========================================================================
    # Public Interface
    # =========================================================================

    def compile_sources(self, sources: list[CSourceFile]) -> CompilerResult:
        """
        Compile C files, in the given order, into one assembly unit.

        Raises:
            SmallCError: On the first error
        """
        self._reset()

        for source in sources:
            self._allocate_globals(source)
        logger.debug(
            f"Allocated {len(self._globals)} globals, next zero-page byte "
            f"${self._next_zp:02X}"
        )

        if self._global_inits and "Init" not in self._declared_functions:
            self._emit_synthetic_init()

        for source in sources:
            self._compile_file(source)

        logger.debug(
            f"Compiled {len(sources)} file(s): {len(self._functions)} functions, "
            f"{len(self._out)} assembly lines"
        )
        return CompilerResult(
            expanded=self._out.to_expanded(),
            variables=dict(self._all_vars),
            functions=list(self._functions),
        )

    def compile_source(self, text: str, filename: str = "main.c") -> CompilerResult:
        """Compile a single C source string."""
        return self.compile_sources([CSourceFile(Path(filename), text)])

    def compile_file(self, filepath: str | Path) -> CompilerResult:
        """
        Compile a single C file.

        Raises:
            SmallCError: If compilation fails
            FileNotFoundError: If the file does not exist
        """
        path = Path(filepath)
        text = path.read_text(encoding="utf-8")
        return self.compile_sources([CSourceFile(path, text)])

    # =========================================================================
    # Allocation Pass
    # =========================================================================

    def _allocate_globals(self, source: CSourceFile) -> None:
        """
        Give every global in one file its zero-page byte.

        Function bodies are skipped by brace depth; their locals are
        allocated during the code pass.
        """
        depth = 0
        for line_no, raw, line in self._lines(source):
            location = SourceLocation(source.name, line_no)
            try:
                if depth > 0:
                    if line == "}":
                        depth -= 1
                    elif line.endswith("{"):
                        depth += 1
                    continue

                if parse_fn_proto(line) is not None:
                    continue
                if is_extern_decl(line):
                    continue
                name = parse_fn_start(line)
                if name is not None:
                    self._declared_functions.add(name)
                    depth = 1
                    continue

                decl = parse_char_decl(line)
                if decl is None:
                    continue
                var_name, init = decl
                if var_name in self._globals:
                    raise DuplicateDeclarationError(
                        var_name, "global",
                        original_location=self._globals[var_name].location,
                    )
                var = self._allocate(var_name, location)
                self._globals[var_name] = var
                if init is not None:
                    self._global_inits.append(
                        GlobalInit(var, init, canonical_path(source.path), raw)
                    )
            except SmallCError as e:
                raise self._locate(e, location, raw) from e

    def _allocate(self, name: str, location: SourceLocation) -> CVar:
        """Take the next zero-page byte."""
        if self._next_zp >= ZERO_PAGE_LIMIT:
            raise ZeroPageExhaustedError(name)
        var = CVar(name, self._next_zp, location)
        self._next_zp += 1
        self._all_vars[name] = var.address
        logger.debug(f"Allocated '{name}' at ${var.address:02X} ({location})")
        return var

    # =========================================================================
    # Code Pass
    # =========================================================================

    def _lines(self, source: CSourceFile):
        """Yield (line number, raw line, cleaned line) for non-blank lines."""
        for idx, raw in enumerate(source.text.splitlines()):
            line = strip_c_comment(raw).strip()
            if not line or line.startswith("#include"):
                continue
            yield idx + 1, raw, line

    def _compile_file(self, source: CSourceFile) -> None:
        state = _FileState(source, canonical_path(source.path))

        for line_no, raw, line in self._lines(source):
            location = SourceLocation(source.name, line_no)
            self._out.set_origin(state.canonical, line_no)
            try:
                if state.function is None:
                    self._compile_top_level(line, state, location)
                else:
                    self._compile_body_line(line, state, location)
            except SmallCError as e:
                raise self._locate(e, location, raw) from e

        end_of_file = SourceLocation(source.name, 0)
        if state.function is not None:
            raise UnterminatedBlockError("unterminated function body", end_of_file)
        if state.pending_else_end is not None:
            raise UnterminatedBlockError(
                "dangling else handling at end of function", end_of_file
            )
        if state.flow_stack:
            raise UnterminatedBlockError("unterminated control-flow block", end_of_file)

    def _compile_top_level(
        self,
        line: str,
        state: _FileState,
        location: SourceLocation,
    ) -> None:
        if parse_char_decl(line) is not None:
            return
        if is_extern_decl(line):
            return
        if parse_fn_proto(line) is not None:
            return

        name = parse_fn_start(line)
        if name is None:
            raise CSyntaxError("expected global char declaration or function")
        if name in self._functions:
            raise DuplicateDeclarationError(
                name, "function", original_location=self._functions[name]
            )

        self._functions[name] = location
        self._out.emit_label(name)
        if name == "Init":
            self._emit_global_inits()
            self._out.set_origin(state.canonical, location.line)

        state.function = name
        state.locals.clear()
        state.pending_else_end = None

    def _scope(self, state: _FileState) -> Scope:
        variables = {name: var.address for name, var in self._globals.items()}
        variables.update({name: var.address for name, var in state.locals.items()})
        return Scope(variables, self.options.constants)

    def _compile_body_line(
        self,
        line: str,
        state: _FileState,
        location: SourceLocation,
    ) -> None:
        scope = self._scope(state)

        if state.pending_else_end is not None:
            end_label = state.pending_else_end
            state.pending_else_end = None
            if is_else_start(line):
                state.flow_stack.append(ElseBlock(end_label))
                return
            self._out.emit_label(end_label)

        decl = parse_char_decl(line)
        if decl is not None:
            self._compile_local(decl, state, scope, location)
            return

        cond = parse_control_start(line, "if")
        if cond is not None:
            end_label = self._labels.next("CIFEND")
            else_label = self._labels.next("CIFELSE")
            self._compile_condition(cond, else_label, scope)
            state.flow_stack.append(IfBlock(else_label, end_label))
            return

        cond = parse_control_start(line, "while")
        if cond is not None:
            start_label = self._labels.next("CWHILES")
            end_label = self._labels.next("CWHILEE")
            self._out.emit_label(start_label)
            self._compile_condition(cond, end_label, scope)
            state.flow_stack.append(WhileBlock(start_label, end_label))
            return

        header = parse_for_start(line)
        if header is not None:
            init, cond, step = header
            if init is not None:
                self._compile_statement(f"{init};", state.function, scope)
            start_label = self._labels.next("CFORS")
            end_label = self._labels.next("CFORE")
            self._out.emit_label(start_label)
            if cond is not None:
                self._compile_condition(cond, end_label, scope)
            state.flow_stack.append(ForBlock(start_label, end_label, step))
            return

        if line == "}":
            self._close_block(state, scope)
            return

        self._compile_statement(line, state.function, scope)

    def _close_block(self, state: _FileState, scope: Scope) -> None:
        """Handle `}`: close the innermost flow block, or the function."""
        if state.flow_stack:
            block = state.flow_stack.pop()
            if isinstance(block, IfBlock):
                self._out.emit_instruction("JMP", block.end_label)
                self._out.emit_label(block.else_label)
                state.pending_else_end = block.end_label
            elif isinstance(block, ElseBlock):
                self._out.emit_label(block.end_label)
            elif isinstance(block, WhileBlock):
                self._out.emit_instruction("JMP", block.start_label)
                self._out.emit_label(block.end_label)
            else:
                if block.step is not None:
                    self._compile_statement(f"{block.step};", state.function, scope)
                self._out.emit_instruction("JMP", block.start_label)
                self._out.emit_label(block.end_label)
            return

        if state.pending_else_end is not None:
            self._out.emit_label(state.pending_else_end)
            state.pending_else_end = None

        self._emit_return(state.function)
        self._out.emit()
        state.function = None
        state.locals.clear()

    def _compile_local(
        self,
        decl: tuple[str, Optional[str]],
        state: _FileState,
        scope: Scope,
        location: SourceLocation,
    ) -> None:
        name, init = decl
        if name in scope.variables:
            original = state.locals.get(name) or self._globals.get(name)
            raise DuplicateDeclarationError(
                name, "local", original_location=original.location
            )
        var = self._allocate(name, location)
        if init is not None:
            expr = parse_expression(init, scope.with_variable(name, var.address))
            self._out.emit_expr(expr)
            self._out.emit_store_var(var.address)
        state.locals[name] = var

    def _compile_condition(self, source: str, false_label: str, scope: Scope) -> None:
        try:
            left, op, right = parse_condition(source)
            left_expr = parse_expression(left, scope)
            right_expr = parse_expression(right, scope)
        except SmallCError as e:
            raise e.wrapped(f"invalid condition '{source}'") from e
        self._out.emit_condition(left_expr, op, right_expr, false_label)

    def _emit_return(self, function: Optional[str]) -> None:
        self._out.emit_instruction("BRK" if function in ENTRY_FUNCTIONS else "RTS")

    # =========================================================================
    # Statements
    # =========================================================================

    def _compile_statement(self, stmt: str, function: Optional[str], scope: Scope) -> None:
        """Compile `return;`, `f();`, `x++;`, `x--;` or `lhs = rhs;`."""
        s = stmt.strip()

        if s == "return;":
            self._emit_return(function)
            return

        if s.endswith(");") and s[:-2].endswith("("):
            target = s[:-3].strip()
            try:
                validate_ident(target)
            except SmallCError as e:
                raise e.wrapped("invalid call target") from e
            self._out.emit_instruction("JSR", target)
            return

        for suffix, mnemonic in (("++;", "INC"), ("--;", "DEC")):
            if s.endswith(suffix):
                address = self._lookup_var(s[:-len(suffix)].strip(), scope)
                self._out.emit_instruction(mnemonic, f"${address:02X}")
                return

        eq = s.find("=")
        if eq < 0:
            raise CSyntaxError("unsupported statement")
        lhs = s[:eq].strip()
        rhs = s[eq + 1:].strip()
        if not rhs.endswith(";"):
            raise CSyntaxError("expected ';'")
        rhs = rhs[:-1].strip()

        lhs_mem = parse_mem_access(lhs, scope)
        if lhs_mem is not None:
            address = self._parse_address(lhs_mem, scope)
            self._out.emit_expr(parse_expression(rhs, scope))
            self._out.emit_store(address)
            return

        try:
            validate_ident(lhs)
        except SmallCError as e:
            raise e.wrapped("invalid assignment target") from e
        target = self._lookup_var(lhs, scope)

        rhs_mem = parse_mem_access(rhs, scope)
        if rhs_mem is not None:
            self._out.emit_load(self._parse_address(rhs_mem, scope))
        else:
            self._out.emit_expr(parse_expression(rhs, scope))
        self._out.emit_store_var(target)

    @staticmethod
    def _parse_address(text: str, scope: Scope):
        try:
            return parse_addr_expr(text, scope)
        except SmallCError as e:
            raise e.wrapped("invalid address expression") from e

    @staticmethod
    def _lookup_var(name: str, scope: Scope) -> int:
        if name not in scope.variables:
            similar = difflib.get_close_matches(name, list(scope.variables), n=3)
            raise UndeclaredIdentifierError(name, similar_identifiers=similar)
        return scope.variables[name]

    # =========================================================================
    # Global Initializers
    # =========================================================================

    def _emit_global_inits(self) -> None:
        """Emit `x = <init>;` for every initialized global."""
        scope = Scope(
            {name: var.address for name, var in self._globals.items()},
            self.options.constants,
        )
        for init in self._global_inits:
            self._out.set_origin(init.origin_file, init.var.location.line)
            try:
                expr = parse_expression(init.expression, scope)
            except SmallCError as e:
                raise self._locate(e, init.var.location, init.source_line) from e
            self._out.emit_expr(expr)
            self._out.emit_store_var(init.var.address)

    def _emit_synthetic_init(self) -> None:
        """Provide an `Init` that only runs the global initializers."""
        first = self._global_inits[0]
        self._out.set_origin(first.origin_file, first.var.location.line)
        self._out.emit_label("Init")
        self._functions["Init"] = first.var.location
        self._emit_global_inits()
        self._emit_return("Init")
        self._out.emit()

    @staticmethod
    def _locate(e: SmallCError, location: SourceLocation, raw: str) -> SmallCError:
        if e.location is None:
            return e.with_location(location, raw)
        return e


# =============================================================================
# Convenience Functions
# =============================================================================

def compile_c(
    source: str,
    filename: str = "main.c",
    constants: Optional[dict[str, int]] = None,
) -> CompilerResult:
    """
    Compile C-subset source text to 6502 assembly.

    Args:
        source: C source code
        filename: Source filename for error messages and provenance
        constants: Named constants visible to the code

    Raises:
        SmallCError: If compilation fails
    """
    compiler = SmallCCompiler(CompilerOptions(constants=dict(constants or {})))
    return compiler.compile_source(source, filename)


def compile_files(
    paths: list[str | Path],
    constants: Optional[dict[str, int]] = None,
    root: Optional[Path] = None,
) -> CompilerResult:
    """
    Compile several C files into one assembly unit.

    Files are ordered `main.c` first, then by path relative to `root`
    (the common source directory; defaults to the first file's parent).
    Error messages name files relative to `root` where possible.
    """
    paths = [Path(p) for p in paths]
    if root is None:
        root = paths[0].parent if paths else Path(".")

    sources = []
    for path in order_sources(root, paths):
        try:
            name = path.relative_to(root).as_posix()
        except ValueError:
            name = str(path)
        sources.append(CSourceFile(path, path.read_text(encoding="utf-8"), name))

    compiler = SmallCCompiler(CompilerOptions(constants=dict(constants or {})))
    return compiler.compile_sources(sources)


def compile_file(
    filepath: str | Path,
    output_path: Optional[str | Path] = None,
    constants: Optional[dict[str, int]] = None,
) -> str:
    """
    Compile a C file to assembly text, optionally writing it out.

    Example:
        >>> asm = compile_file("main.c", "main.asm")
    """
    compiler = SmallCCompiler(CompilerOptions(constants=dict(constants or {})))
    result = compiler.compile_file(filepath)

    if output_path:
        Path(output_path).write_text(result.assembly, encoding="utf-8")

    return result.assembly
