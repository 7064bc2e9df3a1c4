"""
C-Subset Compiler Error Hierarchy
=================================

This module defines the exception hierarchy for the C-subset compiler.
All exceptions inherit from SmallCError, which itself inherits from
ChipcadeError for consistent error handling across the toolchain.

Exception Hierarchy
-------------------
SmallCError (base for all C-subset errors)
├── CSyntaxError - malformed statement, declaration, condition, for-clause
│   └── UnterminatedBlockError - missing '}' or dangling else at end of file
├── CSemanticError - well-formed code that cannot be compiled
│   ├── UndeclaredIdentifierError - unknown variable
│   ├── DuplicateDeclarationError - global, local or function defined twice
│   └── ZeroPageExhaustedError - no zero-page byte left for a variable
└── CValueRangeError - literal wider than 8 bits, sprite index above 63

Error Message Format
--------------------
    game.c:12: error: unknown variable 'scroe'
        scroe++;
    hint: did you mean 'score'?

Whole-file errors name only the file:

    game.c: error: unterminated function body

Helpers that parse a fragment of a line (expressions, conditions,
address expressions) raise without a location; the compiler attaches
the file and line with with_location() before the error escapes.
"""

from typing import Optional

from chipcade.errors import ChipcadeError, SourceLocation, format_error


# =============================================================================
# Base C-Subset Exception
# =============================================================================

class SmallCError(ChipcadeError):
    """
    Base exception for all C-subset compiler errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred
        hint: A suggestion for fixing the error
        source_line: The actual source text at the error location
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(format_error(message, location, hint, source_line))

    def with_location(
        self,
        location: SourceLocation,
        source_line: Optional[str] = None,
    ) -> "SmallCError":
        """Return a copy of this error positioned at `location`."""
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        clone.location = location
        clone.source_line = source_line
        Exception.__init__(
            clone, format_error(clone.message, location, clone.hint, source_line)
        )
        return clone

    def wrapped(self, prefix: str) -> "SmallCError":
        """
        Return a copy whose message is prefixed with context.

        Used to turn "expected ')'" into "invalid expression 'a + (b': expected ')'".
        """
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        clone.message = f"{prefix}: {self.message}"
        Exception.__init__(
            clone,
            format_error(clone.message, clone.location, clone.hint, clone.source_line),
        )
        return clone


# =============================================================================
# Syntax Errors
# =============================================================================

class CSyntaxError(SmallCError):
    """
    Syntax error in C source code.

    Examples:
        - Statement without a trailing ';'
        - `if` whose '{' is not on the same line
        - Condition without a comparison operator
        - Unbalanced parentheses in an expression
    """
    pass


class UnterminatedBlockError(CSyntaxError):
    """
    A function or control-flow block is still open at end of file.

    Raised for a missing closing brace on a function body or on an
    if/else/while/for block, and for an else whose end label was never
    emitted.
    """
    pass


# =============================================================================
# Semantic Errors
# =============================================================================

class CSemanticError(SmallCError):
    """
    Semantic error in C source code.

    Raised when the code is syntactically correct but cannot be compiled.
    """
    pass


class UndeclaredIdentifierError(CSemanticError):
    """
    Reference to an undeclared variable.

    The compiler suggests similarly-named variables to help catch typos.
    """

    def __init__(
        self,
        identifier: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        similar_identifiers: Optional[list[str]] = None,
    ):
        self.identifier = identifier
        self.similar_identifiers = similar_identifiers or []

        hint = None
        if self.similar_identifiers:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_identifiers[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"unknown variable '{identifier}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class DuplicateDeclarationError(CSemanticError):
    """
    Identifier declared more than once.

    Globals, locals and functions each have their own message ("duplicate
    global", "duplicate local", "duplicate function"). A local may not
    shadow a global.
    """

    def __init__(
        self,
        identifier: str,
        kind: str,
        location: Optional[SourceLocation] = None,
        original_location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.identifier = identifier
        self.kind = kind
        self.original_location = original_location

        hint = None
        if original_location:
            hint = f"'{identifier}' was first declared at {original_location}"

        super().__init__(
            f"duplicate {kind} '{identifier}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class ZeroPageExhaustedError(CSemanticError):
    """
    No zero-page byte is left for a variable.

    Every global and local takes one byte from $40 upward and locals are
    never released when their function ends, so large programs can run
    out.
    """

    def __init__(
        self,
        identifier: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.identifier = identifier
        super().__init__(
            "out of zero-page space for globals/locals",
            location=location,
            hint=f"no byte left for '{identifier}'; locals are not freed "
                 f"when a function ends",
            source_line=source_line,
        )


# =============================================================================
# Range Errors
# =============================================================================

class CValueRangeError(SmallCError):
    """
    A literal does not fit where it is used.

    Examples:
        x = 300;            value does not fit in 8 bits
        sprite[64].x = 1;   sprite index above 63
    """
    pass
