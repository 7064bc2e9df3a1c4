"""
Chipcade Command-Line Interface
===============================

This package provides command-line tools for the Chipcade SDK:

- **chasm**: 6502 assembler
- **chcc**: C-subset compiler
- **chbuild**: Project build tool

Each tool is implemented as a Click-based CLI application with
comprehensive help and error reporting.
"""

__all__ = ["chasm", "chcc", "chbuild"]
