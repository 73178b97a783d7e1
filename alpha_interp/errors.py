"""
Error taxonomy for the Alpha-Notation interpreter.

Two families that never overlap:

  TranslationError: raised while turning source lines into a Program.
                      Carries the 1-based source line number (counted
                      before comment/blank elision, so it matches the
                      editor) and a human-readable reason.

  MachineError:     raised by Machine.step() while executing a Program.
                      Carries the address (instruction index) of the
                      failing instruction and, when known, its source line.

ConfigError covers bad machine configuration (profiles, JSON files, CLI
overrides) and is raised before any Program or Machine exists.
"""

from __future__ import annotations
from typing import List, Optional, Sequence


class AlphaError(Exception):
    """Base class for every error raised by the interpreter."""


# ──────────────────────────────────────────────
# Translation errors
# ──────────────────────────────────────────────

class TranslationError(AlphaError):
    """Raised when a source line cannot be translated."""
    kind = "Translation error"

    def __init__(self, reason: str, line_num: int = 0, line_text: str = ""):
        self.reason = reason
        self.line_num = line_num
        self.line_text = line_text
        super().__init__(f"Line {line_num}: {reason}" if line_num else reason)


class InvalidSyntax(TranslationError):
    """The line matches none of the recognized statement forms."""
    kind = "Syntax error"


class InvalidOperand(TranslationError):
    """An index or constant is lexically invalid or out of range."""
    kind = "Invalid operand"


class DuplicateLabel(TranslationError):
    """The same label name was defined twice."""
    kind = "Duplicate label"


class UndefinedLabel(TranslationError):
    """A jump names a label that is never defined."""
    kind = "Undefined label"


class TranslationErrors(TranslationError):
    """Every error found in collect-all mode, in source order."""
    kind = "Translation errors"

    def __init__(self, errors: Sequence[TranslationError]):
        self.errors: List[TranslationError] = list(errors)
        first = self.errors[0] if self.errors else None
        Exception.__init__(self, "\n".join(str(e) for e in self.errors))
        self.reason = f"{len(self.errors)} error(s)"
        self.line_num = first.line_num if first else 0
        self.line_text = first.line_text if first else ""


# ──────────────────────────────────────────────
# Runtime errors
# ──────────────────────────────────────────────

class MachineError(AlphaError):
    """Raised when an instruction cannot be executed."""
    kind = "Runtime error"

    def __init__(self, reason: str, address: Optional[int] = None,
                 line_num: Optional[int] = None):
        self.reason = reason
        self.address = address
        self.line_num = line_num
        where = []
        if address is not None:
            where.append(f"address {address}")
        if line_num:
            where.append(f"line {line_num}")
        prefix = f"{', '.join(where)}: " if where else ""
        super().__init__(f"{prefix}{reason}")

    def at(self, address: int, line_num: Optional[int]) -> "MachineError":
        """Return a copy of this error located at the given instruction."""
        return type(self)(self.reason, address, line_num)


class DivisionByZero(MachineError):
    kind = "Division by zero"


class OutOfRange(MachineError):
    """Accumulator or memory-cell index at or beyond the configured count."""
    kind = "Out of range"


class StackUnderflow(MachineError):
    kind = "Stack underflow"


# ──────────────────────────────────────────────
# Configuration errors
# ──────────────────────────────────────────────

class ConfigError(AlphaError):
    """Raised when a machine configuration is invalid."""
