"""
Lexer / Tokenizer for Alpha-Notation source.

Two stages, mirroring the translator's needs:

  Preprocessor: works on whole lines. Strips comments (from the first
                  '#' or '//' to end of line), splits off a leading
                  "label:" and drops lines left blank. Each surviving
                  line keeps its original 1-based line number so errors
                  point at the line the user actually wrote.

  Lexer:        tokenizes the statement part of one surviving line.

Accumulators are written a0 / α0, memory cells ρ(0) / p(0), constants are
decimal integers with an optional leading minus sign.
"""

from __future__ import annotations
import enum
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .errors import InvalidOperand, InvalidSyntax


# ──────────────────────────────────────────────
# Comment stripping
# ──────────────────────────────────────────────

COMMENT_MARKERS = ("#", "//")


def strip_comment(line: str) -> str:
    """Remove everything from the first comment marker to end of line."""
    cut = len(line)
    for marker in COMMENT_MARKERS:
        pos = line.find(marker)
        if pos != -1 and pos < cut:
            cut = pos
    return line[:cut]


# ──────────────────────────────────────────────
# Preprocessed lines
# ──────────────────────────────────────────────

_LABEL_RE = re.compile(r"^\s*([^\W\d]\w*)\s*:(?!=)\s*(.*)$")


@dataclass
class SourceLine:
    """One non-blank source line after comment removal."""
    line_num: int
    raw: str
    label: Optional[str] = None
    statement: str = ""


class Preprocessor:
    """Strip comments, split labels and elide blank lines."""

    def __init__(self, lines: Iterable[str]):
        self.lines = list(lines)

    def process(self) -> List[SourceLine]:
        result: List[SourceLine] = []
        for i, raw in enumerate(self.lines, 1):
            text = strip_comment(raw.rstrip("\r\n"))
            if not text.strip():
                continue
            src = SourceLine(line_num=i, raw=raw.rstrip("\r\n"))
            m = _LABEL_RE.match(text)
            if m:
                src.label = m.group(1)
                text = m.group(2)
            src.statement = text.strip()
            result.append(src)
        return result


# ──────────────────────────────────────────────
# Token types
# ──────────────────────────────────────────────

class TokenType(enum.Enum):
    ACCUMULATOR = "ACCUMULATOR"
    MEMORY = "MEMORY"
    INT = "INT"
    IDENT = "IDENT"
    KEYWORD = "KEYWORD"
    ASSIGN = ":="
    OP = "OP"
    CMP = "CMP"
    LPAREN = "("
    RPAREN = ")"
    EOF = "EOF"


@dataclass
class Token:
    type: TokenType
    value: object
    text: str
    line: int
    col: int

    def __repr__(self):
        return f"Token({self.type.name}, {self.value!r}, L{self.line}:{self.col})"


KEYWORDS = frozenset({
    "if", "then", "goto", "push", "pop", "stack", "call", "return",
})

# Longest spellings first so "<=" is not read as "<" followed by "=".
_COMPARISONS = ("<=", "=<", ">=", "=>", "==", "!=", "≤", "≥", "≠", "<", ">", "=")
_OPERATORS = "+-−*×/÷"
_MINUS_SIGNS = "-−"

_ACCUMULATOR_RE = re.compile(r"[aα](\d+)(?!\w)")
_MEMORY_RE = re.compile(r"[ρp](?=\s*\()")
_INT_RE = re.compile(r"\d+(?!\w)")
_NUMBER_LIKE_RE = re.compile(r"\d\w*")
_IDENT_RE = re.compile(r"[^\W\d]\w*")

# Token types after which a minus sign is an operator, not a sign.
_VALUE_TYPES = (TokenType.ACCUMULATOR, TokenType.INT, TokenType.RPAREN)


class Lexer:
    """Tokenizes the statement part of one source line."""

    def __init__(self, text: str, line_num: int = 0):
        self.text = text
        self.line_num = line_num
        self.pos = 0
        self.tokens: List[Token] = []

    def _error(self, message: str):
        raise InvalidSyntax(f"{message} (column {self.pos + 1})",
                            self.line_num, self.text)

    def _emit(self, ttype: TokenType, value, text: str):
        self.tokens.append(Token(ttype, value, text, self.line_num, self.pos + 1))
        self.pos += len(text)

    def _prev_is_value(self) -> bool:
        return bool(self.tokens) and self.tokens[-1].type in _VALUE_TYPES

    def tokenize(self) -> List[Token]:
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]

            if ch.isspace():
                self.pos += 1
                continue

            if text.startswith(":=", self.pos):
                self._emit(TokenType.ASSIGN, ":=", ":=")
                continue

            cmp = next((c for c in _COMPARISONS if text.startswith(c, self.pos)), None)
            if cmp is not None:
                self._emit(TokenType.CMP, cmp, cmp)
                continue

            if ch == "(":
                self._emit(TokenType.LPAREN, "(", "(")
                continue
            if ch == ")":
                self._emit(TokenType.RPAREN, ")", ")")
                continue

            # Signed constant: "-5" unless the minus follows a value ("a0 -5")
            if ch in _MINUS_SIGNS and not self._prev_is_value():
                m = _INT_RE.match(text, self.pos + 1)
                if m:
                    literal = text[self.pos:m.end()]
                    self._emit(TokenType.INT, -int(m.group(0)), literal)
                    continue

            if ch in _OPERATORS:
                self._emit(TokenType.OP, ch, ch)
                continue

            if ch.isdigit():
                m = _NUMBER_LIKE_RE.match(text, self.pos)
                word = m.group(0)
                if not word.isdigit():
                    raise InvalidOperand(f"Malformed number '{word}' (column {self.pos + 1})",
                                         self.line_num, self.text)
                self._emit(TokenType.INT, int(word), word)
                continue

            m = _ACCUMULATOR_RE.match(text, self.pos)
            if m:
                self._emit(TokenType.ACCUMULATOR, int(m.group(1)), m.group(0))
                continue

            m = _MEMORY_RE.match(text, self.pos)
            if m:
                self._emit(TokenType.MEMORY, m.group(0), m.group(0))
                continue

            m = _IDENT_RE.match(text, self.pos)
            if m:
                word = m.group(0)
                if word in KEYWORDS:
                    self._emit(TokenType.KEYWORD, word, word)
                else:
                    self._emit(TokenType.IDENT, word, word)
                continue

            self._error(f"Unexpected character {ch!r}")

        self.tokens.append(Token(TokenType.EOF, None, "", self.line_num, self.pos + 1))
        return self.tokens


def tokenize(text: str, line_num: int = 0) -> List[Token]:
    """Convenience wrapper: tokenize one statement."""
    return Lexer(text, line_num).tokenize()
