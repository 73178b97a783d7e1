"""
Two-pass translator: Alpha-Notation source lines -> Program.

How the two passes work:
  Preprocess: strip comments, split "label:" prefixes, elide blank lines.
              Only lines that still hold a statement get an address, so
              addresses are post-elision indices.
  Pass 1:     Walk the surviving lines, give every label the address of
              the next emitted instruction. Redefinition -> DuplicateLabel.
  Pass 2:     Tokenize and parse each statement into an Instruction
              variant, validating operands as they are built.
  Resolve:    Replace each jump's label name with its instruction index.
              ENDE/END become the HALT sentinel, as does a label with no
              instruction after it. Unknown names -> UndefinedLabel.

Every stage runs to the end and records its errors. By default only the
error on the earliest source line is raised; with collect_errors=True one
TranslationErrors carrying all of them, in line order, is raised.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import (
    DuplicateLabel, InvalidOperand, InvalidSyntax, TranslationError,
    TranslationErrors, UndefinedLabel,
)
from .instructions import (
    HALT, OPERATION_SYMBOLS, COMPARISON_SYMBOLS, Accumulator, Assign,
    Calculate, Call, Constant, Goto, Halt, IndirectMemoryCell, Instruction,
    Jump, JumpIf, JumpTarget, MemoryCell, Operand, Pop, Push, Return,
    StackOp, is_end_label,
)
from .lexer import (
    KEYWORDS, Lexer, Preprocessor, SourceLine, Token, TokenType, strip_comment,
)

__all__ = ['Program', 'Translator', 'translate', 'translate_source']

log = logging.getLogger(__name__)

# Labels that move the entry point away from address 0.
ENTRY_LABELS = ("main", "MAIN")


# ──────────────────────────────────────────────
# Program
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Program:
    """Translated, resolved and read-only program."""
    instructions: Tuple[Instruction, ...]
    labels: Mapping[str, int] = field(default_factory=dict)
    line_numbers: Tuple[int, ...] = ()
    entry: int = 0
    source: Tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.instructions)

    def __getitem__(self, address: int) -> Instruction:
        return self.instructions[address]

    def __iter__(self):
        return iter(self.instructions)

    def line_of(self, address: int) -> Optional[int]:
        """Source line number of the instruction at ``address``."""
        if 0 <= address < len(self.line_numbers):
            return self.line_numbers[address]
        return None

    def address_of_line(self, line_num: int) -> Optional[int]:
        """Address of the first instruction at or after ``line_num``."""
        for address, num in enumerate(self.line_numbers):
            if num >= line_num:
                return address
        return None

    def source_comment(self, address: int) -> str:
        """Comment text the source line of ``address`` carried, if any."""
        line_num = self.line_of(address)
        if line_num is None or line_num > len(self.source):
            return ""
        raw = self.source[line_num - 1]
        return raw[len(strip_comment(raw)):].strip()

    def listing(self) -> str:
        """Human-readable listing: address, source line, instruction, target.

        Comments from the source are carried over at the end of each row.
        """
        by_address: Dict[int, List[str]] = {}
        for name, address in sorted(self.labels.items(), key=lambda kv: kv[1]):
            by_address.setdefault(address, []).append(name)

        lines = [f"{'ADDR':>5}  {'LINE':>5}  INSTRUCTION", "-" * 48]
        for address, instr in enumerate(self.instructions):
            for name in by_address.get(address, ()):
                lines.append(f"{'':>5}  {'':>5}  {name}:")
            text = str(instr)
            if isinstance(instr, Jump):
                text = f"{text:<32} -> {instr.target}"
            comment = self.source_comment(address)
            if comment:
                text = f"{text:<40} {comment}"
            marker = ">" if address == self.entry else " "
            lines.append(f"{marker}{address:>4}  {self.line_of(address):>5}  {text}")
        for name in by_address.get(len(self.instructions), ()):
            lines.append(f"{'':>5}  {'':>5}  {name}:")
        return "\n".join(lines)


# ──────────────────────────────────────────────
# Statement parser
# ──────────────────────────────────────────────

class StatementParser:
    """Recursive descent over the tokens of a single statement."""

    def __init__(self, tokens: List[Token], line: SourceLine):
        self.tokens = tokens
        self.line = line
        self.pos = 0

    # ── Helpers ─────────────────────────────

    def _cur(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        tok = self.tokens[self.pos]
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def _at(self, ttype: TokenType, value=None) -> bool:
        tok = self._cur()
        return tok.type == ttype and (value is None or tok.value == value)

    def _syntax(self, message: str) -> InvalidSyntax:
        tok = self._cur()
        got = tok.text or "end of line"
        return InvalidSyntax(f"{message}, got '{got}' (column {tok.col})",
                             self.line.line_num, self.line.raw)

    def _expect(self, ttype: TokenType, value=None, what: str = "") -> Token:
        if not self._at(ttype, value):
            raise self._syntax(f"Expected {what or value or ttype.value}")
        return self._advance()

    def _end(self):
        if not self._at(TokenType.EOF):
            raise self._syntax("Unexpected trailing input")

    # ── Operands ────────────────────────────

    def _memory(self) -> Operand:
        self._expect(TokenType.MEMORY)
        self._expect(TokenType.LPAREN, what="'('")
        tok = self._cur()
        if tok.type == TokenType.INT:
            self._advance()
            if tok.value < 0:
                raise InvalidOperand(f"Memory cell index must not be negative: {tok.value}",
                                     self.line.line_num, self.line.raw)
            cell: Operand = MemoryCell(tok.value)
        elif tok.type == TokenType.ACCUMULATOR:
            self._advance()
            cell = IndirectMemoryCell(Accumulator(tok.value))
        else:
            raise self._syntax("Expected memory cell index")
        self._expect(TokenType.RPAREN, what="')'")
        return cell

    def _target(self) -> Operand:
        tok = self._cur()
        if tok.type == TokenType.ACCUMULATOR:
            self._advance()
            return Accumulator(tok.value)
        if tok.type == TokenType.MEMORY:
            return self._memory()
        raise self._syntax("Expected accumulator or memory cell")

    def _value(self) -> Operand:
        tok = self._cur()
        if tok.type == TokenType.INT:
            self._advance()
            return Constant(tok.value)
        if tok.type in (TokenType.ACCUMULATOR, TokenType.MEMORY):
            return self._target()
        raise self._syntax("Expected accumulator, memory cell or constant")

    def _label(self) -> str:
        tok = self._cur()
        if tok.type in (TokenType.IDENT, TokenType.ACCUMULATOR):
            self._advance()
            return tok.text
        raise self._syntax("Expected label")

    def _accumulator_or_default(self) -> Accumulator:
        if self._at(TokenType.ACCUMULATOR):
            return Accumulator(self._advance().value)
        return Accumulator(0)

    # ── Statements ──────────────────────────

    def parse(self) -> Instruction:
        tok = self._cur()
        if tok.type == TokenType.KEYWORD:
            handler = getattr(self, f"_stmt_{tok.value}", None)
            if handler is None:
                raise self._syntax("Statement cannot start with this keyword")
            self._advance()
            instr = handler()
        elif tok.type == TokenType.IDENT and is_end_label(tok.value):
            self._advance()
            instr = Halt()
        elif tok.type in (TokenType.ACCUMULATOR, TokenType.MEMORY):
            instr = self._stmt_assign()
        else:
            raise self._syntax("Unknown statement")
        self._end()
        return instr

    def _stmt_assign(self) -> Instruction:
        target = self._target()
        self._expect(TokenType.ASSIGN, what="':='")
        left = self._value()
        if self._at(TokenType.OP):
            op = OPERATION_SYMBOLS[self._advance().value]
            right = self._value()
            return Calculate(target, left, op, right)
        return Assign(target, left)

    def _stmt_if(self) -> Instruction:
        left = self._value()
        cmp_tok = self._expect(TokenType.CMP, what="comparison")
        right = self._value()
        self._expect(TokenType.KEYWORD, "then", "'then'")
        self._expect(TokenType.KEYWORD, "goto", "'goto'")
        label = self._label()
        return JumpIf(label=label, left=left, cmp=COMPARISON_SYMBOLS[cmp_tok.value], right=right)

    def _stmt_goto(self) -> Instruction:
        return Goto(label=self._label())

    def _stmt_call(self) -> Instruction:
        return Call(label=self._label())

    def _stmt_return(self) -> Instruction:
        return Return()

    def _stmt_push(self) -> Instruction:
        return Push(self._accumulator_or_default())

    def _stmt_pop(self) -> Instruction:
        return Pop(self._accumulator_or_default())

    def _stmt_stack(self) -> Instruction:
        tok = self._expect(TokenType.OP, what="arithmetic operator")
        return StackOp(OPERATION_SYMBOLS[tok.value])


# ──────────────────────────────────────────────
# The Translator
# ──────────────────────────────────────────────

class Translator:
    """Two-pass Alpha-Notation translator.

    Usage:
        program = Translator().translate(lines)

    When ``accumulators`` / ``memory_cells`` are given, constant indices
    are checked against them and reported as InvalidOperand, a
    TranslationError. Without counts the same index is only caught when
    a Machine is built, as the runtime OutOfRange.

    Errors from every stage are gathered first. Fail-fast mode then
    raises the one on the earliest source line; collect mode raises them
    all as TranslationErrors.
    """

    def __init__(self, accumulators: Optional[int] = None,
                 memory_cells: Optional[int] = None,
                 collect_errors: bool = False):
        self.accumulators = accumulators
        self.memory_cells = memory_cells
        self.collect_errors = collect_errors
        self.errors: List[TranslationError] = []
        self._lines: List[SourceLine] = []

    def translate(self, lines: Iterable[str]) -> Program:
        source = tuple(line.rstrip("\r\n") for line in lines)
        self.errors = []
        self._lines = Preprocessor(source).process()

        labels = self._pass1()
        instructions, line_numbers = self._pass2()
        instructions = self._resolve(instructions, labels)
        entry = self._entry(labels)

        if self.errors:
            errors = sorted(self.errors, key=lambda e: e.line_num)
            if self.collect_errors:
                raise TranslationErrors(errors)
            raise errors[0]

        log.debug("Translated %d instruction(s) from %d line(s); labels: %s",
                  len(instructions), len(source), labels)
        return Program(
            instructions=tuple(instructions),
            labels=MappingProxyType(dict(labels)),
            line_numbers=tuple(line_numbers),
            entry=entry,
            source=source,
        )

    def _fail(self, error: TranslationError):
        self.errors.append(error)

    def _pass1(self) -> Dict[str, int]:
        """Map every label to the address of the next emitted instruction."""
        labels: Dict[str, int] = {}
        address = 0
        for line in self._lines:
            if line.label is not None:
                name = line.label
                if is_end_label(name):
                    self._fail(InvalidSyntax(f"Label '{name}' is reserved",
                                             line.line_num, line.raw))
                elif name in KEYWORDS:
                    self._fail(InvalidSyntax(f"Keyword '{name}' cannot be used as a label",
                                             line.line_num, line.raw))
                elif name in labels:
                    self._fail(DuplicateLabel(f"Label '{name}' is already defined",
                                              line.line_num, line.raw))
                else:
                    labels[name] = address
            if line.statement:
                address += 1
        return labels

    def _pass2(self) -> Tuple[List[Optional[Instruction]], List[int]]:
        """Parse each statement into an Instruction."""
        instructions: List[Optional[Instruction]] = []
        line_numbers: List[int] = []
        for line in self._lines:
            if not line.statement:
                continue
            line_numbers.append(line.line_num)
            try:
                tokens = Lexer(line.statement, line.line_num).tokenize()
                instr = StatementParser(tokens, line).parse()
                self._check_ranges(instr, line)
            except TranslationError as e:
                if not e.line_text:
                    e.line_text = line.raw
                self._fail(e)
                instr = None
            instructions.append(instr)
        return instructions, line_numbers

    def _check_ranges(self, instr: Instruction, line: SourceLine):
        for operand in instr.operands():
            if isinstance(operand, IndirectMemoryCell):
                operand = operand.accumulator
            if isinstance(operand, Accumulator):
                kind, index, count = "Accumulator", operand.index, self.accumulators
            elif isinstance(operand, MemoryCell):
                kind, index, count = "Memory cell", operand.index, self.memory_cells
            else:
                continue
            if count is not None and index >= count:
                raise InvalidOperand(f"{kind} index {index} out of range ({count} configured)",
                                     line.line_num, line.raw)

    def _resolve(self, instructions: List[Optional[Instruction]],
                 labels: Dict[str, int]) -> List[Optional[Instruction]]:
        """Replace label names with instruction indices."""
        count = len(instructions)
        resolved: List[Optional[Instruction]] = []
        for address, instr in enumerate(instructions):
            if isinstance(instr, Jump):
                target: Optional[JumpTarget] = None
                if is_end_label(instr.label):
                    target = HALT
                elif instr.label in labels:
                    index = labels[instr.label]
                    target = index if index < count else HALT
                else:
                    line = self._line_at(address)
                    self._fail(UndefinedLabel(f"Label '{instr.label}' is not defined",
                                              line.line_num, line.raw))
                if target is not None:
                    instr = instr.resolved(target)
            resolved.append(instr)
        return resolved

    def _entry(self, labels: Dict[str, int]) -> int:
        present = [name for name in ENTRY_LABELS if name in labels]
        if len(present) > 1:
            line = self._label_line(present[-1])
            self._fail(DuplicateLabel("Entry label defined as both 'main' and 'MAIN'",
                                      line.line_num, line.raw))
        if present:
            return labels[present[0]]
        return 0

    def _line_at(self, address: int) -> SourceLine:
        statements = [line for line in self._lines if line.statement]
        return statements[address]

    def _label_line(self, name: str) -> SourceLine:
        return next(line for line in self._lines if line.label == name)


# ──────────────────────────────────────────────
# Convenience functions
# ──────────────────────────────────────────────

def translate(lines: Sequence[str], *, accumulators: Optional[int] = None,
              memory_cells: Optional[int] = None,
              collect_errors: bool = False) -> Program:
    """Translate source lines into a resolved Program."""
    translator = Translator(accumulators=accumulators, memory_cells=memory_cells,
                            collect_errors=collect_errors)
    return translator.translate(lines)


def translate_source(source: str, **kwargs) -> Program:
    """Translate a whole source text (split on newlines)."""
    return translate(source.splitlines(), **kwargs)
