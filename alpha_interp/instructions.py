"""
Instruction model for Alpha-Notation programs.

Defines the operands, the arithmetic and comparison operators and the
closed set of instruction variants produced by the translator and
consumed by the machine. Every node is a frozen dataclass: once the
translator has resolved a jump, nothing mutates the instruction again.

Operand syntax:
    a3  α3          accumulator 3
    ρ(7)  p(7)      memory cell 7
    ρ(a2)           memory cell whose index is the value of accumulator 2
    -12             integer constant

Statement forms (one variant each):
    T := V                      Assign
    T := V op V                 Calculate
    goto L                      Goto
    if V cmp V then goto L      JumpIf
    push [aN] / pop [aN]        Push / Pop   (accumulator 0 when omitted)
    stack op                    StackOp
    call L / return             Call / Return
    ENDE / END                  Halt
"""

from __future__ import annotations
import enum
from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple, Union

from .errors import DivisionByZero


# ──────────────────────────────────────────────
# Halt sentinel
# ──────────────────────────────────────────────

class HaltTarget(enum.Enum):
    """Jump target of the reserved ENDE/END labels."""
    HALT = "HALT"

    def __repr__(self):
        return "HALT"

    def __str__(self):
        return "HALT"


HALT = HaltTarget.HALT

# Reserved label names, compared case-insensitively.
END_LABELS = frozenset({"ENDE", "END"})

JumpTarget = Union[int, HaltTarget]


def is_end_label(name: str) -> bool:
    return name.upper() in END_LABELS


# ──────────────────────────────────────────────
# Operators
# ──────────────────────────────────────────────

class Operation(enum.Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"

    def apply(self, x: int, y: int) -> int:
        """Compute ``x op y``. Division truncates toward zero."""
        if self is Operation.ADD:
            return x + y
        if self is Operation.SUB:
            return x - y
        if self is Operation.MUL:
            return x * y
        if y == 0:
            raise DivisionByZero(f"cannot divide {x} by zero")
        q = abs(x) // abs(y)
        return -q if (x < 0) != (y < 0) else q

    def __str__(self):
        return self.value


class Comparison(enum.Enum):
    LT = "<"
    LE = "<="
    EQ = "="
    NE = "!="
    GE = ">="
    GT = ">"

    def test(self, x: int, y: int) -> bool:
        if self is Comparison.LT:
            return x < y
        if self is Comparison.LE:
            return x <= y
        if self is Comparison.EQ:
            return x == y
        if self is Comparison.NE:
            return x != y
        if self is Comparison.GE:
            return x >= y
        return x > y

    def __str__(self):
        return self.value


# Accepted spellings, including the lecture's typeset symbols.
OPERATION_SYMBOLS: Dict[str, Operation] = {
    "+": Operation.ADD,
    "-": Operation.SUB,
    "−": Operation.SUB,
    "*": Operation.MUL,
    "×": Operation.MUL,
    "/": Operation.DIV,
    "÷": Operation.DIV,
}

COMPARISON_SYMBOLS: Dict[str, Comparison] = {
    "<": Comparison.LT,
    "<=": Comparison.LE,
    "=<": Comparison.LE,
    "≤": Comparison.LE,
    "=": Comparison.EQ,
    "==": Comparison.EQ,
    "!=": Comparison.NE,
    "≠": Comparison.NE,
    ">=": Comparison.GE,
    "=>": Comparison.GE,
    "≥": Comparison.GE,
    ">": Comparison.GT,
}


# ──────────────────────────────────────────────
# Operands
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Operand:
    """Base class for instruction operands."""


@dataclass(frozen=True)
class Accumulator(Operand):
    index: int

    def __str__(self):
        return f"a{self.index}"


@dataclass(frozen=True)
class MemoryCell(Operand):
    index: int

    def __str__(self):
        return f"ρ({self.index})"


@dataclass(frozen=True)
class IndirectMemoryCell(Operand):
    """Memory cell addressed by the current value of an accumulator."""
    accumulator: Accumulator

    def __str__(self):
        return f"ρ({self.accumulator})"


@dataclass(frozen=True)
class Constant(Operand):
    value: int

    def __str__(self):
        return str(self.value)


Target = Union[Accumulator, MemoryCell, IndirectMemoryCell]
Value = Union[Accumulator, MemoryCell, IndirectMemoryCell, Constant]


# ──────────────────────────────────────────────
# Instructions
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Instruction:
    """Base class for all instruction variants."""

    def operands(self) -> Tuple[Operand, ...]:
        """Every operand the instruction reads or writes."""
        return ()


@dataclass(frozen=True)
class Assign(Instruction):
    target: Target
    value: Value

    def operands(self):
        return (self.target, self.value)

    def __str__(self):
        return f"{self.target} := {self.value}"


@dataclass(frozen=True)
class Calculate(Instruction):
    target: Target
    left: Value
    op: Operation
    right: Value

    def operands(self):
        return (self.target, self.left, self.right)

    def __str__(self):
        return f"{self.target} := {self.left} {self.op} {self.right}"


@dataclass(frozen=True)
class Jump(Instruction):
    """Base for instructions carrying a label and its resolved target."""
    label: str = ""
    target: Optional[JumpTarget] = None

    def resolved(self, target: JumpTarget) -> "Jump":
        return replace(self, target=target)


@dataclass(frozen=True)
class Goto(Jump):
    def __str__(self):
        return f"goto {self.label}"


@dataclass(frozen=True)
class JumpIf(Jump):
    left: Value = Constant(0)
    cmp: Comparison = Comparison.EQ
    right: Value = Constant(0)

    def operands(self):
        return (self.left, self.right)

    def __str__(self):
        return f"if {self.left} {self.cmp} {self.right} then goto {self.label}"


@dataclass(frozen=True)
class Call(Jump):
    def __str__(self):
        return f"call {self.label}"


@dataclass(frozen=True)
class Return(Instruction):
    def __str__(self):
        return "return"


@dataclass(frozen=True)
class Push(Instruction):
    accumulator: Accumulator = Accumulator(0)

    def operands(self):
        return (self.accumulator,)

    def __str__(self):
        return f"push {self.accumulator}"


@dataclass(frozen=True)
class Pop(Instruction):
    accumulator: Accumulator = Accumulator(0)

    def operands(self):
        return (self.accumulator,)

    def __str__(self):
        return f"pop {self.accumulator}"


@dataclass(frozen=True)
class StackOp(Instruction):
    """Pop right, pop left, push ``left op right``."""
    op: Operation

    def __str__(self):
        return f"stack {self.op}"


@dataclass(frozen=True)
class Halt(Instruction):
    def __str__(self):
        return "ENDE"


INSTRUCTION_TYPES = (Assign, Calculate, Goto, JumpIf, Call, Return,
                     Push, Pop, StackOp, Halt)
