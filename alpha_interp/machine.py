"""
Alpha-Notation Machine: the execution engine.

Execution model (one call to step()):
  1. If halted, do nothing.
  2. Fetch the instruction at pc. Past the end -> halted (normal stop).
  3. Dispatch on the instruction type to its handler. The handler reads
     every operand and computes the result before it writes anything, so
     a failing step leaves the state untouched.
  4. Advance pc by one, jump to the handler's target, or halt on HALT.

run() is nothing more than step() in a loop, with optional breakpoint
and step-budget checks between steps.

Runtime error policy: DivisionByZero, OutOfRange and StackUnderflow are
raised to the caller, located at the failing instruction's address and
source line. The machine does not halt and its state is exactly what it
was before the failing step, so stepping again raises the same error.
"""

from __future__ import annotations
import enum
import logging
from dataclasses import dataclass, field
from typing import (
    Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple,
    Union,
)

from .errors import ConfigError, MachineError, OutOfRange, StackUnderflow
from .instructions import (
    HALT, Accumulator, Assign, Calculate, Call, Constant, Goto, Halt,
    IndirectMemoryCell, Instruction, INSTRUCTION_TYPES, JumpIf, JumpTarget,
    MemoryCell, Operand, Pop, Push, Return, StackOp,
)
from .translator import Program

log = logging.getLogger(__name__)

Preload = Union[Mapping[int, int], Sequence[int]]


class StepOutcome(enum.Enum):
    RAN = 'RAN'
    HALTED = 'HALTED'
    BREAKPOINT = 'BREAKPOINT'
    STEP_LIMIT = 'STEP_LIMIT'


@dataclass
class MachineState:
    """Mutable execution state. Owned by exactly one Machine."""
    accumulators: List[int]
    memory: List[int]
    stack: List[int] = field(default_factory=list)
    call_stack: List[int] = field(default_factory=list)
    pc: int = 0
    halted: bool = False
    steps: int = 0

    @classmethod
    def fresh(cls, accumulators: int, memory_cells: int, entry: int = 0) -> "MachineState":
        return cls(accumulators=[0] * accumulators, memory=[0] * memory_cells, pc=entry)

    def copy(self) -> "MachineState":
        return MachineState(
            accumulators=list(self.accumulators),
            memory=list(self.memory),
            stack=list(self.stack),
            call_stack=list(self.call_stack),
            pc=self.pc,
            halted=self.halted,
            steps=self.steps,
        )

    def display(self) -> str:
        """One-line summary used in trace output."""
        accs = " ".join(f"a{i}={v}" for i, v in enumerate(self.accumulators))
        return f"pc={self.pc} {accs} stack={self.stack}"


class Machine:
    """Executes a Program over accumulators, memory cells and a stack.

    Usage:
        program = translate(lines)
        m = Machine(program, accumulators=4, memory_cells=16)
        m.run()                 # or: while m.step() is StepOutcome.RAN: ...
        print(m.accumulators)
    """

    def __init__(self, program: Program, accumulators: int, memory_cells: int, *,
                 memory: Optional[Preload] = None,
                 breakpoints: Iterable[int] = ()):
        if accumulators < 0 or memory_cells < 0:
            raise ConfigError("Accumulator and memory cell counts must not be negative")
        self.program = program
        self.accumulator_count = accumulators
        self.memory_count = memory_cells
        self._preload: Dict[int, int] = self._check_preload(memory)
        self._breakpoints: Set[int] = set(breakpoints)
        self._check_program()

        self._dispatch: Dict[type, Callable[[Instruction], Optional[JumpTarget]]] = \
            self._build_dispatch()
        self._state = self._fresh_state()

    # ══════════════════════════════════════════════
    # Construction helpers
    # ══════════════════════════════════════════════

    def _check_preload(self, memory: Optional[Preload]) -> Dict[int, int]:
        if memory is None:
            return {}
        items = memory.items() if isinstance(memory, Mapping) else enumerate(memory)
        preload = {}
        for index, value in items:
            if not 0 <= index < self.memory_count:
                raise OutOfRange(f"Preloaded memory cell {index} out of range "
                                 f"({self.memory_count} configured)")
            preload[index] = int(value)
        return preload

    def _check_program(self):
        """Reject constant operand indices the configuration cannot hold."""
        for address, instr in enumerate(self.program):
            for operand in instr.operands():
                try:
                    self._check_operand(operand)
                except OutOfRange as e:
                    raise e.at(address, self.program.line_of(address)) from None

    def _check_operand(self, operand: Operand):
        if isinstance(operand, IndirectMemoryCell):
            operand = operand.accumulator
        if isinstance(operand, Accumulator):
            self._accumulator_index(operand.index)
        elif isinstance(operand, MemoryCell):
            self._memory_index(operand.index)

    def _fresh_state(self) -> MachineState:
        state = MachineState.fresh(self.accumulator_count, self.memory_count,
                                   self.program.entry)
        for index, value in self._preload.items():
            state.memory[index] = value
        return state

    def _build_dispatch(self) -> dict:
        dispatch = {
            Assign: self._op_assign,
            Calculate: self._op_calculate,
            Goto: self._op_goto,
            JumpIf: self._op_jump_if,
            Call: self._op_call,
            Return: self._op_return,
            Push: self._op_push,
            Pop: self._op_pop,
            StackOp: self._op_stack,
            Halt: self._op_halt,
        }
        missing = [t.__name__ for t in INSTRUCTION_TYPES if t not in dispatch]
        assert not missing, f"no handler for {missing}"
        return dispatch

    # ══════════════════════════════════════════════
    # Read-only views
    # ══════════════════════════════════════════════

    @property
    def accumulators(self) -> Tuple[int, ...]:
        return tuple(self._state.accumulators)

    @property
    def memory(self) -> Tuple[int, ...]:
        return tuple(self._state.memory)

    @property
    def stack(self) -> Tuple[int, ...]:
        return tuple(self._state.stack)

    @property
    def call_stack(self) -> Tuple[int, ...]:
        return tuple(self._state.call_stack)

    @property
    def pc(self) -> int:
        return self._state.pc

    @property
    def halted(self) -> bool:
        return self._state.halted

    @property
    def steps(self) -> int:
        return self._state.steps

    @property
    def state(self) -> MachineState:
        """Snapshot of the current state."""
        return self._state.copy()

    @property
    def current_instruction(self) -> Optional[Instruction]:
        pc = self._state.pc
        if self._state.halted or pc >= len(self.program):
            return None
        return self.program[pc]

    @property
    def current_line(self) -> Optional[int]:
        return self.program.line_of(self._state.pc)

    # ══════════════════════════════════════════════
    # Breakpoints
    # ══════════════════════════════════════════════

    @property
    def breakpoints(self) -> Tuple[int, ...]:
        return tuple(sorted(self._breakpoints))

    def add_breakpoint(self, address: int):
        if not 0 <= address < len(self.program):
            raise ValueError(f"No instruction at address {address}")
        self._breakpoints.add(address)

    def remove_breakpoint(self, address: int):
        self._breakpoints.discard(address)

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def reset(self):
        """Discard all state and start again from the entry point."""
        self._state = self._fresh_state()

    def step(self) -> StepOutcome:
        """Execute one instruction."""
        state = self._state
        if state.halted:
            return StepOutcome.HALTED

        pc = state.pc
        if pc >= len(self.program):
            log.debug("pc=%d past end of program, halting", pc)
            state.halted = True
            return StepOutcome.HALTED

        instr = self.program[pc]
        try:
            target = self._dispatch[type(instr)](instr)
        except MachineError as e:
            located = e.at(pc, self.program.line_of(pc))
            log.warning("%s at address %d: %s", located.kind, pc, located.reason)
            raise located from None

        state.steps += 1
        log.debug("%4d  %-32s %s", pc, instr, state.display())
        if target is HALT:
            state.halted = True
            return StepOutcome.HALTED
        state.pc = pc + 1 if target is None else target
        return StepOutcome.RAN

    def run(self, max_steps: Optional[int] = None) -> StepOutcome:
        """Step until halted, a breakpoint is reached or max_steps ran.

        A breakpoint at the current pc does not stop the first step, so
        calling run() again continues past it.
        """
        executed = 0
        while not self._state.halted:
            if executed and self._state.pc in self._breakpoints:
                return StepOutcome.BREAKPOINT
            if max_steps is not None and executed >= max_steps:
                return StepOutcome.STEP_LIMIT
            self.step()
            executed += 1
        return StepOutcome.HALTED

    # ══════════════════════════════════════════════
    # Operand access
    # ══════════════════════════════════════════════

    def _accumulator_index(self, index: int) -> int:
        if not 0 <= index < self.accumulator_count:
            raise OutOfRange(f"Accumulator a{index} does not exist "
                             f"({self.accumulator_count} configured)")
        return index

    def _memory_index(self, index: int) -> int:
        if not 0 <= index < self.memory_count:
            raise OutOfRange(f"Memory cell ρ({index}) does not exist "
                             f"({self.memory_count} configured)")
        return index

    def _locate(self, operand: Operand) -> Tuple[List[int], int]:
        """Return (storage, index) for a writable operand."""
        if isinstance(operand, Accumulator):
            return self._state.accumulators, self._accumulator_index(operand.index)
        if isinstance(operand, MemoryCell):
            return self._state.memory, self._memory_index(operand.index)
        if isinstance(operand, IndirectMemoryCell):
            index = self._read(operand.accumulator)
            return self._state.memory, self._memory_index(index)
        raise MachineError(f"Cannot write to {operand}")

    def _read(self, operand: Operand) -> int:
        if isinstance(operand, Constant):
            return operand.value
        storage, index = self._locate(operand)
        return storage[index]

    @staticmethod
    def _jump(instr) -> JumpTarget:
        if instr.target is None:
            raise MachineError(f"Unresolved jump to label '{instr.label}'")
        return instr.target

    # ══════════════════════════════════════════════
    # Instruction handlers
    # ══════════════════════════════════════════════
    # Each returns None to fall through, an address to jump, or HALT.

    def _op_assign(self, instr: Assign):
        value = self._read(instr.value)
        storage, index = self._locate(instr.target)
        storage[index] = value

    def _op_calculate(self, instr: Calculate):
        left = self._read(instr.left)
        right = self._read(instr.right)
        result = instr.op.apply(left, right)
        storage, index = self._locate(instr.target)
        storage[index] = result

    def _op_goto(self, instr: Goto):
        return self._jump(instr)

    def _op_jump_if(self, instr: JumpIf):
        left = self._read(instr.left)
        right = self._read(instr.right)
        if instr.cmp.test(left, right):
            return self._jump(instr)
        return None

    def _op_call(self, instr: Call):
        target = self._jump(instr)
        if target is not HALT:
            self._state.call_stack.append(self._state.pc + 1)
        return target

    def _op_return(self, instr: Return):
        if not self._state.call_stack:
            raise StackUnderflow("return without matching call (call stack is empty)")
        return self._state.call_stack.pop()

    def _op_push(self, instr: Push):
        self._state.stack.append(self._read(instr.accumulator))

    def _op_pop(self, instr: Pop):
        storage, index = self._locate(instr.accumulator)
        if not self._state.stack:
            raise StackUnderflow("pop on empty stack")
        storage[index] = self._state.stack.pop()

    def _op_stack(self, instr: StackOp):
        stack = self._state.stack
        if len(stack) < 2:
            raise StackUnderflow(f"stack {instr.op} needs two values, "
                                 f"stack holds {len(stack)}")
        result = instr.op.apply(stack[-2], stack[-1])
        del stack[-2:]
        stack.append(result)

    def _op_halt(self, instr: Halt):
        return HALT
