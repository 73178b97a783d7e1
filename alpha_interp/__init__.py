"""
Alpha-Notation Interpreter
==========================
Translator and machine for Alpha-Notation, the accumulator/memory-cell
teaching assembly language used in the systems lecture.

Architecture:
    ┌──────────┐    ┌──────────────┐    ┌────────────┐    ┌─────────┐
    │  Source  │───>│ Preprocessor │───>│ Translator │───>│ Machine │
    │ (lines)  │    │  + Lexer     │    │ (Program)  │    │ (state) │
    └──────────┘    └──────────────┘    └────────────┘    └─────────┘

    - lexer.py:        comment stripping, blank-line elision, tokens
    - instructions.py: operands, operators, instruction variants, HALT
    - translator.py:   two-pass label resolution -> immutable Program
    - machine.py:      step()/run() over accumulators, memory, stack
    - config.py:       profiles and JSON configuration for the machine
    - errors.py:       translation / runtime / config error families
"""

__version__ = "0.3.0"

from .errors import (
    AlphaError, TranslationError, InvalidSyntax, InvalidOperand,
    DuplicateLabel, UndefinedLabel, TranslationErrors, MachineError,
    DivisionByZero, OutOfRange, StackUnderflow, ConfigError,
)
from .instructions import HALT, Operation, Comparison
from .lexer import Lexer, Preprocessor, Token, TokenType, strip_comment
from .translator import Program, Translator, translate, translate_source
from .machine import Machine, MachineState, StepOutcome
from .config import MachineConfig, PROFILES, load_config


def run_source(source: str, *, accumulators: int = 4, memory_cells: int = 16,
               max_steps=None) -> Machine:
    """Translate and run source text, returning the finished Machine.

    Full pipeline: Preprocessor -> Lexer -> Translator -> Machine.run().
    """
    program = translate_source(source, accumulators=accumulators,
                               memory_cells=memory_cells)
    machine = Machine(program, accumulators, memory_cells)
    machine.run(max_steps=max_steps)
    return machine
