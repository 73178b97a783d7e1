"""
Translator tests for the Alpha-Notation interpreter.

Tests cover:
  - Every statement form and its operand spellings
  - Label resolution across comment-only and blank lines
  - ENDE/END halt sentinel and trailing labels
  - Entry point via main/MAIN
  - Error taxonomy with pre-elision line numbers
  - Collect-all-errors mode
  - Program immutability and listing
"""
import sys
import os
import dataclasses
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from alpha_interp.errors import (
    DuplicateLabel, InvalidOperand, InvalidSyntax, TranslationErrors,
    UndefinedLabel,
)
from alpha_interp.instructions import (
    HALT, Accumulator, Assign, Calculate, Call, Comparison, Constant,
    Halt, IndirectMemoryCell, JumpIf, MemoryCell, Operation, Pop, Push,
    Return, StackOp,
)
from alpha_interp.translator import Translator, translate, translate_source


EXAMPLE = [
    "a0 := 5",
    "a1 := 3",
    "if a0 > a1 then goto L",
    "a2 := 0",
    "L: a2 := 1",
    "ENDE",
]


def _one(line: str):
    """Translate a single line and return its instruction."""
    (instr,) = translate([line]).instructions
    return instr


# ─── Statement forms ───────────────────────

class TestStatementForms:
    def test_assign_constant(self):
        assert _one("a0 := 5") == Assign(Accumulator(0), Constant(5))

    def test_assign_negative_constant(self):
        assert _one("a3 := -12") == Assign(Accumulator(3), Constant(-12))

    def test_assign_memory_to_accumulator(self):
        assert _one("α1 := ρ(4)") == Assign(Accumulator(1), MemoryCell(4))

    def test_ascii_memory_notation(self):
        assert _one("p(4) := a0") == _one("ρ(4) := a0")

    def test_indirect_memory(self):
        assert _one("ρ(a1) := 4") == Assign(IndirectMemoryCell(Accumulator(1)), Constant(4))

    def test_calculate(self):
        assert _one("ρ(2) := a0 + 7") == Calculate(MemoryCell(2), Accumulator(0),
                                                   Operation.ADD, Constant(7))

    @pytest.mark.parametrize("symbol,op", [
        ("+", Operation.ADD), ("-", Operation.SUB), ("−", Operation.SUB),
        ("*", Operation.MUL), ("×", Operation.MUL),
        ("/", Operation.DIV), ("÷", Operation.DIV),
    ])
    def test_operator_spellings(self, symbol, op):
        assert _one(f"a0 := a1 {symbol} a2").op is op

    @pytest.mark.parametrize("symbol,cmp", [
        ("<", Comparison.LT), ("<=", Comparison.LE), ("=<", Comparison.LE),
        ("≤", Comparison.LE), ("=", Comparison.EQ), ("==", Comparison.EQ),
        ("!=", Comparison.NE), ("≠", Comparison.NE), (">=", Comparison.GE),
        ("=>", Comparison.GE), ("≥", Comparison.GE), (">", Comparison.GT),
    ])
    def test_comparison_spellings(self, symbol, cmp):
        program = translate([f"L: if a0 {symbol} 3 then goto L"])
        assert program[0].cmp is cmp

    def test_jump_if(self):
        program = translate(EXAMPLE)
        instr = program[2]
        assert isinstance(instr, JumpIf)
        assert instr.left == Accumulator(0)
        assert instr.cmp is Comparison.GT
        assert instr.right == Accumulator(1)
        assert instr.label == "L"
        assert instr.target == 4

    def test_push_pop_default_accumulator(self):
        program = translate(["push", "pop"])
        assert program[0] == Push(Accumulator(0))
        assert program[1] == Pop(Accumulator(0))

    def test_push_pop_explicit_accumulator(self):
        program = translate(["push a3", "pop a2"])
        assert program[0] == Push(Accumulator(3))
        assert program[1] == Pop(Accumulator(2))

    def test_stack_op(self):
        assert _one("stack *") == StackOp(Operation.MUL)

    def test_call_and_return(self):
        program = translate(["call sub", "ENDE", "sub: return"])
        assert isinstance(program[0], Call)
        assert program[0].target == 2
        assert program[2] == Return()

    def test_halt_statement(self):
        assert translate(["ENDE", "END", "ende"]).instructions == (Halt(), Halt(), Halt())


# ─── Labels ────────────────────────────────

class TestLabels:
    def test_example_labels(self):
        program = translate(EXAMPLE)
        assert len(program) == 6
        assert dict(program.labels) == {"L": 4}
        assert isinstance(program[5], Halt)

    def test_comment_does_not_change_instruction(self):
        plain = _one("a0 := a1 + 3")
        assert _one("a0 := a1 + 3 # add three") == plain
        assert _one("a0 := a1 + 3 // add three") == plain

    def test_comment_does_not_shift_labels(self):
        with_comments = translate(["a0 := 1 # one", "a1 := 2 // two", "L: goto L"])
        without = translate(["a0 := 1", "a1 := 2", "L: goto L"])
        assert with_comments.labels == without.labels
        assert with_comments[2].target == without[2].target == 2

    def test_elided_lines_between_labels(self):
        program = translate([
            "goto B",
            "",
            "# only a comment",
            "A: a0 := 1",
            "// another",
            "   ",
            "B: a1 := 2",
        ])
        assert len(program) == 3
        assert dict(program.labels) == {"A": 1, "B": 2}
        assert program[0].target == 2

    def test_label_only_line_decorates_next_instruction(self):
        program = translate(["a0 := 5", "my_label:", "", "a1 := 5"])
        assert program.labels["my_label"] == 1

    def test_trailing_label_resolves_to_halt(self):
        program = translate(["goto out", "out:"])
        assert program.labels["out"] == 1
        assert program[0].target is HALT

    @pytest.mark.parametrize("name", ["END", "ENDE", "end", "ende"])
    def test_end_labels_resolve_to_halt(self, name):
        program = translate([f"goto {name}", f"if a0 = 0 then goto {name}"])
        assert program[0].target is HALT
        assert program[1].target is HALT

    def test_line_numbers_are_pre_elision(self):
        program = translate(["# header", "", "a0 := 1", "", "a1 := 2"])
        assert program.line_numbers == (3, 5)
        assert program.line_of(1) == 5
        assert program.address_of_line(4) == 1
        assert program.address_of_line(6) is None


# ─── Entry point ───────────────────────────

class TestEntry:
    def test_default_entry(self):
        assert translate(EXAMPLE).entry == 0

    def test_main_label_sets_entry(self):
        assert translate(["a0 := 1", "main: a1 := 2"]).entry == 1
        assert translate(["a0 := 1", "MAIN:", "a1 := 2"]).entry == 1

    def test_main_and_upper_main(self):
        with pytest.raises(DuplicateLabel):
            translate(["main: a0 := 1", "MAIN: a1 := 2"])


# ─── Errors ────────────────────────────────

class TestTranslationErrors:
    def test_duplicate_label(self):
        with pytest.raises(DuplicateLabel) as exc:
            translate(["L: a0 := 1", "", "L: a1 := 2"])
        assert exc.value.line_num == 3

    def test_undefined_label(self):
        with pytest.raises(UndefinedLabel) as exc:
            translate(["# comment", "a0 := 1", "goto nowhere"])
        assert exc.value.line_num == 3
        assert "nowhere" in str(exc.value)

    @pytest.mark.parametrize("line", [
        "a0 = 5",
        "foo bar",
        "a0 :=",
        "5 := a0",
        "goto",
        "if a0 > 1 goto L",
        "push 3",
        "stack",
        "a0 := a1 + a2 + a3",
        "then",
    ])
    def test_syntax_errors(self, line):
        with pytest.raises(InvalidSyntax):
            translate([line])

    def test_syntax_error_line_number_counts_elided_lines(self):
        with pytest.raises(InvalidSyntax) as exc:
            translate(["# c", "", "a0 := 1", "nonsense here"])
        assert exc.value.line_num == 4
        assert exc.value.line_text == "nonsense here"

    def test_negative_memory_index(self):
        with pytest.raises(InvalidOperand):
            translate(["ρ(-1) := 3"])

    def test_out_of_range_with_known_counts(self):
        translate(["ρ(10) := 1"])
        with pytest.raises(InvalidOperand) as exc:
            translate(["a0 := 1", "ρ(10) := 1"], memory_cells=5)
        assert exc.value.line_num == 2
        with pytest.raises(InvalidOperand):
            translate(["a4 := 1"], accumulators=4)

    def test_reserved_label_definition(self):
        with pytest.raises(InvalidSyntax):
            translate(["END: a0 := 1"])

    def test_keyword_label_definition(self):
        with pytest.raises(InvalidSyntax):
            translate(["push: a0 := 1"])

    def test_collect_errors(self):
        with pytest.raises(TranslationErrors) as exc:
            translate(["a0 = 1", "goto nowhere", "x: a0 := 1", "x: a1 := 2"],
                      collect_errors=True)
        errors = exc.value.errors
        assert [e.line_num for e in errors] == [1, 2, 4]
        assert [type(e) for e in errors] == [InvalidSyntax, UndefinedLabel, DuplicateLabel]

    def test_fail_fast_by_default(self):
        with pytest.raises(InvalidSyntax):
            translate(["a0 = 1", "goto nowhere"])

    def test_syntax_error_reported_before_later_duplicate_label(self):
        with pytest.raises(InvalidSyntax) as exc:
            translate(["a0 := ", "L: a0 := 1", "L: a1 := 2"])
        assert exc.value.line_num == 1

    def test_undefined_label_reported_before_later_syntax_error(self):
        with pytest.raises(UndefinedLabel) as exc:
            translate(["goto nowhere", "a0 := ???"])
        assert exc.value.line_num == 1

    def test_fail_fast_raises_single_error(self):
        with pytest.raises(TranslationErrors):
            translate(["a0 := 1", "goto nowhere", "x: a0 := 1", "x: a1 := 2"],
                      collect_errors=True)
        with pytest.raises(UndefinedLabel) as exc:
            translate(["a0 := 1", "goto nowhere", "x: a0 := 1", "x: a1 := 2"])
        assert not isinstance(exc.value, TranslationErrors)
        assert exc.value.line_num == 2

    def test_out_of_range_is_a_translation_error_not_a_runtime_one(self):
        with pytest.raises(InvalidOperand) as exc:
            translate(["ρ(10) := 1"], memory_cells=5)
        assert "out of range (5 configured)" in str(exc.value)


# ─── Program ───────────────────────────────

class TestProgram:
    def test_program_is_read_only(self):
        program = translate(EXAMPLE)
        assert isinstance(program.instructions, tuple)
        with pytest.raises(TypeError):
            program.labels["X"] = 0
        with pytest.raises(dataclasses.FrozenInstanceError):
            program[0].value = Constant(9)

    def test_translator_keeps_no_state(self):
        t = Translator()
        first = t.translate(["L: a0 := 1"])
        second = t.translate(["L: a0 := 1"])
        assert first.instructions == second.instructions

    def test_translate_source_splits_lines(self):
        program = translate_source("a0 := 1\n\nL: goto L\n")
        assert len(program) == 2
        assert program.labels["L"] == 1

    def test_listing(self):
        listing = translate(EXAMPLE).listing()
        assert "L:" in listing
        assert "-> 4" in listing
        assert "if a0 > a1 then goto L" in listing

    def test_listing_keeps_source_comments(self):
        program = translate(["# header", "a0 := 1   # start value", "goto END // done"])
        assert program.source_comment(0) == "# start value"
        assert program.source_comment(1) == "// done"
        listing = program.listing()
        assert "# start value" in listing
        assert "// done" in listing
        assert "# header" not in listing
