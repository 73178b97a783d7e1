#!/usr/bin/env python3
"""
alphai: Alpha-Notation interpreter CLI

Usage:
    python alphai.py <program.alpha> [--profile default|lecture|large]
                     [--config machine.json] [--accumulators N]
                     [--memory-cells M] [--set INDEX=VALUE ...]
                     [--break LINE ...] [--max-steps N]
                     [--debug] [--listing] [--tokens] [--collect-errors]
                     [-v | -q] [--log-file run.log]

Modes:
    (default)   run to completion, print accumulators / memory / stack
    --debug     interactive single-step debugger
    --listing   print the translated program with resolved jump targets
    --tokens    dump the token stream of every statement and exit

Examples:
    python alphai.py examples/sum.alpha
    python alphai.py examples/factorial.alpha --set 0=6 --debug
    python alphai.py prog.alpha --profile lecture --break 7 -v
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from alpha_interp import __version__
from alpha_interp.config import PROFILES, load_config
from alpha_interp.errors import ConfigError, MachineError, TranslationError
from alpha_interp.lexer import Lexer, Preprocessor
from alpha_interp.machine import Machine, StepOutcome
from alpha_interp.translator import translate

log = logging.getLogger("alphai")


# ──────────────────────────────────────────────
# Logging
# ──────────────────────────────────────────────

def setup_logging(verbose: int = 0, quiet: bool = False,
                  log_file: Optional[str] = None) -> logging.Logger:
    """Console logging through rich, optional timestamped file log."""
    if quiet:
        console_level = logging.ERROR
    elif verbose == 0:
        console_level = logging.WARNING
    elif verbose == 1:
        console_level = logging.INFO
    else:
        console_level = logging.DEBUG

    handlers: List[logging.Handler] = []
    ch = RichHandler(
        console=Console(stderr=True),
        level=console_level,
        show_time=verbose > 1,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    ch.setLevel(console_level)
    handlers.append(ch)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        handlers.append(fh)

    root_level = logging.DEBUG if log_file else console_level
    logging.basicConfig(level=root_level, handlers=handlers, force=True)
    return log


# ──────────────────────────────────────────────
# Argument helpers
# ──────────────────────────────────────────────

def parse_assignment(value: str) -> tuple:
    """Parse a ``--set`` argument of the form INDEX=VALUE."""
    index, sep, number = value.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected INDEX=VALUE, got '{value}'")
    try:
        return int(index.strip()), int(number.strip())
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected integers in '{value}'") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="alphai",
        description="Alpha-Notation interpreter",
        epilog="Profiles: " + ", ".join(f"{k} ({v['description']})" for k, v in PROFILES.items()),
    )
    parser.add_argument("input", help="Alpha-Notation source file")
    parser.add_argument("--profile", choices=list(PROFILES.keys()), default=None,
                        help="Machine profile (default: default)")
    parser.add_argument("--config", help="JSON machine configuration file")
    parser.add_argument("--accumulators", type=int, default=None,
                        help="Number of accumulators (overrides profile/config)")
    parser.add_argument("--memory-cells", type=int, default=None,
                        help="Number of memory cells (overrides profile/config)")
    parser.add_argument("--set", dest="memory", type=parse_assignment, action="append",
                        default=[], metavar="INDEX=VALUE",
                        help="Preload memory cell INDEX with VALUE (repeatable)")
    parser.add_argument("--break", dest="breakpoints", type=int, action="append",
                        default=None, metavar="LINE",
                        help="Breakpoint on source line (repeatable)")
    parser.add_argument("--max-steps", type=int, default=None,
                        help="Stop after this many executed instructions")
    parser.add_argument("--debug", action="store_true",
                        help="Interactive single-step debugger")
    parser.add_argument("--listing", action="store_true",
                        help="Print the translated program and exit")
    parser.add_argument("--tokens", action="store_true",
                        help="Dump token stream and exit (debug)")
    parser.add_argument("--collect-errors", action="store_true",
                        help="Report every translation error instead of the first")
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="Increase log verbosity (-v, -vv)")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Only log errors")
    parser.add_argument("--log-file", help="Write a debug log to this file")
    parser.add_argument("--version", action="version",
                        version=f"alphai {__version__}")
    return parser


# ──────────────────────────────────────────────
# Output
# ──────────────────────────────────────────────

def render_state(machine: Machine, console: Console, title: str = "Machine state"):
    """Print accumulators, memory cells and stack as tables."""
    summary = "halted" if machine.halted else f"pc={machine.pc}"
    line = machine.current_line
    if line is not None and not machine.halted:
        summary += f" (line {line}: {machine.current_instruction})"
    console.print(f"[bold]{title}[/bold]: {summary}, {machine.steps} step(s)")

    accs = Table(title="Accumulators")
    accs.add_column("α", justify="right")
    accs.add_column("value", justify="right")
    for i, value in enumerate(machine.accumulators):
        accs.add_row(f"a{i}", str(value))
    console.print(accs)

    memory = Table(title="Memory cells")
    memory.add_column("ρ", justify="right")
    memory.add_column("value", justify="right")
    cells = list(enumerate(machine.memory))
    if len(cells) > 32:
        cells = [(i, v) for i, v in cells if v != 0]
    for i, value in cells:
        memory.add_row(str(i), str(value))
    console.print(memory)

    stack = machine.stack
    console.print("Stack (top last): " + (" ".join(str(v) for v in stack) if stack else "empty"),
                  markup=False)
    returns = machine.call_stack
    console.print("Call stack (return addresses, top last): "
                  + (" ".join(str(a) for a in returns) if returns else "empty"), markup=False)


def dump_tokens(source: List[str], console: Console):
    for line in Preprocessor(source).process():
        if line.label:
            console.print(f"L{line.line_num}: label {line.label!r}")
        if line.statement:
            for tok in Lexer(line.statement, line.line_num).tokenize():
                console.print(repr(tok), markup=False)


# ──────────────────────────────────────────────
# Debugger
# ──────────────────────────────────────────────

DEBUG_HELP = """Commands:
  s, step, <enter>  execute one instruction
  c, continue       run to the next breakpoint or halt
  b LINE            toggle breakpoint on source line
  p, print          show machine state
  l, list           show program listing
  r, reset          restart from the entry point
  q, quit           leave the debugger"""


def debug_loop(machine: Machine, console: Console, read=input) -> int:
    """Drive the machine one user command at a time."""
    console.print(DEBUG_HELP, markup=False)
    while True:
        if machine.halted:
            console.print("[green]Program halted.[/green]")
        else:
            console.print(f"next: {machine.pc:>3}  line {machine.current_line}: "
                          f"{machine.current_instruction}", markup=False)
        try:
            command = read("(alpha) ").strip()
        except EOFError:
            return 0
        word, _, arg = command.partition(" ")
        try:
            if word in ("", "s", "step"):
                machine.step()
            elif word in ("c", "continue"):
                outcome = machine.run()
                if outcome is StepOutcome.BREAKPOINT:
                    console.print(f"Breakpoint at line {machine.current_line}")
            elif word == "b":
                toggle_breakpoint(machine, arg, console)
            elif word in ("p", "print"):
                render_state(machine, console)
            elif word in ("l", "list"):
                console.print(machine.program.listing(), markup=False)
            elif word in ("r", "reset"):
                machine.reset()
            elif word in ("q", "quit"):
                return 0
            else:
                console.print(DEBUG_HELP, markup=False)
        except MachineError as e:
            console.print(f"[red]{e.kind}:[/red] {e}")


def toggle_breakpoint(machine: Machine, arg: str, console: Console):
    try:
        line_num = int(arg)
    except ValueError:
        console.print("usage: b LINE")
        return
    address = machine.program.address_of_line(line_num)
    if address is None:
        console.print(f"No instruction at or after line {line_num}")
    elif address in machine.breakpoints:
        machine.remove_breakpoint(address)
        console.print(f"Breakpoint removed (address {address})")
    else:
        machine.add_breakpoint(address)
        console.print(f"Breakpoint set at address {address} "
                      f"(line {machine.program.line_of(address)})")


# ──────────────────────────────────────────────
# Main
# ──────────────────────────────────────────────

def run_to_end(machine: Machine, console: Console, max_steps: Optional[int]) -> int:
    remaining = max_steps
    while True:
        outcome = machine.run(max_steps=remaining)
        if outcome is StepOutcome.BREAKPOINT:
            render_state(machine, console, title=f"Breakpoint (line {machine.current_line})")
            if max_steps is not None:
                remaining = max_steps - machine.steps
                if remaining <= 0:
                    outcome = StepOutcome.STEP_LIMIT
            if outcome is StepOutcome.BREAKPOINT:
                continue
        if outcome is StepOutcome.STEP_LIMIT:
            log.error("Stopped after %d step(s): step limit reached", machine.steps)
            render_state(machine, console)
            return 1
        render_state(machine, console)
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.quiet, args.log_file)
    console = Console()

    try:
        with open(args.input, "r", encoding="utf-8") as f:
            source = f.read().splitlines()
    except FileNotFoundError:
        print(f"Error: File not found: {args.input}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error reading {args.input}: {e}", file=sys.stderr)
        return 1

    started = datetime.now()
    try:
        if args.tokens:
            dump_tokens(source, console)
            return 0

        memory: Dict[int, int] = dict(args.memory)
        config = load_config(args.config, args.profile,
                             accumulators=args.accumulators,
                             memory_cells=args.memory_cells,
                             memory=memory or None,
                             breakpoints=args.breakpoints,
                             max_steps=args.max_steps)
        log.info("Input: %s | profile %s | %d accumulator(s), %d memory cell(s)",
                 args.input, config.profile, config.accumulators, config.memory_cells)

        program = translate(source, accumulators=config.accumulators,
                            memory_cells=config.memory_cells,
                            collect_errors=args.collect_errors)
        log.info("Translated %d instruction(s), entry at %d", len(program), program.entry)

        if args.listing:
            console.print(program.listing(), markup=False)
            return 0

        machine = config.create_machine(program)
        if args.debug:
            return debug_loop(machine, console)

        status = run_to_end(machine, console, config.max_steps)
        elapsed = datetime.now() - started
        log.info("Finished in %.3fs", elapsed.total_seconds())
        return status

    except TranslationError as e:
        print(f"{e.kind}: {e}", file=sys.stderr)
        return 1
    except MachineError as e:
        print(f"{e.kind}: {e}", file=sys.stderr)
        return 1
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        log.warning("Interrupted by user")
        return 130
    except Exception as e:
        print(f"Internal interpreter error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 2


if __name__ == "__main__":
    sys.exit(main())
