#!/usr/bin/env python3
"""
noseburn: step through a Moostar program and watch its memory ribbon.

    noseburn program.moo                  interactive terminal view
    noseburn program.moo --headless       run to completion, print output
"""

import argparse
import sys
from typing import List, Optional

from noseburn.config import ConfigError, load_config
from noseburn.controller import Controller
from noseburn.engine import BufferInput, BufferOutput, ExecutionEngine, RunState
from noseburn.moostar import ParseError, parse

EXIT_OK = 0
EXIT_LOAD_FAILURE = 1
EXIT_RUNTIME_FAILURE = 2


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="noseburn", description="Moostar visualizer")
    ap.add_argument("path", help="Path to the Moostar program file")
    ap.add_argument("--input", default="", help="Text fed to ',' (exhausted input leaves the cell unchanged)")
    ap.add_argument("--frequency", type=float, default=None, help="Starting step frequency in Hz (snapped to the nearest preset)")
    ap.add_argument("--config", default=None, help="YAML file with noseburn settings")
    ap.add_argument("--headless", action="store_true", help="Run without the terminal view and print the output")
    ap.add_argument("--max-steps", type=int, default=None, help="Headless step limit")
    ap.add_argument("--debug", action="store_true", help="Print every step in headless mode")
    return ap


def read_source(path: str) -> str:
    with open(path, "rb") as f:
        return f.read().decode("utf-8")


def write_output(engine: ExecutionEngine) -> None:
    """Send the program output to stdout as raw bytes."""
    sys.stdout.flush()
    binary = getattr(sys.stdout, "buffer", None)
    if binary is not None and isinstance(engine.output_sink, BufferOutput):
        binary.write(bytes(engine.output_sink.data))
        binary.flush()
    else:
        sys.stdout.write(engine.output_text())
        sys.stdout.flush()


def run_headless(engine: ExecutionEngine, max_steps: Optional[int]) -> int:
    state = engine.run(max_steps)
    write_output(engine)
    if state is RunState.ERRORED:
        print(f"\n❌ Execution failed after {engine.steps} steps: {engine.error}", file=sys.stderr)
        return EXIT_RUNTIME_FAILURE
    if state is not RunState.HALTED:
        print(f"\n⚠️ Stopped after {engine.steps} steps (step limit reached)", file=sys.stderr)
        return EXIT_RUNTIME_FAILURE
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        source = read_source(args.path)
    except OSError as e:
        print(f"❌ Cannot read {args.path}: {e.strerror or e}", file=sys.stderr)
        return EXIT_LOAD_FAILURE
    except UnicodeDecodeError as e:
        print(f"❌ {args.path} is not valid UTF-8: {e}", file=sys.stderr)
        return EXIT_LOAD_FAILURE

    try:
        config = load_config(args.config, overrides={"frequency": args.frequency})
    except ConfigError as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        return EXIT_LOAD_FAILURE

    try:
        program = parse(source)
    except ParseError as e:
        print(f"❌ {args.path}: {e}", file=sys.stderr)
        return EXIT_LOAD_FAILURE

    engine = ExecutionEngine(program, BufferInput(args.input.encode("utf-8")),
                             max_call_depth=config.max_call_depth, debug=args.headless and args.debug)

    if args.headless:
        return run_headless(engine, args.max_steps)

    # Imported late so headless runs work where curses is unavailable
    from noseburn.tui import run_tui

    controller = Controller(engine, frequency=config.frequency,
                            max_steps_per_tick=config.max_steps_per_tick)
    run_tui(controller, source, frame_rate=config.frame_rate)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
