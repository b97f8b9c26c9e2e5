#!/usr/bin/env python3
"""
Moostar Execution Engine

Runs a parsed Program one instruction per step() call. Loop and call jumps
are already resolved by the parser, so every step is O(1) and the whole
execution state is a handful of integers plus two tapes.
"""

from enum import Enum
from typing import List, Optional, Tuple

from noseburn.moostar import Op, Program
from noseburn.tape import Tape

DEFAULT_MAX_CALL_DEPTH = 4096


class RunState(Enum):
    READY = "ready"
    RUNNING = "running"
    HALTED = "halted"
    ERRORED = "errored"

    @property
    def terminal(self) -> bool:
        return self in (RunState.HALTED, RunState.ERRORED)


# -----------------------------
# I/O collaborators
# -----------------------------

class InputSource:
    """Supplies bytes to ','. Returns None once input is exhausted."""

    def read_byte(self) -> Optional[int]:
        raise NotImplementedError

    def rewind(self) -> None:
        pass


class OutputSink:
    """Receives the bytes written by '.'."""

    def write_byte(self, value: int) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        pass


class BufferInput(InputSource):
    """Fixed input, consumed once. Exhausted input never blocks."""

    def __init__(self, data: bytes = b""):
        self.data = bytes(data)
        self.index = 0

    def read_byte(self) -> Optional[int]:
        if self.index >= len(self.data):
            return None
        value = self.data[self.index]
        self.index += 1
        return value

    def rewind(self) -> None:
        self.index = 0


class BufferOutput(OutputSink):
    def __init__(self):
        self.data = bytearray()

    def write_byte(self, value: int) -> None:
        self.data.append(value)

    def clear(self) -> None:
        self.data.clear()

    def text(self) -> str:
        # latin-1 maps every byte to exactly one character
        return self.data.decode("latin-1")


# -----------------------------
# Engine
# -----------------------------

class ExecutionEngine:
    def __init__(self, program: Program, input_source: Optional[InputSource] = None,
                 output_sink: Optional[OutputSink] = None,
                 max_call_depth: int = DEFAULT_MAX_CALL_DEPTH, debug: bool = False):
        self.program = program
        self.input_source = input_source if input_source is not None else BufferInput()
        self.output_sink = output_sink if output_sink is not None else BufferOutput()
        self.max_call_depth = max_call_depth
        self.debug = debug
        self.reset()

    def reset(self) -> None:
        """Restore the exact post-load state: blank tapes, pc 0, no steps."""
        self.data_tape = Tape()
        self.meta_tape = Tape()
        self.meta = False
        self.pc = 0
        self.steps = 0
        self.call_stack: List[int] = []
        self.error: Optional[str] = None
        self.state = RunState.READY if len(self.program) else RunState.HALTED
        self.input_source.rewind()
        self.output_sink.clear()

    @property
    def tape(self) -> Tape:
        """The ribbon the program currently addresses."""
        return self.meta_tape if self.meta else self.data_tape

    @property
    def halted(self) -> bool:
        return self.state.terminal

    def current_span(self) -> Optional[Tuple[int, int]]:
        """Source span of the next instruction, None once terminal."""
        if self.state.terminal or self.pc >= len(self.program):
            return None
        return self.program[self.pc].span

    def output_text(self) -> str:
        if isinstance(self.output_sink, BufferOutput):
            return self.output_sink.text()
        return ""

    def input_text(self) -> str:
        if isinstance(self.input_source, BufferInput):
            return self.input_source.data.decode("latin-1")
        return ""

    def input_position(self) -> int:
        """How many input bytes ',' has consumed so far."""
        if isinstance(self.input_source, BufferInput):
            return self.input_source.index
        return 0

    def _fail(self, reason: str) -> RunState:
        self.error = reason
        self.state = RunState.ERRORED
        return self.state

    def step(self) -> RunState:
        """Execute exactly one instruction and return the resulting state."""
        if self.state.terminal:
            return self.state

        size = len(self.program)
        if not 0 <= self.pc < size:
            return self._fail(f"program counter {self.pc} outside program")

        inst = self.program[self.pc]
        tape = self.tape
        next_pc = self.pc + 1

        if self.debug:
            print(f"Step {self.steps:4d}: PC={self.pc:4d} CMD='{inst.op.value}' "
                  f"PTR={tape.cursor} CELL={tape.current()} META={int(self.meta)}")

        if inst.op is Op.RIGHT:
            tape.move(1)
        elif inst.op is Op.LEFT:
            tape.move(-1)
        elif inst.op is Op.INC:
            tape.increment()
        elif inst.op is Op.DEC:
            tape.decrement()
        elif inst.op is Op.OUTPUT:
            try:
                self.output_sink.write_byte(tape.current())
            except OSError as e:
                return self._fail(f"I/O failure on output: {e}")
        elif inst.op is Op.INPUT:
            try:
                value = self.input_source.read_byte()
            except OSError as e:
                return self._fail(f"I/O failure on input: {e}")
            # Exhausted input: leave cell unchanged
            if value is not None:
                tape.current_write(value)
        elif inst.op is Op.LOOP_START:
            if tape.current() == 0:
                next_pc = self._target(inst.target, 1)
        elif inst.op is Op.LOOP_END:
            if tape.current() != 0:
                next_pc = self._target(inst.target, 0)
        elif inst.op is Op.DEFINE:
            # Definitions are only entered through calls
            next_pc = self._target(inst.target, 1)
        elif inst.op is Op.CALL:
            if len(self.call_stack) >= self.max_call_depth:
                return self._fail(f"call stack overflow calling '{inst.name}'")
            next_pc = self._target(inst.target, 0)
            if next_pc is not None:
                self.call_stack.append(self.pc + 1)
        elif inst.op is Op.RETURN:
            if not self.call_stack:
                return self._fail(f"return from '{inst.name}' with empty call stack")
            next_pc = self.call_stack.pop()
        elif inst.op is Op.META:
            self.meta = not self.meta

        if next_pc is None or not 0 <= next_pc <= size:
            return self._fail(f"malformed jump target at instruction {self.pc}")

        self.pc = next_pc
        self.steps += 1
        self.state = RunState.HALTED if self.pc == size else RunState.RUNNING
        return self.state

    @staticmethod
    def _target(target: Optional[int], offset: int) -> Optional[int]:
        return None if target is None else target + offset

    def run(self, max_steps: Optional[int] = None) -> RunState:
        """Step until terminal or until max_steps more steps have run."""
        count = 0
        while not self.state.terminal:
            if max_steps is not None and count >= max_steps:
                break
            self.step()
            count += 1
        return self.state
