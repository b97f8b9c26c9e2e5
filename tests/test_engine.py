"""
Tests for the Moostar execution engine.

Covers:
- One instruction per step, including loop control transfers
- Halting, step counting and the end-to-end examples
- Function calls, the meta ribbon and I/O collaborators
- Errored transitions and reset
"""

import pytest

from noseburn.engine import (
    BufferInput,
    ExecutionEngine,
    InputSource,
    OutputSink,
    RunState,
)
from noseburn.moostar import Instruction, Op, Program, parse


def engine_for(source, data=b"", **kwargs):
    return ExecutionEngine(parse(source), BufferInput(data), **kwargs)


# --- Basic stepping ---


class TestStepping:

    def test_initial_state(self):
        engine = engine_for("+")
        assert engine.state is RunState.READY
        assert engine.pc == 0
        assert engine.steps == 0

    def test_empty_program_is_halted(self):
        engine = engine_for("nothing to run")
        assert engine.state is RunState.HALTED
        assert engine.step() is RunState.HALTED
        assert engine.steps == 0

    def test_each_step_runs_one_instruction(self):
        engine = engine_for("++")
        assert engine.step() is RunState.RUNNING
        assert engine.tape.current() == 1
        assert engine.pc == 1

    def test_straight_line_program_halts_after_len_steps(self):
        source = "+>+<-->>.<"
        engine = engine_for(source)
        size = len(engine.program)
        for _ in range(size - 1):
            assert engine.step() is RunState.RUNNING
        assert engine.step() is RunState.HALTED
        assert engine.steps == size

    def test_step_after_halt_is_noop(self):
        engine = engine_for("+")
        engine.step()
        engine.step()
        assert engine.state is RunState.HALTED
        assert engine.steps == 1
        assert engine.pc == 1

    def test_moves(self):
        engine = engine_for("<<>")
        engine.run()
        assert engine.tape.cursor == -1

    def test_wraparound(self):
        engine = engine_for("-")
        engine.run()
        assert engine.tape.current() == 255

    def test_end_to_end_plus_and_moves(self):
        engine = engine_for("+++>++<")
        for _ in range(7):
            engine.step()
        assert engine.data_tape.read(0) == 3
        assert engine.data_tape.read(1) == 2
        assert engine.data_tape.cursor == 0
        assert engine.pc == 7
        assert engine.state is RunState.HALTED


# --- Loops ---


class TestLoops:

    def test_loop_start_skips_when_cell_is_zero(self):
        engine = engine_for("[+>+]-")
        engine.step()
        assert engine.pc == 5
        assert engine.tape.snapshot() == {}

    def test_loop_end_jumps_back_when_cell_nonzero(self):
        engine = engine_for("+[]")
        engine.step()
        engine.step()
        assert engine.pc == 2
        engine.step()
        assert engine.pc == 1

    def test_clear_loop_trace(self):
        engine = engine_for("[-]")
        engine.tape.write(0, 5)
        trace = []
        while engine.state is not RunState.HALTED:
            trace.append(engine.pc)
            engine.step()
        assert trace == [0, 1, 2] * 5
        assert engine.pc == 3
        assert engine.tape.read(0) == 0
        assert engine.steps == 15

    def test_nested_loops_multiply(self):
        # 3 * 4 into cell 1
        engine = engine_for("+++[>++++<-]")
        assert engine.run() is RunState.HALTED
        assert engine.tape.read(1) == 12
        assert engine.tape.read(0) == 0

    def test_hello_world(self):
        source = ("++++++++[>++++[>++>+++>+++>+<<<<-]>+>+>->>+[<]<-]"
                  ">>.>---.+++++++..+++.>>.<-.<.+++.------.--------.>>+.")
        engine = engine_for(source)
        assert engine.run() is RunState.HALTED
        assert engine.output_text() == "Hello World!"


# --- Moostar extensions ---


class TestFunctions:

    def test_definition_is_skipped_in_one_step(self):
        engine = engine_for("(f):{+++}-")
        engine.step()
        assert engine.pc == 5
        engine.step()
        assert engine.tape.current() == 255
        assert engine.state is RunState.HALTED

    def test_call_and_return(self):
        engine = engine_for("(inc):{+}~inc;~inc;")
        # DEFINE, INC, RETURN, CALL, CALL
        engine.step()
        engine.step()
        assert engine.pc == 1
        assert engine.call_stack == [4]
        engine.step()
        engine.step()
        assert engine.pc == 4
        assert engine.call_stack == []
        assert engine.run() is RunState.HALTED
        assert engine.tape.current() == 2
        assert engine.steps == 7

    def test_recursion_overflows_call_stack(self):
        engine = engine_for("(f):{~f;}~f;", max_call_depth=8)
        assert engine.run() is RunState.ERRORED
        assert "call stack overflow" in engine.error
        assert len(engine.call_stack) == 8

    def test_return_without_call_errors(self):
        program = Program((Instruction(Op.RETURN, 0, name="f"),))
        engine = ExecutionEngine(program)
        assert engine.step() is RunState.ERRORED
        assert "empty call stack" in engine.error

    def test_meta_ribbon_is_separate(self):
        engine = engine_for("+^++>+^")
        engine.run()
        assert engine.meta is False
        assert engine.data_tape.snapshot() == {0: 1}
        assert engine.meta_tape.snapshot() == {0: 2, 1: 1}
        assert engine.meta_tape.cursor == 1
        assert engine.data_tape.cursor == 0


# --- I/O ---


class FailingOutput(OutputSink):
    def write_byte(self, value):
        raise OSError("pipe closed")


class FailingInput(InputSource):
    def read_byte(self):
        raise OSError("device gone")


class TestInputOutput:

    def test_output_collects_bytes(self):
        engine = engine_for("+" * 65 + ".+.")
        engine.run()
        assert engine.output_text() == "AB"
        assert engine.output_sink.data == bytearray(b"AB")

    def test_input_reads_bytes_in_order(self):
        engine = engine_for(",>,", data=b"xy")
        engine.run()
        assert engine.data_tape.read(0) == ord("x")
        assert engine.data_tape.read(1) == ord("y")

    def test_exhausted_input_leaves_cell_unchanged(self):
        engine = engine_for("+++,", data=b"")
        assert engine.run() is RunState.HALTED
        assert engine.tape.current() == 3

    def test_output_failure_errors(self):
        engine = ExecutionEngine(parse("+."), output_sink=FailingOutput())
        engine.step()
        assert engine.step() is RunState.ERRORED
        assert "I/O failure" in engine.error
        assert engine.pc == 1
        assert engine.step() is RunState.ERRORED
        assert engine.steps == 1

    def test_input_failure_errors(self):
        engine = ExecutionEngine(parse(","), input_source=FailingInput())
        assert engine.step() is RunState.ERRORED
        assert "input" in engine.error


# --- Failures and reset ---


class TestResetAndErrors:

    def test_malformed_jump_target(self):
        program = Program((Instruction(Op.LOOP_START, 0, target=40),))
        engine = ExecutionEngine(program)
        assert engine.step() is RunState.ERRORED
        assert "malformed jump target" in engine.error

    def test_missing_jump_target(self):
        program = Program((Instruction(Op.INC, 0), Instruction(Op.LOOP_END, 1)))
        engine = ExecutionEngine(program)
        engine.step()
        assert engine.step() is RunState.ERRORED

    def test_reset_restores_initial_state(self):
        engine = engine_for("+>++^+<[-].,", data=b"z")
        initial = (engine.pc, engine.state, engine.steps, engine.meta,
                   engine.data_tape.snapshot(), engine.meta_tape.snapshot(),
                   engine.data_tape.cursor, engine.output_text())
        for _ in range(6):
            engine.step()
        engine.reset()
        after = (engine.pc, engine.state, engine.steps, engine.meta,
                 engine.data_tape.snapshot(), engine.meta_tape.snapshot(),
                 engine.data_tape.cursor, engine.output_text())
        assert after == initial
        assert (engine.data_tape.min_touched, engine.data_tape.max_touched) == (0, 0)

    def test_reset_recovers_from_error(self):
        engine = engine_for("(f):{~f;}~f;", max_call_depth=2)
        engine.run()
        assert engine.state is RunState.ERRORED
        engine.reset()
        assert engine.state is RunState.READY
        assert engine.error is None
        assert engine.call_stack == []

    def test_reset_rewinds_input(self):
        engine = engine_for(",", data=b"a")
        engine.run()
        engine.reset()
        engine.run()
        assert engine.tape.current() == ord("a")

    def test_run_respects_step_budget(self):
        engine = engine_for("+[]")
        assert engine.run(max_steps=50) is RunState.RUNNING
        assert engine.steps == 50

    def test_current_span_tracks_next_instruction(self):
        engine = engine_for("x+ y-")
        assert engine.current_span() == (1, 1)
        engine.step()
        assert engine.current_span() == (4, 1)
        engine.step()
        assert engine.current_span() is None


def test_debug_trace_prints_steps(capsys):
    engine = engine_for("+>", debug=True)
    engine.run()
    out = capsys.readouterr().out
    assert "Step    0: PC=   0 CMD='+'" in out
    assert "CMD='>'" in out


@pytest.mark.parametrize("source,expected", [
    ("+" * 256, 0),
    ("-" * 257, 255),
    ("++[->+<]>", 2),
])
def test_final_cell_values(source, expected):
    engine = engine_for(source)
    engine.run()
    assert engine.tape.current() == expected
