"""Moostar virtual machine with a live view of its memory ribbon."""

from noseburn.moostar import Instruction, MoostarError, Op, ParseError, ParseErrorKind, Program, parse
from noseburn.tape import Tape
from noseburn.engine import BufferInput, BufferOutput, ExecutionEngine, RunState
from noseburn.controller import Command, Controller, FREQUENCIES
from noseburn.viewport import Frame, Window, build_frame, render_window

__version__ = "0.1.0"
