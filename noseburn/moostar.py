#!/usr/bin/env python3
"""
Moostar Parser

Moostar is a Brainfuck flavour. On top of the 8 classic commands:
    >   Move the cursor to the right
    <   Move the cursor to the left
    +   Increment the cell at the cursor
    -   Decrement the cell at the cursor
    .   Output the cell at the cursor
    ,   Read one input byte into the cell at the cursor
    [   Jump past the matching ] if the cell at the cursor is 0
    ]   Jump back to the matching [ if the cell at the cursor is nonzero
it adds:
    (name):{ ... }   Define a function; skipped when reached in normal flow
    ~name;           Call a function, returning right after the call
    ^                Switch between the data ribbon and the meta ribbon

All other characters are treated as comments and ignored.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple


class MoostarError(Exception):
    """Base class for every error raised by noseburn."""


class Op(Enum):
    LEFT = "<"
    RIGHT = ">"
    INC = "+"
    DEC = "-"
    OUTPUT = "."
    INPUT = ","
    LOOP_START = "["
    LOOP_END = "]"
    DEFINE = "("
    RETURN = "}"
    CALL = "~"
    META = "^"


SIMPLE_OPS = {op.value: op for op in (Op.LEFT, Op.RIGHT, Op.INC, Op.DEC,
                                      Op.OUTPUT, Op.INPUT, Op.META)}

IDENTIFIER = r"[a-z][A-Za-z0-9_]*"
DEFINITION_HEADER = re.compile(r"\(\s*(" + IDENTIFIER + r")\s*\):\{")
CALL_SITE = re.compile(r"~\s*(" + IDENTIFIER + r")\s*;")


class ParseErrorKind(Enum):
    UNMATCHED_LOOP_START = "unmatched '['"
    UNMATCHED_LOOP_END = "unmatched ']'"
    MALFORMED_DEFINITION = "malformed function definition header"
    NESTED_DEFINITION = "function definition inside another definition"
    DUPLICATE_DEFINITION = "function defined twice"
    UNMATCHED_DEFINITION_START = "function definition never closed"
    UNMATCHED_DEFINITION_END = "'}' outside of a function definition"
    MALFORMED_CALL = "malformed function call"
    UNDEFINED_FUNCTION = "call to an undefined function"


class ParseError(MoostarError):
    """Source text that cannot become a Program."""

    def __init__(self, kind: ParseErrorKind, position: int, source: str, detail: str = ""):
        self.kind = kind
        self.position = position
        self.line, self.column = line_and_column(source, position)
        message = f"{kind.value} at line {self.line}, column {self.column}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


def line_and_column(source: str, position: int) -> Tuple[int, int]:
    """1-based line and column of a character offset."""
    line = source.count("\n", 0, position) + 1
    column = position - (source.rfind("\n", 0, position) + 1) + 1
    return line, column


@dataclass(frozen=True)
class Instruction:
    op: Op
    position: int
    length: int = 1
    target: Optional[int] = None
    name: Optional[str] = None

    @property
    def span(self) -> Tuple[int, int]:
        return self.position, self.length


@dataclass(frozen=True)
class Program:
    """Compiled program: instructions with every jump already resolved."""
    instructions: Tuple[Instruction, ...]
    source: str = ""
    functions: Mapping[str, int] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        # Read-only view of the function table
        object.__setattr__(self, "functions", MappingProxyType(dict(self.functions)))

    def __len__(self) -> int:
        return len(self.instructions)

    def __getitem__(self, index: int) -> Instruction:
        return self.instructions[index]

    def __iter__(self):
        return iter(self.instructions)

    def jump_table(self) -> Dict[int, int]:
        """Map every loop bracket index to its partner index."""
        return {i: inst.target for i, inst in enumerate(self.instructions)
                if inst.op in (Op.LOOP_START, Op.LOOP_END)}


def parse(source: str) -> Program:
    """Compile Moostar source text in one pass with an explicit loop stack."""
    instructions: List[Instruction] = []
    targets: Dict[int, int] = {}
    loop_stack: List[int] = []
    functions: Dict[str, int] = {}
    calls: List[Tuple[int, str]] = []

    # Open definition: (instruction index, loop stack depth when it opened)
    definition: Optional[Tuple[int, int]] = None

    pos = 0
    while pos < len(source):
        c = source[pos]
        index = len(instructions)

        if c in SIMPLE_OPS:
            instructions.append(Instruction(SIMPLE_OPS[c], pos))

        elif c == '[':
            loop_stack.append(index)
            instructions.append(Instruction(Op.LOOP_START, pos))

        elif c == ']':
            floor = definition[1] if definition is not None else 0
            if len(loop_stack) <= floor:
                raise ParseError(ParseErrorKind.UNMATCHED_LOOP_END, pos, source)
            start = loop_stack.pop()
            targets[start] = index
            targets[index] = start
            instructions.append(Instruction(Op.LOOP_END, pos))

        elif c == '(':
            if definition is not None:
                raise ParseError(ParseErrorKind.NESTED_DEFINITION, pos, source)
            match = DEFINITION_HEADER.match(source, pos)
            if match is None:
                raise ParseError(ParseErrorKind.MALFORMED_DEFINITION, pos, source,
                                 "expected '(name):{'")
            name = match.group(1)
            if name in functions:
                raise ParseError(ParseErrorKind.DUPLICATE_DEFINITION, pos, source, name)
            functions[name] = index
            definition = (index, len(loop_stack))
            instructions.append(Instruction(Op.DEFINE, pos, match.end() - pos, name=name))
            pos = match.end()
            continue

        elif c == '}':
            if definition is None:
                raise ParseError(ParseErrorKind.UNMATCHED_DEFINITION_END, pos, source)
            start, depth = definition
            if len(loop_stack) > depth:
                opened = instructions[loop_stack[depth]].position
                raise ParseError(ParseErrorKind.UNMATCHED_LOOP_START, opened, source)
            targets[start] = index
            instructions.append(Instruction(Op.RETURN, pos, name=instructions[start].name))
            definition = None

        elif c == '~':
            match = CALL_SITE.match(source, pos)
            if match is None:
                raise ParseError(ParseErrorKind.MALFORMED_CALL, pos, source,
                                 "expected '~name;'")
            calls.append((index, match.group(1)))
            instructions.append(Instruction(Op.CALL, pos, match.end() - pos, name=match.group(1)))
            pos = match.end()
            continue

        pos += 1

    if definition is not None:
        start, depth = definition
        if len(loop_stack) > depth:
            opened = instructions[loop_stack[depth]].position
            raise ParseError(ParseErrorKind.UNMATCHED_LOOP_START, opened, source)
        raise ParseError(ParseErrorKind.UNMATCHED_DEFINITION_START,
                         instructions[start].position, source)

    if loop_stack:
        # Report the first unmatched '[' in the text
        raise ParseError(ParseErrorKind.UNMATCHED_LOOP_START,
                         instructions[loop_stack[0]].position, source)

    for index, name in calls:
        if name not in functions:
            raise ParseError(ParseErrorKind.UNDEFINED_FUNCTION,
                             instructions[index].position, source, name)
        targets[index] = functions[name] + 1

    resolved = tuple(
        Instruction(inst.op, inst.position, inst.length, targets.get(i), inst.name)
        if i in targets else inst
        for i, inst in enumerate(instructions)
    )
    return Program(resolved, source, functions)
