"""
Curses front end.

One cooperative loop: poll a key with a short timeout, advance the
controller by the real time elapsed since the previous pass, draw a frame.
Keys:
    q            quit
    space        run / pause
    s            single step
    r            reset
    Up, -        slower
    Down, +      faster
"""

import curses
import time
from typing import List, Optional, Tuple

import numpy as np

from noseburn.controller import Command, Controller, FREQUENCIES, format_frequency
from noseburn.viewport import Frame, Window

TITLE = "Nose Burn 👃🔥"
CELL_WIDTH = 5  # "|000 "

KEY_COMMANDS = {
    ord('q'): Command.QUIT,
    ord('Q'): Command.QUIT,
    ord(' '): Command.TOGGLE_PAUSE,
    ord('s'): Command.STEP,
    ord('r'): Command.RESET,
    curses.KEY_UP: Command.DECREASE_FREQUENCY,
    ord('-'): Command.DECREASE_FREQUENCY,
    curses.KEY_DOWN: Command.INCREASE_FREQUENCY,
    ord('+'): Command.INCREASE_FREQUENCY,
}


def cells_for_width(columns: int) -> int:
    """How many tape cells fit on a line of the given width."""
    return max(1, (columns - 1) // CELL_WIDTH)


def ribbon_lines(values: np.ndarray, window: Window) -> Tuple[str, str, str]:
    """Three text rows for a tape window: values, cursor marker, addresses."""
    vals = "".join(f"|{int(v):03d} " for v in values) + "|"
    marks = "".join(" ^^^ " if i == window.cursor_offset else " " * CELL_WIDTH
                    for i in range(window.count))
    addrs = "".join(f"{window.start + i:<{CELL_WIDTH}d}"[:CELL_WIDTH] for i in range(window.count))
    return vals, marks, addrs


def status_line(frame: Frame) -> str:
    run = "paused" if frame.paused else "running"
    line = (f"pc={frame.pc}  state={frame.state}  steps={frame.steps}  "
            f"freq={format_frequency(frame.frequency)}  [{run}]")
    if frame.error:
        line += f"  error: {frame.error}"
    return line


def input_line(text: str, position: int) -> str:
    """Input with the next byte ',' will read in brackets, [EOF] once used up."""
    shown = [c.replace("\n", "\\n") for c in text]
    if position >= len(shown):
        return "".join(shown) + "[EOF]"
    shown[position] = f"[{shown[position]}]"
    return "".join(shown)


def code_lines(source: str, span: Optional[Tuple[int, int]]) -> Tuple[List[str], Optional[Tuple[int, int, int]]]:
    """Source lines plus the (line, column, length) of the highlighted span."""
    lines = source.split("\n")
    if span is None:
        return lines, None
    position, length = span
    offset = 0
    for number, line in enumerate(lines):
        if position <= offset + len(line):
            column = position - offset
            return lines, (number, column, max(1, min(length, len(line) - column)))
        offset += len(line) + 1
    return lines, None


class TerminalView:
    def __init__(self, stdscr, controller: Controller, source: str):
        self.stdscr = stdscr
        self.controller = controller
        self.source = source

    def _put(self, y: int, x: int, text: str, attr: int = curses.A_NORMAL) -> None:
        height, width = self.stdscr.getmaxyx()
        if y < 0 or y >= height or x >= width:
            return
        try:
            self.stdscr.addstr(y, x, text[:max(0, width - x - 1)], attr)
        except curses.error:
            pass  # writing the bottom-right cell raises even on success

    def draw(self) -> None:
        height, width = self.stdscr.getmaxyx()
        frame = self.controller.frame(cells_for_width(width))
        self.stdscr.erase()

        self._put(0, max(0, (width - len(TITLE)) // 2), TITLE, curses.A_BOLD)
        y = 2
        for label, cells, window, active in (
            ("Data ribbon", frame.cells, frame.window, not frame.meta_active),
            ("Meta ribbon", frame.meta_cells, frame.meta_window, frame.meta_active),
        ):
            self._put(y, 0, label + (" *" if active else ""),
                      curses.A_BOLD if active else curses.A_DIM)
            for row, text in enumerate(ribbon_lines(cells, window), start=1):
                self._put(y + row, 0, text)
            y += 5

        self._put(y, 0, status_line(frame), curses.A_REVERSE)
        y += 1
        self._put(y, 0, "Input:  " + input_line(frame.input, frame.input_position)[-(width - 10):])
        y += 1
        self._put(y, 0, "Output: " + frame.output.replace("\n", "\\n")[-(width - 10):])
        y += 1
        jumps = " ".join(f"#{pos}" for pos in frame.call_stack) or "-"
        self._put(y, 0, "Returns: " + jumps)
        y += 2

        self._draw_code(y, height - 1, frame.span)
        self._put(height - 1, 0,
                  "q quit | space run/pause | s step | r reset | Up/- slower | Down/+ faster "
                  f"({format_frequency(FREQUENCIES[0])} .. {format_frequency(FREQUENCIES[-1])})",
                  curses.A_DIM)
        self.stdscr.refresh()

    def _draw_code(self, top: int, bottom: int, span: Optional[Tuple[int, int]]) -> None:
        rows = bottom - top
        if rows <= 0:
            return
        lines, mark = code_lines(self.source, span)
        # Keep the highlighted line in the middle of the code area
        centre = mark[0] if mark else 0
        first = max(0, min(centre - rows // 2, len(lines) - rows))
        for row, line in enumerate(lines[first:first + rows]):
            self._put(top + row, 0, line)
            if mark and first + row == mark[0]:
                _, column, length = mark
                self._put(top + row, column, line[column:column + length] or " ",
                          curses.A_BOLD | curses.A_REVERSE)


def run_loop(stdscr, controller: Controller, source: str, frame_rate: float) -> None:
    try:
        curses.curs_set(0)
    except curses.error:
        pass  # terminal cannot hide the cursor
    stdscr.keypad(True)
    stdscr.timeout(max(1, int(1000 / frame_rate)))
    view = TerminalView(stdscr, controller, source)

    last = time.perf_counter()
    while True:
        view.draw()
        key = stdscr.getch()
        command = KEY_COMMANDS.get(key)
        if command is Command.QUIT:
            return
        if command is not None:
            controller.handle(command)
        now = time.perf_counter()
        controller.tick(now - last)
        last = now


def run_tui(controller: Controller, source: str, frame_rate: float = 30.0) -> None:
    curses.wrapper(run_loop, controller, source, frame_rate)
