"""
Viewport: maps the unbounded tape onto a fixed number of visible cells.

render_window() is a pure function; build_frame() gathers everything the
renderer draws into one immutable snapshot.
"""

from dataclasses import dataclass
from fractions import Fraction
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class Window:
    start: int
    count: int
    cursor_offset: int

    @property
    def stop(self) -> int:
        return self.start + self.count

    def __contains__(self, index: int) -> bool:
        return self.start <= index < self.stop


def render_window(cursor: int, min_touched: int, max_touched: int, display_width: int) -> Window:
    """Pick the visible slice of the tape.

    The cursor is always inside the window. When the touched range fits, the
    whole range is shown from its left edge; otherwise the cursor is centred
    and the window clamped so it never runs past either end of the range.
    """
    if display_width < 1:
        raise ValueError(f"display width must be at least 1, got {display_width}")

    lo = min(min_touched, cursor)
    hi = max(max_touched, cursor)

    if hi - lo + 1 <= display_width:
        start = lo
    else:
        start = cursor - display_width // 2
        start = max(lo, min(start, hi - display_width + 1))

    return Window(start, display_width, cursor - start)


@dataclass(frozen=True)
class Frame:
    """Everything one redraw needs, detached from the engine."""
    window: Window
    cells: np.ndarray
    meta_window: Window
    meta_cells: np.ndarray
    meta_active: bool
    pc: int
    state: str
    error: Optional[str]
    steps: int
    frequency: Fraction
    paused: bool
    output: str
    input: str
    input_position: int
    span: Optional[Tuple[int, int]]
    call_stack: Tuple[int, ...]


def build_frame(engine, display_width: int, frequency: Fraction = Fraction(1),
                paused: bool = True, meta_width: Optional[int] = None) -> Frame:
    data = engine.data_tape
    meta = engine.meta_tape
    window = render_window(data.cursor, data.min_touched, data.max_touched, display_width)
    meta_window = render_window(meta.cursor, meta.min_touched, meta.max_touched,
                                meta_width or display_width)
    return Frame(
        window=window,
        cells=data.window(window.start, window.count),
        meta_window=meta_window,
        meta_cells=meta.window(meta_window.start, meta_window.count),
        meta_active=engine.meta,
        pc=engine.pc,
        state=engine.state.value,
        error=engine.error,
        steps=engine.steps,
        frequency=frequency,
        paused=paused,
        output=engine.output_text(),
        input=engine.input_text(),
        input_position=engine.input_position(),
        span=engine.current_span(),
        # Most recent return address first
        call_stack=tuple(reversed(engine.call_stack)),
    )
