"""
Memory ribbon: a sparse byte tape, unbounded in both directions.

Only written cells are stored; everything else reads as 0. The extreme
indices ever touched (written or visited by the cursor) are tracked so the
viewport never has to scan the tape.
"""

from typing import Dict

import numpy as np

CELL_MODULO = 256


class Tape:
    def __init__(self):
        self.cells: Dict[int, int] = {}
        self.cursor = 0
        self.min_touched = 0
        self.max_touched = 0

    def _touch(self, index: int) -> None:
        if index < self.min_touched:
            self.min_touched = index
        elif index > self.max_touched:
            self.max_touched = index

    def read(self, index: int) -> int:
        return self.cells.get(index, 0)

    def write(self, index: int, value: int) -> None:
        """Store a value, wrapping it into 0-255."""
        self.cells[index] = value % CELL_MODULO
        self._touch(index)

    def move(self, delta: int) -> None:
        self.cursor += delta
        self._touch(self.cursor)

    def current(self) -> int:
        return self.read(self.cursor)

    def current_write(self, value: int) -> None:
        self.write(self.cursor, value)

    def increment(self) -> None:
        self.current_write(self.current() + 1)

    def decrement(self) -> None:
        self.current_write(self.current() - 1)

    def window(self, start: int, count: int) -> np.ndarray:
        """Cell values for indices start .. start+count-1 as uint8."""
        values = np.zeros(count, dtype=np.uint8)
        if count <= 0:
            return values
        # Walk whichever side is smaller: the window or the written cells
        if count < len(self.cells):
            for offset in range(count):
                values[offset] = self.cells.get(start + offset, 0)
        else:
            for index, value in self.cells.items():
                if start <= index < start + count:
                    values[index - start] = value
        return values

    def snapshot(self) -> Dict[int, int]:
        """Written cells, excluding the ones that hold 0 again."""
        return {i: v for i, v in sorted(self.cells.items()) if v}
