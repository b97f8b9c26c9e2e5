"""
Stepping scheduler.

The controller owns the engine and turns elapsed wall-clock time into steps
with a fixed-step accumulator: leftover time is carried over between ticks,
so the average stepping rate matches the selected frequency no matter how
irregular the ticks are.
"""

from enum import Enum
from fractions import Fraction
from typing import Optional, Union

from noseburn.engine import ExecutionEngine
from noseburn.viewport import Frame, build_frame

# Allowed stepping rates in Hz, slowest first
FREQUENCIES = (
    Fraction(1, 2), Fraction(1), Fraction(2), Fraction(5), Fraction(10), Fraction(20),
    Fraction(50), Fraction(100), Fraction(200), Fraction(500), Fraction(1000),
)
DEFAULT_MAX_STEPS_PER_TICK = 250


class Command(Enum):
    RESET = "reset"
    STEP = "step"
    TOGGLE_PAUSE = "toggle_pause"
    INCREASE_FREQUENCY = "increase_frequency"
    DECREASE_FREQUENCY = "decrease_frequency"
    QUIT = "quit"


def nearest_frequency_index(hz: float) -> int:
    """Index of the ladder entry closest to hz."""
    if hz <= 0:
        raise ValueError(f"frequency must be positive, got {hz}")
    target = Fraction(hz)
    return min(range(len(FREQUENCIES)), key=lambda i: abs(FREQUENCIES[i] - target))


def format_frequency(hz: Fraction) -> str:
    if hz.denominator == 1:
        return f"{hz.numerator} Hz"
    return f"{hz.numerator}/{hz.denominator} Hz"


class Controller:
    def __init__(self, engine: ExecutionEngine, frequency: float = 1.0,
                 max_steps_per_tick: int = DEFAULT_MAX_STEPS_PER_TICK, paused: bool = True):
        if max_steps_per_tick < 1:
            raise ValueError("max_steps_per_tick must be at least 1")
        self.engine = engine
        self.frequency_index = nearest_frequency_index(frequency)
        self.max_steps_per_tick = max_steps_per_tick
        self.paused = paused
        self.accumulator = Fraction(0)

    @property
    def frequency(self) -> Fraction:
        return FREQUENCIES[self.frequency_index]

    @property
    def period(self) -> Fraction:
        """Seconds between two automatic steps."""
        return 1 / self.frequency

    def tick(self, elapsed: Union[float, Fraction]) -> int:
        """Advance by elapsed seconds and return the number of steps performed."""
        if self.paused or self.engine.halted:
            return 0
        self.accumulator += Fraction(elapsed)
        period = self.period
        steps = 0
        while self.accumulator >= period:
            if steps >= self.max_steps_per_tick:
                # Drop the backlog after a stall, keep the partial period
                self.accumulator %= period
                break
            self.engine.step()
            self.accumulator -= period
            steps += 1
            if self.engine.halted:
                break
        return steps

    def handle(self, command: Command) -> None:
        if command is Command.RESET:
            self.reset()
        elif command is Command.STEP:
            self.engine.step()
        elif command is Command.TOGGLE_PAUSE:
            self.paused = not self.paused
        elif command is Command.INCREASE_FREQUENCY:
            self.increase_frequency()
        elif command is Command.DECREASE_FREQUENCY:
            self.decrease_frequency()

    def reset(self) -> None:
        self.engine.reset()
        self.accumulator = Fraction(0)

    def increase_frequency(self) -> None:
        self.frequency_index = min(self.frequency_index + 1, len(FREQUENCIES) - 1)

    def decrease_frequency(self) -> None:
        self.frequency_index = max(self.frequency_index - 1, 0)

    def frame(self, display_width: int, meta_width: Optional[int] = None) -> Frame:
        return build_frame(self.engine, display_width, frequency=self.frequency,
                           paused=self.paused, meta_width=meta_width)
