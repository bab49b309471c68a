"""Timer-tick clock of the kernel."""

from __future__ import annotations

TICKS_PER_SECOND = 18


class Clock:
    """Counts timer interrupts and turns them into elapsed seconds."""

    def __init__(self):
        self.ticks = 0

    def tick(self) -> None:
        """Record one timer interrupt."""
        self.ticks += 1

    def seconds(self) -> int:
        """Whole seconds elapsed since the clock started."""
        return self.ticks // TICKS_PER_SECOND