"""Counting semaphores that block and wake scheduler tasks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from .textfmt import uint_to_base

MAX_PROCESSES = 16


class SemaphoreError(Exception):
    """Raised for an unknown semaphore or an overfull wait queue."""


@dataclass
class Semaphore:
    """One kernel semaphore: its count, its waiters and how many opened it."""

    id: int
    value: int
    blocked: list[int] = field(default_factory=list)
    open_count: int = 0


class SemaphoreTable:
    """All open semaphores, keyed by id, in creation order."""

    def __init__(self, scheduler):
        self.scheduler = scheduler
        self._sems: dict[int, Semaphore] = {}

    def __getitem__(self, sem_id: int) -> Semaphore:
        try:
            return self._sems[sem_id]
        except KeyError:
            raise SemaphoreError(f"no semaphore with id {sem_id}") from None

    def __contains__(self, sem_id: object) -> bool:
        return sem_id in self._sems

    def __len__(self) -> int:
        return len(self._sems)

    def __iter__(self) -> Iterator[Semaphore]:
        return iter(list(self._sems.values()))

    def open(self, sem_id: int, value: int) -> int:
        """Open (creating with ``value`` if new) the semaphore ``sem_id``."""
        sem = self._sems.get(sem_id)
        if sem is None:
            sem = self._sems[sem_id] = Semaphore(sem_id, value)
        sem.open_count += 1
        return sem_id

    def close(self, sem_id: int) -> None:
        """Drop one opener; the last close removes the semaphore."""
        sem = self[sem_id]
        if sem.open_count > 1:
            sem.open_count -= 1
        else:
            del self._sems[sem_id]

    def wait(self, sem_id: int) -> bool:
        """Take one unit; returns False when the running task had to block."""
        sem = self[sem_id]
        if sem.value > 0:
            sem.value -= 1
            return True
        if len(sem.blocked) >= MAX_PROCESSES:
            raise SemaphoreError(f"too many processes waiting on semaphore {sem_id}")
        pid = self.scheduler.current_pid()
        sem.blocked.append(pid)
        try:
            self.scheduler.block(pid)
        except (PermissionError, ProcessLookupError):
            pass
        return False

    def post(self, sem_id: int) -> None:
        """Wake the longest waiter, or add one unit if nobody waits."""
        sem = self[sem_id]
        if sem.blocked:
            pid = sem.blocked.pop(0)
            try:
                self.scheduler.unblock(pid)
            except (PermissionError, ProcessLookupError):
                pass
        else:
            sem.value += 1

    def close_all(self) -> None:
        """Remove every semaphore."""
        self._sems.clear()

    def status(self) -> str:
        """Describe every semaphore, its value, openers and waiters."""
        parts = ["Active Semaphores:\n\n"]
        if not self._sems:
            parts.append("No active semaphores\n")
            return "".join(parts)
        for sem in self._sems.values():
            parts.append(
                f"ID: {uint_to_base(sem.id, 10)}"
                f"\nValue: {uint_to_base(sem.value, 10)}"
                f"\nAmount of Processes Involved: {uint_to_base(sem.open_count, 10)}"
                f"\nAmount of Processes Blocked: {uint_to_base(len(sem.blocked), 10)}"
            )
            if sem.blocked:
                parts.append("\nBlocked Processes:\n")
                parts.extend(f"    PID: {uint_to_base(pid, 10)}\n" for pid in sem.blocked)
            parts.append("\n")
        return "".join(parts)