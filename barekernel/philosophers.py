"""The dining philosophers, coordinated with kernel semaphores."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

INITIAL_PHILOS = 5
MAX_PHILOS = 10
FILO_SEM_ID = 1234
MUTEX_SEM_ID = 4321
PHYLO_SLEEP_SECONDS = 1
SLEEP_SECONDS = 2


class PhiloState(Enum):
    THINKING = 0
    HUNGRY = 1
    EATING = 2


@dataclass
class Philosopher:
    """One seat at the table and the semaphore the philosopher waits on."""

    index: int
    sem_id: int
    state: PhiloState = PhiloState.THINKING


class DiningTable:
    """A round table of philosophers sharing forks with their neighbours."""

    def __init__(self, semaphores):
        self.semaphores = semaphores
        self.philosophers: list[Philosopher] = []
        self.semaphores.open(MUTEX_SEM_ID, 1)
        for _ in range(INITIAL_PHILOS):
            self.add()

    def __len__(self) -> int:
        return len(self.philosophers)

    def _left(self, index: int) -> int:
        count = len(self.philosophers)
        return (index + count - 1) % count

    def _right(self, index: int) -> int:
        return (index + 1) % len(self.philosophers)

    def add(self) -> Philosopher:
        """Seat one more philosopher."""
        if len(self.philosophers) == MAX_PHILOS:
            raise RuntimeError("No entran mas filosofos.")
        self.semaphores.wait(MUTEX_SEM_ID)
        index = len(self.philosophers)
        sem_id = self.semaphores.open(FILO_SEM_ID + index, 1)
        philosopher = Philosopher(index, sem_id)
        self.philosophers.append(philosopher)
        self.semaphores.post(MUTEX_SEM_ID)
        return philosopher

    def remove(self) -> Philosopher:
        """Send the last-seated philosopher away."""
        if len(self.philosophers) == INITIAL_PHILOS:
            raise RuntimeError("No se pueden remover mas filosofos.")
        self.semaphores.wait(MUTEX_SEM_ID)
        philosopher = self.philosophers.pop()
        self.semaphores.post(MUTEX_SEM_ID)
        self.semaphores.close(philosopher.sem_id)
        return philosopher

    def _test(self, index: int) -> None:
        philosopher = self.philosophers[index]
        if (
            philosopher.state == PhiloState.HUNGRY
            and self.philosophers[self._left(index)].state != PhiloState.EATING
            and self.philosophers[self._right(index)].state != PhiloState.EATING
        ):
            philosopher.state = PhiloState.EATING
            self.semaphores.post(philosopher.sem_id)

    def take_forks(self, index: int) -> bool:
        """Become hungry and try to eat; False when the philosopher had to block."""
        philosopher = self.philosophers[index]
        self.semaphores.wait(MUTEX_SEM_ID)
        philosopher.state = PhiloState.HUNGRY
        self._test(index)
        self.semaphores.post(MUTEX_SEM_ID)
        return self.semaphores.wait(philosopher.sem_id)

    def put_forks(self, index: int) -> None:
        """Stop eating and let hungry neighbours try."""
        self.semaphores.wait(MUTEX_SEM_ID)
        self.philosophers[index].state = PhiloState.THINKING
        self._test(self._left(index))
        self._test(self._right(index))
        self.semaphores.post(MUTEX_SEM_ID)

    def render(self) -> str:
        """One table line: ``E`` for an eating philosopher, ``-`` otherwise."""
        marks = ("E " if p.state == PhiloState.EATING else "- " for p in self.philosophers)
        return "".join(marks) + "\n"