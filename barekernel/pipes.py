"""Fixed-size circular pipes guarded by a pair of semaphores each."""

from __future__ import annotations

import errno
from dataclasses import dataclass, field
from typing import Optional

from .textfmt import uint_to_base

BUFFER_SIZE = 100
MAX_PIPES = 8
FIRST_SEM_ID = 100


class PipeError(Exception):
    """Raised for an unknown pipe or when no pipe slot is free."""


@dataclass
class Pipe:
    """One pipe: a ring buffer plus the ids of its read and write semaphores."""

    id: int
    read_lock: int
    write_lock: int
    buffer: list[str] = field(default_factory=lambda: [""] * BUFFER_SIZE)
    write_index: int = 0
    read_index: int = 0
    processes: int = 0


class PipeTable:
    """The kernel's pipe slots.

    A read from an empty pipe or a write into a full one would suspend the
    caller; here it raises ``BlockingIOError`` instead, leaving the pipe as it was
    (for writes, ``characters_written`` tells how much went in).
    """

    def __init__(self, semaphores):
        self.semaphores = semaphores
        self._slots: list[Optional[Pipe]] = [None] * MAX_PIPES
        self._next_sem_id = FIRST_SEM_ID

    def _index(self, pipe_id: int) -> int:
        for index, pipe in enumerate(self._slots):
            if pipe is not None and pipe.id == pipe_id:
                return index
        raise PipeError(f"no pipe with id {pipe_id}")

    def __getitem__(self, pipe_id: int) -> Pipe:
        pipe = self._slots[self._index(pipe_id)]
        assert pipe is not None
        return pipe

    def __contains__(self, pipe_id: object) -> bool:
        return any(pipe is not None and pipe.id == pipe_id for pipe in self._slots)

    def _create(self, pipe_id: int) -> Pipe:
        try:
            index = self._slots.index(None)
        except ValueError:
            raise PipeError("no free pipe slots") from None
        read_lock = self.semaphores.open(self._next_sem_id, 0)
        self._next_sem_id += 1
        write_lock = self.semaphores.open(self._next_sem_id, BUFFER_SIZE)
        self._next_sem_id += 1
        pipe = Pipe(pipe_id, read_lock, write_lock)
        self._slots[index] = pipe
        return pipe

    def open(self, pipe_id: int) -> int:
        """Join the pipe ``pipe_id``, creating it if needed."""
        pipe = self[pipe_id] if pipe_id in self else self._create(pipe_id)
        pipe.processes += 1
        return pipe_id

    def close(self, pipe_id: int) -> None:
        """Leave the pipe; the last process to leave destroys it."""
        index = self._index(pipe_id)
        pipe = self._slots[index]
        assert pipe is not None
        pipe.processes -= 1
        if pipe.processes > 0:
            return
        self._slots[index] = None
        self.semaphores.close(pipe.write_lock)
        self.semaphores.close(pipe.read_lock)

    def write(self, pipe_id: int, text: str) -> int:
        """Append ``text`` to the pipe, one character at a time."""
        pipe = self[pipe_id]
        for written, char in enumerate(text):
            if self.semaphores[pipe.write_lock].value == 0:
                raise BlockingIOError(errno.EAGAIN, f"pipe {pipe_id} is full", written)
            self.semaphores.wait(pipe.write_lock)
            pipe.buffer[pipe.write_index] = char
            pipe.write_index = (pipe.write_index + 1) % BUFFER_SIZE
            self.semaphores.post(pipe.read_lock)
        return pipe_id

    def read(self, pipe_id: int) -> str:
        """Take the next character out of the pipe."""
        pipe = self[pipe_id]
        if self.semaphores[pipe.read_lock].value == 0:
            raise BlockingIOError(errno.EAGAIN, f"pipe {pipe_id} is empty")
        self.semaphores.wait(pipe.read_lock)
        char = pipe.buffer[pipe.read_index]
        pipe.read_index = (pipe.read_index + 1) % BUFFER_SIZE
        self.semaphores.post(pipe.write_lock)
        return char

    def close_all(self) -> None:
        """Destroy every pipe."""
        for index, pipe in enumerate(self._slots):
            if pipe is not None:
                self._slots[index] = None
                self.semaphores.close(pipe.write_lock)
                self.semaphores.close(pipe.read_lock)

    def status(self) -> str:
        """Describe every open pipe."""
        parts = ["Active Pipes:\n\n"]
        active = [pipe for pipe in self._slots if pipe is not None]
        for pipe in active:
            state = "Empty" if pipe.write_index == 0 and pipe.read_index == 0 else "In use"
            parts.append(
                f"ID: {uint_to_base(pipe.id, 10)}\nState: {state}"
                f"\nAmount of Processes Involved: {uint_to_base(pipe.processes, 10)}\n"
            )
        if not active:
            parts.append("No active pipes\n")
        return "".join(parts)