"""Priority round-robin scheduler over a fixed table of tasks."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional, Sequence

from .textfmt import uint_to_base

STACK_SIZE = 4096
REGISTER_COUNT = 20
SAVED_REGISTERS = 19
MAX_TASKS = 16

ARGV_REGISTER = 5
ARGC_REGISTER = 6
RBP_REGISTER = 7
RSP_REGISTER = 8
FLAGS_REGISTER = 17

SHELL_SLOT = 0
IDLE_SLOT = 1


class TaskState(IntEnum):
    READY = 0
    BLOCKED = 1
    KILLED = 2


class Priority(IntEnum):
    HIGHEST = 0
    MEDIUM = 1
    LOWEST = 2
    SHELL = 3
    IDLE = 4


class Ground(IntEnum):
    FOREGROUND = 0
    BACKGROUND = 1


# Ticks a task may keep the CPU for, by priority; others switch every tick.
_QUANTUM = {Priority.HIGHEST: 3, Priority.MEDIUM: 2}
_TICKED = (Priority.HIGHEST, Priority.MEDIUM, Priority.LOWEST)
_PRIORITY_NAMES = {
    Priority.HIGHEST: "Highest",
    Priority.MEDIUM: "Medium",
    Priority.LOWEST: "Lowest",
}


@dataclass
class Task:
    """One entry of the task table."""

    func: Optional[Callable]
    pid: int
    name: str
    argv: list
    priority: Priority
    ground: Ground
    status: TaskState = TaskState.READY
    present: bool = True

    @property
    def alive(self) -> bool:
        return self.present and self.status != TaskState.KILLED


class Scheduler:
    """Chooses which task runs on each timer tick."""

    def __init__(self):
        self.tasks: list[Optional[Task]] = [None] * MAX_TASKS
        self.registers: list[list[int]] = [[0] * REGISTER_COUNT for _ in range(MAX_TASKS)]
        self.active = 0
        self.processes = 0
        self._pid_counter = 0
        self._tickers = {priority: 0 for priority in _TICKED}

    def add_task(self, func, ground, priority, argv: Sequence[str], flags: int = 0) -> int:
        """Put a new task in the first free slot and return its pid."""
        argv = list(argv)
        if not argv:
            raise ValueError("argv must hold at least the task name")
        for slot, task in enumerate(self.tasks):
            if task is None or not task.alive:
                new = Task(func, self._pid_counter, argv[0], argv, Priority(priority), Ground(ground))
                self._pid_counter += 1
                self.tasks[slot] = new
                regs = self.registers[slot]
                regs[ARGC_REGISTER] = len(argv)
                regs[RSP_REGISTER] = slot * STACK_SIZE + STACK_SIZE - 1
                regs[FLAGS_REGISTER] = flags
                self.processes += 1
                return new.pid
        raise RuntimeError("no free task slots")

    def _tick(self, priority: Priority) -> None:
        if priority in self._tickers:
            self._tickers[priority] += 1

    def next(self) -> None:
        """Advance ``active`` to the task that should run on this tick."""
        current = self.tasks[self.active]
        if current is not None:
            quantum = _QUANTUM.get(current.priority)
            if current.present and current.status == TaskState.KILLED:
                current.present = False
            elif (
                quantum is not None
                and self._tickers[current.priority] < quantum
                and current.status == TaskState.READY
            ):
                self._tickers[current.priority] += 1
                return
            if current.priority in self._tickers:
                self._tickers[current.priority] = 0

        for step in range(1, MAX_TASKS):
            slot = (self.active + step) % MAX_TASKS
            task = self.tasks[slot]
            if task is None or not task.present or task.status != TaskState.READY:
                continue
            if task.priority != Priority.SHELL:
                self.active = slot
                self._tick(task.priority)
                return
            if not self.foreground_running():
                self.active = IDLE_SLOT if self.foreground_alive() else SHELL_SLOT
                return

    def switch(self, registers: Optional[Sequence[int]] = None) -> list[int]:
        """Save the running task's registers (if given), pick the next task, return its registers."""
        if registers is not None:
            saved = list(registers)[:SAVED_REGISTERS]
            self.registers[self.active][:len(saved)] = saved
        self.next()
        return list(self.registers[self.active])

    def yield_task(self, registers: Optional[Sequence[int]] = None) -> list[int]:
        """Give up the CPU without the current task counting as runnable foreground work."""
        current = self.tasks[self.active]
        if current is None:
            return self.switch(registers)
        current.present = False
        try:
            return self.switch(registers)
        finally:
            current.present = True

    def foreground_running(self) -> bool:
        """Whether a ready, non-shell foreground task exists."""
        return any(
            task is not None
            and task.present
            and task.status == TaskState.READY
            and task.priority != Priority.SHELL
            and task.ground == Ground.FOREGROUND
            for task in self.tasks
        )

    def foreground_alive(self) -> bool:
        """Whether a live (ready or blocked) non-shell foreground task exists."""
        return any(
            task is not None
            and task.alive
            and task.priority != Priority.SHELL
            and task.ground == Ground.FOREGROUND
            for task in self.tasks
        )

    def _current(self) -> Task:
        task = self.tasks[self.active]
        if task is None:
            raise ProcessLookupError("no task is running")
        return task

    def current_pid(self) -> int:
        return self._current().pid

    def exit_current(self) -> None:
        """Terminate the running task; the shell never exits."""
        if self.active == SHELL_SLOT:
            return
        self._current().status = TaskState.KILLED
        self.processes -= 1

    def _find(self, pid: int, *, include_killed: bool) -> Task:
        if pid == 0:
            raise PermissionError("the shell process cannot be changed")
        for task in self.tasks:
            if task is not None and task.present and task.pid == pid:
                if include_killed or task.status != TaskState.KILLED:
                    return task
        raise ProcessLookupError(f"no process with pid {pid}")

    def kill(self, pid: int) -> None:
        self._find(pid, include_killed=True).status = TaskState.KILLED

    def nice(self, pid: int, priority) -> None:
        priority = Priority(priority)
        if priority not in _PRIORITY_NAMES:
            raise ValueError(f"priority {priority} cannot be set")
        self._find(pid, include_killed=True).priority = priority

    def block(self, pid: int) -> None:
        self._find(pid, include_killed=False).status = TaskState.BLOCKED

    def unblock(self, pid: int) -> None:
        self._find(pid, include_killed=False).status = TaskState.READY

    def exit_all(self) -> None:
        """Kill every task except the shell and the idle task."""
        for task in self.tasks[IDLE_SLOT + 1:]:
            if task is not None and task.present:
                task.status = TaskState.KILLED
                self.processes -= 1

    def shell_running(self) -> bool:
        return self.active == SHELL_SLOT

    def is_foreground(self) -> bool:
        task = self.tasks[self.active]
        return task is not None and task.ground == Ground.FOREGROUND

    def ps(self) -> str:
        """One line per live task: name, pid, priority, ground, RBP, RSP, priority name, state."""
        lines = []
        for slot, task in enumerate(self.tasks):
            if task is None or not task.alive:
                continue
            regs = self.registers[slot]
            ground = "Foreground" if task.ground == Ground.FOREGROUND else "Background"
            state = "Ready" if task.status == TaskState.READY else "Blocked"
            lines.append(
                f"{task.name} {task.pid} {int(task.priority)} {ground} "
                f"{uint_to_base(regs[RBP_REGISTER], 16)} {uint_to_base(regs[RSP_REGISTER], 16)} "
                f"{_PRIORITY_NAMES.get(task.priority, 'ShellPrio')} {state}\n"
            )
        return "".join(lines)