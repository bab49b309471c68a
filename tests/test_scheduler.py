import random

import pytest

from barekernel.scheduler import (
    MAX_TASKS,
    Ground,
    Priority,
    Scheduler,
    TaskState,
)


def _noop(*_args):
    return None


def _with_shell():
    sched = Scheduler()
    sched.add_task(_noop, Ground.FOREGROUND, Priority.SHELL, ["shell"])
    sched.add_task(_noop, Ground.FOREGROUND, Priority.SHELL, ["idle"])
    return sched


def _task(sched, pid):
    return next(task for task in sched.tasks if task is not None and task.pid == pid)


def test_pids_are_sequential():
    sched = Scheduler()
    pids = [sched.add_task(_noop, Ground.BACKGROUND, Priority.MEDIUM, [f"t{i}"]) for i in range(3)]
    assert pids == [0, 1, 2]
    assert sched.processes == 3


def test_medium_round_robin():
    sched = Scheduler()
    for name in "xyz":
        sched.add_task(_noop, Ground.BACKGROUND, Priority.MEDIUM, [name])
    order = []
    for _ in range(8):
        sched.next()
        order.append(sched.active)
    assert order == [0, 0, 1, 1, 2, 2, 0, 0]


def test_highest_gets_longer_quantum():
    sched = Scheduler()
    sched.add_task(_noop, Ground.BACKGROUND, Priority.HIGHEST, ["high"])
    sched.add_task(_noop, Ground.BACKGROUND, Priority.MEDIUM, ["medium"])
    order = []
    for _ in range(10):
        sched.next()
        order.append(sched.active)
    assert order == [0, 0, 0, 1, 1, 0, 0, 0, 1, 1]


def test_idle_runs_while_foreground_task_blocked():
    sched = _with_shell()
    pid = sched.add_task(_noop, Ground.FOREGROUND, Priority.MEDIUM, ["fg"])
    sched.next()
    assert sched.active == 2
    sched.block(pid)
    sched.next()
    assert sched.active == 1
    sched.kill(pid)
    sched.next()
    assert sched.active == 0
    assert sched.shell_running()


def test_shell_stays_with_only_background_work():
    sched = _with_shell()
    sched.add_task(_noop, Ground.BACKGROUND, Priority.MEDIUM, ["bg"])
    sched.next()
    assert sched.active == 0


def test_switch_saves_and_returns_registers():
    sched = Scheduler()
    sched.add_task(_noop, Ground.BACKGROUND, Priority.LOWEST, ["a"])
    sched.add_task(_noop, Ground.BACKGROUND, Priority.LOWEST, ["b"], flags=5)
    saved = list(range(100, 119))
    regs = sched.switch(saved)
    assert sched.active == 1
    assert regs[17] == 5
    assert regs[8] == 2 * 4096 - 1
    assert sched.registers[0][:19] == saved


def test_yield_restores_presence():
    sched = _with_shell()
    sched.add_task(_noop, Ground.FOREGROUND, Priority.HIGHEST, ["fg"])
    sched.next()
    assert sched.active == 2
    sched.yield_task()
    assert sched.tasks[2].present is True


def test_ps_line():
    sched = _with_shell()
    sched.add_task(_noop, Ground.BACKGROUND, Priority.LOWEST, ["loop"])
    assert sched.ps() == (
        "shell 0 3 Foreground 0 FFF ShellPrio Ready\n"
        "idle 1 3 Foreground 0 1FFF ShellPrio Ready\n"
        "loop 2 2 Background 0 2FFF Lowest Ready\n"
    )


def test_ps_hides_killed_and_shows_blocked():
    sched = _with_shell()
    a = sched.add_task(_noop, Ground.BACKGROUND, Priority.MEDIUM, ["a"])
    b = sched.add_task(_noop, Ground.BACKGROUND, Priority.HIGHEST, ["b"])
    sched.kill(a)
    sched.block(b)
    text = sched.ps()
    assert "a 2" not in text
    assert "b 3 0 Background 0 3FFF Highest Blocked\n" in text


def test_table_full():
    sched = Scheduler()
    for index in range(MAX_TASKS):
        sched.add_task(_noop, Ground.BACKGROUND, Priority.MEDIUM, [f"t{index}"])
    with pytest.raises(RuntimeError):
        sched.add_task(_noop, Ground.BACKGROUND, Priority.MEDIUM, ["extra"])


def test_killed_slot_is_reused():
    sched = _with_shell()
    pid = sched.add_task(_noop, Ground.BACKGROUND, Priority.MEDIUM, ["old"])
    sched.kill(pid)
    new_pid = sched.add_task(_noop, Ground.BACKGROUND, Priority.MEDIUM, ["new"])
    assert new_pid == 3
    assert sched.tasks[2].name == "new"


def test_shell_cannot_be_touched():
    sched = _with_shell()
    with pytest.raises(PermissionError):
        sched.kill(0)
    with pytest.raises(PermissionError):
        sched.block(0)


def test_unknown_pid():
    sched = _with_shell()
    with pytest.raises(ProcessLookupError):
        sched.kill(42)
    with pytest.raises(ProcessLookupError):
        sched.unblock(42)


def test_killed_process_cannot_be_blocked():
    sched = _with_shell()
    pid = sched.add_task(_noop, Ground.BACKGROUND, Priority.MEDIUM, ["a"])
    sched.kill(pid)
    with pytest.raises(ProcessLookupError):
        sched.block(pid)


def test_exit_current_and_exit_all():
    sched = _with_shell()
    fg = sched.add_task(_noop, Ground.FOREGROUND, Priority.MEDIUM, ["fg"])
    sched.add_task(_noop, Ground.BACKGROUND, Priority.MEDIUM, ["bg"])
    sched.next()
    assert sched.current_pid() == fg
    assert sched.is_foreground()
    sched.exit_current()
    assert _task(sched, fg).status == TaskState.KILLED
    assert sched.processes == 3
    sched.exit_all()
    assert [t.status for t in sched.tasks[:4]] == [
        TaskState.READY,
        TaskState.READY,
        TaskState.KILLED,
        TaskState.KILLED,
    ]


def test_shell_does_not_exit():
    sched = _with_shell()
    sched.exit_current()
    assert sched.tasks[0].status == TaskState.READY


def test_priority_test_sequence():
    sched = _with_shell()
    pids = [sched.add_task(_noop, Ground.BACKGROUND, Priority.MEDIUM, ["Idle Process"]) for _ in range(3)]
    for pid, priority in zip(pids, (Priority.LOWEST, Priority.MEDIUM, Priority.HIGHEST)):
        sched.nice(pid, priority)
    assert [_task(sched, pid).priority for pid in pids] == [
        Priority.LOWEST,
        Priority.MEDIUM,
        Priority.HIGHEST,
    ]
    for pid in pids:
        sched.block(pid)
    for pid in pids:
        sched.nice(pid, Priority.MEDIUM)
    for pid in pids:
        sched.unblock(pid)
    assert all(_task(sched, pid).status == TaskState.READY for pid in pids)
    assert all(_task(sched, pid).priority == Priority.MEDIUM for pid in pids)
    for pid in pids:
        sched.kill(pid)
    assert all(_task(sched, pid).status == TaskState.KILLED for pid in pids)


def test_nice_rejects_shell_priority():
    sched = _with_shell()
    pid = sched.add_task(_noop, Ground.BACKGROUND, Priority.MEDIUM, ["a"])
    with pytest.raises(ValueError):
        sched.nice(pid, Priority.SHELL)
    with pytest.raises(ValueError):
        sched.nice(pid, 9)


def test_process_test_random_actions():
    sched = _with_shell()
    rng = random.Random(3)
    for _cycle in range(3):
        states = {
            sched.add_task(_noop, Ground.BACKGROUND, Priority.MEDIUM, ["Idle Process"]): TaskState.READY
            for _ in range(10)
        }
        alive = len(states)
        while alive:
            for pid, state in states.items():
                if rng.randrange(2) == 0:
                    if state in (TaskState.READY, TaskState.BLOCKED):
                        sched.kill(pid)
                        states[pid] = TaskState.KILLED
                        alive -= 1
                elif state == TaskState.READY:
                    sched.block(pid)
                    states[pid] = TaskState.BLOCKED
            for pid, state in states.items():
                if state == TaskState.BLOCKED and rng.randrange(2):
                    sched.unblock(pid)
                    states[pid] = TaskState.READY
            for pid, state in states.items():
                assert _task(sched, pid).status == state
            sched.next()
        assert sched.ps().count("Idle Process") == 0