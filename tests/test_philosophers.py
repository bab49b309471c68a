import pytest

from barekernel.philosophers import (
    FILO_SEM_ID,
    INITIAL_PHILOS,
    MAX_PHILOS,
    MUTEX_SEM_ID,
    DiningTable,
    PhiloState,
)
from barekernel.scheduler import Ground, Priority, Scheduler
from barekernel.semaphores import SemaphoreTable


@pytest.fixture
def table():
    sched = Scheduler()
    sched.add_task(None, Ground.FOREGROUND, Priority.SHELL, ["shell"])
    return DiningTable(SemaphoreTable(sched))


def _no_neighbours_eating(table):
    count = len(table)
    for index, philosopher in enumerate(table.philosophers):
        if philosopher.state == PhiloState.EATING:
            assert table.philosophers[(index + 1) % count].state != PhiloState.EATING


def test_starts_with_initial_philosophers_thinking(table):
    assert len(table) == INITIAL_PHILOS
    assert all(p.state == PhiloState.THINKING for p in table.philosophers)
    assert table.render() == "- " * INITIAL_PHILOS + "\n"


def test_each_philosopher_has_a_semaphore(table):
    for philosopher in table.philosophers:
        assert philosopher.sem_id == FILO_SEM_ID + philosopher.index
        assert philosopher.sem_id in table.semaphores
    assert table.semaphores[MUTEX_SEM_ID].value == 1


def test_add_until_full(table):
    while len(table) < MAX_PHILOS:
        table.add()
    with pytest.raises(RuntimeError):
        table.add()
    assert len(table) == MAX_PHILOS


def test_remove_down_to_initial(table):
    added = table.add()
    removed = table.remove()
    assert removed.index == added.index
    assert added.sem_id not in table.semaphores
    with pytest.raises(RuntimeError):
        table.remove()


def test_hungry_philosopher_eats_when_neighbours_free(table):
    assert table.take_forks(0) is True
    assert table.philosophers[0].state == PhiloState.EATING
    assert table.render().startswith("E ")


def test_neighbour_waits_until_forks_are_put_down(table):
    table.take_forks(0)
    table.take_forks(1)
    assert table.philosophers[1].state == PhiloState.HUNGRY
    _no_neighbours_eating(table)
    table.put_forks(0)
    assert table.philosophers[0].state == PhiloState.THINKING
    assert table.philosophers[1].state == PhiloState.EATING
    _no_neighbours_eating(table)


def test_non_neighbours_eat_together(table):
    table.take_forks(0)
    table.take_forks(2)
    assert table.philosophers[0].state == PhiloState.EATING
    assert table.philosophers[2].state == PhiloState.EATING
    _no_neighbours_eating(table)


def test_mutex_is_released_after_operations(table):
    table.take_forks(0)
    table.put_forks(0)
    table.add()
    table.remove()
    assert table.semaphores[MUTEX_SEM_ID].value == 1