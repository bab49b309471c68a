import random

import pytest

from barekernel.freelist import HEADER_SIZE, FreeListAllocator

INITIAL_1024 = (
    "Memory Dump (Free List Memory Manager)\n Total Memory: 1040 bytes \n\n"
    "Free Blocks: \n"
    "Block Number: 1\nBase: 0\nFree Units: 65\n\n"
)


def test_initial_dump():
    assert FreeListAllocator(1024).dump() == INITIAL_1024


def test_allocation_comes_from_tail_of_block():
    heap = FreeListAllocator(1024)
    address = heap.alloc(10)
    assert address == 64 * HEADER_SIZE
    assert "Free Units: 63\n" in heap.dump()


def test_zero_bytes_rejected():
    with pytest.raises(ValueError):
        FreeListAllocator(1024).alloc(0)


def test_last_block_is_never_given_whole():
    heap = FreeListAllocator(1024)
    with pytest.raises(MemoryError):
        heap.alloc(1024)
    assert heap.dump() == INITIAL_1024


def test_nearly_whole_heap_fits():
    heap = FreeListAllocator(1024)
    address = heap.alloc(1008)
    assert address == 2 * HEADER_SIZE
    assert "Free Units: 1\n" in heap.dump()
    with pytest.raises(MemoryError):
        heap.alloc(1)


def test_free_coalesces_back_to_one_block():
    heap = FreeListAllocator(1024)
    blocks = [heap.alloc(20) for _ in range(5)]
    heap.free(blocks[1])
    heap.free(blocks[3])
    assert "Block Number: 3" in heap.dump()
    for address in (blocks[0], blocks[4], blocks[2]):
        heap.free(address)
    assert heap.dump() == INITIAL_1024


def test_double_free_rejected():
    heap = FreeListAllocator(1024)
    address = heap.alloc(32)
    heap.free(address)
    with pytest.raises(ValueError):
        heap.free(address)


def test_misaligned_free_rejected():
    heap = FreeListAllocator(1024)
    address = heap.alloc(32)
    with pytest.raises(ValueError):
        heap.free(address + 1)


def test_free_none_leaves_heap_untouched():
    heap = FreeListAllocator(1024)
    heap.free(None)
    assert heap.dump() == INITIAL_1024


def test_free_all_resets():
    heap = FreeListAllocator(1024)
    heap.alloc(100)
    heap.alloc(200)
    heap.free_all()
    assert heap.dump() == INITIAL_1024


def test_freed_space_is_reused():
    heap = FreeListAllocator(1024)
    first = heap.alloc(500)
    with pytest.raises(MemoryError):
        heap.alloc(500)
    heap.free(first)
    assert heap.alloc(500) == first


def _fill_cycle(heap, memory, rng, max_blocks, max_memory):
    requests = []
    total = 0
    while len(requests) < max_blocks and total < max_memory:
        size = rng.randrange(max_memory - total) + 1
        requests.append((heap.alloc(size), size))
        total += size
    for index, (address, size) in enumerate(requests):
        memory[address:address + size] = bytes([index % 256]) * size
    for index, (address, size) in enumerate(requests):
        assert memory[address:address + size] == bytes([index % 256]) * size
    for address, _ in requests:
        heap.free(address)
    return requests


def test_mm_test_cycles_keep_blocks_apart():
    max_memory = 1024 * 1024
    heap = FreeListAllocator(2 * max_memory)
    memory = bytearray(heap.total_units * HEADER_SIZE)
    rng = random.Random(7)
    initial = heap.dump()
    for _ in range(4):
        requests = _fill_cycle(heap, memory, rng, 128, max_memory)
        assert requests
        assert all(address + size <= len(memory) for address, size in requests)
        assert heap.dump() == initial