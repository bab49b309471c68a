import random

import pytest

from barekernel.buddy import HEADER_SIZE, BuddyAllocator

HEAP = 1 << 20
MAX_BLOCKS = 128
MAX_MEMORY = 1 << 16


def _assert_disjoint(blocks, heap_size):
    spans = sorted((address, address + size) for address, size in blocks)
    for (_, end), (start, _) in zip(spans, spans[1:]):
        assert end <= start
    for start, end in spans:
        assert HEADER_SIZE <= start and end <= heap_size


def _mm_cycle(allocator, rng):
    blocks = []
    total = 0
    while len(blocks) < MAX_BLOCKS and total < MAX_MEMORY:
        size = rng.randint(1, MAX_MEMORY - total)
        blocks.append((allocator.alloc(size), size))
        total += size
    return blocks


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_mm_cycles_restore_heap(seed):
    allocator = BuddyAllocator(HEAP)
    initial = allocator.dump()
    rng = random.Random(seed)
    for _ in range(5):
        blocks = _mm_cycle(allocator, rng)
        _assert_disjoint(blocks, HEAP)
        for address, _ in blocks:
            allocator.free(address)
        assert allocator.dump() == initial


def test_random_free_order_merges_fully():
    allocator = BuddyAllocator(HEAP)
    initial = allocator.dump()
    rng = random.Random(7)
    addresses = [allocator.alloc(rng.randint(1, 4000)) for _ in range(100)]
    rng.shuffle(addresses)
    for address in addresses:
        allocator.free(address)
    assert allocator.dump() == initial


def test_initial_dump():
    dump = BuddyAllocator(1024).dump()
    assert dump.startswith("Memory Dump (Buddy Memory Manager)\nBuckets with free Blocks:\n\n")
    assert "Bucket 10\nFree blocks of size 2^10\nBlock Number: 1\nState: free\n\n" in dump
    assert dump.endswith("Available Space: 1024\n\n")


def test_whole_heap_allocation_then_exhaustion():
    allocator = BuddyAllocator(1024)
    address = allocator.alloc(1024 - HEADER_SIZE)
    assert address == HEADER_SIZE
    with pytest.raises(MemoryError):
        allocator.alloc(1)
    allocator.free(address)
    assert allocator.alloc(1) == HEADER_SIZE


def test_request_just_over_heap_fails():
    allocator = BuddyAllocator(1024)
    with pytest.raises(MemoryError):
        allocator.alloc(1024 - HEADER_SIZE + 1)
    with pytest.raises(MemoryError):
        allocator.alloc(4096)


def test_zero_allocation_rejected():
    with pytest.raises(ValueError):
        BuddyAllocator(1024).alloc(0)


def test_double_free_rejected():
    allocator = BuddyAllocator(1024)
    address = allocator.alloc(10)
    allocator.free(address)
    with pytest.raises(ValueError):
        allocator.free(address)


def test_free_unknown_address_rejected():
    with pytest.raises(ValueError):
        BuddyAllocator(1024).free(12345)


def test_free_none_is_ignored():
    allocator = BuddyAllocator(1024)
    before = allocator.dump()
    allocator.free(None)
    assert allocator.dump() == before


def test_free_all_resets():
    allocator = BuddyAllocator(4096)
    initial = allocator.dump()
    for _ in range(5):
        allocator.alloc(100)
    assert allocator.dump() != initial
    allocator.free_all()
    assert allocator.dump() == initial


def test_tiny_heap_rejected():
    with pytest.raises(ValueError):
        BuddyAllocator(8)