"""First-fit free-list heap allocator handing out offsets into a fixed-size heap."""

from __future__ import annotations

from bisect import bisect_left, insort
from typing import Optional

from .textfmt import uint_to_base

HEADER_SIZE = 16


class FreeListAllocator:
    """Address-ordered circular free list with a roving start pointer.

    Memory is handed out in units of ``HEADER_SIZE`` bytes; every block spends
    one unit on its header. Addresses are byte offsets from the heap start.
    """

    def __init__(self, size: int):
        if size <= 0:
            raise ValueError(f"heap size {size} is too small")
        self.size = size
        self._reset()

    def _reset(self) -> None:
        self.total_units = (self.size + HEADER_SIZE - 1) // HEADER_SIZE + 1
        self._free: dict[int, int] = {0: self.total_units}
        self._order: list[int] = [0]
        self._rover = 0
        self._used: dict[int, int] = {}

    def _successor(self, start: int) -> int:
        index = bisect_left(self._order, start + 1) % len(self._order)
        return self._order[index]

    def _remove_free(self, start: int) -> int:
        del self._order[bisect_left(self._order, start)]
        return self._free.pop(start)

    def alloc(self, nbytes: int) -> int:
        """Reserve ``nbytes`` and return the address of the usable area."""
        if nbytes <= 0:
            raise ValueError("allocation size must be positive")
        units = (nbytes + HEADER_SIZE - 1) // HEADER_SIZE + 1
        prev = self._rover
        while True:
            node = self._successor(prev)
            size = self._free[node]
            if size >= units:
                if size == units:
                    if node == prev:
                        # The only free block is never handed out whole.
                        raise MemoryError(f"cannot allocate {nbytes} bytes")
                    self._remove_free(node)
                    block = node
                else:
                    self._free[node] = size - units
                    block = node + size - units
                self._rover = prev
                self._used[block] = units
                return (block + 1) * HEADER_SIZE
            if node == self._rover:
                raise MemoryError(f"cannot allocate {nbytes} bytes")
            prev = node

    def free(self, address: Optional[int]) -> None:
        """Return a block to the free list, merging it with adjacent free blocks."""
        if address is None:
            return
        if address % HEADER_SIZE:
            raise ValueError(f"{address} is not an allocated block")
        block = address // HEADER_SIZE - 1
        size = self._used.pop(block, None)
        if size is None:
            raise ValueError(f"{address} is not an allocated block")

        position = bisect_left(self._order, block)
        prev = self._order[position - 1]
        following = self._order[position % len(self._order)]
        insort(self._order, block)
        self._free[block] = size

        if block + size == following:
            self._free[block] += self._remove_free(following)
        if prev in self._free and prev + self._free[prev] == block:
            self._free[prev] += self._remove_free(block)
        self._rover = prev if prev in self._free else block

    def free_all(self) -> None:
        """Forget every allocation and start over with one free block."""
        self._reset()

    def dump(self) -> str:
        """Describe the free blocks, starting at the roving pointer."""
        parts = [
            "Memory Dump (Free List Memory Manager)\n Total Memory: ",
            f"{self.total_units * HEADER_SIZE} bytes \n\n",
            "Free Blocks: \n",
        ]
        start = self._order.index(self._rover)
        ordered = self._order[start:] + self._order[:start]
        for number, node in enumerate(ordered, 1):
            parts.append(
                f"Block Number: {number}\n"
                f"Base: {uint_to_base(node * HEADER_SIZE, 16)}\n"
                f"Free Units: {self._free[node]}\n\n"
            )
        return "".join(parts)