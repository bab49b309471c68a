"""Buddy-system heap allocator handing out offsets into a fixed-size heap."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

HEADER_SIZE = 24
MIN_ALLOC_LOG2 = 4
MAX_ALLOC_LOG2 = 31
MAX_BUCKET_COUNT = MAX_ALLOC_LOG2 - MIN_ALLOC_LOG2
_U32 = 0xFFFFFFFF


def _log2(number: int) -> int:
    return (number & _U32).bit_length() - 1


def _block_size(bucket: int) -> int:
    return 1 << (MIN_ALLOC_LOG2 + bucket)


@dataclass
class _Header:
    bucket: int
    free: bool


class BuddyAllocator:
    """Allocates power-of-two blocks; addresses are offsets from the heap start."""

    def __init__(self, size: int):
        if _log2(size) < MIN_ALLOC_LOG2:
            raise ValueError(f"heap size {size} is too small")
        self.size = size
        self._reset()

    def _reset(self) -> None:
        self._amount = min(_log2(self.size) - MIN_ALLOC_LOG2 + 1, MAX_BUCKET_COUNT)
        self._headers: dict[int, _Header] = {}
        # Each bucket is an ordered set of free block offsets, front to back.
        self._buckets: list[dict[int, None]] = [{} for _ in range(self._amount)]
        self._add_node(self._amount - 1, 0)

    def _add_node(self, bucket: int, offset: int) -> None:
        self._headers[offset] = _Header(bucket, True)
        self._buckets[bucket][offset] = None

    @staticmethod
    def _suitable_bucket(request: int) -> int:
        request_log2 = _log2(request)
        if request_log2 < MIN_ALLOC_LOG2:
            return 0
        request_log2 -= MIN_ALLOC_LOG2
        if request & (request - 1) == 0:
            return request_log2
        return request_log2 + 1

    def alloc(self, nbytes: int) -> int:
        """Reserve ``nbytes`` and return the address of the usable area."""
        if nbytes <= 0:
            raise ValueError("allocation size must be positive")
        needed = nbytes + HEADER_SIZE
        if needed > self.size + 1:
            raise MemoryError(f"cannot allocate {nbytes} bytes")
        ideal = self._suitable_bucket(needed)
        available = next(
            (bucket for bucket in range(ideal, self._amount) if self._buckets[bucket]), None
        )
        if available is None:
            raise MemoryError(f"cannot allocate {nbytes} bytes")

        offset, _ = self._buckets[available].popitem()
        header = self._headers[offset]
        for level in range(available, ideal, -1):
            header.bucket = level - 1
            self._add_node(level - 1, offset ^ _block_size(level - 1))
        header.free = False
        return offset + HEADER_SIZE

    def free(self, address: Optional[int]) -> None:
        """Release a block, merging it with free buddies."""
        if address is None:
            return
        offset = address - HEADER_SIZE
        header = self._headers.get(offset)
        if header is None or header.free:
            raise ValueError(f"{address} is not an allocated block")

        header.free = True
        while header.bucket != self._amount - 1:
            buddy_offset = offset ^ _block_size(header.bucket)
            buddy = self._headers.get(buddy_offset)
            bucket = self._buckets[header.bucket]
            if (
                buddy is None
                or buddy.bucket != header.bucket
                or not buddy.free
                or buddy_offset not in bucket
            ):
                break
            del bucket[buddy_offset]
            offset &= ~_block_size(header.bucket)
            header = self._headers[offset]
            header.bucket += 1
        self._buckets[header.bucket][offset] = None

    def free_all(self) -> None:
        """Forget every allocation and start over with one free block."""
        self._reset()

    def dump(self) -> str:
        """Describe the buckets that hold free blocks."""
        parts = ["Memory Dump (Buddy Memory Manager)\nBuckets with free Blocks:\n\n"]
        space = 0
        for bucket in range(self._amount - 1, -1, -1):
            blocks = self._buckets[bucket]
            if not blocks:
                continue
            level = bucket + MIN_ALLOC_LOG2
            parts.append(f"Bucket {level}\nFree blocks of size 2^{level}\n")
            for index, offset in enumerate(blocks, 1):
                if self._headers[offset].free:
                    parts.append(f"Block Number: {index}\nState: free\n\n")
                    space = (space + index * _block_size(bucket)) & _U32
        parts.append(f"Available Space: {space}\n\n")
        return "".join(parts)