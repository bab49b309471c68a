"""Reading the modules appended after the kernel binary and placing them in memory."""

from __future__ import annotations

import struct
from typing import Sequence

PAGE_SIZE = 0x1000
STACK_PAGES = 8
HEAP_SIZE = 64 * 1024 * 1024

SAMPLE_CODE_MODULE_ADDRESS = 0x400000
SAMPLE_DATA_MODULE_ADDRESS = 0x500000
MEMORY_MANAGER_ADDRESS = 0x600000
MODULE_ADDRESSES = (SAMPLE_CODE_MODULE_ADDRESS, SAMPLE_DATA_MODULE_ADDRESS)

_U32 = struct.Struct("<I")
_WORD = 8


def _read_u32(payload: bytes, offset: int) -> int:
    if offset + _U32.size > len(payload):
        raise ValueError("truncated module payload")
    return _U32.unpack_from(payload, offset)[0]


def load_modules(payload: bytes) -> list[bytes]:
    """Split a payload of ``count, (size, bytes)...`` into its modules."""
    count = _read_u32(payload, 0)
    offset = _U32.size
    modules = []
    for _ in range(count):
        size = _read_u32(payload, offset)
        offset += _U32.size
        if offset + size > len(payload):
            raise ValueError("truncated module payload")
        modules.append(bytes(payload[offset:offset + size]))
        offset += size
    return modules


def place_modules(payload: bytes, addresses: Sequence[int] = MODULE_ADDRESSES) -> dict[int, bytes]:
    """Map each target address to the module loaded there, in order."""
    modules = load_modules(payload)
    if len(modules) > len(addresses):
        raise ValueError(f"{len(modules)} modules but only {len(addresses)} target addresses")
    return dict(zip(addresses, modules))


def stack_base(end_of_kernel: int) -> int:
    """Top word of the kernel stack that sits right after the kernel image."""
    return end_of_kernel + PAGE_SIZE * STACK_PAGES - _WORD