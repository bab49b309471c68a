"""Number-to-text helpers shared by the kernel's console and reports."""

from __future__ import annotations

_U64 = (1 << 64) - 1
_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def uint_to_base(value: int, base: int) -> str:
    """Render ``value`` as an unsigned 64-bit number in ``base`` (upper-case digits)."""
    if not 2 <= base <= len(_DIGITS):
        raise ValueError(f"unsupported base {base}")
    value &= _U64
    digits = []
    while True:
        value, remainder = divmod(value, base)
        digits.append(_DIGITS[remainder])
        if not value:
            break
    return "".join(reversed(digits))


def hexa_char(value: int) -> str:
    """Return the hexadecimal digit for a nibble."""
    if not 0 <= value <= 15:
        raise ValueError(f"not a nibble: {value}")
    return _DIGITS[value]