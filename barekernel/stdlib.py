"""User-space string, number and test helpers."""

from __future__ import annotations

from typing import Iterable

_U32 = 0xFFFFFFFF
_DIGITS = "0123456789ABCDEF"
_UNIFORM_SCALE = 2.328306435454494e-10


def _to_int32(value: int) -> int:
    return ((value + (1 << 31)) & _U32) - (1 << 31)


def atoi(text: str) -> int:
    """Parse an optional ``-`` and the leading decimal digits; 0 if there are none."""
    negative = text.startswith("-")
    digits = []
    for char in text[1:] if negative else text:
        if not "0" <= char <= "9":
            break
        digits.append(char)
    number = int("".join(digits)) if digits else 0
    return _to_int32(-number if negative else number)


def itoa(value: int, base: int) -> str:
    """Render ``value`` in ``base``; only base 10 shows a minus sign."""
    if not 2 <= base <= 32:
        raise ValueError(f"unsupported base {base}")
    n = abs(value)
    digits = []
    while n:
        n, remainder = divmod(n, base)
        digits.append(chr(65 + remainder - 10) if remainder >= 10 else chr(48 + remainder))
    if not digits:
        digits.append("0")
    if value < 0 and base == 10:
        digits.append("-")
    return "".join(reversed(digits))


def convert(num: int, base: int) -> str:
    """Render ``num`` as an unsigned 32-bit number in ``base`` (2 to 16)."""
    if not 2 <= base <= len(_DIGITS):
        raise ValueError(f"unsupported base {base}")
    num &= _U32
    digits = []
    while True:
        num, remainder = divmod(num, base)
        digits.append(_DIGITS[remainder])
        if not num:
            break
    return "".join(reversed(digits))


def format_printf(fmt: str, *args) -> str:
    """Expand ``%c %d %o %s %u %x %%`` in ``fmt``; other specifiers print nothing."""
    values = iter(args)

    def take():
        try:
            return next(values)
        except StopIteration:
            raise TypeError("not enough arguments for format string") from None

    out = []
    chars = iter(fmt)
    for char in chars:
        if char != "%":
            out.append(char)
            continue
        spec = next(chars, None)
        if spec is None:
            break
        if spec == "c":
            arg = take()
            out.append(arg[:1] if isinstance(arg, str) else chr(arg & 0xFF))
        elif spec == "d":
            number = _to_int32(take())
            if number < 0:
                out.append("-")
                number = -number
            out.append(convert(number, 10))
        elif spec == "o":
            out.append(convert(take(), 8))
        elif spec == "s":
            out.append(str(take()))
        elif spec == "u":
            out.append(convert(take(), 10))
        elif spec == "x":
            out.append(convert(take(), 16))
        elif spec == "%":
            out.append("%")
    return "".join(out)


def read_line(chars: Iterable[str], max_length: int) -> str:
    """Collect typed characters up to a newline, honouring backspace.

    At most ``max_length - 1`` characters are kept; NUL characters are ignored
    as "no key yet", and the line ends early if ``chars`` runs out.
    """
    keys = (c for c in chars if c != "\0")
    line: list[str] = []
    while True:
        char = next(keys, None)
        if char is None:
            break
        if char != "\n":
            if char == "\b":
                if line:
                    line.pop()
            else:
                line.append(char)
        if len(line) >= max_length - 1 or char == "\n":
            break
    return "".join(line)


def memcheck(data: bytes, value: int) -> bool:
    """Whether every byte of ``data`` equals ``value``."""
    expected = value & 0xFF
    return all(byte == expected for byte in data)


class UniformRandom:
    """Multiply-with-carry pseudo-random generator used by the stress tests."""

    def __init__(self):
        self.m_z = 362436069
        self.m_w = 521288629

    def next_uint(self) -> int:
        """The next 32-bit pseudo-random number."""
        self.m_z = (36969 * (self.m_z & 65535) + (self.m_z >> 16)) & _U32
        self.m_w = (18000 * (self.m_w & 65535) + (self.m_w >> 16)) & _U32
        return ((self.m_z << 16) + self.m_w) & _U32

    def uniform(self, maximum: int) -> int:
        """A pseudo-random integer in ``[0, maximum]``."""
        u = self.next_uint()
        return int((u + 1.0) * _UNIFORM_SCALE * (maximum & _U32)) & _U32