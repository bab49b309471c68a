"""PS/2 set-1 scancode translation and the kernel's keyboard buffer."""

from __future__ import annotations

from enum import IntEnum
from typing import Callable, Optional

LSHIFT = 0x2A
RSHIFT = 0x36
RELEASE = 0x80
BUFFER_SIZE = 256
BUFFER_LIMIT = 255

ESCAPE = "\x1b"
SNAPSHOT_KEY = "\x05"

_LOWER = (
    "\0\x1b1234567890-="
    + "\b\tqwertyuiop[]"
    + "\n\0asdfghjkl;'`"
    + "\0\\zxcvbnm,./\0*"
    + "\0 \0\0\0\0\0\x05"
    + "\0" * 6
    + "\0\0\0\0-\0\0\0+\0\0\0\0\0"
    + "\0" * 6
)

_UPPER = (
    "\0\x1b!@#$%^&*()_+"
    + "\b\tQWERTYUIOP{}"
    + "\n\0ASDFGHJKL:\"~"
    + "\0|ZXCVBNM<>?\0*"
    + "\0 "
    + "\0" * 12
    + "\0\0\0\0-\0\0\0+\0\0\0\0\0"
    + "\0" * 6
)


def _lookup(table: str, code: int) -> str:
    return table[code] if code < len(table) else "\0"


class KeyEvent(IntEnum):
    """What a scancode asks of the kernel beyond buffering a character."""

    NONE = 0
    KILL_ALL = 1
    SNAPSHOT = 2


class Keyboard:
    """Translates scancodes into characters kept until a reader takes them."""

    def __init__(self, on_escape: Optional[Callable[[], None]] = None):
        self.on_escape = on_escape
        self.shift = False
        self._buffer: list[str] = []
        self._consumed = 0

    def handle_scancode(self, scancode: int) -> KeyEvent:
        """Process one scancode from the keyboard controller."""
        code = scancode & 0xFF
        if code in (LSHIFT, RSHIFT):
            self.shift = True
        if code in (LSHIFT + RELEASE, RSHIFT + RELEASE):
            self.shift = False

        plain = _lookup(_LOWER, code)
        if code < RELEASE and code != 0 and plain not in (ESCAPE, SNAPSHOT_KEY):
            self._buffer.append(_lookup(_UPPER if self.shift else _LOWER, code))

        if plain == ESCAPE:
            if self.on_escape is not None:
                self.on_escape()
            return KeyEvent.KILL_ALL
        if plain == SNAPSHOT_KEY:
            return KeyEvent.SNAPSHOT

        if len(self._buffer) == BUFFER_LIMIT:
            self._buffer.clear()
            self._consumed = 0
        return KeyEvent.NONE

    def read_char(self) -> str:
        """Return the next typed character, or an empty string if none is waiting."""
        if self._consumed >= len(self._buffer):
            return ""
        char = self._buffer[self._consumed]
        self._consumed += 1
        return "" if char == "\0" else char