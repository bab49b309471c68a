"""An 80x25 text-mode screen with a write cursor, as drawn by the kernel."""

from __future__ import annotations

from enum import IntEnum

from .textfmt import uint_to_base

WIDTH = 80
HEIGHT = 25
ROW_BYTES = WIDTH * 2
SCREEN_BYTES = ROW_BYTES * HEIGHT
PROMPT_WIDTH = 3


class Color(IntEnum):
    """Text-mode colours; an attribute byte is ``(back << 4) | font``."""

    BLACK = 0x00
    BLUE = 0x01
    GREEN = 0x02
    CYAN = 0x03
    RED = 0x04
    MAGENTA = 0x05
    BROWN = 0x06
    LIGHT_GREY = 0x07
    DARK_GREY = 0x08
    LIGHT_BLUE = 0x09
    LIGHT_GREEN = 0x0A
    LIGHT_CYAN = 0x0B
    LIGHT_RED = 0x0C
    LIGHT_MAGENTA = 0x0D
    YELLOW = 0x0E
    WHITE = 0x0F


def _code(char: str) -> int:
    code = ord(char)
    return code if code < 256 else ord("?")


class Console:
    """Character/attribute cell buffer with a cursor offset into it."""

    def __init__(self):
        self.cells = bytearray(SCREEN_BYTES)
        self.cursor = 0

    def print(self, text: str) -> None:
        for char in text:
            self.print_char(char)

    def print_char(self, char: str) -> None:
        self.cells[self.cursor] = _code(char)
        self.cursor += 2
        self.scroll_up()

    def print_with_att(self, text: str, font_color: int, back_color: int) -> None:
        att = ((back_color << 4) | font_color) & 0xFF
        for char in text:
            self.print_char_with_att(char, att)

    def print_char_with_att(self, char: str, att: int) -> None:
        if char == "\n":
            self.newline()
        else:
            self.cells[self.cursor] = _code(char)
            self.cells[self.cursor + 1] = att & 0xFF
            self.cursor += 2
        self.scroll_up()

    def newline(self) -> None:
        self.print_char(" ")
        while self.cursor % ROW_BYTES:
            self.print_char(" ")
        self.scroll_up()

    def backspace(self) -> None:
        """Erase the previous cell, never into the shell prompt."""
        if self.cursor != 0 and self.cursor % ROW_BYTES != 2 * PROMPT_WIDTH:
            self.cursor -= 2
            self.cells[self.cursor] = ord(" ")

    def blink(self, back_color: int) -> None:
        index = self.cursor + 1
        self.cells[index] = ((self.cells[index] & 0x0F) | (back_color << 4)) & 0xFF

    def scroll_up(self) -> None:
        if self.cursor >= SCREEN_BYTES:
            self.cells[:-ROW_BYTES] = self.cells[ROW_BYTES:]
            self.cells[-ROW_BYTES:] = bytes(ROW_BYTES)
            self.cursor -= ROW_BYTES

    def restore_default(self) -> None:
        self.cells[self.cursor + 1] = Color.WHITE

    def print_hex(self, value: int) -> None:
        self.print_base(value, 16)

    def print_base(self, value: int, base: int) -> None:
        self.restore_default()
        self.print_with_att(uint_to_base(value, base), Color.WHITE, Color.BLACK)

    def clear(self) -> None:
        self.cells[0::2] = b" " * (WIDTH * HEIGHT)
        self.cells[1::2] = bytes([Color.WHITE]) * (WIDTH * HEIGHT)
        self.cursor = 0

    def lines(self) -> list[str]:
        """Return the screen's rows as text, trailing blanks removed."""
        chars = bytes(self.cells[0::2]).replace(b"\0", b" ").decode("latin-1")
        return [chars[row * WIDTH:(row + 1) * WIDTH].rstrip() for row in range(HEIGHT)]