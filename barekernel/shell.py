"""The command shell: parsing typed lines into scheduled programs and pipelines."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .scheduler import Ground, Priority

BUFFER_LENGTH = 50
MAX_PARAMS = 5
MAX_PARAM_LENGTH = 19
FIRST_PIPE_ID = 1000
MAX_ADDRESS = 2147483616
EOF = "\t"

WRITE_END = "1"
READ_END = "0"

_PIPE_WRITERS = frozenset({"phylo", "loop"})
_PIPE_READERS = frozenset({"wc", "filter", "cat"})
_SPECIAL_COMMANDS = ("kill", "printmem", "semtest")
_VOWELS = frozenset("aeiouAEIOU")
_HEX_DIGITS = "0123456789abcdef"


@dataclass(frozen=True)
class Program:
    """A command the shell can start, and the priority it runs at."""

    name: str
    priority: Priority


PROGRAMS: tuple[Program, ...] = (
    Program("fibonacci", Priority.MEDIUM),
    Program("help", Priority.MEDIUM),
    Program("primos", Priority.MEDIUM),
    Program("invalidopcode", Priority.HIGHEST),
    Program("inforeg", Priority.MEDIUM),
    Program("div0", Priority.HIGHEST),
    Program("time", Priority.MEDIUM),
    Program("printmem", Priority.MEDIUM),
    Program("ps", Priority.MEDIUM),
    Program("clear", Priority.MEDIUM),
    Program("mmtest", Priority.MEDIUM),
    Program("mmstatus", Priority.MEDIUM),
    Program("kill", Priority.MEDIUM),
    Program("processtest", Priority.MEDIUM),
    Program("prioritytest", Priority.MEDIUM),
    Program("semtest", Priority.MEDIUM),
    Program("semstatus", Priority.MEDIUM),
    Program("pipestatus", Priority.MEDIUM),
    Program("phylo", Priority.MEDIUM),
    Program("wc", Priority.MEDIUM),
    Program("filter", Priority.MEDIUM),
    Program("loop", Priority.MEDIUM),
    Program("cat", Priority.MEDIUM),
    Program("mmtest2", Priority.MEDIUM),
)

_BY_NAME = {program.name: program for program in PROGRAMS}


def find_program(name: str) -> Program:
    """Look a program up by its command name."""
    try:
        return _BY_NAME[name]
    except KeyError:
        raise KeyError(f"{name!r} is not a valid command") from None


def split_background(name: str) -> tuple[str, bool]:
    """Strip a trailing ``&``; the flag tells whether it was there."""
    if name.endswith("&"):
        return name[:-1], True
    return name, False


def create_argv(name: str, params: str) -> list[str]:
    """Build an argument vector from the program name and space-separated params."""
    argv = [name]
    if params:
        words = params.split(" ")
        if params.endswith(" "):
            words.pop()
        argv.extend(words)
    if len(argv) > MAX_PARAMS:
        raise ValueError(f"at most {MAX_PARAMS - 1} parameters are accepted")
    return argv


def check_special(name: str, text: str) -> Optional[str]:
    """If ``text`` is ``name`` followed by a space, return what follows (at most 19 chars)."""
    if len(text) > len(name) and text.startswith(name) and text[len(name)] == " ":
        return text[len(name) + 1:][:MAX_PARAM_LENGTH]
    return None


def read_address(text: str) -> int:
    """Parse a ``0x``-prefixed lower-case hexadecimal address for ``printmem``."""
    if not 3 <= len(text) <= 10 or not text.startswith("0x"):
        raise ValueError(f"invalid address {text!r}")
    address = 0
    for char in text[2:]:
        digit = _HEX_DIGITS.find(char)
        if digit < 0:
            raise ValueError(f"invalid address {text!r}")
        address = address * 16 + digit
    if address > MAX_ADDRESS:
        raise ValueError(f"address {text!r} is out of range")
    return address


def is_vowel(char: str) -> bool:
    return char in _VOWELS


def _until_eof(text: str) -> str:
    return text.partition(EOF)[0]


def strip_vowels(text: str) -> str:
    """What ``filter`` prints: the input up to end-of-input, without vowels."""
    return "".join(char for char in _until_eof(text) if not is_vowel(char))


def count_lines(text: str) -> int:
    """What ``wc`` reports: one more than the newlines before end-of-input."""
    return 1 + _until_eof(text).count("\n")


class Shell:
    """Turns command lines into scheduler tasks, wiring pipelines through pipes."""

    def __init__(self, scheduler, pipes):
        self.scheduler = scheduler
        self.pipes = pipes
        self.next_pipe_id = FIRST_PIPE_ID

    def run(self, line: str) -> list[int]:
        """Start the command(s) on ``line`` and return the new pids."""
        if not line:
            return []
        head, bar, tail = line.partition("|")
        if bar:
            second = tail[1:] if tail.startswith(" ") else ""
            pids = self._run_pipeline(head[:-1], second)
        else:
            pids = self._run_single(head)
        if pids is None:
            raise ValueError(f"{line} is not a valid command")
        return pids

    def _run_pipeline(self, first: str, second: str) -> Optional[list[int]]:
        writer_name, _ = split_background(first)
        reader_name, reader_background = split_background(second)
        writer = _BY_NAME.get(writer_name)
        reader = _BY_NAME.get(reader_name)
        if writer is None or reader is None:
            return None
        if writer.name not in _PIPE_WRITERS or reader.name not in _PIPE_READERS:
            return None

        pipe_id = self.pipes.open(self.next_pipe_id)
        writer_pid = self.scheduler.add_task(
            writer, Ground.BACKGROUND, writer.priority, [writer.name, str(pipe_id), WRITE_END]
        )
        reader_ground = Ground.BACKGROUND if reader_background else Ground.FOREGROUND
        reader_pid = self.scheduler.add_task(
            reader, reader_ground, reader.priority, [reader.name, str(pipe_id), READ_END]
        )
        self.next_pipe_id += 1
        return [writer_pid, reader_pid]

    def _run_single(self, line: str) -> Optional[list[int]]:
        command, params = line, ""
        for name in _SPECIAL_COMMANDS:
            found = check_special(name, line)
            if found is not None:
                command, params = name, found
                break
        name, background = split_background(command)
        program = _BY_NAME.get(name)
        if program is None:
            return None
        argv = create_argv(program.name, params)
        ground = Ground.BACKGROUND if background else Ground.FOREGROUND
        return [self.scheduler.add_task(program, ground, program.priority, argv)]