"""The kernel's system-call, timer, keyboard and exception entry points."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import IntEnum
from typing import Callable, Mapping, Optional, Sequence

from .buddy import BuddyAllocator
from .clock import Clock
from .console import Color, Console
from .keyboard import KeyEvent, Keyboard
from .moduleloader import HEAP_SIZE
from .pipes import PipeTable
from .scheduler import Scheduler
from .semaphores import SemaphoreTable
from .textfmt import hexa_char, uint_to_base

DUMP_REGISTERS = 17
MEMORY_DUMP_BYTES = 32

ZERO_EXCEPTION_ID = 0
INVALID_OPCODE_EXCEPTION_ID = 1

REGISTER_TAGS = (
    "RIP", "RAX", "RBX", "RCX", "RDX", "RSI", "RDI", "RBP", "RSP",
    "R8 ", "R9 ", "R10", "R11", "R12", "R13", "R14", "R15",
)

_EXCEPTION_MESSAGES = {
    ZERO_EXCEPTION_ID: "0 division exception",
    INVALID_OPCODE_EXCEPTION_ID: "Invalid opcode exception",
}

RTC_SECONDS = 0
RTC_MINUTES = 2
RTC_HOURS = 4
RTC_DAY = 7
RTC_MONTH = 8
RTC_YEAR = 9


class Syscall(IntEnum):
    """System-call numbers understood by :meth:`Kernel.dispatch`."""

    WRITE = 1
    READ = 2
    CLEAR = 3
    EXIT = 4
    REGISTERS = 6
    TIME = 7
    GET_MEM = 8
    MALLOC = 9
    FREE = 10
    MEM_STATUS = 11
    PS = 12
    NICE = 13
    SEM_OPEN = 14
    SEM_CLOSE = 15
    SEM_POST = 16
    SEM_WAIT = 17
    SEM_STATUS = 18
    PIPE_OPEN = 19
    PIPE_CLOSE = 20
    PIPE_READ = 21
    PIPE_WRITE = 22
    PIPE_STATUS = 23
    SECONDS = 24


def _bcd(value: int) -> int:
    return (value // 10) << 4 | value % 10


def _system_rtc() -> dict[int, int]:
    now = datetime.now(timezone.utc)
    return {
        RTC_SECONDS: _bcd(now.second),
        RTC_MINUTES: _bcd(now.minute),
        RTC_HOURS: _bcd(now.hour),
        RTC_DAY: _bcd(now.day),
        RTC_MONTH: _bcd(now.month),
        RTC_YEAR: _bcd(now.year % 100),
    }


def format_rtc(rtc: Mapping[int, int]) -> str:
    """Render BCD clock registers as ``DD/MM/YY\\nHH:MM:SS``."""

    def field(register: int) -> str:
        return f"{rtc[register] & 0xFF:02X}"

    return (
        f"{field(RTC_DAY)}/{field(RTC_MONTH)}/{field(RTC_YEAR)}\n"
        f"{field(RTC_HOURS)}:{field(RTC_MINUTES)}:{field(RTC_SECONDS)}"
    )


def format_memory(data: bytes) -> str:
    """Render bytes as ``0xHH `` groups."""
    return "".join(f"0x{hexa_char(byte >> 4)}{hexa_char(byte & 0x0F)} " for byte in data)


def exception_report(exception: int, registers: Sequence[int]) -> str:
    """The text shown when a CPU exception reaches the kernel."""
    try:
        message = _EXCEPTION_MESSAGES[exception]
    except KeyError:
        raise ValueError(f"unhandled exception {exception}") from None
    values = list(registers)
    if len(values) < DUMP_REGISTERS:
        raise ValueError(f"expected {DUMP_REGISTERS} registers, got {len(values)}")
    lines = [message]
    lines.extend(f"{tag} {uint_to_base(value, 16)}" for tag, value in zip(REGISTER_TAGS, values))
    return "\n".join(lines) + "\n"


class Kernel:
    """Owns the console, clock, heap, scheduler, semaphores, pipes and keyboard."""

    def __init__(self, heap_size: int = HEAP_SIZE):
        self.console = Console()
        self.clock = Clock()
        self.heap = BuddyAllocator(heap_size)
        self.memory = bytearray(heap_size)
        self.scheduler = Scheduler()
        self.semaphores = SemaphoreTable(self.scheduler)
        self.pipes = PipeTable(self.semaphores)
        self.keyboard = Keyboard(on_escape=self._kill_all)
        self.rtc: Callable[[], Mapping[int, int]] = _system_rtc
        self._register_dump: Optional[list[int]] = None
        self._handlers: dict[Syscall, Callable] = {
            Syscall.WRITE: self.write,
            Syscall.READ: self.keyboard.read_char,
            Syscall.CLEAR: self.console.clear,
            Syscall.EXIT: self.scheduler.exit_current,
            Syscall.REGISTERS: self.registers,
            Syscall.TIME: lambda: format_rtc(self.rtc()),
            Syscall.GET_MEM: self._memory_dump,
            Syscall.MALLOC: self.heap.alloc,
            Syscall.FREE: self.heap.free,
            Syscall.MEM_STATUS: self.heap.dump,
            Syscall.PS: self.scheduler.ps,
            Syscall.NICE: self.scheduler.nice,
            Syscall.SEM_OPEN: self.semaphores.open,
            Syscall.SEM_CLOSE: self.semaphores.close,
            Syscall.SEM_POST: self.semaphores.post,
            Syscall.SEM_WAIT: self.semaphores.wait,
            Syscall.SEM_STATUS: self.semaphores.status,
            Syscall.PIPE_OPEN: self.pipes.open,
            Syscall.PIPE_CLOSE: self.pipes.close,
            Syscall.PIPE_READ: self.pipes.read,
            Syscall.PIPE_WRITE: self.pipes.write,
            Syscall.PIPE_STATUS: self.pipes.status,
            Syscall.SECONDS: self.clock.seconds,
        }

    def dispatch(self, number: int, *args):
        """Run system call ``number`` with ``args`` and return its result."""
        try:
            handler = self._handlers[Syscall(number)]
        except ValueError:
            raise ValueError(f"unknown system call {number}") from None
        return handler(*args)

    def write(self, text: str, font_color: int = Color.WHITE, back_color: int = Color.BLACK) -> None:
        """Print ``text`` if the running task owns the screen."""
        task = self.scheduler.tasks[self.scheduler.active]
        if task is not None and not self.scheduler.is_foreground():
            return
        for char in text:
            self.console.restore_default()
            if char == "\n":
                self.console.newline()
            elif char == "\b":
                self.console.backspace()
            else:
                self.console.print_char_with_att(char, font_color)

    def _memory_dump(self, address: int) -> str:
        if not 0 <= address <= len(self.memory) - MEMORY_DUMP_BYTES:
            raise ValueError(f"address {address} is outside the heap")
        return format_memory(self.memory[address:address + MEMORY_DUMP_BYTES])

    def timer_interrupt(self) -> None:
        """Count a tick and blink the cursor while the shell runs."""
        self.clock.tick()
        if self.scheduler.shell_running():
            self.console.blink(Color.WHITE if self.clock.seconds() % 2 == 0 else Color.BLACK)

    def keyboard_interrupt(self, scancode: int) -> KeyEvent:
        """Feed a scancode to the keyboard driver."""
        return self.keyboard.handle_scancode(scancode)

    def _kill_all(self) -> None:
        self.heap.free_all()
        self.pipes.close_all()
        self.semaphores.close_all()
        self.scheduler.exit_all()

    def save_registers(self, registers: Sequence[int]) -> None:
        """Keep a snapshot of the first 17 registers for later inspection."""
        values = list(registers)
        if len(values) < DUMP_REGISTERS:
            raise ValueError(f"expected {DUMP_REGISTERS} registers, got {len(values)}")
        self._register_dump = values[:DUMP_REGISTERS]

    def registers(self) -> Optional[list[int]]:
        """The last register snapshot, or None if none was taken."""
        return None if self._register_dump is None else list(self._register_dump)