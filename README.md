# barekernel

barekernel models the parts of a small x86-64 teaching kernel, and the tools
that build its disk image, in plain Python. It needs nothing outside the
standard library.

It has two command-line tools:

- `bmfs` creates and edits BareMetal File System (BMFS) disk images.
- `modulepacker` joins a kernel binary and its modules into one image.

And the kernel's parts as importable modules: a text-mode console, a buddy
allocator and a free-list allocator, a priority scheduler, semaphores, pipes,
a dining-philosophers table, a keyboard decoder, a tick clock, a system-call
dispatcher, the shell's command parser and a few user programs.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Command-line tools

### bmfs

```
bmfs DISK FUNCTION [FILE] [SIZE]
```

`FUNCTION` is one of `list`, `read`, `write`, `create`, `delete`, `format` or
`initialize` (case does not matter). Run `bmfs` with fewer than two arguments
to see the usage text.

Create a new, zero-filled and formatted image. The size is a byte count with an
optional `K`, `M`, `G`, `T` or `P` suffix and must be at least 6 MiB. The MBR,
boot loader and kernel files are optional: the first 512 bytes of the MBR file
go to the start of the disk, the boot loader is written from byte 8192 and the
kernel straight after it.

```
bmfs disk.img initialize 128M mbr.sys boot.sys kernel.sys
```

Manage files on an existing image:

```
bmfs disk.img create notes.txt 2       # reserve 2 MiB for notes.txt
bmfs disk.img write notes.txt          # copy the local file notes.txt into it
bmfs disk.img list
bmfs disk.img read notes.txt           # copy it back to a local file of the same name
bmfs disk.img delete notes.txt
bmfs disk.img format /FORCE            # empty the directory
```

- `create` rounds an odd size up to the next even number of MiB; without a
  size it asks for one.
- `format` on an image that is already BMFS needs `/FORCE`; an unformatted
  image is formatted straight away. Every other command refuses an
  unformatted image.
- An image holds at most 64 directory entries, names of at most 31 bytes,
  and space is reserved in 2 MiB blocks.

Errors are printed as `Error: ...`.

### modulepacker

```
modulepacker KERNEL [MODULE ...] [-o FILE]
```

Writes the kernel file, then the number of modules, then each module's size
followed by its bytes. The count and sizes are 32-bit little-endian integers.
The output goes to `packedKernel.bin` unless `-o`/`--output` names another
file. At most 128 files are accepted, and `--version` prints the version.

## Using the library

### Disk images

```python
from barekernel.bmfs import BMFSDisk, initialize

initialize("disk.img", "16M", None, None, None)
with BMFSDisk("disk.img") as disk:
    disk.create("notes.txt", 2)
    for entry in disk.entries():
        print(entry.name, entry.starting_block, entry.reserved_mib)
    print(disk.list_text())
```

`BMFSDisk` also has `find`, `read(name, dest)`, `write(name, source)`,
`delete` and `format`. `parse_disk_size` turns a size string into bytes.
Failures raise `BMFSError`.

### Packed images

`barekernel.modulepacker.build_image(paths, output)` writes a packed image and
`check_files(paths)` raises `OSError` for the first unreadable path.
`barekernel.moduleloader.load_modules(payload)` splits the module part of a
packed image (the count and the sized modules) back into a list of `bytes`;
`place_modules` maps them onto load addresses, and `stack_base` computes the
top of the kernel stack.

### Kernel parts

| Module | What it provides |
| --- | --- |
| `barekernel.textfmt` | `uint_to_base` and `hexa_char`. |
| `barekernel.console` | `Console`, an 80x25 cell buffer with a cursor, scrolling and `lines()`; `Color`. |
| `barekernel.buddy` | `BuddyAllocator`: `alloc`, `free`, `free_all`, `dump`. Addresses are offsets into the heap. |
| `barekernel.freelist` | `FreeListAllocator`, a first-fit free list with the same methods. |
| `barekernel.scheduler` | `Scheduler` with `add_task`, `next`, `switch`, `kill`, `nice`, `block`, `unblock`, `ps` and more; `Task`, `TaskState`, `Priority`, `Ground`. |
| `barekernel.semaphores` | `SemaphoreTable`: `open`, `close`, `wait`, `post`, `close_all`, `status`. |
| `barekernel.pipes` | `PipeTable` of 100-character ring-buffer pipes. |
| `barekernel.philosophers` | `DiningTable` for the dining-philosophers problem. |
| `barekernel.clock` | `Clock`, 18 ticks to the second. |
| `barekernel.keyboard` | `Keyboard`, turning set-1 scancodes into characters; `KeyEvent`. |
| `barekernel.kernel` | `Kernel`, which wires the parts together behind `dispatch(Syscall, ...)`, `timer_interrupt` and `keyboard_interrupt`; `format_rtc`, `format_memory`, `exception_report`. |
| `barekernel.stdlib` | `atoi`, `itoa`, `convert`, `format_printf`, `read_line`, `memcheck` and the `UniformRandom` generator. |
| `barekernel.shell` | `Shell.run(line)`, which schedules a command, `cmd&` in the background or a `writer | reader` pipeline, and returns the new pids; helpers such as `create_argv`, `read_address`, `strip_vowels`, `count_lines`. |
| `barekernel.programs` | `fibonacci()` and `primes()` generators, `help_text()`, `banner()`. |

Where the kernel would make a caller wait, these classes answer at once
instead: `SemaphoreTable.wait` returns `False` after marking the task blocked,
and `PipeTable.read`/`write` raise `BlockingIOError` on an empty or full pipe.
Out-of-memory raises `MemoryError`; unknown pids, semaphores and pipes raise
`ProcessLookupError`, `SemaphoreError` and `PipeError`.

## What it does not do

barekernel does not boot or run anything on a machine. The scheduler keeps a
table of tasks and picks which one is current, but never executes them: the
shell only records the chosen program in a new task. There is no interactive
shell loop and no screen output beyond the `Console` buffer. The stress-test
commands the shell accepts (`mmtest`, `processtest`, `prioritytest`,
`semtest` and others) are names it can schedule, not programs it runs.