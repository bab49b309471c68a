"""BareMetal File System (BMFS) disk images and the command that manages them."""

from __future__ import annotations

import re
import shutil
import struct
import sys
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

MIB = 1024 * 1024
BLOCK_SIZE = 2 * MIB
MINIMUM_DISK_SIZE = 6 * MIB

DISK_INFO_OFFSET = 1024
DISK_INFO_SIZE = 512
DIRECTORY_OFFSET = 4096
DIRECTORY_SIZE = 4096
ENTRY_SIZE = 64
MAX_ENTRIES = 64
NAME_SIZE = 32
FILE_SIZE_OFFSET = 48
BOOT_OFFSET = 8192
MBR_SIZE = 512
FS_TAG = b"BMFS"

_END_MARKER = 0x00
_DELETED_MARKER = 0x01
_U64 = (1 << 64) - 1
_COPY_CHUNK = 50 * 1024
_UNIT_POWERS = {"K": 1, "M": 2, "G": 3, "T": 4, "P": 5}
_ENTRY_FIELDS = struct.Struct("<4Q")
_ALLOCATION_FIELDS = struct.Struct("<3Q")
_FILE_SIZE_FIELD = struct.Struct("<Q")

_LIST_HEADER = "Name                            |            Size (B)|      Reserved (MiB)"
_USAGE = (
    "BareMetal File System Utility v1.0 (2013 04 10)\n"
    "Usage: {prog} disk function file\n"
    "Disk: the name of the disk file\n"
    "Function: list, read, write, create, delete, format, initialize\n"
    "File: (if applicable)"
)


class BMFSError(Exception):
    """Raised when a BMFS operation cannot be carried out."""


def _decode_name(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", "surrogateescape")


@dataclass
class BMFSEntry:
    """One file record of the BMFS directory."""

    name: str
    starting_block: int
    reserved_blocks: int
    file_size: int
    slot: int = field(default=-1, compare=False)

    @classmethod
    def from_bytes(cls, raw: bytes, slot: int = -1) -> "BMFSEntry":
        start, reserved, size, _unused = _ENTRY_FIELDS.unpack_from(raw, NAME_SIZE)
        return cls(_decode_name(raw[:NAME_SIZE]), start, reserved, size, slot)

    @property
    def reserved_mib(self) -> int:
        return self.reserved_blocks * 2


def _blank_disk_info() -> bytes:
    return FS_TAG + bytes(DISK_INFO_SIZE - len(FS_TAG))


def _write_empty_filesystem(disk: BinaryIO) -> None:
    disk.seek(DISK_INFO_OFFSET)
    disk.write(_blank_disk_info())
    disk.seek(DIRECTORY_OFFSET)
    disk.write(bytes(DIRECTORY_SIZE))


class BMFSDisk:
    """An open BMFS disk image."""

    def __init__(self, path):
        self.path = Path(path)
        self.name = str(path)
        try:
            self._file: BinaryIO = open(path, "r+b")
        except OSError as exc:
            raise BMFSError(f"Unable to open disk '{path}'") from exc
        self._file.seek(0, 2)
        self.size_mib = self._file.tell() // MIB
        self._file.seek(DISK_INFO_OFFSET)
        info = self._file.read(DISK_INFO_SIZE).ljust(DISK_INFO_SIZE, b"\0")
        self._file.seek(DIRECTORY_OFFSET)
        self._directory = bytearray(self._file.read(DIRECTORY_SIZE).ljust(DIRECTORY_SIZE, b"\0"))
        self._file.seek(0)
        self.formatted = info.split(b"\0", 1)[0].lower() == FS_TAG.lower()

    def __enter__(self) -> "BMFSDisk":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()

    def _require_formatted(self) -> None:
        if not self.formatted:
            raise BMFSError("Not a valid BMFS drive (Disk is not BMFS formatted).")

    def _flush_directory(self) -> None:
        self._file.seek(DIRECTORY_OFFSET)
        self._file.write(self._directory)
        self._file.flush()

    def _raw_entries(self) -> Iterator[tuple[int, bytes]]:
        for slot in range(MAX_ENTRIES):
            offset = slot * ENTRY_SIZE
            yield slot, bytes(self._directory[offset:offset + ENTRY_SIZE])

    def format(self) -> None:
        """Write an empty disk information block and directory."""
        _write_empty_filesystem(self._file)
        self._file.flush()
        self._directory = bytearray(DIRECTORY_SIZE)
        self.formatted = True

    def entries(self) -> Iterator[BMFSEntry]:
        """Yield the live directory entries in slot order."""
        self._require_formatted()
        for slot, raw in self._raw_entries():
            if raw[0] == _END_MARKER:
                return
            if raw[0] == _DELETED_MARKER:
                continue
            yield BMFSEntry.from_bytes(raw, slot)

    def find(self, name: str) -> Optional[BMFSEntry]:
        """Return the entry called ``name``, or None."""
        return next((entry for entry in self.entries() if entry.name == name), None)

    def list_text(self) -> str:
        """Return the directory listing as printed by the ``list`` command."""
        lines = [
            self.name,
            f"Disk Size: {self.size_mib} MiB",
            _LIST_HEADER,
            "=" * len(_LIST_HEADER),
        ]
        lines.extend(
            f"{entry.name:<32} {entry.file_size:>20} {entry.reserved_mib:>20}"
            for entry in self.entries()
        )
        return "\n".join(lines) + "\n"

    def create(self, name: str, max_size_mib: int) -> BMFSEntry:
        """Reserve space for a new, empty file of up to ``max_size_mib`` MiB."""
        self._require_formatted()
        encoded = name.encode("utf-8", "surrogateescape")
        if not encoded:
            raise BMFSError("File name not specified.")
        if len(encoded) >= NAME_SIZE:
            raise BMFSError(f"File name too long (at most {NAME_SIZE - 1} bytes).")
        if max_size_mib < 1:
            raise BMFSError("Invalid file size.")
        if max_size_mib % 2:
            max_size_mib += 1
        if self.find(name) is not None:
            raise BMFSError("File already exists.")

        blocks_requested = max_size_mib // 2
        num_blocks = self.size_mib // 2

        num_used = 0
        first_free: Optional[int] = None
        for slot, raw in self._raw_entries():
            if raw[0] == _END_MARKER:
                num_used = slot
                if first_free is None:
                    first_free = slot
                break
            if raw[0] == _DELETED_MARKER and first_free is None:
                first_free = slot
        if first_free is None:
            raise BMFSError("Cannot create file: no free directory entries.")

        used = sorted(
            (
                (raw[0] == _DELETED_MARKER, BMFSEntry.from_bytes(raw, slot))
                for slot, raw in self._raw_entries()
                if slot < num_used
            ),
            key=lambda item: (item[0], item[1].starting_block),
        )

        new_start = 0
        prev_end = 1
        for item in [*used, None]:
            if item is None or item[0]:
                this_start = (num_blocks - 1) & _U64
            else:
                this_start = item[1].starting_block
            if (this_start - prev_end) & _U64 >= blocks_requested:
                new_start = prev_end
                break
            if item is not None:
                prev_end = (item[1].starting_block + item[1].reserved_blocks) & _U64

        if new_start == 0:
            raise BMFSError(f"Cannot create file of size {max_size_mib} MiB.")

        offset = first_free * ENTRY_SIZE
        self._directory[offset:offset + len(encoded) + 1] = encoded + b"\0"
        _ALLOCATION_FIELDS.pack_into(
            self._directory, offset + NAME_SIZE, new_start, blocks_requested, 0
        )
        if first_free == num_used and num_used + 1 < MAX_ENTRIES:
            self._directory[(num_used + 1) * ENTRY_SIZE] = _END_MARKER
        self._flush_directory()
        return BMFSEntry(name, new_start, blocks_requested, 0, first_free)

    def read(self, name: str, dest=None) -> BMFSEntry:
        """Copy the file ``name`` out of the disk to ``dest`` (default: its own name)."""
        entry = self.find(name)
        if entry is None:
            raise BMFSError("File not found in BMFS.")
        target = Path(dest) if dest is not None else Path(entry.name)
        self._file.seek(entry.starting_block * BLOCK_SIZE)
        data = self._file.read(entry.file_size)
        try:
            target.write_bytes(data)
        except OSError as exc:
            raise BMFSError(f"Could not open local file '{target}'") from exc
        return entry

    def write(self, name: str, source=None) -> BMFSEntry:
        """Store a local file into the existing entry ``name``."""
        entry = self.find(name)
        if entry is None:
            raise BMFSError("File not found in BMFS. A file entry must first be created.")
        local = Path(source) if source is not None else Path(name)
        try:
            data = local.read_bytes()
        except OSError as exc:
            raise BMFSError(f"Could not open local file '{entry.name}'") from exc
        if entry.reserved_blocks * BLOCK_SIZE < len(data):
            raise BMFSError("Not enough reserved space in BMFS.")
        self._file.seek(entry.starting_block * BLOCK_SIZE)
        self._file.write(data)
        _FILE_SIZE_FIELD.pack_into(
            self._directory, entry.slot * ENTRY_SIZE + FILE_SIZE_OFFSET, len(data)
        )
        self._flush_directory()
        entry.file_size = len(data)
        return entry

    def delete(self, name: str) -> BMFSEntry:
        """Mark the entry ``name`` as deleted."""
        entry = self.find(name)
        if entry is None:
            raise BMFSError("File not found in BMFS.")
        self._directory[entry.slot * ENTRY_SIZE] = _DELETED_MARKER
        self._flush_directory()
        return entry


def parse_disk_size(text: str) -> int:
    """Turn a size such as ``"6M"`` or ``"8388608"`` into a byte count."""
    size = 0
    power = 0
    for index, char in enumerate(text):
        if char in "0123456789":
            digit = ord(char) - ord("0")
            if (size * 10) & _U64 > size:
                size = (size * 10 + digit) & _U64
            elif size == 0:
                size += digit
            else:
                raise BMFSError("Disk size is too large")
        elif index == 0:
            raise BMFSError("A numeric disk size must be specified")
        else:
            power = _UNIT_POWERS.get(char.upper(), 0)
            if not power or index + 1 != len(text):
                raise BMFSError(f"Invalid disk size string: '{text}'")

    if size > 0:
        for _ in range(power):
            if (size * 1024) & _U64 > size:
                size *= 1024
            else:
                raise BMFSError("Disk size is too large")

    if size < MINIMUM_DISK_SIZE:
        raise BMFSError(
            f"Disk size must be at least {MINIMUM_DISK_SIZE} bytes "
            f"({MINIMUM_DISK_SIZE // MIB}MiB)"
        )
    return size


def _open_input(stack: ExitStack, path, label: str) -> Optional[BinaryIO]:
    if path is None:
        return None
    try:
        return stack.enter_context(open(path, "rb"))
    except OSError as exc:
        raise BMFSError(f"Unable to open {label} file '{path}'") from exc


def initialize(disk_path, size, mbr=None, boot=None, kernel=None) -> None:
    """Create a zero-filled, formatted disk image and install boot files."""
    boot_kind = "boot loader" if kernel is not None else "system"
    disk_size = parse_disk_size(size)

    with ExitStack() as stack:
        mbr_file = _open_input(stack, mbr, "MBR")
        boot_file = _open_input(stack, boot, boot_kind)
        kernel_file = _open_input(stack, kernel, "kernel")
        try:
            disk = stack.enter_context(open(disk_path, "wb"))
        except OSError as exc:
            raise BMFSError(f"Unable to open disk '{disk_path}'") from exc

        try:
            disk.truncate(disk_size)
            _write_empty_filesystem(disk)

            if mbr_file is not None:
                record = mbr_file.read(MBR_SIZE)
                if len(record) < MBR_SIZE:
                    raise BMFSError(f"Failed to read file '{mbr}'")
                disk.seek(0)
                disk.write(record)

            if boot_file is not None:
                disk.seek(BOOT_OFFSET)
                shutil.copyfileobj(boot_file, disk, _COPY_CHUNK)

            if kernel_file is not None:
                shutil.copyfileobj(kernel_file, disk, _COPY_CHUNK)
        except OSError as exc:
            raise BMFSError(f"Failed to write disk '{disk_path}'") from exc


def _atoi(text: str) -> int:
    match = re.match(r"\s*([+-]?\d+)", text, re.ASCII)
    return int(match.group(1)) if match else 0


def _run_command(disk: BMFSDisk, command: str, rest: list[str]) -> None:
    filename = rest[0] if rest else None

    if command == "list":
        print(disk.list_text(), end="")
        return
    if command == "format":
        if rest and rest[0].upper() == "/FORCE":
            disk.format()
            print("Format complete.")
        else:
            print("Format aborted!")
        return
    if command not in ("create", "read", "write", "delete"):
        print("Unknown command")
        return
    if filename is None:
        raise BMFSError("File name not specified.")

    if command == "create":
        if len(rest) > 1:
            size = _atoi(rest[1])
        else:
            try:
                size = _atoi(input("Maximum file size in MiB: "))
            except EOFError:
                size = 0
        if size < 1:
            raise BMFSError("Invalid file size.")
        disk.create(filename, size)
        print("Creating new file...")
        print("Complete")
    elif command == "read":
        disk.read(filename)
        print(f"Reading '{filename}' from BMFS to local file... Complete")
    elif command == "write":
        disk.write(filename)
        print(f"Writing local file '{filename}' to BMFS... Complete")
    else:
        disk.delete(filename)
        print(f"Deleting file '{filename}' from BMFS... Complete")


def main(argv=None) -> int:
    """Run the BMFS utility; returns the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    prog = "bmfs"
    if len(args) < 2:
        print(_USAGE.format(prog=prog))
        return 0

    disk_name, command, *rest = args
    command = command.lower()

    if command == "initialize":
        if not rest:
            print(f"Usage: {prog} disk {args[1]} size [mbr_file] [bootloader_file] [kernel_file]")
            return 1
        mbr, boot, kernel = (rest[1:4] + [None, None, None])[:3]
        try:
            initialize(disk_name, rest[0], mbr, boot, kernel)
        except BMFSError as exc:
            print(f"Error: {exc}")
            return 1
        print("Format complete.")
        print("Disk initialization complete.")
        return 0

    try:
        disk = BMFSDisk(disk_name)
    except BMFSError as exc:
        print(f"Error: {exc}")
        return 0

    with disk:
        if not disk.formatted:
            if command == "format":
                disk.format()
                print("Format complete.")
            else:
                print("Error: Not a valid BMFS drive (Disk is not BMFS formatted).")
            return 0
        try:
            _run_command(disk, command, rest)
        except BMFSError as exc:
            print(f"Error: {exc}")
    return 0