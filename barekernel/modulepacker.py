"""Packs a kernel binary and its modules into one loadable image."""

from __future__ import annotations

import argparse
import os
import shutil
import struct
from pathlib import Path
from typing import Sequence

OUTPUT_FILE = "packedKernel.bin"
MAX_FILES = 128
VERSION = "ModulePacker v0.2"

_COUNT = struct.Struct("<i")
_SIZE = struct.Struct("<I")


def check_files(paths: Sequence) -> None:
    """Raise OSError naming the first path that cannot be read."""
    for path in paths:
        if not os.access(path, os.R_OK):
            raise OSError(f"Can't open file: {path}")


def build_image(paths: Sequence, output=OUTPUT_FILE) -> Path:
    """Write the kernel, the module count and each sized module to ``output``."""
    if not paths:
        raise ValueError("a kernel file is required")
    kernel, *modules = paths
    try:
        target = open(output, "wb")
    except OSError as exc:
        raise OSError("Can't create target file") from exc

    with target:
        with open(kernel, "rb") as source:
            shutil.copyfileobj(source, target)
        target.write(_COUNT.pack(len(modules)))
        for module in modules:
            target.write(_SIZE.pack(os.stat(module).st_size & 0xFFFFFFFF))
            with open(module, "rb") as source:
                shutil.copyfileobj(source, target)
    return Path(output)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="modulepacker",
        description="ModulePacker is an appender of binary files to be loaded all together",
    )
    parser.add_argument(
        "-o",
        "--output",
        metavar="FILE",
        default=OUTPUT_FILE,
        help="Output to FILE instead of the default",
    )
    parser.add_argument("--version", action="version", version=VERSION)
    parser.add_argument("files", nargs="+", metavar="KernelFile Module1 Module2 ...")
    return parser


def main(argv=None) -> int:
    """Run the packer; returns the process exit status."""
    parser = _parser()
    args = parser.parse_args(argv)
    if len(args.files) > MAX_FILES:
        parser.error(f"at most {MAX_FILES} files can be packed")
    try:
        check_files(args.files)
    except OSError as exc:
        print(exc)
        return 1
    try:
        build_image(args.files, args.output)
    except OSError as exc:
        print(exc)
        return 1
    return 0