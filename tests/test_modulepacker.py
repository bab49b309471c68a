import struct

import pytest

from barekernel.modulepacker import build_image, check_files, main
from barekernel.moduleloader import load_modules


@pytest.fixture
def binaries(tmp_path):
    kernel = tmp_path / "kernel.bin"
    kernel.write_bytes(b"KERNEL-CODE")
    code = tmp_path / "code.bin"
    code.write_bytes(b"\x90\x90\xc3")
    data = tmp_path / "data.bin"
    data.write_bytes(b"hello data module")
    return kernel, code, data


def test_build_image_layout(binaries, tmp_path):
    kernel, code, data = binaries
    out = tmp_path / "packed.bin"
    build_image([kernel, code, data], out)
    expected = (
        kernel.read_bytes()
        + struct.pack("<i", 2)
        + struct.pack("<I", len(code.read_bytes()))
        + code.read_bytes()
        + struct.pack("<I", len(data.read_bytes()))
        + data.read_bytes()
    )
    assert out.read_bytes() == expected


def test_image_round_trips_through_loader(binaries, tmp_path):
    kernel, code, data = binaries
    out = tmp_path / "packed.bin"
    build_image([kernel, code, data], out)
    payload = out.read_bytes()[len(kernel.read_bytes()):]
    assert load_modules(payload) == [code.read_bytes(), data.read_bytes()]


def test_kernel_only_image_has_zero_modules(binaries, tmp_path):
    kernel, _, _ = binaries
    out = tmp_path / "packed.bin"
    build_image([kernel], out)
    assert out.read_bytes() == kernel.read_bytes() + struct.pack("<i", 0)


def test_check_files_rejects_missing(binaries, tmp_path):
    kernel, _, _ = binaries
    missing = tmp_path / "missing.bin"
    with pytest.raises(OSError, match="Can't open file"):
        check_files([kernel, missing])


def test_build_image_requires_kernel(tmp_path):
    with pytest.raises(ValueError):
        build_image([], tmp_path / "out.bin")


def test_build_image_unwritable_target(binaries, tmp_path):
    kernel, _, _ = binaries
    with pytest.raises(OSError, match="Can't create target file"):
        build_image([kernel], tmp_path / "no" / "such" / "dir" / "out.bin")


def test_main_writes_output(binaries, tmp_path):
    kernel, code, _ = binaries
    out = tmp_path / "image.bin"
    assert main(["-o", str(out), str(kernel), str(code)]) == 0
    assert load_modules(out.read_bytes()[len(kernel.read_bytes()):]) == [code.read_bytes()]


def test_main_missing_file_fails(tmp_path, capsys):
    assert main(["-o", str(tmp_path / "x.bin"), str(tmp_path / "nope.bin")]) == 1
    assert "Can't open file" in capsys.readouterr().out


def test_main_without_files_exits():
    with pytest.raises(SystemExit):
        main([])