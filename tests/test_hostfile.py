import gzip

import pytest

from x16host.hostfile import (
    SeekOrigin,
    X16File,
    files_shutdown,
    find_extension,
    is_compressed_type,
)

CONTENT = b"HELLO, COMMANDER"


@pytest.fixture
def plain(tmp_path):
    p = tmp_path / "disk.img"
    p.write_bytes(CONTENT)
    return p


@pytest.fixture
def packed(tmp_path):
    p = tmp_path / "disk.img.gz"
    with gzip.open(p, "wb") as f:
        f.write(CONTENT)
    return p


@pytest.mark.parametrize("name", ["a.gz", "a-gz", "a.z", "a-z", "a_z", "a.Z"])
def test_compressed_names(name):
    assert is_compressed_type(name) is True


@pytest.mark.parametrize("name", ["a.img", "a.zip", "gz", "a.gzip"])
def test_plain_names(name):
    assert is_compressed_type(name) is False


def test_find_extension_plain():
    name = "file.prg"
    assert find_extension(name) == name.rindex(".")


def test_find_extension_none_cases():
    assert find_extension(None) is None
    assert find_extension("noext") is None
    assert find_extension(".hidden") is None


def test_find_extension_with_mark():
    name = "a.b.c"
    assert find_extension(name, name.rindex(".") - 1) == name.index(".")


def test_open_read_size(plain):
    with X16File(plain, "rb") as f:
        assert f.size() == len(CONTENT)
        assert f.read() == CONTENT
        assert f.tell() == len(CONTENT)


def test_read_byte(plain):
    with X16File(plain, "rb") as f:
        assert f.read_byte() == CONTENT[0]
        assert f.tell() == 1
        f.seek(0, SeekOrigin.END)
        assert f.read_byte() is None


def test_seek_set_clamps(plain):
    with X16File(plain, "rb") as f:
        f.seek(len(CONTENT) + 100)
        assert f.tell() == len(CONTENT)
        f.seek(3)
        assert f.read(2) == CONTENT[3:5]


def test_seek_end_counts_back(plain):
    with X16File(plain, "rb") as f:
        f.seek(2, SeekOrigin.END)
        assert f.tell() == len(CONTENT) - 2
        assert f.read() == CONTENT[-2:]
        f.seek(len(CONTENT) + 1, SeekOrigin.END)
        assert f.tell() == len(CONTENT)


def test_seek_cur_out_of_range_goes_to_end(plain):
    with X16File(plain, "rb") as f:
        f.seek(4)
        f.seek(-10, SeekOrigin.CUR)
        assert f.tell() == len(CONTENT)
        f.seek(4)
        f.seek(1, SeekOrigin.CUR)
        assert f.tell() == 5


def test_seek_negative_set_raises(plain):
    with X16File(plain, "rb") as f:
        with pytest.raises(ValueError):
            f.seek(-1)


def test_write_sets_modified(tmp_path):
    p = tmp_path / "out.bin"
    with X16File(p, "wb") as f:
        assert f.write(b"abc") == 3
        assert f.modified is True
        assert f.write_byte(0x141) == 1
        assert f.tell() == 4
    assert p.read_bytes() == b"abcA"


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        X16File(tmp_path / "missing.bin", "rb")


def test_closed_file_rejects_io(plain):
    f = X16File(plain, "rb")
    f.close()
    assert f.closed is True
    with pytest.raises(ValueError):
        f.read(1)


def test_compressed_read_and_cleanup(packed):
    tmp = packed.with_name(packed.name + ".tmp")
    f = X16File(packed, "rb")
    assert tmp.exists()
    assert f.size() == len(CONTENT)
    assert f.read() == CONTENT
    f.close()
    assert not tmp.exists()
    with gzip.open(packed, "rb") as g:
        assert g.read() == CONTENT


def test_compressed_write_recompresses(packed):
    with X16File(packed, "rb+") as f:
        f.seek(0)
        f.write(b"XY")
    with gzip.open(packed, "rb") as g:
        assert g.read() == b"XY" + CONTENT[2:]
    assert not packed.with_name(packed.name + ".tmp").exists()


def test_files_shutdown_closes_all(plain, packed):
    a = X16File(plain, "rb")
    b = X16File(packed, "rb")
    files_shutdown()
    assert a.closed and b.closed
    assert not packed.with_name(packed.name + ".tmp").exists()