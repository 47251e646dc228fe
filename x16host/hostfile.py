"""Host files that may be transparently gzip-compressed."""

from __future__ import annotations

import enum
import gzip
import os

_CHUNK = 16 * 1024 * 1024
_PROGRESS_STEP = 128 * 1024 * 1024
_MB = 1024 * 1024
_TMP_SUFFIX = ".tmp"

_COMPRESSED_SUFFIXES = (".gz", "-gz", ".z", "-z", "_z", ".Z")

_open_files: list["X16File"] = []


class SeekOrigin(enum.IntEnum):
    SET = 0
    END = 1
    CUR = 2


def is_compressed_type(path: str) -> bool:
    """Return True if the name marks a gzip-compressed file."""
    return os.fspath(path).endswith(_COMPRESSED_SUFFIXES)


def find_extension(path: str | None, mark: int | None = None) -> int | None:
    """Return the index of the extension's dot, searching back from ``mark``.

    Without ``mark`` the search starts at the end of the name, three
    characters earlier for compressed files. The first character is never
    considered. Returns None when no dot is found.
    """
    if path is None:
        return None
    if mark is None:
        mark = len(path)
        if is_compressed_type(path):
            mark -= 3
    while mark > 0:
        if mark < len(path) and path[mark] == ".":
            return mark
        mark -= 1
    return None


def files_shutdown() -> None:
    """Close every file that is still open."""
    for f in list(_open_files):
        f.close()


class X16File:
    """A file whose compressed form is worked on through a temporary copy."""

    def __init__(self, path, mode: str = "rb"):
        self.path = os.fspath(path)
        self.modified = False
        self.pos = 0
        self._compressed = is_compressed_type(self.path)
        if self._compressed:
            tmp = self._tmp_path
            total = self._decompress(tmp)
            try:
                self._file = open(tmp, mode)
            except OSError:
                os.unlink(tmp)
                raise
            self._size = total
        else:
            self._file = open(self.path, mode)
            self._size = os.fstat(self._file.fileno()).st_size
        _open_files.insert(0, self)

    @property
    def _tmp_path(self) -> str:
        return self.path + _TMP_SUFFIX

    def _decompress(self, tmp: str) -> int:
        with gzip.open(self.path, "rb") as zfile, open(tmp, "wb") as out:
            print(f"Decompressing {self.path}")
            total = 0
            threshold = _PROGRESS_STEP
            while chunk := zfile.read(_CHUNK):
                total += len(chunk)
                if total > threshold:
                    print(f"{total // _MB} MB")
                    threshold += _PROGRESS_STEP
                out.write(chunk)
            print(f"{total // _MB} MB")
        return total

    def _recompress(self, tmp: str) -> None:
        with gzip.open(self.path, "wb", compresslevel=6) as zfile, open(tmp, "rb") as src:
            print(f"Recompressing {self.path}")
            total = 0
            threshold = _PROGRESS_STEP
            while chunk := src.read(_CHUNK):
                total += len(chunk)
                if total > threshold:
                    print(f"{total * 100 // max(self._size, 1)}%")
                    threshold += _PROGRESS_STEP
                zfile.write(chunk)

    def _require_open(self):
        if self._file is None:
            raise ValueError("I/O operation on closed file")
        return self._file

    @property
    def closed(self) -> bool:
        return self._file is None

    def close(self) -> None:
        """Close the file, recompressing it first if it was changed."""
        if self._file is None:
            return
        self._file.close()
        self._file = None
        try:
            if self._compressed:
                tmp = self._tmp_path
                try:
                    if self.modified:
                        self._recompress(tmp)
                finally:
                    if os.path.exists(tmp):
                        os.unlink(tmp)
        finally:
            if self in _open_files:
                _open_files.remove(self)

    def size(self) -> int:
        """Size of the (uncompressed) file when it was opened."""
        return self._size

    def seek(self, pos: int, origin: SeekOrigin = SeekOrigin.SET) -> int:
        """Move the position, clamping it to the file size as the bus expects."""
        f = self._require_open()
        origin = SeekOrigin(origin)
        if origin is SeekOrigin.SET:
            self.pos = min(pos, self._size)
        elif origin is SeekOrigin.CUR:
            self.pos += pos
            if self.pos > self._size or self.pos < 0:
                self.pos = self._size
        else:
            self.pos = self._size - pos
            if self.pos < 0:
                self.pos = self._size
        if self.pos < 0:
            raise ValueError(f"negative seek position {self.pos}")
        return f.seek(self.pos)

    def tell(self) -> int:
        return self.pos

    def write_byte(self, value: int) -> int:
        """Write one byte; returns the number of bytes written."""
        written = self._require_open().write(bytes([value & 0xFF]))
        self.pos += written
        return written

    def read_byte(self) -> int | None:
        """Read one byte; returns None at end of file."""
        data = self._require_open().read(1)
        self.pos += len(data)
        return data[0] if data else None

    def write(self, data: bytes) -> int:
        """Write ``data``; returns the number of bytes written."""
        written = self._require_open().write(data)
        if written:
            self.modified = True
        self.pos += written
        return written

    def read(self, size: int = -1) -> bytes:
        data = self._require_open().read(size)
        self.pos += len(data)
        return data

    def __enter__(self) -> "X16File":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()