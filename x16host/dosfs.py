"""Host file system access in the manner of Commodore DOS.

Name parsing, path resolution confined to a root directory, wildcard
matching and the BASIC-program form of directory listings.
"""

from __future__ import annotations

import enum
import os
import stat
import time
from typing import Callable, Iterator, NamedTuple, Sequence

from x16host.charset import iso8859_15_from_unicode, iso_to_utf8, utf8_decode

BLOCKS_FREE = b"BLOCKS FREE."

_STAR = ord("*")
_QMARK = ord("?")
_SEPARATORS = "/\\"
# Characters not valid in FAT32 names that may still show up on the host.
_INVALID_NAME_CHARS = frozenset(map(ord, ',"*:\\<>|'))

_ERROR_STRINGS = {
    0x00: " OK",
    0x01: " FILES SCRATCHED",
    0x02: "PARTITION SELECTED",
    0x20: "READ ERROR",
    0x25: "WRITE ERROR",
    0x26: "WRITE PROTECT ON",
    0x30: "SYNTAX ERROR",
    0x31: "SYNTAX ERROR",
    0x32: "SYNTAX ERROR",
    0x33: "ILLEGAL FILENAME",
    0x34: "EMPTY FILENAME",
    0x39: "SUBDIRECTORY NOT FOUND",
    0x49: "INVALID FORMAT",
    0x62: " FILE NOT FOUND",
    0x63: "FILE EXISTS",
    0x70: "NO CHANNEL",
    0x71: "DIRECTORY ERROR",
    0x72: "PARTITION FULL",
    0x73: "HOST FS V1.0 X16",
    0x74: "DRIVE NOT READY",
    0x75: "FORMAT ERROR",
    0x77: "SELECTED PARTITION ILLEGAL",
}


def error_string(code: int) -> str:
    """Return the DOS message for an error code, empty if unknown."""
    return _ERROR_STRINGS.get(code, "")


class DosError(Exception):
    """A DOS error, carrying the status code reported on the command channel."""

    def __init__(self, code: int):
        super().__init__(f"{code:02x},{error_string(code)}")
        self.code = code


class WildcardType(enum.IntEnum):
    ALL = 0
    PRG = 1
    DIR = 2


class ParsedName(NamedTuple):
    name: bytes
    overwrite: bool


class Resolved(NamedTuple):
    path: str
    exists: bool


def case_fold_unicode(cp: int) -> int:
    """Fold a code point to lower case, for the letters ISO-8859-15 has."""
    if 0x41 <= cp <= 0x5A or 0xC0 <= cp <= 0xDE:
        return cp + 0x20
    return {0x0160: 0x0161, 0x017D: 0x017E, 0x0152: 0x0153, 0x0178: 0xFF}.get(cp, cp)


def case_fold_iso(c: int) -> int:
    """Fold an ISO-8859-15 byte to lower case."""
    if 0x41 <= c <= 0x5A or 0xC0 <= c <= 0xDE:
        return c + 0x20
    return {0xA6: 0xA8, 0xB4: 0xB8, 0xBC: 0xBD, 0xBE: 0xFF}.get(c, c)


def _wildcard_match(pattern: Sequence[int], name: Sequence[int], fold: Callable[[int], int]) -> bool:
    i = j = 0
    while j < len(pattern) and i < len(name):
        p = pattern[j]
        if p == _STAR:
            return True
        if p != _QMARK and fold(p) != fold(name[i]):
            break
        i += 1
        j += 1
    if i == len(name):
        if j == len(pattern):
            return True
        if j < len(pattern) and pattern[j] == _STAR:
            return True
    return False


def _skips_dotfile(pattern: Sequence[int], name: Sequence[int]) -> bool:
    return bool(pattern) and pattern[0] in (_STAR, _QMARK) and bool(name) and name[0] == ord(".")


def parse_dos_filename(name: bytes, dirhandling: bool = False) -> ParsedName:
    """Split ``[[@][medium][/dir/]:]file`` into a plain relative or absolute name.

    Raises DosError(0x32) for a malformed directory part.
    """
    name = bytes(name)
    colon = name.find(b":")
    if dirhandling and colon < 0:
        colon = len(name)
    if colon < 0:
        return ParsedName(name, False)

    overwrite = False
    i = 0
    if not dirhandling:
        if name[i:i + 1] == b"@":
            overwrite = True
            i += 1
        while i < len(name) and 0x30 <= name[i] <= 0x39:
            i += 1

    rest = name[colon + 1:]
    if name[i:i + 1] == b"/":
        directory = name[i + 1:colon]
        if not directory or not directory.endswith(b"/"):
            raise DosError(0x32)
        return ParsedName(directory + rest, overwrite)
    return ParsedName(rest, overwrite)


def _dir_entries(path: str) -> list[str]:
    return [".", ".."] + os.listdir(path)


def _last_separator(path: str) -> int:
    return max(path.rfind("/"), path.rfind("\\"))


class HostFS:
    """A host directory tree presented as a DOS drive with its own cwd."""

    def __init__(self, fsroot: str | os.PathLike | None = None, startin: str | os.PathLike | None = None):
        self.root = self._normalise(fsroot, "-fsroot")
        start = self._normalise(startin, "-startin")
        if not start.startswith(self.root):
            start = self.root
        self.startin = start
        self.cwd = start

    @staticmethod
    def _normalise(path, option: str) -> str:
        if path is None:
            return os.getcwd()
        try:
            return os.path.realpath(os.fspath(path), strict=True)
        except OSError as exc:
            raise ValueError(f"Failed to resolve argument to {option}") from exc

    def reset_cwd(self) -> None:
        """Return to the start-in directory."""
        self.cwd = self.startin

    def display_cwd(self) -> bytes:
        """The cwd relative to the root, as 16 bytes for a listing header."""
        offset = len(self.root)
        if self.root and self.root[-1] in _SEPARATORS:
            offset -= 1
        if len(self.root) == len(self.cwd):
            raw = b"/"
        else:
            raw = os.fsencode(self.cwd[offset:])
        return raw[:16].ljust(16, b" ").replace(b"\0", b" ").replace(b"\\", b"/")

    def _find_match(self, directory: str, pattern: str, wildcard: WildcardType) -> str | None:
        try:
            entries = _dir_entries(directory)
        except OSError:
            raise DosError(0x62) from None
        pat = [ord(ch) for ch in pattern]
        for entry in entries:
            ent = [ord(ch) for ch in entry]
            if _skips_dotfile(pat, ent):
                continue
            if not _wildcard_match(pat, ent, case_fold_unicode):
                continue
            candidate = directory + "/" + entry
            if wildcard is WildcardType.DIR and not os.path.isdir(candidate):
                continue
            if wildcard is WildcardType.PRG and not os.path.isfile(candidate):
                continue
            return candidate
        return None

    def _absent_path(self, name: str) -> str:
        sep = _last_separator(name)
        head = name[:sep] if sep >= 0 else name
        has_parent = sep >= 0
        if name[:1] in ("/", "\\"):
            if sep == 0:
                head = name[0]
                has_parent = False
            ret = self.root + head
        else:
            ret = self.cwd + "/" + head
        if not has_parent:
            return ret
        try:
            os.path.realpath(ret, strict=True)
        except OSError:
            raise DosError(0x62) from None
        return self.cwd + "/" + name

    def _check_jail(self, path: str) -> None:
        root = self.root
        if len(root) > len(path) or not path.startswith(root):
            raise DosError(0x62)
        if (
            len(root) < len(path)
            and root[-1] not in _SEPARATORS
            and path[len(root)] not in _SEPARATORS
        ):
            raise DosError(0x62)

    def resolve_path(
        self, name: str, must_exist: bool = True, wildcard: WildcardType = WildcardType.ALL
    ) -> Resolved:
        """Resolve a name against the cwd, matching case-insensitively and with wildcards.

        Raises DosError(0x62) when nothing suitable is found or the result
        lies outside the root.
        """
        if name[:1] in ("/", "\\"):
            full = self.root + name
        else:
            full = self.cwd + "/" + name
        has_wildcards = "*" in full or "?" in full

        cut = _last_separator(full)
        if cut < 0:
            raise DosError(0x62)
        match = self._find_match(full[:cut], full[cut + 1:], WildcardType(wildcard))

        if match is not None:
            candidate = match
        elif has_wildcards:
            raise DosError(0x62)
        else:
            candidate = full

        try:
            result = Resolved(os.path.realpath(candidate, strict=True), True)
        except OSError:
            if must_exist:
                raise DosError(0x62) from None
            result = Resolved(self._absent_path(name), False)

        self._check_jail(result.path)
        return result

    def resolve_iso(
        self, name: bytes, must_exist: bool = True, wildcard: WildcardType = WildcardType.ALL
    ) -> Resolved:
        """Like resolve_path, for a name in ISO-8859-15."""
        text = iso_to_utf8(bytes(name).split(b"\0", 1)[0]).decode("utf-8")
        return self.resolve_path(text, must_exist, wildcard)


def _host_name_to_iso(name: str) -> bytes:
    data = os.fsencode(name)
    out = bytearray()
    pos = 0
    while pos < len(data) and data[pos]:
        cp, pos, err = utf8_decode(data, pos)
        if err or cp in _INVALID_NAME_CHARS:
            out.append(_QMARK)
        else:
            out.append(iso8859_15_from_unicode(cp))
    return bytes(out)


def _size_padding(size: int) -> bytes:
    return b" " * ((size < 1000) + (size < 100) + (size < 10))


def _listing_header(fs: HostFS) -> bytes:
    return bytes([1, 8, 1, 1, 0, 0, 0x12]) + b'"' + fs.display_cwd() + b'" HOST \0'


def _listing_footer() -> bytes:
    return bytes([1, 1, 255, 255]) + BLOCKS_FREE + b"\0\0\0"


def _name_field(name: bytes) -> bytes:
    return b'"' + name + b'"' + b" " * max(0, 16 - len(name)) + b" "


def cwd_listing(fs: HostFS) -> bytes:
    """A listing of the cwd and each directory above it up to the root."""
    out = bytearray(_listing_header(fs))
    tmp = bytearray(os.fsencode(fs.cwd))
    j = len(os.fsencode(fs.root))
    for i in range(len(tmp), j - 2, -1):
        if i >= j and tmp[i - 1] not in b"/\\":
            continue
        if i >= 1:
            tmp[i - 1] = 0
        if i < j:
            tmp[i:] = b"/"
        name = bytes(tmp[i:]).split(b"\0", 1)[0]
        if not name:
            continue
        out += bytes([1, 1, 0, 0]) + _size_padding(0) + _name_field(name) + b"DIR\0"
    out += _listing_footer()
    return bytes(out)


class DirectoryListing:
    """A ``$`` directory listing of the cwd, produced one line at a time.

    ``spec`` is the open name such as ``$=T:MATCH*=P``. Iterating yields the
    header, one chunk per entry, and the footer.
    """

    def __init__(self, fs: HostFS, spec: bytes):
        self.fs = fs
        self.wildcard = b""
        self.type_filter: str | None = None
        self.timestamps = False
        self.long = False
        self._parse(bytes(spec))

    def _parse(self, s: bytes) -> None:
        def at(k: int) -> int:
            return s[k] if k < len(s) else 0

        wildcard = bytearray()
        n = len(s)
        i = 0
        while i < n:
            if s[i] == ord(":") or i == 0:
                i += 1
                j = 0
                while i < n:
                    if i == 1 and at(i) == ord(":"):
                        i += 1
                    if at(i) in (ord("="), 0):
                        i += 1
                        ch = at(i)
                        if ch == ord("D"):
                            self.type_filter = "D"
                        elif ch == ord("P") and i != 2:
                            self.type_filter = "P"
                        elif ch == ord("T") and i == 2:
                            self.timestamps = True
                        elif ch == ord("L") and i == 2:
                            self.timestamps = True
                            self.long = True
                        break
                    del wildcard[j:]
                    wildcard.append(s[i])
                    j += 1
                    i += 1
            i += 1
        self.wildcard = bytes(wildcard)

    def __iter__(self) -> Iterator[bytes]:
        fs = self.fs
        try:
            entries = _dir_entries(fs.cwd)
        except OSError:
            return
        yield _listing_header(fs)
        for entry in entries:
            line = self._entry(entry)
            if line is not None:
                yield line
        yield _listing_footer()

    def _entry(self, entry: str) -> bytes | None:
        fs = self.fs
        if self.type_filter:
            quick = fs.cwd + "/" + entry
            if self.type_filter == "D" and not os.path.isdir(quick):
                return None
            if self.type_filter == "P" and not os.path.isfile(quick):
                return None
        try:
            resolved = fs.resolve_path(entry, True, WildcardType.ALL).path
            st = os.stat(resolved)
        except (DosError, OSError):
            return None
        if entry in (".", "..") and fs.cwd == fs.root:
            return None

        isoname = _host_name_to_iso(entry)
        if self.wildcard:
            if _skips_dotfile(self.wildcard, isoname):
                return None
            if not _wildcard_match(self.wildcard, isoname, case_fold_iso):
                return None

        out = bytearray([1, 1])
        if self.long:
            unit = b"K"
            size = (st.st_size + 1023) // 1024
            if size > 0xFFFF:
                size //= 1024
                unit = b"M"
            if size > 0xFFFF:
                size //= 1024
                unit = b"G"
            size = min(size, 0xFFFF)
            out += bytes([size & 0xFF, size >> 8]) + unit + b"B"
        else:
            size = min((st.st_size + 255) // 256, 0xFFFF)
            out += bytes([size & 0xFF, size >> 8])
        out += _size_padding(size)
        out += _name_field(isoname)
        is_dir = stat.S_ISDIR(st.st_mode)
        out += b"DIR" if is_dir else b"PRG"
        out += b" "

        if self.timestamps:
            stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(st.st_mtime))
            out += b" " + stamp.encode("ascii") + b" "

        if self.long:
            attr = 0
            if is_dir:
                attr |= 0x10
            if stat.S_ISREG(st.st_mode):
                attr |= 0x20
            if not st.st_mode & 0o200:
                attr |= 0x01
            full = min(st.st_size, 0xFFFFFFFF)
            out += f"{attr:02X} {full:08X} ".encode("ascii")

        out += b"\0"
        return bytes(out)