"""Commodore bus TALK/LISTEN layer and DOS command channel over a host directory."""

from __future__ import annotations

import errno
import os
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator

from x16host.dosfs import (
    DirectoryListing,
    DosError,
    HostFS,
    Resolved,
    WildcardType,
    cwd_listing,
    error_string,
    parse_dos_filename,
)

NOT_HANDLED = -2
UNSUPPORTED = -3
EOI = 0x40
READ_TIMEOUT = 0x42

_NAME_SIZE = 80
_CMD_SIZE = 256
_ERROR_SIZE = 256
_ACTIVITY_FLAG = 0x10
_ERROR_FLAG = 0x20


class Memory:
    """Banked 64 KiB address spaces, created on first use."""

    def __init__(self) -> None:
        self._banks: dict[int, bytearray] = {}

    def _bank(self, bank: int) -> bytearray:
        return self._banks.setdefault(bank & 0xFF, bytearray(0x10000))

    def read(self, bank: int, address: int) -> int:
        return self._bank(bank)[address & 0xFFFF]

    def write(self, bank: int, address: int, value: int) -> None:
        self._bank(bank)[address & 0xFFFF] = value & 0xFF


@dataclass
class _Channel:
    name: bytearray = field(default_factory=bytearray)
    read: bool = False
    write: bool = False
    f: BinaryIO | None = None


class IEEEDevice:
    """A disk unit answering the KERNAL IEEE calls from a host directory."""

    def __init__(self, fs: HostFS, memory: Memory | None = None, prg_file: BinaryIO | None = None):
        self.fs = fs
        self.memory = memory if memory is not None else Memory()
        self.prg_file = prg_file
        self.prg_consumed = False
        self.unit = 8
        self.channels = [_Channel() for _ in range(16)]
        self.channel = 0
        self.listening = False
        self.talking = False
        self.opening = False
        self.cbdos_flags = 0
        self._error = b""
        self._error_pos = 0
        self._cmd = bytearray()
        self._dirlist = b""
        self._dirlist_pos = 0
        self._dir_iter: Iterator[bytes] | None = None
        self._dir_pending: bytes | None = None
        self.init()

    # --- status and KERNAL flags -------------------------------------------

    def _get_flags(self) -> int:
        return self.memory.read(0, self.cbdos_flags) if self.cbdos_flags else 0

    def _set_flags(self, flags: int) -> None:
        if self.cbdos_flags:
            self.memory.write(0, self.cbdos_flags, flags)

    def _set_activity(self, active: bool) -> None:
        flags = self._get_flags()
        flags = flags | _ACTIVITY_FLAG if active else flags & ~_ACTIVITY_FLAG
        self._set_flags(flags & 0xFF)

    def _set_error_text(self, e: int, text: str, t: int = 0, s: int = 0) -> None:
        msg = f"{e:02x},{text},{t:02d},{s:02d}\r".encode("latin-1", "replace")
        self._error = msg[: _ERROR_SIZE - 1]
        self._error_pos = 0
        flags = self._get_flags()
        if e < 0x10 or e == 0x73:
            flags &= ~_ERROR_FLAG
        else:
            flags |= _ERROR_FLAG
        self._set_flags(flags & 0xFF)

    def _set_error(self, e: int) -> None:
        self._set_error_text(e, error_string(e))

    def _clear_error(self) -> None:
        self._set_error(0)

    @property
    def status(self) -> bytes:
        """The current command channel message."""
        return self._error

    # --- setup -------------------------------------------------------------

    def _find_cbdos_flags(self) -> int:
        read = self.memory.read
        if read(0, 0xFFA5) != 0x4C:
            return 0
        kacptr = read(0, 0xFFA6) | read(0, 0xFFA7) << 8
        if kacptr < 0xC000 or read(0, kacptr) != 0x2C:
            return 0
        addr = read(0, kacptr + 1) | read(0, kacptr + 2) << 8
        return addr if 0x0200 <= addr < 0x0400 else 0

    def init(self) -> None:
        """Close all channels, return to the start directory and locate KERNAL flags."""
        for ch in range(16):
            self._cclose(ch)
        self.listening = False
        self.talking = False
        self.opening = False
        self.fs.reset_cwd()
        self.cbdos_flags = self._find_cbdos_flags()
        if not self.cbdos_flags:
            print("Unable to find KERNAL cbdos_flags")
        self._set_error(0x73)

    # --- helpers -----------------------------------------------------------

    def _resolve(self, name: bytes, must_exist: bool, wildcard: WildcardType) -> Resolved | None:
        self._clear_error()
        try:
            return self.fs.resolve_iso(name, must_exist, wildcard)
        except DosError as exc:
            self._set_error(exc.code)
            return None

    def _parse(self, name: bytes, dirhandling: bool):
        try:
            return parse_dos_filename(name, dirhandling)
        except DosError:
            self._set_error(0x32)
            return None

    # --- command channel ---------------------------------------------------

    def command(self, cmd: bytes) -> None:
        """Execute one DOS command."""
        cmd = bytes(cmd)
        if not cmd:
            return

        def at(i: int) -> int:
            return cmd[i] if i < len(cmd) else 0

        c0, c1 = chr(cmd[0]), chr(at(1))
        if c0 == "C":
            if c1 == "D":
                self._cchdir(cmd[2:])
            elif c1 == "P":
                self._set_error(0x02)
            else:
                self._set_error(0x30)
            return
        if c0 == "I":
            self._clear_error()
            return
        if c0 == "M":
            if c1 == "D":
                self._cmkdir(cmd[2:])
            else:
                self._set_error(0x31)
            return
        if c0 == "P":
            pos = at(2) | at(3) << 8 | at(4) << 16 | at(5) << 24
            self._cseek(at(1), pos)
            return
        if c0 == "R":
            if c1 == "D":
                self._crmdir(cmd[2:])
            else:
                self._crename(cmd)
            return
        if c0 == "S":
            if c1 == "-":
                if at(2) in (ord("8"), ord("D")):
                    self.unit = 8
                    self._clear_error()
                elif at(2) == ord("9"):
                    self.unit = 9
                    self._clear_error()
                else:
                    self._set_error(0x31)
            else:
                self._cunlink(cmd)
            return
        if c0 == "T":
            self._ctell(at(1))
            return
        if c0 == "U":
            if c1 == "I":
                self._set_error(0x73)
                return
            if c1 == "0" and at(2) == ord(">") and 8 <= at(3) <= 15:
                self.unit = at(3)
                self._clear_error()
                return
        self._set_error(0x30)

    def _cchdir(self, d: bytes) -> None:
        parsed = self._parse(b":.." if d == b":_" else d, True)
        if parsed is None:
            return
        resolved = self._resolve(parsed.name, True, WildcardType.DIR)
        if resolved is None:
            return
        if not os.path.exists(resolved.path):
            self._set_error(0x62)
        elif not os.path.isdir(resolved.path):
            self._set_error(0x39)
        else:
            self.fs.cwd = resolved.path

    def _cmkdir(self, d: bytes) -> None:
        parsed = self._parse(d, True)
        if parsed is None:
            return
        resolved = self._resolve(parsed.name, False, WildcardType.DIR)
        if resolved is None:
            return
        try:
            os.mkdir(resolved.path)
        except FileExistsError:
            self._set_error(0x63)
        except OSError:
            self._set_error(0x62)

    def _crename(self, f: bytes) -> None:
        colon = f.find(b":")
        if colon < 0:
            self._set_error(0x34)
            return
        rest = f[colon + 1:]
        eq = rest.find(b"=")
        if eq < 0:
            self._set_error(0x34)
            return
        dst_name, src_name = rest[:eq], rest[eq + 1:]
        src = self._resolve(src_name, True, WildcardType.ALL)
        if src is None:
            self._set_error(0x62)
            return
        dst = self._resolve(dst_name, False, WildcardType.ALL)
        if dst is None:
            self._set_error(0x39)
            return
        try:
            os.rename(src.path, dst.path)
        except PermissionError:
            self._set_error(0x63)
        except OSError as exc:
            self._set_error(0x33 if exc.errno == errno.EINVAL else 0x62)

    def _crmdir(self, d: bytes) -> None:
        parsed = self._parse(d, True)
        if parsed is None:
            return
        resolved = self._resolve(parsed.name, True, WildcardType.DIR)
        if resolved is None:
            self._set_error(0x39)
            return
        try:
            os.rmdir(resolved.path)
        except OSError as exc:
            if exc.errno in (errno.ENOTEMPTY, errno.EEXIST, errno.EACCES):
                self._set_error(0x63)
            else:
                self._set_error(0x62)

    def _cunlink(self, f: bytes) -> None:
        colon = f.find(b":")
        if colon < 0:
            self._set_error(0x34)
            return
        resolved = self._resolve(f[colon + 1:], True, WildcardType.PRG)
        if resolved is None:
            self._set_error(0x62)
            return
        try:
            os.unlink(resolved.path)
        except PermissionError:
            self._set_error(0x63)
        except OSError:
            self._set_error(0x62)
        else:
            self._set_error(0x01)

    def _cseek(self, ch: int, pos: int) -> None:
        if ch == 15:
            self._set_error(0x30)
            return
        f = self.channels[ch].f if ch < 16 else None
        if f is None:
            self._set_error(0x70)
        else:
            f.seek(pos)

    def _ctell(self, ch: int) -> None:
        if ch == 15:
            self._set_error(0x30)
            return
        f = self.channels[ch].f if ch < 16 else None
        if f is None:
            self._set_error(0x70)
            return
        pos = f.tell()
        size = f.seek(0, os.SEEK_END)
        f.seek(pos)
        pos, size = min(pos, 0xFFFFFFFF), min(size, 0xFFFFFFFF)
        self._set_error_text(0x07, f"{pos:08X} {size:08X}")

    # --- channels ----------------------------------------------------------

    def _start_listing(self, name: bytes) -> None:
        self._dirlist_pos = 0
        if name.startswith(b"$=C"):
            self._dir_iter = None
            self._dirlist = cwd_listing(self.fs)
            self._dir_pending = None
            return
        self._dir_iter = iter(DirectoryListing(self.fs, name))
        self._dirlist = next(self._dir_iter, b"")
        self._dir_pending = next(self._dir_iter, None)

    def _next_listing_chunk(self) -> None:
        self._dirlist_pos = 0
        self._dirlist = self._dir_pending or b""
        self._dir_pending = next(self._dir_iter, None) if self._dir_iter else None

    def _copen(self, ch: int) -> int:
        chan = self.channels[ch]
        if ch == 15:
            self.command(bytes(chan.name))
            return -1

        append = False
        chan.read, chan.write = True, False
        name = bytes(chan.name)
        first = name.find(b",")
        if first >= 0:
            second = name.find(b",", first + 1)
            mode = name[second + 1:second + 2] if second >= 0 else b""
            if mode == b"A":
                append = True
            if mode in (b"A", b"W"):
                chan.read, chan.write = False, True
            elif mode == b"M":
                chan.read, chan.write = True, True
            name = name[:first]
            chan.name = bytearray(name)
        if ch <= 1:
            chan.write = bool(ch)
            chan.read = not ch

        if not name:
            self._set_error(0x34)
            return -2

        if not chan.write and name[:1] == b"$":
            self._start_listing(name)
            return -1

        if name == b":*" and self.prg_file is not None and not self.prg_consumed:
            chan.f = self.prg_file
            self.prg_consumed = True
        else:
            parsed = self._parse(name, False)
            if parsed is None:
                return -2
            resolved = self._resolve(parsed.name, False, WildcardType.PRG)
            if resolved is None:
                return -2
            if resolved.exists and not parsed.overwrite and not append and not chan.read:
                self._set_error(0x63)
                return -1
            if append:
                mode = "ab+"
            elif chan.read and chan.write:
                mode = "rb+" if os.path.exists(resolved.path) else "wb+"
            else:
                mode = "wb" if chan.write else "rb"
            try:
                chan.f = open(resolved.path, mode)
            except OSError:
                chan.f = None

        if chan.f is None:
            self._set_error(0x62)
            return -2
        self._clear_error()
        return -1

    def _cclose(self, ch: int) -> None:
        chan = self.channels[ch]
        chan.name = bytearray()
        if chan.f is not None:
            chan.f.close()
            chan.f = None

    # --- bus calls ---------------------------------------------------------

    def second(self, a: int) -> int:
        if not self.listening:
            return NOT_HANDLED
        self.channel = a & 0xF
        self.opening = False
        ret = 0 if self.channel == 15 else -1
        kind = a & 0xF0
        if kind == 0xE0:
            self._cclose(self.channel)
        elif kind == 0xF0:
            self.opening = True
            self.channels[self.channel].name = bytearray()
        return ret

    def tksa(self, a: int) -> int:
        if not self.talking:
            return NOT_HANDLED
        self.channel = a & 0xF
        return -1

    def acptr(self) -> tuple[int, int]:
        """Return ``(status, byte)`` for one byte sent by the device."""
        if not self.talking:
            return NOT_HANDLED, 0
        chan = self.channels[self.channel]
        if self.channel == 15:
            byte = self._error[self._error_pos] if self._error_pos < len(self._error) else 0
            self._error_pos += 1
            if self._error_pos >= len(self._error):
                self._clear_error()
                return EOI, byte
            return 0, byte
        if not chan.read:
            return READ_TIMEOUT, 0
        if chan.name[:1] == b"$":
            if self._dirlist_pos < len(self._dirlist):
                byte = self._dirlist[self._dirlist_pos]
                self._dirlist_pos += 1
            else:
                byte = 0
            ret = 0
            if self._dirlist_pos == len(self._dirlist):
                if self._dir_pending is None:
                    ret = EOI
                else:
                    self._next_listing_chunk()
            return ret, byte
        if chan.f is None:
            return READ_TIMEOUT, 0
        data = chan.f.read(1)
        if not data:
            return READ_TIMEOUT, 0
        cur = chan.f.tell()
        if cur == chan.f.seek(0, os.SEEK_END):
            chan.read = False
            self._cclose(self.channel)
            return EOI, data[0]
        chan.f.seek(cur)
        return 0, data[0]

    def ciout(self, a: int) -> int:
        if not self.listening:
            return NOT_HANDLED
        a &= 0xFF
        chan = self.channels[self.channel]
        if self.opening:
            if len(chan.name) < _NAME_SIZE - 1:
                chan.name.append(a)
            return 0
        if self.channel == 15:
            if a == 13 and self._cmd[:1] not in (b"P", b"T"):
                cmd = bytes(self._cmd)
                self._cmd = bytearray()
                self.command(cmd)
            elif len(self._cmd) < _CMD_SIZE - 1:
                self._cmd.append(a)
            return 0
        if chan.write and chan.f is not None:
            return 0 if chan.f.write(bytes([a])) == 1 else EOI
        return 2

    def untlk(self) -> int:
        if not self.talking:
            return NOT_HANDLED
        self.talking = False
        self._set_activity(False)
        return -1

    def unlsn(self) -> int:
        if not self.listening:
            return NOT_HANDLED
        self.listening = False
        self._set_activity(False)
        if self.opening:
            self.opening = False
            self._copen(self.channel)
        elif self.channel == 15:
            cmd = bytes(self._cmd)
            self._cmd = bytearray()
            self.command(cmd)
        return -1

    def listen(self, a: int) -> int:
        if (a & 0x1F) != self.unit:
            return NOT_HANDLED
        self.listening = True
        self._set_activity(True)
        return -1

    def talk(self, a: int) -> int:
        if (a & 0x1F) != self.unit:
            return NOT_HANDLED
        self.talking = True
        self._set_activity(True)
        return -1

    def _advance(self, addr: int, ram_bank: int) -> tuple[int, int]:
        addr = (addr + 1) & 0xFFFF
        if addr == 0xC000:
            addr = 0xA000
            ram_bank = (ram_bank + 1) & 0xFF
            self.memory.write(0, 0, ram_bank)
        return addr, ram_bank

    def macptr(self, addr: int, count: int, stream_mode: bool) -> tuple[int, int]:
        """Read a block into memory; returns ``(status, bytes_transferred)``."""
        if not self.talking:
            return NOT_HANDLED, count
        count = count or 256
        ram_bank = self.memory.read(0, 0)
        if self.channels[self.channel].f is None:
            return UNSUPPORTED, 0
        ret, i = 0, 0
        while True:
            ret, byte = self.acptr()
            self.memory.write(0, addr, byte)
            i += 1
            if not stream_mode:
                addr, ram_bank = self._advance(addr, ram_bank)
            if ret > 0 or i >= count:
                break
        return ret, i

    def mciout(self, addr: int, count: int, stream_mode: bool) -> tuple[int, int]:
        """Write a block from memory; returns ``(status, bytes_transferred)``."""
        if not self.listening:
            return NOT_HANDLED, count
        count = count or 256
        ram_bank = self.memory.read(0, 0)
        chan = self.channels[self.channel]
        if chan.f is None or not chan.write:
            return UNSUPPORTED, 0
        ret, i = 0, 0
        while True:
            byte = self.memory.read(0, addr)
            i += 1
            if not stream_mode:
                addr, ram_bank = self._advance(addr, ram_bank)
            ret = self.ciout(byte)
            if ret or i >= count:
                break
        return ret, i