"""ISO-8859-15 and UTF-8 conversions used by the host file system layer."""

from __future__ import annotations

QUESTION_MARK = ord("?")

# Unicode code points that ISO-8859-15 places where Latin-1 has other symbols.
_TO_LATIN15 = {
    0x20AC: 0xA4,  # euro sign
    0x160: 0xA6,  # S with caron
    0x161: 0xA8,  # s with caron
    0x17D: 0xB4,  # Z with caron
    0x17E: 0xB8,  # z with caron
    0x152: 0xBC,  # OE ligature
    0x153: 0xBD,  # oe ligature
    0x178: 0xBE,  # Y with diaeresis
}
_FROM_LATIN15 = {byte: cp for cp, byte in _TO_LATIN15.items()}
# Latin-1 symbols that have no place in Latin-15.
_LATIN1_ONLY = frozenset(_FROM_LATIN15)

_LENGTHS = (1,) * 16 + (0,) * 8 + (2, 2, 2, 2, 3, 3, 4, 0)
_MASKS = (0x00, 0x7F, 0x1F, 0x0F, 0x07)
_MINS = (4194304, 0, 128, 2048, 65536)
_SHIFTC = (0, 18, 12, 6, 0)
_SHIFTE = (0, 6, 4, 2, 0)


def iso8859_15_from_unicode(c: int) -> int:
    """Map a Unicode code point to an ISO-8859-15 byte, '?' if unsupported.

    A line feed becomes a carriage return.
    """
    if c == 0x0A:
        return 0x0D
    if c in _TO_LATIN15:
        return _TO_LATIN15[c]
    if c in _LATIN1_ONLY or c >= 256:
        return QUESTION_MARK
    return c


def unicode_from_iso8859_15(c: int) -> int:
    """Map an ISO-8859-15 byte to its Unicode code point."""
    c &= 0xFF
    return _FROM_LATIN15.get(c, c)


def print_iso8859_15_char(c: int) -> None:
    """Print one ISO-8859-15 character to standard output."""
    print(chr(unicode_from_iso8859_15(c)), end="")


def utf8_decode(buf: bytes, pos: int = 0) -> tuple[int, int, int]:
    """Decode the UTF-8 character at ``pos``.

    Returns ``(code_point, next_pos, error)``. Bytes past the end of ``buf``
    read as zero. ``error`` is non-zero for invalid sequences, non-canonical
    encodings, surrogate halves and out-of-range values; ``next_pos`` always
    advances by at least one byte.
    """

    def at(i: int) -> int:
        return buf[i] if i < len(buf) else 0

    s0, s1, s2, s3 = at(pos), at(pos + 1), at(pos + 2), at(pos + 3)
    length = _LENGTHS[s0 >> 3]
    next_pos = pos + length + (0 if length else 1)

    c = (s0 & _MASKS[length]) << 18
    c |= (s1 & 0x3F) << 12
    c |= (s2 & 0x3F) << 6
    c |= s3 & 0x3F
    c >>= _SHIFTC[length]

    e = int(c < _MINS[length]) << 6
    e |= int((c >> 11) == 0x1B) << 7
    e |= int(c > 0x10FFFF) << 8
    e |= (s1 & 0xC0) >> 2
    e |= (s2 & 0xC0) >> 4
    e |= s3 >> 6
    e ^= 0x2A
    e >>= _SHIFTE[length]
    return c, next_pos, e


def utf8_to_iso(data: bytes) -> bytes:
    """Convert UTF-8 bytes to ISO-8859-15, replacing bad sequences with '?'."""
    out = bytearray()
    pos = 0
    while pos < len(data):
        cp, pos, err = utf8_decode(data, pos)
        out.append(QUESTION_MARK if err else iso8859_15_from_unicode(cp))
    return bytes(out)


def iso_to_utf8(data: bytes) -> bytes:
    """Convert ISO-8859-15 bytes to UTF-8."""
    return "".join(chr(unicode_from_iso8859_15(b)) for b in data).encode("utf-8")