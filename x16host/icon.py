"""The Commander X16 window icon as a 96x96 palette image."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

ICON_SIZE = 96

# Palette entries keyed by the character used in the pixel map.
PALETTE: Mapping[str, tuple[int, int, int, int]] = {
    ".": (0x00, 0x00, 0xAA, 0x00),
    "+": (0x88, 0x00, 0x00, 0xFF),
    "@": (0xCC, 0x44, 0xCC, 0xFF),
    "#": (0x00, 0x88, 0xFF, 0xFF),
    "$": (0xDD, 0x88, 0x55, 0xFF),
    "%": (0x00, 0xCC, 0x55, 0xFF),
    "&": (0xEE, 0xEE, 0x77, 0xFF),
    "*": (0xAA, 0xFF, 0xEE, 0xFF),
}


def _row(margin: int = 0, ch: str = ".", width: int = 0) -> str:
    """One mirrored row: margin, a bar of ``ch``, a gap, the bar, the margin."""
    if width == 0:
        return "." * ICON_SIZE
    gap = ICON_SIZE - 2 * margin - 2 * width
    if gap < 0:
        raise ValueError("row does not fit the icon width")
    bar = ch * width
    return "." * margin + bar + "." * gap + bar + "." * margin


def _logo_rows() -> list[str]:
    rows: list[str] = []
    rows += [_row()] * 5
    rows += [_row(4, "@", r - 3) for r in range(5, 18)]
    rows += [_row(8, "#", r - 7) for r in range(18, 30)]
    rows += [_row(11, "*", r - 10) for r in range(30, 42)]
    rows += [_row(18, "%", 25)] * 3
    rows += [_row(30, "%", 13)] * 3
    rows += [_row(36, "%", 7)] * 6
    rows += [_row(36, "&", 7)] * 6
    rows += [_row(30, "&", 13)] * 3
    rows += [_row(18, "&", 25)] * 3
    rows += [_row(15, "$", 94 - r) for r in range(66, 78)]
    rows += [_row(12, "+", 97 - r) for r in range(78, 91)]
    rows += [_row()] * 5
    return rows


@dataclass(frozen=True)
class Icon:
    """A palette image; each pixel is a key into ``palette``."""

    width: int
    height: int
    rows: tuple[str, ...]
    palette: Mapping[str, tuple[int, int, int, int]] = field(default_factory=lambda: dict(PALETTE))

    def __post_init__(self) -> None:
        if len(self.rows) != self.height:
            raise ValueError(f"expected {self.height} rows, got {len(self.rows)}")
        for row in self.rows:
            if len(row) != self.width:
                raise ValueError(f"row of length {len(row)}, expected {self.width}")
            unknown = set(row) - set(self.palette)
            if unknown:
                raise ValueError(f"pixels without palette entry: {sorted(unknown)}")

    def color_at(self, x: int, y: int) -> tuple[int, int, int, int]:
        """Return the RGBA color of the pixel at ``(x, y)``."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height} icon")
        return self.palette[self.rows[y][x]]

    def to_rgba(self) -> bytes:
        """Return the image as row-major RGBA bytes."""
        return b"".join(bytes(self.palette[ch]) for row in self.rows for ch in row)


def commander_x16_icon() -> Icon:
    """Build the Commander X16 logo icon."""
    return Icon(ICON_SIZE, ICON_SIZE, tuple(_logo_rows()))