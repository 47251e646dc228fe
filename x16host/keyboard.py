"""Translation of host key scancodes into PS/2 key numbers for the SMC."""

from __future__ import annotations

import enum
import sys

from x16host.i2c import RingBuffer

EXTENDED_FLAG = 0x100
_BREAK_BIT = 0x80


class Scancode(enum.IntEnum):
    """Host keyboard scancodes (USB HID usage numbers)."""

    A = 4
    B = 5
    C = 6
    D = 7
    E = 8
    F = 9
    G = 10
    H = 11
    I = 12  # noqa: E741
    J = 13
    K = 14
    L = 15
    M = 16
    N = 17
    O = 18  # noqa: E741
    P = 19
    Q = 20
    R = 21
    S = 22
    T = 23
    U = 24
    V = 25
    W = 26
    X = 27
    Y = 28
    Z = 29
    NUM_1 = 30
    NUM_2 = 31
    NUM_3 = 32
    NUM_4 = 33
    NUM_5 = 34
    NUM_6 = 35
    NUM_7 = 36
    NUM_8 = 37
    NUM_9 = 38
    NUM_0 = 39
    RETURN = 40
    ESCAPE = 41
    BACKSPACE = 42
    TAB = 43
    SPACE = 44
    MINUS = 45
    EQUALS = 46
    LEFTBRACKET = 47
    RIGHTBRACKET = 48
    BACKSLASH = 49
    SEMICOLON = 51
    APOSTROPHE = 52
    GRAVE = 53
    COMMA = 54
    PERIOD = 55
    SLASH = 56
    CAPSLOCK = 57
    F1 = 58
    F2 = 59
    F3 = 60
    F4 = 61
    F5 = 62
    F6 = 63
    F7 = 64
    F8 = 65
    F9 = 66
    F10 = 67
    F11 = 68
    F12 = 69
    SCROLLLOCK = 71
    PAUSE = 72
    INSERT = 73
    HOME = 74
    PAGEUP = 75
    DELETE = 76
    END = 77
    PAGEDOWN = 78
    RIGHT = 79
    LEFT = 80
    DOWN = 81
    UP = 82
    NUMLOCKCLEAR = 83
    KP_DIVIDE = 84
    KP_MULTIPLY = 85
    KP_MINUS = 86
    KP_PLUS = 87
    KP_ENTER = 88
    KP_1 = 89
    KP_2 = 90
    KP_3 = 91
    KP_4 = 92
    KP_5 = 93
    KP_6 = 94
    KP_7 = 95
    KP_8 = 96
    KP_9 = 97
    KP_0 = 98
    KP_PERIOD = 99
    NONUSBACKSLASH = 100
    APPLICATION = 101
    INTERNATIONAL1 = 135
    CLEAR = 156
    LCTRL = 224
    LSHIFT = 225
    LALT = 226
    LGUI = 227
    RCTRL = 228
    RSHIFT = 229
    RALT = 230
    RGUI = 231


_KEYNUMS: dict[Scancode, int] = {
    Scancode.GRAVE: 1,
    Scancode.BACKSPACE: 15,
    Scancode.TAB: 16,
    Scancode.CLEAR: 0,
    Scancode.RETURN: 43,
    Scancode.PAUSE: 126,
    Scancode.ESCAPE: 110,
    Scancode.SPACE: 61,
    Scancode.APOSTROPHE: 41,
    Scancode.COMMA: 53,
    Scancode.MINUS: 12,
    Scancode.PERIOD: 54,
    Scancode.SLASH: 55,
    Scancode.NUM_0: 11,
    Scancode.NUM_1: 2,
    Scancode.NUM_2: 3,
    Scancode.NUM_3: 4,
    Scancode.NUM_4: 5,
    Scancode.NUM_5: 6,
    Scancode.NUM_6: 7,
    Scancode.NUM_7: 8,
    Scancode.NUM_8: 9,
    Scancode.NUM_9: 10,
    Scancode.SEMICOLON: 40,
    Scancode.EQUALS: 13,
    Scancode.LEFTBRACKET: 27,
    Scancode.BACKSLASH: 29,
    Scancode.RIGHTBRACKET: 28,
    Scancode.A: 31,
    Scancode.B: 50,
    Scancode.C: 48,
    Scancode.D: 33,
    Scancode.E: 19,
    Scancode.F: 34,
    Scancode.G: 35,
    Scancode.H: 36,
    Scancode.I: 24,
    Scancode.J: 37,
    Scancode.K: 38,
    Scancode.L: 39,
    Scancode.M: 52,
    Scancode.N: 51,
    Scancode.O: 25,
    Scancode.P: 26,
    Scancode.Q: 17,
    Scancode.R: 20,
    Scancode.S: 32,
    Scancode.T: 21,
    Scancode.U: 23,
    Scancode.V: 49,
    Scancode.W: 18,
    Scancode.X: 47,
    Scancode.Y: 22,
    Scancode.Z: 46,
    Scancode.DELETE: 76,
    Scancode.UP: 83,
    Scancode.DOWN: 84,
    Scancode.RIGHT: 89,
    Scancode.LEFT: 79,
    Scancode.INSERT: 75,
    Scancode.HOME: 80,
    Scancode.END: 81,
    Scancode.PAGEUP: 85,
    Scancode.PAGEDOWN: 86,
    Scancode.F1: 112,
    Scancode.F2: 113,
    Scancode.F3: 114,
    Scancode.F4: 115,
    Scancode.F5: 116,
    Scancode.F6: 117,
    Scancode.F7: 118,
    Scancode.F8: 119,
    Scancode.F9: 120,
    Scancode.F10: 121,
    Scancode.F11: 122,
    Scancode.F12: 123,
    Scancode.SCROLLLOCK: 125,
    Scancode.RSHIFT: 57,
    Scancode.LSHIFT: 44,
    Scancode.CAPSLOCK: 30,
    Scancode.LCTRL: 58,
    Scancode.RCTRL: 64,
    Scancode.LALT: 60,
    Scancode.RALT: 62,
    Scancode.LGUI: 59,
    Scancode.RGUI: 63,
    Scancode.APPLICATION: 65,
    Scancode.NONUSBACKSLASH: 45,
    Scancode.KP_ENTER: 108,
    Scancode.KP_0: 99,
    Scancode.KP_1: 93,
    Scancode.KP_2: 98,
    Scancode.KP_3: 103,
    Scancode.KP_4: 92,
    Scancode.KP_5: 97,
    Scancode.KP_6: 102,
    Scancode.KP_7: 91,
    Scancode.KP_8: 96,
    Scancode.KP_9: 101,
    Scancode.KP_PERIOD: 104,
    Scancode.KP_PLUS: 106,
    Scancode.KP_MINUS: 105,
    Scancode.KP_MULTIPLY: 100,
    Scancode.KP_DIVIDE: 95,
    Scancode.NUMLOCKCLEAR: 90,
    Scancode.INTERNATIONAL1: 56,
}


def keynum_from_scancode(scancode: int) -> int:
    """Return the PS/2 key number for a scancode, or 0 if it has none."""
    try:
        code = Scancode(scancode)
    except ValueError:
        return 0
    return _KEYNUMS.get(code, 0)


def handle_keyboard(buffer: RingBuffer, down: bool, scancode: int, log: bool = False) -> None:
    """Queue the make or break code for a key event into ``buffer``."""
    keynum = keynum_from_scancode(scancode)
    if keynum == 0:
        return

    if down:
        if log:
            print(f"DOWN 0x{int(scancode):02X}", flush=True, file=sys.stdout)
        if keynum & EXTENDED_FLAG:
            buffer.add(0x7F)
        buffer.add(keynum & 0xFF)
    else:
        if log:
            print(f"UP   0x{int(scancode):02X}", flush=True, file=sys.stdout)
        keynum |= _BREAK_BIT
        if keynum & EXTENDED_FLAG:
            buffer.add(0xFF)
        buffer.add(keynum & 0xFF)