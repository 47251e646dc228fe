import pytest

from x16host.i2c import RingBuffer
from x16host.keyboard import Scancode, handle_keyboard, keynum_from_scancode


@pytest.mark.parametrize(
    "scancode, keynum",
    [
        (Scancode.A, 31),
        (Scancode.RETURN, 43),
        (Scancode.ESCAPE, 110),
        (Scancode.F1, 112),
        (Scancode.KP_ENTER, 108),
        (Scancode.GRAVE, 1),
    ],
)
def test_keynum_table(scancode, keynum):
    assert keynum_from_scancode(scancode) == keynum


def test_keynum_accepts_plain_int():
    assert keynum_from_scancode(int(Scancode.Z)) == keynum_from_scancode(Scancode.Z)


def test_unknown_and_clear_map_to_zero():
    assert keynum_from_scancode(9999) == 0
    assert keynum_from_scancode(Scancode.CLEAR) == 0


def test_all_keynums_fit_in_seven_bits():
    for code in Scancode:
        assert 0 <= keynum_from_scancode(code) < 0x80


def test_key_down_queues_make_code():
    buf = RingBuffer(16)
    handle_keyboard(buf, True, Scancode.A)
    assert len(buf) == 1
    assert buf.next() == keynum_from_scancode(Scancode.A)


def test_key_up_sets_break_bit():
    buf = RingBuffer(16)
    handle_keyboard(buf, False, Scancode.SPACE)
    value = buf.next()
    assert value & 0x80
    assert value & 0x7F == keynum_from_scancode(Scancode.SPACE)


def test_unmapped_key_queues_nothing():
    buf = RingBuffer(16)
    handle_keyboard(buf, True, Scancode.CLEAR)
    handle_keyboard(buf, False, 9999)
    assert len(buf) == 0


def test_logging_prints_scancode(capsys):
    buf = RingBuffer(16)
    handle_keyboard(buf, True, Scancode.A, log=True)
    handle_keyboard(buf, False, Scancode.A, log=True)
    out = capsys.readouterr().out.splitlines()
    assert out == ["DOWN 0x04", "UP   0x04"]


def test_no_output_without_log(capsys):
    buf = RingBuffer(16)
    handle_keyboard(buf, True, Scancode.B)
    assert capsys.readouterr().out == ""