import pytest

from x16host.joystick import ControllerButton, JoystickBank


def read_slot_bits(bank, slot, count=16):
    """Clock out ``count`` serial bits for one slot, first bit first."""
    bits = []
    bank.set_latch(True)
    bits.append(1 if bank.data & (0x80 >> slot) else 0)
    bank.set_latch(False)
    for _ in range(count - 1):
        bank.set_clock(True)
        bits.append(1 if bank.data & (0x80 >> slot) else 0)
        bank.set_clock(False)
    return bits


def as_mask(bits):
    return sum(bit << k for k, bit in enumerate(bits))


def test_empty_slots_read_high():
    bank = JoystickBank()
    bank.set_latch(True)
    assert bank.data == 0xF0


def test_idle_controller_reads_all_ones():
    bank = JoystickBank([True, False, False, False])
    bank.add(7)
    assert bank.slots[0] == 7
    assert read_slot_bits(bank, 0) == [1] * 16


def test_pressed_button_reads_low():
    bank = JoystickBank([True, False, False, False])
    bank.add(7)
    bank.button_down(7, ControllerButton.A)
    bits = read_slot_bits(bank, 0)
    assert bits[0] == 0
    assert all(bits[1:])


def test_serial_bits_reconstruct_button_mask():
    bank = JoystickBank([True, True, False, False])
    bank.add(1)
    bank.add(2)
    bank.button_down(2, ControllerButton.B)
    bank.button_down(2, ControllerButton.DPAD_RIGHT)
    mask = as_mask(read_slot_bits(bank, 1))
    assert mask | (1 << 8) | (1 << 7) == 0xFFFF
    assert not mask & (1 << 8)
    assert not mask & (1 << 7)
    assert as_mask(read_slot_bits(bank, 0)) == 0xFFFF


def test_button_up_restores():
    bank = JoystickBank([True, False, False, False])
    bank.add(3)
    bank.button_down(3, ControllerButton.START)
    bank.button_up(3, ControllerButton.START)
    assert read_slot_bits(bank, 0) == [1] * 16


def test_unmapped_button_has_no_effect():
    bank = JoystickBank([True, False, False, False])
    bank.add(3)
    bank.button_down(3, ControllerButton.GUIDE)
    assert read_slot_bits(bank, 0) == [1] * 16


def test_register_empties_after_sixteen_bits():
    bank = JoystickBank([True, False, False, False])
    bank.add(3)
    read_slot_bits(bank, 0)
    bank.set_clock(True)
    assert bank.data & 0x80 == 0


def test_duplicate_add_uses_one_slot():
    bank = JoystickBank([True, True, False, False])
    bank.add(9)
    bank.add(9)
    assert bank.slots[:2] == [9, -1]


def test_remove_frees_slot():
    bank = JoystickBank([True, False, False, False])
    bank.add(4)
    bank.button_down(4, ControllerButton.A)
    bank.remove(4)
    assert bank.slots[0] == -1
    assert read_slot_bits(bank, 0) == [1] * 16


def test_remove_unknown_raises():
    bank = JoystickBank()
    with pytest.raises(KeyError):
        bank.remove(42)


def test_clock_ignored_while_latched():
    bank = JoystickBank([True, False, False, False])
    bank.add(1)
    bank.button_down(1, ControllerButton.A)
    bank.set_latch(True)
    before = bank.data
    bank.set_clock(True)
    assert bank.data == before


def test_wrong_slot_count_rejected():
    with pytest.raises(ValueError):
        JoystickBank([True, False])