import pytest

from x16host.i2c import (
    DEVICE_RTC,
    DEVICE_SMC,
    I2CBus,
    I2CDevice,
    PS2Mouse,
    RingBuffer,
)


class Recorder(I2CDevice):
    def __init__(self, replies=()):
        self.received = []
        self.writes = 0
        self.reads = 0
        self._replies = list(replies)

    def data(self, value):
        self.received.append(value)

    def read(self):
        self.reads += 1
        return self._replies.pop(0)

    def write(self):
        self.writes += 1


def _set(bus, clk, data):
    bus.port.clk_in = clk
    bus.port.data_in = data
    bus.step()


def _start(bus):
    _set(bus, 1, 1)
    _set(bus, 1, 0)
    _set(bus, 0, 0)


def _stop(bus):
    _set(bus, 0, 0)
    _set(bus, 1, 0)
    _set(bus, 1, 1)


def _write_byte(bus, byte):
    for i in range(7, -1, -1):
        bit = (byte >> i) & 1
        _set(bus, 0, bit)
        _set(bus, 1, bit)
        _set(bus, 0, bit)
    _set(bus, 0, 1)
    _set(bus, 1, 1)
    ack = bus.port.data_out == 0
    _set(bus, 0, 1)
    return ack


def _read_byte(bus, ack):
    value = 0
    for _ in range(8):
        _set(bus, 0, 1)
        _set(bus, 1, 1)
        value = (value << 1) | bus.port.data_out
        _set(bus, 0, 1)
    line = 0 if ack else 1
    _set(bus, 0, line)
    _set(bus, 1, line)
    _set(bus, 0, line)
    return value


def test_ring_buffer_fifo_and_empty():
    buf = RingBuffer()
    for v in (1, 2, 3):
        buf.add(v)
    assert len(buf) == 3
    assert [buf.next() for _ in range(3)] == [1, 2, 3]
    assert buf.next() == 0
    assert len(buf) == 0


def test_ring_buffer_capacity():
    buf = RingBuffer(16)
    results = [buf.add(v) for v in range(buf.size)]
    assert len(buf) == buf.size - 1
    assert results[-1] is False
    assert [buf.next() for _ in range(buf.size - 1)] == list(range(buf.size - 1))


def test_ring_buffer_wraps_and_flush():
    buf = RingBuffer(4)
    for round_ in range(5):
        buf.add(round_)
        assert buf.next() == round_
    buf.add(9)
    buf.flush()
    assert len(buf) == 0


def test_ring_buffer_rejects_bad_size():
    with pytest.raises(ValueError):
        RingBuffer(12)


def test_write_transaction():
    dev = Recorder()
    bus = I2CBus({DEVICE_SMC: dev})
    _start(bus)
    assert _write_byte(bus, DEVICE_SMC << 1) is True
    assert _write_byte(bus, 0x05) is True
    assert _write_byte(bus, 0xAB) is True
    _stop(bus)
    assert dev.received == [0x05, 0xAB]
    assert dev.writes == 1


def test_unknown_device_nacks():
    dev = Recorder()
    bus = I2CBus({DEVICE_SMC: dev})
    _start(bus)
    assert _write_byte(bus, DEVICE_RTC << 1) is False
    _stop(bus)
    assert dev.received == []


def test_read_transaction():
    dev = Recorder(replies=[0x5A])
    bus = I2CBus({DEVICE_RTC: dev})
    _start(bus)
    assert _write_byte(bus, (DEVICE_RTC << 1) | 1) is True
    assert _read_byte(bus, ack=False) == 0x5A
    _stop(bus)
    assert dev.reads == 1


def test_two_transactions_in_a_row():
    dev = Recorder(replies=[0x11])
    bus = I2CBus({DEVICE_SMC: dev})
    _start(bus)
    _write_byte(bus, DEVICE_SMC << 1)
    _write_byte(bus, 0x07)
    _stop(bus)
    _start(bus)
    _write_byte(bus, (DEVICE_SMC << 1) | 1)
    assert _read_byte(bus, ack=False) == 0x11
    _stop(bus)
    assert dev.received == [0x07]


def test_reset_state_flushes_buffers():
    bus = I2CBus()
    bus.kbd_buffer.add(1)
    bus.mse_buffer.add(2)
    bus.reset_state()
    assert len(bus.kbd_buffer) == 0
    assert len(bus.mse_buffer) == 0


def _packet(buf, n):
    return [buf.next() for _ in range(n)]


def test_mouse_move_packet():
    buf = RingBuffer(16)
    mouse = PS2Mouse(buf)
    mouse.move(10, 5)
    mouse.send_state()
    assert len(buf) == 4
    byte0, x, y, w = _packet(buf, 4)
    assert byte0 & 0x08
    assert bool(byte0 & 0x20) is True
    assert bool(byte0 & 0x10) is False
    assert x == 10
    assert y == (-5) & 0xFF
    assert w == 0


def test_mouse_buttons():
    buf = RingBuffer(16)
    mouse = PS2Mouse(buf)
    mouse.button_down(0)
    mouse.button_down(1)
    mouse.button_up(0)
    mouse.send_state()
    assert _packet(buf, 1)[0] & 0x07 == 1 << 1


def test_mouse_three_byte_packets_without_wheel():
    buf = RingBuffer(16)
    mouse = PS2Mouse(buf)
    mouse.set_device_id(0)
    mouse.send_state()
    assert len(buf) == 3


@pytest.mark.parametrize("requested,expected", [(0, 0), (3, 3), (4, 3), (7, 0)])
def test_mouse_device_id(requested, expected):
    buf = RingBuffer(16)
    buf.add(1)
    mouse = PS2Mouse(buf)
    mouse.set_device_id(requested)
    assert mouse.device_id == expected
    assert len(buf) == 0


@pytest.mark.parametrize("y,expected", [(3, (-3) & 0xFF), (-10, 7), (20, (-8) & 0xFF)])
def test_mouse_wheel(y, expected):
    buf = RingBuffer(16)
    mouse = PS2Mouse(buf)
    mouse.set_wheel(y)
    mouse.send_state()
    assert _packet(buf, 4)[3] == expected


def test_mouse_wheel_reset_after_send():
    buf = RingBuffer(16)
    mouse = PS2Mouse(buf)
    mouse.set_wheel(3)
    mouse.send_state()
    mouse.send_state()
    assert _packet(buf, 8)[7] == 0


def test_mouse_full_buffer_drops_packet():
    buf = RingBuffer(16)
    for _ in range(buf.size - 4):
        buf.add(0)
    mouse = PS2Mouse(buf)
    mouse.send_state()
    assert len(buf) == buf.size - 4


def test_mouse_large_move_is_clamped():
    buf = RingBuffer(16)
    mouse = PS2Mouse(buf)
    mouse.move(300, -300)
    mouse.send_state()
    first = _packet(buf, 4)
    assert first[1] == 255
    assert first[2] == 255


def test_mouse_read_register():
    assert PS2Mouse(RingBuffer()).read(0) == 0xFF