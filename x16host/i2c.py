"""Bit-banged I2C bus, keyboard/mouse ring buffers and a PS/2 mouse."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Mapping

DEVICE_SMC = 0x42
DEVICE_RTC = 0x6F

I2C_DATA_MASK = 1
I2C_CLK_MASK = 2

KBD_SIZE = 16
MSE_SIZE = 16

_STATE_START = 0
_STATE_STOP = -1


class RingBuffer:
    """A byte ring buffer holding at most ``size - 1`` values."""

    def __init__(self, size: int = 16):
        if size <= 0 or size & (size - 1):
            raise ValueError("size must be a power of two")
        self.size = size
        self._data = bytearray(size)
        self._head = 0
        self._tail = 0

    def add(self, value: int) -> bool:
        """Append a byte; it is dropped if the buffer is full."""
        nxt = (self._head + 1) & (self.size - 1)
        if nxt == self._tail:
            return False
        self._data[self._head] = value & 0xFF
        self._head = nxt
        return True

    def next(self) -> int:
        """Remove and return the oldest byte, or 0 if empty."""
        if self._head == self._tail:
            return 0
        value = self._data[self._tail]
        self._tail = (self._tail + 1) & (self.size - 1)
        return value

    def flush(self) -> None:
        self._head = self._tail = 0

    def __len__(self) -> int:
        return (self.size + self._head - self._tail) & (self.size - 1)


@dataclass
class I2CPort:
    clk_in: int = 0
    data_in: int = 0
    data_out: int = 0


class I2CDevice:
    """A device on the bus.

    The base device records the bytes written to it and the bytes committed
    by the bus, and answers reads with 0xFF. Subclasses override the
    transfers they handle.
    """

    def __init__(self) -> None:
        self.received: list[int] = []
        self.committed: list[int] = []

    def data(self, value: int) -> None:
        """Receive one byte written by the host."""
        self.received.append(value & 0xFF)

    def read(self) -> int:
        """Return the next byte for the host."""
        return 0xFF

    def write(self) -> None:
        """Commit the last byte received after the register byte."""
        if self.received:
            self.committed.append(self.received[-1])


class I2CBus:
    """The bus state machine driven by clock and data line changes."""

    def __init__(self, devices: Mapping[int, I2CDevice] | None = None):
        self.devices: dict[int, I2CDevice] = dict(devices or {})
        self.port = I2CPort()
        self._old = I2CPort()
        self.kbd_buffer = RingBuffer(KBD_SIZE)
        self.mse_buffer = RingBuffer(MSE_SIZE)
        self._state = _STATE_STOP
        self._read_mode = False
        self._value = 0
        self._count = 0
        self._device = 0

    def reset_state(self) -> None:
        self._state = _STATE_STOP
        self._read_mode = False
        self._value = 0
        self._count = 0
        self.mse_buffer.flush()
        self.kbd_buffer.flush()

    def _data(self, value: int) -> None:
        device = self.devices.get(self._device)
        if device is not None:
            device.data(value)

    def _read(self) -> int:
        device = self.devices.get(self._device)
        return device.read() & 0xFF if device is not None else 0xFF

    def _write(self) -> None:
        device = self.devices.get(self._device)
        if device is not None:
            device.write()

    def step(self) -> None:
        """Process the lines after a change of ``port.clk_in`` or ``port.data_in``."""
        port, old = self.port, self._old
        if old.clk_in == port.clk_in and old.data_in == port.data_in:
            return

        if self._state == _STATE_STOP and port.clk_in == 0 and port.data_in == 0:
            self._state = _STATE_START

        if self._state == 1 and port.clk_in == 1 and port.data_in == 1 and old.data_in == 0:
            self._state = _STATE_STOP
            self._count = 0
            self._read_mode = False

        if self._state != _STATE_STOP and port.clk_in == 1 and old.clk_in == 0:
            port.data_out = 1
            if self._state < 8:
                if self._read_mode:
                    if self._state == 0:
                        self._value = self._read()
                    port.data_out = 1 if self._value & 0x80 else 0
                    self._value = (self._value << 1) & 0xFF
                else:
                    self._value = ((self._value << 1) | (port.data_in & 1)) & 0xFF
                self._state += 1
            else:
                self._acknowledge()
                self._state = _STATE_START

        self._old = replace(port)

    def _acknowledge(self) -> None:
        port = self.port
        if self._read_mode:
            if port.data_in:
                self._count = 0
                self._read_mode = False
            return
        ack = True
        if self._count == 0:
            self._device = self._value >> 1
            self._read_mode = bool(self._value & 1)
            ack = self._device in self.devices
        elif self._count == 1:
            self._data(self._value)
        else:
            self._data(self._value)
            self._write()
        if ack:
            port.data_out = 0
            self._count += 1
        else:
            self._count = 0
            self._read_mode = False


def _int16(v: int) -> int:
    return ((v + 0x8000) & 0xFFFF) - 0x8000


class PS2Mouse:
    """A PS/2 mouse that queues movement packets into a ring buffer."""

    def __init__(self, buffer: RingBuffer):
        self.buffer = buffer
        self.buttons = 0
        self.registers: dict[int, int] = {}
        self._diff_x = 0
        self._diff_y = 0
        self._wheel = 0
        self._device_id = 3

    @property
    def device_id(self) -> int:
        return self._device_id

    def _has_wheel(self) -> bool:
        return self._device_id in (3, 4)

    def _send(self, x: int, y: int, b: int, w: int) -> bool:
        psize = 4 if self._has_wheel() else 3
        if len(self.buffer) >= self.buffer.size - psize:
            return False
        byte0 = ((y >> 9) & 1) << 5 | ((x >> 9) & 1) << 4 | 1 << 3 | b
        self.buffer.add(byte0 & 0xFF)
        self.buffer.add(x & 0xFF)
        self.buffer.add(y & 0xFF)
        if self._has_wheel():
            self.buffer.add(w & 0xFF)
        return True

    def send_state(self) -> None:
        """Queue packets for the accumulated movement."""
        while True:
            sx = max(-256, min(255, self._diff_x))
            sy = max(-256, min(255, self._diff_y))
            self._send(sx, sy, self.buttons, self._wheel)
            self._diff_x = _int16(self._diff_x - sx)
            self._diff_y = _int16(self._diff_y - sy)
            self._wheel = 0
            if not (self._diff_x != 0 and self._diff_y != 0):
                break

    def button_down(self, num: int) -> None:
        self.buttons = (self.buttons | (1 << num)) & 0xFF

    def button_up(self, num: int) -> None:
        self.buttons &= (1 << num) ^ 0xFF

    def move(self, x: int, y: int) -> None:
        self._diff_x = _int16(self._diff_x + x)
        self._diff_y = _int16(self._diff_y - y)

    def read(self, reg: int) -> int:
        """Return a register value; unset registers read as 0xFF."""
        return self.registers.get(reg & 0xFF, 0xFF) & 0xFF

    def set_wheel(self, y: int) -> None:
        if self._has_wheel():
            if y < -7:
                self._wheel = 7
            elif y > 8:
                self._wheel = -8
            else:
                self._wheel = -y

    def set_device_id(self, d: int) -> None:
        if d in (0, 3):
            self._device_id = d
        elif d == 4:
            self._device_id = 3
        else:
            self._device_id = 0
        self.buffer.flush()