"""SNES-style serial joystick ports fed by game controllers."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable

JOY_LATCH_MASK = 0x04
JOY_CLK_MASK = 0x08
NUM_JOYSTICKS = 4

_NO_CONTROLLER = -1


class ControllerButton(enum.IntEnum):
    A = 0
    B = 1
    X = 2
    Y = 3
    BACK = 4
    GUIDE = 5
    START = 6
    LEFTSTICK = 7
    RIGHTSTICK = 8
    LEFTSHOULDER = 9
    RIGHTSHOULDER = 10
    DPAD_UP = 11
    DPAD_DOWN = 12
    DPAD_LEFT = 13
    DPAD_RIGHT = 14


# Bit in the SNES shift register for each controller button (0: unmapped).
_BUTTON_MAP = {
    ControllerButton.A: 1 << 0,
    ControllerButton.B: 1 << 8,
    ControllerButton.X: 1 << 1,
    ControllerButton.Y: 1 << 9,
    ControllerButton.BACK: 1 << 2,
    ControllerButton.GUIDE: 0,
    ControllerButton.START: 1 << 3,
    ControllerButton.LEFTSTICK: 0,
    ControllerButton.RIGHTSTICK: 0,
    ControllerButton.LEFTSHOULDER: 1 << 10,
    ControllerButton.RIGHTSHOULDER: 1 << 11,
    ControllerButton.DPAD_UP: 1 << 4,
    ControllerButton.DPAD_DOWN: 1 << 5,
    ControllerButton.DPAD_LEFT: 1 << 6,
    ControllerButton.DPAD_RIGHT: 1 << 7,
}


@dataclass
class _Controller:
    button_mask: int = 0xFFFF
    shift_mask: int = 0


class JoystickBank:
    """Controllers attached to the four joystick slots.

    Buttons are active low; ``data`` holds one bit per slot, slot 0 in bit 7.
    """

    def __init__(self, slots_enabled: Iterable[bool] | None = None):
        enabled = list(slots_enabled) if slots_enabled is not None else [False] * NUM_JOYSTICKS
        if len(enabled) != NUM_JOYSTICKS:
            raise ValueError(f"expected {NUM_JOYSTICKS} slot flags, got {len(enabled)}")
        self.slots_enabled = [bool(e) for e in enabled]
        self.slots = [_NO_CONTROLLER] * NUM_JOYSTICKS
        self.data = 0
        self._latch = False
        self._controllers: dict[int, _Controller] = {}

    def add(self, instance_id: int) -> None:
        """Attach a controller, placing it in the first free enabled slot."""
        exists = any(
            enabled and slot == instance_id
            for enabled, slot in zip(self.slots_enabled, self.slots)
        )
        if exists:
            return
        for i, enabled in enumerate(self.slots_enabled):
            if enabled and self.slots[i] == _NO_CONTROLLER:
                self.slots[i] = instance_id
                break
        self._controllers[instance_id] = _Controller()

    def remove(self, instance_id: int) -> None:
        """Detach a controller; raises KeyError if it was never attached."""
        for i, slot in enumerate(self.slots):
            if slot == instance_id:
                self.slots[i] = _NO_CONTROLLER
                break
        if instance_id not in self._controllers:
            raise KeyError(f"no controller with instance id {instance_id}")
        del self._controllers[instance_id]

    def button_down(self, instance_id: int, button: int) -> None:
        joy = self._controllers.get(instance_id)
        if joy is not None:
            joy.button_mask &= ~_BUTTON_MAP[ControllerButton(button)] & 0xFFFF

    def button_up(self, instance_id: int, button: int) -> None:
        joy = self._controllers.get(instance_id)
        if joy is not None:
            joy.button_mask |= _BUTTON_MAP[ControllerButton(button)]

    def _shift(self) -> None:
        for i, slot in enumerate(self.slots):
            joy = self._controllers.get(slot) if slot >= 0 else None
            if joy is None:
                self.data |= 0x80 >> i
            else:
                if joy.shift_mask & 1:
                    self.data |= 0x80 >> i
                joy.shift_mask >>= 1

    def set_latch(self, value: bool) -> None:
        """Drive the latch line; raising it loads every shift register."""
        self._latch = bool(value)
        if value:
            for joy in self._controllers.values():
                joy.shift_mask = joy.button_mask | 0xF000
            self._shift()

    def set_clock(self, value: bool) -> None:
        """Drive the clock line; a rising edge outside latch shifts the next bit."""
        if not self._latch and value:
            self.data = 0
            self._shift()