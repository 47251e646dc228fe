"""Host-side peripherals for a Commander X16 machine: character sets, host files, I2C, keyboard, joystick, icon, DOS file system and IEEE bus device."""

__version__ = "0.1.0"
__all__ = ["charset", "hostfile", "i2c", "keyboard", "joystick", "icon", "dosfs", "ieee"]