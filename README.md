# x16host

Host-side peripheral models for a Commander X16 machine, in pure Python with
no third-party dependencies. Each piece is a plain object that a machine model
drives by calling its methods; nothing here runs on its own.

## Modules

### `x16host.charset`

- `iso8859_15_from_unicode(c)` maps a code point to an ISO-8859-15 byte
  (`?` for anything unsupported; a line feed becomes a carriage return).
- `unicode_from_iso8859_15(c)` maps a byte back to its code point.
- `print_iso8859_15_char(c)` prints one ISO-8859-15 character.
- `utf8_decode(buf, pos)` decodes one UTF-8 character and returns
  `(code_point, next_pos, error)`; it always advances at least one byte.
- `utf8_to_iso(data)` and `iso_to_utf8(data)` convert whole byte strings.

### `x16host.hostfile`

- `X16File(path, mode)` opens a host file. Names ending in `.gz`, `-gz`, `.z`,
  `-z`, `_z` or `.Z` are decompressed into `<path>.tmp` on open and, if
  `write()` changed anything, recompressed on `close()`; the temporary file is
  then removed. It supports `size()`, `seek(pos, origin)` with `SeekOrigin`
  (`SET`, `END`, `CUR`; positions are clamped to the size), `tell()`,
  `read(size)`, `write(data)`, `read_byte()` (None at end of file),
  `write_byte(value)`, and use as a context manager.
- `is_compressed_type(path)` tells whether a name marks a compressed file.
- `find_extension(path, mark)` returns the index of the extension's dot.
- `files_shutdown()` closes every `X16File` still open.

### `x16host.i2c`

- `RingBuffer(size)`: a power-of-two byte ring holding up to `size - 1` values;
  `add`, `next` (0 when empty), `flush`, `len()`.
- `I2CBus(devices)`: the bit-banged bus state machine. Set `bus.port.clk_in`
  and `bus.port.data_in`, call `step()`, and read `bus.port.data_out`. Devices
  are `I2CDevice` objects keyed by 7-bit address; unknown addresses are not
  acknowledged. The bus also owns `kbd_buffer` and `mse_buffer`, which
  `reset_state()` flushes.
- `I2CDevice`: base device that records bytes in `received`, records committed
  bytes in `committed`, and reads as 0xFF. Subclass it for real devices.
- `PS2Mouse(buffer)`: accumulates `move`, `button_down`/`button_up` and
  `set_wheel`, and `send_state()` queues 3- or 4-byte packets (4 when the
  device id is 3). `set_device_id` accepts 0, 3 and 4 (4 becomes 3; anything
  else becomes 0).

### `x16host.keyboard`

- `Scancode`: host keyboard scancodes.
- `keynum_from_scancode(scancode)` returns the key number, or 0.
- `handle_keyboard(buffer, down, scancode, log)` queues the make code, or the
  break code (bit 7 set), into a `RingBuffer`.

### `x16host.joystick`

- `JoystickBank(slots_enabled)`: four SNES-style joystick ports. `add` and
  `remove` controllers by instance id (`remove` raises `KeyError` for an
  unknown id), `button_down`/`button_up` with `ControllerButton` values, and
  drive the lines with `set_latch` and `set_clock`. `data` holds one bit per
  slot, slot 0 in bit 7; buttons are active low and empty slots read as 1.

### `x16host.icon`

- `commander_x16_icon()` returns the 96×96 logo as an `Icon`, whose pixels are
  palette keys; `color_at(x, y)` gives an RGBA tuple and `to_rgba()` the whole
  image as row-major RGBA bytes.

### `x16host.dosfs`

- `HostFS(fsroot, startin)`: a host directory presented as a DOS drive, with a
  `cwd` that never leaves the root. `resolve_path(name, must_exist, wildcard)`
  and `resolve_iso(...)` match names case-insensitively, honour `*` and `?`,
  filter by `WildcardType` (`ALL`, `PRG`, `DIR`) and return
  `Resolved(path, exists)`; failures raise `DosError` with its `code`.
  `reset_cwd()` and `display_cwd()` help with the listing header.
- `parse_dos_filename(name, dirhandling)` turns `@0:NAME`, `//DIR/:NAME` and
  the like into a plain name plus an overwrite flag.
- `DirectoryListing(fs, spec)` iterates over a `$` listing (header, one chunk
  per entry, footer) in BASIC program form, honouring `=T`, `=L`, `=D`, `=P`
  and wildcard patterns; `cwd_listing(fs)` builds the `$=C` listing.
- `error_string(code)`, `case_fold_unicode(cp)` and `case_fold_iso(c)`.

### `x16host.ieee`

- `IEEEDevice(fs, memory, prg_file)`: a disk unit answering `listen`, `talk`,
  `second`, `tksa`, `ciout`, `acptr` (returns `(status, byte)`), `unlsn`,
  `untlk`, and the block calls `macptr`/`mciout` (return
  `(status, bytes_transferred)`). Status values are `EOI` (0x40),
  `READ_TIMEOUT` (0x42), `NOT_HANDLED` (-2) and `UNSUPPORTED` (-3). The command
  channel handles `CD`, `CP`, `I`, `MD`, `RD`, `R:NEW=OLD`, `S:NAME`, `S-8`/`S-9`,
  `P`, `T`, `UI` and `U0>`; its message is in `status`. `init()` closes all
  channels, returns to the start directory and looks for the KERNAL flags byte
  in `memory`.
- `Memory`: banked 64 KiB address spaces with `read(bank, address)` and
  `write(bank, address, value)`.

## Example

```python
from x16host.dosfs import HostFS
from x16host.ieee import IEEEDevice, Memory

fs = HostFS("/path/to/sdcard", None)
device = IEEEDevice(fs, Memory(), None)

# OPEN 15,8,15,"MD:GAMES"
device.listen(0x28)
device.second(0x6F)
for ch in b"MD:GAMES":
    device.ciout(ch)
device.unlsn()
print(device.status)
```

## What it does not do

There is no CPU, memory map, video, sound or window here, and no command to
start a machine. The I2C bus comes with no system controller or clock device,
only the recording `I2CDevice` base; the joystick bank and keyboard take events
that the caller feeds in from whatever input library it uses; the icon is data,
not something shown on screen.

## Running the tests

```
pip install -e .[test]
pytest
```