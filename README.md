# periphsim

Models of the memory-mapped peripherals of a simulated platform, together with
the host-side programs that display what the simulated hardware produces.

## Installing

```
pip install .
```

The viewers draw with `pygame`, which is installed as a dependency. To run the
tests:

```
pip install ".[test]"
pytest
```

## Device models

Each device serves bus accesses given as a byte offset, a byte-enable mask and
the bus data (up to eight bytes, read as two little-endian 32-bit words). Reads
return eight bytes in the same layout. An access the device does not decode
raises `periphsim.timer.DeviceAccessError`.

- `periphsim.timer.TimerDevice`: a periodic or one-shot timer with an `irq`
  attribute. Writing a divisor to offset `0x00` restarts it with a period of
  that many nanoseconds; writing `0xFFFFFFFF` there acknowledges a raised
  interrupt. A non-zero write to offset `0x08` selects one-shot mode. Reading
  offset `0x00` with byte enable `0x0F` returns 1. Simulated time moves only
  through `advance(ns)`, which returns the interrupt level.
- `periphsim.tty.TtyDevice`: up to eight output-only consoles. A write at
  offset 0 with a single byte-enable bit set sends the byte in that lane to the
  console with the same number. Pass `outputs` (one binary stream per console)
  to write to streams of your own; otherwise each console is an `xterm`
  running a `tty_term <fd>` program, which this package does not provide.
- `periphsim.tty_serial.TtySerialDevice`: a serial console with a 256-byte
  receive ring (`SerialState`), an interrupt-enable mask, an interrupt level
  and an `irq_line` property. Characters are queued with `receive(byte)` or
  picked up from the input descriptor with `poll()`. Pass `output` and/or
  `input_fd` to use your own streams; with neither, an `xterm` running
  `tty_term_rw <out> <in>` is started (see `periphsim-term-rw` below, which
  must then be reachable under that name).

Both console devices have `close()` and work as context managers.

```python
from periphsim.timer import TimerDevice

timer = TimerDevice()
timer.write(0x00, 0x0F, (1000).to_bytes(4, "little"))
assert timer.advance(1000) is True        # interrupt raised after one period
timer.write(0x00, 0x0F, (0xFFFFFFFF).to_bytes(4, "little"))  # acknowledge
assert timer.irq is False
```

## Pixel conversion

`periphsim.conv` turns frames in RGB, BGR, ARGB/BGRA and the YUV layouts YVYU
(packed 4:2:2), YV16 (planar 4:2:2), YV12 and IYUV (planar 4:2:0) into 32-bit
pixels in A,R,G,B or B,G,R,A byte order, with a zero alpha byte, for example
`convert_yv12_bgra(frame, width, height)`. `yuv2rgb(y, u, v)` converts one
sample with integer BT.601 coefficients. A source buffer that is too short
raises `ValueError`.

`periphsim.fb_viewer` describes the frame layouts (`FrameMode`,
`frame_size`, `mode_name`, `yuv_format`) and picks the converter for a display
(`select_converter(mode, PixelFormat(...), big_endian)`).

## Programs

Each program reads its start-up configuration from standard input as a binary
record written by the process that launches it.

- `periphsim-fbviewer`: reads two keys, width, height and mode (native 32-bit
  words) and an 80-byte title, attaches to the shared memory segments named
  `periphsim-<key as 8 hex digits>`, waits for one more byte on standard input
  and then shows the next of the two buffers on every `SIGUSR1`. `GREY` and
  `NONE` frames have no converter and are refused.
- `periphsim-ramdac`: the same, with a component count (1 for grey, 3 for RGB)
  in place of the mode; redraws on every `SIGUSR1`.
- `periphsim-chronograph`: reads a title, a graph count (bit `0x80` adds a
  graph of the mean of every value), the interval between samples in
  milliseconds, per-graph curve counts and value ranges and one label per
  shown graph, then plots the one-byte-per-curve samples that follow until the
  stream closes. `read_header`, `read_labels`, `grid_labels` and
  `ChronographModel` are usable without a window.
- `periphsim-term-rw`: puts the terminal into raw mode and relays bytes
  between it and a pair of pipe descriptors:

```
periphsim-term-rw <input pipe> <output pipe>
```

## What is not included

There is no simulation kernel or bus: the device models are driven by calling
their methods, and nothing here creates the shared memory segments or sends
the configuration records and refresh signals the viewers wait for.