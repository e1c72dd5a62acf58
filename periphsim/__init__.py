"""Peripheral device models, pixel conversion and host-side viewers for a simulated platform."""

__version__ = "0.1.0"
__all__ = [
    "chronograph",
    "conv",
    "fb_viewer",
    "timer",
    "tty",
    "tty_serial",
    "tty_term_rw",
    "xramdac",
]