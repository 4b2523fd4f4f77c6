"""Terminal internet-radio client backed by mpv."""

__version__ = "0.3.0"
