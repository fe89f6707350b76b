"""Music library backend with range-addressable audio streaming."""

__version__ = "0.1.0"
