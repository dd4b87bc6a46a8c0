"""Incremental image dimension extraction into a key-value cache."""

__version__ = "0.1.0"
