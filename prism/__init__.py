"""Prism framework question merger."""

__version__ = "0.1.0"
