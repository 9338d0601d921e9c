"""Visa appointment slot monitor."""

__version__ = "0.7.0"
