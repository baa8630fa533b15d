"""Planwise subscription billing core."""

__version__ = "1.0.0"
