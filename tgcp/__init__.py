"""Keyboard-driven terminal dashboard for Google Cloud resources."""

__version__ = "0.3.0"
