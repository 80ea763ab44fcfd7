"""Spa booking backend: availability resolution and booking transactions."""

__version__ = "0.1.0"
