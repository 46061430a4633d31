"""Paperboy: local news feed discovery with a thread-safe UI core."""

from paperboy.__version__ import __version__
