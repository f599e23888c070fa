"""Caching gateway in front of a headless-browser rendering service."""

__version__ = "0.1.0"
