"""Concurrent fetch-and-extract runs over a fixed set of HTTP requests."""

__version__ = "0.1.0"
