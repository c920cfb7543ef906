"""Utility functions and helpers."""

from .exceptions import raise_unauthorized

__all__ = ["raise_unauthorized"]
