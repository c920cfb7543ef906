"""API routers package."""

from src.routers import banking

__all__ = ["banking"]
