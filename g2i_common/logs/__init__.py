"""Logging setup for g2i."""

from .core import configure_logging

__all__ = ["configure_logging"]
