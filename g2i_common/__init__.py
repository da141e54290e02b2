"""Shared helpers for g2i."""

from g2i_common.api import StopToken, configure_logging

__all__ = ["StopToken", "configure_logging"]
