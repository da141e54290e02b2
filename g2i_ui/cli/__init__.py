"""Command line interface for g2i."""

from g2i_ui.cli.main import app

__all__ = ["app"]
