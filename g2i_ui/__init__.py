"""User-facing entry points for g2i."""
