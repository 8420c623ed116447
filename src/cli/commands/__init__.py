"""CLI command groups."""

__all__ = ["evaluate", "model", "shared"]
