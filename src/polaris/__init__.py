"""Polaris: a coding agent working on per-project virtual file trees."""

__version__ = "0.1.0"
