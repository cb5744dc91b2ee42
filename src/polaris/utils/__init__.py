"""Utility modules for Polaris."""

from .settings import get_api_key, load_settings, require_api_key, save_settings

__all__ = [
    "get_api_key",
    "load_settings",
    "require_api_key",
    "save_settings",
]
