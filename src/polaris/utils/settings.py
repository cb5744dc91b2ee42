import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from polaris import config
from polaris.database import get_data_dir
from polaris.exceptions import ConfigurationMissingError

logger = logging.getLogger(__name__)

LATEST_CLAUDE_SONNET_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_AGENT_MODEL = LATEST_CLAUDE_SONNET_MODEL
DEFAULT_TITLE_MODEL = "gemini-2.5-flash"
DEFAULT_TEMPERATURE = 0.0
MODEL_MIGRATIONS: Dict[str, str] = {
    "claude-3-sonnet-20240229": LATEST_CLAUDE_SONNET_MODEL,
}

# Secrets resolved from the environment before the settings file.
API_KEY_ENV_VARS: Dict[str, str] = {
    "anthropic_api_key": "ANTHROPIC_API_KEY",
    "google_api_key": "GOOGLE_API_KEY",
}


def _normalize_model_setting(settings: Dict[str, Any], key: str, default: str) -> bool:
    """
    Normalize deprecated, empty, or whitespace-only model identifiers.

    Returns:
        bool: True if the setting was changed.
    """
    value = settings.get(key)
    if isinstance(value, str):
        value = value.strip()

    if not value:
        settings[key] = default
        return True

    replacement = MODEL_MIGRATIONS.get(value)
    if replacement and replacement != value:
        logger.info("Upgrading %s model from %s to %s", key, value, replacement)
        settings[key] = replacement
        return True

    if settings.get(key) != value:
        settings[key] = value
        return True
    return False


def _ensure_int_setting(
    settings: Dict[str, Any],
    key: str,
    default: int,
    *,
    minimum: int,
    maximum: int,
) -> bool:
    """Ensure an integer configuration value stays within a safe range."""
    value = settings.get(key, default)
    try:
        value = int(value)
    except (TypeError, ValueError):
        value = default

    value = max(minimum, min(maximum, value))

    if settings.get(key) != value:
        settings[key] = value
        return True
    return False


def _ensure_float_setting(
    settings: Dict[str, Any],
    key: str,
    default: float,
    *,
    minimum: float,
    maximum: float,
) -> bool:
    """Ensure a float configuration value stays within a safe range."""
    value = settings.get(key, default)
    try:
        value = float(value)
    except (TypeError, ValueError):
        value = default

    value = max(minimum, min(maximum, value))

    if settings.get(key) != value:
        settings[key] = value
        return True
    return False


def _ensure_bool_setting(settings: Dict[str, Any], key: str, default: bool) -> bool:
    """Ensure a boolean configuration value."""
    value = settings.get(key, default)
    if isinstance(value, bool):
        normalized = value
    elif isinstance(value, str):
        normalized = value.strip().lower() in {"1", "true", "yes", "on"}
    else:
        normalized = bool(value)

    if settings.get(key) != normalized:
        settings[key] = normalized
        return True
    return False


def _default_settings() -> Dict[str, Any]:
    """Return a fresh copy of default settings."""
    return {
        "agent_model": DEFAULT_AGENT_MODEL,
        "title_model": DEFAULT_TITLE_MODEL,
        "anthropic_api_key": "",
        "google_api_key": "",
        "max_tokens": config.DEFAULT_MAX_TOKENS,
        "temperature": DEFAULT_TEMPERATURE,
        "max_iterations": config.DEFAULT_MAX_ITERATIONS,
        "context_message_limit": config.DEFAULT_CONTEXT_MESSAGE_LIMIT,
        "settle_delay_seconds": config.DEFAULT_SETTLE_DELAY_SECONDS,
        "max_retries": config.DEFAULT_MAX_RETRIES,
        "retry_backoff_seconds": config.DEFAULT_RETRY_BACKOFF_SECONDS,
        "generate_titles": True,
    }


def normalize_settings(settings: Dict[str, Any]) -> bool:
    """Clamp and coerce every known setting in place; returns True when anything changed."""
    updated = False
    updated |= _normalize_model_setting(settings, "agent_model", DEFAULT_AGENT_MODEL)
    updated |= _normalize_model_setting(settings, "title_model", DEFAULT_TITLE_MODEL)
    updated |= _ensure_int_setting(
        settings,
        "max_tokens",
        config.DEFAULT_MAX_TOKENS,
        minimum=256,
        maximum=64_000,
    )
    updated |= _ensure_float_setting(
        settings,
        "temperature",
        DEFAULT_TEMPERATURE,
        minimum=0.0,
        maximum=1.0,
    )
    updated |= _ensure_int_setting(
        settings,
        "max_iterations",
        config.DEFAULT_MAX_ITERATIONS,
        minimum=1,
        maximum=100,
    )
    updated |= _ensure_int_setting(
        settings,
        "context_message_limit",
        config.DEFAULT_CONTEXT_MESSAGE_LIMIT,
        minimum=0,
        maximum=100,
    )
    updated |= _ensure_float_setting(
        settings,
        "settle_delay_seconds",
        config.DEFAULT_SETTLE_DELAY_SECONDS,
        minimum=0.0,
        maximum=60.0,
    )
    updated |= _ensure_int_setting(
        settings,
        "max_retries",
        config.DEFAULT_MAX_RETRIES,
        minimum=0,
        maximum=10,
    )
    updated |= _ensure_float_setting(
        settings,
        "retry_backoff_seconds",
        config.DEFAULT_RETRY_BACKOFF_SECONDS,
        minimum=0.0,
        maximum=60.0,
    )
    updated |= _ensure_bool_setting(settings, "generate_titles", True)
    for key in API_KEY_ENV_VARS:
        if not isinstance(settings.get(key), str):
            settings[key] = ""
            updated = True
    return updated


def get_settings_path() -> Path:
    """
    Determines the appropriate path for the settings file.

    Returns:
        Path: The path to the settings.json file inside the data directory.
    """
    return get_data_dir() / "settings.json"


def load_settings() -> Dict[str, Any]:
    """
    Loads settings from the settings file.

    If the file doesn't exist or is invalid, returns default settings.
    Normalized values are written back so the file stays clean.

    Returns:
        Dict[str, Any]: A dictionary containing the application settings.
    """
    settings_path = get_settings_path()
    if not settings_path.exists():
        logger.info("Settings file not found. Using default settings.")
        return _default_settings()

    try:
        with open(settings_path, "r", encoding="utf-8") as f:
            settings = json.load(f)
    except (json.JSONDecodeError, IOError) as exc:
        logger.error("Failed to load or parse settings file: %s. Using defaults.", exc)
        return _default_settings()

    if not isinstance(settings, dict):
        logger.error("Settings file does not contain an object. Using defaults.")
        return _default_settings()

    for key, value in _default_settings().items():
        settings.setdefault(key, value)

    if normalize_settings(settings):
        save_settings(settings)
    return settings


def save_settings(settings: Dict[str, Any]) -> None:
    """
    Saves the given settings to the settings file.

    Args:
        settings (Dict[str, Any]): A dictionary containing the settings to save.
    """
    settings_path = get_settings_path()
    settings_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(settings_path, "w", encoding="utf-8") as f:
            json.dump(settings, f, indent=4)
        logger.info("Settings successfully saved to %s", settings_path)
    except IOError as exc:
        logger.error("Failed to save settings to %s: %s", settings_path, exc)


def get_api_key(settings: Dict[str, Any], key: str) -> str:
    """Return an API key, preferring the environment over the settings file."""
    env_var = API_KEY_ENV_VARS.get(key)
    if env_var:
        from_env = os.getenv(env_var, "").strip()
        if from_env:
            return from_env
    value = settings.get(key) or ""
    return value.strip() if isinstance(value, str) else ""


def require_api_key(settings: Dict[str, Any], key: str) -> str:
    """
    Return a configured API key or fail.

    Raises:
        ConfigurationMissingError: If neither the environment nor the settings define it.
    """
    value = get_api_key(settings, key)
    if not value:
        raise ConfigurationMissingError(
            f"{API_KEY_ENV_VARS.get(key, key)} is not configured",
            {"setting": key},
        )
    return value
