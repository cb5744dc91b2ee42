"""Constants shared across Polaris services."""

from __future__ import annotations

DEFAULT_CONVERSATION_TITLE: str = "New conversation"

# Agent pipeline
DEFAULT_CONTEXT_MESSAGE_LIMIT: int = 10
DEFAULT_MAX_ITERATIONS: int = 20
DEFAULT_SETTLE_DELAY_SECONDS: float = 5.0
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_BACKOFF_SECONDS: float = 2.0
DEFAULT_FINISHED_RUN_HISTORY: int = 256
DEFAULT_MAX_TOKENS: int = 8192

FALLBACK_RESPONSE: str = "I processed your request. Let me know if you need anything else!"
APOLOGY_RESPONSE: str = "My apologies, something went wrong while processing this message."

# Tool adapter
SCRAPE_TIMEOUT_SECONDS: float = 15.0
SCRAPE_MAX_CHARS: int = 20_000
TOOL_EVENT_PREVIEW_CHARS: int = 320

# Project naming for create-with-prompt
PROJECT_NAME_WORDS: dict[str, tuple[str, ...]] = {
    "adjectives": (
        "brave", "calm", "eager", "fancy", "gentle", "happy", "jolly", "kind",
        "lively", "mighty", "nimble", "proud", "quiet", "swift", "witty", "zesty",
    ),
    "colors": (
        "amber", "azure", "coral", "crimson", "emerald", "gold", "indigo", "ivory",
        "jade", "lavender", "magenta", "olive", "plum", "ruby", "silver", "teal",
    ),
    "animals": (
        "badger", "crane", "dolphin", "falcon", "gecko", "heron", "ibis", "jaguar",
        "koala", "lynx", "marmot", "otter", "panda", "quokka", "raven", "walrus",
    ),
}

__all__ = [
    "DEFAULT_CONVERSATION_TITLE",
    "DEFAULT_CONTEXT_MESSAGE_LIMIT",
    "DEFAULT_MAX_ITERATIONS",
    "DEFAULT_SETTLE_DELAY_SECONDS",
    "DEFAULT_FINISHED_RUN_HISTORY",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_BACKOFF_SECONDS",
    "DEFAULT_MAX_TOKENS",
    "FALLBACK_RESPONSE",
    "APOLOGY_RESPONSE",
    "SCRAPE_TIMEOUT_SECONDS",
    "SCRAPE_MAX_CHARS",
    "TOOL_EVENT_PREVIEW_CHARS",
    "PROJECT_NAME_WORDS",
]
