"""Conversation titles from the first user message, via Gemini."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Protocol

from google import genai
from google.genai import types

from polaris.prompts import TITLE_GENERATOR_SYSTEM_PROMPT
from polaris.utils.settings import DEFAULT_TITLE_MODEL

LOGGER = logging.getLogger(__name__)

_MAX_TITLE_CHARS = 120


class TitleCapability(Protocol):
    def generate_title(self, message: str) -> str:
        ...


def clean_title(raw: str) -> str:
    """Strip whitespace, wrapping quotes and trailing punctuation from a model title."""
    title = " ".join((raw or "").split())
    title = title.strip("\"'`")
    title = title.rstrip(".!?;:,")
    return title[:_MAX_TITLE_CHARS].strip()


@dataclass
class TitleGenerator:
    """Generates short conversation titles with a lightweight Gemini model."""

    api_key: str
    model_name: str = DEFAULT_TITLE_MODEL
    _client: genai.Client = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Initialize the Gemini client."""
        self._client = genai.Client(api_key=self.api_key)

    def generate_title(self, message: str) -> str:
        """Return a cleaned title, or an empty string when the model gave none."""
        started = time.perf_counter()
        response = self._client.models.generate_content(
            model=self.model_name,
            contents=message,
            config=types.GenerateContentConfig(
                system_instruction=TITLE_GENERATOR_SYSTEM_PROMPT,
                temperature=0.2,
            ),
        )
        title = clean_title(response.text or "")
        LOGGER.info(
            "Title generated | model=%s | chars=%d | duration=%.2fs",
            self.model_name,
            len(title),
            time.perf_counter() - started,
        )
        return title


__all__ = ["TitleCapability", "TitleGenerator", "clean_title"]
