"""Language-model capability used by the agent loop.

The loop only sees :class:`ModelOutput` items. Conversation turns passed to
``complete`` use the Anthropic Messages shape (``{"role", "content"}`` with
``text``, ``tool_use`` and ``tool_result`` blocks).
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Mapping, Protocol, Sequence, Union

import anthropic

from polaris.config import DEFAULT_MAX_TOKENS
from polaris.exceptions import ConfigurationMissingError, ModelCapabilityError
from polaris.utils.prompt_caching import build_cached_system_and_tools

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TextOutput:
    """Text produced by the model."""

    content: str
    role: str = "assistant"
    type: str = field(default="text", init=False)


@dataclass(frozen=True, slots=True)
class ToolCallOutput:
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)
    type: str = field(default="tool_call", init=False)


ModelOutput = Union[TextOutput, ToolCallOutput]


def output_to_dict(output: ModelOutput) -> dict[str, Any]:
    payload = asdict(output)
    if isinstance(output, ToolCallOutput):
        payload["arguments"] = dict(output.arguments)
    return payload


def output_from_dict(payload: Mapping[str, Any]) -> ModelOutput:
    """Rebuild a model output recorded with :func:`output_to_dict`."""
    kind = payload.get("type")
    if kind == "text":
        return TextOutput(content=payload.get("content", ""), role=payload.get("role", "assistant"))
    if kind == "tool_call":
        return ToolCallOutput(
            id=payload["id"],
            name=payload["name"],
            arguments=dict(payload.get("arguments") or {}),
        )
    raise ValueError(f"Unknown model output type: {kind!r}")


class ModelCapability(Protocol):
    """One inference request: system prompt, conversation turns, tool schemas."""

    def complete(
        self,
        system: str,
        messages: Sequence[Mapping[str, Any]],
        tools: Sequence[Mapping[str, Any]],
    ) -> list[ModelOutput]:
        ...


class AnthropicModel:
    """ModelCapability backed by the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        model_name: str,
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = 0.0,
        client: anthropic.Anthropic | None = None,
    ) -> None:
        if not api_key and client is None:
            raise ConfigurationMissingError("ANTHROPIC_API_KEY is not configured")
        self.model_name = model_name
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client = client or anthropic.Anthropic(api_key=api_key)

    def complete(
        self,
        system: str,
        messages: Sequence[Mapping[str, Any]],
        tools: Sequence[Mapping[str, Any]],
    ) -> list[ModelOutput]:
        cached_system, cached_tools = build_cached_system_and_tools(
            system_prompt=system,
            tools=[dict(tool) for tool in tools],
        )
        started = time.perf_counter()
        try:
            response = self._client.messages.create(
                model=self.model_name,
                system=cached_system,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                tools=cached_tools,
                messages=list(messages),
            )
        except anthropic.AuthenticationError as exc:
            raise ConfigurationMissingError("Anthropic rejected the configured API key") from exc
        except anthropic.APIError as exc:
            LOGGER.warning("Model request failed | model=%s | error=%s", self.model_name, exc)
            raise ModelCapabilityError("Model request failed", {"model": self.model_name, "error": str(exc)}) from exc

        outputs = self._convert(response.content)
        LOGGER.info(
            "Model request completed | model=%s | stop_reason=%s | outputs=%d | duration=%.2fs",
            self.model_name,
            getattr(response, "stop_reason", None),
            len(outputs),
            time.perf_counter() - started,
        )
        return outputs

    @staticmethod
    def _convert(content: Sequence[Any]) -> list[ModelOutput]:
        outputs: list[ModelOutput] = []
        for block in content:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                text = block.text or ""
                if text:
                    outputs.append(TextOutput(content=text))
            elif block_type == "tool_use":
                outputs.append(
                    ToolCallOutput(id=block.id, name=block.name or "tool", arguments=dict(block.input or {}))
                )
        return outputs


__all__ = [
    "AnthropicModel",
    "ModelCapability",
    "ModelOutput",
    "TextOutput",
    "ToolCallOutput",
    "output_from_dict",
    "output_to_dict",
]
