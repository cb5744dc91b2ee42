"""Unit tests for the model and title capabilities with stubbed SDK clients."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import anthropic
import httpx
import pytest

from polaris.exceptions import ConfigurationMissingError, ModelCapabilityError
from polaris.services.model_client import (
    AnthropicModel,
    TextOutput,
    ToolCallOutput,
    output_from_dict,
    output_to_dict,
)
from polaris.services.title_generator import TitleGenerator, clean_title
from polaris.utils.prompt_caching import build_cached_system_and_tools

_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


class FakeMessages:
    def __init__(self, response: Any = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.kwargs: dict[str, Any] = {}

    def create(self, **kwargs: Any) -> Any:
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.response


def _client(messages: FakeMessages) -> Any:
    return SimpleNamespace(messages=messages)


def test_response_blocks_become_model_outputs() -> None:
    response = SimpleNamespace(
        stop_reason="tool_use",
        content=[
            SimpleNamespace(type="text", text="Let me look."),
            SimpleNamespace(type="text", text=""),
            SimpleNamespace(type="tool_use", id="toolu_1", name="listFiles", input={}),
        ],
    )
    messages = FakeMessages(response=response)
    model = AnthropicModel("key", "claude-test", client=_client(messages))

    outputs = model.complete("system", [{"role": "user", "content": "hi"}], [{"name": "listFiles"}])

    assert outputs == [TextOutput(content="Let me look."), ToolCallOutput(id="toolu_1", name="listFiles")]
    assert messages.kwargs["model"] == "claude-test"
    assert messages.kwargs["tools"][-1]["cache_control"] == {"type": "ephemeral"}
    assert messages.kwargs["system"] == "system"


def test_transient_api_errors_are_model_capability_errors() -> None:
    error = anthropic.APIConnectionError(request=_REQUEST)
    model = AnthropicModel("key", "claude-test", client=_client(FakeMessages(error=error)))

    with pytest.raises(ModelCapabilityError):
        model.complete("system", [], [])


def test_rejected_key_is_a_configuration_error() -> None:
    error = anthropic.AuthenticationError(
        "invalid x-api-key", response=httpx.Response(401, request=_REQUEST), body=None
    )
    model = AnthropicModel("key", "claude-test", client=_client(FakeMessages(error=error)))

    with pytest.raises(ConfigurationMissingError):
        model.complete("system", [], [])


def test_missing_key_is_rejected_up_front() -> None:
    with pytest.raises(ConfigurationMissingError):
        AnthropicModel("", "claude-test")


def test_outputs_survive_checkpoint_serialization() -> None:
    call = ToolCallOutput(id="t1", name="readFiles", arguments={"fileIds": ["1"]})

    assert output_from_dict(output_to_dict(call)) == call
    with pytest.raises(ValueError):
        output_from_dict({"type": "image"})


def test_large_system_prompt_is_cache_marked() -> None:
    system, tools = build_cached_system_and_tools("x" * 8000, [])

    assert system[0]["cache_control"] == {"type": "ephemeral"}
    assert tools == []


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('"Build A Todo App."', "Build A Todo App"),
        ("  Portfolio\n Site  ", "Portfolio Site"),
        ("", ""),
    ],
)
def test_clean_title(raw: str, expected: str) -> None:
    assert clean_title(raw) == expected


def test_title_generator_uses_system_instruction() -> None:
    captured: dict[str, Any] = {}

    def generate_content(**kwargs: Any) -> Any:
        captured.update(kwargs)
        return SimpleNamespace(text="'Weather Dashboard'")

    generator = TitleGenerator(api_key="test-key", model_name="gemini-test")
    generator._client = SimpleNamespace(models=SimpleNamespace(generate_content=generate_content))

    assert generator.generate_title("build a weather dashboard") == "Weather Dashboard"
    assert captured["model"] == "gemini-test"
    assert captured["contents"] == "build a weather dashboard"
    assert "title" in captured["config"].system_instruction.lower()
