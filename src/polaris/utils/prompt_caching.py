"""
Anthropic prompt caching helpers for the agent loop.

The system prompt and tool schemas are identical across the iterations of a
run, so both are marked ``ephemeral`` and re-read from the cache on every
follow-up request of the loop. Blocks below the minimum cacheable size are
sent unmarked.
"""
from typing import Any

MIN_CACHEABLE_TOKENS = 1024


def estimate_token_count(text: str) -> int:
    """Rough token estimate (about four characters per token)."""
    return len(text) // 4


def is_cacheable(text: str, min_tokens: int = MIN_CACHEABLE_TOKENS) -> bool:
    return estimate_token_count(text) >= min_tokens


def build_cached_system_prompt(prompt: str) -> list[dict[str, Any]] | str:
    """Wrap a system prompt in a cache-marked text block when it is large enough."""
    if not is_cacheable(prompt):
        return prompt
    return [
        {
            "type": "text",
            "text": prompt,
            "cache_control": {"type": "ephemeral"},
        }
    ]


def mark_tools_for_caching(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Return a copy of ``tools`` whose last schema carries ``cache_control``.

    The marker on the final tool caches the whole tools array.
    """
    if not tools:
        return tools
    marked = list(tools)
    last_tool = dict(marked[-1])
    last_tool["cache_control"] = {"type": "ephemeral"}
    marked[-1] = last_tool
    return marked


def build_cached_system_and_tools(
    system_prompt: str,
    tools: list[dict[str, Any]],
) -> tuple[list[dict[str, Any]] | str, list[dict[str, Any]]]:
    """Prepare both the system prompt and the tool list for a cached request."""
    return build_cached_system_prompt(system_prompt), mark_tools_for_caching(tools)
