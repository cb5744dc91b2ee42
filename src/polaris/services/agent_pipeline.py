"""Step-wise coding agent run for one assistant message.

Each run is keyed by the assistant placeholder's id. Work is split into
durable steps so a retried run replays recorded model outputs and tool
results instead of repeating them:

``wait-for-db-sync`` -> ``get-conversation`` -> ``get-recent-messages`` ->
optional ``generate-title`` / ``update-conversation-title`` ->
``agent-iteration-N`` and ``tool-N-I`` per loop turn ->
``update-assistant-message``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence

from polaris import config
from polaris.event_bus import EventBus, get_event_bus
from polaris.events import StatusUpdate
from polaris.exceptions import ConversationNotFoundError
from polaris.execution.steps import StepContext
from polaris.prompts import CODING_AGENT_SYSTEM_PROMPT, CURRENT_REQUEST_FOOTER, HISTORY_HEADER
from polaris.services.ledger import ConversationLedger
from polaris.services.model_client import (
    ModelCapability,
    ModelOutput,
    TextOutput,
    ToolCallOutput,
    output_from_dict,
    output_to_dict,
)
from polaris.services.title_generator import TitleCapability
from polaris.store.tree_store import TreeStore
from polaris.tools.tool_adapter import ToolAdapter, is_error_result
from polaris.tools.web_tools import UrlScraper

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RunRequest:
    """Identity of one agent run and the user text it answers."""

    message_id: int
    conversation_id: int
    project_id: int
    message: str


@dataclass(frozen=True, slots=True)
class PipelineOptions:
    max_iterations: int = config.DEFAULT_MAX_ITERATIONS
    context_message_limit: int = config.DEFAULT_CONTEXT_MESSAGE_LIMIT
    settle_delay_seconds: float = config.DEFAULT_SETTLE_DELAY_SECONDS
    generate_titles: bool = True


def build_system_prompt(history: Sequence[Mapping[str, Any]], exclude_message_id: int) -> str:
    """Append prior conversation turns to the coding agent prompt.

    The run's own placeholder and blank messages are left out. Without any
    remaining history the base prompt is returned unchanged.
    """
    context_messages = [
        item
        for item in history
        if item.get("id") != exclude_message_id and str(item.get("content") or "").strip()
    ]
    if not context_messages:
        return CODING_AGENT_SYSTEM_PROMPT

    history_text = "\n\n".join(f"{str(item['role']).upper()}: {item['content']}" for item in context_messages)
    return f"{CODING_AGENT_SYSTEM_PROMPT}\n\n{HISTORY_HEADER}\n{history_text}\n\n{CURRENT_REQUEST_FOOTER}"


def _assistant_blocks(outputs: Sequence[ModelOutput]) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    for output in outputs:
        if isinstance(output, TextOutput):
            blocks.append({"type": "text", "text": output.content})
        else:
            blocks.append({"type": "tool_use", "id": output.id, "name": output.name, "input": dict(output.arguments)})
    return blocks


class AgentPipeline:
    """Runs the bounded tool-calling loop for a user message."""

    def __init__(
        self,
        ledger: ConversationLedger,
        store: TreeStore,
        model_provider: Callable[[], ModelCapability],
        *,
        title_generator: TitleCapability | None = None,
        options: PipelineOptions | None = None,
        scraper: UrlScraper | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._ledger = ledger
        self._store = store
        self._model_provider = model_provider
        self._title_generator = title_generator
        self._options = options or PipelineOptions()
        self._scraper = scraper
        self._event_bus = event_bus or get_event_bus()

    def run(self, ctx: StepContext, request: RunRequest) -> str:
        """Execute the run and return the final assistant text.

        Raises:
            ConfigurationMissingError: The model capability is not configured.
            ConversationNotFoundError: The conversation vanished.
            RunCancelledError: The run observed its cancel signal.
        """
        model = self._model_provider()
        run_id = request.message_id
        LOGGER.info(
            "Agent run started | run=%s | conversation=%s | attempt=%s",
            run_id,
            request.conversation_id,
            ctx.attempt,
        )
        self._status("Preparing context", "run.start", run_id)
        ctx.sleep("wait-for-db-sync", self._options.settle_delay_seconds)

        conversation = ctx.run("get-conversation", lambda: self._load_conversation(request.conversation_id))
        if conversation is None:
            raise ConversationNotFoundError("Conversation not found", {"conversation_id": request.conversation_id})

        history = ctx.run(
            "get-recent-messages",
            lambda: [
                message.to_dict()
                for message in self._ledger.recent_messages(
                    request.conversation_id, self._options.context_message_limit
                )
            ],
        )
        system_prompt = build_system_prompt(history, run_id)

        if conversation["title"] == config.DEFAULT_CONVERSATION_TITLE:
            self._maybe_generate_title(ctx, request)

        final_text = self._run_loop(ctx, request, model, system_prompt)

        applied = ctx.run(
            "update-assistant-message",
            lambda: self._ledger.set_message_content(run_id, final_text),
        )
        if not applied:
            LOGGER.info("Final answer discarded, message no longer processing | run=%s", run_id)
        self._status("Response ready", "run.complete", run_id)
        return final_text

    def handle_failure(self, request: RunRequest, exc: BaseException) -> None:
        """Replace the placeholder with the generic apology (guarded like the normal write)."""
        LOGGER.error("Agent run failed | run=%s | error=%s", request.message_id, exc)
        self._ledger.set_message_content(request.message_id, config.APOLOGY_RESPONSE)
        self._status("Something went wrong", "run.error", request.message_id)

    def _run_loop(
        self,
        ctx: StepContext,
        request: RunRequest,
        model: ModelCapability,
        system_prompt: str,
    ) -> str:
        run_id = request.message_id
        adapter = ToolAdapter(
            self._store,
            request.project_id,
            run_id=run_id,
            scraper=self._scraper,
            event_bus=self._event_bus,
        )
        tools = adapter.tool_schemas()
        transcript: list[dict[str, Any]] = [{"role": "user", "content": request.message}]
        last_text: Optional[str] = None

        for iteration in range(1, self._options.max_iterations + 1):
            self._status(f"Thinking (step {iteration})", "run.iteration", run_id)
            recorded = ctx.run(
                f"agent-iteration-{iteration}",
                lambda: [output_to_dict(output) for output in model.complete(system_prompt, transcript, tools)],
            )
            outputs = [output_from_dict(item) for item in recorded]
            text = "".join(output.content for output in outputs if isinstance(output, TextOutput))
            calls = [output for output in outputs if isinstance(output, ToolCallOutput)]
            if text:
                last_text = text

            if not calls:
                if text:
                    LOGGER.info("Agent loop finished | run=%s | iterations=%d", run_id, iteration)
                    return text
                LOGGER.warning("Model returned no output | run=%s | iteration=%d", run_id, iteration)
                continue

            transcript.append({"role": "assistant", "content": _assistant_blocks(outputs)})
            tool_results: list[dict[str, Any]] = []
            for index, call in enumerate(calls, start=1):
                result = ctx.run(
                    f"tool-{iteration}-{index}",
                    lambda: adapter.execute(call.name, call.arguments),
                )
                tool_results.append(
                    {
                        "type": "tool_result",
                        "tool_use_id": call.id,
                        "content": result,
                        "is_error": is_error_result(result),
                    }
                )
            transcript.append({"role": "user", "content": tool_results})

        LOGGER.warning("Agent loop hit iteration cap | run=%s | cap=%d", run_id, self._options.max_iterations)
        return last_text or config.FALLBACK_RESPONSE

    def _maybe_generate_title(self, ctx: StepContext, request: RunRequest) -> None:
        if self._title_generator is None or not self._options.generate_titles:
            return
        title = ctx.run("generate-title", lambda: self._generate_title(request))
        if title:
            ctx.run(
                "update-conversation-title",
                lambda: self._ledger.update_title(request.conversation_id, title).title,
            )

    def _generate_title(self, request: RunRequest) -> str:
        try:
            return self._title_generator.generate_title(request.message)  # type: ignore[union-attr]
        except Exception as exc:  # noqa: BLE001
            # Titles are cosmetic; the run continues under the default title.
            LOGGER.warning("Title generation failed | run=%s | error=%s", request.message_id, exc)
            return ""

    def _load_conversation(self, conversation_id: int) -> Optional[dict[str, Any]]:
        conversation = self._ledger.get_conversation(conversation_id)
        return conversation.to_dict() if conversation else None

    def _status(self, message: str, phase: str, run_id: int) -> None:
        self._event_bus.emit(StatusUpdate(message=message, phase=phase, run_id=run_id))


__all__ = ["AgentPipeline", "PipelineOptions", "RunRequest", "build_system_prompt"]
