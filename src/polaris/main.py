"""Application entry point for Polaris."""

from __future__ import annotations

import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional, Sequence

from polaris.database import get_data_dir, initialize_database
from polaris.event_bus import get_event_bus, reset_event_bus
from polaris.events import StatusUpdate, ToolCallCompleted, ToolCallFailed
from polaris.exceptions import PolarisError
from polaris.execution import RunManager
from polaris.models import Conversation, Message, MessageStatus, Project
from polaris.services import (
    AgentPipeline,
    AnthropicModel,
    ConversationLedger,
    MessageService,
    PipelineOptions,
    TitleGenerator,
)
from polaris.services.message_service import random_project_name
from polaris.store import LocalBlobStore, TreeStore
from polaris.utils import get_api_key, load_settings, require_api_key

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
LOGGER = logging.getLogger(__name__)


def configure_logging(console_level: int = logging.INFO) -> None:
    """Configure application-wide structured logging outputs."""
    if getattr(configure_logging, "_configured", False):
        return

    logs_root = get_data_dir() / "logs"
    logs_root.mkdir(parents=True, exist_ok=True)
    log_path = logs_root / "polaris.log"

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.DEBUG)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    # The SDK clients log every request at INFO.
    for noisy in ("httpx", "anthropic", "google_genai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    configure_logging._configured = True  # type: ignore[attr-defined]


class ApplicationController:
    """Creates the Polaris components and wires them together."""

    def __init__(self, settings: Optional[Dict[str, Any]] = None) -> None:
        self.settings = settings if settings is not None else load_settings()
        self.store: TreeStore | None = None
        self.ledger: ConversationLedger | None = None
        self.runs: RunManager | None = None
        self.message_service: MessageService | None = None

    def setup(self) -> MessageService:
        """Initialize storage, start the run manager and build the message service."""
        initialize_database()
        LOGGER.info("Database initialized successfully")

        settings = self.settings
        event_bus = get_event_bus()
        self.store = TreeStore(blob_store=LocalBlobStore(get_data_dir() / "blobs"), event_bus=event_bus)
        self.ledger = ConversationLedger(event_bus=event_bus)
        self.runs = RunManager(
            max_retries=settings["max_retries"],
            retry_backoff_seconds=settings["retry_backoff_seconds"],
            event_bus=event_bus,
        )

        title_generator = None
        google_key = get_api_key(settings, "google_api_key")
        if google_key and settings.get("generate_titles", True):
            title_generator = TitleGenerator(api_key=google_key, model_name=settings["title_model"])
        else:
            LOGGER.warning("GOOGLE_API_KEY not set. Conversations keep their default title.")

        pipeline = AgentPipeline(
            self.ledger,
            self.store,
            self._build_model,
            title_generator=title_generator,
            options=PipelineOptions(
                max_iterations=settings["max_iterations"],
                context_message_limit=settings["context_message_limit"],
                settle_delay_seconds=settings["settle_delay_seconds"],
                generate_titles=bool(settings.get("generate_titles", True)),
            ),
            event_bus=event_bus,
        )
        self.message_service = MessageService(
            self.ledger,
            pipeline,
            self.runs,
            preflight=lambda: require_api_key(self.settings, "anthropic_api_key"),
        )
        self.runs.start()
        return self.message_service

    def shutdown(self) -> None:
        if self.message_service is not None:
            self.message_service.shutdown(timeout=10.0)
        elif self.runs is not None:
            self.runs.shutdown(timeout=10.0)
        reset_event_bus()

    def _build_model(self) -> AnthropicModel:
        return AnthropicModel(
            api_key=require_api_key(self.settings, "anthropic_api_key"),
            model_name=self.settings["agent_model"],
            max_tokens=self.settings["max_tokens"],
            temperature=self.settings["temperature"],
        )


def render_tree(store: TreeStore, project_id: int) -> str:
    """Render a project tree as indented text, folders first."""
    lines: list[str] = []
    stack = [(node, 0) for node in reversed(store.list_children(project_id, None))]
    while stack:
        node, depth = stack.pop()
        lines.append(f"{'  ' * depth}{node.name}{'/' if node.is_folder else ''}")
        if node.is_folder:
            stack.extend((child, depth + 1) for child in reversed(store.list_children(project_id, node.id)))
    return "\n".join(lines) if lines else "(empty project)"


def _print_event(event: object) -> None:
    if isinstance(event, ToolCallCompleted):
        print(f"  [tool] {event.tool_name} ok")
    elif isinstance(event, ToolCallFailed):
        print(f"  [tool] {event.tool_name} failed: {event.error}")
    elif isinstance(event, StatusUpdate):
        print(f"  [{event.phase or 'status'}] {event.message}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="polaris", description="Chat with the Polaris coding agent.")
    parser.add_argument("--owner", default="local", help="Owner id used for project ownership checks.")
    parser.add_argument("--project", type=int, help="Continue in an existing project.")
    parser.add_argument("--prompt", help="Create a new project from this prompt before entering the REPL.")
    parser.add_argument("--timeout", type=float, default=600.0, help="Seconds to wait for each agent run.")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG on the console.")
    return parser


def run(argv: Sequence[str] | None = None) -> int:
    """Run the interactive Polaris session."""
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    controller = ApplicationController()
    service = controller.setup()
    get_event_bus().subscribe(ToolCallCompleted, _print_event)
    get_event_bus().subscribe(ToolCallFailed, _print_event)
    get_event_bus().subscribe(StatusUpdate, _print_event)

    try:
        conversation_id = _open_session(controller, service, args)
        if conversation_id is None:
            return 1
        conversation = Conversation.get_by_id(conversation_id)
        project_id = conversation.project_id  # type: ignore[union-attr]
        print("Type a message, /tree, /cancel or /quit.")
        while True:
            try:
                text = input("> ").strip()
            except EOFError:
                break
            if not text:
                continue
            if text in {"/quit", "/exit"}:
                break
            if text == "/tree":
                print(render_tree(controller.store, project_id))  # type: ignore[arg-type]
                continue
            if text == "/cancel":
                cancelled = service.cancel(args.owner, project_id)
                print(f"Cancelled {len(cancelled)} run(s).")
                continue
            try:
                result = service.send_message(args.owner, conversation_id, text)
            except PolarisError as exc:
                print(f"Error: {exc}")
                continue
            _await_reply(controller, result.assistant_message.id, args.timeout)
    finally:
        controller.shutdown()
    return 0


def _open_session(controller: ApplicationController, service: MessageService, args: argparse.Namespace) -> Optional[int]:
    if args.prompt:
        try:
            start = service.create_project_with_prompt(args.owner, args.prompt)
        except PolarisError as exc:
            print(f"Error: {exc}")
            return None
        print(f"Created project {start.project.name} (ID: {start.project.id})")
        _await_reply(controller, start.assistant_message.id, args.timeout)
        return start.conversation.id

    if args.project is not None:
        project = Project.get_by_id(args.project)
        if project is None or project.owner_id != args.owner:
            print(f"Error: Project {args.project} not found")
            return None
    else:
        project = Project.create(args.owner, random_project_name())
        print(f"Created project {project.name} (ID: {project.id})")

    conversations = Conversation.get_by_project(project.id, limit=1)
    conversation = conversations[0] if conversations else controller.ledger.create_conversation(project.id)  # type: ignore[union-attr]
    return conversation.id


def _await_reply(controller: ApplicationController, message_id: int, timeout: float) -> None:
    if not controller.runs.wait(message_id, timeout):  # type: ignore[union-attr]
        print("Still working; the reply will be stored when the run finishes.")
        return
    message = Message.get_by_id(message_id)
    if message is None:
        return
    if message.status == MessageStatus.CANCELLED:
        print("(cancelled)")
    else:
        print(message.content)


def main() -> None:
    """Launch Polaris."""
    try:
        exit_code = run()
    except KeyboardInterrupt:
        exit_code = 130
    except Exception:  # noqa: BLE001
        logging.getLogger("polaris").exception("Polaris terminated unexpectedly")
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
