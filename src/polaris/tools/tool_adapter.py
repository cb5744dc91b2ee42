"""Dispatch of model tool calls to validated handlers."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Type

from pydantic import BaseModel, ValidationError

from polaris.config import TOOL_EVENT_PREVIEW_CHARS
from polaris.event_bus import EventBus, get_event_bus
from polaris.events import ToolCallCompleted, ToolCallFailed, ToolCallStarted
from polaris.exceptions import PolarisError
from polaris.models import ToolCallLog
from polaris.store.tree_store import TreeStore
from polaris.tools.anthropic_tool_builder import build_pydantic_tool_schema
from polaris.tools.file_tools import FileTools
from polaris.tools.schemas import (
    CreateFilesArgs,
    CreateFolderArgs,
    DeleteFilesArgs,
    ListFilesArgs,
    ReadFilesArgs,
    RenameFileArgs,
    ScrapeUrlsArgs,
    UpdateFileArgs,
)
from polaris.tools.web_tools import UrlScraper

LOGGER = logging.getLogger(__name__)

ToolHandler = Callable[[Any], str]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """A registered tool: argument model, handler and the description shown to the model."""

    name: str
    args_model: Type[BaseModel]
    handler: ToolHandler
    description: str


def format_validation_error(exc: ValidationError) -> str:
    """Render the first validation problem as a tool error string."""
    errors = exc.errors()
    if not errors:
        return "Error: Invalid arguments"
    first = errors[0]
    message = str(first.get("msg", "Invalid arguments"))
    if first.get("type") == "value_error":
        return f"Error: {message.removeprefix('Value error, ')}"
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"Error: {location}: {message}" if location else f"Error: {message}"


def is_error_result(result: str) -> bool:
    return result.startswith("Error")


class ToolAdapter:
    """Executes tools for one project on behalf of one agent run."""

    def __init__(
        self,
        store: TreeStore,
        project_id: int,
        *,
        run_id: int | None = None,
        scraper: UrlScraper | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._project_id = project_id
        self._run_id = run_id
        self._event_bus = event_bus or get_event_bus()
        files = FileTools(store, project_id)
        scraper = scraper or UrlScraper()
        self._registry: dict[str, ToolSpec] = {}
        self._register(
            "listFiles",
            ListFilesArgs,
            files.list_files,
            "List all the files and folders in the project. Returns names, IDs, types, and parentId for each of "
            "them. Items with parentId as null are in the root directory. Use the parentId to understand the "
            "folder structure. Items with the same parentId are in the same folder.",
        )
        self._register(
            "readFiles",
            ReadFilesArgs,
            files.read_files,
            "Read the content of files from the project. Returns the file content.",
        )
        self._register(
            "createFiles",
            CreateFilesArgs,
            files.create_files,
            "Create multiple files in the same folder. Use this to batch create files that share the same parent "
            "folder. More efficient than creating files one by one.",
        )
        self._register(
            "createFolder",
            CreateFolderArgs,
            files.create_folder,
            "Create a new folder in the project.",
        )
        self._register(
            "renameFile",
            RenameFileArgs,
            files.rename_file,
            "Rename a file or folder in the project.",
        )
        self._register(
            "deleteFiles",
            DeleteFilesArgs,
            files.delete_files,
            "Delete files or folders from the project. Deleting a folder also deletes everything inside it.",
        )
        self._register(
            "updateFile",
            UpdateFileArgs,
            files.update_file,
            "Update the content of a file in the project.",
        )
        self._register(
            "scrapeUrls",
            ScrapeUrlsArgs,
            scraper.scrape_urls,
            "Scrape content from URLs to get documentation or reference material. Use this when the user provides "
            "URLs or references external documentation. Returns the text content scraped from the URLs.",
        )

    @property
    def tool_names(self) -> list[str]:
        return list(self._registry)

    def tool_schemas(self) -> list[dict[str, Any]]:
        """Anthropic-compatible schemas for every registered tool."""
        return [
            build_pydantic_tool_schema(spec.args_model, name=spec.name, description=spec.description)
            for spec in self._registry.values()
        ]

    def execute(self, name: str, arguments: Mapping[str, Any] | None) -> str:
        """Run a tool and return its textual result; never raises for tool problems."""
        payload = dict(arguments or {})
        self._event_bus.emit(
            ToolCallStarted(tool_name=name, parameters=self._preview_params(payload), run_id=self._run_id)
        )
        started = time.perf_counter()
        result = self._dispatch(name, payload)
        duration = time.perf_counter() - started
        success = not is_error_result(result)

        LOGGER.info(
            "Tool executed | run=%s | tool=%s | success=%s | duration=%.3fs",
            self._run_id,
            name,
            success,
            duration,
        )
        ToolCallLog.record(
            run_id=self._run_id,
            project_id=self._project_id,
            tool_name=name,
            tool_input=json.dumps(payload, ensure_ascii=False, default=str),
            tool_output=result,
            success=success,
            execution_time_ms=round(duration * 1000, 2),
        )
        if success:
            self._event_bus.emit(
                ToolCallCompleted(
                    tool_name=name,
                    result=self._safe_value(result),
                    duration=duration,
                    run_id=self._run_id,
                )
            )
        else:
            self._event_bus.emit(
                ToolCallFailed(tool_name=name, error=self._safe_value(result), duration=duration, run_id=self._run_id)
            )
        return result

    def _dispatch(self, name: str, payload: dict[str, Any]) -> str:
        spec = self._registry.get(name)
        if spec is None:
            return f"Error: Unknown tool: {name}. Available tools: {', '.join(self._registry)}"
        try:
            args = spec.args_model.model_validate(payload)
        except ValidationError as exc:
            return format_validation_error(exc)
        try:
            return spec.handler(args)
        except PolarisError as exc:
            return f"Error: {exc.message}"
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Tool %s execution failed", name)
            return f"Error: Tool {name} failed: {exc}"

    def _register(self, name: str, args_model: Type[BaseModel], handler: ToolHandler, description: str) -> None:
        self._registry[name] = ToolSpec(name=name, args_model=args_model, handler=handler, description=description)

    def _preview_params(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        return {key: self._safe_value(value, limit=160) for key, value in payload.items()}

    @staticmethod
    def _safe_value(value: Any, limit: int = TOOL_EVENT_PREVIEW_CHARS) -> Any:
        """Return a compact, serializable value for event payloads."""
        if value is None or isinstance(value, (bool, int, float)):
            return value
        text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, default=str)
        return text if len(text) <= limit else f"{text[:limit]}..."


__all__ = ["ToolAdapter", "ToolSpec", "format_validation_error", "is_error_result"]
