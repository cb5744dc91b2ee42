"""File-tree tools available to the coding agent.

Every handler returns text for the model. Store errors become ``Error: ...``
strings; ids arrive as strings and an empty ``parentId`` means the root.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from polaris.exceptions import NotFoundError, PolarisError
from polaris.models import FileNode
from polaris.store.tree_store import TreeStore
from polaris.tools.schemas import (
    CreateFilesArgs,
    CreateFolderArgs,
    DeleteFilesArgs,
    ListFilesArgs,
    ReadFilesArgs,
    RenameFileArgs,
    UpdateFileArgs,
)

LOGGER = logging.getLogger(__name__)

_LIST_HINT = "Use listFiles tool to get the list of available files and their IDs."


class ToolInputError(Exception):
    """A tool argument is unusable; the message is returned to the model as is."""


def parse_node_id(raw: str) -> Optional[int]:
    """Return the integer id in ``raw``, or None when it is not a valid id."""
    text = (raw or "").strip()
    if not text.isdecimal():
        return None
    value = int(text)
    return value if value > 0 else None


class FileTools:
    """Tool handlers bound to one project's tree."""

    def __init__(self, store: TreeStore, project_id: int) -> None:
        self._store = store
        self._project_id = project_id

    def list_files(self, args: ListFilesArgs) -> str:
        nodes = self._store.list_project(self._project_id)
        listing = [
            {"id": str(node.id), "name": node.name, "type": node.kind, "parentId": _id_text(node.parent_id)}
            for node in nodes
        ]
        return json.dumps(listing, ensure_ascii=False)

    def read_files(self, args: ReadFilesArgs) -> str:
        results = []
        for raw_id in args.fileIds:
            node = self._find(raw_id)
            if node is None or not node.is_file or node.content is None:
                continue
            results.append({"id": str(node.id), "name": node.name, "content": node.content})
        if not results:
            return f"Error: No files found with provided IDs. {_LIST_HINT}"
        return json.dumps(results, ensure_ascii=False)

    def create_files(self, args: CreateFilesArgs) -> str:
        try:
            parent_id = self._resolve_parent(args.parentId)
        except ToolInputError as exc:
            return str(exc)

        try:
            results = self._store.create_files(
                self._project_id,
                parent_id,
                [(item.name, item.content) for item in args.files],
            )
        except PolarisError as exc:
            return f"Error creating files: {exc.message}"

        created = [result for result in results if result.ok]
        failed = [result for result in results if not result.ok]
        response = f"Created {len(created)} file(s)"
        if created:
            response += ": " + ", ".join(f"{result.name} (ID: {result.node_id})" for result in created) + "."
        if failed:
            response += f" Failed to create {len(failed)} file(s): "
            response += ", ".join(f"{result.name} ({result.error})" for result in failed) + "."
        return response

    def create_folder(self, args: CreateFolderArgs) -> str:
        try:
            parent_id = self._resolve_parent(args.parentId)
        except ToolInputError as exc:
            return str(exc)

        try:
            folder = self._store.create_folder(self._project_id, parent_id, args.name)
        except PolarisError as exc:
            return f"Error creating folder: {exc.message}"
        return f"Folder created successfully with ID: {folder.id}"

    def rename_file(self, args: RenameFileArgs) -> str:
        node = self._find(args.fileId)
        if node is None:
            return f"Error: No file found with ID {args.fileId}. {_LIST_HINT}"
        try:
            self._store.rename(node.id, args.newName)
        except PolarisError as exc:
            return f"Error renaming file: {exc.message}"
        return f"File with ID {args.fileId} has been successfully renamed to {args.newName}."

    def delete_files(self, args: DeleteFilesArgs) -> str:
        deleted_names: list[str] = []
        deleted_count = 0
        missing: list[str] = []
        for raw_id in args.fileIds:
            node = self._find(raw_id)
            if node is None:
                missing.append(raw_id)
                continue
            removed = self._store.delete_recursive(node.id)
            if removed:
                deleted_names.append(node.name)
                deleted_count += len(removed)

        if not deleted_names:
            return f"Error: No files found with provided IDs. {_LIST_HINT}"
        response = f"Deleted {len(deleted_names)} item(s) ({deleted_count} including contents): {', '.join(deleted_names)}."
        if missing:
            response += f" Not found: {', '.join(missing)}."
        return response

    def update_file(self, args: UpdateFileArgs) -> str:
        node = self._find(args.fileId)
        if node is None:
            return f"Error: No file found with ID {args.fileId}. {_LIST_HINT}"
        if node.is_folder:
            return (
                f"Error: The provided ID {args.fileId} belongs to a folder, not a file. "
                f"Please provide a valid file ID. {_LIST_HINT}"
            )
        try:
            self._store.update_content(node.id, args.content)
        except PolarisError as exc:
            return f"Error updating file: {exc.message}"
        return f"File with ID {args.fileId} has been successfully updated."

    def _find(self, raw_id: str) -> Optional[FileNode]:
        """Resolve an id string to a node of this project; foreign nodes count as missing."""
        node_id = parse_node_id(raw_id)
        if node_id is None:
            return None
        try:
            node = self._store.read(node_id)
        except NotFoundError:
            return None
        return node if node.project_id == self._project_id else None

    def _resolve_parent(self, raw_parent: str) -> Optional[int]:
        if not raw_parent or not raw_parent.strip():
            return None
        parent_id = parse_node_id(raw_parent)
        if parent_id is None:
            raise ToolInputError(
                f"Error: Invalid parentId {raw_parent}. It must be a valid file ID. "
                "Use listFiles tool to get the list of valid folder IDs, or use empty string for root level."
            )
        parent = self._find(raw_parent)
        if parent is None:
            raise ToolInputError(f"Error: Parent folder with ID {raw_parent} does not exist.")
        if not parent.is_folder:
            raise ToolInputError(f"Error: The provided parentId {raw_parent} is not a folder.")
        return parent_id


def _id_text(node_id: Optional[int]) -> Optional[str]:
    return None if node_id is None else str(node_id)


__all__ = ["FileTools", "ToolInputError", "parse_node_id"]
