"""Per-project hierarchical file store.

Every mutation runs in its own write transaction: the parent check, the
sibling name check and the write happen atomically with respect to other
writers (human edits and agent runs share the store without further locking).
A sequence of calls is not atomic as a whole.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from polaris.database import get_connection, transaction
from polaris.event_bus import EventBus, get_event_bus
from polaris.events import FileTreeChanged
from polaris.exceptions import (
    InvalidNameError,
    InvalidParentError,
    NameConflictError,
    NotAFileError,
    NotAFolderError,
    NotFoundError,
)
from polaris.models import FileNode, NodeKind, Project
from polaris.store import naming
from polaris.store.blobs import BlobStore

LOGGER = logging.getLogger(__name__)


def display_order(nodes: Iterable[FileNode]) -> list[FileNode]:
    """Sort nodes folders first, then by name within each kind."""
    return sorted(nodes, key=lambda node: (node.kind != NodeKind.FOLDER, node.name))


@dataclass(frozen=True, slots=True)
class CreateResult:
    """Outcome of one item of a batch create."""

    name: str
    node_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TreeStore:
    """CRUD operations over project file trees."""

    def __init__(
        self,
        blob_store: BlobStore | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._blobs = blob_store
        self._event_bus = event_bus or get_event_bus()

    # ------------------------------------------------------------------ reads

    def read(self, node_id: int) -> FileNode:
        """Return a node or raise NotFoundError."""
        with get_connection() as conn:
            node = FileNode.fetch(conn, node_id)
        if node is None:
            raise NotFoundError("File not found", {"file_id": node_id})
        return node

    def list_children(self, project_id: int, parent_id: Optional[int] = None) -> list[FileNode]:
        """Direct children of ``parent_id`` (root when None) in display order.

        A parent that no longer exists simply has no children.
        """
        with get_connection() as conn:
            children = FileNode.fetch_children(conn, project_id, parent_id)
        return display_order(children)

    def list_project(self, project_id: int) -> list[FileNode]:
        """Every node of a project in display order."""
        with get_connection() as conn:
            nodes = FileNode.fetch_project(conn, project_id)
        return display_order(nodes)

    def files_with_urls(self, project_id: int) -> list[tuple[FileNode, Optional[str]]]:
        """Every node paired with its blob URL (None for text files and folders)."""
        pairs: list[tuple[FileNode, Optional[str]]] = []
        for node in self.list_project(project_id):
            url = None
            if node.blob_ref and self._blobs is not None:
                url = self._blobs.get_url(node.blob_ref)
            pairs.append((node, url))
        return pairs

    # -------------------------------------------------------------- creation

    def create_file(
        self,
        project_id: int,
        parent_id: Optional[int],
        name: str,
        content: str,
    ) -> FileNode:
        """Create a text file.

        Raises:
            NameConflictError: A file with the same name exists under the parent.
            InvalidParentError: The parent is missing, foreign or not a folder.
        """
        naming.validate_name(name)
        with transaction() as conn:
            self._require_project(conn, project_id)
            self._check_parent(conn, project_id, parent_id)
            node = self._insert(conn, project_id, parent_id, name, NodeKind.FILE, content=content)
            Project.touch(project_id, conn)

        LOGGER.info("Created file | project=%s | parent=%s | name=%s | id=%s", project_id, parent_id, name, node.id)
        self._notify(project_id, "create", (node.id,))
        return node

    def create_folder(self, project_id: int, parent_id: Optional[int], name: str) -> FileNode:
        """Create a folder; only folder-kind siblings can conflict."""
        naming.validate_name(name)
        with transaction() as conn:
            self._require_project(conn, project_id)
            self._check_parent(conn, project_id, parent_id)
            node = self._insert(conn, project_id, parent_id, name, NodeKind.FOLDER)
            Project.touch(project_id, conn)

        LOGGER.info("Created folder | project=%s | parent=%s | name=%s | id=%s", project_id, parent_id, name, node.id)
        self._notify(project_id, "create", (node.id,))
        return node

    def create_files(
        self,
        project_id: int,
        parent_id: Optional[int],
        files: Sequence[tuple[str, str]],
    ) -> list[CreateResult]:
        """Create several files under one parent, reporting each item separately.

        The parent is validated once and a bad parent fails the whole call.
        Individual name problems (including duplicates inside the batch) only
        fail their own item.
        """
        results: list[CreateResult] = []
        created: list[int] = []
        with transaction() as conn:
            self._require_project(conn, project_id)
            self._check_parent(conn, project_id, parent_id)
            for name, content in files:
                try:
                    naming.validate_name(name)
                    node = self._insert(conn, project_id, parent_id, name, NodeKind.FILE, content=content)
                except (InvalidNameError, NameConflictError) as exc:
                    results.append(CreateResult(name=str(name), error=exc.message))
                    continue
                created.append(node.id)
                results.append(CreateResult(name=name, node_id=node.id))
            if created:
                Project.touch(project_id, conn)

        LOGGER.info(
            "Batch create | project=%s | parent=%s | created=%d | failed=%d",
            project_id,
            parent_id,
            len(created),
            len(results) - len(created),
        )
        if created:
            self._notify(project_id, "create", tuple(created))
        return results

    def create_binary_file(
        self,
        project_id: int,
        parent_id: Optional[int],
        name: str,
        data: bytes,
    ) -> FileNode:
        """Create a file whose bytes live in blob storage."""
        if self._blobs is None:
            raise RuntimeError("Binary files require a blob store")
        naming.validate_name(name)
        blob_ref = self._blobs.put(data)
        try:
            with transaction() as conn:
                self._require_project(conn, project_id)
                self._check_parent(conn, project_id, parent_id)
                node = self._insert(conn, project_id, parent_id, name, NodeKind.FILE, blob_ref=blob_ref)
                Project.touch(project_id, conn)
        except Exception:
            self._blobs.delete(blob_ref)
            raise

        LOGGER.info("Created binary file | project=%s | name=%s | id=%s | bytes=%d", project_id, name, node.id, len(data))
        self._notify(project_id, "create", (node.id,))
        return node

    # ------------------------------------------------------------- mutations

    def rename(self, node_id: int, new_name: str) -> FileNode:
        """Rename a node in place.

        The sibling check skips the node itself, so renaming to the current
        name succeeds.
        """
        naming.validate_name(new_name)
        with transaction() as conn:
            node = FileNode.fetch(conn, node_id)
            if node is None:
                raise NotFoundError("File not found", {"file_id": node_id})
            siblings = FileNode.fetch_children(conn, node.project_id, node.parent_id)
            if naming.has_conflict(siblings, new_name, node.kind, exclude_id=node.id):
                raise NameConflictError(
                    f"A {node.kind} with the same name already exists in this folder",
                    {"name": new_name},
                )
            FileNode.set_name(conn, node.id, new_name)
            Project.touch(node.project_id, conn)
            renamed = FileNode.fetch(conn, node.id)

        LOGGER.info("Renamed node | id=%s | from=%s | to=%s", node_id, node.name, new_name)
        self._notify(node.project_id, "rename", (node.id,))
        return renamed  # type: ignore[return-value]

    def update_content(self, node_id: int, content: str) -> FileNode:
        """Replace the text content of a file."""
        with transaction() as conn:
            node = FileNode.fetch(conn, node_id)
            if node is None:
                raise NotFoundError("File not found", {"file_id": node_id})
            if not node.is_file:
                raise NotAFileError("Cannot update the content of a folder", {"file_id": node_id})
            FileNode.set_content(conn, node.id, content)
            Project.touch(node.project_id, conn)
            updated = FileNode.fetch(conn, node.id)

        LOGGER.info("Updated file content | id=%s | chars=%d", node_id, len(content))
        self._notify(node.project_id, "update", (node.id,))
        return updated  # type: ignore[return-value]

    def delete_recursive(self, node_id: int) -> list[int]:
        """Delete a node and all its descendants, children before parents.

        Uses an explicit work stack so deep trees never exhaust the call stack.
        Blob references of deleted files are released once the rows are gone.
        Deleting a missing node is a no-op that returns an empty list.
        """
        deleted: list[int] = []
        blob_refs: list[str] = []
        with transaction() as conn:
            root = FileNode.fetch(conn, node_id)
            if root is None:
                LOGGER.debug("Delete skipped, node already gone | id=%s", node_id)
                return []

            visited: set[int] = set()
            stack: list[tuple[FileNode, bool]] = [(root, False)]
            while stack:
                node, expanded = stack.pop()
                if node.is_folder and not expanded:
                    if node.id in visited:
                        continue
                    visited.add(node.id)
                    stack.append((node, True))
                    for child in FileNode.fetch_children(conn, node.project_id, node.id):
                        stack.append((child, False))
                    continue
                if FileNode.remove(conn, node.id):
                    deleted.append(node.id)
                    if node.blob_ref:
                        blob_refs.append(node.blob_ref)

            if deleted:
                Project.touch(root.project_id, conn)

        self._release_blobs(blob_refs)
        LOGGER.info("Deleted subtree | root=%s | nodes=%d | blobs=%d", node_id, len(deleted), len(blob_refs))
        if deleted:
            self._notify(root.project_id, "delete", tuple(deleted))
        return deleted

    def clean_up(self, project_id: int) -> int:
        """Delete every node of a project and release all of its blobs."""
        with transaction() as conn:
            nodes = FileNode.fetch_project(conn, project_id)
            conn.execute("DELETE FROM files WHERE project_id = ?", (project_id,))
            if nodes:
                Project.touch(project_id, conn)

        self._release_blobs([node.blob_ref for node in nodes if node.blob_ref])
        LOGGER.info("Cleaned up project tree | project=%s | nodes=%d", project_id, len(nodes))
        if nodes:
            self._notify(project_id, "delete", tuple(node.id for node in nodes))
        return len(nodes)

    # -------------------------------------------------------------- internals

    @staticmethod
    def _require_project(conn: sqlite3.Connection, project_id: int) -> None:
        row = conn.execute("SELECT 1 FROM projects WHERE id = ?", (project_id,)).fetchone()
        if row is None:
            raise NotFoundError("Project not found", {"project_id": project_id})

    @staticmethod
    def _check_parent(conn: sqlite3.Connection, project_id: int, parent_id: Optional[int]) -> None:
        if parent_id is None:
            return
        parent = FileNode.fetch(conn, parent_id)
        if parent is None:
            raise InvalidParentError("Parent folder does not exist", {"parent_id": parent_id})
        if parent.project_id != project_id:
            raise InvalidParentError("Parent folder belongs to another project", {"parent_id": parent_id})
        if not parent.is_folder:
            raise NotAFolderError("Parent is not a folder", {"parent_id": parent_id})

    @staticmethod
    def _insert(
        conn: sqlite3.Connection,
        project_id: int,
        parent_id: Optional[int],
        name: str,
        kind: str,
        content: Optional[str] = None,
        blob_ref: Optional[str] = None,
    ) -> FileNode:
        siblings = FileNode.fetch_children(conn, project_id, parent_id)
        if naming.has_conflict(siblings, name, kind):
            label = "File" if kind == NodeKind.FILE else "Folder"
            raise NameConflictError(f"{label} with the same name already exists in this folder", {"name": name})
        try:
            return FileNode.insert(
                conn,
                project_id=project_id,
                parent_id=parent_id,
                name=name,
                kind=kind,
                content=content,
                blob_ref=blob_ref,
            )
        except sqlite3.IntegrityError as exc:
            raise NameConflictError(f"A {kind} with the same name already exists in this folder", {"name": name}) from exc

    def _release_blobs(self, blob_refs: list[str]) -> None:
        if not blob_refs or self._blobs is None:
            return
        for blob_ref in blob_refs:
            try:
                self._blobs.delete(blob_ref)
            except Exception:  # noqa: BLE001
                # The rows are already gone; an orphaned blob is left for storage GC.
                LOGGER.exception("Failed to release blob | ref=%s", blob_ref)

    def _notify(self, project_id: int, operation: str, node_ids: tuple[int, ...]) -> None:
        self._event_bus.emit(FileTreeChanged(project_id=project_id, operation=operation, node_ids=node_ids))


__all__ = ["CreateResult", "TreeStore", "display_order"]
