"""Blob storage capability for binary file contents."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Protocol

LOGGER = logging.getLogger(__name__)


class BlobStore(Protocol):
    """Stores opaque bytes for binary files and hands back references."""

    def put(self, data: bytes) -> str:
        """Store bytes and return a reference."""

    def get_url(self, blob_ref: str) -> str | None:
        """Return a URL for the blob, or None when it no longer exists."""

    def delete(self, blob_ref: str) -> None:
        """Release a blob. Deleting an unknown reference is a no-op."""


class LocalBlobStore:
    """Keeps blobs as files under a root directory; URLs are ``file://`` URIs."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)

    def put(self, data: bytes) -> str:
        blob_ref = uuid.uuid4().hex
        self._path_for(blob_ref).write_bytes(data)
        LOGGER.debug("Stored blob | ref=%s | bytes=%d", blob_ref, len(data))
        return blob_ref

    def get_url(self, blob_ref: str) -> str | None:
        path = self._path_for(blob_ref)
        if not path.exists():
            return None
        return path.resolve().as_uri()

    def delete(self, blob_ref: str) -> None:
        path = self._path_for(blob_ref)
        path.unlink(missing_ok=True)
        LOGGER.debug("Released blob | ref=%s", blob_ref)

    def _path_for(self, blob_ref: str) -> Path:
        if not blob_ref or not blob_ref.isalnum():
            raise ValueError(f"Invalid blob reference: {blob_ref!r}")
        return self._root / blob_ref


__all__ = ["BlobStore", "LocalBlobStore"]
