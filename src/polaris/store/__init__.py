"""Project file trees: naming rules, blob storage, and the tree store."""

from .blobs import BlobStore, LocalBlobStore
from .tree_store import CreateResult, TreeStore, display_order

__all__ = [
    "BlobStore",
    "CreateResult",
    "LocalBlobStore",
    "TreeStore",
    "display_order",
]
