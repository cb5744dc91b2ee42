"""Sibling naming rules for project trees.

Uniqueness is scoped to ``(name, kind)``: a file and a folder may share a name
under the same parent, two nodes of the same kind may not.
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol

from polaris.exceptions import InvalidNameError

_RESERVED_NAMES = frozenset({".", ".."})
_FORBIDDEN_CHARACTERS = ("/", "\x00")


class _Named(Protocol):
    id: int
    name: str
    kind: str


def validate_name(name: object) -> str:
    """Return ``name`` unchanged if it is usable as a node name.

    Raises:
        InvalidNameError: For non-strings, blank names, ``.``/``..`` and names
            containing a path separator.
    """
    if not isinstance(name, str) or not name.strip():
        raise InvalidNameError("Name cannot be empty")
    if name in _RESERVED_NAMES:
        raise InvalidNameError("Name is reserved", {"name": name})
    if any(char in name for char in _FORBIDDEN_CHARACTERS):
        raise InvalidNameError("Name cannot contain '/'", {"name": name})
    return name


def find_conflict(
    siblings: Iterable[_Named],
    name: str,
    kind: str,
    exclude_id: Optional[int] = None,
) -> Optional[_Named]:
    """Return the sibling that already holds ``(name, kind)``, if any.

    ``exclude_id`` skips the node being renamed so it never collides with itself.
    """
    for sibling in siblings:
        if exclude_id is not None and sibling.id == exclude_id:
            continue
        if sibling.name == name and sibling.kind == kind:
            return sibling
    return None


def has_conflict(
    siblings: Iterable[_Named],
    name: str,
    kind: str,
    exclude_id: Optional[int] = None,
) -> bool:
    return find_conflict(siblings, name, kind, exclude_id) is not None


__all__ = ["validate_name", "find_conflict", "has_conflict"]
