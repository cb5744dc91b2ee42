"""Unit tests for sibling naming rules."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from polaris.exceptions import InvalidNameError
from polaris.store import naming


@dataclass
class Node:
    id: int
    name: str
    kind: str


SIBLINGS = [Node(1, "src", "folder"), Node(2, "src", "file"), Node(3, "main.py", "file")]


@pytest.mark.parametrize("name", ["", "   ", ".", "..", "a/b", "bad\x00name", None, 42])
def test_validate_name_rejects_unusable_names(name) -> None:
    with pytest.raises(InvalidNameError):
        naming.validate_name(name)


def test_validate_name_returns_name_unchanged() -> None:
    assert naming.validate_name(" spaced.txt ") == " spaced.txt "


def test_conflict_is_scoped_to_kind() -> None:
    assert naming.has_conflict(SIBLINGS, "main.py", "file")
    assert not naming.has_conflict(SIBLINGS, "main.py", "folder")
    assert naming.find_conflict(SIBLINGS, "src", "folder").id == 1


def test_conflict_excludes_the_node_itself() -> None:
    assert not naming.has_conflict(SIBLINGS, "main.py", "file", exclude_id=3)
    assert naming.has_conflict(SIBLINGS, "main.py", "file", exclude_id=1)


def test_names_are_case_sensitive() -> None:
    assert not naming.has_conflict(SIBLINGS, "Main.py", "file")
