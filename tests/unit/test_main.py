"""Unit tests for application wiring and the command line helpers."""

from __future__ import annotations

import pytest

from polaris.exceptions import ConfigurationMissingError
from polaris.main import ApplicationController, build_parser, render_tree
from polaris.models import Project
from polaris.store import LocalBlobStore
from polaris.utils.settings import load_settings


def test_render_tree_lists_folders_first_with_indentation(store, project) -> None:
    src = store.create_folder(project.id, None, "src")
    store.create_file(project.id, src.id, "main.py", "")
    lib = store.create_folder(project.id, src.id, "lib")
    store.create_file(project.id, lib.id, "util.py", "")
    store.create_file(project.id, None, "README.md", "")

    assert render_tree(store, project.id) == "\n".join(
        [
            "src/",
            "  lib/",
            "    util.py",
            "  main.py",
            "README.md",
        ]
    )


def test_render_tree_of_empty_project(store, project) -> None:
    assert render_tree(store, project.id) == "(empty project)"


def test_local_blob_store_roundtrip(tmp_path) -> None:
    blobs = LocalBlobStore(tmp_path / "blobs")

    blob_ref = blobs.put(b"\x00\x01")

    assert blobs.get_url(blob_ref).startswith("file://")
    blobs.delete(blob_ref)
    assert blobs.get_url(blob_ref) is None
    with pytest.raises(ValueError):
        blobs.get_url("../etc/passwd")


def test_parser_defaults() -> None:
    args = build_parser().parse_args(["--project", "3"])

    assert (args.owner, args.project, args.prompt, args.verbose) == ("local", 3, None, False)


def test_controller_requires_agent_key_before_writing(isolated_db, polaris_home) -> None:
    settings = load_settings()
    settings["settle_delay_seconds"] = 0
    controller = ApplicationController(settings)
    service = controller.setup()
    try:
        project = Project.create("local", "gentle-olive-walrus")
        conversation = controller.ledger.create_conversation(project.id)
        with pytest.raises(ConfigurationMissingError):
            service.send_message("local", conversation.id, "hello")
        assert controller.ledger.list_messages(conversation.id) == []
        assert (polaris_home / "blobs").is_dir()
    finally:
        controller.shutdown()
