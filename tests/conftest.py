"""Shared pytest fixtures for the Polaris test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from polaris import database
from polaris.event_bus import EventBus
from polaris.models import Project
from polaris.services.ledger import ConversationLedger
from polaris.store.tree_store import TreeStore
from tests.helpers import EventRecorder, RecordingBlobStore


@pytest.fixture(autouse=True)
def polaris_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep settings, blobs and logs out of the real home directory."""
    home = tmp_path / "polaris-home"
    monkeypatch.setenv("POLARIS_HOME", str(home))
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    return home


@pytest.fixture()
def isolated_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Redirect the SQLite database to a temporary file for each test."""
    db_path = tmp_path / "polaris.db"
    monkeypatch.setattr(database, "get_database_path", lambda: db_path)
    database.initialize_database()
    yield db_path


@pytest.fixture()
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def events(event_bus: EventBus) -> EventRecorder:
    """Record every event published on the test bus."""
    recorder = EventRecorder()
    event_bus.subscribe(object, recorder)
    return recorder


@pytest.fixture()
def blob_store() -> RecordingBlobStore:
    return RecordingBlobStore()


@pytest.fixture()
def store(isolated_db: Path, blob_store: RecordingBlobStore, event_bus: EventBus) -> TreeStore:
    return TreeStore(blob_store=blob_store, event_bus=event_bus)


@pytest.fixture()
def ledger(isolated_db: Path, event_bus: EventBus) -> ConversationLedger:
    return ConversationLedger(event_bus=event_bus)


@pytest.fixture()
def project(isolated_db: Path) -> Project:
    return Project.create("owner-1", "brave-amber-otter")
