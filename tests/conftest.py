"""Shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from clipscribe.events import EventBus
from clipscribe.store.database import Database
from clipscribe.store.records import PersistenceStore
from clipscribe.store.settings import SettingsCache


@pytest.fixture
def database(tmp_path: Path) -> Database:
    """A fresh database with the schema in place."""
    db = Database(tmp_path / "clips.db")
    db.ensure_schema()
    return db


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def store(database: Database, events: EventBus) -> PersistenceStore:
    return PersistenceStore(database, events)


@pytest.fixture
def settings(database: Database) -> SettingsCache:
    cache = SettingsCache(database)
    cache.initialize()
    return cache
