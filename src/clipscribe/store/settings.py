"""In-memory settings cache backed by the SQLite settings table."""

from __future__ import annotations

import logging
import sqlite3
import threading
from typing import Dict, List, Optional, Tuple

from clipscribe.errors import SettingsStoreFailure
from clipscribe.store.database import Database

LOGGER = logging.getLogger(__name__)

GLOBAL_HOTKEY = "global_hotkey"
LLM_API_KEY = "llm_api_key"
LLM_MODEL = "llm_model"

DEFAULT_HOTKEY = "CommandOrControl+Shift+S"

DEFAULTS: Tuple[Tuple[str, str], ...] = ((GLOBAL_HOTKEY, DEFAULT_HOTKEY),)


class SettingsCache:
    """Single source of truth for runtime settings.

    Reads are served from memory only. Writes go to the database first and
    reach the in-memory copy only once the write succeeded.
    """

    def __init__(self, database: Database) -> None:
        self.database = database
        self._settings: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()

    def initialize(self) -> None:
        """Load persisted settings, then seed and persist missing defaults."""
        try:
            rows = self._load_rows()
        except sqlite3.Error as exc:
            LOGGER.error("Failed to load settings, starting from defaults: %s", exc)
            rows = []

        with self._lock:
            self._settings = dict(rows)

        for key, default_value in DEFAULTS:
            if self.get(key) is None:
                try:
                    self.set(key, default_value)
                except SettingsStoreFailure as exc:
                    LOGGER.error("Could not persist default for %s: %s", key, exc)
                    with self._lock:
                        self._settings.setdefault(key, default_value)
                    continue
                LOGGER.info("Set default for %s: %s", key, default_value)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._settings.get(key)

    def set(self, key: str, value: str) -> None:
        with self._write_lock:
            try:
                self._persist(key, value)
            except sqlite3.Error as exc:
                raise SettingsStoreFailure(f"Failed to set setting {key}: {exc}") from exc
            with self._lock:
                self._settings[key] = value
        LOGGER.debug("Setting %s updated", key)

    def list_all(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._settings)

    def global_hotkey(self) -> str:
        return self.get(GLOBAL_HOTKEY) or DEFAULT_HOTKEY

    def _load_rows(self) -> List[Tuple[str, str]]:
        conn = self.database.connect()
        try:
            rows = conn.execute("SELECT key, value FROM settings").fetchall()
        finally:
            conn.close()
        return [(row["key"], row["value"]) for row in rows]

    def _persist(self, key: str, value: str) -> None:
        with self.database.transaction() as conn:
            conn.execute(
                """
                INSERT INTO settings(key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, value),
            )
