"""Append-only repository of enriched clip records."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from clipscribe.errors import PersistenceFailure, RecordNotFound
from clipscribe.events import CLIP_DELETED, EventBus
from clipscribe.models import Capture, Record, TextCapture, capture_from_dict, capture_to_dict
from clipscribe.store.database import Database

LOGGER = logging.getLogger(__name__)


class PersistenceStore:
    """Create, list and delete clip records.

    Records are never updated in place. Identifiers are the string form of
    the table's autoincrement key.
    """

    def __init__(self, database: Database, events: EventBus | None = None) -> None:
        self.database = database
        self.events = events or EventBus()

    def create(
        self,
        capture: Capture,
        category: str,
        summary: Optional[str],
        tags: Optional[Sequence[str]],
    ) -> Record:
        created_at = datetime.now(timezone.utc)
        clip_json = json.dumps(capture_to_dict(capture), ensure_ascii=False)
        tags_json = json.dumps(list(tags), ensure_ascii=False) if tags is not None else None
        try:
            with self.database.transaction() as conn:
                record_id = conn.execute(
                    """
                    INSERT INTO clips(clip, category, summary, tags, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (clip_json, category, summary, tags_json, created_at.isoformat()),
                ).lastrowid
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Failed to save clip: {exc}") from exc

        return Record(
            id=str(record_id),
            capture=capture,
            category=category,
            summary=summary,
            tags=tuple(tags) if tags is not None else None,
            created_at=created_at,
        )

    def list_records(self) -> List[Record]:
        """Return all records, newest first."""
        try:
            conn = self.database.connect()
            try:
                rows = conn.execute(
                    """
                    SELECT id, clip, category, summary, tags, created_at
                    FROM clips
                    ORDER BY created_at DESC, id DESC
                    """
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Failed to list clips: {exc}") from exc
        return [_row_to_record(row) for row in rows]

    def get(self, record_id: str) -> Record:
        try:
            conn = self.database.connect()
            try:
                row = conn.execute(
                    "SELECT id, clip, category, summary, tags, created_at FROM clips WHERE id = ?",
                    (_parse_id(record_id),),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Failed to read clip {record_id}: {exc}") from exc
        if row is None:
            raise RecordNotFound(record_id)
        return _row_to_record(row)

    def delete(self, record_id: str) -> None:
        """Delete one record. Unknown identifiers raise :class:`RecordNotFound`."""
        try:
            with self.database.transaction() as conn:
                deleted = conn.execute(
                    "DELETE FROM clips WHERE id = ?", (_parse_id(record_id),)
                ).rowcount
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Failed to delete item: {exc}") from exc

        if deleted == 0:
            raise RecordNotFound(record_id)

        LOGGER.info("Deleted clip %s", record_id)
        self.events.emit(CLIP_DELETED, str(record_id))


def _parse_id(record_id: str) -> int:
    try:
        return int(record_id)
    except (TypeError, ValueError):
        raise RecordNotFound(str(record_id)) from None


def _row_to_record(row: sqlite3.Row) -> Record:
    try:
        capture = capture_from_dict(json.loads(row["clip"]))
    except (ValueError, TypeError, AttributeError) as exc:
        LOGGER.warning("Unreadable clip blob for id %s: %s", row["id"], exc)
        capture = TextCapture(plain="Invalid clip type")

    tags = None
    if row["tags"] is not None:
        try:
            tags = tuple(str(tag) for tag in json.loads(row["tags"]))
        except (ValueError, TypeError):
            tags = ()

    return Record(
        id=str(row["id"]),
        capture=capture,
        category=row["category"],
        summary=row["summary"],
        tags=tags,
        created_at=datetime.fromisoformat(row["created_at"]),
    )
