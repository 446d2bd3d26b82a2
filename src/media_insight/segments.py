"""Persistence of timestamped transcript segments for deep search.

A store keeps the segments of each asset and replaces them wholesale when the
asset is reprocessed; readers never observe a mix of old and new segments.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from contextlib import closing
from pathlib import Path
from typing import Iterable, Protocol

from .errors import SegmentPersistenceError
from .models import Segment

logger = logging.getLogger(__name__)

SEGMENT_DB_ENV = "MEDIA_INSIGHT_SEGMENT_DB"


class SegmentStore(Protocol):
    def replace_segments(self, asset_id: str, segments: Iterable[Segment]) -> int:
        """Discard existing segments for ``asset_id`` and store ``segments``."""

    def get_segments(self, asset_id: str) -> list[Segment]:
        """Return the segments of ``asset_id`` ordered by start time."""


def _normalize(asset_id: str, segments: Iterable[Segment]) -> list[Segment]:
    if not asset_id:
        raise SegmentPersistenceError("asset_id is required to store transcript segments")
    normalized = [
        Segment(
            start_seconds=segment.start_seconds,
            end_seconds=segment.end_seconds,
            text=segment.text.strip(),
            asset_id=asset_id,
            speaker=segment.speaker,
        )
        for segment in segments
    ]
    normalized.sort(key=lambda segment: segment.start_seconds)
    return normalized


def _matches(segment: Segment, needle: str) -> bool:
    return needle in segment.text.lower()


class InMemorySegmentStore:
    """Process-local store, mostly useful for tests and one-off runs."""

    def __init__(self) -> None:
        self._segments: dict[str, tuple[Segment, ...]] = {}
        self._lock = threading.Lock()

    def replace_segments(self, asset_id: str, segments: Iterable[Segment]) -> int:
        normalized = tuple(_normalize(asset_id, segments))
        with self._lock:
            self._segments[asset_id] = normalized
        return len(normalized)

    def get_segments(self, asset_id: str) -> list[Segment]:
        with self._lock:
            return list(self._segments.get(asset_id, ()))

    def count_segments(self, asset_id: str) -> int:
        with self._lock:
            return len(self._segments.get(asset_id, ()))

    def search_segments(self, asset_id: str, query: str) -> list[Segment]:
        needle = query.strip().lower()
        if not needle:
            return []
        return [segment for segment in self.get_segments(asset_id) if _matches(segment, needle)]


def default_segment_db_path() -> Path:
    override = os.getenv(SEGMENT_DB_ENV)
    if override:
        return Path(override)

    base_dir = os.getenv("XDG_CACHE_HOME")
    base = Path(base_dir) if base_dir else Path.home() / ".cache"
    return base / "media_insight" / "segments.db"


class SqliteSegmentStore:
    """SQLite-backed segment store.

    Each replacement runs the delete and the inserts inside one transaction,
    so concurrent readers see either the previous segment set or the new one.
    """

    def __init__(self, db_path: Path | str | None = None) -> None:
        self.db_path = Path(db_path) if db_path is not None else default_segment_db_path()
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_database(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with closing(self._connect()) as conn, conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS transcript_segments (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        asset_id TEXT NOT NULL,
                        start_seconds REAL NOT NULL,
                        end_seconds REAL NOT NULL,
                        text TEXT NOT NULL,
                        speaker TEXT,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_segments_asset "
                    "ON transcript_segments (asset_id, start_seconds)"
                )
        except (OSError, sqlite3.Error) as exc:
            raise SegmentPersistenceError(
                f"Failed to initialise segment database at {self.db_path}: {exc}"
            ) from exc

    def replace_segments(self, asset_id: str, segments: Iterable[Segment]) -> int:
        normalized = _normalize(asset_id, segments)
        rows = [
            (asset_id, segment.start_seconds, segment.end_seconds, segment.text, segment.speaker)
            for segment in normalized
        ]

        try:
            with closing(self._connect()) as conn, conn:
                conn.execute("DELETE FROM transcript_segments WHERE asset_id = ?", (asset_id,))
                conn.executemany(
                    """
                    INSERT INTO transcript_segments
                    (asset_id, start_seconds, end_seconds, text, speaker)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    rows,
                )
        except sqlite3.Error as exc:
            raise SegmentPersistenceError(
                f"Failed to save transcript segments for asset {asset_id}: {exc}"
            ) from exc

        logger.info("Saved %d transcript segments for asset %s", len(rows), asset_id)
        return len(rows)

    def get_segments(self, asset_id: str) -> list[Segment]:
        return self._select(
            "SELECT start_seconds, end_seconds, text, speaker FROM transcript_segments "
            "WHERE asset_id = ? ORDER BY start_seconds, id",
            (asset_id,),
            asset_id,
        )

    def count_segments(self, asset_id: str) -> int:
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    "SELECT COUNT(*) FROM transcript_segments WHERE asset_id = ?", (asset_id,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise SegmentPersistenceError(
                f"Failed to count transcript segments for asset {asset_id}: {exc}"
            ) from exc
        return int(row[0])

    def search_segments(self, asset_id: str, query: str) -> list[Segment]:
        needle = query.strip().lower()
        if not needle:
            return []
        # instr() keeps LIKE wildcards in the query literal
        return self._select(
            "SELECT start_seconds, end_seconds, text, speaker FROM transcript_segments "
            "WHERE asset_id = ? AND instr(lower(text), ?) > 0 ORDER BY start_seconds, id",
            (asset_id, needle),
            asset_id,
        )

    def _select(self, sql: str, params: tuple, asset_id: str) -> list[Segment]:
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise SegmentPersistenceError(
                f"Failed to read transcript segments for asset {asset_id}: {exc}"
            ) from exc

        return [
            Segment(
                start_seconds=start,
                end_seconds=end,
                text=text,
                asset_id=asset_id,
                speaker=speaker,
            )
            for start, end, text, speaker in rows
        ]
