"""
SQLite Store: Infrastructure adapter for local persisted state.

Implements the review store, the review log sink and the preference store
on a single SQLite database.
"""

import json
import logging
import sqlite3
from collections.abc import AsyncIterator, Iterable, Iterator
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Any

from cardloop.domain.constants import SQL_CHUNK_SIZE
from cardloop.domain.errors import StorageFailure
from cardloop.domain.models import Card, ReviewLogEntry, ReviewState
from cardloop.domain.ports import PreferenceStore, ReviewLogSink, ReviewStore

SCHEMA = """
CREATE TABLE IF NOT EXISTS cards (
    id TEXT PRIMARY KEY,
    deck_id TEXT NOT NULL,
    front TEXT NOT NULL,
    back TEXT NOT NULL,
    audio TEXT NOT NULL DEFAULT '',
    audio_slow TEXT,
    notes TEXT,
    tags TEXT NOT NULL DEFAULT '[]',
    sequence INTEGER,
    external_id TEXT
);
CREATE INDEX IF NOT EXISTS idx_cards_deck ON cards(deck_id);

CREATE TABLE IF NOT EXISTS reviews (
    card_id TEXT PRIMARY KEY,
    interval INTEGER NOT NULL,
    due TEXT NOT NULL,
    ease REAL NOT NULL,
    streak INTEGER NOT NULL,
    lapses INTEGER NOT NULL,
    suspended INTEGER NOT NULL DEFAULT 0,
    hard_flag INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_reviews_due ON reviews(due);

CREATE TABLE IF NOT EXISTS logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    "when" TEXT NOT NULL,
    card_id TEXT NOT NULL,
    deck_id TEXT NOT NULL,
    grade INTEGER NOT NULL,
    mode TEXT NOT NULL,
    duration_ms INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_logs_deck ON logs(deck_id);

CREATE TABLE IF NOT EXISTS preferences (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


def _chunks(items: list[str], size: int = SQL_CHUNK_SIZE) -> Iterator[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _row_to_card(row: sqlite3.Row) -> Card:
    return Card(
        id=row["id"],
        deck_id=row["deck_id"],
        front=row["front"],
        back=row["back"],
        audio=row["audio"],
        audio_slow=row["audio_slow"],
        notes=row["notes"],
        tags=tuple(json.loads(row["tags"] or "[]")),
        sequence=row["sequence"],
        external_id=row["external_id"],
    )


def _row_to_review(row: sqlite3.Row) -> ReviewState:
    return ReviewState.from_record(dict(row))


class SqliteStore(ReviewStore, ReviewLogSink, PreferenceStore):
    """
    Local SQLite persistence.

    Every sqlite3.Error is re-raised as StorageFailure. Writes outside a
    transaction() block are committed immediately.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = db_path
        self.logger = logging.getLogger(__name__)
        self._tx_depth = 0

        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        with self._guard("open"):
            # Opened in the caller's thread; TestClient serves requests from its portal thread.
            self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.conn.executescript(SCHEMA)
            self.conn.commit()

    def __enter__(self) -> "SqliteStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        self.conn.close()

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as e:
            self.logger.error(f"SQLite {action} failed: {e}")
            raise StorageFailure(f"Storage {action} failed: {e}") from e

    def _query(self, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
        with self._guard("query"):
            return self.conn.execute(sql, tuple(params)).fetchall()

    def _write(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        with self._guard("write"):
            cursor = self.conn.execute(sql, tuple(params))
            if self._tx_depth == 0:
                self.conn.commit()
            return cursor

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        self._tx_depth += 1
        try:
            yield
        except BaseException:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                with self._guard("rollback"):
                    self.conn.rollback()
            raise
        else:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                with self._guard("commit"):
                    self.conn.commit()

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    async def get_review(self, card_id: str) -> ReviewState | None:
        if not card_id:
            return None
        rows = self._query("SELECT * FROM reviews WHERE card_id = ?", (card_id,))
        return _row_to_review(rows[0]) if rows else None

    async def put_review(self, review: ReviewState) -> None:
        self._write(
            "INSERT OR REPLACE INTO reviews "
            "(card_id, interval, due, ease, streak, lapses, suspended, hard_flag) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                review.card_id,
                review.interval,
                review.due,
                review.ease,
                review.streak,
                review.lapses,
                int(review.suspended),
                int(review.hard_flag),
            ),
        )

    async def get_reviews_for_cards(self, card_ids: list[str]) -> list[ReviewState]:
        reviews: list[ReviewState] = []
        for chunk in _chunks(card_ids):
            placeholders = ",".join("?" for _ in chunk)
            rows = self._query(f"SELECT * FROM reviews WHERE card_id IN ({placeholders})", chunk)
            reviews.extend(_row_to_review(row) for row in rows)
        return reviews

    async def get_due_reviews_by_deck(self, deck_id: str, before_iso: str) -> list[ReviewState]:
        rows = self._query(
            "SELECT r.* FROM reviews r JOIN cards c ON c.id = r.card_id "
            "WHERE c.deck_id = ? AND r.suspended = 0 AND r.due <= ? "
            "ORDER BY r.due ASC",
            (deck_id, before_iso),
        )
        return [_row_to_review(row) for row in rows]

    async def list_reviews(self) -> list[ReviewState]:
        return [_row_to_review(row) for row in self._query("SELECT * FROM reviews")]

    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------

    async def get_card(self, card_id: str) -> Card | None:
        rows = self._query("SELECT * FROM cards WHERE id = ?", (card_id,))
        return _row_to_card(rows[0]) if rows else None

    async def get_deck_cards(self, deck_id: str) -> list[Card]:
        rows = self._query("SELECT * FROM cards WHERE deck_id = ? ORDER BY rowid", (deck_id,))
        return [_row_to_card(row) for row in rows]

    async def list_cards(self) -> list[Card]:
        return [_row_to_card(row) for row in self._query("SELECT * FROM cards ORDER BY rowid")]

    async def put_cards(self, cards: Iterable[Card]) -> int:
        written = 0
        for card in cards:
            self._write(
                "INSERT OR REPLACE INTO cards "
                "(id, deck_id, front, back, audio, audio_slow, notes, tags, sequence, external_id) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    card.id,
                    card.deck_id,
                    card.front,
                    card.back,
                    card.audio,
                    card.audio_slow,
                    card.notes,
                    json.dumps(list(card.tags)),
                    card.sequence,
                    card.external_id,
                ),
            )
            written += 1
        return written

    # ------------------------------------------------------------------
    # Review log
    # ------------------------------------------------------------------

    async def append(self, entry: ReviewLogEntry) -> int:
        cursor = self._write(
            'INSERT INTO logs ("when", card_id, deck_id, grade, mode, duration_ms) '
            "VALUES (?, ?, ?, ?, ?, ?)",
            (entry.when, entry.card_id, entry.deck_id, entry.grade, entry.mode, entry.duration_ms),
        )
        return int(cursor.lastrowid or 0)

    async def list_logs(self) -> list[ReviewLogEntry]:
        rows = self._query("SELECT * FROM logs ORDER BY id ASC")
        return [
            ReviewLogEntry(
                id=row["id"],
                when=row["when"],
                card_id=row["card_id"],
                deck_id=row["deck_id"],
                grade=row["grade"],
                mode=row["mode"],
                duration_ms=row["duration_ms"],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def get_preference(self, key: str) -> str | None:
        rows = self._query("SELECT value FROM preferences WHERE key = ?", (key,))
        return rows[0]["value"] if rows else None

    async def set_preference(self, key: str, value: str) -> None:
        self._write("INSERT OR REPLACE INTO preferences (key, value) VALUES (?, ?)", (key, value))

    async def remove_preference(self, key: str) -> None:
        self._write("DELETE FROM preferences WHERE key = ?", (key,))
