"""
Board storage backend (SQLite).

Serves as both sides of the external system: `load()` supplies snapshots for
external sync, and `commit_arrangement()` is a commit callback target.
"""
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .commit import moved_cards
from .schema import BoardError, Card

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "boardsync" / "board.db"


class StoreError(BoardError):
    """Raised when an arrangement cannot be written."""
    pass


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection with FK enforcement and WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class BoardStore:
    """SQLite-backed store for board cards and their move history."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize store and create tables if needed."""
        if db_path is None:
            db_path = str(DEFAULT_DB_PATH)
        self.db_path = str(db_path)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS board_cards (
                    card_id TEXT PRIMARY KEY,
                    column_id TEXT NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    label TEXT DEFAULT '',
                    attributes TEXT,  -- JSON object
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS move_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    card_id TEXT NOT NULL,
                    from_column TEXT NOT NULL,
                    to_column TEXT NOT NULL,
                    reason TEXT,
                    updated_by TEXT,
                    timestamp TEXT NOT NULL,
                    FOREIGN KEY (card_id) REFERENCES board_cards(card_id)
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_cards_column ON board_cards(column_id, position)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_history_card ON move_history(card_id, id)")
            conn.commit()

    # -------------------- single-card CRUD --------------------
    def save(self, card: Card, position: Optional[int] = None) -> bool:
        """Insert or update a card. New cards go to the end of the board by default."""
        try:
            with _connect(self.db_path) as conn:
                existing = conn.execute(
                    "SELECT position, created_at FROM board_cards WHERE card_id = ?",
                    (card.card_id,),
                ).fetchone()
                if position is None:
                    if existing:
                        position = existing["position"]
                    else:
                        position = conn.execute(
                            "SELECT COALESCE(MAX(position), -1) + 1 FROM board_cards"
                        ).fetchone()[0]
                now = _now()
                conn.execute("""
                    INSERT OR REPLACE INTO board_cards
                    (card_id, column_id, position, label, attributes, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    card.card_id,
                    card.column,
                    position,
                    card.label,
                    json.dumps(card.attributes, default=str),
                    existing["created_at"] if existing else now,
                    now,
                ))
                conn.commit()
                return True
        except sqlite3.Error as e:
            logger.error(f"Error saving card {card.card_id}: {e}")
            return False

    def get(self, card_id: str) -> Optional[Card]:
        try:
            with _connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT * FROM board_cards WHERE card_id = ?", (card_id,)
                ).fetchone()
            return self._row_to_card(row) if row else None
        except sqlite3.Error as e:
            logger.error(f"Error retrieving card {card_id}: {e}")
            return None

    def delete(self, card_id: str) -> bool:
        """Delete a card and its move history."""
        try:
            with _connect(self.db_path) as conn:
                conn.execute("DELETE FROM move_history WHERE card_id = ?", (card_id,))
                conn.execute("DELETE FROM board_cards WHERE card_id = ?", (card_id,))
                conn.commit()
                return True
        except sqlite3.Error as e:
            logger.error(f"Error deleting card {card_id}: {e}")
            return False

    # -------------------- snapshots --------------------
    def load(self) -> List[Card]:
        """The full board in stored order (the external snapshot)."""
        try:
            with _connect(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT * FROM board_cards ORDER BY position ASC, card_id ASC"
                ).fetchall()
            return [self._row_to_card(row) for row in rows]
        except sqlite3.Error as e:
            logger.error(f"Error loading board: {e}")
            return []

    def list_by_column(self, column_id: str) -> List[Card]:
        try:
            with _connect(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT * FROM board_cards WHERE column_id = ? ORDER BY position ASC",
                    (column_id,),
                ).fetchall()
            return [self._row_to_card(row) for row in rows]
        except sqlite3.Error as e:
            logger.error(f"Error listing cards in column {column_id}: {e}")
            return []

    def get_stats(self) -> Dict[str, Any]:
        """Card counts per column."""
        stats: Dict[str, Any] = {"by_column": {}, "total": 0, "moves": 0}
        try:
            with _connect(self.db_path) as conn:
                for row in conn.execute("SELECT column_id, COUNT(*) FROM board_cards GROUP BY column_id"):
                    stats["by_column"][row[0]] = row[1]
                    stats["total"] += row[1]
                stats["moves"] = conn.execute("SELECT COUNT(*) FROM move_history").fetchone()[0]
        except sqlite3.Error as e:
            logger.error(f"Error getting stats: {e}")
        return stats

    def history(self, card_id: str) -> List[Dict[str, Any]]:
        try:
            with _connect(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT from_column, to_column, reason, updated_by, timestamp "
                    "FROM move_history WHERE card_id = ? ORDER BY id ASC",
                    (card_id,),
                ).fetchall()
            return [dict(r) for r in rows]
        except sqlite3.Error as e:
            logger.error(f"Error reading history for {card_id}: {e}")
            return []

    # -------------------- commit target --------------------
    def commit_arrangement(
        self,
        cards: Iterable[Card],
        reason: str = "Moved via Kanban board",
        updated_by: str = "",
    ) -> List[Card]:
        """
        Persist a full board arrangement in one transaction.

        Writes column and position for every card, and a history row for each
        card whose column changed. Raises StoreError if the arrangement
        references an unknown card; nothing is written in that case.
        Returns the moved cards.
        """
        cards = list(cards)
        previous = self.load()
        known = {c.card_id for c in previous}
        unknown = [c.card_id for c in cards if c.card_id not in known]
        if unknown:
            raise StoreError(f"Unknown card ids in arrangement: {', '.join(unknown)}")

        moved = moved_cards(previous, cards)
        before = {c.card_id: c.column for c in previous}
        now = _now()
        try:
            with _connect(self.db_path) as conn:
                for position, card in enumerate(cards):
                    conn.execute(
                        "UPDATE board_cards SET column_id = ?, position = ?, updated_at = ? WHERE card_id = ?",
                        (card.column, position, now, card.card_id),
                    )
                for card in moved:
                    conn.execute(
                        "INSERT INTO move_history (card_id, from_column, to_column, reason, updated_by, timestamp) "
                        "VALUES (?, ?, ?, ?, ?, ?)",
                        (card.card_id, before[card.card_id], card.column, reason, updated_by, now),
                    )
                conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to store arrangement: {e}") from e
        return moved

    def _row_to_card(self, row: sqlite3.Row) -> Card:
        data = dict(row)
        attributes: Dict[str, Any] = {}
        if data.get("attributes"):
            try:
                attributes = json.loads(data["attributes"])
            except (json.JSONDecodeError, TypeError):
                attributes = {}
        return Card(
            card_id=data["card_id"],
            column=data["column_id"],
            label=data.get("label") or "",
            attributes=attributes,
        )
