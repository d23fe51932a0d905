"""Database service for SQLite operations."""

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from .. import config
from ..errors import InvalidArgument
from ..models import AgendaItem, ChatMessage, RoomConfig, RoomSession, WarningRecord, WarningTier
from .logging_config import get_logger

logger = get_logger("database")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class DatabaseService:
    """Handles all SQLite database operations for persistent storage.

    Manages the following entities:
    - **Agenda items**: ordered per room, positions 1..N kept contiguous
    - **Warnings**: append-only ledger of delivered time warnings per item
    - **Room configs**: one sparse JSON override document per room
    - **Room sessions**: call start/end markers used as the liveness signal
    - **Messages**: everything the bot posted into a room
    - **Settings**: global key/value defaults

    Every operation that touches more than one row runs inside a single
    ``BEGIN IMMEDIATE`` transaction so concurrent writers never observe a
    half-applied renumbering or two current items.

    Usage:
        db = DatabaseService("agendabot.db")
        items = db.get_agenda_items("room-token")
        db.set_current_item("room-token", items[0].id, now)
    """

    def __init__(self, db_path: str = config.DB_PATH):
        """Initialize database service with given path."""
        self.db_path = db_path
        self._initialize_database()
        logger.info(f"Database initialized at {db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction that commits on success, rolls back on error."""
        conn = self._get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _initialize_database(self) -> None:
        """Create database tables if they don't exist."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS agenda_items (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    room_id TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    title TEXT NOT NULL,
                    planned_minutes INTEGER NOT NULL DEFAULT 10,
                    is_completed INTEGER DEFAULT 0,
                    completed_at TEXT,
                    start_time TEXT,
                    created_at TEXT NOT NULL
                )
            ''')
            cursor.execute('''
                CREATE UNIQUE INDEX IF NOT EXISTS idx_agenda_room_position
                ON agenda_items(room_id, position)
            ''')
            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_agenda_active
                ON agenda_items(is_completed, start_time)
            ''')

            # One row per (item, tier) - the monitor's idempotence ledger
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS agenda_warnings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    item_id INTEGER NOT NULL,
                    room_id TEXT NOT NULL,
                    tier TEXT NOT NULL
                         CHECK(tier IN ('approaching','overtime','overtime_critical')),
                    elapsed_minutes REAL NOT NULL,
                    planned_minutes INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (item_id) REFERENCES agenda_items(id) ON DELETE CASCADE,
                    UNIQUE(item_id, tier)
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS room_configs (
                    room_id TEXT PRIMARY KEY,
                    details TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS room_sessions (
                    room_id TEXT PRIMARY KEY,
                    started_at TEXT,
                    ended_at TEXT
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    room_id TEXT NOT NULL,
                    sender_name TEXT NOT NULL,
                    content TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    silent INTEGER DEFAULT 1,
                    message_type TEXT DEFAULT 'response'
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            ''')

            conn.commit()
        conn.close()

    # Agenda item queries
    def get_agenda_items(self, room_id: str) -> List[AgendaItem]:
        """Get all agenda items of a room in position order."""
        with self._get_connection() as conn:
            rows = conn.execute(
                'SELECT * FROM agenda_items WHERE room_id = ? ORDER BY position', (room_id,)
            ).fetchall()
        conn.close()
        return [AgendaItem.from_dict(dict(row)) for row in rows]

    def get_agenda_item(self, item_id: int) -> Optional[AgendaItem]:
        """Get a specific agenda item by ID."""
        with self._get_connection() as conn:
            row = conn.execute('SELECT * FROM agenda_items WHERE id = ?', (item_id,)).fetchone()
        conn.close()
        return AgendaItem.from_dict(dict(row)) if row else None

    def get_item_by_position(self, room_id: str, position: int) -> Optional[AgendaItem]:
        """Get the item at a position in a room."""
        with self._get_connection() as conn:
            row = conn.execute(
                'SELECT * FROM agenda_items WHERE room_id = ? AND position = ?', (room_id, position)
            ).fetchone()
        conn.close()
        return AgendaItem.from_dict(dict(row)) if row else None

    def get_incomplete_items(self, room_id: str) -> List[AgendaItem]:
        """Get the open items of a room in position order."""
        with self._get_connection() as conn:
            rows = conn.execute('''
                SELECT * FROM agenda_items
                WHERE room_id = ? AND is_completed = 0
                ORDER BY position
            ''', (room_id,)).fetchall()
        conn.close()
        return [AgendaItem.from_dict(dict(row)) for row in rows]

    def get_current_item(self, room_id: str) -> Optional[AgendaItem]:
        """Get the room's active item (started and not completed)."""
        with self._get_connection() as conn:
            row = conn.execute('''
                SELECT * FROM agenda_items
                WHERE room_id = ? AND start_time IS NOT NULL AND is_completed = 0
                ORDER BY start_time DESC
                LIMIT 1
            ''', (room_id,)).fetchone()
        conn.close()
        return AgendaItem.from_dict(dict(row)) if row else None

    def get_active_items(self) -> List[AgendaItem]:
        """Get started, incomplete items with a planned duration across all rooms."""
        with self._get_connection() as conn:
            rows = conn.execute('''
                SELECT * FROM agenda_items
                WHERE start_time IS NOT NULL AND is_completed = 0 AND planned_minutes > 0
                ORDER BY start_time
            ''').fetchall()
        conn.close()
        return [AgendaItem.from_dict(dict(row)) for row in rows]

    def count_agenda_items(self, room_id: str) -> int:
        """Number of items on a room's agenda."""
        with self._get_connection() as conn:
            count = conn.execute(
                'SELECT COUNT(*) FROM agenda_items WHERE room_id = ?', (room_id,)
            ).fetchone()[0]
        conn.close()
        return count

    @staticmethod
    def _next_position(conn: sqlite3.Connection, room_id: str) -> int:
        result = conn.execute(
            'SELECT MAX(position) FROM agenda_items WHERE room_id = ?', (room_id,)
        ).fetchone()[0]
        return (result or 0) + 1

    # Agenda item mutations
    def insert_agenda_items(self, room_id: str, items: List[Tuple[str, int, Optional[int]]],
                            created_at: datetime, max_items: Optional[int] = None) -> List[AgendaItem]:
        """Append items to a room's agenda in one transaction.

        Each entry is ``(title, planned_minutes, requested_position)``. A
        requested position is kept only if it is the next free slot; anything
        else (occupied or past the end) becomes max(position)+1 so positions
        stay contiguous. With ``max_items`` the room's item count is checked
        inside the same transaction and nothing is inserted if it would be
        exceeded.
        """
        created = []
        with self._transaction() as conn:
            if max_items is not None:
                count = conn.execute(
                    'SELECT COUNT(*) FROM agenda_items WHERE room_id = ?', (room_id,)
                ).fetchone()[0]
                if count + len(items) > max_items:
                    if len(items) == 1:
                        message = f"Agenda is full ({max_items} items maximum)"
                    else:
                        message = f"Adding {len(items)} items would exceed the limit of {max_items}"
                    raise InvalidArgument(message, max_items=max_items)
            for title, planned_minutes, requested in items:
                position = self._next_position(conn, room_id)
                if requested is not None and requested != position:
                    logger.debug(f"Room {room_id}: position {requested} unavailable, using {position}")
                cursor = conn.execute('''
                    INSERT INTO agenda_items (room_id, position, title, planned_minutes,
                                              is_completed, created_at)
                    VALUES (?, ?, ?, ?, 0, ?)
                ''', (room_id, position, title, planned_minutes, _iso(created_at)))
                created.append(AgendaItem(
                    id=cursor.lastrowid,
                    room_id=room_id,
                    position=position,
                    title=title,
                    planned_minutes=planned_minutes,
                    created_at=created_at
                ))
        return created

    @staticmethod
    def _apply_positions(conn: sqlite3.Connection, room_id: str, updates: Dict[int, int]) -> None:
        """Move items to new positions without tripping the unique index.

        Targets are first written negated, then flipped positive, so no
        intermediate state holds two items on the same position.
        """
        for item_id, new_position in updates.items():
            conn.execute(
                'UPDATE agenda_items SET position = ? WHERE id = ? AND room_id = ?',
                (-new_position, item_id, room_id)
            )
        conn.execute(
            'UPDATE agenda_items SET position = -position WHERE room_id = ? AND position < 0',
            (room_id,)
        )

    def update_agenda_positions(self, room_id: str, updates: Dict[int, int]) -> None:
        """Apply an item_id -> new position map atomically."""
        if not updates:
            return
        with self._transaction() as conn:
            self._apply_positions(conn, room_id, updates)
        logger.debug(f"Room {room_id}: updated positions {updates}")

    def delete_item_and_compact(self, room_id: str, item_id: int) -> bool:
        """Delete an item and close the gap it leaves."""
        with self._transaction() as conn:
            row = conn.execute(
                'SELECT position FROM agenda_items WHERE id = ? AND room_id = ?', (item_id, room_id)
            ).fetchone()
            if not row:
                return False
            removed_position = row['position']
            conn.execute('DELETE FROM agenda_items WHERE id = ?', (item_id,))
            rows = conn.execute('''
                SELECT id, position FROM agenda_items
                WHERE room_id = ? AND position > ?
            ''', (room_id, removed_position)).fetchall()
            self._apply_positions(conn, room_id, {r['id']: r['position'] - 1 for r in rows})
        logger.info(f"Room {room_id}: deleted item {item_id} at position {removed_position}")
        return True

    def delete_completed_and_renumber(self, room_id: str) -> Tuple[int, int]:
        """Delete completed items, renumber the rest from 1. Returns (removed, remaining)."""
        with self._transaction() as conn:
            removed = conn.execute(
                'DELETE FROM agenda_items WHERE room_id = ? AND is_completed = 1', (room_id,)
            ).rowcount
            rows = conn.execute(
                'SELECT id, position FROM agenda_items WHERE room_id = ? ORDER BY position', (room_id,)
            ).fetchall()
            updates = {
                row['id']: index
                for index, row in enumerate(rows, start=1)
                if row['position'] != index
            }
            self._apply_positions(conn, room_id, updates)
        return removed, len(rows)

    def delete_room_items(self, room_id: str) -> int:
        """Delete every agenda item of a room. Returns the count."""
        with self._transaction() as conn:
            count = conn.execute('DELETE FROM agenda_items WHERE room_id = ?', (room_id,)).rowcount
        logger.info(f"Room {room_id}: cleared {count} agenda items")
        return count

    @staticmethod
    def _clear_active(conn: sqlite3.Connection, room_id: str, keep_id: Optional[int] = None) -> int:
        return conn.execute('''
            UPDATE agenda_items SET start_time = NULL
            WHERE room_id = ? AND start_time IS NOT NULL AND is_completed = 0 AND id IS NOT ?
        ''', (room_id, keep_id)).rowcount

    def set_current_item(self, room_id: str, item_id: int, start_time: datetime) -> None:
        """Make one item current: clear every other active item, then start it."""
        with self._transaction() as conn:
            self._clear_active(conn, room_id, keep_id=item_id)
            conn.execute(
                'UPDATE agenda_items SET start_time = ? WHERE id = ? AND room_id = ?',
                (_iso(start_time), item_id, room_id)
            )

    def complete_item(self, room_id: str, item_id: int, completed_at: datetime,
                      advance: bool = True) -> Optional[AgendaItem]:
        """Complete an item, advancing to the first open item by position.

        The start time of the completed item is kept for duration math. If
        the next item is already running it keeps its start time. With
        ``advance`` False the current marker is left alone. Returns the item
        that is current afterwards, or None if there is none.
        """
        with self._transaction() as conn:
            conn.execute('''
                UPDATE agenda_items SET is_completed = 1, completed_at = ?
                WHERE id = ? AND room_id = ?
            ''', (_iso(completed_at), item_id, room_id))
            if not advance:
                row = conn.execute('''
                    SELECT * FROM agenda_items
                    WHERE room_id = ? AND start_time IS NOT NULL AND is_completed = 0
                    ORDER BY start_time DESC
                    LIMIT 1
                ''', (room_id,)).fetchone()
                return AgendaItem.from_dict(dict(row)) if row else None
            row = conn.execute('''
                SELECT * FROM agenda_items
                WHERE room_id = ? AND is_completed = 0
                ORDER BY position
                LIMIT 1
            ''', (room_id,)).fetchone()
            if not row:
                self._clear_active(conn, room_id)
                return None
            next_item = AgendaItem.from_dict(dict(row))
            self._clear_active(conn, room_id, keep_id=next_item.id)
            if next_item.start_time is None:
                next_item.start_time = completed_at
                conn.execute(
                    'UPDATE agenda_items SET start_time = ? WHERE id = ?',
                    (_iso(completed_at), next_item.id)
                )
        return next_item

    def reopen_item(self, item_id: int) -> None:
        """Mark an item incomplete again; it does not become current."""
        with self._transaction() as conn:
            conn.execute('''
                UPDATE agenda_items SET is_completed = 0, completed_at = NULL, start_time = NULL
                WHERE id = ?
            ''', (item_id,))

    def clear_active_items(self, room_id: str) -> int:
        """Stop every running item of a room without completing it."""
        with self._transaction() as conn:
            count = self._clear_active(conn, room_id)
        return count

    def update_item_duration(self, item_id: int, planned_minutes: int) -> int:
        """Change an item's plan and forget its warnings. Returns warnings dropped."""
        with self._transaction() as conn:
            conn.execute(
                'UPDATE agenda_items SET planned_minutes = ? WHERE id = ?', (planned_minutes, item_id)
            )
            dropped = conn.execute(
                'DELETE FROM agenda_warnings WHERE item_id = ?', (item_id,)
            ).rowcount
        return dropped

    # Warning ledger
    def get_warning_tiers(self, item_id: int) -> Set[WarningTier]:
        """Tiers already delivered for an item."""
        with self._get_connection() as conn:
            rows = conn.execute(
                'SELECT tier FROM agenda_warnings WHERE item_id = ?', (item_id,)
            ).fetchall()
        conn.close()
        return {WarningTier(row['tier']) for row in rows}

    def has_warning(self, item_id: int, tier: WarningTier) -> bool:
        """Check whether a tier was already delivered for an item."""
        return tier in self.get_warning_tiers(item_id)

    def get_warnings_for_item(self, item_id: int) -> List[WarningRecord]:
        """All warning records of an item, oldest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                'SELECT * FROM agenda_warnings WHERE item_id = ? ORDER BY id', (item_id,)
            ).fetchall()
        conn.close()
        return [WarningRecord.from_dict(dict(row)) for row in rows]

    def insert_warning(self, record: WarningRecord) -> bool:
        """Append a warning record. Returns False if the (item, tier) pair exists."""
        with self._get_connection() as conn:
            cursor = conn.execute('''
                INSERT OR IGNORE INTO agenda_warnings
                    (item_id, room_id, tier, elapsed_minutes, planned_minutes, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            ''', (
                record.item_id,
                record.room_id,
                record.tier.value,
                record.elapsed_minutes,
                record.planned_minutes,
                _iso(record.created_at)
            ))
            conn.commit()
            inserted = cursor.rowcount > 0
            if inserted:
                record.id = cursor.lastrowid
        conn.close()
        return inserted

    # Room configuration documents
    def get_room_config(self, room_id: str) -> Optional[RoomConfig]:
        """Get a room's override document, if any."""
        with self._get_connection() as conn:
            row = conn.execute(
                'SELECT details FROM room_configs WHERE room_id = ?', (room_id,)
            ).fetchone()
        conn.close()
        return RoomConfig.from_row(room_id, row['details']) if row else None

    def update_room_config(self, room_id: str,
                           mutate: Callable[[RoomConfig], Optional[RoomConfig]],
                           updated_at: datetime) -> Optional[RoomConfig]:
        """Atomic read-modify-write of a room document.

        ``mutate`` receives the stored document (or an empty one) and returns
        the document to store, or None to delete it.
        """
        with self._transaction() as conn:
            row = conn.execute(
                'SELECT details FROM room_configs WHERE room_id = ?', (room_id,)
            ).fetchone()
            current = RoomConfig.from_row(room_id, row['details'] if row else None)
            result = mutate(current)
            if result is None:
                if row:
                    conn.execute('DELETE FROM room_configs WHERE room_id = ?', (room_id,))
                return None
            conn.execute('''
                INSERT OR REPLACE INTO room_configs (room_id, details, updated_at)
                VALUES (?, ?, ?)
            ''', (room_id, result.to_json(), _iso(updated_at)))
        return result

    def delete_room_config(self, room_id: str) -> bool:
        """Delete a room's override document."""
        with self._get_connection() as conn:
            cursor = conn.execute('DELETE FROM room_configs WHERE room_id = ?', (room_id,))
            conn.commit()
            deleted = cursor.rowcount > 0
        conn.close()
        return deleted

    # Call sessions
    def start_session(self, room_id: str, started_at: datetime) -> None:
        """Record that a call started in a room."""
        with self._get_connection() as conn:
            conn.execute('''
                INSERT OR REPLACE INTO room_sessions (room_id, started_at, ended_at)
                VALUES (?, ?, NULL)
            ''', (room_id, _iso(started_at)))
            conn.commit()
        conn.close()

    def end_session(self, room_id: str, ended_at: datetime) -> None:
        """Record that the call in a room ended."""
        with self._get_connection() as conn:
            conn.execute(
                'UPDATE room_sessions SET ended_at = ? WHERE room_id = ?', (_iso(ended_at), room_id)
            )
            conn.commit()
        conn.close()

    def get_session(self, room_id: str) -> Optional[RoomSession]:
        """Get the latest call session of a room."""
        with self._get_connection() as conn:
            row = conn.execute('SELECT * FROM room_sessions WHERE room_id = ?', (room_id,)).fetchone()
        conn.close()
        return RoomSession.from_dict(dict(row)) if row else None

    def is_call_active(self, room_id: str) -> bool:
        """True while a call is live in the room."""
        session = self.get_session(room_id)
        return session is not None and session.is_live

    # Message operations
    def save_message(self, message: ChatMessage) -> int:
        """Save a message. Returns the message ID."""
        with self._get_connection() as conn:
            cursor = conn.execute('''
                INSERT INTO messages (room_id, sender_name, content, timestamp, silent, message_type)
                VALUES (?, ?, ?, ?, ?, ?)
            ''', (
                message.room_id,
                message.sender_name,
                message.content,
                _iso(message.timestamp),
                int(message.silent),
                message.message_type
            ))
            conn.commit()
            message.id = cursor.lastrowid
        conn.close()
        return message.id

    def get_messages_for_room(self, room_id: str, since_id: Optional[int] = None) -> List[ChatMessage]:
        """Get messages for a room, optionally only those after a message ID."""
        with self._get_connection() as conn:
            rows = conn.execute('''
                SELECT * FROM messages
                WHERE room_id = ? AND id > ?
                ORDER BY id
            ''', (room_id, since_id or 0)).fetchall()
        conn.close()
        return [ChatMessage.from_dict(dict(row)) for row in rows]

    def clear_room_messages(self, room_id: str) -> None:
        """Delete all messages of a room."""
        with self._get_connection() as conn:
            conn.execute('DELETE FROM messages WHERE room_id = ?', (room_id,))
            conn.commit()
        conn.close()
        logger.info(f"Cleared messages for room {room_id}")

    # Settings operations
    def get_setting(self, key: str, default: str = None) -> Optional[str]:
        """Get a setting value."""
        with self._get_connection() as conn:
            row = conn.execute('SELECT value FROM settings WHERE key = ?', (key,)).fetchone()
        conn.close()
        return row[0] if row else default

    def set_setting(self, key: str, value: str) -> None:
        """Set a setting value."""
        with self._get_connection() as conn:
            conn.execute('''
                INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)
            ''', (key, value))
            conn.commit()
        conn.close()
