"""DocumentStore: DuckDB-backed storage for users, rooms, and messages.

The store speaks in plain dictionaries ("documents") with the camelCase
field names used on the wire. It does not validate shape; callers decode
documents into typed entities through :mod:`clinic_chat.store.codec`.

Database Schema:
    users              : one row per principal (merge-upserted on sign-in)
    rooms              : room metadata; ``code`` is unique
    room_participants  : (room_id, user_id) membership, set semantics
    messages           : append-only, ``seq`` breaks timestamp ties
    message_reads      : (message_id, user_id) read receipts, set semantics

All membership and read-receipt writes are set-unions, so repeating them
is harmless. Room deletion removes the room's messages and receipts in
one transaction.

Thread Safety:
    One DuckDB connection per store. Calls are synchronous and are made
    from the event loop thread only.
"""
import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

import duckdb

from ..errors import StoreError

logger = logging.getLogger(__name__)


@contextmanager
def store_operation(name: str) -> Iterator[None]:
    """Translate DuckDB failures into :class:`StoreError`."""
    try:
        yield
    except duckdb.Error as e:
        logger.error(f"[DocumentStore] {name} failed: {e}")
        raise StoreError(f"{name} failed: {e}") from e

_SCHEMA = [
    "CREATE SEQUENCE IF NOT EXISTS rooms_seq START 1",
    "CREATE SEQUENCE IF NOT EXISTS messages_seq START 1",
    """
    CREATE TABLE IF NOT EXISTS users (
        id          VARCHAR PRIMARY KEY,
        name        VARCHAR,
        email       VARCHAR,
        photo_url   VARCHAR,
        role        VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS rooms (
        id          VARCHAR PRIMARY KEY,
        seq         BIGINT DEFAULT nextval('rooms_seq'),
        name        VARCHAR NOT NULL,
        code        VARCHAR NOT NULL UNIQUE,
        created_by  VARCHAR NOT NULL,
        created_at  BIGINT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS room_participants (
        room_id     VARCHAR NOT NULL,
        user_id     VARCHAR NOT NULL,
        joined_at   BIGINT NOT NULL,
        PRIMARY KEY (room_id, user_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id            VARCHAR PRIMARY KEY,
        room_id       VARCHAR NOT NULL,
        seq           BIGINT DEFAULT nextval('messages_seq'),
        sender_id     VARCHAR NOT NULL,
        sender_name   VARCHAR,
        sender_photo  VARCHAR,
        text          VARCHAR,
        image_url     VARCHAR,
        timestamp     BIGINT NOT NULL,
        is_important  BOOLEAN NOT NULL DEFAULT FALSE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS message_reads (
        message_id  VARCHAR NOT NULL,
        user_id     VARCHAR NOT NULL,
        read_at     BIGINT NOT NULL,
        PRIMARY KEY (message_id, user_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_participants_user ON room_participants(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_messages_room ON messages(room_id)",
]

_USER_COLUMNS = {
    "id": "id",
    "name": "name",
    "email": "email",
    "photoURL": "photo_url",
    "role": "role",
}

_ROOM_SELECT = "SELECT r.id, r.name, r.code, r.created_by, r.created_at FROM rooms r"

_MESSAGE_SELECT = (
    "SELECT id, sender_id, sender_name, sender_photo, text, image_url, "
    "timestamp, is_important FROM messages"
)


class DocumentStore:
    """Embedded document store with explicit open/close lifecycle."""

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._conn: Optional[duckdb.DuckDBPyConnection] = None

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def open(self) -> None:
        if self._conn is not None:
            return
        self._conn = duckdb.connect(self._db_path)
        for statement in _SCHEMA:
            self._conn.execute(statement)
        logger.info("[DocumentStore] Opened db=%s", self._db_path)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("[DocumentStore] Closed db=%s", self._db_path)

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise RuntimeError("DocumentStore is not open")
        return self._conn

    # -----------------------------------------------------------------------
    # Users
    # -----------------------------------------------------------------------

    def get_user(self, user_id: str) -> Optional[dict]:
        row = self.conn.execute(
            "SELECT id, name, email, photo_url, role FROM users WHERE id = ?",
            [user_id],
        ).fetchone()
        if row is None:
            return None
        doc = dict(zip(_USER_COLUMNS, row))
        return {k: v for k, v in doc.items() if v is not None}

    def upsert_user(self, doc: dict) -> dict:
        """Merge ``doc`` into the stored user; absent or None fields are kept."""
        existing = self.get_user(doc["id"]) or {}
        merged = dict(existing)
        merged.update({k: v for k, v in doc.items() if k in _USER_COLUMNS and v is not None})
        self.conn.execute(
            "INSERT OR REPLACE INTO users (id, name, email, photo_url, role) "
            "VALUES (?, ?, ?, ?, ?)",
            [merged.get(key) for key in _USER_COLUMNS],
        )
        return merged

    # -----------------------------------------------------------------------
    # Rooms
    # -----------------------------------------------------------------------

    def insert_room(self, doc: dict) -> dict:
        """Insert a room and its creator's membership atomically.

        Raises:
            duckdb.ConstraintException: If the id or invite code is taken.
        """
        conn = self.conn
        conn.begin()
        try:
            conn.execute(
                "INSERT INTO rooms (id, name, code, created_by, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                [doc["id"], doc["name"], doc["code"], doc["createdBy"], doc["createdAt"]],
            )
            conn.execute(
                "INSERT INTO room_participants (room_id, user_id, joined_at) VALUES (?, ?, ?)",
                [doc["id"], doc["createdBy"], doc["createdAt"]],
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        return self.get_room(doc["id"])

    def code_exists(self, code: str) -> bool:
        row = self.conn.execute("SELECT 1 FROM rooms WHERE code = ?", [code]).fetchone()
        return row is not None

    def get_room(self, room_id: str) -> Optional[dict]:
        rows = self.conn.execute(f"{_ROOM_SELECT} WHERE r.id = ?", [room_id]).fetchall()
        rooms = self._rooms_from_rows(rows)
        return rooms[0] if rooms else None

    def find_rooms_by_code(self, code: str) -> List[dict]:
        rows = self.conn.execute(
            f"{_ROOM_SELECT} WHERE r.code = ? ORDER BY r.created_at ASC, r.seq ASC",
            [code],
        ).fetchall()
        return self._rooms_from_rows(rows)

    def rooms_for_user(self, user_id: str) -> List[dict]:
        """Rooms whose participants contain ``user_id``, newest first."""
        rows = self.conn.execute(
            f"{_ROOM_SELECT} JOIN room_participants p ON p.room_id = r.id "
            "WHERE p.user_id = ? ORDER BY r.created_at DESC, r.seq DESC",
            [user_id],
        ).fetchall()
        return self._rooms_from_rows(rows)

    def add_participant(self, room_id: str, user_id: str, joined_at: int) -> bool:
        """Add ``user_id`` to the room. Returns False if already a member."""
        existing = self.conn.execute(
            "SELECT 1 FROM room_participants WHERE room_id = ? AND user_id = ?",
            [room_id, user_id],
        ).fetchone()
        if existing is not None:
            return False
        self.conn.execute(
            "INSERT INTO room_participants (room_id, user_id, joined_at) "
            "VALUES (?, ?, ?) ON CONFLICT DO NOTHING",
            [room_id, user_id, joined_at],
        )
        return True

    def delete_room(self, room_id: str) -> bool:
        """Delete a room with its members, messages, and read receipts."""
        conn = self.conn
        conn.begin()
        try:
            conn.execute(
                "DELETE FROM message_reads WHERE message_id IN "
                "(SELECT id FROM messages WHERE room_id = ?)",
                [room_id],
            )
            conn.execute("DELETE FROM messages WHERE room_id = ?", [room_id])
            conn.execute("DELETE FROM room_participants WHERE room_id = ?", [room_id])
            deleted = conn.execute(
                "DELETE FROM rooms WHERE id = ? RETURNING id", [room_id]
            ).fetchall()
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        return len(deleted) > 0

    def _rooms_from_rows(self, rows) -> List[dict]:
        if not rows:
            return []
        room_ids = [row[0] for row in rows]
        participants = self._participants_for(room_ids)
        return [
            {
                "id": row[0],
                "name": row[1],
                "code": row[2],
                "createdBy": row[3],
                "createdAt": row[4],
                "participants": participants.get(row[0], []),
            }
            for row in rows
        ]

    def _participants_for(self, room_ids: List[str]) -> Dict[str, List[str]]:
        placeholders = ", ".join("?" for _ in room_ids)
        rows = self.conn.execute(
            "SELECT room_id, user_id FROM room_participants "
            f"WHERE room_id IN ({placeholders}) ORDER BY joined_at ASC, user_id ASC",
            room_ids,
        ).fetchall()
        result: Dict[str, List[str]] = {}
        for room_id, user_id in rows:
            result.setdefault(room_id, []).append(user_id)
        return result

    # -----------------------------------------------------------------------
    # Messages
    # -----------------------------------------------------------------------

    def insert_message(self, room_id: str, doc: dict) -> dict:
        """Append a message; the sender is recorded as its first reader."""
        conn = self.conn
        conn.begin()
        try:
            conn.execute(
                "INSERT INTO messages (id, room_id, sender_id, sender_name, sender_photo, "
                "text, image_url, timestamp, is_important) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    doc["id"], room_id, doc["senderId"], doc.get("senderName", ""),
                    doc.get("senderPhoto", ""), doc.get("text", ""), doc.get("imageUrl"),
                    doc["timestamp"], bool(doc.get("isImportant", False)),
                ],
            )
            conn.execute(
                "INSERT INTO message_reads (message_id, user_id, read_at) "
                "VALUES (?, ?, ?) ON CONFLICT DO NOTHING",
                [doc["id"], doc["senderId"], doc["timestamp"]],
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        return self.get_message(room_id, doc["id"])

    def get_message(self, room_id: str, message_id: str) -> Optional[dict]:
        rows = self.conn.execute(
            f"{_MESSAGE_SELECT} WHERE room_id = ? AND id = ?", [room_id, message_id]
        ).fetchall()
        messages = self._messages_from_rows(rows)
        return messages[0] if messages else None

    def recent_messages(self, room_id: str, limit: int) -> List[dict]:
        """The newest ``limit`` messages, returned oldest first."""
        rows = self.conn.execute(
            "SELECT id, sender_id, sender_name, sender_photo, text, image_url, "
            "timestamp, is_important FROM ("
            "SELECT * FROM messages WHERE room_id = ? "
            "ORDER BY timestamp DESC, seq DESC LIMIT ?"
            ") AS recent ORDER BY timestamp ASC, seq ASC",
            [room_id, limit],
        ).fetchall()
        return self._messages_from_rows(rows)

    def count_messages(self, room_id: str) -> int:
        row = self.conn.execute(
            "SELECT count(*) FROM messages WHERE room_id = ?", [room_id]
        ).fetchone()
        return int(row[0])

    def add_reader(self, message_id: str, user_id: str, read_at: int) -> bool:
        """Add ``user_id`` to the message's readers. Returns False if present."""
        existing = self.conn.execute(
            "SELECT 1 FROM message_reads WHERE message_id = ? AND user_id = ?",
            [message_id, user_id],
        ).fetchone()
        if existing is not None:
            return False
        self.conn.execute(
            "INSERT INTO message_reads (message_id, user_id, read_at) "
            "VALUES (?, ?, ?) ON CONFLICT DO NOTHING",
            [message_id, user_id, read_at],
        )
        return True

    def _messages_from_rows(self, rows) -> List[dict]:
        if not rows:
            return []
        readers = self._readers_for([row[0] for row in rows])
        messages = []
        for row in rows:
            doc = {
                "id": row[0],
                "senderId": row[1],
                "senderName": row[2] or "",
                "senderPhoto": row[3] or "",
                "text": row[4] or "",
                "timestamp": row[6],
                "isImportant": bool(row[7]),
                "readBy": readers.get(row[0], []),
            }
            if row[5]:
                doc["imageUrl"] = row[5]
            messages.append(doc)
        return messages

    def _readers_for(self, message_ids: List[str]) -> Dict[str, List[str]]:
        placeholders = ", ".join("?" for _ in message_ids)
        rows = self.conn.execute(
            "SELECT message_id, user_id FROM message_reads "
            f"WHERE message_id IN ({placeholders}) ORDER BY read_at ASC, user_id ASC",
            message_ids,
        ).fetchall()
        result: Dict[str, List[str]] = {}
        for message_id, user_id in rows:
            result.setdefault(message_id, []).append(user_id)
        return result
