# src/akara/storage/conversation_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

MESSAGE_ROLES = ("user", "assistant", "system", "tool")
DEFAULT_TITLE = "New Chat"


@dataclass(frozen=True, slots=True)
class Conversation:
    id: str
    title: str
    created_at: str
    updated_at: str


@dataclass(frozen=True, slots=True)
class Message:
    id: int
    conversation_id: str
    role: str
    content: str
    created_at: str


class ConversationStore:
    """
    SQLite conversation/message store. Finished assistant replies land here.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection (the task runner writes from a worker thread)
    """

    def __init__(self, db_path: str | Path = "chatbot.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("ConversationStore ready db=%s conversations=%s", self._db_path, self.count_conversations())

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS conversations (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT 'New Chat',
                    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now')),
                    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now'))
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    conversation_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now')),
                    FOREIGN KEY (conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
                )
                """
            )

            cur.execute("PRAGMA table_info(conversations)")
            cols = {row["name"] for row in cur.fetchall()}
            if "updated_at" not in cols:
                cur.execute("ALTER TABLE conversations ADD COLUMN updated_at TEXT NOT NULL DEFAULT ''")
                logger.info("ConversationStore migration: added column updated_at")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id, id)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_conversation(row: sqlite3.Row) -> Conversation:
        return Conversation(
            id=str(row["id"]),
            title=str(row["title"] or DEFAULT_TITLE),
            created_at=str(row["created_at"] or ""),
            updated_at=str(row["updated_at"] or ""),
        )

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> Message:
        return Message(
            id=int(row["id"]),
            conversation_id=str(row["conversation_id"]),
            role=str(row["role"]),
            content=str(row["content"]),
            created_at=str(row["created_at"] or ""),
        )

    # ---- conversations ----

    def count_conversations(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM conversations").fetchone()
            return int(n)
        finally:
            conn.close()

    def create_conversation(self, conversation_id: str | None = None, title: str = DEFAULT_TITLE) -> Conversation:
        conversation_id = conversation_id or str(uuid.uuid4())
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO conversations (id, title) VALUES (?, ?)",
                (conversation_id, (title or DEFAULT_TITLE).strip() or DEFAULT_TITLE),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM conversations WHERE id = ?", (conversation_id,)).fetchone()
        finally:
            conn.close()
        logger.info("New conversation created: %s", conversation_id)
        return self._row_to_conversation(row)

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM conversations WHERE id = ?", (conversation_id,)).fetchone()
            return self._row_to_conversation(row) if row else None
        finally:
            conn.close()

    def list_conversations(self) -> list[Conversation]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM conversations ORDER BY updated_at DESC, rowid DESC").fetchall()
            return [self._row_to_conversation(r) for r in rows]
        finally:
            conn.close()

    def update_title(self, conversation_id: str, title: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE conversations SET title = ?, updated_at = strftime('%Y-%m-%d %H:%M:%f', 'now') WHERE id = ?",
                (title, conversation_id),
            )
            conn.commit()
        finally:
            conn.close()

    def touch_conversation(self, conversation_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE conversations SET updated_at = strftime('%Y-%m-%d %H:%M:%f', 'now') WHERE id = ?",
                (conversation_id,),
            )
            conn.commit()
        finally:
            conn.close()

    def delete_conversation(self, conversation_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,))
            conn.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("Conversation deleted: %s", conversation_id)

    # ---- messages ----

    def add_message(self, conversation_id: str, role: str, content: str) -> Message:
        if role not in MESSAGE_ROLES:
            raise ValueError(f"unsupported role: {role!r}")

        conn = self._get_conn()
        try:
            cur = conn.execute(
                "INSERT INTO messages (conversation_id, role, content) VALUES (?, ?, ?)",
                (conversation_id, role, content),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM messages WHERE id = ?", (cur.lastrowid,)).fetchone()
        finally:
            conn.close()
        return self._row_to_message(row)

    def get_messages(self, conversation_id: str, *, last: int | None = None) -> list[Message]:
        """Messages in insertion order; `last` keeps only the most recent N."""
        conn = self._get_conn()
        try:
            if last is None:
                rows = conn.execute(
                    "SELECT * FROM messages WHERE conversation_id = ? ORDER BY id ASC",
                    (conversation_id,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM (SELECT * FROM messages WHERE conversation_id = ? ORDER BY id DESC LIMIT ?) "
                    "ORDER BY id ASC",
                    (conversation_id, max(0, int(last))),
                ).fetchall()
            return [self._row_to_message(r) for r in rows]
        finally:
            conn.close()
