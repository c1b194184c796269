"""SQLite repository implementation."""

import json
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite
from loguru import logger

from ..exceptions import PersistenceError
from ..types import ArchitectureRecord, MessageRecord, Role, SessionRecord

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS chat_sessions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_sessions_user ON chat_sessions(user_id, updated_at)",
    """
    CREATE TABLE IF NOT EXISTS messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        chat_session_id INTEGER NOT NULL REFERENCES chat_sessions(id),
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        metadata TEXT,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_messages_session ON messages(chat_session_id, id)",
    """
    CREATE TABLE IF NOT EXISTS architectures (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        message_id INTEGER NOT NULL REFERENCES messages(id),
        services TEXT NOT NULL,
        total_cost INTEGER NOT NULL,
        cloud_formation_template TEXT,
        diagram TEXT,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_architectures_message ON architectures(message_id)",
)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _dumps(value: Any) -> str | None:
    return json.dumps(value) if value is not None else None


def _loads(value: str | None) -> Any:
    return json.loads(value) if value else None


class SQLiteRepository:
    """SQLite repository with async aiosqlite."""

    def __init__(self, database_url: str) -> None:
        # Extract the file path from the URL
        if "///" in database_url:
            self.db_path = database_url.split("///", 1)[1]
        else:
            self.db_path = database_url.replace("sqlite+aiosqlite://", "").replace("sqlite://", "")
        self.connection: aiosqlite.Connection | None = None
        logger.info(f"SQLite repository configured: {self.db_path}")

    async def startup(self) -> None:
        """Open the connection and create tables."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self.connection = await aiosqlite.connect(self.db_path)
            self.connection.row_factory = aiosqlite.Row
            for statement in SCHEMA:
                await self.connection.execute(statement)
            await self.connection.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to initialize database: {e}") from e

        logger.info("SQLite repository initialized")

    async def shutdown(self) -> None:
        """Close database connection."""
        if self.connection:
            await self.connection.close()
            self.connection = None

    async def health_check(self) -> bool:
        """Check database health."""
        if not self.connection:
            return False

        try:
            async with self.connection.execute("SELECT 1") as cursor:
                await cursor.fetchone()
        except (ConnectionError, TimeoutError, OSError, aiosqlite.Error) as e:
            logger.error(f"Database health check failed: {e}")
            return False
        else:
            return True

    def _require_connection(self) -> aiosqlite.Connection:
        if not self.connection:
            raise PersistenceError("Database connection not initialized")
        return self.connection

    async def _write(self, sql: str, params: Iterable[Any]) -> int:
        """Execute a write, commit, and return the last row id."""
        connection = self._require_connection()
        try:
            async with connection.execute(sql, tuple(params)) as cursor:
                row_id = cursor.lastrowid
            await connection.commit()
        except aiosqlite.Error as e:
            logger.error(f"Database write failed: {e}")
            raise PersistenceError(f"Database write failed: {e}") from e
        return row_id or 0

    async def _fetch(self, sql: str, params: Iterable[Any]) -> list[aiosqlite.Row]:
        connection = self._require_connection()
        try:
            async with connection.execute(sql, tuple(params)) as cursor:
                return list(await cursor.fetchall())
        except aiosqlite.Error as e:
            logger.error(f"Database read failed: {e}")
            raise PersistenceError(f"Database read failed: {e}") from e

    async def create_session(self, user_id: str, title: str) -> SessionRecord:
        now = _now()
        session_id = await self._write(
            "INSERT INTO chat_sessions (user_id, title, created_at, updated_at) VALUES (?, ?, ?, ?)",
            (user_id, title, now, now),
        )
        return {
            "id": session_id,
            "user_id": user_id,
            "title": title,
            "created_at": now,
            "updated_at": now,
        }

    async def get_session(self, session_id: int) -> SessionRecord | None:
        rows = await self._fetch("SELECT * FROM chat_sessions WHERE id = ?", (session_id,))
        return self._session(rows[0]) if rows else None

    async def list_sessions(self, user_id: str) -> list[SessionRecord]:
        rows = await self._fetch(
            "SELECT * FROM chat_sessions WHERE user_id = ? ORDER BY updated_at DESC, id DESC",
            (user_id,),
        )
        return [self._session(row) for row in rows]

    async def update_session(self, session_id: int, title: str) -> SessionRecord | None:
        await self._write(
            "UPDATE chat_sessions SET title = ?, updated_at = ? WHERE id = ?",
            (title, _now(), session_id),
        )
        return await self.get_session(session_id)

    async def create_message(
        self,
        session_id: int,
        role: Role,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> MessageRecord:
        now = _now()
        message_id = await self._write(
            """
            INSERT INTO messages (chat_session_id, role, content, metadata, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (session_id, role, content, _dumps(metadata), now),
        )
        return {
            "id": message_id,
            "chat_session_id": session_id,
            "role": role,
            "content": content,
            "metadata": metadata,
            "created_at": now,
        }

    async def list_messages(self, session_id: int) -> list[MessageRecord]:
        rows = await self._fetch(
            "SELECT * FROM messages WHERE chat_session_id = ? ORDER BY id", (session_id,)
        )
        return [
            {
                "id": row["id"],
                "chat_session_id": row["chat_session_id"],
                "role": row["role"],
                "content": row["content"],
                "metadata": _loads(row["metadata"]),
                "created_at": row["created_at"],
            }
            for row in rows
        ]

    async def create_architecture(
        self,
        message_id: int,
        services: list[dict[str, Any]],
        total_cost: int,
        cloudformation_template: str | None = None,
        diagram: dict[str, Any] | None = None,
    ) -> ArchitectureRecord:
        now = _now()
        architecture_id = await self._write(
            """
            INSERT INTO architectures
                (message_id, services, total_cost, cloud_formation_template, diagram, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (message_id, json.dumps(services), total_cost, cloudformation_template, _dumps(diagram), now),
        )
        return {
            "id": architecture_id,
            "message_id": message_id,
            "services": services,
            "total_cost": total_cost,
            "cloudformation_template": cloudformation_template,
            "diagram": diagram,
            "created_at": now,
        }

    async def get_architecture(self, message_id: int) -> ArchitectureRecord | None:
        rows = await self._fetch(
            "SELECT * FROM architectures WHERE message_id = ? ORDER BY id LIMIT 1", (message_id,)
        )
        if not rows:
            return None
        row = rows[0]
        return {
            "id": row["id"],
            "message_id": row["message_id"],
            "services": json.loads(row["services"]),
            "total_cost": row["total_cost"],
            "cloudformation_template": row["cloud_formation_template"],
            "diagram": _loads(row["diagram"]),
            "created_at": row["created_at"],
        }

    @staticmethod
    def _session(row: aiosqlite.Row) -> SessionRecord:
        return {
            "id": row["id"],
            "user_id": row["user_id"],
            "title": row["title"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }
