"""SQLite store implementation."""

import asyncio
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite
from loguru import logger

from ..exceptions import StorageError
from ..models import CarShort, Chat, ChatMessage, MessageRole, SearchCriteria, SearchResult
from .seed import CARS

MAX_SEARCH_RESULTS = 10

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS chats (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_chats_user_id ON chats(user_id)",
    """
    CREATE TABLE IF NOT EXISTS messages (
        id TEXT PRIMARY KEY,
        chat_id TEXT NOT NULL REFERENCES chats(id),
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        created_at TEXT NOT NULL,
        reply_to TEXT REFERENCES messages(id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_messages_chat_id ON messages(chat_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_messages_reply_to ON messages(reply_to)",
    """
    CREATE TABLE IF NOT EXISTS cars (
        id TEXT PRIMARY KEY,
        brand TEXT NOT NULL,
        model TEXT NOT NULL,
        year INTEGER NOT NULL,
        price INTEGER NOT NULL,
        body_type TEXT NOT NULL,
        engine_type TEXT NOT NULL,
        engine_volume REAL,
        power_hp INTEGER NOT NULL,
        transmission TEXT NOT NULL,
        drive TEXT NOT NULL,
        seats INTEGER NOT NULL,
        fuel_consumption REAL,
        description TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_cars_search ON cars(body_type, engine_type, price)",
)

# criteria field -> (column, SQL operator)
_FILTERS: dict[str, tuple[str, str]] = {
    "price_min": ("price", ">="),
    "price_max": ("price", "<="),
    "body_type": ("body_type", "="),
    "engine_type": ("engine_type", "="),
    "year_min": ("year", ">="),
    "year_max": ("year", "<="),
    "seats": ("seats", "="),
    "transmission": ("transmission", "="),
    "drive": ("drive", "="),
}


def _now() -> str:
    return datetime.now(UTC).isoformat()


def build_where(criteria: SearchCriteria) -> tuple[str, list[Any]]:
    """Translate criteria into a parameterized WHERE clause."""
    clauses: list[str] = []
    params: list[Any] = []
    for field, (column, op) in _FILTERS.items():
        value = getattr(criteria, field)
        if value is None:
            continue
        clauses.append(f"{column} {op} ?")
        params.append(value.value if hasattr(value, "value") else value)
    if criteria.brand:
        clauses.append("LOWER(brand) = ?")
        params.append(criteria.brand.lower())
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


class SQLiteStore:
    """Chats, messages and the car catalog in one SQLite database via aiosqlite."""

    def __init__(self, database_url: str, seed_catalog: bool = True) -> None:
        # Extract the file path from the URL
        if "///" in database_url:
            self.db_path = database_url.split("///")[1]
        else:
            self.db_path = database_url.replace("sqlite+aiosqlite://", "").replace("sqlite://", "")
        self.seed_catalog = seed_catalog
        self.connection: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()
        logger.info(f"SQLite store configured: {self.db_path}")

    async def startup(self) -> None:
        """Initialize database connection and create tables."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self.connection = await aiosqlite.connect(self.db_path)
        self.connection.row_factory = aiosqlite.Row

        for statement in SCHEMA:
            await self.connection.execute(statement)
        await self.connection.commit()

        if self.seed_catalog:
            await self._seed_cars()
        logger.info("SQLite store initialized")

    async def shutdown(self) -> None:
        """Close database connection."""
        if self.connection:
            await self.connection.close()
            self.connection = None

    def _conn(self) -> aiosqlite.Connection:
        if not self.connection:
            raise StorageError("Database connection not initialized")
        return self.connection

    async def _write(self, *statements: tuple[str, Sequence[Any]]) -> None:
        """Execute ``statements`` and commit them as one unit.

        All requests share one connection, so writes are serialized and a
        commit never carries another caller's pending statements. The unit is
        shielded: a caller cancelled mid-write leaves it to commit or roll back
        on its own.
        """
        await asyncio.shield(self._write_unit(statements))

    async def _write_unit(self, statements: Sequence[tuple[str, Sequence[Any]]]) -> None:
        conn = self._conn()
        async with self._write_lock:
            try:
                for sql, params in statements:
                    await conn.execute(sql, params)
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise

    async def _seed_cars(self) -> None:
        conn = self._conn()
        async with conn.execute("SELECT COUNT(*) FROM cars") as cursor:
            row = await cursor.fetchone()
        if row and row[0]:
            return

        await conn.executemany(
            """
            INSERT INTO cars (id, brand, model, year, price, body_type, engine_type, engine_volume,
                              power_hp, transmission, drive, seats, fuel_consumption, description)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [(str(uuid.uuid4()), *car) for car in CARS],
        )
        await conn.commit()
        logger.info(f"Seeded car catalog with {len(CARS)} cars")

    async def add_car(self, **fields: Any) -> str:
        """Insert a catalog entry. Used for fixtures and admin scripts."""
        car_id = fields.pop("id", None) or str(uuid.uuid4())
        columns = ["id", *fields]
        placeholders = ", ".join("?" for _ in columns)
        await self._write(
            (
                f"INSERT INTO cars ({', '.join(columns)}) VALUES ({placeholders})",  # noqa: S608
                (car_id, *fields.values()),
            )
        )
        return car_id

    # Chats

    async def create_chat(self, user_id: str, title: str | None = None) -> Chat:
        now = _now()
        chat_id = str(uuid.uuid4())
        await self._write(
            (
                "INSERT INTO chats (id, user_id, title, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (chat_id, user_id, title.strip() if title else None, now, now),
            )
        )
        return Chat(
            id=chat_id,
            user_id=user_id,
            title=title.strip() if title else None,
            created_at=now,
            updated_at=now,
        )

    async def find_by_id_and_user_id(self, chat_id: str, user_id: str) -> Chat | None:
        async with self._conn().execute(
            "SELECT * FROM chats WHERE id = ? AND user_id = ?", (chat_id, user_id)
        ) as cursor:
            row = await cursor.fetchone()
        return Chat.model_validate(dict(row)) if row else None

    async def update_title(self, chat_id: str, title: str) -> None:
        await self._write(
            ("UPDATE chats SET title = ?, updated_at = ? WHERE id = ?", (title, _now(), chat_id))
        )

    # Messages

    async def save(self, message: ChatMessage, reply_to: str | None = None) -> None:
        """Persist a complete message and touch its chat.

        ``reply_to`` links an assistant message to the user message it answers.
        """
        try:
            await self._write(
                (
                    """
                    INSERT INTO messages (id, chat_id, role, content, created_at, reply_to)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        message.id,
                        message.chat_id,
                        message.role.value,
                        message.content,
                        message.created_at.isoformat(),
                        reply_to,
                    ),
                ),
                ("UPDATE chats SET updated_at = ? WHERE id = ?", (_now(), message.chat_id)),
            )
        except aiosqlite.Error as e:
            logger.error(f"Failed to save message {message.id}: {e}")
            raise StorageError(f"Failed to save message: {e}") from e

    async def find_by_id(self, message_id: str) -> ChatMessage | None:
        async with self._conn().execute(
            "SELECT * FROM messages WHERE id = ?", (message_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return ChatMessage.model_validate(dict(row)) if row else None

    async def find_reply(self, message_id: str) -> ChatMessage | None:
        async with self._conn().execute(
            "SELECT * FROM messages WHERE reply_to = ? ORDER BY rowid LIMIT 1", (message_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return ChatMessage.model_validate(dict(row)) if row else None

    async def list_by_chat(self, chat_id: str, limit: int = 50) -> list[ChatMessage]:
        async with self._conn().execute(
            """
            SELECT * FROM messages
            WHERE chat_id = ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (chat_id, limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [ChatMessage.model_validate(dict(row)) for row in reversed(rows)]

    async def count_by_chat(self, chat_id: str, role: MessageRole | None = None) -> int:
        query = "SELECT COUNT(*) FROM messages WHERE chat_id = ?"
        params: list[Any] = [chat_id]
        if role is not None:
            query += " AND role = ?"
            params.append(role.value)
        async with self._conn().execute(query, params) as cursor:
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    # Catalog

    async def search(self, criteria: SearchCriteria, limit: int = MAX_SEARCH_RESULTS) -> SearchResult:
        """Cheapest matches first, at most ``MAX_SEARCH_RESULTS`` items."""
        where, params = build_where(criteria)
        conn = self._conn()

        async with conn.execute(f"SELECT COUNT(*) FROM cars {where}", params) as cursor:  # noqa: S608
            row = await cursor.fetchone()
        total = int(row[0]) if row else 0

        async with conn.execute(
            f"""
            SELECT id, brand, model, year, price, body_type, engine_type, power_hp,
                   transmission, drive
            FROM cars {where}
            ORDER BY price ASC
            LIMIT ?
            """,  # noqa: S608
            [*params, min(limit, MAX_SEARCH_RESULTS)],
        ) as cursor:
            rows = await cursor.fetchall()

        return SearchResult(count=total, items=[CarShort.model_validate(dict(r)) for r in rows])

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
