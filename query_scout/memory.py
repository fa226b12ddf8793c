"""Persistent key/value memory with SQLite storage."""

from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

from query_scout.exceptions import StorageFailure, ValidationError
from query_scout.logging import get_logger

log = get_logger(__name__)

SESSION_CATEGORY = "session"
RESERVED_CATEGORIES = frozenset({SESSION_CATEGORY})

LAST_QUERY_KEY = "last_query"
LAST_ERROR_KEY = "last_error"


def _utcnow_iso() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(UTC).isoformat()


@dataclass
class MemoryEntry:
    """A stored memory value."""

    category: str
    key: str
    value: str
    notes: str | None = None
    updated_at: str = ""

    def to_dict(self) -> dict[str, str | None]:
        """Convert to dictionary."""
        return {
            "category": self.category,
            "key": self.key,
            "value": self.value,
            "notes": self.notes,
            "updated_at": self.updated_at,
        }


def _normalize_part(label: str, value: str) -> str:
    cleaned = str(value or "").strip()
    if not cleaned:
        raise ValidationError(f"Memory {label} must not be empty")
    return cleaned


def is_reserved_category(category: str) -> bool:
    """Return whether the category is owned by the gatekeeper."""
    return str(category or "").strip().lower() in RESERVED_CATEGORIES


class MemoryStore:
    """Upsert and point lookup over (category, key), backed by SQLite.

    Every call round-trips to the database; nothing is cached locally.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path).expanduser()
        self._db: aiosqlite.Connection | None = None

    async def _ensure_db(self) -> aiosqlite.Connection:
        """Ensure database is initialized."""
        if self._db is None:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self._db = await aiosqlite.connect(str(self.db_path))
                await self._db.execute("""
                    CREATE TABLE IF NOT EXISTS memory (
                        category TEXT NOT NULL,
                        key TEXT NOT NULL,
                        value TEXT NOT NULL,
                        notes TEXT,
                        updated_at TEXT NOT NULL,
                        PRIMARY KEY (category, key)
                    )
                """)
                await self._db.commit()
            except (aiosqlite.Error, OSError) as e:
                self._db = None
                raise StorageFailure(f"Cannot open memory store {self.db_path}: {e}") from e
        return self._db

    async def set(
        self,
        category: str,
        key: str,
        value: str,
        notes: str | None = None,
    ) -> MemoryEntry:
        """Insert or replace a memory value.

        Raises:
            ValidationError if the category is reserved or a part is empty
            StorageFailure if the backing store fails
        """
        category = _normalize_part("category", category)
        if is_reserved_category(category):
            raise ValidationError(f"Memory category '{category}' is reserved")
        return await self._upsert(category, _normalize_part("key", key), str(value), notes)

    async def set_session_value(self, key: str, value: str) -> MemoryEntry:
        """Write into the reserved session category."""
        return await self._upsert(SESSION_CATEGORY, _normalize_part("key", key), str(value), None)

    async def _upsert(self, category: str, key: str, value: str, notes: str | None) -> MemoryEntry:
        db = await self._ensure_db()
        entry = MemoryEntry(
            category=category,
            key=key,
            value=value,
            notes=notes,
            updated_at=_utcnow_iso(),
        )
        try:
            await db.execute(
                """
                INSERT INTO memory (category, key, value, notes, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(category, key) DO UPDATE SET
                    value = excluded.value,
                    notes = excluded.notes,
                    updated_at = excluded.updated_at
                """,
                (entry.category, entry.key, entry.value, entry.notes, entry.updated_at),
            )
            await db.commit()
        except aiosqlite.Error as e:
            log.error("Memory write failed", category=category, key=key, error=str(e))
            raise StorageFailure(f"Memory write failed: {e}") from e
        log.debug("Memory stored", category=category, key=key)
        return entry

    async def get(self, category: str, key: str) -> MemoryEntry | None:
        """Get a memory entry, or None when it does not exist."""
        category = _normalize_part("category", category)
        key = _normalize_part("key", key)
        db = await self._ensure_db()
        try:
            async with db.execute(
                "SELECT category, key, value, notes, updated_at FROM memory WHERE category = ? AND key = ?",
                (category, key),
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageFailure(f"Memory read failed: {e}") from e

        if not row:
            return None
        return MemoryEntry(category=row[0], key=row[1], value=row[2], notes=row[3], updated_at=row[4])

    async def get_value(self, category: str, key: str) -> str | None:
        """Get just the stored value."""
        entry = await self.get(category, key)
        return entry.value if entry else None

    async def list_entries(self, category: str | None = None) -> list[MemoryEntry]:
        """List entries ordered by category and key."""
        db = await self._ensure_db()
        query = "SELECT category, key, value, notes, updated_at FROM memory"
        params: tuple[str, ...] = ()
        if category:
            query += " WHERE category = ?"
            params = (category.strip(),)
        query += " ORDER BY category, key"
        try:
            async with db.execute(query, params) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageFailure(f"Memory read failed: {e}") from e
        return [
            MemoryEntry(category=row[0], key=row[1], value=row[2], notes=row[3], updated_at=row[4])
            for row in rows
        ]

    async def close(self) -> None:
        """Close the database connection."""
        if self._db:
            await self._db.close()
            self._db = None
