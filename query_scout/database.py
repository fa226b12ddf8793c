"""Relational collaborators: schema catalog and statement execution.

``SqliteDatabase`` exposes the main database file as the ``main`` namespace
and every configured attachment under its own namespace name.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import quote

import aiosqlite

from query_scout.config import DatabaseConfig
from query_scout.exceptions import ExecutionFailure, NotFoundError, StorageFailure
from query_scout.logging import get_logger

log = get_logger(__name__)

RESERVED_NAMESPACES = frozenset({"temp"})
DEFAULT_NAMESPACE = "main"


@dataclass
class ColumnInfo:
    """Column descriptor in physical order."""

    name: str
    type: str
    nullable: bool
    default: str | None = None
    primary_key: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "nullable": self.nullable,
            "default": self.default,
            "primary_key": self.primary_key,
        }


@dataclass
class RelationDescription:
    """Column layout of a relation plus a synthesized create statement."""

    qualified_name: str
    columns: list[ColumnInfo]
    create_statement: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "relation": self.qualified_name,
            "columns": [column.to_dict() for column in self.columns],
            "create_statement": self.create_statement,
        }


@dataclass
class QueryResult:
    """Rows returned by an executed statement."""

    columns: list[str] = field(default_factory=list)
    rows: list[list[Any]] = field(default_factory=list)
    row_count: int = 0
    truncated: bool = False


class SchemaCatalog(ABC):
    """Read-only metadata queries."""

    @abstractmethod
    async def list_namespaces(self) -> list[str]:
        pass

    @abstractmethod
    async def list_relations(self, namespace: str) -> list[str]:
        pass

    @abstractmethod
    async def describe_relation(self, qualified_name: str) -> RelationDescription:
        pass


class StatementExecutor(ABC):
    """Executes a single statement and returns its rows."""

    @abstractmethod
    async def execute(self, statement: str) -> QueryResult:
        pass


def quote_identifier(name: str) -> str:
    """Quote an SQL identifier."""
    return '"' + str(name).replace('"', '""') + '"'


def split_qualified_name(qualified_name: str) -> tuple[str, str]:
    """Split ``namespace.relation``; unqualified names resolve to ``main``."""
    cleaned = str(qualified_name or "").strip()
    if not cleaned:
        raise ValueError("Relation name must not be empty")
    namespace, dot, relation = cleaned.partition(".")
    if not dot:
        return DEFAULT_NAMESPACE, cleaned
    if not namespace or not relation:
        raise ValueError(f"Invalid relation name: {qualified_name}")
    return namespace, relation


def build_create_statement(qualified_name: str, columns: list[ColumnInfo]) -> str:
    """Synthesize a CREATE TABLE statement from column descriptors."""
    lines = []
    for column in columns:
        parts = [column.name]
        if column.type:
            parts.append(column.type)
        if column.primary_key:
            parts.append("PRIMARY KEY")
        if not column.nullable:
            parts.append("NOT NULL")
        if column.default is not None:
            parts.append(f"DEFAULT {column.default}")
        lines.append("    " + " ".join(parts))
    body = ",\n".join(lines)
    return f"CREATE TABLE {qualified_name} (\n{body}\n);"


class SqliteDatabase(SchemaCatalog, StatementExecutor):
    """SQLite-backed catalog and executor."""

    def __init__(
        self,
        path: Path | str,
        attach: dict[str, str] | None = None,
        read_only: bool = True,
        max_rows: int = 500,
    ):
        self.path = Path(path).expanduser()
        self.attach = dict(attach or {})
        self.read_only = read_only
        self.max_rows = max_rows
        self._db: aiosqlite.Connection | None = None

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "SqliteDatabase":
        return cls(
            path=config.path,
            attach=config.attach,
            read_only=config.read_only,
            max_rows=config.max_rows,
        )

    def _uri(self, path: Path | str) -> str:
        resolved = Path(path).expanduser().resolve()
        mode = "ro" if self.read_only else "rwc"
        return f"file:{quote(resolved.as_posix())}?mode={mode}"

    async def _ensure_db(self) -> aiosqlite.Connection:
        if self._db is None:
            for namespace in self.attach:
                if namespace.lower() in RESERVED_NAMESPACES | {DEFAULT_NAMESPACE}:
                    raise StorageFailure(f"Namespace name is reserved: {namespace}")
            db: aiosqlite.Connection | None = None
            try:
                db = await aiosqlite.connect(self._uri(self.path), uri=True)
                for namespace, file_path in self.attach.items():
                    await db.execute(
                        f"ATTACH DATABASE ? AS {quote_identifier(namespace)}",
                        (self._uri(file_path),),
                    )
            except aiosqlite.Error as e:
                if db is not None:
                    await db.close()
                raise StorageFailure(f"Cannot open database {self.path}: {e}") from e
            self._db = db
        return self._db

    async def list_namespaces(self) -> list[str]:
        db = await self._ensure_db()
        try:
            async with db.execute("PRAGMA database_list") as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageFailure(f"Namespace listing failed: {e}") from e
        return sorted(row[1] for row in rows if row[1].lower() not in RESERVED_NAMESPACES)

    async def _require_namespace(self, namespace: str) -> str:
        cleaned = str(namespace or "").strip()
        if not cleaned:
            raise ValueError("Namespace must not be empty")
        if cleaned not in await self.list_namespaces():
            raise NotFoundError("namespace", cleaned)
        return cleaned

    async def list_relations(self, namespace: str) -> list[str]:
        namespace = await self._require_namespace(namespace)
        db = await self._ensure_db()
        try:
            async with db.execute(
                f"SELECT name FROM {quote_identifier(namespace)}.sqlite_master "
                "WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\' ORDER BY name"
            ) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageFailure(f"Relation listing failed: {e}") from e
        return [f"{namespace}.{row[0]}" for row in rows]

    async def describe_relation(self, qualified_name: str) -> RelationDescription:
        namespace, relation = split_qualified_name(qualified_name)
        namespace = await self._require_namespace(namespace)
        db = await self._ensure_db()
        try:
            async with db.execute(
                f"PRAGMA {quote_identifier(namespace)}.table_info({quote_identifier(relation)})"
            ) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageFailure(f"Describe failed: {e}") from e

        # A relation without columns does not exist.
        if not rows:
            raise NotFoundError("relation", f"{namespace}.{relation}")

        # table_info rows: cid, name, type, notnull, dflt_value, pk
        columns = [
            ColumnInfo(
                name=row[1],
                type=row[2] or "",
                nullable=not bool(row[3]),
                default=row[4],
                primary_key=bool(row[5]),
            )
            for row in sorted(rows, key=lambda r: r[0])
        ]
        full_name = f"{namespace}.{relation}"
        return RelationDescription(
            qualified_name=full_name,
            columns=columns,
            create_statement=build_create_statement(full_name, columns),
        )

    async def execute(self, statement: str) -> QueryResult:
        db = await self._ensure_db()
        log.info("Executing statement", statement=statement)
        try:
            async with db.execute(statement) as cursor:
                columns = [item[0] for item in (cursor.description or [])]
                fetched = await cursor.fetchmany(self.max_rows + 1)
        except aiosqlite.Error as e:
            log.error("Statement failed", error=str(e))
            raise ExecutionFailure(statement, str(e)) from e

        truncated = len(fetched) > self.max_rows
        rows = [list(row) for row in fetched[: self.max_rows]]
        return QueryResult(columns=columns, rows=rows, row_count=len(rows), truncated=truncated)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None
