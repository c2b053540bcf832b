"""Database registry. Resolves identifiers to handles that open connections.

Every identifier names the kind of database it expects. The kind is checked
when a handle is registered and again on lookup, so a lookup either returns
a handle of the right kind or fails with DatabaseNotFoundError.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Generic, TypeAlias, TypeVar

import aiosqlite

from migrun.exceptions import (
    DatabaseConnectionError,
    DatabaseNotFoundError,
    MigrationConfigError,
)
from migrun.types import DatabaseUid

_logger = logging.getLogger(__name__)

Connection: TypeAlias = aiosqlite.Connection


class Database(ABC):
    """A handle that can produce connections."""

    @abstractmethod
    async def make_connection(self) -> Connection:
        """Open a new connection. The caller owns and closes it."""
        ...


DB = TypeVar("DB", bound=Database)


@dataclass(frozen=True)
class DatabaseIdentifier(Generic[DB]):
    """Stable name for a database plus the handle type it must resolve to."""

    uid: DatabaseUid
    kind: type[DB] = field(default=Database, compare=False)  # type: ignore[assignment]

    def __str__(self) -> str:
        return self.uid


class SQLiteDatabase(Database):
    """SQLite database file (or ``:memory:``) accessed through aiosqlite."""

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)

    async def make_connection(self) -> Connection:
        try:
            if self.path != ":memory:":
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            return await aiosqlite.connect(self.path)
        except (aiosqlite.Error, OSError) as e:
            raise DatabaseConnectionError(
                f"Could not open SQLite database at {self.path}: {e}"
            ) from e

    def __repr__(self) -> str:
        return f"SQLiteDatabase({self.path!r})"


class Databases:
    """Registry of named database handles."""

    def __init__(self) -> None:
        self._storage: dict[DatabaseUid, Database] = {}

    def register(self, identifier: DatabaseIdentifier[DB], database: DB) -> None:
        if not isinstance(database, identifier.kind):
            raise MigrationConfigError(
                f"Database {identifier.uid} expects {identifier.kind.__name__}, "
                f"got {type(database).__name__}"
            )
        if identifier.uid in self._storage:
            _logger.warning("Replacing database registered as %s", identifier.uid)
        self._storage[identifier.uid] = database

    def resolve(self, identifier: DatabaseIdentifier[DB]) -> DB:
        database = self._storage.get(identifier.uid)
        if database is None:
            raise DatabaseNotFoundError(
                f"No database {identifier.uid} was found for migrations"
            )
        if not isinstance(database, identifier.kind):
            raise DatabaseNotFoundError(
                f"Database {identifier.uid} is a {type(database).__name__}, "
                f"not a {identifier.kind.__name__}"
            )
        return database

    def __contains__(self, identifier: DatabaseIdentifier) -> bool:
        return identifier.uid in self._storage

    def __len__(self) -> int:
        return len(self._storage)


SQLITE = DatabaseIdentifier("sqlite", SQLiteDatabase)
