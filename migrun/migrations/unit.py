"""Migration units: one named upgrade each, applied at most once per database.

A migration is either a ``Migration`` subclass:

    class CreateUsers(Migration):
        description = "users table"

        async def upgrade(self, conn):
            await conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY)")

or a plain coroutine function ``async def create_users(conn): ...``. Its
identity is the explicit ``name`` if one is given, otherwise the class or
function name.
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Awaitable, Callable

import aiosqlite

from migrun.databases import Connection
from migrun.exceptions import ApplyError, MigrationConfigError
from migrun.types import BatchNumber, MigrationName

if TYPE_CHECKING:
    from migrun.migrations.store import MigrationLog

_logger = logging.getLogger(__name__)

UpgradeFn = Callable[[Connection], Awaitable[None]]


class Migration(ABC):
    """Base class for class-style migrations."""

    name: MigrationName | None = None
    description: str = ""

    @abstractmethod
    async def upgrade(self, conn: Connection) -> None:
        """Apply the schema or data change."""
        ...


@dataclass(frozen=True)
class MigrationUnit:
    name: MigrationName
    upgrade: UpgradeFn
    description: str = ""

    @classmethod
    def from_migration(
        cls, migration: type[Migration] | Migration, name: MigrationName | None = None
    ) -> MigrationUnit:
        instance = migration() if isinstance(migration, type) else migration
        return cls(
            name=name or instance.name or type(instance).__name__,
            upgrade=instance.upgrade,
            description=instance.description,
        )

    @classmethod
    def from_callable(
        cls, fn: UpgradeFn, name: MigrationName | None = None, description: str = ""
    ) -> MigrationUnit:
        if not inspect.iscoroutinefunction(fn):
            raise MigrationConfigError(
                f"Migration {getattr(fn, '__name__', fn)!r} must be an async function"
            )
        return cls(
            name=name or fn.__name__,
            upgrade=fn,
            description=description or inspect.getdoc(fn) or "",
        )

    @classmethod
    def of(
        cls, migration: Any, name: MigrationName | None = None, description: str = ""
    ) -> MigrationUnit:
        """Build a unit from anything ``add()`` accepts."""
        if isinstance(migration, Migration) or (
            isinstance(migration, type) and issubclass(migration, Migration)
        ):
            migration = cls.from_migration(migration)
        if isinstance(migration, MigrationUnit):
            return replace(
                migration,
                name=name or migration.name,
                description=description or migration.description,
            )
        if callable(migration):
            return cls.from_callable(migration, name=name, description=description)
        raise MigrationConfigError(f"Not a migration: {migration!r}")

    async def apply_if_needed(
        self, batch: BatchNumber, conn: Connection, log: MigrationLog
    ) -> bool:
        """Run the upgrade unless the log already has this migration.

        Returns True if the upgrade ran and was recorded, False if skipped.
        A failed upgrade rolls back the open transaction and leaves no
        record, so the next run retries it.
        """
        if await log.has_record(self.name, conn):
            _logger.debug("Migration %s already applied, skipping", self.name)
            return False

        _logger.info("Applying migration %s (batch %d)", self.name, batch)
        try:
            await self.upgrade(conn)
        except Exception as e:
            try:
                await conn.rollback()
            except (aiosqlite.Error, ValueError) as rollback_error:
                _logger.warning(
                    "Rollback after failed migration %s also failed: %s",
                    self.name,
                    rollback_error,
                )
            raise ApplyError(self.name, batch, f"Migration {self.name} failed: {e}") from e

        await log.write_record(self.name, batch, conn)
        return True
