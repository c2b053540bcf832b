"""Migration registration.

Migrations are registered on a ``MigrationConfigBuilder`` at startup, then
frozen with ``build()``. The resulting ``MigrationConfig`` holds one
``DatabaseMigrationConfig`` per database, each with an immutable, ordered
tuple of units. Registration order is application order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from migrun.databases import SQLITE, DatabaseIdentifier
from migrun.exceptions import DatabaseNotFoundError, MigrationConfigError
from migrun.migrations.unit import MigrationUnit
from migrun.types import DatabaseUid, MigrationName


@dataclass(frozen=True)
class DatabaseMigrationConfig:
    """The ordered migrations for a single database."""

    database: DatabaseIdentifier
    migrations: tuple[MigrationUnit, ...] = ()

    @property
    def names(self) -> list[MigrationName]:
        return [m.name for m in self.migrations]


@dataclass(frozen=True)
class MigrationConfig:
    configs: tuple[DatabaseMigrationConfig, ...] = ()

    def for_database(
        self, database: DatabaseIdentifier | DatabaseUid
    ) -> DatabaseMigrationConfig:
        uid = database if isinstance(database, str) else database.uid
        for config in self.configs:
            if config.database.uid == uid:
                return config
        raise DatabaseNotFoundError(f"No migrations are registered for database {uid}")

    @property
    def databases(self) -> list[DatabaseIdentifier]:
        return [c.database for c in self.configs]


class MigrationConfigBuilder:
    """Collects migrations per database until ``build()`` freezes them.

    The default database is always part of the built config, even with no
    migrations, and comes first.
    """

    def __init__(self, default_database: DatabaseIdentifier = SQLITE) -> None:
        self.default_database = default_database
        self._databases: dict[DatabaseUid, DatabaseIdentifier] = {
            default_database.uid: default_database
        }
        self._units: dict[DatabaseUid, list[MigrationUnit]] = {default_database.uid: []}
        self._built = False

    def add(
        self,
        migration: Any,
        database: DatabaseIdentifier | None = None,
        name: MigrationName | None = None,
        description: str = "",
    ) -> MigrationConfigBuilder:
        """Append a migration to ``database``'s sequence.

        ``migration`` may be a Migration subclass or instance, an async
        function taking a connection, or a prebuilt MigrationUnit.
        """
        if self._built:
            raise MigrationConfigError("Cannot add migrations after build()")

        database = database or self.default_database
        known = self._databases.setdefault(database.uid, database)
        if known.kind is not database.kind:
            raise MigrationConfigError(
                f"Database {database.uid} was registered as {known.kind.__name__}, "
                f"not {database.kind.__name__}"
            )

        unit = MigrationUnit.of(migration, name=name, description=description)
        units = self._units.setdefault(database.uid, [])
        if any(u.name == unit.name for u in units):
            raise MigrationConfigError(
                f"Migration {unit.name} is already registered for {database.uid}"
            )
        units.append(unit)
        return self

    def build(self) -> MigrationConfig:
        self._built = True
        return MigrationConfig(
            configs=tuple(
                DatabaseMigrationConfig(
                    database=self._databases[uid],
                    migrations=tuple(units),
                )
                for uid, units in self._units.items()
            )
        )
