"""Migration log, the persistent record of which migrations ran, and in
which batch.

The log is append-only: one row per applied migration, written only after
the migration's upgrade has finished. It is the single source of truth for
"already applied".
"""

from __future__ import annotations

import re
from datetime import datetime

import aiosqlite

from migrun.databases import Connection
from migrun.exceptions import MigrationConfigError, StoreError
from migrun.types import NO_BATCH, BatchNumber, MigrationName, MigrationRecord, utcnow

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class MigrationLog:
    """Reads and appends migration records on a caller-owned connection."""

    def __init__(self, table: str = "migrun_log") -> None:
        if not _IDENTIFIER.match(table):
            raise MigrationConfigError(f"Invalid migration log table name: {table!r}")
        self.table = table

    async def ensure_schema_ready(self, conn: Connection) -> None:
        """Create the log table if it doesn't exist. Safe to call every run."""
        try:
            await conn.execute(
                f"CREATE TABLE IF NOT EXISTS {self.table} ("
                "id INTEGER PRIMARY KEY AUTOINCREMENT, "
                "name TEXT NOT NULL UNIQUE, "
                "batch INTEGER NOT NULL, "
                "applied_at TEXT NOT NULL)"
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"Could not prepare {self.table}: {e}") from e

    async def latest_batch(self, conn: Connection) -> BatchNumber:
        """Highest recorded batch, or 0 when nothing has been applied."""
        try:
            cursor = await conn.execute(f"SELECT MAX(batch) FROM {self.table}")
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreError(f"Could not read latest batch: {e}") from e
        if row is None or row[0] is None:
            return NO_BATCH
        return int(row[0])

    async def has_record(self, name: MigrationName, conn: Connection) -> bool:
        try:
            cursor = await conn.execute(
                f"SELECT 1 FROM {self.table} WHERE name = ? LIMIT 1", (name,)
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreError(f"Could not look up migration {name}: {e}") from e
        return row is not None

    async def write_record(
        self, name: MigrationName, batch: BatchNumber, conn: Connection
    ) -> MigrationRecord:
        """Append one record and commit.

        The commit also makes durable whatever the migration's upgrade left
        uncommitted on this connection.
        """
        record = MigrationRecord(name=name, batch=batch, applied_at=utcnow())
        try:
            cursor = await conn.execute(
                f"INSERT INTO {self.table} (name, batch, applied_at) VALUES (?, ?, ?)",
                (record.name, record.batch, record.applied_at.isoformat()),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"Could not record migration {name}: {e}") from e
        record.id = cursor.lastrowid
        return record

    async def records(self, conn: Connection) -> list[MigrationRecord]:
        """All records in the order they were written."""
        try:
            cursor = await conn.execute(
                f"SELECT id, name, batch, applied_at FROM {self.table} ORDER BY id"
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StoreError(f"Could not read {self.table}: {e}") from e
        return [
            MigrationRecord(
                id=row[0],
                name=row[1],
                batch=row[2],
                applied_at=datetime.fromisoformat(row[3]),
            )
            for row in rows
        ]
