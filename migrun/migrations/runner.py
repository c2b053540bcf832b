"""Migration runner — applies pending migrations to a database in one batch.

One migrate() call:

1. resolves the config's database in the registry,
2. opens a single connection,
3. makes sure the migration log table exists,
4. picks the next batch number (latest recorded batch + 1),
5. applies every registered unit in order, one at a time, recording each
   right after its upgrade succeeds,
6. stops at the first failure and re-raises it.

The connection is closed on every exit path. Units already in the log are
skipped, so running the same config twice applies nothing the second time.

Concurrent migrate() calls on the same database through one runner are
serialized by a per-database asyncio.Lock. Separate runners or processes
are not coordinated and can race on the batch number.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog

from migrun.config import MigrunSettings, settings as default_settings
from migrun.databases import Connection, DatabaseIdentifier, Databases
from migrun.exceptions import ApplyError, DatabaseConnectionError
from migrun.migrations.config import DatabaseMigrationConfig, MigrationConfig
from migrun.migrations.planner import BatchPlanner
from migrun.migrations.state import RunStateMachine
from migrun.migrations.store import MigrationLog
from migrun.types import (
    NO_BATCH,
    DatabaseUid,
    MigrationRecord,
    MigrationReport,
    MigrationStatus,
    RunState,
)

_logger = logging.getLogger(__name__)
logger = structlog.get_logger()


class MigrationRunner:
    """Runs migration configs against the databases in a registry."""

    def __init__(
        self,
        databases: Databases,
        log: MigrationLog | None = None,
        settings: MigrunSettings | None = None,
    ) -> None:
        settings = settings or default_settings
        self._databases = databases
        self._log = log or MigrationLog(settings.log_table)
        self._planner = BatchPlanner(self._log)
        self._locks: dict[DatabaseUid, asyncio.Lock] = {}

    @property
    def log(self) -> MigrationLog:
        return self._log

    def _lock_for(self, uid: DatabaseUid) -> asyncio.Lock:
        return self._locks.setdefault(uid, asyncio.Lock())

    @asynccontextmanager
    async def connection(
        self, identifier: DatabaseIdentifier
    ) -> AsyncIterator[Connection]:
        """Resolve ``identifier`` and hold one connection open for the block."""
        database = self._databases.resolve(identifier)
        try:
            conn = await database.make_connection()
        except DatabaseConnectionError:
            raise
        except Exception as e:
            raise DatabaseConnectionError(
                f"Could not connect to database {identifier.uid}: {e}"
            ) from e
        try:
            yield conn
        finally:
            await conn.close()

    async def migrate(
        self, config: DatabaseMigrationConfig, dry_run: bool = False
    ) -> MigrationReport:
        """Apply every pending migration in ``config`` under one new batch.

        With ``dry_run`` the batch number and pending units are computed
        and reported, but nothing is applied or recorded.
        """
        async with self._lock_for(config.database.uid):
            return await self._migrate(config, dry_run)

    async def migrate_all(
        self, config: MigrationConfig, dry_run: bool = False
    ) -> list[MigrationReport]:
        """Migrate each database in registration order until one fails."""
        reports = []
        for db_config in config.configs:
            reports.append(await self.migrate(db_config, dry_run=dry_run))
        return reports

    async def _migrate(
        self, config: DatabaseMigrationConfig, dry_run: bool
    ) -> MigrationReport:
        uid = config.database.uid
        run = RunStateMachine(uid)
        report = MigrationReport(database=uid, batch=NO_BATCH, dry_run=dry_run)

        run.transition(RunState.RESOLVING_DATABASE)
        try:
            async with self.connection(config.database) as conn:
                run.transition(RunState.CONNECTION_ACQUIRED)
                await self._run_batch(conn, config, run, report)
        except Exception as e:
            failed_in = run.state
            if not run.finished:
                run.transition(RunState.FAILED)
            report.state = run.state
            logger.error(
                "migrate.failed",
                database=uid,
                phase=failed_in.value,
                migration=run.applying if failed_in is RunState.APPLYING else None,
                error=str(e),
            )
            raise

        report.state = run.state
        logger.info(
            "migrate.completed",
            database=uid,
            batch=report.batch,
            applied=len(report.applied),
            skipped=len(report.skipped),
            dry_run=dry_run,
        )
        return report

    async def _run_batch(
        self,
        conn: Connection,
        config: DatabaseMigrationConfig,
        run: RunStateMachine,
        report: MigrationReport,
    ) -> None:
        await self._log.ensure_schema_ready(conn)
        run.transition(RunState.SCHEMA_READY)

        batch = await self._planner.next_batch(conn)
        report.batch = batch
        run.transition(RunState.BATCH_COMPUTED)

        if report.dry_run:
            pending = await self._planner.pending(config.migrations, conn)
            report.pending = [u.name for u in pending]
            _logger.info(
                "Dry run on %s: %d pending for batch %d",
                config.database.uid, len(pending), batch,
            )
        else:
            for unit in config.migrations:
                run.transition(RunState.APPLYING, applying=unit.name)
                try:
                    applied = await unit.apply_if_needed(batch, conn, self._log)
                except ApplyError as e:
                    logger.error(
                        "migration.failed",
                        migration=unit.name,
                        batch=batch,
                        error=str(e.__cause__),
                    )
                    raise
                if applied:
                    report.applied.append(unit.name)
                    logger.info("migration.applied", migration=unit.name, batch=batch)
                else:
                    report.skipped.append(unit.name)
                    logger.debug("migration.skipped", migration=unit.name)

        run.transition(RunState.COMPLETED)

    async def status(self, config: DatabaseMigrationConfig) -> list[MigrationStatus]:
        """Registered migrations for one database, with their batch if applied."""
        async with self.connection(config.database) as conn:
            await self._log.ensure_schema_ready(conn)
            records = {r.name: r for r in await self._log.records(conn)}

        statuses = []
        for unit in config.migrations:
            record = records.get(unit.name)
            statuses.append(
                MigrationStatus(
                    name=unit.name,
                    description=unit.description,
                    batch=record.batch if record else None,
                    applied_at=record.applied_at if record else None,
                )
            )
        return statuses

    async def history(self, identifier: DatabaseIdentifier) -> list[MigrationRecord]:
        """Every record in the database's migration log, oldest first."""
        async with self.connection(identifier) as conn:
            await self._log.ensure_schema_ready(conn)
            return await self._log.records(conn)
