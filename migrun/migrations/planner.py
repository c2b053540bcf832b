"""Batch planner. Picks the batch number for a run and the units it covers."""

from __future__ import annotations

from typing import Iterable

from migrun.databases import Connection
from migrun.migrations.store import MigrationLog
from migrun.migrations.unit import MigrationUnit
from migrun.types import BatchNumber


class BatchPlanner:
    def __init__(self, log: MigrationLog) -> None:
        self._log = log

    async def next_batch(self, conn: Connection) -> BatchNumber:
        """One past the highest recorded batch; 1 on a fresh database."""
        return await self._log.latest_batch(conn) + 1

    async def pending(
        self, units: Iterable[MigrationUnit], conn: Connection
    ) -> list[MigrationUnit]:
        """Units with no record yet, in registration order."""
        return [u for u in units if not await self._log.has_record(u.name, conn)]
