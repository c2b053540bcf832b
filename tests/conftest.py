"""Shared test fixtures — temp SQLite databases and recording migrations."""

from __future__ import annotations

import os
import tempfile
from typing import Any

import pytest

from migrun.databases import SQLITE, Databases, SQLiteDatabase
from migrun.migrations.runner import MigrationRunner
from migrun.migrations.store import MigrationLog


class TrackedConnection:
    """Proxy around an aiosqlite connection that remembers if it was closed."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn
        self.closed = False
        self.close_calls = 0

    def __getattr__(self, name: str) -> Any:
        return getattr(self._conn, name)

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True
        await self._conn.close()


class TrackedSQLiteDatabase(SQLiteDatabase):
    """SQLite database that hands out TrackedConnections and counts them."""

    def __init__(self, path: str) -> None:
        super().__init__(path)
        self.connections: list[TrackedConnection] = []

    async def make_connection(self):
        conn = TrackedConnection(await super().make_connection())
        self.connections.append(conn)
        return conn


class Recorder:
    """Builds migrations that append markers to a shared event list.

    ``events`` collects ("upgrade", name) when an upgrade starts and
    ("recorded", name) is added by the tests' log spy.
    """

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []
        self.calls: dict[str, int] = {}

    def ok(self, name: str):
        async def upgrade(conn):
            self.events.append(("upgrade", name))
            self.calls[name] = self.calls.get(name, 0) + 1
            await conn.execute(f"CREATE TABLE IF NOT EXISTS {name} (id INTEGER PRIMARY KEY)")

        upgrade.__name__ = name
        return upgrade

    def failing(self, name: str, message: str = "boom"):
        async def upgrade(conn):
            self.events.append(("upgrade", name))
            self.calls[name] = self.calls.get(name, 0) + 1
            raise RuntimeError(message)

        upgrade.__name__ = name
        return upgrade


class SpyLog(MigrationLog):
    """MigrationLog that reports record writes into a Recorder."""

    def __init__(self, recorder: Recorder) -> None:
        super().__init__()
        self._recorder = recorder

    async def write_record(self, name, batch, conn):
        record = await super().write_record(name, batch, conn)
        self._recorder.events.append(("recorded", name))
        return record


@pytest.fixture
def db_path():
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    yield path
    os.unlink(path)


@pytest.fixture
def database(db_path):
    return TrackedSQLiteDatabase(db_path)


@pytest.fixture
def databases(database):
    registry = Databases()
    registry.register(SQLITE, database)
    return registry


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def runner(databases, recorder):
    return MigrationRunner(databases, log=SpyLog(recorder))
