"""Core types shared across all migrun subsystems."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import TypeAlias

from pydantic import BaseModel, Field

# ── ID Types ──────────────────────────────────────────────────────────────────

MigrationName: TypeAlias = str
DatabaseUid: TypeAlias = str
BatchNumber: TypeAlias = int

NO_BATCH: BatchNumber = 0  # nothing applied yet


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Run States ────────────────────────────────────────────────────────────────


class RunState(str, Enum):
    NOT_STARTED = "not_started"
    RESOLVING_DATABASE = "resolving_database"
    CONNECTION_ACQUIRED = "connection_acquired"
    SCHEMA_READY = "schema_ready"
    BATCH_COMPUTED = "batch_computed"
    APPLYING = "applying"
    COMPLETED = "completed"
    FAILED = "failed"


# ── Records ──────────────────────────────────────────────────────────────────


class MigrationRecord(BaseModel):
    """One applied migration, as persisted in the migration log."""

    id: int | None = None
    name: MigrationName
    batch: BatchNumber
    applied_at: datetime = Field(default_factory=utcnow)


class MigrationStatus(BaseModel):
    """A registered migration and, if it ran, where it landed."""

    name: MigrationName
    description: str = ""
    batch: BatchNumber | None = None
    applied_at: datetime | None = None

    @property
    def applied(self) -> bool:
        return self.batch is not None


# ── Reports ──────────────────────────────────────────────────────────────────


class MigrationReport(BaseModel):
    """What a single migrate() call did to one database."""

    database: DatabaseUid
    batch: BatchNumber
    applied: list[MigrationName] = Field(default_factory=list)
    skipped: list[MigrationName] = Field(default_factory=list)
    pending: list[MigrationName] = Field(default_factory=list)  # dry runs only
    dry_run: bool = False
    state: RunState = RunState.NOT_STARTED
