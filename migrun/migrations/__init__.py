"""Batched migration system for migrun.

Register migrations on a MigrationConfigBuilder, build it, and hand each
database's config to a MigrationRunner. Every run applies the pending
migrations under one new batch number and records them in the migration log.
"""

from migrun.migrations.config import (
    DatabaseMigrationConfig,
    MigrationConfig,
    MigrationConfigBuilder,
)
from migrun.migrations.planner import BatchPlanner
from migrun.migrations.runner import MigrationRunner
from migrun.migrations.store import MigrationLog
from migrun.migrations.unit import Migration, MigrationUnit

__all__ = [
    "BatchPlanner",
    "DatabaseMigrationConfig",
    "Migration",
    "MigrationConfig",
    "MigrationConfigBuilder",
    "MigrationLog",
    "MigrationRunner",
    "MigrationUnit",
]
