"""CLI runtime context: loads migration configs, bridges sync CLI to async runner."""

from __future__ import annotations

import asyncio
import importlib
from pathlib import Path
from typing import Any, Coroutine

from migrun.databases import SQLITE, Databases, SQLiteDatabase
from migrun.exceptions import MigrationConfigError
from migrun.migrations.config import MigrationConfig, MigrationConfigBuilder
from migrun.migrations.runner import MigrationRunner


def load_config(target: str) -> MigrationConfig:
    """Import ``package.module:attribute`` and turn it into a MigrationConfig.

    The attribute may be a MigrationConfig, a MigrationConfigBuilder, or a
    zero-argument callable returning either.
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise MigrationConfigError(
            f"Expected 'package.module:attribute', got {target!r}"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise MigrationConfigError(f"Could not import {module_name}: {e}") from e
    try:
        obj: Any = getattr(module, attr)
    except AttributeError:
        raise MigrationConfigError(f"{module_name} has no attribute {attr!r}") from None

    if callable(obj) and not isinstance(obj, (MigrationConfig, MigrationConfigBuilder)):
        obj = obj()
    if isinstance(obj, MigrationConfigBuilder):
        obj = obj.build()
    if not isinstance(obj, MigrationConfig):
        raise MigrationConfigError(
            f"{target} is a {type(obj).__name__}, not a migration config"
        )
    return obj


def database_path(db_path: Path, uid: str) -> Path:
    """SQLite file holding database ``uid``.

    The default ``sqlite`` database lives in ``db_path`` itself. Every other
    uid gets a sibling file, so ``app.db`` becomes ``app.reporting.db``. Each
    file carries its own migration log and batch numbers.
    """
    if uid == SQLITE.uid:
        return db_path
    return db_path.with_name(f"{db_path.stem}.{uid}{db_path.suffix}")


def make_runner(config: MigrationConfig, db_path: Path) -> MigrationRunner:
    """Give every database in ``config`` its own SQLite file next to ``db_path``."""
    databases = Databases()
    for identifier in config.databases:
        path = database_path(db_path, identifier.uid)
        databases.register(identifier, SQLiteDatabase(path))
    return MigrationRunner(databases)


def run_async(coro: Coroutine) -> Any:
    """Run an async coroutine from sync CLI code."""
    return asyncio.run(coro)
