"""Tests for environment-driven settings."""

from pathlib import Path

from migrun.config import MigrunSettings
from migrun.databases import Databases
from migrun.migrations.runner import MigrationRunner


def test_defaults():
    s = MigrunSettings()
    assert s.log_table == "migrun_log"
    assert s.log_level == "INFO"


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("MIGRUN_DB_PATH", "/tmp/other.db")
    monkeypatch.setenv("MIGRUN_LOG_TABLE", "schema_batches")

    s = MigrunSettings()

    assert s.db_path == Path("/tmp/other.db")
    assert s.log_table == "schema_batches"


def test_runner_uses_configured_table(monkeypatch):
    monkeypatch.setenv("MIGRUN_LOG_TABLE", "schema_batches")
    runner = MigrationRunner(Databases(), settings=MigrunSettings())
    assert runner.log.table == "schema_batches"
