"""migrun CLI — apply and inspect batched migrations on a SQLite database.

    migrun up myapp.migrations:config
    migrun status myapp.migrations:config --json
    migrun history --database data/app.db
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import orjson
import typer
from rich.console import Console
from rich.table import Table

from migrun.cli.context import database_path, load_config, make_runner, run_async
from migrun.config import settings
from migrun.databases import DatabaseIdentifier, Databases, SQLiteDatabase
from migrun.exceptions import MigrunError
from migrun.logging_config import setup_logging
from migrun.migrations.runner import MigrationRunner

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="migrun",
    help="migrun -- batched, idempotent database migrations.",
    no_args_is_help=True,
)

_TARGET = typer.Argument(help="Migration config as 'package.module:attribute'")
_DATABASE = typer.Option(
    None,
    "--database",
    "-d",
    help="SQLite file for the sqlite database; other databases get "
    "<stem>.<uid>.db beside it (default: MIGRUN_DB_PATH)",
)
_JSON = typer.Option(False, "--json", help="Print machine-readable JSON")


def _dump(payload: Any) -> None:
    typer.echo(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())


def _fail(error: MigrunError) -> typer.Exit:
    err_console.print(f"[red]{type(error).__name__}:[/red] {error}")
    return typer.Exit(code=1)


@app.callback()
def main(
    log_level: str = typer.Option(
        settings.log_level, "--log-level", help="DEBUG, INFO, WARNING or ERROR"
    ),
):
    """Configure logging before any command runs."""
    setup_logging(log_level)


@app.command("up")
def up(
    target: str = _TARGET,
    database: Optional[Path] = _DATABASE,
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would run"),
    json_output: bool = _JSON,
):
    """Apply all pending migrations under a new batch."""
    try:
        config = load_config(target)
        runner = make_runner(config, database or settings.db_path)
        reports = run_async(runner.migrate_all(config, dry_run=dry_run))
    except MigrunError as e:
        raise _fail(e)

    if json_output:
        _dump([r.model_dump(mode="json") for r in reports])
        return

    for report in reports:
        if report.dry_run:
            if report.pending:
                console.print(
                    f"[cyan]{report.database}[/cyan]: would apply "
                    f"{len(report.pending)} migration(s) as batch {report.batch}"
                )
                for name in report.pending:
                    console.print(f"  [dim]-[/dim] {name}")
            else:
                console.print(f"[cyan]{report.database}[/cyan]: nothing to apply")
        elif report.applied:
            console.print(
                f"[green]{report.database}[/green]: applied "
                f"{len(report.applied)} migration(s) as batch {report.batch}"
            )
            for name in report.applied:
                console.print(f"  [dim]+[/dim] {name}")
        else:
            console.print(f"[green]{report.database}[/green]: already up to date")


@app.command("status")
def status(
    target: str = _TARGET,
    database: Optional[Path] = _DATABASE,
    json_output: bool = _JSON,
):
    """Show which registered migrations have run."""
    try:
        config = load_config(target)
        runner = make_runner(config, database or settings.db_path)

        async def _status():
            return {c.database.uid: await runner.status(c) for c in config.configs}

        statuses = run_async(_status())
    except MigrunError as e:
        raise _fail(e)

    if json_output:
        _dump({
            uid: [s.model_dump(mode="json") for s in rows]
            for uid, rows in statuses.items()
        })
        return

    for uid, rows in statuses.items():
        table = Table(title=f"Migrations: {uid}")
        table.add_column("Migration", style="white")
        table.add_column("Batch", style="cyan", justify="right")
        table.add_column("Applied", style="dim", no_wrap=True)
        table.add_column("Description", style="dim")
        for s in rows:
            table.add_row(
                s.name,
                str(s.batch) if s.applied else "[yellow]pending[/yellow]",
                s.applied_at.strftime("%Y-%m-%d %H:%M") if s.applied_at else "",
                s.description,
            )
        console.print(table)


@app.command("history")
def history(
    database: Optional[Path] = _DATABASE,
    uid: str = typer.Option("sqlite", "--uid", help="Database identifier"),
    json_output: bool = _JSON,
):
    """List every recorded migration, oldest first."""
    identifier = DatabaseIdentifier(uid, SQLiteDatabase)
    databases = Databases()
    databases.register(
        identifier, SQLiteDatabase(database_path(database or settings.db_path, uid))
    )
    try:
        records = run_async(MigrationRunner(databases).history(identifier))
    except MigrunError as e:
        raise _fail(e)

    if json_output:
        _dump([r.model_dump(mode="json") for r in records])
        return

    if not records:
        console.print("[dim]No migrations have been applied.[/dim]")
        return

    table = Table(title=f"Migration history: {uid}")
    table.add_column("Batch", style="cyan", justify="right")
    table.add_column("Migration", style="white")
    table.add_column("Applied", style="dim", no_wrap=True)
    for r in records:
        table.add_row(str(r.batch), r.name, r.applied_at.strftime("%Y-%m-%d %H:%M:%S"))
    console.print(table)


if __name__ == "__main__":
    app()
