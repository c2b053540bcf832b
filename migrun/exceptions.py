"""Custom exception hierarchy for migrun."""


class MigrunError(Exception):
    """Base for all migrun errors."""


class DatabaseNotFoundError(MigrunError):
    """No database is registered under the requested identifier."""


class DatabaseConnectionError(MigrunError):
    """Could not acquire a connection from a registered database."""


class StoreError(MigrunError):
    """The migration log could not be created, read or written."""


class ApplyError(MigrunError):
    """A migration's upgrade failed. It stays pending for the next run."""

    def __init__(self, name: str, batch: int, message: str = "") -> None:
        self.name = name
        self.batch = batch
        super().__init__(message or f"Migration {name} failed in batch {batch}")


class MigrationConfigError(MigrunError):
    """Migrations or databases were registered incorrectly."""


class MigrationStateError(MigrunError):
    """Invalid migration run state transition."""
