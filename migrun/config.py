"""Global configuration — loaded from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings


class MigrunSettings(BaseSettings):
    db_path: Path = Path(".migrun/migrun.db")
    log_table: str = "migrun_log"  # one row per applied migration
    log_level: str = "INFO"

    model_config = {"env_prefix": "MIGRUN_"}


settings = MigrunSettings()
