"""migrun — batched, idempotent database migrations for asyncio apps."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("migrun")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development
