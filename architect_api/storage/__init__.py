"""Storage module with factory for creating repository instances."""

from urllib.parse import urlparse

from loguru import logger

from ..exceptions import ConfigurationError
from .memory import InMemoryRepository
from .protocols import Repository
from .sqlite import SQLiteRepository


def create_repository(database_url: str | None = None) -> Repository:
    """Create repository instance based on database URL.

    Args:
        database_url: "memory://" or a sqlite URL. Uses settings if not provided.

    Returns:
        Repository instance.
    """
    from ..config import settings

    url = database_url or settings.database_url
    scheme = urlparse(url).scheme

    if scheme == "memory":
        logger.info("Creating in-memory repository")
        return InMemoryRepository()
    if scheme in ("sqlite", "sqlite+aiosqlite"):
        logger.info("Creating SQLite repository")
        return SQLiteRepository(url)
    raise ConfigurationError(
        f"Unsupported database URL scheme: {url}. Must be 'memory://' or 'sqlite:///path'"
    )


__all__ = [
    "InMemoryRepository",
    "Repository",
    "SQLiteRepository",
    "create_repository",
]
