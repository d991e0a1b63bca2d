"""Storage module with factory for creating the store."""

from urllib.parse import urlparse

from loguru import logger

from ..config import settings
from ..exceptions import StorageError
from .protocols import CarCatalog, ChatRepository, MessageRepository, Store
from .sqlite import SQLiteStore


def create_store(database_url: str | None = None) -> Store:
    """Create store instance based on database URL.

    Args:
        database_url: Database URL. Uses settings if not provided.

    Returns:
        Store instance.
    """
    url = database_url or settings.database_url
    parsed = urlparse(url)

    if parsed.scheme in ("sqlite", "sqlite+aiosqlite") or url.startswith("sqlite"):
        logger.info("Creating SQLite store")
        return SQLiteStore(url, seed_catalog=settings.seed_catalog)
    raise StorageError(f"Unsupported database URL scheme: {url}. Must be 'sqlite'")


__all__ = [
    "CarCatalog",
    "ChatRepository",
    "MessageRepository",
    "SQLiteStore",
    "Store",
    "create_store",
]
