"""
Data access layer.

``IStorage`` is the interface the API depends on; ``MemStorage`` keeps
data in process memory and ``DatabaseStorage`` persists it through
SQLAlchemy.  ``build_storage`` picks one from settings.
"""

import logging

from .base import IStorage
from .memory import MemStorage

logger = logging.getLogger(__name__)


def build_storage(settings) -> IStorage:
    """Construct the storage backing named by ``settings.storage_backend``."""
    backend = settings.storage_backend.lower()
    if backend == "memory":
        logger.info("Using in-memory storage")
        return MemStorage()
    if backend == "database":
        from memorylane_database.db import get_engine, get_session_factory
        from memorylane_database.init_db import init_db
        from .database import DatabaseStorage

        engine = get_engine(settings.database_url or None)
        init_db(engine)
        logger.info("Using database storage at %s", engine.url.render_as_string(hide_password=True))
        return DatabaseStorage(get_session_factory(engine))
    raise ValueError(f"Unknown STORAGE_BACKEND {settings.storage_backend!r}")


__all__ = ["IStorage", "MemStorage", "build_storage"]
