"""
Cloud Console - Database Module

SQLite connection management and row helpers.
"""

from typing import Any, Dict, Optional

import aiosqlite
import structlog

from cloudpanel.config import settings
from cloudpanel.db.migrations import run_migrations

logger = structlog.get_logger(__name__)

# Database connection
_db: Optional[aiosqlite.Connection] = None


async def init_db():
    """Open the database connection and bring the schema up to date."""
    global _db

    _db = await aiosqlite.connect(settings.database_path)
    _db.row_factory = aiosqlite.Row
    await _db.execute("PRAGMA journal_mode=WAL")
    await _db.execute("PRAGMA synchronous=NORMAL")
    await _db.execute("PRAGMA foreign_keys=ON")

    await run_migrations(_db, seed_demo_data=settings.seed_demo_data)
    logger.info("Database initialized", path=settings.database_path)


async def close_db():
    """Close database connection."""
    global _db

    if _db:
        await _db.close()
        _db = None

    logger.info("Database connection closed")


async def get_db() -> aiosqlite.Connection:
    """Get database connection."""
    if not _db:
        raise RuntimeError("Database not initialized")
    return _db


def row_to_dict(row: Optional[aiosqlite.Row]) -> Optional[Dict[str, Any]]:
    """Convert a row to a plain dict, mapping SQLite integers back to booleans."""
    if row is None:
        return None
    data = dict(row)
    if "is_read" in data:
        data["is_read"] = bool(data["is_read"])
    return data
