"""
Database connection management.

Provides the SQLite connection backing the listening history store.
"""

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


class StoreUnavailable(Exception):
    """Raised when the backing database cannot be opened or used."""


def get_connection(db_path: str = "listening_stats.db") -> sqlite3.Connection:
    """Create and return a SQLite database connection.
    
    The connection may be shared between threads; callers are responsible
    for serializing access to it.
    
    Args:
        db_path: Path to SQLite database file, or ":memory:"
        
    Returns:
        SQLite connection
        
    Raises:
        StoreUnavailable: If the database file cannot be opened
    """
    target = db_path if db_path == MEMORY_DB else str(Path(db_path))
    try:
        conn = sqlite3.connect(target, check_same_thread=False)
        # Touch the file so a bad path fails here rather than on first query
        conn.execute("PRAGMA schema_version").fetchone()
    except sqlite3.Error as e:
        logger.error("Database failed to open: %s", e)
        raise StoreUnavailable(f"Cannot open database {db_path}: {e}") from e
    return conn
