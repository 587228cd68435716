"""
db/connection.py
----------------
Opens PostgreSQL connections for the storage adapters.
One short-lived connection per call; there is no pool.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2

import config
from utils.logger import get_logger

logger = get_logger(__name__)


def get_connection(dsn: Optional[str] = None):
    """
    Open a new connection.

    Args:
        dsn: Connection string; defaults to ``config.DATABASE_URL``.

    Returns:
        A psycopg2 connection object.

    Raises:
        psycopg2.OperationalError: If the database is unreachable.
    """
    try:
        return psycopg2.connect(dsn or config.DATABASE_URL)
    except psycopg2.OperationalError as e:
        logger.error(f"Failed to connect to the database: {e}")
        raise


@contextmanager
def connection(dsn: Optional[str] = None) -> Iterator:
    """
    Yield a connection that is committed on success, rolled back on error,
    and always closed.
    """
    conn = get_connection(dsn)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
