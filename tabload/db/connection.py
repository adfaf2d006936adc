from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2

"""Connection scope for one run.

The connection is created at run start, threaded through every call as a
cursor and closed on every exit path (success or fatal error).

autocommit=True: 各バッチ INSERT は単独で確定し、stage / promote の境界は
swap.transaction() が BEGIN/COMMIT/ROLLBACK を明示発行する。
セッションのタイムゾーンは UTC に固定 (timestamp 列には UTC の瞬間を格納)。
"""

__all__ = ["connect"]

logger = logging.getLogger(__name__)


@contextmanager
def connect(dsn: str) -> Iterator[Any]:
    """Yield a cursor on a fresh autocommit connection."""
    conn = psycopg2.connect(dsn)
    try:
        conn.autocommit = True
        cur = conn.cursor()
        try:
            cur.execute("SET TIME ZONE 'UTC'")
            yield cur
        finally:
            cur.close()
    finally:
        conn.close()
        logger.debug("database connection closed")
