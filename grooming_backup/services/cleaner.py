from __future__ import annotations

import logging
from typing import Any

from ..db.statements import delete_all
from ..models.schema import CLEAR_ORDER

"""Clear-database: delete every mutable table in one transaction.

Tables are emptied leaf-first (CLEAR_ORDER) so no foreign key is violated
midway. Any failure rolls back all deletions.
"""

__all__ = [
    "ClearDatabaseError",
    "clear_database",
]

logger = logging.getLogger(__name__)


class ClearDatabaseError(Exception):
    pass


def clear_database(provider: Any) -> None:
    conn = None
    try:
        conn = provider.get_connection()
        cursor = conn.cursor()
        for table in CLEAR_ORDER:
            delete_all(cursor, table)
            logger.debug("cleared table %s", table)
        conn.commit()
    except Exception as e:
        logger.error("clear database failed: %s", e)
        if conn is not None:
            try:
                conn.rollback()
            except Exception:
                logger.debug("rollback after failed clear also failed", exc_info=True)
        raise ClearDatabaseError(f"Failed to clear database: {e}") from e
    finally:
        if conn is not None:
            provider.release(conn)
    logger.info("database cleared (%d tables)", len(CLEAR_ORDER))
