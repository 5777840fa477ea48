"""Database initialisation helpers.

``init_db(conn)`` is idempotent and safe to call on an existing database.
"""

from __future__ import annotations

import sqlite3

from studypath.config import settings


def init_db(conn: sqlite3.Connection) -> None:
    """Create the key/value table and its index.

    Every DDL statement uses ``IF NOT EXISTS`` so calling this repeatedly on
    the same database is safe.  Legacy roadmap documents are upgraded on read by
    :func:`studypath.validation.load_roadmap`, not here.
    """
    conn.executescript(settings.schema_path.read_text(encoding="utf-8"))
