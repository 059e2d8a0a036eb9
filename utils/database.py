"""SQLite helpers for the local viviendas store.

Provides reusable functions for:
- Opening connections with the standard pragmas
- Explicit immediate transactions
- Small introspection queries used by the build script and tests
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Union


def init_pragmas(conn: sqlite3.Connection) -> None:
    """Initialize SQLite reliability pragmas.

    - WAL mode so API readers are not blocked by an import
    - NORMAL synchronous mode
    - Foreign keys enforced (cambios_estado -> viviendas)
    """
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA foreign_keys=ON")


def connect(db_path: Union[Path, str]) -> sqlite3.Connection:
    """Open a read-write connection in autocommit mode.

    Transactions are opened explicitly with :func:`immediate_transaction`.
    ``":memory:"`` is accepted for throwaway databases.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False, timeout=10,
                           isolation_level=None)
    conn.row_factory = sqlite3.Row
    if str(db_path) == ":memory:":
        conn.execute("PRAGMA foreign_keys=ON")
    else:
        init_pragmas(conn)
    return conn


@contextmanager
def immediate_transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a block inside ``BEGIN IMMEDIATE``; commit on success, roll back on error.

    IMMEDIATE takes the write lock up front so a read inside the block sees
    the state the following write replaces.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    else:
        conn.execute("COMMIT")


def query_to_dicts(conn: sqlite3.Connection, sql: str,
                   params: tuple = ()) -> List[Dict[str, Any]]:
    """Execute a query and return rows as plain dicts."""
    return [dict(row) for row in conn.execute(sql, params).fetchall()]


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    return row is not None


def get_table_count(conn: sqlite3.Connection, table: str) -> int:
    """Get row count for a table."""
    result = conn.execute(f"SELECT COUNT(*) AS cnt FROM {table}").fetchone()
    return result[0] if result else 0
