"""
Driver helpers: open a pymysql connection from a descriptor, run SQL.
"""

import ssl
from typing import Any

import pymysql
import pymysql.cursors

from .descriptor import ConnectionDescriptor


def connect(
    descriptor: ConnectionDescriptor, ssl_context: ssl.SSLContext | None = None
) -> pymysql.connections.Connection:
    """
    Open one connection to the database described by *descriptor*.

    - ssl_context: built by tls.build_ssl_context; None opens a plaintext
      connection (development without CA only).
    """
    return pymysql.connect(
        host=descriptor.host,
        port=descriptor.port,
        user=descriptor.user,
        password=descriptor.password.get_secret_value(),
        database=descriptor.database,
        charset="utf8mb4",
        cursorclass=pymysql.cursors.DictCursor,
        connect_timeout=descriptor.connect_timeout,
        read_timeout=descriptor.read_timeout,
        write_timeout=descriptor.read_timeout,
        ssl=ssl_context,
        autocommit=False,
    )


def execute(
    conn: Any,
    sql: str,
    params: dict | list | tuple | None = None,
    *,
    statement_timeout: float | None = None,
) -> Any:
    """
    Execute SQL and return the cursor. Caller uses cursor_to_dicts(cursor) or cursor.rowcount.

    - statement_timeout: seconds; when set, applies MySQL max_execution_time (ms)
      before the query and resets it after.
    """
    use_timeout = statement_timeout is not None and statement_timeout > 0
    if use_timeout:
        timeout_ms = int(statement_timeout * 1000)
        cur_set = conn.cursor()
        try:
            cur_set.execute("SET SESSION max_execution_time = %s", (timeout_ms,))
        finally:
            cur_set.close()

    cur = conn.cursor()
    try:
        if params is not None:
            cur.execute(sql, params)
        else:
            cur.execute(sql)
    finally:
        if use_timeout:
            cur_reset = conn.cursor()
            try:
                cur_reset.execute("SET SESSION max_execution_time = 0")
            finally:
                cur_reset.close()

    return cur


def cursor_to_dicts(cursor: Any) -> list[dict[str, Any]]:
    """Convert cursor result to list of dicts (DictCursor rows or plain tuples)."""
    desc = cursor.description
    if not desc:
        return []
    names = [d[0] for d in desc]
    rows = cursor.fetchall()
    return [
        dict(row) if isinstance(row, dict) else dict(zip(names, row, strict=True))
        for row in rows
    ]
