"""
Bounded connection pool for the application database.

At most ``pool_max`` connections are checked out at once; idle connections
are reused, recycled after a max age, and pinged when they have been idle for
a while. Connections are opened lazily; ``warm()`` pre-opens ``pool_min``.
All methods are blocking and thread-safe; async callers run them through
``asyncio.to_thread``.
"""

import logging
import ssl
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, NamedTuple

import pymysql

from .connect import connect, cursor_to_dicts, execute
from .descriptor import ConnectionDescriptor
from .errors import ConnectivityError

_log = logging.getLogger(__name__)

_DEFAULT_MAX_AGE_SEC = 600  # 10 minutes

_PING_IDLE_THRESHOLD = 30.0  # only ping connections idle longer than this (seconds)

# Driver errors after which a connection must not go back to the pool.
_BROKEN_CONNECTION_ERRORS = (pymysql.err.OperationalError, pymysql.err.InterfaceError)

Connector = Callable[[ConnectionDescriptor, ssl.SSLContext | None], Any]


class _PoolEntry(NamedTuple):
    conn: Any
    created_at: float  # time.monotonic() when the connection was opened
    last_used: float   # time.monotonic() when last returned to pool


class ConnectionPool:
    """Pool of connections to one database, bounded by [pool_min, pool_max]."""

    def __init__(
        self,
        descriptor: ConnectionDescriptor,
        ssl_context: ssl.SSLContext | None = None,
        *,
        acquire_timeout: float = 10.0,
        max_age: float = _DEFAULT_MAX_AGE_SEC,
        statement_timeout: float | None = None,
        connector: Connector = connect,
    ) -> None:
        self.descriptor = descriptor
        self._ssl_context = ssl_context
        self._acquire_timeout = acquire_timeout
        self._max_age = float(max_age)
        self._statement_timeout = statement_timeout
        self._connector = connector
        self._idle: list[_PoolEntry] = []
        self._in_use = 0
        self._closed = False
        self._lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(descriptor.pool_max)

    @property
    def min_size(self) -> int:
        return self.descriptor.pool_min

    @property
    def max_size(self) -> int:
        return self.descriptor.pool_max

    @property
    def tls_enabled(self) -> bool:
        return self._ssl_context is not None

    @property
    def closed(self) -> bool:
        return self._closed

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """
        Borrow a connection for the duration of the block.

        The connection is rolled back and returned on exit; it is closed
        instead when the block raised a connection-level driver error.
        """
        entry = self._acquire()
        discard = False
        try:
            yield entry.conn
        except _BROKEN_CONNECTION_ERRORS:
            discard = True
            raise
        finally:
            self._release(entry, discard=discard)

    def fetch_all(
        self, sql: str, params: dict | list | tuple | None = None
    ) -> list[dict[str, Any]]:
        """Run a statement on a pooled connection and return its rows as dicts."""
        with self.connection() as conn:
            cur = execute(conn, sql, params, statement_timeout=self._statement_timeout)
            try:
                return cursor_to_dicts(cur)
            finally:
                cur.close()

    def warm(self) -> int:
        """Open connections until ``pool_min`` exist. Best effort; returns how many were opened."""
        opened = 0
        while True:
            with self._lock:
                if self._closed:
                    return opened
                missing = self.min_size - len(self._idle) - self._in_use
            if missing <= 0:
                return opened
            try:
                conn = self._connector(self.descriptor, self._ssl_context)
            except Exception as e:
                _log.warning(
                    "Pool warm-up stopped after %d/%d connections: %s",
                    opened,
                    self.min_size,
                    e,
                )
                return opened
            now = time.monotonic()
            with self._lock:
                self._idle.append(_PoolEntry(conn=conn, created_at=now, last_used=now))
            opened += 1

    def dispose(self) -> None:
        """Close idle connections and refuse further checkouts."""
        with self._lock:
            self._closed = True
            entries = self._idle
            self._idle = []
        for e in entries:
            self._close_quiet(e.conn)

    def stats(self) -> dict[str, int]:
        """Return pool statistics for monitoring."""
        with self._lock:
            return {
                "pool_min": self.min_size,
                "pool_max": self.max_size,
                "idle_connections": len(self._idle),
                "in_use_connections": self._in_use,
            }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _acquire(self) -> _PoolEntry:
        if self._closed:
            raise ConnectivityError("connection pool is closed")
        if not self._slots.acquire(timeout=self._acquire_timeout):
            raise ConnectivityError(
                f"no free database connection within {self._acquire_timeout:g}s "
                f"(pool_max={self.max_size})"
            )
        try:
            entry = self._checkout()
        except BaseException:
            self._slots.release()
            raise
        with self._lock:
            self._in_use += 1
        return entry

    def _checkout(self) -> _PoolEntry:
        now = time.monotonic()
        while True:
            entry = self._pop()
            if entry is None:
                break
            if self._is_expired(entry):
                self._close_quiet(entry.conn)
                continue
            idle_sec = now - entry.last_used
            if idle_sec > _PING_IDLE_THRESHOLD and not self._is_alive(entry.conn):
                self._close_quiet(entry.conn)
                continue
            return entry

        d = self.descriptor
        try:
            conn = self._connector(d, self._ssl_context)
        except Exception as e:
            raise ConnectivityError(
                f"cannot connect to {d.host}:{d.port}/{d.database}: {e}"
            ) from e
        now = time.monotonic()
        return _PoolEntry(conn=conn, created_at=now, last_used=now)

    def _release(self, entry: _PoolEntry, *, discard: bool = False) -> None:
        try:
            if discard or self._closed:
                self._close_quiet(entry.conn)
                return
            try:
                entry.conn.rollback()
            except Exception:
                self._close_quiet(entry.conn)
                return
            with self._lock:
                self._idle.append(entry._replace(last_used=time.monotonic()))
        finally:
            with self._lock:
                self._in_use -= 1
            self._slots.release()

    def _pop(self) -> _PoolEntry | None:
        with self._lock:
            if self._idle:
                return self._idle.pop()
        return None

    def _is_expired(self, entry: _PoolEntry) -> bool:
        return (time.monotonic() - entry.created_at) > self._max_age

    @staticmethod
    def _is_alive(conn: Any) -> bool:
        """Lightweight ping to detect broken connections."""
        try:
            conn.ping(reconnect=False)
            return True
        except Exception:
            return False

    @staticmethod
    def _close_quiet(conn: Any) -> None:
        try:
            conn.close()
        except Exception:
            pass
