"""
Connection manager: owns the single connection pool of the process.

The pool is created lazily on first access, exactly once even when many
requests arrive concurrently, and is never rebuilt. Connectivity problems
surface only through ``check_health``, which reports them as data.
"""

import asyncio
import logging
import threading
from collections.abc import Callable
from enum import Enum

from app.core.config import Settings, settings

from .descriptor import ConnectionDescriptor
from .errors import ConnectivityError
from .health import HealthResult, run_health_query
from .pool import ConnectionPool
from .resolver import resolve
from .tls import build_ssl_context

_log = logging.getLogger(__name__)

PoolFactory = Callable[..., ConnectionPool]


class PoolState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class ConnectionManager:
    """Lazily builds the pool and probes database reachability."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        environment_name: str | None = None,
        pool_factory: PoolFactory = ConnectionPool,
    ) -> None:
        self._config = config or settings
        self._environment_name = environment_name
        self._pool_factory = pool_factory
        self._pool: ConnectionPool | None = None
        self._descriptor: ConnectionDescriptor | None = None
        self._state = PoolState.UNINITIALIZED
        self._init_lock = asyncio.Lock()

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def config(self) -> Settings:
        return self._config

    @property
    def descriptor(self) -> ConnectionDescriptor | None:
        return self._descriptor

    async def get_handle(self) -> ConnectionPool:
        """
        Return the shared pool, creating it on first call.

        Raises ConfigurationError / TLSMaterialError when the descriptor cannot
        be resolved; the manager then stays uninitialized.
        """
        pool = self._pool
        if pool is not None:
            return pool
        async with self._init_lock:
            if self._pool is None:
                self._state = PoolState.INITIALIZING
                try:
                    self._pool = await self._build_pool()
                except BaseException:
                    self._state = PoolState.UNINITIALIZED
                    raise
                self._state = PoolState.READY
            return self._pool

    async def check_health(self) -> HealthResult:
        """
        Probe the database with one round-trip query.

        Connectivity failures (network, TLS, auth, timeout, pool exhausted) are
        returned as ``HealthResult(ok=False)``; only initialization errors from
        get_handle() propagate.
        """
        pool = await self.get_handle()
        timeout = pool.descriptor.health_timeout
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(run_health_query, pool), timeout=timeout
            )
        except asyncio.TimeoutError:
            err = ConnectivityError(f"health probe timed out after {timeout:g}s")
        except ConnectivityError as e:
            err = e
        except Exception as e:
            err = ConnectivityError(str(e) or e.__class__.__name__)
        else:
            _log.info("Database connection OK: %s", result.diagnostic)
            return result

        _log.error(
            "Database connection failed: %s (TLS: %s)",
            err,
            "OK" if pool.tls_enabled else "ABSENT",
        )
        return HealthResult(ok=False, error=str(err))

    async def close(self) -> None:
        """Dispose the pool (process shutdown)."""
        pool = self._pool
        if pool is not None:
            await asyncio.to_thread(pool.dispose)
            _log.info("Database pool disposed")

    async def _build_pool(self) -> ConnectionPool:
        descriptor = resolve(self._environment_name, config=self._config)
        ssl_context = build_ssl_context(descriptor)
        pool = self._pool_factory(
            descriptor,
            ssl_context,
            acquire_timeout=descriptor.acquire_timeout,
            max_age=descriptor.max_age,
            statement_timeout=descriptor.statement_timeout,
        )
        try:
            if descriptor.pool_min > 0:
                await asyncio.to_thread(pool.warm)
        except BaseException:
            pool.dispose()
            raise
        self._descriptor = descriptor
        _log.info("Database pool ready: %s", descriptor.safe_summary())
        return pool


_manager: ConnectionManager | None = None
_manager_lock = threading.Lock()


def get_connection_manager() -> ConnectionManager:
    """Return the process-wide ConnectionManager (thread-safe double-checked locking)."""
    global _manager
    if _manager is None:
        with _manager_lock:
            if _manager is None:
                _manager = ConnectionManager()
    return _manager


async def get_handle() -> ConnectionPool:
    """Shared pool of the process-wide manager."""
    return await get_connection_manager().get_handle()


async def check_health() -> HealthResult:
    """Health probe of the process-wide manager."""
    return await get_connection_manager().check_health()
