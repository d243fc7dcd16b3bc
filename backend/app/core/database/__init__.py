"""
Database connectivity layer: resolve connection settings per environment,
own the TLS-secured connection pool, and probe reachability.
"""

from .connect import connect, cursor_to_dicts, execute
from .descriptor import ConnectionDescriptor, Environment
from .errors import (
    ConfigurationError,
    ConnectivityError,
    DatabaseError,
    TLSMaterialError,
)
from .health import HealthResult
from .manager import (
    ConnectionManager,
    PoolState,
    check_health,
    get_connection_manager,
    get_handle,
)
from .pool import ConnectionPool
from .resolver import resolve

__all__ = [
    "connect",
    "execute",
    "cursor_to_dicts",
    "ConnectionDescriptor",
    "Environment",
    "DatabaseError",
    "ConfigurationError",
    "TLSMaterialError",
    "ConnectivityError",
    "HealthResult",
    "ConnectionManager",
    "PoolState",
    "ConnectionPool",
    "get_connection_manager",
    "get_handle",
    "check_health",
    "resolve",
]
