"""
Round-trip probe used by the health endpoint.
"""

import time
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from .pool import ConnectionPool

HEALTH_QUERY = "SELECT 1 AS test, NOW() AS time, DATABASE() AS `database`"


class HealthResult(BaseModel):
    """Outcome of one probe: diagnostics on success, error text on failure."""

    ok: bool
    test: int | None = None
    server_time: datetime | None = None
    database: str | None = None
    latency_ms: int | None = None
    error: str | None = None

    @property
    def diagnostic(self) -> dict[str, Any]:
        if not self.ok:
            return {"error": self.error}
        return {
            "test": self.test,
            "time": self.server_time.isoformat() if self.server_time else None,
            "database": self.database,
            "latency_ms": self.latency_ms,
        }


def run_health_query(pool: ConnectionPool) -> HealthResult:
    """
    Run HEALTH_QUERY on a pooled connection. Blocking; raises on failure.
    """
    started = time.perf_counter()
    rows = pool.fetch_all(HEALTH_QUERY)
    latency_ms = int((time.perf_counter() - started) * 1000)
    row = rows[0] if rows else {}
    test = row.get("test")
    return HealthResult(
        ok=True,
        test=int(test) if test is not None else None,
        server_time=row.get("time"),
        database=row.get("database"),
        latency_ms=latency_ms,
    )
