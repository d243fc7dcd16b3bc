"""Unit tests for core.database.pool — bounded pool over fake connections."""

import threading
import time
from unittest.mock import patch

import pymysql
import pytest

from app.core.database import pool as pool_module
from app.core.database.descriptor import ConnectionDescriptor, Environment
from app.core.database.errors import ConnectivityError
from app.core.database.pool import ConnectionPool
from tests.utils.fakes import FakeConnector, health_rows


def _descriptor(pool_min: int = 0, pool_max: int = 2) -> ConnectionDescriptor:
    return ConnectionDescriptor(
        environment=Environment.DEVELOPMENT,
        host="localhost",
        port=3306,
        user="app",
        database="omniserves",
        pool_min=pool_min,
        pool_max=pool_max,
    )


def _pool(
    connector: FakeConnector, *, pool_min: int = 0, pool_max: int = 2, **kwargs
) -> ConnectionPool:
    kwargs.setdefault("acquire_timeout", 0.1)
    return ConnectionPool(_descriptor(pool_min, pool_max), connector=connector, **kwargs)


def test_connections_are_opened_lazily() -> None:
    connector = FakeConnector()
    pool = _pool(connector)
    assert connector.opened == []
    with pool.connection() as conn:
        assert conn is connector.opened[0]
    assert pool.stats()["idle_connections"] == 1


def test_connection_is_reused_and_rolled_back() -> None:
    connector = FakeConnector()
    pool = _pool(connector)
    with pool.connection() as first:
        pass
    with pool.connection() as second:
        pass
    assert first is second
    assert len(connector.opened) == 1
    assert first.rollbacks == 2


def test_ssl_context_is_passed_to_connector() -> None:
    connector = FakeConnector()
    marker = object()
    pool = ConnectionPool(_descriptor(), marker, connector=connector)  # type: ignore[arg-type]
    with pool.connection():
        pass
    assert connector.calls[0][1] is marker
    assert pool.tls_enabled is True


def test_pool_max_bounds_checkouts() -> None:
    connector = FakeConnector()
    pool = _pool(connector, pool_max=1)
    with pool.connection():
        with pytest.raises(ConnectivityError, match="pool_max=1"):
            with pool.connection():
                pass
    # slot released after the outer block
    with pool.connection():
        pass


def test_waiting_checkout_gets_released_connection() -> None:
    connector = FakeConnector()
    pool = _pool(connector, pool_max=1, acquire_timeout=2.0)
    got: list[object] = []

    with pool.connection() as conn:
        def _borrow() -> None:
            with pool.connection() as c:
                got.append(c)

        t = threading.Thread(target=_borrow)
        t.start()
        time.sleep(0.05)
        assert got == []
    t.join(timeout=2)
    assert got == [conn]


def test_connect_failure_raises_connectivity_error_and_frees_slot() -> None:
    connector = FakeConnector(fail_with=pymysql.err.OperationalError(2003, "Can't connect"))
    pool = _pool(connector, pool_max=1)
    for _ in range(3):
        with pytest.raises(ConnectivityError, match="localhost:3306/omniserves"):
            with pool.connection():
                pass
    assert pool.stats()["in_use_connections"] == 0


def test_broken_connection_is_discarded() -> None:
    connector = FakeConnector()
    pool = _pool(connector)
    with pytest.raises(pymysql.err.OperationalError):
        with pool.connection() as conn:
            raise pymysql.err.OperationalError(2013, "Lost connection")
    assert conn.closed is True
    assert pool.stats()["idle_connections"] == 0


def test_application_error_keeps_connection() -> None:
    connector = FakeConnector()
    pool = _pool(connector)
    with pytest.raises(KeyError):
        with pool.connection() as conn:
            raise KeyError("x")
    assert conn.closed is False
    assert pool.stats()["idle_connections"] == 1


def test_expired_connection_is_replaced() -> None:
    connector = FakeConnector()
    pool = _pool(connector, max_age=0.0)
    with pool.connection() as first:
        pass
    time.sleep(0.01)
    with pool.connection() as second:
        pass
    assert first is not second
    assert first.closed is True


def test_dead_idle_connection_is_replaced() -> None:
    connector = FakeConnector()
    pool = _pool(connector)
    with pool.connection() as first:
        pass
    first.alive = False
    with patch.object(pool_module, "_PING_IDLE_THRESHOLD", -1.0):
        with pool.connection() as second:
            pass
    assert second is not first
    assert first.closed is True


def test_warm_opens_pool_min() -> None:
    connector = FakeConnector()
    pool = _pool(connector, pool_min=2, pool_max=5)
    assert pool.warm() == 2
    assert pool.warm() == 0
    assert pool.stats() == {
        "pool_min": 2,
        "pool_max": 5,
        "idle_connections": 2,
        "in_use_connections": 0,
    }


def test_warm_is_best_effort() -> None:
    connector = FakeConnector(fail_with=OSError("network down"))
    pool = _pool(connector, pool_min=2, pool_max=5)
    assert pool.warm() == 0


def test_dispose_closes_and_refuses() -> None:
    connector = FakeConnector()
    pool = _pool(connector, pool_min=1)
    pool.warm()
    pool.dispose()
    assert pool.closed is True
    assert connector.opened[0].closed is True
    with pytest.raises(ConnectivityError, match="closed"):
        with pool.connection():
            pass


def test_connection_returned_after_dispose_is_closed() -> None:
    connector = FakeConnector()
    pool = _pool(connector)
    with pool.connection() as conn:
        pool.dispose()
    assert conn.closed is True


def test_fetch_all_returns_dicts() -> None:
    connector = FakeConnector(rows=health_rows("crm"))
    pool = _pool(connector)
    rows = pool.fetch_all("SELECT 1")
    assert rows[0]["database"] == "crm"
    assert connector.opened[0].executed == [("SELECT 1", None)]


def test_fetch_all_applies_statement_timeout() -> None:
    connector = FakeConnector()
    pool = _pool(connector, statement_timeout=2)
    pool.fetch_all("SELECT 1")
    executed = [sql for sql, _ in connector.opened[0].executed]
    assert executed == [
        "SET SESSION max_execution_time = %s",
        "SELECT 1",
        "SET SESSION max_execution_time = 0",
    ]
    assert connector.opened[0].executed[0][1] == (2000,)
