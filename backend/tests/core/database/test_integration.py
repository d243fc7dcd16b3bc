"""
Integration tests for core.database against a real MySQL/TiDB server.

Skipped unless DB_TEST_HOST is set. Uses DB_TEST_PORT, DB_TEST_USER,
DB_TEST_PASSWORD and DB_TEST_NAME (a TLS-less local server is expected, as
in development).
"""

import asyncio
import os

import pytest

from app.core.database.manager import ConnectionManager

pytestmark = pytest.mark.skipif(
    not os.environ.get("DB_TEST_HOST"), reason="DB_TEST_HOST not set"
)


def _dev_settings(make_settings, **overrides):
    values = {
        "ENVIRONMENT": "development",
        "DB_HOST": os.environ.get("DB_TEST_HOST"),
        "DB_PORT": os.environ.get("DB_TEST_PORT", "3306"),
        "DB_USER": os.environ.get("DB_TEST_USER", "root"),
        "DB_PASSWORD": os.environ.get("DB_TEST_PASSWORD"),
        "DB_NAME": os.environ.get("DB_TEST_NAME", "app"),
    }
    values.update(overrides)
    return make_settings(**values)


def test_check_health_against_local_database(make_settings) -> None:
    manager = ConnectionManager(_dev_settings(make_settings))

    async def _run():
        try:
            return await manager.check_health()
        finally:
            await manager.close()

    result = asyncio.run(_run())
    assert result.ok is True
    assert result.test == 1
    assert result.database == os.environ.get("DB_TEST_NAME", "app")
    assert result.server_time is not None
