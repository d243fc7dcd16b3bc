import re
from collections.abc import Callable, Generator
from pathlib import Path

import certifi
import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings

_DB_ENV_VARS = (
    "ENVIRONMENT",
    "NODE_ENV",
    "DB_HOST",
    "DB_PORT",
    "DB_USER",
    "DB_PASSWORD",
    "DB_NAME",
    "DB_SSL_CA",
    "DB_SSL_CA_BASE64",
    "DB_SSL_REQUIRE_CA",
    "DB_POOL_MIN",
    "DB_POOL_MAX",
    "DB_POOL_ACQUIRE_TIMEOUT",
    "DB_POOL_MAX_AGE_SEC",
    "DB_CONNECT_TIMEOUT",
    "DB_READ_TIMEOUT",
    "DB_STATEMENT_TIMEOUT",
    "DB_HEALTH_TIMEOUT",
    "DB_CHECK_ON_STARTUP",
)

_PEM_CERT = re.compile(
    r"-----BEGIN CERTIFICATE-----.+?-----END CERTIFICATE-----\n?", re.DOTALL
)


@pytest.fixture(autouse=True)
def _isolate_db_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's shell DB_* variables out of Settings built in tests."""
    for name in _DB_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build Settings from explicit values only (no .env file)."""

    def _make(**overrides: object) -> Settings:
        values: dict[str, object] = {
            "DB_HOST": "db.example.com",
            "DB_USER": "app",
            "DB_PASSWORD": "secret",
            "DB_NAME": "omniserves",
            "DB_CHECK_ON_STARTUP": False,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)  # type: ignore[call-arg]

    return _make


@pytest.fixture(scope="session")
def ca_pem() -> str:
    """One real CA certificate in PEM form (first entry of certifi's bundle)."""
    bundle = Path(certifi.where()).read_text(encoding="utf-8")
    match = _PEM_CERT.search(bundle)
    assert match is not None
    return match.group(0)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """TestClient without lifespan; tests override the manager dependency."""
    from app.main import app

    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
