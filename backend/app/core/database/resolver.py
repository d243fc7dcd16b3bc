"""
Configuration resolver: environment name + settings -> ConnectionDescriptor.

Each supported environment is a profile carrying its own defaults (port, pool
bounds) and its own way of locating TLS trust material. No network I/O here.
"""

import logging
from dataclasses import dataclass

from pydantic import ValidationError

from app.core.config import Settings, settings

from .descriptor import ConnectionDescriptor, Environment
from .errors import ConfigurationError, TLSMaterialError
from .tls import decode_base64_pem, read_ca_file

_log = logging.getLogger(__name__)

# MySQL server default port, used for local development servers.
DEVELOPMENT_DEFAULT_PORT = 3306
# TiDB Cloud only listens on 4000.
PRODUCTION_DEFAULT_PORT = 4000

DEFAULT_ENVIRONMENT = Environment.PRODUCTION


@dataclass(frozen=True)
class TLSMaterial:
    ca_bundle: str | None
    ca_source: str | None
    tls_enabled: bool


@dataclass(frozen=True)
class EnvironmentProfile:
    """Per-environment defaults. Subclasses supply the TLS strategy."""

    environment: Environment
    default_port: int
    pool_min: int
    pool_max: int
    password_required: bool

    def resolve_tls(self, config: Settings) -> TLSMaterial:
        raise NotImplementedError


@dataclass(frozen=True)
class DevelopmentProfile(EnvironmentProfile):
    """Local development: CA from a file path; no CA means TLS off."""

    environment: Environment = Environment.DEVELOPMENT
    default_port: int = DEVELOPMENT_DEFAULT_PORT
    pool_min: int = 2
    pool_max: int = 10
    password_required: bool = False

    def resolve_tls(self, config: Settings) -> TLSMaterial:
        if config.DB_SSL_CA_BASE64:
            _log.warning("DB_SSL_CA_BASE64 is ignored in development; use DB_SSL_CA")
        if not config.DB_SSL_CA:
            _log.info("DB_SSL_CA not set; TLS disabled for local development")
            return TLSMaterial(ca_bundle=None, ca_source=None, tls_enabled=False)
        try:
            bundle = read_ca_file(config.DB_SSL_CA)
        except TLSMaterialError as e:
            _log.warning("Ignoring DB_SSL_CA, TLS disabled: %s", e)
            return TLSMaterial(ca_bundle=None, ca_source=None, tls_enabled=False)
        _log.info("TLS CA certificate loaded from file %s", config.DB_SSL_CA)
        return TLSMaterial(ca_bundle=bundle, ca_source="DB_SSL_CA", tls_enabled=True)


@dataclass(frozen=True)
class ProductionProfile(EnvironmentProfile):
    """Hosted production: CA from a base64 variable; TLS always on."""

    environment: Environment = Environment.PRODUCTION
    default_port: int = PRODUCTION_DEFAULT_PORT
    pool_min: int = 0
    pool_max: int = 5
    password_required: bool = True

    def resolve_tls(self, config: Settings) -> TLSMaterial:
        if config.DB_SSL_CA_BASE64:
            # Malformed material is fatal here: never connect with a corrupt bundle.
            bundle = decode_base64_pem(config.DB_SSL_CA_BASE64)
            _log.info("TLS CA certificate loaded from DB_SSL_CA_BASE64")
            return TLSMaterial(
                ca_bundle=bundle, ca_source="DB_SSL_CA_BASE64", tls_enabled=True
            )
        if parse_flag("DB_SSL_REQUIRE_CA", config.DB_SSL_REQUIRE_CA):
            raise TLSMaterialError(
                "DB_SSL_CA_BASE64 is not set and DB_SSL_REQUIRE_CA is enabled"
            )
        _log.warning(
            "DB_SSL_CA_BASE64 is not set; connecting with the system trust store only"
        )
        return TLSMaterial(ca_bundle=None, ca_source=None, tls_enabled=True)


PROFILES: dict[Environment, EnvironmentProfile] = {
    Environment.DEVELOPMENT: DevelopmentProfile(),
    Environment.PRODUCTION: ProductionProfile(),
}


def parse_environment(name: str | None) -> Environment:
    """Map an environment name to a supported Environment (unset -> production)."""
    if name is None or not name.strip():
        _log.warning(
            "ENVIRONMENT is not set; defaulting to %s", DEFAULT_ENVIRONMENT.value
        )
        return DEFAULT_ENVIRONMENT
    try:
        return Environment(name.strip().lower())
    except ValueError:
        supported = ", ".join(e.value for e in Environment)
        raise ConfigurationError(
            f"Unsupported environment {name!r} (expected one of: {supported})"
        ) from None


def resolve_port(raw: str | None, default: int) -> int:
    """Coerce DB_PORT to a positive int, falling back to *default*."""
    if raw is None:
        return default
    try:
        port = int(raw.strip())
    except ValueError:
        _log.warning("DB_PORT=%r is not numeric; using default port %s", raw, default)
        return default
    if port <= 0:
        _log.warning("DB_PORT=%r is not positive; using default port %s", raw, default)
        return default
    return port


_TRUE_FLAGS = ("1", "true", "yes", "on")
_FALSE_FLAGS = ("0", "false", "no", "off")


def parse_flag(name: str, raw: str | None, default: bool = False) -> bool:
    """Coerce a boolean setting; unknown spellings raise ConfigurationError."""
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_FLAGS:
        return True
    if value in _FALSE_FLAGS:
        return False
    raise ConfigurationError(f"{name}={raw!r} is not a boolean")


def parse_int(name: str, raw: str | None, default: int) -> int:
    """Coerce an integer setting; non-numeric values raise ConfigurationError."""
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name}={raw!r} is not an integer") from None


def parse_seconds(name: str, raw: str | None, default: float | None) -> float | None:
    """Coerce a duration in seconds; non-numeric values raise ConfigurationError."""
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name}={raw!r} is not a number of seconds") from None


def _missing_fields(profile: EnvironmentProfile, config: Settings) -> list[str]:
    required = ["DB_HOST", "DB_USER", "DB_NAME"]
    if profile.password_required:
        required.insert(2, "DB_PASSWORD")
    return [name for name in required if not getattr(config, name)]


def resolve(
    environment_name: str | None = None, *, config: Settings | None = None
) -> ConnectionDescriptor:
    """
    Build the connection descriptor for *environment_name*.

    - environment_name: "development" or "production"; None uses the configured
      ENVIRONMENT (itself defaulting to production).
    - Raises ConfigurationError for unknown environments, missing required
      fields, or invalid pool bounds; TLSMaterialError for a corrupt production CA.
    """
    config = config or settings
    name = environment_name if environment_name is not None else config.ENVIRONMENT
    environment = parse_environment(name)
    profile = PROFILES[environment]

    missing = _missing_fields(profile, config)
    if missing:
        raise ConfigurationError(
            f"Missing required database settings for {environment.value}: "
            + ", ".join(missing)
        )

    tls = profile.resolve_tls(config)
    pool_min = parse_int("DB_POOL_MIN", config.DB_POOL_MIN, profile.pool_min)
    pool_max = parse_int("DB_POOL_MAX", config.DB_POOL_MAX, profile.pool_max)

    try:
        descriptor = ConnectionDescriptor(
            environment=environment,
            host=config.DB_HOST,
            port=resolve_port(config.DB_PORT, profile.default_port),
            user=config.DB_USER,
            password=config.DB_PASSWORD or "",
            database=config.DB_NAME,
            pool_min=pool_min,
            pool_max=pool_max,
            ca_bundle=tls.ca_bundle,
            ca_source=tls.ca_source,
            tls_enabled=tls.tls_enabled,
            connect_timeout=parse_seconds(
                "DB_CONNECT_TIMEOUT", config.DB_CONNECT_TIMEOUT, 10.0
            ),
            read_timeout=parse_seconds("DB_READ_TIMEOUT", config.DB_READ_TIMEOUT, 30.0),
            acquire_timeout=parse_seconds(
                "DB_POOL_ACQUIRE_TIMEOUT", config.DB_POOL_ACQUIRE_TIMEOUT, 10.0
            ),
            max_age=parse_seconds("DB_POOL_MAX_AGE_SEC", config.DB_POOL_MAX_AGE_SEC, 600.0),
            statement_timeout=parse_seconds(
                "DB_STATEMENT_TIMEOUT", config.DB_STATEMENT_TIMEOUT, None
            ),
            health_timeout=parse_seconds(
                "DB_HEALTH_TIMEOUT", config.DB_HEALTH_TIMEOUT, 5.0
            ),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid database settings: {e}") from e

    _log.debug("Resolved database descriptor: %s", descriptor.safe_summary())
    return descriptor
