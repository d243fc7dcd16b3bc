"""
Connection descriptor: everything needed to open a connection to the database.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator


class Environment(str, Enum):
    """Supported deployment environments."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConnectionDescriptor(BaseModel):
    """Resolved connection parameters, including TLS trust material.

    Built once per process by the resolver and never mutated afterwards.
    """

    model_config = ConfigDict(frozen=True)

    environment: Environment
    host: str
    port: int = Field(gt=0)
    user: str
    password: SecretStr = SecretStr("")
    database: str
    pool_min: int = Field(ge=0)
    pool_max: int = Field(ge=1)
    # PEM text of the CA bundle; None when no trust material was configured.
    ca_bundle: str | None = Field(default=None, repr=False)
    # Where the bundle came from ("DB_SSL_CA", "DB_SSL_CA_BASE64"), for logging.
    ca_source: str | None = None
    tls_enabled: bool = False
    connect_timeout: float = Field(default=10.0, gt=0)
    read_timeout: float = Field(default=30.0, gt=0)
    acquire_timeout: float = Field(default=10.0, gt=0)
    max_age: float = Field(default=600.0, gt=0)
    # MySQL max_execution_time in seconds; None = no limit.
    statement_timeout: float | None = Field(default=None, gt=0)
    health_timeout: float = Field(default=5.0, gt=0)

    @model_validator(mode="after")
    def _check_pool_bounds(self) -> "ConnectionDescriptor":
        if self.pool_max < self.pool_min:
            raise ValueError(
                f"pool_max ({self.pool_max}) must be >= pool_min ({self.pool_min})"
            )
        if self.ca_bundle is not None and not self.tls_enabled:
            raise ValueError("ca_bundle requires tls_enabled")
        return self

    def safe_summary(self) -> dict[str, object]:
        """Loggable view without credentials or certificate text."""
        return {
            "environment": self.environment.value,
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "database": self.database,
            "pool": f"{self.pool_min}-{self.pool_max}",
            "tls": self.tls_enabled,
            "ca_source": self.ca_source,
        }
