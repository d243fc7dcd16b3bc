from typing import Annotated, Any

from pydantic import AliasChoices, AnyUrl, BeforeValidator, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _raw_value(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, (int, float)):
        return str(v)
    return v


OptionalStr = Annotated[str | None, BeforeValidator(_raw_value)]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Use top level .env file (one level above ./backend/)
        env_file="../.env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "OMNISERVES EXPERT API"
    SERVICE_VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"
    SENTRY_DSN: AnyUrl | None = None

    # Environment name ("development" / "production"). Kept as a raw string so
    # the resolver can reject unknown names and log the production default.
    ENVIRONMENT: OptionalStr = Field(
        default=None,
        validation_alias=AliasChoices("ENVIRONMENT", "NODE_ENV"),
    )

    DB_HOST: OptionalStr = None
    # Raw value; numeric coercion and per-environment defaults live in the resolver.
    DB_PORT: OptionalStr = None
    DB_USER: OptionalStr = None
    DB_PASSWORD: OptionalStr = None
    DB_NAME: OptionalStr = None
    DB_TYPE_LABEL: str = "TiDB Cloud"

    DB_SSL_CA: OptionalStr = None
    DB_SSL_CA_BASE64: OptionalStr = None
    # Connection parameters stay raw strings; the resolver coerces them and
    # reports bad values as ConfigurationError.

    # Fail-closed policy: refuse to start in production without a CA bundle.
    DB_SSL_REQUIRE_CA: OptionalStr = None

    DB_POOL_MIN: OptionalStr = None
    DB_POOL_MAX: OptionalStr = None
    DB_POOL_ACQUIRE_TIMEOUT: OptionalStr = None
    DB_POOL_MAX_AGE_SEC: OptionalStr = None

    DB_CONNECT_TIMEOUT: OptionalStr = None
    DB_READ_TIMEOUT: OptionalStr = None
    # Per-statement limit in seconds (MySQL max_execution_time); unset = no limit.
    DB_STATEMENT_TIMEOUT: OptionalStr = None

    DB_HEALTH_TIMEOUT: OptionalStr = None

    # Boolean flag, default true; coerced at startup.
    DB_CHECK_ON_STARTUP: OptionalStr = None

    @property
    def environment_label(self) -> str:
        """Environment name for display (never empty)."""
        return (self.ENVIRONMENT or "production").strip().lower()

    @property
    def is_production(self) -> bool:
        return self.environment_label == "production"


settings = Settings()  # type: ignore
