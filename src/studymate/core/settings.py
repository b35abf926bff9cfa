"""Application settings and configuration.

This module defines all configuration options for the Studymate service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Studymate", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Security and authentication
    secret_key: str = Field(default="change-me-in-production", alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Database configuration
    database_url: str = Field(default="sqlite:///./studymate.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis is only needed when the sweep lock is enabled
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")

    # Background lifecycle sweep
    lifecycle_sweep_enabled: bool = Field(default=True, alias="LIFECYCLE_SWEEP_ENABLED")
    lifecycle_sweep_interval_seconds: float = Field(
        default=60.0,
        alias="LIFECYCLE_SWEEP_INTERVAL_SECONDS",
    )
    lifecycle_sweep_lock_enabled: bool = Field(
        default=False,
        alias="LIFECYCLE_SWEEP_LOCK_ENABLED",
    )
    lifecycle_sweep_lock_ttl_seconds: int = Field(
        default=300,
        alias="LIFECYCLE_SWEEP_LOCK_TTL_SECONDS",
    )

    # Messaging limits
    message_max_length: int = Field(default=2000, alias="MESSAGE_MAX_LENGTH")
    message_page_default: int = Field(default=30, alias="MESSAGE_PAGE_DEFAULT")
    message_page_max: int = Field(default=50, alias="MESSAGE_PAGE_MAX")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()
