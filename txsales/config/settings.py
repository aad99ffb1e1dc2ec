"""
Texas Mixed-Beverage Sales Map
Centralized Configuration Management

Configuration for the ingestion pipeline and serving API using Pydantic
settings with environment variable support, validation, and type safety.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="texas_sales", alias="database", description="Database name")
    user: str = Field(default="txsales", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    pool_size: int = Field(default=10, description="Connection pool size")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, alias="DATABASE_URL", description="Full async URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL, DATABASE_URL wins when set"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class UpstreamSettings(BaseSettings):
    """Texas Open Data (Socrata) API Configuration"""

    model_config = SettingsConfigDict(env_prefix="TEXAS_API_")

    base_url: str = Field(
        default="https://data.texas.gov/resource/naix-2893.json",
        description="Mixed beverage gross receipts dataset endpoint",
    )
    app_token: Optional[SecretStr] = Field(default=None, description="Socrata application token")
    page_size: int = Field(default=10000, ge=1, description="Rows requested per page")
    timeout_seconds: float = Field(default=60.0, description="HTTP timeout per request")
    max_retries: int = Field(default=3, ge=1, description="Attempts for transport-level errors")


class CacheSettings(BaseSettings):
    """In-process query cache configuration"""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    ttl_seconds: int = Field(default=3600, ge=1, description="Location query cache TTL")


class ImportSettings(BaseSettings):
    """Ingestion and scheduling configuration"""

    model_config = SettingsConfigDict(env_prefix="IMPORT_")

    batch_size: int = Field(default=1000, ge=1, description="Rows per insert transaction")
    scheduler_enabled: bool = Field(default=True, description="Run the hourly refresh inside the API process")
    refresh_on_startup: bool = Field(default=True, description="Run one import when the process starts")
    timezone: str = Field(default="America/Chicago", description="Timezone for the hourly schedule")
    search_limit: int = Field(default=50, ge=1, description="Max results for name search")


class SecuritySettings(BaseSettings):
    """CORS Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    cors_origins: List[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or console")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="texas-sales-map", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=5000, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    upstream: UpstreamSettings = Field(default_factory=UpstreamSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    importer: ImportSettings = Field(default_factory=ImportSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
