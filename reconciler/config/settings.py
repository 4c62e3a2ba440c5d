"""
Catalog Reconciliation Platform
Centralized Configuration Management

Configuration is loaded with Pydantic settings from environment variables
(and an optional .env file), one section per concern.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Reconciliation engine tuning"""

    model_config = SettingsConfigDict(env_prefix="ENGINE_")

    composition_category: str = Field(default="COMPOSITION", description="Category forced on new composites")
    default_category: str = Field(default="UNCLASSIFIED", description="Category for products without one")
    schema_version: str = Field(default="1.0", description="Unified catalog document version")
    amount_tolerance: float = Field(default=0.01, description="Allowed gap between amount and quantity x price")
    min_token_length: int = Field(default=3, description="Shortest token used for token-overlap matching")
    min_shared_tokens: int = Field(default=2, description="Tokens a candidate must share with the query")
    no_order_key: str = Field(default="__no_order__", description="Grouping key for lines without order reference")


class IngestionSettings(BaseSettings):
    """Tabular input normalization"""

    model_config = SettingsConfigDict(env_prefix="INGEST_")

    amounts_in_cents: bool = Field(default=False, description="Monetary columns are expressed in cents")
    date_formats: List[str] = Field(
        default=["%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%d/%m/%Y %H:%M:%S", "%d/%m/%Y %H:%M"],
        description="Datetime formats tried in order",
    )
    day_formats: List[str] = Field(
        default=["%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y"],
        description="Date-only formats tried after datetime formats",
    )
    service_keywords: List[str] = Field(
        default=["frais de port", "livraison", "transport", "service"],
        description="Product name fragments identifying service lines",
    )
    service_id_prefix: str = Field(default="SERVICE_", description="Prefix for ids synthesized for service lines")
    keep_unidentified: bool = Field(
        default=False,
        description="Keep sale rows without an id under a synthetic id instead of dropping them",
    )
    unidentified_id_prefix: str = Field(default="SANS_ID_", description="Prefix for ids synthesized for id-less rows")


class ReportingSettings(BaseSettings):
    """Sales statistics and import merging"""

    model_config = SettingsConfigDict(env_prefix="REPORT_")

    top_products: int = Field(default=10, gt=0, description="Length of the best sellers ranking")
    service_category: str = Field(default="SERVICES ET FRAIS", description="Category of service lines")
    unidentified_category: str = Field(default="À classer", description="Category of lines without a product id")


class StoreSettings(BaseSettings):
    """Unified catalog persistence"""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    backend: str = Field(default="file", description="memory, file or redis")
    path: str = Field(default="./data/unified-catalog.json", description="File backend location")
    key: str = Field(default="reconciler:unified-catalog", description="Redis backend key")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate backend name"""
        allowed = ["memory", "file", "redis"]
        if v.lower() not in allowed:
            raise ValueError(f"Store backend must be one of: {allowed}")
        return v.lower()


class RedisSettings(BaseSettings):
    """Redis Configuration"""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: Optional[SecretStr] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")
    url: Optional[str] = Field(default=None, description="Redis URL (overrides host/port)")

    def get_url(self) -> str:
        """Redis connection URL - uses REDIS_URL if set, otherwise builds from host/port"""
        if self.url:
            return self.url
        if self.password:
            return f"redis://:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")


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
    app_name: str = Field(default="catalog-reconciler", description="Application name")
    app_env: str = Field(default="development", description="Environment")
    debug: bool = Field(default=False, description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")

    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    engine: EngineSettings = Field(default_factory=EngineSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    reporting: ReportingSettings = Field(default_factory=ReportingSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
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
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
