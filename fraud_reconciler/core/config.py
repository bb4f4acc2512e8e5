"""Configuration management for the fraud ticket reconciliation job.

Configuration is loaded from environment variables; secrets are expected
to be injected by the deployment environment.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from bson import ObjectId
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Well-known identifier of the automated processor actor
SYSTEM_ACTOR_ID = "67196460d327c12bfe9233a4"
PROCESSOR_SENTINEL = "ticketProcessor"


class AppEnvironment(str, Enum):
    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AppConfig(BaseSettings):
    name: str = Field(default="fraud-ticket-reconciler")
    env: AppEnvironment = Field(default=AppEnvironment.LOCAL)
    version: str = Field(default="0.1.0")
    log_level: LogLevel = Field(default=LogLevel.INFO)

    model_config = SettingsConfigDict(env_prefix="APP_")

    @field_validator("env", mode="before")
    @classmethod
    def validate_env(cls, v: str | AppEnvironment) -> AppEnvironment:
        if isinstance(v, AppEnvironment):
            return v
        return AppEnvironment(v)

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        if isinstance(v, LogLevel):
            return v
        return LogLevel(v.upper())


class MongoConfig(BaseSettings):
    url: str = Field(default="mongodb://localhost:27017")
    database: str = Field(default="fraud")
    ticket_collection: str = Field(default="ticketFraud")
    history_collection: str = Field(default="fraudHistory")
    server_selection_timeout_ms: int = Field(default=5000)

    model_config = SettingsConfigDict(env_prefix="MONGO_")


class KafkaConfig(BaseSettings):
    bootstrap_servers: str = Field(default="localhost:9092")
    topic_notifications: str = Field(default="fraud.ticket.approvals.v1")
    client_id: str = Field(default="fraud-ticket-reconciler")
    max_attempts: int = Field(default=5, ge=1)
    retry_backoff_ms: int = Field(default=500, ge=0)
    request_timeout_ms: int = Field(default=30000)
    security_protocol: str = Field(default="PLAINTEXT")
    sasl_mechanism: str | None = Field(default=None)
    sasl_username: str = Field(default="")
    sasl_password: SecretStr = Field(default=SecretStr(""))

    model_config = SettingsConfigDict(env_prefix="KAFKA_")


class ReconciliationConfig(BaseSettings):
    group_size: int = Field(default=100)
    action: str = Field(default="fraud.ticket.reconciled")
    cards_file: str = Field(default="cards.json")
    system_actor_id: str = Field(default=SYSTEM_ACTOR_ID)
    processor_sentinel: str = Field(default=PROCESSOR_SENTINEL)

    model_config = SettingsConfigDict(env_prefix="RECONCILIATION_")

    @field_validator("group_size", mode="after")
    @classmethod
    def validate_group_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"group_size must be positive, got {v}")
        return v

    @field_validator("system_actor_id", mode="after")
    @classmethod
    def validate_system_actor_id(cls, v: str) -> str:
        if not ObjectId.is_valid(v):
            raise ValueError(f"system_actor_id must be a 24-character hex ObjectId, got {v!r}")
        return v


class ObservabilityConfig(BaseSettings):
    log_record_format: str = Field(default="json")

    model_config = SettingsConfigDict(env_prefix="OBSERVABILITY_")


class Settings(BaseSettings):
    app: AppConfig = Field(default_factory=AppConfig)
    mongo: MongoConfig = Field(default_factory=MongoConfig)
    kafka: KafkaConfig = Field(default_factory=KafkaConfig)
    reconciliation: ReconciliationConfig = Field(default_factory=ReconciliationConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Reload settings (useful for testing)."""
    get_settings.cache_clear()
    return get_settings()
