"""
Configuration management using pydantic-settings.

Hierarchical configuration with environment variable support. Settings are
frozen once loaded and passed explicitly to the components that need them.

Scaler and Mattermost settings also accept the variable names of existing
deployments (``QueueURL``, ``MattermostAlertsHook``, ...).
"""

from typing import Literal

from pydantic import AliasChoices, Field, HttpUrl, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.scaling.errors import ConfigurationError


class ScalerSettings(BaseSettings):
    """Vertical scaling settings. Every field is required."""

    model_config = SettingsConfigDict(env_prefix="SCALER_", frozen=True, populate_by_name=True)

    instance_name_prefix: str = Field(
        min_length=1,
        validation_alias=AliasChoices(
            "SCALER_INSTANCE_NAME_PREFIX", "RDSMultitenantDBInstanceNamePrefix"
        ),
        description="Name prefix shared by the multitenant DB instances of a cluster",
    )
    environment: str = Field(
        min_length=1,
        validation_alias=AliasChoices("SCALER_ENVIRONMENT", "Environment"),
        description="Deployment environment tag",
    )
    queue_url: str = Field(
        min_length=1,
        validation_alias=AliasChoices("SCALER_QUEUE_URL", "QueueURL"),
        description="SQS queue holding alarm triggers",
    )

    # Ratios used to recompute the alarm thresholds
    memory_cache_proportion: float = Field(
        gt=0,
        validation_alias=AliasChoices("SCALER_MEMORY_CACHE_PROPORTION", "MemoryCacheProportion"),
    )
    connections_safety_percentage: float = Field(
        gt=0,
        validation_alias=AliasChoices(
            "SCALER_CONNECTIONS_SAFETY_PERCENTAGE", "ConnectionsSafetyPercentage"
        ),
    )
    memory_connections_divider: float = Field(
        gt=0,
        validation_alias=AliasChoices("SCALER_MEMORY_CONNECTIONS_DIVIDER", "MemoryConnectionsDivider"),
    )


class NotificationSettings(BaseSettings):
    """Mattermost webhook settings."""

    model_config = SettingsConfigDict(env_prefix="MATTERMOST_", frozen=True, populate_by_name=True)

    notifications_hook: HttpUrl = Field(
        validation_alias=AliasChoices("MATTERMOST_NOTIFICATIONS_HOOK", "MattermostNotificationsHook"),
        description="Webhook for success messages",
    )
    alerts_hook: HttpUrl = Field(
        validation_alias=AliasChoices("MATTERMOST_ALERTS_HOOK", "MattermostAlertsHook"),
        description="Webhook for error messages",
    )
    username: str = Field(default="Database Factory")
    icon_url: str | None = Field(default=None)
    timeout_seconds: float = Field(default=10.0, gt=0)


class WaiterSettings(BaseSettings):
    """Bounds for the instance status polling phases."""

    model_config = SettingsConfigDict(env_prefix="WAITER_", frozen=True)

    start_timeout_seconds: float = Field(default=300.0, gt=0)
    start_poll_interval_seconds: float = Field(default=15.0, ge=0)
    available_timeout_seconds: float = Field(default=1000.0, gt=0)
    available_poll_interval_seconds: float = Field(default=5.0, ge=0)


class AWSSettings(BaseSettings):
    """AWS connection settings (optional)."""

    model_config = SettingsConfigDict(env_prefix="AWS_", frozen=True)

    region: str = Field(default="us-east-1")
    profile: str | None = Field(default=None)
    access_key_id: str | None = Field(default=None)
    secret_access_key: str | None = Field(default=None)
    session_token: str | None = Field(default=None)


class AppSettings(BaseSettings):
    """Application-level settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    env: Literal["development", "staging", "production"] = Field(default="production")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")

    # Nested settings
    scaler: ScalerSettings = Field(default_factory=ScalerSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    waiter: WaiterSettings = Field(default_factory=WaiterSettings)
    aws: AWSSettings = Field(default_factory=AWSSettings)


def describe_validation_error(error: ValidationError) -> str:
    """Flatten a pydantic validation error into one readable line."""
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or error.title
        problems.append(f"{location}: {item['msg']}")
    return f"{error.title} settings invalid ({'; '.join(problems)})"


def load_settings() -> AppSettings:
    """
    Build application settings from the environment.

    Raises:
        ConfigurationError: if a required setting is missing or malformed
    """
    try:
        return AppSettings()
    except ValidationError as e:
        raise ConfigurationError(describe_validation_error(e)) from e

