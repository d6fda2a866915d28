"""Configuration management for the sqsd-gate worker.

This module provides centralized configuration using Pydantic Settings.
All configuration is loaded from environment variables with the SQSD_GATE_
prefix. Nested settings use double underscore as delimiter
(e.g., SQSD_GATE_CONSUMER__PERIODIC_TASK_PATH).

Two values are also accepted under the bare names used by existing
deployments of the web/worker environment pair:

    DISABLE_SQS_CONSUMER   turns off all daemon handling unless unset or "false"
    SECRET_KEY_BASE        shared signing secret for job digests

Example:
    export SQSD_GATE_ENVIRONMENT=production
    export SECRET_KEY_BASE=...
"""

from __future__ import annotations

import logging
from enum import Enum
from functools import cached_property
from typing import Annotated, Any, Self

from pydantic import AliasChoices, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Digest algorithms accepted for job message signing
ALLOWED_DIGEST_ALGORITHMS = frozenset({"sha256", "sha384", "sha512"})


class Environment(str, Enum):
    """Deployment environment.

    Affects default behaviors and validation strictness.
    """

    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class ConsumerSettings(BaseSettings):
    """Settings for recognizing and authenticating SQS daemon requests.

    The defaults match the Elastic Beanstalk worker tier daemon (aws-sqsd)
    and the default Docker bridge network.
    """

    model_config = SettingsConfigDict(
        env_prefix="SQSD_GATE_CONSUMER__",
        extra="ignore",
    )

    user_agent_prefix: str = Field(
        default="aws-sqsd",
        min_length=1,
        description="User-Agent prefix identifying the SQS daemon (case-sensitive)",
    )
    periodic_task_path: str = Field(
        default="/periodic_tasks",
        min_length=1,
        description="Path prefix reserved for periodic task triggers",
    )
    origin_token: str = Field(
        default="sqsd-gate",
        min_length=1,
        description="Value of the origin message attribute set by our producers",
    )
    docker_host_ip: str = Field(
        default="172.17.0.1",
        description="Host bridge address trusted when running inside a container",
    )
    cgroup_path: str = Field(
        default="/proc/1/cgroup",
        description="Control-group descriptor of the init process, probed once at startup",
    )
    container_marker: str = Field(
        default="docker",
        min_length=1,
        description="Substring of the cgroup descriptor that marks a container",
    )
    digest_algorithm: str = Field(
        default="sha256",
        description="Hash algorithm for the HMAC message digest",
    )

    @field_validator("digest_algorithm")
    @classmethod
    def validate_digest_algorithm(cls, v: str) -> str:
        """Ensure the digest algorithm is acceptable."""
        if v.lower() not in ALLOWED_DIGEST_ALGORITHMS:
            msg = f"Digest algorithm must be one of: {', '.join(sorted(ALLOWED_DIGEST_ALGORITHMS))}"
            raise ValueError(msg)
        return v.lower()

    @field_validator("periodic_task_path")
    @classmethod
    def validate_periodic_task_path(cls, v: str) -> str:
        """Periodic task path must be absolute."""
        if not v.startswith("/"):
            msg = "Periodic task path must start with '/'"
            raise ValueError(msg)
        return v


class Settings(BaseSettings):
    """Main sqsd-gate configuration container.

    Loads all configuration from environment variables with SQSD_GATE_ prefix.
    Nested settings use double underscore delimiter.

    Example environment variables:
        SQSD_GATE_ENVIRONMENT=production
        SQSD_GATE_LOG_LEVEL=DEBUG
        SQSD_GATE_CONSUMER__DOCKER_HOST_IP=172.18.0.1
        SECRET_KEY_BASE=...
    """

    model_config = SettingsConfigDict(
        env_prefix="SQSD_GATE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
        validate_default=True,
    )

    # Core settings
    environment: Environment = Field(
        default=Environment.DEV,
        description="Deployment environment (dev, staging, production)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode (never in production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # Daemon handling
    disable_sqs_consumer: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "disable_sqs_consumer",
            "SQSD_GATE_DISABLE_SQS_CONSUMER",
            "DISABLE_SQS_CONSUMER",
        ),
        description='Disables daemon handling unless unset or exactly "false"',
    )
    secret_key_base: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "secret_key_base",
            "SQSD_GATE_SECRET_KEY_BASE",
            "SECRET_KEY_BASE",
        ),
        description="Shared secret used by producers and this worker to sign job messages",
    )
    consumer: ConsumerSettings = Field(default_factory=ConsumerSettings)
    jobs_registry: str | None = Field(
        default=None,
        description='Import path ("module:attribute") of the JobRegistry served by the app',
    )
    periodic_tasks_registry: str | None = Field(
        default=None,
        description='Import path ("module:attribute") of the PeriodicTaskRegistry',
    )

    # API settings
    api_host: str = Field(
        default="127.0.0.1",
        description="API server bind address",
    )
    api_port: Annotated[int, Field(ge=1, le=65535)] = Field(
        default=8000,
        description="API server port",
    )

    # Application metadata
    app_name: str = Field(
        default="sqsd-gate",
        description="Application name for logging",
    )
    app_version: str = Field(
        default="0.1.0",
        description="Application version",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            msg = f"Unknown log level: {v}"
            raise ValueError(msg)
        return level

    @model_validator(mode="after")
    def validate_production_constraints(self) -> Self:
        """Enforce production environment constraints."""
        if self.environment == Environment.PRODUCTION:
            if self.debug:
                msg = "Debug mode is not allowed in production environment"
                raise ValueError(msg)
            if not self.consumer_enabled:
                logger.warning(
                    "SQS daemon handling is disabled in production "
                    "(DISABLE_SQS_CONSUMER=%s). Daemon requests reach the application unchecked.",
                    self.disable_sqs_consumer,
                )
        return self

    @cached_property
    def consumer_enabled(self) -> bool:
        """Check whether daemon requests get intercepted.

        Only an unset value or the literal string "false" leaves handling on.
        """
        return self.disable_sqs_consumer is None or self.disable_sqs_consumer == "false"

    @cached_property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    def get_secret(self) -> str | None:
        """Return the plain shared secret, or None when not configured."""
        if self.secret_key_base is None:
            return None
        return self.secret_key_base.get_secret_value() or None

    def get_policy_snapshot(self) -> dict[str, Any]:
        """Generate a snapshot of the non-sensitive configuration.

        The shared secret is reduced to a presence flag.

        Returns:
            Dictionary suitable for logging.
        """
        return {
            "environment": self.environment.value,
            "consumer_enabled": self.consumer_enabled,
            "secret_configured": self.get_secret() is not None,
            "consumer": {
                "user_agent_prefix": self.consumer.user_agent_prefix,
                "periodic_task_path": self.consumer.periodic_task_path,
                "origin_token": self.consumer.origin_token,
                "docker_host_ip": self.consumer.docker_host_ip,
                "digest_algorithm": self.consumer.digest_algorithm,
            },
            "api": {
                "host": self.api_host,
                "port": self.api_port,
            },
            "app_version": self.app_version,
        }


class ConfigValidationError(Exception):
    """Raised when configuration validation fails.

    This exception should cause fast failure at startup to prevent
    running with invalid configuration.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with error details.

        Args:
            message: Human-readable error description.
            field: Optional field name that failed validation.
        """
        self.message = message
        self.field = field
        super().__init__(message)


def validate_settings(settings: Settings) -> None:
    """Perform additional runtime validation of settings.

    Args:
        settings: Settings instance to validate.

    Raises:
        ConfigValidationError: If validation fails.
    """
    if settings.consumer_enabled and settings.get_secret() is None:
        raise ConfigValidationError(
            "Shared secret is required while SQS daemon handling is enabled. "
            "Set SECRET_KEY_BASE or DISABLE_SQS_CONSUMER=true.",
            field="secret_key_base",
        )

    logger.info(
        "Configuration validated: environment=%s, consumer_enabled=%s",
        settings.environment.value,
        settings.consumer_enabled,
    )
