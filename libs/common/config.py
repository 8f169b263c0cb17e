"""Configuration management for the model promotion tooling.

This module centralizes environment-driven configuration for every pipeline
stage (copy, backup, validation, environment tests, registry). It builds on
``pydantic_settings.BaseSettings`` so configuration can be provided via
environment variables, ``.env`` files, or defaults.

Highlights
- Strongly‑typed settings with sensible defaults
- One place to discover commonly used environment variables
- Settings are frozen: build one instance at startup and pass it down

Usage
- ``config = PromotionConfig()`` in a script entrypoint
- ``config.poll_settings()`` for the long-running-operation poller
"""

from typing import Any, Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class for all pipeline stages.

    Parameters are read from the process environment using the upper-cased
    field name (``ml_log_level`` -> ``ML_LOG_LEVEL``).

    Notes
    - Add new shared settings here so stage-specific configs inherit them.
    - Instances are immutable; use ``model_copy(update=...)`` for overrides.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Environment
    ml_env: str = Field(default="dev", description="Deployment tier: dev, qa or prod")

    # Logging
    ml_log_level: str = Field(default="INFO")
    ml_log_format: str = Field(default="console")

    # Notifications
    ml_redis_url: Optional[str] = Field(default=None, description="Enables event publishing when set")

    # Observability
    ml_metrics_textfile: Optional[str] = Field(default=None, description="Prometheus textfile output path")


class PromotionConfig(BaseConfig):
    """Configuration for talking to Document Intelligence services.

    Extends ``BaseConfig`` with REST, Azure CLI and polling knobs, plus the
    file locations used for backups, registry and reports.
    """

    # REST surface
    ml_docintel_api_version: str = Field(default="2024-11-30")
    ml_request_timeout_seconds: float = Field(default=30.0)

    # Long-running operation polling
    ml_poll_max_attempts: int = Field(default=30, ge=1)
    ml_poll_initial_delay_seconds: float = Field(default=10.0, ge=0)
    ml_poll_backoff_base: float = Field(default=2.0, ge=1)
    ml_poll_max_delay_seconds: float = Field(default=60.0, ge=0)

    # Validation
    ml_accuracy_threshold: float = Field(default=0.85, ge=0, le=1)

    # File-based state
    ml_models_dir: str = Field(default="./models")
    ml_backup_root: str = Field(default="./backups")
    ml_registry_dir: str = Field(default="./registry")
    ml_report_dir: str = Field(default="./test-results")

    # Azure CLI
    ml_az_cli_path: str = Field(default="az")
    ml_az_cli_timeout_seconds: float = Field(default=120.0)

    def poll_settings(self) -> Dict[str, Any]:
        """Keyword arguments for ``PollConfig``."""
        return {
            "max_attempts": self.ml_poll_max_attempts,
            "initial_delay": self.ml_poll_initial_delay_seconds,
            "backoff_base": self.ml_poll_backoff_base,
            "max_delay": self.ml_poll_max_delay_seconds,
        }
