"""Common utilities shared across pipeline stages.

Includes:
- ``config``: Pydantic-based configuration from environment variables.
- ``logging``: structured logging setup with structlog.
- ``metrics``: Prometheus metrics helpers.
- ``events``: Redis pub/sub deployment notifications.

Import pattern:
- from libs.common.config import PromotionConfig
- from libs.common.logging import configure_logging
"""
