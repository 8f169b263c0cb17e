#!/usr/bin/env python3
"""Record a model deployment in the file-based registry."""

import argparse
import os
import sys
from typing import Optional

import structlog

from libs.common.config import PromotionConfig
from libs.common.events import EventPublisher, create_event_publisher
from libs.common.logging import configure_logging
from libs.docintel.registry import DeploymentRegistry, RegistryEntry

logger = structlog.get_logger("update_registry")


def update_registry(
    entry: RegistryEntry,
    config: Optional[PromotionConfig] = None,
    publisher: Optional[EventPublisher] = None
) -> RegistryEntry:
    """Upsert ``entry`` and announce it when notifications are configured."""
    if not config:
        config = PromotionConfig()

    DeploymentRegistry(config.ml_registry_dir).upsert(entry)

    if publisher is None and config.ml_redis_url:
        publisher = create_event_publisher(config.ml_redis_url)
    if publisher is not None:
        publisher.publish_deployment_recorded(
            model_name=entry.model_name,
            version=entry.version,
            environment=entry.environment,
            status=entry.status,
            build_id=entry.build_id,
        )
    return entry


def main():
    """Main function for CLI.

    Build metadata defaults to the Azure Pipelines predefined variables.
    """
    parser = argparse.ArgumentParser(description="Update the model deployment registry")
    parser.add_argument("--model-name", required=True, help="Deployed model ID")
    parser.add_argument("--version", required=True, help="Deployed model version")
    parser.add_argument("--environment", required=True, help="Environment tag: dev, qa or prod")
    parser.add_argument("--status", default="deployed", help="Deployment status")
    parser.add_argument("--deployed-by", default=os.getenv("BUILD_REQUESTEDFOR", "unknown"))
    parser.add_argument("--build-id", default=os.getenv("BUILD_BUILDID", "local"))
    parser.add_argument("--source-branch", default=os.getenv("BUILD_SOURCEBRANCH", "unknown"))
    parser.add_argument("--registry-dir", help="Registry directory")

    args = parser.parse_args()

    config = PromotionConfig()
    if args.registry_dir:
        config = config.model_copy(update={"ml_registry_dir": args.registry_dir})
    configure_logging("update_registry", config.ml_log_level, config.ml_log_format, environment=args.environment)

    entry = RegistryEntry.create(
        model_name=args.model_name,
        version=args.version,
        environment=args.environment,
        status=args.status,
        deployed_by=args.deployed_by,
        build_id=args.build_id,
        source_branch=args.source_branch,
    )

    try:
        update_registry(entry, config)
    except Exception as e:
        logger.exception("Registry update failed", model_name=args.model_name, error=str(e))
        print(f"✗ Failed to update registry: {e}")
        sys.exit(1)

    print(f"✓ Registry updated: {entry.model_name} {entry.version} -> {entry.environment}")
    sys.exit(0)


if __name__ == "__main__":
    main()
