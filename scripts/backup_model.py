#!/usr/bin/env python3
"""Script to back up a Document Intelligence model before it is replaced."""

import argparse
import asyncio
import sys
from typing import Optional

import structlog

from libs.common.config import PromotionConfig
from libs.common.events import create_event_publisher
from libs.common.logging import configure_logging
from libs.docintel.backup import BackupRecord, ModelBackup
from libs.docintel.client import ClientFactory, create_client_factory
from libs.docintel.endpoints import AzureCliResolver, EndpointResolver, ServiceRef
from libs.docintel.errors import DocIntelError

logger = structlog.get_logger("backup_model")


async def backup_model(
    service: ServiceRef,
    model_name: str,
    config: Optional[PromotionConfig] = None,
    resolver: Optional[EndpointResolver] = None,
    client_factory: Optional[ClientFactory] = None
) -> Optional[BackupRecord]:
    """Back up ``model_name`` from ``service``; None on any failure."""
    if not config:
        config = PromotionConfig()
    resolver = resolver or AzureCliResolver(config.ml_az_cli_path, config.ml_az_cli_timeout_seconds)
    client_factory = client_factory or create_client_factory(
        api_version=config.ml_docintel_api_version,
        timeout=config.ml_request_timeout_seconds,
    )

    try:
        resolver.ensure_authenticated()
        resolver.require_service(service)
        endpoint = resolver.resolve(service)
        async with client_factory(endpoint) as client:
            record = await ModelBackup(client, config.ml_backup_root).backup(model_name)
    except DocIntelError as e:
        logger.error("Model backup failed", model_name=model_name, service=service.name, error=str(e))
        print(f"✗ {e}")
        return None

    print(f"✓ Model information backed up to {record.backup_location}")
    if config.ml_redis_url:
        create_event_publisher(config.ml_redis_url).publish_model_backed_up(
            model_name=model_name,
            source_service=service.name,
            backup_location=record.backup_location,
        )
    return record


def main():
    """Main function for CLI."""
    parser = argparse.ArgumentParser(description="Back up a Document Intelligence model")
    parser.add_argument("--service-name", required=True, help="Cognitive services account to back up from")
    parser.add_argument("--model-name", required=True, help="Model ID to back up")
    parser.add_argument("--resource-group", required=True, help="Resource group of the service")
    parser.add_argument("--backup-root", help="Parent directory of timestamped backups")

    args = parser.parse_args()

    config = PromotionConfig()
    if args.backup_root:
        config = config.model_copy(update={"ml_backup_root": args.backup_root})
    configure_logging("backup_model", config.ml_log_level, config.ml_log_format, environment=config.ml_env)

    try:
        record = asyncio.run(backup_model(
            service=ServiceRef(args.service_name, args.resource_group),
            model_name=args.model_name,
            config=config,
        ))
    except Exception as e:
        logger.exception("Unhandled error during model backup", error=str(e))
        record = None

    if record:
        print("Model backup operation completed successfully!")
        print(f"Backup location: {record.backup_location}")
        sys.exit(0)
    else:
        print(f"Failed to back up model {args.model_name}")
        sys.exit(1)


if __name__ == "__main__":
    main()
