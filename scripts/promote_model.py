#!/usr/bin/env python3
"""Script to copy a custom Document Intelligence model between environments."""

import argparse
import asyncio
import sys
import time
from typing import Optional

import structlog

from libs.common.config import PromotionConfig
from libs.common.events import create_event_publisher
from libs.common.logging import configure_logging, log_performance
from libs.common.metrics import MetricsCollector
from libs.docintel.client import ClientFactory, create_client_factory
from libs.docintel.endpoints import AzureCliResolver, EndpointResolver, ServiceRef
from libs.docintel.errors import DocIntelError
from libs.docintel.operations import OperationPoller, PollConfig
from libs.docintel.orchestrator import ModelPromotionOrchestrator

logger = structlog.get_logger("promote_model")


async def promote_model(
    model_name: str,
    source: ServiceRef,
    target: ServiceRef,
    skip_target_deletion: bool = False,
    config: Optional[PromotionConfig] = None,
    resolver: Optional[EndpointResolver] = None,
    client_factory: Optional[ClientFactory] = None,
    poller: Optional[OperationPoller] = None,
    metrics: Optional[MetricsCollector] = None
) -> bool:
    """Copy ``model_name`` from ``source`` to ``target``; True only on a succeeded copy."""
    if not config:
        config = PromotionConfig()
    metrics = metrics or MetricsCollector("promote_model")

    orchestrator = ModelPromotionOrchestrator(
        resolver=resolver or AzureCliResolver(config.ml_az_cli_path, config.ml_az_cli_timeout_seconds),
        client_factory=client_factory or create_client_factory(
            api_version=config.ml_docintel_api_version,
            timeout=config.ml_request_timeout_seconds,
            metrics=metrics,
        ),
        poller=poller or OperationPoller(PollConfig(**config.poll_settings())),
        metrics=metrics,
    )

    start_time = time.time()
    try:
        result = await orchestrator.promote_model(
            model_name,
            source=source,
            target=target,
            skip_target_deletion=skip_target_deletion,
        )
    except DocIntelError as e:
        logger.error(
            "Model promotion aborted",
            model_name=model_name,
            error_type=type(e).__name__,
            error=str(e)
        )
        print(f"✗ {type(e).__name__}: {e}")
        metrics.record_workflow("promote_model", "aborted", time.time() - start_time)
        return False

    metrics.record_workflow("promote_model", result.outcome, time.time() - start_time)
    log_performance("promote_model", (time.time() - start_time) * 1000, model_name=model_name, outcome=result.outcome)

    if not result.succeeded:
        print(f"✗ Model copy {result.outcome}: {result.error}")
        return False

    print(f"✓ Model {model_name} copied from {source.name} to {target.name}")
    if config.ml_redis_url:
        create_event_publisher(config.ml_redis_url).publish_model_promoted(
            model_name=model_name,
            source_service=source.name,
            target_service=target.name,
            operation_id=result.operation.operation_id,
        )
    return True


def main():
    """Main function for CLI."""
    parser = argparse.ArgumentParser(description="Copy a Document Intelligence model between services")
    parser.add_argument("--source-service", required=True, help="Source cognitive services account")
    parser.add_argument("--target-service", required=True, help="Target cognitive services account")
    parser.add_argument("--model-name", required=True, help="Model ID to copy")
    parser.add_argument("--resource-group", required=True, help="Target resource group")
    parser.add_argument("--source-resource-group", help="Source resource group (defaults to --resource-group)")
    parser.add_argument(
        "--skip-target-deletion",
        action="store_true",
        help="Keep an existing model of the same name in the target"
    )

    args = parser.parse_args()

    config = PromotionConfig()
    configure_logging("promote_model", config.ml_log_level, config.ml_log_format, environment=config.ml_env)
    metrics = MetricsCollector("promote_model")

    try:
        success = asyncio.run(promote_model(
            model_name=args.model_name,
            source=ServiceRef(args.source_service, args.source_resource_group or args.resource_group),
            target=ServiceRef(args.target_service, args.resource_group),
            skip_target_deletion=args.skip_target_deletion,
            config=config,
            metrics=metrics,
        ))
    except Exception as e:
        logger.exception("Unhandled error during model promotion", error=str(e))
        success = False

    if config.ml_metrics_textfile:
        metrics.write_textfile(config.ml_metrics_textfile)

    if success:
        print(f"Model {args.model_name} promoted to {args.target_service} successfully")
        sys.exit(0)
    else:
        print(f"Failed to promote model {args.model_name}")
        sys.exit(1)


if __name__ == "__main__":
    main()
