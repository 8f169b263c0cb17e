#!/usr/bin/env python3
"""Script to validate a model before it is promoted to the next environment."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

import structlog

from libs.common.config import PromotionConfig
from libs.common.logging import configure_logging
from libs.docintel.client import ClientFactory, create_client_factory
from libs.docintel.endpoints import AzureCliResolver, EndpointResolver, ServiceRef
from libs.docintel.errors import DocIntelError, ValidationFailure
from libs.docintel.reports import Report
from libs.docintel.validation import LOCAL_TIER, ModelValidator, load_model_config

logger = structlog.get_logger("validate_model")


async def validate_model(
    model_name: str,
    environment: str,
    service: Optional[ServiceRef] = None,
    config_file: Optional[str] = None,
    config: Optional[PromotionConfig] = None,
    resolver: Optional[EndpointResolver] = None,
    client_factory: Optional[ClientFactory] = None
) -> Report:
    """Run every validation check and return the report."""
    if not config:
        config = PromotionConfig()

    config_path = Path(config_file) if config_file else Path(config.ml_models_dir) / model_name / "model_config.json"
    config_error = None
    try:
        model_config = load_model_config(config_path)
    except ValueError as e:
        logger.error("Model configuration unreadable", path=str(config_path), error=str(e))
        model_config, config_error = {}, str(e)

    if environment.lower() == LOCAL_TIER or service is None:
        validator = ModelValidator(config.ml_models_dir, accuracy_threshold=config.ml_accuracy_threshold)
        return await validator.validate(model_name, environment, model_config, config_error)

    resolver = resolver or AzureCliResolver(config.ml_az_cli_path, config.ml_az_cli_timeout_seconds)
    client_factory = client_factory or create_client_factory(
        api_version=config.ml_docintel_api_version,
        timeout=config.ml_request_timeout_seconds,
    )
    resolver.ensure_authenticated()
    resolver.require_service(service)
    async with client_factory(resolver.resolve(service)) as client:
        validator = ModelValidator(
            config.ml_models_dir,
            client=client,
            accuracy_threshold=config.ml_accuracy_threshold,
        )
        return await validator.validate(model_name, environment, model_config, config_error)


def main():
    """Main function for CLI."""
    parser = argparse.ArgumentParser(description="Validate a Document Intelligence model")
    parser.add_argument("--model-name", required=True, help="Model ID to validate")
    parser.add_argument("--environment", required=True, help="Environment tag: dev, qa or prod")
    parser.add_argument("--service-name", help="Cognitive services account (qa/prod)")
    parser.add_argument("--resource-group", help="Resource group of the service (qa/prod)")
    parser.add_argument("--config-file", help="Model configuration JSON")
    parser.add_argument("--report-dir", help="Directory for the validation report")

    args = parser.parse_args()

    config = PromotionConfig()
    configure_logging("validate_model", config.ml_log_level, config.ml_log_format, environment=args.environment)

    service = None
    if args.service_name:
        if not args.resource_group:
            parser.error("--resource-group is required with --service-name")
        service = ServiceRef(args.service_name, args.resource_group)
    elif args.environment.lower() != LOCAL_TIER:
        parser.error(f"--service-name is required for environment {args.environment}")

    try:
        report = asyncio.run(validate_model(
            model_name=args.model_name,
            environment=args.environment,
            service=service,
            config_file=args.config_file,
            config=config,
        ))
        report.write(args.report_dir or config.ml_report_dir)
        print(report.render())
        report.raise_for_failures()
    except ValidationFailure as e:
        logger.error("Model validation failed", model_name=args.model_name, failed_checks=e.failed_checks)
        print(f"✗ {e}")
        sys.exit(1)
    except DocIntelError as e:
        logger.error("Model validation aborted", model_name=args.model_name, error=str(e))
        print(f"✗ {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception("Unhandled error during model validation", error=str(e))
        sys.exit(1)

    print(f"✓ Model {args.model_name} passed validation for {args.environment}")
    sys.exit(0)


if __name__ == "__main__":
    main()
