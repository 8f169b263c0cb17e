"""Tests for the pipeline stage entrypoints."""

import json
import sys
from unittest.mock import MagicMock

import pytest

from libs.common.config import PromotionConfig
from libs.common.metrics import MetricsCollector
from libs.docintel.errors import ValidationFailure
from libs.docintel.registry import DeploymentRegistry, RegistryEntry
from scripts import update_registry as update_registry_script
from scripts.backup_model import backup_model
from scripts.promote_model import promote_model
from scripts.run_model_tests import run_model_tests
from scripts.validate_model import validate_model

from tests.conftest import model_descriptor

MODEL = "invoice-model"


@pytest.fixture
def config(tmp_path):
    return PromotionConfig(
        ml_backup_root=str(tmp_path / "backups"),
        ml_registry_dir=str(tmp_path / "registry"),
        ml_models_dir=str(tmp_path / "models"),
        ml_report_dir=str(tmp_path / "reports"),
        ml_redis_url=None,
    )


@pytest.mark.asyncio
async def test_promote_model_succeeds(config, resolver, client_factory, poller, source_ref, target_ref):
    metrics = MetricsCollector("promote_model")

    success = await promote_model(
        MODEL, source_ref, target_ref,
        config=config, resolver=resolver, client_factory=client_factory, poller=poller, metrics=metrics,
    )

    assert success
    assert metrics.registry.get_sample_value(
        "docintel_workflow_duration_seconds_count", {"workflow": "promote_model", "outcome": "succeeded"}
    ) == 1.0


@pytest.mark.asyncio
async def test_promote_model_fails_on_timeout(
    config, resolver, client_factory, poller, source_service, source_ref, target_ref, capsys
):
    source_service.operation_statuses = ["running"]

    success = await promote_model(
        MODEL, source_ref, target_ref,
        config=config, resolver=resolver, client_factory=client_factory, poller=poller,
    )

    assert not success
    assert "✗ Model copy timeout" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_promote_model_fails_on_fatal_error(
    config, resolver, client_factory, poller, target_service, source_ref, target_ref, capsys
):
    target_service.models[MODEL] = model_descriptor(MODEL)
    target_service.delete_status = 409

    success = await promote_model(
        MODEL, source_ref, target_ref,
        config=config, resolver=resolver, client_factory=client_factory, poller=poller,
    )

    assert not success
    assert "TargetCleanupError" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_backup_model(config, resolver, client_factory, source_service, source_ref):
    record = await backup_model(source_ref, MODEL, config=config, resolver=resolver, client_factory=client_factory)

    assert record is not None
    assert record.source_service == source_ref.name
    assert record.backup_location.startswith(config.ml_backup_root)


@pytest.mark.asyncio
async def test_backup_model_failure(config, resolver, client_factory, source_ref):
    record = await backup_model(source_ref, "unknown-model", config=config, resolver=resolver, client_factory=client_factory)
    assert record is None


@pytest.mark.asyncio
async def test_validate_model_dev_tier(config, tmp_path):
    model_dir = tmp_path / "models" / MODEL
    model_dir.mkdir(parents=True)
    (model_dir / "model_config.json").write_text(json.dumps({
        "type": "custom-template", "version": "2.0.0", "trainingData": "invoices-2026", "accuracy": 0.80,
    }))

    report = await validate_model(MODEL, "dev", config=config)

    assert report.failed_checks == ["ModelAccuracy"]


@pytest.mark.asyncio
async def test_validate_model_remote_tier(config, resolver, client_factory, source_ref, tmp_path):
    config_file = tmp_path / "invoice.json"
    config_file.write_text(json.dumps({
        "type": "custom-neural", "version": "2.0.0", "trainingData": "invoices-2026", "accuracy": 0.93,
    }))

    report = await validate_model(
        MODEL, "qa", service=source_ref, config_file=str(config_file),
        config=config, resolver=resolver, client_factory=client_factory,
    )

    assert report.success


@pytest.mark.asyncio
async def test_run_model_tests(config, resolver, client_factory, poller, source_ref):
    report = await run_model_tests(
        source_ref, MODEL, "dev", smoke_only=True,
        config=config, resolver=resolver, client_factory=client_factory, poller=poller,
    )

    assert report.success
    path = report.write(config.ml_report_dir)
    assert json.loads(path.read_text())["summary"]["passed"] == 2


def test_update_registry_publishes(config):
    publisher = MagicMock()
    entry = RegistryEntry.create(model_name=MODEL, version="1.2.0", environment="prod", build_id="2077")

    update_registry_script.update_registry(entry, config, publisher=publisher)

    assert DeploymentRegistry(config.ml_registry_dir).get(MODEL, "prod") == entry
    publisher.publish_deployment_recorded.assert_called_once_with(
        model_name=MODEL, version="1.2.0", environment="prod", status="deployed", build_id="2077",
    )


def test_update_registry_cli(monkeypatch, tmp_path):
    registry_dir = tmp_path / "registry"
    monkeypatch.setenv("BUILD_BUILDID", "555")
    monkeypatch.setattr(sys, "argv", [
        "update_registry.py",
        "--model-name", MODEL,
        "--version", "3.0.0",
        "--environment", "qa",
        "--registry-dir", str(registry_dir),
        "--build-id", "555",
    ])

    with pytest.raises(SystemExit) as exc_info:
        update_registry_script.main()

    assert exc_info.value.code == 0
    assert DeploymentRegistry(str(registry_dir)).get(MODEL, "qa").build_id == "555"


@pytest.mark.asyncio
async def test_validate_model_malformed_config(config, tmp_path):
    model_dir = tmp_path / "models" / MODEL
    model_dir.mkdir(parents=True)
    (model_dir / "model_config.json").write_text("{not json")

    report = await validate_model(MODEL, "dev", config=config)

    assert "ConfigurationFields" in report.failed_checks
    detail = next(r.detail for r in report.results if r.name == "ConfigurationFields")
    assert "not valid JSON" in detail
    with pytest.raises(ValidationFailure):
        report.raise_for_failures()
