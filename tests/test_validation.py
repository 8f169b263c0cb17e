"""Tests for model validation and its report."""

import json

import pytest

from libs.docintel.client import DocumentModelClient
from libs.docintel.endpoints import ServiceEndpoint
from libs.docintel.errors import ValidationFailure
from libs.docintel.validation import ModelValidator, load_model_config

from tests.conftest import model_descriptor

MODEL = "invoice-model"


def model_config(**overrides):
    config = {
        "type": "custom-neural",
        "version": "1.4.0",
        "trainingData": {"container": "training-invoices", "documents": 120},
        "accuracy": 0.91,
    }
    config.update(overrides)
    return config


@pytest.fixture
def models_dir(tmp_path):
    (tmp_path / MODEL).mkdir()
    return tmp_path


@pytest.mark.asyncio
async def test_all_checks_pass(models_dir):
    report = await ModelValidator(str(models_dir)).validate(MODEL, "dev", model_config())

    assert report.success
    assert [r.name for r in report.results] == ["ModelExists", "ConfigurationFields", "ModelAccuracy"]
    assert report.summary() == {"total": 3, "passed": 3, "failed": 0, "skipped": 0}


@pytest.mark.asyncio
async def test_low_accuracy_fails_one_check(models_dir):
    """0.80 against 0.85 fails exactly the accuracy check."""
    report = await ModelValidator(str(models_dir)).validate(MODEL, "dev", model_config(accuracy=0.80))

    assert not report.success
    assert report.failed_checks == ["ModelAccuracy"]
    with pytest.raises(ValidationFailure) as exc_info:
        report.raise_for_failures()
    assert exc_info.value.failed_checks == ["ModelAccuracy"]


@pytest.mark.asyncio
async def test_threshold_is_inclusive(models_dir):
    report = await ModelValidator(str(models_dir), accuracy_threshold=0.85).validate(
        MODEL, "dev", model_config(accuracy=0.85)
    )
    assert report.success


@pytest.mark.asyncio
async def test_missing_fields_and_model(tmp_path):
    config = model_config()
    del config["trainingData"]
    del config["accuracy"]

    report = await ModelValidator(str(tmp_path)).validate(MODEL, "dev", config)

    assert report.failed_checks == ["ModelExists", "ConfigurationFields", "ModelAccuracy"]
    fields_result = report.results[1]
    assert "trainingData" in fields_result.detail
    assert "accuracy" in fields_result.detail


@pytest.mark.asyncio
async def test_non_numeric_accuracy(models_dir):
    report = await ModelValidator(str(models_dir)).validate(MODEL, "dev", model_config(accuracy="high"))
    assert report.failed_checks == ["ModelAccuracy"]


@pytest.mark.asyncio
async def test_remote_tier_checks_service(target_service, transport):
    endpoint = ServiceEndpoint("docintel-qa", "rg-qa", target_service.base_url, "key")

    async with DocumentModelClient(endpoint, transport=transport) as client:
        missing = await ModelValidator(client=client).validate(MODEL, "qa", model_config())
        target_service.models[MODEL] = model_descriptor(MODEL)
        present = await ModelValidator(client=client).validate(MODEL, "qa", model_config())

    assert missing.failed_checks == ["ModelExists"]
    assert present.success
    assert ("GET", f"/documentModels/{MODEL}") in target_service.calls


@pytest.mark.asyncio
async def test_remote_tier_without_client(models_dir):
    report = await ModelValidator(str(models_dir)).validate(MODEL, "prod", model_config())
    assert report.failed_checks == ["ModelExists"]


def test_load_model_config(tmp_path):
    path = tmp_path / "model_config.json"
    path.write_text(json.dumps(model_config()))

    assert load_model_config(path)["version"] == "1.4.0"
    assert load_model_config(tmp_path / "missing.json") == {}


def test_load_model_config_rejects_malformed_files(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    with pytest.raises(ValueError, match="not valid JSON"):
        load_model_config(broken)

    listed = tmp_path / "listed.json"
    listed.write_text("[]")
    with pytest.raises(ValueError, match="must be a JSON object"):
        load_model_config(listed)


@pytest.mark.asyncio
async def test_unreadable_config_fails_configuration_check(models_dir):
    report = await ModelValidator(str(models_dir)).validate(
        MODEL, "dev", {}, config_error="Model configuration is not valid JSON"
    )

    assert report.failed_checks == ["ConfigurationFields", "ModelAccuracy"]
    assert report.results[1].detail == "Model configuration is not valid JSON"


def test_validation_report_file(tmp_path):
    from libs.docintel.reports import CheckStatus, Report

    report = Report(environment="qa", suite="validation", model_name=MODEL)
    report.add("ModelExists", CheckStatus.PASSED, "Found")
    report.add("ModelAccuracy", CheckStatus.FAILED, "Accuracy 0.80 below threshold 0.85")
    path = report.finish().write(str(tmp_path))

    assert path == tmp_path / "qa" / "validation-results.json"
    data = json.loads(path.read_text())
    assert data["success"] is False
    assert data["summary"]["failed"] == 1
    assert data["results"][1] == {
        "name": "ModelAccuracy",
        "status": "failed",
        "detail": "Accuracy 0.80 below threshold 0.85",
        "durationMs": 0.0,
    }
    assert "✗ ModelAccuracy" in report.render()
    assert "Total: 2, Passed: 1, Failed: 1, Skipped: 0" in report.render()
