"""Pre-promotion model validation.

Three independent checks feed one aggregate result:

- ``ModelExists``: the model directory is present locally (dev tier) or the
  model is retrievable from the tier's service (qa/prod)
- ``ConfigurationFields``: the model configuration declares every required field
- ``ModelAccuracy``: the declared accuracy meets the threshold
"""

import json
import time
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import structlog

from .client import DocumentModelClient
from .errors import ModelNotFoundError, RemoteRequestError
from .reports import Report

logger = structlog.get_logger("validation")

REQUIRED_CONFIG_FIELDS = ("type", "version", "trainingData", "accuracy")
DEFAULT_ACCURACY_THRESHOLD = 0.85
LOCAL_TIER = "dev"


def load_model_config(path: Path) -> Dict[str, Any]:
    """Read a model configuration JSON file; missing file -> empty config.

    Raises ``ValueError`` when the file is not a JSON object.
    """
    if not path.exists():
        logger.warning("Model configuration not found", path=str(path))
        return {}
    with open(path, "r") as f:
        try:
            config = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Model configuration {path} is not valid JSON: {e}") from e
    if not isinstance(config, dict):
        raise ValueError(f"Model configuration {path} must be a JSON object")
    return config


class ModelValidator:
    """Runs the validation checks for one model in one environment.

    Parameters
    - models_dir: Root of the local model directories used by the dev tier
    - client: Remote client for non-dev tiers
    - accuracy_threshold: Minimum accepted accuracy
    """

    def __init__(
        self,
        models_dir: str = "./models",
        client: Optional[DocumentModelClient] = None,
        accuracy_threshold: float = DEFAULT_ACCURACY_THRESHOLD
    ):
        self.models_dir = Path(models_dir)
        self.client = client
        self.accuracy_threshold = accuracy_threshold

    async def validate(
        self,
        model_name: str,
        environment: str,
        model_config: Dict[str, Any],
        config_error: Optional[str] = None
    ) -> Report:
        """Run every check; ``config_error`` marks a configuration that could not be read."""
        report = Report(environment=environment, suite="validation", model_name=model_name)

        started = time.time()
        exists, detail = await self._check_model_exists(model_name, environment)
        report.record("ModelExists", exists, detail, started)

        started = time.time()
        missing = [name for name in REQUIRED_CONFIG_FIELDS if model_config.get(name) in (None, "")]
        if config_error:
            report.record("ConfigurationFields", False, config_error, started)
        elif missing:
            report.record("ConfigurationFields", False, f"Missing required fields: {', '.join(missing)}", started)
        else:
            report.record("ConfigurationFields", True, "All required fields present", started)

        started = time.time()
        passed, detail = self._check_accuracy(model_config.get("accuracy"))
        report.record("ModelAccuracy", passed, detail, started)

        report.finish()
        logger.info(
            "Validation completed",
            model_name=model_name,
            environment=environment,
            success=report.success,
            failed_checks=report.failed_checks
        )
        return report

    async def _check_model_exists(self, model_name: str, environment: str):
        if environment.lower() == LOCAL_TIER:
            model_path = self.models_dir / model_name
            if model_path.is_dir():
                return True, f"Found {model_path}"
            return False, f"Model directory {model_path} not found"

        if self.client is None:
            return False, f"No service configured for environment {environment}"

        try:
            await self.client.get_model(model_name)
        except ModelNotFoundError:
            return False, f"Model not found in {self.client.endpoint.name}"
        except (RemoteRequestError, httpx.HTTPError, ValueError) as e:
            return False, f"Model lookup failed: {e}"
        return True, f"Found in {self.client.endpoint.name}"

    def _check_accuracy(self, accuracy: Any):
        if accuracy is None:
            return False, "Accuracy not declared"
        try:
            value = float(accuracy)
        except (TypeError, ValueError):
            return False, f"Accuracy {accuracy!r} is not a number"
        if value >= self.accuracy_threshold:
            return True, f"Accuracy {value:.2f} meets threshold {self.accuracy_threshold:.2f}"
        return False, f"Accuracy {value:.2f} below threshold {self.accuracy_threshold:.2f}"
