"""Point-in-time backup of a model's metadata.

A backup fetches the full model descriptor, and only when that succeeds
creates a fresh timestamped directory holding the raw payload and a
``backup_metadata.json`` envelope. A backup is all-or-nothing: a failed write
removes the directory again.
"""

import json
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import structlog

from .client import DocumentModelClient
from .errors import BackupError, RemoteRequestError

logger = structlog.get_logger("backup")

METADATA_FILE = "backup_metadata.json"


@dataclass(frozen=True)
class BackupRecord:
    """Envelope persisted next to the backed-up files."""
    timestamp: str
    source_service: str
    resource_group: str
    model_name: str
    backup_location: str
    files: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backupTimestamp": self.timestamp,
            "sourceService": self.source_service,
            "resourceGroup": self.resource_group,
            "modelName": self.model_name,
            "backupLocation": self.backup_location,
            "backupFiles": list(self.files),
        }


def _payload_error(raw: str) -> Optional[str]:
    """Error description carried by a model payload, if any."""
    try:
        payload = json.loads(raw)
    except ValueError:
        return "Model payload is not valid JSON"
    if not isinstance(payload, dict):
        return "Model payload is not a JSON object"
    error = payload.get("error")
    if error:
        if isinstance(error, dict):
            return str(error.get("message") or error.get("code") or error)
        return str(error)
    return None


class ModelBackup:
    """Backs up models from one service into ``backup_root``.

    Parameters
    - client: Client bound to the service being backed up
    - backup_root: Parent of the timestamped backup directories
    - clock: Injectable UTC clock
    """

    def __init__(
        self,
        client: DocumentModelClient,
        backup_root: str = "./backups",
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.client = client
        self.backup_root = Path(backup_root)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def backup(self, model_name: str) -> BackupRecord:
        service = self.client.endpoint
        log = logger.bind(model_name=model_name, service=service.name)

        log.info("Retrieving model information")
        try:
            raw = await self.client.get_model_raw(model_name)
        except (RemoteRequestError, httpx.HTTPError) as e:
            raise BackupError(f"Failed to retrieve model information for {model_name}: {e}") from e

        error = _payload_error(raw)
        if error:
            raise BackupError(f"Model not found or an error occurred: {error}")

        now = self._clock()
        backup_dir = self.backup_root / now.strftime("%Y%m%d_%H%M%S")
        try:
            backup_dir.mkdir(parents=True, exist_ok=False)
        except FileExistsError as e:
            raise BackupError(f"Backup directory {backup_dir} already exists") from e

        model_file = f"{model_name}_model_info.json"
        record = BackupRecord(
            timestamp=now.strftime("%Y-%m-%dT%H:%M:%SZ"),
            source_service=service.name,
            resource_group=service.resource_group,
            model_name=model_name,
            backup_location=str(backup_dir),
            files=[model_file],
        )

        try:
            (backup_dir / model_file).write_text(raw)
            with open(backup_dir / METADATA_FILE, "w") as f:
                json.dump(record.to_dict(), f, indent=4)
        except OSError as e:
            shutil.rmtree(backup_dir, ignore_errors=True)
            raise BackupError(f"Failed to save backup to {backup_dir}: {e}") from e

        log.info("Model backed up", backup_location=str(backup_dir), files=record.files)
        return record
