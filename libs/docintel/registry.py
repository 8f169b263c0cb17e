"""File-based deployment registry.

Each deployment of a model to an environment is recorded in a per-key file
``{model}_{environment}.json`` and in the combined ``registry_index.json``.
The index holds at most one entry per ``(modelName, environment)``; a newer
entry replaces the older one wholesale.

There is no locking: the pipeline runs registry updates one stage at a time.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

logger = structlog.get_logger("registry")

INDEX_FILE = "registry_index.json"


@dataclass(frozen=True)
class RegistryEntry:
    """One deployment record."""
    model_name: str
    version: str
    environment: str
    deployment_date: str
    status: str
    deployed_by: str
    build_id: str
    source_branch: str

    @property
    def key(self):
        return (self.model_name, self.environment)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "modelName": self.model_name,
            "version": self.version,
            "environment": self.environment,
            "deploymentDate": self.deployment_date,
            "status": self.status,
            "deployedBy": self.deployed_by,
            "buildId": self.build_id,
            "sourceBranch": self.source_branch,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistryEntry":
        return cls(
            model_name=data["modelName"],
            version=str(data.get("version", "")),
            environment=data["environment"],
            deployment_date=data.get("deploymentDate", ""),
            status=data.get("status", ""),
            deployed_by=data.get("deployedBy", ""),
            build_id=str(data.get("buildId", "")),
            source_branch=data.get("sourceBranch", ""),
        )

    @classmethod
    def create(
        cls,
        model_name: str,
        version: str,
        environment: str,
        status: str = "deployed",
        deployed_by: str = "",
        build_id: str = "",
        source_branch: str = "",
        deployment_date: Optional[str] = None
    ) -> "RegistryEntry":
        """Build an entry stamped with the current UTC time."""
        return cls(
            model_name=model_name,
            version=version,
            environment=environment,
            deployment_date=deployment_date or datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            status=status,
            deployed_by=deployed_by,
            build_id=build_id,
            source_branch=source_branch,
        )


class DeploymentRegistry:
    """Upsert-by-key registry persisted under ``registry_dir``."""

    def __init__(self, registry_dir: str = "./registry"):
        self.registry_dir = Path(registry_dir)

    @property
    def index_path(self) -> Path:
        return self.registry_dir / INDEX_FILE

    def entry_path(self, model_name: str, environment: str) -> Path:
        return self.registry_dir / f"{model_name}_{environment}.json"

    def list(self) -> List[RegistryEntry]:
        if not self.index_path.exists():
            return []
        with open(self.index_path, "r") as f:
            data = json.load(f)
        return [RegistryEntry.from_dict(item) for item in data.get("deployments", [])]

    def get(self, model_name: str, environment: str) -> Optional[RegistryEntry]:
        for entry in self.list():
            if entry.key == (model_name, environment):
                return entry
        return None

    def upsert(self, entry: RegistryEntry) -> List[RegistryEntry]:
        """Replace any entry with the same key, then persist the whole index."""
        current = self.list()
        entries = [existing for existing in current if existing.key != entry.key]
        replaced = len(entries) < len(current)
        entries.append(entry)

        self.registry_dir.mkdir(parents=True, exist_ok=True)
        with open(self.entry_path(entry.model_name, entry.environment), "w") as f:
            json.dump(entry.to_dict(), f, indent=2)

        index = {
            "lastUpdated": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "deployments": [e.to_dict() for e in entries],
        }
        with open(self.index_path, "w") as f:
            json.dump(index, f, indent=2)

        logger.info(
            "Registry updated",
            model_name=entry.model_name,
            environment=entry.environment,
            version=entry.version,
            replaced=replaced,
            total_entries=len(entries)
        )
        return entries
