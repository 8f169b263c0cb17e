"""Service endpoint resolution through the Azure CLI.

Every stage starts by turning a ``(service name, resource group)`` pair into a
``ServiceEndpoint``: the base URL and access key of a Document Intelligence
account. Resolution happens once per invocation and the result is immutable.
"""

import subprocess
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol, Tuple

import structlog

from .errors import CredentialResolutionError, ServiceNotFoundError

logger = structlog.get_logger("endpoints")

CommandRunner = Callable[[List[str]], subprocess.CompletedProcess]


@dataclass(frozen=True)
class ServiceRef:
    """A cognitive services account addressed by name and resource group."""
    name: str
    resource_group: str


@dataclass(frozen=True)
class ServiceEndpoint:
    """Resolved account: base URL plus access key.

    The key is excluded from ``repr`` so endpoints can be logged safely.
    """
    name: str
    resource_group: str
    base_url: str
    access_key: str = field(repr=False)

    def __post_init__(self):
        if not self.base_url or not self.access_key:
            raise CredentialResolutionError(
                f"Failed to retrieve credentials or endpoint for {self.name}"
            )
        object.__setattr__(self, "base_url", self.base_url.strip().rstrip("/"))


@dataclass(frozen=True)
class ModelIdentity:
    """Immutable input of a promotion: what to copy, from where, to where."""
    model_name: str
    source: ServiceRef
    target: ServiceRef


class EndpointResolver(Protocol):
    """Interface every resolver implements."""

    def ensure_authenticated(self) -> None: ...

    def service_exists(self, service: ServiceRef) -> bool: ...

    def require_service(self, service: ServiceRef) -> None: ...

    def resolve(self, service: ServiceRef) -> ServiceEndpoint: ...


def _run_command(command: List[str], timeout: float) -> subprocess.CompletedProcess:
    return subprocess.run(command, capture_output=True, text=True, timeout=timeout)


class AzureCliResolver:
    """Resolves endpoints with ``az cognitiveservices account`` commands.

    Parameters
    - az_path: Azure CLI executable
    - timeout: Seconds allowed for each CLI call
    - runner: Injectable command runner (defaults to ``subprocess.run``)
    """

    def __init__(
        self,
        az_path: str = "az",
        timeout: float = 120.0,
        runner: Optional[CommandRunner] = None
    ):
        self.az_path = az_path
        self.timeout = timeout
        self._runner = runner or (lambda command: _run_command(command, timeout))

    def _az(self, *args: str) -> subprocess.CompletedProcess:
        command = [self.az_path, *args]
        try:
            return self._runner(command)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise CredentialResolutionError(f"Azure CLI call failed: {e}") from e

    def ensure_authenticated(self) -> None:
        """Fail unless ``az account show`` succeeds."""
        result = self._az("account", "show")
        if result.returncode != 0:
            raise CredentialResolutionError("Not logged in to Azure CLI. Please run 'az login' first.")
        logger.info("Azure CLI authenticated")

    def service_exists(self, service: ServiceRef) -> bool:
        result = self._az(
            "cognitiveservices", "account", "show",
            "--name", service.name,
            "--resource-group", service.resource_group,
        )
        exists = result.returncode == 0
        logger.info(
            "Service lookup",
            service=service.name,
            resource_group=service.resource_group,
            exists=exists
        )
        return exists

    def require_service(self, service: ServiceRef) -> None:
        """Raise ``ServiceNotFoundError`` when the account is absent."""
        if not self.service_exists(service):
            raise ServiceNotFoundError(service.name, service.resource_group)

    def _query(self, *args: str) -> str:
        result = self._az(*args, "-o", "tsv")
        if result.returncode != 0:
            return ""
        return (result.stdout or "").strip()

    def resolve(self, service: ServiceRef) -> ServiceEndpoint:
        """Look up key1 and the endpoint of an account."""
        logger.info("Getting access key and endpoint", service=service.name)
        access_key = self._query(
            "cognitiveservices", "account", "keys", "list",
            "--name", service.name,
            "--resource-group", service.resource_group,
            "--query", "key1",
        )
        base_url = self._query(
            "cognitiveservices", "account", "show",
            "--name", service.name,
            "--resource-group", service.resource_group,
            "--query", "properties.endpoint",
        )
        return ServiceEndpoint(
            name=service.name,
            resource_group=service.resource_group,
            base_url=base_url,
            access_key=access_key,
        )


class StaticResolver:
    """Resolver over a fixed ``{(name, resource_group): (url, key)}`` mapping.

    Used when endpoints and keys are injected by the pipeline (variable
    groups) instead of looked up through the CLI.
    """

    def __init__(self, endpoints: Dict[Tuple[str, str], Tuple[str, str]]):
        self.endpoints = dict(endpoints)

    def ensure_authenticated(self) -> None:
        return None

    def service_exists(self, service: ServiceRef) -> bool:
        return (service.name, service.resource_group) in self.endpoints

    def require_service(self, service: ServiceRef) -> None:
        if not self.service_exists(service):
            raise ServiceNotFoundError(service.name, service.resource_group)

    def resolve(self, service: ServiceRef) -> ServiceEndpoint:
        base_url, access_key = self.endpoints.get((service.name, service.resource_group), ("", ""))
        return ServiceEndpoint(
            name=service.name,
            resource_group=service.resource_group,
            base_url=base_url,
            access_key=access_key,
        )
