"""Error kinds raised by the Document Intelligence promotion workflows.

Fatal misconfiguration errors (credentials, missing services, cleanup,
authorization) abort a stage immediately. ``RemoteReportedFailure`` and
``OperationTimeoutError`` describe how a long-running operation ended and are
returned inside results rather than raised by the poller.
"""

from typing import List, Optional


class DocIntelError(Exception):
    """Base class for every error the promotion tooling raises."""


class CredentialResolutionError(DocIntelError):
    """Access key or endpoint could not be resolved, or the key was rejected."""


class ServiceNotFoundError(DocIntelError):
    """The cognitive services account does not exist in the resource group."""

    def __init__(self, service_name: str, resource_group: str):
        super().__init__(f"Service {service_name} not found in resource group {resource_group}")
        self.service_name = service_name
        self.resource_group = resource_group


class RemoteRequestError(DocIntelError):
    """A REST call returned a non-success status code."""

    def __init__(self, operation: str, status_code: int, message: str = ""):
        detail = f": {message}" if message else ""
        super().__init__(f"{operation} failed with HTTP {status_code}{detail}")
        self.operation = operation
        self.status_code = status_code
        self.message = message

    @property
    def is_transient(self) -> bool:
        return self.status_code in (408, 429) or self.status_code >= 500

    @property
    def is_access_denied(self) -> bool:
        return self.status_code in (401, 403)


class ModelNotFoundError(RemoteRequestError):
    """The model does not exist on the queried service (HTTP 404)."""


class TargetCleanupError(DocIntelError):
    """Deleting the existing model from the target service failed."""


class AuthorizationError(DocIntelError):
    """The target service refused to issue a copy authorization."""


class CopyInitiationError(DocIntelError):
    """The source service rejected the copy request."""


class MissingOperationHandleError(DocIntelError):
    """A long-running operation was accepted without a usable status location."""


class RemoteReportedFailure(DocIntelError):
    """A long-running operation reached ``failed`` on the remote side."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(f"{code}: {message}" if code else message)
        self.message = message
        self.code = code


class OperationTimeoutError(DocIntelError):
    """The poll attempt bound was exhausted before a terminal status; outcome unknown."""

    def __init__(self, attempts: int, last_status: str):
        super().__init__(
            f"Operation did not reach a terminal status after {attempts} attempts "
            f"(last status: {last_status})"
        )
        self.attempts = attempts
        self.last_status = last_status


class ValidationFailure(DocIntelError):
    """One or more named validation checks failed."""

    def __init__(self, failed_checks: List[str]):
        super().__init__(f"Validation failed: {', '.join(failed_checks)}")
        self.failed_checks = failed_checks


class BackupError(DocIntelError):
    """The model backup could not be taken or persisted."""
