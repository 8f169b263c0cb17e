"""Long-running operation handling: handles, state, and the poll loop.

Copy and analyze requests are accepted with ``202`` and an
``Operation-Location`` URL. ``parse_operation_location`` turns that URL into a
typed ``OperationHandle``; ``OperationPoller`` queries it with capped
exponential backoff until the operation reaches a terminal status or the
attempt bound is exhausted.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union
from urllib.parse import urlsplit

import httpx
import structlog

from .errors import (
    MissingOperationHandleError,
    OperationTimeoutError,
    RemoteReportedFailure,
    RemoteRequestError,
)

logger = structlog.get_logger("operations")


class OperationStatus(Enum):
    """Remote status values of a long-running operation."""
    NOT_STARTED = "notStarted"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationStatus.SUCCEEDED, OperationStatus.FAILED)


@dataclass(frozen=True)
class OperationHandle:
    """Where to poll an accepted operation."""
    operation_id: str
    status_url: str


def parse_operation_location(location: Optional[str]) -> OperationHandle:
    """Parse an ``Operation-Location`` URL into an ``OperationHandle``.

    The URL must be absolute, carry a query string (the ``api-version``), and
    end in a non-empty path segment, which is the operation id.
    """
    if not location or not location.strip():
        raise MissingOperationHandleError("Response carried no operation location")

    location = location.strip()
    parts = urlsplit(location)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise MissingOperationHandleError(f"Operation location is not an absolute URL: {location}")
    if not parts.query:
        raise MissingOperationHandleError(f"Operation location has no query string: {location}")

    operation_id = parts.path.rsplit("/", 1)[-1]
    if not operation_id:
        raise MissingOperationHandleError(f"Operation location has no operation id: {location}")

    return OperationHandle(operation_id=operation_id, status_url=location)


@dataclass
class CopyOperation:
    """State of a long-running operation as observed through polling.

    ``NotStarted -> Running -> {Succeeded, Failed}``; once terminal, further
    observations are ignored.
    """
    operation_id: str
    status_url: str
    status: OperationStatus = OperationStatus.NOT_STARTED
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    attempts: int = 0

    @classmethod
    def from_handle(cls, handle: OperationHandle) -> "CopyOperation":
        return cls(operation_id=handle.operation_id, status_url=handle.status_url)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def observe(self, payload: Dict[str, Any]) -> OperationStatus:
        """Apply a status payload read from the remote status endpoint."""
        if self.is_terminal:
            logger.warning(
                "Ignoring status update for terminal operation",
                operation_id=self.operation_id,
                status=self.status.value,
                received=payload.get("status")
            )
            return self.status

        raw_status = str(payload.get("status", ""))
        if raw_status == "canceled":
            self.status = OperationStatus.FAILED
            self.error_message = "Operation was canceled"
            return self.status

        try:
            status = OperationStatus(raw_status)
        except ValueError:
            logger.warning("Unknown operation status", operation_id=self.operation_id, status=raw_status)
            status = OperationStatus.RUNNING

        self.status = status
        if status is OperationStatus.FAILED:
            error = payload.get("error") or {}
            if isinstance(error, dict):
                self.error_message = error.get("message") or "Operation failed without an error message"
                self.error_code = error.get("code")
            else:
                self.error_message = str(error)
        return self.status


@dataclass(frozen=True)
class PollConfig:
    """Bounds of the poll loop.

    Parameters
    - max_attempts: Maximum number of status queries
    - initial_delay: Seconds to wait before the first query
    - backoff_base: Wait after attempt ``n`` is ``backoff_base ** n`` seconds...
    - max_delay: ...capped at this many seconds
    """
    max_attempts: int = 30
    initial_delay: float = 10.0
    backoff_base: float = 2.0
    max_delay: float = 60.0

    def delay_after(self, attempt: int) -> float:
        try:
            return min(self.backoff_base ** attempt, self.max_delay)
        except OverflowError:
            return self.max_delay


@dataclass
class PollResult:
    """How a poll loop ended."""
    operation: CopyOperation
    payload: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Union[RemoteReportedFailure, OperationTimeoutError]] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.operation.status is OperationStatus.SUCCEEDED

    @property
    def timed_out(self) -> bool:
        return isinstance(self.error, OperationTimeoutError)

    @property
    def attempts(self) -> int:
        return self.operation.attempts


StatusFetcher = Callable[[OperationHandle], Awaitable[Dict[str, Any]]]
Sleeper = Callable[[float], Awaitable[Any]]


class OperationPoller:
    """Polls a long-running operation until it is terminal.

    Transient query failures (network errors, throttling, server errors,
    undecodable bodies) consume an attempt and the loop continues. Any other
    HTTP error from the status endpoint propagates.
    """

    def __init__(self, config: Optional[PollConfig] = None, sleep: Optional[Sleeper] = None):
        self.config = config or PollConfig()
        self._sleep = sleep or asyncio.sleep

    async def poll(self, handle: OperationHandle, fetch_status: StatusFetcher) -> PollResult:
        operation = CopyOperation.from_handle(handle)
        payload: Dict[str, Any] = {}

        logger.info(
            "Waiting for operation to start",
            operation_id=handle.operation_id,
            delay_seconds=self.config.initial_delay
        )
        await self._sleep(self.config.initial_delay)

        for attempt in range(1, self.config.max_attempts + 1):
            operation.attempts = attempt
            try:
                payload = await fetch_status(handle)
                if not isinstance(payload, dict):
                    raise ValueError(f"Status body is {type(payload).__name__}, expected a JSON object")
            except (httpx.TransportError, ValueError) as e:
                logger.warning(
                    "Status query failed, retrying",
                    operation_id=handle.operation_id,
                    attempt=attempt,
                    error=str(e)
                )
            except RemoteRequestError as e:
                if not e.is_transient:
                    raise
                logger.warning(
                    "Status query rejected, retrying",
                    operation_id=handle.operation_id,
                    attempt=attempt,
                    status_code=e.status_code
                )
            else:
                status = operation.observe(payload)
                logger.info(
                    "Operation status",
                    operation_id=handle.operation_id,
                    attempt=attempt,
                    max_attempts=self.config.max_attempts,
                    status=status.value
                )
                if status is OperationStatus.SUCCEEDED:
                    return PollResult(operation=operation, payload=payload)
                if status is OperationStatus.FAILED:
                    return PollResult(
                        operation=operation,
                        payload=payload,
                        error=RemoteReportedFailure(operation.error_message or "", operation.error_code),
                    )

            if attempt < self.config.max_attempts:
                await self._sleep(self.config.delay_after(attempt))

        logger.error(
            "Operation did not complete within attempt bound",
            operation_id=handle.operation_id,
            attempts=operation.attempts,
            last_status=operation.status.value
        )
        return PollResult(
            operation=operation,
            payload=payload,
            error=OperationTimeoutError(operation.attempts, operation.status.value),
        )
