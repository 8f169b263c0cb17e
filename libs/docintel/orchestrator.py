"""Model promotion orchestrator.

Drives a custom model from a source service to a target service:

1. both services must exist;
2. endpoints and keys are resolved;
3. the target is checked for an existing model of the same name;
4. an existing target model is deleted unless deletion is skipped;
5. the target issues a copy authorization for that model name;
6. the source starts the copy and returns an operation location;
7. the operation is polled to a terminal status.

Steps 1-6 fail fast by raising; step 7 is reported through
``PromotionResult``.
"""

import time
from dataclasses import dataclass
from typing import Optional, Union

import httpx
import structlog

from libs.common.metrics import MetricsCollector

from .client import ClientFactory, DocumentModelClient
from .endpoints import EndpointResolver, ModelIdentity, ServiceRef
from .errors import (
    AuthorizationError,
    CopyInitiationError,
    CredentialResolutionError,
    ModelNotFoundError,
    OperationTimeoutError,
    RemoteReportedFailure,
    RemoteRequestError,
    TargetCleanupError,
)
from .operations import CopyOperation, OperationPoller, parse_operation_location

logger = structlog.get_logger("orchestrator")


@dataclass
class PromotionResult:
    """Outcome of ``promote_model``.

    ``succeeded`` is only true when the copy operation was read as
    ``succeeded`` from the remote status endpoint.
    """
    identity: ModelIdentity
    succeeded: bool
    operation: Optional[CopyOperation] = None
    error: Optional[Union[RemoteReportedFailure, OperationTimeoutError]] = None
    target_model_existed: bool = False
    target_model_deleted: bool = False
    duration_seconds: float = 0.0

    @property
    def outcome(self) -> str:
        if self.succeeded:
            return "succeeded"
        if isinstance(self.error, OperationTimeoutError):
            return "timeout"
        return "failed"


class ModelPromotionOrchestrator:
    """Copies custom models between Document Intelligence services.

    Parameters
    - resolver: Service existence checks and endpoint/key resolution
    - client_factory: Builds a ``DocumentModelClient`` for an endpoint
    - poller: Poll loop for the copy operation
    - metrics: Optional collector for promotion and poll metrics
    """

    def __init__(
        self,
        resolver: EndpointResolver,
        client_factory: ClientFactory,
        poller: Optional[OperationPoller] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.resolver = resolver
        self.client_factory = client_factory
        self.poller = poller or OperationPoller()
        self.metrics = metrics

    async def promote_model(
        self,
        model_name: str,
        source: ServiceRef,
        target: ServiceRef,
        skip_target_deletion: bool = False
    ) -> PromotionResult:
        identity = ModelIdentity(model_name=model_name, source=source, target=target)
        log = logger.bind(model_name=model_name, source=source.name, target=target.name)
        start_time = time.time()

        try:
            self.resolver.ensure_authenticated()
            self.resolver.require_service(source)
            self.resolver.require_service(target)

            source_endpoint = self.resolver.resolve(source)
            target_endpoint = self.resolver.resolve(target)
            log.info("Service credentials and endpoints retrieved")

            async with self.client_factory(source_endpoint) as source_client, \
                    self.client_factory(target_endpoint) as target_client:
                existed = await self._target_model_exists(target_client, model_name)
                deleted = False
                if existed and not skip_target_deletion:
                    await self._delete_target_model(target_client, model_name)
                    deleted = True
                elif existed:
                    log.info("Target model exists, deletion skipped")

                authorization = await self._authorize_copy(target_client, model_name, source.name)
                handle = await self._start_copy(source_client, model_name, authorization)
                log.info("Model copy initiated", operation_id=handle.operation_id)

                poll_result = await self.poller.poll(handle, source_client.get_operation_status)
        except Exception:
            if self.metrics:
                self.metrics.record_promotion("aborted")
            raise

        result = PromotionResult(
            identity=identity,
            succeeded=poll_result.succeeded,
            operation=poll_result.operation,
            error=poll_result.error,
            target_model_existed=existed,
            target_model_deleted=deleted,
            duration_seconds=time.time() - start_time,
        )

        if self.metrics:
            self.metrics.record_promotion(result.outcome)
            self.metrics.record_poll(result.outcome, poll_result.attempts)

        if result.succeeded:
            log.info("Model copy completed", attempts=poll_result.attempts)
        else:
            log.error(
                "Model copy did not succeed",
                outcome=result.outcome,
                attempts=poll_result.attempts,
                error=str(result.error)
            )
        return result

    async def _target_model_exists(self, client: DocumentModelClient, model_name: str) -> bool:
        """Whether the target already holds ``model_name``.

        A rejected key is fatal. Any other read failure is logged and treated
        as absent: the worst case is a copy onto an existing name, which the
        service refuses with a reported failure.
        """
        try:
            await client.get_model(model_name)
        except ModelNotFoundError:
            logger.info("Model not present in target", model_name=model_name, service=client.endpoint.name)
            return False
        except RemoteRequestError as e:
            if e.is_access_denied:
                raise CredentialResolutionError(
                    f"Access key rejected by {client.endpoint.name} (HTTP {e.status_code})"
                ) from e
            logger.warning(
                "Target model lookup failed, treating as absent",
                model_name=model_name,
                status_code=e.status_code,
                error=str(e)
            )
            return False
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                "Target model lookup failed, treating as absent",
                model_name=model_name,
                error=str(e)
            )
            return False

        logger.info("Model already present in target", model_name=model_name, service=client.endpoint.name)
        return True

    async def _delete_target_model(self, client: DocumentModelClient, model_name: str) -> None:
        try:
            await client.delete_model(model_name)
        except (RemoteRequestError, httpx.HTTPError) as e:
            raise TargetCleanupError(
                f"Failed to delete existing model {model_name} from {client.endpoint.name}: {e}"
            ) from e

    async def _authorize_copy(self, client: DocumentModelClient, model_name: str, source_name: str) -> dict:
        try:
            authorization = await client.authorize_copy(
                model_name,
                description=f"Model copied from {source_name}",
            )
        except (RemoteRequestError, httpx.HTTPError, ValueError) as e:
            raise AuthorizationError(
                f"Target {client.endpoint.name} refused copy authorization for {model_name}: {e}"
            ) from e
        if not isinstance(authorization, dict) or not authorization:
            raise AuthorizationError(f"Target {client.endpoint.name} returned an empty copy authorization")
        logger.info("Copy authorization issued", model_name=model_name, service=client.endpoint.name)
        return authorization

    async def _start_copy(self, client: DocumentModelClient, model_name: str, authorization: dict):
        try:
            location = await client.copy_model_to(model_name, authorization)
        except (RemoteRequestError, httpx.HTTPError) as e:
            raise CopyInitiationError(
                f"Source {client.endpoint.name} rejected copy of {model_name}: {e}"
            ) from e
        return parse_operation_location(location)
