"""Async REST client for the Document Intelligence model API."""

import time
from typing import Any, Callable, Dict, List, Optional

import httpx
import structlog

from libs.common.metrics import MetricsCollector

from .endpoints import ServiceEndpoint
from .errors import ModelNotFoundError, RemoteRequestError
from .operations import OperationHandle

logger = structlog.get_logger("docintel_client")

API_PREFIX = "/documentintelligence"


def _json_object(response: httpx.Response, operation: str) -> Dict[str, Any]:
    """Decoded body; ``ValueError`` unless it is a JSON object."""
    body = response.json()
    if not isinstance(body, dict):
        raise ValueError(f"{operation} returned {type(body).__name__}, expected a JSON object")
    return body


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error.get("code") or "")
    return ""


class DocumentModelClient:
    """Thin wrapper over one service's ``documentModels`` endpoints.

    Use as an async context manager so the underlying ``httpx.AsyncClient`` is
    closed. Non-success responses raise ``RemoteRequestError`` (``404`` raises
    ``ModelNotFoundError``); transport errors propagate as ``httpx`` errors.
    """

    def __init__(
        self,
        endpoint: ServiceEndpoint,
        api_version: str = "2024-11-30",
        timeout: float = 30.0,
        metrics: Optional[MetricsCollector] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.endpoint = endpoint
        self.api_version = api_version
        self.metrics = metrics
        self._client = httpx.AsyncClient(
            base_url=f"{endpoint.base_url}{API_PREFIX}",
            headers={
                "Ocp-Apim-Subscription-Key": endpoint.access_key,
                "Content-Type": "application/json",
            },
            params={"api-version": api_version},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "DocumentModelClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, operation: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        start_time = time.time()
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            if self.metrics:
                self.metrics.record_remote_request(operation, "transport_error", time.time() - start_time)
            logger.warning(
                "Request failed",
                service=self.endpoint.name,
                operation=operation,
                error=str(e)
            )
            raise

        if self.metrics:
            self.metrics.record_remote_request(operation, str(response.status_code), time.time() - start_time)

        if response.status_code == 404:
            raise ModelNotFoundError(operation, 404, _error_message(response))
        if response.is_error:
            raise RemoteRequestError(operation, response.status_code, _error_message(response))
        return response

    async def list_models(self) -> List[Dict[str, Any]]:
        response = await self._request("list_models", "GET", "/documentModels")
        models = _json_object(response, "list_models").get("value", [])
        if not isinstance(models, list):
            raise ValueError("list_models returned a non-list value")
        return models

    async def get_model(self, model_name: str) -> Dict[str, Any]:
        response = await self._request("get_model", "GET", f"/documentModels/{model_name}")
        return _json_object(response, "get_model")

    async def get_model_raw(self, model_name: str) -> str:
        """Model descriptor as the exact text the service returned."""
        response = await self._request("get_model", "GET", f"/documentModels/{model_name}")
        return response.text

    async def delete_model(self, model_name: str) -> None:
        await self._request("delete_model", "DELETE", f"/documentModels/{model_name}")
        logger.info("Model deleted", service=self.endpoint.name, model_name=model_name)

    async def authorize_copy(self, model_name: str, description: str = "") -> Dict[str, Any]:
        """Ask this (target) service for a single-use copy authorization."""
        response = await self._request(
            "authorize_copy",
            "POST",
            "/documentModels:authorizeCopy",
            json={"modelId": model_name, "description": description},
        )
        return response.json()

    async def copy_model_to(self, model_name: str, authorization: Dict[str, Any]) -> Optional[str]:
        """Start copying a model from this (source) service.

        Returns the operation location, or ``None`` when the service did not
        send one.
        """
        response = await self._request(
            "copy_model_to",
            "POST",
            f"/documentModels/{model_name}:copyTo",
            json=authorization,
        )
        return self._operation_location(response)

    async def begin_analyze(self, model_name: str, document_url: str) -> Optional[str]:
        response = await self._request(
            "analyze",
            "POST",
            f"/documentModels/{model_name}:analyze",
            json={"urlSource": document_url},
        )
        return self._operation_location(response)

    async def get_operation_status(self, handle: OperationHandle) -> Dict[str, Any]:
        # Absolute URL: base_url is not applied, api-version is merged by key.
        response = await self._request("operation_status", "GET", handle.status_url)
        return _json_object(response, "operation_status")

    @staticmethod
    def _operation_location(response: httpx.Response) -> Optional[str]:
        location = response.headers.get("Operation-Location")
        if location:
            return location
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict):
            return body.get("operationLocation")
        return None


ClientFactory = Callable[[ServiceEndpoint], DocumentModelClient]


def create_client_factory(
    api_version: str = "2024-11-30",
    timeout: float = 30.0,
    metrics: Optional[MetricsCollector] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> ClientFactory:
    """Factory producing identically configured clients per endpoint."""
    def factory(endpoint: ServiceEndpoint) -> DocumentModelClient:
        return DocumentModelClient(
            endpoint,
            api_version=api_version,
            timeout=timeout,
            metrics=metrics,
            transport=transport,
        )
    return factory
