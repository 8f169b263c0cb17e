"""Shared fixtures: in-memory Document Intelligence services behind httpx.MockTransport."""

import json

import httpx
import pytest

from libs.docintel.client import create_client_factory
from libs.docintel.endpoints import ServiceRef, StaticResolver
from libs.docintel.operations import OperationPoller, PollConfig

API_VERSION = "2024-11-30"
PREFIX = "/documentintelligence"


def error_response(status_code: int, message: str = "Request failed") -> httpx.Response:
    return httpx.Response(status_code, json={"error": {"code": f"Http{status_code}", "message": message}})


class FakeDocIntelService:
    """Just enough of the documentModels REST surface to drive the workflows.

    ``operation_statuses`` is consumed one item per status query; the last item
    repeats. Items are a status string, a full payload dict, an HTTP status
    code, a list (a well-formed but wrong-shaped body), or ``"network-error"``.
    """

    def __init__(self, name, models=None):
        self.name = name
        self.host = f"{name}.cognitiveservices.azure.com"
        self.base_url = f"https://{self.host}/"
        self.models = dict(models or {})
        self.calls = []
        self.api_versions = []

        self.get_model_status = None
        self.delete_status = 204
        self.authorize_status = 200
        self.copy_status = 202
        self.authorization = {
            "targetResourceId": f"/subscriptions/sub/resourceGroups/rg/providers/Microsoft.CognitiveServices/accounts/{name}",
            "targetResourceRegion": "westeurope",
            "targetModelId": "",
            "targetModelLocation": f"https://{self.host}/documentintelligence/documentModels/",
            "accessToken": "single-use-token",
            "expirationDateTime": "2026-10-20T00:00:00Z",
        }
        self.copy_location = f"https://{self.host}{PREFIX}/operations/op-123?api-version={API_VERSION}"
        self.analyze_location = None
        self.list_body = None
        self.operation_statuses = ["succeeded"]

        self.authorize_bodies = []
        self.copy_bodies = []
        self.analyze_bodies = []

    @property
    def status_queries(self):
        return [c for c in self.calls if c[0] == "GET" and ("/operations/" in c[1] or "/analyzeResults/" in c[1])]

    def called(self, method, path):
        return (method, path) in self.calls

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        assert path.startswith(PREFIX), path
        path = path[len(PREFIX):]
        self.calls.append((request.method, path))
        self.api_versions.append(request.url.params.get("api-version"))

        if path.startswith("/operations/") or "/analyzeResults/" in path:
            return self._next_status(request)

        if request.method == "GET" and path == "/documentModels":
            if self.list_body is not None:
                return httpx.Response(200, json=self.list_body)
            return httpx.Response(200, json={"value": [{"modelId": m} for m in self.models]})

        if path == "/documentModels:authorizeCopy":
            body = json.loads(request.content)
            self.authorize_bodies.append(body)
            if self.authorize_status >= 400:
                return error_response(self.authorize_status, "Authorization denied")
            return httpx.Response(200, json={**self.authorization, "targetModelId": body["modelId"]})

        if path.endswith(":copyTo"):
            self.copy_bodies.append(json.loads(request.content))
            if self.copy_status >= 400:
                return error_response(self.copy_status, "Copy rejected")
            headers = {"Operation-Location": self.copy_location} if self.copy_location else {}
            return httpx.Response(self.copy_status, headers=headers)

        if path.endswith(":analyze"):
            model_name = path[len("/documentModels/"):-len(":analyze")]
            self.analyze_bodies.append(json.loads(request.content))
            location = self.analyze_location or (
                f"https://{self.host}{PREFIX}/documentModels/{model_name}/analyzeResults/res-1?api-version={API_VERSION}"
            )
            return httpx.Response(202, headers={"Operation-Location": location})

        if path.startswith("/documentModels/"):
            model_name = path[len("/documentModels/"):]
            if request.method == "GET":
                if self.get_model_status:
                    return error_response(self.get_model_status)
                if model_name in self.models:
                    return httpx.Response(200, json=self.models[model_name])
                return error_response(404, f"Model {model_name} not found")
            if request.method == "DELETE":
                if self.delete_status >= 400:
                    return error_response(self.delete_status, "Delete failed")
                self.models.pop(model_name, None)
                return httpx.Response(204)

        return error_response(400, f"Unexpected request {request.method} {path}")

    def _next_status(self, request: httpx.Request) -> httpx.Response:
        if len(self.operation_statuses) > 1:
            item = self.operation_statuses.pop(0)
        else:
            item = self.operation_statuses[0]

        if item == "network-error":
            raise httpx.ConnectError("Connection reset by peer", request=request)
        if isinstance(item, int):
            return error_response(item)
        if isinstance(item, (dict, list)):
            return httpx.Response(200, json=item)

        payload = {"status": item}
        if item == "failed":
            payload["error"] = {"code": "CopyFailed", "message": "Target model already exists"}
        return httpx.Response(200, json=payload)


class RecordingSleep:
    """Async stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def model_descriptor(model_id, doc_types=("invoice",)):
    return {
        "modelId": model_id,
        "description": "Custom extraction model",
        "createdDateTime": "2026-09-01T10:00:00Z",
        "apiVersion": API_VERSION,
        "docTypes": {doc_type: {"fieldSchema": {}} for doc_type in doc_types},
    }


@pytest.fixture
def source_service():
    return FakeDocIntelService("docintel-dev", models={"invoice-model": model_descriptor("invoice-model")})


@pytest.fixture
def target_service():
    return FakeDocIntelService("docintel-qa")


@pytest.fixture
def source_ref():
    return ServiceRef("docintel-dev", "rg-dev")


@pytest.fixture
def target_ref():
    return ServiceRef("docintel-qa", "rg-qa")


@pytest.fixture
def transport(source_service, target_service):
    services = {s.host: s for s in (source_service, target_service)}

    def handler(request):
        return services[request.url.host].handle(request)

    return httpx.MockTransport(handler)


@pytest.fixture
def resolver(source_service, target_service, source_ref, target_ref):
    return StaticResolver({
        (source_ref.name, source_ref.resource_group): (source_service.base_url, "source-key"),
        (target_ref.name, target_ref.resource_group): (target_service.base_url, "target-key"),
    })


@pytest.fixture
def client_factory(transport):
    return create_client_factory(api_version=API_VERSION, transport=transport)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def poller(recording_sleep):
    return OperationPoller(PollConfig(), sleep=recording_sleep)
