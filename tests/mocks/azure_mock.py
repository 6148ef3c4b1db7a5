"""
Mock Azure resource management for testing.

FakeResourceExecutor simulates the remote control plane in memory:
create-or-update is idempotent by name, deleting a resource group
cascades to everything inside it, and any step can be made to fail.
MockPoller stands in for SDK long-running operation pollers.

RecordingAdapter and FakeCredential let the real management clients run
without a network: every request is recorded and answered with a
succeeded ARM resource, so tests can inspect the exact request bodies.
"""

import io
import json
import time
from typing import Any, Dict, List, Optional
from unittest.mock import Mock
from urllib.parse import urlparse

from azure.core.credentials import AccessToken
from requests.adapters import HTTPAdapter
from urllib3 import HTTPResponse


class MockPoller:
    """Mock Azure Poller for long-running operations."""

    def __init__(self, result_value: Any = None, error: Optional[Exception] = None):
        self._result = result_value
        self._error = error
        self._done = False

    def result(self, timeout: Optional[float] = None):
        """Return the result of the operation, or raise its error."""
        self._done = True
        if self._error is not None:
            raise self._error
        return self._result

    def done(self) -> bool:
        """Check if operation is done."""
        return self._done


def mock_resource(resource_id: str) -> Mock:
    """SDK model stand-in exposing only ``id``."""
    return Mock(id=resource_id)


class FakeResourceExecutor:
    """In-memory ResourceExecutor.

    Args:
        fail_on: Step keys whose creation raises ``error``
            (use "resource_group" for the resource group)
        error: Exception raised for failing steps
        delete_error: Exception raised by delete_resource_group
    """

    def __init__(
        self,
        fail_on: Optional[set] = None,
        error: Optional[Exception] = None,
        delete_error: Optional[Exception] = None,
    ):
        self.fail_on = set(fail_on or ())
        self.error = error or Exception("Deployment failed")
        self.delete_error = delete_error
        self.calls: List[tuple] = []
        # resource group name -> {(kind, name): id}
        self.groups: Dict[str, Dict[tuple, str]] = {}
        self.parameters: Dict[str, Dict[str, Any]] = {}

    def create_resource_group(self, name: str, parameters: Dict[str, Any]) -> str:
        self.calls.append(("create", "resource_group", name))
        if "resource_group" in self.fail_on:
            raise self.error
        self.groups.setdefault(name, {})
        self.parameters[name] = parameters
        return f"/subscriptions/sub-id/resourceGroups/{name}"

    def create_or_update(
        self,
        step,
        resource_group: str,
        parameters: Dict[str, Any],
        parent_name: Optional[str] = None,
    ) -> str:
        self.calls.append(("create", step.kind.value, step.name))
        if step.key in self.fail_on:
            raise self.error
        if resource_group not in self.groups:
            raise Exception(f"ResourceGroupNotFound: {resource_group}")

        resources = self.groups[resource_group]
        path = f"{parent_name}/{step.name}" if parent_name else step.name
        resource_id = resources.setdefault(
            (step.kind.value, path),
            f"/subscriptions/sub-id/resourceGroups/{resource_group}/{step.kind.value}/{path}",
        )
        self.parameters[step.name] = parameters
        return resource_id

    def delete_resource_group(self, name: str) -> None:
        self.calls.append(("delete", "resource_group", name))
        if self.delete_error is not None:
            raise self.delete_error
        self.groups.pop(name, None)

    @property
    def created_kinds(self) -> List[str]:
        return [kind for action, kind, _ in self.calls if action == "create"]

    @property
    def delete_calls(self) -> List[tuple]:
        return [call for call in self.calls if call[0] == "delete"]

    def resource_count(self) -> int:
        """Resources remaining remotely, resource groups included."""
        return sum(1 + len(resources) for resources in self.groups.values())


class FakeCredential:
    """Token credential that never contacts Entra ID."""

    def get_token(self, *scopes: str, **kwargs: Any) -> AccessToken:
        return AccessToken("fake-token", int(time.time()) + 3600)


class RecordingAdapter(HTTPAdapter):
    """requests adapter that records requests and fakes ARM responses.

    PUT requests are answered with a resource whose provisioningState is
    Succeeded and whose id is the request path, so long-running operations
    finish on the initial response.
    """

    def __init__(self):
        super().__init__()
        self.requests: List[Any] = []

    def send(self, request, **kwargs):
        self.requests.append(request)
        path = urlparse(request.url).path
        body = {
            "id": path,
            "name": path.rsplit("/", 1)[-1],
            "properties": {"provisioningState": "Succeeded"},
        }
        data = json.dumps(body).encode("utf-8")
        raw = HTTPResponse(
            body=io.BytesIO(data),
            headers={"Content-Type": "application/json", "Content-Length": str(len(data))},
            status=200,
            reason="OK",
            preload_content=False,
            decode_content=False,
        )
        return self.build_response(request, raw)

    def bodies(self, method: str = "PUT") -> Dict[str, Dict[str, Any]]:
        """Decoded JSON request bodies keyed by resource name."""
        result = {}
        for request in self.requests:
            if request.method == method and request.body:
                name = urlparse(request.url).path.rsplit("/", 1)[-1]
                result[name] = json.loads(request.body)
        return result

    def methods(self) -> List[tuple]:
        return [(request.method, urlparse(request.url).path) for request in self.requests]
