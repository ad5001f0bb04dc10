"""Tests for the ARM REST client and error classification."""

from __future__ import annotations

import json
import time
from typing import Any
from unittest.mock import MagicMock

import pytest
from azure.core.credentials import AccessToken
from azure.core.exceptions import HttpResponseError, ServiceRequestError
from azure.core.pipeline.transport import HttpTransport
from azure.mgmt.core.exceptions import ARMErrorFormat

from arm_provisioner.core.arm_client import (
    ENDPOINTS,
    ArmClient,
    ArmResourceClient,
    classify_error,
)
from arm_provisioner.core.errors import (
    ConflictError,
    NotFoundError,
    RemoteRejectedError,
    ThrottledError,
    TransientNetworkError,
)
from arm_provisioner.core.lro import ArmAsyncOperation, CompletedOperation
from arm_provisioner.resources.ids import ResourceGroupId

RG_ID = ResourceGroupId(subscription_id="sub", name="rg1")


def _response(
    status_code: int = 200,
    body: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    reason: str = "",
) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.reason = reason
    resp.headers = headers or {}
    resp.json.return_value = body
    resp.content = json.dumps(body).encode() if body is not None else b""
    resp.text.return_value = json.dumps(body) if body is not None else ""
    return resp


def _http_error(
    status_code: int, code: str, message: str, headers: dict[str, str] | None = None
) -> HttpResponseError:
    resp = _response(
        status_code,
        {"error": {"code": code, "message": message}},
        headers=headers,
        reason="Reason",
    )
    return HttpResponseError(response=resp, error_format=ARMErrorFormat)


def _client() -> tuple[ArmClient, MagicMock]:
    pipeline = MagicMock()
    pipeline.format_url.side_effect = lambda url: (
        ENDPOINTS["public"] + url if url.startswith("/") else url
    )
    return ArmClient(pipeline_client=pipeline), pipeline


class TestClassifyError:
    def test_not_found(self) -> None:
        err = classify_error(_http_error(404, "ResourceNotFound", "no such group"))
        assert isinstance(err, NotFoundError)
        assert "no such group" in str(err)

    def test_conflict(self) -> None:
        err = classify_error(_http_error(409, "AnotherOperationInProgress", "busy"))
        assert isinstance(err, ConflictError)
        assert err.code == "AnotherOperationInProgress"
        assert err.status_code == 409

    def test_throttled_carries_retry_after(self) -> None:
        err = classify_error(_http_error(429, "TooMany", "slow down", {"Retry-After": "12"}))
        assert isinstance(err, ThrottledError)
        assert err.retry_after == 12.0

    @pytest.mark.parametrize("status", [408, 500, 503])
    def test_transient(self, status: int) -> None:
        err = classify_error(_http_error(status, "Internal", "oops"))
        assert isinstance(err, TransientNetworkError)

    def test_validation_rejection_is_not_retried_class(self) -> None:
        err = classify_error(_http_error(400, "InvalidParameter", "sku is wrong"))
        assert type(err) is RemoteRejectedError
        assert err.code == "InvalidParameter"
        assert err.remote_message == "sku is wrong"
        assert "(InvalidParameter) sku is wrong" in str(err)


class TestArmClient:
    def test_requires_credential_or_pipeline(self) -> None:
        with pytest.raises(ValueError, match="credential"):
            ArmClient()

    def test_send_builds_request(self) -> None:
        client, pipeline = _client()
        pipeline.send_request.return_value = _response()

        client.send("PUT", RG_ID.id, api_version="2021-04-01", json={"a": 1}, timeout=5)

        request = pipeline.send_request.call_args.args[0]
        assert request.method == "PUT"
        assert request.url.startswith(ENDPOINTS["public"] + RG_ID.id)
        assert "api-version=2021-04-01" in request.url
        assert pipeline.send_request.call_args.kwargs == {
            "connection_timeout": 5,
            "read_timeout": 5,
        }

    def test_send_without_timeout_passes_no_kwargs(self) -> None:
        client, pipeline = _client()
        pipeline.send_request.return_value = _response()
        client.send("GET", RG_ID.id)
        assert pipeline.send_request.call_args.kwargs == {}

    def test_connection_failure_is_transient(self) -> None:
        client, pipeline = _client()
        pipeline.send_request.side_effect = ServiceRequestError("connection reset")
        with pytest.raises(TransientNetworkError, match="connection reset"):
            client.send("GET", RG_ID.id)

    def test_raise_for_status_ok(self) -> None:
        ArmClient.raise_for_status(_response(204))

    def test_raise_for_status_classifies(self) -> None:
        resp = _response(409, {"error": {"code": "Conflict", "message": "in use"}})
        with pytest.raises(ConflictError) as exc_info:
            ArmClient.raise_for_status(resp)
        assert isinstance(exc_info.value.__cause__, HttpResponseError)

    def test_get_json(self) -> None:
        client, pipeline = _client()
        pipeline.send_request.return_value = _response(body={"name": "rg1"})
        assert client.get_json(RG_ID.id, api_version="v") == {"name": "rg1"}


class TestOperationFrom:
    def _op(self, response: MagicMock, method: str = "PUT") -> Any:
        client, _ = _client()
        return client.operation_from(response, method=method, url=RG_ID.id, api_version="v")

    def test_async_operation_header(self) -> None:
        op = self._op(
            _response(
                201,
                {},
                headers={
                    "Azure-AsyncOperation": "https://x/op",
                    "Location": "https://x/loc",
                    "Retry-After": "5",
                },
            )
        )
        assert isinstance(op, ArmAsyncOperation)
        assert op.retry_after == 5.0

    def test_location_header(self) -> None:
        op = self._op(_response(202, headers={"Location": "https://x/loc"}), method="DELETE")
        assert isinstance(op, ArmAsyncOperation)

    def test_no_content_is_complete(self) -> None:
        assert isinstance(self._op(_response(204), method="DELETE"), CompletedOperation)

    def test_synchronous_delete_is_complete(self) -> None:
        assert isinstance(self._op(_response(200), method="DELETE"), CompletedOperation)

    def test_succeeded_body_is_complete(self) -> None:
        body = {"properties": {"provisioningState": "Succeeded"}}
        assert isinstance(self._op(_response(200, body)), CompletedOperation)

    def test_body_without_state_is_complete(self) -> None:
        assert isinstance(self._op(_response(200, {"location": "westeurope"})), CompletedOperation)

    def test_pending_body_polls_the_resource(self) -> None:
        body = {"properties": {"provisioningState": "Accepted"}}
        assert isinstance(self._op(_response(201, body)), ArmAsyncOperation)


class TestArmResourceClient:
    def test_get_missing_returns_none(self) -> None:
        client, pipeline = _client()
        pipeline.send_request.return_value = _response(404)
        assert ArmResourceClient(client, "v").get(RG_ID) is None

    def test_get_returns_body(self) -> None:
        client, pipeline = _client()
        pipeline.send_request.return_value = _response(200, {"location": "westeurope"})
        assert client.resources("v").get(RG_ID) == {"location": "westeurope"}

    def test_get_error_raises(self) -> None:
        client, pipeline = _client()
        pipeline.send_request.return_value = _response(
            403, {"error": {"code": "AuthorizationFailed", "message": "denied"}}
        )
        with pytest.raises(RemoteRejectedError, match="denied"):
            client.resources("v").get(RG_ID)

    @pytest.mark.parametrize(
        "call,method",
        [("create", "PUT"), ("update", "PATCH")],
    )
    def test_mutations_send_payload(self, call: str, method: str) -> None:
        client, pipeline = _client()
        pipeline.send_request.return_value = _response(200, {"tags": {"a": "b"}})

        op = getattr(client.resources("v"), call)(RG_ID, {"tags": {"a": "b"}})

        request = pipeline.send_request.call_args.args[0]
        assert request.method == method
        assert json.loads(request.content) == {"tags": {"a": "b"}}
        assert isinstance(op, CompletedOperation)

    def test_delete_sends_no_body(self) -> None:
        client, pipeline = _client()
        pipeline.send_request.return_value = _response(202, headers={"Location": "https://x/l"})

        op = client.resources("v").delete(RG_ID)

        request = pipeline.send_request.call_args.args[0]
        assert request.method == "DELETE"
        assert not request.content
        assert isinstance(op, ArmAsyncOperation)


class _StaticCredential:
    def get_token(self, *scopes: str, **kwargs: Any) -> AccessToken:
        _ = scopes, kwargs
        return AccessToken("token", int(time.time()) + 3600)


class _Sent(Exception):
    pass


class _RecordingTransport(HttpTransport):
    """Records outgoing requests instead of opening connections."""

    def __init__(self) -> None:
        self.requests: list[Any] = []

    def send(self, request: Any, **kwargs: Any) -> Any:
        _ = kwargs
        self.requests.append(request)
        raise _Sent(request.url)

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __exit__(self, *args: Any) -> None:
        pass


class TestRealPipeline:
    @pytest.mark.parametrize("environment", ["public", "china"])
    def test_relative_ids_resolve_against_the_endpoint(self, environment: str) -> None:
        transport = _RecordingTransport()
        endpoint = ENDPOINTS[environment]
        client = ArmClient(_StaticCredential(), endpoint=endpoint, transport=transport)

        with pytest.raises(_Sent):
            client.resources("2021-04-01").get(RG_ID)

        [request] = transport.requests
        assert request.method == "GET"
        assert request.url.startswith(f"{endpoint}/subscriptions/sub/resourceGroups/rg1")
        assert "api-version=2021-04-01" in request.url
        assert request.headers["Authorization"] == "Bearer token"

    def test_absolute_urls_pass_through(self) -> None:
        transport = _RecordingTransport()
        client = ArmClient(_StaticCredential(), transport=transport)
        status_url = "https://management.azure.com/providers/Microsoft.AVS/operations/op1"

        with pytest.raises(_Sent):
            client.send("GET", status_url)

        assert transport.requests[0].url == status_url
