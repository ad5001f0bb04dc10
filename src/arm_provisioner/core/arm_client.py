"""Generic ARM REST client built on azure-core's pipeline.

Transient failures (408/429/5xx and connection errors) are retried inside the
pipeline by ``RetryPolicy`` with exponential backoff, which only retries
idempotent methods. Whatever still fails afterwards is classified into the
``arm_provisioner.core.errors`` taxonomy.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from azure.core.exceptions import HttpResponseError, ServiceRequestError, ServiceResponseError
from azure.core.pipeline import policies
from azure.core.rest import HttpRequest
from azure.mgmt.core import ARMPipelineClient
from azure.mgmt.core.exceptions import ARMErrorFormat
from azure.mgmt.core.policies import (
    ARMAutoResourceProviderRegistrationPolicy,
    ARMChallengeAuthenticationPolicy,
    ARMHttpLoggingPolicy,
)

from arm_provisioner import __version__
from arm_provisioner.core.errors import (
    ArmError,
    ConflictError,
    NotFoundError,
    RemoteRejectedError,
    ThrottledError,
    TransientNetworkError,
)
from arm_provisioner.core.lro import (
    ArmAsyncOperation,
    CompletedOperation,
    OperationHandle,
    parse_retry_after,
    provisioning_state,
)

if TYPE_CHECKING:
    from azure.core.credentials import TokenCredential
    from azure.core.rest import HttpResponse

    from arm_provisioner.core.resource_id import ResourceId

logger = logging.getLogger(__name__)

ENDPOINTS: dict[str, str] = {
    "public": "https://management.azure.com",
    "usgovernment": "https://management.usgovcloudapi.net",
    "china": "https://management.chinacloudapi.cn",
}

DEFAULT_MAX_RETRIES = 4


def classify_error(exc: HttpResponseError) -> ArmError:
    """Translate an azure-core HTTP error into the provisioner's taxonomy."""
    status = exc.status_code or 0
    code = getattr(exc.error, "code", None) if exc.error is not None else None
    message = getattr(exc.error, "message", None) if exc.error is not None else None
    message = message or exc.reason or exc.message

    if status == 404:
        return NotFoundError(message or "not found")
    if status == 409:
        return ConflictError(status, code, message)
    if status == 429:
        headers = exc.response.headers if exc.response is not None else None
        return ThrottledError(
            f"request throttled: {message}", retry_after=parse_retry_after(headers)
        )
    if status == 408 or status >= 500:
        return TransientNetworkError(f"remote error {status}: {message}")
    return RemoteRejectedError(status, code, message)


def _build_pipeline_client(
    credential: TokenCredential, endpoint: str, max_retries: int, transport: Any = None
) -> ARMPipelineClient:
    scope = endpoint.rstrip("/") + "/.default"
    kwargs: dict[str, Any] = {"transport": transport} if transport is not None else {}
    return ARMPipelineClient(
        base_url=endpoint,
        policies=[
            policies.RequestIdPolicy(),
            policies.HeadersPolicy(),
            policies.UserAgentPolicy(sdk_moniker=f"arm-provisioner/{__version__}"),
            policies.ProxyPolicy(),
            policies.ContentDecodePolicy(),
            ARMAutoResourceProviderRegistrationPolicy(),
            policies.RetryPolicy(retry_total=max_retries),
            ARMChallengeAuthenticationPolicy(credential, scope),
            ARMHttpLoggingPolicy(),
        ],
        **kwargs,
    )


class ArmClient:
    """Thin wrapper around an ``ARMPipelineClient``.

    Pass ``pipeline_client`` to inject a pre-built (or mock) client, or
    ``transport`` to swap the HTTP layer under the real pipeline.
    """

    def __init__(
        self,
        credential: TokenCredential | None = None,
        *,
        endpoint: str = ENDPOINTS["public"],
        max_retries: int = DEFAULT_MAX_RETRIES,
        pipeline_client: Any = None,
        transport: Any = None,
    ) -> None:
        if pipeline_client is None:
            if credential is None:
                raise ValueError("A credential is required unless a pipeline client is injected")
            pipeline_client = _build_pipeline_client(
                credential, endpoint, max_retries, transport=transport
            )
        self._client = pipeline_client
        self.endpoint = endpoint

    def send(
        self,
        method: str,
        url: str,
        *,
        api_version: str | None = None,
        json: Any = None,
        timeout: float | None = None,
    ) -> HttpResponse:
        """Send one request. Relative URLs are resolved against the endpoint."""
        params = {"api-version": api_version} if api_version else None
        request = HttpRequest(method, self._client.format_url(url), params=params, json=json)
        kwargs: dict[str, Any] = {}
        if timeout is not None:
            kwargs["connection_timeout"] = timeout
            kwargs["read_timeout"] = timeout
        logger.debug("%s %s (api-version=%s)", method, url, api_version)
        try:
            return self._client.send_request(request, **kwargs)
        except (ServiceRequestError, ServiceResponseError) as exc:
            raise TransientNetworkError(f"{method} {url} failed: {exc}") from exc

    @staticmethod
    def raise_for_status(response: HttpResponse) -> None:
        if response.status_code < 400:
            return
        http_error = HttpResponseError(response=response, error_format=ARMErrorFormat)
        raise classify_error(http_error) from http_error

    def get_json(
        self, url: str, *, api_version: str, timeout: float | None = None
    ) -> dict[str, Any]:
        response = self.send("GET", url, api_version=api_version, timeout=timeout)
        self.raise_for_status(response)
        return response.json() or {}

    def operation_from(
        self, response: HttpResponse, *, method: str, url: str, api_version: str
    ) -> OperationHandle:
        """Build the handle matching how the initial response reports progress."""
        headers = response.headers
        async_url = headers.get("Azure-AsyncOperation")
        location_url = headers.get("Location")
        if async_url or location_url:
            return ArmAsyncOperation(
                self,
                method=method,
                resource_url=url,
                api_version=api_version,
                async_url=async_url,
                location_url=None if async_url else location_url,
                retry_after=parse_retry_after(headers),
            )

        description = f"{method.upper()} {url}"
        if response.status_code == 204 or method.upper() == "DELETE":
            return CompletedOperation(description)

        body = response.json() if response.content else None
        state = provisioning_state(body)
        if state is None or state.lower() == "succeeded":
            return CompletedOperation(description)
        return ArmAsyncOperation(self, method=method, resource_url=url, api_version=api_version)

    def resources(self, api_version: str) -> ArmResourceClient:
        return ArmResourceClient(self, api_version)


class RemoteClient(Protocol):
    """CRUD surface the lifecycle controllers talk to."""

    def get(self, resource_id: ResourceId) -> dict[str, Any] | None: ...

    def create(self, resource_id: ResourceId, payload: dict[str, Any]) -> OperationHandle: ...

    def update(self, resource_id: ResourceId, payload: dict[str, Any]) -> OperationHandle: ...

    def delete(self, resource_id: ResourceId) -> OperationHandle: ...


class ArmResourceClient:
    """Remote client for one resource family (one API version)."""

    def __init__(self, client: ArmClient, api_version: str) -> None:
        self._client = client
        self.api_version = api_version

    @property
    def arm(self) -> ArmClient:
        return self._client

    def get(self, resource_id: ResourceId) -> dict[str, Any] | None:
        """Return the remote state, or ``None`` when the resource does not exist."""
        response = self._client.send("GET", resource_id.id, api_version=self.api_version)
        if response.status_code == 404:
            return None
        self._client.raise_for_status(response)
        return response.json() or {}

    def _mutate(
        self, method: str, resource_id: ResourceId, payload: dict[str, Any] | None
    ) -> OperationHandle:
        url = resource_id.id
        response = self._client.send(method, url, api_version=self.api_version, json=payload)
        self._client.raise_for_status(response)
        return self._client.operation_from(
            response, method=method, url=url, api_version=self.api_version
        )

    def create(self, resource_id: ResourceId, payload: dict[str, Any]) -> OperationHandle:
        return self._mutate("PUT", resource_id, payload)

    def update(self, resource_id: ResourceId, payload: dict[str, Any]) -> OperationHandle:
        return self._mutate("PATCH", resource_id, payload)

    def delete(self, resource_id: ResourceId) -> OperationHandle:
        return self._mutate("DELETE", resource_id, None)
