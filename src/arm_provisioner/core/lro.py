"""Handles for long-running ARM operations.

ARM reports asynchronous work in one of three ways:

- an ``Azure-AsyncOperation`` header pointing at a status resource whose body
  carries ``status`` (``InProgress`` / ``Succeeded`` / ``Failed`` / ``Canceled``)
- a ``Location`` header that answers ``202`` until the work is done
- neither, with ``properties.provisioningState`` on the resource itself

Some APIs report nothing useful at all and have to be polled until a resource
property settles, which ``ResourceStatePoller`` covers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from arm_provisioner.core.errors import NotFoundError

if TYPE_CHECKING:
    from collections.abc import Collection

    from arm_provisioner.core.arm_client import ArmClient

logger = logging.getLogger(__name__)


class OperationState(str, Enum):
    IN_PROGRESS = "InProgress"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELED = "Canceled"

    @property
    def terminal(self) -> bool:
        return self is not OperationState.IN_PROGRESS

    @classmethod
    def from_status(cls, status: str | None) -> OperationState:
        """Map a remote status string onto a state. Unknown values are in progress."""
        normalized = (status or "").lower()
        if normalized == "succeeded":
            return cls.SUCCEEDED
        if normalized == "failed":
            return cls.FAILED
        if normalized in ("canceled", "cancelled"):
            return cls.CANCELED
        return cls.IN_PROGRESS


@dataclass(frozen=True)
class OperationStatus:
    state: OperationState
    status: str
    error: dict[str, Any] | None = None

    @property
    def terminal(self) -> bool:
        return self.state.terminal


SUCCEEDED = OperationStatus(OperationState.SUCCEEDED, "Succeeded")


class OperationHandle(Protocol):
    """An in-flight remote operation, owned by the waiter until terminal."""

    description: str

    @property
    def retry_after(self) -> float | None:
        """Server-suggested delay before the next poll, if any."""

    def poll(self, *, timeout: float | None = None) -> OperationStatus:
        """Fetch the current status. *timeout* bounds the underlying HTTP call."""


def parse_retry_after(headers: Any) -> float | None:
    value = headers.get("Retry-After") if headers is not None else None
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except (TypeError, ValueError):
        return None


class CompletedOperation:
    """An operation the remote finished synchronously."""

    def __init__(self, description: str, status: OperationStatus = SUCCEEDED) -> None:
        self.description = description
        self._status = status

    @property
    def retry_after(self) -> float | None:
        return None

    def poll(self, *, timeout: float | None = None) -> OperationStatus:
        _ = timeout
        return self._status


class ArmAsyncOperation:
    """Follows ARM's async-operation protocol for one PUT/PATCH/DELETE."""

    def __init__(
        self,
        client: ArmClient,
        *,
        method: str,
        resource_url: str,
        api_version: str,
        async_url: str | None = None,
        location_url: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        self._client = client
        self._method = method.upper()
        self._resource_url = resource_url
        self._api_version = api_version
        self._async_url = async_url
        self._location_url = location_url
        self._retry_after = retry_after
        self.description = f"{self._method} {resource_url}"

    @property
    def retry_after(self) -> float | None:
        return self._retry_after

    def poll(self, *, timeout: float | None = None) -> OperationStatus:
        if self._async_url is not None:
            return self._poll_async_operation(timeout)
        if self._location_url is not None:
            return self._poll_location(timeout)
        return self._poll_provisioning_state(timeout)

    def _poll_async_operation(self, timeout: float | None) -> OperationStatus:
        assert self._async_url is not None
        response = self._client.send("GET", self._async_url, timeout=timeout)
        self._client.raise_for_status(response)
        self._retry_after = parse_retry_after(response.headers)
        body = response.json() or {}
        status = body.get("status", "InProgress")
        logger.debug("Async operation for %s: %s", self.description, status)
        return OperationStatus(OperationState.from_status(status), status, body.get("error"))

    def _poll_location(self, timeout: float | None) -> OperationStatus:
        assert self._location_url is not None
        response = self._client.send("GET", self._location_url, timeout=timeout)
        self._retry_after = parse_retry_after(response.headers)
        if response.status_code == 202:
            return OperationStatus(OperationState.IN_PROGRESS, "Accepted")
        if response.status_code == 404 and self._method == "DELETE":
            return SUCCEEDED
        self._client.raise_for_status(response)
        return SUCCEEDED

    def _poll_provisioning_state(self, timeout: float | None) -> OperationStatus:
        response = self._client.send(
            "GET", self._resource_url, api_version=self._api_version, timeout=timeout
        )
        if response.status_code == 404 and self._method == "DELETE":
            return SUCCEEDED
        self._client.raise_for_status(response)
        self._retry_after = parse_retry_after(response.headers)
        body = response.json() or {}
        status = provisioning_state(body) or "Succeeded"
        return OperationStatus(OperationState.from_status(status), status)


def provisioning_state(body: dict[str, Any] | None) -> str | None:
    if not body:
        return None
    props = body.get("properties") or {}
    return props.get("provisioningState")


class ResourceStatePoller:
    """Polls a resource until a property settles on a target value.

    ``required_occurrences`` consecutive target observations are needed before
    the poller reports success; a 404 counts as the pending ``ResponseNotFound``
    state because freshly created resources can take a while to become visible.
    """

    NOT_FOUND = "ResponseNotFound"

    def __init__(
        self,
        client: ArmClient,
        *,
        resource_url: str,
        api_version: str,
        state_path: str,
        pending: Collection[str],
        target: Collection[str],
        required_occurrences: int = 1,
    ) -> None:
        self._client = client
        self._resource_url = resource_url
        self._api_version = api_version
        self._state_path = state_path.split(".")
        self._pending = set(pending)
        self._target = set(target)
        self._required = max(required_occurrences, 1)
        self._seen = 0
        self.description = f"state of {resource_url}"

    @property
    def retry_after(self) -> float | None:
        return None

    def _read_state(self, timeout: float | None) -> str:
        try:
            body = self._client.get_json(
                self._resource_url, api_version=self._api_version, timeout=timeout
            )
        except NotFoundError:
            return self.NOT_FOUND
        current: Any = body
        for key in self._state_path:
            current = current.get(key) if isinstance(current, dict) else None
        return str(current) if current is not None else "Unknown"

    def poll(self, *, timeout: float | None = None) -> OperationStatus:
        state = self._read_state(timeout)
        if state in self._target:
            self._seen += 1
            if self._seen >= self._required:
                return OperationStatus(OperationState.SUCCEEDED, state)
            return OperationStatus(OperationState.IN_PROGRESS, state)

        self._seen = 0
        if state in self._pending:
            return OperationStatus(OperationState.IN_PROGRESS, state)
        return OperationStatus(
            OperationState.FAILED,
            state,
            {"code": "UnexpectedState", "message": f"unexpected state {state!r}"},
        )
