"""Remote error taxonomy for ARM operations."""

from __future__ import annotations

from typing import Any


class ArmError(Exception):
    """Base exception for errors raised while talking to ARM.

    Lifecycle controllers attach resource identity context via ``attach`` before
    re-raising so callers can tell which resource failed.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.resource_type: str | None = None
        self.resource_id: str | None = None
        self.resource_description: str | None = None

    def attach(
        self,
        *,
        resource_type: str,
        resource_id: str | None = None,
        description: str | None = None,
    ) -> None:
        """Record which resource this error belongs to (first caller wins)."""
        if self.resource_type is not None:
            return
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.resource_description = description

    def __str__(self) -> str:
        if self.resource_type is None:
            return self.message
        subject = self.resource_description or self.resource_id or "<unknown>"
        return f"{self.resource_type} {subject}: {self.message}"


class MalformedIdError(ArmError, ValueError):
    """Raised when a resource ID does not match the expected format."""

    def __init__(self, raw: str, reason: str) -> None:
        super().__init__(f"malformed resource ID {raw!r}: {reason}")
        self.raw = raw
        self.reason = reason


class AlreadyExistsError(ArmError):
    """Raised when creating a resource that already exists remotely."""

    def __init__(self, resource_id: str) -> None:
        super().__init__(
            f"a resource with the ID {resource_id!r} already exists - to be managed "
            "it needs to be imported into the state (see the `import` command)"
        )
        self.existing_id = resource_id


class NotFoundError(ArmError):
    """Raised when the remote resource (or operation) does not exist."""


class RemoteRejectedError(ArmError):
    """A 4xx validation-class rejection. Never retried."""

    def __init__(self, status_code: int, code: str | None, message: str) -> None:
        text = f"({code}) {message}" if code else message
        super().__init__(f"request rejected with status {status_code}: {text}")
        self.status_code = status_code
        self.code = code
        self.remote_message = message


class ConflictError(RemoteRejectedError):
    """HTTP 409: the remote refused a conflicting operation on the same identity."""


class ThrottledError(ArmError):
    """HTTP 429 after the pipeline exhausted its retries."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class TransientNetworkError(ArmError):
    """Connection failures and 5xx responses after the pipeline exhausted its retries."""


class RemoteOperationFailedError(ArmError):
    """An async operation reached a terminal failure state."""

    def __init__(self, status: str, error: dict[str, Any] | None) -> None:
        detail = ""
        if error:
            code = error.get("code")
            msg = error.get("message", "")
            detail = f": ({code}) {msg}" if code else f": {msg}"
        super().__init__(f"long-running operation finished with status {status!r}{detail}")
        self.status = status
        self.error = error


class OperationTimeoutError(ArmError):
    """The waiter's budget elapsed before the operation reached a terminal state."""

    def __init__(self, timeout: float, last_status: str | None) -> None:
        super().__init__(
            f"timed out after {timeout:g}s waiting for operation "
            f"(last observed status: {last_status or 'unknown'})"
        )
        self.timeout = timeout
        self.last_status = last_status


class OperationCanceledError(ArmError):
    """The caller canceled while an operation was being polled."""


class ConcurrentOperationError(ArmError):
    """A second lifecycle transition was started for a resource already in flight."""

    def __init__(self, resource_id: str, in_flight: str) -> None:
        super().__init__(
            f"{resource_id} is already {in_flight}; concurrent operations are not allowed"
        )
        self.resource_id = resource_id
        self.in_flight = in_flight
