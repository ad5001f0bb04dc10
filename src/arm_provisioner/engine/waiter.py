"""Long-running operation waiter."""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Protocol

from arm_provisioner.core.errors import (
    OperationCanceledError,
    OperationTimeoutError,
    RemoteOperationFailedError,
)
from arm_provisioner.core.lro import OperationState

if TYPE_CHECKING:
    from arm_provisioner.core.lro import OperationHandle, OperationStatus

logger = logging.getLogger(__name__)

MIN_POLL_INTERVAL = 1.0
DEFAULT_POLL_INTERVAL = 15.0


class Clock(Protocol):
    def now(self) -> float:
        """Monotonic seconds."""

    def sleep(self, seconds: float, cancel: CancellationToken | None = None) -> None:
        """Block for *seconds*, returning early when *cancel* fires."""


class SystemClock:
    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float, cancel: CancellationToken | None = None) -> None:
        if cancel is None:
            time.sleep(seconds)
            return
        cancel.wait(seconds)


class CancellationToken:
    """Thread-safe flag a caller sets to stop an in-progress wait."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def canceled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        return self._event.wait(seconds)


class Waiter:
    """Polls an ``OperationHandle`` until it is terminal.

    The interval between polls is ``poll_interval`` (or the server's
    ``Retry-After`` hint, when larger), never less than ``MIN_POLL_INTERVAL``
    and never past the deadline.
    """

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._clock = clock or SystemClock()
        self._poll_interval = max(poll_interval, MIN_POLL_INTERVAL)

    @property
    def clock(self) -> Clock:
        return self._clock

    def _interval(self, handle: OperationHandle, poll_interval: float | None) -> float:
        interval = self._poll_interval if poll_interval is None else poll_interval
        hint = handle.retry_after
        if hint is not None:
            interval = max(interval, hint)
        return max(interval, MIN_POLL_INTERVAL)

    def wait(
        self,
        handle: OperationHandle,
        *,
        timeout: float,
        poll_interval: float | None = None,
        cancel: CancellationToken | None = None,
    ) -> OperationStatus:
        """Block until *handle* succeeds.

        Raises:
            RemoteOperationFailedError: The operation ended ``Failed``/``Canceled``.
            OperationTimeoutError: *timeout* seconds elapsed first.
            OperationCanceledError: *cancel* fired.
        """
        deadline = self._clock.now() + timeout
        last_status: str | None = None

        while True:
            if cancel is not None and cancel.canceled:
                raise OperationCanceledError(f"canceled while waiting for {handle.description}")

            remaining = deadline - self._clock.now()
            if remaining <= 0:
                raise OperationTimeoutError(timeout, last_status)

            status = handle.poll(timeout=remaining)
            last_status = status.status
            logger.debug("Polled %s: %s", handle.description, status.status)

            if status.state is OperationState.SUCCEEDED:
                return status
            if status.terminal:
                raise RemoteOperationFailedError(status.status, status.error)

            remaining = deadline - self._clock.now()
            if remaining <= 0:
                raise OperationTimeoutError(timeout, last_status)
            self._clock.sleep(min(self._interval(handle, poll_interval), remaining), cancel)
