"""Local state locking."""

from __future__ import annotations

import fcntl
import logging
import time
from pathlib import Path
from typing import IO, TYPE_CHECKING

from arm_provisioner.engine.errors import StateLockError

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)

_RETRY_INTERVAL = 0.1


class StateLock:
    """Exclusive ``flock`` on ``<state>.lock`` for the lifetime of the context.

    With ``timeout=None`` the lock blocks until available; otherwise
    ``StateLockError`` is raised once *timeout* seconds pass.
    """

    def __init__(self, state_path: Path, *, timeout: float | None = None) -> None:
        self._lock_path = Path(str(state_path) + ".lock")
        self._timeout = timeout
        self._file: IO[str] | None = None

    def __enter__(self) -> StateLock:
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._lock_path.open("a+", encoding="utf-8")
        try:
            self._acquire(self._file)
        except (OSError, StateLockError) as e:
            self._file.close()
            self._file = None
            if isinstance(e, StateLockError):
                raise
            raise StateLockError(str(e)) from e
        logger.debug("Acquired state lock %s", self._lock_path)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._file is None:
            return
        try:
            fcntl.flock(self._file.fileno(), fcntl.LOCK_UN)
        finally:
            self._file.close()
            self._file = None

    def _acquire(self, file: IO[str]) -> None:
        if self._timeout is None:
            fcntl.flock(file.fileno(), fcntl.LOCK_EX)
            return

        deadline = time.monotonic() + self._timeout
        while True:
            try:
                fcntl.flock(file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    raise StateLockError(
                        f"State is locked by another process ({self._lock_path})"
                    ) from None
                time.sleep(_RETRY_INTERVAL)
