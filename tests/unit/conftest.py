"""Shared fixtures for unit tests."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest

from arm_provisioner.config import load
from arm_provisioner.core.errors import NotFoundError
from arm_provisioner.core.lro import CompletedOperation
from arm_provisioner.engine.handlers import EngineContext
from arm_provisioner.engine.waiter import Waiter

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from arm_provisioner.config.schema import Config
    from arm_provisioner.core.resource_id import ResourceId
    from arm_provisioner.engine.waiter import CancellationToken

SUBSCRIPTION = "00000000-0000-0000-0000-000000000000"

_ARM_ENV_VARS = (
    "ARM_SUBSCRIPTION_ID",
    "ARM_TENANT_ID",
    "ARM_CLIENT_ID",
    "ARM_CLIENT_SECRET",
    "ARM_ENVIRONMENT",
    "ARM_RESOURCE_MANAGER_ENDPOINT",
    "ARM_POLL_INTERVAL",
    "ARM_MAX_RETRIES",
    "ARM_LOG",
)


@pytest.fixture(autouse=True)
def _clean_arm_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove ARM_* env vars so unit tests don't leak host config."""
    for var in _ARM_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., Config]:
    """Factory fixture: write YAML + optional .env, return loaded Config."""

    def _make(yaml_str: str, *, dotenv: str | None = None) -> Config:
        (tmp_path / "config.yaml").write_text(yaml_str)
        if dotenv is not None:
            (tmp_path / ".env").write_text(dotenv)
        return load(tmp_path / "config.yaml")

    return _make


class FakeClock:
    """Deterministic clock: ``sleep`` advances ``now`` instantly."""

    def __init__(self, start: float = 1000.0) -> None:
        self.t = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.t

    def sleep(self, seconds: float, cancel: CancellationToken | None = None) -> None:
        _ = cancel
        self.sleeps.append(seconds)
        self.t += seconds


def _merge(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class FakeRemote:
    """In-memory ``RemoteClient`` keyed by ARM ID. Every operation completes at once."""

    def __init__(self) -> None:
        self.store: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.payloads: list[dict[str, Any]] = []

    def seed(self, resource_id: ResourceId, body: dict[str, Any]) -> None:
        self.store[resource_id.id] = {"id": resource_id.id, **copy.deepcopy(body)}

    def get(self, resource_id: ResourceId) -> dict[str, Any] | None:
        self.calls.append(("get", resource_id.id))
        body = self.store.get(resource_id.id)
        return copy.deepcopy(body) if body is not None else None

    def create(self, resource_id: ResourceId, payload: dict[str, Any]) -> CompletedOperation:
        self.calls.append(("put", resource_id.id))
        self.payloads.append(copy.deepcopy(payload))
        self.store[resource_id.id] = {"id": resource_id.id, **copy.deepcopy(payload)}
        return CompletedOperation(f"PUT {resource_id.id}")

    def update(self, resource_id: ResourceId, payload: dict[str, Any]) -> CompletedOperation:
        self.calls.append(("patch", resource_id.id))
        self.payloads.append(copy.deepcopy(payload))
        if resource_id.id not in self.store:
            raise NotFoundError(f"{resource_id.id} not found")
        self.store[resource_id.id] = _merge(self.store[resource_id.id], payload)
        return CompletedOperation(f"PATCH {resource_id.id}")

    def delete(self, resource_id: ResourceId) -> CompletedOperation:
        self.calls.append(("delete", resource_id.id))
        if self.store.pop(resource_id.id, None) is None:
            raise NotFoundError(f"{resource_id.id} not found")
        return CompletedOperation(f"DELETE {resource_id.id}")

    def mutations(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] != "get"]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def ctx(remote: FakeRemote, clock: FakeClock) -> EngineContext:
    provider = MagicMock()
    provider.subscription_id = SUBSCRIPTION
    provider.resources.return_value = remote
    return EngineContext(
        provider=provider,
        subscription_id=SUBSCRIPTION,
        waiter=Waiter(clock=clock, poll_interval=15),
    )
