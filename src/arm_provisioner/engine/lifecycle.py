"""Generic ARM lifecycle controller.

Each resource family is a thin subclass of ``ArmResourceHandler`` declaring its
model, API version, update mode and import policy. The reconciliation pattern
lives here:

- **create**: optional existence check, PUT, wait, re-read
- **read**: GET; not found means "gone", never an error
- **update**: no-op without changes; PATCH of the changed fields (``delta``) or
  GET + in-memory patch + PUT of the whole body (``full``); wait, re-read
- **delete**: DELETE, wait; not found at any point counts as success

Transitions for the same resource ID are serialized: starting a second one
while the first is in flight raises ``ConcurrentOperationError``.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Literal

from arm_provisioner.core.errors import (
    AlreadyExistsError,
    ArmError,
    ConcurrentOperationError,
    NotFoundError,
)
from arm_provisioner.engine.handlers import R, ResourceHandler
from arm_provisioner.resources import mapper

if TYPE_CHECKING:
    from collections.abc import Iterator

    from arm_provisioner.core.arm_client import RemoteClient
    from arm_provisioner.core.lro import OperationHandle
    from arm_provisioner.core.resource_id import ResourceId
    from arm_provisioner.core.state import ResourceInstance
    from arm_provisioner.engine.handlers import EngineContext
    from arm_provisioner.resources.base import Resource

logger = logging.getLogger(__name__)

MINUTE = 60.0


class LifecycleState(str, Enum):
    ABSENT = "absent"
    CREATING = "creating"
    PRESENT = "present"
    UPDATING = "updating"
    DELETING = "deleting"


_IN_FLIGHT = {LifecycleState.CREATING, LifecycleState.UPDATING, LifecycleState.DELETING}


@dataclass(frozen=True)
class Timeouts:
    """Per-operation wait budgets, in seconds."""

    create: float = 30 * MINUTE
    read: float = 5 * MINUTE
    update: float = 30 * MINUTE
    delete: float = 30 * MINUTE


# Top-level keys ARM returns but rejects (or ignores) on PUT.
READ_ONLY_KEYS = ("id", "name", "type", "etag", "systemData")


class ArmResourceHandler(ResourceHandler[R]):
    """CRUD handler for one ARM resource family."""

    model: ClassVar[type[Resource]]
    api_version: ClassVar[str]
    update_mode: ClassVar[Literal["delta", "full"]] = "delta"
    requires_import: ClassVar[bool] = True
    timeouts: ClassVar[Timeouts] = Timeouts()

    def __init__(self) -> None:
        self._states: dict[str, LifecycleState] = {}
        self._states_lock = threading.Lock()

    # ── hooks ───────────────────────────────────────────────────────

    def client(self, ctx: EngineContext) -> RemoteClient:
        return ctx.provider.resources(self.api_version)

    def expand(self, desired: R) -> dict[str, Any]:
        """Creation payload."""
        return mapper.expand(desired)

    def expand_update(self, desired: R, changed: set[str]) -> dict[str, Any]:
        """PATCH payload carrying only *changed* fields."""
        return mapper.expand(desired, only=changed)

    def flatten(
        self, resource_id: ResourceId, body: dict[str, Any], carried: dict[str, Any]
    ) -> dict[str, Any]:
        return mapper.flatten(
            self.model,
            body,
            identity=self.model.identity_attrs(resource_id),
            carried=carried,
        )

    def wait(
        self,
        ctx: EngineContext,
        resource_id: ResourceId,
        handle: OperationHandle,
        *,
        timeout: float,
    ) -> None:
        """Block until *handle* is done."""
        _ = resource_id
        ctx.waiter.wait(handle, timeout=timeout, cancel=ctx.cancel)

    def await_ready(self, ctx: EngineContext, resource_id: ResourceId) -> None:
        """Extra readiness check after a create or update. No-op by default."""
        _ = ctx, resource_id

    # ── bookkeeping ─────────────────────────────────────────────────

    def state_of(self, resource_id: ResourceId) -> LifecycleState | None:
        with self._states_lock:
            return self._states.get(resource_id.id)

    @contextlib.contextmanager
    def _transition(
        self,
        resource_id: ResourceId,
        state: LifecycleState,
        settled: LifecycleState,
    ) -> Iterator[None]:
        key = resource_id.id
        with self._states_lock:
            current = self._states.get(key)
            if current in _IN_FLIGHT:
                raise ConcurrentOperationError(key, current.value)
            self._states[key] = state
        logger.debug("%s: %s -> %s", resource_id, current.value if current else "?", state.value)

        succeeded = False
        try:
            yield
            succeeded = True
        finally:
            with self._states_lock:
                if succeeded:
                    self._states[key] = settled
                elif current is not None:
                    self._states[key] = current
                else:
                    self._states.pop(key, None)

    @contextlib.contextmanager
    def _context(self, resource_id: ResourceId) -> Iterator[None]:
        try:
            yield
        except ArmError as exc:
            exc.attach(
                resource_type=self.model.resource_type,
                resource_id=resource_id.id,
                description=str(resource_id),
            )
            raise

    def _prior_id(self, prior: ResourceInstance) -> ResourceId:
        return self.model.id_type.parse(prior.resource_id)

    def _reread(
        self, client: RemoteClient, resource_id: ResourceId, carried: dict[str, Any]
    ) -> dict[str, Any]:
        body = client.get(resource_id)
        if body is None:
            raise NotFoundError(f"{resource_id} could not be found after the operation finished")
        return self.flatten(resource_id, body, carried)

    # ── CRUD ────────────────────────────────────────────────────────

    def create(self, ctx: EngineContext, desired: R) -> dict[str, Any]:
        resource_id = desired.resource_id(ctx.subscription_id)
        client = self.client(ctx)
        with (
            self._context(resource_id),
            self._transition(resource_id, LifecycleState.CREATING, LifecycleState.PRESENT),
        ):
            if self.requires_import:
                existing = client.get(resource_id)
                if existing is not None:
                    raise AlreadyExistsError(resource_id.id)

            logger.debug("Creating %s", resource_id)
            handle = client.create(resource_id, self.expand(desired))
            self.wait(ctx, resource_id, handle, timeout=self.timeouts.create)
            self.await_ready(ctx, resource_id)
            return self._reread(client, resource_id, desired.model_dump(mode="json"))

    def read(self, ctx: EngineContext, prior: ResourceInstance) -> dict[str, Any] | None:
        resource_id = self._prior_id(prior)
        with self._context(resource_id):
            body = self.client(ctx).get(resource_id)
            if body is None:
                logger.debug("%s was not found", resource_id)
                return None
            return self.flatten(resource_id, body, prior.attributes)

    def update(
        self,
        ctx: EngineContext,
        desired: R,
        prior: ResourceInstance,
        changed: set[str],
    ) -> dict[str, Any]:
        if not changed:
            return dict(prior.attributes)

        resource_id = self._prior_id(prior)
        client = self.client(ctx)
        with (
            self._context(resource_id),
            self._transition(resource_id, LifecycleState.UPDATING, LifecycleState.PRESENT),
        ):
            logger.debug(
                "Updating %s (%s): %s", resource_id, self.update_mode, ", ".join(sorted(changed))
            )
            if self.update_mode == "delta":
                handle = client.update(resource_id, self.expand_update(desired, changed))
            else:
                current = client.get(resource_id)
                if current is None:
                    raise NotFoundError(f"{resource_id} was not found for update")
                body = {k: v for k, v in current.items() if k not in READ_ONLY_KEYS}
                body = mapper.overlay(body, desired, only=changed)
                handle = client.create(resource_id, body)

            self.wait(ctx, resource_id, handle, timeout=self.timeouts.update)
            self.await_ready(ctx, resource_id)
            return self._reread(client, resource_id, desired.model_dump(mode="json"))

    def delete(self, ctx: EngineContext, prior: ResourceInstance) -> None:
        resource_id = self._prior_id(prior)
        client = self.client(ctx)
        with (
            self._context(resource_id),
            self._transition(resource_id, LifecycleState.DELETING, LifecycleState.ABSENT),
        ):
            logger.debug("Deleting %s", resource_id)
            try:
                handle = client.delete(resource_id)
                self.wait(ctx, resource_id, handle, timeout=self.timeouts.delete)
            except NotFoundError:
                logger.debug("%s was already gone", resource_id)

    def import_resource(
        self, ctx: EngineContext, resource_id: ResourceId, desired: R
    ) -> dict[str, Any]:
        with self._context(resource_id):
            body = self.client(ctx).get(resource_id)
            if body is None:
                raise NotFoundError(f"cannot import {resource_id}: it does not exist")
            return self.flatten(resource_id, body, desired.model_dump(mode="json"))
