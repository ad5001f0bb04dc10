"""Apply operations.

Terraform runs apply by executing a graph of operations (resource nodes + other
nodes). This module implements a minimal version of that idea: each operation
knows how to apply itself and lists dependencies on other operations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

from arm_provisioner.core.state import ResourceInstance, State, compute_attributes_hash

if TYPE_CHECKING:
    from arm_provisioner.engine.handlers import EngineContext
    from arm_provisioner.engine.registry import ResourceTypeRegistration, ResourceTypeRegistry
    from arm_provisioner.engine.types import ResourceChange
    from arm_provisioner.resources.base import Resource


class Operation(Protocol):
    key: str
    deps: list[str]
    change: ResourceChange | None

    def run(self, *, ctx: EngineContext, state: State, registry: ResourceTypeRegistry) -> bool:
        """Execute this operation.

        Returns:
            True if state should be persisted (serial bump + write).
        """


@dataclass
class BarrierOperation:
    """A no-op node used to enforce ordering between operation phases."""

    key: str
    deps: list[str] = field(default_factory=list)
    change: ResourceChange | None = None

    def run(self, *, ctx: EngineContext, state: State, registry: ResourceTypeRegistry) -> bool:
        _ = ctx, state, registry
        return False


def _desired_object(change: ResourceChange, reg: ResourceTypeRegistration, *, action: str) -> Any:
    if change.desired is None:
        raise ValueError(f"Missing desired config for {action}: {change.address}")

    desired_obj = reg.model.model_validate(change.desired)
    if desired_obj.address != change.address:
        raise ValueError(
            f"Desired address mismatch for {action}: {change.address} != {desired_obj.address}"
        )
    return desired_obj


def _track(
    state: State,
    change: ResourceChange,
    desired: Resource,
    attrs: dict[str, Any],
    resource_id: str,
) -> None:
    now = datetime.now(UTC)
    state.resources[change.address] = ResourceInstance(
        address=change.address,
        resource_type=change.resource_type,
        name=desired.name,
        resource_id=resource_id,
        attributes=attrs,
        attributes_hash=compute_attributes_hash(attrs),
        dependencies=list(change.desired.get("depends_on", [])) if change.desired else [],
        created_at=now,
        updated_at=now,
    )


@dataclass
class CreateOperation:
    key: str
    change: ResourceChange | None
    deps: list[str] = field(default_factory=list)

    def run(self, *, ctx: EngineContext, state: State, registry: ResourceTypeRegistry) -> bool:
        assert self.change is not None
        reg = registry.get(self.change.resource_type)
        desired_obj = _desired_object(self.change, reg, action="create")

        resource_id = desired_obj.resource_id(ctx.subscription_id).id
        attrs = reg.handler.create(ctx, desired_obj)
        _track(state, self.change, desired_obj, attrs, resource_id)
        return True


@dataclass
class UpdateOperation:
    key: str
    change: ResourceChange | None
    deps: list[str] = field(default_factory=list)

    def run(self, *, ctx: EngineContext, state: State, registry: ResourceTypeRegistry) -> bool:
        assert self.change is not None
        reg = registry.get(self.change.resource_type)
        desired_obj = _desired_object(self.change, reg, action="update")

        prior_inst = state.resources[self.change.address]
        changed = set(self.change.diff or {})
        attrs = reg.handler.update(ctx, desired_obj, prior_inst, changed)

        prior_inst.attributes = attrs
        prior_inst.attributes_hash = compute_attributes_hash(attrs)
        prior_inst.dependencies = list(self.change.desired.get("depends_on", []))
        prior_inst.updated_at = datetime.now(UTC)
        return True


@dataclass
class ReplaceOperation:
    """Delete the tracked resource, then create it again from the desired config.

    When the create fails after the delete, the engine still persists the
    removal, so the next plan creates the address again.
    """

    key: str
    change: ResourceChange | None
    deps: list[str] = field(default_factory=list)

    def run(self, *, ctx: EngineContext, state: State, registry: ResourceTypeRegistry) -> bool:
        assert self.change is not None
        reg = registry.get(self.change.resource_type)
        desired_obj = _desired_object(self.change, reg, action="replace")

        prior_inst = state.resources[self.change.address]
        reg.handler.delete(ctx, prior_inst)
        del state.resources[self.change.address]

        resource_id = desired_obj.resource_id(ctx.subscription_id).id
        attrs = reg.handler.create(ctx, desired_obj)
        _track(state, self.change, desired_obj, attrs, resource_id)
        return True


@dataclass
class DeleteOperation:
    key: str
    change: ResourceChange | None
    deps: list[str] = field(default_factory=list)

    def run(self, *, ctx: EngineContext, state: State, registry: ResourceTypeRegistry) -> bool:
        assert self.change is not None
        reg = registry.get(self.change.resource_type)

        prior_inst = state.resources[self.change.address]
        reg.handler.delete(ctx, prior_inst)
        del state.resources[self.change.address]
        return True
