"""Engine-facing handler interfaces."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from arm_provisioner.engine.waiter import Waiter
from arm_provisioner.resources.base import Resource

if TYPE_CHECKING:
    from arm_provisioner.core import AzureProvider
    from arm_provisioner.core.resource_id import ResourceId
    from arm_provisioner.core.state import ResourceInstance
    from arm_provisioner.engine.waiter import CancellationToken

R = TypeVar("R", bound=Resource)


@dataclass(frozen=True)
class EngineContext:
    """Context passed to handlers."""

    provider: AzureProvider
    subscription_id: str
    waiter: Waiter = field(default_factory=Waiter)
    cancel: CancellationToken | None = None


class ResourceHandler(Generic[R]):
    """Base class for resource handlers.

    Handlers are responsible for translating resources into ARM API calls.
    Subclass and override the CRUD methods. Validation is optional.
    """

    def validate(self, ctx: EngineContext, desired: R) -> list[str]:
        """Single-resource validation.

        Return list of error messages (empty = valid).
        """
        _ = ctx, desired
        return []

    def read(self, ctx: EngineContext, prior: ResourceInstance) -> dict[str, Any] | None:
        """Read the resource from ARM. Return None if it no longer exists."""
        raise NotImplementedError

    def create(self, ctx: EngineContext, desired: R) -> dict[str, Any]:
        """Create the resource in ARM. Return stored attributes."""
        raise NotImplementedError

    def update(
        self,
        ctx: EngineContext,
        desired: R,
        prior: ResourceInstance,
        changed: set[str],
    ) -> dict[str, Any]:
        """Update *changed* fields in ARM. Return stored attributes."""
        raise NotImplementedError

    def delete(self, ctx: EngineContext, prior: ResourceInstance) -> None:
        """Delete the resource from ARM."""
        raise NotImplementedError

    def import_resource(
        self, ctx: EngineContext, resource_id: ResourceId, desired: R
    ) -> dict[str, Any]:
        """Read an existing, untracked resource. Return stored attributes."""
        raise NotImplementedError
