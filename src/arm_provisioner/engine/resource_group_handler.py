"""Resource group handler."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from arm_provisioner.engine.lifecycle import MINUTE, ArmResourceHandler, Timeouts
from arm_provisioner.resources import validation
from arm_provisioner.resources.resource_group import ResourceGroupResource

if TYPE_CHECKING:
    from arm_provisioner.engine.handlers import EngineContext


class ResourceGroupHandler(ArmResourceHandler[ResourceGroupResource]):
    """CRUD handler for resource groups.

    Creation is synchronous; deletion is a long-running operation that also
    removes everything inside the group. Only tags can change in place.
    """

    model = ResourceGroupResource
    api_version: ClassVar[str] = "2021-04-01"
    timeouts: ClassVar[Timeouts] = Timeouts(
        create=90 * MINUTE, update=90 * MINUTE, delete=90 * MINUTE
    )

    def validate(self, ctx: EngineContext, desired: ResourceGroupResource) -> list[str]:
        _ = ctx
        error = validation.resource_group_name(desired.name)
        return [error] if error else []
