"""Container registry token handler."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from arm_provisioner.engine.lifecycle import ArmResourceHandler
from arm_provisioner.resources import validation
from arm_provisioner.resources.container_registry import ContainerRegistryTokenResource
from arm_provisioner.resources.ids import ScopeMapId

if TYPE_CHECKING:
    from arm_provisioner.engine.handlers import EngineContext

_is_scope_map_id = validation.resource_id_of(ScopeMapId)


class ContainerRegistryTokenHandler(ArmResourceHandler[ContainerRegistryTokenResource]):
    """CRUD handler for container registry tokens."""

    model = ContainerRegistryTokenResource
    api_version: ClassVar[str] = "2021-08-01-preview"

    def validate(self, ctx: EngineContext, desired: ContainerRegistryTokenResource) -> list[str]:
        _ = ctx
        errors = [
            validation.container_registry_token_name(desired.name),
            validation.container_registry_name(desired.container_registry_name),
            _is_scope_map_id(desired.scope_map_id),
        ]
        return [e for e in errors if e]
