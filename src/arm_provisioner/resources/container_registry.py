"""Container registry token resource model."""

from __future__ import annotations

from typing import Annotated, ClassVar

from pydantic import Field

from arm_provisioner.resources.base import Resource
from arm_provisioner.resources.codecs import EnabledDisabled
from arm_provisioner.resources.ids import RegistryTokenId
from arm_provisioner.resources.markers import ArmPath, Compare, IdSegment, Ref


class ContainerRegistryTokenResource(Resource):
    """A repository-scoped access token for an Azure container registry."""

    resource_type: ClassVar[str] = "azurerm_container_registry_token"
    id_type: ClassVar[type[RegistryTokenId]] = RegistryTokenId
    plan_priority: ClassVar[int] = 20

    resource_group_name: Annotated[
        str, IdSegment("resource_group"), Ref("azurerm_resource_group"), Field(min_length=1)
    ]
    container_registry_name: Annotated[str, IdSegment("registry_name")]
    scope_map_id: Annotated[str, ArmPath("properties.scopeMapId"), Compare("casefold")]
    enabled: Annotated[
        bool, ArmPath("properties.status", codec=EnabledDisabled("enabled", "disabled"))
    ] = True
