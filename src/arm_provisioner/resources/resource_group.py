"""Resource group resource model."""

from __future__ import annotations

from typing import Annotated, ClassVar

from pydantic import Field

from arm_provisioner.resources.base import Location, Resource, Tags
from arm_provisioner.resources.codecs import LOCATION
from arm_provisioner.resources.ids import ResourceGroupId
from arm_provisioner.resources.markers import ArmPath, ForceNew


class ResourceGroupResource(Resource):
    """An Azure resource group.

    Groups are provisioned before anything placed inside them.
    """

    resource_type: ClassVar[str] = "azurerm_resource_group"
    id_type: ClassVar[type[ResourceGroupId]] = ResourceGroupId
    plan_priority: ClassVar[int] = 0

    location: Annotated[Location, ArmPath("location", codec=LOCATION), ForceNew()]
    tags: Annotated[Tags, ArmPath("tags")] = Field(default_factory=dict)
