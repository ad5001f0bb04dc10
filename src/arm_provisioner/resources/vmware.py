"""Azure VMware Solution resource models."""

from __future__ import annotations

from typing import Annotated, ClassVar

from pydantic import AfterValidator

from arm_provisioner.resources.base import Resource
from arm_provisioner.resources.ids import AuthorizationId, PrivateCloudId
from arm_provisioner.resources.markers import ArmPath, Computed, ParentId, Sensitive


def _private_cloud_id(value: str) -> str:
    return PrivateCloudId.parse(value).id


class ExpressRouteAuthorizationResource(Resource):
    """An ExpressRoute circuit authorization on an AVS private cloud.

    Authorizations cannot be modified; only created and deleted.
    """

    resource_type: ClassVar[str] = "azurerm_vmware_express_route_authorization"
    id_type: ClassVar[type[AuthorizationId]] = AuthorizationId
    plan_priority: ClassVar[int] = 20

    private_cloud_id: Annotated[
        str,
        AfterValidator(_private_cloud_id),
        ParentId(PrivateCloudId, name_segment="private_cloud_name"),
    ]

    express_route_authorization_id: Annotated[
        str | None, ArmPath("properties.expressRouteAuthorizationId"), Computed()
    ] = None
    express_route_authorization_key: Annotated[
        str | None, ArmPath("properties.expressRouteAuthorizationKey"), Computed(), Sensitive()
    ] = None
