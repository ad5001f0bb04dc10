"""ARM resource definitions."""

from arm_provisioner.resources.base import Resource
from arm_provisioner.resources.container_registry import ContainerRegistryTokenResource
from arm_provisioner.resources.postgresql import (
    FlexibleServerResource,
    FlexibleServerSku,
    MaintenanceWindow,
    ManagedIdentity,
    PostgresDatabaseResource,
    PostgresVirtualNetworkRuleResource,
)
from arm_provisioner.resources.resource_group import ResourceGroupResource
from arm_provisioner.resources.vmware import ExpressRouteAuthorizationResource

__all__ = [
    "ContainerRegistryTokenResource",
    "ExpressRouteAuthorizationResource",
    "FlexibleServerResource",
    "FlexibleServerSku",
    "MaintenanceWindow",
    "ManagedIdentity",
    "PostgresDatabaseResource",
    "PostgresVirtualNetworkRuleResource",
    "Resource",
    "ResourceGroupResource",
]
