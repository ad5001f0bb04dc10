"""Default resource type registry factory."""

from __future__ import annotations

from arm_provisioner.engine.container_registry_handler import ContainerRegistryTokenHandler
from arm_provisioner.engine.postgresql_handler import (
    FlexibleServerHandler,
    PostgresDatabaseHandler,
    PostgresVirtualNetworkRuleHandler,
)
from arm_provisioner.engine.registry import ResourceTypeRegistry
from arm_provisioner.engine.resource_group_handler import ResourceGroupHandler
from arm_provisioner.engine.vmware_handler import ExpressRouteAuthorizationHandler
from arm_provisioner.resources.container_registry import ContainerRegistryTokenResource
from arm_provisioner.resources.postgresql import (
    FlexibleServerResource,
    PostgresDatabaseResource,
    PostgresVirtualNetworkRuleResource,
)
from arm_provisioner.resources.resource_group import ResourceGroupResource
from arm_provisioner.resources.vmware import ExpressRouteAuthorizationResource


def default_registry() -> ResourceTypeRegistry:
    """Create a fresh registry with all built-in resource types and handlers."""
    registry = ResourceTypeRegistry()

    registry.register(ResourceGroupResource, ResourceGroupHandler())

    registry.register(FlexibleServerResource, FlexibleServerHandler())
    registry.register(PostgresDatabaseResource, PostgresDatabaseHandler())
    registry.register(PostgresVirtualNetworkRuleResource, PostgresVirtualNetworkRuleHandler())

    registry.register(ContainerRegistryTokenResource, ContainerRegistryTokenHandler())
    registry.register(ExpressRouteAuthorizationResource, ExpressRouteAuthorizationHandler())

    return registry
