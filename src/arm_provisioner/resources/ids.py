"""Typed resource IDs for the supported resource families."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from arm_provisioner.core.resource_id import ResourceId

_RG = "/subscriptions/{subscription_id}/resourceGroups/{resource_group}"


@dataclass(frozen=True)
class ResourceGroupId(ResourceId):
    template: ClassVar[str] = "/subscriptions/{subscription_id}/resourceGroups/{name}"
    kind: ClassVar[str] = "Resource Group"

    subscription_id: str
    name: str


@dataclass(frozen=True)
class FlexibleServerId(ResourceId):
    template: ClassVar[str] = _RG + "/providers/Microsoft.DBforPostgreSQL/flexibleServers/{name}"
    kind: ClassVar[str] = "Flexible Server"

    subscription_id: str
    resource_group: str
    name: str


@dataclass(frozen=True)
class PostgresDatabaseId(ResourceId):
    template: ClassVar[str] = (
        _RG + "/providers/Microsoft.DBforPostgreSQL/servers/{server_name}/databases/{name}"
    )
    kind: ClassVar[str] = "Database"

    subscription_id: str
    resource_group: str
    server_name: str
    name: str


@dataclass(frozen=True)
class VirtualNetworkRuleId(ResourceId):
    template: ClassVar[str] = (
        _RG
        + "/providers/Microsoft.DBforPostgreSQL/servers/{server_name}"
        + "/virtualNetworkRules/{name}"
    )
    kind: ClassVar[str] = "Virtual Network Rule"

    subscription_id: str
    resource_group: str
    server_name: str
    name: str


@dataclass(frozen=True)
class SubnetId(ResourceId):
    template: ClassVar[str] = (
        _RG + "/providers/Microsoft.Network/virtualNetworks/{virtual_network_name}/subnets/{name}"
    )
    kind: ClassVar[str] = "Subnet"

    subscription_id: str
    resource_group: str
    virtual_network_name: str
    name: str


@dataclass(frozen=True)
class RegistryTokenId(ResourceId):
    template: ClassVar[str] = (
        _RG + "/providers/Microsoft.ContainerRegistry/registries/{registry_name}/tokens/{name}"
    )
    kind: ClassVar[str] = "Token"

    subscription_id: str
    resource_group: str
    registry_name: str
    name: str


@dataclass(frozen=True)
class ScopeMapId(ResourceId):
    template: ClassVar[str] = (
        _RG + "/providers/Microsoft.ContainerRegistry/registries/{registry_name}/scopeMaps/{name}"
    )
    kind: ClassVar[str] = "Scope Map"

    subscription_id: str
    resource_group: str
    registry_name: str
    name: str


@dataclass(frozen=True)
class PrivateCloudId(ResourceId):
    template: ClassVar[str] = _RG + "/providers/Microsoft.AVS/privateClouds/{name}"
    kind: ClassVar[str] = "Private Cloud"

    subscription_id: str
    resource_group: str
    name: str


@dataclass(frozen=True)
class AuthorizationId(ResourceId):
    template: ClassVar[str] = (
        _RG + "/providers/Microsoft.AVS/privateClouds/{private_cloud_name}/authorizations/{name}"
    )
    kind: ClassVar[str] = "Authorization"

    subscription_id: str
    resource_group: str
    private_cloud_name: str
    name: str
