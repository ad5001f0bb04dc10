"""Core infrastructure components for ARM Provisioner."""

from arm_provisioner.core.arm_client import ArmClient, ArmResourceClient, RemoteClient
from arm_provisioner.core.provider import AzureProvider, ServicePrincipalAuth
from arm_provisioner.core.resource_id import ParsedResourceId, ResourceId, parse_resource_id
from arm_provisioner.core.state import ResourceInstance, State

__all__ = [
    "ArmClient",
    "ArmResourceClient",
    "AzureProvider",
    "ParsedResourceId",
    "RemoteClient",
    "ResourceId",
    "ResourceInstance",
    "ServicePrincipalAuth",
    "State",
    "parse_resource_id",
]
