"""Field validators.

Each validator is a pure predicate: it takes a value and returns ``None`` when
the value is acceptable, or an error message otherwise.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from arm_provisioner.core.errors import MalformedIdError

if TYPE_CHECKING:
    from collections.abc import Callable

    from arm_provisioner.core.resource_id import ResourceId

_RESOURCE_GROUP_NAME = re.compile(r"^[-\w._()]+$")
_FLEXIBLE_SERVER_NAME = re.compile(r"^[0-9a-z][-0-9a-z]{1,61}[0-9a-z]$")
_FLEXIBLE_SERVER_SKU = re.compile(
    r"^(B_Standard_B(1ms|2s)"
    r"|GP_Standard_D(2|4|8|16|32|48|64)s_v3"
    r"|MO_Standard_E(2|4|8|16|32|48|64)s_v3)$"
)
_VNET_RULE_NAME = re.compile(r"^[a-zA-Z0-9-]+$")
_REGISTRY_NAME = re.compile(r"^[a-zA-Z0-9]{5,50}$")
_REGISTRY_TOKEN_NAME = re.compile(r"^[a-zA-Z0-9-]{5,50}$")

FLEXIBLE_SERVER_STORAGE_MB = (
    32768,
    65536,
    131072,
    262144,
    524288,
    1048576,
    2097152,
    4194304,
    8388608,
    16777216,
)


def resource_group_name(value: str) -> str | None:
    if not 1 <= len(value) <= 90:
        return f"resource group name {value!r} must be 1-90 characters"
    if not _RESOURCE_GROUP_NAME.match(value):
        return (
            f"resource group name {value!r} may only contain alphanumeric characters, "
            "underscores, parentheses, hyphens and periods"
        )
    if value.endswith("."):
        return f"resource group name {value!r} cannot end with a period"
    return None


def flexible_server_name(value: str) -> str | None:
    if not _FLEXIBLE_SERVER_NAME.match(value):
        return (
            f"flexible server name {value!r} must be 3-63 lowercase letters, digits or "
            "hyphens, and cannot start or end with a hyphen"
        )
    return None


def flexible_server_sku_name(value: str) -> str | None:
    if not _FLEXIBLE_SERVER_SKU.match(value):
        return f"{value!r} is not a valid flexible server SKU name"
    return None


def flexible_server_storage_mb(value: int) -> str | None:
    if value not in FLEXIBLE_SERVER_STORAGE_MB:
        allowed = ", ".join(str(v) for v in FLEXIBLE_SERVER_STORAGE_MB)
        return f"storage_mb {value} must be one of: {allowed}"
    return None


def virtual_network_rule_name(value: str) -> str | None:
    if not _VNET_RULE_NAME.match(value):
        return (
            f"virtual network rule name {value!r} may only contain alphanumeric "
            "characters and hyphens"
        )
    if len(value) > 128:
        return f"virtual network rule name {value!r} cannot be longer than 128 characters"
    if value.endswith("-"):
        return f"virtual network rule name {value!r} cannot end with a hyphen"
    if value[0].isdigit() or value[0] == "-":
        return f"virtual network rule name {value!r} must start with a letter"
    return None


def container_registry_name(value: str) -> str | None:
    if not _REGISTRY_NAME.match(value):
        return f"container registry name {value!r} must be 5-50 alphanumeric characters"
    return None


def container_registry_token_name(value: str) -> str | None:
    if not _REGISTRY_TOKEN_NAME.match(value):
        return (
            f"token name {value!r} must be 5-50 characters and may only contain "
            "alphanumeric characters and hyphens"
        )
    return None


def resource_id_of(id_type: type[ResourceId]) -> Callable[[str], str | None]:
    """Build a validator checking that a value parses as *id_type*."""

    def _validate(value: str) -> str | None:
        try:
            id_type.parse(value)
        except MalformedIdError as exc:
            return f"expected a {id_type.kind} ID: {exc.reason}"
        return None

    return _validate
