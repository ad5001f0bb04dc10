"""PostgreSQL resource models (flexible servers, databases, virtual network rules)."""

from __future__ import annotations

from typing import Annotated, ClassVar, Literal, Self

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from arm_provisioner.resources.base import Location, Resource, Tags
from arm_provisioner.resources.codecs import ENABLED_DISABLED, LOCATION
from arm_provisioner.resources.ids import (
    FlexibleServerId,
    PostgresDatabaseId,
    VirtualNetworkRuleId,
)
from arm_provisioner.resources.mapper import Block, single_block
from arm_provisioner.resources.markers import (
    ArmPath,
    Compare,
    Computed,
    ForceNew,
    IdSegment,
    Ref,
    Sensitive,
    WriteOnly,
)

ResourceGroupName = Annotated[
    str, IdSegment("resource_group"), Ref("azurerm_resource_group"), Field(min_length=1)
]


class FlexibleServerSku(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Annotated[str, ArmPath("name")]
    tier: Annotated[Literal["Burstable", "GeneralPurpose", "MemoryOptimized"], ArmPath("tier")]


class MaintenanceWindow(BaseModel):
    """Custom maintenance window. ``enabled: false`` falls back to the system window."""

    model_config = ConfigDict(extra="forbid")

    enabled: Annotated[bool, ArmPath("customWindow", codec=ENABLED_DISABLED)] = True
    day_of_week: Annotated[int, ArmPath("dayOfWeek")] = Field(default=0, ge=0, le=6)
    start_hour: Annotated[int, ArmPath("startHour")] = Field(default=0, ge=0, le=23)
    start_minute: Annotated[int, ArmPath("startMinute")] = Field(default=0, ge=0, le=59)


class ManagedIdentity(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Annotated[Literal["SystemAssigned"], ArmPath("type")] = "SystemAssigned"
    principal_id: Annotated[str | None, ArmPath("principalId"), Computed()] = None
    tenant_id: Annotated[str | None, ArmPath("tenantId"), Computed()] = None


class FlexibleServerResource(Resource):
    """An Azure Database for PostgreSQL flexible server."""

    resource_type: ClassVar[str] = "azurerm_postgresql_flexible_server"
    id_type: ClassVar[type[FlexibleServerId]] = FlexibleServerId
    plan_priority: ClassVar[int] = 10

    resource_group_name: ResourceGroupName
    location: Annotated[Location, ArmPath("location", codec=LOCATION), ForceNew()]

    administrator_login: Annotated[
        str | None, ArmPath("properties.administratorLogin"), ForceNew()
    ] = None
    administrator_login_password: Annotated[
        str | None,
        ArmPath("properties.administratorLoginPassword"),
        WriteOnly(),
        Sensitive(),
    ] = None
    sku: Annotated[
        FlexibleServerSku | None,
        BeforeValidator(single_block),
        ArmPath("sku", codec=Block(FlexibleServerSku)),
    ] = None
    version: Annotated[
        Literal["11", "12"] | None, ArmPath("properties.version"), ForceNew()
    ] = None
    storage_mb: Annotated[int, ArmPath("properties.storageProfile.storageMB")] = 32768
    backup_retention_days: Annotated[
        int, ArmPath("properties.storageProfile.backupRetentionDays")
    ] = Field(default=7, ge=7, le=35)
    availability_zone: Annotated[
        Literal["1", "2", "3"] | None, ArmPath("properties.availabilityZone"), ForceNew()
    ] = None
    delegated_subnet_id: Annotated[
        str | None,
        ArmPath("properties.delegatedSubnetArguments.subnetArmResourceId"),
        Compare("casefold"),
        ForceNew(),
    ] = None
    display_name: Annotated[str | None, ArmPath("properties.displayName")] = None
    ha_enabled: Annotated[bool, ArmPath("properties.haEnabled", codec=ENABLED_DISABLED)] = False
    identity: Annotated[
        ManagedIdentity | None,
        BeforeValidator(single_block),
        ArmPath("identity", codec=Block(ManagedIdentity)),
        ForceNew(),
    ] = None
    maintenance_window: Annotated[
        MaintenanceWindow | None,
        BeforeValidator(single_block),
        ArmPath("properties.maintenanceWindow", codec=Block(MaintenanceWindow)),
    ] = None
    tags: Annotated[Tags, ArmPath("tags")] = Field(default_factory=dict)

    # Point-in-time restore
    create_mode: Annotated[
        Literal["Default", "PointInTimeRestore"] | None,
        ArmPath("properties.createMode"),
        WriteOnly(),
        ForceNew(),
    ] = None
    source_server_name: Annotated[
        str | None, ArmPath("properties.sourceServerName"), WriteOnly(), ForceNew()
    ] = None
    point_in_time_utc: Annotated[
        str | None, ArmPath("properties.pointInTimeUTC"), WriteOnly(), ForceNew()
    ] = None

    # Server-assigned
    fqdn: Annotated[str | None, ArmPath("properties.fullyQualifiedDomainName"), Computed()] = None
    byok_enforcement: Annotated[
        str | None, ArmPath("properties.byokEnforcement"), Computed()
    ] = None
    ha_state: Annotated[str | None, ArmPath("properties.haState"), Computed()] = None
    public_network_access: Annotated[
        str | None, ArmPath("properties.publicNetworkAccess"), Computed()
    ] = None
    standby_availability_zone: Annotated[
        str | None, ArmPath("properties.standbyAvailabilityZone"), Computed()
    ] = None

    @model_validator(mode="after")
    def _check_create_mode(self) -> Self:
        if self.create_mode == "PointInTimeRestore":
            missing = [
                f
                for f in ("source_server_name", "point_in_time_utc")
                if getattr(self, f) is None
            ]
            if missing:
                raise ValueError(
                    f"{' and '.join(missing)} required when create_mode is 'PointInTimeRestore'"
                )
        elif self.create_mode in (None, "Default"):
            if self.administrator_login is None or self.administrator_login_password is None:
                raise ValueError(
                    "administrator_login and administrator_login_password are required "
                    "unless restoring from a point in time"
                )
            if self.sku is None or self.version is None:
                raise ValueError(
                    "sku and version are required unless restoring from a point in time"
                )
        return self


class PostgresDatabaseResource(Resource):
    """A database on an Azure Database for PostgreSQL server.

    Every property is immutable; any change replaces the database.
    """

    resource_type: ClassVar[str] = "azurerm_postgresql_database"
    id_type: ClassVar[type[PostgresDatabaseId]] = PostgresDatabaseId
    plan_priority: ClassVar[int] = 20

    resource_group_name: ResourceGroupName
    server_name: Annotated[str, IdSegment("server_name"), Field(min_length=1)]
    charset: Annotated[str, ArmPath("properties.charset"), Compare("casefold"), ForceNew()]
    collation: Annotated[str, ArmPath("properties.collation"), ForceNew()]


class PostgresVirtualNetworkRuleResource(Resource):
    """Lets a subnet reach an Azure Database for PostgreSQL server.

    The subnet must have the ``Microsoft.Sql`` service endpoint enabled unless
    ``ignore_missing_vnet_service_endpoint`` is set.
    """

    resource_type: ClassVar[str] = "azurerm_postgresql_virtual_network_rule"
    id_type: ClassVar[type[VirtualNetworkRuleId]] = VirtualNetworkRuleId
    plan_priority: ClassVar[int] = 20

    resource_group_name: ResourceGroupName
    server_name: Annotated[str, IdSegment("server_name"), Field(min_length=1)]
    subnet_id: Annotated[
        str, ArmPath("properties.virtualNetworkSubnetId"), Compare("casefold")
    ]
    ignore_missing_vnet_service_endpoint: Annotated[
        bool, ArmPath("properties.ignoreMissingVnetServiceEndpoint")
    ] = False
