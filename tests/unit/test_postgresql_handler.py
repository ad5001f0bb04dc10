"""Tests for the PostgreSQL, container registry and AVS handlers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from arm_provisioner.core.errors import (
    NotFoundError,
    OperationTimeoutError,
    RemoteOperationFailedError,
)
from arm_provisioner.core.state import ResourceInstance
from arm_provisioner.engine.container_registry_handler import ContainerRegistryTokenHandler
from arm_provisioner.engine.postgresql_handler import (
    FlexibleServerHandler,
    PostgresDatabaseHandler,
    PostgresVirtualNetworkRuleHandler,
)
from arm_provisioner.engine.vmware_handler import ExpressRouteAuthorizationHandler
from arm_provisioner.resources.container_registry import ContainerRegistryTokenResource
from arm_provisioner.resources.postgresql import (
    FlexibleServerResource,
    PostgresDatabaseResource,
    PostgresVirtualNetworkRuleResource,
)
from arm_provisioner.resources.vmware import ExpressRouteAuthorizationResource

if TYPE_CHECKING:
    from conftest import FakeClock, FakeRemote

    from arm_provisioner.engine.handlers import EngineContext

SUB = "00000000-0000-0000-0000-000000000000"
SUBNET = (
    f"/subscriptions/{SUB}/resourceGroups/net"
    "/providers/Microsoft.Network/virtualNetworks/vnet1/subnets/db"
)
SCOPE_MAP = (
    f"/subscriptions/{SUB}/resourceGroups/rg1"
    "/providers/Microsoft.ContainerRegistry/registries/registry1/scopeMaps/pull"
)
PRIVATE_CLOUD = (
    f"/subscriptions/{SUB}/resourceGroups/avs/providers/Microsoft.AVS/privateClouds/pc1"
)


def _rule(**overrides: Any) -> PostgresVirtualNetworkRuleResource:
    fields: dict[str, Any] = {
        "name": "allow-db",
        "resource_group_name": "rg1",
        "server_name": "legacy",
        "subnet_id": SUBNET,
    }
    fields.update(overrides)
    return PostgresVirtualNetworkRuleResource(**fields)


def _server(**overrides: Any) -> FlexibleServerResource:
    fields: dict[str, Any] = {
        "name": "psql-1",
        "resource_group_name": "rg1",
        "location": "westeurope",
        "administrator_login": "admin",
        "administrator_login_password": "s3cret",
        "sku": {"name": "GP_Standard_D2s_v3", "tier": "GeneralPurpose"},
        "version": "12",
    }
    fields.update(overrides)
    return FlexibleServerResource(**fields)


def _ready(state: str = "Ready") -> dict[str, Any]:
    return {"properties": {"state": state}}


class TestVirtualNetworkRule:
    def test_create_waits_for_repeated_ready(
        self, ctx: EngineContext, remote: FakeRemote, clock: FakeClock
    ) -> None:
        ctx.provider.client.get_json.return_value = _ready()

        attrs = PostgresVirtualNetworkRuleHandler().create(ctx, _rule())

        assert remote.calls[0][0] == "put"
        assert ctx.provider.client.get_json.call_count == 5
        assert clock.sleeps == [60, 60, 60, 60]
        assert attrs["subnet_id"] == SUBNET
        assert attrs["ignore_missing_vnet_service_endpoint"] is False

    def test_no_existence_check_before_put(self, ctx: EngineContext, remote: FakeRemote) -> None:
        ctx.provider.client.get_json.return_value = _ready()
        PostgresVirtualNetworkRuleHandler().create(ctx, _rule())
        assert remote.calls[0] == ("put", _rule().resource_id(SUB).id)

    def test_not_found_while_propagating_is_pending(
        self, ctx: EngineContext, clock: FakeClock
    ) -> None:
        ctx.provider.client.get_json.side_effect = [
            NotFoundError("not yet"),
            _ready("Initializing"),
            *[_ready()] * 5,
        ]
        PostgresVirtualNetworkRuleHandler().create(ctx, _rule())
        assert len(clock.sleeps) == 6

    def test_unexpected_state_fails(self, ctx: EngineContext) -> None:
        ctx.provider.client.get_json.return_value = _ready("Deleting")
        with pytest.raises(RemoteOperationFailedError, match="UnexpectedState") as exc_info:
            PostgresVirtualNetworkRuleHandler().create(ctx, _rule())
        assert exc_info.value.resource_type == "azurerm_postgresql_virtual_network_rule"

    def test_never_ready_times_out(self, ctx: EngineContext, clock: FakeClock) -> None:
        ctx.provider.client.get_json.return_value = _ready("InProgress")
        start = clock.now()
        with pytest.raises(OperationTimeoutError):
            PostgresVirtualNetworkRuleHandler().create(ctx, _rule())
        assert clock.now() - start == pytest.approx(600)

    def test_update_puts_whole_body(self, ctx: EngineContext, remote: FakeRemote) -> None:
        ctx.provider.client.get_json.return_value = _ready()
        rid = _rule().resource_id(SUB)
        remote.seed(
            rid,
            {
                "name": "allow-db",
                "properties": {
                    "virtualNetworkSubnetId": SUBNET,
                    "ignoreMissingVnetServiceEndpoint": False,
                    "state": "Ready",
                },
            },
        )
        prior_attrs = {
            "name": "allow-db",
            "resource_group_name": "rg1",
            "server_name": "legacy",
            "subnet_id": SUBNET,
            "ignore_missing_vnet_service_endpoint": False,
        }
        prior = ResourceInstance(
            address="azurerm_postgresql_virtual_network_rule.allow-db",
            resource_type="azurerm_postgresql_virtual_network_rule",
            name="allow-db",
            resource_id=rid.id,
            attributes=prior_attrs,
        )

        PostgresVirtualNetworkRuleHandler().update(
            ctx,
            _rule(ignore_missing_vnet_service_endpoint=True),
            prior,
            {"ignore_missing_vnet_service_endpoint"},
        )

        assert remote.mutations() == [("put", rid.id)]
        assert remote.payloads[0]["properties"] == {
            "virtualNetworkSubnetId": SUBNET,
            "ignoreMissingVnetServiceEndpoint": True,
            "state": "Ready",
        }

    def test_validate(self, ctx: EngineContext) -> None:
        handler = PostgresVirtualNetworkRuleHandler()
        assert handler.validate(ctx, _rule()) == []
        errors = handler.validate(ctx, _rule(name="1rule", subnet_id="/not/a/subnet"))
        assert len(errors) == 2
        assert "start with a letter" in errors[0]
        assert errors[1].startswith("expected a Subnet ID")


class TestFlexibleServer:
    def test_validate_valid(self, ctx: EngineContext) -> None:
        assert FlexibleServerHandler().validate(ctx, _server(delegated_subnet_id=SUBNET)) == []

    def test_validate_collects_every_problem(self, ctx: EngineContext) -> None:
        server = _server(
            name="PSQL",
            storage_mb=1000,
            sku={"name": "GP_Gen5_2", "tier": "GeneralPurpose"},
            delegated_subnet_id="/subscriptions/x",
        )
        errors = FlexibleServerHandler().validate(ctx, server)
        assert len(errors) == 4

    def test_create_carries_the_password(self, ctx: EngineContext, remote: FakeRemote) -> None:
        attrs = FlexibleServerHandler().create(ctx, _server())

        assert remote.payloads[0]["properties"]["administratorLoginPassword"] == "s3cret"
        assert attrs["administrator_login_password"] == "s3cret"
        assert attrs["sku"] == {"name": "GP_Standard_D2s_v3", "tier": "GeneralPurpose"}

    def test_delta_update(self, ctx: EngineContext, remote: FakeRemote) -> None:
        handler = FlexibleServerHandler()
        handler.create(ctx, _server())
        rid = _server().resource_id(SUB)
        prior = ResourceInstance(
            address="azurerm_postgresql_flexible_server.psql-1",
            resource_type="azurerm_postgresql_flexible_server",
            name="psql-1",
            resource_id=rid.id,
        )
        attrs = handler.update(ctx, _server(storage_mb=65536), prior, {"storage_mb"})

        assert remote.payloads[-1] == {"properties": {"storageProfile": {"storageMB": 65536}}}
        assert attrs["storage_mb"] == 65536


def test_database_create_skips_existence_check(ctx: EngineContext, remote: FakeRemote) -> None:
    db = PostgresDatabaseResource(
        name="app",
        resource_group_name="rg1",
        server_name="legacy",
        charset="UTF8",
        collation="English_United States.1252",
    )
    attrs = PostgresDatabaseHandler().create(ctx, db)
    assert remote.calls[0][0] == "put"
    assert attrs == {
        "name": "app",
        "resource_group_name": "rg1",
        "server_name": "legacy",
        "charset": "UTF8",
        "collation": "English_United States.1252",
    }


class TestContainerRegistryToken:
    def _token(self, **overrides: Any) -> ContainerRegistryTokenResource:
        fields: dict[str, Any] = {
            "name": "ci-token",
            "resource_group_name": "rg1",
            "container_registry_name": "registry1",
            "scope_map_id": SCOPE_MAP,
        }
        fields.update(overrides)
        return ContainerRegistryTokenResource(**fields)

    def test_validate(self, ctx: EngineContext) -> None:
        handler = ContainerRegistryTokenHandler()
        assert handler.validate(ctx, self._token()) == []
        errors = handler.validate(
            ctx, self._token(name="ci", container_registry_name="r-1", scope_map_id="/x")
        )
        assert len(errors) == 3

    def test_create(self, ctx: EngineContext, remote: FakeRemote) -> None:
        attrs = ContainerRegistryTokenHandler().create(ctx, self._token(enabled=False))
        assert remote.payloads == [
            {"properties": {"scopeMapId": SCOPE_MAP, "status": "disabled"}}
        ]
        assert attrs["enabled"] is False


def test_express_route_authorization_reads_back_computed_key(
    ctx: EngineContext, remote: FakeRemote
) -> None:
    auth = ExpressRouteAuthorizationResource(name="auth1", private_cloud_id=PRIVATE_CLOUD)
    rid = auth.resource_id(SUB)

    class KeyIssuingRemote(type(remote)):  # type: ignore[misc]
        def create(self, resource_id: Any, payload: dict[str, Any]) -> Any:
            op = super().create(resource_id, payload)
            self.store[resource_id.id]["properties"] = {
                "expressRouteAuthorizationId": "/circuits/c1/authorizations/auth1",
                "expressRouteAuthorizationKey": "key-123",
            }
            return op

    issuing = KeyIssuingRemote()
    ctx.provider.resources.return_value = issuing

    attrs = ExpressRouteAuthorizationHandler().create(ctx, auth)

    assert issuing.payloads == [{}]
    assert attrs == {
        "name": "auth1",
        "private_cloud_id": PRIVATE_CLOUD,
        "express_route_authorization_id": "/circuits/c1/authorizations/auth1",
        "express_route_authorization_key": "key-123",
    }
    assert rid.id in issuing.store
