"""PostgreSQL handlers: flexible servers, databases and virtual network rules."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, ClassVar, Literal

from arm_provisioner.core.lro import ResourceStatePoller
from arm_provisioner.engine.lifecycle import MINUTE, ArmResourceHandler, Timeouts
from arm_provisioner.resources import validation
from arm_provisioner.resources.ids import SubnetId
from arm_provisioner.resources.postgresql import (
    FlexibleServerResource,
    PostgresDatabaseResource,
    PostgresVirtualNetworkRuleResource,
)

if TYPE_CHECKING:
    from arm_provisioner.core.resource_id import ResourceId
    from arm_provisioner.engine.handlers import EngineContext

logger = logging.getLogger(__name__)

_is_subnet_id = validation.resource_id_of(SubnetId)


class FlexibleServerHandler(ArmResourceHandler[FlexibleServerResource]):
    """CRUD handler for PostgreSQL flexible servers.

    Updates are sent as PATCH deltas.
    """

    model = FlexibleServerResource
    api_version: ClassVar[str] = "2020-02-14-preview"
    timeouts: ClassVar[Timeouts] = Timeouts(
        create=180 * MINUTE, update=180 * MINUTE, delete=180 * MINUTE
    )

    def validate(self, ctx: EngineContext, desired: FlexibleServerResource) -> list[str]:
        _ = ctx
        errors = [
            validation.flexible_server_name(desired.name),
            validation.flexible_server_storage_mb(desired.storage_mb),
        ]
        if desired.sku is not None:
            errors.append(validation.flexible_server_sku_name(desired.sku.name))
        if desired.delegated_subnet_id is not None:
            errors.append(_is_subnet_id(desired.delegated_subnet_id))
        return [e for e in errors if e]


class PostgresDatabaseHandler(ArmResourceHandler[PostgresDatabaseResource]):
    """CRUD handler for PostgreSQL databases.

    The API is an idempotent upsert, so no existence check precedes creation.
    """

    model = PostgresDatabaseResource
    api_version: ClassVar[str] = "2017-12-01"
    requires_import: ClassVar[bool] = False
    timeouts: ClassVar[Timeouts] = Timeouts(create=60 * MINUTE, delete=60 * MINUTE)


class PostgresVirtualNetworkRuleHandler(ArmResourceHandler[PostgresVirtualNetworkRuleResource]):
    """CRUD handler for PostgreSQL virtual network rules.

    The rule is written with a full PUT. Its operation completes before the rule
    is usable, so create and update also poll ``properties.state`` until it has
    read ``Ready`` several times in a row.
    """

    model = PostgresVirtualNetworkRuleResource
    api_version: ClassVar[str] = "2017-12-01"
    update_mode: ClassVar[Literal["delta", "full"]] = "full"
    requires_import: ClassVar[bool] = False

    ready_pending: ClassVar[tuple[str, ...]] = (
        "Initializing",
        "InProgress",
        "Unknown",
        ResourceStatePoller.NOT_FOUND,
    )
    ready_occurrences: ClassVar[int] = 5
    ready_poll_interval: ClassVar[float] = 1 * MINUTE
    ready_timeout: ClassVar[float] = 10 * MINUTE

    def validate(
        self, ctx: EngineContext, desired: PostgresVirtualNetworkRuleResource
    ) -> list[str]:
        _ = ctx
        errors = [
            validation.virtual_network_rule_name(desired.name),
            _is_subnet_id(desired.subnet_id),
        ]
        return [e for e in errors if e]

    def await_ready(self, ctx: EngineContext, resource_id: ResourceId) -> None:
        logger.debug("Waiting for %s to become ready", resource_id)
        poller = ResourceStatePoller(
            ctx.provider.client,
            resource_url=resource_id.id,
            api_version=self.api_version,
            state_path="properties.state",
            pending=self.ready_pending,
            target=("Ready",),
            required_occurrences=self.ready_occurrences,
        )
        ctx.waiter.wait(
            poller,
            timeout=self.ready_timeout,
            poll_interval=self.ready_poll_interval,
            cancel=ctx.cancel,
        )
