"""Configuration models for YAML-based provisioning."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from arm_provisioner.core.arm_client import DEFAULT_MAX_RETRIES
from arm_provisioner.engine.waiter import DEFAULT_POLL_INTERVAL, MIN_POLL_INTERVAL
from arm_provisioner.resources.base import Resource  # noqa: TC001 (Pydantic needs this at runtime)
from arm_provisioner.resources.container_registry import (
    ContainerRegistryTokenResource,  # noqa: TC001 (Pydantic needs this at runtime)
)
from arm_provisioner.resources.postgresql import (
    FlexibleServerResource,
    PostgresDatabaseResource,
    PostgresVirtualNetworkRuleResource,
)
from arm_provisioner.resources.resource_group import (
    ResourceGroupResource,  # noqa: TC001 (Pydantic needs this at runtime)
)
from arm_provisioner.resources.vmware import (
    ExpressRouteAuthorizationResource,  # noqa: TC001 (Pydantic needs this at runtime)
)


class ProviderConfig(BaseSettings):
    """Azure provider connection settings.

    Fields can be set via YAML (constructor kwargs) or environment variables
    with the ``ARM_`` prefix.  Constructor kwargs take precedence.

    ``client_secret`` is typically provided via the ``ARM_CLIENT_SECRET``
    environment variable rather than YAML to avoid committing secrets to
    version control. Without ``client_id``/``client_secret`` the default
    Azure credential chain is used.
    """

    model_config = SettingsConfigDict(env_prefix="ARM_")

    subscription_id: str
    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: SecretStr | None = None
    environment: Literal["public", "usgovernment", "china"] = "public"
    resource_manager_endpoint: str | None = None
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, ge=MIN_POLL_INTERVAL)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)


def _none_to_list(v: Any) -> Any:
    return v if v is not None else []


class Config(BaseModel):
    """Provisioning configuration; validates the YAML structure directly."""

    model_config = ConfigDict(extra="forbid")

    provider: ProviderConfig
    state_path: Path = Path(".arm-state.json")
    resource_groups: Annotated[list[ResourceGroupResource], BeforeValidator(_none_to_list)] = []
    postgresql_flexible_servers: Annotated[
        list[FlexibleServerResource],
        BeforeValidator(_none_to_list),
    ] = []
    postgresql_databases: Annotated[
        list[PostgresDatabaseResource],
        BeforeValidator(_none_to_list),
    ] = []
    postgresql_virtual_network_rules: Annotated[
        list[PostgresVirtualNetworkRuleResource],
        BeforeValidator(_none_to_list),
    ] = []
    container_registry_tokens: Annotated[
        list[ContainerRegistryTokenResource],
        BeforeValidator(_none_to_list),
    ] = []
    vmware_express_route_authorizations: Annotated[
        list[ExpressRouteAuthorizationResource],
        BeforeValidator(_none_to_list),
    ] = []
    config_dir: Path = Path()

    @computed_field  # type: ignore[prop-decorator]
    @property
    def resources(self) -> list[Resource]:
        """All declared resources. Ordering is not significant."""
        return [
            *self.resource_groups,
            *self.postgresql_flexible_servers,
            *self.postgresql_databases,
            *self.postgresql_virtual_network_rules,
            *self.container_registry_tokens,
            *self.vmware_express_route_authorizations,
        ]
