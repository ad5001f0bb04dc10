"""Azure provider - connection configuration for Azure Resource Manager."""

from functools import cached_property
from typing import TYPE_CHECKING, Literal, Self

from azure.identity import ClientSecretCredential, DefaultAzureCredential
from pydantic import BaseModel, ConfigDict, SecretStr

from arm_provisioner.core.arm_client import DEFAULT_MAX_RETRIES, ENDPOINTS, ArmClient

if TYPE_CHECKING:
    from azure.core.credentials import TokenCredential

    from arm_provisioner.core.arm_client import ArmResourceClient

_AUTHORITIES: dict[str, str] = {
    "public": "login.microsoftonline.com",
    "usgovernment": "login.microsoftonline.us",
    "china": "login.chinacloudapi.cn",
}


class ServicePrincipalAuth(BaseModel):
    """Client-secret authentication for a service principal."""

    tenant_id: str
    client_id: str
    client_secret: SecretStr


class AzureProvider(BaseModel):
    """Connection configuration for Azure Resource Manager.

    Without ``auth`` the credential comes from ``DefaultAzureCredential``
    (environment, managed identity, Azure CLI, ...). For testing, use
    ``from_client`` to inject a client.

    Examples:
        # Service principal
        provider = AzureProvider(
            subscription_id="00000000-0000-0000-0000-000000000000",
            auth=ServicePrincipalAuth(tenant_id="...", client_id="...", client_secret="..."),
        )

        # Injected (mock) client
        provider = AzureProvider.from_client(client, subscription_id="...")
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    subscription_id: str
    environment: Literal["public", "usgovernment", "china"] = "public"
    resource_manager_endpoint: str | None = None
    auth: ServicePrincipalAuth | None = None
    max_retries: int = DEFAULT_MAX_RETRIES

    # Injected client (for testing)
    _injected_client: ArmClient | None = None

    @classmethod
    def from_client(cls, client: ArmClient, *, subscription_id: str) -> Self:
        """Create a provider with an injected client."""
        provider = cls.model_construct(subscription_id=subscription_id)
        provider._injected_client = client
        return provider

    @property
    def endpoint(self) -> str:
        return self.resource_manager_endpoint or ENDPOINTS[self.environment]

    def _credential(self) -> "TokenCredential":
        if self.auth is None:
            return DefaultAzureCredential(authority=_AUTHORITIES[self.environment])
        return ClientSecretCredential(
            self.auth.tenant_id,
            self.auth.client_id,
            self.auth.client_secret.get_secret_value(),
            authority=_AUTHORITIES[self.environment],
        )

    @cached_property
    def client(self) -> ArmClient:
        """Get the ARM client."""
        if self._injected_client is not None:
            return self._injected_client
        return ArmClient(
            self._credential(),
            endpoint=self.endpoint,
            max_retries=self.max_retries,
        )

    def resources(self, api_version: str) -> "ArmResourceClient":
        """Remote client for one resource family."""
        return self.client.resources(api_version)
