"""Tests for the YAML configuration loader and provider resolution."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from arm_provisioner.config.loader import (
    ConfigError,
    _resolve_provider,
    _validate_unique_addresses,
    load_config,
)
from arm_provisioner.resources.postgresql import FlexibleServerResource
from arm_provisioner.resources.resource_group import ResourceGroupResource

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from arm_provisioner.config.schema import Config

SUB = "00000000-0000-0000-0000-000000000000"
SUBNET = (
    f"/subscriptions/{SUB}/resourceGroups/net"
    "/providers/Microsoft.Network/virtualNetworks/v/subnets/app"
)
SCOPE_MAP = (
    f"/subscriptions/{SUB}/resourceGroups/rg-data"
    "/providers/Microsoft.ContainerRegistry/registries/registry1/scopeMaps/pull"
)
PRIVATE_CLOUD = (
    f"/subscriptions/{SUB}/resourceGroups/avs/providers/Microsoft.AVS/privateClouds/pc1"
)

_FULL_YAML = f"""\
provider:
  subscription_id: {SUB}
  poll_interval: 5

state_path: custom-state.json

resource_groups:
  - name: rg-data
    location: West Europe
    tags:
      env: prod

postgresql_flexible_servers:
  - name: psql-data
    resource_group_name: rg-data
    location: westeurope
    administrator_login: psqladmin
    administrator_login_password: s3cret
    version: "12"
    sku:
      - name: GP_Standard_D2s_v3
        tier: GeneralPurpose
    maintenance_window:
      day_of_week: 0
      start_hour: 3

postgresql_databases:
  - name: app
    resource_group_name: rg-data
    server_name: psql-legacy
    charset: UTF8
    collation: English_United States.1252

postgresql_virtual_network_rules:
  - name: allow-app
    resource_group_name: rg-data
    server_name: psql-legacy
    subnet_id: {SUBNET}

container_registry_tokens:
  - name: ci-pull
    resource_group_name: rg-data
    container_registry_name: registry1
    scope_map_id: {SCOPE_MAP}

vmware_express_route_authorizations:
  - name: onprem
    private_cloud_id: {PRIVATE_CLOUD}
"""


@pytest.fixture
def full_config(make_config: Callable[..., Config]) -> Config:
    return make_config(_FULL_YAML)


class TestLoadConfigFull:
    def test_full_yaml_parses(self, full_config: Config) -> None:
        assert full_config.provider.subscription_id == SUB
        assert full_config.provider.poll_interval == 5
        assert str(full_config.state_path) == "custom-state.json"
        assert len(full_config.resources) == 6

    def test_resource_types(self, full_config: Config) -> None:
        assert [r.resource_type for r in full_config.resources] == [
            "azurerm_resource_group",
            "azurerm_postgresql_flexible_server",
            "azurerm_postgresql_database",
            "azurerm_postgresql_virtual_network_rule",
            "azurerm_container_registry_token",
            "azurerm_vmware_express_route_authorization",
        ]

    def test_location_is_normalized(self, full_config: Config) -> None:
        assert full_config.resource_groups[0].location == "westeurope"

    def test_single_block_list_is_accepted(self, full_config: Config) -> None:
        server = full_config.postgresql_flexible_servers[0]
        assert isinstance(server, FlexibleServerResource)
        assert server.sku is not None
        assert server.sku.name == "GP_Standard_D2s_v3"
        assert server.maintenance_window is not None
        assert server.maintenance_window.start_hour == 3

    def test_config_dir_set_to_parent(self, tmp_path: Path) -> None:
        f = tmp_path / "sub" / "config.yaml"
        f.parent.mkdir()
        f.write_text(f"provider:\n  subscription_id: {SUB}\n")
        config = load_config(f)
        assert config.config_dir == f.parent

    def test_default_state_path(self, make_config: Callable[..., Config]) -> None:
        config = make_config(f"provider:\n  subscription_id: {SUB}\n")
        assert str(config.state_path) == ".arm-state.json"
        assert config.resources == []


class TestConfigErrors:
    def test_missing_subscription(self, make_config: Callable[..., Config]) -> None:
        with pytest.raises(ConfigError, match="subscription_id"):
            make_config("resource_groups: []\n")

    def test_non_mapping_yaml(self, make_config: Callable[..., Config]) -> None:
        with pytest.raises(ConfigError, match="mapping"):
            make_config("- a\n- b\n")

    def test_empty_sections(self, make_config: Callable[..., Config]) -> None:
        config = make_config(
            f"provider:\n  subscription_id: {SUB}\nresource_groups:\npostgresql_databases:\n"
        )
        assert config.resources == []

    def test_unknown_section_rejected(self, make_config: Callable[..., Config]) -> None:
        with pytest.raises(ConfigError):
            make_config(f"provider:\n  subscription_id: {SUB}\nvirtual_machines: []\n")

    def test_unknown_resource_field_rejected(self, make_config: Callable[..., Config]) -> None:
        with pytest.raises(ConfigError, match="colour"):
            make_config(
                f"provider:\n  subscription_id: {SUB}\n"
                "resource_groups:\n  - name: rg1\n    location: westeurope\n    colour: red\n"
            )

    def test_computed_field_rejected(self, make_config: Callable[..., Config]) -> None:
        with pytest.raises(ConfigError, match="computed fields cannot be set"):
            make_config(
                f"provider:\n  subscription_id: {SUB}\n"
                "postgresql_flexible_servers:\n"
                "  - name: psql-1\n"
                "    resource_group_name: rg1\n"
                "    location: westeurope\n"
                "    create_mode: PointInTimeRestore\n"
                "    source_server_name: old\n"
                "    point_in_time_utc: '2021-06-01T00:00:00Z'\n"
                "    fqdn: psql-1.postgres.database.azure.com\n"
            )

    def test_invalid_yaml(self, make_config: Callable[..., Config]) -> None:
        with pytest.raises(ConfigError, match="Failed to read"):
            make_config("provider: [unclosed\n")

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Failed to read"):
            load_config(tmp_path / "nope.yaml")

    def test_unknown_provider_key(self, make_config: Callable[..., Config]) -> None:
        with pytest.raises(ConfigError, match="Unknown provider setting"):
            make_config(f"provider:\n  subscription_id: {SUB}\n  region: westeurope\n")

    def test_duplicate_addresses(self, make_config: Callable[..., Config]) -> None:
        with pytest.raises(ConfigError, match="Duplicate address"):
            make_config(
                f"provider:\n  subscription_id: {SUB}\n"
                "resource_groups:\n"
                "  - name: rg1\n    location: westeurope\n"
                "  - name: rg1\n    location: northeurope\n"
            )

    def test_labels_disambiguate_addresses(self, make_config: Callable[..., Config]) -> None:
        config = make_config(
            f"provider:\n  subscription_id: {SUB}\n"
            "resource_groups:\n"
            "  - name: rg1\n    location: westeurope\n"
            "  - name: rg1\n    label: dr\n    location: northeurope\n"
        )
        assert [r.address for r in config.resources] == [
            "azurerm_resource_group.rg1",
            "azurerm_resource_group.dr",
        ]


def test_validate_unique_addresses() -> None:
    resources: list[Any] = [
        ResourceGroupResource(name="a", location="westeurope"),
        ResourceGroupResource(name="b", location="westeurope", label="a"),
    ]
    errors = _validate_unique_addresses(resources)
    assert len(errors) == 1
    assert "'a' and 'b'" in errors[0]


class TestResolveProvider:
    def test_env_var_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ARM_SUBSCRIPTION_ID", "from-env")
        result = _resolve_provider({}, tmp_path)
        assert result["subscription_id"] == "from-env"

    def test_yaml_value_over_env_var(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ARM_SUBSCRIPTION_ID", "from-env")
        result = _resolve_provider({"subscription_id": "from-yaml"}, tmp_path)
        assert result["subscription_id"] == "from-yaml"

    def test_yaml_null_falls_through_to_env_var(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ARM_CLIENT_SECRET", "from-env")
        result = _resolve_provider({"client_secret": None}, tmp_path)
        assert result["client_secret"] == "from-env"

    def test_unset_fields_are_omitted(self, tmp_path: Path) -> None:
        assert _resolve_provider({"subscription_id": SUB}, tmp_path) == {"subscription_id": SUB}

    def test_dotenv_file(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("ARM_CLIENT_SECRET=from-dotenv\n")
        result = _resolve_provider({}, tmp_path)
        assert result["client_secret"] == "from-dotenv"

    def test_env_var_overrides_dotenv(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / ".env").write_text("ARM_CLIENT_SECRET=from-dotenv\n")
        monkeypatch.setenv("ARM_CLIENT_SECRET", "from-env")
        result = _resolve_provider({}, tmp_path)
        assert result["client_secret"] == "from-env"

    def test_dotenv_with_bom(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_bytes(b"\xef\xbb\xbfARM_TENANT_ID=from-bom\n")
        result = _resolve_provider({}, tmp_path)
        assert result["tenant_id"] == "from-bom"

    def test_unknown_key(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="host"):
            _resolve_provider({"host": "x"}, tmp_path)


class TestProviderSettings:
    def test_dotenv_next_to_config(self, make_config: Callable[..., Config]) -> None:
        config = make_config(
            f"provider:\n  subscription_id: {SUB}\n",
            dotenv="ARM_CLIENT_ID=app\nARM_CLIENT_SECRET=from-dotenv\nARM_TENANT_ID=t\n",
        )
        assert config.provider.client_secret is not None
        assert config.provider.client_secret.get_secret_value() == "from-dotenv"
        assert config.provider.client_id == "app"

    def test_secret_is_masked_in_repr(self, make_config: Callable[..., Config]) -> None:
        config = make_config(
            f"provider:\n  subscription_id: {SUB}\n", dotenv="ARM_CLIENT_SECRET=hunter2\n"
        )
        assert "hunter2" not in repr(config.provider)

    def test_numeric_settings_from_env(
        self, make_config: Callable[..., Config], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ARM_POLL_INTERVAL", "2.5")
        monkeypatch.setenv("ARM_MAX_RETRIES", "0")
        config = make_config(f"provider:\n  subscription_id: {SUB}\n")
        assert config.provider.poll_interval == 2.5
        assert config.provider.max_retries == 0

    def test_poll_interval_floor(self, make_config: Callable[..., Config]) -> None:
        with pytest.raises(ConfigError, match="poll_interval"):
            make_config(f"provider:\n  subscription_id: {SUB}\n  poll_interval: 0.1\n")

    def test_environment_choices(self, make_config: Callable[..., Config]) -> None:
        config = make_config(f"provider:\n  subscription_id: {SUB}\n  environment: china\n")
        assert config.provider.environment == "china"
        with pytest.raises(ConfigError, match="environment"):
            make_config(f"provider:\n  subscription_id: {SUB}\n  environment: mars\n")
