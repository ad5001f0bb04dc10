"""YAML configuration file loader."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dotenv import dotenv_values
from pydantic import ValidationError
from ruamel.yaml import YAML

from arm_provisioner.config.schema import Config

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from arm_provisioner.resources.base import Resource


class ConfigError(Exception):
    """Raised for configuration loading / validation errors."""


# Field name → environment variable.
_PROVIDER_ENV_MAP: dict[str, str] = {
    "subscription_id": "ARM_SUBSCRIPTION_ID",
    "tenant_id": "ARM_TENANT_ID",
    "client_id": "ARM_CLIENT_ID",
    "client_secret": "ARM_CLIENT_SECRET",
    "environment": "ARM_ENVIRONMENT",
    "resource_manager_endpoint": "ARM_RESOURCE_MANAGER_ENDPOINT",
    "poll_interval": "ARM_POLL_INTERVAL",
    "max_retries": "ARM_MAX_RETRIES",
}


def _resolve_provider(raw_provider: dict[str, Any], config_dir: Path) -> dict[str, Any]:
    """Resolve provider fields from YAML, env vars, and ``.env`` file.

    Priority (highest wins): YAML value > env var > ``.env`` file.
    """
    unknown = sorted(set(raw_provider) - set(_PROVIDER_ENV_MAP))
    if unknown:
        raise ConfigError(f"Unknown provider setting(s): {', '.join(unknown)}")

    env_file = config_dir / ".env"
    dotenv_vals = dotenv_values(env_file, encoding="utf-8-sig") if env_file.is_file() else {}

    resolved: dict[str, Any] = {}
    for field, env_key in _PROVIDER_ENV_MAP.items():
        val = raw_provider.get(field)
        if val is None:
            val = os.environ.get(env_key)
        if val is None:
            val = dotenv_vals.get(env_key)
        if val is not None:
            resolved[field] = val

    return resolved


def _validate_unique_addresses(resources: list[Resource]) -> list[str]:
    """Check that no two resources resolve to the same address."""
    seen: dict[str, str] = {}
    errors: list[str] = []
    for r in resources:
        if r.address in seen:
            errors.append(
                f"Duplicate address '{r.address}': "
                f"'{seen[r.address]}' and '{r.name}' both use it (set a distinct label)"
            )
        else:
            seen[r.address] = r.name
    return errors


def load_config(path: Path | str) -> Config:
    """Load a YAML configuration file and return a ``Config`` object.

    Raises:
        ConfigError: On YAML parse errors, missing sections, or validation failures.
    """
    path = Path(path)

    try:
        raw = YAML(typ="safe").load(path)
    except Exception as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")

    try:
        raw["provider"] = _resolve_provider(raw.get("provider") or {}, path.parent)
        config = Config.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc

    config.config_dir = path.parent

    errors = _validate_unique_addresses(config.resources)
    if errors:
        raise ConfigError("\n".join(errors))

    logger.info("Loaded config from %s (%d resources)", path, len(config.resources))
    return config
