"""YAML configuration loading and convenience plan/apply API."""

from __future__ import annotations

from typing import TYPE_CHECKING

from arm_provisioner.config.loader import ConfigError, load_config
from arm_provisioner.config.registry import default_registry
from arm_provisioner.config.schema import Config, ProviderConfig
from arm_provisioner.core.provider import AzureProvider, ServicePrincipalAuth
from arm_provisioner.core.state import State
from arm_provisioner.engine.engine import ArmEngine, ProgressCallback
from arm_provisioner.engine.lock import StateLock
from arm_provisioner.engine.types import Action, ResourceChange
from arm_provisioner.engine.waiter import Waiter

if TYPE_CHECKING:
    from pathlib import Path

    from arm_provisioner.core.state import ResourceInstance
    from arm_provisioner.engine.types import ApplyResult, Plan
    from arm_provisioner.engine.waiter import CancellationToken

__all__ = [
    "Config",
    "ConfigError",
    "ProviderConfig",
    "State",
    "apply",
    "drift",
    "import_resource",
    "load",
    "load_config",
    "plan",
    "plan_and_apply",
    "refresh",
    "save_state",
]


def load(path: Path | str) -> Config:
    """Load a YAML configuration file."""
    return load_config(path)


def _provider_from_config(config: Config) -> AzureProvider:
    p = config.provider
    auth = None
    if p.client_id or p.client_secret:
        if not (p.tenant_id and p.client_id and p.client_secret):
            raise ConfigError(
                "provider.tenant_id, provider.client_id and provider.client_secret must be set "
                "together (or use ARM_TENANT_ID / ARM_CLIENT_ID / ARM_CLIENT_SECRET)"
            )
        auth = ServicePrincipalAuth(
            tenant_id=p.tenant_id, client_id=p.client_id, client_secret=p.client_secret
        )
    return AzureProvider(
        subscription_id=p.subscription_id,
        environment=p.environment,
        resource_manager_endpoint=p.resource_manager_endpoint,
        auth=auth,
        max_retries=p.max_retries,
    )


def _engine_from_config(config: Config, *, cancel: CancellationToken | None = None) -> ArmEngine:
    """Build an ``ArmEngine`` from a ``Config`` instance."""
    return ArmEngine(
        provider=_provider_from_config(config),
        state_path=config.state_path,
        registry=default_registry(),
        waiter=Waiter(poll_interval=config.provider.poll_interval),
        cancel=cancel,
    )


def plan(config: Config, *, destroy: bool = False, refresh: bool = True) -> Plan:
    """Plan changes for the given configuration."""
    engine = _engine_from_config(config)
    return engine.plan(config.resources, destroy=destroy, refresh=refresh)


def apply(
    plan_obj: Plan,
    config: Config,
    *,
    progress: ProgressCallback | None = None,
    cancel: CancellationToken | None = None,
) -> ApplyResult:
    """Apply a previously computed plan."""
    engine = _engine_from_config(config, cancel=cancel)
    return engine.apply(plan_obj, progress=progress)


def plan_and_apply(config: Config, *, destroy: bool = False, refresh: bool = True) -> ApplyResult:
    """Plan and apply in one step."""
    plan_obj = plan(config, destroy=destroy, refresh=refresh)
    return apply(plan_obj, config)


def refresh(config: Config) -> tuple[list[ResourceChange], State]:
    """Refresh state from ARM (not persisted).

    Returns the list of drift changes and the new state. Call
    :func:`save_state` to persist the returned state to disk.
    """
    engine = _engine_from_config(config)
    old_state, new_state = engine.refresh()
    return _build_drift_changes(old_state, new_state), new_state


def save_state(config: Config, state: State) -> None:
    """Persist state to disk."""
    with StateLock(config.state_path):
        state.serial += 1
        state.save(config.state_path)


def drift(config: Config) -> list[ResourceChange]:
    """Detect drift between the state file and live ARM resources."""
    changes, _ = refresh(config)
    return changes


def import_resource(config: Config, address: str, resource_id: str) -> ResourceInstance:
    """Adopt an existing ARM resource into state under a configured *address*."""
    resource = next((r for r in config.resources if r.address == address), None)
    if resource is None:
        raise ConfigError(f"No resource with address '{address}' in the configuration")
    engine = _engine_from_config(config)
    return engine.import_resource(resource, resource_id)


def _build_drift_changes(old_state: State, new_state: State) -> list[ResourceChange]:
    """Compare old vs new state and return a list of drift changes."""
    changes: list[ResourceChange] = []
    for addr, inst in new_state.resources.items():
        old_inst = old_state.resources.get(addr)
        if old_inst is None:
            continue
        old = old_inst.attributes
        if old != inst.attributes:
            all_keys = set(old) | set(inst.attributes)
            diff = {
                k: {"from": old.get(k), "to": inst.attributes.get(k)}
                for k in sorted(all_keys)
                if old.get(k) != inst.attributes.get(k)
            }
            changes.append(
                ResourceChange(
                    address=addr,
                    resource_type=inst.resource_type,
                    action=Action.UPDATE,
                    resource_id=inst.resource_id,
                    prior=dict(old),
                    planned=dict(inst.attributes),
                    diff=diff,
                )
            )
    for addr in sorted(set(old_state.resources) - set(new_state.resources)):
        old_inst = old_state.resources[addr]
        changes.append(
            ResourceChange(
                address=addr,
                resource_type=old_inst.resource_type,
                action=Action.DELETE,
                resource_id=old_inst.resource_id,
                prior=dict(old_inst.attributes),
            )
        )
    return changes
