"""Plan and apply engine for ARM resources."""

from arm_provisioner.engine.engine import ArmEngine
from arm_provisioner.engine.errors import (
    ApplyCanceled,
    ApplyError,
    DependencyCycleError,
    DuplicateAddressError,
    EngineError,
    ImportConflictError,
    StalePlanError,
    StateLockError,
    StateSubscriptionMismatchError,
    UnknownResourceTypeError,
    ValidationError,
)
from arm_provisioner.engine.handlers import EngineContext, ResourceHandler
from arm_provisioner.engine.lifecycle import ArmResourceHandler, LifecycleState, Timeouts
from arm_provisioner.engine.registry import ResourceTypeRegistration, ResourceTypeRegistry
from arm_provisioner.engine.types import Action, ApplyResult, Plan, PlanMetadata, ResourceChange
from arm_provisioner.engine.waiter import CancellationToken, Waiter

__all__ = [
    "Action",
    "ApplyCanceled",
    "ApplyError",
    "ApplyResult",
    "ArmEngine",
    "ArmResourceHandler",
    "CancellationToken",
    "DependencyCycleError",
    "DuplicateAddressError",
    "EngineContext",
    "EngineError",
    "ImportConflictError",
    "LifecycleState",
    "Plan",
    "PlanMetadata",
    "ResourceChange",
    "ResourceHandler",
    "ResourceTypeRegistration",
    "ResourceTypeRegistry",
    "StalePlanError",
    "StateLockError",
    "StateSubscriptionMismatchError",
    "Timeouts",
    "UnknownResourceTypeError",
    "ValidationError",
    "Waiter",
]
