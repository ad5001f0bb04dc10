"""State management for tracking deployed resources."""

import contextlib
import hashlib
import json
import logging
import os
import tempfile
import uuid
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


def _canonical_json(obj: Any) -> str:
    # Stable encoding for hashes/digests.
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)


def compute_attributes_hash(attrs: Mapping[str, Any]) -> str:
    """Compute a stable hash for a resource's stored attributes."""
    payload = _canonical_json(attrs)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ResourceInstance(BaseModel):
    """A tracked resource instance in the state file.

    Attributes:
        address: Unique resource address (e.g., "azurerm_resource_group.main")
        resource_type: Type of the resource (e.g., "azurerm_resource_group")
        name: Resource name (e.g., "rg-prod")
        resource_id: The ARM ID; the durable key for every later read
        attributes: Current attribute values
        attributes_hash: SHA256 hash for change detection
        dependencies: Addresses of dependencies
        created_at: When the resource was created
        updated_at: When the resource was last updated
    """

    address: str
    resource_type: str
    name: str
    resource_id: str
    attributes: dict[str, Any] = Field(default_factory=dict)
    attributes_hash: str = ""
    dependencies: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class State(BaseModel):
    """Terraform-style state file for tracking deployed resources.

    Attributes:
        version: State file format version
        subscription_id: Azure subscription the state belongs to
        resources: Mapping of resource addresses to instances
    """

    version: int = 1
    subscription_id: str
    serial: int = 0
    lineage: str = Field(default_factory=lambda: str(uuid.uuid4()))
    resources: dict[str, ResourceInstance] = Field(default_factory=dict)

    def save(self, path: Path) -> None:
        """Save state to a JSON file.

        - Writes atomically (temp file + rename)
        - Writes a `.backup` copy of the previous state when overwriting
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        backup_path = Path(str(path) + ".backup")
        with contextlib.suppress(FileNotFoundError):
            backup_path.write_bytes(path.read_bytes())

        data = self.model_dump(mode="json")
        content = json.dumps(data, indent=2, sort_keys=True) + "\n"

        fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
        tmp_file = Path(tmp_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            tmp_file.replace(path)
        finally:
            with contextlib.suppress(FileNotFoundError):
                tmp_file.unlink()
        logger.debug("State saved: serial=%d path=%s", self.serial, path)

    @classmethod
    def load(cls, path: Path) -> "State":
        """Load state from a JSON file."""
        state = cls.model_validate_json(path.read_text(encoding="utf-8"))
        logger.debug("State loaded from %s", path)
        return state

    @classmethod
    def load_or_create(cls, path: Path, subscription_id: str) -> "State":
        """Load existing state or create a new one."""
        if path.exists():
            return cls.load(path)
        logger.debug("Created new state for subscription %s", subscription_id)
        return cls(subscription_id=subscription_id)

    def find_by_resource_id(self, resource_id: str) -> ResourceInstance | None:
        """Look up a tracked instance by ARM ID (case-insensitive, as ARM treats IDs)."""
        wanted = resource_id.lower()
        return next(
            (i for i in self.resources.values() if i.resource_id.lower() == wanted), None
        )


def compute_state_digest(state: State) -> str:
    """Compute a stable digest of state content (excluding timestamps).

    Used for stale-plan detection; `created_at`/`updated_at` never force a re-plan.
    """
    resources = []
    for address, inst in sorted(state.resources.items(), key=lambda kv: kv[0]):
        resources.append(
            {
                "address": address,
                "resource_type": inst.resource_type,
                "name": inst.name,
                "resource_id": inst.resource_id,
                "attributes_hash": inst.attributes_hash,
                "dependencies": sorted(inst.dependencies),
            }
        )

    digestable = {
        "version": state.version,
        "subscription_id": state.subscription_id,
        "lineage": state.lineage,
        "serial": state.serial,
        "resources": resources,
    }
    payload = _canonical_json(digestable)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
