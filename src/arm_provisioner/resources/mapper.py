"""Expand/flatten between resource models and ARM JSON bodies.

Both directions are driven by the ``ArmPath`` markers declared on the model.
Nothing here performs I/O.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from arm_provisioner.resources.markers import (
    ArmPath,
    Computed,
    IdSegment,
    Local,
    ParentId,
    assign_path,
    carried_fields,
    field_default,
    find_marker,
    has_marker,
    iter_marked_fields,
    resolve_path,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Iterator, Mapping

    from pydantic.fields import FieldInfo


class Block:
    """Codec for a single nested block (Terraform's ``MaxItems: 1`` lists).

    The API sometimes returns such blocks as arrays; index 0 is used and an
    empty array means the block is absent.
    """

    def __init__(self, model: type[BaseModel]) -> None:
        self.model = model

    def expand(self, value: BaseModel) -> dict[str, Any]:
        return expand(value)

    def flatten(self, value: Any) -> dict[str, Any] | None:
        if isinstance(value, list):
            if not value:
                return None
            value = value[0]
        if not isinstance(value, dict):
            return None
        return flatten_block(self.model, value)

    def __repr__(self) -> str:
        return f"Block({self.model.__name__})"


def single_block(value: Any) -> Any:
    """``BeforeValidator`` accepting a mapping or a one-element list for a block."""
    if isinstance(value, list):
        if len(value) > 1:
            raise ValueError(f"expected at most one block, got {len(value)}")
        return value[0] if value else None
    return value


def _wire_values(
    model: BaseModel, only: Collection[str] | None
) -> Iterator[tuple[str, Any]]:
    for name, fi, marker in iter_marked_fields(model, ArmPath):
        if has_marker(fi, Computed):
            continue
        if only is not None and name not in only:
            continue
        value = getattr(model, name)
        if value is None:
            continue
        if marker.codec is not None:
            value = marker.codec.expand(value)
        yield marker.path, value


def expand(model: BaseModel, *, only: Collection[str] | None = None) -> dict[str, Any]:
    """Build an ARM payload from *model*.

    ``None`` values and ``Computed`` fields are omitted. When *only* is given,
    just those fields are included (the body of a delta PATCH).
    """
    payload: dict[str, Any] = {}
    for path, value in _wire_values(model, only):
        assign_path(payload, path, value)
    return payload


def overlay(
    body: Mapping[str, Any], model: BaseModel, *, only: Collection[str]
) -> dict[str, Any]:
    """Copy *body* and write the *only* fields of *model* over their paths.

    Each field replaces the value at its path wholesale, so keys removed from
    a mapping field (tags) are removed from the result too.
    """
    patched = copy.deepcopy(dict(body))
    for path, value in _wire_values(model, only):
        assign_path(patched, path, copy.deepcopy(value))
    return patched


def _flatten_field(fi: FieldInfo, marker: ArmPath, body: Mapping[str, Any]) -> Any:
    raw = resolve_path(body, marker.path)
    if raw is None:
        return field_default(fi)
    value = marker.codec.flatten(raw) if marker.codec is not None else raw
    return field_default(fi) if value is None else value


def flatten_block(model_cls: type[BaseModel], body: Mapping[str, Any]) -> dict[str, Any]:
    return {
        name: _flatten_field(fi, marker, body)
        for name, fi, marker in iter_marked_fields(model_cls, ArmPath)
    }


def flatten(
    resource_cls: type[BaseModel],
    body: Mapping[str, Any],
    *,
    identity: Mapping[str, Any],
    carried: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build stored attributes from an ARM body.

    Every non-local field gets a value: identity fields come from the parsed
    resource ID, write-only fields from *carried* (the desired or prior
    attributes), the rest from the body with model defaults filling gaps.
    """
    carried = carried or {}
    carried_names = carried_fields(resource_cls)
    attrs: dict[str, Any] = {}
    for name, fi in resource_cls.model_fields.items():
        if has_marker(fi, Local):
            continue
        if name in identity:
            attrs[name] = identity[name]
            continue
        marker = find_marker(fi, ArmPath)
        if name in carried_names or marker is None:
            attrs[name] = carried.get(name, field_default(fi))
            continue
        attrs[name] = _flatten_field(fi, marker, body)
    return attrs


def unmapped_fields(resource_cls: type[BaseModel]) -> list[str]:
    """Fields with no ARM path, identity role, or local-only declaration."""
    return [
        name
        for name, fi in resource_cls.model_fields.items()
        if not any(has_marker(fi, m) for m in (ArmPath, IdSegment, ParentId, Local))
    ]
