"""Declarative field markers for resource models.

Markers attach to Pydantic fields via ``Annotated``:

- ``Ref``       field references another resource (implicit dependency)
- ``ArmPath``   field maps to a dot-separated path in the ARM JSON body
- ``IdSegment`` field is a variable segment of the resource ID
- ``ParentId``  field is the full ID of the parent resource
- ``Compare``   field-level comparison strategy used by the engine
- ``ForceNew``  changing the field replaces the resource
- ``Computed``  server-assigned; read back but never sent
- ``WriteOnly`` sent but never returned by the API; carried from prior state
- ``Sensitive`` masked in plan output
- ``Local``     engine bookkeeping (``depends_on``); not part of remote state
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, TypeAlias, TypeVar

from pydantic_core import PydanticUndefined

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo

    from arm_provisioner.core.resource_id import ResourceId
    from arm_provisioner.resources.codecs import Codec

M = TypeVar("M")
CompareStrategy: TypeAlias = Literal["partial", "exact", "set", "casefold"]


@dataclass(frozen=True, slots=True)
class ResourceRef:
    """Resolved reference value extracted from a ``Ref``-annotated field."""

    name: str
    resource_type: str | None = None


# ── Marker dataclasses ──────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Ref:
    """Field references another resource by name.

    ``resource_type`` is optional; ``None`` means "any resource".
    """

    resource_type: str | None = None


@dataclass(frozen=True, slots=True)
class ArmPath:
    """Field maps to a path in the ARM body.

    ``path`` is dot-separated, e.g. ``"properties.storageProfile.storageMB"``.
    ``codec`` converts between the model value and the wire value.
    """

    path: str
    codec: Codec | None = None


@dataclass(frozen=True, slots=True)
class IdSegment:
    """Field supplies the named variable segment of the resource ID."""

    segment: str


@dataclass(frozen=True, slots=True)
class ParentId:
    """Field holds the full ID of the parent resource.

    The parent's fields map onto the child ID's segments of the same name,
    except the parent's ``name``, which becomes ``name_segment``.
    """

    id_type: type[ResourceId]
    name_segment: str


@dataclass(frozen=True, slots=True)
class Compare:
    """How the engine should compare the field.

    - ``"partial"``: for dict values, only keys declared in desired are compared
    - ``"exact"``: strict equality comparison
    - ``"set"``: order-insensitive list comparison
    - ``"casefold"``: case-insensitive string comparison
    """

    strategy: CompareStrategy


@dataclass(frozen=True, slots=True)
class ForceNew:
    pass


@dataclass(frozen=True, slots=True)
class Computed:
    pass


@dataclass(frozen=True, slots=True)
class WriteOnly:
    pass


@dataclass(frozen=True, slots=True)
class Sensitive:
    pass


@dataclass(frozen=True, slots=True)
class Local:
    pass


# ── Shared introspection primitives ─────────────────────────────────


def find_marker(field_info: FieldInfo, marker_type: type[M]) -> M | None:
    """Return the first marker of *marker_type* on a field, or ``None``."""
    return next((m for m in field_info.metadata if isinstance(m, marker_type)), None)


def has_marker(field_info: FieldInfo, marker_type: type) -> bool:
    return find_marker(field_info, marker_type) is not None


def iter_marked_fields(
    model_or_cls: Any,
    marker_type: type[M],
) -> list[tuple[str, FieldInfo, M]]:
    """Return ``(field_name, field_info, marker)`` for every field carrying *marker_type*."""
    cls = model_or_cls if isinstance(model_or_cls, type) else type(model_or_cls)
    return [
        (name, fi, marker)
        for name, fi in cls.model_fields.items()
        if (marker := find_marker(fi, marker_type)) is not None
    ]


def resolve_path(raw: Any, path: str, default: Any = None) -> Any:
    """Resolve a dot-separated path in a nested dict."""
    current: Any = raw
    for segment in path.split("."):
        if not isinstance(current, dict) or segment not in current:
            return default
        current = current[segment]
    return current


def assign_path(raw: dict[str, Any], path: str, value: Any) -> None:
    """Set a dot-separated path in a nested dict, creating parents as needed."""
    *parents, leaf = path.split(".")
    current = raw
    for segment in parents:
        current = current.setdefault(segment, {})
    current[leaf] = value


def field_default(fi: FieldInfo) -> Any:
    """Model default for a field, or ``None`` for required fields."""
    if fi.default is not PydanticUndefined:
        return fi.default
    if fi.default_factory is not None:
        return fi.default_factory()  # type: ignore[call-arg]
    return None


def _coerce_to_list(value: Any) -> list[str]:
    """Normalize a scalar, list, or ``None`` to a flat list of strings."""
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


# ── Public helpers ──────────────────────────────────────────────────


def collect_ref_specs(resource: Any) -> list[ResourceRef]:
    """Collect typed references from ``Ref``-annotated fields."""
    refs: list[ResourceRef] = []
    for name, _, marker in iter_marked_fields(resource, Ref):
        refs.extend(
            ResourceRef(name=ref, resource_type=marker.resource_type)
            for ref in _coerce_to_list(getattr(resource, name))
        )
    return refs


def collect_compare_strategies(resource_or_cls: Any) -> dict[str, CompareStrategy]:
    """Collect per-field compare strategies from ``Compare`` markers."""
    return {
        name: marker.strategy for name, _, marker in iter_marked_fields(resource_or_cls, Compare)
    }


def force_new_fields(resource_or_cls: Any) -> set[str]:
    return {name for name, _, _ in iter_marked_fields(resource_or_cls, ForceNew)}


def sensitive_fields(resource_or_cls: Any) -> set[str]:
    return {name for name, _, _ in iter_marked_fields(resource_or_cls, Sensitive)}


def computed_fields(resource_or_cls: Any) -> set[str]:
    return {name for name, _, _ in iter_marked_fields(resource_or_cls, Computed)}


def identity_fields(resource_or_cls: Any) -> set[str]:
    """Fields that take part in the resource ID."""
    return {name for name, _, _ in iter_marked_fields(resource_or_cls, IdSegment)} | {
        name for name, _, _ in iter_marked_fields(resource_or_cls, ParentId)
    }


def local_fields(resource_or_cls: Any) -> set[str]:
    return {name for name, _, _ in iter_marked_fields(resource_or_cls, Local)}


def carried_fields(resource_or_cls: Any) -> set[str]:
    """Fields the API never echoes back."""
    return {name for name, _, _ in iter_marked_fields(resource_or_cls, WriteOnly)}
