"""Resource ID parsing and formatting.

ARM identifies every resource by a slash-delimited path such as::

    /subscriptions/{id}/resourceGroups/{name}/providers/{namespace}/{type}/{name}

Each resource family declares a ``ResourceId`` subclass with a ``template``
whose ``{field}`` placeholders become dataclass fields. Literal segments must
match exactly; ``parse(..., insensitively=True)`` exists for IDs echoed back by
APIs that do not preserve casing.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any, ClassVar, Self

from arm_provisioner.core.errors import MalformedIdError

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True)
class _Segment:
    text: str
    variable: bool


def _compile_template(template: str) -> tuple[_Segment, ...]:
    if not template.startswith("/"):
        raise ValueError(f"ID template must start with '/': {template!r}")
    segments: list[_Segment] = []
    for part in template[1:].split("/"):
        if not part:
            raise ValueError(f"ID template has an empty segment: {template!r}")
        if part.startswith("{") and part.endswith("}"):
            segments.append(_Segment(part[1:-1], variable=True))
        else:
            segments.append(_Segment(part, variable=False))
    return tuple(segments)


def _label(field_name: str) -> str:
    return field_name.replace("_", " ").title()


@dataclass(frozen=True)
class ResourceId:
    """Base class for typed resource IDs.

    Subclasses set ``template`` and ``kind`` and declare one ``str`` field per
    template placeholder, in any order.
    """

    template: ClassVar[str]
    kind: ClassVar[str]
    _segments: ClassVar[tuple[_Segment, ...]] = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "template" in cls.__dict__:
            cls._segments = _compile_template(cls.template)

    def __post_init__(self) -> None:
        for seg in self._segments:
            if not seg.variable:
                continue
            value = getattr(self, seg.text)
            if not isinstance(value, str) or not value or "/" in value:
                raise MalformedIdError(
                    self._render(lenient=True),
                    f"segment {seg.text!r} must be a non-empty string without '/'",
                )

    # ── formatting ──────────────────────────────────────────────────

    def _render(self, *, lenient: bool = False) -> str:
        parts = []
        for seg in self._segments:
            if seg.variable:
                value = getattr(self, seg.text, None) if lenient else getattr(self, seg.text)
                parts.append(str(value) if value is not None else "")
            else:
                parts.append(seg.text)
        return "/" + "/".join(parts)

    @property
    def id(self) -> str:
        """The canonical ARM ID string."""
        return self._render()

    def __str__(self) -> str:
        named = [
            f"{_label(seg.text)} {getattr(self, seg.text)!r}"
            for seg in reversed(self._segments)
            if seg.variable and seg.text != "subscription_id"
        ]
        return f"{self.kind}: ({' / '.join(named)})"

    # ── parsing ─────────────────────────────────────────────────────

    @classmethod
    def parse(cls, raw: str, *, insensitively: bool = False) -> Self:
        """Parse *raw* into this ID type or raise ``MalformedIdError``."""
        if not cls._segments:
            raise TypeError(f"{cls.__name__} does not declare a template")
        if not isinstance(raw, str) or not raw:
            raise MalformedIdError(str(raw), "ID is empty")
        if not raw.startswith("/"):
            raise MalformedIdError(raw, "ID must start with '/'")

        parts = raw[1:].split("/")
        if len(parts) != len(cls._segments):
            raise MalformedIdError(
                raw, f"expected {len(cls._segments)} segments, got {len(parts)}"
            )

        values: dict[str, str] = {}
        for index, (seg, part) in enumerate(zip(cls._segments, parts, strict=True)):
            if seg.variable:
                if not part:
                    raise MalformedIdError(raw, f"segment {seg.text!r} is empty")
                values[seg.text] = part
                continue
            matches = part.lower() == seg.text.lower() if insensitively else part == seg.text
            if not matches:
                raise MalformedIdError(
                    raw, f"expected {seg.text!r} at position {index}, got {part!r}"
                )
        return cls(**values)

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    def equivalent(self, other: ResourceId) -> bool:
        """Compare two IDs treating the subscription GUID case-insensitively."""
        if type(other) is not type(self):
            return False
        for name in self.field_names():
            mine, theirs = getattr(self, name), getattr(other, name)
            if name == "subscription_id":
                mine, theirs = mine.lower(), theirs.lower()
            if mine != theirs:
                return False
        return True


# ── Generic ARM ID decomposition ─────────────────────────────────────


@dataclass(frozen=True)
class ParsedResourceId:
    """Any ARM ID split into its well-known parts and ``key -> value`` path pairs."""

    subscription_id: str
    resource_group: str | None
    provider: str | None
    path: Mapping[str, str]

    def segment(self, key: str) -> str:
        """Return the value following *key*, or raise ``MalformedIdError``."""
        value = self.path.get(key)
        if not value:
            raise MalformedIdError(self.raw, f"ID was missing the {key!r} element")
        return value

    @property
    def raw(self) -> str:
        parts = ["", "subscriptions", self.subscription_id]
        if self.resource_group is not None:
            parts += ["resourceGroups", self.resource_group]
        if self.provider is not None:
            parts += ["providers", self.provider]
        for key, value in self.path.items():
            parts += [key, value]
        return "/".join(parts)


def parse_resource_id(raw: str) -> ParsedResourceId:
    """Decompose an arbitrary ARM ID.

    The path must consist of ``key/value`` pairs starting with
    ``subscriptions``. ``resourceGroups`` (or the legacy ``resourcegroups``)
    and ``providers`` are lifted out; everything else lands in ``path``.
    """
    if not isinstance(raw, str) or not raw.startswith("/"):
        raise MalformedIdError(str(raw), "ID must start with '/'")
    components = raw.strip("/").split("/")
    if len(components) % 2 != 0:
        raise MalformedIdError(raw, "the number of path segments is not divisible by 2")

    pairs: list[tuple[str, str]] = []
    for i in range(0, len(components), 2):
        key, value = components[i], components[i + 1]
        if not key or not value:
            raise MalformedIdError(raw, f"key/value pair {key!r}/{value!r} has an empty part")
        pairs.append((key, value))

    if pairs[0][0] != "subscriptions":
        raise MalformedIdError(raw, "ID was missing the 'subscriptions' element")

    subscription_id = pairs[0][1]
    resource_group: str | None = None
    provider: str | None = None
    path: dict[str, str] = {}
    for key, value in pairs[1:]:
        if key in ("resourceGroups", "resourcegroups") and resource_group is None:
            resource_group = value
        elif key == "providers" and provider is None:
            provider = value
        else:
            path[key] = value

    return ParsedResourceId(
        subscription_id=subscription_id,
        resource_group=resource_group,
        provider=provider,
        path=path,
    )
