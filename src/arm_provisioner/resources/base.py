"""Base resource class for ARM resources."""

from typing import TYPE_CHECKING, Annotated, Any, ClassVar, Self

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, computed_field, model_validator

from arm_provisioner.resources.codecs import normalize_location
from arm_provisioner.resources.markers import (
    Compare,
    IdSegment,
    Local,
    ParentId,
    ResourceRef,
    collect_ref_specs,
    computed_fields,
    iter_marked_fields,
)

if TYPE_CHECKING:
    from arm_provisioner.core.resource_id import ResourceId

Location = Annotated[str, AfterValidator(normalize_location)]
Tags = Annotated[dict[str, str], Compare("exact")]


class Resource(BaseModel):
    """Base class for all ARM resources.

    Resources are pure data - they define the desired state.
    Handlers know how to CRUD resources.
    """

    model_config = ConfigDict(extra="forbid")

    resource_type: ClassVar[str]
    id_type: ClassVar[type["ResourceId"]]
    plan_priority: ClassVar[int] = 100

    name: Annotated[str, IdSegment("name")] = Field(min_length=1)

    # Lifecycle
    label: Annotated[str | None, Local()] = Field(default=None, pattern=r"^[a-zA-Z0-9_-]+$")
    depends_on: Annotated[list[str], Local()] = []

    @model_validator(mode="after")
    def _reject_computed(self) -> Self:
        offending = sorted(self.model_fields_set & computed_fields(type(self)))
        if offending:
            raise ValueError(f"computed fields cannot be set: {', '.join(offending)}")
        return self

    def references(self) -> list[ResourceRef]:
        """Typed references declared on this resource."""
        return collect_ref_specs(self)

    def resource_id(self, subscription_id: str) -> "ResourceId":
        """The ARM ID this resource will live at."""
        values: dict[str, str] = {"subscription_id": subscription_id}
        for name, _, marker in iter_marked_fields(self, ParentId):
            parent = marker.id_type.parse(getattr(self, name))
            for field in parent.field_names():
                values[marker.name_segment if field == "name" else field] = getattr(parent, field)
        for name, _, marker in iter_marked_fields(self, IdSegment):
            values[marker.segment] = getattr(self, name)
        return self.id_type(**values)

    @classmethod
    def identity_attrs(cls, resource_id: "ResourceId") -> dict[str, Any]:
        """Field values recovered from a parsed ID."""
        attrs = {
            name: getattr(resource_id, marker.segment)
            for name, _, marker in iter_marked_fields(cls, IdSegment)
        }
        for name, _, marker in iter_marked_fields(cls, ParentId):
            parent = marker.id_type(
                **{
                    field: getattr(resource_id, marker.name_segment if field == "name" else field)
                    for field in marker.id_type.field_names()
                }
            )
            attrs[name] = parent.id
        return attrs

    @computed_field
    @property
    def address(self) -> str:
        """Unique address for this resource (e.g., 'azurerm_resource_group.main')."""
        return f"{self.resource_type}.{self.label or self.name}"
