from typing import ClassVar

import pytest

from arm_provisioner.config.registry import default_registry
from arm_provisioner.engine.errors import UnknownResourceTypeError
from arm_provisioner.engine.handlers import ResourceHandler
from arm_provisioner.engine.lifecycle import ArmResourceHandler
from arm_provisioner.engine.registry import ResourceTypeRegistry
from arm_provisioner.resources.base import Resource
from arm_provisioner.resources.ids import ResourceGroupId


class DummyResource(Resource):
    resource_type: ClassVar[str] = "dummy"
    id_type: ClassVar[type[ResourceGroupId]] = ResourceGroupId
    value: int


class DummyHandler(ResourceHandler["DummyResource"]):
    pass


def test_registry_register_and_get() -> None:
    registry = ResourceTypeRegistry()
    handler = DummyHandler()

    registry.register(DummyResource, handler)
    reg = registry.get("dummy")

    assert reg.resource_type == "dummy"
    assert reg.model is DummyResource
    assert reg.handler is handler


def test_registry_duplicate_registration() -> None:
    registry = ResourceTypeRegistry()
    handler = DummyHandler()

    registry.register(DummyResource, handler)
    with pytest.raises(ValueError, match="already registered"):
        registry.register(DummyResource, handler)


def test_registry_unknown_type() -> None:
    registry = ResourceTypeRegistry()
    with pytest.raises(UnknownResourceTypeError, match="missing"):
        registry.get("missing")


def test_registry_requires_resource_type() -> None:
    class Untyped(Resource):
        id_type: ClassVar[type[ResourceGroupId]] = ResourceGroupId

    with pytest.raises(ValueError, match="resource_type"):
        ResourceTypeRegistry().register(Untyped, DummyHandler())


def test_registry_requires_id_type() -> None:
    class NoId(Resource):
        resource_type: ClassVar[str] = "no_id"

    with pytest.raises(ValueError, match="id_type"):
        ResourceTypeRegistry().register(NoId, DummyHandler())


def test_default_registry_types() -> None:
    assert default_registry().resource_types() == [
        "azurerm_container_registry_token",
        "azurerm_postgresql_database",
        "azurerm_postgresql_flexible_server",
        "azurerm_postgresql_virtual_network_rule",
        "azurerm_resource_group",
        "azurerm_vmware_express_route_authorization",
    ]


def test_default_registry_handlers_match_models() -> None:
    registry = default_registry()
    for resource_type in registry.resource_types():
        reg = registry.get(resource_type)
        assert isinstance(reg.handler, ArmResourceHandler)
        assert reg.handler.model is reg.model


def test_default_registry_is_fresh_each_call() -> None:
    a = default_registry().get("azurerm_resource_group").handler
    b = default_registry().get("azurerm_resource_group").handler
    assert a is not b
