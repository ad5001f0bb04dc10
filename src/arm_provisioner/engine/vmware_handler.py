"""Azure VMware Solution handlers."""

from __future__ import annotations

from typing import ClassVar

from arm_provisioner.engine.lifecycle import ArmResourceHandler
from arm_provisioner.resources.vmware import ExpressRouteAuthorizationResource


class ExpressRouteAuthorizationHandler(ArmResourceHandler[ExpressRouteAuthorizationResource]):
    """CRUD handler for AVS ExpressRoute authorizations.

    Every field is part of the ID, so changes always replace the authorization.
    """

    model = ExpressRouteAuthorizationResource
    api_version: ClassVar[str] = "2020-03-20"
