"""Admission checks for the Management object."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from hmc.api import ManagedCluster, Management
from hmc.kube import AdmissionDenied, BadRequestError, Client

MANAGEMENT_DELETION_FORBIDDEN = "management deletion is forbidden"
CREATE_MANAGEMENT_REENABLING_FORBIDDEN = (
    "reenabling of the createManagement parameter is forbidden"
)


def _expect_management(obj: Any) -> Management:
    if not isinstance(obj, Management):
        raise BadRequestError(f"expected Management but got a {type(obj).__name__}")
    return obj


@dataclass
class ManagementValidator:
    """Guards updates and deletion of the Management object."""

    client: Client

    def validate_create(self, obj: Any) -> list[str]:
        """Admit the creation of any Management object."""
        _expect_management(obj)
        return []

    def validate_update(self, old_obj: Any, new_obj: Any) -> list[str]:
        """Refuse turning ``controller.createManagement`` back on."""
        management = _expect_management(new_obj)
        if management.core is None:
            return []
        try:
            values = management.core.hmc.helm_values()
        except ValueError as exc:
            raise BadRequestError(f"cannot retrieve helm values: {exc}") from exc
        controller = values.get("controller")
        if not isinstance(controller, dict):
            return []
        create_management = controller.get("createManagement")
        if isinstance(create_management, bool) and create_management:
            raise AdmissionDenied(CREATE_MANAGEMENT_REENABLING_FORBIDDEN)
        return []

    def validate_delete(self, obj: Any) -> list[str]:
        """Refuse deletion while any ManagedCluster exists."""
        if self.client.list(ManagedCluster, limit=1):
            raise AdmissionDenied(
                MANAGEMENT_DELETION_FORBIDDEN,
                ["The Management object can't be removed if ManagedCluster objects still exist"],
            )
        return []

    def default(self, obj: Any) -> None:
        """Accept any Management object unchanged."""
        _expect_management(obj)