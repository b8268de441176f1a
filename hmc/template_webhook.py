"""Admission checks for ClusterTemplate, ServiceTemplate and ProviderTemplate objects."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeVar

from hmc.api import (
    TEMPLATE_KEY,
    ClusterTemplate,
    ManagedCluster,
    ProviderTemplate,
    ServiceTemplate,
)
from hmc.kube import AdmissionDenied, BadRequestError, Client

TEMPLATE_DELETION_FORBIDDEN = "template deletion is forbidden"
CLUSTER_TEMPLATE_IN_USE_WARNING = (
    "The ClusterTemplate object can't be removed if ManagedCluster objects "
    "referencing it still exist"
)

_T = TypeVar("_T")


def _expect(obj: Any, kind: type[_T]) -> _T:
    if not isinstance(obj, kind):
        raise BadRequestError(
            f"expected {kind.__name__} but got a {type(obj).__name__}"
        )
    return obj


@dataclass
class ClusterTemplateValidator:
    """Refuses deleting a ClusterTemplate that ManagedClusters still use.

    The client must have an index on ``TEMPLATE_KEY`` for ManagedCluster.
    """

    client: Client

    def validate_create(self, obj: Any) -> list[str]:
        """Admit the creation of any ClusterTemplate."""
        _expect(obj, ClusterTemplate)
        return []

    def validate_update(self, old_obj: Any, new_obj: Any) -> list[str]:
        """Admit any update of a ClusterTemplate."""
        _expect(new_obj, ClusterTemplate)
        return []

    def validate_delete(self, obj: Any) -> list[str]:
        """Refuse deletion while a ManagedCluster in the same namespace references the template."""
        template = _expect(obj, ClusterTemplate)
        clusters = self.client.list(
            ManagedCluster,
            namespace=template.metadata.namespace,
            fields={TEMPLATE_KEY: template.metadata.name},
            limit=1,
        )
        if clusters:
            raise AdmissionDenied(
                TEMPLATE_DELETION_FORBIDDEN, [CLUSTER_TEMPLATE_IN_USE_WARNING]
            )
        return []

    def default(self, obj: Any) -> None:
        """Accept any ClusterTemplate unchanged."""
        _expect(obj, ClusterTemplate)


@dataclass
class ServiceTemplateValidator:
    """Admits every ServiceTemplate operation."""

    client: Client

    def validate_create(self, obj: Any) -> list[str]:
        """Admit the creation of any ServiceTemplate."""
        _expect(obj, ServiceTemplate)
        return []

    def validate_update(self, old_obj: Any, new_obj: Any) -> list[str]:
        """Admit any update of a ServiceTemplate."""
        _expect(new_obj, ServiceTemplate)
        return []

    def validate_delete(self, obj: Any) -> list[str]:
        """Admit the deletion of any ServiceTemplate."""
        _expect(obj, ServiceTemplate)
        return []

    def default(self, obj: Any) -> None:
        """Accept any ServiceTemplate unchanged."""
        _expect(obj, ServiceTemplate)


@dataclass
class ProviderTemplateValidator:
    """Admits every ProviderTemplate operation."""

    client: Client

    def validate_create(self, obj: Any) -> list[str]:
        """Admit the creation of any ProviderTemplate."""
        _expect(obj, ProviderTemplate)
        return []

    def validate_update(self, old_obj: Any, new_obj: Any) -> list[str]:
        """Admit any update of a ProviderTemplate."""
        _expect(new_obj, ProviderTemplate)
        return []

    def validate_delete(self, obj: Any) -> list[str]:
        """Admit the deletion of any ProviderTemplate."""
        _expect(obj, ProviderTemplate)
        return []

    def default(self, obj: Any) -> None:
        """Accept any ProviderTemplate unchanged."""
        _expect(obj, ProviderTemplate)