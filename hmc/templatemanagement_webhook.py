"""Admission checks for the TemplateManagement object."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from hmc.api import TEMPLATE_KEY, ManagedCluster, Management, TemplateManagement
from hmc.kube import AdmissionDenied, ApiError, BadRequestError, Client
from hmc.kube import DEFAULT_SYSTEM_NAMESPACE
from hmc.templatestate import get_current_templates_state, parse_access_rules

TEMPLATE_MANAGEMENT_DELETION_FORBIDDEN = "TemplateManagement deletion is forbidden"
TEMPLATE_MANAGEMENT_EXISTS = "TemplateManagement object already exists"
ACCESS_RULES_REJECTED = "can not apply new access rules"


def get_managed_clusters_for_template(
    client: Client, namespace: str, template_name: str
) -> list[ManagedCluster]:
    """Return the ManagedClusters in ``namespace`` that use the named template.

    The client must have an index on ``TEMPLATE_KEY`` for ManagedCluster.
    """
    return client.list(
        ManagedCluster, namespace=namespace, fields={TEMPLATE_KEY: template_name}
    )


def _expect_template_management(obj: Any) -> TemplateManagement:
    if not isinstance(obj, TemplateManagement):
        raise BadRequestError(
            f"expected TemplateManagement but got a {type(obj).__name__}"
        )
    return obj


def _in_use_warning(namespace: str, template_name: str, clusters: list[ManagedCluster]) -> str:
    references = ", ".join(
        f'"{cluster.metadata.namespace}/{cluster.metadata.name}"'
        for cluster in sorted(clusters, key=lambda c: c.metadata.name)
    )
    return (
        f'ClusterTemplate "{namespace}/{template_name}" can\'t be removed: '
        f"found ManagedClusters that reference it: {references}"
    )


@dataclass
class TemplateManagementValidator:
    """Guards the singleton TemplateManagement object and its access rules."""

    client: Client
    system_namespace: str = DEFAULT_SYSTEM_NAMESPACE

    def validate_create(self, obj: Any) -> list[str]:
        """Refuse creation when a TemplateManagement object already exists."""
        if self.client.list(TemplateManagement):
            raise AdmissionDenied(TEMPLATE_MANAGEMENT_EXISTS)
        return []

    def validate_update(self, old_obj: Any, new_obj: Any) -> list[str]:
        """Refuse access rules that would remove ClusterTemplates still in use."""
        template_management = _expect_template_management(new_obj)
        try:
            current = get_current_templates_state(self.client, self.system_namespace)
        except ApiError as exc:
            raise ApiError(f"could not get current templates state: {exc}") from exc
        try:
            expected = parse_access_rules(
                self.client, template_management.access_rules, current
            )
        except (ApiError, ValueError) as exc:
            raise AdmissionDenied(
                f"failed to parse access rules for TemplateManagement: {exc}"
            ) from exc

        warnings: list[str] = []
        for template_name, namespaces in expected.cluster_templates.items():
            for namespace, keep in namespaces.items():
                if keep:
                    continue
                clusters = get_managed_clusters_for_template(
                    self.client, namespace, template_name
                )
                if clusters:
                    warnings.append(_in_use_warning(namespace, template_name, clusters))
        if warnings:
            raise AdmissionDenied(ACCESS_RULES_REJECTED, sorted(warnings))
        return []

    def validate_delete(self, obj: Any) -> list[str]:
        """Refuse deletion while the Management object exists and is not being deleted."""
        try:
            managements = self.client.list(Management)
        except ApiError as exc:
            raise ApiError(f"failed to list Management objects: {exc}") from exc
        if managements and managements[0].metadata.deletion_timestamp is None:
            raise AdmissionDenied(TEMPLATE_MANAGEMENT_DELETION_FORBIDDEN)
        return []

    def default(self, obj: Any) -> None:
        """Accept any TemplateManagement object unchanged."""
        _expect_template_management(obj)