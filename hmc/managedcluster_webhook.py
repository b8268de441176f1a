"""Admission checks and defaults for ManagedCluster objects."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from hmc.api import MANAGEMENT_NAME, ClusterTemplate, ManagedCluster, Management
from hmc.kube import AdmissionDenied, ApiError, BadRequestError, Client
from hmc.sliceutil import diff_slice_subset, slice_to_map_keys

INVALID_MANAGED_CLUSTER = "the ManagedCluster is invalid"


class _TemplateInvalid(Exception):
    """The referenced ClusterTemplate cannot be used."""


def get_missing_providers(
    exposed_providers: Iterable[str], required_providers: Iterable[str]
) -> list[str]:
    """Return the required providers that are not among the exposed ones."""
    exposed = slice_to_map_keys(exposed_providers)
    diff, _ = diff_slice_subset(required_providers, exposed)
    return diff


def _format_list(items: Iterable[str]) -> str:
    return "[" + " ".join(items) + "]"


@dataclass
class ManagedClusterValidator:
    """Validates ManagedCluster objects against their template and the management state."""

    client: Client

    @staticmethod
    def _expect_cluster(obj: Any) -> ManagedCluster:
        if not isinstance(obj, ManagedCluster):
            raise BadRequestError(
                f"expected ManagedCluster but got a {type(obj).__name__}"
            )
        return obj

    def _check(self, cluster: ManagedCluster) -> list[str]:
        try:
            template = self._get_template(cluster.metadata.namespace, cluster.template)
            self._check_template(template)
        except (ApiError, _TemplateInvalid) as exc:
            raise AdmissionDenied(f"{INVALID_MANAGED_CLUSTER}: {exc}") from exc
        return []

    def validate_create(self, obj: Any) -> list[str]:
        """Check that the cluster's template exists, is valid and has its providers deployed."""
        return self._check(self._expect_cluster(obj))

    def validate_update(self, old_obj: Any, new_obj: Any) -> list[str]:
        """Apply the creation checks to the updated cluster."""
        return self._check(self._expect_cluster(new_obj))

    def validate_delete(self, obj: Any) -> list[str]:
        """Admit the deletion of any ManagedCluster."""
        self._expect_cluster(obj)
        return []

    def default(self, obj: Any) -> None:
        """Fill in the template's default configuration when none is given."""
        cluster = self._expect_cluster(obj)
        if cluster.config is not None:
            return
        try:
            template = self._get_template(cluster.metadata.namespace, cluster.template)
        except ApiError as exc:
            raise AdmissionDenied(
                f"could not get template for the managedcluster: {exc}"
            ) from exc
        try:
            self._check_template(template)
        except (ApiError, _TemplateInvalid) as exc:
            raise AdmissionDenied(f"template is invalid: {exc}") from exc
        if template.config is None:
            return
        cluster.dry_run = True
        cluster.config = template.config

    def _get_template(self, namespace: str, name: str) -> ClusterTemplate:
        return self.client.get(ClusterTemplate, name, namespace)

    def _check_template(self, template: ClusterTemplate) -> None:
        if not template.valid:
            raise _TemplateInvalid(
                f"the template is not valid: {template.validation_error}"
            )
        try:
            self._verify_providers(template)
        except (ApiError, _TemplateInvalid) as exc:
            raise _TemplateInvalid(f"providers verification failed: {exc}") from exc

    def _verify_providers(self, template: ClusterTemplate) -> None:
        required = template.providers
        management = self.client.get(Management, MANAGEMENT_NAME)
        exposed = management.available_providers
        missing = {
            "bootstrap": get_missing_providers(
                exposed.bootstrap_providers, required.bootstrap_providers
            ),
            "control plane": get_missing_providers(
                exposed.control_plane_providers, required.control_plane_providers
            ),
            "infrastructure": get_missing_providers(
                exposed.infrastructure_providers, required.infrastructure_providers
            ),
        }
        messages = sorted(
            f"one or more required {kind} providers are not deployed yet: "
            f"{_format_list(sorted(names))}"
            for kind, names in missing.items()
            if names
        )
        if messages:
            raise _TemplateInvalid("\n".join(messages))