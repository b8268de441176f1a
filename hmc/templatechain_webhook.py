"""Admission checks for template chains."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeVar

from hmc.api import ClusterTemplateChain, ServiceTemplateChain, TemplateChainSpec
from hmc.kube import AdmissionDenied, BadRequestError, Client

INVALID_TEMPLATE_CHAIN_SPEC = "the template chain spec is invalid"

_T = TypeVar("_T")


def template_chain_warnings(spec: TemplateChainSpec) -> list[str]:
    """Return a warning for each upgrade target missing from the supported templates."""
    supported = {template.name for template in spec.supported_templates}
    upgrades = dict.fromkeys(
        upgrade.name
        for template in spec.supported_templates
        for upgrade in template.available_upgrades
    )
    return [
        f"template {name} is allowed for upgrade but is not present in the list "
        "of spec.SupportedTemplates"
        for name in upgrades
        if name not in supported
    ]


def _expect(obj: Any, kind: type[_T]) -> _T:
    if not isinstance(obj, kind):
        raise BadRequestError(
            f"expected {kind.__name__} but got a {type(obj).__name__}"
        )
    return obj


def _check_spec(spec: TemplateChainSpec) -> list[str]:
    warnings = template_chain_warnings(spec)
    if warnings:
        raise AdmissionDenied(INVALID_TEMPLATE_CHAIN_SPEC, warnings)
    return []


@dataclass
class ClusterTemplateChainValidator:
    """Validates ClusterTemplateChain specs on creation."""

    client: Client

    def validate_create(self, obj: Any) -> list[str]:
        """Refuse chains whose upgrade targets are not supported templates."""
        return _check_spec(_expect(obj, ClusterTemplateChain).spec)

    def validate_update(self, old_obj: Any, new_obj: Any) -> list[str]:
        """Admit any update of a ClusterTemplateChain."""
        _expect(new_obj, ClusterTemplateChain)
        return []

    def validate_delete(self, obj: Any) -> list[str]:
        """Admit the deletion of any ClusterTemplateChain."""
        _expect(obj, ClusterTemplateChain)
        return []

    def default(self, obj: Any) -> None:
        """Accept any ClusterTemplateChain unchanged."""
        _expect(obj, ClusterTemplateChain)


@dataclass
class ServiceTemplateChainValidator:
    """Validates ServiceTemplateChain specs on creation."""

    client: Client

    def validate_create(self, obj: Any) -> list[str]:
        """Refuse chains whose upgrade targets are not supported templates."""
        return _check_spec(_expect(obj, ServiceTemplateChain).spec)

    def validate_update(self, old_obj: Any, new_obj: Any) -> list[str]:
        """Admit any update of a ServiceTemplateChain."""
        _expect(new_obj, ServiceTemplateChain)
        return []

    def validate_delete(self, obj: Any) -> list[str]:
        """Admit the deletion of any ServiceTemplateChain."""
        _expect(obj, ServiceTemplateChain)
        return []

    def default(self, obj: Any) -> None:
        """Accept any ServiceTemplateChain unchanged."""
        _expect(obj, ServiceTemplateChain)