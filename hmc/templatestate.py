"""Current and expected distribution of templates across namespaces."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from hmc.api import (
    HMC_MANAGED_LABEL_KEY,
    HMC_MANAGED_LABEL_VALUE,
    AccessRule,
    ClusterTemplate,
    ClusterTemplateChain,
    Namespace,
    ServiceTemplate,
    ServiceTemplateChain,
    TargetNamespaces,
)
from hmc.kube import ApiError, Client
from hmc.labels import label_selector_as_selector, parse_selector, selector_from_set

NamespaceFlags = dict[str, dict[str, bool]]


@dataclass
class TemplatesState:
    """Maps template names to the namespaces holding them.

    A namespace maps to ``True`` when the template should stay there and to
    ``False`` when it is present but no rule keeps it.
    """

    cluster_templates: NamespaceFlags = field(default_factory=dict)
    service_templates: NamespaceFlags = field(default_factory=dict)


def _namespaces_by_name(items: Iterable[Any], system_namespace: str) -> NamespaceFlags:
    result: NamespaceFlags = {}
    for item in items:
        meta = item.metadata
        if meta.namespace == system_namespace:
            continue
        result.setdefault(meta.name, {})[meta.namespace] = False
    return result


def get_current_templates_state(client: Client, system_namespace: str) -> TemplatesState:
    """Return the managed templates outside the system namespace, none of them kept."""
    selector = selector_from_set({HMC_MANAGED_LABEL_KEY: HMC_MANAGED_LABEL_VALUE})
    cluster_templates = client.list(ClusterTemplate, namespace="", labels=selector)
    service_templates = client.list(ServiceTemplate, namespace="", labels=selector)
    return TemplatesState(
        cluster_templates=_namespaces_by_name(cluster_templates, system_namespace),
        service_templates=_namespaces_by_name(service_templates, system_namespace),
    )


def _supported_templates(
    client: Client, chain_kind: Any, chain_names: Iterable[str], errors: list[ApiError]
) -> list[str]:
    names: list[str] = []
    for chain_name in chain_names:
        try:
            chain = client.get(chain_kind, chain_name)
        except ApiError as exc:
            errors.append(exc)
            continue
        names.extend(template.name for template in chain.spec.supported_templates)
    return names


def _target_namespaces(client: Client, target: TargetNamespaces) -> list[str]:
    if target.names:
        return list(target.names)
    if target.string_selector:
        selector = parse_selector(target.string_selector)
    else:
        try:
            selector = label_selector_as_selector(target.selector)
        except ValueError as exc:
            raise ValueError(
                f"failed to construct selector from the namespaces selector {target.selector}: {exc}"
            ) from exc
    labels = None if selector.is_empty() else selector
    return [ns.metadata.name for ns in client.list(Namespace, labels=labels)]


def _mark_kept(state: NamespaceFlags, templates: Iterable[str], namespaces: list[str]) -> None:
    for name in templates:
        state.setdefault(name, {}).update(dict.fromkeys(namespaces, True))


def parse_access_rules(
    client: Client,
    rules: Iterable[AccessRule],
    current_state: Optional[TemplatesState],
) -> TemplatesState:
    """Return the current state with every template targeted by the rules marked as kept.

    Chains that cannot be fetched are reported together once all rules have
    been processed; failures to resolve target namespaces are raised at once.
    The given state is left unchanged.
    """
    current_state = current_state or TemplatesState()
    expected = TemplatesState(
        cluster_templates=copy.deepcopy(current_state.cluster_templates),
        service_templates=copy.deepcopy(current_state.service_templates),
    )
    errors: list[ApiError] = []
    for rule in rules:
        cluster_templates = _supported_templates(
            client, ClusterTemplateChain, rule.cluster_template_chains, errors
        )
        service_templates = _supported_templates(
            client, ServiceTemplateChain, rule.service_template_chains, errors
        )
        namespaces = _target_namespaces(client, rule.target_namespaces)
        _mark_kept(expected.cluster_templates, cluster_templates, namespaces)
        _mark_kept(expected.service_templates, service_templates, namespaces)
    if len(errors) == 1:
        raise errors[0]
    if errors:
        raise ApiError("\n".join(str(exc) for exc in errors))
    return expected