"""Resource types handled by the management controllers and webhooks."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

from hmc.kube import ObjectMeta
from hmc.labels import LabelSelector

GROUP = "hmc.mirantis.com"
VERSION = "v1alpha1"

HMC_MANAGED_LABEL_KEY = "hmc.mirantis.com/managed"
HMC_MANAGED_LABEL_VALUE = "true"

TEMPLATE_KEY = ".spec.template"

MANAGEMENT_NAME = "hmc"
MANAGEMENT_KIND = "Management"
TEMPLATE_MANAGEMENT_NAME = "hmc"
TEMPLATE_MANAGEMENT_KIND = "TemplateManagement"


@dataclass
class Providers:
    """Cluster API providers grouped by type."""

    infrastructure_providers: list[str] = field(default_factory=list)
    bootstrap_providers: list[str] = field(default_factory=list)
    control_plane_providers: list[str] = field(default_factory=list)


@dataclass
class _Template:
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    helm_chart: str = ""
    valid: bool = False
    validation_error: str = ""
    providers: Providers = field(default_factory=Providers)
    config: Optional[str] = None


@dataclass
class ClusterTemplate(_Template):
    """A chart from which managed clusters are deployed."""

    kind: ClassVar[str] = "ClusterTemplate"
    plural: ClassVar[str] = "clustertemplates"
    group: ClassVar[str] = GROUP


@dataclass
class ServiceTemplate(_Template):
    """A chart for a service that can run on managed clusters."""

    kind: ClassVar[str] = "ServiceTemplate"
    plural: ClassVar[str] = "servicetemplates"
    group: ClassVar[str] = GROUP


@dataclass
class ProviderTemplate(_Template):
    """A chart that installs a Cluster API provider."""

    kind: ClassVar[str] = "ProviderTemplate"
    plural: ClassVar[str] = "providertemplates"
    group: ClassVar[str] = GROUP


@dataclass
class ManagedCluster:
    """A cluster deployed from a ClusterTemplate."""

    kind: ClassVar[str] = "ManagedCluster"
    plural: ClassVar[str] = "managedclusters"
    group: ClassVar[str] = GROUP

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    template: str = ""
    config: Optional[str] = None
    dry_run: bool = False


@dataclass
class Component:
    """A management component: a template plus its raw JSON configuration."""

    template: str = ""
    config: Optional[str] = None

    def helm_values(self) -> dict[str, Any]:
        """Return the configuration as a dict; raise ValueError if it is not a JSON object."""
        if not self.config:
            return {}
        values = json.loads(self.config)
        if values is None:
            return {}
        if not isinstance(values, dict):
            raise ValueError("helm values must be a JSON object")
        return values


@dataclass
class Core:
    """The core components of the management cluster."""

    hmc: Component = field(default_factory=Component)
    capi: Component = field(default_factory=Component)


@dataclass
class Management:
    """The singleton describing the management cluster."""

    kind: ClassVar[str] = MANAGEMENT_KIND
    plural: ClassVar[str] = "managements"
    group: ClassVar[str] = GROUP

    metadata: ObjectMeta = field(default_factory=lambda: ObjectMeta(name=MANAGEMENT_NAME))
    core: Optional[Core] = None
    available_providers: Providers = field(default_factory=Providers)


@dataclass
class AvailableUpgrade:
    """A template that a supported template may be upgraded to."""

    name: str


@dataclass
class SupportedTemplate:
    """A template in a chain, with its allowed upgrades."""

    name: str
    available_upgrades: list[AvailableUpgrade] = field(default_factory=list)


@dataclass
class TemplateChainSpec:
    """The templates a chain supports."""

    supported_templates: list[SupportedTemplate] = field(default_factory=list)


@dataclass
class ClusterTemplateChain:
    """A set of ClusterTemplates distributed together."""

    kind: ClassVar[str] = "ClusterTemplateChain"
    plural: ClassVar[str] = "clustertemplatechains"
    group: ClassVar[str] = GROUP

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: TemplateChainSpec = field(default_factory=TemplateChainSpec)


@dataclass
class ServiceTemplateChain:
    """A set of ServiceTemplates distributed together."""

    kind: ClassVar[str] = "ServiceTemplateChain"
    plural: ClassVar[str] = "servicetemplatechains"
    group: ClassVar[str] = GROUP

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: TemplateChainSpec = field(default_factory=TemplateChainSpec)


@dataclass
class TargetNamespaces:
    """Where templates go: explicit names, a selector string or a structured selector."""

    string_selector: str = ""
    selector: Optional[LabelSelector] = None
    names: list[str] = field(default_factory=list)


@dataclass
class AccessRule:
    """Distributes the templates of the given chains to the target namespaces."""

    target_namespaces: TargetNamespaces = field(default_factory=TargetNamespaces)
    cluster_template_chains: list[str] = field(default_factory=list)
    service_template_chains: list[str] = field(default_factory=list)


@dataclass
class TemplateManagement:
    """The singleton holding template access rules."""

    kind: ClassVar[str] = TEMPLATE_MANAGEMENT_KIND
    plural: ClassVar[str] = "templatemanagements"
    group: ClassVar[str] = GROUP

    metadata: ObjectMeta = field(default_factory=lambda: ObjectMeta(name=TEMPLATE_MANAGEMENT_NAME))
    access_rules: list[AccessRule] = field(default_factory=list)


@dataclass
class Namespace:
    """A namespace."""

    kind: ClassVar[str] = "Namespace"
    plural: ClassVar[str] = "namespaces"
    group: ClassVar[str] = ""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)