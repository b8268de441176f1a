# hmc

Validation rules and template-distribution logic for a management cluster
that provisions Kubernetes clusters from templates.

Everything runs against a small in-memory object store, `hmc.kube.Client`.
It holds ManagedCluster, Management, ClusterTemplate, ServiceTemplate,
ProviderTemplate, the template chains, TemplateManagement and Namespace
objects. The validators read that store and decide whether a create, update
or delete is allowed, and ManagedCluster defaults are filled in from the
referenced template.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `hmc.helm`: `determine_default_repository_type(url)` returns `"oci"` for
  `oci://` URLs and `"default"` for `http://` and `https://` URLs. Any other
  scheme raises `ValueError`.
- `hmc.sliceutil`: `slice_to_map_keys(items, default)` builds a dict keyed by
  the items. `diff_slice_subset(items, mapping)` returns the items missing
  from the mapping, together with a flag that is true when none are missing.
- `hmc.kube`:
  - `Client(objects, indexes)` stores objects by kind, namespace and name.
    `get` raises `NotFoundError` when the object is absent. `list` filters by
    namespace, labels, field values and a limit, and returns objects ordered
    by namespace and name. `delete` removes an object, or only marks it with
    a deletion timestamp while it has finalizers. `get` and `list` hand back
    copies.
  - Fields other than `metadata.name` and `metadata.namespace` can only be
    filtered on once registered in `indexes`. Register one as
    `{(ManagedCluster, TEMPLATE_KEY): lambda c: [c.template]}`.
  - `ObjectMeta` holds the object metadata.
  - The errors are `ApiError`, `NotFoundError`, `BadRequestError` and
    `AdmissionDenied`.
  - `ensure_delete_all_of(client, kind, namespace, labels)` asks for every
    matching object to be deleted. It raises `ApiError` for as long as any of
    them remain.
  - `current_namespace()` reads the namespace from `POD_NAMESPACE`, then from
    the service-account namespace file. Failing both, it returns
    `"hmc-system"`.
- `hmc.labels`:
  - `parse_selector` parses selector strings such as `environment=dev`,
    `tier in (web,api)` and `!legacy`.
  - `selector_from_set` builds a selector from a dict of required values.
  - `label_selector_as_selector` converts a structured `LabelSelector`. `None`
    selects nothing, and an empty selector selects everything.
  - `Selector.matches(labels)` and `Requirement.matches(labels)` test a set of
    labels.
- `hmc.api`: the resource dataclasses (`ManagedCluster`, `ClusterTemplate`,
  `ServiceTemplate`, `ProviderTemplate`, `Management`, `Core`, `Component`,
  `Providers`, `ClusterTemplateChain`, `ServiceTemplateChain`,
  `TemplateChainSpec`, `SupportedTemplate`, `AvailableUpgrade`,
  `TemplateManagement`, `AccessRule`, `TargetNamespaces`, `Namespace`).
  `Component.helm_values()` parses its JSON configuration into a dict.
- `hmc.templatestate`:
  - `get_current_templates_state(client, system_namespace)` lists the managed
    templates outside the system namespace.
  - `parse_access_rules(client, rules, current_state)` marks the templates and
    namespaces that the rules keep. It returns a new `TemplatesState`.

## Validators

Each validator is a dataclass built from a `Client`. It has the methods
`validate_create`, `validate_update`, `validate_delete` and `default`. The
validate methods return a list of warnings. A rejected request raises
`AdmissionDenied`, which carries the message and its `warnings`. An object of
the wrong type raises `BadRequestError`.

- `ManagedClusterValidator` (`hmc.managedcluster_webhook`):
  - requires the referenced ClusterTemplate to exist in the cluster's
    namespace;
  - requires that template to be valid;
  - requires its providers to be available on the Management object.
  - `default` copies the template's configuration into the cluster and sets
    `dry_run`, but only when the cluster has no configuration of its own.
- `ManagementValidator` (`hmc.management_webhook`):
  - refuses deletion while any ManagedCluster exists;
  - refuses an update that sets `controller.createManagement` to true.
- `ClusterTemplateValidator` (`hmc.template_webhook`) refuses deletion while a
  ManagedCluster in the same namespace references the template. This needs
  the `TEMPLATE_KEY` index. `ServiceTemplateValidator` and
  `ProviderTemplateValidator` admit every operation.
- `ClusterTemplateChainValidator` and `ServiceTemplateChainValidator`
  (`hmc.templatechain_webhook`) refuse to create a chain whose upgrade targets
  are not among its supported templates. `template_chain_warnings(spec)` lists
  those targets.
- `TemplateManagementValidator` (`hmc.templatemanagement_webhook`):
  - allows only one TemplateManagement object;
  - refuses access rules that would remove ClusterTemplates still used by
    ManagedClusters;
  - refuses deletion while the Management object exists and is not being
    deleted.

## Example

```python
from hmc.api import ClusterTemplate, ManagedCluster, Management, Providers
from hmc.kube import AdmissionDenied, Client, ObjectMeta
from hmc.managedcluster_webhook import ManagedClusterValidator

client = Client([
    Management(available_providers=Providers(
        infrastructure_providers=["aws"],
        bootstrap_providers=["k0s"],
        control_plane_providers=["k0s"],
    )),
    ClusterTemplate(
        metadata=ObjectMeta(name="aws-standalone", namespace="dev"),
        valid=True,
        providers=Providers(infrastructure_providers=["aws"]),
    ),
])
validator = ManagedClusterValidator(client)

cluster = ManagedCluster(metadata=ObjectMeta(name="c1", namespace="dev"),
                         template="aws-standalone")
validator.validate_create(cluster)  # []

missing = ManagedCluster(metadata=ObjectMeta(name="c2", namespace="dev"),
                         template="missing")
try:
    validator.validate_create(missing)
except AdmissionDenied as exc:
    print(exc)
    # the ManagedCluster is invalid: clustertemplates.hmc.mirantis.com "missing" not found
```

## What this package does not do

It does not connect to a Kubernetes API server, serve admission webhooks over
HTTPS, or run controllers or reconcile loops. Objects live only in the
in-memory `Client` that the caller fills in. The validators are plain Python
objects that the caller invokes directly.