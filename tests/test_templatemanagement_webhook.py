import copy
from datetime import datetime, timezone

import pytest

from hmc.api import (
    HMC_MANAGED_LABEL_KEY,
    HMC_MANAGED_LABEL_VALUE,
    TEMPLATE_KEY,
    AccessRule,
    ClusterTemplate,
    ClusterTemplateChain,
    ManagedCluster,
    Management,
    Namespace,
    SupportedTemplate,
    TargetNamespaces,
    TemplateChainSpec,
    TemplateManagement,
)
from hmc.kube import DEFAULT_SYSTEM_NAMESPACE, AdmissionDenied, BadRequestError, Client, ObjectMeta
from hmc.labels import LabelSelector, LabelSelectorRequirement
from hmc.templatemanagement_webhook import (
    TemplateManagementValidator,
    get_managed_clusters_for_template,
)

INDEXES = {(ManagedCluster, TEMPLATE_KEY): lambda mc: [mc.template] if mc.template else []}

DEV = "dev"
PROD = "prod"
AWS_CHAIN = "aws-chain"
AZURE_CHAIN = "azure-chain"
AWS_STANDALONE = "aws-standalone-cp"
AWS_HOSTED = "aws-hosted-cp"
AZURE_STANDALONE = "azure-standalone-cp"
AZURE_HOSTED = "azure-hosted-cp"


def make_validator(objects=()):
    client = Client(objects, indexes=INDEXES)
    return TemplateManagementValidator(client=client, system_namespace=DEFAULT_SYSTEM_NAMESPACE)


def template_management(name="hmc", rules=()):
    return TemplateManagement(metadata=ObjectMeta(name=name), access_rules=list(rules))


def namespace(name):
    return Namespace(metadata=ObjectMeta(name=name, labels={"environment": name}))


def managed_template(name, ns):
    return ClusterTemplate(
        metadata=ObjectMeta(
            name=name, namespace=ns, labels={HMC_MANAGED_LABEL_KEY: HMC_MANAGED_LABEL_VALUE}
        )
    )


def cluster(name, ns, template):
    return ManagedCluster(metadata=ObjectMeta(name=name, namespace=ns), template=template)


def chain(name, templates):
    return ClusterTemplateChain(
        metadata=ObjectMeta(name=name),
        spec=TemplateChainSpec([SupportedTemplate(t) for t in templates]),
    )


AWS_RULE = AccessRule(
    target_namespaces=TargetNamespaces(string_selector="environment=dev"),
    cluster_template_chains=[AWS_CHAIN],
)

AZURE_PROD_RULE = AccessRule(
    target_namespaces=TargetNamespaces(
        selector=LabelSelector(
            match_expressions=[LabelSelectorRequirement("environment", "In", ["prod"])]
        )
    ),
    cluster_template_chains=[AZURE_CHAIN],
)


def base_objects():
    return [
        namespace(DEV),
        namespace(PROD),
        chain(AWS_CHAIN, [AWS_STANDALONE, AWS_HOSTED]),
        chain(AZURE_CHAIN, [AZURE_STANDALONE, AZURE_HOSTED]),
        managed_template(AWS_STANDALONE, DEV),
        managed_template(AWS_HOSTED, PROD),
        managed_template(AZURE_STANDALONE, DEV),
        managed_template(AZURE_HOSTED, PROD),
        ClusterTemplate(metadata=ObjectMeta(name="unmanaged")),
    ]


def test_validate_create_fails_if_object_exists():
    validator = make_validator([template_management("hmc")])
    with pytest.raises(AdmissionDenied) as info:
        validator.validate_create(template_management("new"))
    assert str(info.value) == "TemplateManagement object already exists"
    assert info.value.warnings == []


def test_validate_create_succeeds():
    validator = make_validator()
    assert validator.validate_create(template_management("new")) == []


def test_validate_update_fails_when_in_use_templates_removed():
    objects = base_objects() + [
        cluster("aws-standalone", DEV, AWS_STANDALONE),
        cluster("aws-hosted", PROD, AWS_HOSTED),
        cluster("azure-standalone", DEV, AZURE_STANDALONE),
        cluster("azure-hosted-1", PROD, AZURE_HOSTED),
        cluster("azure-hosted-2", PROD, AZURE_HOSTED),
    ]
    validator = make_validator(objects)
    with pytest.raises(AdmissionDenied) as info:
        validator.validate_update(template_management(), template_management(rules=[AWS_RULE]))
    assert str(info.value) == "can not apply new access rules"
    assert info.value.warnings == [
        "ClusterTemplate \"dev/azure-standalone-cp\" can't be removed: found ManagedClusters that reference it: \"dev/azure-standalone\"",
        "ClusterTemplate \"prod/aws-hosted-cp\" can't be removed: found ManagedClusters that reference it: \"prod/aws-hosted\"",
        "ClusterTemplate \"prod/azure-hosted-cp\" can't be removed: found ManagedClusters that reference it: \"prod/azure-hosted-1\", \"prod/azure-hosted-2\"",
    ]


def test_validate_update_succeeds_when_in_use_templates_kept():
    objects = base_objects() + [
        cluster("azure-hosted-1", PROD, AZURE_HOSTED),
        cluster("azure-hosted-2", PROD, AZURE_HOSTED),
    ]
    validator = make_validator(objects)
    result = validator.validate_update(
        template_management(), template_management(rules=[AZURE_PROD_RULE])
    )
    assert result == []


def test_validate_update_rejects_wrong_type():
    validator = make_validator()
    with pytest.raises(BadRequestError) as info:
        validator.validate_update(template_management(), Management())
    assert str(info.value) == "expected TemplateManagement but got a Management"


def test_validate_update_reports_missing_chain():
    validator = make_validator([namespace(DEV)])
    rule = AccessRule(
        target_namespaces=TargetNamespaces(names=[DEV]),
        cluster_template_chains=["missing"],
    )
    with pytest.raises(AdmissionDenied) as info:
        validator.validate_update(template_management(), template_management(rules=[rule]))
    assert str(info.value) == (
        "failed to parse access rules for TemplateManagement: "
        'clustertemplatechains.hmc.mirantis.com "missing" not found'
    )


def test_validate_delete_fails_if_management_exists():
    validator = make_validator([Management()])
    with pytest.raises(AdmissionDenied) as info:
        validator.validate_delete(template_management("test"))
    assert str(info.value) == "TemplateManagement deletion is forbidden"


def test_validate_delete_succeeds_without_management():
    validator = make_validator()
    assert validator.validate_delete(template_management("test")) == []


def test_validate_delete_succeeds_if_management_being_deleted():
    mgmt = Management(
        metadata=ObjectMeta(name="hmc", deletion_timestamp=datetime.now(timezone.utc))
    )
    validator = make_validator([mgmt])
    assert validator.validate_delete(template_management("test")) == []


def test_default_leaves_object_unchanged():
    obj = template_management(rules=[AWS_RULE])
    before = copy.deepcopy(obj)
    assert make_validator().default(obj) is None
    assert obj == before


def test_get_managed_clusters_for_template_filters_by_namespace_and_template():
    client = Client(
        [
            cluster("b", DEV, AWS_STANDALONE),
            cluster("a", DEV, AWS_STANDALONE),
            cluster("c", PROD, AWS_STANDALONE),
            cluster("d", DEV, AZURE_STANDALONE),
        ],
        indexes=INDEXES,
    )
    found = get_managed_clusters_for_template(client, DEV, AWS_STANDALONE)
    assert [c.metadata.name for c in found] == ["a", "b"]
    assert get_managed_clusters_for_template(client, PROD, AZURE_STANDALONE) == []