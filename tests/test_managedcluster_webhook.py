import copy

import pytest

from hmc.api import ClusterTemplate, ManagedCluster, Management, Providers
from hmc.kube import AdmissionDenied, BadRequestError, Client, ObjectMeta
from hmc.managedcluster_webhook import ManagedClusterValidator, get_missing_providers

TEMPLATE_NAME = "template-test"
TEST_NAMESPACE = "test"
CONFIG = '{"foo":"bar"}'


def make_cluster(template="", namespace="default", config=None, dry_run=False):
    return ManagedCluster(
        metadata=ObjectMeta(name="managedcluster", namespace=namespace),
        template=template,
        config=config,
        dry_run=dry_run,
    )


def make_template(name=TEMPLATE_NAME, namespace="default", valid=False,
                  validation_error="", providers=None, config=None):
    return ClusterTemplate(
        metadata=ObjectMeta(name=name, namespace=namespace),
        valid=valid,
        validation_error=validation_error,
        providers=providers or Providers(),
        config=config,
    )


def make_mgmt(providers=None):
    return Management(
        available_providers=providers
        or Providers(
            infrastructure_providers=["aws"],
            bootstrap_providers=["k0s"],
            control_plane_providers=["k0s"],
        )
    )


CREATE_AND_UPDATE_CASES = [
    pytest.param(
        make_cluster(),
        [],
        'the ManagedCluster is invalid: clustertemplates.hmc.mirantis.com "" not found',
        id="template unset",
    ),
    pytest.param(
        make_cluster(template=TEMPLATE_NAME),
        [make_mgmt(), make_template(namespace=TEST_NAMESPACE)],
        f'the ManagedCluster is invalid: clustertemplates.hmc.mirantis.com "{TEMPLATE_NAME}" not found',
        id="template in another namespace",
    ),
    pytest.param(
        make_cluster(template=TEMPLATE_NAME),
        [make_mgmt(), make_template(valid=False, validation_error="validation error example")],
        "the ManagedCluster is invalid: the template is not valid: validation error example",
        id="template invalid",
    ),
    pytest.param(
        make_cluster(template=TEMPLATE_NAME),
        [
            make_mgmt(Providers(infrastructure_providers=["aws"], bootstrap_providers=["k0s"])),
            make_template(
                valid=True,
                providers=Providers(
                    infrastructure_providers=["azure"],
                    bootstrap_providers=["k0s"],
                    control_plane_providers=["k0s"],
                ),
            ),
        ],
        "the ManagedCluster is invalid: providers verification failed: "
        "one or more required control plane providers are not deployed yet: [k0s]\n"
        "one or more required infrastructure providers are not deployed yet: [azure]",
        id="providers missing",
    ),
]

SUCCESS_OBJECTS = [
    make_mgmt(),
    make_template(
        valid=True,
        providers=Providers(
            infrastructure_providers=["aws"],
            bootstrap_providers=["k0s"],
            control_plane_providers=["k0s"],
        ),
    ),
]


@pytest.mark.parametrize("cluster, objects, message", CREATE_AND_UPDATE_CASES)
def test_validate_create_fails(cluster, objects, message):
    validator = ManagedClusterValidator(Client(objects))
    with pytest.raises(AdmissionDenied) as info:
        validator.validate_create(cluster)
    assert str(info.value) == message
    assert info.value.warnings == []


@pytest.mark.parametrize("cluster, objects, message", CREATE_AND_UPDATE_CASES)
def test_validate_update_fails(cluster, objects, message):
    validator = ManagedClusterValidator(Client(objects))
    with pytest.raises(AdmissionDenied) as info:
        validator.validate_update(make_cluster(), cluster)
    assert str(info.value) == message


def test_validate_create_succeeds():
    validator = ManagedClusterValidator(Client(SUCCESS_OBJECTS))
    assert validator.validate_create(make_cluster(template=TEMPLATE_NAME)) == []


def test_validate_update_succeeds():
    validator = ManagedClusterValidator(Client(SUCCESS_OBJECTS))
    assert validator.validate_update(make_cluster(), make_cluster(template=TEMPLATE_NAME)) == []


def test_validate_create_rejects_wrong_type():
    validator = ManagedClusterValidator(Client())
    with pytest.raises(BadRequestError, match="expected ManagedCluster but got a Management"):
        validator.validate_create(make_mgmt())


def test_validate_delete_allows():
    validator = ManagedClusterValidator(Client())
    assert validator.validate_delete(make_cluster()) == []


def test_default_keeps_provided_config():
    cluster = make_cluster(config=CONFIG)
    ManagedClusterValidator(Client()).default(cluster)
    assert cluster == make_cluster(config=CONFIG)


def test_default_invalid_template():
    cluster = make_cluster(template=TEMPLATE_NAME)
    client = Client([make_mgmt(), make_template(validation_error="validation error example")])
    with pytest.raises(AdmissionDenied) as info:
        ManagedClusterValidator(client).default(cluster)
    assert str(info.value) == "template is invalid: the template is not valid: validation error example"
    assert cluster == make_cluster(template=TEMPLATE_NAME)


def test_default_template_without_config():
    cluster = make_cluster(template=TEMPLATE_NAME)
    client = Client([make_mgmt(), make_template(valid=True)])
    ManagedClusterValidator(client).default(cluster)
    assert cluster == make_cluster(template=TEMPLATE_NAME)


def test_default_sets_config():
    cluster = make_cluster(template=TEMPLATE_NAME)
    client = Client([make_mgmt(), make_template(valid=True, config=CONFIG)])
    ManagedClusterValidator(client).default(cluster)
    assert cluster == make_cluster(template=TEMPLATE_NAME, config=CONFIG, dry_run=True)


def test_default_missing_template():
    cluster = make_cluster(template=TEMPLATE_NAME)
    before = copy.deepcopy(cluster)
    with pytest.raises(AdmissionDenied, match="could not get template for the managedcluster"):
        ManagedClusterValidator(Client()).default(cluster)
    assert cluster == before


def test_get_missing_providers():
    assert get_missing_providers(["aws"], ["azure", "aws", "vsphere"]) == ["azure", "vsphere"]
    assert get_missing_providers(["k0s"], ["k0s"]) == []
    assert get_missing_providers([], []) == []