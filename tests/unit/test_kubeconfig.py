import pytest
import yaml

from namespace_helm_exporter.kubeconfig import load_kube_config, resolve_credentials
from namespace_helm_exporter.types import KubeConfigReadError, MissingTokenError, NotLoggedInError


def _kubeconfig(**overrides):
    config = {
        "apiVersion": "v1",
        "kind": "Config",
        "current-context": "shop",
        "contexts": [
            {"name": "shop", "context": {"cluster": "prod", "user": "alex", "namespace": "storefront"}},
        ],
        "clusters": [
            {"name": "prod", "cluster": {"server": "https://prod.example:6443", "certificate-authority": "/etc/ca.crt"}},
        ],
        "users": [{"name": "alex", "user": {"token": "sha256~abc"}}],
    }
    config.update(overrides)
    return config


def _openshift_kubeconfig():
    return {
        "current-context": "storefront/api-ocp-example-com:6443/alex",
        "contexts": [],
        "clusters": [{"name": "api-ocp-example-com:6443", "cluster": {"server": "https://api.ocp.example.com:6443",
                                                                       "insecure-skip-tls-verify": True}}],
        "users": [{"name": "alex/api-ocp-example-com:6443", "user": {"token": "sha256~oc"}}],
    }


def test_load_kube_config(tmp_path):
    path = tmp_path / "config"
    path.write_text(yaml.safe_dump(_kubeconfig()))

    assert load_kube_config(str(path))["current-context"] == "shop"


def test_load_kube_config_missing_file(tmp_path):
    with pytest.raises(KubeConfigReadError):
        load_kube_config(str(tmp_path / "absent"))


@pytest.mark.parametrize("content", ["clusters: [unclosed", "- just\n- a list\n"])
def test_load_kube_config_rejects_bad_documents(tmp_path, content):
    path = tmp_path / "config"
    path.write_text(content)

    with pytest.raises(KubeConfigReadError):
        load_kube_config(str(path))


def test_resolve_credentials_from_current_context():
    credentials = resolve_credentials(_kubeconfig())

    assert credentials.server == "https://prod.example:6443"
    assert credentials.namespace == "storefront"
    assert credentials.token == "sha256~abc"
    assert credentials.verify == "/etc/ca.crt"
    assert "sha256~abc" not in repr(credentials)


def test_resolve_credentials_overrides():
    credentials = resolve_credentials(_kubeconfig(), cluster_url="https://other:6443", namespace="payments")

    assert credentials.server == "https://other:6443"
    assert credentials.namespace == "payments"


def test_namespace_defaults_when_context_has_none():
    config = _kubeconfig(contexts=[{"name": "shop", "context": {"cluster": "prod", "user": "alex"}}])

    assert resolve_credentials(config).namespace == "default"


def test_openshift_context_name_convention():
    credentials = resolve_credentials(_openshift_kubeconfig())

    assert credentials.server == "https://api.ocp.example.com:6443"
    assert credentials.namespace == "storefront"
    assert credentials.token == "sha256~oc"
    assert credentials.verify is False


def test_no_current_context():
    config = _kubeconfig()
    del config["current-context"]

    with pytest.raises(NotLoggedInError) as excinfo:
        resolve_credentials(config)

    assert "Log in to your cluster using either kubectl or oc and try again" in str(excinfo.value)
    assert excinfo.value.exit_code == 2


def test_unknown_cluster():
    with pytest.raises(NotLoggedInError):
        resolve_credentials(_kubeconfig(clusters=[]))


def test_missing_token():
    with pytest.raises(MissingTokenError) as excinfo:
        resolve_credentials(_kubeconfig(users=[{"name": "alex", "user": {"client-certificate": "/tmp/cert"}}]))

    assert excinfo.value.exit_code == 3
