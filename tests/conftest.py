import pytest

from namespace_helm_exporter.types import ClusterCredentials

SERVER = "https://api.cluster.example:6443"
NAMESPACE = "demo"


class FakeResponse:
    def __init__(self, status_code=200, payload=None, malformed=False):
        self.status_code = status_code
        self._payload = payload
        self._malformed = malformed

    def json(self):
        if self._malformed:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeSession:
    """Stands in for requests.Session; unknown URLs answer 404."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.headers = {}
        self.verify = True
        self.requests = []
        self.closed = False

    def get(self, url, timeout=None):
        self.requests.append((url, timeout))
        outcome = self.routes.get(url, FakeResponse(404))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        self.closed = True


def list_operation(group, version, kind, action="list"):
    operation = {
        "x-kubernetes-group-version-kind": {"group": group, "version": version, "kind": kind},
        "responses": {"200": {"schema": {"$ref": f"#/definitions/{_definition(group, version, kind)}List"}}},
    }
    if action is not None:
        operation["x-kubernetes-action"] = action
    return {"get": operation}


def _definition(group, version, kind):
    if group:
        return f"io.k8s.api.{group.split('.')[0]}.{version}.{kind}"
    return f"io.k8s.api.core.{version}.{kind}"


def build_api_description():
    paths = {
        "/api/v1/namespaces/{namespace}/configmaps": list_operation("", "v1", "ConfigMap"),
        "/api/v1/namespaces/{namespace}/configmaps/{name}": list_operation("", "v1", "ConfigMap", action="get"),
        "/api/v1/watch/namespaces/{namespace}/configmaps": list_operation("", "v1", "ConfigMap", action="watchlist"),
        "/api/v1/namespaces/{namespace}/pods": list_operation("", "v1", "Pod"),
        "/api/v1/namespaces/{namespace}/secrets": list_operation("", "v1", "Secret"),
        "/api/v1/namespaces/{namespace}/events": {"get": {"x-kubernetes-action": "list"}},
        "/apis/apps/v1/namespaces/{namespace}/deployments": list_operation("apps", "v1", "Deployment"),
        "/api/v1/namespaces": list_operation("", "v1", "Namespace"),
    }
    definitions = {}
    for group, version, kind in [("", "v1", "ConfigMap"), ("", "v1", "Secret"), ("apps", "v1", "Deployment")]:
        gvk = [{"group": group, "version": version, "kind": kind}]
        definitions[_definition(group, version, kind)] = {"x-kubernetes-group-version-kind": gvk}
        definitions[_definition(group, version, kind) + "List"] = {"x-kubernetes-group-version-kind": gvk}
    definitions["io.k8s.apimachinery.pkg.util.intstr.IntOrString"] = {"type": "string"}
    return {"swagger": "2.0", "paths": paths, "definitions": definitions}


@pytest.fixture
def api_description():
    return build_api_description()


@pytest.fixture
def credentials():
    return ClusterCredentials(server=SERVER, namespace=NAMESPACE, token="sha256~secret-token")


def config_map(name, data=None, labels=None, **metadata):
    return {
        "metadata": {
            "name": name,
            "namespace": NAMESPACE,
            "uid": f"uid-{name}",
            "resourceVersion": "1001",
            "creationTimestamp": "2024-01-01T00:00:00Z",
            "labels": dict(labels or {"app": "shop"}),
            **metadata,
        },
        "data": dict(data or {"mode": "production"}),
    }


def list_body(kind, items, api_version="v1"):
    return {"kind": f"{kind}List", "apiVersion": api_version, "metadata": {"resourceVersion": "1001"}, "items": items}
