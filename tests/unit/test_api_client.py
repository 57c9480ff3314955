from concurrent.futures import ThreadPoolExecutor

import pytest
import requests

from conftest import SERVER, FakeResponse, FakeSession, config_map, list_body
from namespace_helm_exporter.api_client import KubeApiClient, ResourceCollection, ResourceFetcher
from namespace_helm_exporter.config import RuleLoader
from namespace_helm_exporter.manifest_cleaner import ManifestCleaner, SecretHandler
from namespace_helm_exporter.types import APIAccessError, CredentialsExpiredError, Endpoint, SecretDecodeError

CONFIG_MAPS = Endpoint(
    "/api/v1/namespaces/{namespace}/configmaps", "", "v1", "ConfigMap", "#/definitions/io.k8s.api.core.v1.ConfigMapList"
)
SECRETS = Endpoint(
    "/api/v1/namespaces/{namespace}/secrets", "", "v1", "Secret", "#/definitions/io.k8s.api.core.v1.SecretList"
)
DEPLOYMENTS = Endpoint(
    "/apis/apps/v1/namespaces/{namespace}/deployments",
    "apps",
    "v1",
    "Deployment",
    "#/definitions/io.k8s.api.apps.v1.DeploymentList",
)


def _url(endpoint):
    return SERVER + endpoint.url_for("demo")


def _fetcher(session, credentials, decode_secrets=False, max_workers=4):
    client = KubeApiClient(credentials, connect_timeout=3, read_timeout=7, session=session)
    return ResourceFetcher(
        client,
        ManifestCleaner(RuleLoader().load()),
        SecretHandler(enabled=decode_secrets),
        max_workers=max_workers,
    )


def test_client_sends_bearer_token_and_bounded_timeouts(credentials):
    session = FakeSession({SERVER + "/openapi/v2": FakeResponse(200, {"ok": True})})
    client = KubeApiClient(credentials, connect_timeout=3, read_timeout=7, session=session)

    response = client.get("/openapi/v2")

    assert response.ok
    assert response.body == {"ok": True}
    assert session.headers["Authorization"] == "Bearer sha256~secret-token"
    assert session.requests == [(SERVER + "/openapi/v2", (3, 7))]


def test_client_error_status_is_returned_not_raised(credentials):
    client = KubeApiClient(credentials, session=FakeSession())

    response = client.get("/api/v1/namespaces/demo/nothing")

    assert response.status_code == 404
    assert not response.ok


@pytest.mark.parametrize(
    "fault",
    [
        requests.ConnectionError("connection refused"),
        requests.Timeout("read timed out"),
        requests.RequestException("boom"),
    ],
)
def test_transport_faults_become_access_errors(credentials, fault):
    client = KubeApiClient(credentials, session=FakeSession({SERVER + "/openapi/v2": fault}))

    with pytest.raises(APIAccessError) as excinfo:
        client.get("/openapi/v2")

    assert excinfo.value.url == SERVER + "/openapi/v2"
    assert excinfo.value.exit_code == 5


def test_malformed_body_is_an_access_error(credentials):
    client = KubeApiClient(credentials, session=FakeSession({SERVER + "/openapi/v2": FakeResponse(200, malformed=True)}))

    with pytest.raises(APIAccessError):
        client.get("/openapi/v2")


def test_get_api_description(credentials, api_description):
    client = KubeApiClient(credentials, session=FakeSession({SERVER + "/openapi/v2": FakeResponse(200, api_description)}))

    assert client.get_api_description() is api_description


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(401),
        FakeResponse(403),
        FakeResponse(200, {"swagger": "2.0"}),
        FakeResponse(200, {"paths": {}, "definitions": {"Plain": {"type": "object"}}}),
    ],
)
def test_rejected_or_unusable_api_description_means_expired_credentials(credentials, response):
    client = KubeApiClient(credentials, session=FakeSession({SERVER + "/openapi/v2": response}))

    with pytest.raises(CredentialsExpiredError) as excinfo:
        client.get_api_description()

    assert "expired or invalid" in str(excinfo.value)


def test_fetch_stamps_kind_and_sanitizes(credentials):
    session = FakeSession({_url(CONFIG_MAPS): FakeResponse(200, list_body("ConfigMap", [config_map("a"), config_map("b")]))})

    collection = _fetcher(session, credentials).fetch([CONFIG_MAPS], "demo")

    documents = collection["io.k8s.api.core.v1.ConfigMap"]
    assert [document["metadata"]["name"] for document in documents] == ["a", "b"]
    for document in documents:
        assert document["kind"] == "ConfigMap"
        assert document["apiVersion"] == "v1"
        assert document["status"] == {}
        assert "uid" not in document["metadata"]


def test_fetch_skips_forbidden_and_empty_endpoints(credentials, caplog):
    session = FakeSession({
        _url(CONFIG_MAPS): FakeResponse(200, list_body("ConfigMap", [config_map("a")])),
        _url(SECRETS): FakeResponse(403),
        _url(DEPLOYMENTS): FakeResponse(200, list_body("Deployment", [], api_version="apps/v1")),
    })

    collection = _fetcher(session, credentials).fetch([CONFIG_MAPS, SECRETS, DEPLOYMENTS], "demo")

    assert list(collection) == ["io.k8s.api.core.v1.ConfigMap"]
    assert "HTTP 403" in caplog.text


def test_fetch_falls_back_to_endpoint_kind_without_envelope(credentials):
    body = {"items": [{"metadata": {"name": "web"}, "spec": {"replicas": 1}}]}
    session = FakeSession({_url(DEPLOYMENTS): FakeResponse(200, body)})

    collection = _fetcher(session, credentials).fetch([DEPLOYMENTS], "demo")

    [deployment] = collection["io.k8s.api.apps.v1.Deployment"]
    assert deployment["kind"] == "Deployment"
    assert deployment["apiVersion"] == "apps/v1"


def test_fetch_preserves_endpoint_order(credentials):
    session = FakeSession({
        _url(DEPLOYMENTS): FakeResponse(
            200, list_body("Deployment", [{"metadata": {"name": "web"}}], api_version="apps/v1")
        ),
        _url(CONFIG_MAPS): FakeResponse(200, list_body("ConfigMap", [config_map("a")])),
    })

    collection = _fetcher(session, credentials, max_workers=2).fetch([DEPLOYMENTS, CONFIG_MAPS], "demo")

    assert list(collection) == ["io.k8s.api.apps.v1.Deployment", "io.k8s.api.core.v1.ConfigMap"]


def test_transport_fault_aborts_fetch(credentials):
    session = FakeSession({
        _url(CONFIG_MAPS): FakeResponse(200, list_body("ConfigMap", [config_map("a")])),
        _url(SECRETS): requests.ConnectionError("connection reset"),
    })

    with pytest.raises(APIAccessError):
        _fetcher(session, credentials).fetch([CONFIG_MAPS, SECRETS], "demo")


def test_transport_fault_cancels_queued_endpoints(credentials):
    session = FakeSession({
        _url(SECRETS): requests.ConnectionError("connection reset"),
        _url(CONFIG_MAPS): FakeResponse(200, list_body("ConfigMap", [config_map("a")])),
        _url(DEPLOYMENTS): FakeResponse(200, list_body("Deployment", [], api_version="apps/v1")),
    })

    with pytest.raises(APIAccessError):
        _fetcher(session, credentials, max_workers=1).fetch([SECRETS, CONFIG_MAPS, DEPLOYMENTS], "demo")

    assert [url for url, _ in session.requests] == [_url(SECRETS)]


def test_fetch_uses_endpoint_kind_for_generic_list_envelope(credentials):
    session = FakeSession({_url(CONFIG_MAPS): FakeResponse(200, list_body("", [config_map("a")]))})

    collection = _fetcher(session, credentials).fetch([CONFIG_MAPS], "demo")

    [resource] = collection["io.k8s.api.core.v1.ConfigMap"]
    assert resource["kind"] == "ConfigMap"
    assert resource["apiVersion"] == "v1"


def test_fetch_decodes_secrets_when_enabled(credentials):
    secret = {"metadata": {"name": "db"}, "type": "Opaque", "data": {"password": "cGFzcw=="}}
    session = FakeSession({_url(SECRETS): FakeResponse(200, list_body("Secret", [secret]))})

    collection = _fetcher(session, credentials, decode_secrets=True).fetch([SECRETS], "demo")

    [decoded] = collection["io.k8s.api.core.v1.Secret"]
    assert decoded["stringData"] == {"password": "pass"}
    assert "data" not in decoded


def test_malformed_secret_aborts_fetch(credentials):
    secret = {"metadata": {"name": "db"}, "data": {"password": "%%%"}}
    session = FakeSession({_url(SECRETS): FakeResponse(200, list_body("Secret", [secret]))})

    with pytest.raises(SecretDecodeError):
        _fetcher(session, credentials, decode_secrets=True).fetch([SECRETS], "demo")


def test_fetch_without_endpoints(credentials):
    assert _fetcher(FakeSession(), credentials).fetch([], "demo") == {}


def test_fetch_reports_progress(credentials):
    updates = []

    class Recorder:
        def update(self, current, total, message=""):
            updates.append((current, total))

    session = FakeSession({_url(CONFIG_MAPS): FakeResponse(200, list_body("ConfigMap", [config_map("a")]))})
    fetcher = _fetcher(session, credentials, max_workers=1)
    fetcher.progress = Recorder()

    fetcher.fetch([CONFIG_MAPS, SECRETS], "demo")

    assert updates == [(1, 2), (2, 2)]


def test_resource_collection_never_stores_empty_lists():
    collection = ResourceCollection()

    collection.add("io.k8s.api.core.v1.ConfigMap", [])
    collection.add("io.k8s.api.core.v1.Secret", [{"kind": "Secret"}])

    assert "io.k8s.api.core.v1.ConfigMap" not in collection
    assert collection.ordered(["io.k8s.api.core.v1.ConfigMap", "io.k8s.api.core.v1.Secret"]) == {
        "io.k8s.api.core.v1.Secret": [{"kind": "Secret"}]
    }
    assert collection.total() == 1


def test_resource_collection_reads_while_workers_add():
    collection = ResourceCollection()
    keys = [f"io.example.v1.Kind{i}" for i in range(200)]

    def _add(key):
        collection.add(key, [{"kind": key}])
        assert key in collection
        assert collection[key] == [{"kind": key}]
        return len(list(collection))

    with ThreadPoolExecutor(max_workers=8) as executor:
        sizes = list(executor.map(_add, keys))

    assert len(collection) == 200
    assert max(sizes) == 200
    assert list(collection.ordered(keys)) == keys
