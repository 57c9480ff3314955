"""Kubernetes API access: authenticated GET requests and concurrent resource retrieval."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import requests

from .constants import (
    API_DESCRIPTION_PATH,
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_MAX_WORKERS,
    DEFAULT_READ_TIMEOUT_SECONDS,
    LIST_SUFFIX,
    K8sFields,
)
from .discovery import build_type_map
from .manifest_cleaner import ManifestCleaner, SecretHandler
from .types import (
    APIAccessError,
    ClusterCredentials,
    Endpoint,
    K8sObject,
    K8sObjectList,
    CredentialsExpiredError,
    ProgressCallback,
)

EXPIRED_CREDENTIALS_MESSAGE = (
    "Your cached credentials appear to be expired or invalid. "
    "Please log in with kubectl or oc and try again."
)


class ApiResponse:
    """Status code and decoded JSON body of one GET request."""

    def __init__(self, url: str, status_code: int, body: Any):
        self.url = url
        self.status_code = status_code
        self.body = body

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class KubeApiClient:
    """Issues authenticated GET requests against a cluster API server."""

    def __init__(
        self,
        credentials: ClusterCredentials,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        read_timeout: float = DEFAULT_READ_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = credentials.server.rstrip("/")
        self.timeout = (connect_timeout, read_timeout)
        self.logger = logging.getLogger(__name__)
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {credentials.token}",
            "Accept": "application/json",
        })
        self.session.verify = credentials.verify

    def get(self, path: str) -> ApiResponse:
        """
        GET a path relative to the API server.

        Error statuses are returned, not raised: callers decide whether a
        4xx/5xx is fatal.

        Raises:
            APIAccessError: On connection failure, timeout or a body that is not JSON
        """
        url = f"{self.base_url}{path}"
        self.logger.debug("GET %s", url)

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.Timeout as e:
            raise APIAccessError(f"Timed out talking to the cluster at {url}", url) from e
        except requests.ConnectionError as e:
            raise APIAccessError(f"Unable to connect to the cluster at {url}: {e}", url) from e
        except requests.RequestException as e:
            raise APIAccessError(f"Request to {url} failed: {e}", url) from e

        if response.status_code >= 400:
            return ApiResponse(url, response.status_code, None)

        try:
            body = response.json()
        except ValueError as e:
            raise APIAccessError(f"Malformed response body from {url}: {e}", url) from e

        return ApiResponse(url, response.status_code, body)

    def get_api_description(self) -> Dict[str, Any]:
        """
        Retrieve the cluster's OpenAPI description.

        Raises:
            CredentialsExpiredError: If the cluster rejects the credentials or returns an unusable description
            APIAccessError: If the cluster cannot be reached
        """
        response = self.get(API_DESCRIPTION_PATH)
        if response.status_code in (401, 403):
            raise CredentialsExpiredError(EXPIRED_CREDENTIALS_MESSAGE)
        if not response.ok:
            raise APIAccessError(
                f"Cluster returned HTTP {response.status_code} for its API description",
                response.url,
            )

        description = response.body
        if not isinstance(description, dict) or not isinstance(description.get("paths"), dict):
            raise CredentialsExpiredError(EXPIRED_CREDENTIALS_MESSAGE)

        type_map = build_type_map(description)
        if not type_map:
            raise CredentialsExpiredError(EXPIRED_CREDENTIALS_MESSAGE)

        self.logger.info(
            "Retrieved API description: %d paths, %d resource types",
            len(description["paths"]),
            len(type_map),
        )
        return description

    def close(self) -> None:
        self.session.close()


class ResourceCollection:
    """Sanitized resources keyed by resource type; safe for concurrent insertion."""

    def __init__(self):
        self._items: Dict[str, K8sObjectList] = {}
        self._lock = threading.Lock()

    def add(self, key: str, resources: K8sObjectList) -> None:
        """Store the resources of one type; empty lists are never stored."""
        if not resources:
            return
        with self._lock:
            self._items.setdefault(key, []).extend(resources)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._items))

    def __getitem__(self, key: str) -> K8sObjectList:
        with self._lock:
            return self._items[key]

    def items(self) -> List[Tuple[str, K8sObjectList]]:
        with self._lock:
            return list(self._items.items())

    def ordered(self, keys: Sequence[str]) -> Dict[str, K8sObjectList]:
        """Plain dict view with keys in the given order."""
        with self._lock:
            return {key: self._items[key] for key in keys if key in self._items}

    def total(self) -> int:
        return sum(len(resources) for _, resources in self.items())


class ResourceFetcher:
    """Lists every discovered endpoint in a namespace and sanitizes the results."""

    def __init__(
        self,
        client: KubeApiClient,
        cleaner: ManifestCleaner,
        secret_handler: Optional[SecretHandler] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        progress: Optional[ProgressCallback] = None,
    ):
        self.client = client
        self.cleaner = cleaner
        self.secret_handler = secret_handler or SecretHandler(enabled=False)
        self.max_workers = max_workers
        self.progress = progress
        self.logger = logging.getLogger(__name__)
        self._completed = 0
        self._progress_lock = threading.Lock()
        self._aborted = threading.Event()

    def fetch(self, endpoints: Sequence[Endpoint], namespace: str) -> Dict[str, K8sObjectList]:
        """
        Retrieve, decode and sanitize the resources behind every endpoint.

        Endpoints that answer with an error status or an empty list are
        skipped with a warning. Anything else that goes wrong aborts the
        whole run.

        Args:
            endpoints: Endpoints produced by discovery
            namespace: Namespace substituted into every URL template

        Returns:
            Sanitized resources keyed by resource type, in endpoint order

        Raises:
            APIAccessError: On a transport fault for any endpoint
            SecretDecodeError: If secret decoding is enabled and a Secret is malformed
        """
        collection = ResourceCollection()
        self._completed = 0
        self._aborted.clear()

        if not endpoints:
            return {}

        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="fetch")
        try:
            futures = [
                executor.submit(self._fetch_endpoint, endpoint, namespace, collection, len(endpoints))
                for endpoint in endpoints
            ]
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            for future in futures:
                if future in done and future.exception() is not None:
                    raise future.exception()
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        self.logger.info(
            "Retrieved %d resources of %d types from namespace '%s'",
            collection.total(),
            len(collection),
            namespace,
        )
        return collection.ordered([endpoint.key for endpoint in endpoints])

    def _fetch_endpoint(
        self,
        endpoint: Endpoint,
        namespace: str,
        collection: ResourceCollection,
        total: int,
    ) -> None:
        if self._aborted.is_set():
            # Queued behind a failed endpoint
            return
        try:
            resources = self.retrieve(endpoint, namespace)
            collection.add(endpoint.key, resources)
        except Exception:
            self._aborted.set()
            raise
        finally:
            self._report_progress(endpoint, total)

    def retrieve(self, endpoint: Endpoint, namespace: str) -> K8sObjectList:
        """List one endpoint and return its sanitized items (possibly empty)."""
        response = self.client.get(endpoint.url_for(namespace))

        if not response.ok:
            self.logger.warning(
                "Skipping %s: HTTP %d from %s",
                endpoint.kind,
                response.status_code,
                response.url,
            )
            return []

        body = response.body
        if not isinstance(body, dict):
            raise APIAccessError(f"Expected a JSON object from {response.url}", response.url, endpoint.kind)

        items = body.get(K8sFields.ITEMS)
        if items is None:
            items = []
        if not isinstance(items, list):
            raise APIAccessError(f"Expected 'items' to be a list in {response.url}", response.url, endpoint.kind)

        if not items:
            self.logger.debug("No %s resources in namespace '%s'", endpoint.kind, namespace)
            return []

        kind, api_version = self._resolve_type(body, endpoint)

        sanitized: K8sObjectList = []
        for item in items:
            if not isinstance(item, dict):
                self.logger.warning("Ignoring non-object item in %s list", kind)
                continue
            resource: K8sObject = dict(item)
            resource[K8sFields.KIND] = kind
            resource[K8sFields.API_VERSION] = api_version
            resource = self.secret_handler.process(resource)
            sanitized.append(self.cleaner.sanitize(resource))

        self.logger.info("Collected %d %s resources", len(sanitized), kind)
        return sanitized

    @staticmethod
    def _resolve_type(body: K8sObject, endpoint: Endpoint) -> Tuple[str, str]:
        """Kind and apiVersion of the list's items, preferring the list envelope."""
        kind: Union[str, None] = body.get(K8sFields.KIND)
        if isinstance(kind, str) and kind.endswith(LIST_SUFFIX):
            kind = kind[: -len(LIST_SUFFIX)]
        if not isinstance(kind, str) or not kind:
            # Generic "List" envelopes carry no item kind
            kind = endpoint.kind

        api_version = body.get(K8sFields.API_VERSION)
        if not isinstance(api_version, str) or not api_version:
            api_version = endpoint.api_version

        return kind, api_version

    def _report_progress(self, endpoint: Endpoint, total: int) -> None:
        with self._progress_lock:
            self._completed += 1
            completed = self._completed
        if self.progress is not None:
            self.progress.update(completed, total, f"Fetched {endpoint.kind}")
