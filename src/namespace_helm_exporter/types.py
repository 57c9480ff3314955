"""Type definitions for Kubernetes resources and internal data structures."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple, TypedDict, Union

# Basic Kubernetes types
K8sObject = Dict[str, Any]
K8sObjectList = List[K8sObject]

# A path into a resource document: dict keys and list indices
PathSegment = Union[str, int]
DocumentPath = Tuple[PathSegment, ...]

# kind -> instance name -> path -> value
ValuesDict = Dict[str, Dict[str, Dict[str, Any]]]


@dataclass(frozen=True)
class Endpoint:
    """A namespace-scoped, listable resource endpoint of the cluster API."""

    url_template: str
    group: str
    version: str
    kind: str
    schema_ref: Optional[str] = None

    @property
    def api_version(self) -> str:
        """apiVersion string as it appears in resource documents."""
        if self.group:
            return f"{self.group}/{self.version}"
        return self.version

    @property
    def key(self) -> str:
        """Stable type key used to group retrieved resources."""
        if self.schema_ref:
            name = self.schema_ref.rsplit("/", 1)[-1]
            if name.endswith("List"):
                name = name[: -len("List")]
            return name
        return f"{self.group}/{self.version}/{self.kind}"

    def url_for(self, namespace: str) -> str:
        return self.url_template.replace("{namespace}", namespace)


@dataclass(frozen=True)
class Placeholder:
    """Marks a promoted path inside a template.

    ``name`` is the canonical path string used as the key in each instance's
    values; ``default`` is the reference instance's value at that path.
    """

    name: str
    default: Any = None


@dataclass(frozen=True)
class DiffOperation:
    """One edit needed to turn a document into another."""

    op: str  # add, remove, replace
    path: DocumentPath
    old: Any = None
    new: Any = None


@dataclass
class Chart:
    """The synthesized deployment package."""

    name: str
    templates: Dict[str, K8sObject] = field(default_factory=dict)
    values: ValuesDict = field(default_factory=dict)


@dataclass(frozen=True)
class ClusterCredentials:
    """Everything needed to talk to one cluster as one user."""

    server: str
    namespace: str
    token: str = field(repr=False)
    verify: Union[bool, str] = True


# Protocol for progress reporting
class ProgressCallback(Protocol):
    """Callback for progress updates."""

    def update(self, current: int, total: int, message: str = "") -> None:
        """Update progress."""
        ...


class ExportResult(TypedDict):
    """Result of an export operation."""
    success: bool
    chart_name: str
    exported_count: int
    kinds: List[str]
    errors: List[str]
    output_path: str


# Error types
class ExportError(Exception):
    """Base exception for export operations."""

    exit_code = 1

    def __init__(self, message: str, resource_type: Optional[str] = None):
        super().__init__(message)
        self.resource_type = resource_type


class KubeConfigReadError(ExportError):
    """The cached cluster credentials could not be read."""

    exit_code = 1


class NotLoggedInError(ExportError):
    """No usable credentials for the target cluster."""

    exit_code = 2


class MissingTokenError(NotLoggedInError):
    """The cached credentials hold no token for the target cluster."""

    exit_code = 3


class CredentialsExpiredError(NotLoggedInError):
    """The cluster rejected the cached token."""

    exit_code = 4


class APIAccessError(ExportError):
    """The cluster could not be reached or returned an unusable response."""

    exit_code = 5

    def __init__(self, message: str, url: Optional[str] = None, resource_type: Optional[str] = None):
        super().__init__(message, resource_type)
        self.url = url


class SecretDecodeError(ExportError):
    """A Secret carries data that is not valid base64 text."""

    exit_code = 6

    def __init__(self, message: str, secret_name: Optional[str] = None, data_key: Optional[str] = None):
        super().__init__(message, "Secret")
        self.secret_name = secret_name
        self.data_key = data_key


class RuleSetError(ExportError):
    """The sanitation rule set is malformed."""

    exit_code = 7


class ChartGenerationError(ExportError):
    """Error generating Helm chart."""

    exit_code = 8

