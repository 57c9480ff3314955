"""Constants for Kubernetes field names and configuration values."""
from __future__ import annotations

from typing import Any, Dict, Final, Sequence

# Kubernetes API field names
class K8sFields:
    """Standard Kubernetes resource field names."""

    # Top-level fields
    API_VERSION: Final[str] = "apiVersion"
    KIND: Final[str] = "kind"
    METADATA: Final[str] = "metadata"
    SPEC: Final[str] = "spec"
    STATUS: Final[str] = "status"
    ITEMS: Final[str] = "items"

    # Metadata fields
    NAME: Final[str] = "name"
    NAMESPACE: Final[str] = "namespace"
    LABELS: Final[str] = "labels"
    ANNOTATIONS: Final[str] = "annotations"
    CREATION_TIMESTAMP: Final[str] = "creationTimestamp"
    GENERATION: Final[str] = "generation"
    RESOURCE_VERSION: Final[str] = "resourceVersion"
    SELF_LINK: Final[str] = "selfLink"
    UID: Final[str] = "uid"

    # Secret fields
    DATA: Final[str] = "data"
    STRING_DATA: Final[str] = "stringData"


# OpenAPI / Swagger field names
class ApiSpecFields:
    """Field names of the cluster's machine-readable API description."""

    PATHS: Final[str] = "paths"
    DEFINITIONS: Final[str] = "definitions"
    COMPONENTS: Final[str] = "components"
    SCHEMAS: Final[str] = "schemas"
    GET: Final[str] = "get"
    RESPONSES: Final[str] = "responses"
    SCHEMA: Final[str] = "schema"
    CONTENT: Final[str] = "content"
    REF: Final[str] = "$ref"
    GVK: Final[str] = "x-kubernetes-group-version-kind"
    ACTION: Final[str] = "x-kubernetes-action"


NAMESPACE_PLACEHOLDER: Final[str] = "{namespace}"
NAME_PLACEHOLDER: Final[str] = "{name}"
WATCH_SEGMENT: Final[str] = "watch"
LIST_ACTION: Final[str] = "list"
WATCH_ACTIONS: Final[Sequence[str]] = ("watch", "watchlist")
LIST_SUFFIX: Final[str] = "List"
SECRET_KIND: Final[str] = "Secret"

LAST_APPLIED_ANNOTATION: Final[str] = "kubectl.kubernetes.io/last-applied-configuration"

# Cluster-assigned metadata fields removed from every resource, whatever the rules say
BASELINE_METADATA_FIELDS: Final[Sequence[str]] = (
    K8sFields.CREATION_TIMESTAMP,
    K8sFields.GENERATION,
    K8sFields.NAMESPACE,
    K8sFields.RESOURCE_VERSION,
    K8sFields.SELF_LINK,
    K8sFields.UID,
)

# Built-in sanitation rules, used when no rules file is given.
# A null replacement deletes the addressed field.
DEFAULT_SANITATION_RULES: Final[Dict[str, Any]] = {
    "global": {
        "metadata.managedFields": None,
        "metadata.ownerReferences": None,
        "metadata.deletionTimestamp": None,
        "metadata.deletionGracePeriodSeconds": None,
        "metadata.generateName": None,
        'metadata.annotations["openshift.io/generated-by"]': None,
        'metadata.labels["pod-template-hash"]': None,
    },
    "kinds": {
        "v1/Service": {
            "spec.clusterIP": None,
            "spec.clusterIPs": None,
            "spec.ipFamilies": None,
            "spec.ipFamilyPolicy": None,
        },
        "v1/PersistentVolumeClaim": {
            "spec.volumeName": None,
            'metadata.annotations["pv.kubernetes.io/bind-completed"]': None,
            'metadata.annotations["pv.kubernetes.io/bound-by-controller"]': None,
            'metadata.annotations["volume.kubernetes.io/selected-node"]': None,
        },
        "v1/ServiceAccount": {
            "secrets": None,
            "imagePullSecrets": None,
        },
        "apps/v1/Deployment": {
            'metadata.annotations["deployment.kubernetes.io/revision"]': None,
            'spec.template.metadata.annotations["kubectl.kubernetes.io/restartedAt"]': None,
            "spec.template.metadata.creationTimestamp": None,
        },
        "apps/v1/StatefulSet": {
            "spec.template.metadata.creationTimestamp": None,
        },
        "apps/v1/DaemonSet": {
            'metadata.annotations["deprecated.daemonset.template.generation"]': None,
            "spec.template.metadata.creationTimestamp": None,
        },
        "apps.openshift.io/v1/DeploymentConfig": {
            "spec.template.metadata.creationTimestamp": None,
            "spec.triggers[*].imageChangeParams.lastTriggeredImage": None,
        },
        "route.openshift.io/v1/Route": {
            'metadata.annotations["openshift.io/host.generated"]': None,
        },
        "image.openshift.io/v1/ImageStream": {
            'metadata.annotations["openshift.io/image.dockerRepositoryCheck"]': None,
        },
    },
}

# Default values
DEFAULT_CHART_VERSION: Final[str] = "0.1.0"
DEFAULT_APP_VERSION: Final[str] = "1.0.0"
DEFAULT_NAMESPACE: Final[str] = "default"
DEFAULT_OUTPUT_DIR: Final[str] = "./chart"
DEFAULT_KUBECONFIG: Final[str] = "~/.kube/config"
DEFAULT_IGNORED_KINDS: Final[Sequence[str]] = ("ReplicationController", "Pod")
API_DESCRIPTION_PATH: Final[str] = "/openapi/v2"

# Transport configuration
DEFAULT_CONNECT_TIMEOUT_SECONDS: Final[float] = 10.0
DEFAULT_READ_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_MAX_WORKERS: Final[int] = 4
