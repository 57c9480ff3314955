"""Reading cached cluster credentials from a kubeconfig file."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml

from .constants import DEFAULT_KUBECONFIG, DEFAULT_NAMESPACE
from .types import ClusterCredentials, KubeConfigReadError, MissingTokenError, NotLoggedInError

NOT_LOGGED_IN_MESSAGE = "Log in to your cluster using either kubectl or oc and try again"

logger = logging.getLogger(__name__)


def load_kube_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load and decode a kubeconfig file.

    Args:
        path: Kubeconfig location, ``~/.kube/config`` when omitted

    Returns:
        Decoded kubeconfig mapping

    Raises:
        KubeConfigReadError: If the file is missing, unreadable or not a YAML mapping
    """
    config_path = Path(path or DEFAULT_KUBECONFIG).expanduser()
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise KubeConfigReadError(f"Unable to read kubeconfig {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise KubeConfigReadError(f"Kubeconfig {config_path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise KubeConfigReadError(f"Kubeconfig {config_path} does not contain a mapping")

    logger.debug("Loaded kubeconfig from %s", config_path)
    return data


def resolve_credentials(
    kubeconfig: Mapping[str, Any],
    cluster_url: Optional[str] = None,
    namespace: Optional[str] = None,
) -> ClusterCredentials:
    """
    Work out where to connect and as whom from the current context.

    The current context is looked up in ``contexts``. Contexts written by
    ``oc login`` are also understood by name alone
    (``<namespace>/<host>:<port>/<user>``), matching clusters and users whose
    names end with the host part.

    Args:
        kubeconfig: Decoded kubeconfig
        cluster_url: Overrides the cluster server of the current context
        namespace: Overrides the namespace of the current context

    Raises:
        NotLoggedInError: If there is no current context or no cluster for it
        MissingTokenError: If no token is cached for the context's user
    """
    context_name = kubeconfig.get("current-context")
    if not isinstance(context_name, str) or not context_name:
        raise NotLoggedInError(f"No current context is set. {NOT_LOGGED_IN_MESSAGE}")

    cluster_name, user_name, context_namespace = _context_details(kubeconfig, context_name)

    cluster = _find_named(kubeconfig.get("clusters"), "cluster", cluster_name)
    if cluster_url is None:
        server = cluster.get("server") if cluster else None
        if not isinstance(server, str) or not server:
            raise NotLoggedInError(
                f"You do not appear to have cached credentials for {cluster_name}. {NOT_LOGGED_IN_MESSAGE}"
            )
        cluster_url = server

    user = _find_named(kubeconfig.get("users"), "user", user_name)
    token = user.get("token") if user else None
    if not isinstance(token, str) or not token:
        raise MissingTokenError(
            f"There does not appear to be a cached credential token for {user_name}. {NOT_LOGGED_IN_MESSAGE}"
        )

    credentials = ClusterCredentials(
        server=cluster_url,
        namespace=namespace or context_namespace or DEFAULT_NAMESPACE,
        token=token,
        verify=_tls_verification(cluster),
    )
    logger.debug("Context %s: cluster %s, namespace %s", context_name, credentials.server, credentials.namespace)
    return credentials


def _context_details(kubeconfig: Mapping[str, Any], context_name: str) -> Tuple[str, str, Optional[str]]:
    """Cluster name, user name and namespace of a context."""
    context = _find_named(kubeconfig.get("contexts"), "context", context_name)
    if context:
        cluster_name = context.get("cluster")
        user_name = context.get("user")
        if isinstance(cluster_name, str) and isinstance(user_name, str):
            context_namespace = context.get("namespace")
            return cluster_name, user_name, context_namespace if isinstance(context_namespace, str) else None

    parts = context_name.split("/")
    if len(parts) < 2:
        raise NotLoggedInError(f"Current context {context_name} is not defined. {NOT_LOGGED_IN_MESSAGE}")

    # oc login convention: namespace/master/user, clusters and users named after the master
    master = parts[1]
    cluster = _find_suffix(kubeconfig.get("clusters"), master)
    user = _find_suffix(kubeconfig.get("users"), master)
    return cluster or master, user or master, parts[0] or None


def _find_named(entries: Any, section: str, name: str) -> Optional[Dict[str, Any]]:
    """Body of the ``{name: ..., <section>: {...}}`` entry with the given name."""
    for entry in _entries(entries):
        if entry.get("name") == name and isinstance(entry.get(section), dict):
            return entry[section]
    return None


def _find_suffix(entries: Any, suffix: str) -> Optional[str]:
    for entry in _entries(entries):
        name = entry.get("name")
        if isinstance(name, str) and name.endswith(suffix):
            return name
    return None


def _entries(entries: Any) -> List[Dict[str, Any]]:
    if not isinstance(entries, list):
        return []
    return [entry for entry in entries if isinstance(entry, dict)]


def _tls_verification(cluster: Optional[Mapping[str, Any]]) -> Union[bool, str]:
    """``requests`` verify value for a cluster entry."""
    if not cluster:
        return True
    if cluster.get("insecure-skip-tls-verify"):
        return False
    ca_file = cluster.get("certificate-authority")
    if isinstance(ca_file, str) and ca_file:
        return str(Path(ca_file).expanduser())
    return True
