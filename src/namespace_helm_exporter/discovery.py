"""Discovery of namespace-scoped, listable resource endpoints from the cluster's API description."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .constants import (
    LIST_ACTION,
    NAME_PLACEHOLDER,
    NAMESPACE_PLACEHOLDER,
    WATCH_ACTIONS,
    WATCH_SEGMENT,
    ApiSpecFields,
)
from .types import Endpoint


class EndpointDiscoverer:
    """Filters an OpenAPI/Swagger description down to extractable endpoints."""

    def __init__(self, ignored_kinds: Iterable[str] = ()):
        self.ignored_kinds = frozenset(kind.lower() for kind in ignored_kinds)
        self.logger = logging.getLogger(__name__)

    def discover(self, api_description: Mapping[str, Any]) -> List[Endpoint]:
        """
        Find the endpoints eligible for extraction.

        A path qualifies when it is namespaced, is not a watch variant, lists
        a collection rather than addressing one named instance, defines a list
        operation, and declares a kind that is not ignored.

        Args:
            api_description: Decoded OpenAPI v2 (or v3) document

        Returns:
            Endpoints sorted by URL template, one per resource type key
        """
        paths = api_description.get(ApiSpecFields.PATHS)
        if not isinstance(paths, Mapping):
            self.logger.warning("API description has no paths section; nothing to discover")
            return []

        endpoints: Dict[str, Endpoint] = {}
        for url_template in sorted(paths):
            path_item = paths[url_template]
            if not self._is_candidate_path(url_template) or not isinstance(path_item, Mapping):
                continue

            operation = path_item.get(ApiSpecFields.GET)
            if not self._is_list_operation(operation):
                continue

            endpoint = self._build_endpoint(url_template, operation)
            if endpoint is None:
                continue

            if endpoint.kind.lower() in self.ignored_kinds:
                self.logger.debug("Ignoring %s (kind %s)", url_template, endpoint.kind)
                continue

            if endpoint.key in endpoints:
                self.logger.debug(
                    "Skipping %s: %s is already served by %s",
                    url_template,
                    endpoint.key,
                    endpoints[endpoint.key].url_template,
                )
                continue

            endpoints[endpoint.key] = endpoint

        self.logger.info("Discovered %d namespaced resource endpoints", len(endpoints))
        return list(endpoints.values())

    @staticmethod
    def _is_candidate_path(url_template: str) -> bool:
        if NAMESPACE_PLACEHOLDER not in url_template:
            return False
        segments = url_template.strip("/").split("/")
        if WATCH_SEGMENT in segments:
            return False
        if NAME_PLACEHOLDER in url_template:
            return False
        return True

    @staticmethod
    def _is_list_operation(operation: Any) -> bool:
        if not isinstance(operation, Mapping):
            return False
        action = operation.get(ApiSpecFields.ACTION)
        if action in WATCH_ACTIONS:
            return False
        return action is None or action == LIST_ACTION

    def _build_endpoint(self, url_template: str, operation: Mapping[str, Any]) -> Optional[Endpoint]:
        gvk = operation.get(ApiSpecFields.GVK)
        if not isinstance(gvk, Mapping) or not gvk.get("kind") or not gvk.get("version"):
            self.logger.warning("Skipping %s: list operation has no group/version/kind annotation", url_template)
            return None

        return Endpoint(
            url_template=url_template,
            group=str(gvk.get("group") or ""),
            version=str(gvk["version"]),
            kind=str(gvk["kind"]),
            schema_ref=self._response_schema_ref(operation),
        )

    @staticmethod
    def _response_schema_ref(operation: Mapping[str, Any]) -> Optional[str]:
        """Schema reference of the successful response, for Swagger v2 or OpenAPI v3."""
        responses = operation.get(ApiSpecFields.RESPONSES)
        if not isinstance(responses, Mapping):
            return None
        success = responses.get("200", responses.get(200))
        if not isinstance(success, Mapping):
            return None

        schema = success.get(ApiSpecFields.SCHEMA)
        if isinstance(schema, Mapping) and isinstance(schema.get(ApiSpecFields.REF), str):
            return schema[ApiSpecFields.REF]

        content = success.get(ApiSpecFields.CONTENT)
        if isinstance(content, Mapping):
            for media in content.values():
                if not isinstance(media, Mapping):
                    continue
                schema = media.get(ApiSpecFields.SCHEMA)
                if isinstance(schema, Mapping) and isinstance(schema.get(ApiSpecFields.REF), str):
                    return schema[ApiSpecFields.REF]
        return None


def build_type_map(api_description: Mapping[str, Any]) -> Dict[str, Mapping[str, Any]]:
    """
    Index the schema definitions that carry cluster extension attributes.

    Keys are full schema references (``#/definitions/...`` or
    ``#/components/schemas/...``) so they match the ``$ref`` values of
    endpoints.
    """
    type_map: Dict[str, Mapping[str, Any]] = {}

    sources = [(ApiSpecFields.DEFINITIONS, api_description.get(ApiSpecFields.DEFINITIONS))]
    components = api_description.get(ApiSpecFields.COMPONENTS)
    if isinstance(components, Mapping):
        sources.append(
            (f"{ApiSpecFields.COMPONENTS}/{ApiSpecFields.SCHEMAS}", components.get(ApiSpecFields.SCHEMAS))
        )

    for prefix, schemas in sources:
        if not isinstance(schemas, Mapping):
            continue
        for name, schema in schemas.items():
            if isinstance(schema, Mapping) and any(str(key).startswith("x-") for key in schema):
                type_map[f"#/{prefix}/{name}"] = schema

    return type_map
