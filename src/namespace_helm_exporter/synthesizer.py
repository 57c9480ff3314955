"""Chart synthesis: split each kind's instances into a shared template and per-instance values."""
from __future__ import annotations

import logging
from copy import deepcopy
from typing import Any, Dict, List, Mapping, Tuple

from .differ import diff_documents, promotion_paths
from .types import Chart, DocumentPath, K8sObject, K8sObjectList, Placeholder
from .utils import ManifestTraverser, format_path, get_path, set_path


class ChartSynthesizer:
    """Builds a Chart from the per-type resource collections."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def synthesize(self, collections: Mapping[str, K8sObjectList], chart_name: str) -> Chart:
        """
        Synthesize a chart.

        A kind with one instance becomes a literal template and contributes no
        values. For a kind with several instances, every path whose value
        differs between the first instance and any other is replaced in the
        template by a placeholder, and each instance's value at that path is
        recorded under the instance's name.

        Args:
            collections: Sanitized resources keyed by resource type
            chart_name: Name of the chart

        Returns:
            Chart with one template per kind and values keyed
            kind -> instance name -> path -> value
        """
        chart = Chart(name=chart_name)

        for type_key, documents in collections.items():
            if not documents:
                continue

            template_key = self._template_key(type_key, documents[0], chart.templates)

            if len(documents) == 1:
                chart.templates[template_key] = deepcopy(documents[0])
                self.logger.debug("%s has a single instance; emitted verbatim", template_key)
                continue

            template, values = self.synthesize_kind(documents)
            chart.templates[template_key] = template
            chart.values[template_key] = values

        self.logger.info(
            "Synthesized chart '%s' with %d templates (%d parameterized)",
            chart_name,
            len(chart.templates),
            len(chart.values),
        )
        return chart

    def synthesize_kind(self, documents: K8sObjectList) -> Tuple[Any, Dict[str, Dict[str, Any]]]:
        """
        Build the template and values for several instances of one kind.

        Returns:
            The template, and each instance's promoted values keyed by
            instance name and then by path
        """
        reference = documents[0]

        operations = []
        for document in documents[1:]:
            operations.extend(diff_documents(reference, document))
        paths = promotion_paths(operations)

        template: Any = deepcopy(reference)
        for path in paths:
            placeholder = Placeholder(format_path(path), deepcopy(get_path(reference, path)))
            if not path:
                template = placeholder
            else:
                set_path(template, path, placeholder)

        values: Dict[str, Dict[str, Any]] = {}
        for name, document in zip(self.instance_names(documents), documents):
            values[name] = self._extract_values(document, paths)

        self.logger.debug(
            "%s: %d instances, promoted %s",
            ManifestTraverser.get_kind(reference),
            len(documents),
            ", ".join(format_path(path) for path in paths) or "nothing",
        )
        return template, values

    @staticmethod
    def _extract_values(document: K8sObject, paths: List[DocumentPath]) -> Dict[str, Any]:
        return {format_path(path): deepcopy(get_path(document, path)) for path in paths}

    @staticmethod
    def instance_names(documents: K8sObjectList) -> List[str]:
        """Unique value keys for the instances, derived from ``metadata.name``."""
        names: List[str] = []
        seen = set()
        for index, document in enumerate(documents):
            name = ManifestTraverser.get_manifest_name(document) or f"instance-{index}"
            if name in seen:
                name = f"{name}-{index}"
            seen.add(name)
            names.append(name)
        return names

    @staticmethod
    def _template_key(type_key: str, document: K8sObject, existing: Mapping[str, Any]) -> str:
        """Kind name, qualified by API group only when two types share a kind."""
        kind = ManifestTraverser.get_kind(document) or type_key
        if kind not in existing:
            return kind
        qualified = f"{kind}.{ManifestTraverser.get_api_group(document)}"
        if qualified not in existing:
            return qualified
        return type_key
