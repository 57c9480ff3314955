"""Manifest cleaning utilities for preparing Kubernetes resources for Helm charts."""
from __future__ import annotations

import base64
import binascii
import logging
from copy import deepcopy
from typing import Any, Dict, Iterable, Optional

from .config import SanitationRule, SanitationRules
from .constants import BASELINE_METADATA_FIELDS, LAST_APPLIED_ANNOTATION, SECRET_KIND, K8sFields
from .types import K8sObject, SecretDecodeError
from .utils import ManifestTraverser, delete_path, expand_path, set_path


class ManifestCleaner:
    """Strips cluster-specific state from resource documents."""

    def __init__(self, rules: Optional[SanitationRules] = None):
        self.rules = rules or SanitationRules()
        self.logger = logging.getLogger(__name__)

    def sanitize(self, manifest: K8sObject) -> K8sObject:
        """
        Produce a sanitized copy of a resource document.

        Global rules run first, then the rules registered for the document's
        apiVersion and kind, then the baseline redactions, which no rule can
        override. The input is never modified.

        Args:
            manifest: Resource document as returned by the cluster

        Returns:
            New, independent sanitized document
        """
        cleaned = deepcopy(manifest)

        self._apply_rules(cleaned, self.rules.global_rules)

        api_version = ManifestTraverser.get_api_version(cleaned)
        kind = ManifestTraverser.get_kind(cleaned)
        self._apply_rules(cleaned, self.rules.rules_for(api_version, kind))

        self._apply_baseline(cleaned)

        self.logger.debug("Sanitized %s", ManifestTraverser.describe(cleaned))
        return cleaned

    def _apply_rules(self, manifest: K8sObject, rules: Iterable[SanitationRule]) -> None:
        for rule in rules:
            matches = expand_path(manifest, rule.pattern)
            if not matches:
                continue

            if rule.deletes:
                # Later list indices first so earlier ones stay valid
                for path in reversed(matches):
                    delete_path(manifest, path)
            else:
                for path in matches:
                    set_path(manifest, path, deepcopy(rule.replacement))

            self.logger.debug(
                "Rule %s matched %d field(s) in %s",
                rule.selector,
                len(matches),
                ManifestTraverser.describe(manifest),
            )

    def _apply_baseline(self, manifest: K8sObject) -> None:
        """Remove cluster-assigned state regardless of rule configuration."""
        manifest[K8sFields.STATUS] = {}

        metadata = manifest.get(K8sFields.METADATA)
        if not isinstance(metadata, dict):
            return

        for field_name in BASELINE_METADATA_FIELDS:
            metadata.pop(field_name, None)

        annotations = metadata.get(K8sFields.ANNOTATIONS)
        if isinstance(annotations, dict):
            annotations.pop(LAST_APPLIED_ANNOTATION, None)


class SecretHandler:
    """Turns the base64 ``data`` of Secrets into readable ``stringData``."""

    def __init__(self, enabled: bool = False):
        self.enabled = enabled
        self.logger = logging.getLogger(__name__)

    def process(self, manifest: K8sObject) -> K8sObject:
        """Decode the manifest when decoding is enabled and it is a Secret."""
        if not self.enabled or ManifestTraverser.get_kind(manifest) != SECRET_KIND:
            return manifest
        return self.decode_secret_data(manifest)

    def decode_secret_data(self, secret: K8sObject) -> K8sObject:
        """
        Move every base64 ``data`` entry of a Secret into ``stringData``.

        Args:
            secret: Secret manifest

        Returns:
            New manifest without ``data`` and with decoded ``stringData``

        Raises:
            SecretDecodeError: If any entry is not valid base64-encoded UTF-8
        """
        decoded_secret = deepcopy(secret)
        data = decoded_secret.pop(K8sFields.DATA, None)
        if not isinstance(data, dict):
            return decoded_secret

        name = ManifestTraverser.get_manifest_name(secret)
        string_data: Dict[str, Any] = {}
        for key, value in data.items():
            string_data[key] = self._decode_entry(name, key, value)

        existing = decoded_secret.get(K8sFields.STRING_DATA)
        if isinstance(existing, dict):
            # Explicit stringData wins over data, as on the API server
            string_data.update(existing)

        decoded_secret[K8sFields.STRING_DATA] = string_data
        self.logger.debug("Decoded %d entries of Secret/%s", len(string_data), name)
        return decoded_secret

    @staticmethod
    def _decode_entry(secret_name: str, key: str, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise SecretDecodeError(
                f"Secret '{secret_name}' entry '{key}' is not a base64 string",
                secret_name=secret_name,
                data_key=key,
            )
        try:
            return base64.b64decode(value, validate=True).decode("utf-8")
        except (binascii.Error, ValueError) as e:
            raise SecretDecodeError(
                f"Secret '{secret_name}' entry '{key}' could not be decoded: {e}",
                secret_name=secret_name,
                data_key=key,
            ) from e
