"""Configuration management for the namespace-helm-exporter."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import yaml

from .constants import (
    DEFAULT_APP_VERSION,
    DEFAULT_CHART_VERSION,
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_IGNORED_KINDS,
    DEFAULT_KUBECONFIG,
    DEFAULT_MAX_WORKERS,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_READ_TIMEOUT_SECONDS,
    DEFAULT_SANITATION_RULES,
)
from .types import RuleSetError
from .utils import PathSyntaxError, parse_path


@dataclass
class ExportConfig:
    """Configuration for one export run."""

    # Target selection
    chart_name: Optional[str] = None
    namespace: Optional[str] = None
    cluster_url: Optional[str] = None
    kubeconfig: str = DEFAULT_KUBECONFIG
    ignored_kinds: Sequence[str] = field(default_factory=lambda: list(DEFAULT_IGNORED_KINDS))

    # Sanitation
    rules_file: Optional[str] = None
    decode_secrets: bool = False

    # Output settings
    output_dir: str = DEFAULT_OUTPUT_DIR
    force: bool = False

    # Chart metadata
    chart_version: str = DEFAULT_CHART_VERSION
    app_version: str = DEFAULT_APP_VERSION

    # Transport settings
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS
    read_timeout: float = DEFAULT_READ_TIMEOUT_SECONDS
    verify_tls: bool = True
    max_workers: int = DEFAULT_MAX_WORKERS

    # Progress and logging
    verbosity: int = 0
    progress_enabled: bool = True
    silent_progress: bool = False

    @property
    def ignored_kind_set(self) -> frozenset:
        """Ignored kinds, lowercased for case-insensitive matching."""
        return frozenset(kind.lower() for kind in self.ignored_kinds)


@dataclass(frozen=True)
class SanitationRule:
    """Replace or delete whatever a selector addresses.

    A ``None`` replacement deletes the addressed subtree.
    """

    selector: str
    replacement: Any = None
    pattern: Tuple[Any, ...] = field(default=(), compare=False, repr=False)

    @classmethod
    def parse(cls, selector: str, replacement: Any = None) -> "SanitationRule":
        try:
            pattern = parse_path(selector)
        except PathSyntaxError as e:
            raise RuleSetError(f"Invalid sanitation selector {selector!r}: {e}") from e
        if not pattern:
            raise RuleSetError("A sanitation selector cannot address the whole document")
        return cls(selector=selector, replacement=replacement, pattern=pattern)

    @property
    def deletes(self) -> bool:
        return self.replacement is None


@dataclass(frozen=True)
class SanitationRules:
    """Global rules applied to every resource plus rules keyed by (apiVersion, kind)."""

    global_rules: Tuple[SanitationRule, ...] = ()
    kind_rules: Mapping[Tuple[str, str], Tuple[SanitationRule, ...]] = field(default_factory=dict)

    def rules_for(self, api_version: str, kind: str) -> Tuple[SanitationRule, ...]:
        return self.kind_rules.get((api_version, kind), ())


class RuleLoader:
    """Loads the sanitation rule set from a user file or the built-in defaults."""

    TOP_LEVEL_KEYS = ("global", "kinds")

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def load(self, rules_file: Optional[str] = None) -> SanitationRules:
        """
        Load sanitation rules.

        Args:
            rules_file: Optional YAML file overriding the built-in rules

        Returns:
            Parsed rule set

        Raises:
            RuleSetError: If the file cannot be read or is malformed
        """
        if rules_file is None:
            self.logger.debug("Using built-in sanitation rules")
            return self.parse(DEFAULT_SANITATION_RULES)

        path = Path(rules_file).expanduser()
        try:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise RuleSetError(f"Unable to read sanitation rules from {path}: {e}") from e
        except yaml.YAMLError as e:
            raise RuleSetError(f"Sanitation rules file {path} is not valid YAML: {e}") from e

        self.logger.info("Loaded sanitation rules from: %s", path)
        return self.parse(data if data is not None else {})

    def parse(self, data: Any) -> SanitationRules:
        """Build a rule set from its mapping form."""
        if not isinstance(data, Mapping):
            raise RuleSetError("Sanitation rules must be a mapping with 'global' and 'kinds' sections")

        unknown = set(data) - set(self.TOP_LEVEL_KEYS)
        if unknown:
            raise RuleSetError(f"Unknown sections in sanitation rules: {', '.join(sorted(map(str, unknown)))}")

        global_rules = self._parse_rule_map(data.get("global") or {}, "global")

        kinds = data.get("kinds") or {}
        if not isinstance(kinds, Mapping):
            raise RuleSetError("The 'kinds' section of the sanitation rules must be a mapping")

        kind_rules: Dict[Tuple[str, str], Tuple[SanitationRule, ...]] = {}
        for kind_key, rule_map in kinds.items():
            api_version, kind = self._split_kind_key(str(kind_key))
            kind_rules[(api_version, kind)] = self._parse_rule_map(rule_map or {}, str(kind_key))

        self.logger.debug(
            "Parsed %d global and %d kind-specific rule groups",
            len(global_rules),
            len(kind_rules),
        )
        return SanitationRules(global_rules=global_rules, kind_rules=kind_rules)

    def _parse_rule_map(self, rule_map: Any, section: str) -> Tuple[SanitationRule, ...]:
        if not isinstance(rule_map, Mapping):
            raise RuleSetError(f"Sanitation rules for '{section}' must map selectors to replacements")
        return tuple(SanitationRule.parse(str(selector), replacement) for selector, replacement in rule_map.items())

    @staticmethod
    def _split_kind_key(kind_key: str) -> Tuple[str, str]:
        """Split ``apps/v1/Deployment`` into ``("apps/v1", "Deployment")``."""
        if "/" not in kind_key:
            raise RuleSetError(f"Kind rule key {kind_key!r} must look like '<apiVersion>/<Kind>'")
        api_version, kind = kind_key.rsplit("/", 1)
        if not api_version or not kind:
            raise RuleSetError(f"Kind rule key {kind_key!r} must look like '<apiVersion>/<Kind>'")
        return api_version, kind


class ConfigValidator:
    """Validates configuration settings."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def validate_export_config(self, config: ExportConfig) -> List[str]:
        """
        Validate export configuration.

        Args:
            config: Export configuration to validate

        Returns:
            List of validation error messages
        """
        errors = []

        if config.chart_name is not None and not self._is_valid_helm_name(config.chart_name):
            errors.append("Chart name must be a valid Helm chart name")

        if config.namespace is not None and not self._is_valid_k8s_name(config.namespace):
            errors.append("Namespace must be a valid Kubernetes namespace name")

        if config.cluster_url is not None and not config.cluster_url.startswith(("http://", "https://")):
            errors.append(f"Cluster URL must start with http:// or https://: {config.cluster_url}")

        if config.rules_file:
            rules_path = Path(config.rules_file).expanduser()
            if not rules_path.is_file():
                errors.append(f"Sanitation rules file not found: {config.rules_file}")

        if config.connect_timeout <= 0 or config.read_timeout <= 0:
            errors.append("Timeouts must be positive")

        if config.max_workers <= 0:
            errors.append("Max workers must be positive")

        if errors:
            self.logger.warning("Configuration validation failed: %s", "; ".join(errors))

        return errors

    def _is_valid_helm_name(self, name: str) -> bool:
        """Check if a name is valid for Helm."""
        return bool(re.match(r'^[a-z0-9]([-a-z0-9]*[a-z0-9])?$', name)) and len(name) <= 53

    def _is_valid_k8s_name(self, name: str) -> bool:
        """Check if a name is valid for Kubernetes."""
        return bool(re.match(r'^[a-z0-9]([-a-z0-9]*[a-z0-9])?$', name)) and len(name) <= 63


def load_config_from_args(args) -> ExportConfig:
    """Convert argparse arguments to ExportConfig."""
    return ExportConfig(
        chart_name=args.chart_name,
        namespace=args.namespace,
        cluster_url=args.cluster,
        kubeconfig=args.kube_config,
        ignored_kinds=list(args.ignored),
        rules_file=args.rules,
        decode_secrets=args.decode_secrets,
        output_dir=args.output_dir,
        force=args.force,
        chart_version=args.chart_version,
        app_version=args.app_version,
        connect_timeout=args.connect_timeout,
        read_timeout=args.read_timeout,
        verify_tls=not args.insecure,
        max_workers=args.max_workers,
        verbosity=args.verbose,
        progress_enabled=not args.no_progress,
        silent_progress=args.silent_progress,
    )
