"""Helm chart generation: writes a synthesized Chart to disk."""
from __future__ import annotations

import json
import logging
import re
import shutil
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

from .constants import DEFAULT_APP_VERSION, DEFAULT_CHART_VERSION
from .differ import find_placeholders
from .types import Chart, ChartGenerationError, Placeholder
from .utils import StringUtils

HELMIGNORE = """# Patterns to ignore when building packages.
# This supports shell glob matching, relative path matching, and
# negation (prefixed with !). Only one pattern per line.
.DS_Store
# Common VCS dirs
.git/
.gitignore
.hg/
.hgignore
.svn/
# Common backup files
*.swp
*.bak
*.tmp
*.orig
*~
# Various IDEs
.project
.idea/
*.tmproj
.vscode/
"""

_TOKEN = "__namespace_helm_exporter_value_{}__"
_OPEN_TOKEN = "__namespace_helm_exporter_open__"
_CLOSE_TOKEN = "__namespace_helm_exporter_close__"
_DELIMITER = re.compile(r"\{\{|\}\}")

# Helm prints these back as literal delimiters
_ESCAPES = {_OPEN_TOKEN: '{{ "{{" }}', _CLOSE_TOKEN: '{{ "}}" }}'}


class ChartGenerator:
    """Generates the Helm chart directory for a synthesized Chart."""

    def __init__(self, chart_version: str = DEFAULT_CHART_VERSION, app_version: str = DEFAULT_APP_VERSION):
        self.chart_version = chart_version
        self.app_version = app_version
        self.logger = logging.getLogger(__name__)

    def write_chart(self, chart: Chart, output_dir: str, force: bool = False) -> Path:
        """
        Write Chart.yaml, values.yaml, .helmignore and one template per kind.

        Args:
            chart: Synthesized chart
            output_dir: Directory to create
            force: Replace the directory if it already exists

        Returns:
            Path to the chart directory

        Raises:
            ChartGenerationError: If the directory exists without force, or writing fails
        """
        chart_path = self.create_chart_structure(output_dir, force)

        try:
            (chart_path / "Chart.yaml").write_text(self._generate_chart_yaml(chart.name), encoding="utf-8")
            (chart_path / "values.yaml").write_text(self._generate_values_yaml(chart), encoding="utf-8")
            (chart_path / ".helmignore").write_text(HELMIGNORE, encoding="utf-8")

            for key, template in chart.templates.items():
                filename = f"{StringUtils.slugify(key) or 'resource'}.yaml"
                content = self.render_template(key, template, parameterized=key in chart.values)
                (chart_path / "templates" / filename).write_text(content, encoding="utf-8")
                self.logger.debug("Wrote template %s", filename)
        except (OSError, yaml.YAMLError) as e:
            raise ChartGenerationError(f"Failed to write chart to {chart_path}: {e}") from e

        self.logger.info("Wrote chart '%s' with %d templates to: %s", chart.name, len(chart.templates), chart_path)
        return chart_path

    def create_chart_structure(self, output_dir: str, force: bool = False) -> Path:
        """Create the chart directory and its templates folder."""
        chart_path = Path(output_dir).expanduser().resolve()

        if chart_path.exists():
            if not force:
                raise ChartGenerationError(
                    f"Output directory '{chart_path}' already exists. Use --force to overwrite."
                )
            self.logger.info("Removing existing chart directory: %s", chart_path)
            try:
                if chart_path.is_dir():
                    shutil.rmtree(chart_path)
                else:
                    chart_path.unlink()
            except OSError as e:
                raise ChartGenerationError(f"Failed to remove {chart_path}: {e}") from e

        try:
            (chart_path / "templates").mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ChartGenerationError(f"Failed to create chart directory: {e}") from e

        self.logger.debug("Created chart directory structure at: %s", chart_path)
        return chart_path

    def render_template(self, key: str, template: Any, parameterized: bool) -> str:
        """
        Render one kind's template as Helm template text.

        Parameterized kinds loop over their instances in values.yaml and read
        each placeholder from the current instance.
        """
        if not parameterized:
            return "---\n" + self._dump_escaped(template)

        body, expressions = self._substitute_tokens(template)
        if isinstance(body, str) and body in expressions:
            # The whole document varies between instances
            text = expressions[body] + "\n"
        else:
            text = self._dump_escaped(body)
            for token, expression in expressions.items():
                text = text.replace(token, expression)

        return (
            f"{{{{- range $name, $values := index .Values {json.dumps(key)} }}}}\n"
            "---\n"
            f"{text}"
            "{{- end }}\n"
        )

    @staticmethod
    def _substitute_tokens(template: Any) -> Tuple[Any, Dict[str, str]]:
        """Swap placeholders for plain tokens; return the new tree and token -> expression."""
        tokens: Dict[str, str] = {}
        for index, placeholder in enumerate(find_placeholders(template)):
            tokens.setdefault(placeholder.name, _TOKEN.format(index))

        def _swap(node: Any) -> Any:
            if isinstance(node, Placeholder):
                return tokens[node.name]
            if isinstance(node, dict):
                return {k: _swap(v) for k, v in node.items()}
            if isinstance(node, list):
                return [_swap(item) for item in node]
            return node

        expressions = {
            token: f"{{{{ index $values {json.dumps(name)} | toJson }}}}"
            for name, token in tokens.items()
        }
        return _swap(template), expressions

    @classmethod
    def _dump_escaped(cls, document: Any) -> str:
        """Dump a template tree so literal "{{" and "}}" in its strings survive Helm rendering."""

        def _mark(node: Any) -> Any:
            if isinstance(node, str):
                return _DELIMITER.sub(lambda m: _OPEN_TOKEN if m.group() == "{{" else _CLOSE_TOKEN, node)
            if isinstance(node, dict):
                return {_mark(k): _mark(v) for k, v in node.items()}
            if isinstance(node, list):
                return [_mark(item) for item in node]
            return node

        text = cls._dump(_mark(document))
        for token, escape in _ESCAPES.items():
            text = text.replace(token, escape)
        return text

    def _generate_chart_yaml(self, name: str) -> str:
        """Generate Chart.yaml content."""
        return self._dump({
            "apiVersion": "v2",
            "name": name,
            "description": f"Helm chart generated from the live resources of {name}",
            "type": "application",
            "version": self.chart_version,
            "appVersion": self.app_version,
        })

    def _generate_values_yaml(self, chart: Chart) -> str:
        """Per-instance values of every parameterized kind."""
        header = (
            f"# Values for {chart.name}\n"
            "# One entry per resource instance; keys are paths inside the resource.\n\n"
        )
        return header + self._dump(chart.values)

    @staticmethod
    def _dump(document: Any) -> str:
        return yaml.safe_dump(document, sort_keys=False, default_flow_style=False, allow_unicode=True)
