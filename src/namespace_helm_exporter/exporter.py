"""Main exporter class that orchestrates the export process."""
from __future__ import annotations

import dataclasses
import logging
from typing import Dict, List, Optional, Tuple

import requests

from .api_client import KubeApiClient, ResourceFetcher
from .chart_generator import ChartGenerator
from .config import ExportConfig, RuleLoader
from .discovery import EndpointDiscoverer
from .kubeconfig import load_kube_config, resolve_credentials
from .manifest_cleaner import ManifestCleaner, SecretHandler
from .progress import TimedProgressTracker, create_progress_tracker
from .synthesizer import ChartSynthesizer
from .types import Chart, ClusterCredentials, ExportError, ExportResult, K8sObjectList


class HelmChartExporter:
    """Runs one extraction: credentials, discovery, retrieval, synthesis and chart output."""

    def __init__(self, config: ExportConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session
        self.logger = logging.getLogger(__name__)

        self.progress_tracker = create_progress_tracker(
            enabled=config.progress_enabled,
            silent=config.silent_progress,
        )
        self.timed_tracker = TimedProgressTracker(self.progress_tracker)

    def export(self) -> ExportResult:
        """
        Execute the complete export process and write the chart to disk.

        Returns:
            Export result with statistics and output path

        Raises:
            ExportError: A subclass naming the fatal condition
        """
        try:
            chart, collections = self.build_chart()

            self.timed_tracker.start_phase("Chart Output")
            generator = ChartGenerator(
                chart_version=self.config.chart_version,
                app_version=self.config.app_version,
            )
            chart_path = generator.write_chart(chart, self.config.output_dir, force=self.config.force)
            self.timed_tracker.end_phase("Chart Output")
        except ExportError as e:
            self.logger.error("Export failed: %s", e)
            raise
        finally:
            self.timed_tracker.finish()

        result = ExportResult(
            success=True,
            chart_name=chart.name,
            exported_count=sum(len(resources) for resources in collections.values()),
            kinds=list(chart.templates),
            errors=[],
            output_path=str(chart_path),
        )
        self.logger.info(
            "Export completed successfully: %d resources exported to %s",
            result["exported_count"],
            result["output_path"],
        )
        return result

    def build_chart(self) -> Tuple[Chart, Dict[str, K8sObjectList]]:
        """
        Run the pipeline up to the in-memory chart.

        Returns:
            The synthesized chart and the sanitized resources it was built from
        """
        rules = RuleLoader().load(self.config.rules_file)
        credentials = self._resolve_credentials()

        client = KubeApiClient(
            credentials,
            connect_timeout=self.config.connect_timeout,
            read_timeout=self.config.read_timeout,
            session=self.session,
        )
        try:
            self.timed_tracker.start_phase("Endpoint Discovery")
            description = client.get_api_description()
            endpoints = EndpointDiscoverer(self.config.ignored_kind_set).discover(description)
            self.timed_tracker.end_phase("Endpoint Discovery")

            self.timed_tracker.start_phase("Resource Retrieval")
            fetcher = ResourceFetcher(
                client,
                ManifestCleaner(rules),
                SecretHandler(enabled=self.config.decode_secrets),
                max_workers=self.config.max_workers,
                progress=self.timed_tracker,
            )
            collections = fetcher.fetch(endpoints, credentials.namespace)
            self.timed_tracker.end_phase("Resource Retrieval")
        finally:
            client.close()

        if not collections:
            raise ExportError(f"No resources found in namespace '{credentials.namespace}'")

        self.timed_tracker.start_phase("Chart Synthesis")
        chart_name = self.config.chart_name or credentials.namespace
        chart = ChartSynthesizer().synthesize(collections, chart_name)
        self.timed_tracker.end_phase("Chart Synthesis")
        return chart, collections

    def _resolve_credentials(self) -> ClusterCredentials:
        kubeconfig = load_kube_config(self.config.kubeconfig)
        credentials = resolve_credentials(
            kubeconfig,
            cluster_url=self.config.cluster_url,
            namespace=self.config.namespace,
        )
        if not self.config.verify_tls:
            self.logger.warning("TLS certificate verification is disabled")
            credentials = dataclasses.replace(credentials, verify=False)

        self.logger.info("Exporting namespace '%s' from %s", credentials.namespace, credentials.server)
        return credentials


def summarize(result: ExportResult) -> List[str]:
    """Human-readable lines describing a finished export."""
    lines = [
        "Export completed successfully!",
        f"   Chart created at: {result['output_path']}",
        f"   Resources exported: {result['exported_count']}",
        f"   Templates: {', '.join(result['kinds'])}",
        "",
        "Next steps:",
        f"  1. Review the generated chart: cd {result['output_path']}",
        "  2. Adjust the per-instance entries in values.yaml as needed",
        f"  3. Install the chart: helm install {result['chart_name']} {result['output_path']}",
    ]
    return lines
