"""Command line interface for extracting a namespace into a Helm chart."""
from __future__ import annotations

import argparse
import logging
import sys
import traceback
from typing import Optional, Sequence

from .config import ConfigValidator, load_config_from_args
from .constants import (
    DEFAULT_APP_VERSION,
    DEFAULT_CHART_VERSION,
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_IGNORED_KINDS,
    DEFAULT_KUBECONFIG,
    DEFAULT_MAX_WORKERS,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_READ_TIMEOUT_SECONDS,
)
from .exporter import HelmChartExporter, summarize
from .types import ExportError, NotLoggedInError

EXIT_INVALID_CONFIG = 1
EXIT_UNEXPECTED = 1
EXIT_INTERRUPTED = 130


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="namespace-helm-exporter",
        description="Extract the live resources of a Kubernetes/OpenShift namespace into a Helm chart",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # Cluster and namespace
    parser.add_argument(
        "-k",
        "--kube-config",
        default=DEFAULT_KUBECONFIG,
        help="The kubeconfig file holding the cached cluster credentials",
    )
    parser.add_argument(
        "-c",
        "--cluster",
        help="The cluster API URL (defaults to the server of the current context)",
    )
    parser.add_argument(
        "-n",
        "--namespace",
        help="The namespace to export (defaults to the namespace of the current context)",
    )

    # Chart options
    parser.add_argument(
        "-C",
        "--chart-name",
        help="The name of the generated chart (defaults to the namespace)",
    )
    parser.add_argument(
        "-i",
        "--ignored",
        nargs="*",
        default=list(DEFAULT_IGNORED_KINDS),
        help="Resource kinds to leave out of the chart (case-insensitive)",
    )
    parser.add_argument(
        "--rules",
        help="YAML file with sanitation rules replacing the built-in ones",
    )
    parser.add_argument(
        "--decode-secrets",
        action="store_true",
        help="Decode Secret data into readable stringData",
    )
    parser.add_argument(
        "--output-dir",
        default=DEFAULT_OUTPUT_DIR,
        help="Directory where the chart will be written",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the output directory if it already exists",
    )
    parser.add_argument(
        "--chart-version",
        default=DEFAULT_CHART_VERSION,
        help="Chart version written to Chart.yaml",
    )
    parser.add_argument(
        "--app-version",
        default=DEFAULT_APP_VERSION,
        help="App version written to Chart.yaml",
    )

    # Transport options
    parser.add_argument(
        "--max-workers",
        type=int,
        default=DEFAULT_MAX_WORKERS,
        help="Maximum number of endpoints fetched in parallel",
    )
    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=DEFAULT_CONNECT_TIMEOUT_SECONDS,
        help="Seconds to wait for a connection to the cluster",
    )
    parser.add_argument(
        "--read-timeout",
        type=float,
        default=DEFAULT_READ_TIMEOUT_SECONDS,
        help="Seconds to wait for the cluster to answer a request",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip TLS certificate verification",
    )

    # Output and progress
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (repeat for debug output)",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable progress display",
    )
    parser.add_argument(
        "--silent-progress",
        action="store_true",
        help="Report progress through the log only",
    )

    return parser.parse_args(argv)


def configure_logging(verbosity: int) -> None:
    """Map the number of -v flags onto a log level."""
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point for the CLI."""
    args = None
    try:
        args = parse_args(argv)
        configure_logging(args.verbose)

        export_config = load_config_from_args(args)

        validator = ConfigValidator()
        export_errors = validator.validate_export_config(export_config)
        if export_errors:
            print("Export configuration validation errors:", file=sys.stderr)
            for error in export_errors:
                print(f"  - {error}", file=sys.stderr)
            sys.exit(EXIT_INVALID_CONFIG)

        result = HelmChartExporter(export_config).export()

        for line in summarize(result):
            print(line)

    except KeyboardInterrupt:
        print("\nExport cancelled by user", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)

    except NotLoggedInError as e:
        print(f"Not logged in: {e}", file=sys.stderr)
        sys.exit(e.exit_code)

    except ExportError as e:
        print(f"Export failed: {e}", file=sys.stderr)
        sys.exit(e.exit_code)

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args is not None and args.verbose:
            traceback.print_exc()
        sys.exit(EXIT_UNEXPECTED)


if __name__ == "__main__":
    main()
