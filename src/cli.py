"""
Command-line interface for the Kubernetes image exporter.

Starts the HTTP server (metrics, health, on-demand refresh) and schedules
the image age and scan findings collectors.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from aiohttp import web

from config import LOG_FORMATS, ExporterConfig
from core.cache import CredentialCache, ServiceClientCache
from core.collector import ImageAgeCollector, ScanFindingsCollector
from core.exceptions import ConfigurationException
from core.metrics import ExporterMetrics
from integrations.ecr import EcrScanFindingsFetcher
from integrations.kubernetes import KubernetesPodLister, load_core_api
from integrations.skopeo import SkopeoRemoteRegistry
from server.app import create_app
from server.scheduler import create_scheduler
from utils.image_utils import ImageParser
from utils.logging_helpers import json_log_formatter, log_error_section

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, log_format: str = "text"):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(json_log_formatter())
    else:
        handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        ))
    logging.basicConfig(level=level, handlers=[handler], force=True)

    # botocore logs response bodies, including authorization tokens, at DEBUG
    logging.getLogger("botocore").setLevel(logging.INFO)
    logging.getLogger("urllib3").setLevel(logging.INFO)


def parse_args(args: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Kubernetes image exporter - image age and ECR scan findings metrics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    server_group = parser.add_argument_group("server options")
    collection_group = parser.add_argument_group("collection options")

    parser.add_argument("--config", type=Path, help="YAML config file; flags override its values.")

    server_group.add_argument("--address", dest="listen_address", help="Address to listen on.")
    server_group.add_argument("--port", dest="listen_port", type=int, help="Port to listen on.")

    collection_group.add_argument(
        "--ecr-scan-results-filter",
        help="Regular expression selecting the ECR repositories whose scan results are exported.",
    )
    collection_group.add_argument(
        "--kubeconfig",
        dest="kubeconfig_path",
        help="Path to kubeconfig for running the service outside the cluster in development mode.",
    )
    collection_group.add_argument("--image-age-schedule", help="Cron schedule (UTC) for image age collection.")
    collection_group.add_argument("--scan-findings-schedule", help="Cron schedule (UTC) for scan findings collection.")
    collection_group.add_argument("--max-workers", type=int, help="Images processed concurrently per run.")
    collection_group.add_argument("--inspect-timeout", type=float, help="Timeout for one skopeo inspect (seconds).")
    collection_group.add_argument("--run-timeout", type=float, help="Deadline for one collection run (seconds).")

    parser.add_argument("--log-format", choices=LOG_FORMATS, help="Log output format.")
    parser.add_argument("-v", "--verbose", action="store_true", default=None, help="Enable verbose logging.")

    return parser.parse_args(args)


def build_config(args: argparse.Namespace) -> ExporterConfig:
    """
    Merge the optional config file with command-line flags.

    Raises:
        ConfigurationException: If the config file or a value is invalid
    """
    config = ExporterConfig.from_yaml(args.config) if args.config else ExporterConfig()
    config = config.with_overrides(
        listen_address=args.listen_address,
        listen_port=args.listen_port,
        ecr_scan_results_filter=args.ecr_scan_results_filter,
        kubeconfig_path=args.kubeconfig_path,
        image_age_schedule=args.image_age_schedule,
        scan_findings_schedule=args.scan_findings_schedule,
        max_workers=args.max_workers,
        inspect_timeout=args.inspect_timeout,
        run_timeout=args.run_timeout,
        log_format=args.log_format,
        verbose=args.verbose,
    )
    config.validate()
    return config


def build_application(config: ExporterConfig, core_api=None, registry=None) -> web.Application:
    """
    Wire caches, collectors, scheduler and HTTP routes together.

    Args:
        config: Validated configuration
        core_api: Kubernetes CoreV1 API client (created from config when omitted)
        registry: Prometheus registry for the metrics (default: global registry)

    Returns:
        aiohttp Application that starts the scheduler on startup
    """
    if core_api is None:
        core_api = load_core_api(config.kubeconfig_path)

    pod_lister = KubernetesPodLister(core_api)
    clients = ServiceClientCache()
    credentials = CredentialCache(clients)
    image_parser = ImageParser(config.ecr_scan_results_filter)
    metrics = ExporterMetrics(registry)

    image_collector = ImageAgeCollector(
        pod_lister,
        image_parser,
        metrics,
        remote_registry=SkopeoRemoteRegistry(credentials, timeout=config.inspect_timeout),
        max_workers=config.max_workers,
        run_timeout=config.run_timeout,
    )
    scan_findings_collector = ScanFindingsCollector(
        pod_lister,
        image_parser,
        metrics,
        scan_findings=EcrScanFindingsFetcher(clients),
        max_workers=config.max_workers,
        run_timeout=config.run_timeout,
    )

    app = create_app(pod_lister, metrics, image_collector, scan_findings_collector)
    scheduler = create_scheduler(
        [
            (config.image_age_schedule, image_collector),
            (config.scan_findings_schedule, scan_findings_collector),
        ],
        metrics,
    )

    async def start_scheduler(app: web.Application) -> None:
        logger.info("Starting background metric collection")
        scheduler.start()

    async def stop_scheduler(app: web.Application) -> None:
        scheduler.shutdown(wait=False)
        logger.info(credentials.summary())

    app.on_startup.append(start_scheduler)
    app.on_cleanup.append(stop_scheduler)
    return app


def main(args: Optional[list[str]] = None):
    """Main entry point."""
    parsed = parse_args(args)

    try:
        config = build_config(parsed)
    except ConfigurationException as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    setup_logging(config.verbose, config.log_format)
    logger.info(f"Loaded config: {config.as_log_fields()}")

    try:
        app = build_application(config)
    except ConfigurationException as e:
        log_error_section(
            "Could not create k8s client",
            [
                str(e),
                "Outside the cluster, pass --kubeconfig <path>.",
            ],
            logger=logger,
        )
        sys.exit(1)

    logger.info(f"Starting server on {config.listen_address}:{config.listen_port}")
    web.run_app(app, host=config.listen_address, port=config.listen_port, print=None)
    logger.info("Server exited")


if __name__ == "__main__":
    main()
