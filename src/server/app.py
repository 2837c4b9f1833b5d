"""
HTTP endpoints for metrics scraping, health checks and on-demand refreshes.

Routes:
    GET  /health                        lists pods to verify Kubernetes API access
    GET  /metrics                       Prometheus exposition
    POST /refresh-metrics/images        runs the image age collector now
    POST /refresh-metrics/scan-findings runs the scan findings collector now
"""

import asyncio
import logging

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from core.collector import MetricsCollector
from core.context import background
from core.exceptions import ExporterException
from core.metrics import ExporterMetrics
from integrations.kubernetes import KubernetesPodLister

logger = logging.getLogger(__name__)

POD_LISTER_KEY = web.AppKey("pod_lister", KubernetesPodLister)
METRICS_KEY = web.AppKey("metrics", ExporterMetrics)


async def health_handler(request: web.Request) -> web.Response:
    """Report healthy when pods can be listed from the Kubernetes API."""
    pod_lister = request.app[POD_LISTER_KEY]
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, pod_lister.list_pods, background())
    except ExporterException as e:
        logger.error(f"Failed healthcheck: {e}")
        return web.Response(status=500, text=f"error listing pods from k8s api: {e}")

    return web.Response(text="ok")


async def metrics_handler(request: web.Request) -> web.Response:
    """Serve the exporter's metrics in Prometheus text format."""
    metrics = request.app[METRICS_KEY]
    return web.Response(
        body=generate_latest(metrics.registry),
        headers={"Content-Type": CONTENT_TYPE_LATEST},
    )


def refresh_handler(collector: MetricsCollector):
    """Build a handler that runs a collector immediately."""

    async def handler(request: web.Request) -> web.Response:
        loop = asyncio.get_running_loop()
        try:
            summary = await loop.run_in_executor(None, collector.collect)
        except ExporterException as e:
            logger.error(f"Failed to refresh metrics: {e}")
            return web.Response(status=500, text=f"failed to refresh metrics: {e}")

        logger.info(f"Refreshed metrics on demand: {summary}")
        return web.Response(text="ok")

    return handler


def create_app(
    pod_lister: KubernetesPodLister,
    metrics: ExporterMetrics,
    image_collector: MetricsCollector,
    scan_findings_collector: MetricsCollector,
) -> web.Application:
    """
    Build the aiohttp application.

    Args:
        pod_lister: Used by the health check
        metrics: Metrics served on /metrics
        image_collector: Collector behind /refresh-metrics/images
        scan_findings_collector: Collector behind /refresh-metrics/scan-findings

    Returns:
        aiohttp Application
    """
    app = web.Application()
    app[POD_LISTER_KEY] = pod_lister
    app[METRICS_KEY] = metrics

    app.router.add_get("/health", health_handler)
    app.router.add_get("/metrics", metrics_handler)
    app.router.add_post("/refresh-metrics/images", refresh_handler(image_collector))
    app.router.add_post("/refresh-metrics/scan-findings", refresh_handler(scan_findings_collector))

    return app
