"""
Prometheus metrics published by the exporter.

Label sets are only ever overwritten, never removed: images that stop
running keep their last published values for the lifetime of the process.
"""

from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge

from constants import METRIC_PREFIX


class ExporterMetrics:
    """
    Gauges and counters owned by one metrics registry.

    Tests pass a fresh CollectorRegistry to avoid sharing the global one.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else REGISTRY

        self.image_age_days = Gauge(
            f"{METRIC_PREFIX}_image_age_days",
            "Days since the image was built as determined by the image's `Created` field from the image manifest",
            ["image"],
            registry=self.registry,
        )
        self.image_vulnerabilities = Gauge(
            f"{METRIC_PREFIX}_image_vulnerabilities",
            "Number of vulnerabilities found by the ECR image scan, by severity",
            ["image", "severity"],
            registry=self.registry,
        )
        self.cron_errors = Counter(
            f"{METRIC_PREFIX}_cron_errors",
            "Total count of errors from this service's scheduler",
            registry=self.registry,
        )

    def set_image_age(self, image: str, age_days: float) -> None:
        self.image_age_days.labels(image=image).set(age_days)

    def set_vulnerabilities(self, image: str, severity: str, count: int) -> None:
        self.image_vulnerabilities.labels(image=image, severity=severity).set(count)
