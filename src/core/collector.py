"""
Metric collectors for running container images.

Each collection run lists the distinct images running in the cluster,
resolves every image independently and publishes its metrics. A failure
while processing one image is logged and skipped; only listing failures and
cancellation abort the run.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Callable, Optional

from constants import DEFAULT_MAX_WORKERS
from core.context import CollectionContext
from core.exceptions import (
    CollectionCancelledError,
    CollectionError,
    ExporterException,
    InvalidImageFormatError,
    ListingError,
)
from core.metrics import ExporterMetrics
from core.models import CanonicalReference, CollectionSummary
from core.registry_interface import PodLister, RemoteRegistry, ScanFindingsProvider
from utils.image_utils import ImageParser

logger = logging.getLogger(__name__)

PUBLISHED = "published"
SKIPPED = "skipped"


class MetricsCollector(ABC):
    """
    Base collector: listing, deduplication, per-image isolation.

    Subclasses decide which parsed images to consider and how to resolve
    and publish metrics for one image.
    """

    kind = "image"
    failure_description = "unexpected error while collecting metrics"

    def __init__(
        self,
        pod_lister: PodLister,
        image_parser: ImageParser,
        metrics: ExporterMetrics,
        max_workers: int = DEFAULT_MAX_WORKERS,
        run_timeout: Optional[float] = None,
    ):
        """
        Initialize collector.

        Args:
            pod_lister: Source of running image ids
            image_parser: Parser for runtime image ids
            metrics: Metric sink
            max_workers: Images processed concurrently (1 processes them in turn)
            run_timeout: Deadline for a run started without a context (seconds)
        """
        self.pod_lister = pod_lister
        self.image_parser = image_parser
        self.metrics = metrics
        self.max_workers = max(max_workers, 1)
        self.run_timeout = run_timeout

    def collect(self, context: Optional[CollectionContext] = None) -> CollectionSummary:
        """
        Run one collection over every distinct running image.

        Args:
            context: Cancellation context; a new one with run_timeout is
                created when omitted

        Returns:
            CollectionSummary of the run

        Raises:
            CollectionError: If pods cannot be listed or the run is cancelled
        """
        if context is None:
            context = CollectionContext(self.run_timeout)

        try:
            image_ids = self.pod_lister.list_image_ids(context)
        except (ListingError, CollectionCancelledError) as e:
            raise CollectionError(self.kind, e) from e

        logger.info(f"Collecting {self.kind} metrics for {len(image_ids)} images with {self.max_workers} workers")

        outcomes = {PUBLISHED: 0, SKIPPED: 0}
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_image = {
                executor.submit(self._process_image, image_id, context): image_id
                for image_id in image_ids
            }

            for future in as_completed(future_to_image):
                try:
                    outcome = future.result()
                except CollectionCancelledError as e:
                    context.cancel()
                    for pending in future_to_image:
                        pending.cancel()
                    raise CollectionError(self.kind, e) from e
                outcomes[outcome] += 1

        summary = CollectionSummary(
            kind=self.kind,
            images=len(image_ids),
            published=outcomes[PUBLISHED],
            skipped=outcomes[SKIPPED],
        )
        logger.info(f"Collection complete: {summary}")
        return summary

    def _process_image(self, image_id: str, context: CollectionContext) -> str:
        """
        Parse, filter, resolve and publish a single image.

        Returns:
            PUBLISHED or SKIPPED

        Raises:
            CollectionCancelledError: If the run was cancelled
        """
        try:
            ref = self.image_parser.parse_k8s_image_id(image_id)
        except InvalidImageFormatError as e:
            logger.warning(f"Skipping image [{image_id}], unexpected error while parsing: {e}")
            return SKIPPED

        if not self.should_collect(ref):
            return SKIPPED

        context.check()

        try:
            self.collect_image(ref, context)
        except CollectionCancelledError:
            raise
        except ExporterException as e:
            logger.warning(f"Skipping image [{ref}], {self.failure_description}: {e}")
            return SKIPPED
        except Exception as e:
            logger.error(f"Skipping image [{ref}], unexpected error: {e}", exc_info=True)
            return SKIPPED

        return PUBLISHED

    def should_collect(self, ref: CanonicalReference) -> bool:
        """Whether a parsed image is considered by this collector."""
        return True

    @abstractmethod
    def collect_image(self, ref: CanonicalReference, context: CollectionContext) -> None:
        """
        Resolve and publish metrics for one image.

        Raises:
            ExporterException: If the image cannot be resolved
        """
        pass


class ImageAgeCollector(MetricsCollector):
    """
    Publishes days since build for every running image.
    """

    kind = "image_age"
    failure_description = "unexpected error while inspecting image in remote registry"

    def __init__(
        self,
        pod_lister: PodLister,
        image_parser: ImageParser,
        metrics: ExporterMetrics,
        remote_registry: RemoteRegistry,
        clock: Optional[Callable[[], datetime]] = None,
        **kwargs,
    ):
        super().__init__(pod_lister, image_parser, metrics, **kwargs)
        self.remote_registry = remote_registry
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def collect_image(self, ref: CanonicalReference, context: CollectionContext) -> None:
        inspection = self.remote_registry.inspect(ref, context)
        age_days = inspection.age_days(self._clock())
        self.metrics.set_image_age(str(ref), age_days)
        logger.debug(f"{ref} is {age_days:.2f} days old")


class ScanFindingsCollector(MetricsCollector):
    """
    Publishes ECR scan finding counts per severity for images matching the
    configured repository filter.
    """

    kind = "scan_findings"
    failure_description = "unexpected error while getting scan findings"

    def __init__(
        self,
        pod_lister: PodLister,
        image_parser: ImageParser,
        metrics: ExporterMetrics,
        scan_findings: ScanFindingsProvider,
        **kwargs,
    ):
        super().__init__(pod_lister, image_parser, metrics, **kwargs)
        self.scan_findings = scan_findings

    def should_collect(self, ref: CanonicalReference) -> bool:
        if not self.image_parser.matches_ecr_filter(ref):
            logger.info(f"Skipping image [{ref}] as it does not match filter")
            return False
        return True

    def collect_image(self, ref: CanonicalReference, context: CollectionContext) -> None:
        findings = self.scan_findings.fetch(ref, context)
        image = str(ref)
        for severity, count in findings.items():
            self.metrics.set_vulnerabilities(image, severity.label, count)
        logger.info(f"Successfully retrieved image scan findings for [{image}]")
