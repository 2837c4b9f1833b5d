"""Tests for the image age and scan findings collectors."""

import pytest
from datetime import timedelta

from core.context import CollectionContext
from core.exceptions import (
    CollectionCancelledError,
    CollectionError,
    RegistryInspectionError,
)
from core.collector import ImageAgeCollector, ScanFindingsCollector
from core.models import Severity
from utils.image_utils import ImageParser

from conftest import (
    ECR_IMAGE,
    ECR_IMAGE_ID,
    NGINX_IMAGE,
    NGINX_IMAGE_ID,
    NOW,
    FakePodLister,
    FakeRemoteRegistry,
    FakeScanFindings,
)

AGE_METRIC = "k8s_image_exporter_image_age_days"
VULN_METRIC = "k8s_image_exporter_image_vulnerabilities"


def age_collector(pod_lister, remote_registry, image_parser, metrics, **kwargs):
    return ImageAgeCollector(
        pod_lister,
        image_parser,
        metrics,
        remote_registry=remote_registry,
        clock=lambda: NOW,
        **kwargs,
    )


class TestImageAgeCollector:
    """Tests for ImageAgeCollector class."""

    def test_publishes_age_for_every_image(self, registry, metrics, default_image_parser, created_times):
        """Test that every running image gets an age, regardless of the ECR filter."""
        pod_lister = FakePodLister([ECR_IMAGE_ID, NGINX_IMAGE_ID])
        collector = age_collector(pod_lister, FakeRemoteRegistry(created_times), default_image_parser, metrics)

        summary = collector.collect()

        assert registry.get_sample_value(AGE_METRIC, {"image": ECR_IMAGE}) == pytest.approx(10.5)
        assert registry.get_sample_value(AGE_METRIC, {"image": NGINX_IMAGE}) == pytest.approx(2.0)
        assert summary.images == 2
        assert summary.published == 2
        assert summary.skipped == 0

    def test_invalid_image_skipped(self, registry, metrics, default_image_parser, created_times, caplog):
        """Test that an unparseable image is logged and the run continues."""
        pod_lister = FakePodLister(["docker://invalid-image", NGINX_IMAGE_ID])
        remote = FakeRemoteRegistry(created_times)
        collector = age_collector(pod_lister, remote, default_image_parser, metrics)

        summary = collector.collect()

        assert registry.get_sample_value(AGE_METRIC, {"image": NGINX_IMAGE}) == pytest.approx(2.0)
        assert remote.inspected == [NGINX_IMAGE]
        assert summary.published == 1
        assert summary.skipped == 1
        assert "Skipping image [docker://invalid-image]" in caplog.text

    def test_duplicate_images_processed_once(self, metrics, default_image_parser, created_times):
        """Test that an image run by many containers is inspected once per run."""
        pod_lister = FakePodLister([NGINX_IMAGE_ID, NGINX_IMAGE_ID, NGINX_IMAGE_ID])
        remote = FakeRemoteRegistry(created_times)
        collector = age_collector(pod_lister, remote, default_image_parser, metrics)

        summary = collector.collect()

        assert remote.inspected == [NGINX_IMAGE]
        assert summary.images == 1

    def test_inspection_failure_skips_image(self, registry, metrics, default_image_parser, created_times):
        """Test that one failed inspection does not stop the others."""
        remote = FakeRemoteRegistry(
            created_times,
            errors={ECR_IMAGE: RegistryInspectionError(ECR_IMAGE, "Error running command")},
        )
        collector = age_collector(
            FakePodLister([ECR_IMAGE_ID, NGINX_IMAGE_ID]), remote, default_image_parser, metrics
        )

        summary = collector.collect()

        assert registry.get_sample_value(AGE_METRIC, {"image": ECR_IMAGE}) is None
        assert registry.get_sample_value(AGE_METRIC, {"image": NGINX_IMAGE}) == pytest.approx(2.0)
        assert summary.skipped == 1

    def test_unexpected_error_skips_image(self, registry, metrics, default_image_parser, created_times):
        """Test that an unexpected exception is contained to its image."""
        remote = FakeRemoteRegistry(created_times, errors={ECR_IMAGE: KeyError("Created")})
        collector = age_collector(
            FakePodLister([ECR_IMAGE_ID, NGINX_IMAGE_ID]), remote, default_image_parser, metrics
        )

        summary = collector.collect()

        assert summary.published == 1
        assert summary.skipped == 1

    def test_listing_failure_aborts_run(self, registry, metrics, default_image_parser, created_times, listing_error):
        """Test that a listing failure publishes nothing and raises."""
        remote = FakeRemoteRegistry(created_times)
        collector = age_collector(FakePodLister([], error=listing_error), remote, default_image_parser, metrics)

        with pytest.raises(CollectionError, match="image_age collection failed"):
            collector.collect()

        assert remote.inspected == []
        assert registry.get_sample_value(AGE_METRIC, {"image": NGINX_IMAGE}) is None

    def test_value_overwritten_between_runs(self, registry, metrics, default_image_parser, created_times):
        """Test that a later run overwrites the published age."""
        collector = age_collector(
            FakePodLister([NGINX_IMAGE_ID]), FakeRemoteRegistry(created_times), default_image_parser, metrics
        )
        collector.collect()

        collector._clock = lambda: NOW + timedelta(days=1)
        collector.collect()

        assert registry.get_sample_value(AGE_METRIC, {"image": NGINX_IMAGE}) == pytest.approx(3.0)

    def test_concurrent_workers(self, registry, metrics, default_image_parser, created_times):
        """Test that concurrent processing publishes the same metrics."""
        collector = age_collector(
            FakePodLister([ECR_IMAGE_ID, NGINX_IMAGE_ID]),
            FakeRemoteRegistry(created_times),
            default_image_parser,
            metrics,
            max_workers=4,
        )

        summary = collector.collect()

        assert summary.published == 2
        assert registry.get_sample_value(AGE_METRIC, {"image": ECR_IMAGE}) == pytest.approx(10.5)

    def test_cancelled_run(self, metrics, default_image_parser, created_times):
        """Test that a cancelled run raises and inspects nothing."""
        remote = FakeRemoteRegistry(created_times)
        collector = age_collector(
            FakePodLister([ECR_IMAGE_ID, NGINX_IMAGE_ID]), remote, default_image_parser, metrics
        )
        context = CollectionContext()
        context.cancel()

        with pytest.raises(CollectionError) as exc_info:
            collector.collect(context)

        assert isinstance(exc_info.value.cause, CollectionCancelledError)
        assert remote.inspected == []

    def test_expired_deadline(self, metrics, default_image_parser, created_times):
        """Test that a run past its deadline stops."""
        collector = age_collector(
            FakePodLister([NGINX_IMAGE_ID]), FakeRemoteRegistry(created_times), default_image_parser, metrics
        )

        with pytest.raises(CollectionError, match="deadline exceeded"):
            collector.collect(CollectionContext(timeout=0))


class TestScanFindingsCollector:
    """Tests for ScanFindingsCollector class."""

    def test_publishes_every_severity(self, registry, metrics, image_parser):
        """Test that all six severities are published for a matching image."""
        scans = FakeScanFindings({ECR_IMAGE: {"HIGH": 2, "LOW": 5}})
        collector = ScanFindingsCollector(
            FakePodLister([ECR_IMAGE_ID]), image_parser, metrics, scan_findings=scans
        )

        summary = collector.collect()

        for severity in Severity.ordered_levels():
            expected = {"high": 2, "low": 5}.get(severity.label, 0)
            labels = {"image": ECR_IMAGE, "severity": severity.label}
            assert registry.get_sample_value(VULN_METRIC, labels) == expected
        assert summary.published == 1

    def test_filter_skips_non_matching(self, registry, metrics, image_parser, caplog):
        """Test that images outside the filter are not fetched."""
        scans = FakeScanFindings({ECR_IMAGE: {"CRITICAL": 1}})
        collector = ScanFindingsCollector(
            FakePodLister([ECR_IMAGE_ID, NGINX_IMAGE_ID]), image_parser, metrics, scan_findings=scans
        )

        with caplog.at_level("INFO"):
            summary = collector.collect()

        assert scans.fetched == [ECR_IMAGE]
        assert summary.skipped == 1
        assert f"Skipping image [{NGINX_IMAGE}] as it does not match filter" in caplog.text
        assert registry.get_sample_value(VULN_METRIC, {"image": NGINX_IMAGE, "severity": "critical"}) is None

    def test_default_filter_fetches_nothing(self, metrics, default_image_parser):
        """Test that the default filter disables scan findings collection."""
        scans = FakeScanFindings({})
        collector = ScanFindingsCollector(
            FakePodLister([ECR_IMAGE_ID, NGINX_IMAGE_ID]), default_image_parser, metrics, scan_findings=scans
        )

        summary = collector.collect()

        assert scans.fetched == []
        assert summary.skipped == 2

    def test_incomplete_scan_skipped(self, registry, metrics):
        """Test that an in-progress scan is skipped and the run continues."""
        other_id = ECR_IMAGE_ID.replace("amazon-k8s-cni", "coredns")
        other = ECR_IMAGE.replace("amazon-k8s-cni", "coredns")
        parser = ImageParser(r"\.dkr\.ecr\.")

        scans = FakeScanFindings({other: {"MEDIUM": 4}}, statuses={ECR_IMAGE: "IN_PROGRESS"})
        collector = ScanFindingsCollector(
            FakePodLister([ECR_IMAGE_ID, other_id]), parser, metrics, scan_findings=scans
        )

        summary = collector.collect()

        assert registry.get_sample_value(VULN_METRIC, {"image": ECR_IMAGE, "severity": "high"}) is None
        assert registry.get_sample_value(VULN_METRIC, {"image": other, "severity": "medium"}) == 4
        assert summary.published == 1
        assert summary.skipped == 1

    def test_listing_failure_aborts_run(self, metrics, image_parser, listing_error):
        """Test that a listing failure raises a run-level error."""
        collector = ScanFindingsCollector(
            FakePodLister([], error=listing_error), image_parser, metrics, scan_findings=FakeScanFindings({})
        )

        with pytest.raises(CollectionError, match="scan_findings collection failed"):
            collector.collect()
