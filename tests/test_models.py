"""Tests for domain models."""

import pytest
from datetime import datetime, timedelta, timezone

from core.exceptions import InvalidImageFormatError
from core.models import (
    CanonicalReference,
    CollectionSummary,
    CredentialCacheEntry,
    ImageInspection,
    ScanFindings,
    Severity,
)

from conftest import NGINX_DIGEST


class TestSeverity:
    """Tests for Severity enum."""

    def test_ordered_levels_cover_all(self):
        """Test that publication order lists every severity once."""
        levels = Severity.ordered_levels()
        assert len(levels) == 6
        assert set(levels) == set(Severity)

    def test_label_is_lowercase(self):
        """Test metric label values."""
        assert Severity.CRITICAL.label == "critical"
        assert Severity.INFORMATIONAL.label == "informational"


class TestCanonicalReference:
    """Tests for CanonicalReference model."""

    def test_digest_reference(self):
        """Test string form of a digest reference."""
        ref = CanonicalReference(domain="quay.io", path="org/app", digest=NGINX_DIGEST)
        assert ref.name == "quay.io/org/app"
        assert str(ref) == f"quay.io/org/app@{NGINX_DIGEST}"

    def test_tag_reference_without_domain(self):
        """Test string form of a tagged reference without registry."""
        ref = CanonicalReference(domain=None, path="nginx", tag="1.25")
        assert ref.name == "nginx"
        assert str(ref) == "nginx:1.25"

    def test_both_tag_and_digest(self):
        """Test that tag and digest are mutually exclusive."""
        with pytest.raises(InvalidImageFormatError, match="both a tag and a digest"):
            CanonicalReference(domain=None, path="nginx", tag="1.25", digest=NGINX_DIGEST)

    def test_neither_tag_nor_digest(self):
        """Test that a tag or digest is required."""
        with pytest.raises(InvalidImageFormatError, match="neither a tag nor a digest"):
            CanonicalReference(domain=None, path="nginx")

    def test_immutable(self):
        """Test that references are frozen."""
        ref = CanonicalReference(domain=None, path="nginx", tag="1.25")
        with pytest.raises(AttributeError):
            ref.tag = "latest"


class TestScanFindings:
    """Tests for ScanFindings model."""

    def test_every_severity_present(self):
        """Test that unreported severities count as zero."""
        findings = ScanFindings.from_severity_counts({"HIGH": 3, "LOW": 7})
        assert findings.get(Severity.HIGH) == 3
        assert findings.get(Severity.LOW) == 7
        assert findings.get(Severity.CRITICAL) == 0
        assert findings.get(Severity.UNDEFINED) == 0
        assert len(findings.items()) == 6
        assert findings.total == 10

    def test_items_in_publication_order(self):
        """Test that items follow Severity.ordered_levels()."""
        findings = ScanFindings.from_severity_counts({"CRITICAL": 1})
        assert [severity for severity, _ in findings.items()] == Severity.ordered_levels()

    def test_empty_and_missing_counts(self):
        """Test that missing counts produce all zeros."""
        for raw in (None, {}):
            findings = ScanFindings.from_severity_counts(raw)
            assert findings.total == 0
            assert all(count == 0 for _, count in findings.items())

    def test_unknown_severity_ignored(self):
        """Test that severity names outside the fixed set are dropped."""
        findings = ScanFindings.from_severity_counts({"SEVERE": 4, "MEDIUM": 2})
        assert findings.total == 2

    def test_negative_count_clamped(self):
        """Test that counts are never negative."""
        findings = ScanFindings.from_severity_counts({"LOW": -1})
        assert findings.get(Severity.LOW) == 0


class TestImageInspection:
    """Tests for ImageInspection model."""

    def test_fractional_age(self):
        """Test age in fractional days."""
        now = datetime(2024, 5, 11, 0, 0, tzinfo=timezone.utc)
        inspection = ImageInspection(created=now - timedelta(days=10, hours=12))
        assert inspection.age_days(now) == pytest.approx(10.5)

    def test_age_with_offset_timezone(self):
        """Test that ages are computed across time zones."""
        created = datetime(2024, 5, 1, 2, 0, tzinfo=timezone(timedelta(hours=2)))
        now = datetime(2024, 5, 2, 0, 0, tzinfo=timezone.utc)
        assert ImageInspection(created=created).age_days(now) == pytest.approx(1.0)


class TestCredentialCacheEntry:
    """Tests for CredentialCacheEntry model."""

    def test_freshness_margin(self):
        """Test that a token is fresh only with more than the margin left."""
        now = datetime(2024, 5, 1, tzinfo=timezone.utc)
        margin = timedelta(minutes=5)
        assert CredentialCacheEntry("us-east-1", "t", now + timedelta(minutes=6)).is_fresh(now, margin)
        assert not CredentialCacheEntry("us-east-1", "t", now + timedelta(minutes=5)).is_fresh(now, margin)
        assert not CredentialCacheEntry("us-east-1", "t", now - timedelta(minutes=1)).is_fresh(now, margin)


class TestCollectionSummary:
    """Tests for CollectionSummary model."""

    def test_str(self):
        """Test summary formatting."""
        summary = CollectionSummary(kind="image_age", images=3, published=2, skipped=1)
        assert str(summary) == "image_age: 3 images, 2 published, 1 skipped"
