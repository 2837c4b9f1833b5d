"""
Pytest fixtures and configuration for exporter tests.

Provides shared fixtures and test doubles for the external registry,
scan and Kubernetes capabilities.
"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Optional

from prometheus_client import CollectorRegistry

from core.context import CollectionContext
from core.exceptions import ListingError, ScanIncompleteError
from core.metrics import ExporterMetrics
from core.models import CanonicalReference, ImageInspection, ScanFindings
from core.registry_interface import PodLister, RemoteRegistry, ScanFindingsProvider
from utils.image_utils import ImageParser

ECR_DOMAIN = "602401143452.dkr.ecr.us-east-2.amazonaws.com"
ECR_DIGEST = "sha256:bf321746d8a281e6a1437cb2b008953be2a729773938fa759c02ee2e9ba140b7"
ECR_IMAGE_ID = f"docker-pullable://{ECR_DOMAIN}/amazon-k8s-cni@{ECR_DIGEST}"
ECR_IMAGE = f"{ECR_DOMAIN}/amazon-k8s-cni@{ECR_DIGEST}"

NGINX_DIGEST = "sha256:bda886ac14a4dee943636e1a48b3280616bad42698a019ef21f48092a52c5b13"
NGINX_IMAGE_ID = f"docker-pullable://nginx@{NGINX_DIGEST}"
NGINX_IMAGE = f"nginx@{NGINX_DIGEST}"

ECR_FILTER = r"^602401143452\.dkr\.ecr\.us-east-2\.amazonaws\.com/"

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakePodLister(PodLister):
    """Pod lister returning a fixed list of image ids (duplicates allowed)."""

    def __init__(self, image_ids: list[str], error: Optional[Exception] = None):
        self.image_ids = image_ids
        self.error = error
        self.calls = 0

    def list_image_ids(self, context: Optional[CollectionContext] = None) -> set[str]:
        self.calls += 1
        if self.error:
            raise self.error
        return set(self.image_ids)


class FakeRemoteRegistry(RemoteRegistry):
    """Remote registry returning canned creation times, or raising per image."""

    def __init__(self, created: dict, errors: Optional[dict] = None):
        self.created = created
        self.errors = errors or {}
        self.inspected: list[str] = []

    def inspect(self, ref: CanonicalReference, context: Optional[CollectionContext] = None) -> ImageInspection:
        image = str(ref)
        self.inspected.append(image)
        if image in self.errors:
            raise self.errors[image]
        return ImageInspection(created=self.created[image])


class FakeScanFindings(ScanFindingsProvider):
    """Scan findings provider returning canned severity counts or scan statuses."""

    def __init__(self, counts: dict, statuses: Optional[dict] = None):
        self.counts = counts
        self.statuses = statuses or {}
        self.fetched: list[str] = []

    def fetch(self, ref: CanonicalReference, context: Optional[CollectionContext] = None) -> ScanFindings:
        image = str(ref)
        self.fetched.append(image)
        status = self.statuses.get(image, "COMPLETE")
        if status != "COMPLETE":
            raise ScanIncompleteError(image, status)
        return ScanFindings.from_severity_counts(self.counts.get(image, {}))


@pytest.fixture
def registry():
    """Isolated Prometheus registry."""
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    """Exporter metrics bound to the isolated registry."""
    return ExporterMetrics(registry)


@pytest.fixture
def image_parser():
    """Image parser with the ECR filter from the amazon-k8s-cni example."""
    return ImageParser(ECR_FILTER)


@pytest.fixture
def default_image_parser():
    """Image parser with the default (match nothing) filter."""
    return ImageParser("")


@pytest.fixture
def created_times():
    """Creation times 10.5 and 2 days before NOW."""
    return {
        ECR_IMAGE: NOW - timedelta(days=10, hours=12),
        NGINX_IMAGE: NOW - timedelta(days=2),
    }


@pytest.fixture
def listing_error():
    return ListingError("Error listing pods: 403 Forbidden")
