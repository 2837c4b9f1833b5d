"""
Domain models for image metrics collection.

This module defines the core data structures used throughout the exporter.
All models are immutable (frozen dataclasses) to prevent accidental mutation.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from core.exceptions import InvalidImageFormatError


class Severity(str, Enum):
    """Scan finding severity levels as reported by ECR."""

    INFORMATIONAL = "INFORMATIONAL"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"
    UNDEFINED = "UNDEFINED"

    @classmethod
    def ordered_levels(cls) -> list["Severity"]:
        """Return severity levels in publication order."""
        return [
            cls.INFORMATIONAL,
            cls.LOW,
            cls.MEDIUM,
            cls.HIGH,
            cls.CRITICAL,
            cls.UNDEFINED,
        ]

    @property
    def label(self) -> str:
        """Metric label value for this severity."""
        return self.value.lower()


@dataclass(frozen=True)
class CanonicalReference:
    """
    Normalized container image reference.

    Attributes:
        domain: Registry domain (e.g., "602401143452.dkr.ecr.us-east-2.amazonaws.com"),
            None for references without an explicit registry
        path: Repository path within the registry (e.g., "amazon-k8s-cni")
        tag: Image tag, mutually exclusive with digest
        digest: Manifest digest (e.g., "sha256:..."), mutually exclusive with tag
    """

    domain: Optional[str]
    path: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    def __post_init__(self):
        if self.tag and self.digest:
            raise InvalidImageFormatError(self.name, "reference has both a tag and a digest")
        if not self.tag and not self.digest:
            raise InvalidImageFormatError(self.name, "reference has neither a tag nor a digest")

    @property
    def name(self) -> str:
        """Repository name: domain and path, without tag or digest."""
        if self.domain:
            return f"{self.domain}/{self.path}"
        return self.path

    def __str__(self) -> str:
        if self.digest:
            return f"{self.name}@{self.digest}"
        return f"{self.name}:{self.tag}"


@dataclass(frozen=True)
class RegistryLocation:
    """
    ECR registry coordinates derived from an image domain.

    Attributes:
        registry_id: AWS account id owning the registry
        region: AWS region hosting the registry
    """

    registry_id: str
    region: str


@dataclass(frozen=True)
class CredentialCacheEntry:
    """Cached registry authorization token for one region."""

    region: str
    token: str
    expires_at: datetime

    def is_fresh(self, now: datetime, margin: timedelta) -> bool:
        """Whether the token remains valid for longer than margin."""
        return self.expires_at - now > margin


@dataclass(frozen=True)
class ScanFindings:
    """
    Vulnerability finding counts broken down by severity.

    Every severity in Severity.ordered_levels() has a count, 0 when the
    registry did not report it.
    """

    counts: dict = field(default_factory=dict)

    def __post_init__(self):
        complete = {severity: 0 for severity in Severity.ordered_levels()}
        for severity, count in self.counts.items():
            complete[Severity(severity)] = int(count)
        object.__setattr__(self, "counts", complete)

    def get(self, severity: Severity) -> int:
        """Count for a single severity."""
        return self.counts[Severity(severity)]

    def items(self) -> list[tuple[Severity, int]]:
        """(severity, count) pairs in publication order."""
        return [(severity, self.counts[severity]) for severity in Severity.ordered_levels()]

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @classmethod
    def from_severity_counts(cls, raw: Optional[dict]) -> "ScanFindings":
        """
        Create from the registry's raw severity count mapping.

        Args:
            raw: Mapping of severity name to count (e.g., {"HIGH": 3});
                unknown severity names are ignored

        Returns:
            ScanFindings with every severity populated
        """
        known = {severity.value for severity in Severity}
        counts = {}
        for name, count in (raw or {}).items():
            if name in known:
                counts[Severity(name)] = max(int(count or 0), 0)
        return cls(counts=counts)


@dataclass(frozen=True)
class ImageInspection:
    """
    Manifest inspection result for a single image.

    Attributes:
        created: Build time of the image (timezone-aware)
    """

    created: datetime

    def age_days(self, now: datetime) -> float:
        """Fractional days elapsed between image creation and now."""
        return (now - self.created) / timedelta(days=1)


@dataclass(frozen=True)
class CollectionSummary:
    """
    Outcome of one collection run.

    Attributes:
        kind: Collector kind ("image_age" or "scan_findings")
        images: Number of distinct image identifiers observed
        published: Number of images whose metrics were published
        skipped: Number of images skipped (parse failures, filter misses, errors)
    """

    kind: str
    images: int = 0
    published: int = 0
    skipped: int = 0

    def __str__(self) -> str:
        return (
            f"{self.kind}: {self.images} images, "
            f"{self.published} published, {self.skipped} skipped"
        )
