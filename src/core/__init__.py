"""Core domain models, caches and collectors for image metrics."""

from core.models import (
    CanonicalReference,
    CollectionSummary,
    ImageInspection,
    RegistryLocation,
    ScanFindings,
    Severity,
)

__all__ = [
    "CanonicalReference",
    "CollectionSummary",
    "ImageInspection",
    "RegistryLocation",
    "ScanFindings",
    "Severity",
]
