"""
Exception hierarchy for the image exporter.

Provides a standardized exception hierarchy for consistent error handling
across the exporter. All exceptions inherit from ExporterException.

Per-image errors (everything below ExporterException except ListingError,
CollectionError and CollectionCancelledError) cause the collector to skip
that image; run-level errors abort the whole collection run.
"""


class ExporterException(Exception):
    """Base exception for all exporter errors."""
    pass


class InvalidImageFormatError(ExporterException):
    """Image identifier or reference could not be parsed."""

    def __init__(self, image: str, reason: str):
        """
        Initialize invalid format exception.

        Args:
            image: Raw image identifier or reference that failed to parse
            reason: Reason for failure
        """
        self.image = image
        self.reason = reason
        super().__init__(f"Invalid image [{image}]: {reason}")


class UnrecognizedRegistryError(ExporterException):
    """Image is not hosted in an ECR registry."""

    def __init__(self, image: str):
        self.image = image
        super().__init__(f"Unrecognised ECR image [{image}]")


class MissingImageIdentifierError(ExporterException):
    """Reference carries neither a tag nor a digest."""

    def __init__(self, image: str):
        self.image = image
        super().__init__(f"Unrecognised image [{image}], has neither tag nor digest")


class ScanIncompleteError(ExporterException):
    """ECR image scan has not reached the COMPLETE status."""

    def __init__(self, image: str, status: str):
        """
        Initialize scan incomplete exception.

        Args:
            image: Image reference whose scan is not complete
            status: Scan status reported by the registry
        """
        self.image = image
        self.status = status
        super().__init__(
            f"Image scan did not complete for image [{image}], the current status is [{status}]"
        )


class TransportError(ExporterException):
    """Network, API or external process failure."""

    def __init__(self, image: str, reason: str):
        """
        Initialize transport exception.

        Args:
            image: Image reference being processed
            reason: Reason for failure
        """
        self.image = image
        self.reason = reason
        super().__init__(f"{reason} (image [{image}])")


class CredentialError(TransportError):
    """Registry credentials could not be obtained."""
    pass


class RegistryApiError(TransportError):
    """Registry API call failed."""
    pass


class RegistryInspectionError(TransportError):
    """External manifest inspection failed."""
    pass


class InspectionDecodeError(TransportError):
    """Manifest inspection output could not be decoded."""
    pass


class ListingError(ExporterException):
    """Pods could not be listed from the Kubernetes API."""
    pass


class CollectionCancelledError(ExporterException):
    """Collection run was cancelled or ran past its deadline."""
    pass


class CollectionError(ExporterException):
    """A collection run failed as a whole."""

    def __init__(self, kind: str, cause: Exception):
        """
        Initialize collection exception.

        Args:
            kind: Collector kind (e.g., "image_age", "scan_findings")
            cause: Underlying run-level failure
        """
        self.kind = kind
        self.cause = cause
        super().__init__(f"{kind} collection failed: {cause}")


class ConfigurationException(ExporterException):
    """Configuration is invalid or missing."""
    pass


__all__ = [
    "ExporterException",
    "InvalidImageFormatError",
    "UnrecognizedRegistryError",
    "MissingImageIdentifierError",
    "ScanIncompleteError",
    "TransportError",
    "CredentialError",
    "RegistryApiError",
    "RegistryInspectionError",
    "InspectionDecodeError",
    "ListingError",
    "CollectionCancelledError",
    "CollectionError",
    "ConfigurationException",
]
