"""
Capability interfaces for the external systems the collectors depend on.

Defines the contracts for manifest inspection, scan findings retrieval and
pod listing, so implementations (skopeo, ECR, the Kubernetes API) can be
swapped for fakes in tests or for native clients later.
"""

from abc import ABC, abstractmethod
from typing import Optional

from core.context import CollectionContext
from core.models import CanonicalReference, ImageInspection, ScanFindings


class RemoteRegistry(ABC):
    """
    Abstract base class for remote manifest inspection.
    """

    @abstractmethod
    def inspect(
        self,
        ref: CanonicalReference,
        context: Optional[CollectionContext] = None,
    ) -> ImageInspection:
        """
        Inspect the manifest of an image in its remote registry.

        Args:
            ref: Image to inspect
            context: Cancellation context for the run

        Returns:
            ImageInspection with the image creation time

        Raises:
            TransportError: If credentials, the registry or the inspection fail
        """
        pass


class ScanFindingsProvider(ABC):
    """
    Abstract base class for registry-side vulnerability scan results.
    """

    @abstractmethod
    def fetch(
        self,
        ref: CanonicalReference,
        context: Optional[CollectionContext] = None,
    ) -> ScanFindings:
        """
        Fetch aggregated scan findings for an image.

        Args:
            ref: Image whose findings are requested
            context: Cancellation context for the run

        Returns:
            ScanFindings with every severity populated

        Raises:
            UnrecognizedRegistryError: If the image is not in a supported registry
            ScanIncompleteError: If the scan has not completed
            TransportError: If the registry API fails
        """
        pass


class PodLister(ABC):
    """
    Abstract base class for enumerating running container images.
    """

    @abstractmethod
    def list_image_ids(self, context: Optional[CollectionContext] = None) -> set[str]:
        """
        List the runtime image ids of every container in every pod.

        Args:
            context: Cancellation context for the run

        Returns:
            Set of distinct raw image ids

        Raises:
            ListingError: If pods cannot be listed
        """
        pass


__all__ = [
    "RemoteRegistry",
    "ScanFindingsProvider",
    "PodLister",
]
