"""
Amazon ECR integration.

Resolves ECR registry coordinates from image domains and retrieves image
scan findings through the ECR API.
"""

import logging
import re
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from constants import ECR_SCAN_MAX_RESULTS, ECR_SCAN_STATUS_COMPLETE
from core.cache import ServiceClientCache
from core.context import CollectionContext
from core.exceptions import (
    MissingImageIdentifierError,
    RegistryApiError,
    ScanIncompleteError,
    UnrecognizedRegistryError,
)
from core.models import CanonicalReference, RegistryLocation, ScanFindings
from core.registry_interface import ScanFindingsProvider

logger = logging.getLogger(__name__)

ECR_DOMAIN_RE = re.compile(
    r"^(?P<registry_id>[^.]+)\.dkr\.ecr\.(?P<region>[^.]+)\.amazonaws\.com$"
)


def resolve_registry(ref: CanonicalReference) -> RegistryLocation:
    """
    Derive the ECR registry id and region from an image's domain.

    Args:
        ref: Image reference

    Returns:
        RegistryLocation for the image's registry

    Raises:
        UnrecognizedRegistryError: If the domain is not an ECR registry host

    Examples:
        >>> from utils.image_utils import parse_reference
        >>> resolve_registry(parse_reference(
        ...     "602401143452.dkr.ecr.us-east-2.amazonaws.com/amazon-k8s-cni:v1"))
        RegistryLocation(registry_id='602401143452', region='us-east-2')
    """
    match = ECR_DOMAIN_RE.match(ref.domain or "")
    if not match:
        raise UnrecognizedRegistryError(str(ref))
    return RegistryLocation(
        registry_id=match.group("registry_id"),
        region=match.group("region"),
    )


def image_identifier(ref: CanonicalReference) -> dict[str, str]:
    """
    Build the ECR ImageIdentifier for a reference, preferring the tag.

    Raises:
        MissingImageIdentifierError: If the reference has neither tag nor digest
    """
    if ref.tag:
        return {"imageTag": ref.tag}
    if ref.digest:
        return {"imageDigest": ref.digest}
    raise MissingImageIdentifierError(str(ref))


class EcrScanFindingsFetcher(ScanFindingsProvider):
    """
    Fetches ECR basic scan findings and aggregates them by severity.

    Only the first page of findings (ECR_SCAN_MAX_RESULTS) is read; counts
    come from the per-severity summary ECR returns with it.
    """

    def __init__(self, clients: ServiceClientCache):
        """
        Initialize scan findings fetcher.

        Args:
            clients: Cache of per-region ECR clients
        """
        self.clients = clients

    def fetch(
        self,
        ref: CanonicalReference,
        context: Optional[CollectionContext] = None,
    ) -> ScanFindings:
        location = resolve_registry(ref)
        image_id = image_identifier(ref)
        image = str(ref)

        try:
            client = self.clients.get_client(location.region)
        except (BotoCoreError, ClientError) as e:
            raise RegistryApiError(image, f"Error creating ECR service: {e}") from e

        if context is not None:
            context.check()

        try:
            output = client.describe_image_scan_findings(
                registryId=location.registry_id,
                repositoryName=ref.path,
                imageId=image_id,
                maxResults=ECR_SCAN_MAX_RESULTS,
            )
        except (BotoCoreError, ClientError) as e:
            raise RegistryApiError(image, f"Error describing image scan findings: {e}") from e

        status = output.get("imageScanStatus", {}).get("status", "")
        if status != ECR_SCAN_STATUS_COMPLETE:
            raise ScanIncompleteError(image, status)

        counts = output.get("imageScanFindings", {}).get("findingSeverityCounts", {})
        findings = ScanFindings.from_severity_counts(counts)
        logger.debug(f"{image}: {findings.total} findings ({counts})")
        return findings
