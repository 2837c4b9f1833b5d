"""
Utilities for parsing container image references.

Implements the distribution reference grammar used by container registries
and the pullable image ids reported by the Kubernetes container runtime.
"""

import logging
import re
from typing import Optional

from constants import DEFAULT_ECR_SCAN_RESULTS_FILTER, K8S_IMAGE_ID_SCHEME
from core.exceptions import ConfigurationException, InvalidImageFormatError
from core.models import CanonicalReference

logger = logging.getLogger(__name__)

NAME_TOTAL_LENGTH_MAX = 255

_PATH_COMPONENT = r"[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*"
_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"

PATH_RE = re.compile(rf"{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*", re.ASCII)
DOMAIN_RE = re.compile(rf"{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*(?::[0-9]+)?", re.ASCII)
TAG_RE = re.compile(r"[\w][\w.-]{0,127}", re.ASCII)
DIGEST_RE = re.compile(
    r"(?P<algorithm>[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*):(?P<hex>[0-9a-fA-F]{32,})",
    re.ASCII,
)
K8S_IMAGE_ID_RE = re.compile(rf"{re.escape(K8S_IMAGE_ID_SCHEME)}.*@sha256:.*", re.ASCII)


def _is_registry(part: str) -> bool:
    """Check if a string looks like a registry hostname."""
    # Contains . or : (port), or is localhost
    return "." in part or ":" in part or part == "localhost"


def _validate_digest(text: str, digest: str) -> str:
    match = DIGEST_RE.fullmatch(digest)
    if not match:
        raise InvalidImageFormatError(text, f"invalid digest format [{digest}]")
    if match.group("algorithm") == "sha256" and len(match.group("hex")) != 64:
        raise InvalidImageFormatError(text, "invalid checksum digest length")
    return digest


def parse_reference(text: str) -> CanonicalReference:
    """
    Parse an image reference into its canonical form.

    Args:
        text: Image reference (e.g., "nginx@sha256:...", "quay.io/org/app:v1")

    Returns:
        CanonicalReference with domain, path and exactly one of tag or digest.
        When both a tag and a digest are present the digest is kept.

    Raises:
        InvalidImageFormatError: If the reference does not follow the grammar

    Examples:
        >>> str(parse_reference("nginx:1.25"))
        'nginx:1.25'

        >>> parse_reference("localhost:5000/team/app@sha256:" + "a" * 64).domain
        'localhost:5000'
    """
    if not text:
        raise InvalidImageFormatError(text, "repository name must have at least one component")

    remainder = text
    tag = None
    digest = None

    # Extract digest first (after @)
    if "@" in remainder:
        remainder, digest = remainder.split("@", 1)
        digest = _validate_digest(text, digest)

    # Extract tag (after last :, but only if it's not part of registry port)
    last_colon = remainder.rfind(":")
    if last_colon > remainder.rfind("/"):
        remainder, tag = remainder[:last_colon], remainder[last_colon + 1:]
        if not TAG_RE.fullmatch(tag):
            raise InvalidImageFormatError(text, f"invalid tag format [{tag}]")

    if len(remainder) > NAME_TOTAL_LENGTH_MAX:
        raise InvalidImageFormatError(
            text, f"repository name must not be more than {NAME_TOTAL_LENGTH_MAX} characters"
        )

    domain: Optional[str] = None
    path = remainder
    first, sep, rest = remainder.partition("/")
    if sep and _is_registry(first):
        domain, path = first, rest
        if not DOMAIN_RE.fullmatch(domain):
            raise InvalidImageFormatError(text, f"invalid domain [{domain}]")

    if not PATH_RE.fullmatch(path):
        if path.lower() != path and PATH_RE.fullmatch(path.lower()):
            raise InvalidImageFormatError(text, "repository name must be lowercase")
        raise InvalidImageFormatError(text, "invalid reference format")

    if digest and tag:
        logger.debug(f"Dropping tag [{tag}] from digest-qualified reference {text}")
        tag = None

    if not digest and not tag:
        raise InvalidImageFormatError(text, "reference has neither a tag nor a digest")

    return CanonicalReference(domain=domain, path=path, tag=tag, digest=digest)


def parse_k8s_image_id(image_id: str) -> CanonicalReference:
    """
    Parse a runtime-reported image id into a canonical reference.

    Only digest-qualified pullable ids are accepted, e.g.
    "docker-pullable://nginx@sha256:<hex>".

    Args:
        image_id: Value of a container status' imageID field

    Returns:
        CanonicalReference carrying the digest

    Raises:
        InvalidImageFormatError: If the id has any other shape
    """
    if not image_id or not K8S_IMAGE_ID_RE.fullmatch(image_id):
        raise InvalidImageFormatError(image_id, "unrecognised imageID")

    image = image_id.replace(K8S_IMAGE_ID_SCHEME, "", 1)
    return parse_reference(image)


def compile_repository_filter(pattern: Optional[str]) -> re.Pattern:
    """
    Compile the repository filter used for scan findings collection.

    Args:
        pattern: Regular expression matched against repository names; empty
            or None falls back to a pattern matching nothing

    Returns:
        Compiled pattern

    Raises:
        ConfigurationException: If the pattern is not a valid regular expression
    """
    if not pattern:
        pattern = DEFAULT_ECR_SCAN_RESULTS_FILTER

    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigurationException(f"Cannot compile ecr regex filter [{pattern}]: {e}") from e


def matches_filter(ref: CanonicalReference, compiled: re.Pattern) -> bool:
    """Test the repository name (domain and path, never tag or digest) against the filter."""
    return compiled.search(ref.name) is not None


class ImageParser:
    """
    Parses runtime image ids and applies the configured repository filter.
    """

    def __init__(self, ecr_filter: Optional[str] = None):
        """
        Initialize image parser.

        Args:
            ecr_filter: Repository filter pattern (default matches nothing)

        Raises:
            ConfigurationException: If the filter does not compile
        """
        self.ecr_filter = compile_repository_filter(ecr_filter)

    def parse_k8s_image_id(self, image_id: str) -> CanonicalReference:
        return parse_k8s_image_id(image_id)

    def matches_ecr_filter(self, ref: CanonicalReference) -> bool:
        return matches_filter(ref, self.ecr_filter)
