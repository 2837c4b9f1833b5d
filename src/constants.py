"""
Centralized configuration constants for the image exporter.

This module provides a single source of truth for configuration values
that are used across multiple modules, making them easier to update
and maintain.
"""

# ============================================================================
# Image Identifiers
# ============================================================================

K8S_IMAGE_ID_SCHEME = "docker-pullable://"
"""Scheme marker the container runtime prefixes to pullable image ids."""

INSPECT_OVERRIDE_OS = "linux"
"""Operating system forced when inspecting manifests, so multi-arch results are deterministic."""

REDACTED = "<redacted>"
"""Placeholder written in place of credentials in logs and error messages."""

# ============================================================================
# ECR
# ============================================================================

ECR_SCAN_MAX_RESULTS = 1000
"""Maximum findings requested from DescribeImageScanFindings (single page, no pagination)."""

ECR_SCAN_STATUS_COMPLETE = "COMPLETE"
"""Scan status required before findings are published."""

CREDENTIAL_REFRESH_MARGIN_SECONDS = 300
"""Cached ECR tokens are refreshed once they have this little validity left (5 minutes)."""

# ============================================================================
# Metrics
# ============================================================================

METRIC_PREFIX = "k8s_image_exporter"
"""Prefix for every exported metric name."""

# ============================================================================
# Server and Scheduling Defaults
# ============================================================================

DEFAULT_LISTEN_ADDRESS = "0.0.0.0"
"""Default address for the metrics, health and refresh endpoints."""

DEFAULT_LISTEN_PORT = 5000
"""Default port for the metrics, health and refresh endpoints."""

DEFAULT_ECR_SCAN_RESULTS_FILTER = "^$"
"""Default repository filter; matches nothing, so scan findings collection is opt-in."""

DEFAULT_IMAGE_AGE_SCHEDULE = "23 * * * *"
"""Cron schedule (UTC) for the image age collector."""

DEFAULT_SCAN_FINDINGS_SCHEDULE = "53 * * * *"
"""Cron schedule (UTC) for the scan findings collector."""

DEFAULT_MAX_WORKERS = 1
"""Default number of images processed concurrently within one run."""

# ============================================================================
# Timeouts (in seconds)
# ============================================================================

SKOPEO_TIMEOUT = 120
"""Timeout for a single skopeo inspect invocation (2 minutes)."""

K8S_REQUEST_TIMEOUT = 60
"""Timeout for Kubernetes API requests (1 minute)."""

DEFAULT_RUN_TIMEOUT = 1800
"""Deadline for a whole collection run (30 minutes)."""

AWS_CONNECT_TIMEOUT = 10
"""Connect timeout for ECR API calls."""

AWS_READ_TIMEOUT = 60
"""Read timeout for ECR API calls."""
