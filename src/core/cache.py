"""
Process-wide caches for ECR API clients and authorization tokens.

Both caches are created empty at startup, populated lazily, and shared by
every collector and every concurrent collection run. Each cache guards its
lookup-or-refresh with a single lock.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import boto3
from botocore.config import Config

from constants import (
    AWS_CONNECT_TIMEOUT,
    AWS_READ_TIMEOUT,
    CREDENTIAL_REFRESH_MARGIN_SECONDS,
)
from core.context import CollectionContext
from core.models import CredentialCacheEntry

logger = logging.getLogger(__name__)


def default_ecr_client_factory(region: str) -> Any:
    """Create a boto3 ECR client for a region, with retries disabled."""
    session = boto3.session.Session(region_name=region)
    return session.client(
        "ecr",
        config=Config(
            connect_timeout=AWS_CONNECT_TIMEOUT,
            read_timeout=AWS_READ_TIMEOUT,
            retries={"total_max_attempts": 1, "mode": "standard"},
        ),
    )


class ServiceClientCache:
    """
    One ECR client per region, created on first use and never invalidated.
    """

    def __init__(self, client_factory: Optional[Callable[[str], Any]] = None):
        """
        Initialize client cache.

        Args:
            client_factory: Callable building a client for a region
                (default: boto3 ECR client)
        """
        self._client_factory = client_factory or default_ecr_client_factory
        self._clients: dict[str, Any] = {}
        self._lock = threading.Lock()

    def get_client(self, region: str) -> Any:
        """
        Get the ECR client for a region, creating it if needed.

        Construction failures propagate and are not cached, so the next
        call tries again.

        Args:
            region: AWS region

        Returns:
            ECR client for the region
        """
        with self._lock:
            client = self._clients.get(region)
            if client is not None:
                return client

            logger.debug(f"Creating ECR client for region {region}")
            client = self._client_factory(region)
            self._clients[region] = client
            return client

    def __len__(self) -> int:
        return len(self._clients)


class CredentialCache:
    """
    Per-region cache of short-lived ECR authorization tokens.

    A cached token is returned only while it has more than the refresh
    margin (5 minutes) of validity left; otherwise a new token is requested.
    Entries are never evicted.
    """

    def __init__(
        self,
        clients: ServiceClientCache,
        clock: Optional[Callable[[], datetime]] = None,
        refresh_margin: timedelta = timedelta(seconds=CREDENTIAL_REFRESH_MARGIN_SECONDS),
    ):
        """
        Initialize credential cache.

        Args:
            clients: Cache of per-region ECR clients
            clock: Returns the current time (timezone-aware)
            refresh_margin: Minimum remaining validity for a cached token
        """
        self._clients = clients
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.refresh_margin = refresh_margin
        self._entries: dict[str, CredentialCacheEntry] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get_token(self, region: str, context: Optional[CollectionContext] = None) -> str:
        """
        Get a base64 ECR authorization token for a region.

        The lock is held across the GetAuthorizationToken call on a miss;
        region cardinality is small and misses happen once per token lifetime.

        Args:
            region: AWS region
            context: Cancellation context for the run

        Returns:
            Base64-encoded "user:password" token

        Raises:
            botocore.exceptions.BotoCoreError, botocore.exceptions.ClientError:
                Authorization call failures, unchanged
            CollectionCancelledError: If the run was cancelled
        """
        with self._lock:
            entry = self._entries.get(region)
            if entry is not None and entry.is_fresh(self._clock(), self.refresh_margin):
                self.hits += 1
                return entry.token

            self.misses += 1
            if context is not None:
                context.check()

            client = self._clients.get_client(region)
            logger.debug(f"Requesting ECR authorization token for region {region}")
            output = client.get_authorization_token()
            auth_data = output["authorizationData"][0]

            entry = CredentialCacheEntry(
                region=region,
                token=auth_data["authorizationToken"],
                expires_at=auth_data["expiresAt"],
            )
            self._entries[region] = entry
            return entry.token

    def summary(self) -> str:
        """Get cache usage summary."""
        return f"Credential cache: {self.hits} hits, {self.misses} misses, {len(self._entries)} regions"
