"""
Remote manifest inspection with skopeo.

Runs `skopeo inspect` against an image's registry to read its creation
time, authenticating to ECR registries with cached authorization tokens.
"""

import base64
import binascii
import json
import logging
import re
import subprocess
from datetime import datetime, timezone
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from constants import INSPECT_OVERRIDE_OS, REDACTED, SKOPEO_TIMEOUT
from core.cache import CredentialCache
from core.context import CollectionContext
from core.exceptions import (
    CredentialError,
    InspectionDecodeError,
    RegistryInspectionError,
    UnrecognizedRegistryError,
)
from core.models import CanonicalReference, ImageInspection
from core.registry_interface import RemoteRegistry
from integrations.ecr import resolve_registry

logger = logging.getLogger(__name__)

_TIMESTAMP_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(?P<fraction>\d+))?(?P<tz>Z|[+-]\d{2}:\d{2})?$"
)

SECRET_FLAGS = ("--creds",)


def redact_command(cmd: list[str]) -> list[str]:
    """
    Copy of a command line with credential arguments replaced.

    Args:
        cmd: Command and arguments

    Returns:
        Command safe to log or embed in error messages

    Examples:
        >>> redact_command(["skopeo", "inspect", "--creds", "AWS:secret", "docker://x"])
        ['skopeo', 'inspect', '--creds', '<redacted>', 'docker://x']
    """
    redacted = list(cmd)
    for i in range(1, len(redacted)):
        if redacted[i - 1] in SECRET_FLAGS:
            redacted[i] = REDACTED
    return redacted


def parse_created(value: Optional[str]) -> datetime:
    """
    Parse skopeo's Created timestamp into a timezone-aware datetime.

    Accepts RFC 3339 timestamps with nanosecond fractions and a Z suffix,
    as written by Go's time formatting. Timestamps without an offset are
    taken as UTC.

    Raises:
        ValueError: If the value is not a timestamp
    """
    if not isinstance(value, str):
        raise ValueError(f"expected timestamp string, got {value!r}")

    match = _TIMESTAMP_RE.match(value.strip())
    if not match:
        raise ValueError(f"unrecognised timestamp [{value}]")

    text = match.group("base")
    fraction = match.group("fraction")
    if fraction:
        # datetime supports microseconds only
        text += "." + fraction[:6].ljust(6, "0")

    tz = match.group("tz")
    if tz and tz != "Z":
        text += tz
    else:
        text += "+00:00"

    return datetime.fromisoformat(text).astimezone(timezone.utc)


class SkopeoRemoteRegistry(RemoteRegistry):
    """
    Manifest inspection via the skopeo CLI.

    ECR images are inspected with credentials from the credential cache;
    images from any other registry are inspected anonymously.
    """

    def __init__(
        self,
        credentials: CredentialCache,
        timeout: float = SKOPEO_TIMEOUT,
        binary: str = "skopeo",
    ):
        """
        Initialize skopeo registry client.

        Args:
            credentials: Per-region ECR token cache
            timeout: Timeout for a single skopeo invocation (seconds)
            binary: skopeo executable
        """
        self.credentials = credentials
        self.timeout = timeout
        self.binary = binary

    def _registry_credentials(
        self,
        ref: CanonicalReference,
        context: Optional[CollectionContext],
    ) -> Optional[str]:
        """
        Resolve "user:password" credentials for an image.

        Returns:
            Decoded credentials, or None for registries treated as public

        Raises:
            CredentialError: If the registry is ECR but no token could be obtained
        """
        try:
            location = resolve_registry(ref)
        except UnrecognizedRegistryError:
            logger.debug(f"{ref} is not an ECR image, inspecting without credentials")
            return None

        try:
            token = self.credentials.get_token(location.region, context)
        except (BotoCoreError, ClientError) as e:
            raise CredentialError(str(ref), f"Error getting ecr credentials: {e}") from e

        try:
            return base64.b64decode(token, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise CredentialError(str(ref), f"Error decoding ecr authorization token: {e}") from e

    def inspect(
        self,
        ref: CanonicalReference,
        context: Optional[CollectionContext] = None,
    ) -> ImageInspection:
        image = str(ref)
        args = ["inspect", "--override-os", INSPECT_OVERRIDE_OS]

        creds = self._registry_credentials(ref, context)
        if creds is not None:
            args.extend(["--creds", creds])

        args.append(f"docker://{image}")

        cmd = [self.binary] + args
        display_cmd = redact_command(cmd)
        logger.info(f"Running command: {' '.join(display_cmd)}")

        timeout = context.timeout(self.timeout) if context is not None else self.timeout

        # CalledProcessError and TimeoutExpired carry the unredacted command,
        # so they are not chained onto the raised errors.
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            error_msg = f"Error running command {display_cmd}: exit code {e.returncode}"
            if e.stderr:
                error_msg += f", stderr: [{e.stderr.strip()}]"
            raise RegistryInspectionError(image, error_msg) from None
        except subprocess.TimeoutExpired:
            raise RegistryInspectionError(
                image, f"Command {display_cmd} timed out after {timeout} seconds"
            ) from None
        except FileNotFoundError as e:
            raise RegistryInspectionError(image, f"{self.binary} is required but not found in PATH") from e

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise InspectionDecodeError(image, f"Error decoding output as json: {e}") from e

        if not isinstance(data, dict):
            raise InspectionDecodeError(image, "Error decoding output as json: expected an object")

        try:
            created = parse_created(data.get("Created"))
        except ValueError as e:
            raise InspectionDecodeError(image, f"Error decoding Created field: {e}") from e

        return ImageInspection(created=created)
