"""
Exporter configuration.

Settings come from an optional YAML file and are overridden by command-line
flags; constants.py supplies the defaults.
"""

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml
from apscheduler.triggers.cron import CronTrigger

from constants import (
    DEFAULT_ECR_SCAN_RESULTS_FILTER,
    DEFAULT_IMAGE_AGE_SCHEDULE,
    DEFAULT_LISTEN_ADDRESS,
    DEFAULT_LISTEN_PORT,
    DEFAULT_MAX_WORKERS,
    DEFAULT_RUN_TIMEOUT,
    DEFAULT_SCAN_FINDINGS_SCHEDULE,
    SKOPEO_TIMEOUT,
)
from core.exceptions import ConfigurationException
from utils.image_utils import compile_repository_filter

logger = logging.getLogger(__name__)

LOG_FORMATS = ("text", "json")


@dataclass
class ExporterConfig:
    """Runtime configuration for the exporter."""

    listen_address: str = DEFAULT_LISTEN_ADDRESS
    listen_port: int = DEFAULT_LISTEN_PORT
    ecr_scan_results_filter: str = DEFAULT_ECR_SCAN_RESULTS_FILTER
    kubeconfig_path: Optional[str] = None
    image_age_schedule: str = DEFAULT_IMAGE_AGE_SCHEDULE
    scan_findings_schedule: str = DEFAULT_SCAN_FINDINGS_SCHEDULE
    max_workers: int = DEFAULT_MAX_WORKERS
    inspect_timeout: float = SKOPEO_TIMEOUT
    run_timeout: float = DEFAULT_RUN_TIMEOUT
    log_format: str = "text"
    verbose: bool = False

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationException: If configuration is invalid
        """
        if not 0 < self.listen_port < 65536:
            raise ConfigurationException(f"Invalid listen port: {self.listen_port}")

        if self.max_workers < 1:
            raise ConfigurationException(f"max_workers must be at least 1, got {self.max_workers}")

        for name in ("inspect_timeout", "run_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigurationException(f"{name} must be positive, got {getattr(self, name)}")

        if self.log_format not in LOG_FORMATS:
            raise ConfigurationException(
                f"Invalid log format: {self.log_format}. Valid formats: {', '.join(LOG_FORMATS)}"
            )

        for name in ("image_age_schedule", "scan_findings_schedule"):
            try:
                CronTrigger.from_crontab(getattr(self, name), timezone="UTC")
            except ValueError as e:
                raise ConfigurationException(f"Invalid cron expression for {name}: {e}") from e

        compile_repository_filter(self.ecr_scan_results_filter)

    def as_log_fields(self) -> dict[str, Any]:
        """Configuration as a flat dict for the startup log line."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_yaml(cls, path: Path) -> "ExporterConfig":
        """
        Load configuration from a YAML file.

        Args:
            path: YAML file with a mapping of field names to values

        Returns:
            ExporterConfig with file values over defaults

        Raises:
            ConfigurationException: If the file cannot be read or has unknown keys
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationException(f"Failed to parse config YAML {path}: {e}") from e
        except OSError as e:
            raise ConfigurationException(f"Failed to read config file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationException(f"Config file {path} must be a YAML mapping")

        # Accept the dashed flag spelling too (e.g., "ecr-scan-results-filter")
        data = {str(key).replace("-", "_"): value for key, value in data.items()}

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationException(f"Unknown config keys in {path}: {', '.join(sorted(unknown))}")

        return cls(**data)

    def with_overrides(self, **overrides: Any) -> "ExporterConfig":
        """Copy of this config with every non-None override applied."""
        values = self.as_log_fields()
        values.update({key: value for key, value in overrides.items() if value is not None})
        return ExporterConfig(**values)
