"""Utility modules for image reference parsing and logging."""

from utils.logging_helpers import json_log_formatter, log_error_section

__all__ = [
    "json_log_formatter",
    "log_error_section",
]
