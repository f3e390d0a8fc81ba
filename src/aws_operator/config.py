"""Configuration management with validation.

All inputs are validated when the configuration is built so that a bad
environment fails at startup instead of halfway through a reconciliation.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


DEFAULT_CLUSTER_FILE = "/cluster/cluster.yaml"
DEFAULT_LOG_LEVEL = "INFO"

# Cluster declarations are small; anything bigger is a mistake
MAX_CLUSTER_FILE_SIZE_BYTES = 1024 * 1024

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# Input validation patterns
VALID_REGION_PATTERN = r"^[a-z]{2}(-[a-z]+)+-\d$"
VALID_PROFILE_PATTERN = r"^[A-Za-z0-9_.+-]{1,64}$"


@dataclass(frozen=True)
class Config:
    """Operator configuration loaded from environment variables or CLI flags.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing at runtime.
    """

    region: str
    cluster_file: Path = field(default_factory=lambda: Path(DEFAULT_CLUSTER_FILE))
    profile: str | None = None

    # Behavior
    dry_run: bool = False

    # Logging
    log_level: str = DEFAULT_LOG_LEVEL
    json_logs: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.region:
            errors.append("AWS_REGION is required")
        elif not re.match(VALID_REGION_PATTERN, self.region):
            errors.append(f"AWS_REGION must be a valid AWS region: {self.region}")

        if self.profile is not None and not re.match(VALID_PROFILE_PATTERN, self.profile):
            errors.append(f"AWS_PROFILE contains invalid characters: {self.profile}")

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {list(VALID_LOG_LEVELS)}: {self.log_level}")

        if not self.cluster_file.exists():
            errors.append(f"Cluster file does not exist: {self.cluster_file}")
        elif not self.cluster_file.is_file():
            errors.append(f"Cluster file is not a regular file: {self.cluster_file}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            AWS_REGION: Target AWS region (required)
            AWS_PROFILE: Named credentials profile (optional)
            CLUSTER_FILE: Path to the cluster declaration (default: /cluster/cluster.yaml)
            DRY_RUN: If "true", only report drift without applying (default: false)
            LOG_LEVEL: One of DEBUG, INFO, WARNING, ERROR (default: INFO)
            JSON_LOGS: If "false", log plain text instead of JSON (default: true)
        """

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        return cls(
            region=os.environ.get("AWS_REGION", ""),
            cluster_file=Path(os.environ.get("CLUSTER_FILE", DEFAULT_CLUSTER_FILE)),
            profile=os.environ.get("AWS_PROFILE") or None,
            dry_run=get_bool("DRY_RUN", False),
            log_level=os.environ.get("LOG_LEVEL", DEFAULT_LOG_LEVEL),
            json_logs=get_bool("JSON_LOGS", True),
        )
