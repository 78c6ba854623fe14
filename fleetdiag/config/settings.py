"""Application settings from environment variables.

Centralized environment variable parsing and validation.
"""

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Application settings from environment.

    Handles parsing, validation, and defaults for all FLEETDIAG_* env vars.
    """

    # Agent and catalog
    agent_binary: str = field(default="azcmagent")
    step_timeout: float = field(default=1800.0)  # 0 disables

    # Output
    report_root: str = field(default="./fleetdiag-reports")

    # Artifact collection
    artifact_pattern: str = field(default="*.zip")
    placeholder_token: str = field(default="unknown")
    artifact_wait_local: float = field(default=30.0)
    artifact_wait_remote: float = field(default=15.0)
    poll_interval: float = field(default=1.0)
    remote_workdir: str = field(default="/tmp/fleetdiag")

    # Scheduling
    max_concurrent_hosts: int = field(default=1)
    max_remote_sessions: int = field(default=4)

    # Remote sessions
    probe_timeout: float = field(default=5.0)
    ssh_user: str | None = field(default=None)
    ssh_port: int = field(default=22)
    ssh_password: str | None = field(default=None, repr=False)
    ssh_identity_file: str | None = field(default=None)

    # Operator decisions
    continue_without_agent: bool = field(default=False)

    # Logging
    log_level: str = field(default="INFO")
    log_colors: bool = field(default=True)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables.

        Returns:
            Settings instance with values from environment
        """
        return cls(
            agent_binary=os.getenv("FLEETDIAG_AGENT_BINARY", "azcmagent"),
            step_timeout=cls._get_float("FLEETDIAG_STEP_TIMEOUT", 1800.0),
            report_root=os.getenv("FLEETDIAG_REPORT_ROOT", "./fleetdiag-reports"),
            artifact_pattern=os.getenv("FLEETDIAG_ARTIFACT_PATTERN", "*.zip"),
            placeholder_token=os.getenv("FLEETDIAG_PLACEHOLDER_TOKEN", "unknown"),
            artifact_wait_local=cls._get_float("FLEETDIAG_ARTIFACT_WAIT_LOCAL", 30.0),
            artifact_wait_remote=cls._get_float("FLEETDIAG_ARTIFACT_WAIT_REMOTE", 15.0),
            poll_interval=cls._get_float("FLEETDIAG_POLL_INTERVAL", 1.0),
            remote_workdir=os.getenv("FLEETDIAG_REMOTE_WORKDIR", "/tmp/fleetdiag"),
            max_concurrent_hosts=max(1, cls._get_int("FLEETDIAG_MAX_CONCURRENT_HOSTS", 1)),
            max_remote_sessions=max(1, cls._get_int("FLEETDIAG_MAX_REMOTE_SESSIONS", 4)),
            probe_timeout=cls._get_float("FLEETDIAG_PROBE_TIMEOUT", 5.0),
            ssh_user=os.getenv("FLEETDIAG_SSH_USER") or None,
            ssh_port=cls._get_int("FLEETDIAG_SSH_PORT", 22),
            ssh_password=os.getenv("FLEETDIAG_SSH_PASSWORD") or None,
            ssh_identity_file=os.getenv("FLEETDIAG_SSH_IDENTITY_FILE") or None,
            continue_without_agent=cls._get_bool("FLEETDIAG_CONTINUE_WITHOUT_AGENT", False),
            log_level=os.getenv("FLEETDIAG_LOG_LEVEL", "INFO").upper(),
            log_colors=cls._get_bool("FLEETDIAG_LOG_COLORS", True),
        )

    @property
    def effective_step_timeout(self) -> float | None:
        """Per-step timeout in seconds, or None when disabled."""
        return self.step_timeout if self.step_timeout > 0 else None

    @staticmethod
    def _get_int(key: str, default: int) -> int:
        value = os.getenv(key)
        if value is None:
            return default

        try:
            return int(value)
        except ValueError:
            logger.warning("Invalid int for %s: %s, using default %d", key, value, default)
            return default

    @staticmethod
    def _get_float(key: str, default: float) -> float:
        value = os.getenv(key)
        if value is None:
            return default

        try:
            return float(value)
        except ValueError:
            logger.warning("Invalid number for %s: %s, using default %g", key, value, default)
            return default

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        """Get boolean from environment.

        Args:
            key: Environment variable key
            default: Default value if not set

        Returns:
            Boolean value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ("1", "true", "yes", "on")
