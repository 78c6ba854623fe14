"""Application configuration.

Delegates to specialized components:
- Settings: Environment variables
- SSHConfigParser: Reads ~/.ssh/config for remote target details
- HostKeyVerifier: Manages known_hosts
"""

import getpass
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from fleetdiag.config.host_keys import HostKeyVerifier
from fleetdiag.config.parser import SSHConfigParser
from fleetdiag.config.settings import Settings
from fleetdiag.models import Credentials, SSHHost

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Application configuration.

    Aggregates settings from the environment, SSH config and known_hosts.
    """

    settings: Settings = field(default_factory=Settings)
    parser: SSHConfigParser = field(default_factory=SSHConfigParser)
    host_keys: HostKeyVerifier = field(
        default_factory=lambda: HostKeyVerifier(strict_checking=False)
    )
    _hosts_cache: dict[str, SSHHost] | None = field(default=None, init=False, repr=False)

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment.

        Returns:
            Configured instance with all components initialized
        """
        settings = Settings.from_env()
        parser = SSHConfigParser(config_path=os.getenv("FLEETDIAG_SSH_CONFIG"))
        host_keys = HostKeyVerifier(
            known_hosts_path=os.getenv("FLEETDIAG_KNOWN_HOSTS"),
            strict_checking=Settings._get_bool("FLEETDIAG_STRICT_HOST_KEY_CHECKING", True),
        )
        return cls(settings=settings, parser=parser, host_keys=host_keys)

    def get_ssh_hosts(self) -> dict[str, SSHHost]:
        """SSH config aliases, parsed once and cached."""
        if self._hosts_cache is None:
            self._hosts_cache = self.parser.parse()
        return self._hosts_cache

    def resolve_remote_host(
        self,
        name: str,
        credentials: Credentials | None = None,
    ) -> SSHHost:
        """Build connection details for a remote device name.

        Precedence: explicit credentials, then the SSH config alias, then
        FLEETDIAG_SSH_* settings, then the current user.
        """
        host = self.get_ssh_hosts().get(name.lower())
        if host is None:
            host = SSHHost(name=name, hostname=name, port=self.settings.ssh_port)
        else:
            logger.debug("Using SSH config entry for %s (%s:%d)", name, host.hostname, host.port)

        host = SSHHost(
            name=name,
            hostname=host.hostname,
            user=host.user or self.settings.ssh_user or getpass.getuser(),
            port=host.port,
            identity_file=host.identity_file or self.settings.ssh_identity_file,
            password=self.settings.ssh_password,
        )
        return host.with_credentials(credentials)

    @property
    def report_root(self) -> Path:
        return Path(self.settings.report_root)

    @property
    def known_hosts_path(self) -> str | None:
        """Path to known_hosts file or None if disabled."""
        return self.host_keys.get_known_hosts_path()

    @property
    def strict_host_key_checking(self) -> bool:
        """Whether to reject unknown host keys."""
        return self.host_keys.strict_checking
