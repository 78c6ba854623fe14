"""SSH config file parser.

Reads ~/.ssh/config so that device names can be SSH aliases: HostName,
User, Port and IdentityFile are inherited from the matching block.
"""

import logging
import os
import re
from pathlib import Path

from fleetdiag.models import SSHHost

logger = logging.getLogger(__name__)

_HOST_DIRECTIVE = re.compile(r"^Host\s+(.+)$", re.IGNORECASE)
_KEY_VALUE = re.compile(r"^(\w+)\s*=?\s*(.+)$")


class SSHConfigParser:
    """Parser for SSH config files.

    Only literal aliases are indexed; wildcard blocks contribute their
    options as defaults to every alias that follows them.
    """

    def __init__(self, config_path: Path | str | None = None):
        """Initialize SSH config parser.

        Args:
            config_path: Path to SSH config file (default: ~/.ssh/config)
        """
        if config_path is None:
            config_path = Path.home() / ".ssh" / "config"

        self.config_path = Path(config_path)

    def parse(self) -> dict[str, SSHHost]:
        """Parse SSH config and return host definitions keyed by lowercase alias."""
        if not self.config_path.exists():
            logger.debug("SSH config not found: %s", self.config_path)
            return {}

        try:
            content = self.config_path.read_text()
        except OSError as e:
            logger.warning("Cannot read SSH config %s: %s", self.config_path, e)
            return {}

        hosts: dict[str, SSHHost] = {}
        defaults: dict[str, str] = {}
        aliases: list[str] = []
        options: dict[str, str] = {}

        def flush() -> None:
            for alias in aliases:
                hosts[alias.lower()] = self._build_host(alias, {**defaults, **options})

        for raw_line in content.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue

            host_match = _HOST_DIRECTIVE.match(line)
            if host_match:
                flush()
                patterns = host_match.group(1).split()
                aliases = [p for p in patterns if not any(c in p for c in "*?!")]
                # Wildcard blocks feed the defaults inherited by later aliases
                options = {} if aliases else defaults
                continue

            kv_match = _KEY_VALUE.match(line)
            if kv_match:
                key = kv_match.group(1).lower()
                value = kv_match.group(2).strip().strip('"')
                # First obtained value wins, as in ssh(1)
                options.setdefault(key, value)

        flush()
        logger.debug("Parsed %d host alias(es) from %s", len(hosts), self.config_path)
        return hosts

    @staticmethod
    def _build_host(alias: str, options: dict[str, str]) -> SSHHost:
        try:
            port = int(options.get("port", "22"))
        except ValueError:
            port = 22

        identity = options.get("identityfile")
        return SSHHost(
            name=alias,
            hostname=options.get("hostname", alias),
            user=options.get("user"),
            port=port,
            identity_file=os.path.expanduser(identity) if identity else None,
        )
