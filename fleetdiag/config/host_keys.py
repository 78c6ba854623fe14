"""SSH host key verification settings.

Resolves which known_hosts file remote sessions verify against.
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class HostKeyVerifier:
    """Resolves the known_hosts policy for remote sessions.

    ``known_hosts_path`` may be a path, ``"none"`` to disable verification,
    or None for ``~/.ssh/known_hosts``. The file is looked up on first use,
    so a session that never goes remote never needs one. In strict mode a
    missing file is an error; otherwise verification is disabled with a
    warning.
    """

    def __init__(
        self,
        known_hosts_path: str | None = None,
        strict_checking: bool = True,
    ):
        self.strict_checking = strict_checking
        self._value = known_hosts_path
        self._known_hosts: str | None = None
        self._resolved = False

    def _resolve(self, value: str | None) -> str | None:
        if value and value.lower() == "none":
            logger.critical(
                "SSH host key verification DISABLED (FLEETDIAG_KNOWN_HOSTS=none). "
                "Only use this on trusted networks."
            )
            return None

        path = Path(os.path.expanduser(value)) if value else Path.home() / ".ssh" / "known_hosts"
        if path.exists():
            return str(path)

        if self.strict_checking:
            raise FileNotFoundError(
                f"known_hosts not found at {path}. Add target keys with "
                f"'ssh-keyscan <host> >> {path}', point FLEETDIAG_KNOWN_HOSTS at "
                "another file, or set FLEETDIAG_STRICT_HOST_KEY_CHECKING=false"
            )

        logger.warning("known_hosts not found at %s, host key verification disabled", path)
        return None

    def get_known_hosts_path(self) -> str | None:
        """Path to the known_hosts file, or None if verification is disabled.

        Raises:
            FileNotFoundError: In strict mode when the file does not exist
        """
        if not self._resolved:
            self._known_hosts = self._resolve(self._value)
            self._resolved = True
        return self._known_hosts

    def is_enabled(self) -> bool:
        return self.get_known_hosts_path() is not None
