"""SSH-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import asyncssh


@dataclass(frozen=True)
class Credentials:
    """Optional credentials for remote sessions.

    Any field left as None falls back to the SSH config entry for the host,
    then to the identity of the current user.
    """

    username: str | None = None
    password: str | None = None
    identity_file: str | None = None


@dataclass
class SSHHost:
    """Connection details for a remote diagnostic target."""

    name: str
    hostname: str
    user: str | None = None
    port: int = 22
    identity_file: str | None = None
    password: str | None = field(default=None, repr=False)

    def with_credentials(self, credentials: Credentials | None) -> "SSHHost":
        """Return a copy with explicit credentials layered on top."""
        if credentials is None:
            return self
        return SSHHost(
            name=self.name,
            hostname=self.hostname,
            user=credentials.username or self.user,
            port=self.port,
            identity_file=credentials.identity_file or self.identity_file,
            password=credentials.password or self.password,
        )


@dataclass
class PooledConnection:
    """An open SSH session owned by one host run."""

    connection: "asyncssh.SSHClientConnection"
    opened_at: datetime = field(default_factory=datetime.now)

    @property
    def is_stale(self) -> bool:
        """Check if connection was closed."""
        return bool(self.connection.is_closed())
