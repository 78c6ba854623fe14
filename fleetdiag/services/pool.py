"""SSH session management for host runs.

Locking Strategy:
- `_slots`: Semaphore capping concurrent remote sessions across the session
- `_meta_lock`: Protects the _connections dict and _host_locks dict structure
- Per-host locks: Protect connection creation/removal for specific hosts
- Lock acquisition order: Always per-host lock first, then meta-lock if needed

Each host run opens its connection once, reuses it for every step and the
artifact transfer, then releases it. Connections are never shared between
hosts.
"""

import asyncio
import logging
from typing import TYPE_CHECKING

import asyncssh

from fleetdiag.models import PooledConnection

if TYPE_CHECKING:
    from fleetdiag.config import HostKeyVerifier
    from fleetdiag.models import SSHHost

logger = logging.getLogger(__name__)


class ConnectionPool:
    """Bounded set of per-host SSH sessions."""

    def __init__(
        self,
        max_sessions: int = 4,
        known_hosts: str | None = None,
        strict_host_key_checking: bool = True,
        connect_timeout: float = 5.0,
        host_keys: "HostKeyVerifier | None" = None,
    ) -> None:
        """Initialize pool.

        Args:
            max_sessions: Maximum number of concurrent SSH sessions (must be > 0)
            known_hosts: Path to known_hosts file, or None to disable verification
            strict_host_key_checking: Whether to reject unknown host keys
            connect_timeout: Seconds allowed for the SSH handshake
            host_keys: Resolves known_hosts when the first session is opened;
                takes precedence over known_hosts

        Raises:
            ValueError: If max_sessions is not positive
        """
        if max_sessions <= 0:
            raise ValueError(f"max_sessions must be > 0, got {max_sessions}")

        self.max_sessions = max_sessions
        self.connect_timeout = connect_timeout
        self._slots = asyncio.Semaphore(max_sessions)
        self._connections: dict[str, PooledConnection] = {}
        self._host_locks: dict[str, asyncio.Lock] = {}
        self._meta_lock = asyncio.Lock()

        self._known_hosts = known_hosts
        self._host_keys = host_keys
        self._strict_host_key = strict_host_key_checking

        if host_keys is None and known_hosts is None:
            self._warn_verification_disabled()
        logger.debug("ConnectionPool initialized (max_sessions=%d)", max_sessions)

    @staticmethod
    def _warn_verification_disabled() -> None:
        logger.warning(
            "SSH host key verification DISABLED. "
            "Set FLEETDIAG_KNOWN_HOSTS to a valid known_hosts file path."
        )

    def _resolve_known_hosts(self) -> str | None:
        """known_hosts for new sessions, looked up on first use.

        Raises:
            FileNotFoundError: Strict checking without a known_hosts file
        """
        if self._host_keys is not None:
            self._known_hosts = self._host_keys.get_known_hosts_path()
            self._host_keys = None
            if self._known_hosts is None:
                self._warn_verification_disabled()
        return self._known_hosts

    async def _get_host_lock(self, host_name: str) -> asyncio.Lock:
        async with self._meta_lock:
            if host_name not in self._host_locks:
                self._host_locks[host_name] = asyncio.Lock()
            return self._host_locks[host_name]

    async def _connect(self, host: "SSHHost", known_hosts: str | None) -> asyncssh.SSHClientConnection:
        client_keys = [host.identity_file] if host.identity_file else None
        return await asyncio.wait_for(
            asyncssh.connect(
                host.hostname,
                port=host.port,
                username=host.user,
                password=host.password,
                known_hosts=known_hosts,
                client_keys=client_keys,
            ),
            timeout=self.connect_timeout,
        )

    async def get_connection(self, host: "SSHHost") -> asyncssh.SSHClientConnection:
        """Get the open session for a host, creating it if needed.

        Creating a session takes one of the pool's slots; the slot is given
        back by remove_connection().

        Raises:
            asyncssh.Error, OSError, TimeoutError: If the session cannot be opened
            FileNotFoundError: Strict checking without a known_hosts file
        """
        host_lock = await self._get_host_lock(host.name)

        async with host_lock:
            pooled = self._connections.get(host.name)
            if pooled and not pooled.is_stale:
                logger.debug("Reusing session to %s", host.name)
                return pooled.connection

            if pooled and pooled.is_stale:
                logger.info("Session to %s was closed, reopening", host.name)
                await self._drop(host.name)

            known_hosts = self._resolve_known_hosts()
            await self._slots.acquire()
            logger.info(
                "Opening SSH session to %s (%s@%s:%d)",
                host.name,
                host.user,
                host.hostname,
                host.port,
            )
            try:
                try:
                    conn = await self._connect(host, known_hosts)
                except asyncssh.HostKeyNotVerifiable as e:
                    if self._strict_host_key:
                        logger.error(
                            "Host key verification failed for %s: %s. Add the host key to %s "
                            "or set FLEETDIAG_STRICT_HOST_KEY_CHECKING=false",
                            host.name,
                            e,
                            self._known_hosts,
                        )
                        raise
                    logger.warning(
                        "Host key not verified for %s (strict mode disabled): %s",
                        host.name,
                        e,
                    )
                    conn = await self._connect(host, None)
            except BaseException:
                self._slots.release()
                raise

            async with self._meta_lock:
                self._connections[host.name] = PooledConnection(connection=conn)

            logger.debug(
                "SSH session established to %s (open=%d/%d)",
                host.name,
                len(self._connections),
                self.max_sessions,
            )
            return conn

    async def _drop(self, host_name: str) -> None:
        """Close and forget a session. Caller holds the host lock."""
        async with self._meta_lock:
            pooled = self._connections.pop(host_name, None)
        if pooled is None:
            return
        pooled.connection.close()
        self._slots.release()

    async def remove_connection(self, host_name: str) -> None:
        """Close the session for a host and free its slot.

        Safe to call even if no session is open.
        """
        host_lock = await self._get_host_lock(host_name)
        async with host_lock:
            if host_name in self._connections:
                logger.debug("Closing SSH session to %s", host_name)
                await self._drop(host_name)

    async def close_all(self) -> None:
        """Close all sessions."""
        async with self._meta_lock:
            host_names = list(self._connections.keys())

        if host_names:
            logger.info("Closing %d remaining SSH session(s)", len(host_names))
        for host_name in host_names:
            await self.remove_connection(host_name)

    @property
    def open_sessions(self) -> int:
        """Number of sessions currently open."""
        return len(self._connections)

    @property
    def active_hosts(self) -> list[str]:
        """Hosts with an open session."""
        return list(self._connections.keys())
