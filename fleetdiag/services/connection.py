"""Remote session pre-flight.

Before any catalog step runs against a remote host, two probes must pass:
a TCP reachability check on the SSH port, then opening a session and
running a trivial command on it.
"""

import asyncio
import logging
from typing import TYPE_CHECKING

import asyncssh

from fleetdiag.models import OutcomeKind, ProbeResult
from fleetdiag.utils.ping import probe_reachability

if TYPE_CHECKING:
    from fleetdiag.models import SSHHost
    from fleetdiag.services.pool import ConnectionPool

logger = logging.getLogger(__name__)

REMOTE_REMEDIATION = (
    "Remote execution must be enabled on the target: make sure sshd is "
    "running, the account is allowed to log in, and its host key is known"
)


class RemoteSessionError(Exception):
    """Failed to open or use a remote session."""

    def __init__(self, host_name: str, original_error: BaseException):
        """Initialize remote session error.

        Args:
            host_name: Name of the remote host
            original_error: Exception that caused the failure
        """
        self.host_name = host_name
        self.original_error = original_error
        detail = str(original_error) or type(original_error).__name__
        super().__init__(f"Cannot open remote session to {host_name}: {detail}")


async def open_remote_session(
    pool: "ConnectionPool",
    host: "SSHHost",
    timeout: float,
) -> asyncssh.SSHClientConnection:
    """Open a session and prove it can execute commands.

    Raises:
        RemoteSessionError: If the session cannot be opened or the probe
            command does not succeed
    """
    try:
        conn = await pool.get_connection(host)
        result = await asyncio.wait_for(conn.run("true", check=False), timeout=timeout)
    except (asyncssh.Error, OSError, TimeoutError) as e:
        await pool.remove_connection(host.name)
        raise RemoteSessionError(host.name, e) from e

    if result.returncode not in (0, None):
        await pool.remove_connection(host.name)
        raise RemoteSessionError(
            host.name,
            RuntimeError(f"probe command exited with code {result.returncode}"),
        )
    return conn


async def preflight(
    pool: "ConnectionPool",
    host: "SSHHost",
    timeout: float,
) -> tuple[ProbeResult, asyncssh.SSHClientConnection | None]:
    """Run both pre-flight probes.

    Returns:
        The probe outcome and, when it succeeded, the open session. The
        caller owns the session and must release it through the pool.
    """
    reach = await probe_reachability(host.hostname, host.port, timeout)
    if not reach.ok:
        logger.warning("Pre-flight: %s unreachable: %s", host.name, reach.message)
        reach.remediation = f"{reach.remediation}. {REMOTE_REMEDIATION}"
        return reach, None

    try:
        conn = await open_remote_session(pool, host, timeout)
    except RemoteSessionError as e:
        logger.warning("Pre-flight: %s", e)
        return (
            ProbeResult(
                kind=OutcomeKind.REMOTE_UNAVAILABLE,
                reachable=True,
                message=str(e),
                remediation=REMOTE_REMEDIATION,
            ),
            None,
        )

    logger.debug("Pre-flight passed for %s", host.name)
    return ProbeResult(kind=OutcomeKind.SUCCESS, reachable=True, message="remote execution available"), conn
