"""Host reachability probing."""

import asyncio

from fleetdiag.models import OutcomeKind, ProbeResult


async def check_host_online(hostname: str, port: int, timeout: float = 2.0) -> bool:
    """Check if a host is reachable via TCP connection.

    Args:
        hostname: Host to check.
        port: Port to connect to (usually SSH port).
        timeout: Connection timeout in seconds.

    Returns:
        True if host is reachable, False otherwise.
    """
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(hostname, port),
            timeout=timeout,
        )
        writer.close()
        await writer.wait_closed()
        return True
    except (TimeoutError, OSError):
        return False


async def probe_reachability(hostname: str, port: int, timeout: float) -> ProbeResult:
    """Basic reachability probe for the remote pre-flight."""
    if await check_host_online(hostname, port, timeout):
        return ProbeResult(
            kind=OutcomeKind.SUCCESS,
            reachable=True,
            message=f"{hostname}:{port} reachable",
        )
    return ProbeResult(
        kind=OutcomeKind.REMOTE_UNAVAILABLE,
        reachable=False,
        message=f"{hostname}:{port} did not answer within {timeout:g}s",
        remediation=(
            "Check that the host is powered on, resolvable and that the "
            f"firewall allows TCP port {port}"
        ),
    )
