"""Tests for the remote session pre-flight."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import asyncssh
import pytest

from fleetdiag.config import HostKeyVerifier
from fleetdiag.models import OutcomeKind, ProbeResult, SSHHost
from fleetdiag.services.connection import (
    REMOTE_REMEDIATION,
    RemoteSessionError,
    open_remote_session,
    preflight,
)
from fleetdiag.services.pool import ConnectionPool

REACHABLE = ProbeResult(kind=OutcomeKind.SUCCESS, reachable=True, message="reachable")


@pytest.fixture
def host() -> SSHHost:
    return SSHHost(name="srv01", hostname="10.0.0.5", user="admin")


@pytest.fixture
def pool() -> MagicMock:
    pool = MagicMock()
    pool.get_connection = AsyncMock()
    pool.remove_connection = AsyncMock()
    return pool


def test_remote_session_error_message() -> None:
    error = RemoteSessionError("srv01", OSError("connection refused"))

    assert str(error) == "Cannot open remote session to srv01: connection refused"
    assert isinstance(error.original_error, OSError)


@pytest.mark.asyncio
async def test_open_remote_session_runs_probe(pool: MagicMock, host: SSHHost) -> None:
    """A session is usable once a trivial command succeeds."""
    conn = AsyncMock()
    conn.run.return_value = MagicMock(returncode=0)
    pool.get_connection.return_value = conn

    assert await open_remote_session(pool, host, timeout=5) is conn
    conn.run.assert_called_once_with("true", check=False)
    pool.remove_connection.assert_not_called()


@pytest.mark.asyncio
async def test_open_remote_session_wraps_errors(pool: MagicMock, host: SSHHost) -> None:
    """Connect failures become RemoteSessionError and free the slot."""
    pool.get_connection.side_effect = asyncssh.PermissionDenied("auth failed")

    with pytest.raises(RemoteSessionError, match="auth failed"):
        await open_remote_session(pool, host, timeout=5)

    pool.remove_connection.assert_awaited_once_with("srv01")


@pytest.mark.asyncio
async def test_open_remote_session_rejects_failing_probe(pool: MagicMock, host: SSHHost) -> None:
    conn = AsyncMock()
    conn.run.return_value = MagicMock(returncode=1)
    pool.get_connection.return_value = conn

    with pytest.raises(RemoteSessionError, match="exited with code 1"):
        await open_remote_session(pool, host, timeout=5)

    pool.remove_connection.assert_awaited_once_with("srv01")


@pytest.mark.asyncio
async def test_preflight_unreachable(pool: MagicMock, host: SSHHost) -> None:
    """An unreachable host never gets a session attempt."""
    unreachable = ProbeResult(
        kind=OutcomeKind.REMOTE_UNAVAILABLE,
        reachable=False,
        message="10.0.0.5:22 did not answer within 5s",
        remediation="Check the firewall",
    )

    with patch("fleetdiag.services.connection.probe_reachability", new_callable=AsyncMock) as mock_probe:
        mock_probe.return_value = unreachable
        probe, conn = await preflight(pool, host, timeout=5)

    assert conn is None
    assert probe.kind is OutcomeKind.REMOTE_UNAVAILABLE
    assert REMOTE_REMEDIATION in probe.remediation
    pool.get_connection.assert_not_called()


@pytest.mark.asyncio
async def test_preflight_session_failure(pool: MagicMock, host: SSHHost) -> None:
    """Reachable hosts that refuse a session are remoting-unavailable."""
    pool.get_connection.side_effect = OSError("connection refused")

    with patch("fleetdiag.services.connection.probe_reachability", new_callable=AsyncMock) as mock_probe:
        mock_probe.return_value = REACHABLE
        probe, conn = await preflight(pool, host, timeout=5)

    assert conn is None
    assert probe.reachable is True
    assert probe.kind is OutcomeKind.REMOTE_UNAVAILABLE
    assert probe.remediation == REMOTE_REMEDIATION
    assert "connection refused" in probe.message


@pytest.mark.asyncio
async def test_preflight_success(pool: MagicMock, host: SSHHost) -> None:
    conn = AsyncMock()
    conn.run.return_value = MagicMock(returncode=0)
    pool.get_connection.return_value = conn

    with patch("fleetdiag.services.connection.probe_reachability", new_callable=AsyncMock) as mock_probe:
        mock_probe.return_value = REACHABLE
        probe, opened = await preflight(pool, host, timeout=5)

    assert probe.ok
    assert opened is conn


@pytest.mark.asyncio
async def test_preflight_missing_known_hosts_fails_only_that_host(host: SSHHost, tmp_path: Path) -> None:
    """A missing known_hosts file in strict mode is a per-host pre-flight failure."""
    verifier = HostKeyVerifier(known_hosts_path=str(tmp_path / "known_hosts"), strict_checking=True)
    real_pool = ConnectionPool(max_sessions=1, host_keys=verifier)

    with patch("fleetdiag.services.connection.probe_reachability", new_callable=AsyncMock) as mock_probe, patch(
        "asyncssh.connect", new_callable=AsyncMock
    ) as mock_connect:
        mock_probe.return_value = REACHABLE
        probe, conn = await preflight(real_pool, host, timeout=5)

    assert conn is None
    assert probe.kind is OutcomeKind.REMOTE_UNAVAILABLE
    assert "known_hosts not found" in probe.message
    mock_connect.assert_not_called()
