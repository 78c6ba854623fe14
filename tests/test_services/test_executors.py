"""Tests for the local and remote execution backends."""

import os
import time
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import asyncssh
import pytest

from fleetdiag.models import OutcomeKind, SSHHost
from fleetdiag.protocols import ExecutionBackend
from fleetdiag.services.executors import LocalBackend, RemoteBackend


@pytest.fixture
def local() -> LocalBackend:
    return LocalBackend("testhost")


@pytest.fixture
def mock_connection() -> AsyncMock:
    """Create a mock SSH connection."""
    conn = AsyncMock()
    return conn


@pytest.fixture
def remote(mock_connection: AsyncMock) -> RemoteBackend:
    return RemoteBackend(mock_connection, SSHHost(name="srv01", hostname="10.0.0.5", user="admin"))


def test_backends_satisfy_protocol(local: LocalBackend, remote: RemoteBackend) -> None:
    """Both backends implement ExecutionBackend."""
    assert isinstance(local, ExecutionBackend)
    assert isinstance(remote, ExecutionBackend)
    assert local.is_local is True
    assert remote.is_local is False


@pytest.mark.asyncio
async def test_local_run_success(local: LocalBackend) -> None:
    """A zero exit is a success with captured stdout."""
    result = await local.run("echo hello")

    assert result.success
    assert result.returncode == 0
    assert result.output.strip() == "hello"
    assert result.duration >= 0


@pytest.mark.asyncio
async def test_local_run_captures_stderr_after_stdout(local: LocalBackend) -> None:
    """Stderr is kept and appended after stdout; exit code recorded."""
    result = await local.run("echo out; echo err 1>&2; exit 3")

    assert result.kind is OutcomeKind.NON_ZERO_EXIT
    assert result.returncode == 3
    assert result.combined_output == "out\nerr\n"


@pytest.mark.asyncio
async def test_local_run_not_found(local: LocalBackend) -> None:
    """A missing command is classified as not found."""
    result = await local.run("definitely-not-a-real-command-fleetdiag")

    assert result.kind is OutcomeKind.NOT_FOUND
    assert result.returncode == 127


@pytest.mark.asyncio
async def test_local_run_timeout_kills_process(local: LocalBackend) -> None:
    """Commands exceeding the timeout are terminated."""
    start = time.monotonic()
    result = await local.run("exec sleep 10", timeout=0.2)

    assert result.kind is OutcomeKind.TIMEOUT
    assert result.returncode == -1
    assert time.monotonic() - start < 5


@pytest.mark.asyncio
async def test_local_run_uses_working_directory(local: LocalBackend, tmp_path: Path) -> None:
    """cwd sets the child's working directory."""
    result = await local.run("pwd", cwd=str(tmp_path))

    assert os.path.realpath(result.output.strip()) == os.path.realpath(tmp_path)


@pytest.mark.asyncio
async def test_local_run_spawn_failure(local: LocalBackend, tmp_path: Path) -> None:
    """A process that cannot start is a spawn failure, not an exception."""
    result = await local.run("true", cwd=str(tmp_path / "missing"))

    assert result.kind is OutcomeKind.SPAWN_FAILURE
    assert "Failed to start process" in result.error


@pytest.mark.asyncio
async def test_local_list_files_filters_pattern(local: LocalBackend, tmp_path: Path) -> None:
    """Only regular files matching the pattern are listed, sorted by name."""
    (tmp_path / "b.zip").write_bytes(b"bb")
    (tmp_path / "a.zip").write_bytes(b"a")
    (tmp_path / "notes.txt").write_text("x")
    (tmp_path / "dir.zip").mkdir()

    entries = await local.list_files(str(tmp_path), "*.zip")

    assert [e.name for e in entries] == ["a.zip", "b.zip"]
    assert entries[1].size == 2


@pytest.mark.asyncio
async def test_local_list_files_missing_directory(local: LocalBackend, tmp_path: Path) -> None:
    assert await local.list_files(str(tmp_path / "absent"), "*.zip") == []


@pytest.mark.asyncio
async def test_local_rename_refuses_overwrite(local: LocalBackend, tmp_path: Path) -> None:
    """Renaming onto an existing file raises instead of clobbering it."""
    source = tmp_path / "a.zip"
    target = tmp_path / "b.zip"
    source.write_text("new")
    target.write_text("old")

    with pytest.raises(FileExistsError):
        await local.rename_file(str(source), str(target))

    assert target.read_text() == "old"


@pytest.mark.asyncio
async def test_remote_run_success(remote: RemoteBackend, mock_connection: AsyncMock) -> None:
    """Remote output and exit code are captured."""
    mock_connection.run.return_value = MagicMock(stdout="status ok\n", stderr="", returncode=0)

    result = await remote.run("azcmagent show", timeout=30)

    assert result.success
    assert result.output == "status ok\n"
    mock_connection.run.assert_called_once_with("azcmagent show", check=False)


@pytest.mark.asyncio
async def test_remote_run_in_working_directory(remote: RemoteBackend, mock_connection: AsyncMock) -> None:
    """cwd is applied with a quoted cd prefix."""
    mock_connection.run.return_value = MagicMock(stdout="", stderr="", returncode=0)

    await remote.run("azcmagent logs --full", cwd="/tmp/fleetdiag/run 1")

    command = mock_connection.run.call_args[0][0]
    assert command == "cd '/tmp/fleetdiag/run 1' && azcmagent logs --full"


@pytest.mark.asyncio
async def test_remote_run_non_zero_exit(remote: RemoteBackend, mock_connection: AsyncMock) -> None:
    mock_connection.run.return_value = MagicMock(stdout="", stderr="endpoint unreachable\n", returncode=1)

    result = await remote.run("azcmagent check")

    assert result.kind is OutcomeKind.NON_ZERO_EXIT
    assert result.error == "endpoint unreachable\n"


@pytest.mark.asyncio
async def test_remote_run_killed_by_signal(remote: RemoteBackend, mock_connection: AsyncMock) -> None:
    """A missing exit status is recorded as -1."""
    mock_connection.run.return_value = MagicMock(stdout="", stderr="", returncode=None)

    result = await remote.run("azcmagent show")

    assert result.returncode == -1
    assert result.success is False


@pytest.mark.asyncio
async def test_remote_run_connection_lost(remote: RemoteBackend, mock_connection: AsyncMock) -> None:
    """Session failures are classified, never raised."""
    mock_connection.run.side_effect = asyncssh.ConnectionLost("connection reset")

    result = await remote.run("azcmagent show")

    assert result.kind is OutcomeKind.REMOTE_UNAVAILABLE
    assert "connection reset" in result.error


@pytest.mark.asyncio
async def test_remote_list_files_parses_find_output(remote: RemoteBackend, mock_connection: AsyncMock) -> None:
    """find -printf output becomes FileEntry records."""
    mock_connection.run.return_value = MagicMock(
        stdout="1700000000.5\t120\t/tmp/w/b.zip\ngarbage\n1700000001.0\t64\t/tmp/w/a.zip\n",
        stderr="",
        returncode=0,
    )

    entries = await remote.list_files("/tmp/w", "*.zip")

    assert [e.name for e in entries] == ["a.zip", "b.zip"]
    assert entries[1].path == "/tmp/w/b.zip"
    assert entries[1].mtime == 1700000000.5
    assert entries[1].size == 120


@pytest.mark.asyncio
async def test_remote_rename_failure_raises(remote: RemoteBackend, mock_connection: AsyncMock) -> None:
    """File operations raise OSError when the remote command fails."""
    mock_connection.run.return_value = MagicMock(stdout="", stderr="", returncode=1)

    with pytest.raises(OSError, match="Rename"):
        await remote.rename_file("/tmp/w/a.zip", "/tmp/w/b.zip")


@pytest.mark.asyncio
async def test_remote_read_file_bytes(remote: RemoteBackend, mock_connection: AsyncMock) -> None:
    """Files are read as raw bytes over the session."""
    mock_connection.run.return_value = MagicMock(stdout=b"PK\x03\x04", stderr=b"", returncode=0)

    data = await remote.read_file_bytes("/tmp/w/a.zip")

    assert data == b"PK\x03\x04"
    assert mock_connection.run.call_args.kwargs["encoding"] is None


@pytest.mark.asyncio
async def test_remote_download_uses_sftp(remote: RemoteBackend, mock_connection: AsyncMock, tmp_path: Path) -> None:
    """download() copies through an SFTP client."""
    local_path = tmp_path / "a.zip"
    mock_sftp = AsyncMock()

    async def fake_get(source: str, dest: str) -> None:
        Path(dest).write_bytes(b"12345")

    mock_sftp.get.side_effect = fake_get
    mock_ctx = MagicMock()
    mock_ctx.__aenter__ = AsyncMock(return_value=mock_sftp)
    mock_ctx.__aexit__ = AsyncMock(return_value=None)
    mock_connection.start_sftp_client = MagicMock(return_value=mock_ctx)

    result = await remote.download("/tmp/w/a.zip", str(local_path))

    assert result.success
    assert result.bytes_transferred == 5
    mock_sftp.get.assert_called_once_with("/tmp/w/a.zip", str(local_path))


@pytest.mark.asyncio
async def test_remote_download_failure(remote: RemoteBackend, mock_connection: AsyncMock, tmp_path: Path) -> None:
    mock_connection.start_sftp_client = MagicMock(side_effect=asyncssh.ChannelOpenError(2, "sftp disabled"))

    result = await remote.download("/tmp/w/a.zip", str(tmp_path / "a.zip"))

    assert result.success is False
    assert "SFTP transfer failed" in result.message
