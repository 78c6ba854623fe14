"""Execution backends: run one command against one host.

LocalBackend spawns child processes through the shell on this machine.
RemoteBackend runs commands over an already pre-flighted SSH session.
Both classify outcomes into CommandResult.kind and never retry.
"""

import asyncio
import contextlib
import fnmatch
import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import asyncssh

from fleetdiag.models import CommandResult, FileEntry, OutcomeKind
from fleetdiag.utils.shell import decode_output, in_directory, pgrep_command, quote_path

if TYPE_CHECKING:
    from fleetdiag.models import SSHHost

logger = logging.getLogger(__name__)


@dataclass
class TransferResult:
    """Result of a file transfer operation."""

    success: bool
    message: str
    bytes_transferred: int = 0


class LocalBackend:
    """Runs commands on the machine hosting the orchestrator."""

    is_local = True

    def __init__(self, host_name: str) -> None:
        self.host_name = host_name

    async def run(
        self,
        command: str,
        timeout: float | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        """Spawn ``command`` through the shell and wait for it to exit.

        Stderr is captured separately and appended after stdout in
        CommandResult.combined_output.
        """
        start = time.monotonic()
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
            )
        except OSError as e:
            logger.error("Failed to start '%s' on %s: %s", command, self.host_name, e)
            return CommandResult.failure(
                OutcomeKind.SPAWN_FAILURE,
                f"Failed to start process: {e}",
                duration=time.monotonic() - start,
            )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except TimeoutError:
            await self._kill(process)
            logger.warning("'%s' on %s exceeded %ss timeout", command, self.host_name, timeout)
            return CommandResult.failure(
                OutcomeKind.TIMEOUT,
                f"Command did not finish within {timeout}s and was terminated",
                duration=time.monotonic() - start,
            )
        except asyncio.CancelledError:
            await self._kill(process)
            raise

        return CommandResult.from_exit(
            output=decode_output(stdout),
            error=decode_output(stderr),
            returncode=process.returncode if process.returncode is not None else -1,
            duration=time.monotonic() - start,
        )

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()

    async def is_process_running(self, pattern: str) -> bool:
        result = await self.run(pgrep_command(pattern), timeout=10)
        return result.returncode == 0

    async def list_files(self, directory: str, pattern: str) -> list[FileEntry]:
        root = Path(directory)
        if not root.is_dir():
            return []

        entries = []
        for path in root.iterdir():
            if not path.is_file() or not fnmatch.fnmatch(path.name, pattern):
                continue
            stat = path.stat()
            entries.append(FileEntry(path=str(path), name=path.name, mtime=stat.st_mtime, size=stat.st_size))
        return sorted(entries, key=lambda e: e.name)

    async def rename_file(self, source: str, target: str) -> None:
        target_path = Path(target)
        if target_path.exists():
            raise FileExistsError(f"{target} already exists")
        Path(source).rename(target_path)

    async def ensure_directory(self, directory: str) -> None:
        Path(directory).mkdir(parents=True, exist_ok=True)

    async def remove_directory(self, directory: str) -> None:
        shutil.rmtree(directory, ignore_errors=True)


class RemoteBackend:
    """Runs commands over an open SSH session to one host."""

    is_local = False

    def __init__(self, conn: asyncssh.SSHClientConnection, host: "SSHHost") -> None:
        self.conn = conn
        self.host = host
        self.host_name = host.name

    async def run(
        self,
        command: str,
        timeout: float | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        """Run ``command`` in a remote shell and wait for it to exit."""
        full_command = in_directory(cwd, command) if cwd else command
        start = time.monotonic()
        try:
            result = await asyncio.wait_for(self.conn.run(full_command, check=False), timeout=timeout)
        except TimeoutError:
            logger.warning("'%s' on %s exceeded %ss timeout", command, self.host_name, timeout)
            return CommandResult.failure(
                OutcomeKind.TIMEOUT,
                f"Command did not finish within {timeout}s and was abandoned",
                duration=time.monotonic() - start,
            )
        except (asyncssh.Error, OSError) as e:
            logger.error("Remote session to %s failed during '%s': %s", self.host_name, command, e)
            return CommandResult.failure(
                OutcomeKind.REMOTE_UNAVAILABLE,
                f"Remote session failure: {e}",
                duration=time.monotonic() - start,
            )

        # Killed by a signal: no exit status
        returncode = result.returncode if result.returncode is not None else -1
        return CommandResult.from_exit(
            output=decode_output(result.stdout),
            error=decode_output(result.stderr),
            returncode=returncode,
            duration=time.monotonic() - start,
        )

    async def _run_checked(self, command: str, what: str) -> asyncssh.SSHCompletedProcess:
        try:
            result = await self.conn.run(command, check=False)
        except asyncssh.Error as e:
            raise OSError(f"{what} on {self.host_name} failed: {e}") from e
        if result.returncode != 0:
            detail = decode_output(result.stderr).strip() or f"exit code {result.returncode}"
            raise OSError(f"{what} on {self.host_name} failed: {detail}")
        return result

    async def is_process_running(self, pattern: str) -> bool:
        result = await self.run(pgrep_command(pattern), timeout=10)
        return result.returncode == 0

    async def list_files(self, directory: str, pattern: str) -> list[FileEntry]:
        command = (
            f"find {quote_path(directory)} -maxdepth 1 -type f "
            f"-name {quote_path(pattern)} -printf '%T@\\t%s\\t%p\\n'"
        )
        result = await self.run(command, timeout=30)
        if not result.success:
            logger.debug("Listing %s on %s failed: %s", directory, self.host_name, result.error.strip())
            return []

        entries = []
        for line in result.output.splitlines():
            parts = line.split("\t", 2)
            if len(parts) != 3:
                continue
            mtime, size, path = parts
            try:
                entries.append(FileEntry(path=path, name=path.rsplit("/", 1)[-1], mtime=float(mtime), size=int(size)))
            except ValueError:
                logger.debug("Skipping unparsable listing line from %s: %r", self.host_name, line)
        return sorted(entries, key=lambda e: e.name)

    async def rename_file(self, source: str, target: str) -> None:
        await self._run_checked(
            f"[ ! -e {quote_path(target)} ] && mv -- {quote_path(source)} {quote_path(target)}",
            "Rename",
        )

    async def ensure_directory(self, directory: str) -> None:
        await self._run_checked(f"mkdir -p -- {quote_path(directory)}", "mkdir")

    async def remove_directory(self, directory: str) -> None:
        await self._run_checked(f"rm -rf -- {quote_path(directory)}", "Cleanup")

    async def read_file_bytes(self, path: str) -> bytes:
        """Read a remote file as bytes over the command channel.

        Raises:
            OSError: If the file cannot be read
        """
        try:
            result = await self.conn.run(f"cat -- {quote_path(path)}", check=False, encoding=None)
        except asyncssh.Error as e:
            raise OSError(f"Reading {path} on {self.host_name} failed: {e}") from e

        if result.returncode != 0:
            detail = decode_output(result.stderr).strip() or f"exit code {result.returncode}"
            raise OSError(f"Reading {path} on {self.host_name} failed: {detail}")

        stdout = result.stdout
        if stdout is None:
            return b""
        return stdout if isinstance(stdout, bytes) else stdout.encode("utf-8")

    async def download(self, remote_path: str, local_path: str) -> TransferResult:
        """Copy a remote file to this machine over SFTP."""
        try:
            async with self.conn.start_sftp_client() as sftp:
                await sftp.get(remote_path, local_path)
        except (asyncssh.Error, OSError) as e:
            return TransferResult(success=False, message=f"SFTP transfer failed: {e}")

        dest = Path(local_path)
        size = dest.stat().st_size if dest.exists() else 0
        return TransferResult(
            success=True,
            message=f"Downloaded {remote_path} -> {local_path}",
            bytes_transferred=size,
        )
