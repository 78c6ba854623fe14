"""Protocol interfaces for dependency inversion.

The coordinator and artifact collector depend on these contracts rather
than on the concrete local/remote backends, so tests can substitute
scripted implementations.

Usage Example:

    from fleetdiag.protocols import ExecutionBackend

    async def status(backend: ExecutionBackend) -> str:
        result = await backend.run("azcmagent show", timeout=60)
        return result.combined_output
"""

from typing import Protocol, runtime_checkable

from fleetdiag.models import CommandResult, FileEntry


@runtime_checkable
class ExecutionBackend(Protocol):
    """Runs commands and file operations against a single host.

    Implementations never raise for expected command failures: the outcome
    is classified in CommandResult.kind. File operations raise OSError.
    """

    host_name: str
    is_local: bool

    async def run(
        self,
        command: str,
        timeout: float | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        """Execute a shell command line and capture its output.

        Args:
            command: Command line to execute
            timeout: Seconds before the command is abandoned (None waits forever)
            cwd: Working directory for the command

        Returns:
            Command result with output, exit code, outcome kind and duration
        """
        ...

    async def is_process_running(self, pattern: str) -> bool:
        """Whether a process whose command line matches ``pattern`` is alive."""
        ...

    async def list_files(self, directory: str, pattern: str) -> list[FileEntry]:
        """Regular files directly inside ``directory`` matching a glob pattern."""
        ...

    async def rename_file(self, source: str, target: str) -> None:
        """Rename a file, refusing to overwrite.

        Raises:
            OSError: If the rename fails
        """
        ...

    async def ensure_directory(self, directory: str) -> None:
        """Create a directory and its parents if needed."""
        ...

    async def remove_directory(self, directory: str) -> None:
        """Remove a directory tree."""
        ...


__all__ = ["ExecutionBackend"]
