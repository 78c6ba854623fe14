"""Artifact discovery, normalization and collection.

After the full log export step the agent may still be writing its archive,
so the collector waits for the export process to exit (bounded), lists the
step working directory, renames archives that carry a placeholder host
token, and for remote hosts copies them under the local host directory.
"""

import asyncio
import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, cast

from fleetdiag.models import ArtifactRecord, ArtifactStatus, FileEntry
from fleetdiag.utils.polling import Clock, PollResult, poll_until
from fleetdiag.utils.shell import process_pattern

if TYPE_CHECKING:
    from fleetdiag.config import Settings
    from fleetdiag.protocols import ExecutionBackend
    from fleetdiag.services.executors import RemoteBackend

logger = logging.getLogger(__name__)

# Clock skew allowance when comparing file times with the step start
MTIME_TOLERANCE = 2.0

_UNSAFE_DIR_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def host_directory_name(host_name: str) -> str:
    """Filesystem-safe directory name for a host.

    Lowercased, so names differing only in case share one directory.
    """
    cleaned = _UNSAFE_DIR_CHARS.sub("_", host_name.strip().lower())
    return cleaned.strip(".") or "host"


@dataclass
class CollectionResult:
    """Artifacts gathered for one host plus non-fatal problems."""

    artifacts: list[ArtifactRecord] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    remote_only: bool = False


class ArtifactCollector:
    """Collects the archives produced by the export step."""

    def __init__(
        self,
        report_root: Path,
        settings: "Settings",
        clock: Clock | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self.report_root = Path(report_root)
        self.settings = settings
        self.clock = clock
        self.cancel_event = cancel_event
        self._placeholder = re.compile(
            rf"(?<![A-Za-z0-9]){re.escape(settings.placeholder_token)}(?![A-Za-z0-9])",
            re.IGNORECASE,
        )

    def host_directory(self, host_name: str) -> Path:
        return self.report_root / host_directory_name(host_name)

    def prepare_host_directory(self, host_name: str) -> Path:
        """Create the host directory, emptying it if a previous run left files.

        Only this host's directory is touched.
        """
        directory = self.host_directory(host_name)
        if directory.exists():
            stale = list(directory.iterdir())
            for child in stale:
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()
            if stale:
                logger.info("Cleared %d stale item(s) from %s", len(stale), directory)
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def normalized_name(self, name: str, host_name: str) -> str | None:
        """File name with the placeholder host token replaced, or None if absent."""
        if not self._placeholder.search(name):
            return None
        return self._placeholder.sub(host_name, name)

    async def wait_for_export(self, backend: "ExecutionBackend") -> PollResult:
        """Wait until no export process remains running, bounded by the host ceiling."""
        ceiling = self.settings.artifact_wait_local if backend.is_local else self.settings.artifact_wait_remote
        pattern = process_pattern(self.settings.agent_binary)

        async def export_finished() -> bool:
            return not await backend.is_process_running(pattern)

        return await poll_until(
            export_finished,
            interval=self.settings.poll_interval,
            ceiling=ceiling,
            clock=self.clock,
            cancel_event=self.cancel_event,
        )

    async def discover(
        self,
        backend: "ExecutionBackend",
        directory: str,
        since: float,
    ) -> tuple[list[FileEntry], bool]:
        """List candidate artifacts.

        Files newer than ``since`` are the confident match. If none are, any
        file matching the artifact pattern is returned as a low-confidence
        match.

        Returns:
            Candidate files and whether the match is confident
        """
        files = await backend.list_files(directory, self.settings.artifact_pattern)
        fresh = [entry for entry in files if entry.mtime >= since - MTIME_TOLERANCE]
        if fresh:
            return fresh, True
        if files:
            logger.warning(
                "No artifact in %s on %s is newer than the export start; "
                "using %d pattern match(es) (low confidence)",
                directory,
                backend.host_name,
                len(files),
            )
            return files, False
        return [], True

    async def collect(
        self,
        backend: "ExecutionBackend",
        host_name: str,
        workdir: str,
        host_dir: Path,
        since: float,
    ) -> CollectionResult:
        """Wait for, discover, rename and (for remote hosts) copy artifacts.

        Args:
            backend: Backend of the host the export ran on
            host_name: Real host name to embed in placeholder file names
            workdir: Directory the export step ran in
            host_dir: Local directory receiving the artifacts
            since: Epoch time the export step started
        """
        outcome = CollectionResult()

        poll = await self.wait_for_export(backend)
        if poll.cancelled:
            outcome.warnings.append("Artifact wait interrupted by cancellation")
        elif not poll.satisfied:
            outcome.warnings.append(
                f"Export process still running after {poll.elapsed:.1f}s; collecting files present now"
            )

        files, confident = await self.discover(backend, workdir, since)
        if not files:
            outcome.warnings.append(
                f"No artifact matching '{self.settings.artifact_pattern}' found in {workdir}"
            )
            return outcome

        for entry in files:
            entry, rename_error = await self._normalize(backend, entry, host_name)
            if backend.is_local:
                record = ArtifactRecord(path=entry.path)
            else:
                record = await self._transfer(cast("RemoteBackend", backend), entry, host_dir)

            if rename_error is not None:
                outcome.warnings.append(rename_error)
                if record.status is ArtifactStatus.COLLECTED:
                    record.status = ArtifactStatus.RENAME_FAILED
                    record.note = rename_error
            if record.status is ArtifactStatus.REMOTE_ONLY:
                outcome.remote_only = True
                outcome.warnings.append(f"Artifact left on remote host: {record.describe()}")
            record.low_confidence = not confident
            outcome.artifacts.append(record)
            logger.info("Artifact for %s: %s", host_name, record.describe())

        return outcome

    async def _normalize(
        self,
        backend: "ExecutionBackend",
        entry: FileEntry,
        host_name: str,
    ) -> tuple[FileEntry, str | None]:
        new_name = self.normalized_name(entry.name, host_name)
        if new_name is None or new_name == entry.name:
            return entry, None

        directory = entry.path[: -len(entry.name)]
        target = f"{directory}{new_name}"
        try:
            await backend.rename_file(entry.path, target)
        except OSError as e:
            message = f"Could not rename {entry.name} to {new_name}: {e}"
            logger.warning("%s", message)
            return entry, message

        logger.debug("Renamed %s -> %s on %s", entry.name, new_name, backend.host_name)
        return FileEntry(path=target, name=new_name, mtime=entry.mtime, size=entry.size), None

    async def _transfer(
        self,
        backend: "RemoteBackend",
        entry: FileEntry,
        host_dir: Path,
    ) -> ArtifactRecord:
        """Copy a remote artifact locally: command channel first, then SFTP."""
        local_path = host_dir / entry.name
        try:
            data = await backend.read_file_bytes(entry.path)
            if entry.size and len(data) != entry.size:
                raise OSError(f"read {len(data)} of {entry.size} bytes")
            local_path.write_bytes(data)
            return ArtifactRecord(path=str(local_path))
        except OSError as e:
            logger.warning(
                "Copy of %s from %s over the session failed (%s), trying SFTP",
                entry.path,
                backend.host_name,
                e,
            )
            first_error = e

        transfer = await backend.download(entry.path, str(local_path))
        if transfer.success:
            return ArtifactRecord(path=str(local_path), note=f"copied via SFTP after: {first_error}")

        local_path.unlink(missing_ok=True)
        return ArtifactRecord(
            path=f"{backend.host_name}:{entry.path}",
            status=ArtifactStatus.REMOTE_ONLY,
            note=f"{first_error}; {transfer.message}",
        )
