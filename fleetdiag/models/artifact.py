"""Artifact data models."""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class FileEntry:
    """A file seen in a step working directory (local or remote)."""

    path: str
    name: str
    mtime: float
    size: int = 0


class ArtifactStatus(Enum):
    """Where an artifact ended up."""

    COLLECTED = "collected"
    RENAME_FAILED = "rename_failed"
    REMOTE_ONLY = "remote_only"
    SUPERSEDED = "superseded"


@dataclass
class ArtifactRecord:
    """A generated archive and how it was collected."""

    path: str
    status: ArtifactStatus = ArtifactStatus.COLLECTED
    note: str | None = None
    low_confidence: bool = False

    def describe(self) -> str:
        """One-line description for the consolidated log."""
        text = self.path
        if self.status is ArtifactStatus.REMOTE_ONLY:
            text += " (available on remote host, not copied)"
        elif self.status is ArtifactStatus.RENAME_FAILED:
            text += " (original name kept)"
        elif self.status is ArtifactStatus.SUPERSEDED:
            text += " (replaced by a later run of the same host)"
        if self.low_confidence:
            text += " [low-confidence match]"
        return text
