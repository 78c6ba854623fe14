"""Data models for fleetdiag."""

from fleetdiag.models.artifact import ArtifactRecord, ArtifactStatus, FileEntry
from fleetdiag.models.catalog import DEFAULT_CATALOG, DiagnosticStep
from fleetdiag.models.command import CommandResult, OutcomeKind, ProbeResult
from fleetdiag.models.results import HostResult, SessionResult, StepResult
from fleetdiag.models.ssh import Credentials, PooledConnection, SSHHost

__all__ = [
    "ArtifactRecord",
    "ArtifactStatus",
    "CommandResult",
    "Credentials",
    "DEFAULT_CATALOG",
    "DiagnosticStep",
    "FileEntry",
    "HostResult",
    "OutcomeKind",
    "PooledConnection",
    "ProbeResult",
    "SessionResult",
    "SSHHost",
    "StepResult",
]
