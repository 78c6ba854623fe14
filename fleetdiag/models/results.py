"""Per-step, per-host and per-session result records."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime

from fleetdiag.models.artifact import ArtifactRecord, ArtifactStatus
from fleetdiag.models.catalog import DiagnosticStep
from fleetdiag.models.command import CommandResult, OutcomeKind


@dataclass
class StepResult:
    """Outcome of one catalog step against one host."""

    ordinal: int
    name: str
    command: str
    success: bool
    duration_seconds: float
    exit_code: int
    captured_output: str
    error: str | None = None
    kind: OutcomeKind = OutcomeKind.SUCCESS
    started_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_command(
        cls,
        step: DiagnosticStep,
        command: str,
        result: CommandResult,
        started_at: datetime | None = None,
    ) -> "StepResult":
        """Record a backend result for a catalog step."""
        return cls(
            ordinal=step.ordinal,
            name=step.name,
            command=command,
            success=result.success,
            duration_seconds=result.duration,
            exit_code=result.returncode,
            captured_output=result.combined_output,
            error=result.describe_failure(),
            kind=result.kind,
            started_at=started_at or datetime.now(),
        )


@dataclass
class HostResult:
    """Aggregated outcome of the full catalog against one host.

    overall_success is derived, never stored: every recorded step must have
    succeeded and the run must not have been aborted (remoting unavailable,
    cancellation, skipped host).
    """

    host_name: str
    is_local: bool
    step_results: list[StepResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime | None = None
    artifacts: list[ArtifactRecord] = field(default_factory=list)
    aborted_reason: str | None = None

    @classmethod
    def skipped(cls, host_name: str, is_local: bool, reason: str) -> "HostResult":
        """A host that was never attempted."""
        now = datetime.now()
        return cls(
            host_name=host_name,
            is_local=is_local,
            warnings=[f"Not attempted: {reason}"],
            started_at=now,
            finished_at=now,
            aborted_reason=reason,
        )

    @property
    def overall_success(self) -> bool:
        """True iff every step succeeded and the run was not aborted."""
        if self.aborted_reason is not None:
            return False
        return all(step.success for step in self.step_results)

    @property
    def artifact_paths(self) -> list[str]:
        """Paths (local, or host-qualified remote references) of current artifacts."""
        return [a.path for a in self.artifacts if a.status is not ArtifactStatus.SUPERSEDED]

    @property
    def duration_seconds(self) -> float:
        """Wall-clock time for the host, zero until finished."""
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def record_step(self, step: StepResult) -> None:
        """Append a step result, mirroring failures into the error list."""
        self.step_results.append(step)
        if not step.success:
            self.errors.append(f"Step {step.ordinal} ({step.name}) failed: {step.error}")

    def supersede_artifacts(self) -> None:
        """Mark artifacts as replaced after a later run cleared the host directory."""
        for artifact in self.artifacts:
            artifact.status = ArtifactStatus.SUPERSEDED


@dataclass
class SessionResult:
    """All host results of one session plus derived statistics.

    Counts are always computed from the host map. Each run of a device has
    its own entry; repeated names are keyed ``name#2``, ``name#3`` and so on.
    """

    run_id: str
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime | None = None
    hosts: dict[str, HostResult] = field(default_factory=dict)
    agent_available: bool = True
    aborted_reason: str | None = None
    log_path: str | None = None

    def add(self, result: HostResult) -> str:
        """Store a host result under a key unique to this run.

        Returns:
            The key the result was stored under
        """
        key = result.host_name
        count = 1
        while key in self.hosts:
            count += 1
            key = f"{result.host_name}#{count}"
        self.hosts[key] = result
        return key

    def iter_hosts(self) -> Iterator[HostResult]:
        """Host results in deterministic (case-insensitive name) order."""
        for name in sorted(self.hosts, key=str.lower):
            yield self.hosts[name]

    @property
    def total_hosts(self) -> int:
        return len(self.hosts)

    @property
    def success_count(self) -> int:
        return sum(1 for host in self.hosts.values() if host.overall_success)

    @property
    def failed_count(self) -> int:
        return self.total_hosts - self.success_count

    @property
    def total_errors(self) -> int:
        return sum(len(host.errors) for host in self.hosts.values())

    @property
    def total_warnings(self) -> int:
        return sum(len(host.warnings) for host in self.hosts.values())

    @property
    def artifact_paths(self) -> list[str]:
        paths: list[str] = []
        for host in self.iter_hosts():
            paths.extend(host.artifact_paths)
        return paths

    @property
    def success(self) -> bool:
        """True iff the session ran to completion and every host succeeded."""
        if self.aborted_reason is not None or not self.agent_available:
            return False
        if not self.hosts:
            return False
        return all(host.overall_success for host in self.hosts.values())
