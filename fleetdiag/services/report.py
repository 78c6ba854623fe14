"""Consolidated session log.

A single ReportWriter owns the log file; every write goes through one
asyncio.Lock. Each host writes through a HostLog which either streams its
lines immediately (sequential sessions) or buffers them and emits the host
block in one piece (concurrent sessions).
"""

import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import IO, TYPE_CHECKING

from fleetdiag.models import ArtifactStatus, OutcomeKind

if TYPE_CHECKING:
    from fleetdiag.config import Settings
    from fleetdiag.models import DiagnosticStep, HostResult, SessionResult, StepResult

logger = logging.getLogger(__name__)

RULE = "=" * 80
SUB_RULE = "-" * 80
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _ts(value: datetime | None) -> str:
    return value.strftime(TIMESTAMP_FORMAT) if value else "-"


class ReportWriter:
    """Append-only writer for the consolidated log."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()
        self._handle: IO[str] | None = None

    def open(self) -> None:
        """Create the report directory and a fresh log file.

        Raises:
            OSError: If the file cannot be created
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # "x" refuses to reuse a previous run's log
        self._handle = self.path.open("x", encoding="utf-8")
        logger.info("Writing consolidated log to %s", self.path)

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    async def write_lines(self, lines: Iterable[str]) -> None:
        """Append lines and flush, serialized with every other writer."""
        if self._handle is None:
            raise RuntimeError("ReportWriter is not open")
        async with self._lock:
            for line in lines:
                self._handle.write(f"{line}\n")
            self._handle.flush()

    def host_log(self, host_name: str, buffered: bool = False) -> "HostLog":
        return HostLog(self, host_name, buffered=buffered)

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None


class HostLog:
    """Per-host narrative channel into the consolidated log."""

    def __init__(self, writer: ReportWriter, host_name: str, buffered: bool = False) -> None:
        self.writer = writer
        self.host_name = host_name
        self.buffered = buffered
        self._pending: list[str] = []

    async def write(self, lines: Iterable[str]) -> None:
        if self.buffered:
            self._pending.extend(lines)
        else:
            await self.writer.write_lines(lines)

    async def flush(self) -> None:
        """Emit buffered lines as one contiguous block."""
        if self._pending:
            pending, self._pending = self._pending, []
            await self.writer.write_lines(pending)


def render_session_header(
    run_id: str,
    started_at: datetime,
    settings: "Settings",
    devices: list[str],
    device_source: str,
) -> list[str]:
    return [
        RULE,
        "FLEET AGENT DIAGNOSTICS - CONSOLIDATED LOG",
        RULE,
        f"Run ID:            {run_id}",
        f"Started:           {_ts(started_at)}",
        f"Device source:     {device_source}",
        f"Devices ({len(devices)}):       {', '.join(devices)}",
        f"Agent binary:      {settings.agent_binary}",
        f"Step timeout:      {settings.step_timeout:g}s" if settings.step_timeout > 0 else "Step timeout:      none",
        f"Host concurrency:  {settings.max_concurrent_hosts}",
        f"Report root:       {settings.report_root}",
        RULE,
        "",
    ]


def render_device_header(host_name: str, is_local: bool, started_at: datetime) -> list[str]:
    mode = "local" if is_local else "remote"
    return [
        RULE,
        f"DEVICE: {host_name} ({mode})",
        f"Started: {_ts(started_at)}",
        RULE,
    ]


def render_step_start(step: "DiagnosticStep", command: str, started_at: datetime) -> list[str]:
    return [
        "",
        SUB_RULE,
        f"STEP {step.ordinal}: {step.name}",
        f"Command:     {command}",
        f"Description: {step.description}",
        f"Timestamp:   {_ts(started_at)}",
        SUB_RULE,
    ]


def render_step_result(result: "StepResult") -> list[str]:
    output = result.captured_output.rstrip("\n")
    lines = ["Output:"]
    if output:
        lines.extend(f"  {line}" for line in output.splitlines())
    else:
        lines.append("  (no output)")
    lines.extend(
        [
            f"Duration:    {result.duration_seconds:.2f}s",
            f"Exit code:   {result.exit_code}",
            f"Status:      {'SUCCESS' if result.success else 'FAILED'}",
        ]
    )
    if result.error:
        lines.append(f"Error:       {result.error}")
    return lines


def render_host_summary(host: "HostResult") -> list[str]:
    lines = [
        "",
        SUB_RULE,
        f"SUMMARY FOR {host.host_name}: {'SUCCESS' if host.overall_success else 'FAILED'}",
        f"Steps run:   {len(host.step_results)} "
        f"({sum(1 for s in host.step_results if s.success)} succeeded)",
        f"Duration:    {host.duration_seconds:.2f}s",
    ]
    if host.aborted_reason:
        lines.append(f"Aborted:     {host.aborted_reason}")
    for artifact in host.artifacts:
        lines.append(f"Artifact:    {artifact.describe()}")
    for warning in host.warnings:
        lines.append(f"Warning:     {warning}")
    for error in host.errors:
        lines.append(f"Error:       {error}")
    lines.extend([SUB_RULE, ""])
    return lines


def build_recommendations(session: "SessionResult") -> list[str]:
    """Operator recommendations derived from the results."""
    recommendations: list[str] = []
    hosts = list(session.iter_hosts())

    if not session.agent_available:
        recommendations.append("Install the agent on this machine before re-running diagnostics.")

    remoting = [h.host_name for h in hosts if any(s.kind is OutcomeKind.REMOTE_UNAVAILABLE for s in h.step_results)]
    if remoting:
        recommendations.append(
            f"Enable remote execution (SSH) on: {', '.join(remoting)}, then re-run for those hosts."
        )

    not_found = sorted(
        {h.host_name for h in hosts for s in h.step_results if s.kind is OutcomeKind.NOT_FOUND}
    )
    if not_found:
        recommendations.append(f"Agent command not found on: {', '.join(not_found)}. Verify the installation.")

    failed_steps = sorted(
        {
            s.name
            for h in hosts
            for s in h.step_results
            if not s.success and s.kind in (OutcomeKind.NON_ZERO_EXIT, OutcomeKind.TIMEOUT)
        }
    )
    if failed_steps:
        recommendations.append(
            f"Review the output of failed steps ({', '.join(failed_steps)}) in the device sections above."
        )

    if any(a.status is ArtifactStatus.REMOTE_ONLY for h in hosts for a in h.artifacts):
        recommendations.append("Some archives stayed on remote hosts; copy them manually using the paths listed.")

    if not recommendations and session.success:
        recommendations.append("All devices completed diagnostics successfully; no action needed.")
    return recommendations


def render_session_summary(session: "SessionResult") -> list[str]:
    lines = [
        RULE,
        "SESSION SUMMARY",
        RULE,
        f"Total devices:     {session.total_hosts}",
        f"Successful:        {session.success_count}",
        f"Failed:            {session.failed_count}",
        f"Total errors:      {session.total_errors}",
        f"Total warnings:    {session.total_warnings}",
        "",
        "Device results:",
    ]
    for host in session.iter_hosts():
        lines.append(f"  {host.host_name:<30} {'SUCCESS' if host.overall_success else 'FAILED'}")

    lines.extend(["", "Artifacts created:"])
    paths = session.artifact_paths
    if paths:
        lines.extend(f"  {path}" for path in paths)
    else:
        lines.append("  (none)")

    lines.extend(["", "Recommendations:"])
    lines.extend(f"  - {item}" for item in build_recommendations(session))
    lines.append("")
    return lines


def render_footer(session: "SessionResult") -> list[str]:
    duration = ""
    if session.finished_at is not None:
        duration = f" in {(session.finished_at - session.started_at).total_seconds():.1f}s"
    status = "SUCCESS" if session.success else "FAILED"
    lines = [RULE, f"Session {session.run_id} finished {_ts(session.finished_at)}{duration}: {status}"]
    if session.aborted_reason:
        lines.append(f"Session aborted: {session.aborted_reason}")
    lines.extend([RULE, ""])
    return lines
