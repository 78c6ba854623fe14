"""Host run coordination: the full catalog against one host."""

import logging
import time
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from fleetdiag.models import CommandResult, HostResult, OutcomeKind, StepResult
from fleetdiag.services.connection import preflight
from fleetdiag.services.executors import LocalBackend, RemoteBackend
from fleetdiag.services.report import (
    HostLog,
    render_device_header,
    render_host_summary,
    render_step_result,
    render_step_start,
)
from fleetdiag.utils.hostname import display_name, is_local_target

if TYPE_CHECKING:
    from fleetdiag.dependencies import SessionContext
    from fleetdiag.protocols import ExecutionBackend

logger = logging.getLogger(__name__)

PREFLIGHT_STEP_NAME = "Remote Execution Pre-flight"
REMOTE_UNAVAILABLE_REASON = "remote execution unavailable"
CANCELLED_REASON = "session cancelled"


class HostRunCoordinator:
    """Drives the command catalog against one host.

    Every catalog step is attempted even when an earlier one fails. The only
    per-host short-circuits are a failed remote pre-flight and cancellation.
    """

    def __init__(self, context: "SessionContext") -> None:
        self.context = context

    async def run_host(self, host_name: str, log: HostLog | None = None) -> HostResult:
        """Run all steps against ``host_name`` and return its result.

        Args:
            host_name: Device name as given in the device list
            log: Narrative channel into the consolidated log
        """
        is_local = is_local_target(host_name)
        real_name = display_name(host_name)
        result = HostResult(host_name=host_name, is_local=is_local)

        logger.info("Starting diagnostics for %s (%s)", host_name, "local" if is_local else "remote")
        await self._write(log, render_device_header(real_name, is_local, result.started_at))

        try:
            host_dir = self.context.collector.prepare_host_directory(real_name)
        except OSError as e:
            result.errors.append(f"Cannot prepare artifact directory: {e}")
            result.aborted_reason = "artifact directory unavailable"
            return await self._finish(result, log)

        if is_local:
            backend = LocalBackend(real_name)
            await self._run_catalog(backend, result, log, str(host_dir), host_dir, real_name)
        else:
            await self._run_remote(host_name, result, log, host_dir)

        return await self._finish(result, log)

    async def _finish(self, result: HostResult, log: HostLog | None) -> HostResult:
        result.finished_at = datetime.now()
        await self._write(log, render_host_summary(result))
        logger.info(
            "Finished %s: %s (%d error(s), %d warning(s))",
            result.host_name,
            "SUCCESS" if result.overall_success else "FAILED",
            len(result.errors),
            len(result.warnings),
        )
        return result

    async def _run_remote(
        self,
        host_name: str,
        result: HostResult,
        log: HostLog | None,
        host_dir: Path,
    ) -> None:
        context = self.context
        host = context.config.resolve_remote_host(host_name, context.credentials)

        started = datetime.now()
        start = time.monotonic()
        probe, conn = await preflight(context.pool, host, context.settings.probe_timeout)
        if conn is None:
            step = StepResult(
                ordinal=0,
                name=PREFLIGHT_STEP_NAME,
                command=f"ssh -p {host.port} {host.user}@{host.hostname} true",
                success=False,
                duration_seconds=time.monotonic() - start,
                exit_code=-1,
                captured_output=probe.message,
                error=probe.message,
                kind=probe.kind,
                started_at=started,
            )
            result.record_step(step)
            if probe.remediation:
                result.warnings.append(probe.remediation)
            result.aborted_reason = REMOTE_UNAVAILABLE_REASON
            await self._write(log, [f"Pre-flight FAILED for {host_name}: {probe.message}"])
            await self._write(log, render_step_result(step))
            return

        try:
            backend = RemoteBackend(conn, host)
            workdir = context.remote_workdir
            try:
                await backend.ensure_directory(workdir)
            except OSError as e:
                result.warnings.append(f"Cannot create {workdir}, running in the login directory: {e}")
                workdir = "."

            remote_only = await self._run_catalog(backend, result, log, workdir, host_dir, host_name)

            if workdir != "." and not remote_only:
                try:
                    await backend.remove_directory(workdir)
                except OSError as e:
                    result.warnings.append(f"Remote working directory not removed: {e}")
        finally:
            await context.pool.remove_connection(host.name)

    async def _run_catalog(
        self,
        backend: "ExecutionBackend",
        result: HostResult,
        log: HostLog | None,
        workdir: str,
        host_dir: Path,
        real_name: str,
    ) -> bool:
        """Run every catalog step in order.

        Returns:
            True if any artifact had to be left on the remote host
        """
        settings = self.context.settings
        catalog = self.context.catalog
        remote_only = False

        for index, step in enumerate(catalog):
            if self.context.cancelled:
                remaining = catalog[index:]
                for skipped in remaining:
                    result.warnings.append(
                        f"Step {skipped.ordinal} ({skipped.name}) not attempted: {CANCELLED_REASON}"
                    )
                result.aborted_reason = CANCELLED_REASON
                await self._write(log, ["", f"Session cancelled: {len(remaining)} step(s) not attempted"])
                break

            command = step.render(settings.agent_binary)
            started = datetime.now()
            since = time.time()
            await self._write(log, render_step_start(step, command, started))

            try:
                command_result = await backend.run(
                    command,
                    timeout=settings.effective_step_timeout,
                    cwd=workdir,
                )
            except Exception as e:
                logger.exception("Unexpected error running step %d on %s", step.ordinal, result.host_name)
                command_result = CommandResult.failure(OutcomeKind.UNEXPECTED, str(e))

            step_result = StepResult.from_command(step, command, command_result, started)
            result.record_step(step_result)
            await self._write(log, render_step_result(step_result))
            logger.info(
                "Step %d/%d %s on %s: %s (%.2fs)",
                step.ordinal,
                len(catalog),
                step.name,
                result.host_name,
                "SUCCESS" if step_result.success else "FAILED",
                step_result.duration_seconds,
            )

            if step.produces_artifacts:
                remote_only |= await self._collect(backend, result, log, workdir, host_dir, real_name, since)

        return remote_only

    async def _collect(
        self,
        backend: "ExecutionBackend",
        result: HostResult,
        log: HostLog | None,
        workdir: str,
        host_dir: Path,
        real_name: str,
        since: float,
    ) -> bool:
        try:
            collection = await self.context.collector.collect(backend, real_name, workdir, host_dir, since)
        except OSError as e:
            logger.warning("Artifact collection failed for %s: %s", result.host_name, e)
            result.warnings.append(f"Artifact collection failed: {e}")
            await self._write(log, [f"Artifact collection failed: {e}"])
            return False

        result.artifacts.extend(collection.artifacts)
        result.warnings.extend(collection.warnings)
        lines = [f"Artifact:    {artifact.describe()}" for artifact in collection.artifacts]
        lines.extend(f"Warning:     {warning}" for warning in collection.warnings)
        await self._write(log, lines)
        return collection.remote_only

    @staticmethod
    async def _write(log: HostLog | None, lines: Iterable[str]) -> None:
        if log is not None:
            await log.write(lines)
