"""Session aggregation: drives a whole diagnostic session end to end."""

import asyncio
import logging
import shutil
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from fleetdiag.config.devices import resolve_devices
from fleetdiag.models import HostResult, SessionResult
from fleetdiag.services.coordinator import CANCELLED_REASON, HostRunCoordinator
from fleetdiag.services.report import (
    ReportWriter,
    render_footer,
    render_session_header,
    render_session_summary,
)
from fleetdiag.utils.hostname import display_name, is_local_target

if TYPE_CHECKING:
    from fleetdiag.dependencies import SessionContext

logger = logging.getLogger(__name__)

# Receives the warning text, returns True to continue anyway
ContinueDecision = Callable[[str], bool]


class SessionAggregator:
    """Resolves devices, runs every host and writes the consolidated log."""

    def __init__(
        self,
        context: "SessionContext",
        confirm_continue: ContinueDecision | None = None,
        coordinator: HostRunCoordinator | None = None,
    ) -> None:
        """Initialize the aggregator.

        Args:
            context: Session context shared with the coordinator
            confirm_continue: Decides whether to continue when the agent is
                not installed (defaults to the continue_without_agent setting)
            coordinator: Host coordinator override
        """
        self.context = context
        self.confirm_continue = confirm_continue or (lambda _msg: context.settings.continue_without_agent)
        self.coordinator = coordinator or HostRunCoordinator(context)

    async def run(
        self,
        devices_path: Path | str | None = None,
        host: str | None = None,
    ) -> bool:
        """Run the session and report overall success.

        Returns:
            True iff every host succeeded
        """
        session = await self.run_session(devices_path=devices_path, host=host)
        return session.success

    async def run_session(
        self,
        devices_path: Path | str | None = None,
        host: str | None = None,
    ) -> SessionResult:
        """Run the session and return the full result."""
        context = self.context
        session = SessionResult(run_id=context.run_id)
        writer = ReportWriter(context.log_path)

        try:
            devices = resolve_devices(devices_path, host)
            device_source = host or (str(devices_path) if devices_path else "local machine")

            if not self._check_agent(devices, session):
                return session

            writer.open()
            session.log_path = str(writer.path)
            await writer.write_lines(
                render_session_header(context.run_id, session.started_at, context.settings, devices, device_source)
            )
            if not session.agent_available:
                await writer.write_lines(
                    [f"WARNING: agent '{context.settings.agent_binary}' not found locally; continuing", ""]
                )

            await self._run_hosts(devices, session, writer)

            session.finished_at = datetime.now()
            await writer.write_lines(render_session_summary(session))
            await writer.write_lines(render_footer(session))
        except Exception as e:
            logger.exception("Session %s aborted: %s", context.run_id, e)
            session.aborted_reason = f"{type(e).__name__}: {e}"
            session.finished_at = datetime.now()
            if writer.is_open:
                try:
                    await writer.write_lines(render_footer(session))
                except OSError:
                    logger.debug("Could not write footer after abort")
        finally:
            writer.close()
            await context.cleanup()

        self._log_banner(session)
        return session

    def _check_agent(self, devices: list[str], session: SessionResult) -> bool:
        """Global pre-flight: is the agent installed where it will run locally?

        Returns:
            False if the operator declined to continue
        """
        if not any(is_local_target(device) for device in devices):
            return True

        agent = self.context.settings.agent_binary
        if shutil.which(agent) is not None:
            return True

        message = (
            f"Agent binary '{agent}' was not found on this machine. "
            "Local diagnostic steps are expected to fail."
        )
        logger.warning("%s", message)
        session.agent_available = False
        self.context.agent_available = False

        if not self.confirm_continue(message):
            session.aborted_reason = "agent not installed; operator declined to continue"
            session.finished_at = datetime.now()
            logger.error("Session aborted before any host was processed: %s", session.aborted_reason)
            return False

        logger.warning("Continuing without the agent; the report will document the failures")
        return True

    async def _run_hosts(self, devices: list[str], session: SessionResult, writer: ReportWriter) -> None:
        settings = self.context.settings
        collector = self.context.collector
        concurrency = max(1, settings.max_concurrent_hosts)
        buffered = concurrency > 1
        slots = asyncio.Semaphore(concurrency)
        # Aliases of one machine and repeated names share a host directory
        directory_locks: dict[Path, asyncio.Lock] = {}
        last_run: dict[Path, HostResult] = {}

        async def run_one(device: str) -> None:
            async with slots:
                directory = collector.host_directory(display_name(device))
                lock = directory_locks.setdefault(directory, asyncio.Lock())
                async with lock:
                    if self.context.cancelled:
                        result = HostResult.skipped(device, is_local_target(device), CANCELLED_REASON)
                        await writer.write_lines([f"DEVICE: {device} not attempted ({CANCELLED_REASON})", ""])
                    else:
                        previous = last_run.get(directory)
                        if previous is not None and previous.artifacts:
                            logger.warning(
                                "%s reuses %s; artifacts of the earlier %s run are replaced",
                                device,
                                directory,
                                previous.host_name,
                            )
                            previous.supersede_artifacts()
                        log = writer.host_log(device, buffered=buffered)
                        try:
                            result = await self.coordinator.run_host(device, log)
                        finally:
                            await log.flush()
                        last_run[directory] = result
                    self._store(session, result)

        logger.info("Processing %d device(s) (concurrency=%d)", len(devices), concurrency)
        if concurrency == 1:
            for device in devices:
                await run_one(device)
        else:
            await asyncio.gather(*(run_one(device) for device in devices))

    @staticmethod
    def _store(session: SessionResult, result: HostResult) -> None:
        key = session.add(result)
        if key != result.host_name:
            logger.warning("Device %s ran more than once; this run is recorded as %s", result.host_name, key)

    @staticmethod
    def _log_banner(session: SessionResult) -> None:
        status = "SUCCESS" if session.success else "FAILED"
        logger.info(
            "Session %s %s: %d/%d device(s) succeeded, %d error(s), %d warning(s)",
            session.run_id,
            status,
            session.success_count,
            session.total_hosts,
            session.total_errors,
            session.total_warnings,
        )
        if session.log_path:
            logger.info("Consolidated log: %s", session.log_path)
