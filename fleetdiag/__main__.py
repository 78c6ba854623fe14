"""Command-line entry point for fleetdiag."""

import asyncio
import contextlib
import logging
import signal
from pathlib import Path
from typing import Optional

import typer

from fleetdiag.config import Config, Settings
from fleetdiag.dependencies import SessionContext
from fleetdiag.models import DEFAULT_CATALOG, Credentials
from fleetdiag.services import SessionAggregator
from fleetdiag.utils.console import configure_logging

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="fleetdiag",
    help="Run agent diagnostics across a fleet and build a consolidated report",
    add_completion=False,
)


async def _run_session(
    context: SessionContext,
    devices: Optional[Path],
    host: Optional[str],
) -> bool:
    """Run a session, turning SIGINT/SIGTERM into cooperative cancellation."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Unsupported on some platforms; Ctrl+C then stays a hard stop
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, context.cancel)

    aggregator = SessionAggregator(context)
    return await aggregator.run(devices_path=devices, host=host)


@app.command("run")
def run(
    devices: Optional[Path] = typer.Option(
        None, "--devices", "-d", help="Device list file: one host per line, '#' comments"
    ),
    host: Optional[str] = typer.Option(None, "--host", "-H", help="Run against a single host"),
    report_root: Optional[Path] = typer.Option(None, "--report-root", "-o", help="Report directory"),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-c", min=1, help="Hosts processed in parallel (default 1)"
    ),
    step_timeout: Optional[float] = typer.Option(
        None, "--step-timeout", min=0, help="Per-step timeout in seconds, 0 disables"
    ),
    continue_if_missing: Optional[bool] = typer.Option(
        None,
        "--continue-if-missing/--abort-if-missing",
        help="Continue when the agent is not installed locally",
    ),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="SSH user for remote hosts"),
    identity_file: Optional[str] = typer.Option(None, "--identity-file", "-i", help="SSH private key"),
    password: Optional[str] = typer.Option(
        None, "--password", envvar="FLEETDIAG_SSH_PASSWORD", show_default=False, help="SSH password"
    ),
) -> None:
    """Run the diagnostic catalog against every device."""
    config = Config.from_env()
    settings = config.settings
    if report_root is not None:
        settings.report_root = str(report_root)
    if concurrency is not None:
        settings.max_concurrent_hosts = concurrency
    if step_timeout is not None:
        settings.step_timeout = step_timeout
    if continue_if_missing is not None:
        settings.continue_without_agent = continue_if_missing

    configure_logging(settings.log_level, settings.log_colors)

    credentials = None
    if user or identity_file or password:
        credentials = Credentials(username=user, password=password, identity_file=identity_file)

    context = SessionContext.create(config, credentials=credentials)
    logger.info("Starting fleetdiag session %s", context.run_id)

    success = asyncio.run(_run_session(context, devices, host))

    typer.echo(f"Overall result: {'SUCCESS' if success else 'FAILED'}")
    if context.log_path.exists():
        typer.echo(f"Consolidated log: {context.log_path}")
    raise typer.Exit(code=0 if success else 1)


@app.command("catalog")
def catalog() -> None:
    """List the diagnostic steps run against every host."""
    settings = Settings.from_env()
    for step in DEFAULT_CATALOG:
        typer.echo(f"{step.ordinal}. {step.name}: {step.render(settings.agent_binary)}")
        typer.echo(f"   {step.description}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
