"""Session context passed explicitly through the coordinator chain.

Created once at session start. After initialization only the session
aggregator updates it (agent availability, cancellation).
"""

import asyncio
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from fleetdiag.config import Config, Settings
from fleetdiag.models import DEFAULT_CATALOG, Credentials, DiagnosticStep
from fleetdiag.services.artifacts import ArtifactCollector
from fleetdiag.services.pool import ConnectionPool
from fleetdiag.utils.polling import Clock, SystemClock


def new_run_id() -> str:
    """Run identifier: UTC timestamp plus a short random suffix."""
    return f"{datetime.now(timezone.utc):%Y%m%d_%H%M%S}_{secrets.token_hex(3)}"


@dataclass
class SessionContext:
    """Everything a host run needs, with no module-level state.

    Example:
        context = SessionContext.create(Config.from_env())
        ok = await SessionAggregator(context).run(devices_path="hosts.txt")
    """

    config: Config
    pool: ConnectionPool
    run_id: str = field(default_factory=new_run_id)
    credentials: Credentials | None = None
    catalog: tuple[DiagnosticStep, ...] = DEFAULT_CATALOG
    clock: Clock = field(default_factory=SystemClock)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    agent_available: bool = True
    collector: ArtifactCollector = field(init=False)

    def __post_init__(self) -> None:
        self.collector = ArtifactCollector(
            report_root=self.report_root,
            settings=self.config.settings,
            clock=self.clock,
            cancel_event=self.cancel_event,
        )

    @classmethod
    def create(
        cls,
        config: Config | None = None,
        credentials: Credentials | None = None,
        clock: Clock | None = None,
    ) -> "SessionContext":
        """Create a context with a pool sized from the config."""
        config = config or Config.from_env()
        pool = ConnectionPool(
            max_sessions=config.settings.max_remote_sessions,
            strict_host_key_checking=config.strict_host_key_checking,
            connect_timeout=config.settings.probe_timeout,
            host_keys=config.host_keys,
        )
        return cls(
            config=config,
            pool=pool,
            credentials=credentials,
            clock=clock or SystemClock(),
        )

    @property
    def settings(self) -> Settings:
        return self.config.settings

    @property
    def report_root(self) -> Path:
        return self.config.report_root

    @property
    def log_path(self) -> Path:
        return self.report_root / f"fleetdiag_{self.run_id}.log"

    @property
    def remote_workdir(self) -> str:
        """Per-run remote working directory, the artifact correlation key."""
        return f"{self.settings.remote_workdir.rstrip('/')}/{self.run_id}"

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        """Request cancellation; checked at step boundaries and poll iterations."""
        self.cancel_event.set()

    async def cleanup(self) -> None:
        """Release resources (close all remote sessions)."""
        await self.pool.close_all()
