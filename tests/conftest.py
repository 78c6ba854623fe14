"""Shared fixtures for fleetdiag tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

from fleetdiag.config import Config, HostKeyVerifier, Settings, SSHConfigParser
from fleetdiag.dependencies import SessionContext
from fleetdiag.models import CommandResult
from fleetdiag.services.executors import LocalBackend
from fleetdiag.services.pool import ConnectionPool


class FakeClock:
    """Clock whose sleeps advance time instantly."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedBackend(LocalBackend):
    """LocalBackend with scripted command outcomes.

    File operations stay real so artifacts land in the actual host directory.
    """

    def __init__(
        self,
        host_name: str = "testhost",
        exit_codes: dict[str, int] | None = None,
        artifact_name: str | None = None,
        running_polls: int = 0,
    ) -> None:
        super().__init__(host_name)
        self.exit_codes = exit_codes or {}
        self.artifact_name = artifact_name
        self.running_polls = running_polls
        self.commands: list[tuple[str, str | None]] = []
        self.on_run: Callable[[str], None] | None = None

    async def run(
        self,
        command: str,
        timeout: float | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        self.commands.append((command, cwd))
        if self.on_run is not None:
            self.on_run(command)

        code = 0
        for fragment, returncode in self.exit_codes.items():
            if fragment in command:
                code = returncode

        if command.endswith("logs --full") and self.artifact_name and cwd:
            Path(cwd, self.artifact_name).write_bytes(b"PK\x03\x04archive")

        return CommandResult.from_exit(f"output of {command}\n", "", code, duration=0.01)

    async def is_process_running(self, pattern: str) -> bool:
        if self.running_polls > 0:
            self.running_polls -= 1
            return True
        return False


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., Settings]:
    """Settings writing under tmp_path with short artifact waits."""

    def factory(**overrides: object) -> Settings:
        values: dict[str, object] = {
            "report_root": str(tmp_path / "reports"),
            "artifact_wait_local": 5.0,
            "artifact_wait_remote": 5.0,
            "poll_interval": 1.0,
            "probe_timeout": 1.0,
            "ssh_user": "tester",
        }
        values.update(overrides)
        return Settings(**values)  # type: ignore[arg-type]

    return factory


@pytest.fixture
def make_context(
    tmp_path: Path,
    fake_clock: FakeClock,
    make_settings: Callable[..., Settings],
) -> Callable[..., SessionContext]:
    """SessionContext factory isolated from the user's SSH configuration."""

    def factory(**overrides: object) -> SessionContext:
        config = Config(
            settings=make_settings(**overrides),
            parser=SSHConfigParser(tmp_path / "no_ssh_config"),
            host_keys=HostKeyVerifier(known_hosts_path="none", strict_checking=False),
        )
        pool = ConnectionPool(max_sessions=2, known_hosts=None, strict_host_key_checking=False)
        return SessionContext(config=config, pool=pool, clock=fake_clock)

    return factory


@pytest.fixture
def scripted_backend() -> Callable[..., ScriptedBackend]:
    return ScriptedBackend
