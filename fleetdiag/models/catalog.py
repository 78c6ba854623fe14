"""Static catalog of diagnostic steps."""

from dataclasses import dataclass


@dataclass(frozen=True)
class DiagnosticStep:
    """One fixed diagnostic command run against every host."""

    ordinal: int
    name: str
    command_line: str
    description: str
    produces_artifacts: bool = False

    def render(self, agent_binary: str) -> str:
        """Substitute the agent binary into the command template."""
        return self.command_line.format(agent=agent_binary)


STATUS_STEP = DiagnosticStep(
    ordinal=1,
    name="Agent Status",
    command_line="{agent} show",
    description="Query agent status, resource identity and service health",
)

HEALTH_STEP = DiagnosticStep(
    ordinal=2,
    name="Connectivity Check",
    command_line="{agent} check",
    description="Verify network connectivity to the required service endpoints",
)

EXPORT_STEP = DiagnosticStep(
    ordinal=3,
    name="Full Log Export",
    command_line="{agent} logs --full",
    description="Export the complete agent log archive",
    produces_artifacts=True,
)

DEFAULT_CATALOG: tuple[DiagnosticStep, ...] = (STATUS_STEP, HEALTH_STEP, EXPORT_STEP)
