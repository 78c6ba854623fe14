"""Command execution data models."""

from dataclasses import dataclass
from enum import Enum


class OutcomeKind(Enum):
    """Classification of a command or probe outcome.

    Callers branch on the kind instead of parsing exception messages.
    """

    SUCCESS = "success"
    NON_ZERO_EXIT = "non_zero_exit"
    NOT_FOUND = "not_found"
    SPAWN_FAILURE = "spawn_failure"
    TIMEOUT = "timeout"
    REMOTE_UNAVAILABLE = "remote_unavailable"
    CANCELLED = "cancelled"
    UNEXPECTED = "unexpected"


# Shells report "command not found" with this exit status
COMMAND_NOT_FOUND_EXIT = 127


@dataclass
class CommandResult:
    """Result of a single command execution (local or remote)."""

    output: str
    error: str
    returncode: int
    kind: OutcomeKind = OutcomeKind.SUCCESS
    duration: float = 0.0

    @classmethod
    def from_exit(
        cls,
        output: str,
        error: str,
        returncode: int,
        duration: float = 0.0,
    ) -> "CommandResult":
        """Build a result from a finished process, classifying its exit code."""
        if returncode == 0:
            kind = OutcomeKind.SUCCESS
        elif returncode == COMMAND_NOT_FOUND_EXIT:
            kind = OutcomeKind.NOT_FOUND
        else:
            kind = OutcomeKind.NON_ZERO_EXIT
        return cls(
            output=output,
            error=error,
            returncode=returncode,
            kind=kind,
            duration=duration,
        )

    @classmethod
    def failure(
        cls,
        kind: OutcomeKind,
        message: str,
        duration: float = 0.0,
        returncode: int = -1,
    ) -> "CommandResult":
        """Build a result for a command that never produced an exit code."""
        return cls(
            output="",
            error=message,
            returncode=returncode,
            kind=kind,
            duration=duration,
        )

    @property
    def success(self) -> bool:
        """True only for a clean zero exit."""
        return self.kind is OutcomeKind.SUCCESS

    @property
    def combined_output(self) -> str:
        """Stdout followed by stderr, as written to the consolidated log."""
        if not self.error:
            return self.output
        if not self.output:
            return self.error
        separator = "" if self.output.endswith("\n") else "\n"
        return f"{self.output}{separator}{self.error}"

    def describe_failure(self) -> str | None:
        """Short human readable reason, or None when successful."""
        if self.success:
            return None
        if self.kind is OutcomeKind.NON_ZERO_EXIT:
            return f"exited with code {self.returncode}"
        if self.kind is OutcomeKind.NOT_FOUND:
            return "command not found (is the agent installed?)"
        detail = self.error.strip().splitlines()[-1] if self.error.strip() else ""
        label = self.kind.value.replace("_", " ")
        return f"{label}: {detail}" if detail else label


@dataclass
class ProbeResult:
    """Outcome of a pre-flight capability probe."""

    kind: OutcomeKind
    reachable: bool
    message: str = ""
    remediation: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the target can run commands."""
        return self.kind is OutcomeKind.SUCCESS
