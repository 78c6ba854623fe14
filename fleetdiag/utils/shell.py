"""Shell command helpers shared by the execution backends."""

import shlex


def quote_path(path: str) -> str:
    """Safely quote a path for shell commands."""
    return shlex.quote(path)


def decode_output(data: bytes | str | None) -> str:
    """Normalize process or SSH channel output to text."""
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def in_directory(directory: str, command: str) -> str:
    """Prefix a command so it runs inside ``directory``."""
    return f"cd {quote_path(directory)} && {command}"


def process_pattern(agent_binary: str) -> str:
    """Pattern matching a running full log export of the agent."""
    return f"{agent_binary} logs"


def pgrep_command(pattern: str) -> str:
    """``pgrep -f`` invocation that cannot match the shell running it.

    Wrapping the first character in a bracket expression keeps the pattern
    matching the target process while the literal text no longer appears in
    the invoking shell's own command line.
    """
    if not pattern:
        raise ValueError("pattern cannot be empty")
    guarded = f"[{pattern[0]}]{pattern[1:]}"
    return f"pgrep -f {shlex.quote(guarded)}"
