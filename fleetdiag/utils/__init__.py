"""Utilities for fleetdiag."""

from fleetdiag.utils.console import ColorfulFormatter, configure_logging
from fleetdiag.utils.hostname import display_name, get_local_hostname, is_local_target
from fleetdiag.utils.ping import check_host_online, probe_reachability
from fleetdiag.utils.polling import Clock, PollResult, SystemClock, poll_until
from fleetdiag.utils.shell import decode_output, in_directory, pgrep_command, quote_path

__all__ = [
    "check_host_online",
    "Clock",
    "ColorfulFormatter",
    "configure_logging",
    "decode_output",
    "display_name",
    "get_local_hostname",
    "in_directory",
    "is_local_target",
    "pgrep_command",
    "poll_until",
    "PollResult",
    "probe_reachability",
    "quote_path",
    "SystemClock",
]
