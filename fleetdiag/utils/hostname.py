"""Hostname detection utilities for local target identification."""

import socket

# Device-list entries that always mean "this machine"
LOCAL_SENTINELS = frozenset({"localhost", ".", "127.0.0.1", "::1"})


def get_local_hostname() -> str:
    """Get the hostname of the machine running the orchestrator.

    Returns:
        Hostname string (lowercase for consistent comparison)
    """
    return socket.gethostname().lower()


def is_local_target(target_host: str) -> bool:
    """Check if a device name refers to the current machine.

    Matches the local sentinels and the machine's own name, comparing
    short names against FQDNs in either direction (case-insensitive).

    Args:
        target_host: Device name from the device list

    Returns:
        True if the target is the local machine
    """
    if not target_host:
        return False

    target_lower = target_host.strip().lower()
    if target_lower in LOCAL_SENTINELS:
        return True

    local = get_local_hostname()
    if target_lower == local:
        return True

    return target_lower.split(".")[0] == local.split(".")[0]


def display_name(target_host: str) -> str:
    """Name used for reports and the host directory.

    Every alias of this machine (sentinels, short name, FQDN) maps to the
    same lowercase local hostname. Remote names are returned unchanged.
    """
    if is_local_target(target_host):
        return get_local_hostname()
    return target_host
