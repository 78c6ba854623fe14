"""Device list resolution.

Turns a plain-text device list (one host per line, blank lines and ``#``
comments ignored) into the ordered sequence of targets for a session.
"""

import logging
from pathlib import Path

from fleetdiag.utils.hostname import get_local_hostname

logger = logging.getLogger(__name__)


def parse_device_lines(content: str) -> list[str]:
    """Extract device names from device-list text, preserving file order.

    Repeated names are kept: each occurrence is an independent run.
    """
    devices: list[str] = []
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        devices.append(line)
    return devices


def resolve_devices(
    device_list: Path | str | None = None,
    host: str | None = None,
) -> list[str]:
    """Resolve the targets for a session.

    A single ``host`` takes precedence over ``device_list``. A missing,
    unreadable or empty list falls back to the local machine; that is
    logged as a warning and never fatal.

    Args:
        device_list: Path to a device-list file
        host: A single device name

    Returns:
        Non-empty ordered list of device names
    """
    if host and host.strip():
        return [host.strip()]

    local = get_local_hostname()
    if device_list is None:
        logger.info("No device list given, targeting local machine %s", local)
        return [local]

    path = Path(device_list)
    try:
        content = path.read_text(encoding="utf-8-sig")
    except FileNotFoundError:
        logger.warning("Device list %s not found, falling back to local machine %s", path, local)
        return [local]
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Cannot read device list %s (%s), falling back to local machine %s", path, e, local)
        return [local]

    devices = parse_device_lines(content)
    if not devices:
        logger.warning("Device list %s has no entries, falling back to local machine %s", path, local)
        return [local]

    duplicates = {name for name in devices if sum(d.lower() == name.lower() for d in devices) > 1}
    if duplicates:
        logger.warning("Device list repeats %s; each occurrence runs separately", ", ".join(sorted(duplicates)))

    logger.info("Resolved %d device(s) from %s", len(devices), path)
    return devices
