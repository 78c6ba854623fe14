"""Configuration module for fleetdiag.

Provides focused classes for different configuration concerns:
- Config: Main configuration class (aggregates all components)
- Settings: Environment variable configuration
- SSHConfigParser: Parses ~/.ssh/config files
- HostKeyVerifier: Manages SSH host key verification
- resolve_devices: Device list resolution
"""

from fleetdiag.config.devices import parse_device_lines, resolve_devices
from fleetdiag.config.host_keys import HostKeyVerifier
from fleetdiag.config.main import Config
from fleetdiag.config.parser import SSHConfigParser
from fleetdiag.config.settings import Settings

__all__ = [
    "Config",
    "HostKeyVerifier",
    "parse_device_lines",
    "resolve_devices",
    "Settings",
    "SSHConfigParser",
]
