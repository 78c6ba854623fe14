"""Tests for SSHConfigParser."""

from pathlib import Path

import pytest

from fleetdiag.config.parser import SSHConfigParser


@pytest.fixture
def sample_ssh_config(tmp_path: Path) -> Path:
    """Create sample SSH config file."""
    config = tmp_path / "ssh_config"
    config.write_text("""
Host *
    User fleetops
    Port 2200

Host SRV01 srv01-alt
    HostName 192.168.1.100
    User admin
    IdentityFile ~/.ssh/fleet_key

Host srv02
    HostName = srv02.example.net
    Port 2222
    Port 2223

Host *.lab
    User labuser
""")
    return config


def test_parse_ssh_config(sample_ssh_config: Path) -> None:
    """Parser extracts literal aliases keyed by lowercase name."""
    hosts = SSHConfigParser(sample_ssh_config).parse()

    assert set(hosts) == {"srv01", "srv01-alt", "srv02"}
    assert hosts["srv01"].name == "SRV01"
    assert hosts["srv01"].hostname == "192.168.1.100"
    assert hosts["srv01"].user == "admin"


def test_wildcard_block_supplies_defaults(sample_ssh_config: Path) -> None:
    """Options from a leading Host * block apply to later aliases."""
    hosts = SSHConfigParser(sample_ssh_config).parse()

    assert hosts["srv01"].port == 2200
    assert hosts["srv02"].user == "fleetops"


def test_first_value_wins(sample_ssh_config: Path) -> None:
    """Repeated keywords keep the first value, as ssh does."""
    hosts = SSHConfigParser(sample_ssh_config).parse()

    assert hosts["srv02"].port == 2222
    assert hosts["srv02"].hostname == "srv02.example.net"


def test_identity_file_is_expanded(sample_ssh_config: Path) -> None:
    """IdentityFile paths are user-expanded."""
    hosts = SSHConfigParser(sample_ssh_config).parse()

    identity = hosts["srv01"].identity_file
    assert identity is not None
    assert not identity.startswith("~")
    assert identity.endswith("fleet_key")


def test_hostname_defaults_to_alias(tmp_path: Path) -> None:
    """An alias without HostName connects to the alias itself."""
    config = tmp_path / "ssh_config"
    config.write_text("Host bare\n    User root\n    Port notanumber\n")

    host = SSHConfigParser(config).parse()["bare"]

    assert host.hostname == "bare"
    assert host.port == 22


def test_missing_config_returns_empty(tmp_path: Path) -> None:
    """A missing SSH config is not an error."""
    assert SSHConfigParser(tmp_path / "absent").parse() == {}
