"""Tests for HostKeyVerifier."""

from pathlib import Path

import pytest

from fleetdiag.config.host_keys import HostKeyVerifier


def test_verifier_uses_custom_path(tmp_path: Path) -> None:
    """Verifier accepts custom known_hosts path."""
    custom = tmp_path / "my_known_hosts"
    custom.touch()

    verifier = HostKeyVerifier(known_hosts_path=str(custom))

    assert verifier.get_known_hosts_path() == str(custom)
    assert verifier.is_enabled()


def test_verifier_disabled_with_none() -> None:
    """Verifier can be disabled with 'none' path."""
    verifier = HostKeyVerifier(known_hosts_path="none")

    assert verifier.get_known_hosts_path() is None
    assert not verifier.is_enabled()


def test_strict_mode_requires_file_on_first_use(tmp_path: Path) -> None:
    """A missing file only fails when the path is first needed."""
    verifier = HostKeyVerifier(known_hosts_path=str(tmp_path / "missing"), strict_checking=True)

    with pytest.raises(FileNotFoundError, match="known_hosts not found"):
        verifier.get_known_hosts_path()


def test_file_created_before_first_use_is_found(tmp_path: Path) -> None:
    """Resolution happens at first use, not at construction."""
    known_hosts = tmp_path / "known_hosts"
    verifier = HostKeyVerifier(known_hosts_path=str(known_hosts), strict_checking=True)
    known_hosts.touch()

    assert verifier.get_known_hosts_path() == str(known_hosts)


def test_lenient_mode_disables_verification(tmp_path: Path) -> None:
    """Without strict checking a missing file disables verification."""
    verifier = HostKeyVerifier(known_hosts_path=str(tmp_path / "missing"), strict_checking=False)

    assert verifier.get_known_hosts_path() is None
    assert verifier.strict_checking is False
