"""Tests for device list resolution."""

from pathlib import Path
from unittest.mock import patch

from fleetdiag.config.devices import parse_device_lines, resolve_devices


def test_comments_and_blank_lines_are_ignored(tmp_path: Path) -> None:
    """Two comments, a blank line and one host resolve to that host."""
    devices = tmp_path / "devices.txt"
    devices.write_text("# production\n\n# rack 4\nSRV01\n")

    assert resolve_devices(devices) == ["SRV01"]


def test_every_line_becomes_a_device_in_order(tmp_path: Path) -> None:
    """N non-comment lines give N devices in file order, trimmed."""
    devices = tmp_path / "devices.txt"
    devices.write_text("  web01  \nweb02\r\n\tdb01\nweb01\n")

    assert resolve_devices(devices) == ["web01", "web02", "db01", "web01"]


def test_missing_file_falls_back_to_local(tmp_path: Path) -> None:
    """A missing device list targets only the local machine."""
    with patch("fleetdiag.config.devices.get_local_hostname", return_value="myhost"):
        assert resolve_devices(tmp_path / "nope.txt") == ["myhost"]


def test_empty_file_falls_back_to_local(tmp_path: Path) -> None:
    """A list with only comments targets only the local machine."""
    devices = tmp_path / "devices.txt"
    devices.write_text("# nothing here\n\n")

    with patch("fleetdiag.config.devices.get_local_hostname", return_value="myhost"):
        assert resolve_devices(devices) == ["myhost"]


def test_no_list_targets_local() -> None:
    """Without a list or host the session runs locally."""
    with patch("fleetdiag.config.devices.get_local_hostname", return_value="myhost"):
        assert resolve_devices() == ["myhost"]


def test_single_host_takes_precedence(tmp_path: Path) -> None:
    """An explicit host overrides the device list."""
    devices = tmp_path / "devices.txt"
    devices.write_text("SRV01\nSRV02\n")

    assert resolve_devices(devices, host=" srv09 ") == ["srv09"]


def test_byte_order_mark_is_stripped(tmp_path: Path) -> None:
    """Lists saved with a UTF-8 BOM still parse the first host."""
    devices = tmp_path / "devices.txt"
    devices.write_bytes(b"\xef\xbb\xbfSRV01\nSRV02\n")

    assert resolve_devices(devices) == ["SRV01", "SRV02"]


def test_parse_device_lines_keeps_hash_inside_names() -> None:
    """Only lines starting with # are comments."""
    assert parse_device_lines("host#1\n  # comment\n") == ["host#1"]
