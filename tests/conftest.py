"""
Pytest configuration for controller-tools tests.

Hardware is never touched: sysfs is a temporary directory tree, hidapi,
evdev and D-Bus are replaced with mocks per test.
"""

import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest

import controller_tools.config as config
from controller_tools.controllers.hid_device import HidDeviceInfo


@pytest.fixture(autouse=True)
def db_path(tmp_path, monkeypatch):
    """Every test gets its own settings database."""
    path = tmp_path / "data" / "controller_tools.db"
    monkeypatch.setattr(config, "DB_PATH", path)
    return path


class FakeSysfs:
    """Minimal /sys layout: devices plus class symlinks into them."""

    def __init__(self, root: Path):
        self.root = root
        self.devices = root / "devices"
        self.hidraw = root / "class" / "hidraw"
        self.input = root / "class" / "input"
        self.power_supply = root / "class" / "power_supply"
        for d in (self.devices, self.hidraw, self.input, self.power_supply):
            d.mkdir(parents=True, exist_ok=True)

    def add_device(self, *parts: str) -> Path:
        path = self.devices.joinpath(*parts)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def add_hidraw(self, node: str, device: Path, hid_id: str | None = None) -> str:
        (self.hidraw / node).mkdir(exist_ok=True)
        os.symlink(device, self.hidraw / node / "device")
        if hid_id:
            (device / "uevent").write_text(f"DRIVER=playstation\nHID_ID={hid_id}\nHID_NAME=Controller\n")
        return f"/dev/{node}"

    def add_input(self, event: str, input_device: Path) -> str:
        (self.input / event).mkdir(exist_ok=True)
        os.symlink(input_device, self.input / event / "device")
        return f"/dev/input/{event}"

    def add_power_supply(
        self,
        name: str,
        device: Path,
        capacity: str | None = "50",
        status: str = "Discharging",
        scope: str | None = "Device",
        ps_type: str = "Battery",
        capacity_level: str | None = None,
    ) -> Path:
        ps = self.power_supply / name
        ps.mkdir()
        os.symlink(device, ps / "device")
        (ps / "type").write_text(ps_type + "\n")
        (ps / "status").write_text(status + "\n")
        if scope is not None:
            (ps / "scope").write_text(scope + "\n")
        if capacity is not None:
            (ps / "capacity").write_text(capacity + "\n")
        if capacity_level is not None:
            (ps / "capacity_level").write_text(capacity_level + "\n")
        return ps


@pytest.fixture
def sysfs(tmp_path, monkeypatch):
    fake = FakeSysfs(tmp_path / "sys")
    monkeypatch.setattr(config, "SYSFS_HIDRAW", str(fake.hidraw))
    monkeypatch.setattr(config, "SYSFS_INPUT", str(fake.input))
    monkeypatch.setattr(config, "SYSFS_POWER_SUPPLY", str(fake.power_supply))
    return fake


@pytest.fixture
def make_device():
    """Factory for HidDeviceInfo with sensible defaults."""

    def _make(vendor_id=0x054C, product_id=0x0CE6, path="/dev/hidraw0", serial="", bus_type=0x01, **kwargs):
        return HidDeviceInfo(
            path=path,
            vendor_id=vendor_id,
            product_id=product_id,
            serial_number=serial,
            bus_type=bus_type,
            **kwargs,
        )

    return _make


@pytest.fixture
def mock_bus():
    """A dasbus-like bus whose ObjectManager returns `bus.objects`."""
    bus = MagicMock()
    bus.objects = {}
    obj_manager = MagicMock()
    obj_manager.GetManagedObjects.side_effect = lambda: bus.objects
    device_proxy = MagicMock()

    def get_proxy(service, path, interface=None):
        if interface == "org.freedesktop.DBus.ObjectManager":
            return obj_manager
        return device_proxy

    bus.get_proxy.side_effect = get_proxy
    bus.device_proxy = device_proxy
    return bus
