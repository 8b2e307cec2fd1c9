import pytest
from pydantic import ValidationError

from controller_tools.models import (
    ConnectionType,
    Controller,
    PluginSettings,
    PluginSettingsUpdate,
    Status,
)


def test_unique_id_prefers_gip_then_serial_then_path():
    gip = Controller(name="Xbox", vendor_id=0x045E, product_id=0x0B12, gip="gip0.0", serial_number="abc")
    assert gip.unique_id == "gip:gip0.0"

    serial = Controller(name="DualSense", vendor_id=0x054C, product_id=0x0CE6, serial_number=" a0:b1:c2:d3:e4:f5 ")
    assert serial.unique_id == "a0:b1:c2:d3:e4:f5"

    bare = Controller(name="Pad", vendor_id=0x18D1, product_id=0x9400, path="/dev/hidraw4")
    assert bare.unique_id == "18d1:9400:/dev/hidraw4"


def test_capacity_is_clamped():
    assert Controller(name="a", vendor_id=1, product_id=2, capacity=130).capacity == 100
    assert Controller(name="a", vendor_id=1, product_id=2, capacity=-5).capacity == 0


@pytest.mark.parametrize("capacity", [None, [50], {"value": 50}, "full"])
def test_non_numeric_capacity_is_a_validation_error(capacity):
    with pytest.raises(ValidationError):
        Controller(name="a", vendor_id=1, product_id=2, capacity=capacity)


def test_bluetooth_follows_connection():
    c = Controller(name="a", vendor_id=1, product_id=2, connection=ConnectionType.BLUETOOTH)
    assert c.bluetooth is True
    dumped = c.model_dump(mode="json")
    assert dumped["bluetooth"] is True
    assert dumped["connection"] == "bluetooth"
    assert dumped["unique_id"] == "0001:0002:"


def test_legacy_bluetooth_flag_sets_connection():
    c = Controller.model_validate({
        "name": "Fake",
        "vendor_id": 0x054C,
        "product_id": 0x0CE6,
        "capacity": 40,
        "status": "charging",
        "bluetooth": True,
    })
    assert c.connection == ConnectionType.BLUETOOTH
    assert c.status == Status.CHARGING


def test_from_hid_uses_bus(make_device):
    device = make_device(serial="aa:bb:cc:dd:ee:ff", bus_type=0x02)
    c = Controller.from_hid(device, "DualSense", 75, Status.DISCHARGING)
    assert c.connection == ConnectionType.BLUETOOTH
    assert c.serial_number == "aa:bb:cc:dd:ee:ff"
    assert c.path == "/dev/hidraw0"


def test_from_input_marks_wireless_adapter():
    c = Controller.from_input(
        name="Xbox Series X/S", vendor_id=0x045E, product_id=0x0B12,
        gip="gip0.0", path="/dev/input/event9", capacity=60, status=Status.DISCHARGING,
    )
    assert c.connection == ConnectionType.WIRELESS_ADAPTER
    wired = Controller.from_input(
        name="Xbox Series X/S", vendor_id=0x045E, product_id=0x0B12,
        gip="input5", path="/dev/input/event5", capacity=100, status=Status.CHARGING,
    )
    assert wired.connection == ConnectionType.USB


def test_settings_bounds():
    assert PluginSettings().low_battery_threshold == 20
    with pytest.raises(ValidationError):
        PluginSettings(low_battery_threshold=120)
    with pytest.raises(ValidationError):
        PluginSettingsUpdate(poll_interval=0.1)
