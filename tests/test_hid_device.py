from unittest.mock import MagicMock, patch

import pytest

from controller_tools.controllers import hid_device
from controller_tools.controllers.hid_device import (
    HidDeviceInfo,
    dedupe_by_serial,
    enumerate_devices,
    read_input_report,
)
from controller_tools.errors import DeviceReadError


def test_from_dict_decodes_hidapi_record():
    device = HidDeviceInfo.from_dict({
        "path": b"/dev/hidraw3",
        "vendor_id": 0x057E,
        "product_id": 0x2009,
        "serial_number": " 98:b6:e9:00:11:22 ",
        "product_string": "Pro Controller",
        "manufacturer_string": "Nintendo",
        "usage_page": 1,
        "usage": 5,
        "interface_number": None,
    })
    assert device.path == "/dev/hidraw3"
    assert device.serial_number == "98:b6:e9:00:11:22"
    assert device.interface_number == -1
    assert device.bus_type is None
    assert device.is_gamepad


def test_bluetooth_from_bus_type(make_device):
    assert make_device(bus_type=0x02).is_bluetooth
    assert not make_device(bus_type=0x01, serial="aa:bb:cc:dd:ee:ff").is_bluetooth


def test_bluetooth_from_sysfs_uevent(sysfs, make_device):
    hid = sysfs.add_device("platform", "bluetooth", "0005:054C:0CE6.0002")
    path = sysfs.add_hidraw("hidraw2", hid, hid_id="0005:0000054C:00000CE6")
    assert make_device(path=path, bus_type=None).is_bluetooth

    usb = sysfs.add_device("usb1", "1-1", "0003:054C:0CE6.0003")
    path = sysfs.add_hidraw("hidraw3", usb, hid_id="0003:0000054C:00000CE6")
    assert not make_device(path=path, bus_type=None, serial="aa:bb:cc:dd:ee:ff").is_bluetooth


def test_bluetooth_guess_without_sysfs(sysfs, make_device):
    device = make_device(path="/dev/hidraw9", bus_type=None, serial="aa:bb:cc:dd:ee:ff")
    assert device.is_bluetooth
    device = make_device(path="/dev/hidraw9", bus_type=None, serial="aa:bb:cc:dd:ee:ff", interface_number=3)
    assert not device.is_bluetooth


def test_dedupe_by_serial_keeps_first_of_each_run(make_device):
    devices = [
        make_device(path="/dev/hidraw0", serial="a"),
        make_device(path="/dev/hidraw1", serial="a"),
        make_device(path="/dev/hidraw2", serial="b"),
        make_device(path="/dev/hidraw3", serial="a"),
    ]
    assert [d.path for d in dedupe_by_serial(devices)] == ["/dev/hidraw0", "/dev/hidraw2", "/dev/hidraw3"]


def test_enumerate_devices():
    with patch.object(hid_device, "hid") as hid:
        hid.enumerate.return_value = [
            {"path": b"/dev/hidraw0", "vendor_id": 0x054C, "product_id": 0x0CE6, "serial_number": "x"},
        ]
        devices = enumerate_devices()
    assert len(devices) == 1
    assert devices[0].vendor_id == 0x054C


class TestReadInputReport:
    @pytest.fixture
    def handle(self):
        handle = MagicMock()
        with patch.object(hid_device, "hid") as hid:
            hid.device.return_value = handle
            yield handle

    def test_skips_short_and_foreign_reports(self, make_device, handle):
        wanted = [0x31] + [0] * 77
        handle.read.side_effect = [[], [0x01, 0, 0], wanted]

        data = read_input_report(make_device(), [0x31], 55)

        assert data == bytes(wanted)
        handle.open_path.assert_called_once_with(b"/dev/hidraw0")
        handle.close.assert_called_once()

    def test_requests_feature_report_first(self, make_device, handle):
        handle.read.return_value = [0x11] + [0] * 77
        read_input_report(make_device(), [0x11], 33, feature_report=0x02)
        handle.get_feature_report.assert_called_once_with(0x02, 78)

    def test_gives_up_after_attempts(self, make_device, handle):
        handle.read.return_value = []
        with pytest.raises(DeviceReadError) as exc:
            read_input_report(make_device(path="/dev/hidraw5"), [0x30], 3)
        assert exc.value.path == "/dev/hidraw5"
        assert handle.read.call_count == 8
        handle.close.assert_called_once()

    def test_open_failure(self, make_device, handle):
        handle.open_path.side_effect = OSError("open failed")
        with pytest.raises(DeviceReadError):
            read_input_report(make_device(), [0x01], 2)

    def test_read_failure_closes_handle(self, make_device, handle):
        handle.read.side_effect = OSError("read error")
        with pytest.raises(DeviceReadError):
            read_input_report(make_device(), [0x01], 2)
        handle.close.assert_called_once()
