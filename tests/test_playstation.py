from unittest.mock import patch

import pytest

from controller_tools.controllers import playstation
from controller_tools.controllers.playstation import (
    PlayStationDecoder,
    decode_dualsense_report,
    decode_dualsense_status,
    decode_dualshock3_report,
    decode_dualshock4_report,
    decode_dualshock4_status,
)
from controller_tools.errors import DeviceReadError
from controller_tools.models import ConnectionType, Status


def _report(report_id: int, offset: int, value: int, size: int = 78) -> bytes:
    data = bytearray(size)
    data[0] = report_id
    data[offset] = value
    return bytes(data)


@pytest.mark.parametrize("status_byte, expected", [
    (0x04, (45, Status.DISCHARGING)),
    (0x0A, (100, Status.DISCHARGING)),
    (0x13, (35, Status.CHARGING)),
    (0x28, (100, Status.FULL)),
    (0xA0, (0, Status.NOT_CHARGING)),
    (0xB5, (0, Status.NOT_CHARGING)),
    (0xF0, (0, Status.UNKNOWN)),
])
def test_dualsense_status(status_byte, expected):
    assert decode_dualsense_status(status_byte) == expected


def test_dualsense_report_offsets():
    assert decode_dualsense_report(_report(0x01, 53, 0x07), bluetooth=False) == (75, Status.DISCHARGING)
    assert decode_dualsense_report(_report(0x31, 54, 0x12), bluetooth=True) == (25, Status.CHARGING)


def test_dualsense_report_rejects_simple_bluetooth_report():
    with pytest.raises(DeviceReadError):
        decode_dualsense_report(bytes([0x01] + [0] * 9), bluetooth=True)


@pytest.mark.parametrize("status_byte, expected", [
    (0x05, (55, Status.DISCHARGING)),
    (0x08, (85, Status.DISCHARGING)),
    (0x13, (35, Status.CHARGING)),
    (0x1A, (100, Status.FULL)),
    (0x1B, (100, Status.FULL)),
])
def test_dualshock4_status(status_byte, expected):
    assert decode_dualshock4_status(status_byte) == expected


def test_dualshock4_report_offsets():
    assert decode_dualshock4_report(_report(0x01, 30, 0x03), bluetooth=False) == (35, Status.DISCHARGING)
    assert decode_dualshock4_report(_report(0x11, 32, 0x16), bluetooth=True) == (65, Status.CHARGING)


@pytest.mark.parametrize("battery, expected", [
    (0xEE, (100, Status.CHARGING)),
    (0xEF, (100, Status.FULL)),
    (0x00, (0, Status.DISCHARGING)),
    (0x01, (1, Status.DISCHARGING)),
    (0x03, (50, Status.DISCHARGING)),
    (0x05, (100, Status.DISCHARGING)),
    (0x09, (100, Status.DISCHARGING)),
])
def test_dualshock3_report(battery, expected):
    assert decode_dualshock3_report(_report(0x01, 30, battery, size=49)) == expected


def test_decoder_matches_only_known_sony_products(make_device):
    assert PlayStationDecoder.matches(make_device(product_id=0x0DF2))
    assert not PlayStationDecoder.matches(make_device(product_id=0x1234))
    assert not PlayStationDecoder.matches(make_device(vendor_id=0x057E, product_id=0x0CE6))


def test_parse_dualsense_over_bluetooth(make_device):
    device = make_device(product_id=0x0CE6, serial="a0:ab:51:00:11:22", bus_type=0x02)
    with patch.object(playstation, "read_input_report", return_value=_report(0x31, 54, 0x06)) as read:
        controller = PlayStationDecoder.parse(device)

    read.assert_called_once_with(device, [0x31], 55)
    assert controller.name == "DualSense"
    assert controller.capacity == 65
    assert controller.status == Status.DISCHARGING
    assert controller.connection == ConnectionType.BLUETOOTH


def test_parse_dualshock4_bluetooth_requests_full_report(make_device):
    device = make_device(product_id=0x09CC, serial="1c:66:6d:00:00:01", bus_type=0x02)
    with patch.object(playstation, "read_input_report", return_value=_report(0x11, 32, 0x04)) as read:
        controller = PlayStationDecoder.parse(device)

    assert read.call_args.kwargs["feature_report"] == 0x02
    assert controller.name == "DualShock 4"
    assert controller.capacity == 45


def test_parse_falls_back_to_power_supply(make_device):
    device = make_device(product_id=0x0DF2)
    with patch.object(playstation, "read_input_report", side_effect=DeviceReadError("timeout")), \
            patch.object(PlayStationDecoder, "fallback_battery", return_value=(80, Status.CHARGING)):
        controller = PlayStationDecoder.parse(device)

    assert controller.name == "DualSense Edge"
    assert (controller.capacity, controller.status) == (80, Status.CHARGING)


def test_select_dedupes_by_serial(make_device):
    devices = [
        make_device(path="/dev/hidraw1", serial="aa"),
        make_device(path="/dev/hidraw2", serial="aa"),
        make_device(path="/dev/hidraw3", serial="bb"),
    ]
    assert [d.path for d in PlayStationDecoder.select(devices)] == ["/dev/hidraw1", "/dev/hidraw3"]
