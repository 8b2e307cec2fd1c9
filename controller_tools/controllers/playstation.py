"""Sony DualShock 3/4 and DualSense battery decoding.

Offsets follow the Linux hid-sony / hid-playstation drivers. Every offset
below counts the report id as byte 0, which is how hidraw hands reports out.
"""

import logging
from typing import List, Tuple

from controller_tools.controllers.hid_device import HidDeviceInfo, dedupe_by_serial, read_input_report
from controller_tools.controllers.registry import ControllerDecoder, register_decoder
from controller_tools.errors import DeviceReadError
from controller_tools.models import Controller, Status

logger = logging.getLogger(__name__)

DS_VENDOR_ID = 0x054C

DS3_PRODUCT_ID = 0x0268
DS4_OLD_PRODUCT_ID = 0x05C4
DS4_NEW_PRODUCT_ID = 0x09CC
DS_PRODUCT_ID = 0x0CE6
DS_EDGE_PRODUCT_ID = 0x0DF2

PRODUCT_NAMES = {
    DS3_PRODUCT_ID: "DualShock 3",
    DS4_OLD_PRODUCT_ID: "DualShock 4",
    DS4_NEW_PRODUCT_ID: "DualShock 4",
    DS_PRODUCT_ID: "DualSense",
    DS_EDGE_PRODUCT_ID: "DualSense Edge",
}

# DualSense
DS_USB_REPORT_ID = 0x01
DS_BT_REPORT_ID = 0x31
DS_USB_STATUS_OFFSET = 53
DS_BT_STATUS_OFFSET = 54

# DualShock 4
DS4_USB_REPORT_ID = 0x01
DS4_BT_REPORT_ID = 0x11
DS4_USB_STATUS_OFFSET = 30
DS4_BT_STATUS_OFFSET = 32
DS4_CABLE_BIT = 0x10
# Reading this feature report switches a Bluetooth DS4 to full 0x11 reports
DS4_BT_FEATURE_REPORT_ID = 0x02

# DualShock 3
DS3_REPORT_ID = 0x01
DS3_BATTERY_OFFSET = 30
DS3_CABLE_CHARGING = 0xEE
DS3_CABLE_FULL = 0xEF
DS3_BATTERY_CAPACITY = [0, 1, 25, 50, 75, 100]


def _level_to_capacity(level: int) -> int:
    return min(level * 10 + 5, 100)


def decode_dualsense_status(status_byte: int) -> Tuple[int, Status]:
    level = status_byte & 0x0F
    charging = (status_byte & 0xF0) >> 4

    if charging == 0x0:
        return _level_to_capacity(level), Status.DISCHARGING
    if charging == 0x1:
        return _level_to_capacity(level), Status.CHARGING
    if charging == 0x2:
        return 100, Status.FULL
    if charging in (0xA, 0xB):
        # voltage or temperature out of range
        return 0, Status.NOT_CHARGING
    return 0, Status.UNKNOWN


def decode_dualsense_report(data: bytes, bluetooth: bool) -> Tuple[int, Status]:
    offset = DS_BT_STATUS_OFFSET if bluetooth else DS_USB_STATUS_OFFSET
    expected = DS_BT_REPORT_ID if bluetooth else DS_USB_REPORT_ID
    if len(data) <= offset or data[0] != expected:
        raise DeviceReadError(f"Not a DualSense status report (id {data[0] if data else None}, {len(data)} bytes)")
    return decode_dualsense_status(data[offset])


def decode_dualshock4_status(status_byte: int) -> Tuple[int, Status]:
    level = status_byte & 0x0F
    if status_byte & DS4_CABLE_BIT:
        if level < 10:
            return level * 10 + 5, Status.CHARGING
        return 100, Status.FULL
    return _level_to_capacity(level), Status.DISCHARGING


def decode_dualshock4_report(data: bytes, bluetooth: bool) -> Tuple[int, Status]:
    offset = DS4_BT_STATUS_OFFSET if bluetooth else DS4_USB_STATUS_OFFSET
    expected = DS4_BT_REPORT_ID if bluetooth else DS4_USB_REPORT_ID
    if len(data) <= offset or data[0] != expected:
        raise DeviceReadError(f"Not a DualShock 4 status report (id {data[0] if data else None}, {len(data)} bytes)")
    return decode_dualshock4_status(data[offset])


def decode_dualshock3_report(data: bytes) -> Tuple[int, Status]:
    if len(data) <= DS3_BATTERY_OFFSET or data[0] != DS3_REPORT_ID:
        raise DeviceReadError(f"Not a DualShock 3 report ({len(data)} bytes)")
    battery = data[DS3_BATTERY_OFFSET]
    if battery >= DS3_CABLE_CHARGING:
        return 100, Status.FULL if battery == DS3_CABLE_FULL else Status.CHARGING
    return DS3_BATTERY_CAPACITY[min(battery, 5)], Status.DISCHARGING


def parse_dualsense_controller_data(device: HidDeviceInfo, name: str) -> Controller:
    bluetooth = device.is_bluetooth
    report_id = DS_BT_REPORT_ID if bluetooth else DS_USB_REPORT_ID
    offset = DS_BT_STATUS_OFFSET if bluetooth else DS_USB_STATUS_OFFSET
    data = read_input_report(device, [report_id], offset + 1)
    capacity, status = decode_dualsense_report(data, bluetooth)
    return Controller.from_hid(device, name, capacity, status)


def parse_dualshock_controller_data(device: HidDeviceInfo) -> Controller:
    bluetooth = device.is_bluetooth
    report_id = DS4_BT_REPORT_ID if bluetooth else DS4_USB_REPORT_ID
    offset = DS4_BT_STATUS_OFFSET if bluetooth else DS4_USB_STATUS_OFFSET
    data = read_input_report(
        device,
        [report_id],
        offset + 1,
        feature_report=DS4_BT_FEATURE_REPORT_ID if bluetooth else None,
    )
    capacity, status = decode_dualshock4_report(data, bluetooth)
    return Controller.from_hid(device, "DualShock 4", capacity, status)


def parse_dualshock3_controller_data(device: HidDeviceInfo) -> Controller:
    data = read_input_report(device, [DS3_REPORT_ID], DS3_BATTERY_OFFSET + 1)
    capacity, status = decode_dualshock3_report(data)
    return Controller.from_hid(device, "DualShock 3", capacity, status)


@register_decoder
class PlayStationDecoder(ControllerDecoder):
    name = "playstation"
    priority = 80

    @classmethod
    def matches(cls, device: HidDeviceInfo) -> bool:
        return device.matches(DS_VENDOR_ID, PRODUCT_NAMES)

    @classmethod
    def select(cls, devices: List[HidDeviceInfo]) -> List[HidDeviceInfo]:
        return dedupe_by_serial(devices)

    @classmethod
    def parse(cls, device: HidDeviceInfo) -> Controller:
        name = PRODUCT_NAMES[device.product_id]
        logger.debug("Found %s controller: %r", name, device)
        try:
            if device.product_id == DS3_PRODUCT_ID:
                return parse_dualshock3_controller_data(device)
            if device.product_id in (DS4_OLD_PRODUCT_ID, DS4_NEW_PRODUCT_ID):
                return parse_dualshock_controller_data(device)
            return parse_dualsense_controller_data(device, name)
        except DeviceReadError as e:
            logger.info("%s report unavailable, using power_supply: %s", name, e)
            capacity, status = cls.fallback_battery(device)
            return Controller.from_hid(device, name, capacity, status)
