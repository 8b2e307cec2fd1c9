"""Fallback decoder for HID gamepads no vendor decoder claims."""

import logging
from typing import List

from controller_tools.bluetooth import bluez_manager
from controller_tools.controllers.hid_device import HidDeviceInfo
from controller_tools.controllers.registry import ControllerDecoder, register_decoder
from controller_tools.errors import BluetoothError
from controller_tools.models import Controller, Status

logger = logging.getLogger(__name__)

GOOGLE_VENDOR_ID = 0x18D1
STADIA_PRODUCT_ID = 0x9400

GENERIC_NAME = "Generic Controller"

# The Deck's built-in controller
VALVE_VENDOR_ID = 0x28DE


def controller_name(device: HidDeviceInfo) -> str:
    if device.vendor_id == GOOGLE_VENDOR_ID and device.product_id == STADIA_PRODUCT_ID:
        return "Stadia Controller"
    return device.product_string or GENERIC_NAME


@register_decoder
class GenericDecoder(ControllerDecoder):
    name = "generic"
    priority = 0

    @classmethod
    def matches(cls, device: HidDeviceInfo) -> bool:
        if device.vendor_id == GOOGLE_VENDOR_ID and device.product_id == STADIA_PRODUCT_ID:
            return True
        return device.is_gamepad and device.vendor_id != VALVE_VENDOR_ID

    @classmethod
    def select(cls, devices: List[HidDeviceInfo]) -> List[HidDeviceInfo]:
        seen: set[tuple] = set()
        selected = []
        for device in devices:
            if device.serial_number:
                key = (device.vendor_id, device.product_id, device.serial_number)
                if key in seen:
                    continue
                seen.add(key)
            selected.append(device)
        return selected

    @classmethod
    def parse(cls, device: HidDeviceInfo) -> Controller:
        name = controller_name(device)
        logger.debug("Found generic controller %s: %r", name, device)

        if device.is_bluetooth:
            try:
                address = bluez_manager.get_bluetooth_address(device.serial_number)
                capacity = bluez_manager.get_battery_percentage(address)
                return Controller.from_hid(device, name, capacity, Status.UNKNOWN)
            except BluetoothError as e:
                logger.debug("No BlueZ battery for %s: %s", name, e)

        capacity, status = cls.fallback_battery(device)
        return Controller.from_hid(device, name, capacity, status)
