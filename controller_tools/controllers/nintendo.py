"""Nintendo Switch controllers (Pro Controller, Joy-Con, NSO pads)."""

import logging
from typing import List, Tuple

from controller_tools.controllers.hid_device import HidDeviceInfo, read_input_report
from controller_tools.controllers.registry import ControllerDecoder, register_decoder
from controller_tools.errors import DeviceReadError
from controller_tools.models import Controller, Status

logger = logging.getLogger(__name__)

VENDOR_ID_NINTENDO = 0x057E

PRODUCT_ID_NINTENDO_PROCON = 0x2009
PRODUCT_ID_NINTENDO_JOYCON_L = 0x2006
PRODUCT_ID_NINTENDO_JOYCON_R = 0x2007
PRODUCT_ID_NINTENDO_SNES = 0x2017
PRODUCT_ID_NINTENDO_N64 = 0x2019
PRODUCT_ID_NINTENDO_GENESIS = 0x201E

PRODUCT_NAMES = {
    PRODUCT_ID_NINTENDO_PROCON: "Switch Pro Controller",
    PRODUCT_ID_NINTENDO_JOYCON_L: "Joy-Con (L)",
    PRODUCT_ID_NINTENDO_JOYCON_R: "Joy-Con (R)",
    PRODUCT_ID_NINTENDO_SNES: "SNES Controller",
    PRODUCT_ID_NINTENDO_N64: "N64 Controller",
    PRODUCT_ID_NINTENDO_GENESIS: "Sega Genesis Controller",
}

# Input reports that carry the battery/connection byte
FULL_REPORT_IDS = (0x30, 0x21, 0x31)
BATTERY_OFFSET = 2

# Battery level (high nibble & 0xE) -> percent
BATTERY_LEVELS = {8: 100, 6: 75, 4: 50, 2: 25, 0: 0}


def controller_name(product_id: int) -> str:
    return PRODUCT_NAMES.get(product_id, "Nintendo Controller")


def decode_battery_byte(value: int) -> Tuple[int, Status]:
    nibble = value >> 4
    charging = bool(nibble & 0x1)
    level = nibble & 0xE
    capacity = BATTERY_LEVELS.get(level, 100 if level > 8 else 0)

    if charging:
        return capacity, Status.FULL if capacity == 100 else Status.CHARGING
    return capacity, Status.DISCHARGING


def decode_input_report(data: bytes) -> Tuple[int, Status]:
    if len(data) <= BATTERY_OFFSET or data[0] not in FULL_REPORT_IDS:
        raise DeviceReadError(f"Not a full Switch input report ({len(data)} bytes)")
    return decode_battery_byte(data[BATTERY_OFFSET])


def select_pro_controllers(devices: List[HidDeviceInfo]) -> List[HidDeviceInfo]:
    """Pick the Pro Controller entry that reports data.

    hidapi returns two entries for a USB Pro Controller and a third one when
    it is also paired over Bluetooth. One entry means Bluetooth only. With
    USB + Bluetooth only the Bluetooth entry (interface -1) reports anything.
    """
    if len(devices) in (1, 2):
        return devices[:1]
    if len(devices) == 3:
        return [d for d in devices if d.interface_number == -1][:1]
    return []


def parse_controller_data(device: HidDeviceInfo) -> Controller:
    name = controller_name(device.product_id)
    data = read_input_report(device, FULL_REPORT_IDS, BATTERY_OFFSET + 1)
    capacity, status = decode_input_report(data)
    return Controller.from_hid(device, name, capacity, status)


@register_decoder
class NintendoDecoder(ControllerDecoder):
    name = "nintendo"
    priority = 90

    @classmethod
    def matches(cls, device: HidDeviceInfo) -> bool:
        return device.vendor_id == VENDOR_ID_NINTENDO

    @classmethod
    def select(cls, devices: List[HidDeviceInfo]) -> List[HidDeviceInfo]:
        pro = [d for d in devices if d.product_id == PRODUCT_ID_NINTENDO_PROCON]
        others = [d for d in devices if d.product_id != PRODUCT_ID_NINTENDO_PROCON]
        return select_pro_controllers(pro) + others

    @classmethod
    def parse(cls, device: HidDeviceInfo) -> Controller:
        logger.debug("Found %s: %r", controller_name(device.product_id), device)
        try:
            return parse_controller_data(device)
        except DeviceReadError as e:
            logger.info("Switch report unavailable, using power_supply: %s", e)
            capacity, status = cls.fallback_battery(device)
            return Controller.from_hid(device, controller_name(device.product_id), capacity, status)
