"""Microsoft Xbox controllers over Bluetooth (hidraw), USB, and GIP (xone / wireless adapter)."""

import logging
import os
import re
from typing import List, Optional

from evdev import InputDevice, list_devices

import controller_tools.config as config
from controller_tools.battery import power_supply
from controller_tools.battery.upower import XBOX_CONTROLLER_MODEL, get_battery_percentage_from_upower
from controller_tools.bluetooth import bluez_manager
from controller_tools.controllers.hid_device import HidDeviceInfo, dedupe_by_serial
from controller_tools.controllers.registry import ControllerDecoder, register_decoder
from controller_tools.errors import BluetoothError, PowerSupplyError
from controller_tools.models import Controller, Status

logger = logging.getLogger(__name__)

MS_VENDOR_ID = 0x045E

# Xbox One S controller
XBOX_ONE_S_CONTROLLER_USB_PRODUCT_ID = 0x02EA
XBOX_ONE_S_CONTROLLER_BT_PRODUCT_ID = 0x02DF

# after upgrade to the latest firmware (same as Series X/S),
# the One S controller changed product ID!
XBOX_ONE_S_LATEST_FW_PRODUCT_ID = 0x0B20

# Xbox Wireless Controller (model 1914)
XBOX_WIRELESS_CONTROLLER_USB_PRODUCT_ID = 0x0B12
XBOX_WIRELESS_CONTROLLER_BT_PRODUCT_ID = 0x0B13

# Xbox Elite Wireless Controller Series 2
XBOX_WIRELESS_ELITE_CONTROLLER_USB_PRODUCT_ID = 0x0B00
XBOX_WIRELESS_ELITE_CONTROLLER_BT_PRODUCT_ID = 0x0B05
XBOX_WIRELESS_ELITE_CONTROLLER_BTLE_PRODUCT_ID = 0x0B22

XBOX_ACCESSORY_PID = 0x02FE

BLUETOOTH_PRODUCT_IDS = {
    XBOX_ONE_S_CONTROLLER_BT_PRODUCT_ID,
    XBOX_ONE_S_LATEST_FW_PRODUCT_ID,
    XBOX_WIRELESS_CONTROLLER_BT_PRODUCT_ID,
    XBOX_WIRELESS_ELITE_CONTROLLER_BT_PRODUCT_ID,
    XBOX_WIRELESS_ELITE_CONTROLLER_BTLE_PRODUCT_ID,
}
USB_PRODUCT_IDS = {
    XBOX_ONE_S_CONTROLLER_USB_PRODUCT_ID,
    XBOX_WIRELESS_CONTROLLER_USB_PRODUCT_ID,
    XBOX_WIRELESS_ELITE_CONTROLLER_USB_PRODUCT_ID,
}

_CONTROLLER_NAMES = {
    XBOX_ONE_S_CONTROLLER_USB_PRODUCT_ID: "Xbox One S",
    XBOX_ONE_S_CONTROLLER_BT_PRODUCT_ID: "Xbox One S",
    XBOX_ONE_S_LATEST_FW_PRODUCT_ID: "Xbox One S",
    XBOX_WIRELESS_CONTROLLER_USB_PRODUCT_ID: "Xbox Series X/S",
    XBOX_WIRELESS_CONTROLLER_BT_PRODUCT_ID: "Xbox Series X/S",
    XBOX_WIRELESS_ELITE_CONTROLLER_USB_PRODUCT_ID: "Xbox Elite 2",
    XBOX_WIRELESS_ELITE_CONTROLLER_BT_PRODUCT_ID: "Xbox Elite 2",
    XBOX_WIRELESS_ELITE_CONTROLLER_BTLE_PRODUCT_ID: "Xbox Elite 2",
    XBOX_ACCESSORY_PID: "Xbox Accessory",
}

# gip0.1 is the adapter's own client, not a controller
GIP_EXCLUDED = "gip0.1"
# HID parents look like 0005:045E:0B13.0004; those are covered by hidapi
_HID_PARENT_RE = re.compile(r"^[0-9A-Fa-f]{4}:[0-9A-Fa-f]{4}:[0-9A-Fa-f]{4}\.[0-9A-Fa-f]+$")
# USB interface directory, e.g. 1-2:1.0 or 3-1.4:1.0
_USB_INTERFACE_RE = re.compile(r"^\d+-[\d.]+:\d+\.\d+$")

BUS_BLUETOOTH = 0x05


def controller_name(product_id: int) -> str:
    return _CONTROLLER_NAMES.get(product_id, "Xbox Unknown")


def is_xbox_controller(vendor_id: int) -> bool:
    return vendor_id == MS_VENDOR_ID


def update_xbox_controller(controller: Controller, bluetooth: bool) -> Controller:
    """Fill in name and a placeholder battery state when nothing better is available.

    Wired controllers are assumed to be charging at 100%.
    """
    controller.name = controller_name(controller.product_id)
    controller.capacity = 0 if bluetooth else 100
    controller.status = Status.UNKNOWN if bluetooth else Status.CHARGING
    return controller


def bluetooth_battery_percentage(device: HidDeviceInfo) -> int:
    """BlueZ battery level for a Bluetooth controller, falling back to UPower, then 0."""
    try:
        address = bluez_manager.get_bluetooth_address(device.serial_number)
        return bluez_manager.get_battery_percentage(address)
    except BluetoothError as e:
        logger.error("Bluetooth battery lookup failed because %s", e)

    percentage = get_battery_percentage_from_upower(XBOX_CONTROLLER_MODEL)
    return percentage if percentage is not None else 0


def parse_xbox_controller_data(device: HidDeviceInfo) -> Controller:
    name = controller_name(device.product_id)
    if device.product_id in USB_PRODUCT_IDS and not device.is_bluetooth:
        return Controller.from_hid(device, name, 100, Status.CHARGING)
    capacity = bluetooth_battery_percentage(device)
    return Controller.from_hid(device, name, capacity, Status.UNKNOWN)


@register_decoder
class XboxDecoder(ControllerDecoder):
    name = "xbox"
    priority = 70

    @classmethod
    def matches(cls, device: HidDeviceInfo) -> bool:
        return device.matches(MS_VENDOR_ID, BLUETOOTH_PRODUCT_IDS | USB_PRODUCT_IDS)

    @classmethod
    def select(cls, devices: List[HidDeviceInfo]) -> List[HidDeviceInfo]:
        # hidapi lists the same controller several times
        return dedupe_by_serial(devices)

    @classmethod
    def parse(cls, device: HidDeviceInfo) -> Controller:
        logger.debug("Found %s controller: %r", controller_name(device.product_id), device)
        return parse_xbox_controller_data(device)


def _input_parent_name(event_path: str) -> Optional[str]:
    """Name used to identify a non-HID input device: its gip parent, else its inputN node.

    Only xpad devices hanging off a real USB interface get an inputN name.
    uinput pads (Steam's virtual X-Box 360 pads) live under /devices/virtual
    and are skipped.
    """
    event_name = os.path.basename(event_path)
    input_link = os.path.join(config.SYSFS_INPUT, event_name, "device")
    if not os.path.exists(input_link):
        return None
    input_real = os.path.realpath(input_link)
    if "/devices/virtual/" in input_real:
        return None
    # inputN sits in an "input" directory under its parent device
    parent_dir = os.path.dirname(input_real)
    if os.path.basename(parent_dir) == "input":
        parent_dir = os.path.dirname(parent_dir)
    parent = os.path.basename(parent_dir)
    if parent.startswith("gip"):
        return parent
    if _HID_PARENT_RE.match(parent) or not _USB_INTERFACE_RE.match(parent):
        return None
    return os.path.basename(input_real)


def scan_gip_controllers() -> List[Controller]:
    """Xbox controllers driven by xone/xpad (GIP over USB or the Xbox Wireless Adapter).

    Controllers behind one adapter carry no serial number, so they are told
    apart only by their gipN.M index.
    """
    controllers: List[Controller] = []
    seen_gips: set[str] = set()

    for path in sorted(list_devices()):
        gip = _input_parent_name(path)
        if not gip:
            continue
        if not (gip.startswith("gip") or gip.startswith("input")) or gip == GIP_EXCLUDED:
            continue
        if gip in seen_gips:
            continue

        try:
            device = InputDevice(path)
            info = device.info
            device.close()
        except OSError as e:
            logger.debug("Cannot open %s: %s", path, e)
            continue

        if not is_xbox_controller(info.vendor):
            continue
        seen_gips.add(gip)

        bluetooth = info.bustype == BUS_BLUETOOTH
        controller = Controller.from_input(
            name=controller_name(info.product),
            vendor_id=info.vendor,
            product_id=info.product,
            gip=gip,
            path=path,
            capacity=0,
            status=Status.UNKNOWN,
            bluetooth=bluetooth,
        )
        try:
            controller.capacity, controller.status = power_supply.read_battery(path)
        except PowerSupplyError:
            update_xbox_controller(controller, bluetooth)
        logger.debug("Found GIP controller %s at %s", controller.name, gip)
        controllers.append(controller)

    return controllers
