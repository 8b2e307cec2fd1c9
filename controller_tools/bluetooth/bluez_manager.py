"""BlueZ D-Bus access for controller battery levels and connection state."""

import logging
import re
from typing import Any, Optional

from controller_tools.errors import BluetoothError

logger = logging.getLogger(__name__)

BLUEZ_SERVICE = "org.bluez"
OBJECT_MANAGER_INTERFACE = "org.freedesktop.DBus.ObjectManager"
DEVICE_INTERFACE = "org.bluez.Device1"
BATTERY_INTERFACE = "org.bluez.Battery1"

# GAP appearance: HID joystick, HID gamepad
GAMEPAD_APPEARANCES = frozenset({0x03C3, 0x03C4})
# Class of Device: peripheral major class, joystick/gamepad minor classes
COD_MAJOR_PERIPHERAL = 0x05
COD_MINOR_GAMEPADS = frozenset({0x01, 0x02})

_GAMEPAD_NAME_RE = re.compile(
    r"xbox|pro controller|joy-con|dualshock|dualsense|wireless controller|"
    r"gamepad|game controller|8bitdo|stadia|snes|n64|controller",
    re.IGNORECASE,
)

_MAC_RE = re.compile(r"^([0-9A-F]{2})[:-]?([0-9A-F]{2})[:-]?([0-9A-F]{2})[:-]?([0-9A-F]{2})[:-]?([0-9A-F]{2})[:-]?([0-9A-F]{2})$")


def _unpack(value: Any) -> Any:
    # dasbus hands out GLib.Variant values
    return value.unpack() if hasattr(value, "unpack") else value


def get_bluetooth_address(serial_number: Optional[str]) -> str:
    """Normalise a hidapi serial number into a BlueZ MAC address (AA:BB:CC:DD:EE:FF)."""
    match = _MAC_RE.match((serial_number or "").strip().upper())
    if not match:
        raise BluetoothError(f"Serial number {serial_number!r} is not a Bluetooth address")
    return ":".join(match.groups())


def looks_like_gamepad(properties: dict) -> bool:
    """Whether a Device1 property dict describes a game controller."""
    if (_unpack(properties.get("Appearance")) or 0) in GAMEPAD_APPEARANCES:
        return True

    name = _unpack(properties.get("Name")) or _unpack(properties.get("Alias")) or ""
    if _GAMEPAD_NAME_RE.search(str(name)):
        return True

    cod = _unpack(properties.get("Class")) or 0
    return ((cod >> 8) & 0x1F) == COD_MAJOR_PERIPHERAL and ((cod >> 2) & 0x3F) in COD_MINOR_GAMEPADS


class BlueZManager:
    def __init__(self, bus=None):
        self._bus = bus

    @property
    def bus(self):
        if self._bus is None:
            # dasbus pulls in GLib; only load it once a bus is needed
            from dasbus.connection import SystemMessageBus
            self._bus = SystemMessageBus()
        return self._bus

    def _devices(self) -> dict[str, dict]:
        """Object path -> interfaces for every BlueZ object that is a device."""
        manager = self.bus.get_proxy(BLUEZ_SERVICE, "/", OBJECT_MANAGER_INTERFACE)
        return {
            str(path): interfaces
            for path, interfaces in manager.GetManagedObjects().items()
            if DEVICE_INTERFACE in interfaces
        }

    def _find_device(self, address: str) -> Optional[tuple[str, dict]]:
        wanted = address.upper()
        for path, interfaces in self._devices().items():
            if str(_unpack(interfaces[DEVICE_INTERFACE].get("Address", ""))).upper() == wanted:
                return path, interfaces
        return None

    def get_battery_percentage(self, address: str) -> int:
        """Battery percentage BlueZ reports for a device (org.bluez.Battery1)."""
        try:
            found = self._find_device(address)
        except Exception as e:
            raise BluetoothError(f"BlueZ unavailable: {e}") from e

        if found is None:
            raise BluetoothError(f"Device {address} not known to BlueZ")
        path, interfaces = found
        percentage = interfaces.get(BATTERY_INTERFACE, {}).get("Percentage")
        if percentage is None:
            raise BluetoothError(f"Device {path} has no battery interface")
        return int(_unpack(percentage))

    def connected_controllers(self) -> list[dict]:
        """Connected BlueZ devices that look like game controllers."""
        try:
            devices = self._devices()
        except Exception as e:
            logger.warning("BlueZ unavailable: %s", e)
            return []

        found = []
        for path, interfaces in devices.items():
            props = interfaces[DEVICE_INTERFACE]
            if not _unpack(props.get("Connected", False)) or not looks_like_gamepad(props):
                continue
            percentage = interfaces.get(BATTERY_INTERFACE, {}).get("Percentage")
            found.append({
                "path": path,
                "address": str(_unpack(props.get("Address", ""))),
                "name": str(_unpack(props.get("Name")) or _unpack(props.get("Alias")) or "Unknown"),
                "battery_percent": None if percentage is None else int(_unpack(percentage)),
            })
        return found

    def disconnect_device(self, address: str) -> bool:
        """Ask BlueZ to drop the connection to one device. False if that failed."""
        try:
            found = self._find_device(address)
            if found is None:
                logger.info("Cannot disconnect %s: not known to BlueZ", address)
                return False
            self.bus.get_proxy(BLUEZ_SERVICE, found[0], DEVICE_INTERFACE).Disconnect()
        except Exception as e:
            logger.warning("Disconnecting %s failed: %s", address, e)
            return False
        logger.info("Disconnected %s", address)
        return True


_manager: Optional[BlueZManager] = None


def get_manager() -> BlueZManager:
    global _manager
    if _manager is None:
        _manager = BlueZManager()
    return _manager


def get_battery_percentage(address: str) -> int:
    return get_manager().get_battery_percentage(address)
