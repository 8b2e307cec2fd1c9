"""HID device info container built from hidapi enumeration records."""

import os
import re
from typing import Iterable, Optional

import hid

import controller_tools.config as config
from controller_tools.errors import DeviceReadError

HID_BUS_BLUETOOTH = 0x02
LINUX_BUS_BLUETOOTH = "0005"

USAGE_PAGE_GENERIC_DESKTOP = 0x01
USAGE_JOYSTICK = 0x04
USAGE_GAMEPAD = 0x05

_MAC_RE = re.compile(r"^[0-9a-fA-F]{2}([:-][0-9a-fA-F]{2}){5}$")


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


class HidDeviceInfo:
    """One hidraw interface as reported by hidapi."""

    def __init__(
        self,
        path: str,
        vendor_id: int,
        product_id: int,
        serial_number: str = "",
        product_string: str = "",
        manufacturer_string: str = "",
        usage_page: int = 0,
        usage: int = 0,
        interface_number: int = -1,
        bus_type: Optional[int] = None,
    ):
        self.path = path
        self.vendor_id = vendor_id
        self.product_id = product_id
        self.serial_number = serial_number
        self.product_string = product_string
        self.manufacturer_string = manufacturer_string
        self.usage_page = usage_page
        self.usage = usage
        self.interface_number = interface_number
        self.bus_type = bus_type

    @classmethod
    def from_dict(cls, record: dict) -> "HidDeviceInfo":
        interface_number = record.get("interface_number")
        return cls(
            path=_text(record.get("path")),
            vendor_id=int(record.get("vendor_id") or 0),
            product_id=int(record.get("product_id") or 0),
            serial_number=_text(record.get("serial_number")).strip(),
            product_string=_text(record.get("product_string")).strip(),
            manufacturer_string=_text(record.get("manufacturer_string")).strip(),
            usage_page=int(record.get("usage_page") or 0),
            usage=int(record.get("usage") or 0),
            interface_number=-1 if interface_number is None else int(interface_number),
            bus_type=record.get("bus_type"),
        )

    def __repr__(self) -> str:
        return (
            f"HidDeviceInfo(path={self.path!r}, vid={self.vendor_id:04x}, pid={self.product_id:04x}, "
            f"serial={self.serial_number!r}, interface={self.interface_number})"
        )

    def _sysfs_bus(self) -> Optional[str]:
        """Read the bus field of HID_ID from /sys/class/hidraw/<node>/device/uevent."""
        node = os.path.basename(self.path)
        if not node.startswith("hidraw"):
            return None
        uevent = os.path.join(config.SYSFS_HIDRAW, node, "device", "uevent")
        try:
            with open(uevent) as f:
                for line in f:
                    if line.startswith("HID_ID="):
                        return line.split("=", 1)[1].split(":", 1)[0].strip().upper()
        except OSError:
            return None
        return None

    @property
    def has_mac_serial(self) -> bool:
        return bool(_MAC_RE.match(self.serial_number))

    @property
    def is_bluetooth(self) -> bool:
        if self.bus_type is not None:
            return self.bus_type == HID_BUS_BLUETOOTH
        bus = self._sysfs_bus()
        if bus is not None:
            return bus.zfill(4) == LINUX_BUS_BLUETOOTH
        return self.interface_number == -1 and self.has_mac_serial

    @property
    def is_gamepad(self) -> bool:
        return self.usage_page == USAGE_PAGE_GENERIC_DESKTOP and self.usage in (USAGE_JOYSTICK, USAGE_GAMEPAD)

    def matches(self, vendor_id: int, product_ids: Iterable[int]) -> bool:
        return self.vendor_id == vendor_id and self.product_id in set(product_ids)

    def open(self) -> "hid.device":
        handle = hid.device()
        handle.open_path(self.path.encode())
        return handle


def enumerate_devices() -> list[HidDeviceInfo]:
    """List every hidraw interface hidapi can see."""
    return [HidDeviceInfo.from_dict(record) for record in hid.enumerate()]


def dedupe_by_serial(devices: list[HidDeviceInfo]) -> list[HidDeviceInfo]:
    """Collapse consecutive entries with the same serial number, keeping the first."""
    unique: list[HidDeviceInfo] = []
    for device in devices:
        if unique and unique[-1].serial_number == device.serial_number:
            continue
        unique.append(device)
    return unique


def read_input_report(
    device: HidDeviceInfo,
    report_ids: Iterable[int],
    min_length: int,
    feature_report: Optional[int] = None,
) -> bytes:
    """Read input reports until one with a wanted report id and length arrives.

    `feature_report`, when given, is fetched first; some controllers only
    switch to their full input report after that request.
    """
    wanted = set(report_ids)
    try:
        handle = device.open()
    except (OSError, ValueError) as e:
        raise DeviceReadError(f"Could not open {device.path}: {e}", device.path) from e

    try:
        if feature_report is not None:
            handle.get_feature_report(feature_report, config.HID_REPORT_SIZE)
        for _ in range(config.HID_READ_ATTEMPTS):
            data = handle.read(config.HID_REPORT_SIZE, config.HID_READ_TIMEOUT_MS)
            if data and data[0] in wanted and len(data) >= min_length:
                return bytes(data)
    except (OSError, ValueError) as e:
        raise DeviceReadError(f"Could not read {device.path}: {e}", device.path) from e
    finally:
        handle.close()

    raise DeviceReadError(
        f"No report {sorted(wanted)} from {device.path} after {config.HID_READ_ATTEMPTS} reads",
        device.path,
    )
