"""Battery lookup via /sys/class/power_supply/.

Kernel drivers for most controllers (hid-playstation, hid-sony, hid-nintendo,
xpadneo, xone) register a power_supply device next to the HID device. These
helpers map a device node to that entry and read it.
"""

import logging
import os
from typing import Optional

import controller_tools.config as config
from controller_tools.errors import PowerSupplyError
from controller_tools.models import Status

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "Charging": Status.CHARGING,
    "Discharging": Status.DISCHARGING,
    "Full": Status.FULL,
    "Not charging": Status.NOT_CHARGING,
    "Unknown": Status.UNKNOWN,
}

_CAPACITY_LEVELS = {
    "Full": 100,
    "High": 75,
    "Normal": 50,
    "Low": 25,
    "Critical": 5,
    "Unknown": 0,
}

# How far up the sysfs tree a shared parent may be
_MAX_PARENT_DEPTH = 5


def _read_attr(directory: str, name: str) -> Optional[str]:
    try:
        with open(os.path.join(directory, name)) as f:
            return f.read().strip()
    except OSError:
        return None


def _sysfs_device_for(node: str) -> Optional[str]:
    """Resolve /dev/hidrawN, /dev/input/eventN or a sysfs path to a real sysfs device path."""
    name = os.path.basename(node)
    if name.startswith("hidraw"):
        link = os.path.join(config.SYSFS_HIDRAW, name, "device")
    elif name.startswith("event") or name.startswith("js"):
        link = os.path.join(config.SYSFS_INPUT, name, "device")
    elif node.startswith("/sys/"):
        link = node
    else:
        return None
    if not os.path.exists(link):
        return None
    return os.path.realpath(link)


def find_power_supply(node: str) -> Optional[str]:
    """Find the power_supply sysfs path for a device node.

    Walks the device's sysfs parent chain looking for a power_supply entry
    (scope=Device, type=Battery) whose own device link points at one of
    those parents.
    """
    device_real = _sysfs_device_for(node)
    if not device_real:
        return None

    ps_base = config.SYSFS_POWER_SUPPLY
    if not os.path.isdir(ps_base):
        return None

    for ps_name in sorted(os.listdir(ps_base)):
        ps_path = os.path.join(ps_base, ps_name)

        # Skip the Deck's own battery and AC adapters
        scope = _read_attr(ps_path, "scope")
        if scope is not None and scope != "Device":
            continue
        ps_type = _read_attr(ps_path, "type")
        if ps_type is not None and ps_type != "Battery":
            continue

        try:
            ps_device_real = os.path.realpath(os.path.join(ps_path, "device"))
        except OSError:
            continue

        parent = device_real
        for _ in range(_MAX_PARENT_DEPTH):
            if ps_device_real == parent:
                return ps_path
            parent = os.path.dirname(parent)
            if parent in ("/", ""):
                break

    return None


def read_power_supply(power_supply_path: str) -> tuple[int, Status]:
    """Read (capacity percent, status) from a power_supply directory."""
    status = _STATUS_MAP.get(_read_attr(power_supply_path, "status") or "Unknown", Status.UNKNOWN)

    raw_capacity = _read_attr(power_supply_path, "capacity")
    if raw_capacity is not None:
        try:
            return max(0, min(100, int(raw_capacity))), status
        except ValueError:
            logger.debug("Bad capacity %r in %s", raw_capacity, power_supply_path)

    level = _read_attr(power_supply_path, "capacity_level")
    if level is not None and level in _CAPACITY_LEVELS:
        return _CAPACITY_LEVELS[level], status

    raise PowerSupplyError(f"{power_supply_path} has no capacity attribute")


def read_battery(node: str) -> tuple[int, Status]:
    """Battery state for a device node, or PowerSupplyError if the kernel exposes none."""
    ps_path = find_power_supply(node)
    if not ps_path:
        raise PowerSupplyError(f"No power_supply for {node}")
    return read_power_supply(ps_path)
