"""UPower D-Bus fallback for controllers BlueZ doesn't report a battery for."""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

UPOWER_SERVICE = "org.freedesktop.UPower"
UPOWER_PATH = "/org/freedesktop/UPower"
UPOWER_INTERFACE = "org.freedesktop.UPower"
UPOWER_DEVICE_INTERFACE = "org.freedesktop.UPower.Device"

XBOX_CONTROLLER_MODEL = "Microsoft Xbox Controller"


def get_battery_percentage_from_upower(device_model: str, bus=None) -> Optional[int]:
    """Return the battery percentage of the first UPower device whose Model matches."""
    try:
        if bus is None:
            from dasbus.connection import SystemMessageBus
            bus = SystemMessageBus()
        upower = bus.get_proxy(UPOWER_SERVICE, UPOWER_PATH, UPOWER_INTERFACE)
        device_paths = upower.EnumerateDevices()
    except Exception as e:
        logger.debug("UPower unavailable: %s", e)
        return None

    for device_path in device_paths:
        try:
            device = bus.get_proxy(UPOWER_SERVICE, str(device_path), UPOWER_DEVICE_INTERFACE)
            if str(device.Model) != device_model:
                continue
            return int(float(device.Percentage))
        except Exception as e:
            logger.debug("UPower device %s unreadable: %s", device_path, e)
            continue

    return None
