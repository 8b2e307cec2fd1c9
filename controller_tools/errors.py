"""Exceptions raised by device access layers."""


class ControllerToolsError(Exception):
    """Base class for all controller-tools errors."""


class DeviceReadError(ControllerToolsError):
    """A HID report could not be read or did not contain battery data."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class BluetoothError(ControllerToolsError):
    """BlueZ lookup failed (no adapter, unknown device, no battery interface)."""


class PowerSupplyError(ControllerToolsError):
    """No usable power_supply entry for a device."""
