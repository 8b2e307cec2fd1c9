from enum import Enum
from typing import Any, Optional, TYPE_CHECKING

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

import controller_tools.config as config

if TYPE_CHECKING:
    from controller_tools.controllers.hid_device import HidDeviceInfo


class Status(str, Enum):
    CHARGING = "charging"
    DISCHARGING = "discharging"
    FULL = "full"
    NOT_CHARGING = "not_charging"
    UNKNOWN = "unknown"


class ConnectionType(str, Enum):
    USB = "usb"
    BLUETOOTH = "bluetooth"
    WIRELESS_ADAPTER = "wireless_adapter"


class Controller(BaseModel):
    name: str
    vendor_id: int
    product_id: int
    capacity: int = 0
    status: Status = Status.UNKNOWN
    connection: ConnectionType = ConnectionType.USB
    serial_number: Optional[str] = None
    gip: Optional[str] = None
    path: Optional[str] = None
    custom_name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _connection_from_bluetooth_flag(cls, data: Any) -> Any:
        # Older fake controller files only carry "bluetooth": true/false
        if isinstance(data, dict) and "connection" not in data and "bluetooth" in data:
            data = dict(data)
            data["connection"] = ConnectionType.BLUETOOTH if data["bluetooth"] else ConnectionType.USB
        return data

    @field_validator("capacity", mode="before")
    @classmethod
    def _clamp_capacity(cls, value: Any) -> int:
        try:
            capacity = int(value)
        except TypeError as e:
            raise ValueError(f"capacity must be a number, not {type(value).__name__}") from e
        return max(0, min(100, capacity))

    @computed_field
    @property
    def bluetooth(self) -> bool:
        return self.connection == ConnectionType.BLUETOOTH

    @computed_field
    @property
    def unique_id(self) -> str:
        if self.gip:
            return f"gip:{self.gip}"
        if self.serial_number and self.serial_number.strip():
            return self.serial_number.strip()
        return f"{self.vendor_id:04x}:{self.product_id:04x}:{self.path or ''}"

    @classmethod
    def from_hid(
        cls,
        device: "HidDeviceInfo",
        name: str,
        capacity: int,
        status: Status,
    ) -> "Controller":
        return cls(
            name=name,
            vendor_id=device.vendor_id,
            product_id=device.product_id,
            capacity=capacity,
            status=status,
            connection=ConnectionType.BLUETOOTH if device.is_bluetooth else ConnectionType.USB,
            serial_number=device.serial_number or None,
            path=device.path,
        )

    @classmethod
    def from_input(
        cls,
        name: str,
        vendor_id: int,
        product_id: int,
        gip: str,
        path: str,
        capacity: int,
        status: Status,
        bluetooth: bool = False,
    ) -> "Controller":
        if bluetooth:
            connection = ConnectionType.BLUETOOTH
        elif gip.startswith("gip"):
            connection = ConnectionType.WIRELESS_ADAPTER
        else:
            connection = ConnectionType.USB
        return cls(
            name=name,
            vendor_id=vendor_id,
            product_id=product_id,
            capacity=capacity,
            status=status,
            connection=connection,
            gip=gip,
            path=path,
        )


class ControllerProfile(BaseModel):
    unique_id: str
    default_name: str
    custom_name: Optional[str] = None
    vendor_id: Optional[int] = None
    product_id: Optional[int] = None


class ControllerProfileUpdate(BaseModel):
    custom_name: Optional[str] = None


class PluginSettings(BaseModel):
    poll_interval: float = Field(default=config.BATTERY_POLL_INTERVAL, ge=config.MIN_POLL_INTERVAL)
    low_battery_threshold: int = Field(default=config.LOW_BATTERY_THRESHOLD, ge=0, le=100)
    notify_low_battery: bool = True
    debug: bool = False


class PluginSettingsUpdate(BaseModel):
    poll_interval: Optional[float] = Field(default=None, ge=config.MIN_POLL_INTERVAL)
    low_battery_threshold: Optional[int] = Field(default=None, ge=0, le=100)
    notify_low_battery: Optional[bool] = None
    debug: Optional[bool] = None


class ControllerEvent(BaseModel):
    type: str
    data: dict[str, Any]


class DisconnectRequest(BaseModel):
    address: str
