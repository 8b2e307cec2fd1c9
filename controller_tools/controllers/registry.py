"""Per-vendor decoder registry."""

import logging
from abc import ABC, abstractmethod
from typing import List, Tuple, Type

from controller_tools.controllers.hid_device import HidDeviceInfo
from controller_tools.battery import power_supply
from controller_tools.errors import PowerSupplyError
from controller_tools.models import Controller, Status

logger = logging.getLogger(__name__)


class ControllerDecoder(ABC):
    """Turns hidapi devices of one family into Controller records.

    Decoders with higher priority see devices first; a device claimed by one
    decoder is not offered to the ones after it.
    """

    name: str = "unknown"
    priority: int = 50

    @classmethod
    @abstractmethod
    def matches(cls, device: HidDeviceInfo) -> bool:
        """Whether this decoder handles the device."""

    @classmethod
    def select(cls, devices: List[HidDeviceInfo]) -> List[HidDeviceInfo]:
        """Pick which of the matching devices to parse. Defaults to all of them."""
        return devices

    @classmethod
    @abstractmethod
    def parse(cls, device: HidDeviceInfo) -> Controller:
        """Read battery/charging state for one device."""

    @classmethod
    def fallback_battery(cls, device: HidDeviceInfo) -> Tuple[int, Status]:
        """Battery state from the kernel power_supply entry, or (0, unknown)."""
        try:
            return power_supply.read_battery(device.path)
        except PowerSupplyError as e:
            logger.debug("%s: %s", cls.name, e)
            return 0, Status.UNKNOWN


class DecoderRegistry:
    _decoders: List[Type[ControllerDecoder]] = []

    @classmethod
    def register(cls, decoder_class: Type[ControllerDecoder]) -> None:
        if decoder_class not in cls._decoders:
            cls._decoders.append(decoder_class)
            logger.debug("Registered decoder: %s (priority: %d)", decoder_class.name, decoder_class.priority)

    @classmethod
    def get_all(cls) -> List[Type[ControllerDecoder]]:
        return sorted(cls._decoders, key=lambda d: d.priority, reverse=True)


def register_decoder(decoder_class: Type[ControllerDecoder]) -> Type[ControllerDecoder]:
    """Decorator to register a decoder class."""
    DecoderRegistry.register(decoder_class)
    return decoder_class


def decoders() -> List[Type[ControllerDecoder]]:
    """All registered decoders, highest priority first."""
    return DecoderRegistry.get_all()
