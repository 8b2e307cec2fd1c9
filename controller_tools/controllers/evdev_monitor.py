"""Watches /dev/input for gamepads coming and going."""

import asyncio
import logging
from contextlib import closing
from typing import Awaitable, Callable, Optional

from evdev import InputDevice, ecodes, list_devices

import controller_tools.config as config

logger = logging.getLogger(__name__)

BUS_BLUETOOTH = 0x05

# BTN_JOYSTICK (0x120) through the end of the gamepad button block
GAMEPAD_BUTTONS = range(0x120, 0x140)


def describe(device: InputDevice) -> dict:
    info = device.info
    uniq = (device.uniq or "").strip()
    return {
        "device_path": device.path,
        "name": device.name,
        "unique_id": uniq or f"{info.vendor:04x}:{info.product:04x}:{device.name}",
        "vendor_id": info.vendor,
        "product_id": info.product,
        "connection_type": "bluetooth" if info.bustype == BUS_BLUETOOTH else "usb",
    }


def has_gamepad_buttons(device: InputDevice) -> bool:
    """Motion sensor and touchpad nodes of a controller carry no gamepad buttons."""
    try:
        keys = device.capabilities().get(ecodes.EV_KEY, [])
    except OSError:
        return False
    return any(code in GAMEPAD_BUTTONS for code in keys)


class EvdevMonitor:
    """Polls evdev and reports new or removed gamepad nodes.

    Only hotplug is detected here; battery state comes from the battery
    monitor, which these callbacks wake up.
    """

    def __init__(self):
        self.on_connected: Optional[Callable[[dict], Awaitable[None]]] = None
        self.on_disconnected: Optional[Callable[[str], Awaitable[None]]] = None
        self._running = False
        # every node seen so far, so non-gamepads are opened only once
        self._seen: set[str] = set()
        self._gamepads: dict[str, dict] = {}

    def stop(self):
        self._running = False

    def _probe(self, path: str) -> Optional[dict]:
        try:
            device = InputDevice(path)
        except OSError as e:
            logger.debug("Cannot open %s: %s", path, e)
            return None
        with closing(device):
            return describe(device) if has_gamepad_buttons(device) else None

    async def poll_once(self):
        present = set(list_devices())

        for path in sorted(present - self._seen):
            self._seen.add(path)
            info = self._probe(path)
            if info is None:
                continue
            self._gamepads[path] = info
            logger.info("Gamepad added: %s (%s)", info["name"], path)
            if self.on_connected:
                await self.on_connected(info)

        for path in sorted(self._seen - present):
            self._seen.discard(path)
            info = self._gamepads.pop(path, None)
            if info is None:
                continue
            logger.info("Gamepad removed: %s (%s)", info["name"], path)
            if self.on_disconnected:
                await self.on_disconnected(path)

    async def run(self):
        self._running = True
        logger.info("Watching /dev/input every %.1fs", config.DEVICE_POLL_INTERVAL)
        while self._running:
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Input device poll failed")
            await asyncio.sleep(config.DEVICE_POLL_INTERVAL)
