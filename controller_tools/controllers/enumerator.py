"""Enumerate connected controllers and read their battery state."""

import asyncio
import json
import logging
from typing import List

from pydantic import ValidationError

import controller_tools.config as config
from controller_tools.controllers import xbox
from controller_tools.controllers.hid_device import HidDeviceInfo, enumerate_devices
from controller_tools.controllers.registry import decoders
from controller_tools.models import Controller

logger = logging.getLogger(__name__)


def parse_fake_controller(controllers: List[Controller]) -> None:
    """Append the controller described in FAKE_CONTROLLER_PATH, if it exists and parses."""
    try:
        raw = config.FAKE_CONTROLLER_PATH.read_text()
    except OSError:
        return

    try:
        controller = Controller.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as e:
        logger.debug("Error parsing fake controller: %s", e)
        return

    logger.debug("Loaded fake controller: %s", controller)
    controllers.append(controller)


def decode_devices(devices: List[HidDeviceInfo]) -> List[Controller]:
    """Run every registered decoder over the hidapi device list."""
    controllers: List[Controller] = []
    claimed: set[int] = set()

    for decoder in decoders():
        matching = [d for d in devices if id(d) not in claimed and decoder.matches(d)]
        if not matching:
            continue
        claimed.update(id(d) for d in matching)

        for device in decoder.select(matching):
            try:
                controllers.append(decoder.parse(device))
            except Exception:
                logger.exception("Decoder %s failed for %r", decoder.name, device)

    return controllers


def controllers() -> List[Controller]:
    """All connected controllers. Blocks on HID reads and D-Bus calls."""
    found: List[Controller] = []

    if config.DEBUG:
        parse_fake_controller(found)

    found.extend(decode_devices(enumerate_devices()))

    try:
        found.extend(xbox.scan_gip_controllers())
    except OSError as e:
        logger.warning("GIP scan failed: %s", e)

    unique: List[Controller] = []
    seen: set[str] = set()
    for controller in found:
        if controller.unique_id in seen:
            continue
        seen.add(controller.unique_id)
        unique.append(controller)
    return unique


async def controllers_async() -> List[Controller]:
    # controllers() is a blocking API
    return await asyncio.to_thread(controllers)
