"""Tracks the last controller snapshot and turns new polls into events."""

import logging
from collections import OrderedDict
from typing import Optional

from controller_tools import database
from controller_tools.models import Controller, ControllerEvent, ControllerProfile, PluginSettings, Status

logger = logging.getLogger(__name__)

CONNECTED = "controller_connected"
DISCONNECTED = "controller_disconnected"
UPDATED = "controller_updated"
LOW_BATTERY = "low_battery"

_CHARGING_STATES = (Status.CHARGING, Status.FULL)


class StateManager:
    def __init__(self, settings: Optional[PluginSettings] = None):
        # unique_id -> Controller, in enumeration order
        self._controllers: OrderedDict[str, Controller] = OrderedDict()
        # unique_id -> custom name from the profile table
        self._custom_names: dict[str, Optional[str]] = {}
        # unique_ids that already fired a low battery event for the current discharge
        self._low_battery_notified: set[str] = set()
        self.settings = settings or PluginSettings()

    async def _profile_for(self, controller: Controller) -> ControllerProfile:
        return await database.upsert_profile(
            unique_id=controller.unique_id,
            default_name=controller.name,
            vendor_id=controller.vendor_id,
            product_id=controller.product_id,
        )

    def _check_low_battery(self, controller: Controller) -> Optional[ControllerEvent]:
        """Fire once when capacity drops to or below the threshold while not charging."""
        uid = controller.unique_id
        threshold = self.settings.low_battery_threshold

        if controller.status in _CHARGING_STATES or controller.capacity > threshold:
            self._low_battery_notified.discard(uid)
            return None
        # capacity 0 with unknown status means we could not read it at all
        if controller.capacity == 0 and controller.status == Status.UNKNOWN:
            return None
        if uid in self._low_battery_notified:
            return None
        self._low_battery_notified.add(uid)
        if not self.settings.notify_low_battery:
            return None
        return ControllerEvent(type=LOW_BATTERY, data=controller.model_dump(mode="json"))

    async def apply(self, controllers: list[Controller]) -> list[ControllerEvent]:
        """Replace the snapshot with a new poll and return what changed."""
        events: list[ControllerEvent] = []
        current: OrderedDict[str, Controller] = OrderedDict()

        for controller in controllers:
            uid = controller.unique_id
            if uid not in self._custom_names:
                try:
                    profile = await self._profile_for(controller)
                    self._custom_names[uid] = profile.custom_name
                except Exception as e:
                    logger.warning("Could not load profile for %s: %s", uid, e)
                    self._custom_names[uid] = None
            controller.custom_name = self._custom_names.get(uid)
            current[uid] = controller

            previous = self._controllers.get(uid)
            if previous is None:
                events.append(ControllerEvent(type=CONNECTED, data=controller.model_dump(mode="json")))
                logger.info("Connected: %s (%s, %d%%, %s)", controller.name, controller.connection.value,
                            controller.capacity, controller.status.value)
            elif (
                previous.capacity != controller.capacity
                or previous.status != controller.status
                or previous.connection != controller.connection
            ):
                events.append(ControllerEvent(type=UPDATED, data=controller.model_dump(mode="json")))

            low = self._check_low_battery(controller)
            if low:
                events.append(low)

        for uid, previous in self._controllers.items():
            if uid not in current:
                events.append(ControllerEvent(type=DISCONNECTED, data={"unique_id": uid}))
                self._low_battery_notified.discard(uid)
                self._custom_names.pop(uid, None)
                logger.info("Disconnected: %s", previous.name)

        self._controllers = current
        return events

    def refresh_profile(self, profile: ControllerProfile) -> Optional[Controller]:
        """Apply an edited profile to the in-memory snapshot."""
        self._custom_names[profile.unique_id] = profile.custom_name
        controller = self._controllers.get(profile.unique_id)
        if controller:
            controller.custom_name = profile.custom_name
        return controller

    def get_snapshot(self) -> list[dict]:
        return [c.model_dump(mode="json") for c in self._controllers.values()]

    def get_controllers(self) -> list[Controller]:
        return list(self._controllers.values())
