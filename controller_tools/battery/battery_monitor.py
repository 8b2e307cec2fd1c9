"""Periodic controller battery polling."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import controller_tools.config as config
from controller_tools.controllers.enumerator import controllers_async
from controller_tools.controllers.state_manager import StateManager
from controller_tools.models import ControllerEvent

logger = logging.getLogger(__name__)


class BatteryMonitor:
    def __init__(
        self,
        state_manager: StateManager,
        poll: Callable[[], Awaitable[list]] = controllers_async,
    ):
        self.on_update: Optional[Callable[[list[ControllerEvent]], Awaitable[None]]] = None
        self.state_manager = state_manager
        self._poll = poll
        self._running = False
        self._wake = asyncio.Event()
        self._lock = asyncio.Lock()

    @property
    def poll_interval(self) -> float:
        return max(config.MIN_POLL_INTERVAL, self.state_manager.settings.poll_interval)

    def stop(self):
        self._running = False
        self._wake.set()

    def request_refresh(self):
        """Wake the loop early, e.g. after a hotplug event."""
        self._wake.set()

    async def refresh(self) -> list[ControllerEvent]:
        """Poll once, update state and notify listeners. Returns the events."""
        async with self._lock:
            controllers = await self._poll()
            events = await self.state_manager.apply(controllers)
        if events and self.on_update:
            await self.on_update(events)
        return events

    async def _sleep(self):
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            pass
        self._wake.clear()

    async def run(self):
        """Main polling loop."""
        self._running = True
        logger.info("Starting battery monitoring (every %.0fs)", self.poll_interval)

        while self._running:
            try:
                await self.refresh()
            except Exception:
                logger.exception("Battery poll failed")
            if self._running:
                await self._sleep()

        logger.info("Battery monitoring stopped")
