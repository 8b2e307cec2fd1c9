"""HTTP and WebSocket surface of the controller service."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import controller_tools.config as config
from controller_tools import __version__, database
from controller_tools.battery.battery_monitor import BatteryMonitor
from controller_tools.bluetooth.bluez_manager import get_manager
from controller_tools.controllers.evdev_monitor import EvdevMonitor
from controller_tools.controllers.state_manager import UPDATED, StateManager
from controller_tools.models import (
    ControllerEvent,
    ControllerProfileUpdate,
    DisconnectRequest,
    PluginSettings,
    PluginSettingsUpdate,
)

logger = logging.getLogger(__name__)

SNAPSHOT = "state_snapshot"


class EventBroadcaster:
    """Fans controller events out to every open WebSocket."""

    def __init__(self):
        self.clients: list[WebSocket] = []

    async def attach(self, ws: WebSocket):
        await ws.accept()
        self.clients.append(ws)
        logger.debug("WebSocket client attached (%d open)", len(self.clients))

    def detach(self, ws: WebSocket):
        if ws in self.clients:
            self.clients.remove(ws)

    async def send(self, ws: WebSocket, event: ControllerEvent):
        await ws.send_text(event.model_dump_json())

    async def publish(self, event: ControllerEvent):
        clients = list(self.clients)
        results = await asyncio.gather(*(self.send(ws, event) for ws in clients), return_exceptions=True)
        for ws, result in zip(clients, results):
            if isinstance(result, Exception):
                logger.debug("Dropping WebSocket client: %s", result)
                self.detach(ws)


broadcaster = EventBroadcaster()
state_manager = StateManager()
evdev_monitor = EvdevMonitor()
battery_monitor = BatteryMonitor(state_manager)


async def on_events(events: list[ControllerEvent]):
    for event in events:
        await broadcaster.publish(event)


async def on_hotplug(_device):
    # evdev only says something changed; the next poll works out what
    battery_monitor.request_refresh()


def apply_settings(settings: PluginSettings):
    state_manager.settings = settings
    config.DEBUG = config.DEBUG_ENV or settings.debug


async def _cancel(tasks: list[asyncio.Task]):
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await database.init_db()
    apply_settings(await database.get_settings())

    evdev_monitor.on_connected = on_hotplug
    evdev_monitor.on_disconnected = on_hotplug
    battery_monitor.on_update = on_events

    tasks = [
        asyncio.create_task(evdev_monitor.run()),
        asyncio.create_task(battery_monitor.run()),
    ]
    logger.info("Controller Tools %s started", __version__)
    try:
        yield
    finally:
        evdev_monitor.stop()
        battery_monitor.stop()
        await _cancel(tasks)
        logger.info("Controller Tools stopped")


app = FastAPI(title="Controller Tools", version=__version__, lifespan=lifespan)
# The Decky frontend is served from a different origin
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}


@app.websocket("/ws")
async def events_socket(ws: WebSocket):
    await broadcaster.attach(ws)
    try:
        await ws.send_json({"type": SNAPSHOT, "data": state_manager.get_snapshot()})
        # Clients only listen; reading keeps the disconnect visible
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.detach(ws)


# Controllers

@app.get("/api/controllers")
async def list_controllers():
    return state_manager.get_snapshot()


@app.post("/api/controllers/refresh")
async def refresh_controllers():
    await battery_monitor.refresh()
    return state_manager.get_snapshot()


# Settings

@app.get("/api/settings")
async def read_settings():
    return await database.get_settings()


@app.put("/api/settings")
async def write_settings(update: PluginSettingsUpdate):
    settings = await database.update_settings(**update.model_dump(exclude_none=True))
    apply_settings(settings)
    # wakes the poll loop so a new interval applies now
    battery_monitor.request_refresh()
    return settings


# Profiles

@app.get("/api/profiles")
async def list_profiles():
    return await database.get_all_profiles()


@app.put("/api/profiles/{unique_id}")
async def rename_controller(unique_id: str, update: ControllerProfileUpdate):
    # a body without custom_name leaves it alone; null or "" clears it
    custom_name = update.custom_name if "custom_name" in update.model_fields_set else database.UNCHANGED
    profile = await database.update_profile_fields(unique_id, custom_name=custom_name)
    if profile is None:
        return JSONResponse(status_code=404, content={"error": "Profile not found"})

    controller = state_manager.refresh_profile(profile)
    if controller is not None:
        await broadcaster.publish(ControllerEvent(type=UPDATED, data=controller.model_dump(mode="json")))
    return profile


# Bluetooth

@app.get("/api/bluetooth/controllers")
async def bluetooth_controllers():
    return await asyncio.to_thread(get_manager().connected_controllers)


@app.post("/api/bluetooth/disconnect")
async def bluetooth_disconnect(req: DisconnectRequest):
    disconnected = await asyncio.to_thread(get_manager().disconnect_device, req.address)
    if not disconnected:
        return JSONResponse(
            status_code=404,
            content={"error": "Device not found or disconnect failed", "address": req.address},
        )
    battery_monitor.request_refresh()
    return {"status": "disconnected", "address": req.address}
