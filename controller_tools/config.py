import logging
import os
from pathlib import Path

# Base paths
PROJECT_ROOT = Path(__file__).parent.parent

# Settings DB lives in a writable data dir (Decky provides one per plugin,
# falls back to project root in dev).
_data_dir = Path(
    os.environ.get(
        "CONTROLLER_TOOLS_DATA_DIR",
        os.environ.get("DECKY_PLUGIN_SETTINGS_DIR", PROJECT_ROOT),
    )
)
DB_PATH = _data_dir / "controller_tools.db"

# Debug builds may inject a fake controller for UI work without hardware
DEBUG_ENV = os.environ.get("CONTROLLER_TOOLS_DEBUG", "false").lower() in ("1", "true", "yes")
# Also switched on by the "debug" plugin setting
DEBUG = DEBUG_ENV
FAKE_CONTROLLER_PATH = Path("/tmp/fake_controller.json")

# sysfs roots (overridable in tests)
SYSFS_POWER_SUPPLY = "/sys/class/power_supply"
SYSFS_INPUT = "/sys/class/input"
SYSFS_HIDRAW = "/sys/class/hidraw"

# Polling intervals (seconds)
DEVICE_POLL_INTERVAL = 1.0
BATTERY_POLL_INTERVAL = 30.0
MIN_POLL_INTERVAL = 1.0

# HID report reads
HID_READ_TIMEOUT_MS = 250
HID_READ_ATTEMPTS = 8
HID_REPORT_SIZE = 78

# Low battery notification default (percent)
LOW_BATTERY_THRESHOLD = 20

# Server
HOST = os.environ.get("CONTROLLER_TOOLS_HOST", "127.0.0.1")
PORT = int(os.environ.get("CONTROLLER_TOOLS_PORT", "8765"))

LOG_LEVEL = os.environ.get("CONTROLLER_TOOLS_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def ensure_data_dir() -> Path:
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    return DB_PATH.parent


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Configure root logging once for the service and the CLI."""
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
