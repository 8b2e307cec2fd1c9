"""SQLite persistence for plugin settings and per-controller profiles."""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import aiosqlite

import controller_tools.config as config
from controller_tools.errors import ControllerToolsError
from controller_tools.models import ControllerProfile, PluginSettings

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA = """
CREATE TABLE IF NOT EXISTS controllers (
    unique_id    TEXT PRIMARY KEY,
    default_name TEXT NOT NULL,
    custom_name  TEXT,
    vendor_id    INTEGER,
    product_id   INTEGER,
    first_seen   TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    last_seen    TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS settings (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

PROFILE_COLUMNS = "unique_id, default_name, custom_name, vendor_id, product_id"

# Sentinel: "leave this column alone" as opposed to "set it to NULL"
UNCHANGED: Any = object()


@asynccontextmanager
async def connect() -> AsyncIterator[aiosqlite.Connection]:
    config.ensure_data_dir()
    async with aiosqlite.connect(config.DB_PATH) as db:
        db.row_factory = aiosqlite.Row
        yield db


async def init_db() -> None:
    """Create missing tables and seed any setting that has no stored value."""
    async with connect() as db:
        await db.executescript(SCHEMA)
        async with db.execute("PRAGMA user_version") as cursor:
            (version,) = await cursor.fetchone()
        if version != SCHEMA_VERSION:
            logger.info("Database schema %d -> %d", version, SCHEMA_VERSION)
            await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

        defaults = PluginSettings().model_dump()
        await db.executemany(
            "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?)",
            [(key, json.dumps(value)) for key, value in defaults.items()],
        )
        await db.commit()


async def get_settings() -> PluginSettings:
    async with connect() as db:
        async with db.execute("SELECT key, value FROM settings") as cursor:
            stored = {row["key"]: json.loads(row["value"]) async for row in cursor}
    known = {k: v for k, v in stored.items() if k in PluginSettings.model_fields}
    return PluginSettings(**known)


async def update_settings(**fields: Any) -> PluginSettings:
    """Store the given settings. None means "keep the current value".

    The merged settings are validated before anything is written.
    """
    changes = {k: v for k, v in fields.items() if v is not None and k in PluginSettings.model_fields}
    current = await get_settings()
    merged = PluginSettings.model_validate({**current.model_dump(), **changes})

    async with connect() as db:
        await db.executemany(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            [(key, json.dumps(getattr(merged, key))) for key in changes],
        )
        await db.commit()
    return merged


async def get_profile(unique_id: str) -> Optional[ControllerProfile]:
    async with connect() as db:
        async with db.execute(
            f"SELECT {PROFILE_COLUMNS} FROM controllers WHERE unique_id = ?", (unique_id,)
        ) as cursor:
            row = await cursor.fetchone()
    return ControllerProfile(**dict(row)) if row else None


async def get_all_profiles() -> list[ControllerProfile]:
    async with connect() as db:
        async with db.execute(f"SELECT {PROFILE_COLUMNS} FROM controllers ORDER BY first_seen, rowid") as cursor:
            return [ControllerProfile(**dict(row)) async for row in cursor]


async def upsert_profile(
    unique_id: str,
    default_name: str,
    vendor_id: Optional[int] = None,
    product_id: Optional[int] = None,
) -> ControllerProfile:
    """Record a sighting of a controller. A stored custom name is kept."""
    async with connect() as db:
        await db.execute(
            """
            INSERT INTO controllers (unique_id, default_name, vendor_id, product_id)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(unique_id) DO UPDATE SET
                default_name = excluded.default_name,
                vendor_id = COALESCE(excluded.vendor_id, vendor_id),
                product_id = COALESCE(excluded.product_id, product_id),
                last_seen = CURRENT_TIMESTAMP
            """,
            (unique_id, default_name, vendor_id, product_id),
        )
        await db.commit()
    profile = await get_profile(unique_id)
    if profile is None:
        raise ControllerToolsError(f"Profile {unique_id} missing after upsert")
    return profile


async def update_profile_fields(unique_id: str, custom_name: Optional[str] = UNCHANGED) -> Optional[ControllerProfile]:
    """Edit user-facing profile fields. An empty custom name clears it."""
    if custom_name is not UNCHANGED:
        async with connect() as db:
            await db.execute(
                "UPDATE controllers SET custom_name = ? WHERE unique_id = ?",
                (custom_name or None, unique_id),
            )
            await db.commit()
    return await get_profile(unique_id)
