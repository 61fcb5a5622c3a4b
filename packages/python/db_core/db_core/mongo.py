"""Async MongoDB helpers built on top of Motor.

Only generic utilities live here; domain repositories receive a client or
collection built by these helpers and add their own queries on top. The
client is owned by whoever creates it (usually an app lifespan), there is no
module-level connection.
"""

from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import (
    AutoReconnect,
    ConnectionFailure,
    ExecutionTimeout,
    NetworkTimeout,
    ServerSelectionTimeoutError,
    WTimeoutError,
)

from .settings import MongoSettings

# Errors that mean "the store did not answer", as opposed to a rejected write.
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    AutoReconnect,
    ConnectionFailure,
    ExecutionTimeout,
    NetworkTimeout,
    ServerSelectionTimeoutError,
    WTimeoutError,
)


def create_mongo_client(settings: MongoSettings) -> AsyncIOMotorClient:
    """Return a new Motor client with bounded timeouts taken from ``settings``."""

    return AsyncIOMotorClient(
        settings.uri,
        serverSelectionTimeoutMS=settings.timeout_ms,
        connectTimeoutMS=settings.timeout_ms,
        socketTimeoutMS=settings.timeout_ms,
        tz_aware=True,
    )


def get_db(client: AsyncIOMotorClient, settings: MongoSettings) -> AsyncIOMotorDatabase:
    """Return the application database defined by ``settings.db_name``."""

    return client[settings.db_name]


def is_transient(exc: BaseException) -> bool:
    return isinstance(exc, TRANSIENT_ERRORS)


async def ping(db: AsyncIOMotorDatabase) -> dict[str, Any]:
    """Run a simple ``ping`` command against the configured MongoDB server."""

    await db.command("ping")
    return {"ok": True}
