"""Minimal MongoDB helpers shared across domain repositories.

Example usage in an application lifespan:

    from db_core import create_mongo_client, get_db, load_settings

    settings = load_settings()
    client = create_mongo_client(settings)
    coupons = get_db(client, settings)["coupons"]
    ...
    client.close()
"""

from .settings import MongoSettings, load_settings
from .mongo import TRANSIENT_ERRORS, create_mongo_client, get_db, is_transient, ping

__all__ = [
    "MongoSettings",
    "load_settings",
    "TRANSIENT_ERRORS",
    "create_mongo_client",
    "get_db",
    "is_transient",
    "ping",
]
