"""Configuration helpers for MongoDB connections used by db_core.

Applications build a ``MongoSettings`` instance at startup (optionally with
overrides) and hand it to ``create_mongo_client``. If nothing is overridden,
the environment-driven defaults below are used.
"""
from loguru import logger
import os

from pydantic import BaseModel, Field


class MongoSettings(BaseModel):
    """Basic MongoDB configuration that domain apps can extend if needed."""

    uri: str = Field(
        default_factory=lambda: os.getenv("MONGO_URI", "mongodb://localhost:27017")
    )
    db_name: str = Field(default_factory=lambda: os.getenv("MONGO_DB_NAME", "couponDB"))
    # Upper bound for server selection, connect and socket operations so a
    # call fails instead of hanging when the server is unreachable.
    timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("MONGO_TIMEOUT_MS", "5000")),
        gt=0,
    )


def load_settings(**overrides) -> MongoSettings:
    """Build settings from the environment, applying explicit overrides."""

    settings = MongoSettings(**overrides)
    logger.info(
        "MongoSettings initialized with uri={uri} db_name={db_name}",
        uri=settings.uri,
        db_name=settings.db_name,
    )
    return settings
