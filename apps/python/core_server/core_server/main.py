"""FastAPI application composing the coupon ledger router."""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient

from coupon_ledger import LedgerService, LedgerSettings, LedgerStore
from coupons_api import install_error_handlers, router as coupons_router
from db_core import MongoSettings, create_mongo_client, get_db, is_transient, load_settings, ping
from pymongo.errors import PyMongoError

from .config import CoreSettings, settings


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
    logger.info("Logger configured at {level} level", level=level.upper())


def create_app(
    core_settings: Optional[CoreSettings] = None,
    mongo_settings: Optional[MongoSettings] = None,
    ledger_settings: Optional[LedgerSettings] = None,
    client_factory: Callable[[MongoSettings], AsyncIOMotorClient] = create_mongo_client,
) -> FastAPI:
    """Build the app; the Mongo client lives exactly as long as the lifespan."""

    core_settings = core_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        mongo = mongo_settings or load_settings()
        ledger = ledger_settings or LedgerSettings()
        client = client_factory(mongo)
        try:
            db = get_db(client, mongo)
            store = LedgerStore(db[ledger.collection_name], dedup_mode=ledger.dedup_mode)
            # Without the unique index dedup is not enforced, so startup fails here.
            await store.ensure_indexes()
            app.state.db = db
            app.state.ledger_service = LedgerService(store, ledger)
            logger.info(
                "Coupon ledger ready (dedup_mode={mode}, timezone={tz}, collection={collection})",
                mode=ledger.dedup_mode.value,
                tz=ledger.timezone,
                collection=ledger.collection_name,
            )
            yield
        finally:
            client.close()
            logger.info("Mongo client closed")

    app = FastAPI(title=core_settings.api_title, version=core_settings.api_version, lifespan=lifespan)

    if core_settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=core_settings.cors_allow_origins,
            allow_credentials="*" not in core_settings.cors_allow_origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    logger.info("CORS middleware added {origins}", origins=core_settings.cors_allow_origins)

    @app.get("/health", tags=["health"])
    async def health(request: Request):
        """Liveness plus a Mongo ping for load balancers and probes."""

        try:
            await ping(request.app.state.db)
        except PyMongoError as exc:
            if not is_transient(exc):
                raise
            logger.warning("Health check ping failed: {error}", error=exc)
            return JSONResponse(status_code=503, content={"status": "degraded", "mongo": False})
        return {"status": "ok", "mongo": True}

    install_error_handlers(app)
    app.include_router(coupons_router)
    return app


_configure_logging(settings.log_level)
app = create_app()

"""Run with:

    uvicorn core_server.main:app --host 0.0.0.0 --port 8000 --reload
"""
