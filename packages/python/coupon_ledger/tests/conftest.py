from datetime import datetime, timezone
from uuid import uuid4

import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

from coupon_ledger import DedupMode, LedgerService, LedgerSettings, LedgerStore


class FakeClock:
    """Settable clock handed to ``LedgerService``."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def collection():
    return AsyncMongoMockClient()["couponDB"][f"coupons_{uuid4().hex}"]


@pytest.fixture()
def clock():
    return FakeClock(datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc))


async def _build_service(collection, clock, mode: DedupMode, tz: str = "UTC") -> LedgerService:
    store = LedgerStore(collection, dedup_mode=mode)
    await store.ensure_indexes()
    settings = LedgerSettings(dedup_mode=mode, timezone=tz)
    return LedgerService(store, settings, clock=clock)


@pytest_asyncio.fixture()
async def store(collection):
    store = LedgerStore(collection, dedup_mode=DedupMode.ORDER_KEY)
    await store.ensure_indexes()
    return store


@pytest_asyncio.fixture()
async def service(collection, clock):
    return await _build_service(collection, clock, DedupMode.ORDER_KEY)


@pytest_asyncio.fixture()
async def daily_service(collection, clock):
    return await _build_service(collection, clock, DedupMode.DAILY, tz="Asia/Seoul")


@pytest_asyncio.fixture()
async def open_service(collection, clock):
    return await _build_service(collection, clock, DedupMode.NONE)


@pytest.fixture()
def build_service(collection, clock):
    """Build a service on the test collection with any mode and calendar."""

    async def _build(mode: DedupMode, tz: str = "UTC") -> LedgerService:
        return await _build_service(collection, clock, mode, tz=tz)

    return _build
