"""Async MongoDB persistence for coupon records.

Every mutation is a single conditional MongoDB operation so concurrent
requests never interleave a read and a write from Python:

- issue: ``insert_one`` guarded by a unique index on ``dedup_key``
- redeem: ``find_one_and_update`` with an ``entitlements_granted > 0`` predicate
- reset: ``update_many`` on the user's non-zero records
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from db_core import is_transient
from db_core.typing import MongoDocument
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from .errors import InsufficientBalanceError, StoreFailureError, StoreUnavailableError
from .models import EntitlementRecord
from .policy import rejection_for
from .settings import DedupMode

# Oldest record is redeemed first; _id breaks ties between equal timestamps.
REDEMPTION_ORDER = [("issued_at", ASCENDING), ("_id", ASCENDING)]


@contextmanager
def _store_errors(operation: str, user_id: str) -> Iterator[None]:
    """Turn driver failures into coded infrastructure errors.

    Transient failures become ``StoreUnavailableError`` (retryable); any other
    driver error becomes ``StoreFailureError``.
    """

    try:
        yield
    except PyMongoError as exc:
        logger.error(
            "Coupon store {operation} failed for user={user_id}: {error}",
            operation=operation,
            user_id=user_id,
            error=exc,
        )
        if is_transient(exc):
            raise StoreUnavailableError(f"Coupon store unavailable during {operation}") from exc
        raise StoreFailureError(f"Coupon store failed during {operation}") from exc


def _doc_to_model(doc: MongoDocument) -> EntitlementRecord:
    record = EntitlementRecord.model_validate(doc)
    # Drivers not configured with tz_aware hand back naive UTC datetimes.
    if record.issued_at.tzinfo is None:
        record.issued_at = record.issued_at.replace(tzinfo=timezone.utc)
    if record.zeroed_at is not None and record.zeroed_at.tzinfo is None:
        record.zeroed_at = record.zeroed_at.replace(tzinfo=timezone.utc)
    return record


class LedgerStore:
    """Coupon records for all users, backed by one Mongo collection."""

    def __init__(self, collection: AsyncIOMotorCollection, dedup_mode: DedupMode):
        self.collection = collection
        self.dedup_mode = dedup_mode

    # ---------------------------------------------------------
    # SETUP
    # ---------------------------------------------------------
    async def ensure_indexes(self) -> None:
        with _store_errors("ensure_indexes", "*"):
            await self.collection.create_index("dedup_key", unique=True, name="dedup_key_unique")
            await self.collection.create_index(
                [("user_id", ASCENDING), *REDEMPTION_ORDER],
                name="user_redemption_order",
            )

    # ---------------------------------------------------------
    # ISSUE
    # ---------------------------------------------------------
    async def issue(self, record: EntitlementRecord) -> str:
        """Insert ``record`` unless its dedup key is already taken.

        Raises the rejection matching the configured dedup mode on conflict;
        nothing is written in that case.
        """

        data = record.model_dump(by_alias=True)
        with _store_errors("issue", record.user_id):
            try:
                res = await self.collection.insert_one(data)
            except DuplicateKeyError as exc:
                rejection = rejection_for(self.dedup_mode)
                if rejection is None:
                    raise
                logger.info(
                    "Rejected duplicate issuance user={user_id} dedup_key={key}",
                    user_id=record.user_id,
                    key=record.dedup_key,
                )
                raise rejection() from exc
        return str(res.inserted_id)

    # ---------------------------------------------------------
    # READ
    # ---------------------------------------------------------
    async def balance_of(self, user_id: str) -> int:
        """Sum of remaining coupons over all of the user's records."""

        pipeline = [
            {"$match": {"user_id": user_id}},
            {"$group": {"_id": None, "balance": {"$sum": "$entitlements_granted"}}},
        ]
        with _store_errors("balance_of", user_id):
            docs = [doc async for doc in self.collection.aggregate(pipeline)]
        if not docs:
            return 0
        return int(docs[0].get("balance") or 0)

    async def list_records(self, user_id: str, limit: Optional[int] = None) -> List[EntitlementRecord]:
        """The user's records oldest-first, at most ``limit`` of them."""

        with _store_errors("list_records", user_id):
            cursor = self.collection.find(
                {"user_id": user_id}, sort=REDEMPTION_ORDER, limit=limit or 0
            )
            docs = [doc async for doc in cursor]
        return [_doc_to_model(doc) for doc in docs]

    async def has_records(self, user_id: str) -> bool:
        with _store_errors("has_records", user_id):
            doc = await self.collection.find_one({"user_id": user_id}, projection={"_id": 1})
        return doc is not None

    # ---------------------------------------------------------
    # REDEEM
    # ---------------------------------------------------------
    async def redeem_one(self, user_id: str) -> EntitlementRecord:
        """Take one coupon from the user's oldest record that still has one.

        Returns the record as it is after the decrement.
        """

        with _store_errors("redeem_one", user_id):
            doc: Optional[MongoDocument] = await self.collection.find_one_and_update(
                {"user_id": user_id, "entitlements_granted": {"$gt": 0}},
                {"$inc": {"entitlements_granted": -1}},
                sort=REDEMPTION_ORDER,
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            raise InsufficientBalanceError(f"User {user_id} has no coupon to redeem")
        return _doc_to_model(doc)

    # ---------------------------------------------------------
    # RESET
    # ---------------------------------------------------------
    async def zero_out(self, user_id: str, now: Optional[datetime] = None) -> int:
        """Set every record of the user to zero; returns how many changed."""

        with _store_errors("zero_out", user_id):
            res = await self.collection.update_many(
                {"user_id": user_id, "entitlements_granted": {"$ne": 0}},
                {
                    "$set": {
                        "entitlements_granted": 0,
                        "zeroed_at": now or datetime.now(timezone.utc),
                    }
                },
            )
        return res.modified_count
