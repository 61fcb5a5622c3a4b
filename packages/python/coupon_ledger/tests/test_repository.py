import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from coupon_ledger import (
    DedupMode,
    DuplicateOrderError,
    EntitlementRecord,
    ErrorCode,
    InsufficientBalanceError,
    LedgerStore,
    StoreFailureError,
    StoreUnavailableError,
)

T0 = datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc)


def _record(record_id: str, user_id: str = "u-1", granted: int = 1, order: str | None = None,
            issued_at: datetime = T0) -> EntitlementRecord:
    order = order or f"order-{record_id}"
    return EntitlementRecord(
        id=record_id,
        user_id=user_id,
        order_key=order,
        amount_paid=100_000 * granted,
        entitlements_granted=granted,
        initial_grant=granted,
        dedup_key=f"order:{order}",
        issued_at=issued_at,
    )


@pytest.mark.asyncio
async def test_issue_returns_record_id_and_persists(store):
    record_id = await store.issue(_record("r1", granted=2))

    assert record_id == "r1"
    records = await store.list_records("u-1")
    assert [r.id for r in records] == ["r1"]
    assert records[0].entitlements_granted == 2
    assert records[0].issued_at == T0


@pytest.mark.asyncio
async def test_issue_duplicate_key_is_rejected_without_write(store):
    await store.issue(_record("r1", order="A1"))

    with pytest.raises(DuplicateOrderError) as info:
        await store.issue(_record("r2", order="A1", granted=3))

    assert info.value.code is ErrorCode.DUPLICATE_ORDER
    assert [r.id for r in await store.list_records("u-1")] == ["r1"]
    assert await store.balance_of("u-1") == 1


@pytest.mark.asyncio
async def test_concurrent_issue_for_same_key_has_one_winner(store):
    # mongomock-motor runs each call to completion, so gather does not
    # interleave driver round trips; this checks the unique-index path only.
    results = await asyncio.gather(
        *(store.issue(_record(f"r{i}", order="A1")) for i in range(5)),
        return_exceptions=True,
    )

    winners = [r for r in results if isinstance(r, str)]
    rejected = [r for r in results if isinstance(r, DuplicateOrderError)]
    assert len(winners) == 1
    assert len(rejected) == 4
    assert len(await store.list_records("u-1")) == 1


@pytest.mark.asyncio
async def test_balance_of_sums_records_per_user(store):
    await store.issue(_record("r1", granted=3))
    await store.issue(_record("r2", granted=2))
    await store.issue(_record("r3", user_id="u-2", granted=1))

    assert await store.balance_of("u-1") == 5
    assert await store.balance_of("u-2") == 1


@pytest.mark.asyncio
async def test_balance_of_unknown_user_is_zero(store):
    assert await store.balance_of("nonexistent") == 0


@pytest.mark.asyncio
async def test_redeem_one_takes_from_oldest_record_first(store):
    await store.issue(_record("newer", granted=1, issued_at=T0 + timedelta(hours=1)))
    await store.issue(_record("older", granted=2, issued_at=T0))

    first = await store.redeem_one("u-1")
    second = await store.redeem_one("u-1")
    third = await store.redeem_one("u-1")

    assert [first.id, second.id, third.id] == ["older", "older", "newer"]
    assert first.entitlements_granted == 1
    assert second.entitlements_granted == 0
    assert await store.balance_of("u-1") == 0


@pytest.mark.asyncio
async def test_redeem_one_without_balance_fails(store):
    with pytest.raises(InsufficientBalanceError) as info:
        await store.redeem_one("u-1")
    assert info.value.code is ErrorCode.INSUFFICIENT_BALANCE


@pytest.mark.asyncio
async def test_concurrent_redemptions_never_go_negative(store):
    # As above, calls are not truly interleaved on mongomock-motor; the
    # guarantee under real concurrency comes from the $gt predicate in one
    # find_one_and_update.
    await store.issue(_record("r1", granted=3))
    await store.issue(_record("r2", granted=2, issued_at=T0 + timedelta(minutes=5)))
    balance = 5

    results = await asyncio.gather(
        *(store.redeem_one("u-1") for _ in range(balance + 5)),
        return_exceptions=True,
    )

    succeeded = [r for r in results if isinstance(r, EntitlementRecord)]
    failed = [r for r in results if isinstance(r, InsufficientBalanceError)]
    assert len(succeeded) == balance
    assert len(failed) == 5
    assert await store.balance_of("u-1") == 0
    assert all(r.entitlements_granted == 0 for r in await store.list_records("u-1"))


@pytest.mark.asyncio
async def test_zero_out_counts_changed_records_only(store):
    await store.issue(_record("r1", granted=3))
    await store.issue(_record("r2", granted=1))
    await store.issue(_record("r3", user_id="u-2", granted=2))
    await store.redeem_one("u-1")
    await store.redeem_one("u-1")
    await store.redeem_one("u-1")  # r1 now 0, r2 still 1

    assert await store.zero_out("u-1") == 1
    assert await store.balance_of("u-1") == 0
    assert await store.balance_of("u-2") == 2
    assert await store.zero_out("u-1") == 0
    assert await store.zero_out("nobody") == 0

    with pytest.raises(InsufficientBalanceError):
        await store.redeem_one("u-1")


@pytest.mark.asyncio
async def test_no_dedup_mode_accepts_repeated_orders(collection):
    store = LedgerStore(collection, dedup_mode=DedupMode.NONE)
    await store.ensure_indexes()

    first = _record("r1", order="A1").model_copy(update={"dedup_key": "none:r1"})
    second = _record("r2", order="A1").model_copy(update={"dedup_key": "none:r2"})
    await store.issue(first)
    await store.issue(second)

    assert await store.balance_of("u-1") == 2


def _unreachable_collection() -> MagicMock:
    error = ServerSelectionTimeoutError("mongo:27017: timed out")
    collection = MagicMock()
    collection.insert_one = AsyncMock(side_effect=error)
    collection.find_one_and_update = AsyncMock(side_effect=error)
    collection.update_many = AsyncMock(side_effect=error)
    collection.aggregate = MagicMock(side_effect=error)
    return collection


@pytest.mark.asyncio
async def test_transient_driver_errors_surface_as_store_unavailable():
    store = LedgerStore(_unreachable_collection(), dedup_mode=DedupMode.ORDER_KEY)

    for call in (
        store.issue(_record("r1")),
        store.redeem_one("u-1"),
        store.zero_out("u-1"),
        store.balance_of("u-1"),
    ):
        with pytest.raises(StoreUnavailableError) as info:
            await call
        assert info.value.code is ErrorCode.STORE_UNAVAILABLE
        assert info.value.retryable


@pytest.mark.asyncio
async def test_other_driver_errors_surface_as_coded_store_failure():
    collection = MagicMock()
    collection.find_one_and_update = AsyncMock(side_effect=OperationFailure("not authorized"))
    store = LedgerStore(collection, dedup_mode=DedupMode.ORDER_KEY)

    with pytest.raises(StoreFailureError) as info:
        await store.redeem_one("u-1")

    assert info.value.code is ErrorCode.STORE_FAILURE
    assert not info.value.retryable


@pytest.mark.asyncio
async def test_list_records_limit_bounds_the_cursor(store):
    for index in range(3):
        await store.issue(_record(f"r{index}", issued_at=T0 + timedelta(minutes=index)))

    limited = await store.list_records("u-1", limit=2)

    assert [r.id for r in limited] == ["r0", "r1"]
    assert len(await store.list_records("u-1")) == 3
