from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

from loguru import logger

from .errors import StoreUnavailableError, UserNotFoundError
from .models import (
    BalanceResult,
    EntitlementRecord,
    IssueResult,
    RedeemResult,
    ResetResult,
)
from .policy import Tiers, compute_grant, dedup_key, validate_issue_request
from .repository import LedgerStore
from .settings import LedgerSettings
from .tier_config import GRANT_TIERS


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerService:
    """Entry point for request handlers: issue, balance, redeem and reset."""

    def __init__(
        self,
        store: LedgerStore,
        settings: Optional[LedgerSettings] = None,
        tiers: Tiers = GRANT_TIERS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.settings = settings or LedgerSettings(dedup_mode=store.dedup_mode)
        self.tiers = tiers
        self.clock = clock

    # ---------------------------------------------------------
    # IssueEntitlement
    # ---------------------------------------------------------
    async def issue_entitlement(
        self,
        user_id: Any,
        order_key: Any,
        amount_paid: Any,
    ) -> IssueResult:
        """Issue coupons for a payment.

        Daily dedup always uses the deployment calendar
        (``LedgerSettings.timezone``) so one user has one day window.
        """

        user, order, amount = validate_issue_request(user_id, order_key, amount_paid)
        granted = compute_grant(amount, self.tiers)

        issued_at = self.clock()
        record_id = uuid4().hex
        record = EntitlementRecord(
            id=record_id,
            user_id=user,
            order_key=order,
            amount_paid=amount,
            entitlements_granted=granted,
            initial_grant=granted,
            dedup_key=dedup_key(
                self.store.dedup_mode,
                record_id=record_id,
                user_id=user,
                order_key=order,
                issued_at=issued_at,
                tz=self.settings.tzinfo,
            ),
            issued_at=issued_at,
        )
        inserted_id = await self.store.issue(record)
        logger.info(
            "Issued {count} coupon(s) to user={user_id} record={record_id} amount={amount}",
            count=granted,
            user_id=user,
            record_id=inserted_id,
            amount=amount,
        )
        return IssueResult(record_id=inserted_id, user_id=user, entitlements_granted=granted)

    # ---------------------------------------------------------
    # GetBalance
    # ---------------------------------------------------------
    async def get_balance(self, user_id: str) -> BalanceResult:
        balance = await self.store.balance_of(user_id)
        return BalanceResult(user_id=user_id, balance=balance)

    async def list_records(self, user_id: str, limit: Optional[int] = None) -> list[EntitlementRecord]:
        return await self.store.list_records(user_id, limit=limit)

    # ---------------------------------------------------------
    # Redeem
    # ---------------------------------------------------------
    async def redeem(self, user_id: str) -> RedeemResult:
        record = await self.store.redeem_one(user_id)
        try:
            balance: Optional[int] = await self.store.balance_of(user_id)
        except StoreUnavailableError:
            # The coupon is already spent at this point.
            logger.warning("Redeemed for user={user_id} but balance read failed", user_id=user_id)
            balance = None
        logger.info(
            "Redeemed one coupon for user={user_id} from record={record_id}, balance={balance}",
            user_id=user_id,
            record_id=record.id,
            balance=balance,
        )
        return RedeemResult(user_id=user_id, record_id=record.id, balance=balance)

    # ---------------------------------------------------------
    # ResetToZero
    # ---------------------------------------------------------
    async def reset_to_zero(self, user_id: str) -> ResetResult:
        """Zero every record of the user.

        With ``report_reset_not_found`` enabled, a user without any record
        raises ``UserNotFoundError``; a user whose records are already all
        zero just reports ``affected_count == 0``.
        """

        affected = await self.store.zero_out(user_id, now=self.clock())
        if affected == 0 and self.settings.report_reset_not_found:
            if not await self.store.has_records(user_id):
                raise UserNotFoundError(f"No coupon records for user {user_id}")
        logger.info(
            "Reset coupons for user={user_id}, {affected} record(s) changed",
            user_id=user_id,
            affected=affected,
        )
        return ResetResult(user_id=user_id, affected_count=affected)
