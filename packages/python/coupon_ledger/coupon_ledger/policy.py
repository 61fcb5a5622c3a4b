"""Issuance policy: grant sizing, request validation and dedup keys.

Everything here is pure; persistence and atomicity live in the repository.
"""

from __future__ import annotations

import json
import math
from datetime import date, datetime, timezone
from numbers import Real
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Type
from zoneinfo import ZoneInfo

from .errors import (
    AlreadyIssuedTodayError,
    DuplicateIssuanceError,
    DuplicateOrderError,
    InsufficientPaymentError,
    MissingFieldsError,
)
from .models import OrderKey, OrderValue
from .settings import DedupMode
from .tier_config import GRANT_TIERS

Tiers = Sequence[Tuple[float, int]]


def compute_grant(amount_paid: float, tiers: Tiers = GRANT_TIERS) -> int:
    """Return how many coupons ``amount_paid`` earns.

    Thresholds are inclusive and the highest matching one wins, so the table
    order does not matter. Raises ``InsufficientPaymentError`` below the
    lowest tier.
    """

    for threshold, count in sorted(tiers, key=lambda tier: tier[0], reverse=True):
        if amount_paid >= threshold:
            return count
    lowest = min((threshold for threshold, _ in tiers), default=0)
    raise InsufficientPaymentError(
        f"Payment of {amount_paid:g} is below the minimum of {lowest:g} for a coupon"
    )


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _normalize_order_key(order_key: Any) -> Optional[OrderKey]:
    if isinstance(order_key, (list, tuple)):
        values: List[OrderValue] = []
        for value in order_key:
            if isinstance(value, bool) or not isinstance(value, (str, int)) or _is_blank(value):
                return None
            values.append(value.strip() if isinstance(value, str) else value)
        return values or None
    if isinstance(order_key, bool) or not isinstance(order_key, (str, int)) or _is_blank(order_key):
        return None
    return order_key.strip() if isinstance(order_key, str) else order_key


def _normalize_amount(amount_paid: Any) -> Optional[float]:
    if isinstance(amount_paid, bool):
        return None
    if isinstance(amount_paid, str):
        try:
            amount_paid = float(amount_paid.strip())
        except ValueError:
            return None
    if not isinstance(amount_paid, Real):
        return None
    try:
        amount = float(amount_paid)
    except OverflowError:
        # Integers beyond float range; the sign still decides validity.
        amount = math.inf if amount_paid > 0 else -math.inf
    if math.isnan(amount) or amount < 0:
        return None
    return amount


def validate_issue_request(
    user_id: Any, order_key: Any, amount_paid: Any
) -> Tuple[str, OrderKey, float]:
    """Check required issuance fields and return them normalized.

    Runs before any tier or dedup logic. A field that is absent, blank or
    unusable (negative amount, empty order list) counts as missing.
    """

    missing: List[str] = []

    user = user_id.strip() if isinstance(user_id, str) else None
    if not user:
        missing.append("userId")

    order = _normalize_order_key(order_key)
    if order is None:
        missing.append("orderKey")

    amount = _normalize_amount(amount_paid)
    if amount is None:
        missing.append("amountPaid")

    if missing:
        raise MissingFieldsError(missing)
    return user, order, amount


def order_values(order_key: OrderKey) -> List[str]:
    """Order key as a list of strings, so ``"A1"`` and ``["A1"]`` match."""

    raw: Iterable[OrderValue] = order_key if isinstance(order_key, list) else [order_key]
    return [str(value) for value in raw]


def local_day(issued_at: datetime, tz: ZoneInfo) -> date:
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    return issued_at.astimezone(tz).date()


def dedup_key(
    mode: DedupMode,
    *,
    record_id: str,
    user_id: str,
    order_key: OrderKey,
    issued_at: datetime,
    tz: ZoneInfo,
) -> str:
    """Key stored on a record; two records may never share one."""

    if mode is DedupMode.ORDER_KEY:
        return "order:" + json.dumps(order_values(order_key), separators=(",", ":"))
    if mode is DedupMode.DAILY:
        return f"daily:{user_id}:{local_day(issued_at, tz).isoformat()}"
    return f"none:{record_id}"


def rejection_for(mode: DedupMode) -> Optional[Type[DuplicateIssuanceError]]:
    if mode is DedupMode.ORDER_KEY:
        return DuplicateOrderError
    if mode is DedupMode.DAILY:
        return AlreadyIssuedTodayError
    return None
