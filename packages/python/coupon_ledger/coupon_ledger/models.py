"""Pydantic models describing coupon records and operation results."""

from datetime import datetime
from typing import List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

OrderValue = Union[str, int]
# A single order number or a small ordered collection treated as one unit.
OrderKey = Union[OrderValue, List[OrderValue]]


class EntitlementRecord(BaseModel):
    """One issuance event stored in MongoDB."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid4().hex, alias="_id")
    user_id: str = Field(min_length=1)
    order_key: OrderKey
    amount_paid: float = Field(ge=0)

    # Remaining coupons on this record; only ever decreases.
    entitlements_granted: int = Field(ge=0)
    initial_grant: int = Field(ge=0)

    dedup_key: str
    issued_at: datetime
    zeroed_at: Optional[datetime] = None


class IssueResult(BaseModel):
    record_id: str
    user_id: str
    entitlements_granted: int


class BalanceResult(BaseModel):
    user_id: str
    balance: int


class RedeemResult(BaseModel):
    user_id: str
    record_id: str
    # None when the follow-up balance read failed after a successful redeem.
    balance: Optional[int] = None
    ok: bool = True


class ResetResult(BaseModel):
    user_id: str
    affected_count: int
