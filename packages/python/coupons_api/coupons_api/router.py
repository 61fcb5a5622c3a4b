from __future__ import annotations

"""FastAPI router exposing coupon ledger operations."""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status

from coupon_ledger import EntitlementRecord, LedgerService

from .dependencies import get_ledger_service

router = APIRouter(prefix="/coupons", tags=["coupons"])


def _first_present(payload: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


@router.post("/issue", status_code=status.HTTP_201_CREATED)
async def issue_coupon(
    payload: dict = Body(...),
    service: LedgerService = Depends(get_ledger_service),
):
    """Issue coupons for a paid order.

    Accepts ``userId``, ``orderNumbers`` (or ``orderKey``) and ``totalPay``
    (or ``amountPaid``). Daily dedup uses the server's configured calendar.
    """

    result = await service.issue_entitlement(
        user_id=payload.get("userId"),
        order_key=_first_present(payload, "orderNumbers", "orderKey"),
        amount_paid=_first_present(payload, "totalPay", "amountPaid"),
    )
    return {
        "message": "Coupons issued",
        "couponId": result.record_id,
        "couponsIssued": result.entitlements_granted,
    }


@router.get("/users/{user_id}/balance")
async def get_balance(
    user_id: str,
    service: LedgerService = Depends(get_ledger_service),
):
    """Return the user's remaining coupon count (0 for unknown users)."""

    result = await service.get_balance(user_id)
    return {"userId": result.user_id, "balance": result.balance}


@router.post("/users/{user_id}/redeem")
async def redeem_coupon(
    user_id: str,
    service: LedgerService = Depends(get_ledger_service),
):
    result = await service.redeem(user_id)
    return {"ok": result.ok, "userId": result.user_id, "balance": result.balance}


@router.post("/users/{user_id}/reset")
async def reset_coupons(
    user_id: str,
    service: LedgerService = Depends(get_ledger_service),
):
    """Administrative reset: set all of the user's coupons to zero."""

    result = await service.reset_to_zero(user_id)
    return {"userId": result.user_id, "affectedCount": result.affected_count}


@router.get("/users/{user_id}/records", response_model=list[EntitlementRecord])
async def list_records(
    user_id: str,
    limit: int = Query(default=100, ge=1, le=1000),
    service: LedgerService = Depends(get_ledger_service),
):
    return await service.list_records(user_id, limit=limit)
