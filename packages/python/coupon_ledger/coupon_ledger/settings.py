"""Ledger behaviour settings (dedup mode, calendar timezone, collection)."""

from __future__ import annotations

import os
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator


class DedupMode(str, Enum):
    """How repeated issuance requests are detected.

    - ``none``: every valid payment issues coupons.
    - ``order_key``: one issuance per order key.
    - ``daily``: one issuance per user per local calendar day.
    """

    NONE = "none"
    ORDER_KEY = "order_key"
    DAILY = "daily"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class LedgerSettings(BaseModel):
    dedup_mode: DedupMode = Field(
        default_factory=lambda: DedupMode(os.getenv("COUPON_DEDUP_MODE", DedupMode.ORDER_KEY.value))
    )
    # Calendar used for daily dedup when the caller does not send its own.
    timezone: str = Field(default_factory=lambda: os.getenv("COUPON_TIMEZONE", "UTC"))
    collection_name: str = Field(default_factory=lambda: os.getenv("COUPON_COLLECTION", "coupons"))
    report_reset_not_found: bool = Field(
        default_factory=lambda: _env_flag("COUPON_RESET_NOT_FOUND", True)
    )

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)
