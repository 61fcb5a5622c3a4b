"""Domain-level errors for the coupon ledger.

Business-rule rejections and infrastructure failures live in two separate
hierarchies so callers can tell "request refused" apart from "store down".
Every error carries a stable ``code`` for transport-level translation.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    MISSING_FIELDS = "MISSING_FIELDS"
    INSUFFICIENT_PAYMENT = "INSUFFICIENT_PAYMENT"
    DUPLICATE_ORDER = "DUPLICATE_ORDER"
    ALREADY_ISSUED_TODAY = "ALREADY_ISSUED_TODAY"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    STORE_FAILURE = "STORE_FAILURE"


class LedgerError(Exception):
    """Base class for every error raised by the ledger core."""

    code: ErrorCode
    retryable = False

    def __init__(self, message: str | None = None):
        self.message = message or (self.__doc__ or type(self).__name__).strip().splitlines()[0]
        super().__init__(self.message)


class LedgerRejection(LedgerError):
    """A request was refused by a business rule."""


class MissingFieldsError(LedgerRejection):
    """Required issuance fields are missing."""

    code = ErrorCode.MISSING_FIELDS

    def __init__(self, fields: list[str]):
        self.fields = list(fields)
        super().__init__(f"Missing or invalid required fields: {', '.join(self.fields)}")


class InsufficientPaymentError(LedgerRejection):
    """Payment amount is below the lowest grant tier."""

    code = ErrorCode.INSUFFICIENT_PAYMENT


class DuplicateIssuanceError(LedgerRejection):
    """An equivalent issuance was already recorded.

    Idempotent callers may treat this as "already handled".
    """


class DuplicateOrderError(DuplicateIssuanceError):
    """Coupons were already issued for this order."""

    code = ErrorCode.DUPLICATE_ORDER


class AlreadyIssuedTodayError(DuplicateIssuanceError):
    """Coupons were already issued to this user today."""

    code = ErrorCode.ALREADY_ISSUED_TODAY


class InsufficientBalanceError(LedgerRejection):
    """No coupon left to redeem."""

    code = ErrorCode.INSUFFICIENT_BALANCE


class UserNotFoundError(LedgerRejection):
    """No coupon records found for this user."""

    code = ErrorCode.USER_NOT_FOUND


class LedgerInfrastructureError(LedgerError):
    """The ledger could not complete an operation for a non-business reason."""


class StoreUnavailableError(LedgerInfrastructureError):
    """The coupon store is unreachable or timed out."""

    code = ErrorCode.STORE_UNAVAILABLE
    retryable = True


class StoreFailureError(LedgerInfrastructureError):
    """The coupon store rejected an operation; needs operator attention."""

    code = ErrorCode.STORE_FAILURE
