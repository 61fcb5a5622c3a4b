from .errors import (
    AlreadyIssuedTodayError,
    DuplicateIssuanceError,
    DuplicateOrderError,
    ErrorCode,
    InsufficientBalanceError,
    InsufficientPaymentError,
    LedgerError,
    LedgerInfrastructureError,
    LedgerRejection,
    MissingFieldsError,
    StoreFailureError,
    StoreUnavailableError,
    UserNotFoundError,
)
from .models import BalanceResult, EntitlementRecord, IssueResult, RedeemResult, ResetResult
from .policy import compute_grant, validate_issue_request
from .repository import LedgerStore
from .service import LedgerService
from .settings import DedupMode, LedgerSettings
from .tier_config import GRANT_TIERS

__all__ = [
    "AlreadyIssuedTodayError",
    "DuplicateIssuanceError",
    "DuplicateOrderError",
    "ErrorCode",
    "InsufficientBalanceError",
    "InsufficientPaymentError",
    "LedgerError",
    "LedgerInfrastructureError",
    "LedgerRejection",
    "MissingFieldsError",
    "StoreFailureError",
    "StoreUnavailableError",
    "UserNotFoundError",
    "BalanceResult",
    "EntitlementRecord",
    "IssueResult",
    "RedeemResult",
    "ResetResult",
    "compute_grant",
    "validate_issue_request",
    "LedgerStore",
    "LedgerService",
    "DedupMode",
    "LedgerSettings",
    "GRANT_TIERS",
]
