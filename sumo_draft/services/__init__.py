"""
Service layer: draft rules over the repositories.
"""
from .ledger import (
    DraftLedger,
    DraftError,
    NotFoundError,
    InvalidNameError,
    InvalidCostError,
    AlreadyFinalizedError,
    AlreadySelectedError,
    NotSelectedError,
    AlreadyRegularPickError,
    AlreadyHaterPickError,
    TierConflictError,
    BudgetExceededError,
    SlotsFullError,
    NoHaterPickError,
    EmptyDraftError,
    QuotaNotMetError,
    StoreUnavailableError,
)

__all__ = [
    "DraftLedger",
    "DraftError",
    "NotFoundError",
    "InvalidNameError",
    "InvalidCostError",
    "AlreadyFinalizedError",
    "AlreadySelectedError",
    "NotSelectedError",
    "AlreadyRegularPickError",
    "AlreadyHaterPickError",
    "TierConflictError",
    "BudgetExceededError",
    "SlotsFullError",
    "NoHaterPickError",
    "EmptyDraftError",
    "QuotaNotMetError",
    "StoreUnavailableError",
]
