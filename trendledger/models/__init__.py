"""Data models for TrendLedger."""

from trendledger.models.metadata import (
    ActivityStatus,
    MarketDescriptor,
    MarketMetadata,
    MetadataUpdate,
    PhaseSentiment,
    Sentiment,
    TrendItem,
    TrendState,
    UpdateSummary,
)
from trendledger.models.ledger import (
    CreditResult,
    DebitResult,
    LedgerTransaction,
    Outcome,
    WithdrawalAuthorization,
    WithdrawalRecord,
    WithdrawalResult,
    WithdrawalState,
    WithdrawalStatus,
)

__all__ = [
    "ActivityStatus",
    "MarketDescriptor",
    "MarketMetadata",
    "MetadataUpdate",
    "PhaseSentiment",
    "Sentiment",
    "TrendItem",
    "TrendState",
    "UpdateSummary",
    "CreditResult",
    "DebitResult",
    "LedgerTransaction",
    "Outcome",
    "WithdrawalAuthorization",
    "WithdrawalRecord",
    "WithdrawalResult",
    "WithdrawalState",
    "WithdrawalStatus",
]
