"""API response models."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from trendledger.models.base import CamelModel
from trendledger.models.ledger import LedgerTransaction, WithdrawalRecord
from trendledger.models.metadata import MarketMetadata, TrendItem


class MetadataResponse(CamelModel):
    """Response model for a single market's metadata."""

    success: bool = True
    data: MarketMetadata
    timestamp: datetime


class MetadataMapResponse(CamelModel):
    """Response model for all market metadata keyed by market id."""

    success: bool = True
    data: dict[str, MarketMetadata]
    timestamp: datetime


class TrendingResponse(CamelModel):
    """Response model for the current trending topics."""

    success: bool = True
    data: list[TrendItem]
    timestamp: datetime


class BalanceResponse(CamelModel):
    user_id: str
    balance: int


class TransactionsResponse(CamelModel):
    user_id: str
    transactions: list[LedgerTransaction]


class WithdrawalsResponse(CamelModel):
    user_id: str
    withdrawals: list[WithdrawalRecord]


class EstimateResponse(CamelModel):
    """Response model for a payout estimate."""

    bet_amount: int
    potential_win: int = Field(..., description="Points earned if the bet wins")


class CleanupResponse(CamelModel):
    status: str
    removed: int = 0


class HealthResponse(CamelModel):
    """Response model for health check."""

    status: str = Field(..., description="Health status")
    version: str = Field(default="1.0.0", description="API version")
    scheduler: Optional[dict] = None
