"""API request models."""

from typing import Optional

from pydantic import Field

from trendledger.models.base import CamelModel
from trendledger.models.ledger import Outcome
from trendledger.models.metadata import MarketDescriptor, TrendItem


class ClaimRequest(CamelModel):
    """Request model for claiming the payout of a resolved bet."""

    user_id: str = Field(..., min_length=1, description="User identifier")
    market_id: str = Field(..., min_length=1, description="Market identifier")
    user_stake: int = Field(..., description="Points the user staked")
    total_pool: int = Field(..., description="Total points staked on the market")
    winning_side_pool: int = Field(..., description="Points staked on the winning side")
    outcome: Outcome = Field(..., description="WIN or LOSS")


class WithdrawRequest(CamelModel):
    """Request model for a point withdrawal."""

    user_id: str = Field(..., min_length=1, description="User identifier")
    wallet_address: str = Field(..., min_length=1, description="Destination wallet")
    amount: int = Field(..., description="Points to withdraw")


class RefreshMetadataRequest(CamelModel):
    """Request model for a metadata refresh.

    Omitted trend items are fetched from the configured trend source and
    omitted markets are read from the deployments file.
    """

    trend_items: Optional[list[TrendItem]] = None
    market_descriptors: Optional[list[MarketDescriptor]] = None
