"""Market trend metadata models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, Field

from trendledger.models.base import CamelModel


class TrendState(str, Enum):
    """Lifecycle state of a market's trendiness."""

    DETECTED = "DETECTED"
    HOT = "HOT"
    COOLING = "COOLING"
    RESOLVED = "RESOLVED"


class ActivityStatus(str, Enum):
    """Direction of the trend score since the previous update."""

    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


class PhaseSentiment(CamelModel):
    """YES/NO split for one phase of a market, in percent."""

    yes: int = Field(ge=0, le=100)
    no: int = Field(ge=0, le=100)


class Sentiment(CamelModel):
    """Sentiment snapshot generated once when a market record is created."""

    early_phase: PhaseSentiment
    late_phase: PhaseSentiment


class MarketMetadata(CamelModel):
    """Off-chain metadata for a single market."""

    market_id: str
    trend_score: float = Field(ge=0, le=100, description="Current visibility score")
    visibility_score: float = Field(ge=0, le=100)
    article_count: int = Field(ge=0)
    recency_score: float = Field(ge=0, le=100)
    trend_state: TrendState
    suggested_stake: str = Field(description="Suggested stake, 4 decimal places")
    sentiment: Sentiment
    activity_status: ActivityStatus
    is_hot: bool = False
    trending_topic: Optional[str] = None
    resolved: bool = False
    last_updated: datetime


class MetadataUpdate(CamelModel):
    """Partial update for a metadata record. Unset fields keep their stored value."""

    trend_score: Optional[float] = Field(default=None, ge=0, le=100)
    article_count: Optional[int] = Field(default=None, ge=0)
    recency_score: Optional[float] = Field(default=None, ge=0, le=100)
    trending_topic: Optional[str] = None


class TrendItem(CamelModel):
    """A trending topic as supplied by a trend source."""

    topic: str = Field(min_length=1)
    score: float = Field(ge=0, le=100)
    article_count: Optional[int] = Field(default=None, ge=0)
    recency_score: Optional[float] = Field(default=None, ge=0, le=100)


class MarketDescriptor(CamelModel):
    """A deployed market the updater can match against trends."""

    market_id: str = Field(
        validation_alias=AliasChoices("marketId", "market_id", "address")
    )
    question: str


class UpdateSummary(CamelModel):
    """Outcome of one metadata update pass."""

    updated_count: int = 0
    hot_count: int = 0
