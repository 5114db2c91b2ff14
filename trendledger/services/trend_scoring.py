"""Pure trend scoring functions: lifecycle state, stake suggestion and decay.

Nothing in this module touches storage. The Metadata Store calls these when a
record is written and again when a record is read, so a decayed record is
always a deterministic function of the stored record and the read time.
"""

import math
import random
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from trendledger.models.metadata import (
    ActivityStatus,
    MarketMetadata,
    PhaseSentiment,
    Sentiment,
    TrendState,
)

# Lifecycle thresholds on (articleCount/20)*60 + recencyScore*0.4
HOT_STATE_THRESHOLD = 80
DETECTED_STATE_THRESHOLD = 50

# The "isHot" badge uses its own, simpler threshold on the raw trend score
IS_HOT_THRESHOLD = 75

ACTIVITY_DELTA = 5

DECAY_RATE = 0.95
MIN_ARTICLE_COUNT = 1
MIN_RECENCY_SCORE = 10
MIN_TREND_SCORE = 10

STAKE_PLACES = Decimal("0.0001")


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def lifecycle_score(article_count: int, recency_score: float) -> float:
    """Combine the momentum signals into the lifecycle total score."""
    return (article_count / 20) * 60 + recency_score * 0.4


def compute_trend_state(
    article_count: int, recency_score: float, resolved: bool = False
) -> TrendState:
    """Derive the lifecycle state.

    RESOLVED is never produced by the formula. It is only returned when the
    market was settled out-of-band and ``resolved`` is set.
    """
    if resolved:
        return TrendState.RESOLVED

    total = lifecycle_score(article_count, recency_score)
    if total >= HOT_STATE_THRESHOLD:
        return TrendState.HOT
    if total >= DETECTED_STATE_THRESHOLD:
        return TrendState.DETECTED
    return TrendState.COOLING


def stake_multiplier(trend_score: float) -> Decimal:
    """Stake multiplier for a trend score, 1.10x up to 1.50x.

    Score 0-50: +10%
    Score 50-75: +10% to +30%
    Score 75-100: +30% to +50%
    """
    score = Decimal(str(trend_score))

    if score >= 75:
        return Decimal("1.3") + (score - 75) / 25 * Decimal("0.2")
    if score >= 50:
        return Decimal("1.1") + (score - 50) / 25 * Decimal("0.2")
    return Decimal("1.1")


def format_stake(amount: Decimal) -> str:
    return f"{amount.quantize(STAKE_PLACES, rounding=ROUND_HALF_UP):.4f}"


def calculate_suggested_stake(trend_score: float, base_stake: str = "0.001") -> str:
    """Suggested stake for a trend score, rendered with 4 decimal places."""
    return format_stake(Decimal(base_stake) * stake_multiplier(trend_score))


def derive_suggested_stake(
    trend_score: float, trending_topic: Optional[str], base_stake: str
) -> str:
    """Markets without a matched trend get the base stake unchanged."""
    if trending_topic is None:
        return format_stake(Decimal(base_stake))
    return calculate_suggested_stake(trend_score, base_stake)


def is_hot(trend_score: float) -> bool:
    return trend_score > IS_HOT_THRESHOLD


def compute_activity_status(
    new_score: float, previous_score: Optional[float]
) -> ActivityStatus:
    """Compare the new trend score to the previous one."""
    if previous_score is None:
        return ActivityStatus.INCREASING

    delta = new_score - previous_score
    if delta > ACTIVITY_DELTA:
        return ActivityStatus.INCREASING
    if delta < -ACTIVITY_DELTA:
        return ActivityStatus.DECREASING
    return ActivityStatus.STABLE


def generate_sentiment(market_id: str) -> Sentiment:
    """Generate the sentiment snapshot for a new market.

    Seeded by the market id, so regenerating for the same market gives the
    same split.
    """
    rng = random.Random(market_id)
    early_yes = rng.randint(40, 60)
    late_yes = rng.randint(25, 75)
    return Sentiment(
        early_phase=PhaseSentiment(yes=early_yes, no=100 - early_yes),
        late_phase=PhaseSentiment(yes=late_yes, no=100 - late_yes),
    )


def decay_factor(hours_elapsed: float, decay_rate: float = DECAY_RATE) -> float:
    """Continuous exponential decay, ~5% per hour at the default rate."""
    return decay_rate ** max(hours_elapsed, 0.0)


def apply_decay(
    record: MarketMetadata,
    now: datetime,
    base_stake: str = "0.001",
    decay_rate: float = DECAY_RATE,
) -> MarketMetadata:
    """Return a copy of ``record`` decayed to ``now``.

    Article count and recency score fade toward their floors (1 and 10) and
    never reach zero. State, stake and the hot badge are recomputed from the
    decayed values. The stored record is not modified.
    """
    hours_elapsed = (as_utc(now) - as_utc(record.last_updated)).total_seconds() / 3600
    factor = decay_factor(hours_elapsed, decay_rate)

    article_count = max(MIN_ARTICLE_COUNT, math.floor(record.article_count * factor))
    recency_score = max(MIN_RECENCY_SCORE, math.floor(record.recency_score * factor))

    # A score already below the floor is left where it is
    trend_floor = min(record.trend_score, MIN_TREND_SCORE)
    trend_score = max(trend_floor, round(record.trend_score * factor, 2))

    return record.model_copy(
        update={
            "article_count": article_count,
            "recency_score": recency_score,
            "trend_score": trend_score,
            "visibility_score": trend_score,
            "is_hot": is_hot(trend_score),
            "trend_state": compute_trend_state(
                article_count, recency_score, record.resolved
            ),
            "suggested_stake": derive_suggested_stake(
                trend_score, record.trending_topic, base_stake
            ),
        }
    )
