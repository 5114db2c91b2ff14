"""Match deployed markets to trending topics and refresh their metadata."""

import json
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from trendledger.config import Settings
from trendledger.errors import StorageError
from trendledger.logger import get_logger
from trendledger.models.metadata import (
    MarketDescriptor,
    MetadataUpdate,
    TrendItem,
    UpdateSummary,
)
from trendledger.services.metadata_store import NEUTRAL_TREND_SCORE, MetadataStore
from trendledger.services.trend_source import TrendSource, get_trend_source

logger = get_logger(__name__)

MIN_KEYWORD_LENGTH = 4


def match_market_to_trend(
    question: str, trends: list[TrendItem]
) -> Optional[TrendItem]:
    """Return the first trend sharing a significant word with the question.

    A word is significant when it is longer than three characters. The order
    of ``trends`` decides ties: the first match wins, not the best one.
    """
    question_lower = question.lower()

    for trend in trends:
        words = trend.topic.lower().split()
        if any(len(w) >= MIN_KEYWORD_LENGTH and w in question_lower for w in words):
            return trend

    return None


def trend_to_update(trend: Optional[TrendItem]) -> MetadataUpdate:
    """Build the metadata update for a market given its matched trend.

    Sources that only report a score get momentum signals derived from it:
    ``score / 5`` articles and a recency equal to the score, which puts the
    lifecycle total back at the score itself.
    """
    if trend is None:
        return MetadataUpdate(
            trend_score=NEUTRAL_TREND_SCORE,
            article_count=0,
            recency_score=0.0,
            trending_topic=None,
        )

    article_count = trend.article_count
    if article_count is None:
        article_count = round(trend.score / 5)
    recency_score = trend.recency_score
    if recency_score is None:
        recency_score = trend.score

    return MetadataUpdate(
        trend_score=trend.score,
        article_count=article_count,
        recency_score=recency_score,
        trending_topic=trend.topic,
    )


class MetadataUpdater:
    """Refreshes market metadata from a trend source.

    Never touches on-chain data or user balances.
    """

    def __init__(
        self,
        store: MetadataStore,
        trend_source: Optional[TrendSource] = None,
        deployments_file: Optional[Path] = None,
    ):
        self.store = store
        self.trend_source = trend_source
        self.deployments_file = deployments_file

    @classmethod
    def from_settings(cls, settings: Settings) -> "MetadataUpdater":
        return cls(
            MetadataStore.from_settings(settings),
            trend_source=get_trend_source(settings),
            deployments_file=settings.deployments_file,
        )

    def update(
        self, markets: list[MarketDescriptor], trends: list[TrendItem]
    ) -> UpdateSummary:
        """Upsert metadata for every market and count the results."""
        summary = UpdateSummary()

        for market in markets:
            matched = match_market_to_trend(market.question, trends)
            try:
                record = self.store.upsert(market.market_id, trend_to_update(matched))
            except StorageError as e:
                logger.error(f"Failed to update {market.market_id}: {e}")
                continue

            summary.updated_count += 1
            if record.is_hot:
                summary.hot_count += 1

            if matched:
                logger.debug(
                    f"{market.market_id[:10]}... matched '{matched.topic}' "
                    f"(score {matched.score}) | {'HOT' if record.is_hot else 'Trending'} "
                    f"| stake {record.suggested_stake}"
                )

        logger.info(
            f"Metadata update: {summary.updated_count} updated, {summary.hot_count} hot"
        )
        return summary

    def load_deployed_markets(self) -> list[MarketDescriptor]:
        """Read deployed markets from the deployments file."""
        if self.deployments_file is None or not self.deployments_file.exists():
            logger.warning(f"No deployments file at {self.deployments_file}")
            return []

        try:
            deployments = json.loads(self.deployments_file.read_text(encoding="utf-8"))
            return [
                MarketDescriptor.model_validate(m)
                for m in deployments.get("markets", [])
            ]
        except (OSError, ValueError, AttributeError, PydanticValidationError) as e:
            logger.error(f"Error loading deployments: {e}")
            return []

    def fetch_trends(self) -> list[TrendItem]:
        if self.trend_source is None:
            logger.warning("No trend source configured")
            return []
        return self.trend_source.fetch()

    def close(self):
        """Close the trend source's HTTP client, if it holds one."""
        if hasattr(self.trend_source, "close"):
            self.trend_source.close()

    def run_job(self) -> UpdateSummary:
        """One scheduled pass: fetch trends, update deployed markets, sweep old records."""
        logger.info("=" * 60)
        logger.info("Starting market metadata update")

        trends = self.fetch_trends()
        logger.info(f"Found {len(trends)} trending topics")

        markets = self.load_deployed_markets()
        logger.info(f"Found {len(markets)} deployed markets")

        if not markets:
            logger.warning("No markets to update")
            summary = UpdateSummary()
        else:
            summary = self.update(markets, trends)

        self.store.cleanup_old()

        logger.info(
            f"Metadata update complete: {summary.updated_count} markets, "
            f"{summary.hot_count} hot"
        )
        logger.info("=" * 60)
        return summary
