"""Trend source adapters.

The engine only needs a list of ``{topic, score}`` items. Where they come
from is replaceable: a static topic list ships as the fallback, and any HTTP
endpoint returning that shape as JSON can be plugged in.
"""

import random
from typing import Optional, Protocol

import httpx

from trendledger.config import Settings
from trendledger.logger import get_logger
from trendledger.models.metadata import TrendItem

logger = get_logger(__name__)

MAX_TRENDS = 10

# Base mock data tailored to the product's context (Web3, Tech, Future)
BASE_TOPICS = [
    ("Bitcoin Halving Aftermath", 95),
    ("Monad Mainnet Beta", 92),
    ("AI Agent Economy", 88),
    ("Solana ETF Approval", 85),
    ("Nvidia 50-Series GPU", 80),
    ("Global Interest Rates 2025", 78),
    ("SpaceX Mars Mission Date", 75),
    ("Ethereum Gas Fees Low", 72),
    ("Quantum Internet Tests", 68),
    ("Digital Identity Regulation", 65),
]


class TrendSource(Protocol):
    """Anything that can supply the current trending topics."""

    def fetch(self) -> list[TrendItem]: ...


class StaticTrendSource:
    """Built-in topic list with a small random fluctuation per fetch."""

    def __init__(
        self,
        topics: Optional[list[tuple[str, float]]] = None,
        rng: Optional[random.Random] = None,
        fluctuate: bool = True,
    ):
        self.topics = topics if topics is not None else BASE_TOPICS
        self.rng = rng or random.Random()
        self.fluctuate = fluctuate

    def fetch(self) -> list[TrendItem]:
        """Return the topics sorted by score, highest first."""
        trends = []
        for topic, base_score in self.topics:
            score = base_score
            if self.fluctuate:
                # Fluctuate score by -10 to +4
                score += self.rng.randint(-10, 4)
            trends.append(TrendItem(topic=topic, score=max(0, min(100, score))))

        trends.sort(key=lambda t: t.score, reverse=True)
        logger.debug(f"Static trend source produced {len(trends)} topics")
        return trends


class HttpTrendSource:
    """Fetches trends as JSON from an HTTP endpoint.

    Accepts either a bare list of items or an envelope with a ``data`` list.
    Falls back to the static list on any transport or decoding failure.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        fallback: Optional[TrendSource] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self.client = client or httpx.Client(timeout=timeout)
        self.fallback = fallback or StaticTrendSource()
        logger.info(f"HttpTrendSource initialized with URL: {self.url}")

    def fetch(self) -> list[TrendItem]:
        logger.debug(f"Fetching trends from {self.url}")
        try:
            response = self.client.get(self.url)
            response.raise_for_status()
            payload = response.json()

            items = payload["data"] if isinstance(payload, dict) else payload
            trends = [TrendItem.model_validate(item) for item in items]
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Trend fetch failed ({e}), using static fallback")
            return self.fallback.fetch()

        if not trends:
            logger.warning("Trend endpoint returned no topics, using static fallback")
            return self.fallback.fetch()

        trends.sort(key=lambda t: t.score, reverse=True)
        logger.info(f"Fetched {len(trends)} trends from {self.url}")
        return trends[:MAX_TRENDS]

    def close(self):
        """Close the HTTP client."""
        logger.debug("Closing HttpTrendSource client")
        self.client.close()


def get_trend_source(settings: Settings) -> TrendSource:
    """Pick the trend source configured in settings."""
    if settings.trend_source_url:
        return HttpTrendSource(
            settings.trend_source_url, timeout=settings.trend_source_timeout
        )
    return StaticTrendSource()
