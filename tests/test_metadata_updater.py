"""Tests for trend matching and the metadata update job."""

from pathlib import Path

from trendledger.models.metadata import MarketDescriptor, TrendItem, TrendState
from trendledger.services.metadata_store import MetadataStore
from trendledger.services.metadata_updater import (
    MetadataUpdater,
    match_market_to_trend,
    trend_to_update,
)
from trendledger.services.trend_source import StaticTrendSource


def trends(*pairs) -> list[TrendItem]:
    return [TrendItem(topic=topic, score=score) for topic, score in pairs]


class TestMatchMarketToTrend:
    """Tests for keyword matching."""

    def test_first_match_wins(self):
        items = trends(("Bitcoin Halving Aftermath", 80), ("Bitcoin Price Surge", 95))

        matched = match_market_to_trend("Will Bitcoin hit a new high?", items)

        assert matched.topic == "Bitcoin Halving Aftermath"

    def test_case_insensitive(self):
        items = trends(("SOLANA ETF Approval", 85))

        assert match_market_to_trend("will solana's etf be approved?", items) is not None

    def test_short_words_ignored(self):
        items = trends(("AI Agent Economy", 88))

        assert match_market_to_trend("Will AI beat humans at chess?", items) is None

    def test_substring_match(self):
        items = trends(("Quantum Internet Tests", 68))

        assert match_market_to_trend("Will the internetwork go down?", items) is not None

    def test_no_trends(self):
        assert match_market_to_trend("Anything", []) is None


class TestTrendToUpdate:
    def test_unmatched_defaults(self):
        update = trend_to_update(None)

        assert update.trend_score == 50
        assert update.trending_topic is None
        assert update.article_count == 0

    def test_momentum_derived_from_score(self):
        update = trend_to_update(TrendItem(topic="Bitcoin", score=95))

        assert update.article_count == 19
        assert update.recency_score == 95

    def test_explicit_momentum_kept(self):
        update = trend_to_update(
            TrendItem(topic="Bitcoin", score=95, article_count=3, recency_score=20)
        )

        assert update.article_count == 3
        assert update.recency_score == 20


class TestMetadataUpdater:
    """Tests for the update pass and the scheduled job."""

    def test_update_summary(self, store: MetadataStore):
        updater = MetadataUpdater(store)
        markets = [
            MarketDescriptor(market_id="0xaaa", question="Will Bitcoin close above $100k?"),
            MarketDescriptor(market_id="0xbbb", question="Will Nvidia ship new GPUs?"),
            MarketDescriptor(market_id="0xccc", question="Will it rain in Lisbon?"),
        ]
        items = trends(("Bitcoin Price Surge", 95), ("Nvidia 50-Series GPU", 70))

        summary = updater.update(markets, items)

        assert summary.updated_count == 3
        assert summary.hot_count == 1

        unmatched = store.get("0xccc", decay=False)
        assert unmatched.trend_score == 50
        assert unmatched.is_hot is False
        assert unmatched.trending_topic is None
        assert unmatched.suggested_stake == "0.0010"

        hot = store.get("0xaaa", decay=False)
        assert hot.trending_topic == "Bitcoin Price Surge"
        assert hot.trend_state == TrendState.HOT

    def test_hot_badge_and_state_are_independent(self, store: MetadataStore):
        updater = MetadataUpdater(store)
        markets = [MarketDescriptor(market_id="0xaaa", question="Bitcoin rally?")]
        items = [TrendItem(topic="Bitcoin", score=78, article_count=2, recency_score=20)]

        updater.update(markets, items)
        record = store.get("0xaaa", decay=False)

        assert record.is_hot is True
        assert record.trend_state == TrendState.COOLING

    def test_load_deployed_markets(self, store: MetadataStore, deployments_file: Path):
        updater = MetadataUpdater(store, deployments_file=deployments_file)

        markets = updater.load_deployed_markets()

        assert [m.market_id for m in markets] == ["0xaaa", "0xbbb", "0xccc"]

    def test_missing_deployments_file(self, store: MetadataStore, tmp_path: Path):
        updater = MetadataUpdater(store, deployments_file=tmp_path / "missing.json")

        assert updater.load_deployed_markets() == []

    def test_malformed_deployments_file(self, store: MetadataStore, tmp_path: Path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        updater = MetadataUpdater(store, deployments_file=path)

        assert updater.load_deployed_markets() == []

    def test_run_job(self, store: MetadataStore, deployments_file: Path):
        updater = MetadataUpdater(
            store,
            trend_source=StaticTrendSource(fluctuate=False),
            deployments_file=deployments_file,
        )

        summary = updater.run_job()

        assert summary.updated_count == 3
        assert summary.hot_count == 2
        assert store.get("0xaaa", decay=False).trending_topic == "Bitcoin Halving Aftermath"
        assert store.get("0xbbb", decay=False).trending_topic == "Monad Mainnet Beta"
        assert store.get("0xccc", decay=False).trending_topic is None

    def test_run_job_is_repeatable(self, store: MetadataStore, deployments_file: Path):
        updater = MetadataUpdater(
            store,
            trend_source=StaticTrendSource(fluctuate=False),
            deployments_file=deployments_file,
        )

        updater.run_job()
        updater.run_job()

        assert len(store.get_all()) == 3

    def test_close_releases_http_client(self, settings, http_trend_sources):
        updater = MetadataUpdater.from_settings(settings)

        updater.run_job()
        updater.close()

        assert http_trend_sources[0].client.is_closed

    def test_close_without_http_source(self, store: MetadataStore):
        MetadataUpdater(store, trend_source=StaticTrendSource()).close()
        MetadataUpdater(store).close()
