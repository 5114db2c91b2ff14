"""Integration tests for the SQLite metadata store."""

from datetime import timedelta

import pytest

from trendledger.errors import StorageError
from trendledger.models.metadata import ActivityStatus, MetadataUpdate, TrendState
from trendledger.services import db
from trendledger.services.metadata_store import MetadataStore


class TestMetadataStore:
    """Integration tests for MetadataStore."""

    def test_get_missing(self, store: MetadataStore):
        assert store.get("0xnope") is None
        assert store.get_all() == {}

    def test_upsert_creates_record(self, store: MetadataStore, now):
        record = store.upsert(
            "0xaaa",
            MetadataUpdate(
                trend_score=95,
                article_count=19,
                recency_score=95,
                trending_topic="Bitcoin Price Surge",
            ),
            now=now,
        )

        assert record.market_id == "0xaaa"
        assert record.trend_state == TrendState.HOT
        assert record.is_hot is True
        assert record.suggested_stake == "0.0015"
        assert record.activity_status == ActivityStatus.INCREASING
        assert record.last_updated == now
        assert record.sentiment.early_phase.yes + record.sentiment.early_phase.no == 100

    def test_upsert_accepts_dict(self, store: MetadataStore, now):
        record = store.upsert("0xaaa", {"trendScore": 70, "trendingTopic": "AI Agent Economy"}, now=now)

        assert record.trend_score == 70
        assert record.trending_topic == "AI Agent Economy"

    def test_activity_tracks_previous_score(self, store: MetadataStore, now):
        store.upsert("0xaaa", {"trend_score": 60}, now=now)

        assert store.upsert("0xaaa", {"trend_score": 70}, now=now).activity_status == ActivityStatus.INCREASING
        assert store.upsert("0xaaa", {"trend_score": 72}, now=now).activity_status == ActivityStatus.STABLE
        assert store.upsert("0xaaa", {"trend_score": 50}, now=now).activity_status == ActivityStatus.DECREASING

    def test_partial_update_keeps_other_fields(self, store: MetadataStore, now):
        store.upsert(
            "0xaaa",
            {"trend_score": 80, "article_count": 12, "recency_score": 70, "trending_topic": "Solana ETF Approval"},
            now=now,
        )
        record = store.upsert("0xaaa", {"trend_score": 85}, now=now)

        assert record.article_count == 12
        assert record.recency_score == 70
        assert record.trending_topic == "Solana ETF Approval"

    def test_sentiment_is_kept(self, store: MetadataStore, now):
        first = store.upsert("0xaaa", {"trend_score": 60}, now=now)
        second = store.upsert("0xaaa", {"trend_score": 90, "article_count": 30}, now=now)

        assert second.sentiment == first.sentiment

    def test_read_applies_decay_without_persisting(self, store: MetadataStore, now):
        store.upsert(
            "0xaaa",
            {"trend_score": 90, "article_count": 20, "recency_score": 80, "trending_topic": "Bitcoin"},
            now=now,
        )

        decayed = store.get("0xaaa", now=now + timedelta(hours=10))
        stored = store.get("0xaaa", decay=False)

        assert decayed.article_count == 11
        assert decayed.trend_state == TrendState.DETECTED
        assert stored.article_count == 20
        assert stored.trend_state == TrendState.HOT

    def test_get_all(self, store: MetadataStore, now):
        store.upsert("0xaaa", {"trend_score": 60}, now=now)
        store.upsert("0xbbb", {"trend_score": 80}, now=now)

        records = store.get_all(now=now)

        assert set(records) == {"0xaaa", "0xbbb"}
        assert records["0xbbb"].trend_score == 80

    def test_unmatched_market_gets_base_stake(self, store: MetadataStore, now):
        record = store.upsert("0xaaa", {"trend_score": 50, "trending_topic": None}, now=now)

        assert record.suggested_stake == "0.0010"
        assert record.is_hot is False

    def test_cleanup_old(self, store: MetadataStore, now):
        store.upsert("0xold", {"trend_score": 60}, now=now - timedelta(days=8))
        store.upsert("0xnew", {"trend_score": 60}, now=now - timedelta(days=6))

        removed = store.cleanup_old(now=now)

        assert removed == 1
        assert store.get("0xold") is None
        assert store.get("0xnew", decay=False) is not None

    def test_cleanup_is_idempotent(self, store: MetadataStore, now):
        store.upsert("0xold", {"trend_score": 60}, now=now - timedelta(days=8))

        assert store.cleanup_old(now=now) == 1
        assert store.cleanup_old(now=now) == 0

    def test_resolve(self, store: MetadataStore, now):
        store.upsert("0xaaa", {"trend_score": 90, "article_count": 20, "recency_score": 80}, now=now)

        record = store.resolve("0xaaa")

        assert record.trend_state == TrendState.RESOLVED
        assert store.get("0xaaa", now=now + timedelta(hours=3)).trend_state == TrendState.RESOLVED

    def test_resolved_stays_resolved_after_update(self, store: MetadataStore, now):
        store.upsert("0xaaa", {"trend_score": 60}, now=now)
        store.resolve("0xaaa")

        record = store.upsert("0xaaa", {"article_count": 40, "recency_score": 100}, now=now)

        assert record.trend_state == TrendState.RESOLVED

    def test_resolve_missing(self, store: MetadataStore):
        assert store.resolve("0xnope") is None

    def test_storage_failure_raises(self, store: MetadataStore, monkeypatch):
        def broken(db_path):
            raise StorageError("Storage failure")

        monkeypatch.setattr(db, "transaction", broken)

        with pytest.raises(StorageError):
            store.upsert("0xaaa", {"trend_score": 60})

    def test_reopen_persists(self, store: MetadataStore, tmp_db_path, now):
        store.upsert("0xaaa", {"trend_score": 60}, now=now)

        reopened = MetadataStore(tmp_db_path)

        assert reopened.get("0xaaa", decay=False).trend_score == 60
