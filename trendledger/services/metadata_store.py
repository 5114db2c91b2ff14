"""SQLite store for off-chain market metadata."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Union

from trendledger.config import Settings
from trendledger.logger import get_logger
from trendledger.models.metadata import MarketMetadata, MetadataUpdate, TrendState
from trendledger.services import db
from trendledger.services.trend_scoring import (
    DECAY_RATE,
    apply_decay,
    as_utc,
    compute_activity_status,
    compute_trend_state,
    derive_suggested_stake,
    generate_sentiment,
    is_hot,
)

logger = get_logger(__name__)

DB_PATH = Path("trendledger.db")

# Values a record starts from before its first update is merged in
NEUTRAL_TREND_SCORE = 50.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MetadataStore:
    """Market metadata with one row per market id.

    Reads apply time decay by default; the decayed values are never written
    back. Only ``upsert``, ``resolve`` and ``cleanup_old`` modify rows.
    """

    def __init__(
        self,
        db_path: Path = DB_PATH,
        base_stake: str = "0.001",
        decay_rate: float = DECAY_RATE,
        retention_days: int = 7,
    ):
        self.db_path = db_path
        self.base_stake = base_stake
        self.decay_rate = decay_rate
        self.retention_days = retention_days
        self._init_db()
        logger.debug(f"MetadataStore initialized with db: {self.db_path}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "MetadataStore":
        return cls(
            db_path=settings.db_path,
            base_stake=settings.base_stake,
            decay_rate=settings.decay_rate,
            retention_days=settings.retention_days,
        )

    def _init_db(self):
        """Initialize the metadata table."""
        with db.transaction(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS market_metadata (
                    market_id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    last_updated REAL NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_metadata_last_updated "
                "ON market_metadata(last_updated)"
            )

    def _decay(self, record: MarketMetadata, now: Optional[datetime]) -> MarketMetadata:
        return apply_decay(
            record,
            as_utc(now) if now else utc_now(),
            base_stake=self.base_stake,
            decay_rate=self.decay_rate,
        )

    def get(
        self, market_id: str, now: Optional[datetime] = None, decay: bool = True
    ) -> Optional[MarketMetadata]:
        """Get metadata for a market, decayed to ``now`` unless ``decay`` is False."""
        with db.read_only(self.db_path) as conn:
            row = conn.execute(
                "SELECT data FROM market_metadata WHERE market_id = ?", (market_id,)
            ).fetchone()

        if row is None:
            return None

        record = MarketMetadata.model_validate_json(row[0])
        return self._decay(record, now) if decay else record

    def get_all(
        self, now: Optional[datetime] = None, decay: bool = True
    ) -> dict[str, MarketMetadata]:
        """Get every stored record keyed by market id."""
        with db.read_only(self.db_path) as conn:
            rows = conn.execute(
                "SELECT market_id, data FROM market_metadata ORDER BY market_id"
            ).fetchall()

        result = {}
        for market_id, data in rows:
            record = MarketMetadata.model_validate_json(data)
            result[market_id] = self._decay(record, now) if decay else record

        logger.debug(f"Loaded {len(result)} metadata records")
        return result

    def upsert(
        self,
        market_id: str,
        update: Union[MetadataUpdate, dict],
        now: Optional[datetime] = None,
    ) -> MarketMetadata:
        """Merge a partial update into a market's record and return the stored result.

        The record is created on the first update. Derived fields (state,
        stake, hot badge, activity) are recomputed from the merged values and
        the sentiment snapshot is kept from creation. The whole
        read-merge-write runs in one transaction.
        """
        if isinstance(update, dict):
            update = MetadataUpdate.model_validate(update)
        fields = update.model_dump(exclude_unset=True)
        timestamp = as_utc(now) if now else utc_now()

        with db.transaction(self.db_path) as conn:
            row = conn.execute(
                "SELECT data FROM market_metadata WHERE market_id = ?", (market_id,)
            ).fetchone()
            existing = MarketMetadata.model_validate_json(row[0]) if row else None

            record = self._merge(market_id, existing, fields, timestamp)

            conn.execute(
                """
                INSERT INTO market_metadata (market_id, data, last_updated)
                VALUES (?, ?, ?)
                ON CONFLICT(market_id) DO UPDATE SET
                    data = excluded.data,
                    last_updated = excluded.last_updated
                """,
                (market_id, record.model_dump_json(), timestamp.timestamp()),
            )

        logger.debug(
            f"Upserted {market_id}: score={record.trend_score} "
            f"state={record.trend_state.value} stake={record.suggested_stake}"
        )
        return record

    def _merge(
        self,
        market_id: str,
        existing: Optional[MarketMetadata],
        fields: dict,
        timestamp: datetime,
    ) -> MarketMetadata:
        if existing is not None:
            previous_score = existing.trend_score
            current = {
                "trend_score": existing.trend_score,
                "article_count": existing.article_count,
                "recency_score": existing.recency_score,
                "trending_topic": existing.trending_topic,
            }
            sentiment = existing.sentiment
            resolved = existing.resolved
        else:
            previous_score = None
            current = {
                "trend_score": NEUTRAL_TREND_SCORE,
                "article_count": 0,
                "recency_score": 0.0,
                "trending_topic": None,
            }
            sentiment = generate_sentiment(market_id)
            resolved = False

        current.update(fields)
        trend_score = current["trend_score"]

        return MarketMetadata(
            market_id=market_id,
            trend_score=trend_score,
            visibility_score=trend_score,
            article_count=current["article_count"],
            recency_score=current["recency_score"],
            trend_state=compute_trend_state(
                current["article_count"], current["recency_score"], resolved
            ),
            suggested_stake=derive_suggested_stake(
                trend_score, current["trending_topic"], self.base_stake
            ),
            sentiment=sentiment,
            activity_status=compute_activity_status(trend_score, previous_score),
            is_hot=is_hot(trend_score),
            trending_topic=current["trending_topic"],
            resolved=resolved,
            last_updated=timestamp,
        )

    def resolve(self, market_id: str) -> Optional[MarketMetadata]:
        """Mark a market as settled. Its state stays RESOLVED from then on.

        Returns None when the market has no metadata record.
        """
        with db.transaction(self.db_path) as conn:
            row = conn.execute(
                "SELECT data FROM market_metadata WHERE market_id = ?", (market_id,)
            ).fetchone()
            if row is None:
                return None

            record = MarketMetadata.model_validate_json(row[0])
            record = record.model_copy(
                update={"resolved": True, "trend_state": TrendState.RESOLVED}
            )
            conn.execute(
                "UPDATE market_metadata SET data = ? WHERE market_id = ?",
                (record.model_dump_json(), market_id),
            )

        logger.info(f"Market {market_id} marked RESOLVED")
        return record

    def cleanup_old(self, now: Optional[datetime] = None) -> int:
        """Delete records not updated within the retention window."""
        cutoff = (as_utc(now) if now else utc_now()) - timedelta(days=self.retention_days)

        with db.transaction(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM market_metadata WHERE last_updated < ?",
                (cutoff.timestamp(),),
            )
            cleaned = cursor.rowcount

        if cleaned > 0:
            logger.info(f"Cleaned up {cleaned} old market metadata entries")
        return cleaned
