"""Market metadata endpoints."""

from datetime import datetime, timezone
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, HTTPException

from trendledger.api.schemas.request import RefreshMetadataRequest
from trendledger.api.schemas.response import MetadataMapResponse, MetadataResponse
from trendledger.config import Settings, get_settings
from trendledger.errors import LedgerError
from trendledger.logger import get_logger
from trendledger.models.metadata import UpdateSummary
from trendledger.services.metadata_store import MetadataStore
from trendledger.services.metadata_updater import MetadataUpdater

logger = get_logger(__name__)
router = APIRouter()


def get_metadata_store(settings: Settings = Depends(get_settings)) -> MetadataStore:
    """Dependency to get MetadataStore instance."""
    return MetadataStore.from_settings(settings)


def get_metadata_updater(settings: Settings = Depends(get_settings)) -> Iterator[MetadataUpdater]:
    """Dependency to get MetadataUpdater instance, closed after the request."""
    updater = MetadataUpdater.from_settings(settings)
    try:
        yield updater
    finally:
        updater.close()


@router.get("", response_model=MetadataMapResponse)
def get_all_metadata(store: MetadataStore = Depends(get_metadata_store)):
    """Get all market metadata, decayed to the time of the request."""
    try:
        return MetadataMapResponse(data=store.get_all(), timestamp=datetime.now(timezone.utc))
    except LedgerError as e:
        logger.error(f"Error fetching metadata: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch metadata")


@router.post("/refresh", response_model=UpdateSummary)
def refresh_metadata(
    request: Optional[RefreshMetadataRequest] = None,
    updater: MetadataUpdater = Depends(get_metadata_updater),
):
    """
    Match markets to trends and upsert their metadata.

    - **trendItems**: trends to match against (default: configured trend source)
    - **marketDescriptors**: markets to update (default: deployments file)
    """
    request = request or RefreshMetadataRequest()
    try:
        trends = request.trend_items
        if trends is None:
            trends = updater.fetch_trends()
        markets = request.market_descriptors
        if markets is None:
            markets = updater.load_deployed_markets()

        logger.info(f"Refreshing metadata: {len(markets)} markets, {len(trends)} trends")
        return updater.update(markets, trends)

    except Exception as e:
        logger.error(f"Error refreshing metadata: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to refresh metadata")


@router.get("/{market_id}", response_model=MetadataResponse)
def get_market_metadata(market_id: str, store: MetadataStore = Depends(get_metadata_store)):
    """Get metadata for a specific market."""
    try:
        record = store.get(market_id)
    except LedgerError as e:
        logger.error(f"Error fetching metadata for {market_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch market metadata")

    if record is None:
        raise HTTPException(status_code=404, detail="Market not found")
    return MetadataResponse(data=record, timestamp=datetime.now(timezone.utc))


@router.post("/{market_id}/resolve", response_model=MetadataResponse)
def resolve_market(market_id: str, store: MetadataStore = Depends(get_metadata_store)):
    """Mark a market as settled. Its lifecycle state becomes RESOLVED."""
    try:
        record = store.resolve(market_id)
    except LedgerError as e:
        logger.error(f"Error resolving {market_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to resolve market")

    if record is None:
        raise HTTPException(status_code=404, detail="Market not found")
    return MetadataResponse(data=record, timestamp=datetime.now(timezone.utc))
