"""Trending topics endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from trendledger.api.schemas.response import TrendingResponse
from trendledger.config import Settings, get_settings
from trendledger.logger import get_logger
from trendledger.services.trend_source import TrendSource, get_trend_source

logger = get_logger(__name__)
router = APIRouter()


def get_source(settings: Settings = Depends(get_settings)) -> TrendSource:
    """Dependency to get the configured trend source."""
    return get_trend_source(settings)


@router.get("", response_model=TrendingResponse)
def get_trending(source: TrendSource = Depends(get_source)):
    """Get current trending topics, highest score first."""
    try:
        trends = source.fetch()
        return TrendingResponse(data=trends, timestamp=datetime.now(timezone.utc))
    except Exception as e:
        logger.error(f"Error fetching trending topics: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch trending topics")
    finally:
        if hasattr(source, "close"):
            source.close()
