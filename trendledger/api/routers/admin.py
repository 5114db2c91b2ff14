"""Admin endpoints for metadata maintenance."""

from fastapi import APIRouter, Depends, HTTPException, Request

from trendledger.api.routers.metadata import get_metadata_store
from trendledger.api.schemas.response import CleanupResponse
from trendledger.errors import LedgerError
from trendledger.logger import get_logger
from trendledger.services.metadata_store import MetadataStore

logger = get_logger(__name__)
router = APIRouter()


@router.post("/cleanup", response_model=CleanupResponse)
def cleanup_metadata(store: MetadataStore = Depends(get_metadata_store)):
    """Remove metadata records older than the retention window."""
    try:
        removed = store.cleanup_old()
        logger.info(f"Retention sweep removed {removed} records")
        return CleanupResponse(status="success", removed=removed)
    except LedgerError as e:
        logger.error(f"Error during retention sweep: {e}")
        raise HTTPException(status_code=500, detail="Failed to clean up metadata")


@router.get("/scheduler")
async def get_scheduler_status(request: Request):
    """Get the status of the in-process metadata scheduler, if enabled."""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        return {"is_running": False, "enabled": False}
    return {"enabled": True, **scheduler.get_status()}
