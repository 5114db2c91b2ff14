"""Points claim and balance endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from trendledger.api.schemas.request import ClaimRequest
from trendledger.api.schemas.response import (
    BalanceResponse,
    EstimateResponse,
    TransactionsResponse,
)
from trendledger.config import Settings, get_settings
from trendledger.errors import LedgerError, ValidationError, http_status_for
from trendledger.logger import get_logger
from trendledger.models.ledger import CreditResult
from trendledger.services.points_ledger import PointsLedger, estimate_potential_win

logger = get_logger(__name__)
router = APIRouter()


def get_points_ledger(settings: Settings = Depends(get_settings)) -> PointsLedger:
    """Dependency to get PointsLedger instance."""
    return PointsLedger.from_settings(settings)


@router.post("/claim", response_model=CreditResult)
def claim(
    request: ClaimRequest,
    response: Response,
    ledger: PointsLedger = Depends(get_points_ledger),
):
    """
    Credit the payout for a resolved bet.

    A repeated claim for the same user and market returns 409 with the
    original transaction id and points.
    """
    logger.info(f"Claim request: user={request.user_id} market={request.market_id}")

    result = ledger.credit(
        user_id=request.user_id,
        market_id=request.market_id,
        user_stake=request.user_stake,
        total_pool=request.total_pool,
        winning_side_pool=request.winning_side_pool,
        outcome=request.outcome,
    )
    if not result.success:
        response.status_code = http_status_for(result.code)
    return result


@router.get("/balance/{user_id}", response_model=BalanceResponse)
def get_balance(user_id: str, ledger: PointsLedger = Depends(get_points_ledger)):
    """Get a user's point balance. New users start with the default grant."""
    try:
        return BalanceResponse(user_id=user_id, balance=ledger.get_balance(user_id))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except LedgerError as e:
        logger.error(f"Error reading balance for {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch balance")


@router.get("/transactions/{user_id}", response_model=TransactionsResponse)
def get_transactions(user_id: str, ledger: PointsLedger = Depends(get_points_ledger)):
    """Get a user's claim history."""
    try:
        return TransactionsResponse(user_id=user_id, transactions=ledger.get_transactions(user_id))
    except LedgerError as e:
        logger.error(f"Error reading transactions for {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch transactions")


@router.get("/estimate", response_model=EstimateResponse)
async def estimate(
    bet_amount: int = Query(..., alias="betAmount", ge=0),
    winning_side_pool: int = Query(..., alias="winningSidePool", ge=0),
    opposite_side_pool: int = Query(..., alias="oppositeSidePool", ge=0),
):
    """Estimate the points a new bet would earn if its side wins."""
    return EstimateResponse(
        bet_amount=bet_amount,
        potential_win=estimate_potential_win(bet_amount, winning_side_pool, opposite_side_pool),
    )
