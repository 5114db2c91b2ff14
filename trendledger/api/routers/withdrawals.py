"""Point withdrawal endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Response

from trendledger.api.schemas.request import WithdrawRequest
from trendledger.api.schemas.response import WithdrawalsResponse
from trendledger.config import Settings, get_settings
from trendledger.errors import LedgerError, http_status_for
from trendledger.logger import get_logger
from trendledger.models.ledger import WithdrawalResult
from trendledger.services.withdrawal import WithdrawalCoordinator

logger = get_logger(__name__)
router = APIRouter()


def get_withdrawal_coordinator(
    settings: Settings = Depends(get_settings),
) -> WithdrawalCoordinator:
    """Dependency to get WithdrawalCoordinator instance."""
    return WithdrawalCoordinator.from_settings(settings)


@router.post("", response_model=WithdrawalResult)
def withdraw(
    request: WithdrawRequest,
    response: Response,
    coordinator: WithdrawalCoordinator = Depends(get_withdrawal_coordinator),
):
    """
    Withdraw points to a wallet.

    Authorizes against the current balance, debits it and records the
    withdrawal. Fails with "Invalid amount" or "Insufficient funds".
    """
    logger.info(f"Withdrawal request: user={request.user_id} amount={request.amount}")

    result = coordinator.withdraw(request.user_id, request.wallet_address, request.amount)
    if not result.success:
        response.status_code = http_status_for(result.code)
    return result


@router.get("/{user_id}", response_model=WithdrawalsResponse)
def get_withdrawals(
    user_id: str,
    coordinator: WithdrawalCoordinator = Depends(get_withdrawal_coordinator),
):
    """Get a user's withdrawal history."""
    try:
        return WithdrawalsResponse(user_id=user_id, withdrawals=coordinator.get_withdrawals(user_id))
    except LedgerError as e:
        logger.error(f"Error reading withdrawals for {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch withdrawals")
