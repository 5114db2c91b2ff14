"""Points ledger and withdrawal models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from trendledger.models.base import CamelModel


class Outcome(str, Enum):
    """Result of a user's bet on a resolved market."""

    WIN = "WIN"
    LOSS = "LOSS"


class LedgerTransaction(CamelModel):
    """A recorded claim. Unique per (user_id, market_id)."""

    id: str
    user_id: str
    market_id: str
    points_earned: int = Field(ge=0)
    timestamp: datetime


class CreditResult(CamelModel):
    """Result of crediting a claim."""

    success: bool
    points_earned: Optional[int] = None
    previous_balance: Optional[int] = None
    new_balance: Optional[int] = None
    transaction_id: Optional[str] = None
    error: Optional[str] = None
    code: Optional[str] = None


class DebitResult(CamelModel):
    """Result of a balance deduction."""

    success: bool
    previous_balance: Optional[int] = None
    new_balance: Optional[int] = None
    error: Optional[str] = None
    code: Optional[str] = None


class WithdrawalStatus(str, Enum):
    COMPLETED = "COMPLETED"


class WithdrawalRecord(CamelModel):
    """Append-only audit entry for a completed withdrawal."""

    id: str
    user_id: str
    wallet_address: str
    amount: int = Field(gt=0)
    tx_hash: str
    timestamp: datetime
    status: WithdrawalStatus = WithdrawalStatus.COMPLETED


class WithdrawalAuthorization(CamelModel):
    """Authorization for a withdrawal. Does not move any points by itself."""

    success: bool
    amount: Optional[int] = None
    wallet_address: Optional[str] = None
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    code: Optional[str] = None


class WithdrawalState(str, Enum):
    """States of the authorize -> debit -> record withdrawal saga."""

    REQUESTED = "REQUESTED"
    DEBITED = "DEBITED"
    RECORDED = "RECORDED"
    FAILED = "FAILED"
    COMPENSATED = "COMPENSATED"


class WithdrawalResult(CamelModel):
    """Final result of a withdrawal saga."""

    success: bool
    state: WithdrawalState
    amount: Optional[int] = None
    wallet_address: Optional[str] = None
    tx_hash: Optional[str] = None
    withdrawal_id: Optional[str] = None
    new_balance: Optional[int] = None
    error: Optional[str] = None
    code: Optional[str] = None
