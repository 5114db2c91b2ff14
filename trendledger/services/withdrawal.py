"""Withdrawal coordinator: authorize, debit and record point redemptions."""

import secrets
import time
from datetime import datetime, timezone
from typing import Optional

from trendledger.config import Settings
from trendledger.errors import InsufficientFundsError, LedgerError, StorageError, ValidationError
from trendledger.logger import get_logger
from trendledger.models.ledger import (
    WithdrawalAuthorization,
    WithdrawalRecord,
    WithdrawalResult,
    WithdrawalState,
    WithdrawalStatus,
)
from trendledger.services import db
from trendledger.services.points_ledger import (
    INSUFFICIENT_FUNDS,
    INVALID_AMOUNT,
    PointsLedger,
)

logger = get_logger(__name__)


def _simulated_tx_hash() -> str:
    return f"0x{secrets.token_hex(20)}"


class WithdrawalCoordinator:
    """Coordinates point withdrawals against the ledger.

    ``withdraw`` runs the whole REQUESTED -> DEBITED -> RECORDED sequence.
    The individual steps stay public for callers that drive them directly.
    """

    def __init__(self, ledger: PointsLedger):
        self.ledger = ledger
        self.db_path = ledger.db_path
        self._init_db()

    @classmethod
    def from_settings(cls, settings: Settings) -> "WithdrawalCoordinator":
        return cls(PointsLedger.from_settings(settings))

    def _init_db(self):
        """Initialize the append-only withdrawal log."""
        with db.transaction(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS withdrawals (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    wallet_address TEXT NOT NULL,
                    amount INTEGER NOT NULL CHECK (amount > 0),
                    tx_hash TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    status TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_withdrawals_user ON withdrawals(user_id)"
            )

    def _validate(self, user_id: str, wallet_address: str, amount: int) -> int:
        """Check a withdrawal request and return the current balance."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError(INVALID_AMOUNT)
        if not wallet_address or not wallet_address.strip():
            raise ValidationError("Invalid wallet address")

        current_balance = self.ledger.get_balance(user_id)
        if amount > current_balance:
            raise InsufficientFundsError(INSUFFICIENT_FUNDS)
        return current_balance

    def request_withdrawal(
        self, user_id: str, wallet_address: str, amount: int
    ) -> WithdrawalAuthorization:
        """Authorize a withdrawal. Does not change the balance."""
        try:
            self._validate(user_id, wallet_address, amount)
        except LedgerError as e:
            logger.warning(f"Withdrawal of {amount} by {user_id} rejected: {e}")
            return WithdrawalAuthorization(success=False, error=e.message, code=e.code)

        return WithdrawalAuthorization(
            success=True,
            amount=amount,
            wallet_address=wallet_address,
            tx_hash=_simulated_tx_hash(),
        )

    def record_withdrawal(
        self, user_id: str, wallet_address: str, amount: int, tx_hash: str
    ) -> WithdrawalRecord:
        """Append a completed withdrawal to the audit log.

        Raises StorageError when the record cannot be written.
        """
        record = WithdrawalRecord(
            id=f"wd-{int(time.time() * 1000)}-{secrets.token_hex(4)}",
            user_id=user_id,
            wallet_address=wallet_address,
            amount=amount,
            tx_hash=tx_hash,
            timestamp=datetime.now(timezone.utc),
            status=WithdrawalStatus.COMPLETED,
        )

        with db.transaction(self.db_path) as conn:
            conn.execute(
                "INSERT INTO withdrawals "
                "(id, user_id, wallet_address, amount, tx_hash, timestamp, status) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.user_id,
                    record.wallet_address,
                    record.amount,
                    record.tx_hash,
                    record.timestamp.isoformat(),
                    record.status.value,
                ),
            )

        logger.info(f"Recorded withdrawal {record.id}: {amount} points by {user_id}")
        return record

    def withdraw(self, user_id: str, wallet_address: str, amount: int) -> WithdrawalResult:
        """Authorize, debit and record a withdrawal as one logical operation.

        A failed debit leaves no record. A failed record-write refunds the
        debit and ends in COMPENSATED.
        """
        authorization = self.request_withdrawal(user_id, wallet_address, amount)
        if not authorization.success:
            return WithdrawalResult(
                success=False,
                state=WithdrawalState.FAILED,
                error=authorization.error,
                code=authorization.code,
            )
        state = WithdrawalState.REQUESTED
        logger.debug(f"Withdrawal {authorization.tx_hash} {state.value}")

        debit = self.ledger.debit(user_id, amount)
        if not debit.success:
            return WithdrawalResult(
                success=False,
                state=WithdrawalState.FAILED,
                error=debit.error,
                code=debit.code,
            )
        state = WithdrawalState.DEBITED
        logger.debug(f"Withdrawal {authorization.tx_hash} {state.value}")

        try:
            record = self.record_withdrawal(
                user_id, wallet_address, amount, authorization.tx_hash
            )
        except StorageError as e:
            logger.error(f"Recording withdrawal for {user_id} failed, compensating: {e}")
            return self._compensate(user_id, amount, e)

        return WithdrawalResult(
            success=True,
            state=WithdrawalState.RECORDED,
            amount=amount,
            wallet_address=wallet_address,
            tx_hash=authorization.tx_hash,
            withdrawal_id=record.id,
            new_balance=debit.new_balance,
        )

    def _compensate(self, user_id: str, amount: int, cause: StorageError) -> WithdrawalResult:
        try:
            balance = self.ledger.refund(user_id, amount)
        except StorageError:
            # Debit stands without a record; needs manual reconciliation
            logger.critical(
                f"Refund of {amount} points to {user_id} failed after unrecorded withdrawal",
                exc_info=True,
            )
            return WithdrawalResult(
                success=False,
                state=WithdrawalState.DEBITED,
                error=cause.message,
                code=cause.code,
            )

        return WithdrawalResult(
            success=False,
            state=WithdrawalState.COMPENSATED,
            new_balance=balance,
            error=cause.message,
            code=cause.code,
        )

    def get_withdrawals(self, user_id: Optional[str] = None) -> list[WithdrawalRecord]:
        """Withdrawal history, optionally for one user, oldest first."""
        query = (
            "SELECT id, user_id, wallet_address, amount, tx_hash, timestamp, status "
            "FROM withdrawals"
        )
        params: tuple = ()
        if user_id is not None:
            query += " WHERE user_id = ?"
            params = (user_id,)
        query += " ORDER BY timestamp, id"

        with db.read_only(self.db_path) as conn:
            rows = conn.execute(query, params).fetchall()

        return [
            WithdrawalRecord(
                id=row[0],
                user_id=row[1],
                wallet_address=row[2],
                amount=row[3],
                tx_hash=row[4],
                timestamp=datetime.fromisoformat(row[5]),
                status=WithdrawalStatus(row[6]),
            )
            for row in rows
        ]
