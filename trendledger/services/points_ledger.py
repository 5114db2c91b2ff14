"""Points ledger: parimutuel payouts, idempotent claims and balance debits."""

import secrets
import sqlite3
import time
from datetime import datetime, timezone
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from pathlib import Path
from typing import Optional, Union

from trendledger.config import Settings
from trendledger.errors import (
    ConflictError,
    InsufficientFundsError,
    LedgerError,
    StorageError,
    ValidationError,
)
from trendledger.logger import get_logger
from trendledger.models.ledger import CreditResult, DebitResult, LedgerTransaction, Outcome
from trendledger.services import db

logger = get_logger(__name__)

DB_PATH = Path("trendledger.db")
DEFAULT_BALANCE = 1000

ALREADY_CLAIMED = "Already claimed"
INSUFFICIENT_FUNDS = "Insufficient funds"
INVALID_AMOUNT = "Invalid amount"

Number = Union[int, float, Decimal]


def _to_decimal(value: Number) -> Decimal:
    return Decimal(str(value))


def _require_finite(value: Number, name: str) -> Decimal:
    try:
        amount = _to_decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid {name}: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid {name}: {value!r}")
    return amount


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def calculate_points(
    user_stake: Number,
    total_pool: Number,
    winning_side_pool: Number,
    outcome: Union[Outcome, str],
) -> int:
    """Calculate points earned for a resolved bet (parimutuel).

    - A loss earns nothing.
    - Nobody on the winning side: the stake is refunded.
    - Any non-positive stake or pool earns nothing.
    - Otherwise the stake times total pool / winning-side pool, floored.

    Example: total=1000, winning side=400, stake=100 -> 250.
    """
    if Outcome(outcome) == Outcome.LOSS:
        return 0

    stake = _to_decimal(user_stake)
    total = _to_decimal(total_pool)
    winning = _to_decimal(winning_side_pool)

    if winning == 0:
        return max(0, _floor(stake))

    if stake <= 0 or total <= 0 or winning <= 0:
        return 0

    return _floor(stake * total / winning)


def estimate_potential_win(
    bet_amount: Number,
    current_winning_side_pool: Number,
    current_opposite_side_pool: Number,
) -> int:
    """Estimate the payout of a new bet, counting the bet in both pools."""
    bet = _to_decimal(bet_amount)
    new_winning_side_pool = _to_decimal(current_winning_side_pool) + bet
    new_total_pool = new_winning_side_pool + _to_decimal(current_opposite_side_pool)

    if new_winning_side_pool == 0:
        return 0

    return calculate_points(bet, new_total_pool, new_winning_side_pool, Outcome.WIN)


def _new_transaction_id() -> str:
    return f"tx-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def _require_id(value: str, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing {name}")
    return value


class PointsLedger:
    """User point balances and the claim transaction log.

    Every account is provisioned with the default balance the first time it
    is read or written. Claims are unique per (user, market): the check and
    the insert happen in the same write transaction, backed by a unique index.
    """

    def __init__(self, db_path: Path = DB_PATH, default_balance: int = DEFAULT_BALANCE):
        self.db_path = db_path
        self.default_balance = default_balance
        self._init_db()
        logger.debug(f"PointsLedger initialized with db: {self.db_path}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "PointsLedger":
        return cls(db_path=settings.db_path, default_balance=settings.default_balance)

    def _init_db(self):
        """Initialize balance and transaction tables."""
        with db.transaction(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS balances (
                    user_id TEXT PRIMARY KEY,
                    points INTEGER NOT NULL CHECK (points >= 0)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS transactions (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    market_id TEXT NOT NULL,
                    points_earned INTEGER NOT NULL,
                    timestamp TEXT NOT NULL,
                    UNIQUE (user_id, market_id)
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_transactions_user ON transactions(user_id)"
            )

    def _ensure_account(self, conn: sqlite3.Connection, user_id: str) -> int:
        conn.execute(
            "INSERT OR IGNORE INTO balances (user_id, points) VALUES (?, ?)",
            (user_id, self.default_balance),
        )
        return conn.execute(
            "SELECT points FROM balances WHERE user_id = ?", (user_id,)
        ).fetchone()[0]

    def ensure_account(self, user_id: str) -> int:
        """Provision the account if needed and return its balance."""
        _require_id(user_id, "user id")
        with db.transaction(self.db_path) as conn:
            return self._ensure_account(conn, user_id)

    def get_balance(self, user_id: str) -> int:
        """Current balance. Unseen users are provisioned with the default balance.

        Raises:
            ValidationError: empty user id
            StorageError: the database could not be read or written
        """
        return self.ensure_account(user_id)

    def get_transaction(self, user_id: str, market_id: str) -> Optional[LedgerTransaction]:
        with db.read_only(self.db_path) as conn:
            row = conn.execute(
                "SELECT id, user_id, market_id, points_earned, timestamp "
                "FROM transactions WHERE user_id = ? AND market_id = ?",
                (user_id, market_id),
            ).fetchone()
        return self._row_to_transaction(row) if row else None

    def get_transactions(self, user_id: str) -> list[LedgerTransaction]:
        """All claims recorded for a user, oldest first."""
        with db.read_only(self.db_path) as conn:
            rows = conn.execute(
                "SELECT id, user_id, market_id, points_earned, timestamp "
                "FROM transactions WHERE user_id = ? ORDER BY timestamp, id",
                (user_id,),
            ).fetchall()
        return [self._row_to_transaction(row) for row in rows]

    @staticmethod
    def _row_to_transaction(row: tuple) -> LedgerTransaction:
        tx_id, user_id, market_id, points_earned, timestamp = row
        return LedgerTransaction(
            id=tx_id,
            user_id=user_id,
            market_id=market_id,
            points_earned=points_earned,
            timestamp=datetime.fromisoformat(timestamp),
        )

    def credit(
        self,
        user_id: str,
        market_id: str,
        user_stake: Number,
        total_pool: Number,
        winning_side_pool: Number,
        outcome: Union[Outcome, str],
    ) -> CreditResult:
        """Credit the payout for a resolved bet, at most once per (user, market).

        A repeated claim returns ``success=False`` with error "Already
        claimed" and the original transaction id and points.
        """
        try:
            return self._credit(
                user_id, market_id, user_stake, total_pool, winning_side_pool, outcome
            )
        except ConflictError as e:
            logger.info(f"Duplicate claim by {user_id} on {market_id}: {e.transaction_id}")
            return CreditResult(
                success=False,
                error=e.message,
                code=e.code,
                transaction_id=e.transaction_id,
                points_earned=e.points_earned,
            )
        except StorageError as e:
            logger.error(f"Claim by {user_id} on {market_id} failed: {e}")
            return CreditResult(success=False, error=e.message, code=e.code)
        except LedgerError as e:
            logger.warning(f"Rejected claim by {user_id} on {market_id}: {e}")
            return CreditResult(success=False, error=e.message, code=e.code)

    def _credit(
        self,
        user_id: str,
        market_id: str,
        user_stake: Number,
        total_pool: Number,
        winning_side_pool: Number,
        outcome: Union[Outcome, str],
    ) -> CreditResult:
        _require_id(user_id, "user id")
        _require_id(market_id, "market id")

        with db.transaction(self.db_path) as conn:
            existing = conn.execute(
                "SELECT id, points_earned FROM transactions WHERE user_id = ? AND market_id = ?",
                (user_id, market_id),
            ).fetchone()
            if existing:
                raise ConflictError(ALREADY_CLAIMED, existing[0], existing[1])

            # A replayed claim reports the conflict before any input checks
            try:
                outcome = Outcome(outcome)
            except ValueError:
                raise ValidationError(f"Invalid outcome: {outcome}")
            points = calculate_points(
                _require_finite(user_stake, "stake"),
                _require_finite(total_pool, "total pool"),
                _require_finite(winning_side_pool, "winning side pool"),
                outcome,
            )

            previous_balance = self._ensure_account(conn, user_id)
            new_balance = previous_balance + points

            tx_id = _new_transaction_id()
            try:
                conn.execute(
                    "INSERT INTO transactions (id, user_id, market_id, points_earned, timestamp) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (tx_id, user_id, market_id, points, datetime.now(timezone.utc).isoformat()),
                )
            except sqlite3.IntegrityError:
                # Lost the race to a concurrent claim on the same key
                row = conn.execute(
                    "SELECT id, points_earned FROM transactions WHERE user_id = ? AND market_id = ?",
                    (user_id, market_id),
                ).fetchone()
                if row is None:
                    raise
                raise ConflictError(ALREADY_CLAIMED, row[0], row[1])

            conn.execute(
                "UPDATE balances SET points = ? WHERE user_id = ?", (new_balance, user_id)
            )

        logger.info(
            f"Credited {points} points to {user_id} for {market_id} "
            f"({previous_balance} -> {new_balance}, {tx_id})"
        )
        return CreditResult(
            success=True,
            points_earned=points,
            previous_balance=previous_balance,
            new_balance=new_balance,
            transaction_id=tx_id,
        )

    def debit(self, user_id: str, amount: int) -> DebitResult:
        """Deduct points atomically. Fails instead of going below zero."""
        try:
            _require_id(user_id, "user id")
            if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
                raise ValidationError(INVALID_AMOUNT)

            with db.transaction(self.db_path) as conn:
                previous_balance = self._ensure_account(conn, user_id)
                cursor = conn.execute(
                    "UPDATE balances SET points = points - ? WHERE user_id = ? AND points >= ?",
                    (amount, user_id, amount),
                )
                if cursor.rowcount == 0:
                    raise InsufficientFundsError(INSUFFICIENT_FUNDS)
        except StorageError as e:
            logger.error(f"Debit of {amount} from {user_id} failed: {e}")
            return DebitResult(success=False, error=e.message, code=e.code)
        except LedgerError as e:
            logger.warning(f"Rejected debit of {amount} from {user_id}: {e}")
            return DebitResult(success=False, error=e.message, code=e.code)

        new_balance = previous_balance - amount
        logger.info(f"Debited {amount} points from {user_id} ({previous_balance} -> {new_balance})")
        return DebitResult(success=True, previous_balance=previous_balance, new_balance=new_balance)

    def refund(self, user_id: str, amount: int) -> int:
        """Return previously debited points. Used to compensate a failed withdrawal.

        Raises StorageError when the refund cannot be written.
        """
        with db.transaction(self.db_path) as conn:
            self._ensure_account(conn, user_id)
            conn.execute(
                "UPDATE balances SET points = points + ? WHERE user_id = ?", (amount, user_id)
            )
            balance = conn.execute(
                "SELECT points FROM balances WHERE user_id = ?", (user_id,)
            ).fetchone()[0]

        logger.info(f"Refunded {amount} points to {user_id} (balance {balance})")
        return balance
