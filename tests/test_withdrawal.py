"""Tests for the withdrawal coordinator."""

import re

import pytest

from trendledger.errors import StorageError
from trendledger.models.ledger import WithdrawalState, WithdrawalStatus
from trendledger.services.points_ledger import PointsLedger
from trendledger.services.withdrawal import WithdrawalCoordinator

WALLET = "0x1111111111111111111111111111111111111111"


def fail_storage(*args, **kwargs):
    raise StorageError("Storage failure")


class TestRequestWithdrawal:
    """Authorization checks."""

    def test_authorizes_without_debit(self, coordinator: WithdrawalCoordinator, ledger: PointsLedger):
        authorization = coordinator.request_withdrawal("alice", WALLET, 300)

        assert authorization.success is True
        assert authorization.amount == 300
        assert authorization.wallet_address == WALLET
        assert re.fullmatch(r"0x[0-9a-f]{40}", authorization.tx_hash)
        assert ledger.get_balance("alice") == 1000

    @pytest.mark.parametrize("amount", [0, -1, 2.5])
    def test_invalid_amount(self, coordinator: WithdrawalCoordinator, amount):
        authorization = coordinator.request_withdrawal("alice", WALLET, amount)

        assert authorization.success is False
        assert authorization.error == "Invalid amount"
        assert authorization.code == "validation"

    def test_missing_wallet(self, coordinator: WithdrawalCoordinator):
        authorization = coordinator.request_withdrawal("alice", "  ", 100)

        assert authorization.success is False
        assert authorization.code == "validation"

    def test_insufficient_funds(self, coordinator: WithdrawalCoordinator):
        authorization = coordinator.request_withdrawal("alice", WALLET, 1001)

        assert authorization.success is False
        assert authorization.error == "Insufficient funds"
        assert authorization.code == "insufficient_funds"

    def test_full_balance_allowed(self, coordinator: WithdrawalCoordinator):
        assert coordinator.request_withdrawal("alice", WALLET, 1000).success is True


class TestRecordWithdrawal:
    def test_record_and_list(self, coordinator: WithdrawalCoordinator):
        record = coordinator.record_withdrawal("alice", WALLET, 200, "0xabc")
        coordinator.record_withdrawal("bob", WALLET, 50, "0xdef")

        assert record.id.startswith("wd-")
        assert record.status == WithdrawalStatus.COMPLETED

        alice = coordinator.get_withdrawals("alice")
        assert [w.id for w in alice] == [record.id]
        assert alice[0].amount == 200
        assert len(coordinator.get_withdrawals()) == 2


class TestWithdraw:
    """The authorize, debit, record sequence."""

    def test_success(self, coordinator: WithdrawalCoordinator, ledger: PointsLedger):
        result = coordinator.withdraw("alice", WALLET, 300)

        assert result.success is True
        assert result.state == WithdrawalState.RECORDED
        assert result.new_balance == 700
        assert ledger.get_balance("alice") == 700

        history = coordinator.get_withdrawals("alice")
        assert len(history) == 1
        assert history[0].id == result.withdrawal_id
        assert history[0].tx_hash == result.tx_hash

    def test_insufficient_funds_leaves_no_record(self, coordinator: WithdrawalCoordinator, ledger: PointsLedger):
        result = coordinator.withdraw("alice", WALLET, 5000)

        assert result.success is False
        assert result.state == WithdrawalState.FAILED
        assert result.code == "insufficient_funds"
        assert ledger.get_balance("alice") == 1000
        assert coordinator.get_withdrawals("alice") == []

    def test_debit_failure_leaves_no_record(
        self, coordinator: WithdrawalCoordinator, ledger: PointsLedger, monkeypatch
    ):
        ledger.debit("alice", 950)
        # Authorization sees a stale balance; the debit guard still holds
        monkeypatch.setattr(ledger, "get_balance", lambda user_id: 1000)

        result = coordinator.withdraw("alice", WALLET, 100)

        assert result.success is False
        assert result.state == WithdrawalState.FAILED
        assert result.code == "insufficient_funds"
        assert coordinator.get_withdrawals("alice") == []
        monkeypatch.undo()
        assert ledger.get_balance("alice") == 50

    def test_record_failure_compensates(
        self, coordinator: WithdrawalCoordinator, ledger: PointsLedger, monkeypatch
    ):
        monkeypatch.setattr(coordinator, "record_withdrawal", fail_storage)

        result = coordinator.withdraw("alice", WALLET, 300)

        assert result.success is False
        assert result.state == WithdrawalState.COMPENSATED
        assert result.code == "storage"
        assert result.new_balance == 1000
        assert ledger.get_balance("alice") == 1000

    def test_failed_compensation_stays_debited(
        self, coordinator: WithdrawalCoordinator, ledger: PointsLedger, monkeypatch
    ):
        monkeypatch.setattr(coordinator, "record_withdrawal", fail_storage)
        monkeypatch.setattr(ledger, "refund", fail_storage)

        result = coordinator.withdraw("alice", WALLET, 300)

        assert result.success is False
        assert result.state == WithdrawalState.DEBITED
        assert ledger.get_balance("alice") == 700

    def test_balance_never_negative(self, coordinator: WithdrawalCoordinator, ledger: PointsLedger):
        outcomes = [coordinator.withdraw("alice", WALLET, 400).success for _ in range(4)]

        assert outcomes == [True, True, False, False]
        assert ledger.get_balance("alice") == 200
        assert sum(w.amount for w in coordinator.get_withdrawals("alice")) == 800
