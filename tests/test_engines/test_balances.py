"""Tests for AccountBalanceLedger."""

import asyncio
from decimal import Decimal

import pytest

from goldledger.engines.balances import AccountBalanceLedger
from goldledger.exceptions import (
    AccountNotFoundError,
    DataIntegrityViolationError,
    InsufficientBalanceError,
    InvalidRequestError,
)


class TestAccountBalanceLedger:
    def test_credit_and_debit(self, account_store, open_account):
        session = open_account(fiat="100")
        ledger = AccountBalanceLedger(account_store)

        async def scenario():
            await ledger.credit(session.account_id, Decimal("50.25"))
            await ledger.debit(session.account_id, Decimal("20"))
            await ledger.credit_tokens(session.account_id, Decimal("2.5"))
            await ledger.debit_tokens(session.account_id, Decimal("1"))
            return await ledger.snapshot(session.account_id)

        snapshot = asyncio.run(scenario())
        assert snapshot.fiat_credit == Decimal("130.25")
        assert snapshot.token_grams == Decimal("1.5")

    def test_debit_below_zero_rejected(self, account_store, open_account):
        session = open_account(fiat="10")
        ledger = AccountBalanceLedger(account_store)
        with pytest.raises(InsufficientBalanceError) as exc_info:
            asyncio.run(ledger.debit(session.account_id, Decimal("10.01")))
        assert exc_info.value.asset == "fiat_credit"
        assert exc_info.value.available == Decimal("10")
        assert asyncio.run(ledger.snapshot(session.account_id)).fiat_credit == Decimal("10")

    def test_debit_tokens_below_zero_rejected(self, account_store, open_account):
        session = open_account(tokens="1")
        ledger = AccountBalanceLedger(account_store)
        with pytest.raises(InsufficientBalanceError):
            asyncio.run(ledger.debit_tokens(session.account_id, Decimal("2")))

    def test_debit_to_exactly_zero(self, account_store, open_account):
        session = open_account(fiat="10")
        ledger = AccountBalanceLedger(account_store)
        snapshot = asyncio.run(ledger.debit(session.account_id, Decimal("10")))
        assert snapshot.fiat_credit == Decimal("0")

    def test_zero_amount_is_a_no_op(self, account_store, open_account):
        session = open_account(fiat="10")
        ledger = AccountBalanceLedger(account_store)
        assert asyncio.run(ledger.credit(session.account_id, Decimal("0"))).fiat_credit == Decimal("10")

    @pytest.mark.parametrize("amount", [Decimal("-1"), Decimal("NaN"), 5])
    def test_invalid_amounts_rejected(self, account_store, open_account, amount):
        session = open_account(fiat="10")
        ledger = AccountBalanceLedger(account_store)
        with pytest.raises(InvalidRequestError):
            asyncio.run(ledger.credit(session.account_id, amount))

    def test_unknown_account(self, account_store):
        ledger = AccountBalanceLedger(account_store)
        with pytest.raises(AccountNotFoundError):
            asyncio.run(ledger.credit("missing", Decimal("1")))

    def test_snapshot_rejects_negative_stored_balance(self, repo, account_store, open_account):
        session = open_account(fiat="10")
        repo.conn.execute("UPDATE accounts SET fiat_credit = '-5' WHERE id = ?", (session.account_id,))
        repo.conn.commit()
        with pytest.raises(DataIntegrityViolationError):
            asyncio.run(AccountBalanceLedger(account_store).snapshot(session.account_id))

    def test_concurrent_debits_never_overdraw(self, account_store, open_account):
        session = open_account(fiat="100")
        ledger = AccountBalanceLedger(account_store)

        async def scenario():
            return await asyncio.gather(
                *(ledger.debit(session.account_id, Decimal("30")) for _ in range(5)),
                return_exceptions=True,
            )

        results = asyncio.run(scenario())
        failures = [r for r in results if isinstance(r, InsufficientBalanceError)]
        assert len(failures) == 2
        assert asyncio.run(ledger.snapshot(session.account_id)).fiat_credit == Decimal("10")

    def test_hold_marks_account_busy(self, account_store, open_account):
        session = open_account(fiat="1")
        ledger = AccountBalanceLedger(account_store)

        async def scenario():
            async with ledger.hold(session.account_id) as handle:
                busy = ledger.is_busy(session.account_id)
                await handle.credit(Decimal("1"))
            return busy, ledger.is_busy(session.account_id)

        assert asyncio.run(scenario()) == (True, False)
