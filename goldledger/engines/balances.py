"""Account balance ledger: the only writer of fiat and token balances.

Mutations of one account are serialized through a per-account asyncio.Lock.
``hold`` exposes the lock to callers that need a read-compute-write sequence
spanning several awaits (the transaction engine holds it from validation to
the terminal state); the public mutators take it for a single step.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from decimal import Decimal

from goldledger.exceptions import (
    DataIntegrityViolationError,
    InsufficientBalanceError,
    InvalidRequestError,
)
from goldledger.models.accounts import Account, BalanceSnapshot
from goldledger.sources.base import AccountStore

logger = logging.getLogger(__name__)

FIAT = "fiat_credit"
TOKENS = "token_grams"


def _snapshot(account: Account) -> BalanceSnapshot:
    return BalanceSnapshot(
        account_id=account.id,
        fiat_credit=account.fiat_credit,
        token_grams=account.token_grams,
        as_of=account.updated_at or account.created_at,
    )


def _check_amount(field: str, amount: Decimal) -> Decimal:
    if not isinstance(amount, Decimal) or not amount.is_finite():
        raise InvalidRequestError(field, f"amount must be a finite Decimal, got {amount!r}")
    if amount < 0:
        raise InvalidRequestError(field, f"amount must not be negative, got {amount}")
    return amount


class BalanceHandle:
    """Balance mutations for one account whose lock is already held."""

    def __init__(self, store: AccountStore, account_id: str):
        self.store = store
        self.account_id = account_id

    async def snapshot(self) -> BalanceSnapshot:
        return _snapshot(await self.store.get(self.account_id))

    async def credit(self, fiat_amount: Decimal) -> BalanceSnapshot:
        return await self._apply(FIAT, _check_amount(FIAT, fiat_amount))

    async def debit(self, fiat_amount: Decimal) -> BalanceSnapshot:
        return await self._apply(FIAT, -_check_amount(FIAT, fiat_amount))

    async def credit_tokens(self, grams: Decimal) -> BalanceSnapshot:
        return await self._apply(TOKENS, _check_amount(TOKENS, grams))

    async def debit_tokens(self, grams: Decimal) -> BalanceSnapshot:
        return await self._apply(TOKENS, -_check_amount(TOKENS, grams))

    async def _apply(self, asset: str, delta: Decimal) -> BalanceSnapshot:
        account = await self.store.get(self.account_id)
        current: Decimal = getattr(account, asset)
        updated = current + delta
        if updated < 0:
            raise InsufficientBalanceError(self.account_id, asset, -delta, current)
        changed = account.model_copy(update={asset: updated, "updated_at": datetime.now(UTC)})
        await self.store.save(changed)
        logger.debug("Account %s %s %s -> %s", self.account_id, asset, current, updated)
        return _snapshot(changed)


class AccountBalanceLedger:
    """Atomic debit/credit of fiat credit and token grams, per account."""

    def __init__(self, store: AccountStore):
        self.store = store
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, account_id: str) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = self._locks[account_id] = asyncio.Lock()
        return lock

    def is_busy(self, account_id: str) -> bool:
        """True while some caller holds this account's lock."""
        return self._lock_for(account_id).locked()

    @asynccontextmanager
    async def hold(self, account_id: str) -> AsyncIterator[BalanceHandle]:
        """Hold the account exclusively for a multi-step sequence."""
        async with self._lock_for(account_id):
            yield BalanceHandle(self.store, account_id)

    async def credit(self, account_id: str, fiat_amount: Decimal) -> BalanceSnapshot:
        async with self.hold(account_id) as handle:
            return await handle.credit(fiat_amount)

    async def debit(self, account_id: str, fiat_amount: Decimal) -> BalanceSnapshot:
        async with self.hold(account_id) as handle:
            return await handle.debit(fiat_amount)

    async def credit_tokens(self, account_id: str, grams: Decimal) -> BalanceSnapshot:
        async with self.hold(account_id) as handle:
            return await handle.credit_tokens(grams)

    async def debit_tokens(self, account_id: str, grams: Decimal) -> BalanceSnapshot:
        async with self.hold(account_id) as handle:
            return await handle.debit_tokens(grams)

    async def snapshot(self, account_id: str) -> BalanceSnapshot:
        """Both balances from a single record read. Doesn't wait for the lock."""
        account = await self.store.get(account_id)
        if account.fiat_credit < 0 or account.token_grams < 0:
            raise DataIntegrityViolationError(
                f"account {account_id} has a negative balance: "
                f"fiat_credit={account.fiat_credit}, token_grams={account.token_grams}"
            )
        return _snapshot(account)
