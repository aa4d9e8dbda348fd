"""Transaction engine: buy (mint) and sell (burn) for one account.

Each attempt is a Transaction driven through

    RESERVING -> EXECUTING -> FINALIZING -> SUCCEEDED
         \\            \\             \\-> FAILED

while the account's balance lock is held, so at most one transaction per
account is in flight. Buy reserves the fiat cost, sell reserves the token
grams; any failure after the reservation reverses it in full before the
error surfaces. The quote is read once and fixed for the whole attempt.

A caller may abandon an attempt until it enters EXECUTING. After that the
mint/burn call may still land on chain, so the attempt runs in a shielded
task to a terminal state whether or not anyone is still waiting for it.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

from goldledger.engines.balances import AccountBalanceLedger, BalanceHandle
from goldledger.exceptions import (
    DataIntegrityViolationError,
    ExecutorFailureError,
    InsufficientBalanceError,
    InvalidRequestError,
    UpstreamUnavailableError,
)
from goldledger.models.accounts import (
    ActivityRecord,
    BalanceSnapshot,
    ExecutionReceipt,
    Quote,
    TradePreview,
    Transaction,
)
from goldledger.models.enums import ActivityKind, Side, TransactionState
from goldledger.normalization.numeric import coerce_grams, grams_for_fiat, quantize_fiat
from goldledger.session import Session
from goldledger.sources.base import MintBurnExecutor, PricingSupplier, TransactionJournal

logger = logging.getLogger(__name__)

DEFAULT_EXECUTE_TIMEOUT = 30.0


def _now() -> datetime:
    return datetime.now(UTC)


def _validate_grams(grams: object) -> Decimal:
    amount = coerce_grams(grams)
    if amount is None:
        raise InvalidRequestError("grams", f"not a number: {grams!r}")
    if amount <= 0:
        raise InvalidRequestError("grams", f"must be greater than 0, got {amount}")
    return amount


def _validate_price(quote: Quote, side: Side) -> Decimal:
    price = quote.price_for(side)
    if price is None:
        raise InvalidRequestError("price", f"no {side.value.lower()} price quoted")
    if price <= 0:
        raise InvalidRequestError("price", f"{side.value.lower()} price must be greater than 0, got {price}")
    return price


@dataclass
class _Attempt:
    """Progress shared between a submit() call and the task doing the work."""

    transaction: Transaction | None = None
    committed: bool = False
    cancel_requested: bool = False


class TransactionEngine:
    """Runs the reserve/execute/finalize protocol for buys and sells."""

    def __init__(
        self,
        ledger: AccountBalanceLedger,
        pricing: PricingSupplier,
        executor: MintBurnExecutor,
        journal: TransactionJournal,
        execute_timeout: float = DEFAULT_EXECUTE_TIMEOUT,
    ):
        self.ledger = ledger
        self.pricing = pricing
        self.executor = executor
        self.journal = journal
        self.execute_timeout = execute_timeout
        self.transactions: dict[str, Transaction] = {}

    # --- Public operations ---

    async def buy(self, session: Session, grams: Decimal) -> Transaction:
        """Exchange fiat credit for minted token grams."""
        return await self.submit(session, Side.BUY, grams)

    async def sell(self, session: Session, grams: Decimal) -> Transaction:
        """Burn token grams in exchange for fiat credit."""
        return await self.submit(session, Side.SELL, grams)

    async def submit(self, session: Session, side: Side, grams: Decimal) -> Transaction:
        """Run one transaction to a terminal state and return it.

        Raises:
            InvalidRequestError: bad grams, price, or session; nothing changed.
            InsufficientBalanceError: balance too low; nothing changed.
            UpstreamUnavailableError: the price couldn't be read; nothing changed.
            ExecutorFailureError: mint/burn failed; the reservation was reversed.
            DataIntegrityViolationError: executed but couldn't be finalized.
        """
        session.ensure_active()
        amount = _validate_grams(grams)
        attempt = _Attempt()
        task = asyncio.ensure_future(self._run(session, side, amount, attempt))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.done():
                self._abandon(task, attempt)
            raise

    async def preview(self, session: Session, side: Side, grams: Decimal) -> TradePreview:
        """Price a buy or sell against current balances without changing anything."""
        session.ensure_active()
        amount = _validate_grams(grams)
        price = _validate_price(await self._quote(), side)
        fiat_amount = quantize_fiat(amount * price)
        balances = await self.ledger.snapshot(session.account_id)
        if side is Side.BUY:
            affordable = balances.fiat_credit >= fiat_amount
            fiat_after = balances.fiat_credit - fiat_amount
            tokens_after = balances.token_grams + amount
        else:
            affordable = balances.token_grams >= amount
            fiat_after = balances.fiat_credit + fiat_amount
            tokens_after = balances.token_grams - amount
        if not affordable:
            fiat_after, tokens_after = balances.fiat_credit, balances.token_grams
        return TradePreview(
            side=side,
            grams=amount,
            price_per_g=price,
            fiat_amount=fiat_amount,
            fiat_credit_after=fiat_after,
            token_grams_after=tokens_after,
            affordable=affordable,
        )

    async def grams_for_amount(self, side: Side, fiat_amount: Decimal) -> Decimal:
        """How many grams ``fiat_amount`` buys (or a sale must raise) at the current quote."""
        price = _validate_price(await self._quote(), side)
        grams = grams_for_fiat(fiat_amount, price)
        if grams <= 0:
            raise InvalidRequestError("fiat_amount", f"{fiat_amount} is less than 0.0001 g at {price}/g")
        return grams

    async def deposit(self, session: Session, fiat_amount: Decimal, note: str | None = None) -> BalanceSnapshot:
        """Top up an account's fiat credit and record a Credit activity."""
        session.ensure_active()
        amount = coerce_grams(fiat_amount)
        if amount is None or amount <= 0:
            raise InvalidRequestError("fiat_amount", f"must be greater than 0, got {fiat_amount!r}")
        async with self.ledger.hold(session.account_id) as handle:
            balances = await handle.credit(amount)
            await self.journal.append_activity(ActivityRecord(
                id=str(uuid4()),
                account_id=session.account_id,
                wallet_identity=session.wallet_identity,
                kind=ActivityKind.CREDIT,
                fiat_amount=amount,
                occurred_at=_now(),
                note=note,
            ))
        logger.info("Credited %s to account %s", amount, session.account_id)
        return balances

    async def get(self, transaction_id: str) -> Transaction | None:
        txn = self.transactions.get(transaction_id)
        if txn is not None:
            return txn
        return await self.journal.get_transaction(transaction_id)

    async def activity(self, session: Session, limit: int = 20, offset: int = 0) -> list[ActivityRecord]:
        session.ensure_active()
        return await self.journal.list_activity(session.account_id, limit, offset)

    # --- Protocol ---

    async def _run(self, session: Session, side: Side, grams: Decimal, attempt: _Attempt) -> Transaction:
        async with self.ledger.hold(session.account_id) as handle:
            # Validate: fail fast before any Transaction exists
            price = _validate_price(await self._quote(), side)
            fiat_amount = quantize_fiat(grams * price)
            balances = await handle.snapshot()
            self._check_funds(session.account_id, side, grams, fiat_amount, balances)

            # RESERVING
            now = _now()
            txn = Transaction(
                id=str(uuid4()),
                account_id=session.account_id,
                side=side,
                requested_grams=grams,
                quoted_price_per_g=price,
                fiat_amount=fiat_amount,
                created_at=now,
                updated_at=now,
            )
            attempt.transaction = txn
            # only in-flight attempts stay here; get() reads finished ones from the journal
            self.transactions[txn.id] = txn
            try:
                return await self._drive(handle, session, txn, attempt)
            finally:
                del self.transactions[txn.id]

    async def _drive(
        self, handle: BalanceHandle, session: Session, txn: Transaction, attempt: _Attempt
    ) -> Transaction:
        await self._record(txn)
        try:
            await self._reserve(handle, txn)
        except Exception as exc:
            await self._fail(txn, f"reservation failed: {exc}")
            raise
        if attempt.cancel_requested:
            await self._rollback(handle, txn)
            await self._fail(txn, "cancelled by caller")
            raise asyncio.CancelledError()

        # EXECUTING: from here on the attempt always reaches a terminal state
        attempt.committed = True
        try:
            await self._advance(txn, TransactionState.EXECUTING)
        except Exception as exc:
            await self._rollback(handle, txn)
            await self._fail(txn, f"could not record execution start: {exc}")
            raise
        try:
            receipt = await asyncio.wait_for(
                self.executor.execute(txn.side.operation, session.wallet_identity, txn.requested_grams),
                timeout=self.execute_timeout,
            )
        except Exception as exc:
            if isinstance(exc, TimeoutError):
                reason = f"timed out after {self.execute_timeout}s"
            else:
                reason = str(exc) or type(exc).__name__
            await self._rollback(handle, txn)
            await self._fail(txn, reason)
            raise ExecutorFailureError(reason, txn) from exc

        # FINALIZING
        operation = txn.side.operation.value.lower()
        try:
            await self._advance(txn, TransactionState.FINALIZING)
            await self._finalize(handle, session, txn, receipt)
        except Exception as exc:
            logger.error(
                "Transaction %s executed as %s but could not be finalized: %s",
                txn.id, receipt.tx_ref, exc,
            )
            await self._rollback(handle, txn)
            await self._fail(txn, f"finalization failed after {receipt.tx_ref}: {exc}")
            raise DataIntegrityViolationError(
                f"{operation} {receipt.tx_ref} executed for transaction "
                f"{txn.id} but its balance update was lost: {exc}"
            ) from exc

        # balances and activity are already applied; only the journal row is missing
        try:
            await self._advance(txn, TransactionState.SUCCEEDED)
        except Exception as exc:
            logger.error("Transaction %s succeeded as %s but was not journaled: %s", txn.id, receipt.tx_ref, exc)
            raise DataIntegrityViolationError(
                f"{operation} {receipt.tx_ref} for transaction {txn.id} was applied "
                f"but its SUCCEEDED state could not be recorded: {exc}"
            ) from exc
        return txn

    def _check_funds(
        self,
        account_id: str,
        side: Side,
        grams: Decimal,
        fiat_amount: Decimal,
        balances: BalanceSnapshot,
    ) -> None:
        if side is Side.BUY and balances.fiat_credit < fiat_amount:
            raise InsufficientBalanceError(account_id, "fiat_credit", fiat_amount, balances.fiat_credit)
        if side is Side.SELL and balances.token_grams < grams:
            raise InsufficientBalanceError(account_id, "token_grams", grams, balances.token_grams)

    async def _reserve(self, handle: BalanceHandle, txn: Transaction) -> None:
        if txn.side is Side.BUY:
            await handle.debit(txn.fiat_amount)
        else:
            await handle.debit_tokens(txn.requested_grams)
        logger.info(
            "Transaction %s reserved %s",
            txn.id,
            txn.fiat_amount if txn.side is Side.BUY else f"{txn.requested_grams} g",
        )

    async def _rollback(self, handle: BalanceHandle, txn: Transaction) -> None:
        """Reverse the reservation in full."""
        try:
            if txn.side is Side.BUY:
                await handle.credit(txn.fiat_amount)
            else:
                await handle.credit_tokens(txn.requested_grams)
        except Exception as exc:
            logger.error("Rollback of transaction %s failed: %s", txn.id, exc)
            raise DataIntegrityViolationError(
                f"could not reverse the reservation of transaction {txn.id}: {exc}"
            ) from exc
        logger.warning("Transaction %s reservation reversed", txn.id)

    async def _finalize(
        self, handle: BalanceHandle, session: Session, txn: Transaction, receipt: ExecutionReceipt
    ) -> None:
        if txn.side is Side.BUY:
            await handle.credit_tokens(txn.requested_grams)
            kind = ActivityKind.PURCHASE
        else:
            await handle.credit(txn.fiat_amount)
            kind = ActivityKind.BURN
        txn.tx_ref = receipt.tx_ref
        try:
            await self.journal.append_activity(ActivityRecord(
                id=str(uuid4()),
                account_id=txn.account_id,
                wallet_identity=session.wallet_identity,
                kind=kind,
                grams=txn.requested_grams,
                fiat_amount=txn.fiat_amount,
                price_per_g=txn.quoted_price_per_g,
                tx_ref=receipt.tx_ref,
                occurred_at=_now(),
            ))
        except Exception:
            # undo the finalize credit so only the reservation remains to reverse
            if txn.side is Side.BUY:
                await handle.debit_tokens(txn.requested_grams)
            else:
                await handle.debit(txn.fiat_amount)
            raise

    async def _quote(self) -> Quote:
        try:
            return await self.pricing.current_price()
        except (InvalidRequestError, UpstreamUnavailableError):
            raise
        except Exception as exc:
            raise UpstreamUnavailableError("pricing", str(exc) or type(exc).__name__) from exc

    async def _advance(self, txn: Transaction, target: TransactionState) -> None:
        previous = txn.state
        txn.transition(target, _now())
        logger.info("Transaction %s %s -> %s", txn.id, previous.value, target.value)
        await self._record(txn)

    async def _fail(self, txn: Transaction, reason: str) -> None:
        txn.failure_reason = reason
        previous = txn.state
        txn.transition(TransactionState.FAILED, _now())
        logger.warning("Transaction %s %s -> FAILED: %s", txn.id, previous.value, reason)
        await self._record(txn)

    async def _record(self, txn: Transaction) -> None:
        await self.journal.record_transaction(txn)

    def _abandon(self, task: asyncio.Future, attempt: _Attempt) -> None:
        """Handle a caller cancelling submit() while the work is still running."""
        task.add_done_callback(_log_detached_outcome)
        if attempt.transaction is None:
            task.cancel()
        elif not attempt.committed:
            attempt.cancel_requested = True
        else:
            logger.warning(
                "Caller abandoned transaction %s while %s; it will run to completion",
                attempt.transaction.id,
                attempt.transaction.state.value,
            )


def _log_detached_outcome(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Abandoned transaction ended with %s: %s", type(exc).__name__, exc)
    else:
        txn = task.result()
        logger.info("Abandoned transaction %s ended %s", txn.id, txn.state.value)
