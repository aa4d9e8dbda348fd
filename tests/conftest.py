"""Shared test fixtures for goldledger."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from goldledger.db.repository import GoldRepository
from goldledger.db.schema import create_schema
from goldledger.exceptions import UpstreamUnavailableError
from goldledger.models.accounts import ExecutionReceipt, Quote
from goldledger.models.enums import OperationKind
from goldledger.models.ledger import LedgerEntry
from goldledger.session import Session
from goldledger.sources.base import MintBurnExecutor, PricingSupplier
from goldledger.sources.sqlite import SqliteAccountStore, SqliteTransactionJournal

WALLET = "0x" + "ab" * 20
OTHER_WALLET = "0x" + "cd" * 20


class FakeExecutor(MintBurnExecutor):
    """Records calls; can fail, stall, or wait on a gate before confirming."""

    def __init__(self):
        self.calls: list[tuple[OperationKind, str, Decimal]] = []
        self.fail_with: Exception | None = None
        self.delay = 0.0
        self.gate: asyncio.Event | None = None
        self.started: asyncio.Event | None = None

    async def execute(self, kind: OperationKind, account_identity: str, grams: Decimal) -> ExecutionReceipt:
        self.calls.append((kind, account_identity, grams))
        if self.started is not None:
            self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        return ExecutionReceipt(tx_ref=f"0x{len(self.calls):064x}", confirmed_amount=grams)


class FakePricing(PricingSupplier):
    def __init__(self, buy: Decimal | None = Decimal("500"), sell: Decimal | None = Decimal("400")):
        self.buy = buy
        self.sell = sell
        self.unavailable = False
        self.calls = 0

    async def current_price(self) -> Quote:
        self.calls += 1
        if self.unavailable:
            raise UpstreamUnavailableError("pricing", "connection refused")
        return Quote(buy_price_per_g=self.buy, sell_price_per_g=self.sell, source="test")


@pytest.fixture
def db_conn(tmp_path):
    """Create a database with full schema."""
    db_path = tmp_path / "test.db"
    conn = create_schema(db_path)
    yield conn
    conn.close()


@pytest.fixture
def repo(db_conn):
    return GoldRepository(db_conn)


@pytest.fixture
def account_store(repo):
    return SqliteAccountStore(repo)


@pytest.fixture
def journal(repo):
    return SqliteTransactionJournal(repo)


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def pricing():
    return FakePricing()


@pytest.fixture
def open_account(account_store):
    """Factory: register a wallet with starting balances and return its Session."""

    def _open(fiat: str = "0", tokens: str = "0", wallet: str = WALLET) -> Session:
        async def setup():
            account = await account_store.create(wallet)
            await account_store.save(
                account.model_copy(update={"fiat_credit": Decimal(fiat), "token_grams": Decimal(tokens)})
            )
            return account

        account = asyncio.run(setup())
        return Session(account_id=account.id, wallet_identity=wallet)

    return _open


@pytest.fixture
def sample_entry() -> LedgerEntry:
    return LedgerEntry(
        id="entry-001",
        entry_date=date(2025, 3, 1),
        intake_g=Decimal("100"),
        purity_bp=9999,
        source="Refinery A",
        serial="SN-0001",
        batch="B-01",
    )
