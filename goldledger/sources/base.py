"""Ports for the collaborators the engines depend on.

Every port is async: ledger and event reads are joined concurrently during
reconciliation, and pricing, execution and balance persistence are the
awaited steps of a transaction.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from goldledger.models.accounts import (
    Account,
    ActivityRecord,
    ExecutionReceipt,
    Quote,
    Transaction,
)
from goldledger.models.enums import OperationKind
from goldledger.models.ledger import LedgerEntry

RawOperationEvent = Mapping[str, Any]


class LedgerSource(ABC):
    """Read access to registered intake entries."""

    @abstractmethod
    async def list_entries(self, limit: int) -> list[LedgerEntry]:
        ...


class EventSource(ABC):
    """Best-effort read access to the raw mint/burn event log."""

    @abstractmethod
    async def list_events(self, limit: int, offset: int = 0) -> list[RawOperationEvent]:
        """Return raw records; raise UpstreamUnavailableError when unreachable."""
        ...


class PricingSupplier(ABC):
    @abstractmethod
    async def current_price(self) -> Quote:
        ...


class MintBurnExecutor(ABC):
    """Performs the actual token mint or burn. Opaque beyond success/failure."""

    @abstractmethod
    async def execute(
        self, kind: OperationKind, account_identity: str, grams: Decimal
    ) -> ExecutionReceipt:
        ...


class AccountStore(ABC):
    """Durable account records. Only the balance ledger writes balances."""

    @abstractmethod
    async def get(self, account_id: str) -> Account:
        """Return the account or raise AccountNotFoundError."""
        ...

    @abstractmethod
    async def find_by_wallet(self, wallet_identity: str) -> Account | None:
        ...

    @abstractmethod
    async def create(self, wallet_identity: str, email: str | None = None) -> Account:
        ...

    @abstractmethod
    async def save(self, account: Account) -> None:
        """Persist both balances of ``account`` atomically."""
        ...


class TransactionJournal(ABC):
    """Where transaction states and activity records are kept."""

    @abstractmethod
    async def record_transaction(self, txn: Transaction) -> None:
        ...

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Transaction | None:
        ...

    @abstractmethod
    async def append_activity(self, record: ActivityRecord) -> None:
        ...

    @abstractmethod
    async def list_activity(
        self, account_id: str, limit: int = 20, offset: int = 0
    ) -> list[ActivityRecord]:
        ...
