"""Collaborator ports and their local implementations."""

from goldledger.sources.base import (
    AccountStore,
    EventSource,
    LedgerSource,
    MintBurnExecutor,
    PricingSupplier,
    RawOperationEvent,
    TransactionJournal,
)
from goldledger.sources.sqlite import (
    SqliteAccountStore,
    SqliteEventSource,
    SqliteLedgerSource,
    SqliteTransactionJournal,
)
from goldledger.sources.static import StaticPricingSupplier

__all__ = [
    "AccountStore",
    "EventSource",
    "LedgerSource",
    "MintBurnExecutor",
    "PricingSupplier",
    "RawOperationEvent",
    "SqliteAccountStore",
    "SqliteEventSource",
    "SqliteLedgerSource",
    "SqliteTransactionJournal",
    "StaticPricingSupplier",
    "TransactionJournal",
]
