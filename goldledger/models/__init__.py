"""Data models for goldledger."""

from goldledger.models.accounts import (
    Account,
    ActivityRecord,
    BalanceSnapshot,
    ExecutionReceipt,
    Quote,
    TradePreview,
    Transaction,
)
from goldledger.models.enums import (
    ActivityKind,
    OperationAction,
    OperationKind,
    RawShape,
    Side,
    TransactionState,
)
from goldledger.models.ledger import IntakeRequest, LedgerEntry
from goldledger.models.operations import NormalizedOperation, ReconciliationSnapshot
from goldledger.models.reports import AuditEntry

__all__ = [
    "Account",
    "ActivityKind",
    "ActivityRecord",
    "AuditEntry",
    "BalanceSnapshot",
    "ExecutionReceipt",
    "IntakeRequest",
    "LedgerEntry",
    "NormalizedOperation",
    "OperationAction",
    "OperationKind",
    "Quote",
    "RawShape",
    "ReconciliationSnapshot",
    "Side",
    "TradePreview",
    "Transaction",
    "TransactionState",
]
