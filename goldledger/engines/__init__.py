"""Reconciliation, balance, and transaction engines."""

from goldledger.engines.balances import AccountBalanceLedger, BalanceHandle
from goldledger.engines.reconciliation import ReconciliationEngine, average_purity, reconcile
from goldledger.engines.transactions import TransactionEngine

__all__ = [
    "AccountBalanceLedger",
    "BalanceHandle",
    "ReconciliationEngine",
    "TransactionEngine",
    "average_purity",
    "reconcile",
]
