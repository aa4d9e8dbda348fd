"""Custom exceptions for goldledger."""

from decimal import Decimal


class GoldLedgerError(Exception):
    """Base exception for reconciliation and transaction errors."""


class InvalidRequestError(GoldLedgerError):
    """Raised when a request is rejected before any state change."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Invalid request on '{field}': {message}")


class AccountNotFoundError(InvalidRequestError):
    """Raised when an operation references an account that doesn't exist."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__("account_id", f"account not found: {account_id}")


class InsufficientBalanceError(GoldLedgerError):
    """Raised when a debit would take a balance below zero."""

    def __init__(self, account_id: str, asset: str, requested: Decimal, available: Decimal):
        self.account_id = account_id
        self.asset = asset
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient {asset} balance for account {account_id}: "
            f"requested={requested}, available={available}"
        )


class ExecutorFailureError(GoldLedgerError):
    """Raised when the mint/burn executor fails or times out.

    The reservation has already been rolled back when this is raised.
    """

    def __init__(self, reason: str, transaction=None):
        self.reason = reason
        self.transaction = transaction
        super().__init__(f"Mint/burn execution failed: {reason}")


class UpstreamUnavailableError(GoldLedgerError):
    """Raised when a read-only data source cannot be reached."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"Upstream {source} unavailable: {message}")


class DataIntegrityViolationError(GoldLedgerError):
    """Raised when a computed or stored value breaks a ledger invariant."""

    def __init__(self, message: str):
        super().__init__(f"Data integrity violation: {message}")


class InvalidStateTransitionError(DataIntegrityViolationError):
    """Raised when a transaction is moved along an edge the state machine lacks."""

    def __init__(self, transaction_id: str, current: str, target: str):
        self.transaction_id = transaction_id
        self.current = current
        self.target = target
        super().__init__(
            f"transaction {transaction_id} cannot move from {current} to {target}"
        )


class ConfigurationError(GoldLedgerError):
    """Raised when configuration values are invalid."""

    def __init__(self, name: str, message: str):
        self.name = name
        super().__init__(f"Configuration error for {name}: {message}")
