"""Enumerations for goldledger."""

from enum import StrEnum


class OperationKind(StrEnum):
    MINT = "MINT"
    BURN = "BURN"


class RawShape(StrEnum):
    """Known upstream shapes of a raw operation event."""

    AUDIT_UNION = "AUDIT_UNION"
    OPERATION_TABLE = "OPERATION_TABLE"
    CANONICAL = "CANONICAL"


class OperationAction(StrEnum):
    """Upstream action codes, upper-cased with '-' mapped to '_'."""

    BUY_MINT = "BUY_MINT"
    SELL_BURN = "SELL_BURN"

    @property
    def kind(self) -> OperationKind:
        return OperationKind.MINT if self is OperationAction.BUY_MINT else OperationKind.BURN


class Side(StrEnum):
    BUY = "BUY"
    SELL = "SELL"

    @property
    def operation(self) -> OperationKind:
        return OperationKind.MINT if self is Side.BUY else OperationKind.BURN


class TransactionState(StrEnum):
    RESERVING = "RESERVING"
    EXECUTING = "EXECUTING"
    FINALIZING = "FINALIZING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (TransactionState.SUCCEEDED, TransactionState.FAILED)


class ActivityKind(StrEnum):
    PURCHASE = "Purchase"
    BURN = "Burn"
    CREDIT = "Credit"

    @property
    def action(self) -> OperationAction | None:
        """Upstream action code for activity that moves token supply."""
        if self is ActivityKind.PURCHASE:
            return OperationAction.BUY_MINT
        if self is ActivityKind.BURN:
            return OperationAction.SELL_BURN
        return None
