"""Account, pricing, and transaction models."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from goldledger.exceptions import InvalidStateTransitionError
from goldledger.formatting import format_fiat, format_grams
from goldledger.models.enums import ActivityKind, Side, TransactionState

# Legal edges of the transaction state machine. Terminal states have none.
TRANSITIONS: dict[TransactionState, frozenset[TransactionState]] = {
    TransactionState.RESERVING: frozenset({TransactionState.EXECUTING, TransactionState.FAILED}),
    TransactionState.EXECUTING: frozenset({TransactionState.FINALIZING, TransactionState.FAILED}),
    TransactionState.FINALIZING: frozenset({TransactionState.SUCCEEDED, TransactionState.FAILED}),
    TransactionState.SUCCEEDED: frozenset(),
    TransactionState.FAILED: frozenset(),
}


class Account(BaseModel):
    id: str
    wallet_identity: str
    email: str | None = None
    fiat_credit: Decimal = Field(default=Decimal("0"), ge=0)
    token_grams: Decimal = Field(default=Decimal("0"), ge=0)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BalanceSnapshot(BaseModel):
    """Both balances of one account, read together."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    fiat_credit: Decimal
    token_grams: Decimal
    as_of: datetime | None = None


class Quote(BaseModel):
    """Per-gram prices, in the same fiat unit as ``Account.fiat_credit``."""

    model_config = ConfigDict(frozen=True)

    buy_price_per_g: Decimal | None
    sell_price_per_g: Decimal | None
    source: str | None = None
    spread_bps: int | None = None
    effective_date: date | None = None

    def price_for(self, side: Side) -> Decimal | None:
        return self.buy_price_per_g if side is Side.BUY else self.sell_price_per_g


class ExecutionReceipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    tx_ref: str
    confirmed_amount: Decimal | None = None


class Transaction(BaseModel):
    """A single buy or sell attempt. Never resurrected once terminal."""

    id: str
    account_id: str
    side: Side
    requested_grams: Decimal = Field(gt=0)
    quoted_price_per_g: Decimal = Field(gt=0)
    fiat_amount: Decimal = Field(ge=0)
    state: TransactionState = TransactionState.RESERVING
    tx_ref: str | None = None
    failure_reason: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    def transition(self, target: TransactionState, at: datetime) -> None:
        """Move to ``target``, rejecting edges the state machine doesn't have."""
        if target not in TRANSITIONS[self.state]:
            raise InvalidStateTransitionError(self.id, self.state.value, target.value)
        self.state = target
        self.updated_at = at


class ActivityRecord(BaseModel):
    """A user-visible record of a completed purchase, burn, or credit."""

    model_config = ConfigDict(frozen=True)

    id: str
    account_id: str
    wallet_identity: str
    kind: ActivityKind
    grams: Decimal = Decimal("0")
    fiat_amount: Decimal
    price_per_g: Decimal | None = None
    tx_ref: str | None = None
    occurred_at: datetime
    note: str | None = None

    def summary(self, currency_symbol: str = "RM") -> str:
        amount = format_fiat(self.fiat_amount, currency_symbol)
        if self.kind is ActivityKind.CREDIT:
            return f"Credited {amount}"
        price = format_fiat(self.price_per_g or Decimal("0"), currency_symbol)
        verb = "Bought" if self.kind is ActivityKind.PURCHASE else "Burned"
        return f"{verb} {format_grams(self.grams)} ({amount} @ {price}/g)"

    def to_raw_event(self) -> dict:
        """Render as an operation-table row, the shape the token_ops log uses."""
        action = self.kind.action
        return {
            "id": self.id,
            "op_type": action.value if action else self.kind.value.upper(),
            "grams": str(self.grams),
            "amount_myr": str(self.fiat_amount),
            "price_myr_per_g": str(self.price_per_g) if self.price_per_g is not None else None,
            "wallet_address": self.wallet_identity,
            "tx_hash": self.tx_ref,
            "created_at": self.occurred_at.isoformat(),
            "note": self.note,
        }


class TradePreview(BaseModel):
    """What a buy or sell would do at the current quote, without doing it."""

    side: Side
    grams: Decimal
    price_per_g: Decimal
    fiat_amount: Decimal
    fiat_credit_after: Decimal
    token_grams_after: Decimal
    affordable: bool
