"""Normalized token-supply operations and reconciliation output."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from goldledger.models.enums import OperationKind


class NormalizedOperation(BaseModel):
    """Canonical form of a mint or burn, whatever shape it arrived in."""

    model_config = ConfigDict(frozen=True)

    kind: OperationKind
    grams: Decimal = Field(ge=0)
    operator: str = ""
    tx_ref: str | None = None
    occurred_at: datetime | None = None


class ReconciliationSnapshot(BaseModel):
    """Derived supply figures. Recomputed on demand, never a source of truth."""

    total_intake_g: Decimal
    total_mint_g: Decimal
    total_burn_g: Decimal
    current_supply_g: Decimal
    average_purity: Decimal
    entry_count: int
    operation_count: int = 0
    ignored_event_count: int = 0
    warnings: list[str] = Field(default_factory=list)
    computed_at: datetime | None = None

    @property
    def is_partial(self) -> bool:
        """True when an upstream source was unavailable for this snapshot."""
        return bool(self.warnings)
