"""Physical gold intake records."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

MAX_PURITY_BP = 10000


class IntakeRequest(BaseModel):
    """Input for registering a new intake of physical gold."""

    entry_date: date
    intake_g: Decimal = Field(gt=0)
    purity_bp: int = Field(ge=0, le=MAX_PURITY_BP)
    source: str | None = None
    serial: str | None = None
    batch: str | None = None
    storage: str | None = None
    custody: str | None = None
    insurance: str | None = None
    audit_ref: str | None = None
    note: str | None = None


class LedgerEntry(BaseModel):
    """One registered intake. Immutable; superseded only by new entries."""

    model_config = ConfigDict(frozen=True)

    id: str
    entry_date: date
    intake_g: Decimal = Field(ge=0)
    purity_bp: int = Field(ge=0, le=MAX_PURITY_BP)
    source: str | None = None
    serial: str | None = None
    batch: str | None = None
    storage: str | None = None
    custody: str | None = None
    insurance: str | None = None
    audit_ref: str | None = None
    note: str | None = None
    created_at: datetime | None = None

    @property
    def purity_percent(self) -> Decimal:
        """Purity as a percentage: 9999 bp is 99.99."""
        return Decimal(self.purity_bp) / 100
