"""Reconciliation engine: intake versus circulating token supply.

Folds the intake ledger and the mint/burn event log into a
ReconciliationSnapshot where

    current_supply_g = total_intake_g - total_mint_g + total_burn_g

Intake and events come from independent sources that can fail separately.
A failed fetch degrades to an empty list plus a warning on the snapshot; a
negative supply means some upstream invariant was skipped and is raised.
"""

import asyncio
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from decimal import Decimal

from goldledger.db.repository import GoldRepository
from goldledger.exceptions import DataIntegrityViolationError
from goldledger.models.enums import OperationKind
from goldledger.models.ledger import LedgerEntry
from goldledger.models.operations import ReconciliationSnapshot
from goldledger.models.reports import AuditEntry
from goldledger.normalization.events import EventNormalizer
from goldledger.sources.base import EventSource, LedgerSource, RawOperationEvent

logger = logging.getLogger(__name__)

DEFAULT_FETCH_LIMIT = 200
ZERO = Decimal("0")


def average_purity(entries: list[LedgerEntry]) -> Decimal:
    """Unweighted mean of purity_bp, as a percentage.

    Not weighted by intake grams: a 1 g sample counts as much as a 1 kg bar.
    """
    if not entries:
        return ZERO
    return sum((entry.purity_percent for entry in entries), ZERO) / len(entries)


def reconcile(
    entries: Iterable[LedgerEntry],
    events: Iterable[RawOperationEvent],
    normalizer: EventNormalizer | None = None,
    warnings: list[str] | None = None,
    check_integrity: bool = True,
) -> ReconciliationSnapshot:
    """Compute a snapshot from intake entries and raw events. Pure.

    Raises DataIntegrityViolationError on a negative current supply unless
    ``check_integrity`` is off, which callers do only when the intake list is
    known to be missing.
    """
    entries = list(entries)
    result = (normalizer or EventNormalizer()).normalize_many(events)

    total_intake = sum((entry.intake_g for entry in entries), ZERO)
    total_mint = sum(
        (op.grams for op in result.operations if op.kind is OperationKind.MINT), ZERO
    )
    total_burn = sum(
        (op.grams for op in result.operations if op.kind is OperationKind.BURN), ZERO
    )
    current = total_intake - total_mint + total_burn

    if current < 0 and check_integrity:
        raise DataIntegrityViolationError(
            f"current supply is negative ({current} g): intake={total_intake}, "
            f"mint={total_mint}, burn={total_burn}"
        )

    return ReconciliationSnapshot(
        total_intake_g=total_intake,
        total_mint_g=total_mint,
        total_burn_g=total_burn,
        current_supply_g=current,
        average_purity=average_purity(entries),
        entry_count=len(entries),
        operation_count=len(result.operations),
        ignored_event_count=result.ignored,
        warnings=list(warnings or []),
        computed_at=datetime.now(UTC),
    )


class ReconciliationEngine:
    """Loads intake and events concurrently and reconciles them on demand.

    The loaded lists are process-scoped caches: each refresh replaces them
    wholesale, never patching them from a partial response.
    """

    def __init__(
        self,
        ledger_source: LedgerSource,
        event_source: EventSource,
        fetch_limit: int = DEFAULT_FETCH_LIMIT,
        repo: GoldRepository | None = None,
    ):
        self.ledger_source = ledger_source
        self.event_source = event_source
        self.fetch_limit = fetch_limit
        self.repo = repo
        self.normalizer = EventNormalizer()
        self.entries: list[LedgerEntry] = []
        self.events: list[RawOperationEvent] = []
        self.snapshot: ReconciliationSnapshot | None = None

    async def refresh(self) -> ReconciliationSnapshot:
        """Reload both sources and recompute the snapshot.

        Steps:
        1. Fetch entries and events concurrently
        2. Replace the caches with whatever each fetch returned
        3. Reconcile, carrying a warning for every degraded source
        4. Record an audit entry when a repository is attached
        """
        warnings: list[str] = []
        intake_missing = False
        entries_result, events_result = await asyncio.gather(
            self.ledger_source.list_entries(self.fetch_limit),
            self.event_source.list_events(self.fetch_limit, 0),
            return_exceptions=True,
        )

        if isinstance(entries_result, BaseException):
            self._reraise_cancellation(entries_result)
            logger.warning("Ledger source unavailable, reconciling without intake: %s", entries_result)
            warnings.append(f"Ledger entries unavailable: {entries_result}")
            intake_missing = True
            entries_result = []
        if isinstance(events_result, BaseException):
            self._reraise_cancellation(events_result)
            logger.warning("Event source unavailable, mint/burn totals fall back to 0: %s", events_result)
            warnings.append(f"Mint/burn events unavailable: {events_result}")
            events_result = []

        self.entries = list(entries_result)
        self.events = list(events_result)

        snapshot = reconcile(
            self.entries,
            self.events,
            self.normalizer,
            warnings,
            check_integrity=not intake_missing,
        )
        self.snapshot = snapshot
        logger.info(
            "Reconciled %d entries and %d operations (%d ignored): current supply %s g",
            snapshot.entry_count,
            snapshot.operation_count,
            snapshot.ignored_event_count,
            snapshot.current_supply_g,
        )

        if self.repo is not None:
            self.repo.save_audit_entry(AuditEntry(
                timestamp=datetime.now(UTC),
                engine="ReconciliationEngine",
                operation="refresh",
                inputs={"fetch_limit": self.fetch_limit},
                output={
                    "total_intake_g": snapshot.total_intake_g,
                    "total_mint_g": snapshot.total_mint_g,
                    "total_burn_g": snapshot.total_burn_g,
                    "current_supply_g": snapshot.current_supply_g,
                    "entry_count": snapshot.entry_count,
                },
                notes="; ".join(warnings) or None,
            ))

        return snapshot

    @staticmethod
    def _reraise_cancellation(error: BaseException) -> None:
        # gather(return_exceptions=True) hands back cancellations and exits too
        if not isinstance(error, Exception):
            raise error
