"""SQLite-backed implementations of the collaborator ports."""

import logging
import sqlite3
from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import uuid4

from goldledger.db.repository import GoldRepository
from goldledger.exceptions import (
    AccountNotFoundError,
    DataIntegrityViolationError,
    UpstreamUnavailableError,
)
from goldledger.models.accounts import Account, ActivityRecord, Transaction
from goldledger.models.enums import ActivityKind, OperationAction, Side, TransactionState
from goldledger.models.ledger import IntakeRequest, LedgerEntry
from goldledger.models.reports import AuditEntry
from goldledger.sources.base import (
    AccountStore,
    EventSource,
    LedgerSource,
    RawOperationEvent,
    TransactionJournal,
)

logger = logging.getLogger(__name__)


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _dec(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


def ledger_entry_from_row(row: dict) -> LedgerEntry:
    return LedgerEntry(
        id=row["id"],
        entry_date=date.fromisoformat(row["entry_date"]),
        intake_g=Decimal(row["intake_g"]),
        purity_bp=int(row["purity_bp"]),
        source=row.get("source"),
        serial=row.get("serial"),
        batch=row.get("batch"),
        storage=row.get("storage"),
        custody=row.get("custody"),
        insurance=row.get("insurance"),
        audit_ref=row.get("audit_ref"),
        note=row.get("note"),
        created_at=_dt(row.get("created_at")),
    )


def account_from_row(row: dict) -> Account:
    fiat_credit = Decimal(row["fiat_credit"])
    token_grams = Decimal(row["token_grams"])
    if fiat_credit < 0 or token_grams < 0:
        raise DataIntegrityViolationError(
            f"stored account {row['id']} has a negative balance: "
            f"fiat_credit={fiat_credit}, token_grams={token_grams}"
        )
    return Account(
        id=row["id"],
        wallet_identity=row["wallet_identity"],
        email=row.get("email"),
        fiat_credit=fiat_credit,
        token_grams=token_grams,
        created_at=_dt(row.get("created_at")),
        updated_at=_dt(row.get("updated_at")),
    )


def transaction_from_row(row: dict) -> Transaction:
    return Transaction(
        id=row["id"],
        account_id=row["account_id"],
        side=Side(row["side"]),
        requested_grams=Decimal(row["requested_grams"]),
        quoted_price_per_g=Decimal(row["quoted_price_per_g"]),
        fiat_amount=Decimal(row["fiat_amount"]),
        state=TransactionState(row["state"]),
        tx_ref=row.get("tx_ref"),
        failure_reason=row.get("failure_reason"),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=_dt(row.get("updated_at")),
    )


def activity_from_row(row: dict) -> ActivityRecord:
    op_type = row["op_type"]
    if op_type == OperationAction.BUY_MINT.value:
        kind = ActivityKind.PURCHASE
    elif op_type == OperationAction.SELL_BURN.value:
        kind = ActivityKind.BURN
    else:
        kind = ActivityKind.CREDIT
    return ActivityRecord(
        id=row["id"],
        account_id=row["account_id"],
        wallet_identity=row["wallet_address"],
        kind=kind,
        grams=Decimal(row["grams"]),
        fiat_amount=Decimal(row["amount_myr"]),
        price_per_g=_dec(row.get("price_myr_per_g")),
        tx_ref=row.get("tx_hash"),
        occurred_at=datetime.fromisoformat(row["created_at"]),
        note=row.get("note"),
    )


class SqliteLedgerSource(LedgerSource):
    """Intake entries stored in the ``ledger_entries`` table."""

    def __init__(self, repo: GoldRepository):
        self.repo = repo

    def register(self, request: IntakeRequest) -> LedgerEntry:
        """Register a new intake. The only way a LedgerEntry comes to exist."""
        entry = LedgerEntry(
            id=str(uuid4()),
            created_at=datetime.now(UTC),
            **request.model_dump(),
        )
        self.repo.save_ledger_entry(entry)
        logger.info("Registered intake %s: %s g @ %d bp", entry.id, entry.intake_g, entry.purity_bp)
        return entry

    async def list_entries(self, limit: int) -> list[LedgerEntry]:
        try:
            rows = self.repo.get_ledger_entries(limit)
        except sqlite3.Error as exc:
            raise UpstreamUnavailableError("ledger", str(exc)) from exc
        return [ledger_entry_from_row(row) for row in rows]


class SqliteEventSource(EventSource):
    """Raw operation-table rows from the ``token_ops`` log."""

    def __init__(self, repo: GoldRepository):
        self.repo = repo

    async def list_events(self, limit: int, offset: int = 0) -> list[RawOperationEvent]:
        try:
            return self.repo.get_token_ops(limit, offset)
        except sqlite3.Error as exc:
            raise UpstreamUnavailableError("token_ops", str(exc)) from exc


class SqliteAccountStore(AccountStore):
    def __init__(self, repo: GoldRepository):
        self.repo = repo

    async def get(self, account_id: str) -> Account:
        row = self.repo.get_account(account_id)
        if row is None:
            raise AccountNotFoundError(account_id)
        return account_from_row(row)

    async def find_by_wallet(self, wallet_identity: str) -> Account | None:
        row = self.repo.get_account_by_wallet(wallet_identity)
        return account_from_row(row) if row else None

    async def create(self, wallet_identity: str, email: str | None = None) -> Account:
        account = Account(
            id=str(uuid4()),
            wallet_identity=wallet_identity,
            email=email,
            created_at=datetime.now(UTC),
        )
        self.repo.create_account(account)
        logger.info("Registered account %s for %s", account.id, wallet_identity)
        return account

    async def save(self, account: Account) -> None:
        if self.repo.update_account_balances(account) == 0:
            raise AccountNotFoundError(account.id)


class SqliteTransactionJournal(TransactionJournal):
    def __init__(self, repo: GoldRepository):
        self.repo = repo

    async def record_transaction(self, txn: Transaction) -> None:
        self.repo.save_transaction(txn)
        if txn.state.is_terminal:
            self.repo.save_audit_entry(AuditEntry(
                timestamp=txn.updated_at or datetime.now(UTC),
                engine="TransactionEngine",
                operation=txn.side.value.lower(),
                inputs={
                    "account_id": txn.account_id,
                    "requested_grams": txn.requested_grams,
                    "quoted_price_per_g": txn.quoted_price_per_g,
                },
                output={
                    "transaction_id": txn.id,
                    "state": txn.state.value,
                    "fiat_amount": txn.fiat_amount,
                    "tx_ref": txn.tx_ref,
                },
                notes=txn.failure_reason,
            ))

    async def get_transaction(self, transaction_id: str) -> Transaction | None:
        row = self.repo.get_transaction(transaction_id)
        return transaction_from_row(row) if row else None

    async def append_activity(self, record: ActivityRecord) -> None:
        self.repo.save_activity(record)

    async def list_activity(
        self, account_id: str, limit: int = 20, offset: int = 0
    ) -> list[ActivityRecord]:
        return [activity_from_row(row) for row in self.repo.get_activity(account_id, limit, offset)]
