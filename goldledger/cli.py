"""Typer CLI interface for goldledger."""

import asyncio
import logging
from datetime import date
from decimal import Decimal
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from goldledger.clients.http import GoldApiClient, HttpEventSource, HttpMintBurnExecutor, HttpPricingSupplier
from goldledger.config import Settings
from goldledger.db.repository import GoldRepository
from goldledger.db.schema import create_schema
from goldledger.engines.balances import AccountBalanceLedger
from goldledger.engines.reconciliation import ReconciliationEngine
from goldledger.engines.transactions import TransactionEngine
from goldledger.exceptions import AccountNotFoundError, GoldLedgerError
from goldledger.formatting import format_address, format_fiat, format_grams, format_purity
from goldledger.logging import configure_logging
from goldledger.models.enums import Side
from goldledger.models.ledger import IntakeRequest
from goldledger.normalization.numeric import coerce_grams
from goldledger.reports.reconciliation import ReconciliationReportGenerator
from goldledger.session import Session, SessionManager, validate_wallet_address
from goldledger.sources.base import PricingSupplier
from goldledger.sources.sqlite import (
    SqliteAccountStore,
    SqliteEventSource,
    SqliteLedgerSource,
    SqliteTransactionJournal,
)
from goldledger.sources.static import StaticPricingSupplier

app = typer.Typer(
    name="goldledger",
    help="Gold intake ledger, token supply reconciliation, and buy/sell of gold tokens.",
)

DB_OPTION_HELP = "Path to the SQLite database file (default: GOLDLEDGER_DB, else ~/.goldledger/goldledger.db)"


def _db_option():
    return typer.Option(None, "--db", help=DB_OPTION_HELP, show_default=False)


def make_api_client(settings: Settings) -> GoldApiClient:
    return GoldApiClient(settings.api_base, settings.http_timeout)


def _fail(exc: Exception) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(1)


def _settings() -> Settings:
    try:
        return Settings.from_environment()
    except GoldLedgerError as exc:
        _fail(exc)


def _open(db: Path | None) -> GoldRepository:
    return GoldRepository(create_schema(db if db is not None else _settings().db_path))


def _decimal(value: str, name: str) -> Decimal:
    amount = coerce_grams(value)
    if amount is None:
        typer.echo(f"Error: {name} must be a number, got {value!r}", err=True)
        raise typer.Exit(1)
    return amount


async def _existing_session(store: SqliteAccountStore, wallet: str) -> Session:
    wallet_identity = validate_wallet_address(wallet)
    account = await store.find_by_wallet(wallet_identity)
    if account is None:
        raise AccountNotFoundError(wallet_identity)
    return Session(account_id=account.id, wallet_identity=wallet_identity)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
) -> None:
    """Gold intake ledger, token supply reconciliation, and buy/sell of gold tokens."""
    configure_logging(logging.DEBUG if verbose else logging.WARNING, force=True)


# --- Ledger ---


@app.command()
def intake(
    grams: str = typer.Option(..., "--grams", "-g", help="Intake weight in grams"),
    purity: int = typer.Option(..., "--purity", "-p", help="Purity in basis points (9999 = 99.99%)"),
    entry_date: str = typer.Option(None, "--date", help="Intake date (YYYY-MM-DD), defaults to today"),
    source: str = typer.Option(None, "--source", help="Refinery or supplier"),
    serial: str = typer.Option(None, "--serial", help="Bar serial number"),
    batch: str = typer.Option(None, "--batch", help="Batch identifier"),
    storage: str = typer.Option(None, "--storage", help="Storage location"),
    custody: str = typer.Option(None, "--custody", help="Custodian"),
    insurance: str = typer.Option(None, "--insurance", help="Insurance reference"),
    audit_ref: str = typer.Option(None, "--audit-ref", help="Audit reference"),
    note: str = typer.Option(None, "--note", help="Free-form note"),
    db: Path = _db_option(),
) -> None:
    """Register a gold intake in the ledger."""
    try:
        request = IntakeRequest(
            entry_date=date.fromisoformat(entry_date) if entry_date else date.today(),
            intake_g=_decimal(grams, "grams"),
            purity_bp=purity,
            source=source,
            serial=serial,
            batch=batch,
            storage=storage,
            custody=custody,
            insurance=insurance,
            audit_ref=audit_ref,
            note=note,
        )
    except (ValidationError, ValueError) as exc:
        _fail(exc)

    repo = _open(db)
    entry = SqliteLedgerSource(repo).register(request)
    repo.conn.close()
    typer.echo(
        f"Registered intake {entry.id}: {format_grams(entry.intake_g)} "
        f"@ {format_purity(entry.purity_bp)} on {entry.entry_date.isoformat()}"
    )


@app.command()
def ledger(
    limit: int = typer.Option(200, "--limit", "-n", help="Number of entries to show"),
    db: Path = _db_option(),
) -> None:
    """List intake entries, newest first."""
    repo = _open(db)
    entries = asyncio.run(SqliteLedgerSource(repo).list_entries(limit))
    repo.conn.close()

    if not entries:
        typer.echo("No intake entries.")
        return

    table = Table(title="Gold Intake Ledger", show_header=True)
    table.add_column("Date", style="cyan")
    table.add_column("Grams", justify="right", style="green")
    table.add_column("Purity", justify="right")
    table.add_column("Source")
    table.add_column("Serial")
    table.add_column("Batch")
    table.add_column("Storage")
    table.add_column("Custody")
    table.add_column("Insurance")
    table.add_column("Audit ref")
    table.add_column("Note")
    for entry in entries:
        provenance = (
            entry.source, entry.serial, entry.batch, entry.storage,
            entry.custody, entry.insurance, entry.audit_ref, entry.note,
        )
        table.add_row(
            entry.entry_date.isoformat(),
            format_grams(entry.intake_g),
            format_purity(entry.purity_bp),
            *(value or "-" for value in provenance),
        )
    Console().print(table)


@app.command()
def reconcile(
    remote_events: bool = typer.Option(
        False, "--remote-events", help="Read mint/burn events from the API instead of the local log"
    ),
    report: Path = typer.Option(None, "--report", help="Write a plain-text report to this file"),
    db: Path = _db_option(),
) -> None:
    """Reconcile gold intake against circulating token supply."""
    settings = _settings()
    repo = _open(db)

    async def run():
        if remote_events:
            async with make_api_client(settings) as client:
                engine = ReconciliationEngine(
                    SqliteLedgerSource(repo), HttpEventSource(client), settings.fetch_limit, repo
                )
                return await engine.refresh(), engine.entries
        engine = ReconciliationEngine(
            SqliteLedgerSource(repo), SqliteEventSource(repo), settings.fetch_limit, repo
        )
        return await engine.refresh(), engine.entries

    try:
        snapshot, entries = asyncio.run(run())
    except GoldLedgerError as exc:
        _fail(exc)
    finally:
        repo.conn.close()

    typer.echo("Reconciliation complete:")
    typer.echo(f"  Total intake:    {format_grams(snapshot.total_intake_g)}")
    typer.echo(f"  Total minted:    {format_grams(snapshot.total_mint_g)}")
    typer.echo(f"  Total burned:    {format_grams(snapshot.total_burn_g)}")
    typer.echo(f"  Current supply:  {format_grams(snapshot.current_supply_g)}")
    typer.echo(f"  Average purity:  {snapshot.average_purity:.2f}%")
    if snapshot.ignored_event_count:
        typer.echo(f"  Ignored events:  {snapshot.ignored_event_count}")

    if snapshot.warnings:
        typer.echo("\nWarnings:")
        for warning in snapshot.warnings:
            typer.echo(f"  - {warning}")

    if report is not None:
        text = ReconciliationReportGenerator().render(snapshot, entries)
        report.parent.mkdir(parents=True, exist_ok=True)
        report.write_text(text)
        typer.echo(f"\nReport written to {report}")


# --- Pricing ---


@app.command()
def price() -> None:
    """Show the current buy and sell price per gram."""
    settings = _settings()

    async def run():
        async with make_api_client(settings) as client:
            return await HttpPricingSupplier(client).current_price()

    try:
        quote = asyncio.run(run())
    except GoldLedgerError as exc:
        _fail(exc)

    symbol = settings.currency_symbol
    typer.echo(f"Buy:   {format_fiat(quote.buy_price_per_g, symbol)}/g")
    typer.echo(f"Sell:  {format_fiat(quote.sell_price_per_g, symbol)}/g")
    if quote.spread_bps is not None:
        typer.echo(f"Spread: {quote.spread_bps} bps")
    if quote.source:
        suffix = f" ({quote.effective_date.isoformat()})" if quote.effective_date else ""
        typer.echo(f"Source: {quote.source}{suffix}")


# --- Accounts ---


@app.command()
def register(
    wallet: str = typer.Argument(..., help="Wallet address (0x + 40 hex chars)"),
    email: str = typer.Option(None, "--email", help="Contact email"),
    db: Path = _db_option(),
) -> None:
    """Register a wallet, or confirm it is already registered."""
    repo = _open(db)
    store = SqliteAccountStore(repo)

    async def run():
        existing = await store.find_by_wallet(validate_wallet_address(wallet))
        session = await SessionManager(store).connect(wallet, email)
        return session, existing is not None

    try:
        session, existed = asyncio.run(run())
    except GoldLedgerError as exc:
        _fail(exc)
    finally:
        repo.conn.close()

    status = "Already registered" if existed else "Registered"
    typer.echo(f"{status}: {format_address(session.wallet_identity)} (account {session.account_id})")


@app.command()
def credit(
    wallet: str = typer.Argument(..., help="Wallet address"),
    amount: str = typer.Argument(..., help="Fiat amount to credit"),
    note: str = typer.Option(None, "--note", help="Note stored with the credit"),
    db: Path = _db_option(),
) -> None:
    """Top up an account's fiat credit."""
    settings = _settings()
    fiat_amount = _decimal(amount, "amount")
    repo = _open(db)
    store = SqliteAccountStore(repo)
    journal = SqliteTransactionJournal(repo)

    async def run():
        session = await _existing_session(store, wallet)
        # deposits never price or execute
        engine = TransactionEngine(AccountBalanceLedger(store), None, None, journal)
        return await engine.deposit(session, fiat_amount, note)

    try:
        balances = asyncio.run(run())
    except GoldLedgerError as exc:
        _fail(exc)
    finally:
        repo.conn.close()

    typer.echo(f"Credited {format_fiat(fiat_amount, settings.currency_symbol)}")
    typer.echo(f"Fiat credit: {format_fiat(balances.fiat_credit, settings.currency_symbol)}")


@app.command()
def balance(
    wallet: str = typer.Argument(..., help="Wallet address"),
    db: Path = _db_option(),
) -> None:
    """Show an account's fiat credit and token grams."""
    settings = _settings()
    repo = _open(db)
    store = SqliteAccountStore(repo)

    async def run():
        session = await _existing_session(store, wallet)
        return await AccountBalanceLedger(store).snapshot(session.account_id)

    try:
        balances = asyncio.run(run())
    except GoldLedgerError as exc:
        _fail(exc)
    finally:
        repo.conn.close()

    typer.echo(f"Wallet:      {format_address(validate_wallet_address(wallet))}")
    typer.echo(f"Fiat credit: {format_fiat(balances.fiat_credit, settings.currency_symbol)}")
    typer.echo(f"Tokens:      {format_grams(balances.token_grams)}")


@app.command()
def activity(
    wallet: str = typer.Argument(..., help="Wallet address"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of records to show"),
    offset: int = typer.Option(0, "--offset", help="Number of records to skip"),
    db: Path = _db_option(),
) -> None:
    """List an account's purchases, burns, and credits, newest first."""
    settings = _settings()
    repo = _open(db)
    store = SqliteAccountStore(repo)
    journal = SqliteTransactionJournal(repo)

    async def run():
        session = await _existing_session(store, wallet)
        return await journal.list_activity(session.account_id, limit, offset)

    try:
        records = asyncio.run(run())
    except GoldLedgerError as exc:
        _fail(exc)
    finally:
        repo.conn.close()

    if not records:
        typer.echo("No activity.")
        return

    table = Table(title=f"Activity for {format_address(validate_wallet_address(wallet))}", show_header=True)
    table.add_column("When", style="cyan")
    table.add_column("Type")
    table.add_column("Summary", style="green")
    table.add_column("Tx")
    for record in records:
        table.add_row(
            record.occurred_at.strftime("%Y-%m-%d %H:%M"),
            record.kind.value,
            record.summary(settings.currency_symbol),
            format_address(record.tx_ref) if record.tx_ref else "-",
        )
    Console().print(table)


# --- Trading ---


def _trade(
    side: Side,
    wallet: str,
    grams: str | None,
    fixed_price: str | None,
    preview: bool,
    db: Path | None,
    spend: str | None = None,
) -> None:
    settings = _settings()
    if (grams is None) == (spend is None):
        typer.echo("Error: give either GRAMS or --amount", err=True)
        raise typer.Exit(1)
    amount = _decimal(grams, "grams") if grams is not None else None
    fiat_amount = _decimal(spend, "amount") if spend is not None else None
    price_per_g = _decimal(fixed_price, "price") if fixed_price is not None else None
    repo = _open(db)
    store = SqliteAccountStore(repo)
    journal = SqliteTransactionJournal(repo)

    async def run():
        session = await _existing_session(store, wallet)
        async with make_api_client(settings) as client:
            pricing: PricingSupplier = (
                StaticPricingSupplier(price_per_g) if price_per_g is not None else HttpPricingSupplier(client)
            )
            engine = TransactionEngine(
                AccountBalanceLedger(store),
                pricing,
                HttpMintBurnExecutor(client),
                journal,
                execute_timeout=settings.execute_timeout,
            )
            grams_wanted = amount if amount is not None else await engine.grams_for_amount(side, fiat_amount)
            if preview:
                return await engine.preview(session, side, grams_wanted)
            return await engine.submit(session, side, grams_wanted)

    try:
        result = asyncio.run(run())
    except GoldLedgerError as exc:
        _fail(exc)
    finally:
        repo.conn.close()

    symbol = settings.currency_symbol
    if preview:
        verb = "Buying" if side is Side.BUY else "Selling"
        typer.echo(
            f"{verb} {format_grams(result.grams)} at {format_fiat(result.price_per_g, symbol)}/g "
            f"= {format_fiat(result.fiat_amount, symbol)}"
        )
        if not result.affordable:
            typer.echo("Insufficient balance for this trade.")
            raise typer.Exit(1)
        typer.echo(f"Fiat credit after: {format_fiat(result.fiat_credit_after, symbol)}")
        typer.echo(f"Tokens after:      {format_grams(result.token_grams_after)}")
        return

    verb = "Bought" if side is Side.BUY else "Sold"
    typer.echo(
        f"{verb} {format_grams(result.requested_grams)} for {format_fiat(result.fiat_amount, symbol)} "
        f"@ {format_fiat(result.quoted_price_per_g, symbol)}/g"
    )
    typer.echo(f"Tx: {result.tx_ref}")


@app.command()
def buy(
    wallet: str = typer.Argument(..., help="Wallet address"),
    grams: str = typer.Argument(None, help="Grams to buy"),
    spend: str = typer.Option(None, "--amount", help="Spend this fiat amount instead of naming grams"),
    fixed_price: str = typer.Option(None, "--price", help="Use this price per gram instead of the API quote"),
    preview: bool = typer.Option(False, "--preview", help="Show the cost without trading"),
    db: Path = _db_option(),
) -> None:
    """Buy gold tokens with fiat credit (mint)."""
    _trade(Side.BUY, wallet, grams, fixed_price, preview, db, spend)


@app.command()
def sell(
    wallet: str = typer.Argument(..., help="Wallet address"),
    grams: str = typer.Argument(..., help="Grams to sell"),
    fixed_price: str = typer.Option(None, "--price", help="Use this price per gram instead of the API quote"),
    preview: bool = typer.Option(False, "--preview", help="Show the proceeds without trading"),
    db: Path = _db_option(),
) -> None:
    """Sell gold tokens for fiat credit (burn)."""
    _trade(Side.SELL, wallet, grams, fixed_price, preview, db)


if __name__ == "__main__":
    app()
