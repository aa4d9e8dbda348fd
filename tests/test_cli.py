"""Tests for CLI commands."""

import json

import httpx
import pytest
from typer.testing import CliRunner

from goldledger import cli
from goldledger.cli import app
from goldledger.clients.http import WALLET_HEADER, GoldApiClient

runner = CliRunner()

WALLET = "0x" + "ab" * 20

# wide enough that rich never wraps ledger cells
WIDE = {"COLUMNS": "250"}


@pytest.fixture
def db(tmp_path):
    return str(tmp_path / "cli.db")


@pytest.fixture
def api_calls(monkeypatch):
    """Route the CLI's API client through a mock transport and record requests."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.url.path == "/api/price/current":
            return httpx.Response(
                200,
                json={"data": {"user_buy_myr_per_g": "512.40", "user_sell_myr_per_g": "498.10", "spread_bps": 140}},
            )
        body = json.loads(request.content)
        return httpx.Response(200, json={"txHash": "0x" + "f" * 64, "grams": body["grams"]})

    def make_client(settings):
        return GoldApiClient("http://api.test", transport=httpx.MockTransport(handler))

    monkeypatch.setattr(cli, "make_api_client", make_client)
    return calls


def _invoke(*args):
    return runner.invoke(app, list(args))


def _funded_wallet(db, amount="1000"):
    assert _invoke("register", WALLET, "--db", db).exit_code == 0
    assert _invoke("credit", WALLET, amount, "--db", db).exit_code == 0


class TestHelp:
    def test_help(self):
        result = _invoke("--help")
        assert result.exit_code == 0
        assert "reconcile" in result.output

    @pytest.mark.parametrize("command", ["intake", "ledger", "reconcile", "price", "buy", "sell", "activity"])
    def test_command_help(self, command):
        result = _invoke(command, "--help")
        assert result.exit_code == 0


class TestLedgerCommands:
    def test_intake_then_ledger(self, db):
        result = _invoke(
            "intake", "--grams", "100", "--purity", "9999", "--date", "2025-03-01",
            "--source", "Refinery A", "--serial", "SN-0001", "--db", db,
        )
        assert result.exit_code == 0
        assert "100.0000 g @ 99.99% on 2025-03-01" in result.output

        listing = runner.invoke(app, ["ledger", "--db", db], env=WIDE)
        assert listing.exit_code == 0
        assert "Gold Intake Ledger" in listing.output
        assert "2025-03-01" in listing.output

    def test_ledger_shows_all_provenance(self, db):
        _invoke(
            "intake", "--grams", "1000", "--purity", "9999", "--date", "2025-04-02",
            "--source", "Refinery A", "--serial", "SN-0002", "--batch", "B-02",
            "--storage", "Vault7", "--custody", "Brinks", "--insurance", "POL-42",
            "--audit-ref", "AUD-9", "--note", "kilobar", "--db", db,
        )
        listing = runner.invoke(app, ["ledger", "--db", db], env=WIDE)
        assert listing.exit_code == 0
        for value in ("SN-0002", "B-02", "Vault7", "Brinks", "POL-42", "AUD-9", "kilobar"):
            assert value in listing.output

    def test_db_path_from_environment(self, tmp_path, monkeypatch):
        db_file = tmp_path / "env" / "gold.db"
        monkeypatch.setenv("GOLDLEDGER_DB", str(db_file))

        result = _invoke("intake", "--grams", "5", "--purity", "9990")
        assert result.exit_code == 0
        assert db_file.exists()

        listing = runner.invoke(app, ["ledger"], env=WIDE)
        assert "5.0000 g" in listing.output

    def test_empty_ledger(self, db):
        result = _invoke("ledger", "--db", db)
        assert result.exit_code == 0
        assert "No intake entries." in result.output

    def test_intake_rejects_bad_purity(self, db):
        result = _invoke("intake", "--grams", "10", "--purity", "10001", "--db", db)
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_intake_rejects_non_numeric_grams(self, db):
        result = _invoke("intake", "--grams", "ten", "--purity", "9999", "--db", db)
        assert result.exit_code == 1
        assert "grams must be a number" in result.output


class TestReconcile:
    def test_reconcile_local_log(self, db, api_calls):
        _invoke("intake", "--grams", "100", "--purity", "9999", "--db", db)
        _funded_wallet(db)
        assert _invoke("buy", WALLET, "1", "--price", "500", "--db", db).exit_code == 0

        result = _invoke("reconcile", "--db", db)
        assert result.exit_code == 0
        assert "Total intake:    100.0000 g" in result.output
        assert "Total minted:    1.0000 g" in result.output
        assert "Current supply:  99.0000 g" in result.output
        assert "Average purity:  99.99%" in result.output

    def test_reconcile_writes_report(self, db, tmp_path):
        _invoke("intake", "--grams", "50", "--purity", "9990", "--db", db)
        report = tmp_path / "out" / "recon.txt"

        result = _invoke("reconcile", "--report", str(report), "--db", db)
        assert result.exit_code == 0
        assert "Report written to" in result.output
        text = report.read_text()
        assert "GOLD RECONCILIATION" in text
        assert "50.0000 g" in text


class TestAccounts:
    def test_register_twice(self, db):
        first = _invoke("register", WALLET, "--db", db)
        second = _invoke("register", WALLET.upper().replace("0X", "0x"), "--db", db)
        assert first.exit_code == 0
        assert first.output.startswith("Registered: 0xabab…abab")
        assert second.exit_code == 0
        assert second.output.startswith("Already registered:")

    def test_invalid_wallet(self, db):
        result = _invoke("register", "not-a-wallet", "--db", db)
        assert result.exit_code == 1
        assert "invalid wallet address" in result.output

    def test_credit_and_balance(self, db):
        _funded_wallet(db, "1234.5")
        result = _invoke("balance", WALLET, "--db", db)
        assert result.exit_code == 0
        assert "Fiat credit: RM 1,234.50" in result.output
        assert "Tokens:      0.0000 g" in result.output

    def test_unknown_wallet(self, db):
        result = _invoke("balance", WALLET, "--db", db)
        assert result.exit_code == 1
        assert "account not found" in result.output

    def test_activity_empty(self, db):
        _invoke("register", WALLET, "--db", db)
        result = _invoke("activity", WALLET, "--db", db)
        assert result.exit_code == 0
        assert "No activity." in result.output


class TestTrading:
    def test_buy_with_fixed_price(self, db, api_calls):
        _funded_wallet(db)
        result = _invoke("buy", WALLET, "1", "--price", "500", "--db", db)
        assert result.exit_code == 0, result.output
        assert "Bought 1.0000 g for RM 500.00 @ RM 500.00/g" in result.output
        assert "Tx: 0x" + "f" * 64 in result.output

        mint = api_calls[-1]
        assert mint.url.path == "/api/user/mint"
        assert mint.headers[WALLET_HEADER] == WALLET

        balance = _invoke("balance", WALLET, "--db", db)
        assert "Fiat credit: RM 500.00" in balance.output
        assert "Tokens:      1.0000 g" in balance.output

    def test_buy_by_amount_uses_api_price(self, db, api_calls):
        _funded_wallet(db)
        result = _invoke("buy", WALLET, "--amount", "512.40", "--db", db)
        assert result.exit_code == 0, result.output
        assert "Bought 1.0000 g" in result.output

    def test_sell_then_activity(self, db, api_calls):
        _funded_wallet(db)
        _invoke("buy", WALLET, "2", "--price", "500", "--db", db)
        result = _invoke("sell", WALLET, "1", "--price", "400", "--db", db)
        assert result.exit_code == 0, result.output
        assert "Sold 1.0000 g for RM 400.00" in result.output
        assert api_calls[-1].url.path == "/api/user/burn"

        listing = _invoke("activity", WALLET, "--db", db)
        assert listing.exit_code == 0
        assert "Burn" in listing.output

    def test_preview_insufficient(self, db, api_calls):
        _invoke("register", WALLET, "--db", db)
        result = _invoke("buy", WALLET, "1", "--price", "500", "--preview", "--db", db)
        assert result.exit_code == 1
        assert "Insufficient balance for this trade." in result.output
        assert api_calls == []

    def test_preview_does_not_trade(self, db, api_calls):
        _funded_wallet(db)
        result = _invoke("buy", WALLET, "1", "--price", "500", "--preview", "--db", db)
        assert result.exit_code == 0
        assert "Fiat credit after: RM 500.00" in result.output

        balance = _invoke("balance", WALLET, "--db", db)
        assert "Fiat credit: RM 1,000.00" in balance.output

    def test_sell_more_than_held(self, db, api_calls):
        _funded_wallet(db)
        result = _invoke("sell", WALLET, "1", "--price", "400", "--db", db)
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert api_calls == []

    def test_buy_requires_grams_or_amount(self, db):
        _invoke("register", WALLET, "--db", db)
        result = _invoke("buy", WALLET, "--db", db)
        assert result.exit_code == 1
        assert "give either GRAMS or --amount" in result.output
