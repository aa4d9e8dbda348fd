"""Reconciliation report generator."""

from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from goldledger.formatting import format_grams, format_purity
from goldledger.models.ledger import LedgerEntry
from goldledger.models.operations import ReconciliationSnapshot

TEMPLATE_DIR = Path(__file__).parent / "templates"


class ReconciliationReportGenerator:
    """Generates the intake versus circulating supply report."""

    def __init__(self) -> None:
        self.env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)))
        self.env.filters["grams"] = format_grams
        self.env.filters["purity"] = format_purity

    def render(self, snapshot: ReconciliationSnapshot, entries: list[LedgerEntry]) -> str:
        """Render reconciliation report."""
        template = self.env.get_template("reconciliation.txt")
        return template.render(snap=snapshot, entries=entries)
