"""Report generation for goldledger."""

from goldledger.reports.reconciliation import ReconciliationReportGenerator

__all__ = ["ReconciliationReportGenerator"]
