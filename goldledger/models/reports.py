"""Audit output models."""

from datetime import datetime

from pydantic import BaseModel


class AuditEntry(BaseModel):
    timestamp: datetime
    engine: str
    operation: str
    inputs: dict
    output: dict
    notes: str | None = None
