"""Database layer for goldledger."""

from goldledger.db.repository import GoldRepository
from goldledger.db.schema import create_schema

__all__ = ["GoldRepository", "create_schema"]
