"""Explicit session context for account operations.

A Session is created on a successful connect and deactivated on logout.
Every transaction takes the session as an argument; nothing reads a stored
wallet from ambient state.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime

from goldledger.exceptions import InvalidRequestError
from goldledger.sources.base import AccountStore

logger = logging.getLogger(__name__)

WALLET_ADDRESS_RE = re.compile(r"^0x[a-f0-9]{40}$")


def validate_wallet_address(address: str) -> str:
    """Return the lower-cased address, or raise if it isn't 0x + 40 hex chars."""
    lowered = (address or "").strip().lower()
    if not WALLET_ADDRESS_RE.match(lowered):
        raise InvalidRequestError("wallet_identity", f"invalid wallet address: {address!r}")
    return lowered


@dataclass
class Session:
    account_id: str
    wallet_identity: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    active: bool = True

    def ensure_active(self) -> None:
        if not self.active:
            raise InvalidRequestError("session", "session has been logged out")


class SessionManager:
    """Creates sessions for wallets, registering unknown wallets on first connect."""

    def __init__(self, store: AccountStore):
        self.store = store

    async def connect(self, wallet: str, email: str | None = None) -> Session:
        wallet_identity = validate_wallet_address(wallet)
        account = await self.store.find_by_wallet(wallet_identity)
        if account is None:
            account = await self.store.create(wallet_identity, email)
        logger.info("Session opened for account %s", account.id)
        return Session(account_id=account.id, wallet_identity=wallet_identity)

    def logout(self, session: Session) -> None:
        session.active = False
        logger.info("Session closed for account %s", session.account_id)
