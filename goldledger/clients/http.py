"""httpx clients for the gold token API.

The API serves the current price, the token-op event log, and the user
mint/burn endpoints. User-scoped calls identify the wallet through the
``X-User-Wallet`` header.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from goldledger.exceptions import UpstreamUnavailableError
from goldledger.models.accounts import ExecutionReceipt, Quote
from goldledger.models.enums import OperationKind
from goldledger.sources.base import (
    EventSource,
    MintBurnExecutor,
    PricingSupplier,
    RawOperationEvent,
)

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "http://localhost:4000"
DEFAULT_TIMEOUT_SECONDS = 10.0
WALLET_HEADER = "X-User-Wallet"


class GoldApiError(RuntimeError):
    """Raised when the API answers with an error status or an unusable body."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PricePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_buy_myr_per_g: Decimal | None = None
    user_sell_myr_per_g: Decimal | None = None
    source: str | None = None
    spread_bps: int | None = None
    effective_date: date | None = None


class MintBurnResponse(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    tx_hash: str = Field(alias="txHash", min_length=1)
    grams: Decimal | None = None
    amount_myr: Decimal | None = Field(default=None, alias="amountMyr")
    price_myr_per_g: Decimal | None = None


class GoldApiClient:
    """Thin async wrapper over an httpx.AsyncClient bound to the API base URL."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> "GoldApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._client.get(path, params=params)
        return self._decode(response)

    async def post_json(self, path: str, body: dict[str, Any], wallet: str | None = None) -> Any:
        headers = {WALLET_HEADER: wallet} if wallet else None
        response = await self._client.post(path, json=body, headers=headers)
        return self._decode(response)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if response.is_error:
            message = response.text or f"HTTP {response.status_code}"
            raise GoldApiError(message, status_code=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise GoldApiError(
                response.text or f"HTTP {response.status_code}", status_code=response.status_code
            ) from exc


def _unwrap_data(payload: Any, what: str) -> Any:
    if not isinstance(payload, dict) or "data" not in payload:
        raise GoldApiError(f"unexpected {what} payload: missing 'data'")
    return payload["data"]


class HttpPricingSupplier(PricingSupplier):
    """Reads ``GET /api/price/current``."""

    def __init__(self, client: GoldApiClient):
        self.client = client

    async def current_price(self) -> Quote:
        try:
            data = _unwrap_data(await self.client.get_json("/api/price/current"), "price")
            payload = PricePayload.model_validate(data)
        except (httpx.HTTPError, GoldApiError, ValidationError) as exc:
            logger.warning("Price fetch failed: %s", exc)
            raise UpstreamUnavailableError("pricing", str(exc)) from exc
        return Quote(
            buy_price_per_g=payload.user_buy_myr_per_g,
            sell_price_per_g=payload.user_sell_myr_per_g,
            source=payload.source,
            spread_bps=payload.spread_bps,
            effective_date=payload.effective_date,
        )


class HttpEventSource(EventSource):
    """Reads the token-op log from ``GET /api/token-ops/logs``."""

    def __init__(self, client: GoldApiClient):
        self.client = client

    async def list_events(self, limit: int, offset: int = 0) -> list[RawOperationEvent]:
        try:
            data = _unwrap_data(
                await self.client.get_json(
                    "/api/token-ops/logs", params={"limit": limit, "offset": offset}
                ),
                "token-ops",
            )
        except (httpx.HTTPError, GoldApiError) as exc:
            raise UpstreamUnavailableError("token-ops", str(exc)) from exc
        if not isinstance(data, list):
            raise UpstreamUnavailableError("token-ops", f"expected a list, got {type(data).__name__}")
        logger.debug("Fetched %d token-op records (offset %d)", len(data), offset)
        return data


class HttpMintBurnExecutor(MintBurnExecutor):
    """Calls ``POST /api/user/mint`` or ``/api/user/burn`` for one wallet.

    Errors propagate as raised; the transaction engine treats any exception
    as an executor failure and rolls back.
    """

    PATHS = {
        OperationKind.MINT: "/api/user/mint",
        OperationKind.BURN: "/api/user/burn",
    }

    def __init__(self, client: GoldApiClient):
        self.client = client

    async def execute(
        self, kind: OperationKind, account_identity: str, grams: Decimal
    ) -> ExecutionReceipt:
        # the API takes grams as a JSON number
        payload = await self.client.post_json(
            self.PATHS[kind], {"grams": float(grams)}, wallet=account_identity
        )
        try:
            response = MintBurnResponse.model_validate(payload)
        except ValidationError as exc:
            raise GoldApiError(f"unexpected {kind.value.lower()} response: {exc}") from exc
        logger.info("%s of %s g for %s confirmed: %s", kind.value, grams, account_identity, response.tx_hash)
        return ExecutionReceipt(tx_ref=response.tx_hash, confirmed_amount=response.grams)
