"""Tests for the httpx API clients, driven through httpx.MockTransport."""

import asyncio
import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from goldledger.clients.http import (
    GoldApiClient,
    GoldApiError,
    HttpEventSource,
    HttpMintBurnExecutor,
    HttpPricingSupplier,
)
from goldledger.exceptions import UpstreamUnavailableError
from goldledger.models.enums import OperationKind

WALLET = "0x" + "ab" * 20

PRICE_BODY = {
    "data": {
        "source": "LBMA",
        "price_myr_per_g": 480.0,
        "user_buy_myr_per_g": 500.5,
        "user_sell_myr_per_g": 460.25,
        "spread_bps": 150,
        "effective_date": "2025-03-01",
        "created_at": "2025-03-01T00:00:00Z",
    }
}


def _client(handler) -> GoldApiClient:
    return GoldApiClient("http://api.test/", transport=httpx.MockTransport(handler))


def _run(make_call, handler):
    async def scenario():
        async with _client(handler) as client:
            return await make_call(client)

    return asyncio.run(scenario())


class TestPricing:
    def test_current_price(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, json=PRICE_BODY)

        quote = _run(lambda client: HttpPricingSupplier(client).current_price(), handler)
        assert seen == ["/api/price/current"]
        assert quote.buy_price_per_g == Decimal("500.5")
        assert quote.sell_price_per_g == Decimal("460.25")
        assert quote.spread_bps == 150
        assert quote.effective_date == date(2025, 3, 1)
        assert quote.source == "LBMA"

    def test_missing_prices_are_none(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"source": "manual"}})

        quote = _run(lambda client: HttpPricingSupplier(client).current_price(), handler)
        assert quote.buy_price_per_g is None

    @pytest.mark.parametrize("response", [
        httpx.Response(503, text="maintenance"),
        httpx.Response(200, json={"price": 1}),
        httpx.Response(200, text="not json"),
    ])
    def test_failures_are_upstream_unavailable(self, response):
        with pytest.raises(UpstreamUnavailableError):
            _run(lambda client: HttpPricingSupplier(client).current_price(), lambda request: response)

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(UpstreamUnavailableError, match="refused"):
            _run(lambda client: HttpPricingSupplier(client).current_price(), handler)


class TestEventSource:
    def test_list_events_passes_paging(self):
        seen = []

        def handler(request):
            seen.append(dict(request.url.params))
            return httpx.Response(200, json={"data": [{"op_type": "BUY_MINT", "grams": 1}]})

        events = _run(lambda client: HttpEventSource(client).list_events(50, 100), handler)
        assert seen == [{"limit": "50", "offset": "100"}]
        assert events == [{"op_type": "BUY_MINT", "grams": 1}]

    def test_error_status(self):
        with pytest.raises(UpstreamUnavailableError):
            _run(
                lambda client: HttpEventSource(client).list_events(10),
                lambda request: httpx.Response(500, text="boom"),
            )

    def test_non_list_data(self):
        with pytest.raises(UpstreamUnavailableError):
            _run(
                lambda client: HttpEventSource(client).list_events(10),
                lambda request: httpx.Response(200, json={"data": {"op_type": "BUY_MINT"}}),
            )


class TestMintBurnExecutor:
    def test_mint(self):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path, request.headers["X-User-Wallet"], json.loads(request.content)))
            return httpx.Response(200, json={"txHash": "0xfeed", "grams": 2, "amountMyr": 1000, "price_myr_per_g": 500})

        receipt = _run(
            lambda client: HttpMintBurnExecutor(client).execute(OperationKind.MINT, WALLET, Decimal("2")), handler
        )
        assert seen == [("POST", "/api/user/mint", WALLET, {"grams": 2.0})]
        assert receipt.tx_ref == "0xfeed"
        assert receipt.confirmed_amount == Decimal("2")

    def test_burn_path(self):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, json={"txHash": "0xbeef"})

        _run(lambda client: HttpMintBurnExecutor(client).execute(OperationKind.BURN, WALLET, Decimal("1")), handler)
        assert seen == ["/api/user/burn"]

    def test_error_status_propagates(self):
        with pytest.raises(GoldApiError) as exc_info:
            _run(
                lambda client: HttpMintBurnExecutor(client).execute(OperationKind.MINT, WALLET, Decimal("1")),
                lambda request: httpx.Response(400, text="insufficient reserve"),
            )
        assert exc_info.value.status_code == 400
        assert "insufficient reserve" in str(exc_info.value)

    def test_missing_tx_hash(self):
        with pytest.raises(GoldApiError):
            _run(
                lambda client: HttpMintBurnExecutor(client).execute(OperationKind.MINT, WALLET, Decimal("1")),
                lambda request: httpx.Response(200, json={"grams": 1}),
            )


class TestGoldApiClient:
    def test_base_url_trailing_slash_stripped(self):
        client = GoldApiClient("http://api.test///")
        assert client.base_url == "http://api.test"
        asyncio.run(client.aclose())
