"""HTTP clients for the gold token API."""

from goldledger.clients.http import (
    GoldApiClient,
    GoldApiError,
    HttpEventSource,
    HttpMintBurnExecutor,
    HttpPricingSupplier,
)

__all__ = [
    "GoldApiClient",
    "GoldApiError",
    "HttpEventSource",
    "HttpMintBurnExecutor",
    "HttpPricingSupplier",
]
