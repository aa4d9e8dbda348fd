"""Display conventions for grams, fiat, purity, and wallet addresses."""

from decimal import ROUND_HALF_UP, Decimal

GRAMS_QUANTUM = Decimal("0.0001")
FIAT_QUANTUM = Decimal("0.01")
DEFAULT_CURRENCY_SYMBOL = "RM"


def format_grams(value: Decimal | int | None) -> str:
    """Render a gram quantity to 4 decimal places, e.g. ``2.0000 g``."""
    if value is None:
        return "— g"
    grams = Decimal(value).quantize(GRAMS_QUANTUM, rounding=ROUND_HALF_UP)
    return f"{grams} g"


def format_fiat(value: Decimal | int | None, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    """Render a fiat amount to 2 decimal places with thousands separators."""
    if value is None:
        return f"{symbol} —"
    amount = Decimal(value).quantize(FIAT_QUANTUM, rounding=ROUND_HALF_UP)
    return f"{symbol} {amount:,.2f}"


def format_purity(purity_bp: int | Decimal) -> str:
    """Render basis points as a percentage: 9999 -> ``99.99%``."""
    percent = (Decimal(purity_bp) / 100).quantize(FIAT_QUANTUM, rounding=ROUND_HALF_UP)
    return f"{percent}%"


def format_address(address: str) -> str:
    """Shorten a wallet address to ``0x1234…abcd``; other strings pass through."""
    lowered = address.lower()
    if len(lowered) == 42 and lowered.startswith("0x"):
        return f"{lowered[:6]}…{lowered[-4:]}"
    return address
