"""Numeric coercion policy for partially-populated upstream records.

Every "absent or non-numeric becomes zero" decision in goldledger goes through
this module so the rule is explicit and testable on its own:

* ``coerce_grams`` decides whether a raw value is numeric at all.
* ``clamp_non_negative`` turns negative quantities into zero.
* ``first_numeric`` walks candidate fields in precedence order.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation

from goldledger.formatting import FIAT_QUANTUM, GRAMS_QUANTUM

ZERO = Decimal("0")


def coerce_grams(value: object) -> Decimal | None:
    """Return ``value`` as a finite Decimal, or None if it isn't numeric.

    Booleans are not quantities, even though Python treats them as ints.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float)):
        number = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None
    if not number.is_finite():
        return None
    return number


def clamp_non_negative(value: Decimal) -> Decimal:
    return value if value > 0 else ZERO


def first_numeric(*candidates: object) -> Decimal:
    """Return the first numeric candidate, clamped at zero; zero if none is numeric."""
    for candidate in candidates:
        number = coerce_grams(candidate)
        if number is not None:
            return clamp_non_negative(number)
    return ZERO


def quantize_fiat(value: Decimal) -> Decimal:
    """Round a fiat amount to cents, half up."""
    return value.quantize(FIAT_QUANTUM, rounding=ROUND_HALF_UP)


def grams_for_fiat(amount: Decimal, price_per_g: Decimal) -> Decimal:
    """Convert a fiat amount into grams at ``price_per_g``, truncated to 4dp."""
    if price_per_g <= 0 or amount <= 0:
        return ZERO
    return (amount / price_per_g).quantize(GRAMS_QUANTUM, rounding=ROUND_DOWN)
