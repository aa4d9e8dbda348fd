"""Normalization layer for raw mint/burn events."""

from goldledger.normalization.events import (
    NOT_AN_OPERATION,
    EventNormalizer,
    NormalizationResult,
    normalize,
)
from goldledger.normalization.numeric import coerce_grams, first_numeric

__all__ = [
    "NOT_AN_OPERATION",
    "EventNormalizer",
    "NormalizationResult",
    "coerce_grams",
    "first_numeric",
    "normalize",
]
