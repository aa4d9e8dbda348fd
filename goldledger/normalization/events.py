"""Event normalization: raw mint/burn records to NormalizedOperation.

Upstream records arrive in more than one shape. Each known shape has a
dedicated parser; the first parser whose discriminator matches decides the
outcome. Records that no parser claims, or whose action code is unknown, are
not operations and normalize to the ``NOT_AN_OPERATION`` sentinel.
"""

import json
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Final

from goldledger.models.enums import OperationAction, OperationKind, RawShape
from goldledger.models.operations import NormalizedOperation
from goldledger.normalization.numeric import first_numeric

AUDIT_UNION_TYPE = "MINT_BURN"

TIMESTAMP_FIELDS = ("created_at", "createdAt", "occurred_at")


class _NotAnOperation:
    """Sentinel for records that carry no mint or burn."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_AN_OPERATION"


NOT_AN_OPERATION: Final = _NotAnOperation()

NormalizeOutcome = NormalizedOperation | _NotAnOperation


def _code(value: object) -> str:
    """Compare discriminators case-insensitively, treating '-' and '_' alike."""
    if value is None:
        return ""
    return str(value).strip().upper().replace("-", "_")


def _action(value: object) -> OperationAction | None:
    try:
        return OperationAction(_code(value))
    except ValueError:
        return None


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _detail(raw: Mapping[str, Any]) -> Mapping[str, Any]:
    """The nested detail payload; JSON-encoded payloads are decoded."""
    detail = raw.get("detail")
    if isinstance(detail, str):
        try:
            detail = json.loads(detail)
        except ValueError:
            return {}
    return detail if isinstance(detail, Mapping) else {}


def _timestamp(raw: Mapping[str, Any]) -> datetime | None:
    for name in TIMESTAMP_FIELDS:
        value = raw.get(name)
        if value is None or isinstance(value, bool):
            continue
        if isinstance(value, datetime):
            return value
        if isinstance(value, (int, float)):
            try:
                return datetime.fromtimestamp(value, UTC)
            except (OverflowError, OSError, ValueError):
                return None
        try:
            return datetime.fromisoformat(str(value).strip())
        except ValueError:
            return None
    return None


def _operator(raw: Mapping[str, Any]) -> str:
    return _text(raw.get("operator")) or _text(raw.get("wallet_address")) or _text(raw.get("wallet"))


def _tx_ref(raw: Mapping[str, Any], detail: Mapping[str, Any]) -> str | None:
    for source in (detail, raw):
        for name in ("tx_hash", "tx_ref"):
            ref = _text(source.get(name))
            if ref:
                return ref
    return None


def _build(kind: OperationKind, raw: Mapping[str, Any]) -> NormalizedOperation:
    detail = _detail(raw)
    return NormalizedOperation(
        kind=kind,
        grams=first_numeric(detail.get("grams"), raw.get("grams")),
        operator=_operator(raw),
        tx_ref=_tx_ref(raw, detail),
        occurred_at=_timestamp(raw),
    )


class ShapeParser(ABC):
    """Parser for one known raw event shape."""

    shape: RawShape

    @abstractmethod
    def matches(self, raw: Mapping[str, Any]) -> bool:
        """True if the record carries this shape's discriminator."""
        ...

    @abstractmethod
    def parse(self, raw: Mapping[str, Any]) -> NormalizeOutcome:
        ...


class AuditUnionParser(ShapeParser):
    """Audit-log rows: ``type`` is mint-burn and ``action`` names the side."""

    shape = RawShape.AUDIT_UNION

    def matches(self, raw: Mapping[str, Any]) -> bool:
        return _code(raw.get("type")) == AUDIT_UNION_TYPE

    def parse(self, raw: Mapping[str, Any]) -> NormalizeOutcome:
        action = _action(raw.get("action"))
        if action is None:
            return NOT_AN_OPERATION
        return _build(action.kind, raw)


class OperationTableParser(ShapeParser):
    """Token-op table rows: ``op_type`` names the side directly."""

    shape = RawShape.OPERATION_TABLE

    def matches(self, raw: Mapping[str, Any]) -> bool:
        return raw.get("op_type") is not None

    def parse(self, raw: Mapping[str, Any]) -> NormalizeOutcome:
        action = _action(raw.get("op_type"))
        if action is None:
            return NOT_AN_OPERATION
        return _build(action.kind, raw)


class CanonicalParser(ShapeParser):
    """Serialized NormalizedOperation, so normalizing is idempotent."""

    shape = RawShape.CANONICAL

    def matches(self, raw: Mapping[str, Any]) -> bool:
        return _code(raw.get("kind")) in {kind.value for kind in OperationKind}

    def parse(self, raw: Mapping[str, Any]) -> NormalizeOutcome:
        return _build(OperationKind(_code(raw.get("kind"))), raw)


DEFAULT_PARSERS: tuple[ShapeParser, ...] = (
    AuditUnionParser(),
    OperationTableParser(),
    CanonicalParser(),
)


@dataclass
class NormalizationResult:
    """Operations recovered from a batch of raw records."""

    operations: list[NormalizedOperation] = field(default_factory=list)
    ignored: int = 0


class EventNormalizer:
    """Normalizes raw mint/burn records of any known shape. Pure, no I/O."""

    def __init__(self, parsers: Iterable[ShapeParser] = DEFAULT_PARSERS):
        self.parsers = tuple(parsers)

    def detect_shape(self, raw: object) -> RawShape | None:
        parser = self._parser_for(raw)
        return parser.shape if parser else None

    def normalize(self, raw: object) -> NormalizeOutcome:
        """Normalize one record, or return NOT_AN_OPERATION."""
        parser = self._parser_for(raw)
        if parser is None:
            return NOT_AN_OPERATION
        return parser.parse(raw)  # type: ignore[arg-type]

    def normalize_many(self, raws: Iterable[object]) -> NormalizationResult:
        result = NormalizationResult()
        for raw in raws:
            outcome = self.normalize(raw)
            if isinstance(outcome, NormalizedOperation):
                result.operations.append(outcome)
            else:
                result.ignored += 1
        return result

    def _parser_for(self, raw: object) -> ShapeParser | None:
        if not isinstance(raw, Mapping):
            return None
        for parser in self.parsers:
            if parser.matches(raw):
                return parser
        return None


_default = EventNormalizer()


def normalize(raw: object) -> NormalizeOutcome:
    """Module-level shortcut for ``EventNormalizer().normalize``."""
    return _default.normalize(raw)
