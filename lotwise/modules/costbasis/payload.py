"""
Cost basis API payload decoder.

Turns the JSON returned by the cost basis endpoint into validated
PurchaseLots. The endpoint is loose about shapes:

- keys arrive camelCase ("priceUsd") or snake_case ("price_usd")
- numbers arrive as JSON numbers or numeric strings
- dates are ISO-8601, with or without a time and "Z" suffix

Each numeric field is first classified into a NumericField (a tagged union
of JSON number and numeric string) and then decoded by kind. Anything that
is neither, or a missing required field, raises PayloadError; nothing is
defaulted silently.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from lotwise.core.money import to_decimal
from lotwise.modules.costbasis.engine import CostBasisSummary, summarize
from lotwise.modules.costbasis.lots import PurchaseLot
from lotwise.utils.logging_config import setup_logger

logger = setup_logger(__name__)


class PayloadError(ValueError):
    """Raised for a cost basis payload that cannot be decoded."""
    pass


class NumericKind(str, Enum):
    NUMBER = "number"
    STRING = "string"


@dataclass(frozen=True)
class NumericField:
    """A numeric JSON value tagged with the shape it arrived in."""

    name: str
    kind: NumericKind
    raw: Union[int, float, str]

    @classmethod
    def classify(cls, name: str, raw: Any) -> 'NumericField':
        # bool is an int subclass, and True is not a price
        if isinstance(raw, bool):
            raise PayloadError(f"{name}: expected a number, got boolean {raw}")
        if isinstance(raw, (int, float, Decimal)):
            return cls(name, NumericKind.NUMBER, raw)
        if isinstance(raw, str):
            return cls(name, NumericKind.STRING, raw)
        raise PayloadError(f"{name}: expected a number or numeric string, got {type(raw).__name__}")

    def to_decimal(self) -> Decimal:
        if self.kind is NumericKind.NUMBER:
            return to_decimal(self.raw)
        if self.kind is NumericKind.STRING:
            text = self.raw.strip()
            try:
                value = Decimal(text)
            except InvalidOperation:
                raise PayloadError(f"{self.name}: '{self.raw}' is not a number")
            if not value.is_finite():
                raise PayloadError(f"{self.name}: '{self.raw}' is not a finite number")
            return value
        raise PayloadError(f"{self.name}: unhandled numeric kind {self.kind}")


_CAMEL_BOUNDARY = re.compile(r'(?<!^)(?=[A-Z])')

# Wire names (after snake_casing) for the engine's base/secondary fields
LOT_KEYS = {
    "purchased_at": ("date", "purchased_at", "purchase_date"),
    "shares": ("shares",),
    "price_base": ("price_usd", "price_base", "price"),
    "total_base": ("total_usd", "total_base", "total"),
    "total_secondary": ("total_gbp", "total_secondary"),
    "fx_rate": ("fx_rate",),
}

SUMMARY_KEYS = {
    "symbol": ("symbol",),
    "lots": ("lots",),
    "total_shares": ("total_shares",),
    "total_cost_base": ("total_cost_usd", "total_cost_base"),
    "total_cost_secondary": ("total_cost_gbp", "total_cost_secondary"),
    "current_price": ("current_price_usd", "current_price"),
    "current_fx_rate": ("current_fx_rate",),
}


def snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub('_', key).lower()


def _normalize_keys(obj: Mapping[str, Any]) -> Dict[str, Any]:
    return {snake_case(k): v for k, v in obj.items()}


def _lookup(obj: Dict[str, Any], aliases, required: bool, context: str):
    for alias in aliases:
        if alias in obj and obj[alias] is not None:
            return obj[alias]
    if required:
        raise PayloadError(f"{context}: missing required field '{aliases[0]}'")
    return None


def _decimal_field(obj, key, table, required, context) -> Optional[Decimal]:
    raw = _lookup(obj, table[key], required, context)
    if raw is None:
        return None
    return NumericField.classify(f"{context}.{key}", raw).to_decimal()


def parse_iso_datetime(raw: Any, name: str = "date") -> datetime:
    """ISO-8601 date or datetime string ('Z' accepted) to datetime."""
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)
    if not isinstance(raw, str) or not raw.strip():
        raise PayloadError(f"{name}: expected an ISO-8601 string, got {raw!r}")

    text = raw.strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise PayloadError(f"{name}: '{raw}' is not an ISO-8601 date")


def parse_lot(
    raw: Mapping[str, Any],
    symbol: Optional[str] = None,
    index: int = 0,
    base_currency: str = "USD",
    secondary_currency: str = "GBP"
) -> PurchaseLot:
    """
    Decode one lot object.

    date, shares, price and fx rate are required. Totals the payload omits
    are derived from shares x price and the FX rate.

    Raises:
        PayloadError: On a missing field, malformed value or invalid lot
    """
    if not isinstance(raw, Mapping):
        raise PayloadError(f"lots[{index}]: expected an object, got {type(raw).__name__}")

    context = f"lots[{index}]"
    obj = _normalize_keys(raw)
    purchased_at = parse_iso_datetime(_lookup(obj, LOT_KEYS["purchased_at"], True, context), f"{context}.date")
    shares = _decimal_field(obj, "shares", LOT_KEYS, True, context)
    price_base = _decimal_field(obj, "price_base", LOT_KEYS, True, context)
    fx_rate = _decimal_field(obj, "fx_rate", LOT_KEYS, True, context)
    total_base = _decimal_field(obj, "total_base", LOT_KEYS, False, context)
    total_secondary = _decimal_field(obj, "total_secondary", LOT_KEYS, False, context)

    try:
        if total_base is None or total_secondary is None:
            derived = PurchaseLot.from_purchase(
                purchased_at, shares, price_base, fx_rate, symbol=symbol,
                base_currency=base_currency, secondary_currency=secondary_currency,
            )
            total_base = derived.total_base if total_base is None else total_base
            total_secondary = derived.total_secondary if total_secondary is None else total_secondary

        return PurchaseLot(
            purchased_at=purchased_at,
            shares=shares,
            price_base=price_base,
            total_base=total_base,
            total_secondary=total_secondary,
            fx_rate=fx_rate,
            symbol=symbol,
            base_currency=base_currency,
            secondary_currency=secondary_currency,
        )
    except ValidationError as e:
        raise PayloadError(f"{context}: invalid lot: {e}") from e


@dataclass(frozen=True)
class CostBasisPayload:
    """Decoded payload. Reported totals are kept only for reconciliation."""

    symbol: str
    lots: List[PurchaseLot]
    current_price: Optional[Decimal] = None
    current_fx_rate: Optional[Decimal] = None
    reported: Dict[str, Decimal] = field(default_factory=dict)

    def summarize(self, as_of: Union[date, datetime]) -> CostBasisSummary:
        """Recompute the summary from the lots (reported totals are ignored)."""
        return summarize(
            self.lots,
            as_of=as_of,
            current_price=self.current_price,
            current_fx_rate=self.current_fx_rate,
            symbol=self.symbol,
        )

    def discrepancies(self, as_of: Union[date, datetime]) -> Dict[str, Decimal]:
        """Reported totals that differ from the recomputed ones: name -> reported - recomputed."""
        summary = self.summarize(as_of)
        recomputed = {
            "total_shares": summary.total_shares,
            "total_cost_base": summary.total_cost_base,
            "total_cost_secondary": summary.total_cost_secondary,
        }
        diffs = {}
        for name, reported in self.reported.items():
            delta = reported - recomputed[name]
            if delta != 0:
                diffs[name] = delta
        return diffs


def parse_cost_basis_payload(
    payload: Union[str, bytes, Mapping[str, Any]],
    base_currency: str = "USD",
    secondary_currency: str = "GBP"
) -> CostBasisPayload:
    """
    Decode a cost basis payload (JSON text or an already-parsed object).

    Raises:
        PayloadError: On invalid JSON, wrong shapes or invalid values
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise PayloadError(f"Invalid JSON: {e}") from e

    if not isinstance(payload, Mapping):
        raise PayloadError(f"Expected a JSON object, got {type(payload).__name__}")

    obj = _normalize_keys(payload)
    symbol = _lookup(obj, SUMMARY_KEYS["symbol"], True, "payload")
    if not isinstance(symbol, str) or not symbol.strip():
        raise PayloadError(f"payload.symbol: expected a non-empty string, got {symbol!r}")
    symbol = symbol.strip().upper()

    raw_lots = _lookup(obj, SUMMARY_KEYS["lots"], True, "payload")
    if not isinstance(raw_lots, list):
        raise PayloadError(f"payload.lots: expected a list, got {type(raw_lots).__name__}")

    lots = [
        parse_lot(raw, symbol=symbol, index=i,
                  base_currency=base_currency, secondary_currency=secondary_currency)
        for i, raw in enumerate(raw_lots)
    ]

    reported = {}
    for key in ("total_shares", "total_cost_base", "total_cost_secondary"):
        value = _decimal_field(obj, key, SUMMARY_KEYS, False, "payload")
        if value is not None:
            reported[key] = value

    decoded = CostBasisPayload(
        symbol=symbol,
        lots=lots,
        current_price=_decimal_field(obj, "current_price", SUMMARY_KEYS, False, "payload"),
        current_fx_rate=_decimal_field(obj, "current_fx_rate", SUMMARY_KEYS, False, "payload"),
        reported=reported,
    )

    logger.info(f"Decoded cost basis payload for {symbol}: {len(lots)} lots")
    return decoded
