"""
Cost Basis Engine - Per-Symbol Aggregation

Pure function summarize() turns a list of PurchaseLots into a
CostBasisSummary. Derived values (market value, unrealized P&L, tax split,
weighted FX rate) are computed on demand from the lots, never stored.

Rules:
- Every ratio is zero-guarded (empty ledger -> zeros, no exceptions)
- Unrealized P&L without a market price is unknown (None), not zero
- The tax split is evaluated against an explicit as_of moment

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple, Union

from lotwise.config import LONG_TERM_THRESHOLD_DAYS
from lotwise.core.money import safe_divide, percentage_change, percentage_of, to_decimal
from lotwise.modules.costbasis.lots import PurchaseLot, InvalidLotError
from lotwise.utils.logging_config import setup_logger

logger = setup_logger(__name__)

ZERO = Decimal(0)


def _sum_shares(lots: Sequence[PurchaseLot]) -> Decimal:
    return sum((lot.shares for lot in lots), start=ZERO)


def _sum_base(lots: Sequence[PurchaseLot]) -> Decimal:
    return sum((lot.total_base for lot in lots), start=ZERO)


def _sum_secondary(lots: Sequence[PurchaseLot]) -> Decimal:
    return sum((lot.total_secondary for lot in lots), start=ZERO)


@dataclass(frozen=True)
class TaxSummary:
    """Tax-relevant split of a holding into short- and long-term buckets."""

    short_term_shares: Decimal
    long_term_shares: Decimal
    short_term_cost_base: Decimal
    long_term_cost_base: Decimal
    short_term_unrealized_gain: Optional[Decimal]
    long_term_unrealized_gain: Optional[Decimal]

    @property
    def total_unrealized_gain(self) -> Optional[Decimal]:
        if self.short_term_unrealized_gain is None or self.long_term_unrealized_gain is None:
            return None
        return self.short_term_unrealized_gain + self.long_term_unrealized_gain

    @property
    def has_long_term_holdings(self) -> bool:
        return self.long_term_shares > 0

    @property
    def has_short_term_holdings(self) -> bool:
        return self.short_term_shares > 0


@dataclass(frozen=True)
class CostBasisSummary:
    """
    Cost basis summary for a single symbol.

    Stored totals are fixed at summarize() time. Everything else is a
    property over the lots and the optional market data.
    """

    symbol: str
    total_shares: Decimal
    total_cost_base: Decimal
    total_cost_secondary: Decimal
    average_cost_base: Decimal
    average_cost_secondary: Decimal
    lots: Tuple[PurchaseLot, ...]
    as_of: Union[date, datetime]
    current_price: Optional[Decimal] = None
    current_fx_rate: Optional[Decimal] = None
    long_term_threshold_days: int = field(default=LONG_TERM_THRESHOLD_DAYS)

    # ---- current values -------------------------------------------------

    @property
    def current_value_base(self) -> Optional[Decimal]:
        """Market value in base currency, None without a price."""
        if self.current_price is None:
            return None
        return self.total_shares * self.current_price

    @property
    def current_value_secondary(self) -> Optional[Decimal]:
        """Market value in secondary currency, None without price and FX rate."""
        value = self.current_value_base
        if value is None or self.current_fx_rate is None:
            return None
        return safe_divide(value, self.current_fx_rate)

    # ---- unrealized P&L -------------------------------------------------

    @property
    def unrealized_pnl_base(self) -> Optional[Decimal]:
        value = self.current_value_base
        if value is None:
            return None
        return value - self.total_cost_base

    @property
    def unrealized_pnl_secondary(self) -> Optional[Decimal]:
        value = self.current_value_secondary
        if value is None:
            return None
        return value - self.total_cost_secondary

    @property
    def unrealized_pnl_percent(self) -> Optional[Decimal]:
        """P&L as a percentage of base cost (0 when there is no cost)."""
        value = self.current_value_base
        if value is None:
            return None
        return percentage_change(value, self.total_cost_base)

    @property
    def is_profitable(self) -> bool:
        pnl = self.unrealized_pnl_base
        return pnl is not None and pnl > 0

    # ---- tax analysis ---------------------------------------------------

    @property
    def lot_count(self) -> int:
        return len(self.lots)

    @property
    def short_term_lots(self) -> List[PurchaseLot]:
        return [
            lot for lot in self.lots
            if not lot.is_long_term(self.as_of, self.long_term_threshold_days)
        ]

    @property
    def long_term_lots(self) -> List[PurchaseLot]:
        return [
            lot for lot in self.lots
            if lot.is_long_term(self.as_of, self.long_term_threshold_days)
        ]

    @property
    def short_term_shares(self) -> Decimal:
        return _sum_shares(self.short_term_lots)

    @property
    def long_term_shares(self) -> Decimal:
        return _sum_shares(self.long_term_lots)

    @property
    def short_term_cost_base(self) -> Decimal:
        return _sum_base(self.short_term_lots)

    @property
    def long_term_cost_base(self) -> Decimal:
        return _sum_base(self.long_term_lots)

    @property
    def short_term_cost_secondary(self) -> Decimal:
        return _sum_secondary(self.short_term_lots)

    @property
    def long_term_cost_secondary(self) -> Decimal:
        return _sum_secondary(self.long_term_lots)

    @property
    def short_term_unrealized_pnl(self) -> Optional[Decimal]:
        # Same market price as the whole position, applied to this bucket's shares
        if self.current_price is None:
            return None
        return self.short_term_shares * self.current_price - self.short_term_cost_base

    @property
    def long_term_unrealized_pnl(self) -> Optional[Decimal]:
        if self.current_price is None:
            return None
        return self.long_term_shares * self.current_price - self.long_term_cost_base

    @property
    def long_term_percentage(self) -> Decimal:
        """Share of the position (by shares) that is long-term."""
        return percentage_of(self.long_term_shares, self.total_shares)

    @property
    def first_purchase_date(self) -> Optional[datetime]:
        if not self.lots:
            return None
        return min(lot.purchased_at for lot in self.lots)

    @property
    def last_purchase_date(self) -> Optional[datetime]:
        if not self.lots:
            return None
        return max(lot.purchased_at for lot in self.lots)

    @property
    def holding_period_days(self) -> Optional[int]:
        """Days since the first purchase."""
        first = min(self.lots, key=lambda lot: lot.purchased_at, default=None)
        if first is None:
            return None
        return first.holding_period_days(self.as_of)

    # ---- FX -------------------------------------------------------------

    @property
    def average_fx_rate(self) -> Decimal:
        """Simple mean of lot FX rates. Prefer weighted_average_fx_rate."""
        if not self.lots:
            return ZERO
        total_fx = sum((lot.fx_rate for lot in self.lots), start=ZERO)
        return total_fx / Decimal(len(self.lots))

    @property
    def weighted_average_fx_rate(self) -> Decimal:
        """
        FX rate weighted by each lot's base-currency cost.

        sum(fx_rate * total_base) / total_cost_base, 0 when there is no cost.
        """
        weighted_sum = sum((lot.fx_rate * lot.total_base for lot in self.lots), start=ZERO)
        return safe_divide(weighted_sum, self.total_cost_base)

    # ---- derived objects ------------------------------------------------

    def tax_summary(self) -> TaxSummary:
        return TaxSummary(
            short_term_shares=self.short_term_shares,
            long_term_shares=self.long_term_shares,
            short_term_cost_base=self.short_term_cost_base,
            long_term_cost_base=self.long_term_cost_base,
            short_term_unrealized_gain=self.short_term_unrealized_pnl,
            long_term_unrealized_gain=self.long_term_unrealized_pnl,
        )

    def with_market_data(self, current_price, current_fx_rate=None) -> 'CostBasisSummary':
        """Copy of this summary with updated market data."""
        return replace(
            self,
            current_price=_validate_market_price(current_price),
            current_fx_rate=_validate_fx_rate(current_fx_rate),
        )


def _validate_market_price(price) -> Optional[Decimal]:
    if price is None:
        return None
    price = to_decimal(price)
    if price < 0:
        raise ValueError(f"Market price cannot be negative: {price}")
    return price


def _validate_fx_rate(rate) -> Optional[Decimal]:
    if rate is None:
        return None
    rate = to_decimal(rate)
    if rate <= 0:
        raise ValueError(f"FX rate must be positive: {rate}")
    return rate


def summarize(
    lots: Sequence[PurchaseLot],
    as_of: Union[date, datetime],
    current_price=None,
    current_fx_rate=None,
    symbol: Optional[str] = None,
    long_term_threshold_days: int = LONG_TERM_THRESHOLD_DAYS
) -> CostBasisSummary:
    """
    Aggregate lots into a cost basis summary.

    Args:
        lots: Purchase lots for one symbol
        as_of: Moment the tax split is evaluated against
        current_price: Market price per share in base currency (optional)
        current_fx_rate: Current base-per-secondary FX rate (optional)
        symbol: Symbol of the holding (defaults to the lots' symbol)
        long_term_threshold_days: Holding period above which a lot is long-term

    Returns:
        CostBasisSummary

    Raises:
        InvalidLotError: If lots belong to different symbols
        ValueError: If the market price is negative or the FX rate is not positive
    """
    lot_symbols = {lot.symbol for lot in lots if lot.symbol}
    if symbol:
        symbol = symbol.strip().upper()
        lot_symbols.discard(symbol)
        if lot_symbols:
            raise InvalidLotError(f"Lots for {sorted(lot_symbols)} passed as {symbol}")
    else:
        if len(lot_symbols) > 1:
            raise InvalidLotError(f"Lots span several symbols: {sorted(lot_symbols)}")
        symbol = lot_symbols.pop() if lot_symbols else ""

    total_shares = _sum_shares(lots)
    total_cost_base = _sum_base(lots)
    total_cost_secondary = _sum_secondary(lots)

    summary = CostBasisSummary(
        symbol=symbol,
        total_shares=total_shares,
        total_cost_base=total_cost_base,
        total_cost_secondary=total_cost_secondary,
        average_cost_base=safe_divide(total_cost_base, total_shares),
        average_cost_secondary=safe_divide(total_cost_secondary, total_shares),
        lots=tuple(lots),
        as_of=as_of,
        current_price=_validate_market_price(current_price),
        current_fx_rate=_validate_fx_rate(current_fx_rate),
        long_term_threshold_days=long_term_threshold_days,
    )

    logger.debug(
        f"Summarized {symbol or '<empty>'}: {len(lots)} lots, "
        f"{total_shares} shares, cost {total_cost_base}"
    )

    return summary
