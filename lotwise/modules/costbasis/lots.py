"""
Purchase Lot Model

A PurchaseLot is the atomic unit of cost basis: one purchase event of one
symbol, with its cost recorded in the base (trading) currency and in a
secondary (display/settlement) currency.

FX convention: fx_rate is base-per-secondary (e.g. 1.30 USD per GBP), so
    price_secondary = price_base / fx_rate
    total_secondary = total_base / fx_rate

Key Invariant: a lot is immutable once recorded. A correction is a new lot,
never an in-place edit of historical fact.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, validator

from lotwise.config import LONG_TERM_THRESHOLD_DAYS
from lotwise.core.money import to_decimal, safe_divide, round_currency
from lotwise.utils.logging_config import setup_logger

logger = setup_logger(__name__)

# Tolerance for total_base vs shares * price_base at construction
_TOTAL_TOLERANCE = Decimal("0.01")


class InvalidLotError(ValueError):
    """Raised when a lot cannot be accepted into a ledger."""
    pass


class HoldingPeriodCategory(str, Enum):
    """Tax-relevant holding period categories."""
    
    SHORT_TERM = "short_term"
    LONG_TERM = "long_term"
    
    @property
    def display_name(self) -> str:
        return "Short-Term" if self is HoldingPeriodCategory.SHORT_TERM else "Long-Term"
    
    @property
    def description(self) -> str:
        if self is HoldingPeriodCategory.SHORT_TERM:
            return "Held 1 year or less"
        return "Held more than 1 year"
    
    @property
    def tax_implication(self) -> str:
        if self is HoldingPeriodCategory.SHORT_TERM:
            return "Taxed as ordinary income"
        return "Preferential capital gains rates"


def calendar_days_between(start: datetime, end: Union[date, datetime]) -> int:
    """
    Whole calendar days from start to end.
    
    When both carry timezones, end is viewed in start's timezone before the
    dates are compared, so a purchase at 23:00 local is not counted a day
    older than it is.
    """
    if isinstance(end, datetime):
        if end.tzinfo is not None and start.tzinfo is not None:
            end = end.astimezone(start.tzinfo)
        end_date = end.date()
    else:
        end_date = end
    return (end_date - start.date()).days


class PurchaseLot(BaseModel):
    """
    Single purchase lot for cost basis tracking.
    
    Validation happens here, at ingestion: zero/negative shares and
    non-positive FX rates are rejected. Compute functions downstream assume
    valid lots.
    """
    
    purchased_at: datetime
    shares: Decimal
    price_base: Decimal
    total_base: Decimal
    total_secondary: Decimal
    fx_rate: Decimal
    
    symbol: Optional[str] = None
    base_currency: str = "USD"
    secondary_currency: str = "GBP"
    
    class Config:
        frozen = True
    
    @validator('purchased_at', pre=True)
    def parse_purchase_date(cls, v):
        """Accept plain dates as midnight of that day."""
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime.combine(v, time.min)
        return v
    
    @validator('shares', 'price_base', 'total_base', 'total_secondary', 'fx_rate', pre=True)
    def parse_decimal(cls, v):
        return to_decimal(v)
    
    @validator('shares')
    def shares_positive(cls, v):
        if v <= 0:
            raise ValueError(f'Lot shares must be positive: {v}')
        return v
    
    @validator('price_base', 'total_base', 'total_secondary')
    def non_negative_amounts(cls, v):
        if v < 0:
            raise ValueError(f'Value cannot be negative: {v}')
        return v
    
    @validator('fx_rate')
    def fx_rate_positive(cls, v):
        if v <= 0:
            raise ValueError(f'FX rate must be positive: {v}')
        return v
    
    @validator('total_base')
    def check_total_consistency(cls, v, values):
        """Warn when total_base drifts from shares * price_base (fees, rounding)."""
        shares = values.get('shares')
        price = values.get('price_base')
        if shares is not None and price is not None:
            expected = shares * price
            if abs(v - expected) > _TOTAL_TOLERANCE:
                logger.warning(
                    f"Lot total {v} differs from shares*price {expected} "
                    f"by {v - expected}"
                )
        return v
    
    @validator('symbol')
    def normalize_symbol(cls, v):
        return v.strip().upper() if v else v
    
    @classmethod
    def from_purchase(
        cls,
        purchased_at: Union[date, datetime],
        shares,
        price_base,
        fx_rate,
        symbol: Optional[str] = None,
        base_currency: str = "USD",
        secondary_currency: str = "GBP"
    ) -> 'PurchaseLot':
        """Build a lot whose totals are derived from shares, price and FX rate."""
        shares_d = to_decimal(shares)
        price_d = to_decimal(price_base)
        fx_d = to_decimal(fx_rate)
        total_base = shares_d * price_d
        total_secondary = round_currency(safe_divide(total_base, fx_d), secondary_currency)
        return cls(
            purchased_at=purchased_at,
            shares=shares_d,
            price_base=price_d,
            total_base=total_base,
            total_secondary=total_secondary,
            fx_rate=fx_d,
            symbol=symbol,
            base_currency=base_currency,
            secondary_currency=secondary_currency,
        )
    
    @property
    def lot_id(self) -> str:
        """Identifier derived from purchase timestamp and share count."""
        return f"{self.purchased_at.isoformat()}-{self.shares}"
    
    @property
    def price_secondary(self) -> Decimal:
        """Price per share in the secondary currency."""
        return safe_divide(self.price_base, self.fx_rate)
    
    def holding_period_days(self, as_of: Union[date, datetime]) -> int:
        """Days held as of the given moment."""
        return calendar_days_between(self.purchased_at, as_of)
    
    def is_long_term(
        self,
        as_of: Union[date, datetime],
        threshold_days: int = LONG_TERM_THRESHOLD_DAYS
    ) -> bool:
        """Long-term means held strictly more than threshold_days."""
        return self.holding_period_days(as_of) > threshold_days
    
    def holding_period_category(
        self,
        as_of: Union[date, datetime],
        threshold_days: int = LONG_TERM_THRESHOLD_DAYS
    ) -> HoldingPeriodCategory:
        if self.is_long_term(as_of, threshold_days):
            return HoldingPeriodCategory.LONG_TERM
        return HoldingPeriodCategory.SHORT_TERM
    
    def __repr__(self) -> str:
        return (
            f"PurchaseLot({self.symbol or '?'}, "
            f"shares={self.shares}, "
            f"total={self.total_base:.2f} {self.base_currency}, "
            f"fx={self.fx_rate}, "
            f"acquired={self.purchased_at.date()})"
        )
