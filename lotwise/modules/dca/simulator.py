"""
DCA Simulator

Replays a fixed-amount investment plan over a historical (or synthetic)
price path. Prices come only from the injected price model (see
lotwise.lib.price_models), so a run is fully determined by its inputs: the
same model and dates always produce the same series.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Tuple

import pandas as pd

from lotwise.config import SHARE_DECIMAL_PLACES
from lotwise.core.hashing import calculate_sha256
from lotwise.core.money import ZERO, safe_divide, to_decimal, round_shares
from lotwise.lib.price_models import (
    MissingPriceError,
    Moment,
    PriceModel,
    constant_price_model,
    series_price_model,
    synthetic_price_model,
)
from lotwise.modules.dca.metrics import (
    calculate_absolute_return,
    dca_cash_flows,
    simple_annualized_return,
    xirr,
)
from lotwise.modules.dca.models import Frequency
from lotwise.modules.dca.recurrence import iter_execution_dates
from lotwise.utils.logging_config import setup_logger, get_perf_logger

logger = setup_logger(__name__)

# ---- simulation -------------------------------------------------------------

@dataclass(frozen=True)
class DCASimulationDataPoint:
    date: Moment
    price_at_date: Decimal
    shares_bought: Decimal
    shares_owned: Decimal
    cumulative_invested: Decimal
    cumulative_value: Decimal


@dataclass(frozen=True)
class DCASimulation:
    """Result of a simulated DCA plan."""

    symbol: str
    amount: Decimal
    frequency: Frequency
    start_date: Moment
    end_date: Moment
    total_invested: Decimal
    total_shares: Decimal
    final_price: Decimal
    final_value: Decimal
    average_cost: Decimal
    total_return: Decimal
    total_return_percent: Decimal
    data_points: Tuple[DCASimulationDataPoint, ...] = field(default_factory=tuple)

    @property
    def execution_count(self) -> int:
        return len(self.data_points)

    @property
    def execution_dates(self) -> List[Moment]:
        return [point.date for point in self.data_points]

    @property
    def annualized_return(self) -> Decimal:
        """Total return percent per year of the simulated period (simple, not compounded)."""
        return simple_annualized_return(self.total_return_percent, self.start_date, self.end_date)

    def xirr(self) -> Optional[float]:
        """Money-weighted annual return of the plan, None if it cannot be solved."""
        if not self.data_points:
            return None
        dates, amounts = dca_cash_flows(
            self.execution_dates, self.amount, self.end_date, self.final_value
        )
        return xirr(dates, amounts)

    def to_dataframe(self) -> pd.DataFrame:
        columns = [
            "date", "price_at_date", "shares_bought", "shares_owned",
            "cumulative_invested", "cumulative_value",
        ]
        if not self.data_points:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame([
            {name: getattr(point, name) for name in columns}
            for point in self.data_points
        ])

    def fingerprint(self) -> str:
        """SHA256 over the canonical JSON of the whole result."""
        return calculate_sha256(self)


def _resolve_price(price_model: PriceModel, moment: Moment) -> Decimal:
    price = price_model(moment)
    if price is None:
        raise MissingPriceError(f"No price for {moment}")
    price = to_decimal(price)
    if price <= 0:
        raise ValueError(f"Price model returned non-positive price {price} for {moment}")
    return price


def simulate(
    symbol: str,
    amount,
    frequency: Frequency,
    start_date: Moment,
    end_date: Moment,
    price_model: PriceModel,
    preferred_day_of_week: Optional[int] = None,
    preferred_day_of_month: Optional[int] = None,
    share_places: int = SHARE_DECIMAL_PLACES
) -> DCASimulation:
    """
    Simulate investing `amount` on every execution date from start to end.

    Execution dates start at start_date (moved forward onto the preferred day
    if one is given) and advance with the recurrence calculator. At each date
    shares bought = amount / price, rounded to share_places. The final value
    is total shares at the price on end_date.

    Args:
        symbol: Ticker symbol
        amount: Amount invested per execution
        frequency: Execution frequency
        start_date: First possible execution date
        end_date: Last possible execution date (inclusive)
        price_model: Callable returning the price for a date
        preferred_day_of_week: 1 (Sunday) to 7 (Saturday), weekly/biweekly only
        preferred_day_of_month: 1 to 31, monthly only
        share_places: Fractional-share precision

    Returns:
        DCASimulation

    Raises:
        ValueError: If amount is not positive or a price is not positive
        MissingPriceError: If the price model has no price for a date
    """
    amount = to_decimal(amount)
    if amount <= 0:
        raise ValueError(f"Amount per execution must be positive: {amount}")
    symbol = symbol.strip().upper()

    with get_perf_logger(logger, f"simulate {symbol} {frequency.value}", threshold_ms=500):
        data_points: List[DCASimulationDataPoint] = []
        total_invested = ZERO
        total_shares = ZERO

        for moment in iter_execution_dates(
            start_date, end_date, frequency, preferred_day_of_week, preferred_day_of_month
        ):
            price = _resolve_price(price_model, moment)
            shares_bought = round_shares(amount / price, share_places)

            total_invested += amount
            total_shares += shares_bought

            data_points.append(DCASimulationDataPoint(
                date=moment,
                price_at_date=price,
                shares_bought=shares_bought,
                shares_owned=total_shares,
                cumulative_invested=total_invested,
                cumulative_value=total_shares * price,
            ))

        final_price = _resolve_price(price_model, end_date) if data_points else ZERO
        final_value = total_shares * final_price
        total_return, total_return_percent = calculate_absolute_return(total_invested, final_value)

    logger.info(
        f"Simulated {symbol}: {len(data_points)} executions, invested {total_invested}, "
        f"final value {final_value}"
    )

    return DCASimulation(
        symbol=symbol,
        amount=amount,
        frequency=frequency,
        start_date=start_date,
        end_date=end_date,
        total_invested=total_invested,
        total_shares=total_shares,
        final_price=final_price,
        final_value=final_value,
        average_cost=safe_divide(total_invested, total_shares),
        total_return=total_return,
        total_return_percent=total_return_percent,
        data_points=tuple(data_points),
    )
