"""
DCA Projector

Forward projection of a schedule under a constant expected return:

    monthly_rate          = annual_return_percent / 12 / 100
    monthly_contribution  = amount * executions_per_year / 12
    value[m]    = value[m-1] * (1 + monthly_rate) + monthly_contribution
    invested[m] = invested[m-1] + monthly_contribution

Each month also carries a low/high band around the projected value:
"flat" keeps it at +/-10% for every month, "sqrt_time" widens it as
10% * sqrt(months / 12).

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple, Union

import pandas as pd

from lotwise.config import PROJECTION_BAND_FRACTION
from lotwise.core.money import ZERO, HUNDRED, to_decimal
from lotwise.modules.dca.metrics import calculate_absolute_return
from lotwise.modules.dca.models import DCASchedule
from lotwise.modules.dca.recurrence import add_months
from lotwise.utils.logging_config import setup_logger, get_perf_logger

logger = setup_logger(__name__)

TWELVE = Decimal(12)


class BandModel(str, Enum):
    FLAT = "flat"
    SQRT_TIME = "sqrt_time"


@dataclass(frozen=True)
class DCAProjectionDataPoint:
    date: Union[date, datetime]
    month: int
    projected_investment: Decimal
    projected_value: Decimal
    projected_value_low: Decimal
    projected_value_high: Decimal


@dataclass(frozen=True)
class DCAProjection:
    schedule_id: str
    projection_months: int
    expected_annual_return: Decimal
    monthly_contribution: Decimal
    projected_investment: Decimal
    projected_value: Decimal
    projected_return: Decimal
    projected_return_percent: Decimal
    band: BandModel = BandModel.FLAT
    data_points: Tuple[DCAProjectionDataPoint, ...] = field(default_factory=tuple)

    @property
    def projected_value_low(self) -> Decimal:
        if not self.data_points:
            return self.projected_value
        return self.data_points[-1].projected_value_low

    @property
    def projected_value_high(self) -> Decimal:
        if not self.data_points:
            return self.projected_value
        return self.data_points[-1].projected_value_high

    def to_dataframe(self) -> pd.DataFrame:
        columns = [
            "date", "month", "projected_investment", "projected_value",
            "projected_value_low", "projected_value_high",
        ]
        if not self.data_points:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame([
            {name: getattr(point, name) for name in columns}
            for point in self.data_points
        ])


def _band_width(value: Decimal, month: int, band: BandModel, fraction: Decimal) -> Decimal:
    if band == BandModel.SQRT_TIME:
        return value * fraction * (Decimal(month) / TWELVE).sqrt()
    return value * fraction


def project(
    schedule: DCASchedule,
    projection_months: int,
    expected_annual_return_percent,
    start: Optional[Union[date, datetime]] = None,
    starting_value=None,
    band: Union[BandModel, str] = BandModel.FLAT,
    band_fraction: Decimal = PROJECTION_BAND_FRACTION
) -> DCAProjection:
    """
    Project a schedule forward month by month.

    Starts from the schedule's total invested (as both invested and value,
    unless starting_value gives the current market value). Data point m is
    dated m calendar months after start, which defaults to the schedule's
    next execution date (or its start date).

    Args:
        schedule: Schedule to project
        projection_months: Number of months (>= 0)
        expected_annual_return_percent: e.g. 7 for 7% a year
        start: Date the projection starts from
        starting_value: Current market value of what has been invested so far
        band: "flat" or "sqrt_time"
        band_fraction: Band half-width as a fraction of value

    Returns:
        DCAProjection

    Raises:
        ValueError: If projection_months is negative or band is unknown
    """
    if projection_months < 0:
        raise ValueError(f"Projection months cannot be negative: {projection_months}")
    band = BandModel(band)
    annual_return = to_decimal(expected_annual_return_percent)
    monthly_rate = annual_return / TWELVE / HUNDRED
    monthly_contribution = schedule.monthly_equivalent_amount

    if start is None:
        start = schedule.next_execution_date or schedule.start_date

    invested = schedule.total_invested
    value = schedule.total_invested if starting_value is None else to_decimal(starting_value)
    data_points: List[DCAProjectionDataPoint] = []

    with get_perf_logger(logger, f"project {schedule.symbol} {projection_months}m", threshold_ms=500):
        for month in range(1, projection_months + 1):
            invested = invested + monthly_contribution
            value = value * (1 + monthly_rate) + monthly_contribution
            width = _band_width(value, month, band, band_fraction)

            data_points.append(DCAProjectionDataPoint(
                date=add_months(start, month),
                month=month,
                projected_investment=invested,
                projected_value=value,
                projected_value_low=value - width,
                projected_value_high=value + width,
            ))

    projected_return, projected_return_percent = calculate_absolute_return(invested, value)

    logger.debug(
        f"Projected {schedule.symbol} over {projection_months} months at {annual_return}%: "
        f"invested {invested}, value {value}"
    )

    return DCAProjection(
        schedule_id=schedule.id,
        projection_months=projection_months,
        expected_annual_return=annual_return,
        monthly_contribution=monthly_contribution,
        projected_investment=invested,
        projected_value=value,
        projected_return=projected_return,
        projected_return_percent=projected_return_percent,
        band=band,
        data_points=tuple(data_points),
    )
